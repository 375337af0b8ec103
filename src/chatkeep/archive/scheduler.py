"""
Auto-Save Scheduler.

For each watched room the scheduler decides whether the last catch-up is
overdue and, if so, fetches everything from the day after that catch-up up
to yesterday. Rooms are processed one at a time with a pause between upstream
calls; a failure is recorded for that room and the pass moves on.
"""

import time
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple
from dataclasses import dataclass

from chatkeep.errors import ChatkeepError, ValidationError
from chatkeep.utils.logs import report
from chatkeep.archive.fetcher import MessageFetcher
from chatkeep.archive.records import LogEntry, WatchEntry
from chatkeep.archive.store import LogStore, WatchListStore, MAX_WATCHED_ROOMS, record_catch_up
from chatkeep.connectors.chatwork.schema import RoomId

logger = report.settings(__file__)

SAVED = "saved"
CURRENT = "current"
FAILED = "failed"


@dataclass(frozen=True)
class RoomOutcome:
    """What one scheduling pass did for one watched room."""
    room_id: RoomId
    room_name: str
    status: str
    window: Optional[Tuple[date, date]] = None
    entry: Optional[LogEntry] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != FAILED

    def to_dict(self) -> dict:
        return {
            "roomId": self.room_id,
            "roomName": self.room_name,
            "status": self.status,
            "startDate": self.window[0].isoformat() if self.window else None,
            "endDate": self.window[1].isoformat() if self.window else None,
            "logId": self.entry.id if self.entry else None,
            "count": self.entry.message_count if self.entry else None,
            "error": self.error,
        }


def is_overdue(entry: WatchEntry, today: date) -> bool:
    """Never caught up, or more than `interval_days` whole days since."""
    if entry.last_catch_up is None:
        return True
    return (today - entry.last_catch_up).days > entry.interval_days


def catch_up_window(entry: WatchEntry, today: date) -> Tuple[date, date]:
    """Date range that brings a room's saved history up to yesterday."""
    yesterday = today - timedelta(days=1)
    if entry.last_catch_up is not None:
        start = entry.last_catch_up + timedelta(days=1)
    else:
        start = today - timedelta(days=entry.interval_days - 1)
    # A one-day interval on its first run would otherwise start today
    return min(start, yesterday), yesterday


class AutoSaveScheduler:
    """Runs catch-up passes over the watch-list."""

    def __init__(
        self,
        fetcher: MessageFetcher,
        watch_list: WatchListStore,
        logs: LogStore,
        today: Callable[[], date] = date.today,
        delay: float = 0.5,
        max_rooms: int = MAX_WATCHED_ROOMS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.watch_list = watch_list
        self.logs = logs
        self.today = today
        self.delay = delay
        self.max_rooms = min(max_rooms, MAX_WATCHED_ROOMS)
        self.sleep = sleep

    def due(self) -> List[WatchEntry]:
        """Watched rooms whose catch-up is overdue right now."""
        today = self.today()
        return [e for e in self.watch_list.list()[:self.max_rooms] if is_overdue(e, today)]

    def run_pass(self, token: str) -> List[RoomOutcome]:
        """Catch up every overdue room; never raises for a single room's failure."""
        if not token:
            raise ValidationError("API token is required for auto-save")

        today = self.today()
        yesterday = today - timedelta(days=1)
        outcomes: List[RoomOutcome] = []
        called = False

        entries = self.watch_list.list()[:self.max_rooms]
        logger.info("Auto-save pass for %s over %d watched room(s)", today, len(entries))
        for entry in entries:
            if not is_overdue(entry, today):
                logger.debug("Room %s is current (last catch-up %s)", entry.room_id, entry.last_catch_up)
                outcomes.append(RoomOutcome(entry.room_id, entry.room_name, CURRENT))
                continue

            window = catch_up_window(entry, today)
            if called:
                self.sleep(self.delay)
            called = True
            try:
                result = self.fetcher.fetch_range(token, entry.room_id, *window)
                log_entry = LogEntry.create(
                    entry.room_id, entry.room_name, window[0], window[1],
                    result.text, result.count, auto=True,
                )
                log_entry = record_catch_up(self.logs, self.watch_list, log_entry, yesterday)
            except ChatkeepError as exc:
                logger.error("Auto-save failed for room %s (%s): %s", entry.room_id, entry.room_name, exc)
                outcomes.append(RoomOutcome(entry.room_id, entry.room_name, FAILED, window, error=str(exc)))
                continue

            logger.info("Auto-saved room %s %s..%s: %d messages", entry.room_id, window[0], window[1], result.count)
            outcomes.append(RoomOutcome(entry.room_id, entry.room_name, SAVED, window, log_entry))

        saved = sum(1 for o in outcomes if o.status == SAVED)
        failed = sum(1 for o in outcomes if o.status == FAILED)
        logger.info("Auto-save pass done: %d saved, %d failed, %d current", saved, failed,
                    len(outcomes) - saved - failed)
        return outcomes
