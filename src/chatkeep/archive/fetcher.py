"""
Message Fetcher: drive the window splitter and the upstream client together
and turn whatever comes back into one deduplicated, chronological transcript.
"""

import time
from datetime import date, datetime, tzinfo
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field

from chatkeep.errors import ValidationError
from chatkeep.utils.logs import report
from chatkeep.archive import windows as splitter
from chatkeep.archive.windows import FetchWindow
from chatkeep.archive.transcript import format_transcript
from chatkeep.connectors.chatwork.client import ChatworkClient, PAGE_CAP
from chatkeep.connectors.chatwork.schema import Message, room_id

logger = report.settings(__file__)


def parse_day(value: Any, name: str = "date") -> date:
    """Accept a `date`, a `datetime` or a `YYYY-MM-DD` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{name} is required")
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"{name} must be YYYY-MM-DD, got {value!r}") from exc


@dataclass
class FetchResult:
    """Formatted transcript plus the bookkeeping callers surface."""
    text: str
    count: int
    windows: List[FetchWindow] = field(default_factory=list)

    @property
    def truncated(self) -> bool:
        """The upstream page cap was hit, so older messages may be missing."""
        return self.count == PAGE_CAP

    def to_dict(self) -> Dict[str, Any]:
        """Shape returned by the local retrieval endpoint."""
        return {
            "messages": self.text,
            "count": self.count,
            "truncated": self.truncated,
            "info": f"Fetched in {len(self.windows)} request(s)",
        }


def merge_messages(batches: List[List[Message]]) -> List[Message]:
    """Deduplicate by message id (first occurrence wins), then sort by send time."""
    unique: Dict[str, Message] = {}
    for batch in batches:
        for msg in batch:
            unique.setdefault(msg.id, msg)
    return sorted(unique.values(), key=lambda m: m.sent_at)


class MessageFetcher:
    """Collect a room's messages over a date range, one window at a time."""

    def __init__(
        self,
        client: ChatworkClient,
        max_span_days: int = 30,
        delay: float = 1.0,
        windowed: bool = True,
        tz: Optional[tzinfo] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_span_days = max_span_days
        self.delay = delay
        self.windowed = windowed
        self.tz = tz
        self.sleep = sleep

    def plan(self, range_start: date, range_end: date, windowed: Optional[bool] = None) -> List[FetchWindow]:
        """Windows that `fetch_range` would request for this range."""
        if windowed is None:
            windowed = self.windowed
        if windowed:
            return splitter.split(range_start, range_end, self.max_span_days, self.tz)
        return splitter.single_window(range_start, range_end, self.tz)

    def fetch_range(
        self,
        token: str,
        room: Any,
        range_start: Any,
        range_end: Any,
        windowed: Optional[bool] = None,
    ) -> FetchResult:
        """Fetch, filter, merge and format a room's messages for [start, end].

        Upstream failures propagate unchanged and discard anything collected
        from earlier windows.
        """
        if not token:
            raise ValidationError("API token is required")
        rid = room_id(room)
        start = parse_day(range_start, "startDate")
        end = parse_day(range_end, "endDate")

        plan = self.plan(start, end, windowed)
        if not plan:
            raise ValidationError(f"startDate {start} is after endDate {end}")

        logger.info("Fetching room %s for %s..%s in %d window(s)", rid, start, end, len(plan))
        batches: List[List[Message]] = []
        for index, window in enumerate(plan):
            if index:
                self.sleep(self.delay)
            page = self.client.fetch_room_messages(token, rid)
            kept = [m for m in page if window.contains(m.sent_at)]
            logger.debug("Window %s kept %d of %d messages", window, len(kept), len(page))
            batches.append(kept)

        merged = merge_messages(batches)
        result = FetchResult(text=format_transcript(merged, self.tz), count=len(merged), windows=plan)
        if result.truncated:
            logger.warning("Room %s hit the %d message page cap; older messages may be missing", rid, PAGE_CAP)
        logger.info("Room %s: %d unique messages", rid, result.count)
        return result
