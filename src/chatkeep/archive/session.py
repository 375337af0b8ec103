"""
Composition root shared by the HTTP and command line surfaces.

An `ArchiveSession` owns one state file, the stores built on it, the fetcher
and the scheduler, and a lock so a manual fetch, a watch-list edit and a
scheduler pass never interleave.
"""

import threading
from datetime import date, datetime
from typing import Any, Callable, List, Optional, Tuple

from chatkeep.errors import ValidationError
from chatkeep.utils.cfg.schema import Config
from chatkeep.utils.logs import report
from chatkeep.archive.fetcher import FetchResult, MessageFetcher, parse_day
from chatkeep.archive.records import LogEntry, WatchEntry
from chatkeep.archive.scheduler import AutoSaveScheduler, RoomOutcome
from chatkeep.archive.store import LogStore, StateFile, WatchListStore
from chatkeep.connectors.chatwork.client import ChatworkClient
from chatkeep.connectors.chatwork.schema import Room, room_id

logger = report.settings(__file__)


class ArchiveSession:
    """Fetch, record and auto-save chat history against one state file."""

    def __init__(
        self,
        client: ChatworkClient,
        state: StateFile,
        config: Optional[Config] = None,
        today: Callable[[], date] = date.today,
        now: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        cfg = config or Config()
        self.config = cfg
        self.client = client
        self.state = state
        self.logs = LogStore(state, cap=cfg.store.log_cap)
        self.watch_list = WatchListStore(state, cap=cfg.autosave.max_rooms)
        extra = {"sleep": sleep} if sleep else {}
        self.fetcher = MessageFetcher(
            client,
            max_span_days=cfg.fetch.max_span_days,
            delay=cfg.fetch.delay,
            windowed=cfg.fetch.windowed,
            **extra,
        )
        self.scheduler = AutoSaveScheduler(
            self.fetcher,
            self.watch_list,
            self.logs,
            today=today,
            delay=cfg.autosave.delay,
            max_rooms=cfg.autosave.max_rooms,
            **extra,
        )
        self.now = now
        self._lock = threading.Lock()
        self._room_names: dict = {}

    @classmethod
    def from_config(cls, config: Config) -> "ArchiveSession":
        """Build a session with a live client from configuration."""
        client = ChatworkClient(
            base_url=config.api.base_url,
            timeout=config.api.timeout,
            retries=config.api.retries,
            backoff=config.api.backoff,
        )
        return cls(client, StateFile(config.store.path), config)

    def token(self, token: Optional[str] = None) -> str:
        """Explicit token, else the remembered one; remembers explicit tokens."""
        if token:
            if token != self.state.token:
                with self._lock:
                    self.state.remember_token(token)
            return token
        if self.state.token:
            return self.state.token
        raise ValidationError("API token is required")

    def rooms(self, token: Optional[str] = None) -> List[Room]:
        """List rooms and repair stale watch-list names."""
        rooms = self.client.list_rooms(self.token(token))
        with self._lock:
            self._room_names = {r.id: r.name for r in rooms}
            self.watch_list.refresh_names(rooms)
        return rooms

    def room_name(self, room: Any) -> str:
        rid = room_id(room)
        if rid in self._room_names:
            return self._room_names[rid]
        watched = self.watch_list.get(rid)
        return watched.room_name if watched else "Unknown"

    def fetch(
        self,
        room: Any,
        start: Any,
        end: Any,
        token: Optional[str] = None,
        room_name: Optional[str] = None,
        windowed: Optional[bool] = None,
    ) -> Tuple[FetchResult, LogEntry]:
        """Manual fetch: retrieve a range and record it as a non-automatic log."""
        if not room or not start or not end:
            raise ValidationError("roomId, startDate and endDate are required")
        api_token = self.token(token)
        rid = room_id(room)
        first, last = parse_day(start, "startDate"), parse_day(end, "endDate")
        with self._lock:
            result = self.fetcher.fetch_range(api_token, rid, first, last, windowed=windowed)
            entry = LogEntry.create(
                rid, room_name or self.room_name(rid), first, last,
                result.text, result.count, auto=False,
                now=self.now() if self.now else None,
            )
            entry = self.logs.append(entry)
        return result, entry

    def watch(self, room: Any, room_name: Optional[str] = None, interval_days: Any = None) -> WatchEntry:
        days = interval_days if interval_days is not None else self.config.autosave.default_interval_days
        with self._lock:
            return self.watch_list.add(room, room_name or self.room_name(room), days)

    def unwatch(self, room: Any) -> bool:
        with self._lock:
            return self.watch_list.remove(room)

    def toggle_watch(self, room: Any, room_name: Optional[str] = None, interval_days: Any = None) -> bool:
        days = interval_days if interval_days is not None else self.config.autosave.default_interval_days
        with self._lock:
            return self.watch_list.toggle(room, room_name or self.room_name(room), days)

    def set_interval(self, room: Any, interval_days: Any) -> WatchEntry:
        with self._lock:
            return self.watch_list.set_interval(room, interval_days)

    def auto_save(self, token: Optional[str] = None) -> List[RoomOutcome]:
        """Run one scheduler pass."""
        api_token = self.token(token)
        with self._lock:
            return self.scheduler.run_pass(api_token)
