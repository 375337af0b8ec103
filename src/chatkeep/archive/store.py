"""
Local persistence: one JSON key-value blob holding the watch-list, the saved
logs and the API token.

Stores load once at construction and write the whole blob back after every
mutation. A single writer is assumed; `ArchiveSession` serializes access.
A failed write leaves both the blob in memory and the store unchanged.
"""

import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import replace

from chatkeep.errors import CapacityError, StoreError, ValidationError
from chatkeep.utils.logs import report
from chatkeep.archive.records import LogEntry, WatchEntry, interval, DEFAULT_INTERVAL_DAYS
from chatkeep.connectors.chatwork.schema import Room, room_id

logger = report.settings(__file__)

WATCH_KEY = "autoSaveRooms"
LOGS_KEY = "savedLogs"
TOKEN_KEY = "chatworkApiToken"

MAX_WATCHED_ROOMS = 10
MAX_SAVED_LOGS = 50

_MISSING = object()


class StateFile:
    """The JSON blob on disk, read and written as a whole."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.data: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load state data; a missing file is an empty state."""
        if not self.path.exists():
            self.data = {}
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("Error loading state from %s: %s", self.path, exc)
            raise StoreError(f"Cannot read state file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"State file {self.path} does not hold an object")
        self.data = data
        logger.debug("Loaded state from %s (%s)", self.path, ", ".join(sorted(data)) or "empty")

    def save(self) -> None:
        """Save state data."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.error("Error saving state to %s: %s", self.path, exc)
            raise StoreError(f"Cannot write state file {self.path}: {exc}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def update(self, values: Dict[str, Any]) -> None:
        """Set several keys and persist them in one write, or not at all."""
        previous = {key: self.data.get(key, _MISSING) for key in values}
        self.data.update(values)
        try:
            self.save()
        except StoreError:
            for key, old in previous.items():
                if old is _MISSING:
                    self.data.pop(key, None)
                else:
                    self.data[key] = old
            raise

    def put(self, key: str, value: Any) -> None:
        """Set one key and persist."""
        self.update({key: value})

    @property
    def token(self) -> str:
        """The remembered API token, or an empty string."""
        return str(self.data.get(TOKEN_KEY) or "")

    def remember_token(self, token: str) -> None:
        self.put(TOKEN_KEY, token.strip())
        logger.info("Remembered API token %s", report.mask(token))


class LogStore:
    """Saved fetch results, most recent first, trimmed to `cap`."""

    def __init__(self, state: StateFile, cap: int = MAX_SAVED_LOGS):
        self.state = state
        self.cap = min(cap, MAX_SAVED_LOGS)
        self._entries: List[LogEntry] = [LogEntry.from_dict(d) for d in state.get(LOGS_KEY, [])]
        # A cap lowered in config applies on the next load
        del self._entries[self.cap:]

    @staticmethod
    def _dump(entries: List[LogEntry]) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in entries]

    def _unique(self, entry: LogEntry) -> LogEntry:
        """Suffix the id of an entry stamped in the same millisecond as a kept one."""
        taken = {e.id for e in self._entries}
        if entry.id not in taken:
            return entry
        n = 1
        while f"{entry.id}_{n}" in taken:
            n += 1
        return replace(entry, id=f"{entry.id}_{n}")

    def _prepended(self, entry: LogEntry) -> List[LogEntry]:
        return [entry, *self._entries][:self.cap]

    def _saved(self, entry: LogEntry, before: int) -> None:
        logger.info(
            "Saved log %s for room %s (%d messages%s)",
            entry.id, entry.room_id, entry.message_count, ", auto" if entry.is_auto_save else "",
        )
        dropped = before + 1 - self.cap
        if dropped > 0:
            logger.debug("Trimmed %d old log entries", dropped)

    def append(self, entry: LogEntry) -> LogEntry:
        """Prepend an entry and drop whatever falls beyond the cap; returns the stored entry."""
        entry = self._unique(entry)
        entries = self._prepended(entry)
        self.state.put(LOGS_KEY, self._dump(entries))
        before, self._entries = len(self._entries), entries
        self._saved(entry, before)
        return entry

    def list(self) -> List[LogEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> Optional[LogEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def latest_auto_save(self, room: Any) -> Optional[LogEntry]:
        rid = room_id(room)
        return next((e for e in self._entries if e.room_id == rid and e.is_auto_save), None)

    def __len__(self) -> int:
        return len(self._entries)


class WatchListStore:
    """Rooms configured for periodic auto-save, at most `cap` of them."""

    def __init__(self, state: StateFile, cap: int = MAX_WATCHED_ROOMS):
        self.state = state
        self.cap = min(cap, MAX_WATCHED_ROOMS)
        if cap > self.cap:
            logger.warning("Auto-save room limit %d exceeds %d; using %d", cap, MAX_WATCHED_ROOMS, self.cap)
        self._entries: List[WatchEntry] = [WatchEntry.from_dict(d) for d in state.get(WATCH_KEY, [])]
        if len(self._entries) > self.cap:
            logger.warning(
                "State file %s watches %d rooms; keeping the first %d",
                state.path, len(self._entries), self.cap,
            )
            del self._entries[self.cap:]

    @staticmethod
    def _dump(entries: List[WatchEntry]) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in entries]

    def _commit(self, entries: List[WatchEntry]) -> None:
        self.state.put(WATCH_KEY, self._dump(entries))
        self._entries = entries

    def _replaced(self, updated: WatchEntry) -> List[WatchEntry]:
        return [updated if e.room_id == updated.room_id else e for e in self._entries]

    def list(self) -> List[WatchEntry]:
        return list(self._entries)

    def get(self, room: Any) -> Optional[WatchEntry]:
        rid = room_id(room)
        return next((e for e in self._entries if e.room_id == rid), None)

    def is_watched(self, room: Any) -> bool:
        return self.get(room) is not None

    def add(self, room: Any, room_name: str, interval_days: Any = DEFAULT_INTERVAL_DAYS) -> WatchEntry:
        """Watch a room; re-adding a watched room updates its name and interval."""
        rid = room_id(room)
        days = interval(interval_days)
        existing = self.get(rid)
        if existing:
            entry = replace(existing, room_name=room_name or existing.room_name, interval_days=days)
            self._commit(self._replaced(entry))
            return entry
        if len(self._entries) >= self.cap:
            raise CapacityError(f"Auto-save is limited to {self.cap} rooms")
        entry = WatchEntry(room_id=rid, room_name=room_name or "Unknown", interval_days=days)
        self._commit([*self._entries, entry])
        logger.info("Watching room %s (%s) every %d day(s) [%d/%d]", rid, entry.room_name, days,
                    len(self._entries), self.cap)
        return entry

    def remove(self, room: Any) -> bool:
        """Stop watching a room; its catch-up progress goes with it."""
        rid = room_id(room)
        entries = [e for e in self._entries if e.room_id != rid]
        if len(entries) == len(self._entries):
            return False
        self._commit(entries)
        logger.info("Stopped watching room %s", rid)
        return True

    def toggle(self, room: Any, room_name: str, interval_days: Any = DEFAULT_INTERVAL_DAYS) -> bool:
        """Flip a room's watch state; returns True when it is now watched."""
        if self.is_watched(room):
            self.remove(room)
            return False
        self.add(room, room_name, interval_days)
        return True

    def set_interval(self, room: Any, interval_days: Any) -> WatchEntry:
        entry = replace(self._require(room), interval_days=interval(interval_days))
        self._commit(self._replaced(entry))
        return entry

    def mark_caught_up(self, room: Any, day: date) -> WatchEntry:
        entry = replace(self._require(room), last_catch_up=day)
        self._commit(self._replaced(entry))
        return entry

    def refresh_names(self, rooms: Iterable[Room]) -> int:
        """Rewrite stale room names from a fresh room listing."""
        names = {r.id: r.name for r in rooms}
        entries, changed = [], 0
        for entry in self._entries:
            fresh = names.get(entry.room_id)
            if fresh and fresh != entry.room_name:
                logger.info("Room %s renamed: %s -> %s", entry.room_id, entry.room_name, fresh)
                entry = replace(entry, room_name=fresh)
                changed += 1
            entries.append(entry)
        if changed:
            self._commit(entries)
        return changed

    def _require(self, room: Any) -> WatchEntry:
        entry = self.get(room)
        if entry is None:
            raise ValidationError(f"Room {room} is not on the watch-list")
        return entry

    def __len__(self) -> int:
        return len(self._entries)


def record_catch_up(logs: LogStore, watch_list: WatchListStore, entry: LogEntry, day: date) -> LogEntry:
    """Store an auto-save log and advance its room's catch-up marker in one write."""
    if logs.state is not watch_list.state:
        raise StoreError("Logs and watch-list must share one state file")
    entry = logs._unique(entry)
    caught_up = replace(watch_list._require(entry.room_id), last_catch_up=day)
    log_entries, watch_entries = logs._prepended(entry), watch_list._replaced(caught_up)
    logs.state.update({
        LOGS_KEY: logs._dump(log_entries),
        WATCH_KEY: watch_list._dump(watch_entries),
    })
    before = len(logs)
    logs._entries, watch_list._entries = log_entries, watch_entries
    logs._saved(entry, before)
    return entry
