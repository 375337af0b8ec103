"""
Persisted records: watch-list entries and saved fetch logs.

Both serialize to the camelCase layout the browser tool kept in local
storage, so an exported blob from it loads unchanged.
"""
from datetime import date, datetime, UTC
from typing import Any, Dict, Optional
from dataclasses import dataclass

from chatkeep.errors import StoreError, ValidationError
from chatkeep.connectors.chatwork.schema import RoomId, room_id

DEFAULT_INTERVAL_DAYS = 3


def _day(raw: Any) -> Optional[date]:
    if raw in (None, ""):
        return None
    # Older blobs stored full ISO timestamps
    return date.fromisoformat(str(raw)[:10])


def interval(value: Any) -> int:
    """Validate an auto-save interval in whole days."""
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"intervalDays must be an integer, got {value!r}") from exc
    if days < 1:
        raise ValidationError(f"intervalDays must be >= 1, got {days}")
    return days


@dataclass
class WatchEntry:
    """Auto-save `room_id` every `interval_days` days."""
    room_id: RoomId
    room_name: str
    interval_days: int = DEFAULT_INTERVAL_DAYS
    last_catch_up: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roomId": self.room_id,
            "roomName": self.room_name,
            "intervalDays": self.interval_days,
            "lastCatchUpDate": self.last_catch_up.isoformat() if self.last_catch_up else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchEntry":
        try:
            return cls(
                room_id=room_id(data["roomId"]),
                room_name=str(data.get("roomName") or ""),
                interval_days=interval(data.get("intervalDays", DEFAULT_INTERVAL_DAYS)),
                last_catch_up=_day(data.get("lastCatchUpDate")),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise StoreError(f"Malformed watch entry: {data!r}") from exc


@dataclass(frozen=True)
class LogEntry:
    """One saved fetch result, manual or automatic. Never edited in place."""
    id: str
    room_id: RoomId
    room_name: str
    start_date: date
    end_date: date
    formatted_content: str
    message_count: int
    saved_at: datetime
    is_auto_save: bool = False

    @classmethod
    def create(
        cls,
        room: RoomId,
        room_name: str,
        start_date: date,
        end_date: date,
        content: str,
        count: int,
        auto: bool = False,
        now: Optional[datetime] = None,
    ) -> "LogEntry":
        """New entry stamped with `now` (UTC)."""
        saved_at = now or datetime.now(UTC)
        millis = int(saved_at.timestamp() * 1000)
        entry_id = f"auto_{room}_{millis}" if auto else str(millis)
        return cls(
            id=entry_id,
            room_id=room,
            room_name=room_name,
            start_date=start_date,
            end_date=end_date,
            formatted_content=content,
            message_count=count,
            saved_at=saved_at,
            is_auto_save=auto,
        )

    @property
    def filename(self) -> str:
        """Download name used by the browser tool."""
        return f"Chatwork_{self.room_name}_{self.start_date}_{self.end_date}.txt"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "roomName": self.room_name,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "formattedContent": self.formatted_content,
            "messageCount": self.message_count,
            "savedAt": self.saved_at.isoformat(),
            "isAutoSave": self.is_auto_save,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        try:
            saved_at = datetime.fromisoformat(str(data["savedAt"]).replace("Z", "+00:00"))
            if saved_at.tzinfo is None:
                saved_at = saved_at.replace(tzinfo=UTC)
            return cls(
                id=str(data["id"]),
                room_id=room_id(data["roomId"]),
                room_name=str(data.get("roomName") or ""),
                start_date=_day(data["startDate"]),
                end_date=_day(data["endDate"]),
                # "content"/"count" are the keys the browser tool wrote
                formatted_content=str(data.get("formattedContent", data.get("content")) or ""),
                message_count=int(data.get("messageCount", data.get("count")) or 0),
                saved_at=saved_at,
                is_auto_save=bool(data.get("isAutoSave", False)),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise StoreError(f"Malformed log entry: {data!r}") from exc
