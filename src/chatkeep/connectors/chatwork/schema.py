"""
Records parsed from the Chatwork v2 REST API.
"""
from typing import Any, Dict, NewType
from dataclasses import dataclass

from chatkeep.errors import FetchError, ValidationError

RoomId = NewType("RoomId", str)


def room_id(value: Any) -> RoomId:
    """Normalize a room id coming from any boundary to its canonical string.

    The upstream sends integers, browsers and INI files send strings; both
    must compare equal once they reach the watch-list.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Invalid room id: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Invalid room id: {value!r}")
        value = int(value)
    text = str(value).strip()
    if not text:
        raise ValidationError("Room id is required")
    return RoomId(text)


@dataclass(frozen=True)
class Room:
    """A chat room the token can see."""
    id: RoomId
    name: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Room":
        """Build a Room from a `GET /rooms` item."""
        try:
            return cls(id=room_id(data["room_id"]), name=str(data.get("name") or ""))
        except (KeyError, TypeError, ValidationError) as exc:
            raise FetchError(f"Malformed room record: {data!r}") from exc

    def to_api(self) -> Dict[str, str]:
        """Shape used by the local HTTP surface, mirroring the upstream."""
        return {"room_id": self.id, "name": self.name}


@dataclass(frozen=True)
class Message:
    """A single chat message; the upstream is the source of truth."""
    id: str
    sent_at: int          # epoch seconds
    sender_name: str
    body: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Message":
        """Build a Message from a `GET /rooms/{id}/messages` item."""
        try:
            account = data.get("account") or {}
            return cls(
                id=str(data["message_id"]),
                sent_at=int(data["send_time"]),
                sender_name=str(account.get("name") or ""),
                body=str(data.get("body") or ""),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise FetchError(f"Malformed message record: {data!r}") from exc
