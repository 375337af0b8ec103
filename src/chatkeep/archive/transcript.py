"""Render messages as plain-text transcript lines."""
from datetime import datetime, tzinfo
from typing import Iterable, Optional

from chatkeep.connectors.chatwork.schema import Message


def format_message(message: Message, tz: Optional[tzinfo] = None) -> str:
    """`[YYYY/MM/DD HH:MM] sender: body`, in local time unless `tz` is given."""
    sent = datetime.fromtimestamp(message.sent_at, tz=tz)
    return f"[{sent:%Y/%m/%d %H:%M}] {message.sender_name}: {message.body}"


def format_transcript(messages: Iterable[Message], tz: Optional[tzinfo] = None) -> str:
    """One line per message, newline-joined, in the order given."""
    return "\n".join(format_message(m, tz) for m in messages)
