"""
Tests for chatkeep.archive.transcript
"""
from datetime import datetime, UTC

from chatkeep.archive.transcript import format_message, format_transcript
from chatkeep.connectors.chatwork.schema import Message


def test_format_message_in_utc():
    line = format_message(Message("1", 1700000000, "Taro", "hi"), tz=UTC)
    assert line == "[2023/11/14 22:13] Taro: hi"


def test_format_message_uses_local_time_by_default():
    """Without a zone the viewer's local calendar is used."""
    line = format_message(Message("1", 1700000000, "Taro", "hi"))
    local = datetime.fromtimestamp(1700000000)
    assert line.startswith("[2023/11/")
    assert line == f"[{local:%Y/%m/%d %H:%M}] Taro: hi"


def test_format_message_keeps_multiline_bodies():
    line = format_message(Message("2", 0, "花子", "[info]line one\nline two[/info]"), tz=UTC)
    assert line == "[1970/01/01 00:00] 花子: [info]line one\nline two[/info]"


def test_format_transcript_joins_in_given_order():
    messages = [Message("1", 60, "A", "x"), Message("2", 120, "B", "y")]
    assert format_transcript(messages, tz=UTC) == "[1970/01/01 00:01] A: x\n[1970/01/01 00:02] B: y"
    assert format_transcript([], tz=UTC) == ""
