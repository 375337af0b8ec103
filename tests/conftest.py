"""
Shared fixtures: an in-memory stand-in for the Chatwork client and a helper
to build messages at local wall-clock times.
"""
import os
import tempfile
from datetime import datetime

import pytest

# Keep test runs from writing rotating logs into the package tree
os.environ.setdefault("CHATKEEP_LOG_DIR", tempfile.mkdtemp(prefix="chatkeep-logs-"))

from chatkeep.connectors.chatwork.schema import Message, Room, room_id  # noqa: E402


class FakeClient:
    """Serves canned pages per room; a page may be an exception to raise."""

    def __init__(self, rooms=None, pages=None):
        self.rooms = rooms or []
        self.pages = pages or {}
        self.calls = []

    def list_rooms(self, token):
        self.calls.append(("rooms", token))
        return list(self.rooms)

    def fetch_room_messages(self, token, room):
        rid = room_id(room)
        self.calls.append(("messages", token, rid))
        page = self.pages.get(rid, [])
        if isinstance(page, list) and page and isinstance(page[0], (list, Exception)):
            # A list of pages is served one per call
            page = page.pop(0)
        if isinstance(page, Exception):
            raise page
        return list(page)


def at(year, month, day, hour=12, minute=0):
    """Epoch seconds for a local wall-clock time."""
    return int(datetime(year, month, day, hour, minute).timestamp())


def msg(message_id, sent_at, sender="Taro", body=None):
    return Message(id=str(message_id), sent_at=sent_at, sender_name=sender, body=body or f"message {message_id}")


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def make_message():
    return msg


@pytest.fixture
def local_time():
    return at


@pytest.fixture
def room():
    return Room
