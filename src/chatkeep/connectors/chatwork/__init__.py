"""Chatwork v2 REST API connector."""
from chatkeep.connectors.chatwork.client import ChatworkClient, PAGE_CAP, TOKEN_HEADER
from chatkeep.connectors.chatwork.schema import Message, Room, RoomId, room_id

__all__ = ["ChatworkClient", "PAGE_CAP", "TOKEN_HEADER", "Message", "Room", "RoomId", "room_id"]
