"""
Thin blocking client for the two Chatwork v2 endpoints the archive needs.

The messages endpoint only ever returns the most recent page (at most
`PAGE_CAP` messages) and takes no date filter; callers filter client-side and
are responsible for spacing consecutive calls.
"""

from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from chatkeep.errors import AuthError, FetchError, NetworkError
from chatkeep.utils.logs import report
from chatkeep.connectors.chatwork.schema import Message, Room, room_id

logger = report.settings(__file__)

DEFAULT_BASE_URL = "https://api.chatwork.com/v2"
TOKEN_HEADER = "X-ChatWorkToken"
PAGE_CAP = 100


class ChatworkClient:
    """Issues authenticated GET calls against the Chatwork API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        retries: int = 0,
        backoff: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if retries > 0:
            # Transport failures only: statuses are answered, never replayed
            retry = Retry(
                total=retries,
                connect=retries,
                read=retries,
                status=0,
                redirect=0,
                backoff_factor=backoff,
                allowed_methods=frozenset({"GET"}),
                raise_on_status=False,
            )
            self.session.mount("https://", HTTPAdapter(max_retries=retry))
            self.session.mount("http://", HTTPAdapter(max_retries=retry))

    def _get(self, path: str, token: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.info("GET %s (token %s)", url, report.mask(token))
        try:
            resp = self.session.get(
                url,
                headers={TOKEN_HEADER: token, "accept": "application/json"},
                params=params,
                timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            logger.error("GET %s failed: %s", url, exc)
            raise NetworkError(f"Could not reach Chatwork: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("GET %s failed: %s", url, exc)
            raise FetchError(f"Request to Chatwork failed: {exc}") from exc
        logger.debug("GET %s -> %s", url, resp.status_code)
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Unparsable response from %s: %s", resp.url, resp.text[:200])
            raise FetchError("Chatwork returned a response that is not JSON", resp.status_code) from exc

    def list_rooms(self, token: str) -> List[Room]:
        """Return every room visible to the token."""
        resp = self._get("/rooms", token)
        if not resp.ok:
            logger.warning("Room listing rejected with HTTP %s", resp.status_code)
            raise AuthError("Invalid API token", resp.status_code)
        data = self._json(resp)
        if not isinstance(data, list):
            raise FetchError("Room listing is not a list", resp.status_code)
        rooms = [Room.from_api(item) for item in data]
        logger.info("Listed %d rooms", len(rooms))
        return rooms

    def fetch_room_messages(self, token: str, room: str) -> List[Message]:
        """Return the upstream's most recent page of messages for a room."""
        rid = room_id(room)
        resp = self._get(f"/rooms/{rid}/messages", token, params={"force": 1})
        if resp.status_code == 401:
            raise AuthError("Invalid API token", resp.status_code)
        if not resp.ok:
            logger.warning("Message listing for room %s failed with HTTP %s", rid, resp.status_code)
            raise FetchError(f"Failed to fetch messages (HTTP {resp.status_code})", resp.status_code)
        # 204 means the room has nothing to return
        if resp.status_code == 204 or not resp.content:
            logger.info("Room %s returned no messages", rid)
            return []
        data = self._json(resp)
        if not isinstance(data, list):
            raise FetchError("Message listing is not a list", resp.status_code)
        messages = [Message.from_api(item) for item in data]
        logger.info("Fetched %d messages for room %s", len(messages), rid)
        return messages
