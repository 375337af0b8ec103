"""Error taxonomy shared by the client, the archive core and both surfaces."""


class ChatkeepError(Exception):
    """Base class for every error the core raises on purpose."""


class ValidationError(ChatkeepError):
    """A required input is missing or malformed."""


class CapacityError(ChatkeepError):
    """The watch-list already holds its maximum number of rooms."""


class StoreError(ChatkeepError):
    """The local state file could not be read or written."""


class FetchError(ChatkeepError):
    """The upstream answered non-2xx or returned a payload we cannot parse."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class AuthError(FetchError):
    """The upstream rejected the API token."""


class NetworkError(FetchError):
    """The upstream could not be reached (connection failure or timeout)."""
