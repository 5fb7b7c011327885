"""Client-side error types, one per failure the UI reacts to differently."""


class LiveChatError(Exception):
    """Base client error."""

    def __init__(self, message: str, code: str = "", status_code: int | None = None) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(LiveChatError):
    """The session no longer exists."""


class InvalidTransitionError(LiveChatError):
    """The server refused a status change."""


class SessionClosedError(LiveChatError):
    """The session is closed; nothing more can be appended."""


class InvalidRequestError(LiveChatError):
    """The server rejected the request as malformed or unauthorized."""


class NetworkError(LiveChatError):
    """Transport failure, timeout, or server-side error. Worth retrying."""
