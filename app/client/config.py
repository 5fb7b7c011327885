"""Client-side configuration for the live chat widget runtime."""

from pydantic import BaseModel, Field


class ClientStrings(BaseModel, frozen=True):
    """User-visible banner texts, keyed by banner kind."""

    connecting: str = "Connecting you to an agent..."
    error: str = "Live chat is unavailable right now. Please try again."
    send_failed: str = "Your message could not be sent. Please retry."
    send_failed_closed: str = "This chat has ended. Your message was not sent."
    reconnecting: str = "Connection lost. Reconnecting..."
    session_ended: str = "The chat session has ended."

    def for_banner(self, kind: str) -> str:
        return getattr(self, kind, "")


class ClientConfig(BaseModel, frozen=True):
    """Explicit configuration handed to every client object."""

    rest_base: str = Field(..., description="Base URL of the live chat service")
    auth_token: str = Field(..., description="Host-issued chat token")
    token_header: str = "X-Chat-Token"
    strings: ClientStrings = Field(default_factory=ClientStrings)

    base_delay: float = Field(default=1.0, gt=0)
    max_delay: float = Field(default=30.0, gt=0)
    request_timeout: float = Field(default=10.0, gt=0)
    wait_hint: float = Field(default=0.0, ge=0)
    dedupe_capacity: int = Field(default=500, ge=1)
    reconnect_threshold: int = Field(default=3, ge=1)
    background_polling: bool = True