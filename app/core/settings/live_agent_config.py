"""Live-agent session policy configuration."""

from datetime import timedelta

from pydantic import BaseModel


class LiveAgentConfig(BaseModel, frozen=True):
    """Live-agent session and polling settings."""

    auto_accept: bool
    allow_guests: bool
    inactivity_timeout_minutes: int
    history_cap: int
    max_wait_seconds: float
    wait_interval_seconds: float
    typing_ttl_seconds: int
    session_rate_limit: str
    presence_window_seconds: int = 300

    @property
    def inactivity_timeout(self) -> timedelta:
        """Inactivity threshold used by the timeout sweep."""
        return timedelta(minutes=self.inactivity_timeout_minutes)

    def clamp_wait(self, wait: float) -> float:
        """Bound a client wait hint to the advertised maximum."""
        return max(0.0, min(wait, self.max_wait_seconds))
