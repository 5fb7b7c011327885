"""Outbound email notification configuration."""

from pydantic import BaseModel, SecretStr


class NotificationConfig(BaseModel, frozen=True):
    """SMTP notification settings."""

    enabled: bool
    agent_email: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: SecretStr
    smtp_from: str

    @property
    def sender(self) -> str:
        """Envelope sender, falling back to the SMTP login."""
        return self.smtp_from or self.smtp_user
