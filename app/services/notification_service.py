"""Email notifications for live-agent events."""

import asyncio
import smtplib
from concurrent.futures import ThreadPoolExecutor
from email.message import EmailMessage

import structlog

from app.core.config import settings
from app.core.database import async_session_factory
from app.core.settings import NotificationConfig
from app.repositories.live_chat_repo import LiveChatRepository

logger = structlog.get_logger()

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="smtp")


class NotificationService:
    """Sends plain-text email through SMTP without blocking the event loop."""

    def __init__(self, config: NotificationConfig | None = None) -> None:
        self._config = config or settings.notification

    @property
    def is_configured(self) -> bool:
        return bool(self._config.enabled and self._config.smtp_host and self._config.sender)

    @property
    def agent_email(self) -> str:
        return self._config.agent_email

    def _build(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._config.sender
        message["To"] = to
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._config.smtp_host, self._config.smtp_port, timeout=15) as server:
            server.starttls()
            password = self._config.smtp_password.get_secret_value()
            if self._config.smtp_user and password:
                server.login(self._config.smtp_user, password)
            server.send_message(message)

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        """Send one email. Returns False when notifications are off."""
        if not self.is_configured or not to:
            logger.debug("Email notification skipped", to=to, subject=subject)
            return False
        message = self._build(to, subject, body)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(_executor, self._deliver, message)
        logger.info("Email notification sent", to=to, subject=subject)
        return True


async def notify_new_session(
    session_id: int,
    notifier: NotificationService | None = None,
) -> None:
    """Tell agents a visitor is waiting.

    Runs as a FastAPI BackgroundTask with its own DB session; failures are
    logged and never reach the request that scheduled it.
    """
    notifier = notifier or NotificationService()
    try:
        async with async_session_factory() as session:
            live_session = await LiveChatRepository(session).find_session(session_id)
        if live_session is None:
            return

        visitor = live_session.user_name or "A visitor"
        body = (
            f"{visitor} requested a live chat.\n\n"
            f"Session: {live_session.id}\n"
            f"Email: {live_session.user_email or '-'}\n"
            f"Page: {live_session.page_url or '-'}\n"
        )
        await notifier.send_email(
            notifier.agent_email,
            f"New live chat request from {visitor}",
            body,
        )
    except Exception:
        logger.exception("Failed to send new session notification", session_id=session_id)


async def notify_new_message(
    session_id: int,
    seq: int,
    notifier: NotificationService | None = None,
) -> None:
    """Forward a visitor message to the agent assigned to the session."""
    notifier = notifier or NotificationService()
    try:
        async with async_session_factory() as session:
            repo = LiveChatRepository(session)
            live_session = await repo.find_session(session_id)
            found = await repo.find_messages_after(session_id, seq - 1, 1)
        if live_session is None or not live_session.agent_id:
            return

        recipient = live_session.agent_email or notifier.agent_email
        content = found[0].content if found else ""
        visitor = live_session.user_name or "The visitor"
        await notifier.send_email(
            recipient,
            f"New message in live chat #{session_id}",
            f"{visitor} wrote:\n\n{content}\n",
        )
    except Exception:
        logger.exception(
            "Failed to send new message notification",
            session_id=session_id,
            seq=seq,
        )
