"""Switches the chat window between the assistant and a live agent."""

import bisect
from enum import StrEnum

import structlog

from app.client.api import LiveChatApi
from app.client.config import ClientConfig
from app.client.exceptions import (
    InvalidTransitionError,
    LiveChatError,
    NotFoundError,
    SessionClosedError,
)
from app.client.models import AssistantTurn, ChatMessage
from app.client.transport import ENDED, PollingTransport

logger = structlog.get_logger()


class Mode(StrEnum):
    ASSISTANT = "assistant"
    LIVEAGENT = "liveagent"


class Banner(StrEnum):
    CONNECTING = "connecting"
    ERROR = "error"
    SEND_FAILED = "send_failed"
    SEND_FAILED_CLOSED = "send_failed_closed"
    RECONNECTING = "reconnecting"
    SESSION_ENDED = "session_ended"


_FINISHED = ("closed", ENDED)


class ModeCoordinator:
    """Owns the visible transcript, the unread counter and user-facing banners.

    The assistant transcript is held here and sent in full with each
    assistant request. The live transcript is fed by the polling transport,
    which keeps running in the background while the assistant is shown
    unless ``background_polling`` is off.
    """

    def __init__(
        self,
        api: LiveChatApi,
        config: ClientConfig,
        transport: PollingTransport | None = None,
        visitor_name: str = "",
        visitor_email: str = "",
        page_url: str = "",
    ) -> None:
        self._api = api
        self._config = config
        self._transport = transport or PollingTransport(api, config)
        self._transport.set_listeners(self._on_status, self._on_reconnecting)
        self._visitor_name = visitor_name
        self._visitor_email = visitor_email
        self._page_url = page_url

        self.mode = Mode.ASSISTANT
        self.session_id: int | None = None
        self.unread_count = 0
        self.banner: Banner | None = None
        self.draft = ""
        self._session_status: str | None = None
        self._assistant_messages: list[AssistantTurn] = []
        self._live_messages: list[ChatMessage] = []
        self._live_ids: set[int] = set()

    @property
    def transport(self) -> PollingTransport:
        return self._transport

    @property
    def visible_messages(self) -> list[AssistantTurn] | list[ChatMessage]:
        if self.mode == Mode.LIVEAGENT:
            return list(self._live_messages)
        return list(self._assistant_messages)

    @property
    def banner_text(self) -> str:
        return self._config.strings.for_banner(self.banner) if self.banner else ""

    def current_status(self) -> str | None:
        """Status of the live session, ``ended`` if it vanished, None if there is none."""
        return self._session_status

    async def switch_mode(self, mode: Mode | str) -> None:
        target = Mode(mode)
        if target == Mode.LIVEAGENT:
            await self._enter_live()
        else:
            await self._enter_assistant()

    async def _enter_live(self) -> None:
        self.mode = Mode.LIVEAGENT
        self.unread_count = 0

        if self.session_id is not None and self._session_status in _FINISHED:
            # The previous conversation is over; the next request starts a new one.
            self._reset_live()

        if self.session_id is None:
            self.banner = Banner.CONNECTING
            try:
                created = await self._api.create_session(
                    name=self._visitor_name,
                    email=self._visitor_email,
                    page_url=self._page_url,
                )
            except LiveChatError as exc:
                logger.warning("Live session could not be opened", error=exc.message)
                self.mode = Mode.ASSISTANT
                self.banner = Banner.ERROR
                return
            self.session_id = created.session_id
            self._session_status = created.status
            self.banner = None
            logger.info("Live session opened", session_id=self.session_id)

        if not (self._transport.is_running and self._transport.session_id == self.session_id):
            await self._transport.start(self.session_id, self._on_live_message)

    async def _enter_assistant(self) -> None:
        self.mode = Mode.ASSISTANT
        if not self._config.background_polling:
            await self._transport.stop()

    def _reset_live(self) -> None:
        self.session_id = None
        self._session_status = None
        self._live_messages = []
        self._live_ids = set()
        if self.banner == Banner.SESSION_ENDED:
            self.banner = None

    def _on_live_message(self, message: ChatMessage) -> None:
        if message.id in self._live_ids:
            return
        self._live_ids.add(message.id)
        # Local sends can land ahead of earlier polled messages.
        bisect.insort(self._live_messages, message, key=lambda m: m.id)
        if self.mode != Mode.LIVEAGENT and message.sender != "user":
            self.unread_count += 1

    def _on_status(self, status: str) -> None:
        self._session_status = status
        if status in _FINISHED:
            self.banner = Banner.SESSION_ENDED

    def _on_reconnecting(self, reconnecting: bool) -> None:
        if reconnecting:
            self.banner = Banner.RECONNECTING
        elif self.banner == Banner.RECONNECTING:
            self.banner = None

    async def send(self, text: str) -> bool:
        """Route ``text`` to the live session or the assistant.

        On failure the text stays in ``draft`` and a banner explains why.
        """
        content = text.strip()
        if not content:
            return False
        self.draft = text

        try:
            if self.mode == Mode.LIVEAGENT and self.session_id is not None:
                await self._send_live(self.session_id, content)
            else:
                await self._send_assistant(content)
        except SessionClosedError:
            self.banner = Banner.SEND_FAILED_CLOSED
            return False
        except LiveChatError as exc:
            logger.warning("Message could not be sent", mode=self.mode, error=exc.message)
            self.banner = Banner.SEND_FAILED
            return False

        self.draft = ""
        if self.banner in (Banner.SEND_FAILED, Banner.SEND_FAILED_CLOSED):
            self.banner = None
        return True

    async def _send_live(self, session_id: int, content: str) -> None:
        seq = await self._api.send_message(session_id, content)
        # Shown right away; the poll echo of the same seq is ignored.
        self._on_live_message(
            ChatMessage(id=seq, session_id=session_id, sender="user", content=content)
        )

    async def _send_assistant(self, content: str) -> None:
        turn = AssistantTurn(role="user", content=content)
        self._assistant_messages.append(turn)
        try:
            reply = await self._api.assistant_reply(self._assistant_messages)
        except LiveChatError:
            self._assistant_messages.pop()
            raise
        self._assistant_messages.append(AssistantTurn(role="assistant", content=reply))

    async def close_session(self) -> None:
        """End the live conversation and fall back to the assistant."""
        if self.session_id is None:
            await self._enter_assistant()
            return

        try:
            await self._api.close_session(self.session_id)
        except (InvalidTransitionError, NotFoundError) as exc:
            logger.info(
                "Live session close ignored",
                session_id=self.session_id,
                error=exc.message,
            )
        except LiveChatError as exc:
            logger.warning(
                "Live session close failed",
                session_id=self.session_id,
                error=exc.message,
            )
            self.banner = Banner.ERROR
            return

        await self._transport.stop()
        self._session_status = "closed"
        self.mode = Mode.ASSISTANT
