"""Client side of the polling transport."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

import structlog

from app.client.api import LiveChatApi
from app.client.backoff import Backoff
from app.client.config import ClientConfig
from app.client.cursor import ClientSyncCursor
from app.client.exceptions import LiveChatError, NotFoundError
from app.client.models import ChatMessage, PollPayload

logger = structlog.get_logger()

MessageHandler = Callable[[ChatMessage], None]
StatusHandler = Callable[[str], None]
ReconnectHandler = Callable[[bool], None]

ENDED = "ended"


class PollingTransport:
    """Runs one poll loop per session with exactly one request in flight.

    Every loop carries the generation it was started with. ``start``,
    ``stop`` and ``set_online`` bump the generation, so a response that
    lands after a supersede is dropped without touching the cursor.
    """

    def __init__(
        self,
        api: LiveChatApi,
        config: ClientConfig,
        on_status: StatusHandler | None = None,
        on_reconnecting: ReconnectHandler | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api = api
        self._config = config
        self._on_status = on_status
        self._on_reconnecting = on_reconnecting
        self._sleep = sleep

        self._backoff = Backoff(config.base_delay, config.max_delay)
        self._cursor: ClientSyncCursor | None = None
        self._on_message: MessageHandler | None = None
        self._task: asyncio.Task | None = None
        self._generation = 0
        self._online = True
        self._wanted = False
        self._status: str | None = None
        self.reconnecting = False

    @property
    def session_id(self) -> int | None:
        return self._cursor.session_id if self._cursor is not None else None

    @property
    def cursor(self) -> ClientSyncCursor | None:
        return self._cursor

    @property
    def status(self) -> str | None:
        """Last session status reported by the server (or ``ended``)."""
        return self._status

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def online(self) -> bool:
        return self._online

    def set_listeners(
        self,
        on_status: StatusHandler | None,
        on_reconnecting: ReconnectHandler | None,
    ) -> None:
        self._on_status = on_status
        self._on_reconnecting = on_reconnecting

    async def start(self, session_id: int, on_message: MessageHandler) -> None:
        """Supersede any running loop and poll ``session_id`` from scratch."""
        await self._cancel()
        if self._cursor is None:
            self._cursor = ClientSyncCursor(session_id, self._config.dedupe_capacity)
        else:
            self._cursor.reset(session_id)
        self._on_message = on_message
        self._status = None
        self._wanted = True
        self._backoff.reset()
        self._set_reconnecting(False)
        self._spawn()

    async def stop(self) -> None:
        """Halt polling. Safe to call repeatedly."""
        self._wanted = False
        await self._cancel()

    async def set_online(self, online: bool) -> None:
        """Pause while offline; resume right away, without backoff, when back."""
        if online == self._online:
            return
        self._online = online
        if not online:
            logger.debug("Live polling paused offline", session_id=self.session_id)
            await self._cancel()
            return
        if self._wanted and self._cursor is not None:
            logger.debug("Live polling resumed online", session_id=self.session_id)
            self._backoff.reset()
            self._spawn()

    def _spawn(self) -> None:
        if not self._online or self._cursor is None:
            return
        self._generation += 1
        self._task = asyncio.create_task(
            self._run(self._generation, self._cursor.session_id)
        )

    async def _cancel(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _run(self, generation: int, session_id: int) -> None:
        cursor = self._cursor
        if cursor is None:
            return
        while self._is_current(generation):
            try:
                payload = await self._api.poll(session_id, after=cursor.last_seen_seq)
            except NotFoundError:
                if not self._is_current(generation):
                    return
                logger.info("Live session vanished, polling stopped", session_id=session_id)
                self._wanted = False
                self._report_status(ENDED)
                return
            except LiveChatError as exc:
                if not self._is_current(generation):
                    return
                delay = self._backoff.fail()
                logger.debug(
                    "Live poll failed",
                    session_id=session_id,
                    failures=self._backoff.failures,
                    delay=delay,
                    error=exc.message,
                )
                if self._backoff.failures >= self._config.reconnect_threshold:
                    self._set_reconnecting(True)
                await self._sleep(delay)
                continue

            if not self._is_current(generation):
                logger.debug("Stale poll response discarded", session_id=session_id)
                return

            self._backoff.reset()
            self._set_reconnecting(False)
            self._deliver(cursor, payload)

            if payload.status == "closed":
                self._wanted = False
                return
            if payload.has_more or self._config.wait_hint > 0:
                continue
            await self._sleep(self._config.base_delay)

    def _deliver(self, cursor: ClientSyncCursor, payload: PollPayload) -> None:
        for message in payload.messages:
            if not cursor.is_new(message.id):
                continue
            cursor.remember(message.id)
            if self._on_message is not None:
                self._on_message(message)
        if payload.status != self._status:
            self._report_status(payload.status)

    def _report_status(self, status: str) -> None:
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    def _set_reconnecting(self, reconnecting: bool) -> None:
        if reconnecting == self.reconnecting:
            return
        self.reconnecting = reconnecting
        if self._on_reconnecting is not None:
            self._on_reconnecting(reconnecting)
