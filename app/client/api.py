"""HTTP client for the live chat service."""

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from app.client.config import ClientConfig
from app.client.exceptions import (
    InvalidRequestError,
    InvalidTransitionError,
    LiveChatError,
    NetworkError,
    NotFoundError,
    SessionClosedError,
)
from app.client.models import AssistantTurn, CreatedSession, PollPayload, normalize_state

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

_ERRORS_BY_CODE: dict[str, type[LiveChatError]] = {
    "SESSION_NOT_FOUND": NotFoundError,
    "INVALID_TRANSITION": InvalidTransitionError,
    "SESSION_CLOSED": SessionClosedError,
}


def _error_from_response(response: httpx.Response) -> LiveChatError:
    """Map a non-2xx response onto the client error hierarchy."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("message") or f"HTTP {response.status_code}"
    code = body.get("code", "")

    if code in _ERRORS_BY_CODE:
        return _ERRORS_BY_CODE[code](message, code, response.status_code)
    if response.status_code == 404:
        return NotFoundError(message, code, response.status_code)
    if response.status_code == 429 or response.status_code >= 500:
        return NetworkError(message, code, response.status_code)
    return InvalidRequestError(message, code, response.status_code)


def _validate(model: type[ModelT], data: dict, path: str) -> ModelT:
    """Parse a response body, treating an unexpected shape as a transport fault."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise NetworkError(f"{path} returned an unexpected body") from exc


class LiveChatApi:
    """Thin async wrapper over the live chat REST endpoints.

    Every call sends the chat token and ``Cache-Control: no-store``. Pass a
    custom ``transport`` to talk to an in-process app.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.rest_base,
            headers={
                config.token_header: config.auth_token,
                "Cache-Control": "no-store",
                "Accept": "application/json",
            },
            timeout=config.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LiveChatApi":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> dict:
        try:
            response = await self._client.request(
                method,
                path,
                timeout=timeout or self._config.request_timeout,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.debug(
                "Live chat request failed",
                method=method,
                path=path,
                status_code=response.status_code,
                code=error.code,
            )
            raise error

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"{method} {path} returned invalid JSON") from exc

    # --- Sessions ---

    async def create_session(
        self,
        name: str = "",
        email: str = "",
        page_url: str = "",
        user_agent: str = "",
    ) -> CreatedSession:
        path = "/api/v1/live/session"
        data = await self._request(
            "POST",
            path,
            json={
                "userMeta": {"name": name, "email": email},
                "pageUrl": page_url,
                "userAgent": user_agent,
            },
        )
        created = _validate(CreatedSession, data, path)
        return created.model_copy(update={"status": normalize_state(created.status)})

    async def close_session(self, session_id: int, notes: str | None = None) -> None:
        body = {"notes": notes} if notes else {}
        await self._request("POST", f"/api/v1/live/session/{session_id}/close", json=body)

    async def my_session(self) -> dict | None:
        data = await self._request("GET", "/api/v1/live/session/mine")
        return data.get("session")

    # --- Messages ---

    async def send_message(
        self,
        session_id: int,
        content: str,
        reply_to: int | None = None,
        attachment: dict | None = None,
    ) -> int:
        """Append a message; returns its sequence number."""
        body: dict[str, Any] = {"sessionId": session_id, "content": content}
        if reply_to is not None:
            body["replyTo"] = reply_to
        if attachment is not None:
            body["attachment"] = attachment
        data = await self._request("POST", "/api/v1/live/message", json=body)
        return int(data["messageId"])

    async def poll(
        self,
        session_id: int,
        after: int = 0,
        wait: float | None = None,
        limit: int | None = None,
    ) -> PollPayload:
        wait_hint = self._config.wait_hint if wait is None else wait
        params: dict[str, Any] = {"session_id": session_id, "after": after, "wait": wait_hint}
        if limit is not None:
            params["limit"] = limit
        path = "/api/v1/live/messages"
        data = await self._request(
            "GET",
            path,
            timeout=self._config.request_timeout + wait_hint,
            params=params,
        )
        payload = _validate(PollPayload, data, path)
        return payload.model_copy(update={"status": normalize_state(payload.status)})

    async def mark_read(self, session_id: int) -> int:
        data = await self._request(
            "POST", "/api/v1/live/messages/read", json={"sessionId": session_id}
        )
        return int(data["markedCount"])

    async def set_typing(self, session_id: int, is_typing: bool) -> None:
        await self._request(
            "POST",
            "/api/v1/live/typing",
            json={"sessionId": session_id, "isTyping": is_typing},
        )

    # --- Assistant ---

    async def assistant_reply(self, transcript: list[AssistantTurn]) -> str:
        data = await self._request(
            "POST",
            "/api/v1/assistant/reply",
            json={"messages": [turn.model_dump() for turn in transcript]},
        )
        return str(data["reply"])
