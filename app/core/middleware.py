"""ASGI middleware for chat token verification and cache headers."""

import json

import structlog
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.config import settings
from app.core.exceptions import AppException, error_body
from app.services.token_service import TokenService

logger = structlog.get_logger()

PUBLIC_PATHS: set[str] = {
    "",
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}

NO_CACHE_PREFIX = "/api/v1/live"

NO_CACHE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


class TokenMiddleware:
    """Pure ASGI middleware that verifies the host-issued chat token.

    On success the caller's identity is stored on ``request.state``
    (``user_id``, ``role``, ``name``, ``email``).
    """

    def __init__(self, app: ASGIApp, token_service: TokenService | None = None) -> None:
        self.app = app
        self._tokens = token_service or TokenService()
        self._header = settings.auth.header_name.lower().encode()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        if method == "OPTIONS":
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        normalized = path.rstrip("/") or "/"
        if normalized in PUBLIC_PATHS or path.startswith(("/docs", "/redoc")):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        token = headers.get(self._header, b"").decode().strip()

        if not token:
            await self._send_error(
                send, 401, "MISSING_TOKEN", f"{settings.auth.header_name} header required"
            )
            return

        try:
            payload = self._tokens.decode_token(token)
        except AppException as exc:
            logger.debug("Chat token rejected", path=path, code=exc.code)
            await self._send_error(send, exc.status_code, exc.code, exc.message)
            return

        scope.setdefault("state", {})
        scope["state"]["user_id"] = payload.sub
        scope["state"]["role"] = payload.role
        scope["state"]["name"] = payload.name
        scope["state"]["email"] = payload.email

        await self.app(scope, receive, send)

    @staticmethod
    async def _send_error(send: Send, status: int, code: str, message: str) -> None:
        """Send a JSON error response directly."""
        body = json.dumps(error_body(status, message, code)).encode()

        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})


class NoCacheMiddleware:
    """Forbid intermediaries from caching live-chat responses."""

    def __init__(self, app: ASGIApp, prefix: str = NO_CACHE_PREFIX) -> None:
        self.app = app
        self._prefix = prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not scope["path"].startswith(self._prefix):
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                for name, value in NO_CACHE_HEADERS.items():
                    response_headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_headers)
