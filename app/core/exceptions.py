"""Application exception classes and handlers."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


# --- Authentication (401) ---


class AuthenticationError(AppException):
    """Base authentication error."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message=message, code="AUTHENTICATION_ERROR", status_code=401)


class TokenExpiredError(AppException):
    """Token has expired."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has expired",
            code="TOKEN_EXPIRED",
            status_code=401,
        )


class InvalidTokenError(AppException):
    """Token is invalid."""

    def __init__(self) -> None:
        super().__init__(
            message="Invalid token",
            code="INVALID_TOKEN",
            status_code=401,
        )


# --- Authorization (403) ---


class AuthorizationError(AppException):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message=message, code="AUTHORIZATION_ERROR", status_code=403)


# --- Bad request (400) ---


class InvalidMessageError(AppException):
    """Message has neither text nor attachment."""

    def __init__(self, message: str = "Message cannot be empty") -> None:
        super().__init__(message=message, code="INVALID_MESSAGE", status_code=400)


# --- Not Found (404) ---


class SessionNotFoundError(AppException):
    """Live session does not exist (or was cleaned up)."""

    def __init__(self, session_id: int | None = None) -> None:
        self.session_id = session_id
        super().__init__(
            message="Session not found",
            code="SESSION_NOT_FOUND",
            status_code=404,
        )


# --- Conflict (409) ---


class InvalidTransitionError(AppException):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current: str, target: str, reason: str | None = None) -> None:
        self.current = current
        self.target = target
        message = f"Cannot move session from '{current}' to '{target}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_TRANSITION",
            status_code=409,
        )


class SessionClosedError(AppException):
    """Append attempted on a closed session."""

    def __init__(self, session_id: int | None = None) -> None:
        self.session_id = session_id
        super().__init__(
            message="Session is closed",
            code="SESSION_CLOSED",
            status_code=409,
        )


# --- Service unavailable (503) ---


class AssistantUnavailableError(AppException):
    """The assistant model call failed."""

    def __init__(self) -> None:
        super().__init__(
            message="Assistant is temporarily unavailable",
            code="ASSISTANT_UNAVAILABLE",
            status_code=503,
        )


# --- Exception Handlers ---


def error_body(status: int, message: str, code: str) -> dict:
    """Uniform error payload shared by handlers and middleware."""
    return {"status": status, "message": message, "code": code}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, exc.code),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed request bodies and query params as 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    detail = first.get("msg", "Invalid request")
    message = f"{location}: {detail}" if location else detail
    return JSONResponse(
        status_code=422,
        content=error_body(422, message, "VALIDATION_ERROR"),
    )
