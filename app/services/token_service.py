"""Host chat token issuing and verification."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Literal

import jwt

from app.core.config import settings
from app.core.exceptions import (
    InvalidTokenError,
    TokenExpiredError,
)
from app.schemas.auth_schema import TokenPayload

GUEST_PREFIX = "guest:"


class TokenService:
    """Mint and verify the signed tokens the host page hands to the widget.

    The host authenticates its visitors; this service only trusts what a
    token signed with the shared secret says about them.
    """

    def __init__(self) -> None:
        self._secret = settings.auth.secret_key.get_secret_value()
        self._algorithm = settings.auth.algorithm

    def issue_token(
        self,
        subject: str,
        role: Literal["user", "agent"] = "user",
        name: str = "",
        email: str = "",
        expires_in: timedelta | None = None,
    ) -> str:
        """Create a signed chat token for a visitor or an agent."""
        now = datetime.now(UTC)
        lifetime = expires_in or timedelta(minutes=settings.auth.token_expire_minutes)
        payload = {
            "sub": subject,
            "role": role,
            "name": name,
            "email": email,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_guest_token(self, name: str = "Guest", email: str = "") -> str:
        """Create a token for an anonymous visitor with a fresh guest id."""
        return self.issue_token(
            subject=f"{GUEST_PREFIX}{uuid.uuid4().hex}",
            role="user",
            name=name,
            email=email,
        )

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate a chat token."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError from e

        if payload.get("role") not in ("user", "agent") or not payload.get("sub"):
            raise InvalidTokenError

        return TokenPayload(
            sub=str(payload["sub"]),
            role=payload["role"],
            name=payload.get("name", ""),
            email=payload.get("email", ""),
            jti=payload.get("jti", ""),
            exp=payload["exp"],
        )


def is_guest(subject: str) -> bool:
    """Guest subjects are minted by issue_guest_token."""
    return subject.startswith(GUEST_PREFIX)
