"""Token handling for identity-provider issued JWTs."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from cubord.config import get_settings

settings = get_settings()


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by an already verified token."""

    subject: str | None
    email: str | None = None
    name: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        """Extract the claims the identity resolver needs from a decoded payload."""
        return cls(
            subject=payload.get("sub"),
            email=payload.get("email"),
            name=payload.get("name"),
        )


def create_access_token(subject: str, email: str | None = None, name: str | None = None) -> str:
    """Create a JWT access token shaped like the identity provider's."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_expiration_minutes)
    to_encode: dict[str, Any] = {"sub": subject, "exp": expire}
    if email is not None:
        to_encode["email"] = email
    if name is not None:
        to_encode["name"] = name
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError:
        return None
