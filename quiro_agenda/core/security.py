"""Bearer tokens identifying the acting professional."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from quiro_agenda.config import settings


def create_professional_token(
    professional_id: int,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Mint an access token whose ``sub`` is the professional's id.

    Used by operators (``scripts/issue_token.py``) and the test suite; the
    login flow that normally issues tokens lives outside this service.

    Args:
        professional_id: Professional the token acts for
        expires_delta: Lifetime; ``ACCESS_TOKEN_EXPIRE_MINUTES`` when omitted

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = {
        "sub": str(professional_id),
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "type": "access",
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None
