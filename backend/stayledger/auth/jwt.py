"""Access and refresh tokens (python-jose, HS256 by default).

Tokens carry the user id in ``sub``, the role in ``role`` and the token
kind in ``type``.  The role claim is informational only: every request
reloads the user, so a role change takes effect immediately.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from stayledger.config import settings

ACCESS = "access"
REFRESH = "refresh"


def _encode(claims: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + lifetime, "type": token_type}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Short-lived bearer token; ``data`` must include ``sub``."""
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, ACCESS, lifetime)


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(data, REFRESH, lifetime)


def decode_token(token: str) -> dict:
    """Verify signature and expiry.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def create_token_pair(user_id: str, role: str | None = None) -> dict[str, str]:
    claims = {"sub": user_id}
    if role is not None:
        claims["role"] = role
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
    }
