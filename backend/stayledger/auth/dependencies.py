"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.auth.jwt import ACCESS, decode_token
from stayledger.database import get_db
from stayledger.models.user import User
from stayledger.services.actor import Actor

# Strict bearer, raises 403 automatically if no token provided
_bearer_scheme = HTTPBearer()


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def user_from_token(db: AsyncSession, token: str, expected_type: str) -> User:
    """Resolve a token of ``expected_type`` to an active user.

    Raises:
        HTTPException 401: If the token is invalid, expired, of the wrong
            type, or its user is missing or inactive.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise _unauthorized() from None

    if payload.get("type") != expected_type:
        raise _unauthorized("Invalid token type")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized() from None

    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized()
    if not user.is_active:
        raise _unauthorized("User account is inactive")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the Bearer access token, then return the user."""
    return await user_from_token(db, credentials.credentials, ACCESS)


async def get_current_actor(user: User = Depends(get_current_user)) -> Actor:
    """The authenticated caller as the booking core sees it."""
    return Actor.from_user(user)

