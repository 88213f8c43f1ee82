"""
Authentication helpers — verify the JWT issued by the login service.

Tokens are issued elsewhere; this module only signs test/dev tokens and
decodes incoming ones. The token travels either as
``Authorization: Bearer <jwt>`` or in the ``access_token`` cookie.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from workpulse.config import settings
from workpulse.schemas.auth import CurrentUser

COOKIE_KEY = "access_token"


def create_access_token(data: dict) -> str:
    """Create a signed JWT with an expiry claim."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[CurrentUser]:
    """Return the identity in a valid token, or None."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None

    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        return None
    return CurrentUser(
        id=str(user_id),
        email=payload.get("email"),
        role=payload.get("role") or "member",
    )


def _extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(COOKIE_KEY)


async def get_current_user(request: Request) -> Optional[CurrentUser]:
    """
    Extract the JWT from the header or cookie and decode it.
    Returns None when no valid token is present.
    """
    token = _extract_token(request)
    if not token:
        return None
    return decode_token(token)


async def require_user(
    current_user: Optional[CurrentUser] = Depends(get_current_user),
) -> CurrentUser:
    if not current_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return current_user


async def require_admin(current_user: CurrentUser = Depends(require_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return current_user
