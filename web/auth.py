"""Authentication for web API: token extraction and role checks."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import HTTPConnection

import config
from portal.errors import Forbidden, InternalError, Unauthorized
from portal.models import User
from portal.models.role import ADMIN_ROLE_ID
from portal.services import accounts

logger = logging.getLogger("nwn.auth")

http_bearer = HTTPBearer(auto_error=False)


def token_from_request(request: HTTPConnection) -> Optional[str]:
    """Identity token from Authorization: Bearer, falling back to the session cookie."""
    header = request.headers.get("Authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(config.AUTH_COOKIE_NAME) or None


async def get_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return token_from_request(request)


async def get_current_user(token: Optional[str] = Depends(get_token)) -> Optional[User]:
    """Return the live user for the presented token, or None if not authenticated."""
    if not token:
        return None
    try:
        return await accounts.resolve_user(token)
    except SQLAlchemyError as e:
        logger.exception("User lookup failed")
        raise InternalError() from e


async def require_user(
    user: Optional[User] = Depends(get_current_user),
) -> User:
    """Require authenticated user. Raises 401 if not logged in."""
    if not user:
        raise Unauthorized("Invalid or expired session")
    return user


def require_admin(user: User) -> User:
    """Require the administrator role. Raises 403 if insufficient."""
    if user.role_id != ADMIN_ROLE_ID:
        raise Forbidden("Admin access required")
    return user


async def require_admin_user(
    user: User = Depends(require_user),
) -> User:
    """Dependency: require logged-in admin."""
    return require_admin(user)
