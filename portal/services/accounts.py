"""Authentication service: registration, login and identity lookup."""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from portal.errors import InternalError, InvalidCredentials, InvalidInput, Unauthorized
from portal.models import Page, User
from portal.models.base import async_session_factory
from portal.models.role import DEFAULT_ROLE_ID
from portal.security import TokenCodec, hash_password, token_codec, verify_password
from portal.services import policy

logger = logging.getLogger("nwn.auth")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 4


class AuthResult(BaseModel):
    token: str
    user: User

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Identity(BaseModel):
    user: User
    pages: list[Page]

    model_config = ConfigDict(arbitrary_types_allowed=True)


async def register(
    username: str,
    password: str,
    display_name: Optional[str] = None,
    codec: TokenCodec = token_codec,
) -> AuthResult:
    """Create a user with the default role and log them in."""
    username = policy.normalize_username(username)
    if len(username) < MIN_USERNAME_LENGTH:
        raise InvalidInput(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    display_name = (display_name or "").strip() or username

    try:
        async with async_session_factory() as session:
            existing = await session.execute(select(User.id).where(User.username == username))
            if existing.scalar_one_or_none() is not None:
                raise InvalidInput("Username already taken")
            user = User(
                username=username,
                password_hash=hash_password(password),
                display_name=display_name,
                role_id=DEFAULT_ROLE_ID,
                is_active=True,
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent registration of the same name
                raise InvalidInput("Username already taken") from e
            user = await session.get(User, user.id, populate_existing=True)
    except SQLAlchemyError as e:
        logger.exception("Registration failed for '%s'", username)
        raise InternalError("Registration failed") from e

    logger.info("Registered user '%s' (id=%s)", user.username, user.id)
    return AuthResult(token=codec.issue_for(user), user=user)


async def login(username: str, password: str, codec: TokenCodec = token_codec) -> AuthResult:
    """Check credentials. Every failure raises the same InvalidCredentials error."""
    try:
        user = await policy.get_user_by_username(username)
    except SQLAlchemyError as e:
        logger.exception("User lookup failed during login")
        raise InternalError("Login failed") from e
    if user is None or not user.is_active or not verify_password(password or "", user.password_hash):
        raise InvalidCredentials()
    return AuthResult(token=codec.issue_for(user), user=user)


async def resolve_user(token: Optional[str], codec: TokenCodec = token_codec) -> Optional[User]:
    """Return the live, active user behind a token, or None.

    The token only identifies the subject; role and active flag come from the store.
    """
    claims = codec.verify(token)
    if claims is None:
        return None
    user = await policy.get_user(claims.subject_id)
    if user is None or not user.is_active:
        return None
    return user


async def whoami(token: Optional[str], codec: TokenCodec = token_codec) -> Identity:
    """Current user and the pages their current role may open."""
    try:
        user = await resolve_user(token, codec)
        if user is None:
            raise Unauthorized("Invalid or expired session")
        pages = await policy.list_accessible_pages(user.role_id)
    except SQLAlchemyError as e:
        logger.exception("Identity lookup failed")
        raise InternalError() from e
    return Identity(user=user, pages=pages)
