"""Access-policy store: user, page and grant lookups over the database.

Functions here let SQLAlchemy errors propagate. Callers decide whether a
store failure is an internal error (API) or a gate policy decision.
"""
from __future__ import annotations

import posixpath
from pathlib import PurePosixPath
from typing import Optional

from sqlalchemy import select

from portal.models import Page, PageAccess, User
from portal.models.base import async_session_factory

# Only whole pages are governed by the access matrix
PAGE_SUFFIXES = (".html", ".htm")


def normalize_page_path(path: str) -> Optional[str]:
    """Map a request path to a page file_path ("/" -> "index.html"), or None for non-page assets."""
    directory = path.endswith("/")
    # Collapse "." and ".." segments the same way the static file server does
    path = posixpath.normpath("/" + path.lstrip("/"))
    if directory:
        path = posixpath.join(path, "index.html")
    if PurePosixPath(path).suffix.lower() not in PAGE_SUFFIXES:
        return None
    return path.lstrip("/")


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


async def get_user(user_id: int) -> Optional[User]:
    async with async_session_factory() as session:
        return await session.get(User, user_id)


async def get_user_by_username(username: str) -> Optional[User]:
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.username == normalize_username(username))
        )
        return result.scalar_one_or_none()


async def find_page_by_path(path: str) -> Optional[Page]:
    """Return the gated page served at this request path, if any."""
    file_path = normalize_page_path(path)
    if file_path is None:
        return None
    async with async_session_factory() as session:
        result = await session.execute(select(Page).where(Page.file_path == file_path))
        return result.scalar_one_or_none()


async def has_page_access(role_id: int, page_id: int) -> bool:
    """True only for an explicit grant. Missing, denied and unset rows all mean no access."""
    async with async_session_factory() as session:
        result = await session.execute(
            select(PageAccess.has_access).where(
                PageAccess.role_id == role_id, PageAccess.page_id == page_id
            )
        )
        return result.scalar_one_or_none() is True


async def list_accessible_pages(role_id: int) -> list[Page]:
    async with async_session_factory() as session:
        result = await session.execute(
            select(Page)
            .join(PageAccess, PageAccess.page_id == Page.id)
            .where(PageAccess.role_id == role_id, PageAccess.has_access.is_(True))
            .order_by(Page.id)
        )
        return list(result.scalars().all())

