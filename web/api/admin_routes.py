"""Admin API: users, roles and the role/page access matrix (admin only)."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from portal.errors import InternalError, InvalidInput, NotFound
from portal.models import Page, PageAccess, Role, User
from portal.models.base import async_session_factory
from portal.models.role import ADMIN_ROLE_ID, ROLE_IDS
from web.api.utils import page_to_dict, role_to_dict, user_to_dict
from web.auth import require_admin_user

logger = logging.getLogger("nwn.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"])


class RoleUpdate(BaseModel):
    role_id: int


class AccessUpdate(BaseModel):
    role_id: int
    page_id: int
    has_access: Optional[bool] = None  # null clears the grant (unset)


def _store_error(action: str) -> InternalError:
    logger.exception("Admin %s failed", action)
    return InternalError()


@router.get("/users")
async def list_users(admin: User = Depends(require_admin_user)):
    """List all users. Password hashes are never returned."""
    try:
        async with async_session_factory() as session:
            result = await session.execute(select(User).order_by(User.id))
            users = result.scalars().all()
    except SQLAlchemyError as e:
        raise _store_error("list users") from e
    return [
        {**user_to_dict(u), "created_at": u.created_at.isoformat() if u.created_at else None}
        for u in users
    ]


@router.put("/users/{user_id}/role")
async def update_user_role(user_id: int, body: RoleUpdate, admin: User = Depends(require_admin_user)):
    """Change a user's role. Takes effect on the user's next request. Administrator roles are protected."""
    if body.role_id not in ROLE_IDS:
        raise InvalidInput("Unknown role", error="Invalid role")
    try:
        async with async_session_factory() as session:
            user = await session.get(User, user_id)
            if not user:
                raise NotFound("User not found")
            if user.role_id == ADMIN_ROLE_ID and body.role_id != ADMIN_ROLE_ID:
                raise InvalidInput("Administrator role cannot be changed")
            user.role_id = body.role_id
            await session.commit()
    except SQLAlchemyError as e:
        raise _store_error("role change") from e
    logger.info("Admin '%s' set role of user %s to %s", admin.username, user_id, body.role_id)
    return {"success": True, "id": user_id, "role_id": body.role_id}


@router.put("/users/{user_id}/toggle")
async def toggle_user(user_id: int, admin: User = Depends(require_admin_user)):
    """Activate or deactivate a user. Admins cannot deactivate themselves."""
    if user_id == admin.id:
        raise InvalidInput("Cannot deactivate your own account")
    try:
        async with async_session_factory() as session:
            user = await session.get(User, user_id)
            if not user:
                raise NotFound("User not found")
            user.is_active = not user.is_active
            is_active = user.is_active
            await session.commit()
    except SQLAlchemyError as e:
        raise _store_error("toggle") from e
    logger.info("Admin '%s' set user %s active=%s", admin.username, user_id, is_active)
    return {"success": True, "id": user_id, "is_active": is_active}


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, admin: User = Depends(require_admin_user)):
    """Delete a user. Administrator accounts are protected."""
    try:
        async with async_session_factory() as session:
            user = await session.get(User, user_id)
            if not user:
                raise NotFound("User not found")
            if user.role_id == ADMIN_ROLE_ID:
                raise InvalidInput("Administrator accounts cannot be deleted")
            await session.delete(user)
            await session.commit()
    except SQLAlchemyError as e:
        raise _store_error("delete") from e
    logger.info("Admin '%s' deleted user %s", admin.username, user_id)
    return {"success": True}


@router.get("/roles")
async def list_roles(admin: User = Depends(require_admin_user)):
    try:
        async with async_session_factory() as session:
            result = await session.execute(select(Role).order_by(Role.id))
            return [role_to_dict(r) for r in result.scalars().all()]
    except SQLAlchemyError as e:
        raise _store_error("list roles") from e


@router.get("/access")
async def get_access_matrix(admin: User = Depends(require_admin_user)):
    """Full role x page matrix. Pairs without a row are reported as has_access=null."""
    try:
        async with async_session_factory() as session:
            roles = (await session.execute(select(Role).order_by(Role.id))).scalars().all()
            pages = (await session.execute(select(Page).order_by(Page.id))).scalars().all()
            grants = (await session.execute(select(PageAccess))).scalars().all()
    except SQLAlchemyError as e:
        raise _store_error("read access matrix") from e
    by_pair = {(g.role_id, g.page_id): g.has_access for g in grants}
    return {
        "roles": [role_to_dict(r) for r in roles],
        "pages": [page_to_dict(p) for p in pages],
        "access": [
            {"role_id": r.id, "page_id": p.id, "has_access": by_pair.get((r.id, p.id))}
            for r in roles
            for p in pages
        ],
    }


@router.put("/access")
async def update_access(body: AccessUpdate, admin: User = Depends(require_admin_user)):
    """Set one grant. Concurrent edits to the same pair are last-write-wins."""
    if body.role_id not in ROLE_IDS:
        raise InvalidInput("Unknown role", error="Invalid role")
    try:
        async with async_session_factory() as session:
            if await session.get(Page, body.page_id) is None:
                raise NotFound("Page not found")
            result = await session.execute(
                select(PageAccess).where(
                    PageAccess.role_id == body.role_id, PageAccess.page_id == body.page_id
                )
            )
            grant = result.scalar_one_or_none()
            if grant:
                grant.has_access = body.has_access
            else:
                session.add(
                    PageAccess(role_id=body.role_id, page_id=body.page_id, has_access=body.has_access)
                )
            await session.commit()
    except SQLAlchemyError as e:
        raise _store_error("update access") from e
    logger.info(
        "Admin '%s' set access role=%s page=%s -> %s",
        admin.username,
        body.role_id,
        body.page_id,
        body.has_access,
    )
    return {"success": True, "role_id": body.role_id, "page_id": body.page_id, "has_access": body.has_access}
