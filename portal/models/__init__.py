"""Database models."""
from portal.models.base import Base, init_db
from portal.models.role import Role
from portal.models.user import User
from portal.models.page import Page
from portal.models.page_access import PageAccess  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "Role",
    "User",
    "Page",
    "PageAccess",
    "init_db",
]
