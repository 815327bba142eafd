"""Access matrix: one row per (role, page) pair."""
from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base

# Default grants for roles other than admin (admin gets every page).
# Pages not listed stay unset, which the gate treats as no access.
DEFAULT_GRANTS = {
    "seller": {"index": True, "methodology": True, "brands": True, "sales": True, "checklists": True, "tech": False},
    "trainee": {"index": True, "methodology": True, "reglament": True, "checklists": True, "di": True},
    "candidate": {"index": True, "methodology": True},
}


class PageAccess(Base):
    """Grant row. has_access is tri-state: True allows, False denies, NULL is unset."""

    __tablename__ = "page_access"
    __table_args__ = (UniqueConstraint("role_id", "page_id", name="uq_page_access_role_page"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    page_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    has_access: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
