"""Role reference data. The set of roles is fixed; ids are stable."""
from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base

ADMIN_ROLE_ID = 1
SELLER_ROLE_ID = 2
TRAINEE_ROLE_ID = 3
CANDIDATE_ROLE_ID = 4

# Lowest privilege; assigned on self-registration
DEFAULT_ROLE_ID = CANDIDATE_ROLE_ID

# (id, name, label)
BUILTIN_ROLES = (
    (ADMIN_ROLE_ID, "admin", "Administrator"),
    (SELLER_ROLE_ID, "seller", "Seller"),
    (TRAINEE_ROLE_ID, "trainee", "Trainee"),
    (CANDIDATE_ROLE_ID, "candidate", "Candidate"),
)

ROLE_IDS = frozenset(r[0] for r in BUILTIN_ROLES)


class Role(Base):
    """Portal role (admin, seller, trainee, candidate)."""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(64), nullable=False)
