"""Protected page model: maps a served file to its policy slug."""
from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base

# (slug, file_path, title)
BUILTIN_PAGES = (
    ("index", "index.html", "Home"),
    ("methodology", "methodology.html", "Methodology"),
    ("brands", "brands.html", "Brands"),
    ("di", "di.html", "DI"),
    ("reglament", "reglament.html", "Regulations"),
    ("checklists", "checklists.html", "Checklists"),
    ("sales", "sales.html", "Sales"),
    ("tech", "tech.html", "Technical training"),
    ("admin", "admin.html", "Administration"),
)


class Page(Base):
    """A gated page. file_path is relative to the static root, without a leading slash."""

    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    file_path: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False, default="")
