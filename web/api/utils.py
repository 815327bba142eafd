"""Shared API utilities."""

from portal.models import Page, Role, User


def user_to_dict(user: User) -> dict:
    """Public view of a user. Never includes the password hash."""
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name or user.username,
        "role_id": user.role_id,
        "role": user.role.name if user.role else None,
        "is_active": user.is_active,
    }


def page_to_dict(page: Page) -> dict:
    return {"id": page.id, "slug": page.slug, "file_path": page.file_path, "title": page.title}


def role_to_dict(role: Role) -> dict:
    return {"id": role.id, "name": role.name, "label": role.label}
