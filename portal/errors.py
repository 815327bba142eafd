"""Error types shared by the portal services and rendered by the web layer."""
from __future__ import annotations

from typing import Optional


class PortalError(Exception):
    """Base error. Carries the HTTP status and short title used in JSON error bodies."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, error: Optional[str] = None):
        super().__init__(message or error or self.error)
        self.message = message
        if error is not None:
            self.error = error

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


class InvalidInput(PortalError):
    status_code = 400
    error = "Invalid input"


class InvalidCredentials(PortalError):
    status_code = 401
    error = "Invalid username or password"


class Unauthorized(PortalError):
    status_code = 401
    error = "Not authenticated"


class Forbidden(PortalError):
    status_code = 403
    error = "Forbidden"


class NotFound(PortalError):
    status_code = 404
    error = "Not found"


class NotConfigured(PortalError):
    status_code = 503
    error = "Storage not configured"


class InternalError(PortalError):
    status_code = 500
    error = "Internal server error"
