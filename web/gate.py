"""Page access gate: checks every page request against the role/page access matrix.

Order of checks:
  1. public assets and auth API paths pass through
  2. paths that are not registered pages (css, js, images, unknown) pass through
  3. no token, bad token, or a deleted/deactivated user -> redirect to login
  4. the user's *current* role lacks a grant for the page -> 403 denial page
  5. the access store fails -> 503 (or pass through when GATE_FAIL_OPEN is set)
"""
from __future__ import annotations

import html
import logging
from enum import Enum
from typing import NamedTuple, Optional
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response

import config
from portal.models import Page
from portal.security import TokenCodec, token_codec
from portal.services import policy
from web.auth import token_from_request

logger = logging.getLogger("nwn.gate")

LOGIN_PATH = "/login.html"

PUBLIC_PATHS = frozenset({
    LOGIN_PATH,
    "/register.html",
    "/sw.js",
    "/manifest.json",
    "/favicon.ico",
    "/health",
})
PUBLIC_PREFIXES = ("/api/auth/",)


class GateOutcome(str, Enum):
    ALLOW = "allow"
    LOGIN = "login"
    FORBIDDEN = "forbidden"
    UNAVAILABLE = "unavailable"


class GateDecision(NamedTuple):
    outcome: GateOutcome
    page: Optional[Page] = None


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


_DENIED_TEXT = {
    "ru": (
        "Доступ запрещён",
        "У вашей роли нет доступа к разделу «{title}».",
        "Обратитесь к администратору, чтобы получить доступ.",
        "На главную",
    ),
    "en": (
        "Access denied",
        "Your role does not have access to “{title}”.",
        "Ask an administrator to grant you access.",
        "Back to home",
    ),
}

_UNAVAILABLE_TEXT = {
    "ru": ("Сервис временно недоступен", "Не удалось проверить права доступа. Попробуйте позже."),
    "en": ("Service temporarily unavailable", "Access could not be verified. Please try again later."),
}


def preferred_language(accept_language: Optional[str]) -> str:
    """'ru' if Russian is the client's first preference, otherwise 'en'."""
    if not accept_language:
        return "en"
    first = accept_language.split(",")[0].split(";")[0].strip().lower()
    return "ru" if first.startswith("ru") else "en"


def _html_page(lang: str, title: str, body: str) -> str:
    return (
        f'<!DOCTYPE html>\n<html lang="{lang}">\n<head>\n<meta charset="utf-8">\n'
        f'<meta name="viewport" content="width=device-width, initial-scale=1">\n'
        f'<title>{title}</title>\n<link rel="stylesheet" href="/styles.css">\n</head>\n'
        f'<body class="gate-page">\n<main>\n<h1>{title}</h1>\n{body}\n</main>\n</body>\n</html>\n'
    )


def render_denied_page(page: Optional[Page], lang: str = "en") -> str:
    heading, reason, remedy, home = _DENIED_TEXT.get(lang, _DENIED_TEXT["en"])
    title = html.escape(page.title or page.slug) if page else ""
    body = (
        f"<p>{reason.format(title=title)}</p>\n<p>{remedy}</p>\n"
        f'<p><a href="/">{home}</a></p>'
    )
    return _html_page(lang, heading, body)


def render_unavailable_page(lang: str = "en") -> str:
    heading, message = _UNAVAILABLE_TEXT.get(lang, _UNAVAILABLE_TEXT["en"])
    return _html_page(lang, heading, f"<p>{message}</p>")


class PageAccessGate(BaseHTTPMiddleware):
    """Authorize page requests before static content is served."""

    def __init__(self, app, codec: TokenCodec = token_codec, fail_open: Optional[bool] = None):
        super().__init__(app)
        self.codec = codec
        self._fail_open = fail_open

    @property
    def fail_open(self) -> bool:
        if self._fail_open is None:
            return config.GATE_FAIL_OPEN
        return self._fail_open

    def _store_failure(self, path: str, page: Optional[Page] = None) -> GateDecision:
        if self.fail_open:
            logger.exception("Access store lookup failed for %s - passing through (fail-open)", path)
            return GateDecision(GateOutcome.ALLOW, page)
        logger.exception("Access store lookup failed for %s - denying", path)
        return GateDecision(GateOutcome.UNAVAILABLE, page)

    async def evaluate(self, request: Request) -> GateDecision:
        path = request.url.path
        if is_public_path(path):
            return GateDecision(GateOutcome.ALLOW)

        try:
            page = await policy.find_page_by_path(path)
        except SQLAlchemyError:
            return self._store_failure(path)
        if page is None:
            return GateDecision(GateOutcome.ALLOW)

        claims = self.codec.verify(token_from_request(request))
        if claims is None:
            return GateDecision(GateOutcome.LOGIN, page)

        try:
            # Role and active flag come from the store, not from the token
            user = await policy.get_user(claims.subject_id)
            if user is None or not user.is_active:
                return GateDecision(GateOutcome.LOGIN, page)
            allowed = await policy.has_page_access(user.role_id, page.id)
        except SQLAlchemyError:
            return self._store_failure(path, page)

        if not allowed:
            logger.info("Denied %s to user '%s' (role %s)", page.slug, user.username, user.role_id)
            return GateDecision(GateOutcome.FORBIDDEN, page)
        return GateDecision(GateOutcome.ALLOW, page)

    async def dispatch(self, request: Request, call_next) -> Response:
        decision = await self.evaluate(request)
        if decision.outcome is GateOutcome.ALLOW:
            return await call_next(request)
        if decision.outcome is GateOutcome.LOGIN:
            target = request.url.path
            if request.url.query:
                target += "?" + request.url.query
            return RedirectResponse(f"{LOGIN_PATH}?next={quote(target, safe='')}", status_code=302)
        lang = preferred_language(request.headers.get("Accept-Language"))
        if decision.outcome is GateOutcome.FORBIDDEN:
            return HTMLResponse(render_denied_page(decision.page, lang), status_code=403)
        return HTMLResponse(render_unavailable_page(lang), status_code=503)
