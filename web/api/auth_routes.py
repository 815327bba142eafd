"""Auth API routes: register, login, logout, current user."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

import config
from portal.security import token_codec
from portal.services import accounts
from web.api.utils import page_to_dict, user_to_dict
from web.auth import get_token

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str = ""
    password: str = ""
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        config.AUTH_COOKIE_NAME,
        token,
        max_age=int(token_codec.ttl.total_seconds()),
        httponly=True,
        samesite="lax",
        path="/",
    )


def _auth_payload(result: accounts.AuthResult) -> dict:
    return {"success": True, "token": result.token, "user": user_to_dict(result.user)}


@router.post("/register")
async def register(body: RegisterRequest, response: Response):
    """Create an account with the default role and return a session token."""
    result = await accounts.register(body.username, body.password, body.display_name)
    _set_session_cookie(response, result.token)
    return _auth_payload(result)


@router.post("/login")
async def login(body: LoginRequest, response: Response):
    """Authenticate and return a session token."""
    result = await accounts.login(body.username, body.password)
    _set_session_cookie(response, result.token)
    return _auth_payload(result)


@router.post("/logout")
async def logout(response: Response):
    """Clear the session cookie. Tokens themselves stay valid until they expire."""
    response.delete_cookie(config.AUTH_COOKIE_NAME, path="/")
    return {"success": True}


@router.get("/me")
async def get_me(token: Optional[str] = Depends(get_token)):
    """Current user and the pages their role can open."""
    identity = await accounts.whoami(token)
    return {
        "user": user_to_dict(identity.user),
        "pages": [page_to_dict(p) for p in identity.pages],
    }
