"""Password hashing and the identity token codec."""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict

import config

logger = logging.getLogger("nwn.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(_prepare_password(plain), hashed)
    except ValueError:
        # Unrecognized or corrupt hash in the store
        logger.warning("Stored password hash could not be parsed")
        return False


class IdentityClaims(BaseModel):
    """Decoded identity token."""

    model_config = ConfigDict(frozen=True)

    subject_id: int
    username: str
    role_id: int
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Signs and verifies identity tokens (HS256 JWT).

    Built once at start-up from configuration. Holds no mutable state, so a
    single instance is shared by every request.
    """

    __slots__ = ("_secret", "_algorithm", "_ttl")

    def __init__(self, secret: str, ttl: timedelta, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, subject_id: int, username: str, role_id: int, now: Optional[datetime] = None) -> str:
        """Encode the subject's id, username and role with issuance and expiry timestamps."""
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "username": username,
            "role_id": role_id,
            "iat": issued,
            "exp": issued + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_for(self, user: Any, now: Optional[datetime] = None) -> str:
        """Issue a token for a User row (anything with id, username, role_id)."""
        return self.issue(user.id, user.username, user.role_id, now=now)

    def verify(self, token: Any) -> Optional[IdentityClaims]:
        """Return decoded claims, or None if the token is malformed, tampered with or expired."""
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
            return IdentityClaims(
                subject_id=int(payload["sub"]),
                username=str(payload["username"]),
                role_id=int(payload["role_id"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except jwt.InvalidTokenError:
            return None
        except (KeyError, TypeError, ValueError):
            # Correctly signed but missing or malformed claims
            return None


if config.JWT_SECRET == "change-me-in-production-use-long-random-string":
    logger.warning("JWT_SECRET is not set - using the insecure default signing secret")

token_codec = TokenCodec(
    secret=config.JWT_SECRET,
    ttl=timedelta(days=config.JWT_EXPIRE_DAYS),
    algorithm=config.JWT_ALGORITHM,
)
