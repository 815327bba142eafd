"""Configuration for the NWN training portal."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_ROOT = Path(__file__).parent


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = _parse_int(os.getenv("PORT"), 3000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS = _parse_list(os.getenv("ALLOWED_ORIGINS"))  # empty = allow any origin
STATIC_DIR = os.getenv("STATIC_DIR", str(_ROOT / "public"))

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{_ROOT / 'portal.db'}",
)

# Cloudflare R2 (S3-compatible object storage)
R2_ENDPOINT = os.getenv("R2_ENDPOINT", "")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "podcasts")
# Buckets a caller may pick with ?bucket=; anything else falls back to R2_BUCKET_NAME
R2_ALLOWED_BUCKETS = set(_parse_list(os.getenv("R2_ALLOWED_BUCKETS"))) | {R2_BUCKET_NAME}
R2_VERIFY_OBJECTS = _parse_bool(os.getenv("R2_VERIFY_OBJECTS"))

URL_EXPIRATION_MIN_SECONDS = 300
URL_EXPIRATION_MAX_SECONDS = 600
URL_EXPIRATION_SECONDS = _parse_int(os.getenv("URL_EXPIRATION_SECONDS"), 600)

# Web auth (JWT secret, initial admin bootstrap)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = _parse_int(os.getenv("JWT_EXPIRE_DAYS"), 30)
AUTH_COOKIE_NAME = "nwn_token"
INITIAL_ADMIN_USERNAME = os.getenv("INITIAL_ADMIN_USERNAME", "admin")
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")  # Set to bootstrap first admin

# Page gate: pass requests through when the access store is unreachable (default: deny)
GATE_FAIL_OPEN = _parse_bool(os.getenv("GATE_FAIL_OPEN"))


def r2_configured() -> bool:
    return bool(R2_ENDPOINT and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)
