"""FastAPI portal app - auth, admin and media APIs, plus gated static pages."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import config
from portal.errors import InvalidInput, PortalError
from portal.models.base import engine, init_db
from portal.services.media import get_media_issuer
from web.api.admin_routes import router as admin_router
from web.api.auth_routes import router as auth_router
from web.api.media_routes import router as media_router
from web.gate import PageAccessGate

logger = logging.getLogger("nwn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    issuer = get_media_issuer()
    logger.info(
        "Portal ready - bucket %s, URL expiration %ss, R2 client %s",
        issuer.default_bucket,
        issuer.expires_in,
        "configured" if issuer.configured else "not configured (set env vars)",
    )
    yield


app = FastAPI(title="NWN Training Portal", lifespan=lifespan)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters answer 400 with the same {error, message} shape."""
    errors = exc.errors()
    message = None
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    error = InvalidInput(message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Gate runs inside CORS so preflight responses never hit the access check
app.add_middleware(PageAccessGate)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS or ["*"],
    allow_credentials=bool(config.ALLOWED_ORIGINS),
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(media_router)


async def _database_reachable() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        return False


@app.get("/health")
async def health():
    """Health check."""
    issuer = get_media_issuer()
    return {
        "status": "ok",
        "r2Configured": issuer.configured,
        "dbConfigured": await _database_reachable(),
        "bucket": issuer.default_bucket,
        "urlExpirationSeconds": issuer.expires_in,
    }


# Static pages last so API routes take precedence
app.mount("/", StaticFiles(directory=config.STATIC_DIR, html=True, check_dir=False), name="static")
