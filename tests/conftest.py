"""Pytest configuration and fixtures for API tests."""
import os
import tempfile
import uuid
from pathlib import Path

# Set test env BEFORE any imports that use config
_static_dir = Path(tempfile.mkdtemp(prefix="nwn-static-"))
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["INITIAL_ADMIN_USERNAME"] = "admin"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["STATIC_DIR"] = str(_static_dir)
os.environ["GATE_FAIL_OPEN"] = "false"
for _key in ("R2_ENDPOINT", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY", "R2_VERIFY_OBJECTS"):
    os.environ[_key] = ""

for _name in ("index", "login", "methodology", "sales", "tech", "brands"):
    (_static_dir / f"{_name}.html").write_text(f"<html><body>{_name} page</body></html>", encoding="utf-8")
(_static_dir / "styles.css").write_text("body { color: #222; }", encoding="utf-8")

import pytest
from httpx import ASGITransport, AsyncClient

from portal.models.base import Base, engine, init_db
from web.api.main import app

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "testpass123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh tables and seed data for every test (ASGI lifespan doesn't run with httpx)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def auth_headers(client):
    """Login as admin and return Authorization headers for protected endpoints."""
    r = await client.post(
        "/api/auth/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    client.cookies.clear()
    token = r.json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    """Register a fresh user; returns the response JSON. Leaves no session cookie behind."""

    async def _register(username=None, password="secret1", display_name=None):
        body = {"username": username or f"user_{uuid.uuid4().hex[:8]}", "password": password}
        if display_name is not None:
            body["display_name"] = display_name
        r = await client.post("/api/auth/register", json=body)
        assert r.status_code == 200, f"Register failed: {r.text}"
        client.cookies.clear()
        return r.json()

    return _register
