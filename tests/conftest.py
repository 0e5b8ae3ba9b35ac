"""Shared test fixtures for ReplyGate."""

import os

import pytest
from httpx import ASGITransport, AsyncClient


API_KEY = "test-service-api-key"


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["REPLYGATE_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["REPLYGATE_API_KEY"] = API_KEY
    os.environ["REPLYGATE_TIMEZONE"] = "UTC"
    os.environ["REPLYGATE_GENERATION_API_KEY"] = ""
    os.environ.pop("REPLYGATE_PLAN_LIMITS", None)

    # Clear caches and singletons so new env vars take effect
    from replygate.common.config import get_settings
    get_settings.cache_clear()

    from replygate.deps import reset_singletons
    reset_singletons()

    from replygate.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from replygate.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-ReplyGate-Api-Key": API_KEY}


@pytest.fixture
def user_headers(admin_headers):
    def _headers(user_id: str) -> dict[str, str]:
        return {**admin_headers, "X-User-Id": user_id}
    return _headers
