"""Integration tests for the generate-response endpoint."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

from replygate.common.exceptions import (
    GenerationAuthError,
    GenerationError,
    GenerationQuotaError,
)
from replygate.generation.client import FALLBACK_RESPONSES


BODY = {
    "client_message": "My parcel has not arrived yet, can you check?",
    "query_type": "shipping_delay",
    "tone": "friendly",
}


async def _create_user(client, admin_headers, **body):
    payload = {"email": "maya@example.com"}
    payload.update(body)
    resp = await client.put("/users", json=payload, headers=admin_headers)
    return resp.json()["id"]


async def _seed_events(user_id, count):
    from replygate.deps import get_db
    from replygate.usage.models import GenerationEventModel

    now = datetime.now(timezone.utc)
    async with get_db().get_session() as session:
        session.add_all([
            GenerationEventModel(
                user_id=user_id,
                client_message="Where is my order?",
                ai_response="It ships today.",
                created_at=now,
            )
            for _ in range(count)
        ])


class FailingGenerator:
    def __init__(self, error):
        self.error = error

    async def generate(self, request):
        raise self.error


class TestGenerateResponse:
    async def test_requires_user_header(self, client, admin_headers):
        resp = await client.post("/ai/generate-response", json=BODY, headers=admin_headers)
        assert resp.status_code == 422

    async def test_requires_api_key(self, client):
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers={"X-User-Id": "someone"},
        )
        assert resp.status_code == 422

    async def test_short_message_rejected(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers)
        resp = await client.post(
            "/ai/generate-response",
            json={**BODY, "client_message": "hi"},
            headers=user_headers(user_id),
        )
        assert resp.status_code == 422

    async def test_unknown_query_type_rejected(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers)
        resp = await client.post(
            "/ai/generate-response",
            json={**BODY, "query_type": "complaint"},
            headers=user_headers(user_id),
        )
        assert resp.status_code == 422

    async def test_unknown_user(self, client, user_headers):
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers("missing"),
        )
        assert resp.status_code == 404

    async def test_generate_success(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers)
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"]
        assert data["response"] == FALLBACK_RESPONSES["shipping_delay"]
        assert data["confidence"] == 85
        assert data["usage"] == {"used": 1, "limit": 50, "plan": "starter"}

    async def test_generation_is_listed(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers)
        created = (await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )).json()
        resp = await client.get("/responses", headers=user_headers(user_id))
        assert resp.status_code == 200
        rows = resp.json()
        assert len(rows) == 1
        assert rows[0]["id"] == created["id"]
        assert rows[0]["query_type"] == "shipping_delay"
        assert rows[0]["tone"] == "friendly"

    async def test_last_slot_then_daily_limit(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers)
        await _seed_events(user_id, 49)

        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 200
        assert resp.json()["usage"]["used"] == 50

        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "daily_limit"
        assert data["upgrade_required"] is True
        assert data["used"] == 50
        assert data["limit"] == 50
        assert data["plan"] == "starter"

    async def test_lost_race_is_daily_limit(
        self, client, admin_headers, user_headers, monkeypatch,
    ):
        from replygate.usage.service import UsageService

        user_id = await _create_user(client, admin_headers)
        await _seed_events(user_id, 10)
        monkeypatch.setattr(UsageService, "record_event", AsyncMock(return_value=None))

        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "daily_limit"
        assert data["used"] == 10

    async def test_pro_unlimited(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers, plan="pro")
        await _seed_events(user_id, 75)
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 200
        assert resp.json()["usage"] == {"used": 76, "limit": None, "plan": "pro"}

    async def test_trial_expired(self, client, admin_headers, user_headers):
        user_id = await _create_user(client, admin_headers, trial_end="2020-01-01T00:00:00Z")
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 403
        data = resp.json()
        assert data["error"] == "trial_expired"
        assert data["limit"] == 0
        assert data["used"] == 0
        assert data["upgrade_required"] is True

    async def test_trial_expired_applies_to_paid_plan(self, client, admin_headers, user_headers):
        user_id = await _create_user(
            client, admin_headers, plan="enterprise", trial_end="2020-01-01T00:00:00Z",
        )
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        assert resp.status_code == 403
        assert resp.json()["plan"] == "enterprise"


class TestGenerationFailures:
    async def _post_with(self, client, admin_headers, user_headers, monkeypatch, error):
        import replygate.deps as deps

        monkeypatch.setattr(deps, "_generation", FailingGenerator(error))
        user_id = await _create_user(client, admin_headers)
        resp = await client.post(
            "/ai/generate-response", json=BODY, headers=user_headers(user_id),
        )
        return user_id, resp

    async def test_provider_failure_consumes_nothing(
        self, client, admin_headers, user_headers, monkeypatch,
    ):
        user_id, resp = await self._post_with(
            client, admin_headers, user_headers, monkeypatch,
            GenerationError("Generation provider returned HTTP 502"),
        )
        assert resp.status_code == 500
        assert resp.json()["error"] == "generation_failed"

        stats = await client.get("/usage/stats", headers=user_headers(user_id))
        assert stats.json()["used"] == 0
        assert stats.json()["total_responses"] == 0

    async def test_provider_quota(self, client, admin_headers, user_headers, monkeypatch):
        _, resp = await self._post_with(
            client, admin_headers, user_headers, monkeypatch, GenerationQuotaError(),
        )
        assert resp.status_code == 429
        assert resp.json()["error"] == "quota_exceeded"

    async def test_provider_auth(self, client, admin_headers, user_headers, monkeypatch):
        _, resp = await self._post_with(
            client, admin_headers, user_headers, monkeypatch, GenerationAuthError(),
        )
        assert resp.status_code == 500
        assert resp.json()["error"] == "api_key_invalid"
