"""Tests for the Typer CLI."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest
from typer.testing import CliRunner

from replygate.cli import app
from replygate.common.config import get_settings
from replygate.common.database import DatabaseManager
from replygate.deps import reset_singletons
from replygate.users.models import UserModel


runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    monkeypatch.setenv("REPLYGATE_API_KEY", "cli-test-key")
    monkeypatch.delenv("REPLYGATE_PLAN_LIMITS", raising=False)
    get_settings.cache_clear()
    reset_singletons()
    yield
    get_settings.cache_clear()
    reset_singletons()


@pytest.fixture
def file_db(tmp_path, monkeypatch):
    monkeypatch.setenv("REPLYGATE_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("REPLYGATE_TIMEZONE", "UTC")
    get_settings.cache_clear()
    reset_singletons()
    return tmp_path


def _seed_user(email="cli@example.com", plan="pro") -> str:
    async def _seed():
        db = DatabaseManager(get_settings())
        await db.init()
        try:
            await db.create_all()
            async with db.get_session() as session:
                user = UserModel(
                    email=email,
                    plan=plan,
                    plan_start_date=datetime(2026, 10, 1, tzinfo=timezone.utc),
                )
                session.add(user)
                await session.flush()
                return user.id
        finally:
            await db.close()

    return asyncio.run(_seed())


class TestPlansCommand:
    def test_default_table(self):
        result = runner.invoke(app, ["plans"])
        assert result.exit_code == 0
        assert "starter" in result.output
        assert "1500" in result.output
        assert "unlimited" in result.output

    def test_override(self, monkeypatch):
        monkeypatch.setenv("REPLYGATE_PLAN_LIMITS", '{"starter": {"daily": 20}}')
        get_settings.cache_clear()
        result = runner.invoke(app, ["plans"])
        assert result.exit_code == 0
        assert "20" in result.output


class TestUsageCommand:
    def test_known_user(self, file_db):
        user_id = _seed_user()
        result = runner.invoke(app, ["usage", user_id])
        assert result.exit_code == 0
        assert "total_responses" in result.output
        assert "pro" in result.output

    def test_unknown_user(self, file_db):
        _seed_user()
        result = runner.invoke(app, ["usage", "missing"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_fresh_database_is_created(self, file_db):
        result = runner.invoke(app, ["usage", "missing"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output
        assert (file_db / "cli.db").exists()


class TestHealthCommand:
    def test_healthy(self, monkeypatch):
        def fake_get(url, timeout):
            assert url == "http://localhost:8080/health"
            return httpx.Response(200, json={"status": "ok", "version": "0.1.0"})

        monkeypatch.setattr(httpx, "get", fake_get)
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 0
        assert "ok" in result.output
        assert "0.1.0" in result.output

    def test_unreachable(self, monkeypatch):
        def fake_get(url, timeout):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(httpx, "get", fake_get)
        result = runner.invoke(app, ["health", "--url", "http://localhost:9999"])
        assert result.exit_code == 1
        assert "connection refused" in result.output

    def test_unexpected_body(self, monkeypatch):
        monkeypatch.setattr(httpx, "get", lambda url, timeout: httpx.Response(200, text="<html>"))
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 1
