"""Dependency injection singletons for ReplyGate."""

from replygate.common.config import get_settings
from replygate.common.database import DatabaseManager
from replygate.generation.client import GenerationClient
from replygate.usage.service import UsageService
from replygate.users.service import UserService

_db: DatabaseManager | None = None
_users: UserService | None = None
_usage: UsageService | None = None
_generation: GenerationClient | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_user_service() -> UserService:
    global _users
    if _users is None:
        _users = UserService(get_settings())
    return _users


def get_usage_service() -> UsageService:
    global _usage
    if _usage is None:
        _usage = UsageService(get_settings(), get_user_service())
    return _usage


def get_generation_client() -> GenerationClient:
    global _generation
    if _generation is None:
        _generation = GenerationClient(get_settings())
    return _generation


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _users, _usage, _generation
    _db = None
    _users = None
    _usage = None
    _generation = None
