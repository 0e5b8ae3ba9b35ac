"""ReplyGate configuration via pydantic-settings."""

import json
import warnings
from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from replygate.plans.limits import PlanLimits

_INSECURE_DEFAULTS = {
    "api_key": "insecure-service-key-change-me",
}


class ReplyGateSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REPLYGATE_")

    environment: str = "development"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/replygate.db"

    # API
    api_title: str = "ReplyGate"
    api_version: str = "0.1.0"
    api_key: str = "insecure-service-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5000"]
    log_level: str = "INFO"

    # Usage windows are computed in this zone; empty means the server's local zone.
    timezone: str = ""

    # Plans
    trial_days: int = 14

    # Plan limit overrides: JSON dict mapping plan id to window limits.
    # e.g. '{"starter": {"daily": 20, "weekly": 140, "monthly": 600}}'
    # null means unlimited; plans not listed keep their built-in limits.
    plan_limits: str = ""

    # Generation provider (OpenAI-compatible chat completions)
    generation_api_key: str = ""
    generation_base_url: str = "https://api.together.xyz/v1"
    generation_model: str = "meta-llama/Llama-3-70b-chat-hf"
    generation_timeout: float = 30.0

    # Analytics
    confidence_sample_size: int = 100
    default_history_limit: int = 10

    @property
    def plan_limit_table(self) -> dict[str, "PlanLimits"]:
        """Return the effective plan limit table.

        Built-in limits, with any plans listed in plan_limits replaced.
        """
        from replygate.plans.limits import DEFAULT_PLAN_LIMITS, PlanLimits

        table = dict(DEFAULT_PLAN_LIMITS)
        if not self.plan_limits:
            return table
        try:
            raw = json.loads(self.plan_limits)
        except (json.JSONDecodeError, TypeError) as exc:
            raise ValueError(
                f"REPLYGATE_PLAN_LIMITS must be valid JSON (e.g. '{{\"starter\": {{\"daily\": 50}}}}'), "
                f"got: {self.plan_limits!r}"
            ) from exc
        if not isinstance(raw, dict):
            raise ValueError("REPLYGATE_PLAN_LIMITS must be a JSON object keyed by plan id")
        for plan, windows in raw.items():
            table[plan.lower()] = PlanLimits.from_dict(windows)
        return table

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"REPLYGATE_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default service key — set REPLYGATE_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> ReplyGateSettings:
    settings = ReplyGateSettings()
    settings.validate_for_production()
    return settings
