"""Plan catalog and feature gating.

Each plan carries display metadata and a list of allowed features.
Feature names are snake_case capability ids (e.g. ``brand_voice_training``).

Enforcement philosophy:
- Starter with an expired trial → nothing
- Feature in FEATURE_ACCESS → matrix decides
- Otherwise → plan's allowed_features list decides
"""

import math
from datetime import datetime
from typing import Any

from replygate.common.models import ensure_utc
from replygate.plans.limits import DEFAULT_PLAN, PLAN_IDS, is_trial_expired

# ── Plan metadata (informational, returned by /plans) ──
PLANS: dict[str, dict[str, Any]] = {
    "starter": {
        "name": "Starter (Free)",
        "price": 0,
        "currency": "USD",
        "interval": "month",
        "trial_days": 14,
        "team_members": 1,
        "allowed_features": [
            "basic_responses",
            "email_support",
            "basic_analytics",
            "single_integration",
        ],
    },
    "pro": {
        "name": "Pro",
        "price": 29,
        "currency": "USD",
        "interval": "month",
        "trial_days": None,
        "team_members": 3,
        "allowed_features": [
            "basic_responses",
            "advanced_responses",
            "priority_support",
            "all_integrations",
            "advanced_analytics",
            "prompt_builder",
            "brand_voice_training",
            "multilingual_support",
            "prompt_templates",
            "daily_summary",
            "lead_capture",
            "team_collaboration",
            "conversation_export",
            "file_uploads",
        ],
    },
    "enterprise": {
        "name": "Enterprise",
        "price": 99,
        "currency": "USD",
        "interval": "month",
        "trial_days": None,
        "team_members": None,  # unlimited
        "allowed_features": [
            "basic_responses",
            "advanced_responses",
            "premium_responses",
            "phone_chat_support",
            "realtime_analytics",
            "api_access",
            "white_label",
            "unlimited_team",
            "account_manager",
            "data_compliance",
            "custom_domain",
            "webhooks_zapier",
            "fine_tuned_ai",
            "model_switching",
            "custom_workflows",
            "unlimited_uploads",
            "sso",
        ],
    },
}

# ── Explicit feature matrix; takes precedence over allowed_features ──
_PRO_UP = {"starter": False, "pro": True, "enterprise": True}
_ENTERPRISE_ONLY = {"starter": False, "pro": False, "enterprise": True}

FEATURE_ACCESS: dict[str, dict[str, bool]] = {
    "prompt_builder": _PRO_UP,
    "brand_voice": _PRO_UP,
    "prompt_templates": _PRO_UP,
    "all_integrations": _PRO_UP,
    "team_collaboration": _PRO_UP,
    "advanced_analytics": _PRO_UP,
    "daily_reports": _PRO_UP,
    "lead_capture": _PRO_UP,
    "export_data": _PRO_UP,
    "real_time_analytics": _ENTERPRISE_ONLY,
    "workflow_automation": _ENTERPRISE_ONLY,
    "custom_ai_model": _ENTERPRISE_ONLY,
    "webhooks": _ENTERPRISE_ONLY,
    "white_label": _ENTERPRISE_ONLY,
    "security_compliance": _ENTERPRISE_ONLY,
}


def get_plan(plan: str | None) -> dict[str, Any]:
    """Get plan metadata; unknown plans resolve to starter."""
    return PLANS.get((plan or DEFAULT_PLAN).lower(), PLANS[DEFAULT_PLAN])


def is_known_plan(plan: str) -> bool:
    return plan.lower() in PLAN_IDS


def can_access_feature(
    plan: str | None,
    feature: str,
    trial_end: datetime | None,
    now: datetime,
) -> bool:
    """Decide whether a plan (in its current trial state) grants a feature."""
    plan = (plan or DEFAULT_PLAN).lower()
    if plan == "starter" and is_trial_expired(trial_end, now):
        return False

    if feature in FEATURE_ACCESS:
        return FEATURE_ACCESS[feature].get(plan, False)

    return feature in get_plan(plan)["allowed_features"]


def get_upgrade_target(plan: str | None, feature: str) -> str:
    """Name the plan a user needs to upgrade to for a feature."""
    plan = (plan or DEFAULT_PLAN).lower()
    if feature in FEATURE_ACCESS:
        for candidate in PLAN_IDS:
            if FEATURE_ACCESS[feature].get(candidate):
                return candidate
    if feature in PLANS["pro"]["allowed_features"]:
        return "pro" if plan == "starter" else "enterprise"
    if feature in PLANS["enterprise"]["allowed_features"]:
        return "enterprise"
    return "pro"


def trial_days_left(plan: str | None, trial_end: datetime | None, now: datetime) -> int:
    """Whole days until the trial ends, rounded up; 0 when not on a trial."""
    if (plan or DEFAULT_PLAN).lower() != "starter" or trial_end is None:
        return 0
    seconds = (ensure_utc(trial_end) - ensure_utc(now)).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def current_trial_day(
    plan: str | None,
    plan_start_date: datetime | None,
    now: datetime,
    trial_days: int = 14,
) -> int:
    """Calendar day of the trial (1..trial_days), rolling over at local midnight.

    ``now`` should carry the zone whose midnight counts.
    """
    if (plan or DEFAULT_PLAN).lower() != "starter" or plan_start_date is None:
        return 1
    start = ensure_utc(plan_start_date).astimezone(now.tzinfo).date()
    days = (now.date() - start).days
    return max(1, min(trial_days, days + 1))
