"""ReplyGate: plan-metered AI reply generation service."""

from replygate.plans.limits import (
    UNLIMITED,
    Limited,
    PlanLimits,
    Unlimited,
    resolve_entitlement,
)
from replygate.usage.analytics import weekly_growth

__all__ = [
    "UNLIMITED",
    "Limited",
    "PlanLimits",
    "Unlimited",
    "resolve_entitlement",
    "weekly_growth",
]
__version__ = "0.1.0"
