"""Plan limit table and entitlement resolution.

Limits are data: each plan maps to a PlanLimits of three windows (day,
week, month). A window is either Limited(n) or UNLIMITED; callers compare
through Limit.permits() and never against a magic number.

Trial rule: once a user's trial_end has passed, the daily window drops to
Limited(0) whatever the plan says.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional, Union

from replygate.common.models import ensure_utc


@dataclass(frozen=True)
class Limited:
    """A finite quota of ``value`` generations per window."""

    value: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"Limit must be >= 0, got {self.value}")

    @property
    def is_unlimited(self) -> bool:
        return False

    def permits(self, used: int) -> bool:
        return used < self.value

    def as_int(self) -> Optional[int]:
        return self.value


@dataclass(frozen=True)
class Unlimited:
    """No quota on the window."""

    @property
    def is_unlimited(self) -> bool:
        return True

    def permits(self, used: int) -> bool:
        return True

    def as_int(self) -> Optional[int]:
        return None


UNLIMITED = Unlimited()

Limit = Union[Limited, Unlimited]


def limit_from_value(value: Any) -> Limit:
    """Parse a configured limit: None means unlimited, otherwise an int >= 0."""
    if value is None:
        return UNLIMITED
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Limit must be an integer or null, got {value!r}")
    return Limited(value)


@dataclass(frozen=True)
class PlanLimits:
    daily: Limit
    weekly: Limit
    monthly: Limit

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlanLimits":
        """Build from {"daily": n|null, "weekly": ..., "monthly": ...}.

        Missing windows are unlimited.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Plan limits must be an object, got {data!r}")
        return cls(
            daily=limit_from_value(data.get("daily")),
            weekly=limit_from_value(data.get("weekly")),
            monthly=limit_from_value(data.get("monthly")),
        )

    def to_dict(self) -> dict[str, Optional[int]]:
        return {
            "daily": self.daily.as_int(),
            "weekly": self.weekly.as_int(),
            "monthly": self.monthly.as_int(),
        }


PLAN_IDS = ("starter", "pro", "enterprise")
DEFAULT_PLAN = "starter"

# starter weekly/monthly are the daily quota over 7 and 30 days
DEFAULT_PLAN_LIMITS: dict[str, PlanLimits] = {
    "starter": PlanLimits(daily=Limited(50), weekly=Limited(350), monthly=Limited(1500)),
    "pro": PlanLimits(daily=UNLIMITED, weekly=UNLIMITED, monthly=UNLIMITED),
    "enterprise": PlanLimits(daily=UNLIMITED, weekly=UNLIMITED, monthly=UNLIMITED),
}


def is_trial_expired(trial_end: datetime | None, now: datetime) -> bool:
    """True when a trial end is set and already behind ``now``."""
    if trial_end is None:
        return False
    return ensure_utc(trial_end) < ensure_utc(now)


def plan_limits_for(plan: str | None, table: dict[str, PlanLimits] | None = None) -> PlanLimits:
    """Look up a plan's limits; unknown plans get the starter row."""
    table = table if table is not None else DEFAULT_PLAN_LIMITS
    key = (plan or DEFAULT_PLAN).lower()
    if key in table:
        return table[key]
    return table.get(DEFAULT_PLAN, DEFAULT_PLAN_LIMITS[DEFAULT_PLAN])


def resolve_entitlement(
    plan: str | None,
    trial_end: datetime | None,
    now: datetime,
    table: dict[str, PlanLimits] | None = None,
) -> PlanLimits:
    """Resolve the effective limits for a plan and trial state.

    An expired trial forces the daily window to zero regardless of plan.
    """
    limits = plan_limits_for(plan, table)
    if is_trial_expired(trial_end, now):
        return replace(limits, daily=Limited(0))
    return limits
