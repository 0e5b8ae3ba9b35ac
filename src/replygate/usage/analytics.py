"""Display-only statistics derived from the generation event log.

Nothing here feeds the quota gate.
"""

import math
from collections import Counter
from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, Optional, Sequence

HIGH_QUALITY_THRESHOLD = 90  # strictly above
LOW_QUALITY_THRESHOLD = 70  # strictly below
ACCURATE_THRESHOLD = 85  # at or above

TEMPLATE_NAMES = {
    "refund_request": "Refund Request",
    "shipping_delay": "Shipping Delay",
    "product_howto": "Product Info",
    "general": "General Support",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weekly_growth(this_week: int, last_week: int) -> int:
    """Week-over-week growth in whole percent.

    100 when last week was empty and this week is not; 0 when both are empty.
    """
    if last_week > 0:
        return round_half_up((this_week - last_week) / last_week * 100)
    return 100 if this_week > 0 else 0


def success_rate(total: int, low_quality: int) -> float:
    if total == 0:
        return 1.0
    return 1 - low_quality / total


def confidence_metrics(recent_first: Sequence[int]) -> dict[str, Any]:
    """Dashboard confidence panel over scores ordered newest first.

    overall     mean / 100
    accuracy    share of scores >= 85
    consistency 1 - stddev / 100, floored at 0
    improvement newer-half mean minus older-half mean, / 100, in [-1, 1]
    """
    n = len(recent_first)
    if n == 0:
        return {
            "overall": 0.0,
            "accuracy": 0.0,
            "consistency": 0.0,
            "improvement": 0.0,
            "total_responses": 0,
        }

    mean = sum(recent_first) / n
    variance = sum((s - mean) ** 2 for s in recent_first) / n
    consistency = max(0.0, 1 - math.sqrt(variance) / 100)

    half = n // 2
    newer, older = recent_first[:half], recent_first[half:]
    improvement = 0.0
    if newer and older:
        improvement = (sum(newer) / len(newer) - sum(older) / len(older)) / 100

    return {
        "overall": mean / 100,
        "accuracy": sum(1 for s in recent_first if s >= ACCURATE_THRESHOLD) / n,
        "consistency": consistency,
        "improvement": max(-1.0, min(1.0, improvement)),
        "total_responses": n,
    }


def daily_buckets(
    timestamps: Iterable[datetime], now: datetime, days: int = 7,
) -> list[dict[str, Any]]:
    """Count events per local calendar day for the last ``days`` days, oldest first.

    ``timestamps`` must be aware; ``now`` carries the local zone.
    """
    zone = now.tzinfo
    counts = Counter(ts.astimezone(zone).date() for ts in timestamps)
    today = now.date()
    result = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        result.append({
            "day": day.strftime("%a"),
            "date": day.isoformat(),
            "responses": counts.get(day, 0),
        })
    return result


def template_usage(counts: dict[Optional[str], int]) -> list[dict[str, Any]]:
    """Label per-query-type counts with display names, busiest first."""
    merged: Counter = Counter()
    for query_type, count in counts.items():
        merged[query_type or "general"] += count
    return [
        {"name": TEMPLATE_NAMES.get(key, key), "query_type": key, "count": count}
        for key, count in sorted(merged.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def hourly_heatmap(timestamps: Iterable[datetime], zone: tzinfo) -> list[dict[str, Any]]:
    """Count events per local hour of day, for hours that have any."""
    counts = Counter(ts.astimezone(zone).hour for ts in timestamps)
    return [
        {"hour": f"{hour}:00", "activity": counts[hour]}
        for hour in sorted(counts)
    ]
