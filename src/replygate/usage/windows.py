"""Usage window boundaries.

All boundaries are computed from an aware ``now`` in the zone whose
calendar counts (the server's local zone unless configured) and returned
in UTC, which is how event timestamps are stored.

Weeks start on Sunday.
"""

import logging
import os
from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

SYSTEM_ZONE_FILE = "/etc/localtime"


def system_zone() -> tzinfo:
    """The server's local zone, with its DST rules.

    Looks at $TZ, then /etc/localtime. Only when neither names a zone is the
    current UTC offset used, and boundaries across a DST change are then off
    by the shift; set REPLYGATE_TIMEZONE on such hosts.
    """
    name = os.environ.get("TZ", "").lstrip(":")
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("TZ=%s is not an IANA zone name, ignoring it", name)
    try:
        with open(SYSTEM_ZONE_FILE, "rb") as fh:
            return ZoneInfo.from_file(fh, key="localtime")
    except (OSError, ValueError):
        logger.warning("No system zone file at %s, using the current UTC offset", SYSTEM_ZONE_FILE)
    return datetime.now().astimezone().tzinfo or timezone.utc


def resolve_zone(name: str = "") -> tzinfo:
    """Return the named IANA zone, or the server's local zone for ''."""
    if name:
        return ZoneInfo(name)
    return system_zone()


def local_now(zone_name: str = "") -> datetime:
    return datetime.now(resolve_zone(zone_name))


def _local_midnight(day, zone: tzinfo) -> datetime:
    # ZoneInfo picks the offset valid on ``day``
    return datetime.combine(day, time.min, tzinfo=zone)


def start_of_day(now: datetime) -> datetime:
    return _local_midnight(now.date(), now.tzinfo).astimezone(timezone.utc)


def start_of_week(now: datetime) -> datetime:
    # Python: Monday=0 .. Sunday=6; days since the last Sunday
    days_since_sunday = (now.weekday() + 1) % 7
    day = now.date() - timedelta(days=days_since_sunday)
    return _local_midnight(day, now.tzinfo).astimezone(timezone.utc)


def start_of_month(now: datetime) -> datetime:
    return _local_midnight(now.date().replace(day=1), now.tzinfo).astimezone(timezone.utc)


def previous_week(now: datetime) -> tuple[datetime, datetime]:
    """Half-open [start, end) range of the week before the current one."""
    days_since_sunday = (now.weekday() + 1) % 7
    this_sunday = now.date() - timedelta(days=days_since_sunday)
    last_sunday = this_sunday - timedelta(days=7)
    return (
        _local_midnight(last_sunday, now.tzinfo).astimezone(timezone.utc),
        _local_midnight(this_sunday, now.tzinfo).astimezone(timezone.utc),
    )


def days_back(now: datetime, days: int) -> datetime:
    """Local midnight ``days`` calendar days before today, in UTC."""
    day = now.date() - timedelta(days=days)
    return _local_midnight(day, now.tzinfo).astimezone(timezone.utc)
