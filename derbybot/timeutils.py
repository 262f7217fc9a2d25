"""Timezone-aware time utilities.

All schedules of the bot (rabbits, derby resets) are expressed in one fixed
civil timezone, ``Config.TIMEZONE`` (Europe/Kyiv by default).
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .config import TIMEZONE


_LOCAL_INPUT_RE = re.compile(r"^\s*(\d{1,2})\.(\d{1,2})\.(\d{4})\s+(\d{1,2}):(\d{2})\s*$")


def get_timezone() -> ZoneInfo:
    """Get the timezone object for the bot."""
    return ZoneInfo(TIMEZONE)


def now() -> datetime:
    """Get current timezone-aware datetime."""
    return datetime.now(get_timezone())


def to_local(dt: datetime) -> datetime:
    return dt.astimezone(get_timezone())


def next_weekly_occurrence(after: datetime, weekday: int, hour: int, minute: int) -> datetime:
    """First instant strictly after ``after`` on ``weekday`` (Monday=0) at hour:minute local time.

    The wall-clock time is resolved through the timezone on the target date,
    so a DST change between ``after`` and the result is handled.
    """
    tz = get_timezone()
    local = after.astimezone(tz)
    days_ahead = (weekday - local.weekday()) % 7
    for extra_weeks in (0, 1):
        day = local.date() + timedelta(days=days_ahead + 7 * extra_weeks)
        candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
        if candidate > local:
            return candidate
    # Unreachable: one week later is always after ``after``
    raise AssertionError("no weekly occurrence found")


def parse_local_datetime(text: str) -> Optional[datetime]:
    """Parse ``DD.MM.YYYY HH:MM`` entered in the bot timezone. Returns None when malformed."""
    match = _LOCAL_INPUT_RE.match(text or "")
    if not match:
        return None
    day, month, year, hour, minute = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, hour, minute, tzinfo=get_timezone())
    except ValueError:
        return None


def fmt_local(dt: datetime) -> str:
    return to_local(dt).strftime("%d.%m.%Y %H:%M")


def seconds_until(target: datetime, current: datetime) -> float:
    # Aware datetimes sharing a tzinfo subtract as wall time; compare in UTC
    return (target.astimezone(timezone.utc) - current.astimezone(timezone.utc)).total_seconds()
