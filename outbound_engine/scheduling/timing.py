"""Timing planner - picks the next good moment to call a prospect."""

import logging
import random
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil import tz

from outbound_engine.models import CallHours

logger = logging.getLogger(__name__)

EXECUTIVE_HOURS = (8, 16)
MANAGER_HOUR = 10
CONTRIBUTOR_HOUR = 14

PREFERRED_WEEKDAYS = {1, 2, 3}  # Tue-Thu
FALLBACK_WEEKDAYS = {0, 4}  # Mon, Fri
FALLBACK_AFTER_DAYS = 7
MAX_SEARCH_DAYS = 21

_EXECUTIVE_PATTERN = re.compile(
    r"executive|c-level|chief|founder|president|\b(ceo|cfo|cto|coo|cmo|cro|cio)\b",
    re.IGNORECASE,
)


def resolve_timezone(name: Optional[str]):
    """Resolve an IANA zone name, falling back to UTC for unknown zones."""
    zone = tz.gettz(name) if name else None
    if zone is None:
        if name:
            logger.warning(f"Unknown timezone '{name}', scheduling in UTC")
        return tz.UTC
    return zone


def is_executive(role: str) -> bool:
    return bool(_EXECUTIVE_PATTERN.search(role or ""))


def preferred_hour(role: str, rng: random.Random) -> int:
    """Hour band for a role, in the prospect's local time."""
    if is_executive(role):
        return EXECUTIVE_HOURS[0] if rng.random() > 0.5 else EXECUTIVE_HOURS[1]
    if "manager" in (role or "").lower():
        return MANAGER_HOUR
    return CONTRIBUTOR_HOUR


def _clamp_to_window(moment: datetime, call_hours: CallHours) -> datetime:
    if moment.hour < call_hours.start:
        return moment.replace(hour=call_hours.start)
    if moment.hour > call_hours.end:
        return moment.replace(hour=call_hours.end)
    return moment


def next_contact_time(
    timezone_name: str,
    role: str,
    call_hours: CallHours,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> datetime:
    """
    Compute the next contact instant for a prospect.

    Weekends are skipped and Tuesday-Thursday preferred. The role picks
    a local hour which is then clamped into the UTC call window.

    Args:
        timezone_name: Prospect IANA timezone
        role: Prospect job title
        call_hours: Allowed UTC hour window (inclusive)
        now: Reference time; calls with the same value return the same instant
        rng: Optional random source for hour and minute jitter

    Returns:
        Timezone-aware UTC datetime, never earlier than now
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    zone = resolve_timezone(timezone_name)
    rng = rng or random.Random(f"{now.isoformat()}|{timezone_name}|{role}")

    hour = preferred_hour(role, rng)
    minute = rng.randrange(60)
    local_today = now.astimezone(zone).date()

    for offset in range(MAX_SEARCH_DAYS):
        day = local_today + timedelta(days=offset)
        weekday = day.weekday()

        if weekday >= 5:
            continue
        if weekday in FALLBACK_WEEKDAYS and offset <= FALLBACK_AFTER_DAYS:
            continue

        local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
        candidate = _clamp_to_window(local.astimezone(timezone.utc), call_hours)

        if candidate < now:
            continue
        if candidate.astimezone(zone).weekday() >= 5:
            continue

        logger.debug(f"Next contact for {role or 'contact'} ({timezone_name}): {candidate.isoformat()}")
        return candidate

    raise RuntimeError(f"No contact slot found within {MAX_SEARCH_DAYS} days of {now.isoformat()}")
