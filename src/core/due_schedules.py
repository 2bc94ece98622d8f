"""Due-schedule resolver — pure business logic.

Given the current local instant, picks the schedules that fire on this
exact minute. There is no catch-up: a minute nobody ticked is skipped.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from src.data.models import ReminderSchedule

logger = logging.getLogger(__name__)


def to_local(now: datetime | None, tz_name: str) -> datetime:
    """Normalize `now` to the reference zone, truncated to the minute.

    Naive datetimes are taken to already be local wall-clock time.
    """
    tz = ZoneInfo(tz_name)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)
    return now.replace(second=0, microsecond=0)


def day_of_week(now: datetime) -> int:
    """0=Sunday .. 6=Saturday."""
    return now.isoweekday() % 7


def minute_key(now: datetime) -> str:
    """Dedupe key for one wall-clock minute, e.g. "2026-03-01T08:30"."""
    return now.strftime("%Y-%m-%dT%H:%M")


def parse_time_of_day(raw: str) -> tuple[int, int]:
    """Parse "HH:MM" (or "HH:MM:SS") into (hour, minute).

    Raises ValueError on malformed input.
    """
    parts = raw.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Expected HH:MM, got {raw!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Hour/minute out of range: {hour}:{minute}")
    return hour, minute


def is_due(schedule: ReminderSchedule, now: datetime) -> bool:
    """True if the schedule's day and minute both match `now` exactly."""
    if not schedule.active:
        return False
    if schedule.day_of_week is not None and schedule.day_of_week != day_of_week(now):
        return False
    try:
        hour, minute = parse_time_of_day(schedule.time_of_day)
    except ValueError as exc:
        logger.warning("Schedule #%d has a bad time '%s': %s", schedule.id, schedule.time_of_day, exc)
        return False
    return hour == now.hour and minute == now.minute


def find_due_schedules(
    schedules: list[ReminderSchedule], now: datetime,
) -> list[ReminderSchedule]:
    return [s for s in schedules if is_due(s, now)]
