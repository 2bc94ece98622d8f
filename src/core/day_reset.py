"""Day-boundary reset — clears per-day counters on the first tick of a new local day."""

from __future__ import annotations

import logging
from datetime import datetime

logger = logging.getLogger(__name__)


def reset_for_new_day(reminder_db, now: datetime) -> int | None:
    """Zero attempts_today and escalated_at for every task, once per local date.

    Runs on the 00:00 tick, or on the first tick after it when midnight was
    missed. Returns the number of tasks reset, or None if today's reset has
    already happened.
    """
    day = now.date().isoformat()
    reset = reminder_db.reset_daily_counters(day)
    if reset is not None:
        logger.info("New day %s: reset %d task(s)", day, reset)
    return reset
