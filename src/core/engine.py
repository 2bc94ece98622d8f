"""
CareCall — Scheduling tick.

`run_tick()` is the only entry point the surrounding product calls. An
external timer invokes it once a minute; each call runs to completion with
no background work left behind:

    day-boundary reset (first tick of a local day)
    -> due schedules for this exact minute
    -> delivery orchestrator, one schedule at a time
    -> summary

A store failure while handling one schedule is reported in the summary and
the tick moves on to the next schedule.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime

from src.core.day_reset import reset_for_new_day
from src.core.delivery import (
    SKIP_DUPLICATE,
    SKIP_SATISFIED,
    DeliveryOrchestrator,
    OccurrenceOutcome,
)
from src.core.due_schedules import find_due_schedules, to_local
from src.core.escalation import EscalationTrigger
from src.data.db import StoreError

logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    processed_at: str
    schedules_evaluated: int = 0
    skipped_satisfied: int = 0
    skipped_duplicate: int = 0
    deliveries_attempted: int = 0
    successes: int = 0
    failures: int = 0
    escalations_fired: int = 0
    escalation_failures: int = 0
    store_errors: int = 0
    reset_tasks: int | None = None
    errors: list[str] = field(default_factory=list)

    def add(self, outcome: OccurrenceOutcome) -> None:
        if outcome.skipped == SKIP_SATISFIED:
            self.skipped_satisfied += 1
        elif outcome.skipped == SKIP_DUPLICATE:
            self.skipped_duplicate += 1
        self.deliveries_attempted += outcome.attempted
        self.successes += outcome.succeeded
        self.failures += outcome.failed
        if outcome.escalation is not None:
            self.escalations_fired += 1
            self.escalation_failures += outcome.escalation.failed

    def to_dict(self) -> dict:
        return asdict(self)


class ReminderEngine:
    """Wires the stores and adapters together and runs ticks."""

    def __init__(
        self,
        reminder_db,
        subject_db,
        contact_db,
        log_db,
        gateway,
        templates=None,
        synthesizer=None,
        timezone: str = "Europe/London",
        voice: str = "Polly.Joanna",
        signature: str = "CareCall",
        callback_url: str = "",
        attempt_policy: str = "occurrence",
        send_delay: float = 1.0,
        timeout: float = 10.0,
    ) -> None:
        self._reminders = reminder_db
        self._timezone = timezone
        # Engine-level deadline sits above the adapter's own HTTP timeout
        call_deadline = timeout + 5
        self.escalation = EscalationTrigger(
            reminder_db,
            contact_db,
            log_db,
            gateway,
            voice=voice,
            signature=signature,
            send_delay=send_delay,
            timeout=call_deadline,
        )
        self.orchestrator = DeliveryOrchestrator(
            reminder_db,
            subject_db,
            log_db,
            gateway,
            self.escalation,
            templates=templates,
            synthesizer=synthesizer,
            voice=voice,
            callback_url=callback_url,
            attempt_policy=attempt_policy,
            timeout=call_deadline,
        )

    @classmethod
    def from_settings(cls) -> ReminderEngine:
        """Build an engine on the configured SQLite file, Twilio and ElevenLabs."""
        from src.adapters.elevenlabs_speech import ElevenLabsSpeech
        from src.adapters.twilio_gateway import TwilioGateway
        from src.config import settings
        from src.data.db import ContactDB, DeliveryLogDB, GreetingTemplateDB, ReminderDB, SubjectDB

        synthesizer = ElevenLabsSpeech.from_settings() if settings.voice_cloning_enabled else None
        return cls(
            reminder_db=ReminderDB(),
            subject_db=SubjectDB(),
            contact_db=ContactDB(),
            log_db=DeliveryLogDB(),
            gateway=TwilioGateway.from_settings(),
            templates=GreetingTemplateDB(),
            synthesizer=synthesizer,
            timezone=settings.TIMEZONE,
            voice=settings.CALL_VOICE,
            signature=settings.SENDER_SIGNATURE,
            callback_url=settings.RESPONSE_CALLBACK_URL,
            attempt_policy=settings.ATTEMPT_POLICY,
            send_delay=settings.ESCALATION_SEND_DELAY_SECONDS,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def run_tick(self, now: datetime | None = None) -> TickSummary:
        """Run one scheduling tick for the minute containing `now`."""
        now = to_local(now, self._timezone)
        summary = TickSummary(processed_at=now.isoformat())
        logger.info("Checking reminders at %s on day %d", now.strftime("%H:%M"), now.isoweekday() % 7)

        try:
            summary.reset_tasks = reset_for_new_day(self._reminders, now)
        except sqlite3.Error as exc:
            logger.error("Day-boundary reset failed: %s", exc)
            summary.store_errors += 1
            summary.errors.append(f"day reset: {exc}")

        try:
            schedules = self._reminders.list_active_schedules()
        except sqlite3.Error as exc:
            logger.error("Could not load schedules: %s", exc)
            summary.store_errors += 1
            summary.errors.append(f"load schedules: {exc}")
            return summary

        due = find_due_schedules(schedules, now)
        summary.schedules_evaluated = len(due)
        logger.info("Found %d due reminder(s)", len(due))

        for schedule in due:
            try:
                outcome = await self.orchestrator.process(schedule, now)
            except (sqlite3.Error, StoreError) as exc:
                logger.error("Store failure on schedule #%d: %s", schedule.id, exc)
                summary.store_errors += 1
                summary.errors.append(f"schedule {schedule.id}: {exc}")
                continue
            except Exception as exc:
                logger.exception("Unexpected error on schedule #%d", schedule.id)
                summary.errors.append(f"schedule {schedule.id}: {exc}")
                continue
            summary.add(outcome)

        logger.info(
            "Tick done: %d due, %d sent, %d failed, %d escalation(s)",
            summary.schedules_evaluated, summary.successes,
            summary.failures, summary.escalations_fired,
        )
        return summary


async def run_tick(now: datetime | None = None) -> TickSummary:
    """Run one tick against the configured deployment."""
    return await ReminderEngine.from_settings().run_tick(now)
