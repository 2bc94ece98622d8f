"""Delivery orchestrator — one due schedule occurrence, end to end.

Pipeline per occurrence:
    load task -> skip if satisfied today -> claim dedupe key
    -> compose message -> per channel: build payload, send, log
    -> count one attempt -> evaluate escalation

Channel failures are recorded and never retried within the tick; the next
scheduled occurrence is the retry. Store errors propagate to the engine,
which reports them and moves on to the next schedule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from src.core.due_schedules import minute_key
from src.core.escalation import (
    MISSING_PHONE,
    UNSUPPORTED_CHANNEL,
    EscalationOutcome,
    EscalationTrigger,
    send_with_timeout,
)
from src.core.message_composer import TemplateLookup, compose_reminder
from src.core.speech_composer import compose_call_script
from src.data.db import StoreError
from src.data.models import (
    CALL,
    KIND_REMINDER,
    SMS,
    DeliveryLogEntry,
    ReminderSchedule,
    ReminderTask,
)
from src.ports.delivery_port import DeliveryGateway, DeliveryResult, Payload
from src.ports.speech_port import SpeechSynthesizer

logger = logging.getLogger(__name__)

SKIP_SATISFIED = "satisfied"
SKIP_DUPLICATE = "duplicate"
SKIP_INACTIVE = "inactive"

# Noted on a sent call that used standard speech instead of the cloned voice
CLONE_FALLBACK = "clone_fallback"


@dataclass
class OccurrenceOutcome:
    """What happened to one due schedule during a tick."""

    schedule_id: int
    task_id: int
    skipped: str | None = None
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    attempts_today: int | None = None
    escalation: EscalationOutcome | None = None


def satisfied_on(last_satisfied_at: str | None, now: datetime) -> bool:
    """True if the ISO timestamp falls on `now`'s local calendar day."""
    if not last_satisfied_at:
        return False
    try:
        satisfied = datetime.fromisoformat(last_satisfied_at)
    except ValueError:
        logger.warning("Unparseable last_satisfied_at %r", last_satisfied_at)
        return False
    if satisfied.tzinfo is not None and now.tzinfo is not None:
        satisfied = satisfied.astimezone(now.tzinfo)
    return satisfied.date() == now.date()


class DeliveryOrchestrator:
    """Delivers one occurrence of a reminder over every configured channel."""

    def __init__(
        self,
        reminder_db,
        subject_db,
        log_db,
        gateway: DeliveryGateway,
        escalation: EscalationTrigger,
        templates: TemplateLookup | None = None,
        synthesizer: SpeechSynthesizer | None = None,
        voice: str = "Polly.Joanna",
        callback_url: str = "",
        attempt_policy: str = "occurrence",
        timeout: float = 15.0,
    ) -> None:
        self._reminders = reminder_db
        self._subjects = subject_db
        self._logs = log_db
        self._gateway = gateway
        self._escalation = escalation
        self._templates = templates
        self._synthesizer = synthesizer
        self._voice = voice
        self._callback_url = callback_url
        self._attempt_policy = attempt_policy
        self._timeout = timeout

    async def process(self, schedule: ReminderSchedule, now: datetime) -> OccurrenceOutcome:
        outcome = OccurrenceOutcome(schedule_id=schedule.id, task_id=schedule.task_id)

        task = self._reminders.get_task(schedule.task_id)
        if task is None:
            raise StoreError(f"Task {schedule.task_id} for schedule {schedule.id} not found")
        if not task.active:
            outcome.skipped = SKIP_INACTIVE
            return outcome

        if satisfied_on(task.last_satisfied_at, now):
            logger.info("Task #%d already satisfied today, skipping", task.id)
            outcome.skipped = SKIP_SATISFIED
            return outcome

        if not self._reminders.claim_occurrence(task.id, schedule.id, minute_key(now)):
            logger.warning(
                "Task #%d schedule #%d already processed at %s, skipping duplicate tick",
                task.id, schedule.id, minute_key(now),
            )
            outcome.skipped = SKIP_DUPLICATE
            return outcome

        subject = self._subjects.get_subject(task.subject_id)
        if subject is None:
            raise StoreError(f"Subject {task.subject_id} for task {task.id} not found")

        message = compose_reminder(task, subject.name, now, self._templates)

        for method in task.delivery_methods:
            result = await self._deliver(task, subject.phone_number, method, message.text, now)
            self._logs.append(DeliveryLogEntry(
                task_id=task.id,
                subject_id=task.subject_id,
                kind=KIND_REMINDER,
                channel=method,
                recipient=subject.phone_number or "",
                message_content=message.text,
                status=result.status,
                provider_ref=result.provider_ref,
                error=result.error,
                greeting_style_used=message.greeting_style_used,
                message_duration_seconds=message.duration_seconds,
                created_at=datetime.now(now.tzinfo).isoformat(),
            ))
            outcome.attempted += 1
            if result.ok:
                outcome.succeeded += 1
            else:
                outcome.failed += 1
            logger.info("Sent %s reminder for task #%d: %s", method, task.id, result.status)

        # One attempt per occurrence, however many channels were tried
        if self._attempt_policy == "failure" and outcome.succeeded:
            outcome.attempts_today = task.attempts_today
            return outcome

        outcome.attempts_today = self._reminders.increment_attempts(task.id)
        outcome.escalation = await self._escalation.evaluate(
            task, subject.name, outcome.attempts_today, now,
        )
        return outcome

    async def _deliver(
        self,
        task: ReminderTask,
        phone_number: str | None,
        method: str,
        text: str,
        now: datetime,
    ) -> DeliveryResult:
        if not phone_number:
            logger.error("No phone number for subject %d", task.subject_id)
            return DeliveryResult.failed(MISSING_PHONE)

        if method == SMS:
            payload = Payload(text=text)
        elif method == CALL:
            script = await compose_call_script(
                task,
                text,
                asset_name=f"{task.id}-{int(now.timestamp() * 1000)}",
                voice=self._voice,
                synthesizer=self._synthesizer,
                callback_url=self._callback_url,
            )
            payload = Payload(text=text, voice_script=script.twiml)
            result = await send_with_timeout(self._gateway, phone_number, method, payload, self._timeout)
            if result.ok and script.fallback_reason:
                result.error = f"{CLONE_FALLBACK}: {script.fallback_reason}"
            return result
        else:
            logger.warning("Task #%d has unsupported delivery method '%s'", task.id, method)
            return DeliveryResult.failed(UNSUPPORTED_CHANNEL)

        return await send_with_timeout(self._gateway, phone_number, method, payload, self._timeout)
