"""Escalation trigger — alert a subject's contacts after repeated misses.

Edge-triggered: the first evaluation that finds attempts_today at or over
the task's threshold claims the day's escalation with a compare-and-swap
on escalated_at, and only that caller sends. Later evaluations on the same
day are no-ops until the day-boundary reset clears escalated_at. A store
failure after the claim releases it again, so the next occurrence retries.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from src.core.message_composer import escalation_alert, escalation_call_text
from src.core.speech_composer import say_script
from src.data.db import StoreError
from src.data.models import (
    CALL,
    KIND_ESCALATION,
    SMS,
    STATUS_FAILED,
    DeliveryLogEntry,
    EscalationContact,
    ReminderTask,
)
from src.ports.delivery_port import DeliveryGateway, DeliveryResult, Payload

logger = logging.getLogger(__name__)

NO_CONTACTS = "no_contacts_configured"
MISSING_PHONE = "missing_phone_number"
UNSUPPORTED_CHANNEL = "unsupported_channel"


@dataclass
class EscalationOutcome:
    task_id: int
    attempts: int
    sent: int = 0
    failed: int = 0
    no_contacts: bool = False


async def send_with_timeout(
    gateway: DeliveryGateway,
    recipient: str,
    channel: str,
    payload: Payload,
    timeout: float,
) -> DeliveryResult:
    """Call the gateway under a hard deadline; any error becomes a failed result."""
    try:
        return await asyncio.wait_for(gateway.send(recipient, channel, payload), timeout)
    except asyncio.TimeoutError:
        logger.warning("%s to %s timed out after %.1fs", channel, recipient, timeout)
        return DeliveryResult.failed("timeout")
    except Exception as exc:
        logger.warning("%s to %s raised: %s", channel, recipient, exc)
        return DeliveryResult.failed(str(exc) or exc.__class__.__name__)


class EscalationTrigger:
    """Fans an alert out to active contacts in ascending priority order."""

    def __init__(
        self,
        reminder_db,
        contact_db,
        log_db,
        gateway: DeliveryGateway,
        voice: str,
        signature: str,
        send_delay: float = 1.0,
        timeout: float = 15.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._reminders = reminder_db
        self._contacts = contact_db
        self._logs = log_db
        self._gateway = gateway
        self._voice = voice
        self._signature = signature
        self._send_delay = send_delay
        self._timeout = timeout
        self._sleep = sleep

    async def evaluate(
        self,
        task: ReminderTask,
        subject_name: str,
        attempts: int,
        now: datetime,
    ) -> EscalationOutcome | None:
        """Fire the escalation if `attempts` crossed the threshold and none is open today.

        Returns None when nothing fired.
        """
        if attempts < task.escalation_threshold:
            return None

        fired_at = now.isoformat()
        if not self._reminders.claim_escalation(task.id, fired_at):
            logger.debug("Task #%d escalation already open today", task.id)
            return None

        logger.info(
            "Task #%d reached %d/%d missed attempts, escalating",
            task.id, attempts, task.escalation_threshold,
        )
        try:
            return await self._notify_contacts(task, subject_name, attempts, fired_at, now)
        except (sqlite3.Error, StoreError):
            # Reopen the claim so the next occurrence today can fire again
            self._reminders.release_escalation(task.id, fired_at)
            logger.error("Task #%d escalation interrupted by a store failure, claim released", task.id)
            raise

    async def _notify_contacts(
        self,
        task: ReminderTask,
        subject_name: str,
        attempts: int,
        fired_at: str,
        now: datetime,
    ) -> EscalationOutcome:
        outcome = EscalationOutcome(task_id=task.id, attempts=attempts)

        contacts = self._contacts.list_active_contacts(task.subject_id)
        if not contacts:
            logger.warning("No escalation contacts configured for subject %d", task.subject_id)
            self._log_failure(task, None, "none", "", escalation_alert(
                subject_name, task.title, attempts, self._signature,
            ), NO_CONTACTS, fired_at)
            outcome.no_contacts = True
            outcome.failed += 1
            return outcome

        sms_text = escalation_alert(subject_name, task.title, attempts, self._signature)
        call_script = say_script(
            escalation_call_text(subject_name, task.title, attempts, self._signature),
            self._voice,
        )

        first_send = True
        for contact in contacts:
            for method in contact.notification_methods:
                if not contact.phone_number:
                    self._log_failure(task, contact, method, "", sms_text, MISSING_PHONE, fired_at)
                    outcome.failed += 1
                    continue
                if method not in (SMS, CALL):
                    self._log_failure(
                        task, contact, method, contact.phone_number, sms_text,
                        UNSUPPORTED_CHANNEL, fired_at,
                    )
                    outcome.failed += 1
                    continue

                if not first_send and self._send_delay > 0:
                    await self._sleep(self._send_delay)
                first_send = False

                payload = Payload(text=sms_text, voice_script=call_script if method == CALL else None)
                result = await send_with_timeout(
                    self._gateway, contact.phone_number, method, payload, self._timeout,
                )
                self._logs.append(DeliveryLogEntry(
                    task_id=task.id,
                    subject_id=task.subject_id,
                    kind=KIND_ESCALATION,
                    channel=method,
                    recipient=contact.phone_number,
                    message_content=sms_text,
                    status=result.status,
                    provider_ref=result.provider_ref,
                    error=result.error,
                    created_at=datetime.now(now.tzinfo).isoformat(),
                ))
                if result.ok:
                    outcome.sent += 1
                else:
                    outcome.failed += 1
                logger.info(
                    "Escalation %s to %s (priority %d): %s",
                    method, contact.name, contact.priority_order, result.status,
                )

        return outcome

    def _log_failure(
        self,
        task: ReminderTask,
        contact: EscalationContact | None,
        channel: str,
        recipient: str,
        message: str,
        error: str,
        created_at: str,
    ) -> None:
        if contact is not None:
            logger.warning("Escalation to %s skipped: %s", contact.name, error)
        self._logs.append(DeliveryLogEntry(
            task_id=task.id,
            subject_id=task.subject_id,
            kind=KIND_ESCALATION,
            channel=channel,
            recipient=recipient,
            message_content=message,
            status=STATUS_FAILED,
            error=error,
            created_at=created_at,
        ))
