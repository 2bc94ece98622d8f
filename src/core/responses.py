"""Keypress response capture for reminder calls.

A call placed with response capture asks the subject to press 1 (doing
well) or 2 (needs assistance). The telephony callback lands here with the
call's provider reference and the digit. The response is stored against
the call, and a "needs assistance" answer alerts every active escalation
contact by text message right away, regardless of attempt counts.

This package serves no HTTP routes. `handle_keypress` is called by the
host product's callback route, the one RESPONSE_CALLBACK_URL points at,
which passes the provider's CallSid and Digits form fields and returns
the resulting TwiML as the response body.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from src.core.escalation import send_with_timeout
from src.core.message_composer import assistance_alert
from src.core.speech_composer import reply_script
from src.data.models import KIND_ESCALATION, SMS, DeliveryLogEntry
from src.ports.delivery_port import DeliveryGateway, Payload

logger = logging.getLogger(__name__)

DOING_WELL = "doing_well"
NEEDS_ASSISTANCE = "needs_assistance"
UNKNOWN = "unknown"

_REPLIES = {
    DOING_WELL: "Thank you! I'm glad you're doing well. Take care!",
    NEEDS_ASSISTANCE: "Thank you for letting me know. I've notified your family member. Help is on the way.",
    UNKNOWN: "Thank you. Take care!",
}


@dataclass
class CapturedResponse:
    response: str
    reply_twiml: str
    contacts_alerted: int = 0


def parse_digits(digits: str | None) -> str:
    digits = (digits or "").strip()
    if digits == "1":
        return DOING_WELL
    if digits == "2":
        return NEEDS_ASSISTANCE
    return UNKNOWN


async def handle_keypress(
    provider_ref: str,
    digits: str | None,
    now: datetime,
    log_db,
    response_db,
    contact_db,
    subject_db,
    gateway: DeliveryGateway,
    voice: str = "Polly.Joanna",
    timeout: float = 15.0,
) -> CapturedResponse:
    """Record a keypress and return the TwiML to speak before hanging up."""
    response = parse_digits(digits)
    captured = CapturedResponse(response=response, reply_twiml=reply_script(_REPLIES[response], voice))

    entry = log_db.find_by_provider_ref(provider_ref)
    if entry is None:
        logger.error("Could not find reminder call %s for keypress response", provider_ref)
        return captured

    response_db.record_response(provider_ref, response, now.isoformat())

    if response != NEEDS_ASSISTANCE:
        return captured

    subject = subject_db.get_subject(entry.subject_id)
    name = subject.name if subject is not None else "Your relative"
    text = assistance_alert(name)

    for contact in contact_db.list_active_contacts(entry.subject_id):
        if not contact.phone_number:
            continue
        result = await send_with_timeout(gateway, contact.phone_number, SMS, Payload(text=text), timeout)
        log_db.append(DeliveryLogEntry(
            task_id=entry.task_id,
            subject_id=entry.subject_id,
            kind=KIND_ESCALATION,
            channel=SMS,
            recipient=contact.phone_number,
            message_content=text,
            status=result.status,
            provider_ref=result.provider_ref,
            error=result.error,
            created_at=now.isoformat(),
        ))
        if result.ok:
            captured.contacts_alerted += 1
        logger.info("Sent assistance alert to %s: %s", contact.name, result.status)

    return captured
