"""Message composer — pure text building.

Builds the literal reminder text (fixed template, or a conversational
greeting keyed by style and time of day) and the escalation alert text.
Also estimates how long a message takes to speak, which is recorded for
cost accounting and never drives control flow.

No I/O beyond the template lookup handed in by the caller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from src.data.models import GreetingTemplate, ReminderTask

logger = logging.getLogger(__name__)

_MAX_SPOKEN_SECONDS = 60
_WORDS_PER_SECOND = 2.5
_LEAD_IN_SECONDS = 3


class TemplateLookup(Protocol):
    def lookup(self, greeting_style: str, time_of_day: str) -> GreetingTemplate | None: ...


@dataclass
class ComposedMessage:
    text: str
    duration_seconds: int
    greeting_style_used: str       # "none" for the fixed template


def time_bucket(hour: int) -> str:
    """Map a local clock hour to morning (5-11), afternoon (12-17) or evening."""
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    return "evening"


def estimate_duration(text: str) -> int:
    """Estimated spoken length in seconds, capped at one minute."""
    words = len(text.split())
    return min(math.ceil(words / _WORDS_PER_SECOND) + _LEAD_IN_SECONDS, _MAX_SPOKEN_SECONDS)


def default_message(subject_name: str, title: str) -> str:
    return f"Hi {subject_name}, this is a reminder: {title}"


def _select_template(
    templates: TemplateLookup, style: str, bucket: str,
) -> GreetingTemplate | None:
    template = templates.lookup(style, bucket)
    if template is None and bucket != "any":
        template = templates.lookup(style, "any")
    return template


def compose_reminder(
    task: ReminderTask,
    subject_name: str,
    now: datetime,
    templates: TemplateLookup | None = None,
) -> ComposedMessage:
    """Build the reminder text for one occurrence.

    Conversational mode picks the (style, time bucket) template, then the
    style's "any" template, then the fixed message. A failing template
    store degrades to the fixed message.
    """
    if task.use_conversational_greeting and templates is not None:
        bucket = time_bucket(now.hour) if task.time_aware_greeting else "any"
        try:
            template = _select_template(templates, task.greeting_style, bucket)
        except Exception as exc:
            logger.warning("Greeting template lookup failed for task #%d: %s", task.id, exc)
            template = None

        if template is not None:
            parts = [template.greeting_text.replace("[name]", subject_name)]
            if task.include_wellbeing_check and template.wellbeing_phrase:
                parts.append(template.wellbeing_phrase)
            parts.append(f"This is a reminder: {task.title}")
            if template.closing_text:
                parts.append(template.closing_text)
            text = " ".join(parts)
            return ComposedMessage(
                text=text,
                duration_seconds=estimate_duration(text),
                greeting_style_used=task.greeting_style,
            )
        logger.info(
            "No '%s' greeting template for task #%d, using default message",
            task.greeting_style, task.id,
        )

    text = default_message(subject_name, task.title)
    return ComposedMessage(
        text=text,
        duration_seconds=estimate_duration(text),
        greeting_style_used="none",
    )


def escalation_alert(subject_name: str, title: str, attempts: int, signature: str) -> str:
    """Text-message alert sent to an escalation contact."""
    return (
        f'ALERT: {subject_name} has missed {attempts} reminders for "{title}". '
        f"Please check on them. - {signature}"
    )


def escalation_call_text(subject_name: str, title: str, attempts: int, signature: str) -> str:
    """Spoken version of the escalation alert."""
    return (
        f"Alert from {signature}. {subject_name} has missed {attempts} reminders "
        f"for {title}. Please check on them."
    )


def assistance_alert(subject_name: str) -> str:
    """Alert sent when the subject presses 2 during a reminder call."""
    return (
        f"ALERT: {subject_name} pressed 2 indicating they need assistance during "
        f"a reminder call. Please check on them immediately."
    )
