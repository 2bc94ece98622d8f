"""
CareCall — Data Models.

Reminder tasks, their schedules, escalation contacts and the delivery log
persist in SQLite. Task and contact rows are authored by the surrounding
care-record product; the engine reads them and mutates only the per-day
counters on a task.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Delivery methods understood by the gateway
SMS = "sms"
CALL = "call"

KIND_REMINDER = "reminder"
KIND_ESCALATION = "escalation"

STATUS_SENT = "sent"
STATUS_FAILED = "failed"

GREETING_STYLES = ("brief", "warm", "casual", "formal")
TIME_BUCKETS = ("morning", "afternoon", "evening", "any")


@dataclass
class Subject:
    """The care recipient who owns reminder tasks."""

    id: int
    name: str
    phone_number: str | None = None


@dataclass
class ReminderTask:
    """A recurring obligation owned by one subject.

    attempts_today and escalated_at are the only fields the engine writes,
    plus last_satisfied_at when the subject completes the task.
    """

    id: int
    subject_id: int
    title: str                                   # e.g. "Take your morning tablets"
    delivery_methods: list[str] = field(default_factory=lambda: [SMS])
    use_cloned_voice: bool = False
    voice_profile_ref: str | None = None         # provider voice id
    escalation_threshold: int = 3
    attempts_today: int = 0
    last_satisfied_at: str | None = None         # ISO timestamp
    escalated_at: str | None = None              # ISO timestamp, open escalation today
    use_conversational_greeting: bool = False
    greeting_style: str = "brief"
    time_aware_greeting: bool = True
    include_wellbeing_check: bool = False
    enable_response_capture: bool = False
    active: bool = True


@dataclass
class ReminderSchedule:
    """One recurrence rule: a weekday (or every day) at a wall-clock minute."""

    id: int
    task_id: int
    time_of_day: str                  # "HH:MM"
    day_of_week: int | None = None    # 0=Sunday .. 6=Saturday, None = every day
    active: bool = True


@dataclass
class EscalationContact:
    """A person notified when a subject stops responding to a task."""

    id: int
    subject_id: int
    name: str
    phone_number: str | None
    notification_methods: list[str] = field(default_factory=lambda: [SMS, CALL])
    priority_order: int = 1
    active: bool = True


@dataclass
class DeliveryLogEntry:
    """One delivery or escalation attempt. Append-only."""

    task_id: int | None
    subject_id: int
    kind: str                         # reminder | escalation
    channel: str                      # sms | call | none
    recipient: str
    message_content: str
    status: str                       # sent | failed
    created_at: str
    provider_ref: str | None = None
    error: str | None = None
    greeting_style_used: str | None = None
    message_duration_seconds: int | None = None
    id: int | None = None


@dataclass
class GreetingTemplate:
    """A conversational greeting keyed by (style, time bucket)."""

    id: int
    name: str
    greeting_style: str
    time_of_day: str                  # morning | afternoon | evening | any
    greeting_text: str                # contains a [name] placeholder
    wellbeing_phrase: str | None = None
    closing_text: str | None = None
    active: bool = True
