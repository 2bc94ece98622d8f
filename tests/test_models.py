"""Tests for src.data.models — record dataclasses."""

from src.data.models import (
    SMS,
    CALL,
    DeliveryLogEntry,
    EscalationContact,
    ReminderSchedule,
    ReminderTask,
)


def test_task_defaults():
    task = ReminderTask(id=1, subject_id=7, title="Take tablets")
    assert task.delivery_methods == [SMS]
    assert task.escalation_threshold == 3
    assert task.attempts_today == 0
    assert task.last_satisfied_at is None
    assert task.escalated_at is None
    assert task.greeting_style == "brief"
    assert task.time_aware_greeting is True
    assert task.active is True


def test_task_method_lists_are_not_shared():
    a = ReminderTask(id=1, subject_id=7, title="A")
    b = ReminderTask(id=2, subject_id=7, title="B")
    a.delivery_methods.append(CALL)
    assert b.delivery_methods == [SMS]


def test_schedule_every_day_by_default():
    schedule = ReminderSchedule(id=1, task_id=1, time_of_day="08:00")
    assert schedule.day_of_week is None
    assert schedule.active is True


def test_contact_defaults():
    contact = EscalationContact(id=1, subject_id=7, name="Tom", phone_number="+4477")
    assert contact.notification_methods == [SMS, CALL]
    assert contact.priority_order == 1


def test_log_entry_optional_fields():
    entry = DeliveryLogEntry(
        task_id=1, subject_id=7, kind="reminder", channel="sms",
        recipient="+4477", message_content="Hi", status="sent",
        created_at="2026-03-02T08:00:00+00:00",
    )
    assert entry.provider_ref is None
    assert entry.error is None
    assert entry.id is None
