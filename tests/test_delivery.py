"""Tests for src.core.delivery — one occurrence through every channel."""

from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from src.core.delivery import (
    CLONE_FALLBACK,
    SKIP_DUPLICATE,
    SKIP_SATISFIED,
    DeliveryOrchestrator,
    satisfied_on,
)
from src.core.escalation import MISSING_PHONE, UNSUPPORTED_CHANNEL, EscalationTrigger
from src.data.db import StoreError
from src.data.models import CALL, SMS
from src.ports.speech_port import SpeechError

LONDON = ZoneInfo("Europe/London")
NOW = datetime(2026, 3, 2, 8, 0, tzinfo=LONDON)


def _orchestrator(stores, gateway, **overrides):
    escalation = EscalationTrigger(
        stores.reminders, stores.contacts, stores.logs, gateway,
        voice="Polly.Joanna", signature="CareCall", send_delay=0,
    )
    kwargs = dict(templates=stores.templates, timeout=1.0)
    kwargs.update(overrides)
    return DeliveryOrchestrator(
        stores.reminders, stores.subjects, stores.logs, gateway, escalation, **kwargs,
    )


def _task_with_schedule(stores, subject, **task_fields):
    task = stores.reminders.add_task(subject.id, "Take tablets", **task_fields)
    schedule = stores.reminders.add_schedule(task.id, "08:00")
    return task, schedule


class TestSatisfiedOn:
    def test_none(self):
        assert satisfied_on(None, NOW) is False

    def test_same_local_day(self):
        assert satisfied_on("2026-03-02T07:30:00+00:00", NOW) is True

    def test_previous_day(self):
        assert satisfied_on("2026-03-01T23:59:00+00:00", NOW) is False

    def test_converted_to_local_zone(self):
        # 23:30 UTC on 1 July is 00:30 on 2 July in London
        now = datetime(2026, 7, 2, 8, 0, tzinfo=LONDON)
        assert satisfied_on("2026-07-01T23:30:00+00:00", now) is True

    def test_garbage(self):
        assert satisfied_on("yesterday", NOW) is False


class TestProcess:
    @pytest.mark.asyncio
    async def test_sms_delivered_and_logged(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject)

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.attempted == 1
        assert outcome.succeeded == 1
        assert outcome.attempts_today == 1
        assert gateway.calls[0][0] == "+447700900001"
        entry = stores.logs.list_for_task(task.id)[0]
        assert entry.kind == "reminder"
        assert entry.status == "sent"
        assert entry.provider_ref == "SID1"
        assert entry.message_content == "Hi Mary, this is a reminder: Take tablets"
        assert entry.greeting_style_used == "none"

    @pytest.mark.asyncio
    async def test_two_channels_count_one_attempt(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject, delivery_methods=[SMS, CALL])

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.attempted == 2
        assert stores.reminders.get_task(task.id).attempts_today == 1
        assert len(stores.logs.list_for_task(task.id)) == 2

    @pytest.mark.asyncio
    async def test_satisfied_today_is_skipped(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject)
        stores.reminders.mark_satisfied(task.id, "2026-03-02T07:45:00+00:00")

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.skipped == SKIP_SATISFIED
        assert gateway.calls == []
        assert stores.logs.list_for_task(task.id) == []
        assert stores.reminders.get_task(task.id).attempts_today == 0

    @pytest.mark.asyncio
    async def test_satisfied_yesterday_still_delivers(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject)
        stores.reminders.mark_satisfied(task.id, "2026-03-01T08:05:00+00:00")

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)
        assert outcome.succeeded == 1

    @pytest.mark.asyncio
    async def test_duplicate_occurrence_skipped(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject)
        orchestrator = _orchestrator(stores, gateway)

        await orchestrator.process(schedule, NOW)
        second = await orchestrator.process(schedule, NOW)

        assert second.skipped == SKIP_DUPLICATE
        assert len(gateway.calls) == 1
        assert stores.reminders.get_task(task.id).attempts_today == 1

    @pytest.mark.asyncio
    async def test_failure_recorded_and_counted(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject)
        gateway.fail_channels.add(SMS)

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.failed == 1
        assert len(gateway.calls) == 1  # no retry within the tick
        entry = stores.logs.list_for_task(task.id)[0]
        assert entry.status == "failed"
        assert entry.error == "provider returned 503"
        assert stores.reminders.get_task(task.id).attempts_today == 1

    @pytest.mark.asyncio
    async def test_call_uses_say_script(self, stores, gateway, subject):
        _, schedule = _task_with_schedule(stores, subject, delivery_methods=[CALL])

        await _orchestrator(stores, gateway).process(schedule, NOW)

        _, channel, payload = gateway.calls[0]
        assert channel == CALL
        assert payload.voice_script.startswith("<Response><Say")

    @pytest.mark.asyncio
    async def test_clone_failure_still_places_call(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(
            stores, subject, delivery_methods=[CALL], use_cloned_voice=True, voice_profile_ref="v1",
        )
        synth = AsyncMock()
        synth.synthesize = AsyncMock(side_effect=SpeechError("voice not found"))

        outcome = await _orchestrator(stores, gateway, synthesizer=synth).process(schedule, NOW)

        assert outcome.succeeded == 1
        assert "<Say" in gateway.calls[0][2].voice_script
        assert stores.logs.list_for_task(task.id)[0].status == "sent"

    @pytest.mark.asyncio
    async def test_clone_fallback_noted_on_log_entry(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(
            stores, subject, delivery_methods=[CALL], use_cloned_voice=True, voice_profile_ref="v1",
        )
        synth = AsyncMock()
        synth.synthesize = AsyncMock(side_effect=SpeechError("voice not found"))

        await _orchestrator(stores, gateway, synthesizer=synth).process(schedule, NOW)

        entry = stores.logs.list_for_task(task.id)[0]
        assert entry.status == "sent"
        assert entry.error == f"{CLONE_FALLBACK}: voice not found"

    @pytest.mark.asyncio
    async def test_standard_call_has_no_fallback_note(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject, delivery_methods=[CALL])

        await _orchestrator(stores, gateway).process(schedule, NOW)

        assert stores.logs.list_for_task(task.id)[0].error is None

    @pytest.mark.asyncio
    async def test_clone_success_plays_audio(self, stores, gateway, subject):
        _, schedule = _task_with_schedule(
            stores, subject, delivery_methods=[CALL], use_cloned_voice=True, voice_profile_ref="v1",
        )
        synth = AsyncMock()
        synth.synthesize = AsyncMock(return_value="https://cdn.example/a.mp3")

        await _orchestrator(stores, gateway, synthesizer=synth).process(schedule, NOW)

        assert "<Play>https://cdn.example/a.mp3</Play>" in gateway.calls[0][2].voice_script

    @pytest.mark.asyncio
    async def test_conversational_greeting_logged(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(
            stores, subject, use_conversational_greeting=True, greeting_style="warm",
        )

        await _orchestrator(stores, gateway).process(schedule, NOW)

        entry = stores.logs.list_for_task(task.id)[0]
        assert entry.message_content.startswith("Good morning, Mary! It's lovely to speak with you.")
        assert entry.greeting_style_used == "warm"
        assert entry.message_duration_seconds > 0

    @pytest.mark.asyncio
    async def test_missing_phone_is_config_failure(self, stores, gateway, subject_db):
        subject = subject_db.add_subject("Bert", None)
        task, schedule = _task_with_schedule(stores, subject)

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.failed == 1
        assert gateway.calls == []
        assert stores.logs.list_for_task(task.id)[0].error == MISSING_PHONE

    @pytest.mark.asyncio
    async def test_unsupported_method_logged(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject, delivery_methods=[SMS, "push"])

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.succeeded == 1
        assert outcome.failed == 1
        errors = [e.error for e in stores.logs.list_for_task(task.id)]
        assert errors == [None, UNSUPPORTED_CHANNEL]

    @pytest.mark.asyncio
    async def test_missing_subject_raises_store_error(self, stores, gateway):
        task = stores.reminders.add_task(404, "Orphan")
        schedule = stores.reminders.add_schedule(task.id, "08:00")

        with pytest.raises(StoreError):
            await _orchestrator(stores, gateway).process(schedule, NOW)

    @pytest.mark.asyncio
    async def test_escalates_on_threshold(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject, escalation_threshold=1)
        stores.contacts.add_contact(subject.id, "Tom", "+1", notification_methods=[SMS])

        outcome = await _orchestrator(stores, gateway).process(schedule, NOW)

        assert outcome.escalation is not None
        assert outcome.escalation.sent == 1
        assert [c[0] for c in gateway.calls] == ["+447700900001", "+1"]


class TestFailureAttemptPolicy:
    @pytest.mark.asyncio
    async def test_success_does_not_count(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject)

        await _orchestrator(stores, gateway, attempt_policy="failure").process(schedule, NOW)

        assert stores.reminders.get_task(task.id).attempts_today == 0

    @pytest.mark.asyncio
    async def test_all_channels_failing_counts_once(self, stores, gateway, subject):
        task, schedule = _task_with_schedule(stores, subject, delivery_methods=[SMS, CALL])
        gateway.fail_channels.update({SMS, CALL})

        await _orchestrator(stores, gateway, attempt_policy="failure").process(schedule, NOW)

        assert stores.reminders.get_task(task.id).attempts_today == 1
