"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides temp-file stores, a recording gateway and a wired engine.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACfake-sid-for-tests")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "fake-token-for-tests")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15550000000")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "Europe/London")
os.environ.setdefault("ESCALATION_SEND_DELAY_SECONDS", "0")

from types import SimpleNamespace

import pytest

from src.ports.delivery_port import DeliveryResult


class FakeGateway:
    """Records every send. Channels in `fail_channels` report a provider failure."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object]] = []
        self.fail_channels: set[str] = set()

    async def send(self, recipient, channel, payload):
        self.calls.append((recipient, channel, payload))
        if channel in self.fail_channels:
            return DeliveryResult.failed("provider returned 503")
        return DeliveryResult.sent(f"SID{len(self.calls)}")


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_carecall.db")


@pytest.fixture
def reminder_db(tmp_db_path):
    from src.data.db import ReminderDB
    return ReminderDB(db_path=tmp_db_path)


@pytest.fixture
def subject_db(tmp_db_path):
    from src.data.db import SubjectDB
    return SubjectDB(db_path=tmp_db_path)


@pytest.fixture
def contact_db(tmp_db_path):
    from src.data.db import ContactDB
    return ContactDB(db_path=tmp_db_path)


@pytest.fixture
def log_db(tmp_db_path):
    from src.data.db import DeliveryLogDB
    return DeliveryLogDB(db_path=tmp_db_path)


@pytest.fixture
def template_db(tmp_db_path):
    from src.data.db import GreetingTemplateDB
    return GreetingTemplateDB(db_path=tmp_db_path)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def stores(reminder_db, subject_db, contact_db, log_db, template_db):
    return SimpleNamespace(
        reminders=reminder_db,
        subjects=subject_db,
        contacts=contact_db,
        logs=log_db,
        templates=template_db,
    )


@pytest.fixture
def make_engine(stores, gateway):
    """Factory for an engine on the temp stores; keyword overrides pass through."""
    from src.core.engine import ReminderEngine

    def _make(**overrides):
        kwargs = dict(
            reminder_db=stores.reminders,
            subject_db=stores.subjects,
            contact_db=stores.contacts,
            log_db=stores.logs,
            gateway=gateway,
            templates=stores.templates,
            timezone="Europe/London",
            send_delay=0,
            timeout=1.0,
        )
        kwargs.update(overrides)
        return ReminderEngine(**kwargs)

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def subject(subject_db):
    return subject_db.add_subject("Mary", "+447700900001")
