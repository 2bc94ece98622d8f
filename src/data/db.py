"""
CareCall — SQLite stores.

Reminder tasks, schedules, escalation contacts, greeting templates and the
append-only delivery log. Counter updates on a task go through single
conditional UPDATE statements so that a duplicate tick cannot double-count
or double-escalate.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from src.data.models import (
    CALL,
    SMS,
    DeliveryLogEntry,
    EscalationContact,
    GreetingTemplate,
    ReminderSchedule,
    ReminderTask,
    Subject,
)

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when a referenced row does not exist."""


def _join(values: list[str]) -> str:
    return ",".join(v.strip() for v in values if v.strip())


def _split(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [v for v in raw.split(",") if v]


class _SQLiteStore:
    """Shared connection handling. Subclasses create their tables in _init_db."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


class SubjectDB(_SQLiteStore):
    """Care recipients. Owned by the care-record product; read-only to the engine."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subjects (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    name         TEXT NOT NULL,
                    phone_number TEXT
                )
            """)
        logger.debug("Subjects table initialized at %s", self._db_path)

    def add_subject(self, name: str, phone_number: str | None = None) -> Subject:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO subjects (name, phone_number) VALUES (?, ?)",
                (name.strip(), phone_number),
            )
            subject_id = cursor.lastrowid
        logger.info("Subject added: #%d '%s'", subject_id, name)
        return Subject(id=subject_id, name=name.strip(), phone_number=phone_number)

    def get_subject(self, subject_id: int) -> Subject | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM subjects WHERE id = ?", (subject_id,)
            ).fetchone()
        if row is None:
            return None
        return Subject(id=row["id"], name=row["name"], phone_number=row["phone_number"])


class ReminderDB(_SQLiteStore):
    """Reminder tasks, their schedules, and the per-day counters."""

    def _init_db(self) -> None:
        """Create task, schedule, dedupe and engine-state tables."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reminder_tasks (
                    id                          INTEGER PRIMARY KEY AUTOINCREMENT,
                    subject_id                  INTEGER NOT NULL,
                    title                       TEXT    NOT NULL,
                    delivery_methods            TEXT    NOT NULL DEFAULT 'sms',
                    use_cloned_voice            INTEGER NOT NULL DEFAULT 0,
                    voice_profile_ref           TEXT,
                    escalation_threshold        INTEGER NOT NULL DEFAULT 3
                                                CHECK (escalation_threshold >= 1),
                    attempts_today              INTEGER NOT NULL DEFAULT 0
                                                CHECK (attempts_today >= 0),
                    last_satisfied_at           TEXT,
                    escalated_at                TEXT,
                    use_conversational_greeting INTEGER NOT NULL DEFAULT 0,
                    greeting_style              TEXT    NOT NULL DEFAULT 'brief',
                    time_aware_greeting         INTEGER NOT NULL DEFAULT 1,
                    include_wellbeing_check     INTEGER NOT NULL DEFAULT 0,
                    enable_response_capture     INTEGER NOT NULL DEFAULT 0,
                    active                      INTEGER NOT NULL DEFAULT 1
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reminder_schedules (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id     INTEGER NOT NULL REFERENCES reminder_tasks(id),
                    day_of_week INTEGER CHECK (day_of_week BETWEEN 0 AND 6),
                    time_of_day TEXT    NOT NULL,
                    active      INTEGER NOT NULL DEFAULT 1
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS occurrence_claims (
                    task_id     INTEGER NOT NULL,
                    schedule_id INTEGER NOT NULL,
                    minute_key  TEXT    NOT NULL,
                    PRIMARY KEY (task_id, schedule_id, minute_key)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS engine_state (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
        logger.debug("Reminder tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> ReminderTask:
        return ReminderTask(
            id=row["id"],
            subject_id=row["subject_id"],
            title=row["title"],
            delivery_methods=_split(row["delivery_methods"]),
            use_cloned_voice=bool(row["use_cloned_voice"]),
            voice_profile_ref=row["voice_profile_ref"],
            escalation_threshold=row["escalation_threshold"],
            attempts_today=row["attempts_today"],
            last_satisfied_at=row["last_satisfied_at"],
            escalated_at=row["escalated_at"],
            use_conversational_greeting=bool(row["use_conversational_greeting"]),
            greeting_style=row["greeting_style"],
            time_aware_greeting=bool(row["time_aware_greeting"]),
            include_wellbeing_check=bool(row["include_wellbeing_check"]),
            enable_response_capture=bool(row["enable_response_capture"]),
            active=bool(row["active"]),
        )

    @staticmethod
    def _row_to_schedule(row: sqlite3.Row) -> ReminderSchedule:
        return ReminderSchedule(
            id=row["id"],
            task_id=row["task_id"],
            day_of_week=row["day_of_week"],
            time_of_day=row["time_of_day"],
            active=bool(row["active"]),
        )

    # -- CRUD used by the care-record product and tests ----------------------

    def add_task(
        self,
        subject_id: int,
        title: str,
        delivery_methods: list[str] | None = None,
        escalation_threshold: int = 3,
        use_cloned_voice: bool = False,
        voice_profile_ref: str | None = None,
        use_conversational_greeting: bool = False,
        greeting_style: str = "brief",
        time_aware_greeting: bool = True,
        include_wellbeing_check: bool = False,
        enable_response_capture: bool = False,
    ) -> ReminderTask:
        """Insert a new reminder task with zeroed counters."""
        if escalation_threshold < 1:
            raise ValueError("escalation_threshold must be >= 1")
        methods = delivery_methods or [SMS]

        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO reminder_tasks
                    (subject_id, title, delivery_methods, use_cloned_voice,
                     voice_profile_ref, escalation_threshold,
                     use_conversational_greeting, greeting_style,
                     time_aware_greeting, include_wellbeing_check,
                     enable_response_capture)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subject_id, title, _join(methods), int(use_cloned_voice),
                    voice_profile_ref, escalation_threshold,
                    int(use_conversational_greeting), greeting_style,
                    int(time_aware_greeting), int(include_wellbeing_check),
                    int(enable_response_capture),
                ),
            )
            task_id = cursor.lastrowid

        logger.info("Task added: #%d '%s' via %s", task_id, title, methods)
        return self.get_task(task_id)

    def add_schedule(
        self, task_id: int, time_of_day: str, day_of_week: int | None = None,
    ) -> ReminderSchedule:
        """Attach a recurrence rule to a task. day_of_week None means every day."""
        if day_of_week is not None and not 0 <= day_of_week <= 6:
            raise ValueError(f"day_of_week must be 0-6 or None, got {day_of_week}")
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO reminder_schedules (task_id, day_of_week, time_of_day) VALUES (?, ?, ?)",
                (task_id, day_of_week, time_of_day),
            )
            schedule_id = cursor.lastrowid
        return ReminderSchedule(
            id=schedule_id, task_id=task_id, time_of_day=time_of_day, day_of_week=day_of_week,
        )

    def get_task(self, task_id: int) -> ReminderTask | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reminder_tasks WHERE id = ?", (task_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def list_active_schedules(self) -> list[ReminderSchedule]:
        """Return active schedules whose task is active too."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT s.* FROM reminder_schedules s
                JOIN reminder_tasks t ON t.id = s.task_id
                WHERE s.active = 1 AND t.active = 1
                ORDER BY s.time_of_day, s.id
                """
            ).fetchall()
        return [self._row_to_schedule(r) for r in rows]

    def mark_satisfied(self, task_id: int, when: str) -> None:
        """Record that the subject completed the task at `when`."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminder_tasks SET last_satisfied_at = ? WHERE id = ?",
                (when, task_id),
            )
        if cursor.rowcount == 0:
            raise StoreError(f"Task {task_id} not found")
        logger.info("Task #%d satisfied at %s", task_id, when)

    # -- Engine state transitions --------------------------------------------

    def claim_occurrence(self, task_id: int, schedule_id: int, minute_key: str) -> bool:
        """Claim one (task, schedule, minute) occurrence. False if already claimed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO occurrence_claims (task_id, schedule_id, minute_key) VALUES (?, ?, ?)",
                (task_id, schedule_id, minute_key),
            )
        claimed = cursor.rowcount == 1
        if not claimed:
            logger.debug(
                "Occurrence already claimed: task #%d schedule #%d at %s",
                task_id, schedule_id, minute_key,
            )
        return claimed

    def increment_attempts(self, task_id: int) -> int:
        """Atomically add one attempt and return the new count."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminder_tasks SET attempts_today = attempts_today + 1 WHERE id = ?",
                (task_id,),
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Task {task_id} not found")
            row = conn.execute(
                "SELECT attempts_today FROM reminder_tasks WHERE id = ?", (task_id,)
            ).fetchone()
        return row["attempts_today"]

    def claim_escalation(self, task_id: int, when: str) -> bool:
        """Open today's escalation for a task if it is due and not already open."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE reminder_tasks SET escalated_at = ?
                WHERE id = ?
                  AND escalated_at IS NULL
                  AND attempts_today >= escalation_threshold
                """,
                (when, task_id),
            )
        return cursor.rowcount == 1

    def release_escalation(self, task_id: int, when: str) -> bool:
        """Reopen an escalation claimed at `when` so a later occurrence can fire it."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminder_tasks SET escalated_at = NULL WHERE id = ? AND escalated_at = ?",
                (task_id, when),
            )
        return cursor.rowcount == 1

    def reset_daily_counters(self, day: str) -> int | None:
        """Zero attempts and close escalations once per calendar day.

        `day` is the local ISO date. Returns the number of tasks reset, or
        None when the reset for `day` (or a later day) has already run.
        """
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO engine_state (key, value) VALUES ('last_reset_day', '')"
            )
            claim = conn.execute(
                "UPDATE engine_state SET value = ? WHERE key = 'last_reset_day' AND value < ?",
                (day, day),
            )
            if claim.rowcount == 0:
                return None
            cursor = conn.execute(
                """
                UPDATE reminder_tasks SET attempts_today = 0, escalated_at = NULL
                WHERE attempts_today > 0 OR escalated_at IS NOT NULL
                """
            )
            conn.execute("DELETE FROM occurrence_claims WHERE minute_key < ?", (day,))
        logger.info("Daily counters reset for %s: %d task(s)", day, cursor.rowcount)
        return cursor.rowcount


class ContactDB(_SQLiteStore):
    """Escalation contacts per subject, walked in priority order."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS escalation_contacts (
                    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                    subject_id           INTEGER NOT NULL,
                    name                 TEXT    NOT NULL,
                    phone_number         TEXT,
                    notification_methods TEXT    NOT NULL DEFAULT 'sms,call',
                    priority_order       INTEGER NOT NULL DEFAULT 1,
                    active               INTEGER NOT NULL DEFAULT 1
                )
            """)
        logger.debug("Escalation contacts table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_contact(row: sqlite3.Row) -> EscalationContact:
        return EscalationContact(
            id=row["id"],
            subject_id=row["subject_id"],
            name=row["name"],
            phone_number=row["phone_number"],
            notification_methods=_split(row["notification_methods"]),
            priority_order=row["priority_order"],
            active=bool(row["active"]),
        )

    def add_contact(
        self,
        subject_id: int,
        name: str,
        phone_number: str | None,
        priority_order: int = 1,
        notification_methods: list[str] | None = None,
        active: bool = True,
    ) -> EscalationContact:
        methods = notification_methods or [SMS, CALL]
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO escalation_contacts
                    (subject_id, name, phone_number, notification_methods, priority_order, active)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (subject_id, name.strip(), phone_number, _join(methods), priority_order, int(active)),
            )
            contact_id = cursor.lastrowid
        logger.info("Escalation contact added: #%d '%s' priority %d", contact_id, name, priority_order)
        return EscalationContact(
            id=contact_id,
            subject_id=subject_id,
            name=name.strip(),
            phone_number=phone_number,
            notification_methods=methods,
            priority_order=priority_order,
            active=active,
        )

    def list_active_contacts(self, subject_id: int) -> list[EscalationContact]:
        """Active contacts for a subject, ascending priority, ties by insertion."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM escalation_contacts
                WHERE subject_id = ? AND active = 1
                ORDER BY priority_order ASC, id ASC
                """,
                (subject_id,),
            ).fetchall()
        return [self._row_to_contact(r) for r in rows]

    def deactivate_contact(self, contact_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE escalation_contacts SET active = 0 WHERE id = ? AND active = 1",
                (contact_id,),
            )
        return cursor.rowcount > 0


class DeliveryLogDB(_SQLiteStore):
    """Append-only log of reminder and escalation attempts."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS delivery_log (
                    id                       INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id                  INTEGER,
                    subject_id               INTEGER NOT NULL,
                    kind                     TEXT    NOT NULL CHECK (kind IN ('reminder', 'escalation')),
                    channel                  TEXT    NOT NULL,
                    recipient                TEXT    NOT NULL,
                    message_content          TEXT    NOT NULL,
                    status                   TEXT    NOT NULL CHECK (status IN ('sent', 'failed')),
                    provider_ref             TEXT,
                    error                    TEXT,
                    greeting_style_used      TEXT,
                    message_duration_seconds INTEGER,
                    created_at               TEXT    NOT NULL
                )
            """)
        logger.debug("Delivery log table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> DeliveryLogEntry:
        return DeliveryLogEntry(
            id=row["id"],
            task_id=row["task_id"],
            subject_id=row["subject_id"],
            kind=row["kind"],
            channel=row["channel"],
            recipient=row["recipient"],
            message_content=row["message_content"],
            status=row["status"],
            provider_ref=row["provider_ref"],
            error=row["error"],
            greeting_style_used=row["greeting_style_used"],
            message_duration_seconds=row["message_duration_seconds"],
            created_at=row["created_at"],
        )

    def append(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO delivery_log
                    (task_id, subject_id, kind, channel, recipient, message_content,
                     status, provider_ref, error, greeting_style_used,
                     message_duration_seconds, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.task_id, entry.subject_id, entry.kind, entry.channel,
                    entry.recipient, entry.message_content, entry.status,
                    entry.provider_ref, entry.error, entry.greeting_style_used,
                    entry.message_duration_seconds, entry.created_at,
                ),
            )
            entry.id = cursor.lastrowid
        return entry

    def list_for_task(self, task_id: int, kind: str | None = None) -> list[DeliveryLogEntry]:
        query = "SELECT * FROM delivery_log WHERE task_id = ?"
        params: list = [task_id]
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind)
        query += " ORDER BY id"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def list_for_subject(self, subject_id: int, kind: str | None = None) -> list[DeliveryLogEntry]:
        query = "SELECT * FROM delivery_log WHERE subject_id = ?"
        params: list = [subject_id]
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind)
        query += " ORDER BY id"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def find_by_provider_ref(self, provider_ref: str, channel: str = CALL) -> DeliveryLogEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM delivery_log WHERE provider_ref = ? AND channel = ? ORDER BY id LIMIT 1",
                (provider_ref, channel),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)


# (name, style, bucket, greeting, wellbeing phrase, closing)
_DEFAULT_TEMPLATES: list[tuple[str, str, str, str, str, str]] = [
    ("Brief Morning", "brief", "morning", "Good morning, [name].",
     "I hope you slept well.", "Have a great day."),
    ("Brief Afternoon", "brief", "afternoon", "Good afternoon, [name].",
     "I hope your day is going well.", "Enjoy the rest of your day."),
    ("Brief Evening", "brief", "evening", "Good evening, [name].",
     "I hope you had a good day.", "Have a relaxing evening."),
    ("Warm Morning", "warm", "morning", "Good morning, [name]! It's lovely to speak with you.",
     "I hope you're feeling well this morning.", "Take care and have a wonderful day."),
    ("Warm Afternoon", "warm", "afternoon", "Hello [name]! How nice to check in with you.",
     "I hope your afternoon is going beautifully.", "Wishing you all the best for the rest of your day."),
    ("Warm Evening", "warm", "evening", "Good evening, [name]. It's so good to hear from you.",
     "I hope your day has been pleasant.", "Have a peaceful and restful evening."),
    ("Casual Morning", "casual", "morning", "Hey [name]! Morning!",
     "Hope you're doing well today.", "Have a good one!"),
    ("Casual Afternoon", "casual", "afternoon", "Hi [name]!",
     "Hope everything's going okay.", "Take it easy!"),
    ("Casual Evening", "casual", "evening", "Hey [name], good evening!",
     "Hope your day was good.", "Have a nice evening!"),
    ("Formal Morning", "formal", "morning", "Good morning, [name].",
     "I trust you are well this morning.", "I wish you a pleasant day ahead."),
    ("Formal Afternoon", "formal", "afternoon", "Good afternoon, [name].",
     "I trust you are having a good afternoon.", "I wish you well for the remainder of your day."),
    ("Formal Evening", "formal", "evening", "Good evening, [name].",
     "I trust your day has been satisfactory.", "I wish you a pleasant evening."),
    ("Brief Anytime", "brief", "any", "Hello, [name].",
     "I hope you're doing well.", "Take care."),
    ("Warm Anytime", "warm", "any", "Hello [name], it's wonderful to speak with you.",
     "I hope you're feeling good today.", "Wishing you all the very best."),
    ("Casual Anytime", "casual", "any", "Hi [name]!",
     "Hope you're doing great.", "Take care!"),
    ("Formal Anytime", "formal", "any", "Good day, [name].",
     "I trust you are well.", "I wish you well."),
]


class GreetingTemplateDB(_SQLiteStore):
    """Conversational greeting templates keyed by (style, time bucket)."""

    def __init__(self, db_path: str | None = None, seed_defaults: bool = True) -> None:
        self._seed_defaults = seed_defaults
        super().__init__(db_path)

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS greeting_templates (
                    id               INTEGER PRIMARY KEY AUTOINCREMENT,
                    name             TEXT NOT NULL,
                    greeting_style   TEXT NOT NULL,
                    time_of_day      TEXT NOT NULL,
                    greeting_text    TEXT NOT NULL,
                    wellbeing_phrase TEXT,
                    closing_text     TEXT,
                    active           INTEGER NOT NULL DEFAULT 1,
                    UNIQUE (greeting_style, time_of_day)
                )
            """)
            if self._seed_defaults:
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO greeting_templates
                        (name, greeting_style, time_of_day, greeting_text, wellbeing_phrase, closing_text)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    _DEFAULT_TEMPLATES,
                )
        logger.debug("Greeting templates initialized at %s", self._db_path)

    def add_template(
        self,
        name: str,
        greeting_style: str,
        time_of_day: str,
        greeting_text: str,
        wellbeing_phrase: str | None = None,
        closing_text: str | None = None,
    ) -> GreetingTemplate:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR REPLACE INTO greeting_templates
                    (name, greeting_style, time_of_day, greeting_text, wellbeing_phrase, closing_text)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, greeting_style, time_of_day, greeting_text, wellbeing_phrase, closing_text),
            )
            template_id = cursor.lastrowid
        return GreetingTemplate(
            id=template_id,
            name=name,
            greeting_style=greeting_style,
            time_of_day=time_of_day,
            greeting_text=greeting_text,
            wellbeing_phrase=wellbeing_phrase,
            closing_text=closing_text,
        )

    def lookup(self, greeting_style: str, time_of_day: str) -> GreetingTemplate | None:
        """Exact (style, bucket) match among active templates, or None."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM greeting_templates
                WHERE greeting_style = ? AND time_of_day = ? AND active = 1
                """,
                (greeting_style, time_of_day),
            ).fetchone()
        if row is None:
            return None
        return GreetingTemplate(
            id=row["id"],
            name=row["name"],
            greeting_style=row["greeting_style"],
            time_of_day=row["time_of_day"],
            greeting_text=row["greeting_text"],
            wellbeing_phrase=row["wellbeing_phrase"],
            closing_text=row["closing_text"],
            active=bool(row["active"]),
        )


class ResponseDB(_SQLiteStore):
    """Keypress responses captured during reminder calls."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reminder_responses (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    provider_ref TEXT NOT NULL,
                    response     TEXT NOT NULL,
                    captured_at  TEXT NOT NULL
                )
            """)

    def record_response(self, provider_ref: str, response: str, captured_at: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO reminder_responses (provider_ref, response, captured_at) VALUES (?, ?, ?)",
                (provider_ref, response, captured_at),
            )
        logger.info("Response '%s' recorded for call %s", response, provider_ref)
        return cursor.lastrowid

    def get_response(self, provider_ref: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT response FROM reminder_responses WHERE provider_ref = ? ORDER BY id DESC LIMIT 1",
                (provider_ref,),
            ).fetchone()
        return None if row is None else row["response"]
