"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database with fresh tables per test
- Record stores, rule store and no-show service bound to it
- Fake messaging port and fake clock
- A fixed "now" (Wednesday 2026-02-04 15:00 UTC)
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_automation.core.config import Settings
from clinic_automation.db.base import Base
import clinic_automation.db.models  # noqa: F401
from clinic_automation.db.models import Appointment, ContactRequest, NoShowCase
from clinic_automation.services.noshow_service import NoShowService
from clinic_automation.services.record_store import SqlRecordStore
from clinic_automation.services.rule_store import SqlRuleStore

NOW = datetime(2026, 2, 4, 15, 0, tzinfo=timezone.utc)


# =============================================================================
# Fakes
# =============================================================================


class FakeMessaging:
    """Records every send. `error` makes every send fail; `delay` makes it slow."""

    def __init__(self, error: str | None = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, channel, recipient, text):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            return None, self.error
        self.sent.append((channel.value, recipient, text))
        return f"msg-{len(self.sent)}", None


class FakeClock:
    """Manually advanced clock; sleep() advances time instead of waiting."""

    def __init__(self, now: datetime = NOW):
        self.current = now
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


@pytest.fixture
def contacts(session_factory) -> SqlRecordStore[ContactRequest]:
    return SqlRecordStore(session_factory, ContactRequest)


@pytest.fixture
def appointments(session_factory) -> SqlRecordStore[Appointment]:
    return SqlRecordStore(session_factory, Appointment)


@pytest.fixture
def cases(session_factory) -> SqlRecordStore[NoShowCase]:
    return SqlRecordStore(session_factory, NoShowCase)


@pytest.fixture
def rule_store(session_factory) -> SqlRuleStore:
    return SqlRuleStore(session_factory)


@pytest.fixture
def noshow_service(cases) -> NoShowService:
    return NoShowService(cases)


# =============================================================================
# Other Fixtures
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def messaging() -> FakeMessaging:
    return FakeMessaging()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ENV="test",
        INTERNAL_SECRET="test-secret",
        MESSAGING_DRY_RUN=True,
        SCHEDULER_ENABLED=False,
        SCHEDULER_TIMEZONE="UTC",
        SEED_DEFAULT_RULES=False,
        DISABLED_JOBS="",
    )


@pytest.fixture
def make_contact(contacts):
    """Create a contact request; keyword overrides win over the defaults."""

    def _make(**overrides) -> ContactRequest:
        fields = {
            "full_name": "Maria Lopez",
            "phone": "+5215550000001",
            "whatsapp": "+5215550000001",
            "origin": "WhatsApp",
            "status": "new",
            "tags": [],
            "attempt_count": 0,
            "created_at": NOW - timedelta(days=1),
            "updated_at": NOW - timedelta(days=1),
        }
        fields.update(overrides)
        return contacts.create(fields)

    return _make


@pytest.fixture
def make_appointment(appointments):
    def _make(**overrides) -> Appointment:
        fields = {
            "patient_id": uuid.uuid4(),
            "patient_name": "Juan Perez",
            "patient_phone": "+5215550000002",
            "channel": "WhatsApp",
            "scheduled_at": NOW + timedelta(hours=3),
            "status": "scheduled",
        }
        fields.update(overrides)
        return appointments.create(fields)

    return _make


@pytest.fixture
def open_case(noshow_service):
    """Register a no-show case missed at `missed_at` (default: 2 days before NOW)."""

    def _open(missed_at: datetime = NOW - timedelta(days=2), **overrides) -> NoShowCase:
        fields = {
            "appointment_id": uuid.uuid4(),
            "patient_id": uuid.uuid4(),
            "patient_name": "Ana Garcia",
            "patient_phone": "+5215550000003",
            "contact_channel": "WhatsApp",
            "branch_id": "north",
        }
        fields.update(overrides)
        return noshow_service.register_no_show(missed_at=missed_at, now=missed_at, **fields)

    return _open


def rule_payload(**overrides) -> dict:
    """A valid, active rule: status = new -> add tag 'Lead'."""
    payload = {
        "name": "Tag new leads",
        "priority": "medium",
        "conditions": [{"type": "status", "operator": "=", "value": "new"}],
        "actions": [{"type": "add-tag", "value": "Lead"}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_rule(rule_store):
    def _make(**overrides):
        return rule_store.create_rule(rule_payload(**overrides))

    return _make


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Internal-Secret": "test-secret"}

