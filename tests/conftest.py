"""Shared pytest fixtures for mentorpay tests."""

import os
import tempfile
from datetime import UTC, datetime, timedelta

import pytest

from mentorpay.config import PayoutPolicy
from mentorpay.database.factories import create_sqlite_database
from mentorpay.domain.audit import AuditLogService
from mentorpay.domain.entities import Actor, Role
from mentorpay.domain.mentor import MentorService
from mentorpay.domain.money import Money
from mentorpay.domain.payout_service import PayoutService
from mentorpay.domain.receipt import ReceiptService
from mentorpay.domain.session import SessionService

NOW = datetime(2025, 5, 20, 12, 0, tzinfo=UTC)


class RecordingNotifier:
    """Notifier that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def receipt_sent(self, event):
        self.events.append(event)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """Fixed clock inside May 2025."""
    return lambda: NOW


@pytest.fixture
def policy():
    """Default policy: 10% platform fee, 18% tax on the base amount."""
    return PayoutPolicy()


@pytest.fixture
def admin():
    """Acting admin."""
    return Actor(id=900, role=Role.ADMIN)


@pytest.fixture
def notifier():
    """Notifier that records sent-receipt events."""
    return RecordingNotifier()


@pytest.fixture
def mentor_service(temp_db):
    """Create a MentorService with a temporary database."""
    return MentorService(temp_db)


@pytest.fixture
def session_service(temp_db, policy, clock):
    """Create a SessionService with a temporary database."""
    return SessionService(temp_db, policy, clock=clock)


@pytest.fixture
def receipt_service(temp_db, policy, clock, notifier, session_service):
    """Create a ReceiptService with a temporary database."""
    return ReceiptService(
        temp_db, policy, notifier=notifier, clock=clock, sessions=session_service
    )


@pytest.fixture
def payout_service(temp_db, policy, clock, receipt_service):
    """Create a PayoutService with a temporary database."""
    return PayoutService(temp_db, policy, clock=clock, receipts=receipt_service)


@pytest.fixture
def audit_service(temp_db):
    """Create an AuditLogService with a temporary database."""
    return AuditLogService(temp_db)


@pytest.fixture
def sample_mentor(mentor_service, admin):
    """Mentor paid 1000.00 USD per hour."""
    return mentor_service.create_mentor(admin, "Ada Lovelace", Money.from_major("1000"))


@pytest.fixture
def mentor_actor(sample_mentor):
    """The sample mentor acting as themself."""
    return Actor(id=sample_mentor.id, role=Role.MENTOR)


@pytest.fixture
def make_session(session_service, sample_mentor, mentor_actor):
    """Factory for sessions of the sample mentor."""

    def _make(start=datetime(2025, 5, 10, 14, 0, tzinfo=UTC), minutes=90, session_type="live"):
        return session_service.create_session(
            mentor_actor,
            sample_mentor.id,
            session_type,
            start,
            start + timedelta(minutes=minutes),
        )

    return _make


@pytest.fixture
def make_approved(make_session, session_service, admin):
    """Factory for approved sessions of the sample mentor."""

    def _make(start=datetime(2025, 5, 10, 14, 0, tzinfo=UTC), minutes=90):
        session = make_session(start=start, minutes=minutes)
        return session_service.approve(admin, session.id)

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
