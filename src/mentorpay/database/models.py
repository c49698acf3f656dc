"""SQLAlchemy models for mentorpay database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    JSON,
    Index,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Mentor(Base):
    """Mentor model."""

    __tablename__ = "mentors"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    email = Column(String, nullable=True)
    hourly_rate_minor = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class MentoringSession(Base):
    """Billable mentoring session model."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True)
    mentor_id = Column(Integer, ForeignKey("mentors.id"), nullable=False)
    session_type = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    base_rate_minor = Column(BigInteger, nullable=False)
    adjusted_rate_minor = Column(BigInteger, nullable=True)
    currency = Column(String(3), nullable=False)
    status = Column(String, nullable=False, default="pending")
    notes = Column(Text, nullable=True)

    # Payout breakdown, set on approval
    base_payout_minor = Column(BigInteger, nullable=True)
    platform_fee_minor = Column(BigInteger, nullable=True)
    taxes_minor = Column(BigInteger, nullable=True)
    final_payout_minor = Column(BigInteger, nullable=True)

    rejection_reason = Column(Text, nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    receipt_id = Column(Integer, ForeignKey("receipts.id"), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_sessions_mentor_status_start", "mentor_id", "status", "start_time"),
        Index("ix_sessions_receipt", "receipt_id"),
    )

    # Relationships
    attachments = relationship(
        "SessionAttachment",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAttachment.id",
    )


class SessionAttachment(Base):
    """Reference to a file kept by the storage collaborator."""

    __tablename__ = "session_attachments"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False)
    filename = Column(String, nullable=False)
    path = Column(String, nullable=False)
    uploaded_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    session = relationship("MentoringSession", back_populates="attachments")


class Receipt(Base):
    """Receipt model aggregating a mentor's approved sessions."""

    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True)
    receipt_number = Column(String, unique=True, nullable=False)
    mentor_id = Column(Integer, ForeignKey("mentors.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="draft")
    currency = Column(String(3), nullable=False)
    base_payout_minor = Column(BigInteger, nullable=False)
    platform_fee_minor = Column(BigInteger, nullable=False)
    taxes_minor = Column(BigInteger, nullable=False)
    final_payout_minor = Column(BigInteger, nullable=False)
    session_count = Column(Integer, nullable=False)
    total_minutes = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    payment_reference = Column(String, nullable=True)
    payment_date = Column(Date, nullable=True)
    payout_id = Column(Integer, ForeignKey("payouts.id"), nullable=True)

    __table_args__ = (Index("ix_receipts_payout", "payout_id"),)


class Payout(Base):
    """Payout model bundling a mentor's sent or paid receipts."""

    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True)
    payout_number = Column(String, unique=True, nullable=False)
    mentor_id = Column(Integer, ForeignKey("mentors.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="pending")
    currency = Column(String(3), nullable=False)
    base_payout_minor = Column(BigInteger, nullable=False)
    platform_fee_minor = Column(BigInteger, nullable=False)
    taxes_minor = Column(BigInteger, nullable=False)
    final_payout_minor = Column(BigInteger, nullable=False)
    session_count = Column(Integer, nullable=False)
    total_minutes = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    payment_reference = Column(String, nullable=True)
    payment_date = Column(Date, nullable=True)


class AuditLog(Base):
    """Append-only audit entry for a mentor, session, receipt or payout."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String, nullable=False)
    actor_id = Column(Integer, nullable=False)
    changes = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_entity", "entity_type", "entity_id"),)


class SequenceCounter(Base):
    """Per-key counter behind human-readable numbering."""

    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(BigInteger, nullable=False, default=0)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory.

    SQLite connections open every unit of work with BEGIN IMMEDIATE, so a
    writer takes the file lock up front and concurrent writers queue on the
    busy timeout instead of failing on a lock upgrade.
    """
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
