"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic: money columns hold integer minor
units, datetimes are stored as naive UTC and returned timezone-aware.
"""

from datetime import datetime, UTC
from typing import Optional, Sequence

from mentorpay.domain import entities as domain
from mentorpay.domain.money import Money
from mentorpay.database.models import (
    AuditLog as ORMAuditLog,
    MentoringSession as ORMSession,
    Mentor as ORMMentor,
    Payout as ORMPayout,
    Receipt as ORMReceipt,
    SessionAttachment as ORMAttachment,
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime read back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to naive UTC for storage. Naive input is taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def mentor_to_domain(orm_mentor: ORMMentor) -> domain.Mentor:
    """Convert SQLAlchemy Mentor model to domain Mentor entity."""
    return domain.Mentor(
        id=orm_mentor.id,
        name=orm_mentor.name,
        email=orm_mentor.email,
        hourly_rate=Money(orm_mentor.hourly_rate_minor, orm_mentor.currency),
        created_at=as_utc(orm_mentor.created_at),
    )


def attachment_to_domain(orm_attachment: ORMAttachment) -> domain.Attachment:
    """Convert SQLAlchemy SessionAttachment model to domain Attachment entity."""
    return domain.Attachment(
        id=orm_attachment.id,
        session_id=orm_attachment.session_id,
        filename=orm_attachment.filename,
        path=orm_attachment.path,
        uploaded_at=as_utc(orm_attachment.uploaded_at),
    )


def _session_payout(orm_session: ORMSession) -> Optional[domain.PayoutBreakdown]:
    if orm_session.base_payout_minor is None:
        return None
    currency = orm_session.currency
    return domain.PayoutBreakdown(
        base_payout=Money(orm_session.base_payout_minor, currency),
        platform_fee=Money(orm_session.platform_fee_minor, currency),
        taxes=Money(orm_session.taxes_minor, currency),
        final_payout=Money(orm_session.final_payout_minor, currency),
    )


def session_to_domain(
    orm_session: ORMSession, attachments: Sequence[ORMAttachment] = ()
) -> domain.Session:
    """Convert SQLAlchemy MentoringSession model to domain Session entity."""
    currency = orm_session.currency
    adjusted = orm_session.adjusted_rate_minor
    return domain.Session(
        id=orm_session.id,
        mentor_id=orm_session.mentor_id,
        session_type=domain.SessionType(orm_session.session_type),
        start_time=as_utc(orm_session.start_time),
        end_time=as_utc(orm_session.end_time),
        duration_minutes=orm_session.duration_minutes,
        base_rate=Money(orm_session.base_rate_minor, currency),
        adjusted_rate=Money(adjusted, currency) if adjusted is not None else None,
        status=domain.SessionStatus(orm_session.status),
        notes=orm_session.notes,
        payout=_session_payout(orm_session),
        rejection_reason=orm_session.rejection_reason,
        approved_by=orm_session.approved_by,
        approved_at=as_utc(orm_session.approved_at),
        receipt_id=orm_session.receipt_id,
        paid_at=as_utc(orm_session.paid_at),
        payment_reference=orm_session.payment_reference,
        created_at=as_utc(orm_session.created_at),
        attachments=tuple(attachment_to_domain(a) for a in attachments),
    )


def _stored_totals(orm_row) -> domain.AggregateBreakdown:
    currency = orm_row.currency
    return domain.AggregateBreakdown(
        breakdown=domain.PayoutBreakdown(
            base_payout=Money(orm_row.base_payout_minor, currency),
            platform_fee=Money(orm_row.platform_fee_minor, currency),
            taxes=Money(orm_row.taxes_minor, currency),
            final_payout=Money(orm_row.final_payout_minor, currency),
        ),
        session_count=orm_row.session_count,
        total_minutes=orm_row.total_minutes,
    )


def receipt_to_domain(orm_receipt: ORMReceipt, session_ids: Sequence[int]) -> domain.Receipt:
    """Convert SQLAlchemy Receipt model to domain Receipt entity."""
    return domain.Receipt(
        id=orm_receipt.id,
        receipt_number=orm_receipt.receipt_number,
        mentor_id=orm_receipt.mentor_id,
        session_ids=tuple(session_ids),
        start_date=orm_receipt.start_date,
        end_date=orm_receipt.end_date,
        totals=_stored_totals(orm_receipt),
        status=domain.ReceiptStatus(orm_receipt.status),
        notes=orm_receipt.notes,
        created_by=orm_receipt.created_by,
        created_at=as_utc(orm_receipt.created_at),
        sent_at=as_utc(orm_receipt.sent_at),
        payment_reference=orm_receipt.payment_reference,
        payment_date=orm_receipt.payment_date,
        payout_id=orm_receipt.payout_id,
    )


def payout_to_domain(orm_payout: ORMPayout, receipt_ids: Sequence[int]) -> domain.Payout:
    """Convert SQLAlchemy Payout model to domain Payout entity."""
    return domain.Payout(
        id=orm_payout.id,
        payout_number=orm_payout.payout_number,
        mentor_id=orm_payout.mentor_id,
        receipt_ids=tuple(receipt_ids),
        start_date=orm_payout.start_date,
        end_date=orm_payout.end_date,
        totals=_stored_totals(orm_payout),
        status=domain.PayoutStatus(orm_payout.status),
        notes=orm_payout.notes,
        created_by=orm_payout.created_by,
        created_at=as_utc(orm_payout.created_at),
        payment_reference=orm_payout.payment_reference,
        payment_date=orm_payout.payment_date,
    )


def audit_entry_to_domain(orm_entry: ORMAuditLog) -> domain.AuditLogEntry:
    """Convert SQLAlchemy AuditLog model to domain AuditLogEntry entity."""
    changes = tuple(
        domain.FieldChange(field=c["field"], old=c.get("old"), new=c.get("new"))
        for c in (orm_entry.changes or [])
    )
    return domain.AuditLogEntry(
        id=orm_entry.id,
        entity_type=domain.EntityType(orm_entry.entity_type),
        entity_id=orm_entry.entity_id,
        action=orm_entry.action,
        actor_id=orm_entry.actor_id,
        changes=changes,
        description=orm_entry.description,
        created_at=as_utc(orm_entry.created_at),
    )
