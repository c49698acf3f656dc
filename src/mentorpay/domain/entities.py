"""Domain model entities for mentorpay.

These are pure data classes representing business concepts, independent of
database schema. Services return them; the database layer maps ORM rows to
them so that business rules never see persistence objects.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from enum import Enum
from typing import Any, Optional

from mentorpay.domain.money import Money


class Role(str, Enum):
    """Role supplied by the identity provider."""

    MENTOR = "mentor"
    ADMIN = "admin"


class SessionType(str, Enum):
    """Kind of mentoring work."""

    LIVE = "live"
    EVALUATION = "evaluation"
    RECORDING_REVIEW = "recording_review"


class SessionStatus(str, Enum):
    """Session lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class ReceiptStatus(str, Enum):
    """Receipt lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"


class PayoutStatus(str, Enum):
    """Payout lifecycle states."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EntityType(str, Enum):
    """Entity kinds that carry an audit history."""

    MENTOR = "mentor"
    SESSION = "session"
    RECEIPT = "receipt"
    PAYOUT = "payout"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, as supplied by the identity provider."""

    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class Mentor:
    """Mentor domain entity."""

    id: int
    name: str
    email: Optional[str]
    hourly_rate: Money
    created_at: datetime


@dataclass(frozen=True)
class PayoutBreakdown:
    """Base, platform fee, taxes and final amount of a payout."""

    base_payout: Money
    platform_fee: Money
    taxes: Money
    final_payout: Money

    @property
    def currency(self) -> str:
        return self.base_payout.currency


@dataclass(frozen=True)
class AggregateBreakdown:
    """Component-wise sum of per-session breakdowns."""

    breakdown: PayoutBreakdown
    session_count: int
    total_minutes: int


@dataclass(frozen=True)
class Attachment:
    """Reference to a file held by the external storage collaborator."""

    id: int
    session_id: int
    filename: str
    path: str
    uploaded_at: datetime


@dataclass(frozen=True)
class Session:
    """Mentoring session domain entity."""

    id: int
    mentor_id: int
    session_type: SessionType
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    base_rate: Money
    adjusted_rate: Optional[Money]
    status: SessionStatus
    notes: Optional[str]
    payout: Optional[PayoutBreakdown]
    rejection_reason: Optional[str]
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    receipt_id: Optional[int]
    paid_at: Optional[datetime]
    payment_reference: Optional[str]
    created_at: datetime
    attachments: tuple[Attachment, ...] = ()

    @property
    def effective_rate(self) -> Money:
        """Rate used for payout: the adjusted rate when set, else the base rate."""
        return self.adjusted_rate if self.adjusted_rate is not None else self.base_rate

    def can_edit(self) -> bool:
        return self.status in (SessionStatus.PENDING, SessionStatus.REJECTED)


@dataclass(frozen=True)
class Receipt:
    """Receipt domain entity."""

    id: int
    receipt_number: str
    mentor_id: int
    session_ids: tuple[int, ...]
    start_date: date
    end_date: date
    totals: AggregateBreakdown
    status: ReceiptStatus
    notes: Optional[str]
    created_by: int
    created_at: datetime
    sent_at: Optional[datetime]
    payment_reference: Optional[str]
    payment_date: Optional[date]
    payout_id: Optional[int] = None

    def can_edit(self) -> bool:
        return self.status == ReceiptStatus.DRAFT


@dataclass(frozen=True)
class Payout:
    """Bundle of a mentor's sent or paid receipts settled as one transfer."""

    id: int
    payout_number: str
    mentor_id: int
    receipt_ids: tuple[int, ...]
    start_date: date
    end_date: date
    totals: AggregateBreakdown
    status: PayoutStatus
    notes: Optional[str]
    created_by: int
    created_at: datetime
    payment_reference: Optional[str]
    payment_date: Optional[date]


@dataclass(frozen=True)
class FieldChange:
    """Before/after value of one field in an update."""

    field: str
    old: Any
    new: Any


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only history record for a mentor, session, receipt or payout."""

    id: int
    entity_type: EntityType
    entity_id: int
    action: str
    actor_id: int
    changes: tuple[FieldChange, ...]
    description: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class SessionPatch:
    """Whitelisted mutable session fields. None means "leave unchanged"."""

    session_type: Optional[SessionType] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ReceiptPatch:
    """Whitelisted mutable fields of a draft receipt."""

    notes: Optional[str] = None


@dataclass(frozen=True)
class SessionStatusStats:
    """Per-status session counts for the admin dashboard."""

    status: SessionStatus
    count: int
    total_minutes: int
    total_final_payout: Money


@dataclass(frozen=True)
class PayoutSummary:
    """Totals over paid receipts."""

    receipt_count: int
    session_count: int
    total_minutes: int
    totals: PayoutBreakdown


@dataclass(frozen=True)
class ReceiptSentEvent:
    """Payload handed to the notification collaborator."""

    receipt_id: int
    receipt_number: str
    mentor_id: int
    totals: PayoutBreakdown
    sent_at: datetime = field(compare=False)
