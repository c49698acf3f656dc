"""Receipt aggregation and lifecycle service.

A receipt gathers a mentor's approved, unclaimed sessions over a date range
and carries their summed payout through draft -> sent -> paid. Paying a
receipt pays every session it owns in the same unit of work.
"""

import logging
from datetime import UTC, date, datetime
from typing import Callable, Optional

from mentorpay.config import PayoutPolicy
from mentorpay.database.base import Database
from mentorpay.domain.access import require_admin, require_admin_or_owner, scope_mentor
from mentorpay.domain.audit import AuditLogService, diff_fields
from mentorpay.domain.entities import (
    Actor,
    AggregateBreakdown,
    EntityType,
    PayoutSummary,
    Receipt,
    ReceiptPatch,
    ReceiptSentEvent,
    ReceiptStatus,
    Session,
    SessionStatus,
)
from mentorpay.domain.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NoEligibleSessionsError,
    NotFoundError,
    ValidationError,
    illegal_transition,
    mentor_not_found,
    receipt_not_draft,
    receipt_not_found,
    sessions_already_claimed,
)
from mentorpay.domain.lifecycle import assert_receipt_transition
from mentorpay.domain.notifications import LoggingNotifier, ReceiptNotifier
from mentorpay.domain.payout import sum_breakdowns
from mentorpay.domain.sequence import SequenceAllocator
from mentorpay.domain.session import SessionService

logger = logging.getLogger(__name__)


def as_date(value: date, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise ValidationError(f"{name} must be a date, got {value!r}")
    return value


def check_date_range(start_date: date, end_date: date) -> tuple[date, date]:
    start = as_date(start_date, "Start date")
    end = as_date(end_date, "End date")
    if start > end:
        raise ValidationError(f"Start date {start} is after end date {end}")
    return start, end


class ReceiptService:
    """Service that turns approved sessions into receipts and pays them."""

    def __init__(
        self,
        db: Database,
        policy: Optional[PayoutPolicy] = None,
        notifier: Optional[ReceiptNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sessions: Optional[SessionService] = None,
    ):
        """Initialize receipt service.

        Args:
            db: Database instance
            policy: Fee, tax and numbering policy
            notifier: Receives an event when a receipt is sent
            clock: Source of the current time, UTC
            sessions: Session service used for the payment cascade
        """
        self.db = db
        self.policy = policy or PayoutPolicy()
        self.calculator = self.policy.calculator()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.sessions = sessions or SessionService(db, self.policy, self.clock)
        self.allocator = SequenceAllocator(db, prefix=self.policy.receipt_prefix)
        self.audit = AuditLogService(db)

    def _load(self, receipt_id: int) -> Receipt:
        receipt = self.db.get_receipt(receipt_id)
        if receipt is None:
            raise NotFoundError(receipt_not_found(receipt_id))
        return receipt

    def _lost_race(self, receipt_id: int, target: ReceiptStatus) -> InvalidTransitionError:
        current = self._load(receipt_id).status
        return InvalidTransitionError(
            illegal_transition("receipt", receipt_id, current.value, target.value)
        )

    def _eligible_sessions(self, mentor_id: int, start: date, end: date) -> list[Session]:
        return self.db.list_sessions(
            mentor_id=mentor_id,
            status=SessionStatus.APPROVED,
            start_date=start,
            end_date=end,
            unclaimed_only=True,
        )

    def _mentor_currency(self, mentor_id: int) -> str:
        mentor = self.db.get_mentor(mentor_id)
        if mentor is None:
            raise NotFoundError(mentor_not_found(mentor_id))
        return mentor.hourly_rate.currency

    def generate_receipt(
        self,
        actor: Actor,
        mentor_id: int,
        start_date: date,
        end_date: date,
        notes: Optional[str] = None,
    ) -> Receipt:
        """Create a draft receipt from the mentor's approved, unclaimed sessions.

        The totals are the component-wise sum of the breakdowns stored when
        each session was approved. The receipt number is allocated only once
        sessions are known to be eligible; if the receipt cannot be written
        afterwards, that number is never reused.

        Args:
            actor: Admin or the mentor themself
            mentor_id: Mentor whose sessions are aggregated
            start_date: First day, inclusive, of session start times
            end_date: Last day, inclusive, of session start times
            notes: Optional free text

        Returns:
            The draft receipt

        Raises:
            UnauthorizedError: If actor is neither admin nor the mentor
            NotFoundError: If the mentor does not exist
            ValidationError: If the date range is invalid
            NoEligibleSessionsError: If no approved, unclaimed session is in range
            ConflictError: If another receipt claimed some of the sessions first
        """
        require_admin_or_owner(actor, mentor_id, "generate receipts for this mentor")
        start, end = check_date_range(start_date, end_date)
        currency = self._mentor_currency(mentor_id)

        sessions = self._eligible_sessions(mentor_id, start, end)
        if not sessions:
            raise NoEligibleSessionsError(
                f"Mentor {mentor_id} has no approved, unclaimed sessions between {start} and {end}"
            )
        totals = self.calculator.aggregate(sessions, currency)
        session_ids = [s.id for s in sessions]

        receipt_number = self.allocator.next_number(self.clock())

        breakdown = totals.breakdown
        with self.db.transaction():
            receipt_id = self.db.create_receipt(
                receipt_number=receipt_number,
                mentor_id=mentor_id,
                start_date=start,
                end_date=end,
                currency=currency,
                base_minor=breakdown.base_payout.minor,
                fee_minor=breakdown.platform_fee.minor,
                taxes_minor=breakdown.taxes.minor,
                final_minor=breakdown.final_payout.minor,
                session_count=totals.session_count,
                total_minutes=totals.total_minutes,
                created_by=actor.id,
                notes=notes,
            )
            claimed = self.db.claim_sessions(session_ids, receipt_id)
            if len(claimed) != len(session_ids):
                lost = sorted(set(session_ids) - set(claimed))
                raise ConflictError(sessions_already_claimed(lost))
            self.audit.record(
                EntityType.RECEIPT,
                receipt_id,
                "receipt_created",
                actor.id,
                description=(
                    f"{receipt_number}: {totals.session_count} sessions, "
                    f"final payout {breakdown.final_payout}"
                ),
            )
        logger.info(
            "receipt_created",
            extra={
                "receipt_id": receipt_id,
                "receipt_number": receipt_number,
                "mentor_id": mentor_id,
                "session_count": totals.session_count,
                "final_payout_minor": breakdown.final_payout.minor,
            },
        )
        return self._load(receipt_id)

    def simulate_payout(
        self, actor: Actor, mentor_id: int, start_date: date, end_date: date
    ) -> AggregateBreakdown:
        """Return the totals a receipt over the range would carry right now.

        Nothing is written: no receipt, no number and no audit entry. An
        empty range yields zero totals.
        """
        require_admin_or_owner(actor, mentor_id, "simulate payouts for this mentor")
        start, end = check_date_range(start_date, end_date)
        currency = self._mentor_currency(mentor_id)
        return self.calculator.aggregate(self._eligible_sessions(mentor_id, start, end), currency)

    def send(self, actor: Actor, receipt_id: int) -> Receipt:
        """Move a draft receipt to sent and notify.

        A failing notifier is logged; the receipt stays sent.

        Raises:
            UnauthorizedError: If actor is neither admin nor the owning mentor
            InvalidTransitionError: If the receipt is not a draft
        """
        receipt = self._load(receipt_id)
        require_admin_or_owner(actor, receipt.mentor_id, "send this receipt")
        assert_receipt_transition(receipt_id, receipt.status, ReceiptStatus.SENT)
        now = self.clock()

        with self.db.transaction():
            moved = self.db.transition_receipt(
                receipt_id, ReceiptStatus.DRAFT, ReceiptStatus.SENT, values={"sent_at": now}
            )
            if not moved:
                raise self._lost_race(receipt_id, ReceiptStatus.SENT)
            self.audit.record(
                EntityType.RECEIPT,
                receipt_id,
                "sent",
                actor.id,
                description=f"Sent {receipt.receipt_number}",
            )
        logger.info(
            "receipt_sent", extra={"receipt_id": receipt_id, "actor_id": actor.id}
        )

        sent = self._load(receipt_id)
        event = ReceiptSentEvent(
            receipt_id=sent.id,
            receipt_number=sent.receipt_number,
            mentor_id=sent.mentor_id,
            totals=sent.totals.breakdown,
            sent_at=sent.sent_at,
        )
        try:
            self.notifier.receipt_sent(event)
        except Exception:
            logger.exception("receipt_notification_failed", extra={"receipt_id": receipt_id})
        return sent

    def mark_paid(
        self,
        actor: Actor,
        receipt_id: int,
        payment_reference: str,
        payment_date: Optional[date] = None,
    ) -> Receipt:
        """Record payment of a sent receipt and of every session on it.

        The receipt and all of its sessions move to paid together or not at
        all. Repeating the call with the same reference after success
        returns the paid receipt without further effects.

        Raises:
            UnauthorizedError: If actor is not an admin
            ValidationError: If the reference is empty
            InvalidTransitionError: If the receipt is not sent, or a session
                on it is no longer approved
        """
        require_admin(actor, "mark receipts paid")
        reference = (payment_reference or "").strip()
        if not reference:
            raise ValidationError("A payment reference is required")
        now = self.clock()
        paid_on = as_date(payment_date, "Payment date") if payment_date is not None else now.date()

        receipt = self._load(receipt_id)
        if receipt.status == ReceiptStatus.PAID and receipt.payment_reference == reference:
            return receipt
        assert_receipt_transition(receipt_id, receipt.status, ReceiptStatus.PAID)

        with self.db.transaction():
            moved = self.db.transition_receipt(
                receipt_id,
                ReceiptStatus.SENT,
                ReceiptStatus.PAID,
                values={"payment_reference": reference, "payment_date": paid_on},
            )
            if not moved:
                raise self._lost_race(receipt_id, ReceiptStatus.PAID)
            self.audit.record(
                EntityType.RECEIPT,
                receipt_id,
                "paid",
                actor.id,
                description=f"Paid on {paid_on.isoformat()} with reference {reference}",
            )
            for session_id in receipt.session_ids:
                self.sessions.mark_paid(session_id, reference, now, actor.id)
        logger.info(
            "receipt_paid",
            extra={
                "receipt_id": receipt_id,
                "actor_id": actor.id,
                "session_count": len(receipt.session_ids),
            },
        )
        return self._load(receipt_id)

    def update(self, actor: Actor, receipt_id: int, patch: ReceiptPatch) -> Receipt:
        """Apply a patch to a draft receipt.

        Raises:
            UnauthorizedError: If actor is neither admin nor the owning mentor
            InvalidStateError: If the receipt is not a draft
        """
        if not isinstance(patch, ReceiptPatch):
            raise ValidationError("Receipt updates must be given as a ReceiptPatch")
        receipt = self._load(receipt_id)
        require_admin_or_owner(actor, receipt.mentor_id, "edit this receipt")
        if not receipt.can_edit():
            raise InvalidStateError(receipt_not_draft(receipt_id, receipt.status.value))

        after = {"notes": patch.notes if patch.notes is not None else receipt.notes}
        changes = diff_fields({"notes": receipt.notes}, after)
        if not changes:
            return receipt

        with self.db.transaction():
            if not self.db.update_receipt_fields(receipt_id, after, ReceiptStatus.DRAFT):
                current = self._load(receipt_id)
                raise InvalidStateError(receipt_not_draft(receipt_id, current.status.value))
            self.audit.record(EntityType.RECEIPT, receipt_id, "updated", actor.id, changes=changes)
        logger.info("receipt_updated", extra={"receipt_id": receipt_id, "actor_id": actor.id})
        return self._load(receipt_id)

    def delete(self, actor: Actor, receipt_id: int) -> None:
        """Delete a draft receipt and release its sessions.

        The released sessions become eligible for a new receipt. The deleted
        receipt's number is not reused.

        Raises:
            UnauthorizedError: If actor is neither admin nor the owning mentor
            InvalidStateError: If the receipt is not a draft
        """
        receipt = self._load(receipt_id)
        require_admin_or_owner(actor, receipt.mentor_id, "delete this receipt")
        if not receipt.can_edit():
            raise InvalidStateError(receipt_not_draft(receipt_id, receipt.status.value))

        with self.db.transaction():
            released = self.db.release_sessions(receipt_id)
            if not self.db.delete_receipt(receipt_id, ReceiptStatus.DRAFT):
                current = self._load(receipt_id)
                raise InvalidStateError(receipt_not_draft(receipt_id, current.status.value))
            self.audit.record(
                EntityType.RECEIPT,
                receipt_id,
                "deleted",
                actor.id,
                description=f"Deleted {receipt.receipt_number}; released {released} sessions",
            )
        logger.info(
            "receipt_deleted",
            extra={"receipt_id": receipt_id, "actor_id": actor.id, "released": released},
        )

    def get_receipt(self, actor: Actor, receipt_id: int) -> Receipt:
        """Get a receipt visible to actor."""
        receipt = self._load(receipt_id)
        require_admin_or_owner(actor, receipt.mentor_id, "view this receipt")
        return receipt

    def get_receipt_by_number(self, actor: Actor, receipt_number: str) -> Receipt:
        """Get a receipt by its human-readable number."""
        receipt = self.db.get_receipt_by_number(receipt_number)
        if receipt is None:
            raise NotFoundError(receipt_not_found(receipt_number))
        require_admin_or_owner(actor, receipt.mentor_id, "view this receipt")
        return receipt

    def list_receipts(
        self,
        actor: Actor,
        mentor_id: Optional[int] = None,
        status: Optional[ReceiptStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Receipt]:
        """List receipts newest first. Mentors only see their own."""
        return self.db.list_receipts(
            mentor_id=scope_mentor(actor, mentor_id),
            status=ReceiptStatus(status) if status is not None else None,
            start_date=start_date,
            end_date=end_date,
        )

    def list_receipt_sessions(self, actor: Actor, receipt_id: int) -> list[Session]:
        """List the sessions a receipt owns, by start time."""
        receipt = self.get_receipt(actor, receipt_id)
        return self.db.list_sessions(receipt_id=receipt.id)

    def list_pending_payouts(self, actor: Actor, mentor_id: Optional[int] = None) -> list[Receipt]:
        """List sent receipts still awaiting payment."""
        return self.list_receipts(actor, mentor_id=mentor_id, status=ReceiptStatus.SENT)

    def get_payout_summary(
        self,
        actor: Actor,
        mentor_id: Optional[int] = None,
        payment_start: Optional[date] = None,
        payment_end: Optional[date] = None,
    ) -> PayoutSummary:
        """Totals over paid receipts, optionally limited by payment date."""
        receipts = self.db.list_receipts(
            mentor_id=scope_mentor(actor, mentor_id),
            status=ReceiptStatus.PAID,
            payment_start=payment_start,
            payment_end=payment_end,
        )
        return PayoutSummary(
            receipt_count=len(receipts),
            session_count=sum(r.totals.session_count for r in receipts),
            total_minutes=sum(r.totals.total_minutes for r in receipts),
            totals=sum_breakdowns((r.totals.breakdown for r in receipts), self.policy.currency),
        )
