"""Payout bundling service.

A payout groups a mentor's sent or paid receipts over a date range into one
transfer with its own PAY number. A receipt belongs to at most one payout.
Completing a payout pays every receipt on it that is still awaiting payment.
"""

import logging
from datetime import UTC, date, datetime
from typing import Callable, Optional

from mentorpay.config import PayoutPolicy
from mentorpay.database.base import Database
from mentorpay.domain.access import require_admin, require_admin_or_owner, scope_mentor
from mentorpay.domain.audit import AuditLogService
from mentorpay.domain.entities import (
    Actor,
    AggregateBreakdown,
    EntityType,
    Payout,
    PayoutStatus,
    Receipt,
    ReceiptStatus,
)
from mentorpay.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NoEligibleReceiptsError,
    NotFoundError,
    ValidationError,
    illegal_transition,
    mentor_not_found,
    payout_not_found,
    receipts_already_bundled,
)
from mentorpay.domain.lifecycle import assert_payout_transition
from mentorpay.domain.payout import sum_breakdowns
from mentorpay.domain.receipt import ReceiptService, as_date, check_date_range
from mentorpay.domain.sequence import SequenceAllocator

logger = logging.getLogger(__name__)

_BUNDLEABLE = (ReceiptStatus.SENT, ReceiptStatus.PAID)


class PayoutService:
    """Service that bundles receipts into payouts and settles them."""

    def __init__(
        self,
        db: Database,
        policy: Optional[PayoutPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        receipts: Optional[ReceiptService] = None,
    ):
        """Initialize payout service.

        Args:
            db: Database instance
            policy: Fee, tax and numbering policy
            clock: Source of the current time, UTC
            receipts: Receipt service used to pay receipts on completion
        """
        self.db = db
        self.policy = policy or PayoutPolicy()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.receipts = receipts or ReceiptService(db, self.policy, clock=self.clock)
        self.allocator = SequenceAllocator(db, prefix=self.policy.payout_prefix)
        self.audit = AuditLogService(db)

    def _load(self, payout_id: int) -> Payout:
        payout = self.db.get_payout(payout_id)
        if payout is None:
            raise NotFoundError(payout_not_found(payout_id))
        return payout

    def _lost_race(self, payout_id: int, target: PayoutStatus) -> InvalidTransitionError:
        current = self._load(payout_id).status
        return InvalidTransitionError(
            illegal_transition("payout", payout_id, current.value, target.value)
        )

    def _eligible_receipts(self, mentor_id: int, start: date, end: date) -> list[Receipt]:
        receipts = self.db.list_receipts(
            mentor_id=mentor_id, start_date=start, end_date=end, unbundled_only=True
        )
        return sorted(
            (r for r in receipts if r.status in _BUNDLEABLE),
            key=lambda r: (r.start_date, r.id),
        )

    def create_payout(
        self,
        actor: Actor,
        mentor_id: int,
        start_date: date,
        end_date: date,
        notes: Optional[str] = None,
    ) -> Payout:
        """Bundle the mentor's sent or paid receipts that lie within a range.

        A receipt is in range when its own period starts on or after
        start_date and ends on or before end_date. The payout totals are
        the component-wise sum of the receipt totals.

        Raises:
            UnauthorizedError: If actor is not an admin
            NotFoundError: If the mentor does not exist
            ValidationError: If the date range is invalid
            NoEligibleReceiptsError: If no sent or paid receipt outside a
                payout is in range
            ConflictError: If another payout claimed some of the receipts first
        """
        require_admin(actor, "create payouts")
        start, end = check_date_range(start_date, end_date)
        mentor = self.db.get_mentor(mentor_id)
        if mentor is None:
            raise NotFoundError(mentor_not_found(mentor_id))
        currency = mentor.hourly_rate.currency

        receipts = self._eligible_receipts(mentor_id, start, end)
        if not receipts:
            raise NoEligibleReceiptsError(
                f"Mentor {mentor_id} has no sent or paid receipts outside a payout "
                f"between {start} and {end}"
            )
        totals = AggregateBreakdown(
            breakdown=sum_breakdowns((r.totals.breakdown for r in receipts), currency),
            session_count=sum(r.totals.session_count for r in receipts),
            total_minutes=sum(r.totals.total_minutes for r in receipts),
        )
        receipt_ids = [r.id for r in receipts]

        payout_number = self.allocator.next_number(self.clock())

        breakdown = totals.breakdown
        with self.db.transaction():
            payout_id = self.db.create_payout(
                payout_number=payout_number,
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
            claimed = self.db.claim_receipts(receipt_ids, payout_id, mentor_id)
            if len(claimed) != len(receipt_ids):
                lost = sorted(set(receipt_ids) - set(claimed))
                raise ConflictError(receipts_already_bundled(lost))
            self.audit.record(
                EntityType.PAYOUT,
                payout_id,
                "payout_created",
                actor.id,
                description=(
                    f"{payout_number}: {len(receipt_ids)} receipts, "
                    f"final payout {breakdown.final_payout}"
                ),
            )
        logger.info(
            "payout_created",
            extra={
                "payout_id": payout_id,
                "payout_number": payout_number,
                "mentor_id": mentor_id,
                "receipt_count": len(receipt_ids),
                "final_payout_minor": breakdown.final_payout.minor,
            },
        )
        return self._load(payout_id)

    def complete(
        self,
        actor: Actor,
        payout_id: int,
        payment_reference: str,
        payment_date: Optional[date] = None,
    ) -> Payout:
        """Record the transfer and pay every sent receipt on the payout.

        Receipts that were already paid keep their own reference. Repeating
        the call with the same reference after success returns the payout
        unchanged.

        Raises:
            UnauthorizedError: If actor is not an admin
            ValidationError: If the reference is empty
            InvalidTransitionError: If the payout is not pending
        """
        require_admin(actor, "complete payouts")
        reference = (payment_reference or "").strip()
        if not reference:
            raise ValidationError("A payment reference is required")
        paid_on = (
            as_date(payment_date, "Payment date") if payment_date is not None else self.clock().date()
        )

        payout = self._load(payout_id)
        if payout.status == PayoutStatus.COMPLETED and payout.payment_reference == reference:
            return payout
        assert_payout_transition(payout_id, payout.status, PayoutStatus.COMPLETED)

        paid = 0
        with self.db.transaction():
            moved = self.db.transition_payout(
                payout_id,
                PayoutStatus.PENDING,
                PayoutStatus.COMPLETED,
                values={"payment_reference": reference, "payment_date": paid_on},
            )
            if not moved:
                raise self._lost_race(payout_id, PayoutStatus.COMPLETED)
            for receipt_id in payout.receipt_ids:
                receipt = self.db.get_receipt(receipt_id)
                if receipt.status == ReceiptStatus.SENT:
                    self.receipts.mark_paid(actor, receipt_id, reference, paid_on)
                    paid += 1
            self.audit.record(
                EntityType.PAYOUT,
                payout_id,
                "completed",
                actor.id,
                description=(
                    f"Completed on {paid_on.isoformat()} with reference {reference}; "
                    f"paid {paid} receipts"
                ),
            )
        logger.info(
            "payout_completed",
            extra={"payout_id": payout_id, "actor_id": actor.id, "receipts_paid": paid},
        )
        return self._load(payout_id)

    def cancel(self, actor: Actor, payout_id: int, reason: Optional[str] = None) -> Payout:
        """Cancel a pending payout and release its receipts.

        Released receipts can be bundled into a new payout. The cancelled
        payout's number is not reused.

        Raises:
            UnauthorizedError: If actor is not an admin
            InvalidTransitionError: If the payout is not pending
        """
        require_admin(actor, "cancel payouts")
        payout = self._load(payout_id)
        assert_payout_transition(payout_id, payout.status, PayoutStatus.CANCELLED)

        with self.db.transaction():
            if not self.db.transition_payout(
                payout_id, PayoutStatus.PENDING, PayoutStatus.CANCELLED
            ):
                raise self._lost_race(payout_id, PayoutStatus.CANCELLED)
            released = self.db.release_receipts(payout_id)
            description = f"Cancelled {payout.payout_number}; released {released} receipts"
            if reason:
                description = f"{description}: {reason}"
            self.audit.record(
                EntityType.PAYOUT, payout_id, "cancelled", actor.id, description=description
            )
        logger.info(
            "payout_cancelled",
            extra={"payout_id": payout_id, "actor_id": actor.id, "released": released},
        )
        return self._load(payout_id)

    def get_payout(self, actor: Actor, payout_id: int) -> Payout:
        """Get a payout visible to actor."""
        payout = self._load(payout_id)
        require_admin_or_owner(actor, payout.mentor_id, "view this payout")
        return payout

    def get_payout_by_number(self, actor: Actor, payout_number: str) -> Payout:
        """Get a payout by its human-readable number."""
        payout = self.db.get_payout_by_number(payout_number)
        if payout is None:
            raise NotFoundError(payout_not_found(payout_number))
        require_admin_or_owner(actor, payout.mentor_id, "view this payout")
        return payout

    def list_payouts(
        self,
        actor: Actor,
        mentor_id: Optional[int] = None,
        status: Optional[PayoutStatus] = None,
    ) -> list[Payout]:
        """List payouts newest first. Mentors only see their own."""
        return self.db.list_payouts(
            mentor_id=scope_mentor(actor, mentor_id),
            status=PayoutStatus(status) if status is not None else None,
        )

    def list_payout_receipts(self, actor: Actor, payout_id: int) -> list[Receipt]:
        """List the receipts a payout bundles."""
        payout = self.get_payout(actor, payout_id)
        return [self.db.get_receipt(receipt_id) for receipt_id in payout.receipt_ids]
