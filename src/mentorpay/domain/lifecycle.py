"""Allowed status transitions for sessions, receipts and payouts."""

from mentorpay.domain.entities import PayoutStatus, ReceiptStatus, SessionStatus
from mentorpay.domain.errors import InvalidTransitionError, illegal_transition

# approved -> paid is driven only by the receipt payment cascade.
SESSION_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.APPROVED, SessionStatus.REJECTED}),
    SessionStatus.APPROVED: frozenset({SessionStatus.PAID}),
    SessionStatus.REJECTED: frozenset(),
    SessionStatus.PAID: frozenset(),
}

RECEIPT_TRANSITIONS: dict[ReceiptStatus, frozenset[ReceiptStatus]] = {
    ReceiptStatus.DRAFT: frozenset({ReceiptStatus.SENT}),
    ReceiptStatus.SENT: frozenset({ReceiptStatus.PAID}),
    ReceiptStatus.PAID: frozenset(),
}

PAYOUT_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.COMPLETED, PayoutStatus.CANCELLED}),
    PayoutStatus.COMPLETED: frozenset(),
    PayoutStatus.CANCELLED: frozenset(),
}


def assert_session_transition(session_id: int, current: SessionStatus, target: SessionStatus) -> None:
    if target not in SESSION_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            illegal_transition("session", session_id, current.value, target.value)
        )


def assert_receipt_transition(receipt_id: int, current: ReceiptStatus, target: ReceiptStatus) -> None:
    if target not in RECEIPT_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            illegal_transition("receipt", receipt_id, current.value, target.value)
        )


def assert_payout_transition(payout_id: int, current: PayoutStatus, target: PayoutStatus) -> None:
    if target not in PAYOUT_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            illegal_transition("payout", payout_id, current.value, target.value)
        )
