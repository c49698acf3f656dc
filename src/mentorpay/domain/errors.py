"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a session already claimed by a receipt."""


class InvalidTransitionError(DomainError):
    """Requested status change is not allowed from the current status."""


class InvalidStateError(DomainError):
    """Entity is in a status that forbids the requested edit or delete."""


class UnauthorizedError(DomainError):
    """Acting identity lacks the role or ownership for the operation."""


class NoEligibleSessionsError(DomainError):
    """No approved, unclaimed sessions matched a receipt request."""


class NoEligibleReceiptsError(DomainError):
    """No sent or paid receipt outside a payout matched a payout request."""


# Glossary names
InvalidInput = ValidationError
NotFound = NotFoundError
Conflict = ConflictError
InvalidTransition = InvalidTransitionError
InvalidState = InvalidStateError
Unauthorized = UnauthorizedError
NoEligibleSessions = NoEligibleSessionsError


def mentor_not_found(mentor_id: int) -> str:
    """Return message for missing mentor."""
    return f"Mentor {mentor_id} not found"


def session_not_found(session_id: int) -> str:
    """Return message for missing session."""
    return f"Session {session_id} not found"


def receipt_not_found(receipt_id: int | str) -> str:
    """Return message for missing receipt by ID or number."""
    return f"Receipt {receipt_id} not found"


def payout_not_found(payout_id: int | str) -> str:
    """Return message for missing payout by ID or number."""
    return f"Payout {payout_id} not found"


def illegal_transition(entity: str, entity_id: int, current: str, target: str) -> str:
    """Return message for a status change the lifecycle does not allow."""
    return f"Cannot move {entity} {entity_id} from '{current}' to '{target}'"


def receipt_not_draft(receipt_id: int, status: str) -> str:
    """Return message when a receipt edit is attempted outside draft."""
    return f"Receipt {receipt_id} is '{status}'; only draft receipts can be changed"


def session_not_editable(session_id: int, status: str) -> str:
    """Return message when a session edit is attempted after approval."""
    return f"Session {session_id} is '{status}' and can no longer be edited"


def sessions_already_claimed(session_ids: list[int]) -> str:
    """Return message when sessions were claimed by another receipt."""
    joined = ", ".join(str(s) for s in session_ids)
    return (
        f"Session{'s' if len(session_ids) != 1 else ''} {joined} "
        "already belong to another receipt"
    )


def receipts_already_bundled(receipt_ids: list[int]) -> str:
    """Return message when receipts were claimed by another payout."""
    joined = ", ".join(str(r) for r in receipt_ids)
    return (
        f"Receipt{'s' if len(receipt_ids) != 1 else ''} {joined} "
        "already belong to another payout"
    )
