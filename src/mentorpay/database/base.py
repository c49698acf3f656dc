"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Any
from datetime import date, datetime

# Import entities directly to avoid circular import through domain/__init__.py
from mentorpay.domain.entities import (
    AuditLogEntry,
    EntityType,
    Mentor,
    Payout,
    PayoutStatus,
    Receipt,
    ReceiptStatus,
    Session,
    SessionStatus,
)


class Database(ABC):
    """Abstract database interface for mentorpay.

    Writes join the unit of work opened by ``transaction()``; a write issued
    outside one runs in a unit of work of its own. Status changes are
    compare-and-set: they name the status they expect and report whether
    the row matched, so concurrent callers cannot both win.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Open (or join) a unit of work.

        Commits when the outermost block exits normally. An exception that
        escapes the outermost block rolls back everything done inside it.
        """
        pass

    # Sequence operations
    @abstractmethod
    def allocate_sequence(self, key: str) -> int:
        """Atomically increment the counter for key and return the new value.

        Runs and commits in its own unit of work, so a value handed out is
        never handed out again even if the caller later rolls back.
        """
        pass

    @abstractmethod
    def current_sequence(self, key: str) -> Optional[int]:
        """Return the last value allocated for key, or None."""
        pass

    # Mentor operations
    @abstractmethod
    def create_mentor(self, name: str, email: Optional[str], hourly_rate_minor: int, currency: str) -> int:
        """Create a mentor. Returns mentor ID."""
        pass

    @abstractmethod
    def get_mentor(self, mentor_id: int) -> Optional[Mentor]:
        """Get mentor by ID."""
        pass

    @abstractmethod
    def get_mentor_by_name(self, name: str) -> Optional[Mentor]:
        """Get mentor by name."""
        pass

    @abstractmethod
    def list_mentors(self) -> list[Mentor]:
        """List all mentors."""
        pass

    @abstractmethod
    def update_mentor_rate(self, mentor_id: int, hourly_rate_minor: int) -> None:
        """Update a mentor's hourly rate."""
        pass

    # Session operations
    @abstractmethod
    def create_session(
        self,
        mentor_id: int,
        session_type: str,
        start_time: datetime,
        end_time: datetime,
        duration_minutes: int,
        base_rate_minor: int,
        currency: str,
        notes: Optional[str] = None,
    ) -> int:
        """Create a pending session. Returns session ID."""
        pass

    @abstractmethod
    def get_session(self, session_id: int) -> Optional[Session]:
        """Get session by ID, including attachments."""
        pass

    @abstractmethod
    def list_sessions(
        self,
        mentor_id: Optional[int] = None,
        status: Optional[SessionStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        unclaimed_only: bool = False,
        receipt_id: Optional[int] = None,
    ) -> list[Session]:
        """List sessions ordered by start time.

        Args:
            mentor_id: Optional mentor filter
            status: Optional status filter
            start_date: Optional inclusive lower bound on the start time's date
            end_date: Optional inclusive upper bound on the start time's date
            unclaimed_only: If True, only sessions not attached to a receipt
            receipt_id: Optional filter on the owning receipt
        """
        pass

    @abstractmethod
    def update_session_fields(
        self, session_id: int, values: dict[str, Any], expected_statuses: tuple[SessionStatus, ...]
    ) -> bool:
        """Update session columns if the session is in one of expected_statuses.

        Returns True when a row was updated.
        """
        pass

    @abstractmethod
    def transition_session(
        self,
        session_id: int,
        from_status: SessionStatus,
        to_status: SessionStatus,
        values: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move a session from from_status to to_status, setting extra values.

        Returns True when the session was in from_status and has moved.
        """
        pass

    @abstractmethod
    def delete_session(self, session_id: int, expected_statuses: tuple[SessionStatus, ...]) -> bool:
        """Delete a session and its attachments if in one of expected_statuses."""
        pass

    @abstractmethod
    def claim_sessions(self, session_ids: list[int], receipt_id: int) -> list[int]:
        """Attach approved, unclaimed sessions to a receipt.

        Returns the IDs actually claimed; any ID missing from the result was
        already claimed or is no longer approved.
        """
        pass

    @abstractmethod
    def release_sessions(self, receipt_id: int) -> int:
        """Detach every session from a receipt. Returns the number released."""
        pass

    @abstractmethod
    def add_attachment(self, session_id: int, filename: str, path: str) -> int:
        """Add an attachment reference to a session. Returns attachment ID."""
        pass

    @abstractmethod
    def delete_attachment(self, session_id: int, attachment_id: int) -> bool:
        """Remove an attachment reference. Returns True if it existed."""
        pass

    @abstractmethod
    def get_session_stats(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict[str, Any]]:
        """Get per-status session statistics.

        Returns a list of dictionaries with status, currency, count, total_minutes
        and total_final_minor. This structure is kept as dict for aggregation results.
        """
        pass

    # Receipt operations
    @abstractmethod
    def create_receipt(
        self,
        receipt_number: str,
        mentor_id: int,
        start_date: date,
        end_date: date,
        currency: str,
        base_minor: int,
        fee_minor: int,
        taxes_minor: int,
        final_minor: int,
        session_count: int,
        total_minutes: int,
        created_by: int,
        notes: Optional[str] = None,
    ) -> int:
        """Create a draft receipt. Returns receipt ID."""
        pass

    @abstractmethod
    def get_receipt(self, receipt_id: int) -> Optional[Receipt]:
        """Get receipt by ID."""
        pass

    @abstractmethod
    def get_receipt_by_number(self, receipt_number: str) -> Optional[Receipt]:
        """Get receipt by its human-readable number."""
        pass

    @abstractmethod
    def list_receipts(
        self,
        mentor_id: Optional[int] = None,
        status: Optional[ReceiptStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        payment_start: Optional[date] = None,
        payment_end: Optional[date] = None,
        unbundled_only: bool = False,
    ) -> list[Receipt]:
        """List receipts, newest first.

        Args:
            mentor_id: Optional mentor filter
            status: Optional status filter
            start_date: Optional lower bound on the receipt's start date
            end_date: Optional upper bound on the receipt's end date
            payment_start: Optional lower bound on the payment date
            payment_end: Optional upper bound on the payment date
            unbundled_only: Only receipts that belong to no payout
        """
        pass

    @abstractmethod
    def update_receipt_fields(
        self, receipt_id: int, values: dict[str, Any], expected_status: ReceiptStatus
    ) -> bool:
        """Update receipt columns if the receipt is in expected_status."""
        pass

    @abstractmethod
    def transition_receipt(
        self,
        receipt_id: int,
        from_status: ReceiptStatus,
        to_status: ReceiptStatus,
        values: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move a receipt from from_status to to_status, setting extra values."""
        pass

    @abstractmethod
    def delete_receipt(self, receipt_id: int, expected_status: ReceiptStatus) -> bool:
        """Delete a receipt if it is in expected_status."""
        pass

    # Payout operations
    @abstractmethod
    def create_payout(
        self,
        payout_number: str,
        mentor_id: int,
        start_date: date,
        end_date: date,
        currency: str,
        base_minor: int,
        fee_minor: int,
        taxes_minor: int,
        final_minor: int,
        session_count: int,
        total_minutes: int,
        created_by: int,
        notes: Optional[str] = None,
    ) -> int:
        """Create a pending payout. Returns payout ID."""
        pass

    @abstractmethod
    def get_payout(self, payout_id: int) -> Optional[Payout]:
        """Get payout by ID."""
        pass

    @abstractmethod
    def get_payout_by_number(self, payout_number: str) -> Optional[Payout]:
        """Get payout by its human-readable number."""
        pass

    @abstractmethod
    def list_payouts(
        self, mentor_id: Optional[int] = None, status: Optional[PayoutStatus] = None
    ) -> list[Payout]:
        """List payouts, newest first."""
        pass

    @abstractmethod
    def claim_receipts(self, receipt_ids: list[int], payout_id: int, mentor_id: int) -> list[int]:
        """Attach sent or paid receipts of mentor_id that belong to no payout.

        Returns the IDs actually claimed; any ID missing from the result
        already belongs to a payout or is not eligible.
        """
        pass

    @abstractmethod
    def release_receipts(self, payout_id: int) -> int:
        """Detach every receipt from a payout. Returns the number released."""
        pass

    @abstractmethod
    def transition_payout(
        self,
        payout_id: int,
        from_status: PayoutStatus,
        to_status: PayoutStatus,
        values: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move a payout from from_status to to_status, setting extra values."""
        pass

    # Audit operations
    @abstractmethod
    def append_audit_entry(
        self,
        entity_type: EntityType,
        entity_id: int,
        action: str,
        actor_id: int,
        changes: Optional[list[dict[str, Any]]] = None,
        description: Optional[str] = None,
    ) -> int:
        """Append an audit entry. Returns entry ID. Entries are never updated."""
        pass

    @abstractmethod
    def list_audit_entries(
        self,
        entity_type: Optional[EntityType] = None,
        entity_id: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> list[AuditLogEntry]:
        """List audit entries oldest first."""
        pass
