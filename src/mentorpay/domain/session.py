"""Mentoring session domain service.

Sessions move pending -> approved | rejected, and approved -> paid only
through the payment of the receipt that owns them. Every change is written
together with its audit entry in one unit of work.
"""

import logging
from datetime import UTC, date, datetime
from typing import Callable, Optional

from mentorpay.config import PayoutPolicy
from mentorpay.database.base import Database
from mentorpay.domain.access import require_admin, require_admin_or_owner, require_owner, scope_mentor
from mentorpay.domain.audit import AuditLogService, diff_fields
from mentorpay.domain.entities import (
    Actor,
    Attachment,
    EntityType,
    Session,
    SessionPatch,
    SessionStatus,
    SessionStatusStats,
    SessionType,
)
from mentorpay.domain.errors import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    illegal_transition,
    mentor_not_found,
    session_not_editable,
    session_not_found,
)
from mentorpay.domain.lifecycle import assert_session_transition
from mentorpay.domain.money import Money

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (SessionStatus.PENDING, SessionStatus.REJECTED)


def _utc(value: datetime, name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a datetime, got {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def session_duration_minutes(start_time: datetime, end_time: datetime) -> int:
    """Return the session length in minutes, rounded half-up.

    Raises:
        ValidationError: If end is not after start or the session is under a minute
    """
    start = _utc(start_time, "Start time")
    end = _utc(end_time, "End time")
    if end <= start:
        raise ValidationError("End time must be after start time")
    delta = end - start
    seconds = delta.days * 86400 + delta.seconds
    minutes = (seconds + 30) // 60
    if minutes < 1:
        raise ValidationError("Session must last at least one minute")
    return minutes


def _parse_session_type(value: SessionType | str) -> SessionType:
    try:
        return SessionType(value)
    except ValueError:
        choices = ", ".join(t.value for t in SessionType)
        raise ValidationError(f"Unknown session type '{value}'. Supported: {choices}")


class SessionService:
    """Service for logging, editing and approving mentoring sessions."""

    def __init__(
        self,
        db: Database,
        policy: Optional[PayoutPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize session service.

        Args:
            db: Database instance
            policy: Fee and tax policy used when sessions are approved
            clock: Source of the current time, UTC
        """
        self.db = db
        self.policy = policy or PayoutPolicy()
        self.calculator = self.policy.calculator()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.audit = AuditLogService(db)

    def _load(self, session_id: int) -> Session:
        session = self.db.get_session(session_id)
        if session is None:
            raise NotFoundError(session_not_found(session_id))
        return session

    def _lost_race(self, session_id: int, target: SessionStatus) -> InvalidTransitionError:
        current = self._load(session_id).status
        return InvalidTransitionError(
            illegal_transition("session", session_id, current.value, target.value)
        )

    def _check_editable(self, session: Session) -> None:
        if not session.can_edit():
            raise InvalidStateError(session_not_editable(session.id, session.status.value))

    def create_session(
        self,
        actor: Actor,
        mentor_id: int,
        session_type: SessionType | str,
        start_time: datetime,
        end_time: datetime,
        notes: Optional[str] = None,
    ) -> Session:
        """Log a pending session for the acting mentor.

        The mentor's current hourly rate is copied onto the session and
        never changes afterwards.

        Raises:
            UnauthorizedError: If actor is not the mentor
            NotFoundError: If the mentor does not exist
            ValidationError: If the type or time window is invalid
        """
        require_owner(actor, mentor_id, "log sessions for this mentor")
        mentor = self.db.get_mentor(mentor_id)
        if mentor is None:
            raise NotFoundError(mentor_not_found(mentor_id))
        kind = _parse_session_type(session_type)
        start = _utc(start_time, "Start time")
        end = _utc(end_time, "End time")
        duration = session_duration_minutes(start, end)

        with self.db.transaction():
            session_id = self.db.create_session(
                mentor_id=mentor_id,
                session_type=kind.value,
                start_time=start,
                end_time=end,
                duration_minutes=duration,
                base_rate_minor=mentor.hourly_rate.minor,
                currency=mentor.hourly_rate.currency,
                notes=notes,
            )
            self.audit.record(
                EntityType.SESSION,
                session_id,
                "created",
                actor.id,
                description=f"{kind.value} session, {duration} minutes",
            )
        logger.info(
            "session_created",
            extra={"session_id": session_id, "mentor_id": mentor_id, "duration_minutes": duration},
        )
        return self._load(session_id)

    def get_session(self, actor: Actor, session_id: int) -> Session:
        """Get a session visible to actor.

        Raises:
            NotFoundError: If the session does not exist
            UnauthorizedError: If a mentor asks for another mentor's session
        """
        session = self._load(session_id)
        require_admin_or_owner(actor, session.mentor_id, "view this session")
        return session

    def list_sessions(
        self,
        actor: Actor,
        mentor_id: Optional[int] = None,
        status: Optional[SessionStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Session]:
        """List sessions by start time. Mentors only see their own."""
        return self.db.list_sessions(
            mentor_id=scope_mentor(actor, mentor_id),
            status=SessionStatus(status) if status is not None else None,
            start_date=start_date,
            end_date=end_date,
        )

    def update_session(self, actor: Actor, session_id: int, patch: SessionPatch) -> Session:
        """Apply a patch to a pending or rejected session.

        Only the fields of SessionPatch can change. Changing the time window
        recomputes the duration.

        Raises:
            UnauthorizedError: If actor is not the owning mentor
            InvalidStateError: If the session is approved or paid
            ValidationError: If the patched values are invalid
        """
        if not isinstance(patch, SessionPatch):
            raise ValidationError("Session updates must be given as a SessionPatch")
        session = self._load(session_id)
        require_owner(actor, session.mentor_id, "edit this session")
        self._check_editable(session)

        before = {
            "session_type": session.session_type,
            "start_time": session.start_time,
            "end_time": session.end_time,
            "duration_minutes": session.duration_minutes,
            "notes": session.notes,
        }
        after = dict(before)
        if patch.session_type is not None:
            after["session_type"] = _parse_session_type(patch.session_type)
        if patch.start_time is not None:
            after["start_time"] = _utc(patch.start_time, "Start time")
        if patch.end_time is not None:
            after["end_time"] = _utc(patch.end_time, "End time")
        if patch.notes is not None:
            after["notes"] = patch.notes
        after["duration_minutes"] = session_duration_minutes(after["start_time"], after["end_time"])

        changes = diff_fields(before, after)
        if not changes:
            return session

        values = {change.field: after[change.field] for change in changes}
        if "session_type" in values:
            values["session_type"] = values["session_type"].value
        with self.db.transaction():
            if not self.db.update_session_fields(session_id, values, EDITABLE_STATUSES):
                current = self._load(session_id)
                raise InvalidStateError(session_not_editable(session_id, current.status.value))
            self.audit.record(EntityType.SESSION, session_id, "updated", actor.id, changes=changes)
        logger.info(
            "session_updated",
            extra={"session_id": session_id, "fields": [c.field for c in changes]},
        )
        return self._load(session_id)

    def delete_session(self, actor: Actor, session_id: int) -> None:
        """Delete a pending or rejected session.

        Raises:
            UnauthorizedError: If actor is not the owning mentor
            InvalidStateError: If the session is approved or paid
        """
        session = self._load(session_id)
        require_owner(actor, session.mentor_id, "delete this session")
        self._check_editable(session)

        with self.db.transaction():
            if not self.db.delete_session(session_id, EDITABLE_STATUSES):
                current = self._load(session_id)
                raise InvalidStateError(session_not_editable(session_id, current.status.value))
            self.audit.record(
                EntityType.SESSION,
                session_id,
                "deleted",
                actor.id,
                description=f"Deleted {session.status.value} session",
            )
        logger.info("session_deleted", extra={"session_id": session_id, "actor_id": actor.id})

    def set_adjusted_rate(self, actor: Actor, session_id: int, rate: Optional[Money]) -> Session:
        """Override (or with None, clear) the hourly rate of a pending session.

        Raises:
            UnauthorizedError: If actor is not an admin
            InvalidStateError: If the session is no longer pending
            ValidationError: If the rate is not positive or in another currency
        """
        require_admin(actor, "adjust session rates")
        session = self._load(session_id)
        if session.status != SessionStatus.PENDING:
            raise InvalidStateError(
                f"Session {session_id} is '{session.status.value}'; "
                "only pending sessions can have their rate adjusted"
            )
        if rate is not None:
            if not isinstance(rate, Money) or not rate.is_positive():
                raise ValidationError(f"Adjusted rate must be a positive amount, got {rate}")
            if rate.currency != session.base_rate.currency:
                raise ValidationError(
                    f"Adjusted rate must be in {session.base_rate.currency}, got {rate.currency}"
                )

        changes = diff_fields({"adjusted_rate": session.adjusted_rate}, {"adjusted_rate": rate})
        if not changes:
            return session

        with self.db.transaction():
            updated = self.db.update_session_fields(
                session_id,
                {"adjusted_rate_minor": rate.minor if rate is not None else None},
                (SessionStatus.PENDING,),
            )
            if not updated:
                raise self._lost_race(session_id, SessionStatus.APPROVED)
            self.audit.record(EntityType.SESSION, session_id, "rate_adjusted", actor.id, changes=changes)
        logger.info("session_rate_adjusted", extra={"session_id": session_id, "actor_id": actor.id})
        return self._load(session_id)

    def _touch_editable(self, session_id: int) -> None:
        # Guarded write that fails if the session left an editable status.
        if not self.db.update_session_fields(session_id, {"updated_at": self.clock()}, EDITABLE_STATUSES):
            current = self._load(session_id)
            raise InvalidStateError(session_not_editable(session_id, current.status.value))

    def add_attachment(self, actor: Actor, session_id: int, filename: str, path: str) -> Attachment:
        """Record a reference to a file kept by the storage collaborator.

        Raises:
            UnauthorizedError: If actor is not the owning mentor
            InvalidStateError: If the session is approved or paid
            ValidationError: If filename or path is empty
        """
        session = self._load(session_id)
        require_owner(actor, session.mentor_id, "attach files to this session")
        self._check_editable(session)
        if not filename or not path:
            raise ValidationError("Attachment filename and path are required")

        with self.db.transaction():
            self._touch_editable(session_id)
            attachment_id = self.db.add_attachment(session_id, filename, path)
            self.audit.record(
                EntityType.SESSION,
                session_id,
                "attachment_added",
                actor.id,
                changes=diff_fields({"attachment": None}, {"attachment": filename}),
            )
        logger.info(
            "session_attachment_added",
            extra={"session_id": session_id, "attachment_id": attachment_id},
        )
        return next(a for a in self._load(session_id).attachments if a.id == attachment_id)

    def remove_attachment(self, actor: Actor, session_id: int, attachment_id: int) -> None:
        """Remove an attachment reference from a session.

        Raises:
            UnauthorizedError: If actor is not the owning mentor
            InvalidStateError: If the session is approved or paid
            NotFoundError: If the attachment does not belong to the session
        """
        session = self._load(session_id)
        require_owner(actor, session.mentor_id, "remove files from this session")
        self._check_editable(session)
        attachment = next((a for a in session.attachments if a.id == attachment_id), None)
        if attachment is None:
            raise NotFoundError(f"Attachment {attachment_id} not found on session {session_id}")

        with self.db.transaction():
            self._touch_editable(session_id)
            if not self.db.delete_attachment(session_id, attachment_id):
                raise NotFoundError(f"Attachment {attachment_id} not found on session {session_id}")
            self.audit.record(
                EntityType.SESSION,
                session_id,
                "attachment_removed",
                actor.id,
                changes=diff_fields({"attachment": attachment.filename}, {"attachment": None}),
            )
        logger.info(
            "session_attachment_removed",
            extra={"session_id": session_id, "attachment_id": attachment_id},
        )

    def approve(self, actor: Actor, session_id: int) -> Session:
        """Approve a pending session and lock in its payout breakdown.

        The breakdown uses the adjusted rate when one is set, else the base
        rate copied at creation.

        Raises:
            UnauthorizedError: If actor is not an admin
            InvalidTransitionError: If the session is not pending
        """
        require_admin(actor, "approve sessions")
        session = self._load(session_id)
        assert_session_transition(session_id, session.status, SessionStatus.APPROVED)
        payout = self.calculator.for_session(session.effective_rate, session.duration_minutes)
        now = self.clock()

        with self.db.transaction():
            moved = self.db.transition_session(
                session_id,
                SessionStatus.PENDING,
                SessionStatus.APPROVED,
                values={
                    "base_payout_minor": payout.base_payout.minor,
                    "platform_fee_minor": payout.platform_fee.minor,
                    "taxes_minor": payout.taxes.minor,
                    "final_payout_minor": payout.final_payout.minor,
                    "approved_by": actor.id,
                    "approved_at": now,
                },
            )
            if not moved:
                raise self._lost_race(session_id, SessionStatus.APPROVED)
            self.audit.record(
                EntityType.SESSION,
                session_id,
                "approved",
                actor.id,
                description=f"Approved; final payout {payout.final_payout}",
            )
        logger.info(
            "session_approved",
            extra={
                "session_id": session_id,
                "actor_id": actor.id,
                "final_payout_minor": payout.final_payout.minor,
            },
        )
        return self._load(session_id)

    def reject(self, actor: Actor, session_id: int, reason: str) -> Session:
        """Reject a pending session. Rejection is final.

        Raises:
            UnauthorizedError: If actor is not an admin
            ValidationError: If reason is empty
            InvalidTransitionError: If the session is not pending
        """
        require_admin(actor, "reject sessions")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")
        session = self._load(session_id)
        assert_session_transition(session_id, session.status, SessionStatus.REJECTED)

        with self.db.transaction():
            moved = self.db.transition_session(
                session_id,
                SessionStatus.PENDING,
                SessionStatus.REJECTED,
                values={"rejection_reason": reason},
            )
            if not moved:
                raise self._lost_race(session_id, SessionStatus.REJECTED)
            self.audit.record(
                EntityType.SESSION, session_id, "rejected", actor.id, description=reason
            )
        logger.info("session_rejected", extra={"session_id": session_id, "actor_id": actor.id})
        return self._load(session_id)

    def mark_paid(
        self, session_id: int, payment_reference: str, paid_at: datetime, actor_id: int
    ) -> None:
        """Move an approved session to paid.

        Internal: only the receipt payment cascade calls this, inside the
        receipt's unit of work, so a failure here rolls the receipt back too.

        Raises:
            InvalidTransitionError: If the session is not approved
        """
        session = self._load(session_id)
        assert_session_transition(session_id, session.status, SessionStatus.PAID)

        with self.db.transaction():
            moved = self.db.transition_session(
                session_id,
                SessionStatus.APPROVED,
                SessionStatus.PAID,
                values={"paid_at": paid_at, "payment_reference": payment_reference},
            )
            if not moved:
                raise self._lost_race(session_id, SessionStatus.PAID)
            self.audit.record(
                EntityType.SESSION,
                session_id,
                "paid",
                actor_id,
                description=f"Paid with reference {payment_reference}",
            )
        logger.info("session_paid", extra={"session_id": session_id, "actor_id": actor_id})

    def get_session_stats(
        self, actor: Actor, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[SessionStatusStats]:
        """Session count, minutes and final payout per status.

        Raises:
            UnauthorizedError: If actor is not an admin
        """
        require_admin(actor, "view session statistics")
        rows = self.db.get_session_stats(start_date=start_date, end_date=end_date)
        return [
            SessionStatusStats(
                status=SessionStatus(row["status"]),
                count=row["count"],
                total_minutes=row["total_minutes"],
                total_final_payout=Money(row["total_final_minor"], row["currency"]),
            )
            for row in rows
        ]
