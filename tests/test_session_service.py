"""Tests for SessionService."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from mentorpay.domain.entities import Actor, Role, SessionPatch, SessionStatus, SessionType
from mentorpay.domain.errors import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from mentorpay.domain.money import Money
from mentorpay.domain.session import session_duration_minutes

START = datetime(2025, 5, 10, 14, 0, tzinfo=UTC)


class TestDuration:
    """Tests for duration derivation."""

    def test_whole_minutes(self):
        """Test a 90 minute window."""
        assert session_duration_minutes(START, START + timedelta(minutes=90)) == 90

    def test_rounds_half_up(self):
        """Test seconds round to the nearest minute, half up."""
        assert session_duration_minutes(START, START + timedelta(minutes=10, seconds=30)) == 11
        assert session_duration_minutes(START, START + timedelta(minutes=10, seconds=29)) == 10

    def test_end_must_follow_start(self):
        """Test end <= start is refused."""
        with pytest.raises(ValidationError, match="after start"):
            session_duration_minutes(START, START)

    def test_under_a_minute_refused(self):
        """Test a window that rounds to zero minutes is refused."""
        with pytest.raises(ValidationError, match="at least one minute"):
            session_duration_minutes(START, START + timedelta(seconds=20))

    def test_offsets_are_normalized(self):
        """Test windows given in another offset are compared in UTC."""
        plus_two = timezone(timedelta(hours=2))
        start = datetime(2025, 5, 10, 16, 0, tzinfo=plus_two)
        assert session_duration_minutes(start, START + timedelta(minutes=30)) == 30


class TestCreateSession:
    """Tests for logging sessions."""

    def test_create_copies_mentor_rate(self, make_session, sample_mentor):
        """Test a new session is pending with the mentor's current rate."""
        session = make_session()

        assert session.status == SessionStatus.PENDING
        assert session.base_rate == sample_mentor.hourly_rate
        assert session.adjusted_rate is None
        assert session.duration_minutes == 90
        assert session.payout is None
        assert session.start_time == START

    def test_naive_times_are_utc(self, session_service, sample_mentor, mentor_actor):
        """Test naive datetimes are taken as UTC."""
        session = session_service.create_session(
            mentor_actor,
            sample_mentor.id,
            "evaluation",
            datetime(2025, 5, 10, 14, 0),
            datetime(2025, 5, 10, 14, 45),
        )
        assert session.start_time == START
        assert session.session_type == SessionType.EVALUATION

    def test_unknown_type_rejected(self, make_session):
        """Test the session type must be known."""
        with pytest.raises(ValidationError, match="Unknown session type"):
            make_session(session_type="lecture")

    def test_only_owner_may_create(self, session_service, sample_mentor, admin):
        """Test admins and other mentors cannot log sessions for a mentor."""
        other = Actor(id=sample_mentor.id + 1, role=Role.MENTOR)
        for actor in (admin, other):
            with pytest.raises(UnauthorizedError):
                session_service.create_session(
                    actor, sample_mentor.id, "live", START, START + timedelta(hours=1)
                )

    def test_unknown_mentor(self, session_service):
        """Test sessions need an existing mentor."""
        ghost = Actor(id=404, role=Role.MENTOR)
        with pytest.raises(NotFoundError, match="Mentor 404"):
            session_service.create_session(ghost, 404, "live", START, START + timedelta(hours=1))

    def test_creation_is_audited(self, make_session, audit_service, mentor_actor):
        """Test creation writes one audit entry."""
        session = make_session()
        history = audit_service.history("session", session.id)

        assert [e.action for e in history] == ["created"]
        assert history[0].actor_id == mentor_actor.id


class TestApproveReject:
    """Tests for the approval state machine."""

    def test_approve_locks_in_payout(self, make_session, session_service, admin, clock):
        """Test approval computes and stores the breakdown."""
        session = make_session()

        approved = session_service.approve(admin, session.id)

        assert approved.status == SessionStatus.APPROVED
        assert approved.approved_by == admin.id
        assert approved.approved_at == clock()
        assert approved.payout.base_payout == Money.from_major("1500")
        assert approved.payout.platform_fee == Money.from_major("150")
        assert approved.payout.taxes == Money.from_major("270")
        assert approved.payout.final_payout == Money.from_major("1080")

    def test_approve_uses_adjusted_rate(self, make_session, session_service, admin):
        """Test an adjusted rate overrides the base rate."""
        session = make_session(minutes=60)
        session_service.set_adjusted_rate(admin, session.id, Money.from_major("500"))

        approved = session_service.approve(admin, session.id)

        assert approved.payout.base_payout == Money.from_major("500")
        assert approved.base_rate == Money.from_major("1000")

    def test_approve_twice_fails(self, make_approved, session_service, admin):
        """Test only pending sessions can be approved."""
        session = make_approved()
        with pytest.raises(InvalidTransitionError, match="'approved' to 'approved'"):
            session_service.approve(admin, session.id)

    def test_mentor_cannot_approve(self, make_session, session_service, mentor_actor):
        """Test approval is admin-only."""
        session = make_session()
        with pytest.raises(UnauthorizedError):
            session_service.approve(mentor_actor, session.id)

    def test_approval_is_audited(self, make_approved, audit_service, admin):
        """Test approval appends an 'approved' entry by the approver."""
        session = make_approved()
        entry = audit_service.history("session", session.id)[-1]

        assert entry.action == "approved"
        assert entry.actor_id == admin.id
        assert "1,080.00 USD" in entry.description

    def test_reject_requires_reason(self, make_session, session_service, admin):
        """Test an empty reason is refused and nothing changes."""
        session = make_session()
        with pytest.raises(ValidationError, match="reason is required"):
            session_service.reject(admin, session.id, "   ")
        assert session_service.get_session(admin, session.id).status == SessionStatus.PENDING

    def test_reject_records_reason(self, make_session, session_service, admin, audit_service):
        """Test rejection stores the reason and audits it."""
        session = make_session()

        rejected = session_service.reject(admin, session.id, "Duplicate entry")

        assert rejected.status == SessionStatus.REJECTED
        assert rejected.rejection_reason == "Duplicate entry"
        entry = audit_service.history("session", session.id)[-1]
        assert (entry.action, entry.description) == ("rejected", "Duplicate entry")

    def test_rejected_is_terminal(self, make_session, session_service, admin):
        """Test a rejected session can be neither approved nor rejected again."""
        session = make_session()
        session_service.reject(admin, session.id, "No show")

        with pytest.raises(InvalidTransitionError):
            session_service.approve(admin, session.id)
        with pytest.raises(InvalidTransitionError):
            session_service.reject(admin, session.id, "Again")

    def test_mark_paid_requires_approved(self, make_session, session_service, admin):
        """Test a pending session cannot be paid directly."""
        session = make_session()
        with pytest.raises(InvalidTransitionError, match="'pending' to 'paid'"):
            session_service.mark_paid(session.id, "TX-1", datetime.now(UTC), admin.id)

    def test_rate_change_does_not_touch_existing_sessions(
        self, make_session, session_service, mentor_service, sample_mentor, admin
    ):
        """Test a mentor rate change only affects sessions created afterwards."""
        before = make_session()
        mentor_service.change_rate(admin, sample_mentor.id, Money.from_major("2000"))
        after = make_session(start=START + timedelta(days=1))

        assert session_service.get_session(admin, before.id).base_rate == Money.from_major("1000")
        assert after.base_rate == Money.from_major("2000")


class TestEditing:
    """Tests for updates, deletes and attachments."""

    def test_update_recomputes_duration_and_audits(
        self, make_session, session_service, mentor_actor, audit_service
    ):
        """Test changing the end time updates duration and logs field changes."""
        session = make_session()

        updated = session_service.update_session(
            mentor_actor,
            session.id,
            SessionPatch(end_time=START + timedelta(minutes=60), notes="Shortened"),
        )

        assert updated.duration_minutes == 60
        assert updated.notes == "Shortened"
        entry = audit_service.history("session", session.id)[-1]
        assert entry.action == "updated"
        fields = {c.field: (c.old, c.new) for c in entry.changes}
        assert fields["duration_minutes"] == (90, 60)
        assert fields["notes"] == (None, "Shortened")
        assert "start_time" not in fields

    def test_noop_update_writes_nothing(self, make_session, session_service, mentor_actor, audit_service):
        """Test an update with no differences appends no audit entry."""
        session = make_session()
        session_service.update_session(mentor_actor, session.id, SessionPatch())
        assert len(audit_service.history("session", session.id)) == 1

    def test_update_requires_patch(self, make_session, session_service, mentor_actor):
        """Test arbitrary dictionaries are not accepted as updates."""
        session = make_session()
        with pytest.raises(ValidationError, match="SessionPatch"):
            session_service.update_session(mentor_actor, session.id, {"status": "paid"})

    def test_approved_session_is_immutable(self, make_approved, session_service, mentor_actor):
        """Test approved sessions cannot be edited or deleted."""
        session = make_approved()
        with pytest.raises(InvalidStateError, match="can no longer be edited"):
            session_service.update_session(mentor_actor, session.id, SessionPatch(notes="x"))
        with pytest.raises(InvalidStateError):
            session_service.delete_session(mentor_actor, session.id)
        with pytest.raises(InvalidStateError):
            session_service.add_attachment(mentor_actor, session.id, "a.png", "s3://a.png")

    def test_rejected_session_stays_editable(self, make_session, session_service, admin, mentor_actor):
        """Test rejected sessions can be edited but stay rejected."""
        session = make_session()
        session_service.reject(admin, session.id, "Wrong times")

        updated = session_service.update_session(
            mentor_actor, session.id, SessionPatch(notes="Corrected")
        )

        assert updated.notes == "Corrected"
        assert updated.status == SessionStatus.REJECTED

    def test_only_owner_may_edit(self, make_session, session_service, admin):
        """Test admins cannot edit a mentor's session."""
        session = make_session()
        with pytest.raises(UnauthorizedError):
            session_service.update_session(admin, session.id, SessionPatch(notes="x"))

    def test_delete_pending(self, make_session, session_service, mentor_actor, admin, audit_service):
        """Test a pending session can be deleted and the deletion is audited."""
        session = make_session()

        session_service.delete_session(mentor_actor, session.id)

        with pytest.raises(NotFoundError):
            session_service.get_session(admin, session.id)
        assert audit_service.history("session", session.id)[-1].action == "deleted"

    def test_attachments(self, make_session, session_service, mentor_actor, audit_service):
        """Test adding and removing attachment references."""
        session = make_session()

        attachment = session_service.add_attachment(
            mentor_actor, session.id, "notes.pdf", "uploads/notes.pdf"
        )
        assert attachment.filename == "notes.pdf"
        assert len(session_service.get_session(mentor_actor, session.id).attachments) == 1

        session_service.remove_attachment(mentor_actor, session.id, attachment.id)
        assert session_service.get_session(mentor_actor, session.id).attachments == ()

        actions = [e.action for e in audit_service.history("session", session.id)]
        assert actions == ["created", "attachment_added", "attachment_removed"]

    def test_remove_unknown_attachment(self, make_session, session_service, mentor_actor):
        """Test removing an attachment that is not on the session fails."""
        session = make_session()
        with pytest.raises(NotFoundError, match="Attachment 99"):
            session_service.remove_attachment(mentor_actor, session.id, 99)

    def test_adjusted_rate_only_while_pending(self, make_approved, session_service, admin):
        """Test the rate cannot be adjusted after approval."""
        session = make_approved()
        with pytest.raises(InvalidStateError, match="only pending"):
            session_service.set_adjusted_rate(admin, session.id, Money.from_major("10"))

    def test_adjusted_rate_must_be_positive(self, make_session, session_service, admin):
        """Test zero adjusted rates are refused."""
        session = make_session()
        with pytest.raises(ValidationError):
            session_service.set_adjusted_rate(admin, session.id, Money(0))

    def test_adjusted_rate_can_be_cleared(self, make_session, session_service, admin):
        """Test None removes the override."""
        session = make_session()
        session_service.set_adjusted_rate(admin, session.id, Money.from_major("10"))

        cleared = session_service.set_adjusted_rate(admin, session.id, None)

        assert cleared.adjusted_rate is None
        assert cleared.effective_rate == cleared.base_rate


class TestQueries:
    """Tests for listing and statistics."""

    def test_mentor_sees_only_own_sessions(
        self, make_session, session_service, mentor_service, admin, mentor_actor
    ):
        """Test listing is scoped to the acting mentor."""
        make_session()
        other = mentor_service.create_mentor(admin, "Grace Hopper", Money.from_major("800"))
        other_actor = Actor(id=other.id, role=Role.MENTOR)
        session_service.create_session(
            other_actor, other.id, "live", START, START + timedelta(hours=1)
        )

        assert len(session_service.list_sessions(mentor_actor)) == 1
        assert len(session_service.list_sessions(admin)) == 2
        with pytest.raises(UnauthorizedError):
            session_service.list_sessions(mentor_actor, mentor_id=other.id)
        with pytest.raises(UnauthorizedError):
            session_service.get_session(other_actor, session_service.list_sessions(mentor_actor)[0].id)

    def test_filters(self, make_session, session_service, admin):
        """Test status and inclusive date filters."""
        first = make_session(start=datetime(2025, 5, 1, 9, 0, tzinfo=UTC))
        make_session(start=datetime(2025, 5, 31, 23, 0, tzinfo=UTC))
        make_session(start=datetime(2025, 6, 1, 0, 30, tzinfo=UTC))
        session_service.approve(admin, first.id)

        may = session_service.list_sessions(
            admin, start_date=date(2025, 5, 1), end_date=date(2025, 5, 31)
        )
        approved = session_service.list_sessions(admin, status=SessionStatus.APPROVED)

        assert len(may) == 2
        assert [s.id for s in approved] == [first.id]

    def test_stats(self, make_session, make_approved, session_service, admin):
        """Test per-status counts, minutes and payouts."""
        make_approved(minutes=90)
        make_approved(minutes=60)
        make_session(minutes=30)

        stats = {row.status: row for row in session_service.get_session_stats(admin)}

        assert stats[SessionStatus.APPROVED].count == 2
        assert stats[SessionStatus.APPROVED].total_minutes == 150
        assert stats[SessionStatus.APPROVED].total_final_payout == Money.from_major("1800")
        assert stats[SessionStatus.PENDING].count == 1
        assert stats[SessionStatus.PENDING].total_final_payout == Money(0)

    def test_stats_admin_only(self, session_service, mentor_actor):
        """Test mentors cannot read statistics."""
        with pytest.raises(UnauthorizedError):
            session_service.get_session_stats(mentor_actor)
