"""Tests for Database interface returning domain models."""

import pytest
from datetime import UTC, date, datetime, timedelta

from mentorpay.domain import entities
from mentorpay.domain.entities import EntityType, PayoutStatus, ReceiptStatus, SessionStatus

START = datetime(2025, 5, 10, 14, 0, tzinfo=UTC)


def _mentor(db, name="Ada"):
    return db.create_mentor(name=name, email=None, hourly_rate_minor=100000, currency="USD")


def _session(db, mentor_id, start=START, minutes=60):
    return db.create_session(
        mentor_id=mentor_id,
        session_type="live",
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        base_rate_minor=100000,
        currency="USD",
    )


def _approve(db, session_id, final_minor=72000):
    db.transition_session(
        session_id,
        SessionStatus.PENDING,
        SessionStatus.APPROVED,
        values={
            "base_payout_minor": 100000,
            "platform_fee_minor": 10000,
            "taxes_minor": 18000,
            "final_payout_minor": final_minor,
            "approved_by": 900,
            "approved_at": START,
        },
    )


def _receipt(db, mentor_id, number="RCP-25-05-0001"):
    return db.create_receipt(
        receipt_number=number,
        mentor_id=mentor_id,
        start_date=date(2025, 5, 1),
        end_date=date(2025, 5, 31),
        currency="USD",
        base_minor=100000,
        fee_minor=10000,
        taxes_minor=18000,
        final_minor=72000,
        session_count=1,
        total_minutes=60,
        created_by=900,
    )


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_get_mentor_returns_domain_model(self, temp_db):
        """Test that get_mentor returns a domain Mentor entity."""
        mentor_id = _mentor(temp_db)

        mentor = temp_db.get_mentor(mentor_id)

        assert isinstance(mentor, entities.Mentor)
        assert mentor.name == "Ada"
        assert temp_db.get_mentor_by_name("Ada").id == mentor_id
        assert temp_db.get_mentor(999) is None

    def test_update_missing_mentor_rate(self, temp_db):
        """Test updating a missing mentor is reported."""
        with pytest.raises(ValueError):
            temp_db.update_mentor_rate(999, 100)

    def test_session_times_round_trip_as_utc(self, temp_db):
        """Test stored sessions come back with aware UTC times."""
        mentor_id = _mentor(temp_db)
        session_id = _session(temp_db, mentor_id)

        session = temp_db.get_session(session_id)

        assert isinstance(session, entities.Session)
        assert session.start_time == START
        assert session.start_time.tzinfo is not None
        assert session.status == SessionStatus.PENDING

    def test_list_sessions_date_range_is_inclusive(self, temp_db):
        """Test the end date covers its whole day."""
        mentor_id = _mentor(temp_db)
        first = _session(temp_db, mentor_id, start=datetime(2025, 5, 1, 0, 0, tzinfo=UTC))
        last = _session(temp_db, mentor_id, start=datetime(2025, 5, 31, 23, 59, tzinfo=UTC))
        _session(temp_db, mentor_id, start=datetime(2025, 6, 1, 0, 0, tzinfo=UTC))

        sessions = temp_db.list_sessions(start_date=date(2025, 5, 1), end_date=date(2025, 5, 31))

        assert [s.id for s in sessions] == [first, last]

    def test_transition_is_compare_and_set(self, temp_db):
        """Test a transition only applies from the expected status."""
        mentor_id = _mentor(temp_db)
        session_id = _session(temp_db, mentor_id)

        assert temp_db.transition_session(session_id, SessionStatus.PENDING, SessionStatus.REJECTED)
        assert not temp_db.transition_session(
            session_id, SessionStatus.PENDING, SessionStatus.APPROVED
        )
        assert temp_db.get_session(session_id).status == SessionStatus.REJECTED

    def test_claim_only_unclaimed_approved(self, temp_db):
        """Test claiming skips pending and already-claimed sessions."""
        mentor_id = _mentor(temp_db)
        approved = _session(temp_db, mentor_id)
        pending = _session(temp_db, mentor_id, start=START + timedelta(days=1))
        _approve(temp_db, approved)
        first = _receipt(temp_db, mentor_id)
        second = _receipt(temp_db, mentor_id, number="RCP-25-05-0002")

        assert temp_db.claim_sessions([approved, pending], first) == [approved]
        assert temp_db.claim_sessions([approved], second) == []
        assert temp_db.get_receipt(first).session_ids == (approved,)

    def test_release_sessions(self, temp_db):
        """Test releasing detaches every session of a receipt."""
        mentor_id = _mentor(temp_db)
        session_id = _session(temp_db, mentor_id)
        _approve(temp_db, session_id)
        receipt_id = _receipt(temp_db, mentor_id)
        temp_db.claim_sessions([session_id], receipt_id)

        assert temp_db.release_sessions(receipt_id) == 1
        assert temp_db.get_session(session_id).receipt_id is None

    def test_claimed_session_cannot_be_deleted(self, temp_db):
        """Test a session on a receipt is not deleted."""
        mentor_id = _mentor(temp_db)
        session_id = _session(temp_db, mentor_id)
        _approve(temp_db, session_id)
        receipt_id = _receipt(temp_db, mentor_id)
        temp_db.claim_sessions([session_id], receipt_id)

        assert not temp_db.delete_session(session_id, (SessionStatus.APPROVED,))
        assert temp_db.get_session(session_id) is not None

    def test_delete_session_removes_attachments(self, temp_db):
        """Test deleting a session removes its attachments."""
        mentor_id = _mentor(temp_db)
        session_id = _session(temp_db, mentor_id)
        temp_db.add_attachment(session_id, "a.pdf", "/files/a.pdf")

        assert temp_db.delete_session(session_id, (SessionStatus.PENDING,))
        assert temp_db.get_session(session_id) is None

    def test_attachments(self, temp_db):
        """Test attachments are returned with their session."""
        mentor_id = _mentor(temp_db)
        session_id = _session(temp_db, mentor_id)
        attachment_id = temp_db.add_attachment(session_id, "a.pdf", "/files/a.pdf")

        session = temp_db.get_session(session_id)

        assert [a.id for a in session.attachments] == [attachment_id]
        assert not temp_db.delete_attachment(session_id + 1, attachment_id)
        assert temp_db.delete_attachment(session_id, attachment_id)
        assert temp_db.get_session(session_id).attachments == ()

    def test_session_stats(self, temp_db):
        """Test per-status counts, minutes and payouts."""
        mentor_id = _mentor(temp_db)
        approved = _session(temp_db, mentor_id, minutes=60)
        _session(temp_db, mentor_id, minutes=30)
        _approve(temp_db, approved)

        stats = {row["status"]: row for row in temp_db.get_session_stats()}

        assert stats["approved"]["total_final_minor"] == 72000
        assert stats["pending"]["total_minutes"] == 30
        assert stats["pending"]["total_final_minor"] == 0

    def test_receipt_round_trip(self, temp_db):
        """Test receipts are returned as domain models and found by number."""
        mentor_id = _mentor(temp_db)
        receipt_id = _receipt(temp_db, mentor_id)

        receipt = temp_db.get_receipt(receipt_id)

        assert isinstance(receipt, entities.Receipt)
        assert receipt.status == ReceiptStatus.DRAFT
        assert temp_db.get_receipt_by_number("RCP-25-05-0001").id == receipt_id
        assert temp_db.get_receipt_by_number("missing") is None

    def test_receipt_status_guards(self, temp_db):
        """Test receipt edits and deletes check the expected status."""
        mentor_id = _mentor(temp_db)
        receipt_id = _receipt(temp_db, mentor_id)
        temp_db.transition_receipt(receipt_id, ReceiptStatus.DRAFT, ReceiptStatus.SENT)

        assert not temp_db.update_receipt_fields(receipt_id, {"notes": "x"}, ReceiptStatus.DRAFT)
        assert not temp_db.delete_receipt(receipt_id, ReceiptStatus.DRAFT)

    def test_payment_date_filter(self, temp_db):
        """Test paid receipts filter by payment date."""
        mentor_id = _mentor(temp_db)
        receipt_id = _receipt(temp_db, mentor_id)
        temp_db.transition_receipt(receipt_id, ReceiptStatus.DRAFT, ReceiptStatus.SENT)
        temp_db.transition_receipt(
            receipt_id,
            ReceiptStatus.SENT,
            ReceiptStatus.PAID,
            values={"payment_reference": "TX", "payment_date": date(2025, 5, 21)},
        )

        assert len(temp_db.list_receipts(payment_start=date(2025, 5, 21))) == 1
        assert temp_db.list_receipts(payment_start=date(2025, 5, 22)) == []


def _payout(db, mentor_id, number="PAY-25-05-0001"):
    return db.create_payout(
        payout_number=number,
        mentor_id=mentor_id,
        start_date=date(2025, 5, 1),
        end_date=date(2025, 5, 31),
        currency="USD",
        base_minor=100000,
        fee_minor=10000,
        taxes_minor=18000,
        final_minor=72000,
        session_count=1,
        total_minutes=60,
        created_by=900,
    )


class TestPayouts:
    """Tests for payout storage and receipt claiming."""

    def test_claim_only_sent_or_paid_of_mentor(self, temp_db):
        """Test claiming skips drafts and other mentors' receipts."""
        mentor_id = _mentor(temp_db)
        other_id = _mentor(temp_db, "Grace")
        sent = _receipt(temp_db, mentor_id)
        draft = _receipt(temp_db, mentor_id, number="RCP-25-05-0002")
        foreign = _receipt(temp_db, other_id, number="RCP-25-05-0003")
        for receipt_id in (sent, foreign):
            temp_db.transition_receipt(receipt_id, ReceiptStatus.DRAFT, ReceiptStatus.SENT)
        payout_id = _payout(temp_db, mentor_id)

        assert temp_db.claim_receipts([sent, draft, foreign], payout_id, mentor_id) == [sent]
        assert temp_db.get_payout(payout_id).receipt_ids == (sent,)
        assert temp_db.get_receipt(sent).payout_id == payout_id

    def test_claimed_receipt_is_not_claimed_again(self, temp_db):
        """Test a receipt belongs to at most one payout."""
        mentor_id = _mentor(temp_db)
        receipt_id = _receipt(temp_db, mentor_id)
        temp_db.transition_receipt(receipt_id, ReceiptStatus.DRAFT, ReceiptStatus.SENT)
        first = _payout(temp_db, mentor_id)
        second = _payout(temp_db, mentor_id, number="PAY-25-05-0002")

        assert temp_db.claim_receipts([receipt_id], first, mentor_id) == [receipt_id]
        assert temp_db.claim_receipts([receipt_id], second, mentor_id) == []
        assert temp_db.list_receipts(unbundled_only=True) == []

    def test_release_receipts(self, temp_db):
        """Test releasing detaches every receipt of a payout."""
        mentor_id = _mentor(temp_db)
        receipt_id = _receipt(temp_db, mentor_id)
        temp_db.transition_receipt(receipt_id, ReceiptStatus.DRAFT, ReceiptStatus.SENT)
        payout_id = _payout(temp_db, mentor_id)
        temp_db.claim_receipts([receipt_id], payout_id, mentor_id)

        assert temp_db.release_receipts(payout_id) == 1
        assert temp_db.get_receipt(receipt_id).payout_id is None

    def test_transition_is_compare_and_set(self, temp_db):
        """Test a payout transition only applies from the expected status."""
        mentor_id = _mentor(temp_db)
        payout_id = _payout(temp_db, mentor_id)

        assert temp_db.transition_payout(payout_id, PayoutStatus.PENDING, PayoutStatus.CANCELLED)
        assert not temp_db.transition_payout(
            payout_id, PayoutStatus.PENDING, PayoutStatus.COMPLETED
        )
        assert temp_db.get_payout(payout_id).status == PayoutStatus.CANCELLED

    def test_lookup_and_list(self, temp_db):
        """Test payouts are found by number and filtered by mentor and status."""
        mentor_id = _mentor(temp_db)
        payout_id = _payout(temp_db, mentor_id)

        assert isinstance(temp_db.get_payout(payout_id), entities.Payout)
        assert temp_db.get_payout_by_number("PAY-25-05-0001").id == payout_id
        assert temp_db.get_payout_by_number("missing") is None
        assert [p.id for p in temp_db.list_payouts(mentor_id=mentor_id)] == [payout_id]
        assert temp_db.list_payouts(status=PayoutStatus.COMPLETED) == []


class TestTransactions:
    """Tests for the unit-of-work boundary."""

    def test_rollback_on_error(self, temp_db):
        """Test an exception undoes every write in the block."""
        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                mentor_id = _mentor(temp_db)
                temp_db.append_audit_entry(EntityType.MENTOR, mentor_id, "created", 900)
                raise RuntimeError("boom")

        assert temp_db.list_mentors() == []
        assert temp_db.list_audit_entries() == []

    def test_nested_blocks_commit_once(self, temp_db):
        """Test an inner block's writes roll back with the outer block."""
        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                with temp_db.transaction():
                    _mentor(temp_db)
                raise RuntimeError("boom")

        assert temp_db.list_mentors() == []

    def test_commit(self, temp_db):
        """Test a normal exit commits."""
        with temp_db.transaction():
            _mentor(temp_db, "One")
            _mentor(temp_db, "Two")

        assert [m.name for m in temp_db.list_mentors()] == ["One", "Two"]


class TestSequences:
    """Tests for counter allocation."""

    def test_allocate(self, temp_db):
        """Test counters start at 1 and are independent per key."""
        assert temp_db.current_sequence("RCP:2025-05") is None
        assert temp_db.allocate_sequence("RCP:2025-05") == 1
        assert temp_db.allocate_sequence("RCP:2025-05") == 2
        assert temp_db.allocate_sequence("RCP:2025-06") == 1
        assert temp_db.current_sequence("RCP:2025-05") == 2

    def test_allocation_survives_rollback(self, temp_db):
        """Test an allocated value stays used when the caller rolls back."""
        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                temp_db.allocate_sequence("PAY:2025-05")
                raise RuntimeError("boom")

        assert temp_db.allocate_sequence("PAY:2025-05") == 2
