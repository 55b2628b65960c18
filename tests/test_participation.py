"""Tests for join / approve / reject / cancel and the participant count."""

import pytest

from babal.crud.meetup_crud import cancel_meetup, get_meetup, mark_completed
from babal.crud.participation_crud import (
    cancel_participation,
    decide_participation,
    get_active_participation,
    join_meetup,
    leave_meetup,
    list_participants,
)
from babal.errors import CoreError, ErrorKind
from babal.models.meetup import MeetupStatus
from babal.models.participation import ParticipationStatus
from conftest import HOST, SCHEDULED_AT, hours_after


def assert_count_invariant(db, meetup_id):
    m = get_meetup(db, meetup_id)
    db.refresh(m)
    assert 0 <= m.current_count <= m.capacity
    return m.current_count


class TestJoin:
    def test_join_is_pending_and_count_unchanged(self, db, make_meetup):
        m = make_meetup()
        p = join_meetup(db, m.id, "a")
        assert p.status == ParticipationStatus.PENDING.value
        assert assert_count_invariant(db, m.id) == 1

    def test_twice(self, db, make_meetup):
        m = make_meetup()
        join_meetup(db, m.id, "a")
        with pytest.raises(CoreError) as exc:
            join_meetup(db, m.id, "a")
        assert exc.value.kind == ErrorKind.ALREADY_JOINED

    def test_host_cannot_join_own_meetup(self, db, make_meetup):
        m = make_meetup()
        with pytest.raises(CoreError) as exc:
            join_meetup(db, m.id, HOST)
        assert exc.value.kind == ErrorKind.ALREADY_JOINED

    def test_not_open(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        with pytest.raises(CoreError) as exc:
            join_meetup(db, m.id, "a")
        assert exc.value.kind == ErrorKind.NOT_OPEN

    def test_full(self, db, make_meetup):
        m = make_meetup(capacity=2, approved=["a"])
        with pytest.raises(CoreError) as exc:
            join_meetup(db, m.id, "b")
        assert exc.value.kind == ErrorKind.FULL

    def test_rejoin_after_cancel(self, db, make_meetup):
        m = make_meetup()
        join_meetup(db, m.id, "a")
        cancel_participation(db, m.id, "a")
        p = join_meetup(db, m.id, "a")
        assert p.status == ParticipationStatus.PENDING.value
        assert len(list_participants(db, m.id)) == 2


class TestDecide:
    def test_approve_adds_exactly_one(self, db, make_meetup):
        m = make_meetup()
        join_meetup(db, m.id, "a")
        p = decide_participation(db, m.id, "a", HOST, approve=True)
        assert p.status == ParticipationStatus.APPROVED.value
        assert p.approved_at is not None
        assert assert_count_invariant(db, m.id) == 2

    def test_reject_keeps_count(self, db, make_meetup):
        m = make_meetup()
        join_meetup(db, m.id, "a")
        p = decide_participation(db, m.id, "a", HOST, approve=False)
        assert p.status == ParticipationStatus.REJECTED.value
        assert assert_count_invariant(db, m.id) == 1
        assert get_active_participation(db, m.id, "a") is None

    def test_non_host(self, db, make_meetup):
        m = make_meetup()
        join_meetup(db, m.id, "a")
        with pytest.raises(CoreError) as exc:
            decide_participation(db, m.id, "a", "b", approve=True)
        assert exc.value.kind == ErrorKind.NOT_HOST

    def test_no_pending_request(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        with pytest.raises(CoreError) as exc:
            decide_participation(db, m.id, "a", HOST, approve=True)
        assert exc.value.kind == ErrorKind.NO_SUCH_PARTICIPATION
        with pytest.raises(CoreError) as exc:
            decide_participation(db, m.id, "ghost", HOST, approve=False)
        assert exc.value.kind == ErrorKind.NO_SUCH_PARTICIPATION

    def test_approve_when_full(self, db, make_meetup):
        m = make_meetup(capacity=2)
        join_meetup(db, m.id, "a")
        join_meetup(db, m.id, "b")
        decide_participation(db, m.id, "a", HOST, approve=True)
        with pytest.raises(CoreError) as exc:
            decide_participation(db, m.id, "b", HOST, approve=True)
        assert exc.value.kind == ErrorKind.FULL
        assert assert_count_invariant(db, m.id) == 2


class TestCancelParticipation:
    def test_cancel_approved_decrements(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        p = cancel_participation(db, m.id, "a")
        assert p.status == ParticipationStatus.CANCELLED.value
        assert assert_count_invariant(db, m.id) == 1

    def test_cancel_pending_keeps_count(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        join_meetup(db, m.id, "b")
        cancel_participation(db, m.id, "b")
        assert assert_count_invariant(db, m.id) == 2

    def test_nothing_to_cancel(self, db, make_meetup):
        m = make_meetup()
        with pytest.raises(CoreError) as exc:
            cancel_participation(db, m.id, "a")
        assert exc.value.kind == ErrorKind.NO_SUCH_PARTICIPATION

    def test_completed_meetup_blocks_cancel(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        mark_completed(db, m.id, hours_after(SCHEDULED_AT, 3))
        with pytest.raises(CoreError) as exc:
            cancel_participation(db, m.id, "a")
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION
        with pytest.raises(CoreError):
            leave_meetup(db, m.id, "a")
        assert assert_count_invariant(db, m.id) == 2
        assert get_active_participation(db, m.id, "a").status == ParticipationStatus.APPROVED.value

    def test_leave_as_participant(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        p = leave_meetup(db, m.id, "a")
        assert p.status == ParticipationStatus.CANCELLED.value
        assert assert_count_invariant(db, m.id) == 1

    def test_leave_as_host_cancels_meetup(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        assert leave_meetup(db, m.id, HOST) is None
        assert get_meetup(db, m.id).status == MeetupStatus.CANCELLED


class TestCountInvariant:
    def test_mixed_sequence(self, db, make_meetup):
        m = make_meetup(capacity=3)
        for user_id in ("a", "b", "c", "d"):
            join_meetup(db, m.id, user_id)
            assert_count_invariant(db, m.id)
        decide_participation(db, m.id, "a", HOST, approve=True)
        decide_participation(db, m.id, "b", HOST, approve=False)
        decide_participation(db, m.id, "c", HOST, approve=True)
        assert assert_count_invariant(db, m.id) == 3
        with pytest.raises(CoreError):
            decide_participation(db, m.id, "d", HOST, approve=True)
        cancel_participation(db, m.id, "a")
        decide_participation(db, m.id, "d", HOST, approve=True)
        assert assert_count_invariant(db, m.id) == 3
        cancel_meetup(db, m.id, HOST)
        assert assert_count_invariant(db, m.id) == 1

    def test_filter_by_status(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        join_meetup(db, m.id, "b")
        approved = list_participants(db, m.id, ParticipationStatus.APPROVED)
        assert [p.user_id for p in approved] == ["a"]
