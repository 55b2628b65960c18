"""Tests for meetup lifecycle transitions (babal.crud.meetup_crud)."""

import pytest
from sqlalchemy import text

from babal.crud.meetup_crud import (
    cancel_meetup,
    confirm_meetup,
    get_meetup,
    guarded_update,
    host_leaves,
    list_due_for_completion,
    mark_completed,
)
from babal.crud.participation_crud import join_meetup
from babal.errors import CoreError, ErrorKind
from babal.models.meetup import MeetupStatus
from babal.models.participation import Participation, ParticipationStatus
from babal.services.meetup_status import check_status_transition, is_terminal
from conftest import HOST, SCHEDULED_AT, hours_after


class TestStatusTable:
    def test_allowed(self):
        assert check_status_transition("OPEN", "CONFIRMED") is None
        assert check_status_transition("OPEN", "CANCELLED") is None
        assert check_status_transition("CONFIRMED", "COMPLETED") is None
        assert check_status_transition("CONFIRMED", "CANCELLED") is None

    def test_rejected(self):
        assert check_status_transition("OPEN", "COMPLETED") is not None
        assert "none" in check_status_transition("CANCELLED", "OPEN")

    def test_terminal(self):
        assert is_terminal("CANCELLED")
        assert is_terminal("COMPLETED")
        assert not is_terminal("OPEN")


class TestCreate:
    def test_host_counts_as_first_participant(self, make_meetup):
        m = make_meetup()
        assert m.status == MeetupStatus.OPEN
        assert m.current_count == 1
        assert m.capacity == 4

    def test_missing_meetup(self, db):
        with pytest.raises(CoreError) as exc:
            get_meetup(db, "no-such-id")
        assert exc.value.kind == ErrorKind.NOT_FOUND
        assert exc.value.status_code == 404


class TestConfirm:
    def test_host_confirms_open_meetup(self, db, make_meetup):
        m = make_meetup()
        confirm_meetup(db, m.id, HOST)
        assert m.status == MeetupStatus.CONFIRMED
        assert m.confirmed_at is not None

    def test_non_host(self, db, make_meetup):
        m = make_meetup()
        with pytest.raises(CoreError) as exc:
            confirm_meetup(db, m.id, "guest")
        assert exc.value.kind == ErrorKind.NOT_HOST

    def test_twice(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        with pytest.raises(CoreError) as exc:
            confirm_meetup(db, m.id, HOST)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION


class TestCancel:
    def test_cancel_cascades_to_participations(self, db, make_meetup):
        m = make_meetup(approved=["a", "b"])
        join_meetup(db, m.id, "c")
        db.commit()
        assert m.current_count == 3

        cancel_meetup(db, m.id, HOST)
        db.commit()

        assert m.status == MeetupStatus.CANCELLED
        assert m.current_count == 1
        statuses = {p.user_id: p.status for p in db.query(Participation).filter_by(meetup_id=m.id)}
        assert statuses == {
            "a": ParticipationStatus.CANCELLED.value,
            "b": ParticipationStatus.CANCELLED.value,
            "c": ParticipationStatus.CANCELLED.value,
        }

    def test_cancelled_is_terminal(self, db, make_meetup):
        m = make_meetup()
        cancel_meetup(db, m.id, HOST)
        with pytest.raises(CoreError) as exc:
            cancel_meetup(db, m.id, HOST)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_host_leaving_cancels(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        host_leaves(db, m.id, HOST)
        assert m.status == MeetupStatus.CANCELLED

    def test_non_host(self, db, make_meetup):
        m = make_meetup()
        with pytest.raises(CoreError) as exc:
            cancel_meetup(db, m.id, "a")
        assert exc.value.kind == ErrorKind.NOT_HOST


class TestComplete:
    def test_after_start(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        mark_completed(db, m.id, hours_after(SCHEDULED_AT, 1))
        assert m.status == MeetupStatus.COMPLETED

    def test_before_start(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        with pytest.raises(CoreError) as exc:
            mark_completed(db, m.id, hours_after(SCHEDULED_AT, -1))
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_open_meetup_cannot_complete(self, db, make_meetup):
        m = make_meetup()
        with pytest.raises(CoreError) as exc:
            mark_completed(db, m.id, hours_after(SCHEDULED_AT, 1))
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_due_list(self, db, make_meetup):
        due = make_meetup(confirmed=True)
        make_meetup(confirmed=True, scheduled_at=hours_after(SCHEDULED_AT, 10))
        make_meetup()
        assert list_due_for_completion(db, hours_after(SCHEDULED_AT, 4), 3) == [due.id]


class TestGuardedUpdate:
    def test_conflict_after_retries(self, db, make_meetup):
        m = make_meetup(capacity=10)
        calls = []

        def build(meetup):
            # 다른 요청이 매번 먼저 인원을 바꾼 상황
            calls.append(meetup.current_count)
            db.execute(text("UPDATE meetups SET current_count = current_count + 1 WHERE id = :id"), {"id": meetup.id})
            return {"status": MeetupStatus.CONFIRMED.value}

        with pytest.raises(CoreError) as exc:
            guarded_update(db, m, build)
        assert exc.value.kind == ErrorKind.CONFLICT
        assert calls == [1, 2, 3]
        assert m.status == MeetupStatus.OPEN
