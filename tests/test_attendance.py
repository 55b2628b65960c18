"""Tests for QR/GPS check-in, host and mutual confirmation, and no-show penalties."""

from datetime import timedelta

import pytest
from jose import jwt

from babal.config import CHECKIN_TOKEN_TTL_SEC
from babal.crud.attendance_crud import (
    apply_no_show_penalties,
    attendance_summary,
    check_in_with_location,
    check_in_with_token,
    find_no_show_user_ids,
    generate_checkin_token,
    host_confirm_attendance,
    mutual_confirm,
    verify_location,
)
from babal.crud.meetup_crud import create_meetup, mark_completed
from babal.crud.participation_crud import cancel_participation, decide_participation, join_meetup
from babal.errors import CheckInRejected, CoreError, ErrorKind
from babal.models.attendance import AttendanceRecord, AttendanceStatus, CheckInMethod
from babal.models.penalty import NoShowPenalty
from conftest import HOST, PLACE, SCHEDULED_AT

NEAR = (37.5669, 126.9780)  # 약 44 m
FAR = (37.5683, 126.9780)  # 약 200 m


def rejected_records(db, meetup_id, user_id):
    return (
        db.query(AttendanceRecord)
        .filter_by(meetup_id=meetup_id, user_id=user_id, status=AttendanceStatus.REJECTED.value)
        .all()
    )


class TestCheckInToken:
    def test_issue_requires_host(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        with pytest.raises(CoreError) as exc:
            generate_checkin_token(db, m.id, "a", SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.NOT_HOST

    def test_issue_requires_confirmed(self, db, make_meetup):
        m = make_meetup()
        with pytest.raises(CoreError) as exc:
            generate_checkin_token(db, m.id, HOST, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_expiry_follows_ttl(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        _, expires_at = generate_checkin_token(db, m.id, HOST, SCHEDULED_AT)
        assert expires_at == SCHEDULED_AT + timedelta(seconds=CHECKIN_TOKEN_TTL_SEC)


class TestQrCheckIn:
    def test_valid_token(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        token, _ = generate_checkin_token(db, m.id, HOST, SCHEDULED_AT)
        record = check_in_with_token(db, m.id, "a", token, SCHEDULED_AT + timedelta(minutes=1))
        assert record.status == AttendanceStatus.CONFIRMED.value
        assert record.method == CheckInMethod.QR.value

    def test_second_check_in_returns_existing(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        token, _ = generate_checkin_token(db, m.id, HOST, SCHEDULED_AT)
        first = check_in_with_token(db, m.id, "a", token, SCHEDULED_AT)
        second = check_in_with_token(db, m.id, "a", token, SCHEDULED_AT)
        assert first.id == second.id

    def test_expired_token(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        token, _ = generate_checkin_token(db, m.id, HOST, SCHEDULED_AT)
        late = SCHEDULED_AT + timedelta(seconds=CHECKIN_TOKEN_TTL_SEC + 1)
        with pytest.raises(CheckInRejected) as exc:
            check_in_with_token(db, m.id, "a", token, late)
        assert exc.value.kind == ErrorKind.INVALID_TOKEN
        assert exc.value.record.reject_reason == ErrorKind.INVALID_TOKEN.value
        assert len(rejected_records(db, m.id, "a")) == 1

    def test_token_of_other_meetup(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        other = make_meetup(confirmed=True)
        token, _ = generate_checkin_token(db, other.id, HOST, SCHEDULED_AT)
        with pytest.raises(CheckInRejected) as exc:
            check_in_with_token(db, m.id, "a", token, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.INVALID_TOKEN

    def test_forged_token(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        forged = jwt.encode({"sub": m.id, "typ": "checkin", "exp": 4102444800}, "wrong-secret", algorithm="HS256")
        with pytest.raises(CheckInRejected) as exc:
            check_in_with_token(db, m.id, "a", forged, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.INVALID_TOKEN

    def test_garbage_token(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        with pytest.raises(CheckInRejected):
            check_in_with_token(db, m.id, "a", "not-a-token", SCHEDULED_AT)

    def test_pending_user(self, db, make_meetup):
        m = make_meetup()
        join_meetup(db, m.id, "a")
        with pytest.raises(CoreError) as exc:
            check_in_with_token(db, m.id, "a", "whatever", SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.NOT_APPROVED
        assert rejected_records(db, m.id, "a") == []


class TestGpsCheckIn:
    def test_within_radius(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        record = check_in_with_location(db, m.id, "a", *NEAR, SCHEDULED_AT)
        assert record.status == AttendanceStatus.CONFIRMED.value
        assert record.distance_m == pytest.approx(44.5, abs=0.5)

    def test_out_of_range_is_recorded(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        with pytest.raises(CheckInRejected) as exc:
            check_in_with_location(db, m.id, "a", *FAR, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.OUT_OF_RANGE
        [record] = rejected_records(db, m.id, "a")
        assert record.distance_m == pytest.approx(200.2, abs=0.5)

        # 거절 후 재시도 가능
        record = check_in_with_location(db, m.id, "a", *NEAR, SCHEDULED_AT)
        assert record.status == AttendanceStatus.CONFIRMED.value

    def test_meetup_radius_override(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True, checkin_radius_m=300)
        record = check_in_with_location(db, m.id, "a", *FAR, SCHEDULED_AT)
        assert record.status == AttendanceStatus.CONFIRMED.value

    @pytest.mark.parametrize("lat,lng", [(91, 126.978), (-91, 126.978), (37.5665, 181), (37.5665, -181)])
    def test_invalid_coordinates_always(self, db, make_meetup, lat, lng):
        m = make_meetup(approved=["a"], confirmed=True)
        for user_id in ("a", "not-a-participant"):
            with pytest.raises(CoreError) as exc:
                check_in_with_location(db, m.id, user_id, lat, lng, SCHEDULED_AT)
            assert exc.value.kind == ErrorKind.INVALID_COORDINATES
        with pytest.raises(CoreError) as exc:
            check_in_with_location(db, "no-such-meetup", "a", lat, lng, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.INVALID_COORDINATES
        assert rejected_records(db, m.id, "a") == []

    def test_not_approved(self, db, make_meetup):
        m = make_meetup(confirmed=True)
        with pytest.raises(CoreError) as exc:
            check_in_with_location(db, m.id, "a", *NEAR, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.NOT_APPROVED

    def test_verify_location_writes_nothing(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        result = verify_location(db, m.id, *FAR)
        assert result["within_range"] is False
        assert result["max_distance_m"] == 100.0
        assert verify_location(db, m.id, *PLACE)["distance_m"] == 0.0
        assert db.query(AttendanceRecord).count() == 0


    def test_antipodal_location_is_out_of_range(self, db):
        spot = (69.51232454868148, 86.5812282599507)
        opposite = (-69.51232454868148, -93.4187717400493)
        m = create_meetup(db, host_id=HOST, title="지구 반대편", lat=spot[0], lng=spot[1], scheduled_at=SCHEDULED_AT)
        join_meetup(db, m.id, "a")
        decide_participation(db, m.id, "a", HOST, approve=True)

        assert verify_location(db, m.id, *opposite)["within_range"] is False
        with pytest.raises(CheckInRejected) as exc:
            check_in_with_location(db, m.id, "a", *opposite, SCHEDULED_AT)
        assert exc.value.kind == ErrorKind.OUT_OF_RANGE


class TestHostAndMutualConfirmation:
    def test_host_confirms(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        record = host_confirm_attendance(db, m.id, HOST, "a")
        assert record.method == CheckInMethod.HOST.value
        assert record.confirmed_by == HOST

    def test_only_host(self, db, make_meetup):
        m = make_meetup(approved=["a", "b"], confirmed=True)
        with pytest.raises(CoreError) as exc:
            host_confirm_attendance(db, m.id, "b", "a")
        assert exc.value.kind == ErrorKind.NOT_HOST

    def test_mutual_is_idempotent(self, db, make_meetup):
        m = make_meetup(approved=["a", "b"], confirmed=True)
        first = mutual_confirm(db, m.id, "a", "b")
        second = mutual_confirm(db, m.id, "a", "b")
        assert first.id == second.id
        assert attendance_summary(db, m.id, "b")["mutual_confirmations"] == 1

    def test_mutual_self(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        with pytest.raises(CoreError) as exc:
            mutual_confirm(db, m.id, "a", "a")
        assert exc.value.kind == ErrorKind.SELF_CONFIRMATION

    def test_mutual_outsider(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        with pytest.raises(CoreError) as exc:
            mutual_confirm(db, m.id, "outsider", "a")
        assert exc.value.kind == ErrorKind.NOT_APPROVED
        with pytest.raises(CoreError) as exc:
            mutual_confirm(db, m.id, "a", "outsider")
        assert exc.value.kind == ErrorKind.NOT_CO_PARTICIPANT

    def test_summary(self, db, make_meetup):
        m = make_meetup(approved=["a", "b"], confirmed=True)
        check_in_with_location(db, m.id, "a", *NEAR, SCHEDULED_AT)
        summary = attendance_summary(db, m.id, "a")
        assert summary["total_participants"] == 2
        assert summary["attended_count"] == 1
        assert summary["my_attendance"] is not None
        assert attendance_summary(db, m.id, "b")["my_attendance"] is None


class TestNoShowPenalties:
    def test_attended_users_are_never_penalized(self, db, make_meetup):
        m = make_meetup(approved=["a", "b"], confirmed=True)
        check_in_with_location(db, m.id, "a", *NEAR, SCHEDULED_AT)
        outcome = apply_no_show_penalties(db, m.id, HOST, ["a", "b"], 10, "no_show")
        assert [p.user_id for p in outcome.penalized] == ["b"]
        assert outcome.attended == ["a"]
        assert db.query(NoShowPenalty).filter_by(user_id="a").count() == 0

    def test_idempotent(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        apply_no_show_penalties(db, m.id, HOST, ["a"], 10, "no_show")
        db.commit()
        outcome = apply_no_show_penalties(db, m.id, HOST, ["a", "a"], 10, "no_show")
        assert outcome.penalized == []
        assert outcome.already_penalized == ["a"]
        assert db.query(NoShowPenalty).filter_by(meetup_id=m.id).count() == 1

    def test_host_and_outsiders_skipped(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        outcome = apply_no_show_penalties(db, m.id, HOST, [HOST, "stranger"], 10, "no_show")
        assert outcome.penalized == []
        assert outcome.not_participant == [HOST, "stranger"]

    def test_only_host_may_request(self, db, make_meetup):
        m = make_meetup(approved=["a", "b"], confirmed=True)
        with pytest.raises(CoreError) as exc:
            apply_no_show_penalties(db, m.id, "a", ["b"], 10, "no_show")
        assert exc.value.kind == ErrorKind.NOT_HOST

    def test_open_meetup(self, db, make_meetup):
        m = make_meetup(approved=["a"])
        with pytest.raises(CoreError) as exc:
            apply_no_show_penalties(db, m.id, HOST, ["a"], 10, "no_show")
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_cancel_after_completion_cannot_dodge_penalty(self, db, make_meetup):
        m = make_meetup(approved=["a"], confirmed=True)
        mark_completed(db, m.id, SCHEDULED_AT + timedelta(hours=3))
        with pytest.raises(CoreError) as exc:
            cancel_participation(db, m.id, "a")
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

        outcome = apply_no_show_penalties(db, m.id, HOST, ["a"], 10, "no_show")
        assert [p.user_id for p in outcome.penalized] == ["a"]
        assert outcome.not_participant == []

    def test_find_no_shows(self, db, make_meetup):
        m = make_meetup(approved=["a", "b", "c"], confirmed=True)
        host_confirm_attendance(db, m.id, HOST, "b")
        assert sorted(find_no_show_user_ids(db, m)) == ["a", "c"]
