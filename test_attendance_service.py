#!/usr/bin/env python3
"""
Check-in / check-out lifecycle against an in-memory database.
"""

import logging
from datetime import date, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

import services.activity_log_service as activity_log_service
from conftest import OFFICE, ist
from core.exceptions import ConflictError, LocationError, NotFoundError, PolicyError, ValidationError
from models.app_log import AppLog
from models.attendance_log import (
    AttendanceLog,
    AttendanceLogCreate,
    AttendanceLogUpdate,
    AttendanceStatus,
    CheckInRequest,
    CheckOutRequest,
)
from services.attendance_service import AttendanceService, hours_between

MORNING = ist(2026, 3, 10, 9, 0)


def check_in(session, user_id="u-office", site_id="S1", now=MORNING, **kwargs):
    return AttendanceService.check_in(
        session, CheckInRequest(user_id=user_id, site_id=site_id, **kwargs), now=now
    )


def test_check_in_opens_todays_record(seeded):
    record = check_in(seeded, latitude=OFFICE[0], longitude=OFFICE[1], address="Gate 2")

    assert record.id is not None
    assert record.date == date(2026, 3, 10)
    assert record.site_id == "S1"
    assert record.status == AttendanceStatus.PRESENT
    assert record.check_out_time is None
    assert record.check_in_address == "Gate 2"


def test_check_in_requires_user_and_site(seeded):
    with pytest.raises(ValidationError) as exc_info:
        AttendanceService.check_in(seeded, CheckInRequest(user_id="u-office"), now=MORNING)
    assert exc_info.value.detail == "user_id and site_id are required"


def test_second_check_in_same_day_is_rejected(seeded):
    first = check_in(seeded)

    with pytest.raises(ConflictError) as exc_info:
        check_in(seeded, now=MORNING + timedelta(hours=3))

    assert exc_info.value.detail == "Already checked in today"
    assert exc_info.value.extra["data"].id == first.id
    assert len(seeded.exec(select(AttendanceLog)).all()) == 1


def test_ist_midnight_splits_days(seeded):
    late = check_in(seeded, now=ist(2026, 3, 10, 23, 45))
    early = check_in(seeded, now=ist(2026, 3, 11, 0, 15))

    assert late.date == date(2026, 3, 10)
    assert early.date == date(2026, 3, 11)


def test_wfh_sentinel_is_stored_as_no_site(seeded):
    record = check_in(seeded, user_id="u-wfh", site_id="WFH")
    assert record.site_id is None


def test_wfh_user_skips_the_geofence(seeded):
    record = check_in(seeded, user_id="u-wfh", site_id="S1", latitude=28.6139, longitude=77.2090)
    assert record.site_id == "S1"


def test_out_of_range_check_in_is_rejected(seeded):
    with pytest.raises(LocationError) as exc_info:
        check_in(seeded, site_id="S2", latitude=OFFICE[0], longitude=OFFICE[1])

    error = exc_info.value
    assert error.status_code == 400
    assert [site["site_id"] for site in error.extra["allowedSites"]] == ["S1"]
    assert error.extra["nearestSite"]["site_id"] == "S1"
    assert seeded.exec(select(AttendanceLog)).all() == []


def test_check_in_without_coordinates_is_not_geofenced(seeded):
    record = check_in(seeded, site_id="S2")
    assert record.site_id == "S2"


def test_unique_constraint_rejects_duplicate_day(seeded):
    seeded.add(AttendanceLog(user_id="u-office", date=date(2026, 3, 10), check_in_time=MORNING))
    seeded.commit()

    seeded.add(AttendanceLog(user_id="u-office", date=date(2026, 3, 10), check_in_time=MORNING))
    with pytest.raises(IntegrityError):
        seeded.commit()
    seeded.rollback()


def test_lost_race_becomes_conflict(seeded, monkeypatch):
    winner = AttendanceLog(user_id="u-office", site_id="S1", date=date(2026, 3, 10), check_in_time=MORNING)
    seeded.add(winner)
    seeded.commit()
    winner_id = winner.id

    real_lookup = AttendanceService.get_today_attendance
    calls = []

    def stale_then_real(session, user_id, now=None):
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return real_lookup(session, user_id, now=now)

    monkeypatch.setattr(AttendanceService, "get_today_attendance", staticmethod(stale_then_real))

    with pytest.raises(ConflictError) as exc_info:
        check_in(seeded, now=MORNING + timedelta(minutes=1))

    assert exc_info.value.extra["data"].id == winner_id
    assert len(calls) == 2


def test_activity_log_failure_does_not_fail_check_in(seeded, monkeypatch, caplog):
    def broken_log(**kwargs):
        raise RuntimeError("app_logs unavailable")

    monkeypatch.setattr(activity_log_service, "AppLog", broken_log)

    with caplog.at_level(logging.ERROR, logger="services.activity_log_service"):
        record = check_in(seeded)

    assert record.id is not None
    assert seeded.get(AttendanceLog, record.id) is not None
    assert "app_logs unavailable" in caplog.text


def test_check_in_writes_activity_log(seeded):
    record = check_in(seeded)

    entry = seeded.exec(select(AppLog).where(AppLog.action == "CHECK_IN")).one()
    assert entry.user_id == "u-office"
    assert entry.module == "attendance"
    assert entry.details["attendance_id"] == record.id


def test_early_checkout_needs_a_reason(seeded):
    record = check_in(seeded)

    with pytest.raises(PolicyError) as exc_info:
        AttendanceService.check_out(
            seeded, record.id, CheckOutRequest(), now=MORNING + timedelta(hours=6.9)
        )

    assert exc_info.value.detail == "Early checkout requires a reason"
    assert exc_info.value.extra == {"isEarlyCheckout": True, "hoursWorked": "6.90"}
    assert seeded.get(AttendanceLog, record.id).check_out_time is None


def test_early_checkout_with_reason(seeded):
    record = check_in(seeded)

    result = AttendanceService.check_out(
        seeded,
        record.id,
        CheckOutRequest(remarks="Doctor appointment", latitude=OFFICE[0], longitude=OFFICE[1]),
        now=MORNING + timedelta(hours=6.9),
    )

    assert result.is_early_checkout
    assert result.record.remarks == "Doctor appointment"
    assert result.record.check_out_latitude == OFFICE[0]
    response = result.to_response()
    assert response["hoursWorked"] == "6.90"
    assert response["isEarlyCheckout"] is True
    assert response["message"] == "Checked out successfully"


def test_full_day_checkout_needs_no_reason(seeded):
    record = check_in(seeded)

    result = AttendanceService.check_out(
        seeded, record.id, CheckOutRequest(), now=MORNING + timedelta(hours=7)
    )

    assert not result.is_early_checkout
    assert result.to_response()["hoursWorked"] == "7.00"
    assert result.record.is_closed
    assert hours_between(result.record.check_in_time, result.record.check_out_time) == pytest.approx(7.0)


def test_second_checkout_is_rejected(seeded):
    record = check_in(seeded)
    AttendanceService.check_out(seeded, record.id, CheckOutRequest(), now=MORNING + timedelta(hours=8))

    with pytest.raises(ConflictError) as exc_info:
        AttendanceService.check_out(
            seeded, record.id, CheckOutRequest(remarks="again"), now=MORNING + timedelta(hours=9)
        )
    assert exc_info.value.detail == "Already checked out"


def test_checkout_unknown_record(seeded):
    with pytest.raises(NotFoundError) as exc_info:
        AttendanceService.check_out(seeded, 999, CheckOutRequest(), now=MORNING)
    assert exc_info.value.status_code == 404


def test_today_attendance_uses_ist_date(seeded):
    check_in(seeded, now=ist(2026, 3, 10, 23, 45))

    assert AttendanceService.get_today_attendance(seeded, "u-office", now=ist(2026, 3, 10, 23, 59))
    assert AttendanceService.get_today_attendance(seeded, "u-office", now=ist(2026, 3, 11, 0, 5)) is None


def test_create_attendance_log_collects_errors(seeded):
    with pytest.raises(ValidationError) as exc_info:
        AttendanceService.create_attendance_log(seeded, AttendanceLogCreate(status="Late"))

    errors = exc_info.value.extra["errors"]
    assert "user_id is required" in errors
    assert "date is required" in errors
    assert any(error.startswith("status must be one of") for error in errors)


def test_admin_create_update_delete(seeded):
    record = AttendanceService.create_attendance_log(
        seeded,
        AttendanceLogCreate(user_id="u-office", site_id="S1", date=date(2026, 3, 9), status="Leave"),
    )
    assert record.status == AttendanceStatus.LEAVE

    with pytest.raises(ConflictError):
        AttendanceService.create_attendance_log(
            seeded, AttendanceLogCreate(user_id="u-office", date=date(2026, 3, 9))
        )

    updated = AttendanceService.update_attendance_log(
        seeded, record.id, AttendanceLogUpdate(status=AttendanceStatus.HALF_DAY, remarks="left at noon")
    )
    assert updated.status == AttendanceStatus.HALF_DAY
    assert updated.site_id == "S1"

    AttendanceService.delete_attendance_log(seeded, record.id)
    assert AttendanceService.get_attendance_by_id(seeded, record.id) is None

    with pytest.raises(NotFoundError):
        AttendanceService.delete_attendance_log(seeded, record.id)


@pytest.mark.parametrize("field", ["date", "status"])
def test_admin_update_cannot_clear_required_fields(seeded, field):
    record = check_in(seeded)

    with pytest.raises(ValidationError) as exc_info:
        AttendanceService.update_attendance_log(seeded, record.id, AttendanceLogUpdate(**{field: None}))

    assert exc_info.value.extra["errors"] == [f"{field} cannot be null"]
    assert seeded.get(AttendanceLog, record.id).date == date(2026, 3, 10)


def test_check_in_payload_rejects_bad_coordinates():
    with pytest.raises(PydanticValidationError):
        CheckInRequest(user_id="u-office", site_id="S1", latitude=float("nan"), longitude=77.5)
    with pytest.raises(PydanticValidationError):
        CheckInRequest(user_id="u-office", site_id="S1", latitude=91.0, longitude=77.5)
    with pytest.raises(PydanticValidationError):
        CheckOutRequest(latitude=12.9, longitude=-181.0)
