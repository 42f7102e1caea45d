import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from core.config import ATTENDANCE_TIMEZONE, EARLY_CHECKOUT_HOURS
from core.exceptions import (
    ConflictError,
    LocationError,
    NotFoundError,
    PolicyError,
    StoreError,
    ValidationError,
)
from models.attendance_log import (
    WFH_SITE_ID,
    AttendanceLog,
    AttendanceLogCreate,
    AttendanceLogUpdate,
    AttendanceStatus,
    CheckInRequest,
    CheckOutRequest,
)
from services.activity_log_service import log_activity
from services.location_validator import validate_user_location
from utils.geofence import Coordinates
from utils.timezone_helpers import civil_date, ensure_timezone_aware, to_utc, utc_now

logger = logging.getLogger(__name__)

MODULE = "attendance"

# Columns an admin edit may change but never clear
NOT_NULL_FIELDS = ("date", "status")


@dataclass
class CheckOutResult:
    record: AttendanceLog
    hours_worked: float
    is_early_checkout: bool

    def to_response(self) -> dict:
        return {
            "success": True,
            "message": "Checked out successfully",
            "data": self.record,
            "hoursWorked": format_hours(self.hours_worked),
            "isEarlyCheckout": self.is_early_checkout,
        }


def format_hours(hours: float) -> str:
    return f"{hours:.2f}"


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours as a float; naive timestamps are read as UTC."""
    delta = ensure_timezone_aware(end) - ensure_timezone_aware(start)
    return delta.total_seconds() / 3600


class AttendanceService:

    @staticmethod
    def get_attendance_by_id(session: Session, attendance_id: int) -> Optional[AttendanceLog]:
        try:
            return session.get(AttendanceLog, attendance_id)
        except SQLAlchemyError as e:
            raise StoreError("fetch attendance log", e)

    @staticmethod
    def get_today_attendance(
        session: Session, user_id: str, now: Optional[datetime] = None
    ) -> Optional[AttendanceLog]:
        today = civil_date(now or utc_now(), ATTENDANCE_TIMEZONE)
        logger.debug("Fetching attendance for user %s on %s", user_id, today)
        try:
            return session.exec(
                select(AttendanceLog)
                .where(AttendanceLog.user_id == user_id)
                .where(AttendanceLog.date == today)
                .order_by(AttendanceLog.check_in_time.desc())
            ).first()
        except SQLAlchemyError as e:
            raise StoreError("get attendance", e)

    @staticmethod
    def check_in(
        session: Session, data: CheckInRequest, now: Optional[datetime] = None
    ) -> AttendanceLog:
        """
        Open today's attendance record for a user.

        Rejects a second check-in on the same civil date. When coordinates
        are sent by a non-WFH user, the chosen site must be inside one of the
        user's geofences. The "WFH" site sentinel is stored as no site.
        """
        if not data.user_id or not data.site_id:
            raise ValidationError("user_id and site_id are required")

        now = to_utc(now or utc_now())

        existing = AttendanceService.get_today_attendance(session, data.user_id, now=now)
        if existing:
            raise ConflictError("Already checked in today", extra={"data": existing})

        coords = Coordinates.from_optional(data.latitude, data.longitude)
        if coords is not None:
            validation = validate_user_location(session, data.user_id, coords)
            if not validation.is_wfh and not validation.allows_site(data.site_id):
                response = validation.to_response()
                raise LocationError(
                    validation.message or "You are not within range of the selected site",
                    extra={
                        "allowedSites": response["allowedSites"],
                        "nearestSite": response["nearestSite"],
                    },
                )

        site_id = None if data.site_id == WFH_SITE_ID else data.site_id
        today = civil_date(now, ATTENDANCE_TIMEZONE)
        logger.info("Checking in user %s on %s (site=%s)", data.user_id, today, site_id or "WFH")

        record = AttendanceLog(
            user_id=data.user_id,
            site_id=site_id,
            date=today,
            check_in_time=now,
            check_in_latitude=data.latitude,
            check_in_longitude=data.longitude,
            check_in_address=data.address,
            shift_id=data.shift_id,
            status=AttendanceStatus.PRESENT,
        )
        try:
            session.add(record)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            # Lost a race with a concurrent check-in for the same day
            existing = AttendanceService.get_today_attendance(session, data.user_id, now=now)
            if existing:
                raise ConflictError("Already checked in today", extra={"data": existing})
            raise StoreError("check in", e)
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("check in", e)

        log_activity(
            session,
            user_id=record.user_id,
            site_id=record.site_id,
            action="CHECK_IN",
            module=MODULE,
            description=f"Checked in on {today}",
            metadata={"attendance_id": record.id, "wfh": site_id is None},
        )
        session.refresh(record)
        return record

    @staticmethod
    def check_out(
        session: Session,
        attendance_id: int,
        data: CheckOutRequest,
        now: Optional[datetime] = None,
    ) -> CheckOutResult:
        record = AttendanceService.get_attendance_by_id(session, attendance_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        if record.is_closed:
            raise ConflictError("Already checked out", extra={"data": record})

        now = to_utc(now or utc_now())
        hours_worked = hours_between(record.check_in_time, now) if record.check_in_time else 0.0
        is_early = hours_worked < EARLY_CHECKOUT_HOURS

        if is_early and not data.remarks:
            raise PolicyError(
                "Early checkout requires a reason",
                extra={"isEarlyCheckout": True, "hoursWorked": format_hours(hours_worked)},
            )

        record.check_out_time = now
        record.check_out_latitude = data.latitude
        record.check_out_longitude = data.longitude
        record.check_out_address = data.address
        record.remarks = data.remarks
        try:
            session.add(record)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("check out", e)

        log_activity(
            session,
            user_id=record.user_id,
            site_id=record.site_id,
            action="CHECK_OUT",
            module=MODULE,
            description=f"Checked out after {format_hours(hours_worked)}h",
            metadata={"attendance_id": record.id, "early": is_early},
        )
        session.refresh(record)
        return CheckOutResult(record=record, hours_worked=hours_worked, is_early_checkout=is_early)

    @staticmethod
    def validate_attendance_log(data: AttendanceLogCreate) -> List[str]:
        errors = []
        if not data.user_id:
            errors.append("user_id is required")
        if not data.date:
            errors.append("date is required")
        valid = [s.value for s in AttendanceStatus]
        if data.status and data.status not in valid:
            errors.append(f"status must be one of: {', '.join(valid)}")
        return errors

    @staticmethod
    def create_attendance_log(session: Session, data: AttendanceLogCreate) -> AttendanceLog:
        errors = AttendanceService.validate_attendance_log(data)
        if errors:
            raise ValidationError("; ".join(errors), extra={"errors": errors})

        values = data.model_dump(exclude_none=True)
        values["status"] = AttendanceStatus(values.get("status", AttendanceStatus.PRESENT))
        record = AttendanceLog(**values)
        try:
            session.add(record)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise ConflictError(
                f"Attendance for {data.user_id} on {data.date} already exists or references unknown data: {e.orig}"
            )
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("create attendance log", e)
        session.refresh(record)
        return record

    @staticmethod
    def update_attendance_log(
        session: Session, attendance_id: int, data: AttendanceLogUpdate
    ) -> AttendanceLog:
        record = AttendanceService.get_attendance_by_id(session, attendance_id)
        if not record:
            raise NotFoundError("Attendance log not found")

        changes = data.model_dump(exclude_unset=True)
        errors = [
            f"{field} cannot be null"
            for field in NOT_NULL_FIELDS
            if field in changes and changes[field] is None
        ]
        if errors:
            raise ValidationError("; ".join(errors), extra={"errors": errors})

        for key, value in changes.items():
            setattr(record, key, value)
        try:
            session.add(record)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise ConflictError(f"Update conflicts with an existing attendance log: {e.orig}")
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("update attendance log", e)

        log_activity(
            session,
            user_id=record.user_id,
            site_id=record.site_id,
            action="UPDATE",
            module=MODULE,
            description=f"Attendance log {attendance_id} edited",
            metadata={"fields": sorted(changes)},
        )
        session.refresh(record)
        return record

    @staticmethod
    def delete_attendance_log(session: Session, attendance_id: int) -> None:
        record = AttendanceService.get_attendance_by_id(session, attendance_id)
        if not record:
            raise NotFoundError("Attendance log not found")

        user_id, site_id = record.user_id, record.site_id
        try:
            session.delete(record)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("delete attendance log", e)

        log_activity(
            session,
            user_id=user_id,
            site_id=site_id,
            action="DELETE",
            module=MODULE,
            description=f"Attendance log {attendance_id} deleted",
        )
