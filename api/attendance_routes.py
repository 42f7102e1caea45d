from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from core.config import DEFAULT_RADIUS_METERS
from core.deps import get_current_user, require_admin_role
from core.exceptions import NotFoundError, ValidationError
from db.session import get_session
from models.attendance_log import (
    AttendanceLogCreate,
    AttendanceLogUpdate,
    AttendanceStatus,
    CheckInRequest,
    CheckOutRequest,
)
from services import attendance_report_service as reports
from services.attendance_service import AttendanceService
from services.location_validator import SiteDistance, validate_user_location
from services.site_location_service import get_user_sites_with_coordinates
from utils.geofence import Coordinates

# Defines API Endpoints; mounted under /api/attendance
router = APIRouter(dependencies=[Depends(get_current_user)])


def _require_range(date_from: Optional[date], date_to: Optional[date]) -> None:
    if not date_from or not date_to:
        raise ValidationError("date_from and date_to are required")


# Admin: create a record directly
@router.post("/", status_code=status.HTTP_201_CREATED)
def create_attendance_log(
    data: AttendanceLogCreate,
    session: Session = Depends(get_session),
    admin_user: dict = Depends(require_admin_role),
):
    log = AttendanceService.create_attendance_log(session, data)
    return {"success": True, "data": log}


# Check In Endpoint
@router.post("/check-in", status_code=status.HTTP_201_CREATED)
def check_in(
    data: CheckInRequest,
    session: Session = Depends(get_session),
):
    log = AttendanceService.check_in(session, data)
    return {"success": True, "message": "Checked in successfully", "data": log}


# Check Out Endpoint
@router.post("/{attendance_id}/check-out")
def check_out(
    attendance_id: int,
    data: CheckOutRequest,
    session: Session = Depends(get_session),
):
    return AttendanceService.check_out(session, attendance_id, data).to_response()


# Which of the user's sites can they check in at from here?
@router.get("/validate-location/{user_id}")
def validate_location(
    user_id: str,
    latitude: Optional[float] = Query(default=None, ge=-90, le=90, allow_inf_nan=False),
    longitude: Optional[float] = Query(default=None, ge=-180, le=180, allow_inf_nan=False),
    session: Session = Depends(get_session),
):
    # Coordinates may be missing; WFH users validate without them
    result = validate_user_location(
        session,
        user_id,
        Coordinates.from_optional(latitude, longitude),
        radius_meters=DEFAULT_RADIUS_METERS,
    )
    return {"success": True, "data": result.to_response()}


@router.get("/user-sites/{user_id}")
def get_user_sites(user_id: str, session: Session = Depends(get_session)):
    sites = get_user_sites_with_coordinates(session, user_id)
    return {
        "success": True,
        "data": [SiteDistance.from_site(site).model_dump(exclude={"distance", "in_range"}) for site in sites],
    }


@router.get("/site/{site_id}")
def get_by_site(
    site_id: str,
    day: Optional[date] = Query(default=None, alias="date"),
    status: Optional[AttendanceStatus] = None,
    session: Session = Depends(get_session),
):
    logs = reports.get_attendance_by_site(session, site_id, day=day, status=status)
    return {"success": True, "data": logs}


@router.get("/site/{site_id}/report")
def get_site_report(
    site_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    session: Session = Depends(get_session),
):
    _require_range(date_from, date_to)
    report = reports.get_attendance_report(session, site_id, date_from, date_to)
    return {"success": True, "data": report}


@router.get("/overall-report")
def get_overall_report(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    site_id: Optional[str] = None,
    session: Session = Depends(get_session),
):
    _require_range(date_from, date_to)
    report = reports.get_attendance_report(session, site_id or reports.ALL_SITES, date_from, date_to)
    return {"success": True, "data": report}


@router.get("/stats")
def get_stats(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    site_id: Optional[str] = None,
    session: Session = Depends(get_session),
):
    _require_range(date_from, date_to)
    stats = reports.get_attendance_stats(session, site_id or reports.ALL_SITES, date_from, date_to)
    return {"success": True, "data": stats}


@router.get("/user/{user_id}")
def get_by_user(
    user_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=30, ge=1, le=500),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    session: Session = Depends(get_session),
):
    result = reports.get_attendance_by_user(
        session, user_id, page=page, limit=limit, date_from=date_from, date_to=date_to
    )
    return {"success": True, **result}


@router.get("/user/{user_id}/today")
def get_today_by_user(user_id: str, session: Session = Depends(get_session)):
    return {"success": True, "data": AttendanceService.get_today_attendance(session, user_id)}


@router.get("/{attendance_id}")
def get_by_id(attendance_id: int, session: Session = Depends(get_session)):
    log = AttendanceService.get_attendance_by_id(session, attendance_id)
    if not log:
        raise NotFoundError("Attendance log not found")
    return {"success": True, "data": log}


@router.put("/{attendance_id}")
def update_attendance_log(
    attendance_id: int,
    data: AttendanceLogUpdate,
    session: Session = Depends(get_session),
    admin_user: dict = Depends(require_admin_role),
):
    log = AttendanceService.update_attendance_log(session, attendance_id, data)
    return {"success": True, "data": log}


@router.delete("/{attendance_id}")
def delete_attendance_log(
    attendance_id: int,
    session: Session = Depends(get_session),
    admin_user: dict = Depends(require_admin_role),
):
    AttendanceService.delete_attendance_log(session, attendance_id)
    return {"success": True, "message": "Attendance log deleted successfully"}
