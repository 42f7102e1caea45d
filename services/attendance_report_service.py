import math
from collections import Counter, defaultdict
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from core.config import EARLY_CHECKOUT_HOURS
from core.exceptions import StoreError
from models.attendance_log import AttendanceLog, AttendanceStatus
from models.site import Site
from models.user import User
from services.attendance_service import hours_between
from utils.timezone_helpers import today_in_tz

ALL_SITES = "all"


def _scoped_to_site(statement, site_id: Optional[str]):
    if site_id and site_id != ALL_SITES:
        return statement.where(AttendanceLog.site_id == site_id)
    return statement


def _in_range(statement, date_from: Optional[date], date_to: Optional[date]):
    if date_from:
        statement = statement.where(AttendanceLog.date >= date_from)
    if date_to:
        statement = statement.where(AttendanceLog.date <= date_to)
    return statement


def get_attendance_by_user(
    session: Session,
    user_id: str,
    page: int = 1,
    limit: int = 30,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    """A page of a user's history, newest day first."""
    page = max(page, 1)
    limit = max(limit, 1)
    offset = (page - 1) * limit

    base = _in_range(
        select(AttendanceLog).where(AttendanceLog.user_id == user_id), date_from, date_to
    )
    try:
        total = session.exec(
            select(func.count()).select_from(base.subquery())
        ).one()
        rows = session.exec(
            base.order_by(AttendanceLog.date.desc(), AttendanceLog.check_in_time.desc())
            .offset(offset)
            .limit(limit)
        ).all()
    except SQLAlchemyError as e:
        raise StoreError("get attendance", e)

    return {
        "data": list(rows),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    }


def get_attendance_by_site(
    session: Session,
    site_id: str,
    day: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
) -> List[Dict[str, Any]]:
    """Who checked in at a site on one civil date (default today), earliest first."""
    day = day or today_in_tz()
    statement = (
        select(AttendanceLog, User)
        .join(User, User.user_id == AttendanceLog.user_id)
        .where(AttendanceLog.site_id == site_id)
        .where(AttendanceLog.date == day)
    )
    if status:
        statement = statement.where(AttendanceLog.status == status)
    statement = statement.order_by(AttendanceLog.check_in_time.asc())

    try:
        rows = session.exec(statement).all()
    except SQLAlchemyError as e:
        raise StoreError("get attendance", e)

    return [
        {
            **record.model_dump(),
            "user": {"name": user.name, "phone": user.phone, "role": user.role},
        }
        for record, user in rows
    ]


def get_attendance_report(
    session: Session,
    site_id: Optional[str],
    date_from: date,
    date_to: date,
) -> List[Dict[str, Any]]:
    """
    Attendance rows across an inclusive date range, oldest day first.

    `site_id` of "all" (or None) covers every site, including WFH rows.
    """
    statement = (
        select(AttendanceLog, User, Site)
        .join(User, User.user_id == AttendanceLog.user_id)
        .outerjoin(Site, Site.site_id == AttendanceLog.site_id)
    )
    statement = _in_range(_scoped_to_site(statement, site_id), date_from, date_to)
    statement = statement.order_by(AttendanceLog.date.asc(), AttendanceLog.check_in_time.asc())

    try:
        rows = session.exec(statement).all()
    except SQLAlchemyError as e:
        raise StoreError("get attendance report", e)

    return [
        {
            **record.model_dump(),
            "user": {
                "name": user.name,
                "user_id": user.user_id,
                "employee_code": user.employee_code,
            },
            "site": {"name": site.name, "site_code": site.site_code} if site else None,
        }
        for record, user, site in rows
    ]


def get_attendance_stats(
    session: Session,
    site_id: Optional[str],
    date_from: date,
    date_to: date,
) -> Dict[str, Any]:
    statement = _in_range(_scoped_to_site(select(AttendanceLog), site_id), date_from, date_to)
    try:
        records = session.exec(statement).all()
    except SQLAlchemyError as e:
        raise StoreError("get attendance stats", e)

    by_status = Counter({status.value: 0 for status in AttendanceStatus})
    per_date: Dict[str, int] = defaultdict(int)
    total_hours = 0.0
    closed = early = wfh = 0

    for record in records:
        by_status[AttendanceStatus(record.status).value] += 1
        per_date[record.date.isoformat()] += 1
        if record.site_id is None:
            wfh += 1
        if record.check_in_time and record.check_out_time:
            hours = hours_between(record.check_in_time, record.check_out_time)
            closed += 1
            total_hours += hours
            if hours < EARLY_CHECKOUT_HOURS:
                early += 1

    return {
        "site_id": site_id or ALL_SITES,
        "date_from": date_from.isoformat(),
        "date_to": date_to.isoformat(),
        "total_records": len(records),
        "by_status": dict(by_status),
        "checked_out": closed,
        "open_sessions": len(records) - closed,
        "early_checkouts": early,
        "wfh_check_ins": wfh,
        "total_hours": round(total_hours, 2),
        "average_hours": round(total_hours / closed, 2) if closed else 0.0,
        "per_date": dict(sorted(per_date.items())),
    }
