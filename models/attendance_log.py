import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_serializer
from pydantic import Field as PydanticField
from sqlalchemy import DateTime
from sqlmodel import Field, Index, SQLModel, UniqueConstraint

from utils.timezone_helpers import format_utc_datetime

# Sentinel site_id a client sends for a work-from-home check-in
WFH_SITE_ID = "WFH"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    HALF_DAY = "Half Day"
    LEAVE = "Leave"


# Defines the Structure of Data for a Check-in Call
class CheckInRequest(BaseModel):
    user_id: Optional[str] = None
    site_id: Optional[str] = None  # a site id or "WFH"
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180, allow_inf_nan=False)
    address: Optional[str] = None
    shift_id: Optional[str] = None


class CheckOutRequest(BaseModel):
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180, allow_inf_nan=False)
    address: Optional[str] = None
    remarks: Optional[str] = None


# Admin payloads; validated by the service so errors come back as a list
class AttendanceLogCreate(BaseModel):
    user_id: Optional[str] = None
    site_id: Optional[str] = None
    date: Optional[dt.date] = None
    check_in_time: Optional[dt.datetime] = None
    check_out_time: Optional[dt.datetime] = None
    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None
    check_out_latitude: Optional[float] = None
    check_out_longitude: Optional[float] = None
    check_in_address: Optional[str] = None
    check_out_address: Optional[str] = None
    shift_id: Optional[str] = None
    status: Optional[str] = None
    remarks: Optional[str] = None


class AttendanceLogUpdate(BaseModel):
    site_id: Optional[str] = None
    date: Optional[dt.date] = None
    check_in_time: Optional[dt.datetime] = None
    check_out_time: Optional[dt.datetime] = None
    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None
    check_out_latitude: Optional[float] = None
    check_out_longitude: Optional[float] = None
    check_in_address: Optional[str] = None
    check_out_address: Optional[str] = None
    shift_id: Optional[str] = None
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = None


# One row per user per civil date (Asia/Kolkata)
class AttendanceLog(SQLModel, table=True):
    __tablename__ = "attendance_logs"

    __table_args__ = (
        # Authoritative guard for one check-in per user per day
        UniqueConstraint("user_id", "date", name="uq_attendance_logs_user_date"),
        Index("ix_attendance_logs_site_id_date", "site_id", "date"),
        Index("ix_attendance_logs_date", "date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.user_id", index=True)
    # None means the user checked in from home
    site_id: Optional[str] = Field(default=None, foreign_key="sites.site_id")
    date: dt.date
    check_in_time: Optional[dt.datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None
    check_in_address: Optional[str] = None
    check_out_time: Optional[dt.datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    check_out_latitude: Optional[float] = None
    check_out_longitude: Optional[float] = None
    check_out_address: Optional[str] = None
    status: AttendanceStatus = Field(default=AttendanceStatus.PRESENT)
    remarks: Optional[str] = None
    shift_id: Optional[str] = None
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc),
        sa_type=DateTime(timezone=True),
    )

    @property
    def is_closed(self) -> bool:
        return self.check_out_time is not None

    @field_serializer("check_in_time", "check_out_time", "created_at")
    def serialize_timestamp(self, value: Optional[dt.datetime]) -> Optional[str]:
        """Ensure timestamps are formatted as UTC with Z suffix"""
        return format_utc_datetime(value)
