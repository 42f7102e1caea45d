from .app_log import AppLog
from .attendance_log import (
    WFH_SITE_ID,
    AttendanceLog,
    AttendanceLogCreate,
    AttendanceLogUpdate,
    AttendanceStatus,
    CheckInRequest,
    CheckOutRequest,
)
from .site import Site, SiteUser
from .user import User, UserRole, WorkLocationType
