from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    STAFF = "staff"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class WorkLocationType(str, Enum):
    OFFICE = "OFFICE"
    WFH = "WFH"

    @classmethod
    def from_raw(cls, value: Optional[str]) -> Optional["WorkLocationType"]:
        """Normalize the stored column. "WHF" is a legacy spelling of WFH."""
        if not value:
            return None
        if value.strip().upper() in ("WFH", "WHF"):
            return cls.WFH
        return cls.OFFICE


# Users are provisioned outside this service; attendance only reads them
class User(SQLModel, table=True):
    __tablename__ = "users"

    user_id: str = Field(primary_key=True)
    name: str
    email: Optional[str] = Field(default=None, index=True)
    phone: Optional[str] = None
    employee_code: Optional[str] = None
    role: UserRole = Field(default=UserRole.STAFF)
    # Raw column; read it through WorkLocationType.from_raw
    work_location_type: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)
    attendance_notifications_enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
