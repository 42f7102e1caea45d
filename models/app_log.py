from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Index, SQLModel


# Audit trail of user actions; written best-effort
class AppLog(SQLModel, table=True):
    __tablename__ = "app_logs"

    __table_args__ = (
        Index("ix_app_logs_module_action", "module", "action"),
        Index("ix_app_logs_created_at", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    site_id: Optional[str] = None
    action: str
    module: str
    description: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[str] = None
    # "metadata" is reserved on declarative models
    details: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
