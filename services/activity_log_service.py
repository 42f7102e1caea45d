import logging
from typing import Any, Dict, Optional

from sqlmodel import Session

from models.app_log import AppLog

logger = logging.getLogger(__name__)


def log_activity(
    session: Session,
    *,
    action: str,
    module: str,
    user_id: Optional[str] = None,
    site_id: Optional[str] = None,
    description: Optional[str] = None,
    ip_address: Optional[str] = None,
    device_info: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Record an audit entry. Failures are logged and never reach the caller."""
    try:
        session.add(
            AppLog(
                user_id=user_id,
                site_id=site_id,
                action=action,
                module=module,
                description=description,
                ip_address=ip_address,
                device_info=device_info,
                details=metadata or {},
            )
        )
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Failed to insert activity log %s/%s: %s", module, action, e)
