from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AttendanceError(HTTPException):
    """HTTPException carrying extra payload merged into the error envelope."""

    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        detail: str,
        *,
        extra: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(status_code=status_code or self.default_status, detail=detail)
        self.extra = extra or {}


# Missing/invalid input, rejected before touching the store
class ValidationError(AttendanceError):
    pass


# Duplicate same-day check-in or second checkout; carries the record
class ConflictError(AttendanceError):
    pass


class NotFoundError(AttendanceError):
    default_status = status.HTTP_404_NOT_FOUND


# Business rule rejection (e.g. early checkout without remarks)
class PolicyError(AttendanceError):
    pass


# Outside every allowed geofence
class LocationError(PolicyError):
    pass


class StoreError(AttendanceError):
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, operation: str, error: Exception):
        super().__init__(f"Failed to {operation}: {error}")
