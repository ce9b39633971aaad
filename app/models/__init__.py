"""Beanie document models and Pydantic schemas."""
from app.models.user import User, UserCreate, UserOut
from app.models.group import Group, GroupCreate, AddStudentRequest, AddAdminRequest
from app.models.attendance import (
    AttendanceEntry,
    AttendanceSheet,
    AttendanceStatus,
    BulkAttendanceRequest,
    DaySheet,
    PendingUpdate,
)

__all__ = [
    "User",
    "UserCreate",
    "UserOut",
    "Group",
    "GroupCreate",
    "AddStudentRequest",
    "AddAdminRequest",
    "AttendanceEntry",
    "AttendanceSheet",
    "AttendanceStatus",
    "BulkAttendanceRequest",
    "DaySheet",
    "PendingUpdate",
]
