"""Day-keyed attendance sheets and the bulk update payload."""
import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo import ASCENDING, IndexModel


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"


CANONICAL_STATUSES = frozenset(s.value for s in AttendanceStatus)


def parse_status(value: Any) -> AttendanceStatus:
    """Map loosely-typed status input onto the two canonical values.

    "Present" (any case), True and 1 mean present; everything else is absent.
    """
    if isinstance(value, AttendanceStatus):
        return value
    if isinstance(value, bool):
        return AttendanceStatus.PRESENT if value else AttendanceStatus.ABSENT
    if isinstance(value, (int, float)):
        return AttendanceStatus.PRESENT if value == 1 else AttendanceStatus.ABSENT
    if isinstance(value, str) and value.strip().lower() == "present":
        return AttendanceStatus.PRESENT
    return AttendanceStatus.ABSENT


def date_key(value: Any) -> datetime.date:
    """Calendar date of a date-like value; time of day and timezone are dropped."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # JS clients send epoch milliseconds
        seconds = value / 1000 if abs(value) > 1e11 else value
        try:
            return datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            raise ValueError(f"Invalid timestamp: {value!r}") from None
    if isinstance(value, str):
        head = value.strip().replace(" ", "T", 1).split("T", 1)[0]
        try:
            return datetime.date.fromisoformat(head)
        except ValueError:
            raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from None
    raise ValueError(f"Invalid date: {value!r}")


def sheet_instant(day: datetime.date) -> datetime.datetime:
    """Canonical stored instant for a calendar date (UTC midnight)."""
    return datetime.datetime(day.year, day.month, day.day)


class AttendanceEntry(BaseModel):
    student: str
    # Plain str so legacy documents with odd values still load; writers only use AttendanceStatus.
    status: str


class AttendanceSheet(Document):
    """Attendance sheet for one group on one calendar date."""

    group: str
    date: datetime.datetime
    records: list[AttendanceEntry] = Field(default_factory=list)
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)
    updated_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    class Settings:
        name = "attendance"
        use_state_management = True
        indexes = [
            IndexModel([("group", ASCENDING), ("date", ASCENDING)], unique=True, name="group_date_unique"),
        ]


class DaySheet(BaseModel):
    """Store-agnostic view of an attendance sheet."""

    group: str
    date: datetime.date
    records: list[AttendanceEntry] = Field(default_factory=list)
    updated_at: Optional[datetime.datetime] = None

    def record_for(self, student_id: str) -> Optional[AttendanceEntry]:
        for record in self.records:
            if record.student == student_id:
                return record
        return None

    def to_out(self) -> dict:
        return {
            "group": self.group,
            "date": sheet_instant(self.date).isoformat(),
            "records": [{"student": r.student, "status": r.status} for r in self.records],
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class PendingUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId", min_length=1)
    date: datetime.date
    status: AttendanceStatus = AttendanceStatus.ABSENT

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, v: Any) -> datetime.date:
        return date_key(v)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v: Any) -> AttendanceStatus:
        return parse_status(v)


class BulkAttendanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_id: str = Field(alias="groupId", min_length=1)
    updates: list[PendingUpdate] = Field(default_factory=list)
