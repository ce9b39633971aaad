"""Attendance percentage aggregation over day sheets."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from app.models.attendance import AttendanceStatus, CANONICAL_STATUSES, DaySheet


def percentage_of(present: int, total: int) -> int:
    """Integer percentage rounded half up; 0 when nothing was marked."""
    if total <= 0:
        return 0
    return (200 * present + total) // (2 * total)


@dataclass(frozen=True)
class AttendanceStats:
    present: int = 0
    total: int = 0

    @property
    def percentage(self) -> int:
        return percentage_of(self.present, self.total)

    def as_dict(self) -> dict:
        return {**asdict(self), "percentage": self.percentage}


EMPTY_STATS = AttendanceStats()


def compute_stats(student_id: str, sheets: Iterable[DaySheet]) -> AttendanceStats:
    present = total = 0
    for sheet in sheets:
        record = sheet.record_for(student_id)
        if record is None or record.status not in CANONICAL_STATUSES:
            continue
        total += 1
        if record.status == AttendanceStatus.PRESENT:
            present += 1
    return AttendanceStats(present=present, total=total)


def compute_group_stats(sheets: Iterable[DaySheet]) -> dict[str, AttendanceStats]:
    """Stats for every student appearing in `sheets`, in one pass."""
    counts: dict[str, list[int]] = {}
    for sheet in sheets:
        seen: set[str] = set()
        for record in sheet.records:
            # match compute_stats, which only looks at a student's first record per sheet
            if record.student in seen:
                continue
            seen.add(record.student)
            if record.status not in CANONICAL_STATUSES:
                continue
            tally = counts.setdefault(record.student, [0, 0])
            tally[1] += 1
            if record.status == AttendanceStatus.PRESENT:
                tally[0] += 1
    return {student: AttendanceStats(present=p, total=t) for student, (p, t) in counts.items()}
