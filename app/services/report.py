"""CSV / Excel export of a group's attendance history."""
from __future__ import annotations

import io
from typing import Iterable

import pandas as pd

from app.models.attendance import DaySheet
from app.services.stats import compute_group_stats

RECORD_COLUMNS = ["Date", "Student ID", "Student Name", "Status"]
SUMMARY_COLUMNS = ["Student ID", "Student Name", "Present", "Total", "Percentage"]


def build_frames(sheets: Iterable[DaySheet], names: dict[str, str]) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Per-record rows (oldest date first) and the per-student summary."""
    sheets = sorted(sheets, key=lambda s: s.date)
    rows = [
        {
            "Date": sheet.date.isoformat(),
            "Student ID": record.student,
            "Student Name": names.get(record.student, "Unknown"),
            "Status": record.status,
        }
        for sheet in sheets
        for record in sheet.records
    ]
    records = pd.DataFrame(rows, columns=RECORD_COLUMNS)

    stats = compute_group_stats(sheets)
    summary = pd.DataFrame(
        [
            {
                "Student ID": student_id,
                "Student Name": names.get(student_id, "Unknown"),
                "Present": s.present,
                "Total": s.total,
                "Percentage": s.percentage,
            }
            for student_id, s in stats.items()
        ],
        columns=SUMMARY_COLUMNS,
    )
    if not summary.empty:
        summary = summary.sort_values("Student Name", kind="stable").reset_index(drop=True)
    return records, summary


def to_csv(records: pd.DataFrame, summary: pd.DataFrame) -> str:
    stream = io.StringIO()
    records.to_csv(stream, index=False)
    stream.write("\n")
    summary.to_csv(stream, index=False)
    return stream.getvalue()


def to_excel(records: pd.DataFrame, summary: pd.DataFrame) -> io.BytesIO:
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        records.to_excel(writer, index=False, sheet_name="Attendance")
        summary.to_excel(writer, index=False, sheet_name="Summary")
    output.seek(0)
    return output
