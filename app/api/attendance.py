from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from app.api.deps import BulkService, Cache, CurrentUser, Roster, Store
from app.config import settings
from app.errors import NotFoundError, ValidationError
from app.models.attendance import BulkAttendanceRequest, DaySheet, date_key
from app.services import report
from app.services.cache import history_key

router = APIRouter()


@router.post("/bulk")
async def save_attendance_bulk(data: BulkAttendanceRequest, user: CurrentUser, roster: Roster, service: BulkService):
    """Apply a batch of {studentId, date, status} changes to the group's day sheets."""
    if len(data.updates) > settings.bulk_max_updates:
        raise ValidationError(f"At most {settings.bulk_max_updates} updates per request")
    await roster.require_admin(data.group_id, str(user.id))

    result = await service.apply_bulk_updates(data.group_id, data.updates)
    return {
        "message": "Attendance saved",
        "dates": [d.isoformat() for d in result.dates],
    }


@router.get("/{group_id}/history")
async def get_history(group_id: str, user: CurrentUser, roster: Roster, store: Store, cache: Cache):
    """All sheets of the group, newest date first."""
    await roster.require_member(group_id, str(user.id))
    sheets = await cache.get_or_load(history_key(group_id), lambda: store.find_all_sheets(group_id))
    return [s.to_out() for s in sheets]


@router.get("/{group_id}/export")
async def export_attendance(
    group_id: str,
    user: CurrentUser,
    roster: Roster,
    store: Store,
    format: str = Query("csv", enum=["csv", "excel"]),
):
    """Download the group's attendance history with per-student totals."""
    group = await roster.require_admin(group_id, str(user.id))
    sheets = await store.find_all_sheets(group_id)
    if not sheets:
        raise NotFoundError("No attendance recorded for this group")

    # students removed from the roster still appear in history
    student_ids = set(group.students) | {r.student for s in sheets for r in s.records}
    names = {str(u.id): u.name for u in await roster.get_users(student_ids)}
    records, summary = report.build_frames(sheets, names)

    filename = f"attendance_{group_id}"
    if format == "csv":
        return StreamingResponse(
            iter([report.to_csv(records, summary)]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}.csv"},
        )
    return StreamingResponse(
        report.to_excel(records, summary),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}.xlsx"},
    )


@router.get("/{group_id}/{date_str}")
async def get_sheet(group_id: str, date_str: str, user: CurrentUser, roster: Roster, store: Store):
    """Sheet for one date; an empty sheet when nothing was marked yet."""
    await roster.require_member(group_id, str(user.id))
    try:
        day = date_key(date_str)
    except ValueError as e:
        raise ValidationError(str(e))
    sheet = await store.find_sheet(group_id, day)
    return (sheet or DaySheet(group=group_id, date=day)).to_out()
