"""Attendance sheet persistence: the store contract and its MongoDB implementation."""
from __future__ import annotations

import datetime
import logging
from typing import Optional, Protocol

from pymongo.errors import DuplicateKeyError, PyMongoError

from app.errors import PersistenceError, SheetConflictError
from app.models.attendance import AttendanceSheet, DaySheet, sheet_instant

logger = logging.getLogger(__name__)


class AttendanceStore(Protocol):
    async def find_sheet(self, group: str, day: datetime.date) -> Optional[DaySheet]:
        raise NotImplementedError

    async def find_all_sheets(self, group: str) -> list[DaySheet]:
        """All sheets of a group, newest date first."""

        raise NotImplementedError

    async def upsert_sheet(self, sheet: DaySheet) -> DaySheet:
        """Create the (group, date) sheet or replace its records.

        Raises SheetConflictError when the sheet was created by another writer
        after `sheet` was read.
        """

        raise NotImplementedError


def to_day_sheet(doc: AttendanceSheet) -> DaySheet:
    return DaySheet(
        group=doc.group,
        date=doc.date.date(),
        records=list(doc.records),
        updated_at=doc.updated_at,
    )


class BeanieAttendanceStore:
    """Sheets in the `attendance` collection; (group, date) has a unique index."""

    async def find_sheet(self, group: str, day: datetime.date) -> Optional[DaySheet]:
        try:
            doc = await AttendanceSheet.find_one(
                AttendanceSheet.group == group,
                AttendanceSheet.date == sheet_instant(day),
            )
        except PyMongoError as e:
            raise PersistenceError(f"Could not load sheet for {day.isoformat()}: {e}") from e
        return to_day_sheet(doc) if doc else None

    async def find_all_sheets(self, group: str) -> list[DaySheet]:
        try:
            docs = await AttendanceSheet.find(AttendanceSheet.group == group).sort("-date").to_list()
        except PyMongoError as e:
            raise PersistenceError(f"Could not load attendance history: {e}") from e
        return [to_day_sheet(d) for d in docs]

    async def upsert_sheet(self, sheet: DaySheet) -> DaySheet:
        now = datetime.datetime.utcnow()
        instant = sheet_instant(sheet.date)
        collection = AttendanceSheet.get_motor_collection()
        update = {
            "$set": {
                "records": [r.model_dump() for r in sheet.records],
                "updated_at": now,
            },
            "$setOnInsert": {"group": sheet.group, "date": instant, "created_at": now},
        }
        try:
            await collection.update_one({"group": sheet.group, "date": instant}, update, upsert=True)
        except DuplicateKeyError as e:
            # records were merged against a sheet that did not exist yet
            logger.info("Sheet %s/%s created concurrently", sheet.group, sheet.date.isoformat())
            raise SheetConflictError(f"Sheet for {sheet.date.isoformat()} was created concurrently") from e
        except PyMongoError as e:
            raise PersistenceError(f"Could not save sheet for {sheet.date.isoformat()}: {e}") from e
        return sheet.model_copy(update={"updated_at": now})
