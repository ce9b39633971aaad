"""Bulk attendance upsert: partition updates by date and merge them into day sheets."""
from __future__ import annotations

import asyncio
import datetime
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Hashable, Iterable, Optional

from app.errors import PartialApplicationError, PersistenceError, SheetConflictError, ValidationError
from app.models.attendance import AttendanceEntry, AttendanceStatus, DaySheet, PendingUpdate
from app.services.store import AttendanceStore

if TYPE_CHECKING:
    from app.services.notifier import NotificationDispatcher

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One asyncio.Lock per key, dropped again once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class BulkResult:
    group_id: str
    dates: list[datetime.date] = field(default_factory=list)
    updates_applied: int = 0


def partition_updates(updates: Iterable[PendingUpdate]) -> dict[datetime.date, dict[str, AttendanceStatus]]:
    """Group updates by calendar date; a later update for the same student wins."""
    partitions: dict[datetime.date, dict[str, AttendanceStatus]] = {}
    for update in updates:
        partitions.setdefault(update.date, {})[update.student_id] = update.status
    return partitions


def merge_records(
    records: Iterable[AttendanceEntry], changes: dict[str, AttendanceStatus]
) -> list[AttendanceEntry]:
    """Overwrite existing students in place and append new ones.

    Duplicate students already present in `records` collapse onto their first
    record, which is also the one the percentage counts.
    """
    merged: list[AttendanceEntry] = []
    position: dict[str, int] = {}
    for record in records:
        if record.student in position:
            continue
        position[record.student] = len(merged)
        merged.append(AttendanceEntry(student=record.student, status=record.status))

    for student_id, status in changes.items():
        entry = AttendanceEntry(student=student_id, status=status.value)
        if student_id in position:
            merged[position[student_id]] = entry
        else:
            position[student_id] = len(merged)
            merged.append(entry)
    return merged


class BulkAttendanceService:
    def __init__(
        self,
        store: AttendanceStore,
        dispatcher: Optional["NotificationDispatcher"] = None,
        locks: Optional[KeyedLocks] = None,
        conflict_retries: int = 2,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.locks = locks or KeyedLocks()
        self.conflict_retries = conflict_retries

    async def apply_bulk_updates(self, group_id: str, updates: list[PendingUpdate]) -> BulkResult:
        """Merge `updates` into the group's day sheets, one sheet per date.

        Each date is applied atomically on its own. A failing date does not stop
        the others and committed dates are kept; failures are reported together
        at the end.
        """
        if not group_id:
            raise ValidationError("groupId is required")
        partitions = partition_updates(updates)
        result = BulkResult(group_id=group_id)
        if not partitions:
            return result

        failed: dict[datetime.date, str] = {}
        for day, changes in partitions.items():
            try:
                await self._apply_partition(group_id, day, changes)
            except PersistenceError as e:
                logger.error("Bulk save failed for group %s on %s: %s", group_id, day.isoformat(), e)
                failed[day] = e.message
                continue
            result.dates.append(day)
            result.updates_applied += len(changes)

        if result.dates and self.dispatcher is not None:
            self.dispatcher.notify_group_changed(group_id)

        if failed:
            if not result.dates:
                raise PersistenceError(
                    "Attendance could not be saved",
                    failed={d.isoformat(): reason for d, reason in failed.items()},
                )
            raise PartialApplicationError(result.dates, failed)

        logger.info(
            "Saved %d attendance updates for group %s across %d dates",
            result.updates_applied,
            group_id,
            len(result.dates),
        )
        return result

    async def _apply_partition(
        self, group_id: str, day: datetime.date, changes: dict[str, AttendanceStatus]
    ) -> DaySheet:
        async with self.locks.hold((group_id, day)):
            attempt = 0
            while True:
                sheet = await self.store.find_sheet(group_id, day)
                if sheet is None:
                    sheet = DaySheet(group=group_id, date=day)
                merged = sheet.model_copy(update={"records": merge_records(sheet.records, changes)})
                try:
                    return await self.store.upsert_sheet(merged)
                except SheetConflictError:
                    attempt += 1
                    if attempt > self.conflict_retries:
                        raise
                    logger.info("Re-merging %s/%s after a concurrent create", group_id, day.isoformat())
