import asyncio
from datetime import date

import pytest

from app.errors import PartialApplicationError, PersistenceError, ValidationError
from app.models.attendance import AttendanceEntry
from app.services.attendance import BulkAttendanceService, KeyedLocks, merge_records, partition_updates
from app.services.stats import compute_stats
from tests.fakes import pending, sheet

MARCH_5 = date(2024, 3, 5)
MARCH_6 = date(2024, 3, 6)

SCENARIO_C = [
    ("s1", "2024-03-05T10:00:00Z", "Present"),
    ("s2", "2024-03-05T23:00:00Z", "Absent"),
]


def batch(items):
    return [pending(s, d, st) for s, d, st in items]


def statuses(stored):
    return [(r.student, r.status) for r in stored.records]


async def test_same_day_updates_land_in_one_sheet(service, store):
    result = await service.apply_bulk_updates("g1", batch(SCENARIO_C))

    assert result.dates == [MARCH_5]
    assert result.updates_applied == 2
    assert list(store.sheets) == [("g1", MARCH_5)]
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present"), ("s2", "Absent")]


async def test_resubmitting_is_idempotent(service, store):
    await service.apply_bulk_updates("g1", batch(SCENARIO_C))
    first = store.sheets[("g1", MARCH_5)].records

    await service.apply_bulk_updates("g1", batch(SCENARIO_C))

    assert store.count("g1", MARCH_5) == 1
    assert store.sheets[("g1", MARCH_5)].records == first


async def test_last_write_wins_within_a_batch(service, store):
    await service.apply_bulk_updates(
        "g1",
        batch([("s1", "2024-03-05", "Present"), ("s1", "2024-03-05T18:00:00Z", "Absent")]),
    )
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Absent")]


async def test_existing_record_flips_and_others_are_untouched(service, store):
    store.sheets[("g1", MARCH_5)] = sheet("g1", MARCH_5, ("s1", "Present"), ("s2", "Present"), ("s3", "Absent"))

    await service.apply_bulk_updates("g1", batch([("s1", "2024-03-05", "Absent")]))

    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Absent"), ("s2", "Present"), ("s3", "Absent")]


async def test_loose_statuses_persist_as_canonical_strings(service, store):
    await service.apply_bulk_updates(
        "g1",
        batch([("s1", "2024-03-05", 1), ("s2", "2024-03-05", 0), ("s3", "2024-03-05", True)]),
    )
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present"), ("s2", "Absent"), ("s3", "Present")]


async def test_updates_across_dates_create_one_sheet_each(service, store, notifications):
    result = await service.apply_bulk_updates(
        "g1",
        batch([("s1", "2024-03-05", "Present"), ("s1", "2024-03-06", "Absent"), ("s2", "2024-03-05", "Absent")]),
    )

    assert sorted(result.dates) == [MARCH_5, MARCH_6]
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present"), ("s2", "Absent")]
    assert statuses(store.sheets[("g1", MARCH_6)]) == [("s1", "Absent")]
    assert notifications == [("g1", "attendance_updated")]


async def test_groups_do_not_share_sheets(service, store):
    await service.apply_bulk_updates("g1", batch([("s1", "2024-03-05", "Present")]))
    await service.apply_bulk_updates("g2", batch([("s1", "2024-03-05", "Absent")]))

    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present")]
    assert statuses(store.sheets[("g2", MARCH_5)]) == [("s1", "Absent")]


async def test_empty_batch_is_a_silent_no_op(service, store, notifications):
    result = await service.apply_bulk_updates("g1", [])

    assert result.dates == []
    assert store.writes == 0
    assert notifications == []


async def test_missing_group_id_is_rejected(service):
    with pytest.raises(ValidationError):
        await service.apply_bulk_updates("", batch(SCENARIO_C))


async def test_failed_date_does_not_undo_committed_dates(service, store, notifications):
    store.fail_on.add(MARCH_6)

    with pytest.raises(PartialApplicationError) as excinfo:
        await service.apply_bulk_updates(
            "g1",
            batch([("s1", "2024-03-06", "Present"), ("s1", "2024-03-05", "Absent")]),
        )

    err = excinfo.value
    assert err.succeeded == [MARCH_5]
    assert list(err.failed) == [MARCH_6]
    assert err.to_payload()["succeeded"] == ["2024-03-05"]
    assert "2024-03-06" in err.to_payload()["failed"]
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Absent")]
    assert ("g1", MARCH_6) not in store.sheets
    assert notifications == [("g1", "attendance_updated")]


async def test_all_dates_failing_raises_persistence_error_without_notifying(service, store, notifications):
    store.fail_on.update({MARCH_5, MARCH_6})

    with pytest.raises(PersistenceError) as excinfo:
        await service.apply_bulk_updates(
            "g1",
            batch([("s1", "2024-03-05", "Present"), ("s1", "2024-03-06", "Present")]),
        )

    assert not isinstance(excinfo.value, PartialApplicationError)
    assert store.sheets == {}
    assert notifications == []


async def test_concurrent_calls_on_one_date_keep_both_students(store):
    service = BulkAttendanceService(store)

    await asyncio.gather(
        service.apply_bulk_updates("g1", batch([("s1", "2024-03-05", "Present")])),
        service.apply_bulk_updates("g1", batch([("s2", "2024-03-05", "Absent")])),
        service.apply_bulk_updates("g1", batch([("s3", "2024-03-05T08:00:00Z", "Present")])),
    )

    assert store.count("g1", MARCH_5) == 1
    assert sorted(statuses(store.sheets[("g1", MARCH_5)])) == [
        ("s1", "Present"),
        ("s2", "Absent"),
        ("s3", "Present"),
    ]
    assert len(service.locks) == 0


def test_partition_keeps_last_status_per_student():
    partitions = partition_updates(
        batch([("s1", "2024-03-05", "Present"), ("s2", "2024-03-06", 1), ("s1", "2024-03-05T09:00", "Absent")])
    )
    assert partitions == {
        MARCH_5: {"s1": "Absent"},
        MARCH_6: {"s2": "Present"},
    }


def test_merge_collapses_legacy_duplicates_onto_first_record():
    records = [
        AttendanceEntry(student="s1", status="Present"),
        AttendanceEntry(student="s2", status="Absent"),
        AttendanceEntry(student="s1", status="Absent"),
    ]
    merged = merge_records(records, {})
    assert [(r.student, r.status) for r in merged] == [("s1", "Present"), ("s2", "Absent")]


async def test_other_students_keep_their_percentage_on_legacy_sheets(service, store):
    store.sheets[("g1", MARCH_5)] = sheet(
        "g1", MARCH_5, ("s1", "Present"), ("s2", "Absent"), ("s1", "Absent")
    )
    before = compute_stats("s1", list(store.sheets.values()))

    await service.apply_bulk_updates("g1", batch([("s2", "2024-03-05", "Present")]))

    assert compute_stats("s1", list(store.sheets.values())) == before
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present"), ("s2", "Present")]


async def test_sheet_created_concurrently_is_merged_not_overwritten(service, store):
    store.rivals[("g1", MARCH_5)] = sheet("g1", MARCH_5, ("s1", "Present"))

    result = await service.apply_bulk_updates("g1", batch([("s2", "2024-03-05", "Absent")]))

    assert result.dates == [MARCH_5]
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present"), ("s2", "Absent")]


async def test_repeated_conflicts_fail_the_date(store, dispatcher):
    service = BulkAttendanceService(store, dispatcher, conflict_retries=0)
    store.rivals[("g1", MARCH_5)] = sheet("g1", MARCH_5, ("s1", "Present"))

    with pytest.raises(PersistenceError) as exc:
        await service.apply_bulk_updates("g1", batch([("s2", "2024-03-05", "Absent")]))

    assert list(exc.value.extra["failed"]) == ["2024-03-05"]
    assert statuses(store.sheets[("g1", MARCH_5)]) == [("s1", "Present")]


async def test_keyed_locks_serialize_per_key_only():
    locks = KeyedLocks()
    order = []

    async def worker(key, name):
        async with locks.hold(key):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a", "first"), worker("a", "second"))
    assert order == ["first-in", "first-out", "second-in", "second-out"]
    assert len(locks) == 0
