# backend/attendance_hub/tests/test_migration.py
import asyncio
from datetime import date

import pytest

from attendance_hub.seed import sample_data
from attendance_hub.seed.migration import COMPLETED, FAILED, PENDING, MigrationRunner
from attendance_hub.services.settings_store import MIGRATED_KEY, InMemoryKeyValueStore
from attendance_hub.services.store.memory_store import InMemoryAttendanceStore


def _counts(store):
    return len(store.departments), len(store.employees), len(store.attendance)


def test_sample_data_is_deterministic():
    assert sample_data.employee_rows() == sample_data.employee_rows()
    end = date(2025, 1, 31)
    assert sample_data.attendance_rows(1, "SG000001", end) == sample_data.attendance_rows(1, "SG000001", end)


def test_sample_employees_shape():
    rows = sample_data.employee_rows()
    assert len(rows) == 50
    assert rows[0]["employee_id"] == "SG000001"
    assert rows[-1]["employee_id"] == "SG000050"
    assert all(2500 <= r["salary"] < 10500 for r in rows)
    assert {r["department_code"] for r in rows} <= set(sample_data.EMPLOYEE_DEPARTMENTS)


def test_sample_departments_parent_first():
    codes = [r["dept_code"] for r in sample_data.department_rows()]
    assert codes.index("11D") < codes.index("11D-1")


def test_attendance_rows_one_per_day_newest_first():
    rows = sample_data.attendance_rows(7, "SG000007", date(2025, 1, 31))
    days = [r["date"] for r in rows]
    assert days == sorted(days, reverse=True)
    assert len(set(days)) == len(days)
    for r in rows:
        assert r["status"] in ("Present", "Late", "Absent", "Medical Leave", "On Leave")
        if r["status"] in ("Present", "Late"):
            assert r["clock_in"] and r["clock_out"]
        else:
            assert r["clock_in"] is None and r["hours_worked"] == 0.0


def test_migration_seeds_once():
    store, kv = InMemoryAttendanceStore(), InMemoryKeyValueStore()
    runner = MigrationRunner(store, kv)
    assert runner.status == PENDING

    result = asyncio.run(runner.ensure_migrated())
    assert result.success
    assert runner.status == COMPLETED
    assert kv.get(MIGRATED_KEY) == "true"
    assert result.departments == len(sample_data.DEPARTMENTS)
    assert result.employees == 50
    assert result.attendance == len(store.attendance) > 0

    seeded_ids = {pk for pk, _ in store.attendance}
    assert len(seeded_ids) == sample_data.ATTENDANCE_EMPLOYEES

    # flag set: nothing touches the store again
    store.calls.clear()
    asyncio.run(MigrationRunner(store, kv).ensure_migrated())
    assert sum(store.calls.values()) == 0


def test_second_run_inserts_nothing():
    store = InMemoryAttendanceStore()
    first = asyncio.run(MigrationRunner(store, InMemoryKeyValueStore()).ensure_migrated())
    after_first = _counts(store)

    # a second client with its own (empty) flag store
    second = asyncio.run(MigrationRunner(store, InMemoryKeyValueStore()).ensure_migrated())
    assert second.success
    assert (second.departments, second.employees, second.attendance) == (0, 0, 0)
    assert _counts(store) == after_first
    assert first.attendance == after_first[2]


def test_sub_department_linked_to_parent():
    store = InMemoryAttendanceStore()
    asyncio.run(MigrationRunner(store, InMemoryKeyValueStore()).ensure_migrated())
    by_code = {d.dept_code: d for d in store.departments.values()}
    assert by_code["11D-1"].parent_dept_id == by_code["11D"].id


@pytest.mark.parametrize("failing, phase", [
    ("insert_departments", "departments"),
    ("insert_employees", "employees"),
    ("upsert_attendance", "attendance"),
])
def test_failure_names_phase_and_halts(failing, phase):
    store, kv = InMemoryAttendanceStore(fail_operations={failing}), InMemoryKeyValueStore()
    runner = MigrationRunner(store, kv)
    result = asyncio.run(runner.ensure_migrated())

    assert not result.success
    assert result.step == phase
    assert runner.status == FAILED
    assert runner.failed_step == phase
    assert kv.get(MIGRATED_KEY) is None

    # phases after the failing one never start
    later = {"departments": ("existing_employee_codes", "employee_keys"),
             "employees": ("employee_keys",),
             "attendance": ()}[phase]
    for op in later:
        assert store.calls[op] == 0


def test_retry_clears_flag_and_recovers():
    store, kv = InMemoryAttendanceStore(fail_operations={"insert_employees"}), InMemoryKeyValueStore()
    runner = MigrationRunner(store, kv)
    assert not asyncio.run(runner.ensure_migrated()).success

    store.fail_operations.clear()
    result = asyncio.run(runner.retry())
    assert result.success
    assert result.departments == 0  # already inserted by the failed run
    assert result.employees == 50
    assert runner.status == COMPLETED
    assert runner.describe()["migrated"] is True


def test_retry_after_success_reruns_phases():
    store, kv = InMemoryAttendanceStore(), InMemoryKeyValueStore()
    runner = MigrationRunner(store, kv)
    asyncio.run(runner.ensure_migrated())
    store.calls.clear()
    result = asyncio.run(runner.retry())
    assert result.success
    assert store.calls["existing_department_codes"] == 1
    assert kv.get(MIGRATED_KEY) == "true"
