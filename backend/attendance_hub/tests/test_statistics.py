# backend/attendance_hub/tests/test_statistics.py
import asyncio
from datetime import date

import pytest

from attendance_hub.models.entities import AttendanceRecord, Department, Employee, TodayAttendanceStats
from attendance_hub.services.data_processing.statistics import (
    AttendanceStatisticsService,
    average_years_of_service,
    compute_employee_statistics,
    compute_today_attendance,
    salary_bands,
    summarize_records,
)
from attendance_hub.services.helpers.data_utils import percent
from attendance_hub.services.store.memory_store import InMemoryAttendanceStore

DAY = date(2025, 1, 6)


def _rec(status, pk=1):
    return AttendanceRecord(employee_id=pk, date=DAY, status=status)


def test_empty_employee_set_has_zero_average():
    stats = compute_employee_statistics([])
    assert stats.avg_salary == 0
    assert stats.total_employees == 0
    assert stats.top_positions == []


def test_employee_statistics_counts_and_salary(store):
    stats = compute_employee_statistics(list(store.employees.values()))
    assert stats.total_employees == 4
    assert stats.active_employees == 3
    assert stats.on_leave == 1
    assert stats.avg_salary == 5625
    assert stats.min_salary == 3000
    assert stats.max_salary == 8500
    assert stats.top_positions[0] == ("Jurutera", 2)
    assert stats.demographics.nationality == {"Malaysian": 3, "Non-Malaysian": 1}
    assert stats.demographics.gender == {"Male": 2, "Female": 2}


def test_top_positions_ties_keep_first_seen_order():
    emps = [Employee(employee_id=f"SG00000{i}", name=str(i), department_code="11D", position=p)
            for i, p in enumerate(["B", "A", "A", "B", "C"])]
    stats = compute_employee_statistics(emps)
    assert stats.top_positions == [("B", 2), ("A", 2), ("C", 1)]


@pytest.mark.parametrize("total, n_records, expected", [
    (10, 3, 7),
    (3, 3, 0),
    (2, 5, 0),
    (0, 0, 0),
])
def test_not_checked_in_never_negative(total, n_records, expected):
    st = compute_today_attendance([_rec("Present", i) for i in range(n_records)], total)
    assert st.not_checked_in == expected
    assert st.total == n_records


def test_today_buckets_include_status_aliases():
    recs = [_rec(s, i) for i, s in enumerate(
        ["Present", "Late", "Absent", "Medical Leave", "MC", "On Leave", "Leave", "Holiday"])]
    st = compute_today_attendance(recs, 20)
    assert (st.present, st.late, st.absent) == (1, 1, 1)
    assert st.on_medical_leave == 2
    assert st.on_leave == 2
    assert st.holiday == 1
    assert st.checked_in == 2


def test_salary_bands_cover_every_employee(store):
    bands = dict(salary_bands(list(store.employees.values())))
    assert bands == {
        "Below RM3,000": 0,
        "RM3,000 - RM5,000": 1,
        "RM5,000 - RM8,000": 2,
        "Above RM8,000": 1,
    }


def test_summarize_records_counts_any_leave():
    recs = [_rec(s) for s in ["Present", "Late", "Medical Leave", "On Leave", "Absent"]]
    s = summarize_records(recs)
    assert (s.present, s.late, s.absent, s.on_leave) == (1, 1, 1, 2)


def test_average_years_of_service_is_calendar_difference(store):
    assert average_years_of_service(list(store.employees.values()), date(2025, 1, 1)) == 10
    assert average_years_of_service([], DAY) == 0.0


@pytest.mark.parametrize("n, d, expected", [
    (5, 100, "5.0"),
    (1, 3, "33.3"),
    (1, 16, "6.3"),
    (3, 16, "18.8"),
    (20, 20, "100.0"),
    (0, 0, "0.0"),
    (7, 0, "0.0"),
])
def test_percent(n, d, expected):
    assert percent(n, d) == expected


def test_department_statistics_with_path(store):
    svc = AttendanceStatisticsService(store)
    ds = asyncio.run(svc.department_statistics("11D"))
    assert ds.employee_count == 2
    assert ds.sub_department_count == 1
    assert ds.path == ["11D"]

    sub = asyncio.run(svc.department_statistics("11D-1"))
    assert sub.path == ["11D", "11D-1"]
    assert sub.employee_count == 0
    assert sub.statistics.avg_salary == 0

    assert asyncio.run(svc.department_statistics("NOPE")) is None


def test_department_path_stops_on_cycle():
    s = InMemoryAttendanceStore()
    a = s.add_department(Department(dept_code="A", dept_name="A", id=1, parent_dept_id=2))
    s.add_department(Department(dept_code="B", dept_name="B", id=2, parent_dept_id=1))
    path = asyncio.run(AttendanceStatisticsService(s).department_path(a))
    assert path == ["B", "A"]


def test_today_attendance_scopes(store, emp_pk, add_day):
    add_day(emp_pk["SG000001"], DAY, "Present")
    add_day(emp_pk["SG000002"], DAY, "Late")
    add_day(emp_pk["SG000003"], DAY, "Medical Leave")
    svc = AttendanceStatisticsService(store)

    everyone = asyncio.run(svc.today_attendance(day=DAY))
    assert everyone.total_employees == 4
    assert everyone.total == 3
    assert everyone.not_checked_in == 1

    dept = asyncio.run(svc.today_attendance("11D", day=DAY))
    assert (dept.total_employees, dept.present, dept.late) == (2, 1, 1)

    one = asyncio.run(svc.today_attendance("all", "SG000003", day=DAY))
    assert one.total_employees == 1
    assert one.on_medical_leave == 1


def test_failing_store_gives_all_zero_stats(store):
    store.fail_operations = {"attendance_on", "count_employees", "list_employees"}
    svc = AttendanceStatisticsService(store)
    st = asyncio.run(svc.today_attendance(day=DAY))
    assert st == TodayAttendanceStats()
    assert asyncio.run(svc.employee_statistics()).total_employees == 0


def test_employee_leave_records_only_leave_statuses(store, emp_pk, add_day):
    pk = emp_pk["SG000001"]
    add_day(pk, date(2025, 1, 2), "Present")
    add_day(pk, date(2025, 1, 3), "Medical Leave", notes="Medical Certificate submitted")
    add_day(pk, date(2025, 1, 6), "On Leave", notes="Annual Leave")
    svc = AttendanceStatisticsService(store)

    hist = asyncio.run(svc.employee_leave_records("SG000001"))
    assert [r.status for r in hist.records] == ["On Leave", "Medical Leave"]
    assert asyncio.run(svc.employee_attendance("SG999999")) is None


class BrokenRowStore(InMemoryAttendanceStore):
    """Raises a plain ValueError, like a row that fails to parse."""

    async def attendance_on(self, day, employee_ids=None):
        raise ValueError("bad row")

    async def list_employees(self, dept_code=None):
        raise ValueError("bad row")


def test_unexpected_store_error_still_degrades():
    svc = AttendanceStatisticsService(BrokenRowStore())
    assert asyncio.run(svc.today_attendance(day=DAY)) == TodayAttendanceStats()
    assert asyncio.run(svc.employee_statistics()).total_employees == 0


def test_attendance_by_date_range_filters_and_orders(store, emp_pk, add_day):
    add_day(emp_pk["SG000001"], date(2025, 1, 2), "Present")
    add_day(emp_pk["SG000001"], date(2025, 1, 6), "Late")
    add_day(emp_pk["SG000003"], date(2025, 1, 3), "Absent")
    add_day(emp_pk["SG000003"], date(2024, 12, 31), "Present")
    svc = AttendanceStatisticsService(store)

    pairs = asyncio.run(svc.attendance_by_date_range(date(2025, 1, 1), date(2025, 1, 6)))
    assert [(r.date.day, e.employee_id) for r, e in pairs] == [
        (6, "SG000001"), (3, "SG000003"), (2, "SG000001"),
    ]

    in_33j = asyncio.run(svc.attendance_by_date_range(date(2024, 12, 1), DAY, dept_code="33J"))
    assert {e.employee_id for _, e in in_33j} == {"SG000003"}
    assert len(in_33j) == 2

    one = asyncio.run(svc.attendance_by_date_range(date(2025, 1, 1), DAY, employee_code="SG000001"))
    assert [r.status for r, _ in one] == ["Late", "Present"]

    store.fail_operations = {"attendance_between"}
    assert asyncio.run(svc.attendance_by_date_range(date(2025, 1, 1), DAY)) == []
