# ================================================================================
# backend/attendance_hub/services/data_processing/statistics.py
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from attendance_hub.core.errors import StoreUnavailable
from attendance_hub.core.request_context import rid
from attendance_hub.models.entities import (
    LEAVE_STATUSES,
    AttendanceRecord,
    Demographics,
    Department,
    DepartmentStatistics,
    Employee,
    EmployeeStatistics,
    RecordSummary,
    TodayAttendanceStats,
)
from attendance_hub.services.helpers.data_utils import today as _today, years_of_service
from attendance_hub.services.store.base import AttendanceStore

logger = logging.getLogger(__name__)

# Status spellings seen in attendance feeds, folded into the six buckets
_MEDICAL_ALIASES = {"Medical Leave", "MC"}
_LEAVE_ALIASES = {"On Leave", "Leave"}

SALARY_BANDS: Tuple[Tuple[str, float, Optional[float]], ...] = (
    ("Below RM3,000", 0, 3000),
    ("RM3,000 - RM5,000", 3000, 5000),
    ("RM5,000 - RM8,000", 5000, 8000),
    ("Above RM8,000", 8000, None),
)


@dataclass
class EmployeeHistory:
    """One employee plus a slice of their attendance, newest first."""
    employee: Employee
    records: List[AttendanceRecord] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Pure aggregation
# -----------------------------------------------------------------------------
def _histogram(values: Iterable[str]) -> Dict[str, int]:
    # Counter keeps first-seen insertion order; absent categories never appear
    return dict(Counter(v for v in values if v))


def compute_employee_statistics(employees: Sequence[Employee], top_n: int = 5) -> EmployeeStatistics:
    """
    Aggregate a materialized employee set.

    An empty set yields zero salaries rather than dividing by zero. Top positions
    are ordered by count descending; ties keep first-seen order.
    """
    total = len(employees)
    if total == 0:
        return EmployeeStatistics()

    salaries = [float(e.salary or 0) for e in employees]
    positions = Counter(e.position for e in employees)
    # sorted() is stable, so equal counts keep Counter (first-seen) order
    top = sorted(positions.items(), key=lambda kv: kv[1], reverse=True)[:top_n]

    return EmployeeStatistics(
        total_employees=total,
        active_employees=sum(1 for e in employees if e.status == "Active"),
        on_leave=sum(1 for e in employees if e.status == "On Leave"),
        inactive=sum(1 for e in employees if e.status == "Inactive"),
        avg_salary=int(round(sum(salaries) / total)),
        min_salary=_whole(min(salaries)),
        max_salary=_whole(max(salaries)),
        top_positions=top,
        demographics=Demographics(
            nationality=_histogram(e.nationality for e in employees),
            religion=_histogram(e.religion for e in employees),
            gender=_histogram(e.gender for e in employees),
            education=_histogram(e.education_level for e in employees),
        ),
    )


def _whole(v: float):
    return int(v) if float(v).is_integer() else v


def compute_today_attendance(records: Sequence[AttendanceRecord], total_employees: int) -> TodayAttendanceStats:
    """Bucket one day's records. `total_employees` comes from the caller, not the records."""
    statuses = [r.status for r in records]
    return TodayAttendanceStats(
        total=len(records),
        present=statuses.count("Present"),
        late=statuses.count("Late"),
        absent=statuses.count("Absent"),
        on_medical_leave=sum(1 for s in statuses if s in _MEDICAL_ALIASES),
        on_leave=sum(1 for s in statuses if s in _LEAVE_ALIASES),
        holiday=statuses.count("Holiday"),
        not_checked_in=max(0, total_employees - len(records)),
        total_employees=total_employees,
        records=list(records),
    )


def salary_bands(employees: Sequence[Employee]) -> List[Tuple[str, int]]:
    out = []
    for label, low, high in SALARY_BANDS:
        n = sum(1 for e in employees
                if float(e.salary or 0) >= low and (high is None or float(e.salary or 0) < high))
        out.append((label, n))
    return out


def grade_distribution(employees: Sequence[Employee], limit: int = 5) -> List[Tuple[str, int]]:
    return list(_histogram(e.grade for e in employees).items())[:limit]


def summarize_records(records: Sequence[AttendanceRecord]) -> RecordSummary:
    """Multi-day summary. Any status mentioning 'Leave' counts as on leave."""
    return RecordSummary(
        present=sum(1 for r in records if r.status == "Present"),
        late=sum(1 for r in records if r.status == "Late"),
        absent=sum(1 for r in records if r.status == "Absent"),
        on_leave=sum(1 for r in records if "Leave" in r.status),
    )


def average_years_of_service(employees: Sequence[Employee], as_of: date) -> float:
    if not employees:
        return 0.0
    return sum(years_of_service(e.join_date, as_of) for e in employees) / len(employees)


# -----------------------------------------------------------------------------
# Store-backed service
# -----------------------------------------------------------------------------
class AttendanceStatisticsService:
    """
    Aggregations over the store.

    Every method degrades instead of raising: store failures come back as the
    all-zero object, an empty list or None, and are logged.
    """

    def __init__(self, store: AttendanceStore):
        self.store = store

    async def employee_statistics(self, dept_code: Optional[str] = None) -> EmployeeStatistics:
        try:
            employees = await self.store.list_employees(_selected(dept_code))
        except StoreUnavailable as e:
            logger.warning("employee_statistics degraded rid=%s dept=%s err=%s", rid(), dept_code, e)
            return EmployeeStatistics()
        except Exception:
            logger.exception("employee_statistics unexpected error rid=%s dept=%s", rid(), dept_code)
            return EmployeeStatistics()
        return compute_employee_statistics(employees)

    async def department_statistics(self, dept_code: str) -> Optional[DepartmentStatistics]:
        try:
            dept = await self.store.get_department_by_code(dept_code)
            if dept is None:
                return None
            employees = await self.store.list_employees(dept.dept_code)
            sub_count = await self.store.count_sub_departments(dept.id)
            path = await self.department_path(dept)
        except StoreUnavailable as e:
            logger.warning("department_statistics degraded rid=%s dept=%s err=%s", rid(), dept_code, e)
            return None
        except Exception:
            logger.exception("department_statistics unexpected error rid=%s dept=%s", rid(), dept_code)
            return None

        return DepartmentStatistics(
            department=dept,
            employees=employees,
            employee_count=len(employees),
            sub_department_count=sub_count,
            statistics=compute_employee_statistics(employees),
            path=path,
        )

    async def department_path(self, dept: Department) -> List[str]:
        """Codes from the root down to `dept`. A parent cycle stops the walk."""
        path = [dept.dept_code]
        seen = {dept.id}
        current = dept
        while current.parent_dept_id is not None:
            if current.parent_dept_id in seen:
                logger.warning("department cycle rid=%s at=%s", rid(), current.dept_code)
                break
            parent = await self.store.get_department_by_id(current.parent_dept_id)
            if parent is None:
                break
            seen.add(parent.id)
            path.append(parent.dept_code)
            current = parent
        return list(reversed(path))

    async def today_attendance(self, dept_code: Optional[str] = None,
                               employee_code: Optional[str] = None,
                               day: Optional[date] = None) -> TodayAttendanceStats:
        day = day or _today()
        dept_code = _selected(dept_code)
        employee_code = _selected(employee_code)
        try:
            records, total = await asyncio.gather(
                self._day_records(day, dept_code, employee_code),
                self._employee_total(dept_code, employee_code),
            )
        except StoreUnavailable as e:
            logger.warning(
                "today_attendance degraded rid=%s dept=%s employee=%s err=%s",
                rid(), dept_code, employee_code, e,
            )
            return TodayAttendanceStats()
        except Exception:
            logger.exception(
                "today_attendance unexpected error rid=%s dept=%s employee=%s",
                rid(), dept_code, employee_code,
            )
            return TodayAttendanceStats()
        return compute_today_attendance(records, total)

    async def _day_records(self, day: date, dept_code: Optional[str],
                           employee_code: Optional[str]) -> List[AttendanceRecord]:
        if employee_code:
            emp = await self.store.get_employee_by_code(employee_code)
            if emp is None:
                return []
            return await self.store.attendance_on(day, [emp.id])
        if dept_code:
            emps = await self.store.list_employees(dept_code)
            if not emps:
                return []
            return await self.store.attendance_on(day, [e.id for e in emps])
        return await self.store.attendance_on(day)

    async def _employee_total(self, dept_code: Optional[str], employee_code: Optional[str]) -> int:
        if employee_code:
            return 1
        return await self.store.count_employees(dept_code)

    async def employee_attendance(self, employee_code: str, limit: int = 30) -> Optional[EmployeeHistory]:
        return await self._history("employee_attendance", employee_code, limit=limit)

    async def employee_leave_records(self, employee_code: str, limit: int = 30) -> Optional[EmployeeHistory]:
        return await self._history("employee_leave_records", employee_code,
                                   limit=limit, statuses=LEAVE_STATUSES)

    async def employee_today_attendance(self, employee_code: str,
                                        day: Optional[date] = None) -> Optional[EmployeeHistory]:
        return await self._history("employee_today_attendance", employee_code,
                                   limit=1, on_date=day or _today())

    async def _history(self, op: str, employee_code: str, **filters) -> Optional[EmployeeHistory]:
        try:
            emp = await self.store.get_employee_by_code(employee_code)
            if emp is None:
                return None
            records = await self.store.attendance_for_employee(emp.id, **filters)
        except StoreUnavailable as e:
            logger.warning("%s degraded rid=%s employee=%s err=%s", op, rid(), employee_code, e)
            return None
        except Exception:
            logger.exception("%s unexpected error rid=%s employee=%s", op, rid(), employee_code)
            return None
        return EmployeeHistory(employee=emp, records=records)

    async def attendance_by_date_range(self, start: date, end: date,
                                       dept_code: Optional[str] = None,
                                       employee_code: Optional[str] = None
                                       ) -> List[Tuple[AttendanceRecord, Employee]]:
        try:
            return await self.store.attendance_between(
                start, end, _selected(dept_code), _selected(employee_code)
            )
        except StoreUnavailable as e:
            logger.warning("attendance_by_date_range degraded rid=%s err=%s", rid(), e)
            return []
        except Exception:
            logger.exception("attendance_by_date_range unexpected error rid=%s", rid())
            return []


def _selected(value: Optional[str]) -> Optional[str]:
    """UI selectors send 'all' for no filter."""
    if not value or value == "all":
        return None
    return value
