from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from attendance_hub.core.errors import DuplicateKeyError, StoreUnavailable
from attendance_hub.core.request_context import rid
from attendance_hub.models.entities import AttendanceRecord, Department, Employee
from attendance_hub.services.store.base import AttendanceStore

logger = logging.getLogger(__name__)


class InMemoryAttendanceStore(AttendanceStore):
    """
    Process-local store with the same contracts as the SQL Server store.

    `fail_operations` names methods that raise StoreUnavailable, and `calls`
    counts every method entry; both exist for exercising degradation paths.
    """

    def __init__(self, fail_operations: Optional[Iterable[str]] = None):
        self.departments: Dict[Any, Department] = {}
        self.employees: Dict[Any, Employee] = {}
        self.attendance: Dict[Tuple[Any, date], AttendanceRecord] = {}
        self.fail_operations: Set[str] = set(fail_operations or ())
        self.calls: Counter = Counter()
        self._seq = 0

    # ---------- internals ----------
    def _enter(self, op: str) -> None:
        self.calls[op] += 1
        if op in self.fail_operations:
            logger.warning("memory store op=%s forced failure rid=%s", op, rid())
            raise StoreUnavailable(f"{op} unavailable", operation=op)

    def _next_id(self) -> int:
        self._seq += 1
        return self._seq

    @staticmethod
    def _ilike(hay: Optional[str], needle: str) -> bool:
        return needle.lower() in (hay or "").lower()

    # ---------- direct loading (tests / fixtures) ----------
    def add_department(self, dept: Department) -> Department:
        if dept.id is None:
            dept = replace(dept, id=self._next_id())
        self.departments[dept.id] = dept
        return dept

    def add_employee(self, emp: Employee) -> Employee:
        if emp.id is None:
            emp = replace(emp, id=self._next_id())
        self.employees[emp.id] = emp
        return emp

    def add_attendance(self, rec: AttendanceRecord) -> AttendanceRecord:
        if rec.id is None:
            rec = replace(rec, id=self._next_id())
        self.attendance[rec.key] = rec
        return rec

    # ---------- departments ----------
    async def list_departments(self) -> List[Department]:
        self._enter("list_departments")
        return sorted(self.departments.values(), key=lambda d: d.dept_name)

    async def list_departments_with_employees(self) -> List[Department]:
        self._enter("list_departments_with_employees")
        staffed = {e.department_code for e in self.employees.values()}
        return [d for d in sorted(self.departments.values(), key=lambda d: d.dept_name)
                if d.dept_code in staffed]

    async def get_department_by_code(self, dept_code: str) -> Optional[Department]:
        self._enter("get_department_by_code")
        for d in self.departments.values():
            if d.dept_code == dept_code:
                return d
        return None

    async def get_department_by_id(self, dept_id: Any) -> Optional[Department]:
        self._enter("get_department_by_id")
        return self.departments.get(dept_id)

    async def search_departments(self, term: str, limit: int = 10) -> List[Department]:
        self._enter("search_departments")
        hits = [d for d in self.departments.values()
                if self._ilike(d.dept_code, term) or self._ilike(d.dept_name, term)]
        return sorted(hits, key=lambda d: d.dept_name)[:limit]

    async def count_sub_departments(self, dept_id: Any) -> int:
        self._enter("count_sub_departments")
        return sum(1 for d in self.departments.values() if d.parent_dept_id == dept_id)

    # ---------- employees ----------
    async def list_employees(self, dept_code: Optional[str] = None) -> List[Employee]:
        self._enter("list_employees")
        emps = [e for e in self.employees.values()
                if dept_code is None or e.department_code == dept_code]
        return sorted(emps, key=lambda e: e.name)

    async def get_employee_by_code(self, employee_code: str) -> Optional[Employee]:
        self._enter("get_employee_by_code")
        for e in self.employees.values():
            if e.employee_id == employee_code:
                return e
        return None

    async def search_employees(self, term: str, limit: int = 20) -> List[Employee]:
        self._enter("search_employees")
        hits = [e for e in self.employees.values()
                if any(self._ilike(v, term) for v in (e.employee_id, e.name, e.email, e.position))]
        return sorted(hits, key=lambda e: e.name)[:limit]

    async def count_employees(self, dept_code: Optional[str] = None) -> int:
        self._enter("count_employees")
        return sum(1 for e in self.employees.values()
                   if dept_code is None or e.department_code == dept_code)

    # ---------- attendance ----------
    async def attendance_on(self, day: date,
                            employee_ids: Optional[Sequence[Any]] = None) -> List[AttendanceRecord]:
        self._enter("attendance_on")
        wanted = set(employee_ids) if employee_ids is not None else None
        return [r for r in self.attendance.values()
                if r.date == day and (wanted is None or r.employee_id in wanted)]

    async def attendance_for_employee(self, employee_pk: Any, limit: int = 30,
                                      statuses: Optional[Iterable[str]] = None,
                                      on_date: Optional[date] = None) -> List[AttendanceRecord]:
        self._enter("attendance_for_employee")
        allowed = set(statuses) if statuses is not None else None
        recs = [r for r in self.attendance.values()
                if r.employee_id == employee_pk
                and (allowed is None or r.status in allowed)
                and (on_date is None or r.date == on_date)]
        recs.sort(key=lambda r: r.date, reverse=True)
        return recs[:limit]

    async def attendance_between(self, start: date, end: date,
                                 dept_code: Optional[str] = None,
                                 employee_code: Optional[str] = None
                                 ) -> List[Tuple[AttendanceRecord, Employee]]:
        self._enter("attendance_between")
        out: List[Tuple[AttendanceRecord, Employee]] = []
        for r in self.attendance.values():
            emp = self.employees.get(r.employee_id)
            if emp is None or not (start <= r.date <= end):
                continue
            if dept_code and emp.department_code != dept_code:
                continue
            if employee_code and emp.employee_id != employee_code:
                continue
            out.append((r, emp))
        out.sort(key=lambda pair: pair[0].date, reverse=True)
        return out

    # ---------- seeding ----------
    async def existing_department_codes(self) -> Set[str]:
        self._enter("existing_department_codes")
        return {d.dept_code for d in self.departments.values()}

    async def existing_employee_codes(self) -> Set[str]:
        self._enter("existing_employee_codes")
        return {e.employee_id for e in self.employees.values()}

    async def employee_keys(self) -> List[Tuple[Any, str]]:
        self._enter("employee_keys")
        return [(e.id, e.employee_id) for e in self.employees.values()]

    async def insert_departments(self, rows: List[Dict[str, Any]]) -> int:
        self._enter("insert_departments")
        codes = {d.dept_code: d.id for d in self.departments.values()}
        for row in rows:
            if row["dept_code"] in codes:
                raise DuplicateKeyError(f"dept_code {row['dept_code']} exists",
                                        operation="insert_departments")
        now = datetime.now()
        for row in rows:
            parent = codes.get(row.get("parent_dept_code")) if row.get("parent_dept_code") else None
            dept = self.add_department(Department(
                dept_code=row["dept_code"], dept_name=row["dept_name"],
                parent_dept_id=parent, created_at=now, updated_at=now,
            ))
            codes[dept.dept_code] = dept.id
        return len(rows)

    async def insert_employees(self, rows: List[Dict[str, Any]]) -> int:
        self._enter("insert_employees")
        existing = {e.employee_id for e in self.employees.values()}
        for row in rows:
            if row["employee_id"] in existing:
                raise DuplicateKeyError(f"employee_id {row['employee_id']} exists",
                                        operation="insert_employees")
        now = datetime.now()
        for row in rows:
            emp = Employee.from_row({**row, "created_at": now, "updated_at": now})
            self.add_employee(emp)
        return len(rows)

    async def upsert_attendance(self, rows: List[Dict[str, Any]]) -> int:
        self._enter("upsert_attendance")
        inserted = 0
        for row in rows:
            rec = AttendanceRecord.from_row(row)
            if rec.key in self.attendance:
                continue
            self.add_attendance(rec)
            inserted += 1
        return inserted

    # ---------- health ----------
    async def ping(self) -> bool:
        self._enter("ping")
        return True
