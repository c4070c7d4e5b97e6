from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from attendance_hub.models.entities import AttendanceRecord, Department, Employee


class AttendanceStore(ABC):
    """
    Async CRUD-style access to the three tables.

    Every method raises StoreUnavailable on failure; callers decide whether to
    degrade. Ordering contracts: departments by dept_name, employees by name,
    attendance by date descending.
    """

    # ---------- departments ----------
    @abstractmethod
    async def list_departments(self) -> List[Department]: ...

    @abstractmethod
    async def list_departments_with_employees(self) -> List[Department]: ...

    @abstractmethod
    async def get_department_by_code(self, dept_code: str) -> Optional[Department]: ...

    @abstractmethod
    async def get_department_by_id(self, dept_id: Any) -> Optional[Department]: ...

    @abstractmethod
    async def search_departments(self, term: str, limit: int = 10) -> List[Department]: ...

    @abstractmethod
    async def count_sub_departments(self, dept_id: Any) -> int: ...

    # ---------- employees ----------
    @abstractmethod
    async def list_employees(self, dept_code: Optional[str] = None) -> List[Employee]: ...

    @abstractmethod
    async def get_employee_by_code(self, employee_code: str) -> Optional[Employee]: ...

    @abstractmethod
    async def search_employees(self, term: str, limit: int = 20) -> List[Employee]: ...

    @abstractmethod
    async def count_employees(self, dept_code: Optional[str] = None) -> int: ...

    # ---------- attendance ----------
    @abstractmethod
    async def attendance_on(self, day: date,
                            employee_ids: Optional[Sequence[Any]] = None) -> List[AttendanceRecord]: ...

    @abstractmethod
    async def attendance_for_employee(self, employee_pk: Any, limit: int = 30,
                                      statuses: Optional[Iterable[str]] = None,
                                      on_date: Optional[date] = None) -> List[AttendanceRecord]: ...

    @abstractmethod
    async def attendance_between(self, start: date, end: date,
                                 dept_code: Optional[str] = None,
                                 employee_code: Optional[str] = None
                                 ) -> List[Tuple[AttendanceRecord, Employee]]: ...

    # ---------- seeding ----------
    @abstractmethod
    async def existing_department_codes(self) -> Set[str]: ...

    @abstractmethod
    async def existing_employee_codes(self) -> Set[str]: ...

    @abstractmethod
    async def employee_keys(self) -> List[Tuple[Any, str]]:
        """(employees.id, employee_id) pairs in insertion order."""

    @abstractmethod
    async def insert_departments(self, rows: List[Dict[str, Any]]) -> int:
        """Rows carry dept_code, dept_name and an optional parent_dept_code."""

    @abstractmethod
    async def insert_employees(self, rows: List[Dict[str, Any]]) -> int: ...

    @abstractmethod
    async def upsert_attendance(self, rows: List[Dict[str, Any]]) -> int:
        """Insert rows, silently skipping (employee_id, date) conflicts. Returns rows inserted."""

    # ---------- health ----------
    @abstractmethod
    async def ping(self) -> bool: ...
