from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

# -----------------------------------------------------------------------------
# Fixed enumerations
# -----------------------------------------------------------------------------
EMPLOYEE_STATUSES = ("Active", "On Leave", "Inactive")

ATTENDANCE_STATUSES = ("Present", "Late", "Absent", "Medical Leave", "On Leave", "Holiday")

# statuses returned by leave-history lookups
LEAVE_STATUSES = ("On Leave", "Medical Leave", "Annual Leave", "Sick Leave", "Emergency Leave")

NATIONALITIES = ("Malaysian", "Non-Malaysian")
RELIGIONS = ("Islam", "Christian", "Buddhist", "Hindu", "Others")
GENDERS = ("Male", "Female")
NATIVE_STATUSES = ("Islamic Land", "Non-Islamic Land")
EDUCATION_LEVELS = ("Degree", "Diploma", "SPM", "STPM", "Others")


def _as_date(v: Any) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


# -----------------------------------------------------------------------------
# Stored entities
# -----------------------------------------------------------------------------
@dataclass
class Department:
    dept_code: str
    dept_name: str
    id: Any = None
    parent_dept_id: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_sub_department(self) -> bool:
        return self.parent_dept_id is not None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Department":
        return cls(
            id=row.get("id"),
            dept_code=row["dept_code"],
            dept_name=row["dept_name"],
            parent_dept_id=row.get("parent_dept_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class EmergencyContact:
    name: str = ""
    relationship: str = ""
    phone: str = ""


@dataclass
class Employee:
    employee_id: str
    name: str
    department_code: str
    position: str = ""
    grade: str = ""
    email: str = ""
    phone: str = ""
    join_date: Optional[date] = None
    nationality: str = ""
    religion: str = ""
    gender: str = ""
    native_status: str = ""
    education_level: str = ""
    salary: float = 0
    status: str = "Active"
    supervisor: str = ""
    work_location: str = ""
    emergency_contact: EmergencyContact = field(default_factory=EmergencyContact)
    id: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Employee":
        salary = row.get("salary") or 0
        return cls(
            id=row.get("id"),
            employee_id=row["employee_id"],
            name=row.get("name") or "",
            department_code=row.get("department_code") or "",
            position=row.get("position") or "",
            grade=row.get("grade") or "",
            email=row.get("email") or "",
            phone=row.get("phone") or "",
            join_date=_as_date(row.get("join_date")),
            nationality=row.get("nationality") or "",
            religion=row.get("religion") or "",
            gender=row.get("gender") or "",
            native_status=row.get("native_status") or "",
            education_level=row.get("education_level") or "",
            salary=int(salary) if float(salary).is_integer() else float(salary),
            status=row.get("status") or "Active",
            supervisor=row.get("supervisor") or "",
            work_location=row.get("work_location") or "",
            emergency_contact=EmergencyContact(
                name=row.get("emergency_contact_name") or "",
                relationship=row.get("emergency_contact_relationship") or "",
                phone=row.get("emergency_contact_phone") or "",
            ),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class AttendanceRecord:
    employee_id: Any          # employees.id, not the SG code
    date: date
    status: str
    clock_in: Optional[str] = None
    clock_out: Optional[str] = None
    hours_worked: float = 0.0
    overtime_hours: float = 0.0
    location: str = ""
    notes: Optional[str] = None
    id: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[Any, date]:
        return (self.employee_id, self.date)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AttendanceRecord":
        return cls(
            id=row.get("id"),
            employee_id=row["employee_id"],
            date=_as_date(row["date"]),  # type: ignore[arg-type]
            status=row.get("status") or "",
            clock_in=(str(row["clock_in"])[:5] if row.get("clock_in") else None),
            clock_out=(str(row["clock_out"])[:5] if row.get("clock_out") else None),
            hours_worked=float(row.get("hours_worked") or 0),
            overtime_hours=float(row.get("overtime_hours") or 0),
            location=row.get("location") or "",
            notes=row.get("notes"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


# -----------------------------------------------------------------------------
# Derived (never persisted)
# -----------------------------------------------------------------------------
@dataclass
class Demographics:
    nationality: Dict[str, int] = field(default_factory=dict)
    religion: Dict[str, int] = field(default_factory=dict)
    gender: Dict[str, int] = field(default_factory=dict)
    education: Dict[str, int] = field(default_factory=dict)


@dataclass
class EmployeeStatistics:
    total_employees: int = 0
    active_employees: int = 0
    on_leave: int = 0
    inactive: int = 0
    avg_salary: int = 0
    min_salary: float = 0
    max_salary: float = 0
    top_positions: List[Tuple[str, int]] = field(default_factory=list)
    demographics: Demographics = field(default_factory=Demographics)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["top_positions"] = [list(p) for p in self.top_positions]
        return out


@dataclass
class TodayAttendanceStats:
    total: int = 0
    present: int = 0
    late: int = 0
    absent: int = 0
    on_medical_leave: int = 0
    on_leave: int = 0
    holiday: int = 0
    not_checked_in: int = 0
    total_employees: int = 0
    records: List[AttendanceRecord] = field(default_factory=list)

    @property
    def checked_in(self) -> int:
        return self.present + self.late

    def to_dict(self, include_records: bool = False) -> Dict[str, Any]:
        out = {k: v for k, v in asdict(self).items() if k != "records"}
        if include_records:
            out["records"] = [asdict(r) for r in self.records]
        return out


@dataclass
class DepartmentStatistics:
    department: Department
    employees: List[Employee]
    employee_count: int
    sub_department_count: int
    statistics: EmployeeStatistics
    path: List[str] = field(default_factory=list)


@dataclass
class RecordSummary:
    """Multi-day counts for one employee's history."""
    present: int = 0
    late: int = 0
    absent: int = 0
    on_leave: int = 0
