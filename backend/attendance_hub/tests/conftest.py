# backend/attendance_hub/tests/conftest.py
from datetime import date

import pytest

from attendance_hub.models.entities import AttendanceRecord, Department, Employee
from attendance_hub.services.settings_store import InMemoryKeyValueStore
from attendance_hub.services.store.memory_store import InMemoryAttendanceStore

DAY = date(2025, 1, 6)  # a Monday


def _employee(code, name, dept, **kw):
    base = dict(
        position="Pegawai Tadbir", grade="Gred 41", salary=4000, join_date=date(2015, 3, 1),
        nationality="Malaysian", religion="Islam", gender="Male", education_level="Degree",
        native_status="Islamic Land", email=f"{code.lower()}@sabah.gov.my",
    )
    base.update(kw)
    return Employee(employee_id=code, name=name, department_code=dept, **base)


@pytest.fixture
def store():
    """Three departments (one sub-unit) and four employees, no attendance."""
    s = InMemoryAttendanceStore()
    jpa = s.add_department(Department(dept_code="11D", dept_name="Jabatan Perkhidmatan Awam"))
    s.add_department(Department(dept_code="11D-1", dept_name="Bahagian Sumber Manusia",
                                parent_dept_id=jpa.id))
    s.add_department(Department(dept_code="33J", dept_name="Jabatan Kerja Raya"))

    s.add_employee(_employee("SG000001", "Ahmad Bin Abdullah", "11D", salary=3000))
    s.add_employee(_employee("SG000002", "Siti Nurhaliza", "11D", gender="Female",
                             position="Akauntan", grade="Gred 44", salary=5000))
    s.add_employee(_employee("SG000003", "Lim Wei Ming", "33J", nationality="Non-Malaysian",
                             religion="Buddhist", education_level="Diploma",
                             position="Jurutera", salary=8500, status="On Leave"))
    s.add_employee(_employee("SG000004", "Tan Mei Ling", "33J", gender="Female",
                             religion="Christian", position="Jurutera", salary=6000))
    return s


@pytest.fixture
def emp_pk(store):
    """employee code -> employees.id"""
    return {e.employee_id: e.id for e in store.employees.values()}


@pytest.fixture
def add_day(store):
    """Insert one attendance row for an employees.id."""
    def _add(pk, day, status, clock_in=None, clock_out=None, notes=None):
        return store.add_attendance(AttendanceRecord(
            employee_id=pk, date=day, status=status, clock_in=clock_in, clock_out=clock_out,
            notes=notes, location="Main Office",
        ))
    return _add


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()
