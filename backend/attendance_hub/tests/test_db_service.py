# backend/attendance_hub/tests/test_db_service.py
from datetime import date, datetime, time

from attendance_hub.services.db_service import (
    _ATT_JOIN_COLS,
    _EMP_JOIN_COLS,
    split_join_row,
)


def test_join_columns_prefix_attendance_only():
    assert "a.[date] AS att_date" in _ATT_JOIN_COLS
    assert "a.employee_id AS att_employee_id" in _ATT_JOIN_COLS
    assert "att_" not in _EMP_JOIN_COLS


def test_split_join_row():
    row = {
        # attendance side: employee_id is the employees.id foreign key
        "att_id": 91, "att_employee_id": 7, "att_date": datetime(2025, 1, 6, 0, 0),
        "att_clock_in": time(8, 5), "att_clock_out": None, "att_status": "Late",
        "att_hours_worked": 8.5, "att_overtime_hours": None, "att_location": "Main Office",
        "att_notes": None, "att_created_at": None, "att_updated_at": None,
        # employee side
        "id": 7, "employee_id": "SG000007", "name": "Nur Aisyah", "department_code": "25B",
        "join_date": "2019-04-01", "salary": 4200.0, "status": "Active",
        "emergency_contact_name": "Aminah", "emergency_contact_relationship": "Mother",
        "emergency_contact_phone": None,
    }
    rec, emp = split_join_row(row)

    assert rec.id == 91
    assert rec.employee_id == 7
    assert rec.date == date(2025, 1, 6)
    assert rec.clock_in == "08:05"
    assert rec.clock_out is None
    assert rec.overtime_hours == 0.0

    assert emp.id == 7
    assert emp.employee_id == "SG000007"
    assert emp.join_date == date(2019, 4, 1)
    assert emp.salary == 4200
    assert emp.emergency_contact.relationship == "Mother"
