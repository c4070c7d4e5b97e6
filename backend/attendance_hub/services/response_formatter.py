# backend/attendance_hub/services/response_formatter.py
"""
Markdown templates for local assistant answers.

Pure functions: values come in already aggregated, text goes out. Nothing here
touches the store or the clock.
"""
from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from attendance_hub.models.entities import (
    AttendanceRecord,
    Department,
    DepartmentStatistics,
    Employee,
    EmployeeStatistics,
    RecordSummary,
    TodayAttendanceStats,
)
from attendance_hub.services.helpers.data_utils import (
    format_currency,
    format_date,
    format_long_date,
    or_na,
    percent,
    years_of_service,
)

AI_UNAVAILABLE_NOTE = "_AI completion was unavailable; this answer was generated from local data._"


def _counts(pairs: Iterable[Tuple[str, int]], bold: bool = False) -> str:
    fmt = "- **{}**: {} employees" if bold else "- {}: {} employees"
    lines = [fmt.format(k, v) for k, v in pairs]
    return "\n".join(lines) if lines else "No data"


def _dept_label(emp: Employee, dept: Optional[Department]) -> str:
    return dept.dept_name if dept else emp.department_code


def _kind(dept: Department) -> str:
    return "Sub-department" if dept.is_sub_department else "Main department"


# ---------- departments ----------
def department_list(departments: Sequence[Department], limit: int = 10) -> str:
    shown = "\n".join(f"- **{d.dept_code}**: {d.dept_name}" for d in departments[:limit])
    return (
        f"**Department List** (showing first {min(limit, len(departments))} of "
        f"{len(departments)} departments with employees):\n\n"
        f"{shown or 'No departments with employees.'}\n\n"
        "*Only departments with assigned employees are listed. Select a department "
        "in the filter for more details.*"
    )


def department_detail(ds: DepartmentStatistics) -> str:
    dept, stats = ds.department, ds.statistics
    lines = [
        f"**{dept.dept_name}**",
        "",
        f"- **Code**: {dept.dept_code}",
        f"- **Employees**: {ds.employee_count}",
        f"- **Type**: {_kind(dept)}",
    ]
    if len(ds.path) > 1:
        lines.append(f"- **Hierarchy**: {' > '.join(ds.path)}")
    if ds.sub_department_count:
        lines.append(f"- **Sub-departments**: {ds.sub_department_count}")
    lines += [
        "",
        "**Employee Breakdown:**",
        f"- Active: {stats.active_employees}",
        f"- On Leave: {stats.on_leave}",
        f"- Inactive: {stats.inactive}",
        "",
        "**Top Positions:**",
        _counts(stats.top_positions[:5]),
        "",
        "*Select this department in the filter for detailed attendance data.*",
    ]
    return "\n".join(lines)


def selected_department(dept: Department, stats: EmployeeStatistics) -> str:
    demo = stats.demographics
    return "\n".join([
        f"**{dept.dept_name}**",
        "",
        f"- **Code**: {dept.dept_code}",
        f"- **Total Employees**: {stats.total_employees}",
        f"- **Active Employees**: {stats.active_employees}",
        f"- **Average Salary**: {format_currency(stats.avg_salary)}",
        f"- **Type**: {_kind(dept)}",
        "",
        "**Demographics:**",
        f"- Malaysian: {demo.nationality.get('Malaysian', 0)}",
        f"- Male: {demo.gender.get('Male', 0)}",
        f"- Female: {demo.gender.get('Female', 0)}",
        f"- Degree Holders: {demo.education.get('Degree', 0)}",
    ])


# ---------- employees ----------
def employee_profile(emp: Employee, dept: Optional[Department], as_of: date) -> str:
    ec = emp.emergency_contact
    return "\n".join([
        f"**{emp.name}**",
        "",
        "**Basic Information:**",
        f"- **Employee ID**: {emp.employee_id}",
        f"- **Department**: {_dept_label(emp, dept)}",
        f"- **Position**: {or_na(emp.position)}",
        f"- **Grade**: {or_na(emp.grade)}",
        f"- **Status**: {emp.status}",
        f"- **Years of Service**: {years_of_service(emp.join_date, as_of)} years",
        "",
        "**Personal Details:**",
        f"- **Gender**: {or_na(emp.gender)}",
        f"- **Nationality**: {or_na(emp.nationality)}",
        f"- **Religion**: {or_na(emp.religion)}",
        f"- **Education**: {or_na(emp.education_level)}",
        f"- **Native Status**: {or_na(emp.native_status)}",
        "",
        "**Work Information:**",
        f"- **Salary**: {format_currency(emp.salary)}",
        f"- **Work Location**: {or_na(emp.work_location)}",
        f"- **Supervisor**: {or_na(emp.supervisor)}",
        f"- **Join Date**: {format_date(emp.join_date)}",
        "",
        "**Contact Information:**",
        f"- **Email**: {or_na(emp.email)}",
        f"- **Phone**: {or_na(emp.phone)}",
        f"- **Emergency Contact**: {or_na(ec.name)} ({or_na(ec.relationship)}) - {or_na(ec.phone)}",
        "",
        "*Select this employee in the filter for detailed attendance records.*",
    ])


def selected_employee_profile(emp: Employee, dept: Optional[Department], as_of: date) -> str:
    return "\n".join([
        f"**{emp.name}** - Complete Profile",
        "",
        "**Professional Information:**",
        f"- **Employee ID**: {emp.employee_id}",
        f"- **Department**: {_dept_label(emp, dept)}",
        f"- **Position**: {or_na(emp.position)}",
        f"- **Grade**: {or_na(emp.grade)}",
        f"- **Salary**: {format_currency(emp.salary)}",
        f"- **Status**: {emp.status}",
        f"- **Years of Service**: {years_of_service(emp.join_date, as_of)} years",
        "",
        "**Personal Information:**",
        f"- **Gender**: {or_na(emp.gender)}",
        f"- **Nationality**: {or_na(emp.nationality)}",
        f"- **Religion**: {or_na(emp.religion)}",
        f"- **Education Level**: {or_na(emp.education_level)}",
        f"- **Native Status**: {or_na(emp.native_status)}",
        "",
        "**Contact & Work Details:**",
        f"- **Email**: {or_na(emp.email)}",
        f"- **Phone**: {or_na(emp.phone)}",
        f"- **Work Location**: {or_na(emp.work_location)}",
        f"- **Supervisor**: {or_na(emp.supervisor)}",
        f"- **Join Date**: {format_date(emp.join_date)}",
    ])


def employee_overview(total_employees: int, department_employees: int, stats: EmployeeStatistics) -> str:
    demo = stats.demographics
    return "\n".join([
        "**Employee Overview**",
        "",
        "**Current Selection:**",
        f"- **Total Employees**: {total_employees:,}",
        f"- **Department Employees**: {department_employees}",
        f"- **Active Employees**: {stats.active_employees}",
        f"- **Average Salary**: {format_currency(stats.avg_salary)}",
        "",
        "**Top Positions:**",
        _counts(stats.top_positions[:3]),
        "",
        "**Demographics:**",
        f"- Malaysian: {demo.nationality.get('Malaysian', 0)}",
        f"- Degree Holders: {demo.education.get('Degree', 0)}",
        "",
        "*Use the employee filter or search by name/ID for specific employee details.*",
    ])


# ---------- analytics ----------
def salary_analysis(stats: EmployeeStatistics, bands: Sequence[Tuple[str, int]]) -> str:
    return "\n".join([
        "**Salary Analysis**",
        "",
        "**Salary Statistics:**",
        f"- **Average Salary**: {format_currency(stats.avg_salary)}",
        f"- **Minimum Salary**: {format_currency(stats.min_salary)}",
        f"- **Maximum Salary**: {format_currency(stats.max_salary)}",
        "",
        "**Salary Distribution:**",
        _counts(bands),
        "",
        "*Salary data is based on current department selection.*",
    ])


def position_analysis(stats: EmployeeStatistics, grades: Sequence[Tuple[str, int]]) -> str:
    return "\n".join([
        "**Position Analysis**",
        "",
        "**Most Common Positions:**",
        _counts(stats.top_positions[:10], bold=True),
        "",
        "**Grade Distribution:**",
        _counts(grades[:5]),
        "",
        "*Data based on current department selection.*",
    ])


def demographics_analysis(stats: EmployeeStatistics) -> str:
    demo = stats.demographics
    return "\n".join([
        "**Demographics Analysis**",
        "",
        "**Nationality:**",
        _counts(demo.nationality.items()),
        "",
        "**Religion:**",
        _counts(demo.religion.items()),
        "",
        "**Gender:**",
        _counts(demo.gender.items()),
        "",
        "**Education Level:**",
        _counts(demo.education.items()),
    ])


def statistics_overview(total_departments: int, total_employees: int,
                        current_department: Optional[Department], department_employees: int,
                        stats: EmployeeStatistics, avg_years_of_service: float) -> str:
    demo = stats.demographics
    current = current_department.dept_name if current_department else "All Departments"
    return "\n".join([
        "**Comprehensive Statistics**",
        "",
        "**System Overview:**",
        f"- **Total Departments**: {total_departments}",
        f"- **Total Employees**: {total_employees:,}",
        f"- **Current Department**: {current}",
        f"- **Department Employees**: {department_employees}",
        f"- **Active Employees**: {stats.active_employees}",
        "",
        "**Department Insights:**",
        f"- **Average Years of Service**: {round(avg_years_of_service)} years",
        f"- **Malaysian Citizens**: {demo.nationality.get('Malaysian', 0)}",
        f"- **Degree Holders**: {demo.education.get('Degree', 0)}",
        f"- **Male/Female Ratio**: {demo.gender.get('Male', 0)}:{demo.gender.get('Female', 0)}",
        "",
        "*The dashboard shows real-time attendance and performance data.*",
    ])


# ---------- attendance (day) ----------
def single_metric(title: str, label: str, count: int, total: int, rate_line: str,
                  scope: str, day: date, extra: Sequence[str] = ()) -> str:
    """One "how many" answer: headline count, optional detail lines, and a rate sentence."""
    lines = [
        f"**{title}{scope}** ({format_long_date(day)})",
        "",
        f"**{label}:** {count} out of {total} employees",
        *extra,
        "",
        f"*{percent(count, total)}% {rate_line}*",
    ]
    return "\n".join(lines)


def attendance_report(stats: TodayAttendanceStats, scope: str, day: date) -> str:
    lines = [
        f"**Attendance Report{scope}** ({format_long_date(day)})",
        "",
        "**Overall Summary:**",
        f"- **Total Employees**: {stats.total_employees}",
        f"- **Total Records Today**: {stats.total}",
        "",
        "**Attendance Breakdown:**",
        f"- **Checked In (On Time)**: {stats.present} employees",
        f"- **Late Check-In**: {stats.late} employees",
        f"- **Absent**: {stats.absent} employees",
        f"- **Medical Leave (MC)**: {stats.on_medical_leave} employees",
        f"- **On Leave**: {stats.on_leave} employees",
        f"- **Holiday**: {stats.holiday} employees",
        f"- **Not Checked In Yet**: {stats.not_checked_in} employees",
        "",
    ]
    if stats.total_employees > 0:
        lines += [
            "**Attendance Rates:**",
            f"- Present Rate: {percent(stats.present, stats.total_employees)}%",
            f"- Late Rate: {percent(stats.late, stats.total_employees)}%",
            f"- Absent Rate: {percent(stats.absent, stats.total_employees)}%",
            "",
        ]
    lines.append("*Use the dashboard for detailed individual attendance records.*")
    return "\n".join(lines)


# ---------- attendance (one employee) ----------
def _employee_header(emp: Employee) -> List[str]:
    return [
        f"**Employee:** {emp.name} ({emp.employee_id})",
        f"**Department:** {emp.department_code}",
    ]


def employee_today(emp: Employee, record: Optional[AttendanceRecord], day: date) -> str:
    head = [f"**{emp.name}'s Attendance Today**", "", f"**Date:** {format_long_date(day)}",
            *_employee_header(emp), f"**Position:** {or_na(emp.position)}"]
    if record is None:
        return "\n".join(head + [
            f"**Status:** {emp.status}",
            "",
            "**No attendance record found for today.**",
            "",
            "This employee has not checked in yet today.",
        ])
    lines = head + [
        "",
        "**Attendance Details:**",
        f"- **Status**: {record.status}",
        f"- **Clock In**: {record.clock_in or 'Not checked in'}",
        f"- **Clock Out**: {record.clock_out or 'Not checked out yet'}",
        f"- **Hours Worked**: {record.hours_worked or 0} hours",
        f"- **Location**: {or_na(record.location)}",
    ]
    if record.notes:
        lines.append(f"- **Notes**: {record.notes}")
    return "\n".join(lines)


def leave_history(emp: Employee, records: Sequence[AttendanceRecord]) -> str:
    head = [f"**{emp.name}'s Leave Records**", "", *_employee_header(emp)]
    if not records:
        return "\n".join(head + [
            "",
            "**No leave records found.**",
            "",
            "This employee has no recorded leave history in the system.",
        ])
    rows = [
        f"- **{format_date(r.date)}**: {r.status}" + (f" - {r.notes}" if r.notes else "")
        for r in records
    ]
    return "\n".join(head + [
        f"**Total Leave Records:** {len(records)}",
        "",
        f"**Recent Leave History (Last {len(records)}):**",
        *rows,
    ])


def attendance_history(emp: Employee, records: Sequence[AttendanceRecord],
                       summary: RecordSummary, shown: int = 10) -> str:
    head = [f"**{emp.name}'s Attendance Records**", "", *_employee_header(emp)]
    if not records:
        return "\n".join(head + [
            "",
            "**No attendance records found.**",
            "",
            "This employee has no recorded attendance history in the system.",
        ])
    rows = [
        f"- **{format_date(r.date)}**: {r.status} | In: {r.clock_in or 'N/A'} | Out: {r.clock_out or 'N/A'}"
        for r in records[:shown]
    ]
    return "\n".join(head + [
        f"**Total Records:** {len(records)}",
        "",
        f"**Summary (Last {len(records)} days):**",
        f"- Present: {summary.present} days",
        f"- Late: {summary.late} days",
        f"- Absent: {summary.absent} days",
        f"- On Leave: {summary.on_leave} days",
        "",
        f"**Recent Attendance (Last {min(shown, len(records))} days):**",
        *rows,
    ])


# ---------- fallback ----------
def help_text(departments_with_employees: int, total_departments: int, total_employees: int) -> str:
    return "\n".join([
        "**I can help you with:**",
        "",
        "**Department Information**",
        '- "Show me department 11D"',
        '- "List all departments"',
        "- Department employee counts and structure",
        "",
        "**Employee Data**",
        '- "Show employee SG000001" or "Tell me about employee Ahmad"',
        "- Individual employee profiles and details",
        "- Salary and position information",
        "",
        "**Individual Employee Attendance & Leave**",
        '- "Show attendance for SG000001"',
        '- "Show attendance for SG000001 today"',
        '- "Show leave records for SG000001"',
        "",
        "**Attendance Queries (Today)**",
        '- "How many employees checked in today?"',
        '- "How many people are late today?"',
        '- "How many employees are absent today?"',
        '- "How many are on medical leave today?"',
        '- "Show today\'s attendance report"',
        "",
        "**Analytics**",
        '- "Show salary statistics" or "Demographics analysis"',
        "- Position and grade distributions",
        "",
        "**Tip:** You can search by employee name OR employee ID.",
        "",
        f"*I have access to {departments_with_employees} departments with employees "
        f"({total_departments} total) and {total_employees:,} employees.*",
    ])
