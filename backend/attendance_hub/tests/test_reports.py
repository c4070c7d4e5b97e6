# backend/attendance_hub/tests/test_reports.py
import asyncio
import io
from datetime import datetime

import pytest
from docx import Document
from openpyxl import load_workbook

from attendance_hub.models.entities import Demographics, EmployeeStatistics, TodayAttendanceStats
from attendance_hub.reports.service import (
    NOTICE_LINES,
    REPORT_TITLE,
    ReportSnapshot,
    build_snapshot,
    export_docx,
    export_xlsx,
)
from attendance_hub.services.data_processing.statistics import AttendanceStatisticsService
from attendance_hub.services.helpers.data_utils import today

GENERATED = datetime(2025, 1, 6, 9, 30, 0)


@pytest.fixture(scope="module")
def snapshot():
    return ReportSnapshot(
        department_name="Jabatan Kerja Raya",
        period="today",
        generated_at=GENERATED,
        attendance=TodayAttendanceStats(total=8, present=5, late=1, absent=1, on_medical_leave=1,
                                        on_leave=0, not_checked_in=2, total_employees=10),
        statistics=EmployeeStatistics(
            total_employees=10,
            demographics=Demographics(nationality={"Malaysian": 9, "Non-Malaysian": 1},
                                      religion={"Islam": 6, "Christian": 4},
                                      gender={"Male": 5, "Female": 5},
                                      education={"Degree": 3, "SPM": 7}),
        ),
    )


def test_snapshot_metrics(snapshot):
    assert snapshot.compliance_rate == "60.0"
    assert dict(snapshot.metrics())["Clocked In"] == "6"
    empty = ReportSnapshot("All Departments", "today", GENERATED)
    assert empty.compliance_rate == "0.0"


def test_docx_has_title_table_and_notice(snapshot):
    doc = Document(io.BytesIO(export_docx(snapshot)))
    text = "\n".join(p.text for p in doc.paragraphs)
    assert REPORT_TITLE in text
    assert "Department: Jabatan Kerja Raya" in text
    assert "Generated: 2025-01-06 09:30:00" in text
    for line in NOTICE_LINES:
        assert line in text

    metrics = doc.tables[0]
    rows = [(r.cells[0].text, r.cells[1].text) for r in metrics.rows]
    assert rows[0] == ("Metric", "Value")
    assert ("Compliance Rate", "60.0%") in rows
    assert ("Medical Leave", "1") in rows


def test_xlsx_sheets(snapshot):
    wb = load_workbook(io.BytesIO(export_xlsx(snapshot)))
    assert wb.sheetnames == ["Summary", "Demographics"]

    summary = {row[0]: row[1] for row in wb["Summary"].iter_rows(values_only=True) if row and row[0]}
    assert summary["Department"] == "Jabatan Kerja Raya"
    assert summary["Total Employees"] == 10
    assert summary["Compliance Rate"] == "60.0%"

    demo = [row for row in wb["Demographics"].iter_rows(values_only=True) if row and row[0]]
    assert ("Malaysian", 9) in demo
    assert ("Others", 0) in demo


def test_exports_are_stable_for_a_snapshot(snapshot):
    first = load_workbook(io.BytesIO(export_xlsx(snapshot)))
    second = load_workbook(io.BytesIO(export_xlsx(snapshot)))
    for name in first.sheetnames:
        assert list(first[name].iter_rows(values_only=True)) == list(second[name].iter_rows(values_only=True))


def test_build_snapshot_from_store(store, emp_pk, add_day):
    add_day(emp_pk["SG000003"], today(), "Present")
    snap = asyncio.run(build_snapshot(AttendanceStatisticsService(store), "33J", "today", GENERATED))
    assert snap.department_name == "Jabatan Kerja Raya"
    assert snap.attendance.total_employees == 2
    assert snap.compliance_rate == "50.0"
    assert snap.statistics.total_employees == 2
