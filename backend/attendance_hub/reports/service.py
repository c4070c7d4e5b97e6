# backend/attendance_hub/reports/service.py
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor
from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side

from attendance_hub.models.entities import (
    NATIONALITIES,
    RELIGIONS,
    EmployeeStatistics,
    TodayAttendanceStats,
)
from attendance_hub.services.data_processing.statistics import AttendanceStatisticsService
from attendance_hub.services.helpers.data_utils import percent

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

REPORT_TITLE = "CONFIDENTIAL - Attendance Report"
SUMMARY_TITLE = "CONFIDENTIAL - Attendance Summary"
NOTICE_LINES = (
    "CONFIDENTIAL: This document contains sensitive government information.",
    "Unauthorized disclosure is prohibited under the Official Secrets Act.",
)
SHEET_NOTICE = "CONFIDENTIAL: Unauthorized disclosure prohibited"
GENERATED_FORMAT = "%Y-%m-%d %H:%M:%S"


# ============================================
# Snapshot
# ============================================
@dataclass
class ReportSnapshot:
    """Everything an export renders. Exports never read the clock themselves."""
    department_name: str
    period: str
    generated_at: datetime
    attendance: TodayAttendanceStats = field(default_factory=TodayAttendanceStats)
    statistics: EmployeeStatistics = field(default_factory=EmployeeStatistics)

    @property
    def compliance_rate(self) -> str:
        return percent(self.attendance.checked_in, self.attendance.total_employees)

    def metrics(self) -> List[Tuple[str, str]]:
        a = self.attendance
        return [
            ("Total Employees", str(a.total_employees)),
            ("Clocked In", str(a.checked_in)),
            ("On Leave", str(a.on_leave)),
            ("Medical Leave", str(a.on_medical_leave)),
            ("Absent", str(a.absent)),
            ("Compliance Rate", f"{self.compliance_rate}%"),
        ]


async def build_snapshot(stats: AttendanceStatisticsService, dept_code: Optional[str],
                         period: str, generated_at: datetime) -> ReportSnapshot:
    department_name = "All Departments"
    if dept_code and dept_code != "all":
        ds = await stats.department_statistics(dept_code)
        if ds is not None:
            department_name = ds.department.dept_name
    return ReportSnapshot(
        department_name=department_name,
        period=period,
        generated_at=generated_at,
        attendance=await stats.today_attendance(dept_code),
        statistics=await stats.employee_statistics(dept_code),
    )


# ============================================
# DOCX
# ============================================
def export_docx(snapshot: ReportSnapshot) -> bytes:
    doc = Document()
    _setup_document_styles(doc)

    title = doc.add_heading(REPORT_TITLE, 0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    meta = doc.add_paragraph()
    meta.add_run(f"Department: {snapshot.department_name}\n")
    meta.add_run(f"Period: {snapshot.period}\n")
    meta.add_run(f"Generated: {snapshot.generated_at.strftime(GENERATED_FORMAT)}")

    doc.add_heading("Attendance Summary", level=1)
    _add_metric_table(doc, snapshot.metrics())

    demo = snapshot.statistics.demographics
    doc.add_heading("Demographics", level=1)
    doc.add_heading("Nationality", level=2)
    _add_metric_table(doc, _counts(demo.nationality, NATIONALITIES), headers=("Nationality", "Count"))
    doc.add_heading("Religion", level=2)
    _add_metric_table(doc, _counts(demo.religion, RELIGIONS), headers=("Religion", "Count"))

    doc.add_paragraph()
    notice = doc.add_paragraph()
    for i, line in enumerate(NOTICE_LINES):
        run = notice.add_run(line if i == 0 else f"\n{line}")
        run.font.size = Pt(8)
        run.font.color.rgb = RGBColor(0x80, 0x80, 0x80)

    buf = io.BytesIO()
    doc.save(buf)
    logger.info("docx export dept=%s period=%s bytes=%d",
                snapshot.department_name, snapshot.period, buf.tell())
    return buf.getvalue()


def _setup_document_styles(doc: Document):  # type: ignore
    styles = doc.styles
    for i in range(1, 3):
        heading_style = styles[f"Heading {i}"]
        heading_style.font.name = "Calibri"
        heading_style.font.color.rgb = RGBColor(0x1F, 0x49, 0x7D) if i == 1 else RGBColor(0x2E, 0x74, 0xB5)
        heading_style.font.size = Pt([18, 14][i - 1])
        heading_style.font.bold = True

    normal_style = styles["Normal"]
    normal_style.font.name = "Calibri"
    normal_style.font.size = Pt(11)
    normal_style.paragraph_format.space_after = Pt(6)


def _add_metric_table(doc: Document, rows: List[Tuple[str, str]],  # type: ignore
                      headers: Tuple[str, str] = ("Metric", "Value")):
    table = doc.add_table(rows=1, cols=2)
    table.style = "Light Grid Accent 1"
    hdr = table.rows[0].cells
    hdr[0].text, hdr[1].text = headers
    for label, value in rows:
        row = table.add_row().cells
        row[0].text = label
        row[1].text = str(value)


def _counts(histogram, labels) -> List[Tuple[str, str]]:
    return [(label, str(histogram.get(label, 0))) for label in labels]


# ============================================
# XLSX
# ============================================
_HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_BORDER = Border(left=Side(style="thin"), right=Side(style="thin"),
                 top=Side(style="thin"), bottom=Side(style="thin"))


def export_xlsx(snapshot: ReportSnapshot) -> bytes:
    wb = Workbook()

    summary = wb.active
    summary.title = "Summary"
    summary.append([SUMMARY_TITLE])
    summary.cell(1, 1).font = Font(bold=True, size=14)
    summary.append([])
    summary.append(["Department", snapshot.department_name])
    summary.append(["Period", snapshot.period])
    summary.append(["Generated", snapshot.generated_at.strftime(GENERATED_FORMAT)])
    summary.append([])
    _header_row(summary, ["Metric", "Value"])
    a = snapshot.attendance
    for label, value in (
        ("Total Employees", a.total_employees),
        ("Clocked In", a.checked_in),
        ("On Leave", a.on_leave),
        ("Medical Leave", a.on_medical_leave),
        ("Absent", a.absent),
        ("Compliance Rate", f"{snapshot.compliance_rate}%"),
    ):
        summary.append([label, value])
    summary.append([])
    summary.append([SHEET_NOTICE])
    summary.column_dimensions["A"].width = 22
    summary.column_dimensions["B"].width = 40

    demo_sheet = wb.create_sheet("Demographics")
    demo_sheet.append(["Demographics Analysis"])
    demo_sheet.cell(1, 1).font = Font(bold=True, size=14)
    demo = snapshot.statistics.demographics
    for heading, histogram, labels in (
        ("Nationality", demo.nationality, NATIONALITIES),
        ("Religion", demo.religion, RELIGIONS),
        ("Gender", demo.gender, ()),
        ("Education", demo.education, ()),
    ):
        demo_sheet.append([])
        _header_row(demo_sheet, [heading, "Count"])
        keys = list(labels) or sorted(histogram)
        for key in keys:
            demo_sheet.append([key, histogram.get(key, 0)])
    demo_sheet.column_dimensions["A"].width = 22

    buf = io.BytesIO()
    wb.save(buf)
    logger.info("xlsx export dept=%s period=%s bytes=%d",
                snapshot.department_name, snapshot.period, buf.tell())
    return buf.getvalue()


def _header_row(ws, values: List[str]) -> None:
    ws.append(values)
    row = ws.max_row
    for col in range(1, len(values) + 1):
        cell = ws.cell(row, col)
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.border = _BORDER
