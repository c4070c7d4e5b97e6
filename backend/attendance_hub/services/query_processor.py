# backend/attendance_hub/services/query_processor.py
from __future__ import annotations

import asyncio
import re
import time
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from attendance_hub.core.config import settings
from attendance_hub.core.errors import StoreUnavailable
from attendance_hub.core.request_context import ms_since, rid
from attendance_hub.models.entities import Department, Employee, EmployeeStatistics
from attendance_hub.services import response_formatter as fmt
from attendance_hub.services.data_processing.statistics import (
    AttendanceStatisticsService,
    average_years_of_service,
    grade_distribution,
    salary_bands,
    summarize_records,
)
from attendance_hub.services.entity_resolver import EntityResolver
from attendance_hub.services.helpers.data_utils import today as _today
from attendance_hub.services.store.base import AttendanceStore

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Patterns
# -----------------------------------------------------------------------------
DEPT_CODE_RE = re.compile(r"\b[0-9]+[a-z]+-?[0-9]*\b", re.I)
EMPLOYEE_CODE_RE = re.compile(r"sg\d{6}", re.I)
EMPLOYEE_WORD_RE = re.compile(r"\b(employee|staff)\b")

_DEPT_LEAD_RE = re.compile(r"^(show|tell|about|give|get|find|search)\s+(me|us)?\s*", re.I)
_DEPT_STOP_RE = re.compile(r"\b(department|dept|details?|information?|info)\b", re.I)
_EMP_STOP_RE = re.compile(r"\b(employee|staff|show|tell|about|me|information|info|details)\b")
_ATT_STOP_RE = re.compile(
    r"\b(attendance|leave|show|tell|about|me|information|info|details|for|of|records?"
    r"|today|now|current|what|is|the)\b"
)
_PUNCT_RE = re.compile(r"[?!.,]+|'s\b")

INDIVIDUAL_ATTENDANCE_PHRASES = (
    "attendance for", "leave for", "attendance of", "leave of",
    "attendance record", "leave record", "attendance information",
)
TODAY_KEYWORDS = ("today", "attendance", "present", "absent", "late",
                  "medical leave", "check in", "checked in")

DEPARTMENT_LIST_LIMIT = 10
LEAVE_HISTORY_LIMIT = 10
HISTORY_FETCH_LIMIT = 15
HISTORY_SHOWN = 10


def _has(q: str, *words: str) -> bool:
    return any(w in q for w in words)


def _strip(q: str, *patterns: re.Pattern) -> str:
    for p in patterns:
        q = p.sub(" ", q)
    q = _PUNCT_RE.sub(" ", q)
    return " ".join(q.split())


# -----------------------------------------------------------------------------
# Context
# -----------------------------------------------------------------------------
@dataclass
class QuerySelection:
    """Dashboard filter state; None or 'all' means no filter."""
    department: Optional[str] = None
    employee: Optional[str] = None

    @staticmethod
    def _norm(v: Optional[str]) -> Optional[str]:
        return None if not v or v == "all" else v

    @property
    def department_code(self) -> Optional[str]:
        return self._norm(self.department)

    @property
    def employee_code(self) -> Optional[str]:
        return self._norm(self.employee)


@dataclass
class QueryContext:
    current_department: Optional[Department] = None
    current_employee: Optional[Employee] = None
    department_employees: List[Employee] = field(default_factory=list)
    total_departments: int = 0
    departments_with_employees: int = 0
    total_employees: int = 0
    departments: List[Department] = field(default_factory=list)
    employees: List[Employee] = field(default_factory=list)
    statistics: EmployeeStatistics = field(default_factory=EmployeeStatistics)


@dataclass
class QueryResponse:
    category: str
    text: str


async def _safe(op: str, coro: Awaitable[Any], default: Any) -> Any:
    try:
        return await coro
    except StoreUnavailable as e:
        logger.warning("context read degraded rid=%s op=%s err=%s", rid(), op, e)
        return default
    except Exception:
        logger.exception("context read unexpected error rid=%s op=%s", rid(), op)
        return default


async def build_query_context(store: AttendanceStore, stats: AttendanceStatisticsService,
                              selection: QuerySelection) -> QueryContext:
    """Independent reads run together; the selection lookups follow."""
    t0 = time.perf_counter()
    all_departments, staffed, all_employees, statistics = await asyncio.gather(
        _safe("list_departments", store.list_departments(), []),
        _safe("list_departments_with_employees", store.list_departments_with_employees(), []),
        _safe("list_employees", store.list_employees(), []),
        stats.employee_statistics(selection.department_code),
    )

    current_dept = None
    dept_employees = all_employees
    if selection.department_code:
        current_dept = await _safe("get_department_by_code",
                                   store.get_department_by_code(selection.department_code), None)
        dept_employees = [e for e in all_employees if e.department_code == selection.department_code]

    current_emp = None
    if selection.employee_code:
        current_emp = await _safe("get_employee_by_code",
                                  store.get_employee_by_code(selection.employee_code), None)

    logger.debug("context built rid=%s in %dms", rid(), ms_since(t0))
    return QueryContext(
        current_department=current_dept,
        current_employee=current_emp,
        department_employees=dept_employees,
        total_departments=len(all_departments),
        departments_with_employees=len(staffed),
        total_employees=len(all_employees),
        departments=staffed[:20],
        employees=all_employees[:50],
        statistics=statistics,
    )


# -----------------------------------------------------------------------------
# Processor
# -----------------------------------------------------------------------------
Handler = Callable[["LocalQueryProcessor", str, QueryContext], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class IntentRule:
    category: str
    predicate: Callable[[str], bool]
    handler: Handler


class LocalQueryProcessor:
    """
    Answers questions from store data with keyword rules.

    Rules in INTENT_ORDER are tried top to bottom on the lower-cased question;
    the first rule whose predicate matches and whose handler returns text wins.
    A handler returning None hands the question to the next rule.
    """

    def __init__(self, store: AttendanceStore,
                 stats: Optional[AttendanceStatisticsService] = None,
                 resolver: Optional[EntityResolver] = None,
                 timeout_seconds: Optional[float] = None):
        self.store = store
        self.stats = stats or AttendanceStatisticsService(store)
        self.resolver = resolver or EntityResolver(store)
        self.timeout_seconds = timeout_seconds or settings.QUERY_TIMEOUT_SECONDS

    async def build_context(self, selection: QuerySelection) -> QueryContext:
        return await build_query_context(self.store, self.stats, selection)

    async def process(self, question: str, selection: Optional[QuerySelection] = None,
                      context: Optional[QueryContext] = None) -> QueryResponse:
        t0 = time.perf_counter()
        selection = selection or QuerySelection()
        if context is None:
            context = await self.build_context(selection)
        try:
            resp = await asyncio.wait_for(self._classify(question, context), self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("local query timeout rid=%s q=%r after=%ss", rid(), question, self.timeout_seconds)
            resp = QueryResponse("help", self._help(context))
        logger.info("local query rid=%s category=%s q=%r in %dms", rid(), resp.category, question, ms_since(t0))
        return resp

    async def _classify(self, question: str, ctx: QueryContext) -> QueryResponse:
        q = question.lower().strip()
        for rule in INTENT_ORDER:
            if not rule.predicate(q):
                continue
            text = await rule.handler(self, q, ctx)
            if text is not None:
                return QueryResponse(rule.category, text)
            logger.debug("rule fell through rid=%s category=%s", rid(), rule.category)
        return QueryResponse("help", self._help(ctx))

    @staticmethod
    def _help(ctx: QueryContext) -> str:
        return fmt.help_text(ctx.departments_with_employees, ctx.total_departments, ctx.total_employees)

    # ---------- 1. departments ----------
    async def answer_department(self, q: str, ctx: QueryContext) -> Optional[str]:
        if _has(q, "list", "all"):
            try:
                staffed = await self.store.list_departments_with_employees()
            except StoreUnavailable as e:
                logger.warning("department list degraded rid=%s err=%s", rid(), e)
                staffed = ctx.departments
            return fmt.department_list(staffed, DEPARTMENT_LIST_LIMIT)

        m = DEPT_CODE_RE.search(q)
        term = m.group(0) if m else _strip(_DEPT_LEAD_RE.sub("", q), _DEPT_STOP_RE)
        if term:
            found = await self.resolver.resolve_department(term)
            if found:
                ds = await self.stats.department_statistics(found.match.dept_code)
                if ds is not None:
                    return fmt.department_detail(ds)

        if ctx.current_department is not None:
            return fmt.selected_department(ctx.current_department, ctx.statistics)
        return None

    # ---------- 2. employees ----------
    async def answer_employee(self, q: str, ctx: QueryContext) -> Optional[str]:
        m = EMPLOYEE_CODE_RE.search(q)
        term = m.group(0) if m else _strip(q, _EMP_STOP_RE)
        if len(term) > 2:
            found = await self.resolver.resolve_employee(term)
            if found:
                dept = await self._department_of(found.match)
                return fmt.employee_profile(found.match, dept, _today())

        if ctx.current_employee is not None:
            dept = await self._department_of(ctx.current_employee)
            return fmt.selected_employee_profile(ctx.current_employee, dept, _today())
        return fmt.employee_overview(ctx.total_employees, len(ctx.department_employees), ctx.statistics)

    async def _department_of(self, emp: Employee) -> Optional[Department]:
        try:
            return await self.store.get_department_by_code(emp.department_code)
        except StoreUnavailable:
            return None

    # ---------- 3-5. analytics over the selection ----------
    async def answer_salary(self, q: str, ctx: QueryContext) -> Optional[str]:
        return fmt.salary_analysis(ctx.statistics, salary_bands(ctx.department_employees))

    async def answer_position(self, q: str, ctx: QueryContext) -> Optional[str]:
        return fmt.position_analysis(ctx.statistics, grade_distribution(ctx.department_employees))

    async def answer_demographics(self, q: str, ctx: QueryContext) -> Optional[str]:
        return fmt.demographics_analysis(ctx.statistics)

    # ---------- 6. today's attendance ----------
    async def answer_attendance_today(self, q: str, ctx: QueryContext) -> Optional[str]:
        # questions about one named employee belong to the individual lookup
        if EMPLOYEE_CODE_RE.search(q) or _has(q, *INDIVIDUAL_ATTENDANCE_PHRASES):
            return None

        day = _today()
        st = await self.stats.today_attendance(
            ctx.current_department.dept_code if ctx.current_department else None,
            ctx.current_employee.employee_id if ctx.current_employee else None,
            day=day,
        )
        if ctx.current_department is not None:
            scope = f" in {ctx.current_department.dept_name}"
        elif ctx.current_employee is not None:
            scope = f" for {ctx.current_employee.name}"
        else:
            scope = ""

        if "how many" in q:
            total = st.total_employees
            if "not" in q and _has(q, "medical leave", "mc"):
                not_mc = max(0, total - st.on_medical_leave)
                return fmt.single_metric(
                    "Medical Leave Status", "Employees NOT on Medical Leave", not_mc, total,
                    "of employees are not on medical leave today.", scope, day,
                    extra=[f"**Employees on Medical Leave:** {st.on_medical_leave}"],
                )
            if _has(q, "medical leave", "mc"):
                return fmt.single_metric(
                    "Medical Leave Today", "Employees on Medical Leave", st.on_medical_leave, total,
                    "of employees are on medical leave today.", scope, day,
                )
            if "absent" in q:
                return fmt.single_metric(
                    "Absent Employees", "Absent", st.absent, total,
                    "absence rate today.", scope, day,
                )
            if "late" in q:
                return fmt.single_metric(
                    "Late Check-Ins", "Late Employees", st.late, total,
                    "of employees checked in late today.", scope, day,
                )
            if _has(q, "check in", "checked in"):
                return fmt.single_metric(
                    "Check-In Summary", "Total Checked In", st.checked_in, total,
                    "check-in rate today.", scope, day,
                    extra=[f"- On Time: {st.present}", f"- Late: {st.late}"],
                )
            if _has(q, "present", "on time"):
                return fmt.single_metric(
                    "Present Today", "On-Time Check-Ins", st.present, total,
                    "punctuality rate today.", scope, day,
                )
            if "leave" in q and "medical" not in q:
                return fmt.single_metric(
                    "On Leave Today", "Employees on Leave", st.on_leave, total,
                    "of employees are on leave today.", scope, day,
                )

        return fmt.attendance_report(st, scope, day)

    # ---------- 7. one employee's attendance ----------
    async def answer_employee_attendance(self, q: str, ctx: QueryContext) -> Optional[str]:
        m = EMPLOYEE_CODE_RE.search(q)
        code = m.group(0).upper() if m else None
        if code is None:
            term = _strip(q, _ATT_STOP_RE)
            if len(term) > 2:
                hits = await self.resolver.search_employees(term)
                if hits:
                    code = hits[0].employee_id
        if code is None:
            return None

        if _has(q, "today", "now", "current"):
            day = _today()
            hist = await self.stats.employee_today_attendance(code, day=day)
            if hist is not None:
                return fmt.employee_today(hist.employee, hist.records[0] if hist.records else None, day)

        if "leave" in q:
            hist = await self.stats.employee_leave_records(code, LEAVE_HISTORY_LIMIT)
            if hist is not None:
                return fmt.leave_history(hist.employee, hist.records)

        hist = await self.stats.employee_attendance(code, HISTORY_FETCH_LIMIT)
        if hist is None:
            return None
        return fmt.attendance_history(hist.employee, hist.records,
                                      summarize_records(hist.records), HISTORY_SHOWN)

    # ---------- 8. statistics ----------
    async def answer_statistics(self, q: str, ctx: QueryContext) -> Optional[str]:
        return fmt.statistics_overview(
            ctx.total_departments, ctx.total_employees, ctx.current_department,
            len(ctx.department_employees), ctx.statistics,
            average_years_of_service(ctx.department_employees, _today()),
        )

    # ---------- 9. help ----------
    async def answer_help(self, q: str, ctx: QueryContext) -> Optional[str]:
        return self._help(ctx)


# -----------------------------------------------------------------------------
# Rule order (first match wins)
# -----------------------------------------------------------------------------
INTENT_ORDER: Tuple[IntentRule, ...] = (
    IntentRule("department",
               lambda q: _has(q, "department", "dept") or bool(DEPT_CODE_RE.search(q)),
               LocalQueryProcessor.answer_department),
    IntentRule("employee",
               lambda q: bool(EMPLOYEE_WORD_RE.search(q)),
               LocalQueryProcessor.answer_employee),
    IntentRule("salary",
               lambda q: _has(q, "salary", "pay", "compensation"),
               LocalQueryProcessor.answer_salary),
    IntentRule("position",
               lambda q: _has(q, "position", "job", "role"),
               LocalQueryProcessor.answer_position),
    IntentRule("demographics",
               lambda q: _has(q, "demographic", "nationality", "religion", "gender"),
               LocalQueryProcessor.answer_demographics),
    IntentRule("attendance_today",
               lambda q: _has(q, *TODAY_KEYWORDS),
               LocalQueryProcessor.answer_attendance_today),
    IntentRule("employee_attendance",
               lambda q: bool(EMPLOYEE_CODE_RE.search(q)) or _has(q, *INDIVIDUAL_ATTENDANCE_PHRASES),
               LocalQueryProcessor.answer_employee_attendance),
    IntentRule("statistics",
               lambda q: _has(q, "statistic", "data", "number"),
               LocalQueryProcessor.answer_statistics),
    IntentRule("help",
               lambda q: True,
               LocalQueryProcessor.answer_help),
)

CATEGORY_ORDER: Tuple[str, ...] = tuple(r.category for r in INTENT_ORDER)
