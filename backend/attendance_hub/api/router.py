# backend/attendance_hub/api/router.py
import time
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from attendance_hub.core.errors import StoreUnavailable
from attendance_hub.core.request_context import mask, ms_since, rid
from attendance_hub.models.integrations import LLMConfig, LLMConfigUpdate
from attendance_hub.reports.service import (
    DOCX_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    build_snapshot,
    export_docx,
    export_xlsx,
)
from attendance_hub.seed.migration import COMPLETED, MigrationRunner
from attendance_hub.services.assistant_service import AssistantService
from attendance_hub.services.data_processing.statistics import (
    AttendanceStatisticsService,
    summarize_records,
)
from attendance_hub.services.entity_resolver import EntityResolver
from attendance_hub.services.helpers.data_utils import jsonable_value
from attendance_hub.services.query_processor import QuerySelection
from attendance_hub.services.settings_store import IntegrationSettings
from attendance_hub.services.store.base import AttendanceStore

logger = logging.getLogger(__name__)

router = APIRouter()

REPORT_PERIOD_PATTERN = "^(today|daily|weekly|monthly|yearly)$"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------
def _state(request: Request, name: str):
    svc = getattr(request.app.state, name, None)
    if svc is None:
        raise HTTPException(status_code=500, detail=f"{name} service not initialized")
    return svc


def require_migrated(request: Request) -> None:
    """Data endpoints stay closed until the sample dataset has been seeded."""
    migration: MigrationRunner = _state(request, "migration")
    if migration.status != COMPLETED:
        raise HTTPException(status_code=503, detail=migration.describe())


def _public_llm(cfg: LLMConfig) -> Dict[str, Any]:
    out = cfg.model_dump(mode="json")
    out["api_key"] = mask(cfg.api_key, keep_last=4)
    return out


# Simple ping
@router.get("/api/ping", include_in_schema=False)
async def ping():
    return {"ok": True}


# ------------------------------------------------------------------
# Health / migration
# ------------------------------------------------------------------
@router.get("/api/health")
async def health(request: Request) -> Dict[str, Any]:
    t0 = time.perf_counter()
    out: Dict[str, Any] = {}
    store: AttendanceStore = _state(request, "store")
    try:
        t = time.perf_counter()
        out["database_connection"] = bool(await store.ping())
        out["database_ms"] = ms_since(t)
    except StoreUnavailable as e:
        out["database_connection"] = False
        out["database_error"] = str(e)
        logger.warning("health: store ping failed rid=%s err=%s", rid(), e)

    migration: MigrationRunner = _state(request, "migration")
    out["migration"] = migration.describe()
    out["ready_for_queries"] = out["database_connection"] and migration.status == COMPLETED
    out["total_ms"] = ms_since(t0)
    logger.info("health: ready=%s total=%dms", out["ready_for_queries"], out["total_ms"])
    return out


@router.get("/api/migration/status")
async def migration_status(request: Request):
    migration: MigrationRunner = _state(request, "migration")
    return migration.describe()


@router.post("/api/migration/retry")
async def migration_retry(request: Request):
    migration: MigrationRunner = _state(request, "migration")
    result = await migration.retry()
    return {"success": result.success, **migration.describe()}


# ------------------------------------------------------------------
# Departments
# ------------------------------------------------------------------
@router.get("/api/departments", dependencies=[Depends(require_migrated)])
async def departments(request: Request, with_employees: bool = Query(False)):
    store: AttendanceStore = _state(request, "store")
    try:
        if with_employees:
            rows = await store.list_departments_with_employees()
        else:
            rows = await store.list_departments()
    except StoreUnavailable as e:
        logger.warning("departments degraded rid=%s err=%s", rid(), e)
        rows = []
    return {"success": True, "departments": jsonable_value(rows)}


@router.get("/api/departments/search", dependencies=[Depends(require_migrated)])
async def departments_search(request: Request, q: str = Query(..., min_length=1),
                             limit: int = Query(10, ge=1, le=100)):
    resolver: EntityResolver = _state(request, "resolver")
    rows = await resolver.search_departments(q, limit=limit)
    return {"success": True, "departments": jsonable_value(rows)}


@router.get("/api/departments/{code}", dependencies=[Depends(require_migrated)])
async def department_detail(code: str, request: Request):
    stats: AttendanceStatisticsService = _state(request, "stats")
    ds = await stats.department_statistics(code.upper())
    if ds is None:
        raise HTTPException(status_code=404, detail=f"Department {code} not found")
    return {
        "success": True,
        "department": jsonable_value(ds.department),
        "path": ds.path,
        "employee_count": ds.employee_count,
        "sub_department_count": ds.sub_department_count,
        "statistics": ds.statistics.to_dict(),
        "employees": jsonable_value(ds.employees),
    }


# ------------------------------------------------------------------
# Employees
# ------------------------------------------------------------------
@router.get("/api/employees/search", dependencies=[Depends(require_migrated)])
async def employees_search(request: Request, q: str = Query(..., min_length=1),
                           limit: int = Query(20, ge=1, le=100)):
    resolver: EntityResolver = _state(request, "resolver")
    rows = await resolver.search_employees(q, limit=limit)
    return {"success": True, "employees": jsonable_value(rows)}


@router.get("/api/employees/{code}", dependencies=[Depends(require_migrated)])
async def employee_detail(code: str, request: Request):
    resolver: EntityResolver = _state(request, "resolver")
    found = await resolver.resolve_employee(code)
    if not found.exact:
        raise HTTPException(status_code=404, detail=f"Employee {code} not found")
    return {"success": True, "employee": jsonable_value(found.match)}


@router.get("/api/employees/{code}/attendance", dependencies=[Depends(require_migrated)])
async def employee_attendance(code: str, request: Request,
                              leave_only: bool = Query(False),
                              limit: int = Query(30, ge=1, le=365)):
    stats: AttendanceStatisticsService = _state(request, "stats")
    if leave_only:
        history = await stats.employee_leave_records(code.upper(), limit=limit)
    else:
        history = await stats.employee_attendance(code.upper(), limit=limit)
    if history is None:
        raise HTTPException(status_code=404, detail=f"Employee {code} not found")
    return {
        "success": True,
        "employee": jsonable_value(history.employee),
        "records": jsonable_value(history.records),
    }


# ------------------------------------------------------------------
# Statistics / attendance
# ------------------------------------------------------------------
@router.get("/api/statistics", dependencies=[Depends(require_migrated)])
async def statistics(request: Request, dept: Optional[str] = Query(None)):
    stats: AttendanceStatisticsService = _state(request, "stats")
    result = await stats.employee_statistics(dept)
    return {"success": True, "department": dept or "all", "statistics": result.to_dict()}


@router.get("/api/attendance/today", dependencies=[Depends(require_migrated)])
async def attendance_today(request: Request, dept: Optional[str] = Query(None),
                           employee: Optional[str] = Query(None)):
    stats: AttendanceStatisticsService = _state(request, "stats")
    result = await stats.today_attendance(dept, employee)
    return {"success": True, "department": dept or "all", "employee": employee or "all",
            "attendance": result.to_dict()}


@router.get("/api/attendance", dependencies=[Depends(require_migrated)])
async def attendance_range(request: Request,
                           start: date = Query(...),
                           end: date = Query(...),
                           dept: Optional[str] = Query(None),
                           employee: Optional[str] = Query(None)):
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    stats: AttendanceStatisticsService = _state(request, "stats")
    pairs = await stats.attendance_by_date_range(start, end, dept, employee)
    records = []
    for rec, emp in pairs:
        row = jsonable_value(rec)
        row["employee_code"] = emp.employee_id
        row["employee_name"] = emp.name
        row["department_code"] = emp.department_code
        records.append(row)
    return {
        "success": True,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "summary": jsonable_value(summarize_records([rec for rec, _ in pairs])),
        "records": records,
    }


# ------------------------------------------------------------------
# Assistant Query
# ------------------------------------------------------------------
@router.post("/api/assistant/query", dependencies=[Depends(require_migrated)])
async def assistant_query(request: Request, payload: dict = Body(...)):
    q = (payload or {}).get("query") or ""
    selection = QuerySelection(
        department=(payload or {}).get("department"),
        employee=(payload or {}).get("employee"),
    )

    t0 = time.perf_counter()
    logger.info("rid=%s /assistant/query start qlen=%d", rid(), len(q))

    assistant: Optional[AssistantService] = getattr(request.app.state, "assistant", None)
    if assistant is None:
        logger.error("rid=%s /assistant/query error: assistant not initialized on app.state", rid())
        return JSONResponse({"success": False, "error": "Assistant service not initialized"}, status_code=200)
    if not q.strip():
        return JSONResponse({"success": False, "error": "Empty query"}, status_code=200)

    try:
        data = await assistant.answer(q, selection)
        return JSONResponse(data)
    except Exception as e:
        logger.exception("rid=%s /assistant/query error: %s: %s", rid(), type(e).__name__, e)
        return JSONResponse({"success": False, "error": str(e)}, status_code=200)
    finally:
        logger.info("rid=%s /assistant/query done ms=%d", rid(), ms_since(t0))


# ------------------------------------------------------------------
# Settings: LLMs (registered before the generic {kind} routes)
# ------------------------------------------------------------------
@router.get("/api/settings/llms")
async def llms_list(request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    return {"success": True, "llms": [_public_llm(c) for c in integrations.list_llms()]}


@router.post("/api/settings/llms")
async def llms_add(config: LLMConfig, request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    try:
        saved = integrations.add_llm(config)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "llm": _public_llm(saved)}


@router.patch("/api/settings/llms/{llm_id}")
async def llms_update(llm_id: str, update: LLMConfigUpdate, request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    saved = integrations.update_llm(llm_id, update)
    if saved is None:
        raise HTTPException(status_code=404, detail=f"LLM config {llm_id} not found")
    return {"success": True, "llm": _public_llm(saved)}


@router.delete("/api/settings/llms/{llm_id}")
async def llms_delete(llm_id: str, request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    if not integrations.delete_llm(llm_id):
        raise HTTPException(status_code=404, detail=f"LLM config {llm_id} not found")
    return {"success": True}


@router.post("/api/settings/llms/{llm_id}/default")
async def llms_set_default(llm_id: str, request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    saved = integrations.set_default(llm_id)
    if saved is None:
        raise HTTPException(status_code=404, detail=f"LLM config {llm_id} not found")
    return {"success": True, "llm": _public_llm(saved)}


@router.post("/api/settings/llms/{llm_id}/test")
async def llms_test(llm_id: str, request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    cfg = integrations.get_llm(llm_id)
    if cfg is None:
        raise HTTPException(status_code=404, detail=f"LLM config {llm_id} not found")
    ok = await _state(request, "completion").test(cfg)
    saved = integrations.record_test(llm_id, ok)
    return {"success": ok, "llm": _public_llm(saved)}


# ------------------------------------------------------------------
# Settings: databases / apis / webhooks
# ------------------------------------------------------------------
def _kind_or_404(integrations: IntegrationSettings, kind: str) -> str:
    if kind not in integrations.kinds():
        raise HTTPException(status_code=404, detail=f"Unknown settings kind '{kind}'")
    return kind


@router.get("/api/settings/{kind}")
async def settings_list(kind: str, request: Request):
    integrations: IntegrationSettings = _state(request, "integrations")
    items = integrations.list_kind(_kind_or_404(integrations, kind))
    return {"success": True, kind: [i.model_dump(mode="json") for i in items]}


@router.put("/api/settings/{kind}")
async def settings_replace(kind: str, request: Request, items: List[dict] = Body(...)):
    integrations: IntegrationSettings = _state(request, "integrations")
    _kind_or_404(integrations, kind)
    try:
        saved = integrations.replace_kind(kind, items)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        raise HTTPException(status_code=422, detail=str(e))
    return {"success": True, kind: [i.model_dump(mode="json") for i in saved]}


# ------------------------------------------------------------------
# Reports
# ------------------------------------------------------------------
@router.get("/api/reports/export", dependencies=[Depends(require_migrated)])
async def reports_export(request: Request,
                         format: str = Query("docx", pattern="^(docx|xlsx)$"),
                         dept: Optional[str] = Query(None),
                         period: str = Query("today", pattern=REPORT_PERIOD_PATTERN)):
    stats: AttendanceStatisticsService = _state(request, "stats")
    generated_at = datetime.now()
    snapshot = await build_snapshot(stats, dept, period, generated_at)
    stamp = generated_at.strftime("%Y%m%d%H%M%S")
    if format == "xlsx":
        body, media_type, name = export_xlsx(snapshot), XLSX_MEDIA_TYPE, f"attendance-data-{period}-{stamp}.xlsx"
    else:
        body, media_type, name = export_docx(snapshot), DOCX_MEDIA_TYPE, f"attendance-report-{period}-{stamp}.docx"
    logger.info("rid=%s report export format=%s dept=%s bytes=%d", rid(), format, dept, len(body))
    return Response(content=body, media_type=media_type,
                    headers={"Content-Disposition": f'attachment; filename="{name}"'})
