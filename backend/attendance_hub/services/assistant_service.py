# backend/attendance_hub/services/assistant_service.py
from __future__ import annotations

import json
import time
import logging
from typing import Any, Dict, Optional

from attendance_hub.core.errors import CompletionUnavailable
from attendance_hub.core.request_context import ms_since, rid
from attendance_hub.services.helpers.data_utils import jsonable_value
from attendance_hub.services.llm.completion_client import CompletionClient
from attendance_hub.services.query_processor import (
    LocalQueryProcessor,
    QueryContext,
    QuerySelection,
)
from attendance_hub.services.response_formatter import AI_UNAVAILABLE_NOTE
from attendance_hub.services.settings_store import IntegrationSettings

logger = logging.getLogger(__name__)


def _compact(items, limit: int) -> str:
    return json.dumps([jsonable_value(x) for x in items[:limit]], ensure_ascii=False, indent=2)


def build_system_prompt(ctx: QueryContext) -> str:
    dept = ctx.current_department
    emp = ctx.current_employee
    return (
        "You are an AI assistant for the Sabah Government Attendance Management System. "
        "You have access to the following data:\n\n"
        "CURRENT CONTEXT:\n"
        f"- Selected Department: {f'{dept.dept_code} - {dept.dept_name}' if dept else 'All Departments'}\n"
        f"- Selected Employee: {f'{emp.employee_id} - {emp.name}' if emp else 'All Employees'}\n"
        f"- Total Departments in System: {ctx.total_departments}\n"
        f"- Departments with Employees: {ctx.departments_with_employees}\n"
        f"- Total Employees: {ctx.total_employees}\n\n"
        f"DEPARTMENT DATA:\n{_compact(ctx.departments, 20)}\n\n"
        f"EMPLOYEE DATA (Sample):\n{_compact(ctx.employees, 50)}\n\n"
        f"CURRENT DEPARTMENT EMPLOYEES:\n{_compact(ctx.department_employees, 10)}\n\n"
        f"STATISTICS:\n{json.dumps(ctx.statistics.to_dict(), ensure_ascii=False)}\n\n"
        "INSTRUCTIONS:\n"
        "1. Always answer department and employee questions from the data above first\n"
        "2. Use the current selection to focus the answer\n"
        "3. For general questions not covered by the data, use your own knowledge\n"
        "4. Format responses with markdown\n"
        "5. Include relevant statistics when possible\n"
        "6. Be helpful, professional and concise"
    )


class AssistantService:
    """
    One chat turn: gather context, try the default LLM, and on any completion
    failure answer from the local processor with a visible note.
    """

    def __init__(self, processor: LocalQueryProcessor, settings_store: IntegrationSettings,
                 completion: Optional[CompletionClient] = None):
        self.processor = processor
        self.settings_store = settings_store
        self.completion = completion or CompletionClient()

    async def answer(self, question: str, selection: Optional[QuerySelection] = None) -> Dict[str, Any]:
        t0 = time.perf_counter()
        question = (question or "").strip()
        selection = selection or QuerySelection()
        logger.info("assistant start rid=%s qlen=%d dept=%s emp=%s",
                    rid(), len(question), selection.department, selection.employee)

        ctx = await self.processor.build_context(selection)
        config = self.settings_store.default_llm()

        source = "llm"
        category = None
        note = None
        try:
            text = await self.completion.complete(build_system_prompt(ctx), question, config)
        except CompletionUnavailable as e:
            logger.warning("assistant fallback rid=%s q=%r reason=%s", rid(), question, e)
            local = await self.processor.process(question, selection, context=ctx)
            source, category, note = "local", local.category, AI_UNAVAILABLE_NOTE
            text = f"{local.text}\n\n{AI_UNAVAILABLE_NOTE}"

        logger.info("assistant done rid=%s source=%s category=%s in %dms",
                    rid(), source, category, ms_since(t0))
        return {
            "success": True,
            "question": question,
            "answer": text,
            "source": source,
            "category": category,
            "note": note,
            "provider": config.provider if (config and source == "llm") else None,
            "model": config.model if (config and source == "llm") else None,
            "context": {
                "department": ctx.current_department.dept_code if ctx.current_department else None,
                "employee": ctx.current_employee.employee_id if ctx.current_employee else None,
                "total_departments": ctx.total_departments,
                "departments_with_employees": ctx.departments_with_employees,
                "total_employees": ctx.total_employees,
            },
            "ms": ms_since(t0),
        }
