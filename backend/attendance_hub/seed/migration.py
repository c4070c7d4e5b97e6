# backend/attendance_hub/seed/migration.py
from __future__ import annotations

import asyncio
import time
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from attendance_hub.core.errors import DuplicateKeyError, SeedPhaseFailure, StoreUnavailable
from attendance_hub.core.request_context import ms_since
from attendance_hub.seed import sample_data
from attendance_hub.services.helpers.data_utils import today
from attendance_hub.services.settings_store import MIGRATED_KEY, KeyValueStore
from attendance_hub.services.store.base import AttendanceStore

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"

PHASES = ("departments", "employees", "attendance")


@dataclass
class MigrationResult:
    success: bool
    step: Optional[str] = None
    error: Optional[str] = None
    departments: int = 0
    employees: int = 0
    attendance: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MigrationRunner:
    """
    One-shot copy of the sample dataset into the store.

    Runs at most once per key-value store: a completed run sets
    `data_migrated = "true"` and later calls are no-ops. Each phase inserts
    only the natural keys the store does not already hold, so a second client
    racing the first ends up with the same rows.
    """

    def __init__(self, store: AttendanceStore, kv: KeyValueStore,
                 employee_count: int = sample_data.EMPLOYEE_COUNT,
                 attendance_employees: int = sample_data.ATTENDANCE_EMPLOYEES,
                 attendance_days: int = sample_data.ATTENDANCE_DAYS):
        self.store = store
        self.kv = kv
        self.employee_count = employee_count
        self.attendance_employees = attendance_employees
        self.attendance_days = attendance_days

        self.status = PENDING
        self.failed_step: Optional[str] = None
        self.last_result: Optional[MigrationResult] = None
        self._lock = asyncio.Lock()

    @property
    def is_migrated(self) -> bool:
        return self.kv.get(MIGRATED_KEY) == "true"

    def describe(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "failed_step": self.failed_step,
            "migrated": self.is_migrated,
            "result": self.last_result.to_dict() if self.last_result else None,
        }

    async def ensure_migrated(self) -> MigrationResult:
        async with self._lock:
            if self.is_migrated:
                self.status = COMPLETED
                logger.info("migration skipped; flag already set")
                return self.last_result or MigrationResult(success=True)
            return await self._run()

    async def retry(self) -> MigrationResult:
        async with self._lock:
            self.kv.delete(MIGRATED_KEY)
            logger.info("migration retry; flag cleared")
            return await self._run()

    # ---------- phases ----------
    async def _run(self) -> MigrationResult:
        t0 = time.perf_counter()
        self.status = RUNNING
        self.failed_step = None
        result = MigrationResult(success=False)
        try:
            result.departments = await self._phase("departments", self._seed_departments)
            result.employees = await self._phase("employees", self._seed_employees)
            result.attendance = await self._phase("attendance", self._seed_attendance)
        except SeedPhaseFailure as e:
            result.step = e.phase
            result.error = str(e)
            self.status = FAILED
            self.failed_step = e.phase
            self.last_result = result
            logger.error("migration FAILED phase=%s err=%s in %dms", e.phase, e, ms_since(t0))
            return result

        result.success = True
        self.kv.set(MIGRATED_KEY, "true")
        self.status = COMPLETED
        self.last_result = result
        logger.info(
            "migration done departments=%d employees=%d attendance=%d in %dms",
            result.departments, result.employees, result.attendance, ms_since(t0),
        )
        return result

    async def _phase(self, name: str, fn) -> int:
        t0 = time.perf_counter()
        logger.info("migration phase=%s start", name)
        try:
            inserted = await fn()
        except DuplicateKeyError as e:
            # another client inserted the same keys between our read and write
            logger.warning("migration phase=%s duplicate keys tolerated: %s", name, e)
            inserted = 0
        except StoreUnavailable as e:
            raise SeedPhaseFailure(name, str(e)) from e
        except Exception as e:
            logger.exception("migration phase=%s unexpected error", name)
            raise SeedPhaseFailure(name, f"{type(e).__name__}: {e}") from e
        logger.info("migration phase=%s inserted=%d in %dms", name, inserted, ms_since(t0))
        return inserted

    async def _seed_departments(self) -> int:
        existing = await self.store.existing_department_codes()
        rows = [r for r in sample_data.department_rows() if r["dept_code"] not in existing]
        if not rows:
            return 0
        return await self.store.insert_departments(rows)

    async def _seed_employees(self) -> int:
        existing = await self.store.existing_employee_codes()
        rows = [r for r in sample_data.employee_rows(self.employee_count)
                if r["employee_id"] not in existing]
        if not rows:
            return 0
        return await self.store.insert_employees(rows)

    async def _seed_attendance(self) -> int:
        keys = sorted(await self.store.employee_keys(), key=lambda k: k[1])
        end = today()
        rows: List[Dict[str, Any]] = []
        for pk, code in keys[:self.attendance_employees]:
            rows.extend(sample_data.attendance_rows(pk, code, end, days=self.attendance_days))
        if not rows:
            return 0
        return await self.store.upsert_attendance(rows)
