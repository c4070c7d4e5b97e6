# backend/attendance_hub/main.py
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from attendance_hub.api.router import router as api_router
from attendance_hub.core.config import settings
from attendance_hub.core.errors import StoreUnavailable
from attendance_hub.core.request_context import set_request_id
from attendance_hub.seed.migration import MigrationRunner
from attendance_hub.services.assistant_service import AssistantService
from attendance_hub.services.data_processing.statistics import AttendanceStatisticsService
from attendance_hub.services.db_service import SQLServerAttendanceStore
from attendance_hub.services.entity_resolver import EntityResolver
from attendance_hub.services.llm.completion_client import CompletionClient
from attendance_hub.services.query_processor import LocalQueryProcessor
from attendance_hub.services.settings_store import (
    IntegrationSettings,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)
from attendance_hub.services.store.base import AttendanceStore
from attendance_hub.services.store.memory_store import InMemoryAttendanceStore

logger = logging.getLogger("attendance_hub.http")


async def _default_store() -> AttendanceStore:
    if settings.DB_BACKEND == "sqlserver":
        store = SQLServerAttendanceStore()
        try:
            await run_in_threadpool(store.apply_schema)
        except StoreUnavailable as e:
            # the migration gate reports the failure; the app still starts
            logger.error("schema apply failed: %s", e)
        return store
    return InMemoryAttendanceStore()


def create_app(store: Optional[AttendanceStore] = None,
               kv: Optional[KeyValueStore] = None,
               completion_client: Optional[CompletionClient] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create long-lived services once and store them on app.state."""
        try:
            s = store or await _default_store()
            k = kv or JsonFileKeyValueStore(settings.SETTINGS_PATH)
            stats = AttendanceStatisticsService(s)
            resolver = EntityResolver(s)
            processor = LocalQueryProcessor(s, stats=stats, resolver=resolver)
            integrations = IntegrationSettings(k)
            completion = completion_client or CompletionClient()

            app.state.store = s
            app.state.kv = k
            app.state.stats = stats
            app.state.resolver = resolver
            app.state.processor = processor
            app.state.integrations = integrations
            app.state.completion = completion
            app.state.assistant = AssistantService(processor, integrations, completion)
            # the seed flag lives exactly as long as the data it describes
            flag_kv = InMemoryKeyValueStore() if isinstance(s, InMemoryAttendanceStore) else k
            app.state.migration = MigrationRunner(s, flag_kv)
            logger.info("App services initialized: store=%s kv=%s",
                        type(s).__name__, type(k).__name__)
        except Exception as e:
            logger.exception(f"Service init failed: {type(e).__name__}: {e}")

        migration = getattr(app.state, "migration", None)
        if migration is not None:
            result = await migration.ensure_migrated()
            if not result.success:
                logger.error("startup migration failed at %s: %s", result.step, result.error)
        try:
            yield
        finally:
            logger.info("App services shutting down")

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    # Request ID + access logging
    @app.middleware("http")
    async def rid_and_access_log(request: Request, call_next):
        rid = set_request_id(request.headers.get("x-request-id"))
        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            dur_ms = int((time.perf_counter() - start) * 1000)
            status = getattr(response, "status_code", "?")
            logger.info("HTTP %s %s -> %s rid=%s dur=%dms",
                        request.method, request.url.path, status, rid, dur_ms)
            if response is not None:
                response.headers["x-request-id"] = rid

    # CORS (wide open for dev)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app
