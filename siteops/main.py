"""siteops - location-gated task lifecycle engine for multi-site stores."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pydantic
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from siteops.core.config import settings
from siteops.core.db_client import close_connection, init_db
from siteops.core.errors import (
    ErrorCode,
    ErrorResponse,
    ErrorSeverity,
    SiteOpsError,
    classify_error_with_response,
    status_code_for,
)
from siteops.core.logging import configure_logfire, instrument_fastapi
from siteops.core.scheduler import get_job_statuses, start_scheduler, stop_scheduler
from siteops.interface.checkin_router import router as checkin_router
from siteops.interface.task_router import router as task_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so startup logs are captured
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    if settings.enable_scheduler:
        start_scheduler()
    yield
    stop_scheduler()
    await close_connection()


app = FastAPI(
    title="siteops",
    description="Location-gated task lifecycle engine for multi-site stores",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(checkin_router)
app.include_router(task_router)


@app.exception_handler(SiteOpsError)
async def handle_siteops_error(_request: Request, exc: SiteOpsError) -> JSONResponse:
    """Render domain errors with their status and a structured body."""
    response = classify_error_with_response(exc)
    return JSONResponse(status_code=status_code_for(exc), content=response.model_dump(mode="json"))


def _validation_response(errors: list) -> JSONResponse:
    response = ErrorResponse(
        code=ErrorCode.ERR_VALIDATION,
        message="The request is invalid.",
        suggestion="Check the request values and try again.",
        severity=ErrorSeverity.LOW,
        details={"errors": errors},
    )
    return JSONResponse(status_code=400, content=response.model_dump(mode="json"))


@app.exception_handler(RequestValidationError)
async def handle_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 rather than FastAPI's default 422."""
    return _validation_response([{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()])


@app.exception_handler(pydantic.ValidationError)
async def handle_model_validation(_request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    return _validation_response([{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()])


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_statuses = get_job_statuses()
    has_failures = any(s["consecutive_failures"] > 0 for s in job_statuses.values())
    overall_status = "degraded" if has_failures else "healthy"
    return JSONResponse(
        content={"status": overall_status, "jobs": job_statuses},
        status_code=200 if overall_status == "healthy" else 503,
    )
