# =============================================================================
# FastAPI Application
# =============================================================================
#
# Wires the routers, the error handlers and the startup/shutdown hooks.
#
# Run locally:
#   uvicorn filing_qa.main:app --reload
#
# STARTUP:
#   1. Configure logging from settings.log_level
#   2. Create tables and triggers (when settings.create_tables)
# SHUTDOWN:
#   1. Dispose the database connection pool
#
# Every /api route requires the shared API key when one is configured.
# /health is always open.
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from filing_qa.api import analyze, documents, questions, upload
from filing_qa.api.deps import require_api_key
from filing_qa.config import settings
from filing_qa.db.engine import dispose_engine, init_db
from filing_qa.errors import AppError, UpstreamServiceError
from filing_qa.models.responses import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    if settings.create_tables:
        await init_db()
    yield
    await dispose_engine()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description=(
        "Upload SEC filings, extract their text, and ask questions answered "
        "by an LLM with citations into the source document."
    ),
    version=settings.app_version,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Error Handlers
# ---------------------------------------------------------------------------
# All errors share one body shape:
#   {"error": {"code": "...", "message": "...", "retryable": false}}
# ---------------------------------------------------------------------------


def _error_body(code: str, message: str, retryable: bool = False) -> dict:
    return {"error": {"code": code, "message": message, "retryable": retryable}}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    error = UpstreamServiceError("Database operation failed.", service="database")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    return JSONResponse(status_code=422, content=_error_body("validation_error", message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = {401: "unauthorized", 404: "not_found", 405: "method_not_allowed"}.get(
        exc.status_code, "http_error",
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

_protected = [Depends(require_api_key)]

app.include_router(documents.router, prefix="/api", dependencies=_protected)
app.include_router(questions.router, prefix="/api", dependencies=_protected)
app.include_router(upload.router, prefix="/api", dependencies=_protected)
app.include_router(analyze.router, prefix="/api", dependencies=_protected)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    """Liveness check. Does not touch the database or external services."""
    return HealthResponse(version=settings.app_version, service=settings.app_name)
