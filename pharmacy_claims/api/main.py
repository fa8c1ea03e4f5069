"""
FastAPI Main Application
Entry point for the pharmacy claims API server
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pharmacy_claims import __version__
from pharmacy_claims.api.config import settings
from pharmacy_claims.api.routes import claims, health
from pharmacy_claims.db.connection import (
    close_db_connection,
    get_engine,
    get_session_maker,
    init_models,
    wait_for_connection,
)
from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.schemas.claim import ErrorResponse
from pharmacy_claims.services.audit import build_audit_sink
from pharmacy_claims.services.claims_service import ClaimsService
from pharmacy_claims.services.data_import.loader import BulkLoader
from pharmacy_claims.services.validator import ClaimValidator
from pharmacy_claims.utils.errors import ClaimsServiceError
from pharmacy_claims.utils.logging import get_logger, setup_logging

setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.is_production,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    """
    Application lifespan manager.

    Startup order: wait for the database, create the schema, build the
    services, load seed data, then serve. Seed loading problems are logged
    and do not stop the server.
    """
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    engine = get_engine()
    await wait_for_connection(
        engine,
        retries=settings.DB_CONNECT_RETRIES,
        interval=settings.DB_CONNECT_INTERVAL,
    )
    if settings.DB_CREATE_SCHEMA:
        await init_models(engine)

    session_maker = get_session_maker()
    gateway = PersistenceGateway(session_maker)
    audit_sink = build_audit_sink(settings, session_maker)
    validator = ClaimValidator()

    app.state.gateway = gateway
    app.state.claims_service = ClaimsService(gateway, audit_sink, validator)
    app.state.bulk_loader = BulkLoader(
        gateway,
        audit_sink,
        validator,
        batch_size=settings.LOADER_BATCH_SIZE,
        max_workers=settings.LOADER_MAX_WORKERS,
    )

    if settings.LOAD_ON_STARTUP:
        await app.state.bulk_loader.load_all(Path(settings.DATA_DIR))

    logger.info(f"Serving on {settings.API_HOST}:{settings.API_PORT}")

    yield

    logger.info("Shutting down application")
    await audit_sink.close()
    await close_db_connection()
    logger.info("Database connections closed")


app = FastAPI(
    title="Pharmacy Claims API",
    description="Pharmacy claim submission and reversal with seed data loading",
    version=__version__,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(claims.router)


# =============================================================================
# Error Mapping
# =============================================================================


def _error_response(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(ClaimsServiceError)
async def claims_service_error_handler(request: Request, exc: ClaimsServiceError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _error_response(exc.status_code, exc.title, exc.public_message)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = tuple(first.get("loc", ()))
    location = ".".join(str(part) for part in loc[1:])
    detail = first.get("msg", "malformed request")
    message = f"{location}: {detail}" if location else detail

    title = "Invalid JSON format" if not loc or loc[0] == "body" else "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, title, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} raised unhandled {type(exc).__name__}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run(
        "pharmacy_claims.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )
