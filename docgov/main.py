"""
FastAPI Application Entry Point
Main application with all routes and middleware
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from docgov.api.v1 import router as api_v1_router
from docgov.core.config import settings
from docgov.core.exceptions import AppException, TransientException
from docgov.core.logging import get_logger, setup_logging
from docgov.db.session import check_database, close_db, init_db
from docgov.models.common import ErrorResponse, HealthResponse
from docgov.monitoring import get_metrics, track_request
from docgov.monitoring.metrics import errors_total
from docgov.storage.client import check_storage, init_minio

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan management"""
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")

    await init_db()

    try:
        await init_minio()
    except AppException as e:
        # Storage-backed endpoints answer 503 until MinIO is reachable
        logger.error(f"Failed to initialize storage: {e.message}")

    logger.info("Services initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-tenant document governance: tenant sharing, magic links and document lifecycle",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip Middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

if settings.ENABLE_METRICS:
    app.middleware("http")(track_request)


def _error_response(status_code: int, code: str, message: str, details=None, timestamp=None) -> JSONResponse:
    envelope = ErrorResponse.build(code, message, jsonable_encoder(details) if details else None, timestamp)
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


# Exception Handlers
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application-specific exceptions"""
    if exc.status_code >= 500:
        errors_total.labels(error_type=exc.code, endpoint=request.url.path).inc()
    return _error_response(exc.status_code, exc.code, exc.message, exc.details, exc.timestamp)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
@app.exception_handler(PoolTimeoutError)
@app.exception_handler(asyncio.TimeoutError)
async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Driver-level failures and timeouts; the raw error is logged, never returned"""
    logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc}")
    errors_total.labels(error_type="database_unavailable", endpoint=request.url.path).inc()
    transient = TransientException(service="database")
    return _error_response(transient.status_code, transient.code, transient.message, transient.details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions"""
    if isinstance(exc.detail, dict):
        error_code = exc.detail.get("code", "http_error")
        error_message = exc.detail.get("message", str(exc.detail))
        error_details = {k: v for k, v in exc.detail.items() if k not in ("code", "message")}
    else:
        error_code = str(exc.detail).lower().replace(" ", "_")
        error_message = str(exc.detail)
        error_details = None

    return _error_response(exc.status_code, error_code, error_message, error_details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation errors"""
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "validation_error",
        "Invalid request parameters",
        {"errors": exc.errors()},
    )


# Include routers
app.include_router(api_v1_router, prefix="/api/v1")


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs_url": "/docs" if settings.DEBUG else None,
    }


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return HealthResponse.from_checks(
        version=settings.APP_VERSION,
        database_ok=await check_database(),
        storage_ok=await check_storage(),
    )


@app.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics"""
    if not settings.ENABLE_METRICS:
        return _error_response(status.HTTP_404_NOT_FOUND, "not_found", "Metrics are disabled")
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "docgov.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )
