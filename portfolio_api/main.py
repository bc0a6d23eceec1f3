"""
FastAPI application entry point.
"""
import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_api.api.auth import router as auth_router
from portfolio_api.api.roles import router as roles_router
from portfolio_api.core.config import Settings, get_settings
from portfolio_api.core.exceptions import (
    AppException,
    DatabaseUnavailableError,
    app_exception_handler,
    error_body,
)
from portfolio_api.core.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from portfolio_api.core.rate_limit import RateLimiters, enforce_general_rate_limit
from portfolio_api.database import Database


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info("application_starting", version=settings.app_version)
    if await database.check_connection():
        logger.info("database_connection_successful")
    else:
        logger.error("database_connection_failed")

    yield

    logger.info("application_shutting_down")
    await database.dispose()
    logger.info("database_engine_disposed")


async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Pool checkout timeouts and unreachable databases become 503 with Retry-After.

    asyncpg connect failures are not wrapped by SQLAlchemy: a refused or
    unresolvable host surfaces as OSError and a connect timeout as TimeoutError.
    """
    logger.error("database_unavailable", error=str(exc), error_type=type(exc).__name__)
    return await app_exception_handler(request, DatabaseUnavailableError())


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle other database errors without leaking details."""
    logger.error("database_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("A database error occurred", "INTERNAL_ERROR")
    )


HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHENTICATED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (unknown path, wrong method) in the standard envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_body("Request validation failed", "VALIDATION_ERROR", errors=jsonable_encoder(exc.errors()))
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception("unexpected_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("An unexpected error occurred", "INTERNAL_ERROR")
    )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        database: Pre-built Database; constructed from settings when omitted

    Returns:
        Configured FastAPI instance. Its Database and rate limiters live on
        app.state, so separate instances never share pools or counters.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.database = database or Database(settings)
    app.state.rate_limiters = RateLimiters(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Log all requests."""
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None
        )

        response = await call_next(request)

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code
        )

        return response

    # Correlation ID middleware (outermost, so request logs carry the id)
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to request and response headers."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        clear_request_context()
        bind_request_context(correlation_id=correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers["X-Correlation-ID"] = correlation_id
        return response

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PoolTimeoutError, database_unavailable_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(OSError, database_unavailable_handler)
    app.add_exception_handler(TimeoutError, database_unavailable_handler)
    app.add_exception_handler(asyncio.TimeoutError, database_unavailable_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers
    api_dependencies = [Depends(enforce_general_rate_limit)]
    app.include_router(auth_router, prefix=settings.api_prefix, dependencies=api_dependencies)
    app.include_router(roles_router, prefix=settings.api_prefix, dependencies=api_dependencies)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/api/docs",
            "redoc": "/api/redoc",
            "openapi": "/api/openapi.json"
        }

    # Health check endpoints
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check."""
        return {
            "status": "healthy",
            "version": settings.app_version
        }

    @app.get(f"{settings.api_prefix}/health", tags=["Health"])
    async def detailed_health_check(request: Request):
        """Detailed health check with component status."""
        db_healthy = await request.app.state.database.check_connection()
        return {
            "status": "healthy" if db_healthy else "degraded",
            "version": settings.app_version,
            "components": {
                "database": "healthy" if db_healthy else "unhealthy"
            }
        }

    return app


def get_app() -> FastAPI:
    """Factory for `uvicorn --factory portfolio_api.main:get_app`."""
    return create_app()


# Run with uvicorn for development
if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "portfolio_api.main:get_app",
        factory=True,
        host=_settings.backend_host,
        port=_settings.backend_port,
        reload=True,
        log_level=_settings.log_level.lower()
    )
