"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.db_error_handling import DatabaseOperationError
from app.core.error_responses import ErrorMessages
from app.core.logging_config import setup_logging
from app.core.progress_errors import ProgressError
from app.middleware import RequestLoggingMiddleware

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


def init_sentry(
    dsn: str,
    traces_sample_rate: float,
    environment: str,
    release: str,
) -> bool:
    """
    Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN. Empty (or None) disables Sentry.
        traces_sample_rate: Fraction of transactions traced (0.0-1.0)
        environment: Deployment environment name
        release: Application version reported with events

    Returns:
        True if Sentry was initialized, False if it is disabled.

    Raises:
        sentry_sdk.utils.BadDsn: If the DSN is malformed.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=traces_sample_rate,
        environment=environment,
        release=release,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
    logger.info(
        f"Sentry initialized for environment '{environment}' "
        f"with {traces_sample_rate:.0%} trace sampling"
    )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: Initializes Sentry when SENTRY_DSN is configured
    - On shutdown: Disposes the database connection pool
    """
    init_sentry(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.ENV,
        release=settings.APP_VERSION,
    )
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENV})")

    yield

    from app.models import async_engine

    await async_engine.dispose()
    logger.info("Application shutting down - database connections closed")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "test-progress",
        "description": (
            "Participant test progress: start, update, complete and read "
            "timed test attempts within an assessment session"
        ),
    },
]


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Syntegra API** - participant test progress for psychometric "
            "assessment sessions.\n\n"
            "This API provides:\n"
            "* Starting a timed test within a session\n"
            "* Periodic progress updates from the test client\n"
            "* Completion, with automatic completion once the time limit passes\n"
            "* Per-participant progress across all tests of a session"
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # Configure Request Logging
    app.add_middleware(RequestLoggingMiddleware, slow_request_threshold=1.0)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(ProgressError)
    async def progress_exception_handler(request: Request, exc: ProgressError):
        """
        Map progress domain errors to their HTTP status.

        Body: {"detail": {"kind", "code", "field", "message"}}
        """
        if exc.status_code >= 500:
            logger.error(
                f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
                extra={"method": request.method, "path": str(request.url.path)},
            )
            sentry_sdk.capture_exception(exc)
        else:
            logger.warning(
                f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
                extra={"method": request.method, "path": str(request.url.path)},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.to_detail()},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handle HTTP exceptions (unknown routes, wrong methods).
        """
        if exc.status_code >= 500:
            sentry_sdk.capture_exception(exc)

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors (malformed path ids or bodies).
        """
        # Convert errors to serializable format
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            errors.append(error_dict)

        logger.warning(
            f"Request validation failed on {request.method} {request.url.path}: "
            f"{errors}",
            extra={"method": request.method, "path": str(request.url.path)},
        )

        return JSONResponse(
            status_code=422,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions and track them.

        Generates a unique error_id (UUID) for each exception to enable
        support teams to trace specific errors in logs. The error_id is
        included in the response body and logged with the full exception.
        """
        error_id = str(uuid.uuid4())

        if isinstance(exc, DatabaseOperationError):
            log_message = (
                f"Database operation '{exc.operation_name}' failed "
                f"[error_id={error_id}]: {exc.original_error}"
            )
        else:
            log_message = f"Unhandled exception [error_id={error_id}]: {exc}"
        logger.exception(log_message, extra={"error_id": error_id})

        with sentry_sdk.new_scope() as scope:
            scope.set_tag("error_id", error_id)
            sentry_sdk.capture_exception(exc)

        # Return error response with tracking ID (don't leak internal details)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": ErrorMessages.INTERNAL_SERVER_ERROR,
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
