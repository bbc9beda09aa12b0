"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledger_engine.api.routes import (
    banking_router,
    expenses_router,
    gst_router,
    health_router,
    invoices_router,
    payments_router,
    payroll_router,
    reports_router,
)
from ledger_engine.database import init_db
from ledger_engine.errors import (
    AuthorizationError,
    CapabilityDeniedError,
    ConflictError,
    LedgerEngineError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases.
ERROR_STATUS: list[tuple[type[LedgerEngineError], int]] = [
    (ValidationError, 422),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (CapabilityDeniedError, status.HTTP_402_PAYMENT_REQUIRED),
    (PartialFailureError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: LedgerEngineError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Ledger Engine API",
        description="Double-entry ledger for invoicing, payments, payroll, GST and bank reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(LedgerEngineError)
    async def ledger_error_handler(request: Request, exc: LedgerEngineError) -> JSONResponse:
        """Map engine errors to HTTP status codes."""
        code = status_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    for router in (
        invoices_router,
        payments_router,
        expenses_router,
        payroll_router,
        gst_router,
        banking_router,
        reports_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
