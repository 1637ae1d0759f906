"""
Main FastAPI application.

WHY: This is the entry point for the application. It configures logging,
middleware, routes and exception handlers.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobbilling.core.config import settings
from jobbilling.core.exceptions import AppException
from jobbilling.core.exception_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    generic_exception_handler,
)
from jobbilling.middleware import RequestContextMiddleware, RequestIdLogFilter
from jobbilling.api import change_orders, invoices, jobs


def configure_logging() -> None:
    """
    Configure root logging once, from LOG_LEVEL.

    WHY: Every module logs through ``logging.getLogger(__name__)``; the
    request id filter stamps each record so billing logs can be correlated
    with the request that produced them.
    """
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdLogFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s")
    )
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), handlers=[handler])


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows easier testing with different configurations.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Job billing and invoice reconciliation API",
        version=settings.VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Register exception handlers
    # WHY: Billing errors carry amounts and ids; handlers keep the JSON shape uniform
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Request id for log correlation
    app.add_middleware(RequestContextMiddleware)

    # Configure CORS
    # WHY: The CRM frontend runs on a different origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """Liveness check for load balancers (no database round trip)."""
        return {
            "status": "healthy",
            "version": settings.VERSION,
        }

    # Register API routers
    app.include_router(jobs.router, prefix=settings.API_V1_PREFIX)
    app.include_router(invoices.job_invoices_router, prefix=settings.API_V1_PREFIX)
    app.include_router(invoices.router, prefix=settings.API_V1_PREFIX)
    app.include_router(change_orders.job_change_orders_router, prefix=settings.API_V1_PREFIX)
    app.include_router(change_orders.router, prefix=settings.API_V1_PREFIX)

    return app


configure_logging()

# WHY: Module-level instance for `uvicorn jobbilling.main:app`
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jobbilling.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
