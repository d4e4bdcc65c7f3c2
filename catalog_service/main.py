"""Catalog service main application module.

This module builds the FastAPI application and configures logging,
middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from catalog_service.api.bulk import router as bulk_router
from catalog_service.api.categories import router as categories_router
from catalog_service.api.deps import error_to_http
from catalog_service.api.health import router as health_router
from catalog_service.api.history import router as history_router
from catalog_service.api.middleware import setup_middleware
from catalog_service.api.products import router as products_router
from catalog_service.api.stats import router as stats_router
from catalog_service.catalog.service import CatalogService
from catalog_service.domain.exceptions import CatalogError, ErrorCode
from catalog_service.infrastructure.config import Settings, settings
from catalog_service.infrastructure.database import create_engine_from_settings, init_models
from catalog_service.infrastructure.logging import configure_logging

logger = structlog.get_logger()


def _error_response(request: Request, status_code: int, error_code: str, message: str, details) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": getattr(request.state, "request_id", None),
        },
    )


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        app_settings: Settings to use instead of the environment defaults.

    Returns:
        Configured application; the database is opened on startup.
    """
    config = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup and shutdown events.

        Args:
            app: The FastAPI application instance.

        Yields:
            None after startup, cleanup happens after yield.
        """
        configure_logging(config.log_level, json=config.log_json)
        logger.info(
            "Starting catalog service",
            version=config.api_version,
            debug=config.debug,
        )

        engine = create_engine_from_settings(config)
        await init_models(engine)
        app.state.catalog = CatalogService.from_settings(engine, config)

        yield

        logger.info("Shutting down catalog service")
        await engine.dispose()

    app = FastAPI(
        title="Catalog Service",
        description="Product catalog administration backend",
        version=config.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(categories_router)
    app.include_router(products_router)
    app.include_router(history_router)
    app.include_router(bulk_router)
    app.include_router(stats_router)

    # ========================================================================
    # Custom Exception Handlers
    # ========================================================================

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent format."""
        detail = exc.detail
        if isinstance(detail, dict):
            error_code = detail.get("error_code", "ERROR")
            message = detail.get("message", str(detail))
            details = detail.get("details", {})
        else:
            error_code = "ERROR"
            message = str(detail)
            details = {}
        return _error_response(request, exc.status_code, error_code, message, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed request bodies and parameters as VALIDATION errors."""
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        return _error_response(
            request, 422, ErrorCode.VALIDATION.value, "Invalid request", {"errors": errors}
        )

    @app.exception_handler(CatalogError)
    async def catalog_exception_handler(request: Request, exc: CatalogError):
        """Handle catalog errors that escaped a result (storage failures)."""
        logger.error(
            "Catalog error in handler",
            path=request.url.path,
            method=request.method,
            error_code=exc.code.value,
            error=exc.message,
        )
        http_error = error_to_http(exc)
        return _error_response(
            request, http_error.status_code, exc.code.value, exc.message, exc.details
        )

    return app


app = create_app()
