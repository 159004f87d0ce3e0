"""
FastAPI application for the TrueWage report service.

Routes:
- POST /reports             : generate a report (JSON preview or NDJSON stream)
- GET  /reports/eligibility : report eligibility for the caller
- GET  /health              : liveness check

Run with:
    uvicorn web.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings, get_settings, validate_startup_settings
from reports.errors import ReportError
from web.dependencies import ReportDependencies, build_dependencies
from web.middleware import CorrelationIdMiddleware
from web.report_routes import router as report_router

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(ReportError)
    async def report_error_handler(request: Request, exc: ReportError):
        if exc.status_code >= 500:
            logger.error(f"ReportError: {exc.code} - {exc.message}")
        else:
            logger.info(f"ReportError: {exc.code} - {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors with user-friendly messages."""
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            errors.append(f"{field}: {error['msg']}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": errors})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Catch-all handler for unexpected exceptions."""
        logger.error(f"Unexpected error: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    dependencies: Optional[ReportDependencies] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings; loaded from the environment if None.
        dependencies: Pre-built collaborators (tests). When None the
            lifespan builds the production wiring from settings.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.dependencies is None:
            validate_startup_settings(settings)
            app.state.dependencies = await build_dependencies(settings)
        logger.info(f"{settings.name} {settings.version} started ({settings.environment})")
        try:
            yield
        finally:
            await app.state.dependencies.aclose()
            logger.info(f"{settings.name} stopped")

    app = FastAPI(
        title=settings.name,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.dependencies = dependencies

    # Last added = first executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)
    app.include_router(report_router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": settings.version}

    return app
