"""
FastAPI dependency injection for the report endpoints.

ReportDependencies holds every collaborator a request needs. It is built
once, either by the application lifespan from settings or handed to
``create_app`` by tests, and lives on ``app.state``.

Usage in endpoints:
    @router.post("")
    async def generate(
        user: AuthenticatedUser = Depends(get_current_user),
        service: ReportService = Depends(get_report_service),
    ):
        ...
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncEngine

from config.database import DatabaseSettings, get_database_settings
from config.settings import Settings
from database import SqlReportStore, create_engine, get_session_factory, init_schema
from reports.errors import AuthenticationError
from reports.orchestrator import ReportOrchestrator
from reports.persistence import ReportStore
from reports.service import ReportService
from reports.usage import UsageRecorder
from services.ai.analysis_client import AnalysisClient, OpenRouterAnalysisClient
from services.identity import AuthenticatedUser, HttpIdentityVerifier, IdentityVerificationError, IdentityVerifier
from services.logging_config import user_id_var
from subscription.tier_control import EntitlementGate

logger = logging.getLogger(__name__)


# =============================================================================
# HTTP BEARER SECURITY
# =============================================================================

security = HTTPBearer(auto_error=False)


# =============================================================================
# DEPENDENCY CONTAINER
# =============================================================================

@dataclass
class ReportDependencies:
    settings: Settings
    store: ReportStore
    analysis: AnalysisClient
    identity: IdentityVerifier
    recorder: UsageRecorder
    service: ReportService
    engine: Optional[AsyncEngine] = field(default=None, repr=False)

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: ReportStore,
        analysis: AnalysisClient,
        identity: IdentityVerifier,
        engine: Optional[AsyncEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ReportDependencies":
        """Wire the report service around the given collaborators."""
        report_settings = settings.reports
        clock_kwargs: Dict[str, Any] = {"clock": clock} if clock is not None else {}

        recorder = UsageRecorder(store, **clock_kwargs)
        service = ReportService(
            store=store,
            orchestrator=ReportOrchestrator.from_settings(analysis, settings),
            recorder=recorder,
            gate=EntitlementGate(
                premium_monthly_limit=report_settings.premium_monthly_limit,
                upgrade_url=report_settings.upgrade_url,
            ),
            **clock_kwargs,
        )
        return cls(
            settings=settings,
            store=store,
            analysis=analysis,
            identity=identity,
            recorder=recorder,
            service=service,
            engine=engine,
        )

    async def aclose(self) -> None:
        """Finish pending usage writes, then release clients and the engine."""
        await self.recorder.drain()
        for resource in (self.analysis, self.identity):
            close = getattr(resource, "aclose", None)
            if close is not None:
                await close()
        if self.engine is not None:
            await self.engine.dispose()


async def build_dependencies(
    settings: Settings,
    db_settings: Optional[DatabaseSettings] = None,
) -> ReportDependencies:
    """Production wiring: SQL store, OpenRouter backend, HTTP identity check."""
    db_settings = db_settings or get_database_settings()
    engine = create_engine(db_settings)
    if db_settings.is_sqlite:
        await init_schema(engine)

    return ReportDependencies.build(
        settings=settings,
        store=SqlReportStore(get_session_factory(engine)),
        analysis=OpenRouterAnalysisClient.from_settings(settings.analysis),
        identity=HttpIdentityVerifier(settings.auth),
        engine=engine,
    )


# =============================================================================
# CORE DEPENDENCIES
# =============================================================================

def get_dependencies(request: Request) -> ReportDependencies:
    return request.app.state.dependencies


def get_report_service(deps: ReportDependencies = Depends(get_dependencies)) -> ReportService:
    return deps.service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    deps: ReportDependencies = Depends(get_dependencies),
) -> AuthenticatedUser:
    """
    Resolve the bearer token to a user.

    Raises:
        AuthenticationError: missing token or verification failed (401).
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    try:
        user = await deps.identity.verify(credentials.credentials)
    except IdentityVerificationError as e:
        logger.info(f"Token verification failed: {e}")
        raise AuthenticationError() from e

    user_id_var.set(user.id)
    return user
