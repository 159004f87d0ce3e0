"""
Database layer for the report pipeline.

This module provides:
- SQLAlchemy ORM models for profiles, scenarios and the report audit log
- Async engine and session factory construction
- SqlReportStore, the production ReportStore
"""

from .models import (
    Base,
    ReportGenerationRecord,
    SavedScenarioRecord,
    ScenarioRecord,
    UserProfileRecord,
)
from .async_engine import (
    check_connection,
    create_engine,
    get_session_factory,
    init_schema,
)
from .report_store import SqlReportStore

__all__ = [
    'Base',
    'ReportGenerationRecord',
    'SavedScenarioRecord',
    'ScenarioRecord',
    'UserProfileRecord',
    'check_connection',
    'create_engine',
    'get_session_factory',
    'init_schema',
    'SqlReportStore',
]
