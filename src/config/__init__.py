"""Configuration module for the report pipeline."""

from .database import DatabaseSettings, get_database_settings
from .settings import (
    AnalysisSettings,
    AuthSettings,
    ReportSettings,
    Settings,
    get_settings,
)

__all__ = [
    "AnalysisSettings",
    "AuthSettings",
    "DatabaseSettings",
    "ReportSettings",
    "Settings",
    "get_database_settings",
    "get_settings",
]
