"""Pytest configuration and fixtures for the report pipeline tests."""

import os
import sys
from pathlib import Path

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Test helpers live beside this file
tests_path = str(Path(__file__).parent)
if tests_path not in sys.path:
    sys.path.insert(0, tests_path)

from config.settings import Settings
from reports.persistence import InMemoryReportStore
from services.identity import AuthenticatedUser
from web.app import create_app
from web.dependencies import ReportDependencies

from report_fakes import NOW, FakeAnalysisClient, FakeIdentityVerifier


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings():
    return Settings(environment="test")


@pytest.fixture
def store():
    return InMemoryReportStore()


@pytest.fixture
def analysis():
    return FakeAnalysisClient()


@pytest.fixture
def identity():
    return FakeIdentityVerifier({
        "free-token": AuthenticatedUser(id="free-user", email="sam@example.com"),
        "premium-token": AuthenticatedUser(id="premium-user", email="alex@example.com"),
    })


@pytest.fixture
def dependencies(settings, store, analysis, identity):
    return ReportDependencies.build(
        settings=settings,
        store=store,
        analysis=analysis,
        identity=identity,
        clock=lambda: NOW,
    )


@pytest.fixture
def app(settings, dependencies):
    return create_app(settings=settings, dependencies=dependencies)
