"""
SQLAlchemy ORM models for the report pipeline.

Tables:
- user_profiles: subscription state and report quota per user
- scenarios: saved calculator scenarios (primary and comparisons)
- saved_scenarios: the older single-calculator scenario table
- report_generations: audit log of generated reports

Timestamps are stored as naive UTC.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator


# Cross-database compatible JSON type
# Uses JSONB on PostgreSQL, JSON on SQLite/others
class JSONB(TypeDecorator):
    """A portable JSONB type that works with both PostgreSQL and SQLite."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_JSONB())
        return dialect.type_descriptor(JSON())


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid4())


class UserProfileRecord(Base):
    """Subscription state for one user; id is the identity provider's user id."""
    __tablename__ = "user_profiles"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=True)
    subscription_status = Column(String(20), nullable=False, default="free")

    reports_generated_this_month = Column(Integer, nullable=False, default=0)
    last_report_generated_at = Column(DateTime, nullable=True)
    has_generated_preview = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<UserProfile {self.id} {self.subscription_status}>"


class ScenarioRecord(Base):
    __tablename__ = "scenarios"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    scenario_type = Column(String(20), nullable=False, default="primary")
    is_primary = Column(Boolean, nullable=False, default=False)
    name = Column(String(255), nullable=True)
    calculator_type = Column(String(40), nullable=False, default="main")
    data = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_scenarios_user_primary", "user_id", "is_primary"),
        Index("ix_scenarios_user_type", "user_id", "scenario_type"),
    )


class SavedScenarioRecord(Base):
    """Legacy saved scenario."""
    __tablename__ = "saved_scenarios"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    calculation_data = Column(JSONB, nullable=True)
    calculation_results = Column(JSONB, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ReportGenerationRecord(Base):
    __tablename__ = "report_generations"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    report_type = Column(String(20), nullable=False)
    scenarios_included = Column(JSONB, nullable=False, default=list)
    is_preview = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
