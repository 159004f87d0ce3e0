"""SQLAlchemy implementation of ReportStore.

Each method runs in its own short transaction. Quota writes are single
conditional UPDATE statements so concurrent requests for the same user
cannot lose an increment.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import (
    ReportGenerationRecord,
    SavedScenarioRecord,
    ScenarioRecord,
    UserProfileRecord,
    to_naive_utc,
    utcnow,
)
from reports.models import LegacyScenario, Scenario
from reports.persistence import ReportGeneration
from subscription.tier_control import SubscriptionTier, UserEntitlement

logger = logging.getLogger(__name__)


def _month_bounds(moment: datetime):
    start = datetime(moment.year, moment.month, 1)
    if moment.month == 12:
        return start, datetime(moment.year + 1, 1, 1)
    return start, datetime(moment.year, moment.month + 1, 1)


class SqlReportStore:
    """ReportStore backed by the user_profiles / scenarios tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Entitlement
    # -------------------------------------------------------------------------

    async def get_entitlement(self, user_id: str) -> Optional[UserEntitlement]:
        async with self._session_factory() as session:
            profile = await session.get(UserProfileRecord, user_id)

        if profile is None:
            return None

        return UserEntitlement(
            user_id=profile.id,
            tier=SubscriptionTier.from_status(profile.subscription_status),
            reports_generated_this_month=profile.reports_generated_this_month or 0,
            last_report_generated_at=profile.last_report_generated_at,
            has_generated_preview_ever=bool(profile.has_generated_preview),
            email=profile.email,
        )

    async def reset_monthly_counter(self, user_id: str) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(UserProfileRecord)
                .where(UserProfileRecord.id == user_id)
                .values(reports_generated_this_month=0, updated_at=utcnow())
            )

    async def mark_preview_generated(self, user_id: str, at: datetime) -> None:
        at = to_naive_utc(at)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(UserProfileRecord)
                .where(UserProfileRecord.id == user_id)
                .values(has_generated_preview=True, last_report_generated_at=at, updated_at=utcnow())
            )
            if result.rowcount == 0:
                session.add(UserProfileRecord(
                    id=user_id,
                    has_generated_preview=True,
                    last_report_generated_at=at,
                ))

    async def increment_monthly_reports(self, user_id: str, at: datetime) -> int:
        at = to_naive_utc(at)
        month_start, next_month = _month_bounds(at)
        last = UserProfileRecord.last_report_generated_at

        statement = (
            update(UserProfileRecord)
            .where(UserProfileRecord.id == user_id)
            .values(
                reports_generated_this_month=case(
                    (
                        and_(last.is_not(None), last >= month_start, last < next_month),
                        UserProfileRecord.reports_generated_this_month + 1,
                    ),
                    else_=1,
                ),
                last_report_generated_at=at,
                updated_at=utcnow(),
            )
            .returning(UserProfileRecord.reports_generated_this_month)
        )

        async with self._session_factory() as session, session.begin():
            count = (await session.execute(statement)).scalar_one_or_none()
            if count is not None:
                return count

        # No profile yet: create one, unless a concurrent request just did
        try:
            async with self._session_factory() as session, session.begin():
                session.add(UserProfileRecord(
                    id=user_id,
                    reports_generated_this_month=1,
                    last_report_generated_at=at,
                ))
            return 1
        except IntegrityError:
            logger.debug(f"Profile for {user_id} created concurrently, retrying increment")
            async with self._session_factory() as session, session.begin():
                return (await session.execute(statement)).scalar_one()

    # -------------------------------------------------------------------------
    # Scenarios
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_scenario(record: ScenarioRecord) -> Scenario:
        return Scenario(
            id=record.id,
            user_id=record.user_id,
            scenario_type=record.scenario_type,
            is_primary=record.is_primary,
            name=record.name,
            calculator_type=record.calculator_type,
            data=record.data or {},
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    async def get_primary_scenario(self, user_id: str) -> Optional[Scenario]:
        statement = (
            select(ScenarioRecord)
            .where(ScenarioRecord.user_id == user_id, ScenarioRecord.is_primary.is_(True))
            .order_by(ScenarioRecord.updated_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            record = (await session.execute(statement)).scalar_one_or_none()
        return self._to_scenario(record) if record is not None else None

    async def list_comparison_scenarios(self, user_id: str) -> List[Scenario]:
        statement = (
            select(ScenarioRecord)
            .where(ScenarioRecord.user_id == user_id, ScenarioRecord.scenario_type == "comparison")
            .order_by(ScenarioRecord.created_at)
        )
        async with self._session_factory() as session:
            records = (await session.execute(statement)).scalars().all()
        return [self._to_scenario(r) for r in records]

    async def get_latest_legacy_scenario(self, user_id: str) -> Optional[LegacyScenario]:
        statement = (
            select(SavedScenarioRecord)
            .where(SavedScenarioRecord.user_id == user_id)
            .order_by(SavedScenarioRecord.created_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            record = (await session.execute(statement)).scalar_one_or_none()

        if record is None:
            return None
        return LegacyScenario(
            id=record.id,
            user_id=record.user_id,
            name=record.name,
            calculation_data=record.calculation_data,
            calculation_results=record.calculation_results,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def record_generation(self, generation: ReportGeneration) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(ReportGenerationRecord(
                id=generation.id,
                user_id=generation.user_id,
                report_type=generation.report_type,
                scenarios_included=list(generation.scenarios_included),
                is_preview=generation.is_preview,
                created_at=to_naive_utc(generation.created_at),
            ))
