"""
Report persistence interface.

ReportStore is what the report pipeline needs from storage: the user's
entitlement, their saved scenarios, quota writes and the generation audit
log. SqlReportStore (database/report_store.py) is the production
implementation; InMemoryReportStore backs tests and local runs.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from reports.models import LegacyScenario, Scenario
from subscription.tier_control import UserEntitlement, same_month


@dataclass
class ReportGeneration:
    """Audit record of one generated report."""
    user_id: str
    report_type: str
    scenarios_included: List[str] = field(default_factory=list)
    is_preview: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ReportStore(Protocol):

    async def get_entitlement(self, user_id: str) -> Optional[UserEntitlement]:
        """Stored entitlement, or None when the user has no profile."""
        ...

    async def reset_monthly_counter(self, user_id: str) -> None:
        ...

    async def mark_preview_generated(self, user_id: str, at: datetime) -> None:
        """Set the lifetime preview flag; creates the profile if missing."""
        ...

    async def increment_monthly_reports(self, user_id: str, at: datetime) -> int:
        """
        Atomically count one report at `at` and return the new counter.

        A counter from an earlier month restarts at 1.
        """
        ...

    async def get_primary_scenario(self, user_id: str) -> Optional[Scenario]:
        ...

    async def list_comparison_scenarios(self, user_id: str) -> List[Scenario]:
        ...

    async def get_latest_legacy_scenario(self, user_id: str) -> Optional[LegacyScenario]:
        ...

    async def record_generation(self, generation: ReportGeneration) -> None:
        ...


class InMemoryReportStore:
    """
    Dict-backed ReportStore.

    Every method completes without awaiting, so each write is atomic with
    respect to other tasks on the same event loop.
    """

    def __init__(self):
        self.entitlements: Dict[str, UserEntitlement] = {}
        self.scenarios: Dict[str, List[Scenario]] = {}
        self.legacy_scenarios: Dict[str, List[LegacyScenario]] = {}
        self.generations: List[ReportGeneration] = []

    # Seeding helpers

    def put_entitlement(self, entitlement: UserEntitlement) -> None:
        self.entitlements[entitlement.user_id] = entitlement

    def add_scenario(self, scenario: Scenario) -> None:
        self.scenarios.setdefault(scenario.user_id or "", []).append(scenario)

    def add_legacy_scenario(self, scenario: LegacyScenario) -> None:
        self.legacy_scenarios.setdefault(scenario.user_id or "", []).append(scenario)

    # ReportStore

    async def get_entitlement(self, user_id: str) -> Optional[UserEntitlement]:
        entitlement = self.entitlements.get(user_id)
        return replace(entitlement) if entitlement is not None else None

    def _profile(self, user_id: str) -> UserEntitlement:
        if user_id not in self.entitlements:
            self.entitlements[user_id] = UserEntitlement.default(user_id)
        return self.entitlements[user_id]

    async def reset_monthly_counter(self, user_id: str) -> None:
        if user_id in self.entitlements:
            self.entitlements[user_id].reports_generated_this_month = 0

    async def mark_preview_generated(self, user_id: str, at: datetime) -> None:
        profile = self._profile(user_id)
        profile.has_generated_preview_ever = True
        profile.last_report_generated_at = at

    async def increment_monthly_reports(self, user_id: str, at: datetime) -> int:
        profile = self._profile(user_id)
        if same_month(profile.last_report_generated_at, at):
            profile.reports_generated_this_month += 1
        else:
            profile.reports_generated_this_month = 1
        profile.last_report_generated_at = at
        return profile.reports_generated_this_month

    async def get_primary_scenario(self, user_id: str) -> Optional[Scenario]:
        for scenario in self.scenarios.get(user_id, []):
            if scenario.is_primary:
                return scenario
        return None

    async def list_comparison_scenarios(self, user_id: str) -> List[Scenario]:
        return [s for s in self.scenarios.get(user_id, []) if s.scenario_type == "comparison"]

    async def get_latest_legacy_scenario(self, user_id: str) -> Optional[LegacyScenario]:
        legacy = self.legacy_scenarios.get(user_id, [])
        if not legacy:
            return None
        return max(legacy, key=lambda s: s.created_at or "")

    async def record_generation(self, generation: ReportGeneration) -> None:
        self.generations.append(generation)
