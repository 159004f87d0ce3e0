"""
Report service.

Ties the pipeline together for one request: entitlement check, scenario
resolution, user-data collection, stage orchestration and usage recording.
Everything that can reject a request happens in ``prepare`` so the web
layer can answer with a plain error before any streaming starts.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Optional

from reports.errors import EntitlementDenied
from reports.models import Chunk, ChunkType, ReportRequest, ReportResult, ScenarioBundle
from reports.orchestrator import ReportOrchestrator
from reports.persistence import ReportStore
from reports.scenarios import ScenarioResolver
from reports.usage import UsageRecorder
from reports.user_data import collect_user_data
from services.identity import AuthenticatedUser
from subscription.tier_control import Allow, Deny, EntitlementGate, UserEntitlement

logger = logging.getLogger(__name__)

FREE_REPORT_USED_REASON = "You have used your free report. Upgrade to premium for unlimited reports."
NEEDS_CALCULATION_REASON = "No scenario data found. Complete the calculator first."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PreparedReport:
    """An authorized request with its inputs resolved."""
    user: AuthenticatedUser
    entitlement: UserEntitlement
    decision: Allow
    bundle: ScenarioBundle
    user_data: Dict[str, Any]
    user_name: str

    @property
    def is_premium(self) -> bool:
        return self.decision.tier.is_paid


class ReportService:

    def __init__(
        self,
        store: ReportStore,
        orchestrator: ReportOrchestrator,
        recorder: UsageRecorder,
        gate: Optional[EntitlementGate] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.recorder = recorder
        self.gate = gate or EntitlementGate()
        self.resolver = ScenarioResolver(store)
        self._clock = clock

    async def load_entitlement(self, user: AuthenticatedUser) -> UserEntitlement:
        """Stored entitlement, or the default free one for a user with no profile."""
        entitlement = await self.store.get_entitlement(user.id)
        if entitlement is None:
            return UserEntitlement.default(user.id, email=user.email)
        if not entitlement.email:
            entitlement.email = user.email
        return entitlement

    async def prepare(self, user: AuthenticatedUser, request: Optional[ReportRequest] = None) -> PreparedReport:
        """
        Authorize and resolve a report request.

        Raises:
            EntitlementDenied: 403 for a used free preview, 429 over the monthly limit.
            ScenarioNotFound: no scenario in the body or in storage.
        """
        entitlement = await self.load_entitlement(user)
        decision = self.gate.authorize(entitlement, self._clock())

        if isinstance(decision, Deny):
            logger.info(
                "Report request denied",
                extra={'extra_data': {
                    'user_id': user.id,
                    'tier': entitlement.tier.value,
                    'status': decision.http_status,
                }}
            )
            raise EntitlementDenied.from_decision(decision)

        if decision.reset_counter:
            await self.store.reset_monthly_counter(user.id)

        bundle = await self.resolver.resolve(user.id, request)
        user_data = collect_user_data(bundle.primary, bundle.comparisons, email=entitlement.email)

        return PreparedReport(
            user=user,
            entitlement=entitlement,
            decision=decision,
            bundle=bundle,
            user_data=user_data,
            user_name=user_data["profile"]["name"],
        )

    def _record_usage(self, prepared: PreparedReport) -> None:
        self.recorder.schedule(
            prepared.user.id,
            prepared.decision.tier,
            prepared.bundle.scenario_ids(),
            report_type="comprehensive" if prepared.is_premium else "interactive",
        )

    async def generate_preview(self, prepared: PreparedReport) -> ReportResult:
        """Free preview, returned whole."""
        result = await self.orchestrator.generate_preview(
            prepared.user_data,
            prepared.user_name,
            user_id=prepared.user.id,
            scenario_count=1 + len(prepared.bundle.comparisons),
        )
        self._record_usage(prepared)
        return result

    async def stream(self, prepared: PreparedReport) -> AsyncIterator[Chunk]:
        """Premium report chunks; usage is recorded once complete is produced."""
        chunks = self.orchestrator.stream(
            prepared.user_data,
            prepared.user_name,
            user_id=prepared.user.id,
            scenario_count=1 + len(prepared.bundle.comparisons),
        )
        try:
            async for chunk in chunks:
                if chunk.type == ChunkType.COMPLETE:
                    # Recorded before the write so a disconnect after complete still counts
                    self._record_usage(prepared)
                yield chunk
        finally:
            await chunks.aclose()

    async def check_eligibility(self, user: AuthenticatedUser) -> Dict[str, Any]:
        """Wire body for GET /reports/eligibility."""
        entitlement = await self.load_entitlement(user)
        summary = self.gate.check_eligibility(entitlement, self._clock())

        body: Dict[str, Any] = {
            "eligible": summary.eligible,
            "tier": summary.tier.value,
            "isPremium": summary.tier.is_paid,
            "reportsUsed": summary.reports_used,
            "limit": summary.limit,
            "remaining": summary.remaining,
        }
        if not summary.eligible:
            body["reason"] = summary.reason if summary.tier.is_paid else FREE_REPORT_USED_REASON
            body["upgradeRequired"] = summary.upgrade_required
            return body

        primary = await self.store.get_primary_scenario(user.id)
        if primary is None and await self.store.get_latest_legacy_scenario(user.id) is None:
            body.update(eligible=False, reason=NEEDS_CALCULATION_REASON, needsCalculation=True)
            return body

        comparisons = await self.store.list_comparison_scenarios(user.id) if primary is not None else []
        body["hasComparisons"] = bool(comparisons)
        body["comparisonCount"] = len(comparisons)
        return body
