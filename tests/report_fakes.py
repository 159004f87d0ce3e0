"""Test doubles, sample payloads and scenario builders for the report tests."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.ai_providers import ModelTier
from reports import prompts
from reports.models import LegacyScenario, Scenario, StageId
from reports.stages import STAGES, Stage
from services.identity import AuthenticatedUser, IdentityVerificationError
from subscription.tier_control import SubscriptionTier, UserEntitlement


# =============================================================================
# SAMPLE STAGE PAYLOADS
# =============================================================================

PROFILE_PAYLOAD = {
    "uncomfortableTruth": "Your true hourly wage is £18.40, not £25.64.",
    "incomeReality": "You keep 71% of what you earn.",
    "overallRating": "Good",
    "oneLineSummary": "Solid income, leaking hours.",
}

OPTIMIZATION_PAYLOAD = {
    "quickWins": [{"action": "Cancel the unused gym membership", "annualSavings": 480, "effortLevel": "Low"}],
    "strategicMoves": [{"action": "Negotiate two WFH days", "annualImpact": 2100}],
    "contrarianInsights": [],
    "crossSystemOpportunities": [],
    "topRecommendation": {"action": "Negotiate two WFH days", "yearsSaved": 2},
}

RISK_PAYLOAD = {
    "highPriorityRisks": [{"risk": "You could lose your job", "likelihood": "Medium"}],
    "mediumPriorityRisks": [],
    "overallRiskRating": "Medium",
}

ROADMAP_PAYLOAD = {
    "roadmap": {
        "month1to3": {"focus": "Build the buffer", "actions": [{"action": "Open an easy-access ISA"}], "metrics": {}},
    },
    "milestones": [{"milestone": "First £10k", "netWorthTarget": 10000}],
    "criticalPath": ["Buffer", "Pension match"],
    "personalizedMotivation": "At 32 you have time on your side.",
}

STAGE_PAYLOADS = {
    StageId.PROFILE_SYNTHESIS: PROFILE_PAYLOAD,
    StageId.OPTIMIZATION_ANALYSIS: OPTIMIZATION_PAYLOAD,
    StageId.RISK_ASSESSMENT: RISK_PAYLOAD,
    StageId.ROADMAP: ROADMAP_PAYLOAD,
}

# The fake backend tells stages apart by their system prompt
SYSTEM_PROMPT_STAGES = {
    prompts.PROFILE_SYNTHESIS_SYSTEM: StageId.PROFILE_SYNTHESIS,
    prompts.OPTIMIZATION_ANALYSIS_SYSTEM: StageId.OPTIMIZATION_ANALYSIS,
    prompts.RISK_ASSESSMENT_SYSTEM: StageId.RISK_ASSESSMENT,
    prompts.ROADMAP_SYSTEM: StageId.ROADMAP,
}

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# FAKES
# =============================================================================

class FakeAnalysisClient:
    """
    Analysis backend double keyed by stage.

    Each stage answers with its entry in `responses`: a dict is returned,
    an exception is raised. `delays` holds seconds to sleep first.
    """

    def __init__(
        self,
        responses: Optional[Dict[StageId, Any]] = None,
        delays: Optional[Dict[StageId, float]] = None,
    ):
        self.responses = dict(STAGE_PAYLOADS)
        self.responses.update(responses or {})
        self.delays = delays or {}
        self.calls: List[Dict[str, Any]] = []
        self.started: List[StageId] = []
        self.finished: List[StageId] = []

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> Dict[str, Any]:
        stage = SYSTEM_PROMPT_STAGES[system_prompt]
        self.calls.append({"stage": stage, "prompt": prompt, "tier": tier})
        self.started.append(stage)

        delay = self.delays.get(stage, 0)
        if delay:
            await asyncio.sleep(delay)

        response = self.responses[stage]
        self.finished.append(stage)
        if isinstance(response, BaseException):
            raise response
        return response

    def stages_called(self) -> List[StageId]:
        return [call["stage"] for call in self.calls]


class FakeIdentityVerifier:
    """Maps bearer tokens to users; anything else is rejected."""

    def __init__(self, users: Optional[Dict[str, AuthenticatedUser]] = None):
        self.users = users or {}

    async def verify(self, token: str) -> AuthenticatedUser:
        if token not in self.users:
            raise IdentityVerificationError("unknown token")
        return self.users[token]


def broken_stage(stage_id: StageId) -> Stage:
    """A stage whose prompt and fallback both raise, so no fallback can cover it."""
    def broken(ctx):
        raise RuntimeError(f"{stage_id.value} wiring broken")

    original = STAGES[stage_id]
    return Stage(
        id=stage_id,
        model_tier=original.model_tier,
        build_prompt=broken,
        fallback=broken,
        depends_on=original.depends_on,
    )


# =============================================================================
# BUILDERS
# =============================================================================

def make_primary(user_id: str = "user-1", scenario_id: str = "scn-primary", **inputs) -> Scenario:
    scenario_inputs = {"salary": 50000, "currentAge": 32, "commuteCost": 150, "contractHours": 37.5}
    scenario_inputs.update(inputs)
    return Scenario(
        id=scenario_id,
        user_id=user_id,
        scenario_type="primary",
        is_primary=True,
        name="My Current Situation",
        calculator_type="main",
        data={
            "inputs": scenario_inputs,
            "results": {
                "taxBreakdown": {"netSalary": 38000, "effectiveTaxRate": 24.0},
                "trueHourlyRate": 18.4,
                "assumedHourlyRate": 25.64,
                "hiddenCosts": 3600,
                "timeBreakdown": {"weeklyTotalHours": 45},
            },
        },
    )


def make_comparison(
    calculator_type: str,
    user_id: str = "user-1",
    scenario_id: Optional[str] = None,
    inputs: Optional[Dict[str, Any]] = None,
    results: Optional[Dict[str, Any]] = None,
) -> Scenario:
    return Scenario(
        id=scenario_id or f"scn-{calculator_type}",
        user_id=user_id,
        scenario_type="comparison",
        is_primary=False,
        calculator_type=calculator_type,
        data={"inputs": inputs or {}, "results": results or {}},
    )


def make_legacy(user_id: str = "user-1", scenario_id: str = "legacy-1", created_at: str = "2024-06-01T10:00:00") -> LegacyScenario:
    return LegacyScenario(
        id=scenario_id,
        user_id=user_id,
        name=None,
        calculation_data={"salary": 42000},
        calculation_results={"trueHourlyRate": 15.2},
        created_at=created_at,
    )


def premium_entitlement(user_id: str = "user-1", used: int = 0, last: Optional[datetime] = NOW) -> UserEntitlement:
    return UserEntitlement(
        user_id=user_id,
        tier=SubscriptionTier.PREMIUM,
        reports_generated_this_month=used,
        last_report_generated_at=last,
        email="alex@example.com",
    )

