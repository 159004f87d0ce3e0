"""
Analysis stage graph.

Four fixed stages. The first three depend only on the user data; the
roadmap also receives whatever the optimization and risk stages produced
(real output or fallback).
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple, Type

from config.ai_providers import ModelTier
from reports import fallbacks, prompts
from reports.models import STAGE_SCHEMAS, StageId, StagePayload


@dataclass
class StageContext:
    """Inputs available to a stage when it runs."""
    user_data: Dict[str, Any]
    upstream: Dict[StageId, StagePayload] = field(default_factory=dict)

    def upstream_wire(self, stage_id: StageId) -> Dict[str, Any]:
        payload = self.upstream.get(stage_id)
        return payload.to_wire() if payload is not None else {}


@dataclass(frozen=True)
class Stage:
    id: StageId
    model_tier: ModelTier
    build_prompt: Callable[[StageContext], Tuple[str, str]]
    fallback: Callable[[StageContext], StagePayload]
    depends_on: Tuple[StageId, ...] = ()

    @property
    def schema(self) -> Type[StagePayload]:
        return STAGE_SCHEMAS[self.id]


@dataclass
class StageOutcome:
    """Result of running one stage: a payload, plus whether it is a fallback."""
    stage_id: StageId
    payload: StagePayload
    used_fallback: bool = False
    error: Optional[str] = None


def _roadmap_prompt(ctx: StageContext) -> Tuple[str, str]:
    return prompts.roadmap_prompt(
        ctx.user_data,
        ctx.upstream_wire(StageId.OPTIMIZATION_ANALYSIS),
        ctx.upstream_wire(StageId.RISK_ASSESSMENT),
    )


PROFILE_SYNTHESIS = Stage(
    id=StageId.PROFILE_SYNTHESIS,
    model_tier=ModelTier.FAST,
    build_prompt=lambda ctx: prompts.profile_synthesis_prompt(ctx.user_data),
    fallback=lambda ctx: fallbacks.profile_synthesis_fallback(ctx.user_data),
)

OPTIMIZATION_ANALYSIS = Stage(
    id=StageId.OPTIMIZATION_ANALYSIS,
    model_tier=ModelTier.DEEP,
    build_prompt=lambda ctx: prompts.optimization_analysis_prompt(ctx.user_data),
    fallback=lambda ctx: fallbacks.optimization_analysis_fallback(ctx.user_data),
)

RISK_ASSESSMENT = Stage(
    id=StageId.RISK_ASSESSMENT,
    model_tier=ModelTier.DEEP,
    build_prompt=lambda ctx: prompts.risk_assessment_prompt(ctx.user_data),
    fallback=lambda ctx: fallbacks.risk_assessment_fallback(ctx.user_data),
)

ROADMAP = Stage(
    id=StageId.ROADMAP,
    model_tier=ModelTier.DEEP,
    build_prompt=_roadmap_prompt,
    fallback=lambda ctx: fallbacks.roadmap_fallback(ctx.user_data),
    depends_on=(StageId.OPTIMIZATION_ANALYSIS, StageId.RISK_ASSESSMENT),
)

# Declaration order is emission order
STAGES: Dict[StageId, Stage] = {
    stage.id: stage
    for stage in (PROFILE_SYNTHESIS, OPTIMIZATION_ANALYSIS, RISK_ASSESSMENT, ROADMAP)
}
