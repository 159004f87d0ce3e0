"""
Report data models.

Wire shapes are camelCase JSON; Python attributes are snake_case. Every
model accepts either spelling on input and dumps camelCase with
``by_alias=True``.

Stage payloads are one schema per StageId. Analysis output is validated
against its stage schema where the backend call returns, so a malformed
answer fails that stage instead of leaking untyped data downstream.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StageId(str, Enum):
    """Analysis stages, in declaration order."""
    PROFILE_SYNTHESIS = "profileSynthesis"
    OPTIMIZATION_ANALYSIS = "optimizationAnalysis"
    RISK_ASSESSMENT = "riskAssessment"
    ROADMAP = "roadmap"


class ChunkType(str, Enum):
    COMPUTED = "computed"
    AI_STAGE = "ai_stage"
    COMPLETE = "complete"
    ERROR = "error"


# =============================================================================
# STAGE PAYLOADS
# =============================================================================

class StagePayload(CamelModel):
    """Base for analysis output; unknown keys from the model are kept."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> Dict[str, Any]:
        # Only what the backend (or fallback) actually supplied goes on the wire
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class ProfileSynthesis(StagePayload):
    uncomfortable_truth: str = ""
    income_reality: str = ""
    hidden_costs_bombshell: str = ""
    spending_patterns: str = ""
    time_tradeoffs: str = ""
    fire_progress: str = ""
    overall_rating: str = ""
    one_line_summary: str


class QuickWin(StagePayload):
    action: str


class StrategicMove(StagePayload):
    action: str


class ContrarianInsight(StagePayload):
    title: str


class CrossSystemOpportunity(StagePayload):
    insight: str


class TopRecommendation(StagePayload):
    action: str


class OptimizationAnalysis(StagePayload):
    quick_wins: List[QuickWin] = []
    strategic_moves: List[StrategicMove] = []
    contrarian_insights: List[ContrarianInsight] = []
    cross_system_opportunities: List[CrossSystemOpportunity] = []
    top_recommendation: Optional[TopRecommendation] = None


class Risk(StagePayload):
    risk: str


class RiskAssessment(StagePayload):
    high_priority_risks: List[Risk] = []
    medium_priority_risks: List[Risk] = []
    scenario_analysis: Optional[Dict[str, Any]] = None
    overall_risk_rating: str
    emergency_fund_status: Optional[Dict[str, Any]] = None


class RoadmapPhase(StagePayload):
    focus: str = ""
    actions: List[Any] = []
    metrics: Dict[str, Any] = {}


class Milestone(StagePayload):
    milestone: str


class Roadmap(StagePayload):
    roadmap: Dict[str, RoadmapPhase] = {}
    milestones: List[Milestone] = []
    fi_timeline: Optional[Dict[str, Any]] = None
    critical_path: List[Any] = []
    personalized_motivation: str = ""
    final_comparison: Optional[Dict[str, Any]] = None


STAGE_SCHEMAS: Dict[StageId, Type[StagePayload]] = {
    StageId.PROFILE_SYNTHESIS: ProfileSynthesis,
    StageId.OPTIMIZATION_ANALYSIS: OptimizationAnalysis,
    StageId.RISK_ASSESSMENT: RiskAssessment,
    StageId.ROADMAP: Roadmap,
}


# =============================================================================
# STREAM CHUNKS
# =============================================================================

class Chunk(BaseModel):
    """One unit of the premium report stream."""
    type: ChunkType
    stage: Optional[StageId] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[bool] = None
    message: Optional[str] = None

    @classmethod
    def computed(cls, data: Dict[str, Any]) -> "Chunk":
        return cls(type=ChunkType.COMPUTED, data=data)

    @classmethod
    def ai_stage(cls, stage: StageId, data: Dict[str, Any], error: bool = False) -> "Chunk":
        return cls(type=ChunkType.AI_STAGE, stage=stage, data=data, error=True if error else None)

    @classmethod
    def complete(cls) -> "Chunk":
        return cls(type=ChunkType.COMPLETE)

    @classmethod
    def failure(cls, message: str) -> "Chunk":
        return cls(type=ChunkType.ERROR, message=message)

    def to_wire(self) -> Dict[str, Any]:
        """Wire form: absent fields are omitted, nested data is left as-is."""
        wire: Dict[str, Any] = {"type": self.type.value}
        if self.stage is not None:
            wire["stage"] = self.stage.value
        if self.data is not None:
            wire["data"] = self.data
        if self.error is not None:
            wire["error"] = self.error
        if self.message is not None:
            wire["message"] = self.message
        return wire


# =============================================================================
# REPORT RESULT
# =============================================================================

class ReportResult(CamelModel):
    """The full report, as returned to free users or rebuilt from a stream."""
    user_data: Dict[str, Any]
    profile_synthesis: ProfileSynthesis
    optimization_analysis: OptimizationAnalysis
    risk_assessment: RiskAssessment
    roadmap: Roadmap
    generated_at: datetime
    user_name: str
    is_premium: bool

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# SCENARIOS
# =============================================================================

def _stringify(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class ScenarioData(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    inputs: Dict[str, Any] = {}
    results: Dict[str, Any] = {}
    timestamp: Optional[str] = None

    @field_validator("inputs", "results", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_to_str(cls, value: Any) -> Any:
        return _stringify(value)


class Scenario(CamelModel):
    """A saved calculator scenario. Unknown keys are preserved."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    user_id: Optional[str] = None
    scenario_type: str = "primary"
    is_primary: bool = False
    name: Optional[str] = None
    calculator_type: str = "main"
    data: ScenarioData = Field(default_factory=ScenarioData)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("id", "user_id", "created_at", "updated_at", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("data", mode="before")
    @classmethod
    def _none_data(cls, value: Any) -> Any:
        return {} if value is None else value


DEFAULT_PRIMARY_NAME = "My Current Situation"


class LegacyScenario(CamelModel):
    """The older single-calculator saved scenario shape."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None
    calculation_data: Optional[Dict[str, Any]] = None
    calculation_results: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("id", "user_id", "created_at", "updated_at", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> Any:
        return _stringify(value)

    def to_scenario(self) -> Scenario:
        return Scenario(
            id=self.id,
            user_id=self.user_id,
            scenario_type="primary",
            is_primary=True,
            name=self.name or DEFAULT_PRIMARY_NAME,
            calculator_type="main",
            data=ScenarioData(
                inputs=self.calculation_data or {},
                results=self.calculation_results or {},
                timestamp=self.created_at,
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class ScenarioBundle:
    """The scenarios one report is built from."""
    primary: Scenario
    comparisons: Tuple[Scenario, ...] = field(default_factory=tuple)

    def scenario_ids(self) -> List[str]:
        ids = [self.primary.id] + [c.id for c in self.comparisons]
        return [i for i in ids if i]


# =============================================================================
# REQUEST BODY
# =============================================================================

class ScenarioPayload(CamelModel):
    primary: Optional[Scenario] = None
    comparisons: List[Scenario] = []

    @field_validator("comparisons", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ReportRequest(CamelModel):
    """POST /reports body. Every field is optional."""
    scenario_data: Optional[ScenarioPayload] = None
    legacy_scenarios: List[LegacyScenario] = []

    @field_validator("legacy_scenarios", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value
