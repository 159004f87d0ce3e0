"""
AI Provider Configuration Module.

The report pipeline talks to a single OpenAI-compatible gateway (OpenRouter)
and routes each analysis stage to a model by tier:

- FAST: quick synthesis (profile stage)
- DEEP: multi-step reasoning (optimization, risk, roadmap stages)
- PREMIUM: configured but reserved

Usage:
    from config.ai_providers import ModelTier, build_provider_config

    config = build_provider_config(settings.analysis)
    model = config.model_for(ModelTier.DEEP)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from config.settings import AnalysisSettings

logger = logging.getLogger(__name__)


class ModelTier(str, Enum):
    """Model capability tiers used for stage routing."""
    FAST = "FAST"
    DEEP = "DEEP"
    PREMIUM = "PREMIUM"


@dataclass
class ProviderConfig:
    """Configuration for the analysis provider."""
    name: str
    api_key: Optional[str]
    base_url: Optional[str] = None
    models: Dict[ModelTier, str] = field(default_factory=dict)
    default_headers: Dict[str, str] = field(default_factory=dict)
    temperature: float = 0.7
    max_tokens: int = 8000
    timeout_seconds: float = 120.0
    is_available: bool = False

    def __post_init__(self):
        """Determine availability based on API key presence."""
        self.is_available = bool(self.api_key)

    def model_for(self, tier: ModelTier) -> str:
        """Resolve the model id for a tier, falling back to FAST."""
        return self.models.get(tier) or self.models[ModelTier.FAST]


def build_provider_config(settings: AnalysisSettings) -> ProviderConfig:
    """Build the OpenRouter provider configuration from settings."""
    config = ProviderConfig(
        name="openrouter",
        api_key=settings.api_key,
        base_url=settings.base_url,
        models={
            ModelTier.FAST: settings.fast_model,
            ModelTier.DEEP: settings.deep_model,
            ModelTier.PREMIUM: settings.premium_model,
        },
        default_headers={
            "HTTP-Referer": settings.referer,
            "X-Title": settings.title,
        },
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        timeout_seconds=settings.request_timeout_seconds,
    )
    if not config.is_available:
        logger.warning("Analysis provider has no API key configured; every stage will use its fallback")
    return config


# =============================================================================
# COST ESTIMATION
# =============================================================================

# Approximate costs per 1K tokens (input/output)
COST_PER_1K_TOKENS = {
    "anthropic/claude-haiku-4-5": {"input": 0.001, "output": 0.005},
    "anthropic/claude-sonnet-4": {"input": 0.003, "output": 0.015},
    "anthropic/claude-opus-4": {"input": 0.015, "output": 0.075},
}


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate cost for a model invocation.

    Args:
        model: Model name
        input_tokens: Number of input tokens
        output_tokens: Number of output tokens

    Returns:
        Estimated cost in USD (0.0 for unknown models)
    """
    if model not in COST_PER_1K_TOKENS:
        return 0.0

    costs = COST_PER_1K_TOKENS[model]
    input_cost = (input_tokens / 1000) * costs["input"]
    output_cost = (output_tokens / 1000) * costs["output"]

    return input_cost + output_cost


__all__ = [
    "ModelTier",
    "ProviderConfig",
    "build_provider_config",
    "estimate_cost",
    "COST_PER_1K_TOKENS",
]
