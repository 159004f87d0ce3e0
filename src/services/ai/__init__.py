"""
AI Services Package.

Usage:
    from services.ai import OpenRouterAnalysisClient

    client = OpenRouterAnalysisClient.from_settings(settings.analysis)
    payload = await client.generate_json(prompt, system_prompt, ModelTier.DEEP)
"""

from services.ai.analysis_client import (
    AnalysisClient,
    AnalysisDecodeError,
    AnalysisError,
    AnalysisResponse,
    AnalysisUnavailable,
    OpenRouterAnalysisClient,
    parse_json_object,
)

__all__ = [
    "AnalysisClient",
    "AnalysisDecodeError",
    "AnalysisError",
    "AnalysisResponse",
    "AnalysisUnavailable",
    "OpenRouterAnalysisClient",
    "parse_json_object",
]
