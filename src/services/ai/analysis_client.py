"""
Analysis client for the generative-text backend.

Talks to OpenRouter through the OpenAI-compatible SDK and provides:
- Tier-based model routing (FAST / DEEP / PREMIUM)
- Retry with exponential backoff for transient errors
- A circuit breaker so a dead backend fails stages fast
- JSON extraction tolerant of markdown code fences

Usage:
    client = OpenRouterAnalysisClient.from_settings(get_settings().analysis)
    payload = await client.generate_json(prompt, system_prompt, ModelTier.DEEP)
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import openai
from openai import AsyncOpenAI

from config.ai_providers import ModelTier, ProviderConfig, build_provider_config, estimate_cost
from config.settings import AnalysisSettings
from resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    RetryConfig,
    RetryExhausted,
    retry_async,
)

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = (
    "IMPORTANT: You must respond with valid JSON only. "
    "No markdown, no code blocks, just raw JSON."
)

# Transient failures worth another attempt; 4xx errors are not.
TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


# =============================================================================
# ERRORS
# =============================================================================

class AnalysisError(Exception):
    """The analysis backend could not produce a usable answer."""


class AnalysisUnavailable(AnalysisError):
    """The backend is not configured or its circuit is open."""


class AnalysisDecodeError(AnalysisError):
    """The backend answered, but not with a JSON object."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class AnalysisResponse:
    """Response from the analysis backend."""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    cost_estimate: float = 0.0


class AnalysisClient(Protocol):
    """What the stage orchestrator needs from a backend."""

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> Dict[str, Any]:
        ...


def parse_json_object(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse a model answer into a JSON object.

    Strips a surrounding ```json / ``` fence if the model added one anyway.

    Raises:
        AnalysisDecodeError: empty answer, invalid JSON, or a non-object value.
    """
    if not content or not content.strip():
        raise AnalysisDecodeError("Empty response from analysis backend", raw=content)

    cleaned = content.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    try:
        value = json.loads(cleaned.strip())
    except json.JSONDecodeError as e:
        raise AnalysisDecodeError(f"Invalid JSON from analysis backend: {e}", raw=content) from e

    if not isinstance(value, dict):
        raise AnalysisDecodeError(
            f"Expected a JSON object, got {type(value).__name__}", raw=content
        )
    return value


# =============================================================================
# OPENROUTER CLIENT
# =============================================================================

class OpenRouterAnalysisClient:
    """Analysis backend on OpenRouter's OpenAI-compatible API."""

    def __init__(
        self,
        config: ProviderConfig,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.config = config
        self.retry_config = retry_config or RetryConfig(
            max_attempts=2,
            retryable_exceptions=TRANSIENT_ERRORS,
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(config.name)
        self._owns_client = client is None
        self._client = client
        if self._client is None and config.is_available:
            # The SDK's own retries are disabled; retry_async owns the policy.
            self._client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                default_headers=config.default_headers,
                timeout=config.timeout_seconds,
                max_retries=0,
            )

    @classmethod
    def from_settings(cls, settings: AnalysisSettings) -> "OpenRouterAnalysisClient":
        config = build_provider_config(settings)
        retry_config = RetryConfig(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            retryable_exceptions=TRANSIENT_ERRORS,
        )
        breaker = CircuitBreaker(
            config.name,
            CircuitBreakerConfig(
                failure_threshold=settings.circuit_failure_threshold,
                timeout=settings.circuit_recovery_timeout,
            ),
        )
        return cls(config, retry_config=retry_config, circuit_breaker=breaker)

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> AnalysisResponse:
        """
        Run one chat completion.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            tier: Model tier to route to

        Returns:
            AnalysisResponse with the raw text answer

        Raises:
            AnalysisUnavailable: No API key or the circuit is open.
            AnalysisError: The backend failed after retries.
        """
        if self._client is None:
            raise AnalysisUnavailable("Analysis backend is not configured")

        model = self.config.model_for(tier)
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        async def call():
            return await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )

        start_time = time.monotonic()
        try:
            async with self.circuit_breaker:
                response = await retry_async(call, self.retry_config, name=f"analysis:{model}")
        except CircuitBreakerOpen as e:
            raise AnalysisUnavailable(
                f"Analysis backend circuit open, retry in {e.time_remaining:.0f}s"
            ) from e
        except RetryExhausted as e:
            raise AnalysisError(f"Analysis backend failed after {e.attempts} attempts: {e.last_exception}") from e
        except openai.OpenAIError as e:
            raise AnalysisError(f"Analysis backend error: {e}") from e

        latency_ms = int((time.monotonic() - start_time) * 1000)
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        content = response.choices[0].message.content if response.choices else None

        result = AnalysisResponse(
            content=content or "",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
            cost_estimate=estimate_cost(model, input_tokens, output_tokens),
        )
        logger.info(
            f"Analysis completion from {model}",
            extra={'extra_data': {
                'model': model,
                'tier': tier.value,
                'latency_ms': latency_ms,
                'input_tokens': input_tokens,
                'output_tokens': output_tokens,
                'cost_usd': round(result.cost_estimate, 6),
            }}
        )
        return result

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> Dict[str, Any]:
        """Ask for a JSON object and parse it.

        Raises:
            AnalysisDecodeError: The answer is not a JSON object.
        """
        json_system_prompt = f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}" if system_prompt else JSON_ONLY_INSTRUCTION
        response = await self.complete(prompt, json_system_prompt, tier)
        return parse_json_object(response.content)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.close()
