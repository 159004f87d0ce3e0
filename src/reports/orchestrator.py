"""
Stage orchestrator.

Runs the analysis stages for one report. The premium path is an async
generator of chunks; the free path returns a single ReportResult with
only the profile stage analysed.

Stage failures never escape: a failed, timed-out or invalid stage is
replaced by its fallback and the chunk is flagged ``error: true``.
Cancellation always propagates.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from config.settings import Settings
from reports.models import Chunk, ReportResult, StageId
from reports.stages import STAGES, Stage, StageContext, StageOutcome
from services.ai.analysis_client import AnalysisClient, AnalysisError
from services.logging_config import ReportRunLogger

logger = logging.getLogger(__name__)

DEFAULT_STAGE_TIMEOUT = 90.0
DEFAULT_REQUEST_DEADLINE = 300.0

FATAL_STREAM_MESSAGE = "Report generation failed. Please try again."


class ReportOrchestrator:
    """Runs the four-stage analysis graph against an analysis backend."""

    def __init__(
        self,
        analysis: AnalysisClient,
        stage_timeout: float = DEFAULT_STAGE_TIMEOUT,
        request_deadline: float = DEFAULT_REQUEST_DEADLINE,
        stages: Optional[Mapping[StageId, Stage]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.analysis = analysis
        self.stage_timeout = stage_timeout
        self.request_deadline = request_deadline
        self.stages = dict(stages or STAGES)
        self._clock = clock

    @classmethod
    def from_settings(cls, analysis: AnalysisClient, settings: Settings) -> "ReportOrchestrator":
        return cls(
            analysis,
            stage_timeout=settings.analysis.stage_timeout_seconds,
            request_deadline=settings.reports.request_deadline_seconds,
        )

    def _deadline(self) -> float:
        return self._clock() + self.request_deadline

    async def run_stage(
        self,
        stage_id: StageId,
        ctx: StageContext,
        deadline: float,
        run_log: Optional[ReportRunLogger] = None,
    ) -> StageOutcome:
        """
        Run one stage, bounded by the stage timeout and the request deadline.

        Returns:
            StageOutcome with the validated payload, or the stage fallback
            and the failure reason.

        Raises:
            asyncio.CancelledError: only; every other failure becomes a fallback.
        """
        stage = self.stages[stage_id]
        started = run_log.stage_started(stage_id.value) if run_log else time.monotonic()
        error: Optional[str] = None

        remaining = deadline - self._clock()
        if remaining <= 0:
            error = "request deadline exceeded"
        else:
            timeout = min(self.stage_timeout, remaining)
            try:
                system_prompt, prompt = stage.build_prompt(ctx)
                raw = await asyncio.wait_for(
                    self.analysis.generate_json(prompt, system_prompt, stage.model_tier),
                    timeout=timeout,
                )
                payload = stage.schema.model_validate(raw)
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                error = f"timed out after {timeout:.0f}s"
            except ValidationError as e:
                error = f"invalid {stage_id.value} payload: {e.error_count()} validation errors"
            except AnalysisError as e:
                error = str(e)
            except Exception as e:
                logger.exception(f"Unexpected failure in stage {stage_id.value}")
                error = f"{type(e).__name__}: {e}"
            else:
                if run_log:
                    run_log.stage_finished(stage_id.value, started, used_fallback=False)
                return StageOutcome(stage_id=stage_id, payload=payload)

        if run_log:
            run_log.stage_finished(stage_id.value, started, used_fallback=True, error=error)
        return StageOutcome(
            stage_id=stage_id,
            payload=stage.fallback(ctx),
            used_fallback=True,
            error=error,
        )

    async def _run_joined(
        self,
        first: StageId,
        second: StageId,
        ctx: StageContext,
        deadline: float,
        run_log: Optional[ReportRunLogger],
    ):
        """Run two independent stages concurrently and wait for both."""
        tasks = [
            asyncio.create_task(self.run_stage(first, ctx, deadline, run_log)),
            asyncio.create_task(self.run_stage(second, ctx, deadline, run_log)),
        ]
        try:
            return await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    @staticmethod
    def _stage_chunk(outcome: StageOutcome) -> Chunk:
        return Chunk.ai_stage(outcome.stage_id, outcome.payload.to_wire(), error=outcome.used_fallback)

    async def stream(
        self,
        user_data: Dict[str, Any],
        user_name: str,
        user_id: Optional[str] = None,
        scenario_count: int = 1,
        generated_at: Optional[datetime] = None,
    ) -> AsyncIterator[Chunk]:
        """
        Premium report as a chunk sequence.

        Order: computed, profileSynthesis, optimizationAnalysis,
        riskAssessment, roadmap, complete. A failure outside stage handling
        ends the sequence with a single error chunk instead of complete.
        """
        run_log = ReportRunLogger(user_id=user_id, is_premium=True)
        run_log.start(scenario_count)
        deadline = self._deadline()
        generated_at = generated_at or datetime.now(timezone.utc)

        try:
            yield Chunk.computed({
                "userData": user_data,
                "generatedAt": generated_at.isoformat(),
                "userName": user_name,
                "isPremium": True,
            })

            ctx = StageContext(user_data=user_data)
            profile = await self.run_stage(StageId.PROFILE_SYNTHESIS, ctx, deadline, run_log)
            yield self._stage_chunk(profile)

            optimization, risk = await self._run_joined(
                StageId.OPTIMIZATION_ANALYSIS, StageId.RISK_ASSESSMENT, ctx, deadline, run_log
            )
            yield self._stage_chunk(optimization)
            yield self._stage_chunk(risk)

            roadmap_ctx = StageContext(
                user_data=user_data,
                upstream={
                    StageId.OPTIMIZATION_ANALYSIS: optimization.payload,
                    StageId.RISK_ASSESSMENT: risk.payload,
                },
            )
            roadmap = await self.run_stage(StageId.ROADMAP, roadmap_ctx, deadline, run_log)
            yield self._stage_chunk(roadmap)
        except asyncio.CancelledError:
            run_log.finish("cancelled")
            raise
        except Exception:
            logger.exception("Report stream failed")
            run_log.finish("error")
            yield Chunk.failure(FATAL_STREAM_MESSAGE)
            return

        run_log.finish("complete")
        yield Chunk.complete()

    async def generate_preview(
        self,
        user_data: Dict[str, Any],
        user_name: str,
        user_id: Optional[str] = None,
        scenario_count: int = 1,
        generated_at: Optional[datetime] = None,
    ) -> ReportResult:
        """
        Free preview: profile synthesis only.

        The other three fields carry their stage fallbacks as neutral
        placeholders.
        """
        run_log = ReportRunLogger(user_id=user_id, is_premium=False)
        run_log.start(scenario_count)
        ctx = StageContext(user_data=user_data)

        profile = await self.run_stage(StageId.PROFILE_SYNTHESIS, ctx, self._deadline(), run_log)
        run_log.finish("complete")

        return ReportResult(
            user_data=user_data,
            profile_synthesis=profile.payload,
            optimization_analysis=self.stages[StageId.OPTIMIZATION_ANALYSIS].fallback(ctx),
            risk_assessment=self.stages[StageId.RISK_ASSESSMENT].fallback(ctx),
            roadmap=self.stages[StageId.ROADMAP].fallback(ctx),
            generated_at=generated_at or datetime.now(timezone.utc),
            user_name=user_name,
            is_premium=False,
        )
