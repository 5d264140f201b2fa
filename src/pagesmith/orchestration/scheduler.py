"""
PipelineOrchestrator -- drives one request through the producer stages and the loop.

Stage graph:

    specification
        -> {design, content}                      (parallel, join barrier, required)
        -> layout
        -> artifact
        -> {design_implementation, image_integration}  (parallel, best-effort)
        -> convergence loop (refine <-> scoring)

Required stages that fail (success=False, a raised exception, or a payload
with the wrong shape) stop the pipeline with a StageFailure; the caller
gets a failed PipelineResult carrying the partial context and the failing
stage name. Best-effort stages fail as EnrichmentFailure, which is logged
and traced, and the pipeline continues with the unmodified artifact.

A fan-out releases its join only after every branch finishes. Payloads are
merged into the context after the join, each into its own field.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from ..config import PipelineConfig
from ..errors import EnrichmentFailure, MalformedPayload, StageFailure
from ..security import (
    ValidationError,
    detect_injection_attempt,
    validate_identifier,
    validate_in_choices,
    validate_request_text,
)
from ..tracing import JsonFileTraceSink, TracePhase, Tracer, TraceSink
from .context import MODES, GenerationContext, GenerationRequest
from .loop import ConvergenceLoop, LoopOutcome
from .stages import ProducerStage, StageName, StageResult, StageSet, check_payload

logger = logging.getLogger(__name__)

PIPELINE_TRACE_STAGE = "pipeline"
INPUT_STAGE = "input"

STAGE_INPUTS: dict[StageName, tuple[str, ...]] = {
    StageName.SPECIFICATION: (),
    StageName.DESIGN: ("specification",),
    StageName.CONTENT: ("specification",),
    StageName.LAYOUT: ("specification", "design", "content"),
    StageName.ARTIFACT: ("specification", "design", "content", "layout"),
    StageName.DESIGN_IMPLEMENTATION: ("design", "artifact"),
    StageName.IMAGE_INTEGRATION: ("specification", "artifact"),
}


# =============================================================================
# RESULT
# =============================================================================


@dataclass
class PipelineResult:
    """What the caller always gets back from run()/submit()."""

    success: bool
    context: GenerationContext
    final_artifact: str | None = None
    validation_score: int = 0
    error: str | None = None
    failed_stage: str | None = None
    outcome: LoopOutcome | None = None
    execution_time_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return bool(self.outcome and self.outcome.passed)

    def to_dict(self) -> dict:
        if not self.success:
            return {
                "success": False,
                "error": self.error,
                "failed_stage": self.failed_stage,
                "partial_context": self.context.partial(),
            }
        return {
            "success": True,
            "correlation_id": self.context.request.correlation_id,
            "final_artifact": self.final_artifact,
            "validation_score": self.validation_score,
            "validation_passed": self.passed,
            "execution_time_ms": round(self.execution_time_ms, 2),
            "stages_used": list(self.context.stages_used),
            "completeness_percent": self.context.completeness_percent(),
            "loop_state": self.outcome.state.value if self.outcome else None,
            "attempts": self.context.loop.attempt,
            "timings_ms": dict(self.context.timings),
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class PipelineOrchestrator:
    """
    Top-level driver. Holds only injected, stateless stage handles, so
    several requests may run on one orchestrator concurrently.

    Usage:
        orchestrator = PipelineOrchestrator(stages, PipelineConfig())
        result = await orchestrator.submit("A landing page for a dental clinic ...")
        if result.success:
            print(result.validation_score, result.final_artifact)
        else:
            print(result.failed_stage, result.error)
    """

    def __init__(
        self,
        stages: StageSet,
        config: PipelineConfig | None = None,
        trace_sink: TraceSink | None = None,
    ):
        self.stages = stages
        self.config = config or PipelineConfig()
        if trace_sink is None and self.config.trace_dir is not None:
            trace_sink = JsonFileTraceSink(self.config.trace_dir)
        self.trace_sink = trace_sink
        self.loop = ConvergenceLoop(stages.refine, stages.scoring, self.config)

    async def submit(
        self, text: str, session_id: str | None = None, mode: str = "full"
    ) -> PipelineResult:
        """Validate input, build the request, run it.

        Invalid input never reaches a stage: it comes back as a failed
        PipelineResult with failed_stage="input".
        """
        try:
            text = validate_request_text(text)
            if session_id is not None:
                validate_identifier(session_id, "session_id")
            validate_in_choices(mode, MODES, "mode")
        except ValidationError as e:
            logger.warning(f"[Pipeline] Rejected request: {e}")
            request = GenerationRequest(
                text=text if isinstance(text, str) else "",
                session_id=session_id,
                mode=mode if mode in MODES else "full",
            )
            return PipelineResult(
                success=False,
                context=GenerationContext(request, max_attempts=self.config.max_attempts),
                error=str(e),
                failed_stage=INPUT_STAGE,
            )
        detect_injection_attempt(text)
        return await self.run(GenerationRequest(text=text, session_id=session_id, mode=mode))

    async def run(self, request: GenerationRequest) -> PipelineResult:
        start = time.perf_counter()
        context = GenerationContext(request, max_attempts=self.config.max_attempts)
        tracer = Tracer(request.correlation_id, self.trace_sink)
        tracer.emit(PIPELINE_TRACE_STAGE, TracePhase.IN, {"mode": request.mode})
        logger.info(f"[Pipeline] {request.correlation_id}: starting ({request.mode} mode)")

        try:
            result = await self._execute(context, tracer)
        except StageFailure as e:
            logger.error(f"[Pipeline] {request.correlation_id}: {e}")
            result = PipelineResult(
                success=False, context=context, error=str(e), failed_stage=e.stage
            )
        except Exception as e:
            logger.exception(f"[Pipeline] {request.correlation_id}: unexpected error")
            result = PipelineResult(
                success=False, context=context, error=f"Unexpected error: {type(e).__name__}: {e}"
            )

        result.execution_time_ms = (time.perf_counter() - start) * 1000
        tracer.emit(PIPELINE_TRACE_STAGE, TracePhase.OUT, {
            "success": result.success,
            "error": result.error,
            "elapsed_ms": round(result.execution_time_ms, 2),
            "completeness_percent": context.completeness_percent(),
        })
        logger.info(
            f"[Pipeline] {request.correlation_id}: "
            f"{'done' if result.success else 'failed'} in {result.execution_time_ms:.0f}ms, "
            f"score {result.validation_score}%, completeness {context.completeness_percent()}%"
        )
        return result

    async def _execute(self, context: GenerationContext, tracer: Tracer) -> PipelineResult:
        await self._run_required(context, tracer, [StageName.SPECIFICATION])
        await self._run_required(context, tracer, [StageName.DESIGN, StageName.CONTENT])
        await self._run_required(context, tracer, [StageName.LAYOUT])
        await self._run_required(context, tracer, [StageName.ARTIFACT])

        if context.request.quick:
            logger.info("[Pipeline] Quick mode: skipping enrichment stages")
        else:
            await self._run_enrichment(context, tracer)

        outcome = await self.loop.run(context, tracer)
        final_artifact = outcome.final_artifact or context.loop.current_artifact
        return PipelineResult(
            success=True,
            context=context,
            final_artifact=final_artifact,
            validation_score=outcome.report.overall_score if outcome.report else 0,
            outcome=outcome,
        )

    # -------------------------------------------------------------------------
    # Required stages
    # -------------------------------------------------------------------------

    def _handle(self, stage: StageName) -> ProducerStage | None:
        return getattr(self.stages, stage.value)

    async def _run_required(
        self, context: GenerationContext, tracer: Tracer, stages: list[StageName]
    ) -> None:
        """Run one stage, or several in parallel, and merge payloads after the join."""
        calls = [self._call_required(context, tracer, stage) for stage in stages]
        results = await asyncio.gather(*calls, return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for extra in failures[1:]:
                logger.error(f"[Pipeline] Also failed in the same fan-out: {extra}")
            raise failures[0]

        for stage, payload in zip(stages, results):
            getattr(context, f"set_{stage.value}")(payload)

    async def _call_required(
        self, context: GenerationContext, tracer: Tracer, stage: StageName
    ) -> Any:
        handle = self._handle(stage)
        projection = context.projection(STAGE_INPUTS[stage])
        try:
            result, elapsed = await tracer.call(stage.value, handle, projection)
        except Exception as e:
            raise StageFailure(stage.value, f"{type(e).__name__}: {e}") from e
        context.record_timing(stage.value, elapsed)

        if not isinstance(result, StageResult):
            raise StageFailure(stage.value, f"returned {type(result).__name__}, not StageResult")
        if not result.success:
            raise StageFailure(stage.value, result.error or "stage reported failure")
        try:
            check_payload(stage, result.payload)
        except MalformedPayload as e:
            raise StageFailure(stage.value, str(e)) from e
        logger.debug(f"[Pipeline] {stage.value} done in {elapsed:.0f}ms")
        return result.payload

    # -------------------------------------------------------------------------
    # Best-effort stages
    # -------------------------------------------------------------------------

    async def _run_enrichment(self, context: GenerationContext, tracer: Tracer) -> None:
        branches = [
            stage
            for stage in (StageName.DESIGN_IMPLEMENTATION, StageName.IMAGE_INTEGRATION)
            if self._handle(stage) is not None
        ]
        if not branches:
            return

        results = await asyncio.gather(
            *[self._call_enrichment(context, tracer, stage) for stage in branches],
            return_exceptions=True,
        )
        for stage, result in zip(branches, results):
            if isinstance(result, EnrichmentFailure):
                logger.warning(f"[Pipeline] {result} -- continuing with unmodified artifact")
                continue
            if isinstance(result, BaseException):
                logger.warning(
                    f"[Pipeline] {stage.value} enrichment failed: {result} "
                    f"-- continuing with unmodified artifact"
                )
                continue
            getattr(context, f"set_{stage.value}")(result)

    async def _call_enrichment(
        self, context: GenerationContext, tracer: Tracer, stage: StageName
    ) -> Any:
        handle = self._handle(stage)
        projection = context.projection(STAGE_INPUTS[stage])
        try:
            result, elapsed = await tracer.call(stage.value, handle, projection)
        except Exception as e:
            raise EnrichmentFailure(stage.value, f"{type(e).__name__}: {e}") from e
        context.record_timing(stage.value, elapsed)

        if not isinstance(result, StageResult) or not result.success:
            reason = getattr(result, "error", None) or "stage reported failure"
            raise EnrichmentFailure(stage.value, reason)
        if result.payload is None:
            raise EnrichmentFailure(stage.value, "empty payload")
        return result.payload
