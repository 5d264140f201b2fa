"""
ConvergenceLoop -- bounded refine -> score iteration.

Each iteration refines the current artifact (with the previous issues and
targeted guidance), scores it, records the attempt in the context, then
applies the stopping policy in order:

    1. score >= gate_threshold                        -> CONVERGED
    2. attempt == max_attempts                        -> EXHAUSTED
    3. |delta| < min_improvement(attempt), below gate -> continue with guidance
    4. attempt > 1 and |delta| < 0.5                  -> EXHAUSTED (plateau)

Rule 4 can only fire when rule 3 does not, and rule 3 already covers every
|delta| < 0.5 below the gate, so rule 4 never changes the outcome today.

A scoring error aborts the loop, keeping the last successfully scored
artifact with passed=False. Never more than max_attempts scoring calls.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..config import PipelineConfig
from ..scoring.models import ValidationReport
from ..tracing import Tracer
from .context import GenerationContext, HistoryEntry, LoopStatus
from .guidance import build_guidance
from .stages import ProducerStage, ScoringStage, StageName, extract_artifact_text

logger = logging.getLogger(__name__)

PLATEAU_DELTA = 0.5
REFINE_FIELDS = ("specification", "design", "content", "layout", "design_implementation")


def min_improvement(attempt: int) -> int:
    if attempt == 1:
        return 3
    if attempt == 2:
        return 2
    return 1


def decide(history: list[HistoryEntry], max_attempts: int, gate_threshold: float) -> LoopStatus:
    """Stopping policy applied after each scoring call."""
    current = history[-1]
    if current.score >= gate_threshold:
        return LoopStatus.CONVERGED
    if current.attempt >= max_attempts:
        return LoopStatus.EXHAUSTED
    if len(history) > 1:
        delta = current.score - history[-2].score
        if abs(delta) < min_improvement(current.attempt) and current.score < gate_threshold:
            # Attempts remain (rule 2 did not fire): keep going with guidance.
            return LoopStatus.ITERATING
        if current.attempt > 1 and abs(delta) < PLATEAU_DELTA:
            return LoopStatus.EXHAUSTED
    return LoopStatus.ITERATING


@dataclass
class LoopOutcome:
    state: LoopStatus
    attempts: int
    final_artifact: str | None
    report: ValidationReport | None = None
    passed: bool = False
    history: list[HistoryEntry] = field(default_factory=list)


class ConvergenceLoop:
    """Drives refine/score until converged, exhausted or aborted.

    Usage:
        loop = ConvergenceLoop(stages.refine, stages.scoring, config)
        outcome = await loop.run(context, tracer)
    """

    def __init__(
        self,
        refine: ProducerStage,
        scoring: ScoringStage,
        config: PipelineConfig | None = None,
    ):
        self.refine = refine
        self.scoring = scoring
        self.config = config or PipelineConfig()

    async def run(self, context: GenerationContext, tracer: Tracer | None = None) -> LoopOutcome:
        tracer = tracer or Tracer(context.request.correlation_id)
        state = context.loop
        request_metadata = self._request_metadata(context)
        scored_artifact: str | None = None

        while state.attempt < state.max_attempts:
            refined = await self._refine(context, tracer)
            artifact = refined if refined is not None else state.current_artifact
            try:
                report, elapsed = await tracer.call(
                    StageName.SCORING.value,
                    self.scoring,
                    artifact,
                    request_metadata,
                    context.design,
                    context.content,
                )
            except Exception as e:
                logger.error(f"[Loop] Scoring failed on attempt {state.attempt + 1}: {e}")
                state.status = LoopStatus.ABORTED
                return LoopOutcome(
                    state=LoopStatus.ABORTED,
                    attempts=state.attempt,
                    final_artifact=state.current_artifact,
                    report=context.validation,
                    passed=False,
                    history=list(state.history),
                )

            context.record_timing(StageName.SCORING.value, elapsed)
            if refined is not None:
                context.set_styled_artifact(refined)
            context.set_validation(report)
            scored_artifact = artifact
            status = decide(state.history, state.max_attempts, self.config.gate_threshold)
            logger.info(
                f"[Loop] Attempt {state.attempt}/{state.max_attempts}: "
                f"score {report.overall_score}% -> {status.value}"
            )
            if status is not LoopStatus.ITERATING:
                state.status = status
                break
            state.guidance = build_guidance(
                report, self.config.gate_threshold, state.attempts_remaining
            )

        report = context.validation
        return LoopOutcome(
            state=state.status,
            attempts=state.attempt,
            final_artifact=scored_artifact,
            report=report,
            passed=bool(report and report.passed),
            history=list(state.history),
        )

    async def _refine(self, context: GenerationContext, tracer: Tracer) -> str | None:
        """Refined artifact text, or None if the refine stage fails.

        Nothing is written to the context here; run() commits the refined
        artifact only once it has been scored.
        """
        state = context.loop
        current = state.current_artifact
        previous_issues = state.history[-1].issues if state.history else []
        projection = context.projection(REFINE_FIELDS, extra={
            "current_artifact": current,
            "previous_issues": previous_issues,
            "guidance": state.guidance.to_dict() if state.guidance else None,
            "attempt": state.attempt + 1,
            "max_attempts": state.max_attempts,
        })
        try:
            result, elapsed = await tracer.call(StageName.REFINE.value, self.refine, projection)
            context.record_timing(StageName.REFINE.value, elapsed)
        except Exception as e:
            logger.warning(f"[Loop] Refine raised, keeping current artifact: {e}")
            return None

        text = extract_artifact_text(result.payload) if result.success else None
        if text is None:
            logger.warning(
                f"[Loop] Refine returned no artifact ({result.error or 'empty payload'}), "
                f"keeping current artifact"
            )
        return text

    @staticmethod
    def _request_metadata(context: GenerationContext) -> Mapping[str, Any]:
        metadata = dict(context.specification or {})
        metadata["request_text"] = context.request.text
        return metadata
