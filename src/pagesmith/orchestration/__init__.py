"""
Pipeline orchestration.

  - PipelineOrchestrator: runs the producer stages and the convergence loop
  - GenerationContext: per-request state every stage reads from and writes to
  - ConvergenceLoop: bounded refine -> score iteration with targeted guidance

Stages are injected through a StageSet; see stages.py for the contracts.
"""
from .context import GenerationContext, GenerationRequest, HistoryEntry, LoopState, LoopStatus
from .guidance import TargetedGuidance, build_guidance
from .loop import ConvergenceLoop, LoopOutcome, decide, min_improvement
from .scheduler import PipelineOrchestrator, PipelineResult
from .stages import ProducerStage, ScoringStage, StageName, StageResult, StageSet
