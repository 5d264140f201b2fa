"""
Default producer stages -- completion-backed implementations of the stage contract.

Usage:
    from pagesmith.llm import create_client
    from pagesmith.stages import build_default_stages

    stages = build_default_stages(create_client(), config)
    orchestrator = PipelineOrchestrator(stages, config)
"""

from ..config import PipelineConfig
from ..llm import LLMClient
from ..orchestration.stages import StageName, StageSet
from ..scoring import ArtifactValidator
from .completion import CompletionStage
from .prompts import STAGE_PROMPTS, StagePrompt


def build_default_stages(
    client: LLMClient,
    config: PipelineConfig | None = None,
    enrich: bool = True,
) -> StageSet:
    """One CompletionStage per producer stage, ArtifactValidator for scoring.

    With enrich=False the two best-effort stages are left out.
    """
    config = config or PipelineConfig()

    def stage(name: StageName) -> CompletionStage:
        return CompletionStage(name, client)

    return StageSet(
        specification=stage(StageName.SPECIFICATION),
        design=stage(StageName.DESIGN),
        content=stage(StageName.CONTENT),
        layout=stage(StageName.LAYOUT),
        artifact=stage(StageName.ARTIFACT),
        refine=stage(StageName.REFINE),
        scoring=ArtifactValidator(config),
        design_implementation=stage(StageName.DESIGN_IMPLEMENTATION) if enrich else None,
        image_integration=stage(StageName.IMAGE_INTEGRATION) if enrich else None,
    )


__all__ = ["CompletionStage", "STAGE_PROMPTS", "StagePrompt", "build_default_stages"]
