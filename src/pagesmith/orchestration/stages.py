"""
Stage contracts -- what the scheduler expects from producer and scoring stages.

Producer stage:  async (projection: Mapping) -> StageResult
Refine stage:    async (projection: Mapping) -> StageResult (payload: artifact)
Scoring stage:   async (artifact, request_metadata, design_metadata, content) -> ValidationReport

Stage handles are constructed once, bundled in a StageSet, and hold no
per-request state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol, runtime_checkable

from ..errors import MalformedPayload
from ..scoring.models import ValidationReport

logger = logging.getLogger(__name__)

DESIGN_CORE_KEYS = frozenset({"brand", "visual", "colors", "typography", "layout"})
ARTIFACT_KEYS = ("artifact", "code")


class StageName(str, Enum):
    SPECIFICATION = "specification"
    DESIGN = "design"
    CONTENT = "content"
    LAYOUT = "layout"
    ARTIFACT = "artifact"
    DESIGN_IMPLEMENTATION = "design_implementation"
    IMAGE_INTEGRATION = "image_integration"
    REFINE = "refine"
    SCORING = "scoring"


@dataclass
class StageResult:
    """What every producer stage returns."""

    success: bool
    payload: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, payload: Any) -> "StageResult":
        return cls(success=True, payload=payload)

    @classmethod
    def fail(cls, error: str) -> "StageResult":
        return cls(success=False, error=error)


@runtime_checkable
class ProducerStage(Protocol):
    async def __call__(self, projection: Mapping[str, Any]) -> StageResult: ...


@runtime_checkable
class ScoringStage(Protocol):
    async def __call__(
        self,
        artifact: str,
        request_metadata: Mapping[str, Any] | None,
        design_metadata: Mapping[str, Any] | None,
        content_payload: Any,
    ) -> ValidationReport: ...


@dataclass(frozen=True)
class StageSet:
    """The injected stage handles for one orchestrator."""

    specification: ProducerStage
    design: ProducerStage
    content: ProducerStage
    layout: ProducerStage
    artifact: ProducerStage
    refine: ProducerStage
    scoring: ScoringStage
    design_implementation: ProducerStage | None = None
    image_integration: ProducerStage | None = None


# =============================================================================
# PAYLOAD CHECKS
# =============================================================================


def extract_artifact_text(payload: Any) -> str | None:
    """Artifact text from a string payload or a mapping with artifact/code."""
    if isinstance(payload, str):
        return payload if payload.strip() else None
    if isinstance(payload, Mapping):
        for key in ARTIFACT_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


def check_payload(stage: StageName, payload: Any) -> None:
    """Raise MalformedPayload if a required stage's payload has the wrong shape."""
    if stage is StageName.ARTIFACT:
        if extract_artifact_text(payload) is None:
            raise MalformedPayload("artifact payload carries no artifact text")
        return

    if not isinstance(payload, Mapping):
        raise MalformedPayload(
            f"{stage.value} payload must be a mapping (got {type(payload).__name__})"
        )
    if stage is StageName.DESIGN:
        if len(payload) < 2:
            raise MalformedPayload("design payload needs at least 2 keys")
        if not DESIGN_CORE_KEYS & set(payload):
            raise MalformedPayload(
                f"design payload needs one of: {', '.join(sorted(DESIGN_CORE_KEYS))}"
            )
