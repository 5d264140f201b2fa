"""
GenerationRequest and GenerationContext -- per-request state.

The request is immutable and created once per submission. The context is the
mutable aggregate owned by that one request: stage outputs, the loop state,
the stage log and timings. Producer fields are write-once; the refine and
scoring fields are overwritten each loop iteration.
"""

import copy
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from ..config import DEFAULT_MAX_ATTEMPTS
from ..errors import ContextWriteError
from ..scoring.models import ValidationReport
from ..tracing import new_correlation_id
from .stages import StageName, extract_artifact_text

logger = logging.getLogger(__name__)

MODES = ("full", "quick")
REQUIRED_FIELDS = ("specification", "design", "content", "layout", "artifact")
SNAPSHOT_FIELDS = (
    "specification",
    "design",
    "content",
    "layout",
    "artifact",
    "design_implementation",
    "image_integration",
    "styled_artifact",
    "validation",
)


@dataclass(frozen=True)
class GenerationRequest:
    text: str
    session_id: str | None = None
    mode: str = "full"
    correlation_id: str = field(default_factory=new_correlation_id)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES} (got {self.mode!r})")

    @property
    def quick(self) -> bool:
        return self.mode == "quick"


class LoopStatus(str, Enum):
    ITERATING = "ITERATING"
    CONVERGED = "CONVERGED"
    EXHAUSTED = "EXHAUSTED"
    ABORTED = "ABORTED"


@dataclass
class HistoryEntry:
    attempt: int
    score: int
    passed: bool
    issues: list[str] = field(default_factory=list)


@dataclass
class LoopState:
    """Attempt bookkeeping. Invariants: attempt <= max_attempts, len(history) == attempt."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    attempt: int = 0
    history: list[HistoryEntry] = field(default_factory=list)
    current_artifact: str | None = None
    guidance: Any = None
    status: LoopStatus = LoopStatus.ITERATING

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - self.attempt


class GenerationContext:
    """Everything produced for one request.

    Usage:
        context = GenerationContext(request, max_attempts=2)
        context.set_specification({...})
        view = context.projection(["specification", "design"])
    """

    def __init__(self, request: GenerationRequest, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.request = request
        self.specification: dict | None = None
        self.design: dict | None = None
        self.content: dict | None = None
        self.layout: dict | None = None
        self.artifact: Any = None
        self.design_implementation: Any = None
        self.image_integration: Any = None
        self.styled_artifact: str | None = None
        self.validation: ValidationReport | None = None
        self.loop = LoopState(max_attempts=max_attempts)
        self.stages_used: list[str] = []
        self.timings: dict[str, float] = {}

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    def _write_once(self, stage: StageName, value: Any) -> None:
        if getattr(self, stage.value) is not None:
            raise ContextWriteError(f"{stage.value} already set for {self.request.correlation_id}")
        setattr(self, stage.value, value)
        self.stages_used.append(stage.value)

    def set_specification(self, payload: dict) -> None:
        self._write_once(StageName.SPECIFICATION, payload)

    def set_design(self, payload: dict) -> None:
        self._write_once(StageName.DESIGN, payload)

    def set_content(self, payload: dict) -> None:
        self._write_once(StageName.CONTENT, payload)

    def set_layout(self, payload: dict) -> None:
        self._write_once(StageName.LAYOUT, payload)

    def set_artifact(self, payload: Any) -> None:
        self._write_once(StageName.ARTIFACT, payload)
        self.loop.current_artifact = extract_artifact_text(payload)

    def set_design_implementation(self, payload: Any) -> None:
        self._write_once(StageName.DESIGN_IMPLEMENTATION, payload)

    def set_image_integration(self, payload: Any) -> None:
        self._write_once(StageName.IMAGE_INTEGRATION, payload)
        text = extract_artifact_text(payload)
        if text is not None:
            self.loop.current_artifact = text

    def set_styled_artifact(self, text: str) -> None:
        self.styled_artifact = text
        self.loop.current_artifact = text
        self.stages_used.append(StageName.REFINE.value)

    def set_validation(self, report: ValidationReport) -> None:
        if self.loop.attempt >= self.loop.max_attempts:
            raise ContextWriteError(
                f"attempt budget of {self.loop.max_attempts} already used"
            )
        self.validation = report
        self.loop.attempt += 1
        self.loop.history.append(HistoryEntry(
            attempt=self.loop.attempt,
            score=report.overall_score,
            passed=report.passed,
            issues=list(report.critical_issues),
        ))
        self.stages_used.append(StageName.SCORING.value)

    def record_timing(self, stage: str, elapsed_ms: float) -> None:
        self.timings[stage] = self.timings.get(stage, 0.0) + round(elapsed_ms, 2)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def completeness_percent(self) -> int:
        populated = sum(1 for name in REQUIRED_FIELDS if getattr(self, name) is not None)
        return round(populated / len(REQUIRED_FIELDS) * 100)

    def final_state_snapshot(self) -> dict:
        snapshot = {f"has_{name}": getattr(self, name) is not None for name in SNAPSHOT_FIELDS}
        snapshot["validation_passed"] = bool(self.validation and self.validation.passed)
        snapshot["validation_score"] = self.validation.overall_score if self.validation else 0
        snapshot["attempts"] = self.loop.attempt
        return snapshot

    def projection(
        self, fields: list[str] | tuple[str, ...], extra: Mapping[str, Any] | None = None
    ) -> Mapping[str, Any]:
        """Read-only copy of the named fields plus the request (and any extra keys)."""
        view: dict[str, Any] = {
            "request": {
                "text": self.request.text,
                "mode": self.request.mode,
                "session_id": self.request.session_id,
                "correlation_id": self.request.correlation_id,
            }
        }
        for name in fields:
            value = getattr(self, name)
            if isinstance(value, ValidationReport):
                value = value.to_dict()
            view[name] = copy.deepcopy(value)
        if extra:
            view.update(copy.deepcopy(dict(extra)))
        return MappingProxyType(view)

    def partial(self) -> dict:
        """Populated producer fields, for failure reports."""
        data: dict[str, Any] = {
            name: copy.deepcopy(getattr(self, name))
            for name in SNAPSHOT_FIELDS[:-1]
            if getattr(self, name) is not None
        }
        if self.validation is not None:
            data["validation"] = self.validation.to_dict()
        data["stages_used"] = list(self.stages_used)
        data["loop"] = {
            "attempt": self.loop.attempt,
            "status": self.loop.status.value,
            "history": [asdict(h) for h in self.loop.history],
        }
        return data
