"""
TemplateAvoidanceScorer -- penalises known generic boilerplate signatures.

Patterns come from data/template_patterns.json, grouped by category with a
severity. Score = max(0, 100 - sum of severities of every matching pattern).
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from .catalog import load_json_document

logger = logging.getLogger(__name__)


class PatternEntry(BaseModel):
    pattern: str
    description: str = ""

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value


class PatternCategory(BaseModel):
    category: str
    severity: int = Field(10, ge=0, le=100)
    alternative: str = ""
    patterns: list[PatternEntry] = Field(..., min_length=1)


class TemplatePatternDocument(BaseModel):
    version: str = "1"
    categories: list[PatternCategory] = Field(..., min_length=1)


@dataclass
class DetectedPattern:
    type: str
    pattern: str
    description: str
    severity: int
    matches: list[str] = field(default_factory=list)


@dataclass
class TemplateResult:
    score: int = 100
    detected_patterns: list[DetectedPattern] = field(default_factory=list)
    alternatives: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.detected_patterns

    @property
    def message(self) -> str:
        if not self.detected_patterns:
            return "No template patterns found"
        kinds = ", ".join(dict.fromkeys(p.type for p in self.detected_patterns))
        return f"Template patterns detected: {kinds}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["passed"] = self.passed
        data["message"] = self.message
        return data


class TemplateAvoidanceScorer:
    """Scores how far an artifact stays from stock template output.

    Usage:
        scorer = TemplateAvoidanceScorer.load()
        result = scorer.score(artifact_text)
    """

    def __init__(self, document: TemplatePatternDocument):
        self.document = document
        self._compiled = [
            (category, entry, re.compile(entry.pattern))
            for category in document.categories
            for entry in category.patterns
        ]

    @classmethod
    def load(cls, path: Path | None = None) -> "TemplateAvoidanceScorer":
        if path is None:
            from ..config import DATA_DIR

            path = DATA_DIR / "template_patterns.json"
        return cls(load_json_document(path, TemplatePatternDocument))

    def score(self, artifact: str) -> TemplateResult:
        result = TemplateResult()
        penalty = 0
        for category, entry, regex in self._compiled:
            matches = [m.group(0) for m in regex.finditer(artifact or "")]
            if not matches:
                continue
            penalty += category.severity
            result.detected_patterns.append(DetectedPattern(
                type=category.category,
                pattern=entry.pattern,
                description=entry.description,
                severity=category.severity,
                matches=matches,
            ))
            if category.alternative and category.alternative not in result.alternatives:
                result.alternatives.append(category.alternative)

        result.score = max(0, 100 - penalty)
        if result.detected_patterns:
            logger.debug(
                f"[Scoring] Template score {result.score} ({len(result.detected_patterns)} patterns)"
            )
        return result
