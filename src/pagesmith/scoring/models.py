"""Data models for the rule-based scoring engine."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class RuleStatus(str, Enum):
    PASS = "PASS"
    PARTIAL = "PARTIAL"
    FAIL = "FAIL"


class Compliance(str, Enum):
    COMPLIANT = "COMPLIANT"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    NON_COMPLIANT = "NON-COMPLIANT"


STATUS_WEIGHTS = {RuleStatus.PASS: 1.0, RuleStatus.PARTIAL: 0.5, RuleStatus.FAIL: 0.0}


@dataclass(frozen=True)
class RuleDefinition:
    """A single catalog rule.

    Attributes:
        id: Detector registry key (e.g. "responsiveDesign").
        category: Catalog category name (e.g. "LayoutAndStructure").
        text: Human-readable rule; drives the generic keyword heuristic.
        mandatory: A FAIL forces NON-COMPLIANT regardless of score.
    """

    id: str
    category: str
    text: str
    mandatory: bool = False


@dataclass
class RuleResult:
    """Outcome of one detector for one rule."""

    rule_id: str
    category: str
    text: str
    mandatory: bool = False
    status: RuleStatus = RuleStatus.FAIL
    reason: str = ""
    issue: str | None = None
    recommendation: str | None = None
    evidence: list[str] = field(default_factory=list)

    @property
    def weight(self) -> float:
        return STATUS_WEIGHTS[self.status]


@dataclass
class MandatoryFailure:
    rule: str
    text: str
    issue: str


@dataclass
class CategoryResult:
    """Per-category aggregate. score counts PASS as 1 and PARTIAL as 0.5."""

    category: str
    score: float = 0.0
    max_score: int = 0
    rules: list[RuleResult] = field(default_factory=list)
    mandatory_failures: list[MandatoryFailure] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    @property
    def score_percentage(self) -> int:
        if not self.max_score:
            return 0
        return round(self.score / self.max_score * 100)


@dataclass
class ValidationSummary:
    total_rules: int = 0
    passed_rules: int = 0
    partial_rules: int = 0
    failed_rules: int = 0
    mandatory_failures: list[MandatoryFailure] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Scoring outcome for one artifact.

    overall_score is the canonical current score. The rule engine sets it to
    the raw rule score; ArtifactValidator replaces it with the gated score
    (penalties and content cap applied) and keeps the raw value in rule_score.
    Loop stopping, history and reporting all read overall_score.
    """

    overall_score: int = 0
    rule_score: int = 0
    passed: bool = False
    compliance: Compliance = Compliance.NON_COMPLIANT
    categories: dict[str, CategoryResult] = field(default_factory=dict)
    summary: ValidationSummary = field(default_factory=ValidationSummary)
    critical_issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    # Filled in by ArtifactValidator
    content_utilization: dict[str, Any] | None = None
    industry: dict[str, Any] | None = None
    template: dict[str, Any] | None = None
    design_compliance: dict[str, Any] | None = None
    specific_guidance: dict[str, list[dict]] = field(default_factory=dict)
    actionable_fixes: list[dict] = field(default_factory=list)

    @property
    def mandatory_rules_passed(self) -> bool:
        return not self.summary.mandatory_failures

    def rule_results(self) -> list[RuleResult]:
        return [r for c in self.categories.values() for r in c.rules]

    def failed_rules(self) -> list[RuleResult]:
        return [r for r in self.rule_results() if r.status is RuleStatus.FAIL]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["compliance"] = self.compliance.value
        for category in data["categories"].values():
            for rule in category["rules"]:
                rule["status"] = rule["status"].value
            category["score_percentage"] = self.categories[category["category"]].score_percentage
        return data
