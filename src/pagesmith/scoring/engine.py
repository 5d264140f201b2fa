"""
RuleEngine -- scores an artifact against the rule catalog.

Parses the artifact once, runs one detector per rule (registry lookup with the
generic keyword heuristic as fallback), and aggregates per-category results
into a ValidationReport. Pure and deterministic: the same artifact and catalog
always give the same report.

Score = round((#PASS + 0.5 * #PARTIAL) / total * 100). Any mandatory FAIL
forces NON-COMPLIANT regardless of score.
"""

import logging
from typing import Any

from .artifact import ParsedArtifact
from .catalog import RuleCatalog
from .detectors import get_detector
from .models import (
    CategoryResult,
    Compliance,
    MandatoryFailure,
    RuleDefinition,
    RuleResult,
    RuleStatus,
    ValidationReport,
    ValidationSummary,
)

logger = logging.getLogger(__name__)

NEEDS_IMPROVEMENT_FLOOR = 60


def compute_score(results: list[RuleResult]) -> int:
    if not results:
        return 0
    return round(sum(r.weight for r in results) / len(results) * 100)


def determine_compliance(
    score: int, mandatory_failures: list[MandatoryFailure], base_threshold: float
) -> Compliance:
    if mandatory_failures:
        return Compliance.NON_COMPLIANT
    if score >= base_threshold:
        return Compliance.COMPLIANT
    if score >= NEEDS_IMPROVEMENT_FLOOR:
        return Compliance.NEEDS_IMPROVEMENT
    return Compliance.NON_COMPLIANT


class RuleEngine:
    """Primary rule-based scorer.

    Usage:
        engine = RuleEngine(RuleCatalog.load())
        report = engine.score(artifact_text)
        report.overall_score, report.compliance
    """

    def __init__(self, catalog: RuleCatalog | None = None, base_threshold: float | None = None):
        self.catalog = catalog or RuleCatalog.load()
        self.base_threshold = (
            base_threshold if base_threshold is not None else self.catalog.passing_threshold
        )

    def score(self, artifact: str, metadata: dict[str, Any] | None = None) -> ValidationReport:
        parsed = ParsedArtifact.parse(artifact)
        categories: dict[str, CategoryResult] = {}
        all_results: list[RuleResult] = []
        mandatory_failures: list[MandatoryFailure] = []

        for name, rules in self.catalog.categories.items():
            category = self._score_category(name, rules, parsed)
            categories[name] = category
            all_results.extend(category.rules)
            mandatory_failures.extend(category.mandatory_failures)

        overall = compute_score(all_results)
        compliance = determine_compliance(overall, mandatory_failures, self.base_threshold)
        summary = ValidationSummary(
            total_rules=len(all_results),
            passed_rules=sum(1 for r in all_results if r.status is RuleStatus.PASS),
            partial_rules=sum(1 for r in all_results if r.status is RuleStatus.PARTIAL),
            failed_rules=sum(1 for r in all_results if r.status is RuleStatus.FAIL),
            mandatory_failures=mandatory_failures,
        )

        report = ValidationReport(
            overall_score=overall,
            rule_score=overall,
            passed=overall >= self.base_threshold and not mandatory_failures,
            compliance=compliance,
            categories=categories,
            summary=summary,
            critical_issues=self._critical_issues(overall, mandatory_failures),
            recommendations=[rec for c in categories.values() for rec in c.recommendations],
        )
        logger.debug(
            f"[Scoring] Rule score {overall}% ({summary.passed_rules} pass, "
            f"{summary.partial_rules} partial, {summary.failed_rules} fail) -> {compliance.value}"
        )
        return report

    def _score_category(
        self, name: str, rules: list[RuleDefinition], parsed: ParsedArtifact
    ) -> CategoryResult:
        category = CategoryResult(category=name, max_score=len(rules))
        for rule in rules:
            result = self._run_detector(rule, parsed)
            category.rules.append(result)
            category.score += result.weight

            if result.status is RuleStatus.FAIL and rule.mandatory:
                category.mandatory_failures.append(MandatoryFailure(
                    rule=rule.id,
                    text=rule.text,
                    issue=result.issue or result.reason,
                ))
            if result.recommendation:
                category.recommendations.append(result.recommendation)
            if result.issue:
                category.issues.append(result.issue)
        return category

    @staticmethod
    def _run_detector(rule: RuleDefinition, parsed: ParsedArtifact) -> RuleResult:
        try:
            return get_detector(rule.id)(parsed, rule)
        except Exception as e:
            logger.warning(f"[Scoring] Detector for {rule.id} raised: {e}")
            return RuleResult(
                rule_id=rule.id,
                category=rule.category,
                text=rule.text,
                mandatory=rule.mandatory,
                status=RuleStatus.FAIL,
                reason=f"Validation error: {e}",
                issue="Could not validate rule due to processing error",
            )

    def _critical_issues(self, score: int, mandatory_failures: list[MandatoryFailure]) -> list[str]:
        issues = []
        if mandatory_failures:
            ids = ", ".join(f.rule for f in mandatory_failures)
            issues.append(f"CRITICAL: Mandatory rules failed: {ids}")
        if score < NEEDS_IMPROVEMENT_FLOOR:
            issues.append(f"CRITICAL: Overall score {score}% indicates significant UI/UX issues")
        elif score < self.base_threshold:
            issues.append(
                f"WARNING: Score {score}% below required {self.base_threshold:g}% threshold for compliance"
            )
        return issues
