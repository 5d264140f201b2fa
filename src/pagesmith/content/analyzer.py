"""
Content-utilization analyzer -- how much of the supplied content made it in.

analyze(content_payload, artifact_text) -> UtilizationReport

Pure function of its inputs. Elements come from elements.extract_elements,
usage from the matching cascade. Labels are evaluated after values so a label
can inherit usage from its paired value.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import DEFAULT_CONTENT_THRESHOLD
from .elements import ContentElement, ElementKind, Priority, extract_elements
from .matching import ContentMatcher, MatchStrategy

logger = logging.getLogger(__name__)

CRITICAL_TYPES = frozenset({
    "hero_title",
    "hero_subtitle",
    "hero_cta_0",
    "feature_title_0",
    "feature_title_1",
    "feature_title_2",
    "stat_value_0",
    "testimonial_quote_0",
})
SECTION_MISSING_LIMIT = 2
PREVIEW_LENGTH = 50


@dataclass
class ElementUsage:
    """Outcome for one element, kept for reporting."""

    element: ContentElement
    used: bool
    strategy: MatchStrategy


@dataclass
class UtilizationReport:
    total_elements: int = 0
    used_elements: int = 0
    missing_elements: list[ContentElement] = field(default_factory=list)
    critical_missing: list[ContentElement] = field(default_factory=list)
    utilization_rate: float = 0.0
    threshold: float = DEFAULT_CONTENT_THRESHOLD
    passed: bool = False
    recommendations: list[str] = field(default_factory=list)
    details: list[ElementUsage] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        return round(self.utilization_rate * 100)

    def to_dict(self) -> dict:
        return {
            "total_elements": self.total_elements,
            "used_elements": self.used_elements,
            "utilization_rate": self.utilization_rate,
            "passed": self.passed,
            "missing_elements": [e.type for e in self.missing_elements],
            "critical_missing": [e.type for e in self.critical_missing],
            "recommendations": list(self.recommendations),
        }


def is_critical(element: ContentElement) -> bool:
    return element.priority is Priority.CRITICAL or element.type in CRITICAL_TYPES


class ContentUtilizationAnalyzer:
    """Measures content utilization of an artifact against a content payload.

    Usage:
        analyzer = ContentUtilizationAnalyzer(threshold=0.8)
        report = analyzer.analyze(content_payload, artifact_text)
        if not report.passed:
            print(report.recommendations)
    """

    def __init__(self, threshold: float = DEFAULT_CONTENT_THRESHOLD):
        if not 0 <= threshold <= 1:
            raise ValueError(f"threshold must be in [0, 1] (got {threshold})")
        self.threshold = threshold

    def analyze(self, content_payload: Any, artifact: str) -> UtilizationReport:
        elements = extract_elements(content_payload)
        report = UtilizationReport(total_elements=len(elements), threshold=self.threshold)
        if not elements:
            logger.info("[Content] No content elements to check")
            report.recommendations.append(
                "No content elements found in the content payload"
            )
            return report

        matcher = ContentMatcher(artifact)
        used_values: set[int] = set()
        usages: dict[int, ElementUsage] = {}

        # Values before labels so label linkage sees the value outcome.
        ordered = sorted(
            range(len(elements)),
            key=lambda i: elements[i].kind is ElementKind.STAT_LABEL,
        )
        for i in ordered:
            element = elements[i]
            outcome = matcher.match(
                element,
                paired_value_used=(
                    element.kind is ElementKind.STAT_LABEL and element.index in used_values
                ),
            )
            if outcome.used and element.kind is ElementKind.STAT_VALUE:
                used_values.add(element.index)
            usages[i] = ElementUsage(element, outcome.used, outcome.strategy)

        report.details = [usages[i] for i in range(len(elements))]
        for usage in report.details:
            if usage.used:
                report.used_elements += 1
            else:
                report.missing_elements.append(usage.element)
                if is_critical(usage.element):
                    report.critical_missing.append(usage.element)

        report.utilization_rate = report.used_elements / report.total_elements
        report.passed = report.utilization_rate >= self.threshold
        report.recommendations = self._recommendations(report)

        logger.info(
            f"[Content] Utilization {report.percentage}% "
            f"({report.used_elements}/{report.total_elements}), "
            f"{len(report.critical_missing)} critical missing"
        )
        return report

    def _recommendations(self, report: UtilizationReport) -> list[str]:
        recommendations = []
        if report.utilization_rate < self.threshold:
            recommendations.append(
                f"CRITICAL: Content utilization {report.percentage}% is below the "
                f"required {round(self.threshold * 100)}%. Use the supplied content "
                f"verbatim instead of placeholder or generic text."
            )
        for element in report.critical_missing:
            preview = element.content[:PREVIEW_LENGTH]
            recommendations.append(f'Missing critical {element.type}: "{preview}..."')

        missing_by_section: dict[str, int] = {}
        for element in report.missing_elements:
            missing_by_section[element.section] = missing_by_section.get(element.section, 0) + 1
        for section, count in missing_by_section.items():
            if count > SECTION_MISSING_LIMIT:
                recommendations.append(
                    f"{section} section is missing {count} content elements"
                )
        return recommendations


def analyze(
    content_payload: Any, artifact: str, threshold: float = DEFAULT_CONTENT_THRESHOLD
) -> UtilizationReport:
    """Module-level shortcut for ContentUtilizationAnalyzer(threshold).analyze()."""
    return ContentUtilizationAnalyzer(threshold).analyze(content_payload, artifact)
