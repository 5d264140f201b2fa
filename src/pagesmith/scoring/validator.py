"""
ArtifactValidator -- the scoring stage: rule engine plus the combined gate.

Runs the rule engine, the template-avoidance and industry-specificity
scorers and the content-utilization analyzer, then folds them into one
canonical score:

    adjusted = rule_score
               - (template_threshold - template) * template_weight   if template < threshold
               - (industry_threshold - industry) * industry_weight   if industry < threshold
    adjusted = round(max(0, adjusted))
    utilization below threshold -> critical issue, adjusted capped at 70

    passed = adjusted >= gate_threshold and utilization passed
             and template >= template_threshold and industry >= industry_threshold
             and no mandatory rule failed

The report's overall_score becomes the adjusted score; rule_score keeps the
raw engine value.
"""

import logging
from typing import Any, Mapping

from ..config import CONTENT_SCORE_CAP, PipelineConfig
from ..content import ContentUtilizationAnalyzer, UtilizationReport
from ..errors import ScoringFailure
from .catalog import RuleCatalog
from .engine import RuleEngine
from .guidance import actionable_fixes, check_design_compliance, specific_guidance
from .industry import IndustryProfiles, IndustryResult, IndustrySpecificityScorer
from .models import ValidationReport
from .templates import TemplateAvoidanceScorer, TemplateResult

logger = logging.getLogger(__name__)


def _text_field(metadata: Mapping[str, Any], key: str) -> str | None:
    """A metadata string, or None. Other shapes are skipped with a warning."""
    value = metadata.get(key)
    if value is None or isinstance(value, str):
        return value
    logger.warning(
        f"[Scoring] Ignoring request metadata '{key}': expected a string, got {type(value).__name__}"
    )
    return None


class ArtifactValidator:
    """Scoring-stage implementation.

    Usage:
        validator = ArtifactValidator(PipelineConfig())
        report = await validator(artifact, request_metadata, design, content)
        report.overall_score, report.passed
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        catalog: RuleCatalog | None = None,
        template_scorer: TemplateAvoidanceScorer | None = None,
        industry_scorer: IndustrySpecificityScorer | None = None,
    ):
        self.config = config or PipelineConfig()
        catalog = catalog or RuleCatalog.load(
            self.config.rules_path, mandatory_rules=self.config.mandatory_rules
        )
        self.engine = RuleEngine(catalog, base_threshold=self.config.base_threshold)
        self.template_scorer = template_scorer or TemplateAvoidanceScorer.load(
            self.config.template_patterns_path
        )
        self.industry_scorer = industry_scorer or IndustrySpecificityScorer(
            IndustryProfiles.load(self.config.industry_profiles_path), self.template_scorer
        )
        self.analyzer = ContentUtilizationAnalyzer(self.config.content_threshold)

    async def __call__(
        self,
        artifact: str,
        request_metadata: Mapping[str, Any] | None = None,
        design_metadata: Mapping[str, Any] | None = None,
        content_payload: Any = None,
    ) -> ValidationReport:
        return self.validate(artifact, request_metadata, design_metadata, content_payload)

    def validate(
        self,
        artifact: str,
        request_metadata: Mapping[str, Any] | None = None,
        design_metadata: Mapping[str, Any] | None = None,
        content_payload: Any = None,
    ) -> ValidationReport:
        """Score an artifact. Raises ScoringFailure if any scorer breaks."""
        if not isinstance(artifact, str) or not artifact.strip():
            raise ScoringFailure("No artifact text to score")
        request_metadata = request_metadata or {}

        try:
            report = self.engine.score(artifact, dict(request_metadata))
            template = self.template_scorer.score(artifact)
            industry = self.industry_scorer.score(
                artifact,
                industry=_text_field(request_metadata, "industry"),
                request_text=_text_field(request_metadata, "request_text")
                or _text_field(request_metadata, "description"),
                template=template,
            )
            utilization = (
                self.analyzer.analyze(content_payload, artifact)
                if content_payload is not None
                else None
            )
            self._apply_gate(report, template, industry, utilization)
            report.specific_guidance = specific_guidance(report, industry, template)
            report.actionable_fixes = actionable_fixes(artifact)
            if design_metadata:
                report.design_compliance = check_design_compliance(artifact, design_metadata)
        except ScoringFailure:
            raise
        except Exception as e:
            raise ScoringFailure(f"Scoring failed: {e}") from e

        logger.info(
            f"[Scoring] Score {report.overall_score}% (rules {report.rule_score}%, "
            f"template {template.score}, industry {industry.score} {industry.industry}) "
            f"passed={report.passed}"
        )
        return report

    def _apply_gate(
        self,
        report: ValidationReport,
        template: TemplateResult,
        industry: IndustryResult,
        utilization: UtilizationReport | None,
    ) -> None:
        cfg = self.config
        adjusted = float(report.rule_score)

        if template.score < cfg.template_threshold:
            penalty = (cfg.template_threshold - template.score) * cfg.template_weight
            adjusted -= penalty
            logger.debug(f"[Scoring] Template penalty -{penalty:.1f}")
        if industry.score < cfg.industry_threshold:
            penalty = (cfg.industry_threshold - industry.score) * cfg.industry_weight
            adjusted -= penalty
            logger.debug(f"[Scoring] Industry penalty -{penalty:.1f}")
        score = round(max(0.0, adjusted))

        utilization_passed = True
        if utilization is not None:
            report.content_utilization = utilization.to_dict()
            report.content_utilization["percentage"] = utilization.percentage
            utilization_passed = utilization.passed
            if not utilization.passed:
                report.critical_issues.append(
                    f"Low content utilization: {utilization.percentage}% "
                    f"(required: {round(cfg.content_threshold * 100)}%+)"
                )
                score = min(CONTENT_SCORE_CAP, score)

        for pattern in template.detected_patterns:
            report.critical_issues.append(
                f"Template pattern detected: {pattern.type} - {pattern.description}"
            )
        for violation in industry.violations:
            report.critical_issues.append(
                f"Industry specificity violation: {violation.type} - {violation.description}"
            )

        report.overall_score = score
        report.passed = (
            score >= cfg.gate_threshold
            and utilization_passed
            and template.score >= cfg.template_threshold
            and industry.score >= cfg.industry_threshold
            and report.mandatory_rules_passed
        )
        report.template = template.to_dict()
        report.industry = industry.to_dict()
