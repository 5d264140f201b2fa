"""
Rule-based scoring -- scores generated artifacts against a UI/UX rule catalog.

Components:
  - catalog: RuleCatalog loaded from data/ui_rules.json
  - artifact: ParsedArtifact, parsed once per scoring pass
  - detectors: rule id -> detector registry with a generic keyword fallback
  - engine: RuleEngine producing a ValidationReport
  - templates / industry: secondary scorers
  - guidance: specific guidance, actionable fixes, design compliance
  - validator: ArtifactValidator, the combined gate used as the scoring stage
"""

from .artifact import ParsedArtifact
from .catalog import RuleCatalog
from .detectors import DETECTORS, detector, generic_keyword_rule
from .engine import RuleEngine
from .guidance import actionable_fixes, check_design_compliance, specific_guidance
from .industry import IndustryProfiles, IndustryResult, IndustrySpecificityScorer
from .models import (
    CategoryResult,
    Compliance,
    RuleDefinition,
    RuleResult,
    RuleStatus,
    ValidationReport,
)
from .templates import TemplateAvoidanceScorer, TemplateResult
from .validator import ArtifactValidator

__all__ = [
    "ArtifactValidator",
    "CategoryResult",
    "Compliance",
    "DETECTORS",
    "IndustryProfiles",
    "IndustryResult",
    "IndustrySpecificityScorer",
    "ParsedArtifact",
    "RuleCatalog",
    "RuleDefinition",
    "RuleEngine",
    "RuleResult",
    "RuleStatus",
    "TemplateAvoidanceScorer",
    "TemplateResult",
    "ValidationReport",
    "actionable_fixes",
    "check_design_compliance",
    "detector",
    "generic_keyword_rule",
    "specific_guidance",
]
