"""
IndustrySpecificityScorer -- checks an artifact against its industry profile.

Profiles (data/industry_profiles.json) list required and forbidden color
families, required sections, trust factors and a tone. Four sub-scores are
averaged into the industry score:

    colors      50, +30 if a required color is present,
                -25 if a forbidden color is present (else +20), clamped 0..100
    content     40 + sections ratio * 40 + trust ratio * 20
    visual      60 + 25 if a tone keyword is present + modern-pattern ratio * 15
    template    TemplateAvoidanceScorer score
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from .catalog import load_json_document
from .templates import TemplateAvoidanceScorer, TemplateResult

logger = logging.getLogger(__name__)


# =============================================================================
# PROFILE TABLE
# =============================================================================


class IndustryProfile(BaseModel):
    name: str
    aliases: list[str] = Field(default_factory=list)
    required_colors: list[str] = Field(..., min_length=1)
    forbidden_colors: list[str] = Field(default_factory=list)
    required_sections: list[str] = Field(..., min_length=1)
    trust_factors: list[str] = Field(..., min_length=1)
    tone: str = "default"


class IndustryProfileDocument(BaseModel):
    version: str = "1"
    default_industry: str = "Technology"
    profiles: list[IndustryProfile] = Field(..., min_length=1)
    tone_keywords: dict[str, list[str]] = Field(default_factory=dict)
    color_variations: dict[str, list[str]] = Field(default_factory=dict)
    modern_patterns: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_exists(self) -> "IndustryProfileDocument":
        if self.default_industry not in {p.name for p in self.profiles}:
            raise ValueError(f"default industry {self.default_industry!r} has no profile")
        return self


class IndustryProfiles:
    """Lookup and resolution over the profile table."""

    def __init__(self, document: IndustryProfileDocument):
        self.document = document
        self._by_key: dict[str, IndustryProfile] = {}
        for profile in document.profiles:
            for key in [profile.name, *profile.aliases]:
                self._by_key.setdefault(key.lower(), profile)
        aliases = sorted(self._by_key, key=len, reverse=True)
        self._detector = re.compile(
            r"\b(" + "|".join(re.escape(a).replace(r"\ ", r"[\s-]?") for a in aliases) + r")\b",
            re.IGNORECASE,
        )

    @classmethod
    def load(cls, path: Path | None = None) -> "IndustryProfiles":
        if path is None:
            from ..config import DATA_DIR

            path = DATA_DIR / "industry_profiles.json"
        return cls(load_json_document(path, IndustryProfileDocument))

    @property
    def default(self) -> IndustryProfile:
        return self._by_key[self.document.default_industry.lower()]

    def get(self, name: str | None) -> IndustryProfile | None:
        if not isinstance(name, str) or not name.strip():
            return None
        return self._by_key.get(name.strip().lower())

    def detect(self, text: str | None) -> IndustryProfile | None:
        """First industry keyword mentioned in free text."""
        if not isinstance(text, str) or not text:
            return None
        match = self._detector.search(text)
        if not match:
            return None
        return self._by_key.get(re.sub(r"[\s-]", " ", match.group(1).lower())) or self.get(
            match.group(1)
        )

    def resolve(self, industry: str | None = None, text: str | None = None) -> IndustryProfile:
        """Explicit industry, else keyword detection on text, else the default."""
        return self.get(industry) or self.detect(text) or self.default

    def tone_keywords(self, tone: str) -> list[str]:
        keywords = self.document.tone_keywords
        return keywords.get(tone) or keywords.get("default", [])

    def color_variations(self, color: str) -> list[str]:
        return self.document.color_variations.get(color, [])


# =============================================================================
# SCORER
# =============================================================================


@dataclass
class SubScore:
    score: int
    passed: bool
    findings: list[str] = field(default_factory=list)
    found: list[str] = field(default_factory=list)


@dataclass
class IndustryViolation:
    type: str
    description: str


@dataclass
class IndustryResult:
    industry: str
    score: int
    colors: SubScore
    content: SubScore
    visual: SubScore
    template_avoidance: int
    violations: list[IndustryViolation] = field(default_factory=list)
    recommendations: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _mentions(text: str, token: str) -> bool:
    if token.endswith("-"):
        return re.search(r"\b" + re.escape(token), text) is not None
    return re.search(r"\b" + re.escape(token) + r"\b", text) is not None


class IndustrySpecificityScorer:
    """Scores industry fit of an artifact.

    Usage:
        scorer = IndustrySpecificityScorer.load()
        result = scorer.score(artifact_text, industry="Healthcare")
    """

    def __init__(
        self,
        profiles: IndustryProfiles,
        template_scorer: TemplateAvoidanceScorer | None = None,
    ):
        self.profiles = profiles
        self.template_scorer = template_scorer or TemplateAvoidanceScorer.load()

    @classmethod
    def load(
        cls, path: Path | None = None, template_path: Path | None = None
    ) -> "IndustrySpecificityScorer":
        return cls(IndustryProfiles.load(path), TemplateAvoidanceScorer.load(template_path))

    def score(
        self,
        artifact: str,
        industry: str | None = None,
        request_text: str | None = None,
        template: TemplateResult | None = None,
    ) -> IndustryResult:
        profile = self.profiles.resolve(industry, request_text)
        text = (artifact or "").lower()
        template = template or self.template_scorer.score(artifact)

        colors, color_violations = self._score_colors(text, profile)
        content, missing_sections = self._score_content(text, profile)
        visual = self._score_visual(text, profile)

        score = round((colors.score + content.score + visual.score + template.score) / 4)
        violations = color_violations
        if missing_sections:
            violations.append(IndustryViolation(
                type="missing_sections",
                description=f"{profile.name} pages need sections: {', '.join(missing_sections)}",
            ))

        result = IndustryResult(
            industry=profile.name,
            score=score,
            colors=colors,
            content=content,
            visual=visual,
            template_avoidance=template.score,
            violations=violations,
        )
        result.recommendations = self._recommendations(result, profile, template)
        logger.debug(
            f"[Scoring] Industry {profile.name}: {score} (colors={colors.score}, "
            f"content={content.score}, visual={visual.score}, template={template.score})"
        )
        return result

    def _has_color(self, text: str, color: str) -> bool:
        return _mentions(text, color) or any(
            _mentions(text, v) for v in self.profiles.color_variations(color)
        )

    def _score_colors(
        self, text: str, profile: IndustryProfile
    ) -> tuple[SubScore, list[IndustryViolation]]:
        score = 50
        findings = []
        violations = []

        required = [c for c in profile.required_colors if self._has_color(text, c)]
        if required:
            score += 30
            findings.append("Industry-appropriate colors detected")
        else:
            findings.append(f"Missing industry-specific colors: {', '.join(profile.required_colors)}")
            violations.append(IndustryViolation(
                type="missing_colors",
                description=(
                    f"No {profile.name} palette colors found "
                    f"(expected one of: {', '.join(profile.required_colors)})"
                ),
            ))

        forbidden = [c for c in profile.forbidden_colors if self._has_color(text, c)]
        if forbidden:
            score -= 25
            findings.append(f"Inappropriate colors detected for {profile.name}")
            violations.append(IndustryViolation(
                type="forbidden_colors",
                description=f"Colors inappropriate for {profile.name}: {', '.join(forbidden)}",
            ))
        else:
            score += 20

        score = max(0, min(100, score))
        return SubScore(score=score, passed=score >= 75, findings=findings, found=required), violations

    @staticmethod
    def _score_content(text: str, profile: IndustryProfile) -> tuple[SubScore, list[str]]:
        sections = [s for s in profile.required_sections if s in text or s.replace("-", " ") in text]
        trust = [t for t in profile.trust_factors if t in text or t.replace("-", " ") in text]
        raw = (
            40
            + len(sections) / len(profile.required_sections) * 40
            + len(trust) / len(profile.trust_factors) * 20
        )
        findings = [
            f"Found {len(sections)}/{len(profile.required_sections)} required sections",
            f"Found {len(trust)}/{len(profile.trust_factors)} trust factors",
        ]
        missing = [s for s in profile.required_sections if s not in sections]
        return (
            SubScore(score=round(raw), passed=raw >= 70, findings=findings, found=sections + trust),
            missing,
        )

    def _score_visual(self, text: str, profile: IndustryProfile) -> SubScore:
        raw = 60.0
        findings = []
        tone = [k for k in self.profiles.tone_keywords(profile.tone) if _mentions(text, k)]
        if tone:
            raw += 25
            findings.append(f"Industry tone detected: {', '.join(tone)}")
        else:
            findings.append(f"Missing industry tone keywords for {profile.tone}")

        modern = self.profiles.document.modern_patterns
        found = [p for p in modern if p in text]
        if modern:
            raw += len(found) / len(modern) * 15
        findings.append(f"Modern patterns: {len(found)}/{len(modern)}")
        return SubScore(score=round(raw), passed=raw >= 75, findings=findings, found=tone)

    @staticmethod
    def _recommendations(
        result: IndustryResult, profile: IndustryProfile, template: TemplateResult
    ) -> list[dict]:
        recommendations = []
        if not result.colors.passed:
            recommendations.append({
                "category": "Color System",
                "priority": "high",
                "issue": "Industry-inappropriate color palette",
                "solution": f"Use {', '.join(profile.required_colors)} colors for {profile.name}",
            })
        if not template.passed:
            recommendations.append({
                "category": "Creative Implementation",
                "priority": "high",
                "issue": "Template patterns detected",
                "solution": "Replace template patterns with creative alternatives",
                "example": template.alternatives[0] if template.alternatives else "",
            })
        if not result.content.passed:
            recommendations.append({
                "category": "Content Strategy",
                "priority": "medium",
                "issue": "Missing industry-specific content",
                "solution": f"Include {profile.name}-specific sections and trust factors",
                "example": f"Add sections for {', '.join(profile.required_sections)}",
            })
        return recommendations
