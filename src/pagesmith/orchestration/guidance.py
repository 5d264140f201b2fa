"""
TargetedGuidance -- what the refine stage should fix on its next attempt.

Built from the latest ValidationReport after every non-terminal loop
iteration. Failed rules become priority fixes (top 10) with class-level
instructions; when nothing failed outright, a fixed list of fallback fixes is
used, sliced to ceil(needed_improvement / 10).
"""

import math
from dataclasses import asdict, dataclass, field

from ..scoring.models import ValidationReport

MAX_PRIORITY_FIXES = 10

CATEGORY_INSTRUCTIONS = {
    "LayoutAndStructure": "add responsive breakpoint classes (sm:, md:, lg:) to text, spacing and grid containers",
    "VisualDesign": "apply the industry palette with consistent rounded corners, shadows and transitions",
    "Navigation": "add a header nav with descriptive links and a mobile menu toggle",
    "InteractionAndFeedback": "add focus/hover/active state classes to all interactive elements",
    "AccessibilityAndInclusivity": "add aria labels, semantic landmarks, alt text and visible focus rings",
}

RULE_INSTRUCTIONS = {
    "responsiveDesign": {
        "target_elements": ["div", "section", "h1", "h2", "h3", "p"],
        "classes": "text-sm sm:text-base md:text-lg lg:text-xl p-4 sm:p-6 md:p-8",
        "description": "Add responsive text sizing and padding to all major elements",
    },
    "interactionStates": {
        "target_elements": ["button", "a", "[onClick]"],
        "classes": "hover:bg-blue-600 focus:bg-blue-600 hover:scale-105 transition-all duration-200",
        "description": "Add hover and focus states with transitions to all interactive elements",
    },
    "colorContrast": {
        "target_elements": ["text-black", "text-white"],
        "classes": "text-gray-900 text-gray-100",
        "description": "Replace harsh black/white with softer gray tones",
    },
    "glassmorphism": {
        "target_elements": ["main containers", "cards"],
        "classes": "backdrop-blur-sm bg-white/10 border border-white/20 shadow-xl",
        "description": "Add layered translucency to main containers",
    },
}

FALLBACK_FIXES = [
    {
        "rule": "responsiveDesign",
        "category": "LayoutAndStructure",
        "recommendation": "Add responsive classes to all elements",
        "target_elements": ["all containers"],
        "classes": "p-4 sm:p-6 md:p-8 text-sm sm:text-base md:text-lg",
    },
    {
        "rule": "interactionStates",
        "category": "InteractionAndFeedback",
        "recommendation": "Add hover/focus states to interactive elements",
        "target_elements": ["buttons", "links"],
        "classes": "hover:bg-blue-600 focus:bg-blue-600 transition-colors duration-200",
    },
    {
        "rule": "accessibilityBaseline",
        "category": "AccessibilityAndInclusivity",
        "recommendation": "Add focus indicators to interactive elements",
        "target_elements": ["buttons", "inputs", "links"],
        "classes": "focus:ring-2 focus:ring-blue-500 focus:outline-none",
    },
    {
        "rule": "colorContrast",
        "category": "VisualDesign",
        "recommendation": "Improve color contrast",
        "target_elements": ["text elements"],
        "classes": "text-gray-900 bg-gray-50 border-gray-200",
    },
    {
        "rule": "animations",
        "category": "VisualDesign",
        "recommendation": "Add smooth transitions",
        "target_elements": ["interactive elements"],
        "classes": "transition-all duration-200 hover:scale-105",
    },
]


def _empty_instructions() -> dict[str, list[dict]]:
    return {key: [] for key in (*RULE_INSTRUCTIONS, "industrySpecific", "templateFixes")}


@dataclass
class TargetedGuidance:
    score: int
    target: float
    needed_improvement: float
    attempts_remaining: int
    priority_fixes: list[dict] = field(default_factory=list)
    category_instructions: dict[str, str] = field(default_factory=dict)
    specific_instructions: dict[str, list[dict]] = field(default_factory=_empty_instructions)

    def to_dict(self) -> dict:
        return asdict(self)


def build_guidance(
    report: ValidationReport, target: float, attempts_remaining: int
) -> TargetedGuidance:
    score = report.overall_score
    guidance = TargetedGuidance(
        score=score,
        target=target,
        needed_improvement=max(0, target - score),
        attempts_remaining=attempts_remaining,
    )

    failed = report.failed_rules()[:MAX_PRIORITY_FIXES]
    if failed:
        guidance.priority_fixes = [
            {
                "rule": r.rule_id,
                "category": r.category,
                "reason": r.reason,
                "recommendation": r.recommendation,
            }
            for r in failed
        ]
        for rule in failed:
            if rule.rule_id in RULE_INSTRUCTIONS:
                guidance.specific_instructions[rule.rule_id].append(
                    dict(RULE_INSTRUCTIONS[rule.rule_id])
                )
    else:
        fixes = FALLBACK_FIXES[: math.ceil(guidance.needed_improvement / 10)]
        guidance.priority_fixes = [dict(f) for f in fixes]
        for fix in fixes:
            if fix["rule"] in guidance.specific_instructions:
                guidance.specific_instructions[fix["rule"]].append({
                    "target_elements": fix["target_elements"],
                    "classes": fix["classes"],
                    "description": fix["recommendation"],
                })

    for fix in guidance.priority_fixes:
        category = fix["category"]
        if category in CATEGORY_INSTRUCTIONS:
            guidance.category_instructions.setdefault(category, CATEGORY_INSTRUCTIONS[category])

    for key in ("industrySpecific", "templateFixes"):
        guidance.specific_instructions[key].extend(report.specific_guidance.get(key, []))
    return guidance
