"""
Refinement guidance derived from a scored artifact.

- specific_guidance(): Tailwind class suggestions per failed rule, per
  industry violation and per detected template pattern.
- actionable_fixes(): line-level before/after rewrites (at most 10).
- check_design_compliance(): how closely the artifact follows the design
  payload (colors, fonts, micro-interactions, layout).
"""

import re
from typing import Any, Mapping

from .industry import IndustryResult
from .models import RuleStatus, ValidationReport
from .templates import TemplateResult

MAX_ACTIONABLE_FIXES = 10


# =============================================================================
# SPECIFIC GUIDANCE
# =============================================================================

RULE_GUIDANCE = {
    "interactionStates": {
        "issue": "Missing hover/focus states on interactive elements",
        "fix": "Add hover:bg-blue-600 hover:scale-105 focus:ring-2 focus:ring-blue-500 to buttons",
        "target_elements": ["button", "a", "input"],
        "classes": "hover:bg-blue-600 hover:scale-105 focus:ring-2 focus:ring-blue-500 transition-all duration-200",
    },
    "responsiveDesign": {
        "issue": "Insufficient responsive breakpoints",
        "fix": "Add responsive classes: text-sm sm:text-base md:text-lg, px-4 md:px-8, py-2 md:py-4",
        "target_elements": ["text elements", "containers"],
        "classes": "text-sm sm:text-base md:text-lg px-4 md:px-8 py-2 md:py-4",
    },
    "colorContrast": {
        "issue": "Low color contrast ratios detected",
        "fix": "Replace text-gray-400 with text-gray-700, text-blue-300 with text-blue-600",
        "target_elements": ["text elements"],
        "classes": "text-gray-700 dark:text-gray-300 text-blue-600 dark:text-blue-400",
    },
    "glassmorphism": {
        "issue": "Missing modern glassmorphism effects",
        "fix": "Add backdrop-blur-sm bg-white/20 border border-white/30 to cards",
        "target_elements": ["cards", "modals", "overlays"],
        "classes": "backdrop-blur-sm bg-white/20 dark:bg-gray-900/20 border border-white/30 dark:border-gray-700/30",
    },
}

INDUSTRY_FIXES = {
    "healthcare": (
        "Use medical-appropriate colors: bg-green-50 text-green-800, emphasize trust and professionalism",
        "bg-green-50 text-green-800 border-green-200 hover:bg-green-100",
    ),
    "finance": (
        "Use financial-appropriate colors: bg-blue-50 text-blue-900, emphasize security and stability",
        "bg-blue-50 text-blue-900 border-blue-200 hover:bg-blue-100",
    ),
    "technology": (
        "Use tech-appropriate colors: bg-indigo-50 text-indigo-900, emphasize innovation and modernity",
        "bg-indigo-50 text-indigo-900 border-indigo-200 hover:bg-indigo-100",
    ),
    "education": (
        "Use education-appropriate colors: bg-purple-50 text-purple-900, emphasize learning and growth",
        "bg-purple-50 text-purple-900 border-purple-200 hover:bg-purple-100",
    ),
    "ecommerce": (
        "Use commerce-appropriate colors: bg-orange-50 text-orange-900, emphasize conversion and trust",
        "bg-orange-50 text-orange-900 border-orange-200 hover:bg-orange-100",
    ),
    "default": (
        "Use industry-neutral professional colors: bg-gray-50 text-gray-900",
        "bg-gray-50 text-gray-900 border-gray-200 hover:bg-gray-100",
    ),
}

TEMPLATE_FIXES = {
    "gradient": (
        "Use asymmetric gradient: from-blue-400 via-purple-500 to-pink-500 at custom angles",
        "bg-gradient-to-br from-blue-400 via-purple-500 to-pink-500",
    ),
    "glassmorphism": (
        "Use layered transparency: backdrop-blur-md bg-gradient-to-r from-white/30 to-blue-100/40",
        "backdrop-blur-md bg-gradient-to-r from-white/30 to-blue-100/40 border border-white/40",
    ),
    "spacing": (
        "Use unconventional spacing: pt-12 pb-16 px-6 md:pt-20 md:pb-24 md:px-12",
        "pt-12 pb-16 px-6 md:pt-20 md:pb-24 md:px-12",
    ),
    "typography": (
        "Use varied font weights: font-light text-4xl + font-bold text-lg mix",
        "font-light text-4xl leading-tight tracking-wide",
    ),
    "default": (
        "Create unique visual patterns specific to this industry and content",
        "bg-gradient-to-tr from-slate-50 to-sky-100",
    ),
}


def industry_key(name: str | None) -> str:
    key = re.sub(r"[^a-z]", "", (name or "").lower())
    return key if key in INDUSTRY_FIXES else "default"


def specific_guidance(
    report: ValidationReport,
    industry: IndustryResult | None = None,
    template: TemplateResult | None = None,
) -> dict[str, list[dict]]:
    guidance: dict[str, list[dict]] = {
        "interactionStates": [],
        "responsiveDesign": [],
        "colorContrast": [],
        "glassmorphism": [],
        "industrySpecific": [],
        "templateFixes": [],
    }
    for rule in report.rule_results():
        if rule.status is RuleStatus.FAIL and rule.rule_id in RULE_GUIDANCE:
            guidance[rule.rule_id].append(dict(RULE_GUIDANCE[rule.rule_id]))

    if industry:
        fix, classes = INDUSTRY_FIXES[industry_key(industry.industry)]
        for violation in industry.violations:
            guidance["industrySpecific"].append({
                "issue": f"Industry violation: {violation.description}",
                "fix": fix,
                "target_elements": ["general"],
                "classes": classes,
            })

    if template:
        for pattern in template.detected_patterns:
            fix, classes = TEMPLATE_FIXES.get(pattern.type, TEMPLATE_FIXES["default"])
            guidance["templateFixes"].append({
                "issue": f"Generic template pattern: {pattern.description}",
                "fix": fix,
                "target_elements": ["general"],
                "classes": classes,
            })
    return guidance


# =============================================================================
# ACTIONABLE FIXES
# =============================================================================

RESPONSIVE_REWRITES = [
    (re.compile(r"text-(?:xs|sm|base|lg|xl|2xl)\b"), "text-sm sm:text-base md:text-lg"),
    (re.compile(r"px-\d+"), "px-4 md:px-8"),
    (re.compile(r"py-\d+"), "py-2 md:py-4"),
    (re.compile(r"mb-\d+"), "mb-4 md:mb-8"),
    (re.compile(r"mt-\d+"), "mt-4 md:mt-8"),
]
CLASS_NAME = re.compile(r'className="([^"]*)"')


def add_responsive_classes(line: str) -> str:
    for pattern, replacement in RESPONSIVE_REWRITES:
        line = pattern.sub(replacement, line, count=1)
    return line


def _fix(kind: str, number: int, line: str, fixed: str, explanation: str) -> dict:
    return {
        "type": kind,
        "line_number": number,
        "current_code": line.strip(),
        "fixed_code": fixed.strip(),
        "explanation": explanation,
    }


def actionable_fixes(artifact: str, limit: int = MAX_ACTIONABLE_FIXES) -> list[dict]:
    """Line-level rewrites, grouped by fix kind, capped at limit."""
    lines = (artifact or "").split("\n")
    numbered = list(enumerate(lines, start=1))
    fixes: list[dict] = []

    for number, line in numbered:
        if "<button" in line and "hover:" not in line:
            fixed = CLASS_NAME.sub(
                lambda m: f'className="{m.group(1)} hover:bg-blue-600 hover:scale-105 transition-all duration-200"',
                line,
                count=1,
            )
            fixes.append(_fix(
                "interactionStates", number, line, fixed,
                "Added hover states and transitions for better user feedback",
            ))

    for number, line in numbered:
        if ("text-" in line and "sm:" not in line) or ("px-" in line and "md:" not in line):
            fixes.append(_fix(
                "responsiveDesign", number, line, add_responsive_classes(line),
                "Added responsive breakpoints for mobile-first design",
            ))

    for number, line in numbered:
        if "text-gray-400" in line or "text-blue-300" in line:
            fixed = line.replace("text-gray-400", "text-gray-700 dark:text-gray-300", 1).replace(
                "text-blue-300", "text-blue-600 dark:text-blue-400", 1
            )
            fixes.append(_fix(
                "colorContrast", number, line, fixed,
                "Improved color contrast for WCAG 2.1 AA compliance",
            ))

    for number, line in numbered:
        if "bg-white" in line and "backdrop-blur" not in line:
            fixed = line.replace("bg-white", "backdrop-blur-sm bg-white/90 dark:bg-gray-900/90", 1)
            fixes.append(_fix(
                "glassmorphism", number, line, fixed,
                "Added layered translucent background",
            ))

    return fixes[:limit]


# =============================================================================
# DESIGN COMPLIANCE
# =============================================================================


def _pick(section: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if section.get(key) is not None:
            return section[key]
    return None


def _contains(code: str, value: Any) -> bool:
    return isinstance(value, str) and bool(value) and value in code


def _color_usage(code: str, colors: Mapping[str, Any] | None) -> dict:
    if not colors:
        return {"score": 0, "issues": ["No color specification provided"]}
    primary = _pick(colors, "primary")
    primary_used = _contains(code, primary) or _contains(code, f"bg-[{primary}]")
    gradients = _pick(colors, "primaryGradients", "primary_gradients") or []
    gradient_used = any(
        isinstance(g, Mapping)
        and _contains(code, f"from-[{g.get('from')}]")
        and _contains(code, f"to-[{g.get('to')}]")
        for g in gradients
    )
    return {
        "primary_color_used": primary_used,
        "gradients_implemented": gradient_used,
        "score": (40 if primary_used else 0) + (30 if gradient_used else 0) + 30,
    }


def _font_used(code: str, font: Any) -> bool:
    if not isinstance(font, str) or not font:
        return False
    token = re.sub(r"\s+", "_", font)
    return token in code or font in code


def _typography(code: str, typography: Mapping[str, Any] | None) -> dict:
    if not typography:
        return {"score": 0, "issues": ["No typography specification provided"]}
    heading = _font_used(code, _pick(typography, "headingFont", "heading_font"))
    body = _font_used(code, _pick(typography, "bodyFont", "body_font"))
    dynamic = (
        "clamp(" in code or "text-responsive" in code
        if _pick(typography, "dynamicSizing", "dynamic_sizing")
        else True
    )
    return {
        "heading_font_implemented": heading,
        "body_font_implemented": body,
        "dynamic_sizing_implemented": dynamic,
        "score": (35 if heading else 0) + (35 if body else 0) + (30 if dynamic else 0),
    }


def _interactions(code: str, interactions: Mapping[str, Any] | None) -> dict:
    if not interactions:
        return {"score": 0, "issues": ["No interaction specification provided"]}
    checks = {
        "button_hover_implemented": (
            _contains(code, _pick(interactions, "buttonHover", "button_hover"))
            or "hover:scale-105" in code or "hover:shadow-xl" in code
        ),
        "card_hover_implemented": (
            _contains(code, _pick(interactions, "cardHover", "card_hover"))
            or "hover:shadow-2xl" in code or "hover:-translate-y-1" in code
        ),
        "input_focus_implemented": (
            _contains(code, _pick(interactions, "inputFocus", "input_focus"))
            or "focus:ring-2" in code
        ),
        "transitions_implemented": (
            _contains(code, _pick(interactions, "transitionSpeed", "transition_speed"))
            or "duration-300" in code or "transition-all" in code
        ),
    }
    return {**checks, "score": 25 * sum(checks.values())}


def _layout(code: str, layout: Any) -> dict:
    if not layout:
        return {"score": 100, "issues": []}
    responsive = any(bp in code for bp in ("sm:", "md:", "lg:"))
    grid = "grid" in code or "flex" in code
    spacing = any(s in code for s in ("space-y-", "gap-", "py-"))
    return {
        "responsive_implemented": responsive,
        "grid_system_implemented": grid,
        "spacing_system_implemented": spacing,
        "score": (40 if responsive else 0) + (30 if grid else 0) + (30 if spacing else 0),
    }


def check_design_compliance(artifact: str, design: Mapping[str, Any] | None) -> dict:
    """Score adherence to a design payload. Missing sub-specs score 0 (layout: 100)."""
    design = design or {}
    code = artifact or ""
    compliance = {
        "color_usage": _color_usage(code, _pick(design, "colors")),
        "typography": _typography(code, _pick(design, "typography")),
        "interactions": _interactions(
            code, _pick(design, "microInteractions", "micro_interactions", "interactions")
        ),
        "layout": _layout(code, _pick(design, "layout")),
    }

    issues = []
    if not compliance["color_usage"].get("primary_color_used"):
        issues.append("Primary color from the design system not used in component")
    if not compliance["typography"].get("heading_font_implemented"):
        issues.append("Specified heading font not implemented")
    if not compliance["typography"].get("body_font_implemented"):
        issues.append("Specified body font not implemented")
    if not compliance["interactions"].get("button_hover_implemented"):
        issues.append("Button hover effects from the design system not implemented")
    if compliance["layout"].get("responsive_implemented") is False:
        issues.append("Responsive design patterns not properly implemented")

    recommendations = []
    if compliance["color_usage"]["score"] < 80:
        recommendations.append(
            "Improve color usage by implementing primary and secondary colors from the design system"
        )
    if compliance["typography"]["score"] < 80:
        recommendations.append("Implement specified typography fonts and dynamic sizing")
    if compliance["interactions"]["score"] < 80:
        recommendations.append(
            "Add micro-interactions as specified in design (hover effects, focus states)"
        )
    if compliance["layout"]["score"] < 80:
        recommendations.append("Improve responsive layout implementation with proper breakpoints")

    scores = [c["score"] for c in compliance.values()]
    return {
        "overall_score": round(sum(scores) / len(scores)),
        "compliance": compliance,
        "issues": issues,
        "recommendations": recommendations,
    }
