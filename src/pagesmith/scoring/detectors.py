"""
Detector registry -- maps rule ids to detector functions.

Every detector has the signature (ParsedArtifact, RuleDefinition) -> RuleResult
and reads only the shared parsed artifact. Rules without a registered
detector fall back to generic_keyword_rule, which derives keyword groups from
the rule's text and scores coverage.

Register a detector:

    @detector("myRule")
    def detect_my_rule(parsed, rule):
        return _result(rule, RuleStatus.PASS, "Looks fine")
"""

import math
import re
from typing import Callable

from .artifact import ParsedArtifact
from .models import RuleDefinition, RuleResult, RuleStatus

DetectorFn = Callable[[ParsedArtifact, RuleDefinition], RuleResult]

DETECTORS: dict[str, DetectorFn] = {}

BREAKPOINT = r"\b(?:sm|md|lg|xl|2xl):"


def detector(rule_id: str) -> Callable[[DetectorFn], DetectorFn]:
    def register(fn: DetectorFn) -> DetectorFn:
        DETECTORS[rule_id] = fn
        return fn

    return register


def get_detector(rule_id: str) -> DetectorFn:
    return DETECTORS.get(rule_id, generic_keyword_rule)


def _result(
    rule: RuleDefinition,
    status: RuleStatus,
    reason: str,
    issue: str | None = None,
    recommendation: str | None = None,
    evidence: list[str] | None = None,
) -> RuleResult:
    return RuleResult(
        rule_id=rule.id,
        category=rule.category,
        text=rule.text,
        mandatory=rule.mandatory,
        status=status,
        reason=reason,
        issue=issue,
        recommendation=recommendation,
        evidence=evidence or [],
    )


# =============================================================================
# LAYOUT AND STRUCTURE
# =============================================================================


@detector("responsiveDesign")
def detect_responsive_design(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    counts = {
        "Breakpoint classes": parsed.count(BREAKPOINT),
        "Responsive grids": parsed.count(r"grid-cols-(?:\d+|none)"),
        "Responsive text": parsed.count(BREAKPOINT + r"text-"),
        "Responsive spacing": parsed.count(BREAKPOINT + r"(?:p|m)"),
        "Layout patterns": parsed.count(BREAKPOINT + r"(?:flex|grid|block|hidden)"),
    }
    total = sum(counts.values())
    kinds = sum(1 for c in counts.values() if c > 0)
    evidence = [f"{name}: {c}" for name, c in counts.items()]

    if total >= 5 and kinds >= 3:
        return _result(
            rule, RuleStatus.PASS,
            "Component implements comprehensive responsive design",
            evidence=evidence,
        )
    if total >= 3 and kinds >= 2:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Good responsive patterns present but could be more comprehensive",
            recommendation=(
                "Add more responsive breakpoints across text, spacing, and layout: "
                "sm:text-lg md:text-xl lg:text-2xl, sm:p-4 md:p-6 lg:p-8"
            ),
            evidence=evidence,
        )
    if total > 0:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Basic responsive patterns detected but insufficient",
            recommendation=(
                "Add responsive classes for multiple screen sizes: sm:, md:, lg:, xl: "
                "for text, spacing, grids, and layout"
            ),
            evidence=evidence,
        )
    return _result(
        rule, RuleStatus.FAIL,
        "No responsive design patterns detected",
        issue="Component will not adapt properly to different screen sizes",
        recommendation=(
            "Add responsive breakpoint classes: sm:text-base md:text-lg lg:text-xl, "
            "sm:p-4 md:p-6, grid-cols-1 md:grid-cols-2 lg:grid-cols-3"
        ),
    )


@detector("noHorizontalScroll")
def detect_no_horizontal_scroll(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    fixed_width = parsed.has(r"width:\s*\d{3,}px|\bw-\d{3,}\b|\bw-\[\d{3,}px\]")
    scrolling = parsed.has(r"overflow(?:-x)?:\s*scroll|\boverflow-x-scroll\b")
    if fixed_width or scrolling:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Potential horizontal scroll detected",
            recommendation="Use relative units and avoid fixed widths that may cause overflow",
        )
    return _result(rule, RuleStatus.PASS, "No obvious horizontal scroll issues")


@detector("spacingSystem")
def detect_spacing_system(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    if not parsed.has_spacing:
        return _result(
            rule, RuleStatus.FAIL,
            "No systematic spacing detected",
            issue="Component lacks consistent spacing patterns",
            recommendation="Implement systematic spacing using the Tailwind spacing scale",
        )

    values = [
        int(m.group(1))
        for cls in parsed.classes
        if (m := re.fullmatch(r"-?[pm][xytrbl]?-(\d+)", cls))
    ]
    on_scale = all(v % 2 == 0 or v in (1, 3, 5, 7) for v in values)
    if on_scale:
        return _result(
            rule, RuleStatus.PASS,
            "Consistent spacing system detected",
            evidence=[f"Spacing classes: {len(values)}"],
        )
    return _result(
        rule, RuleStatus.PARTIAL,
        "Spacing used but may lack consistency",
        recommendation="Use a consistent 4px/8px spacing scale (p-2, p-4, p-8, etc.)",
    )


@detector("whiteSpace")
def detect_white_space(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    spacing = parsed.has(r"\b(?:p|m|space-[xy]|gap)-\d")
    layout = parsed.has(r"\b(?:grid|flex|container|max-w-\w+)\b|<section\b")
    if spacing and layout:
        return _result(rule, RuleStatus.PASS, "Intentional white space usage detected")
    if spacing or layout:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Some white space management present",
            recommendation="Enhance white space usage for better readability and visual breathing room",
        )
    return _result(
        rule, RuleStatus.FAIL,
        "Insufficient white space management",
        issue="Component may appear cramped without proper spacing",
        recommendation="Add intentional spacing using padding, margins, and layout containers",
    )


@detector("visualHierarchy")
def detect_visual_hierarchy(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    headings = parsed.tag_count("h1", "h2", "h3", "h4", "h5", "h6") > 0 or parsed.has(r"\bTitle\b")
    sizes = {
        cls.split(":")[-1]
        for cls in parsed.classes
        if re.fullmatch(r"(?:\w+:)?text-(?:xs|sm|base|lg|xl|[2-9]xl)", cls)
    }
    varied = len(sizes) >= 2
    if headings and varied:
        return _result(
            rule, RuleStatus.PASS,
            "Clear visual hierarchy with varied typography sizes",
            evidence=[f"Text sizes: {', '.join(sorted(sizes))}"],
        )
    if headings or varied:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Some visual hierarchy present but could be improved",
            recommendation="Implement a clear heading hierarchy (h1-h6) with varied text sizes",
        )
    return _result(
        rule, RuleStatus.FAIL,
        "No clear visual hierarchy detected",
        issue="Content lacks clear primary, secondary, and tertiary organization",
        recommendation="Add clear typography hierarchy using headings and varied text sizes",
    )


@detector("typographyConsistency")
def detect_typography_consistency(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    if not parsed.has_typography:
        return _result(
            rule, RuleStatus.FAIL,
            "No systematic typography detected",
            issue="Component lacks consistent text styling",
            recommendation="Implement consistent typography using Tailwind text and font classes",
        )
    if parsed.has(r"\b(?:Typography|Title|Text|Paragraph)\b|\btext-\w+"):
        return _result(rule, RuleStatus.PASS, "Consistent typography components or classes used")
    return _result(
        rule, RuleStatus.PARTIAL,
        "Typography present but consistency unclear",
        recommendation="Use consistent typography components or Tailwind text classes",
    )


@detector("actionEmphasis")
def detect_action_emphasis(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    buttons = parsed.tag_count("button", "Button") > 0
    emphasis = parsed.has(r"\b(?:primary|secondary|bg-[\w-]+|font-(?:bold|semibold))\b")
    if buttons and emphasis:
        return _result(rule, RuleStatus.PASS, "Important actions are visually emphasized")
    if buttons:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Buttons present but emphasis could be improved",
            recommendation="Give primary actions a distinct background and weight",
        )
    return _result(
        rule, RuleStatus.FAIL,
        "No clear action emphasis detected",
        issue="Important actions may not stand out to users",
        recommendation="Add emphasized buttons and CTAs with clear visual hierarchy",
    )


@detector("progressiveDisclosure")
def detect_progressive_disclosure(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    if parsed.has(
        r"\b(?:Collapse|Accordion|Drawer|Modal|Tabs|[Dd]ropdown|details|aria-expanded|show|hide)\b"
    ):
        return _result(rule, RuleStatus.PASS, "Progressive disclosure patterns implemented")
    return _result(
        rule, RuleStatus.PARTIAL,
        "May benefit from progressive disclosure for complex content",
        recommendation="Consider accordions, tabs, or drawers for complex information",
    )


# =============================================================================
# NAVIGATION
# =============================================================================


@detector("clearNavigation")
def detect_clear_navigation(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    basic_nav = parsed.has_navigation or parsed.has(r"Header|Navbar|Menu|nav\s*>", re.IGNORECASE)
    landing = parsed.has(r"landing|hero|cta|conversion|store", re.IGNORECASE)
    actions = parsed.has(r"button|onClick|href|Link", re.IGNORECASE)
    if basic_nav:
        return _result(
            rule, RuleStatus.PASS,
            "Navigation elements or layout structure present",
            evidence=["Basic navigation detected"],
        )
    if landing and actions:
        return _result(
            rule, RuleStatus.PASS,
            "Landing page with conversion focus - simplified navigation appropriate",
            evidence=["Landing page pattern detected", "Call-to-action elements present"],
        )
    return _result(
        rule, RuleStatus.PARTIAL,
        "Basic interactive elements present but dedicated navigation could be enhanced",
        recommendation="Add a header with a nav menu or breadcrumbs for better navigation",
    )


# =============================================================================
# INTERACTION AND ACCESSIBILITY
# =============================================================================


HOVER_PATTERNS = [
    r"hover:(?:bg-[\w-]+|text-[\w-]+|border-[\w-]+)",
    r"hover:(?:scale-\d+|translate-[\w-]+|shadow-[\w-]+)",
    r"hover:(?:opacity-\d+|brightness-\d+)",
]
FOCUS_PATTERNS = [
    r"focus:(?:ring-\d+|ring-[\w-]+|outline-[\w-]+)",
    r"focus:(?:bg-[\w-]+|text-[\w-]+|border-[\w-]+)",
]
ACTIVE_PATTERNS = [
    r"active:(?:scale-\d+|translate-[\w-]+)",
    r"active:(?:bg-[\w-]+|text-[\w-]+)",
]
TRANSITION_PATTERNS = [
    r"transition(?:-all|-colors|-opacity|-shadow|-transform)?",
    r"duration-\d+",
    r"ease-(?:in-out|in|out|linear)",
]
INTERACTIVE_PATTERNS = [
    r"<button\b[^>]*>",
    r"<a\b[^>]*>",
    r"<input\b[^>]*>",
    r"<select\b[^>]*>",
    r"onClick\s*=",
    r"cursor-pointer",
]


@detector("interactionStates")
def detect_interaction_states(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    hover = parsed.count_any(HOVER_PATTERNS)
    focus = parsed.count_any(FOCUS_PATTERNS)
    active = parsed.count_any(ACTIVE_PATTERNS)
    transitions = parsed.count_any(TRANSITION_PATTERNS)
    interactive = parsed.count_any(INTERACTIVE_PATTERNS)
    states = hover + focus + active
    evidence = [
        f"Interactive elements: {interactive}",
        f"Hover patterns: {hover}",
        f"Focus patterns: {focus}",
        f"Active patterns: {active}",
        f"Transitions: {transitions}",
    ]

    if interactive == 0:
        return _result(
            rule, RuleStatus.FAIL,
            "No interactive elements detected in the component",
            issue="Component appears to be non-interactive",
            recommendation="Add buttons, links, or other interactive elements with hover and focus states",
        )
    if states >= interactive * 2:
        return _result(
            rule, RuleStatus.PASS,
            "Interactive elements have comprehensive state feedback",
            evidence=evidence,
        )
    if states >= interactive:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Interactive elements present with basic state feedback",
            recommendation=(
                "Add more comprehensive interaction states: hover:scale-105, focus:ring-2, "
                "active:scale-95, transition-all duration-200"
            ),
            evidence=evidence,
        )
    if states > 0:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Some interactive elements lack proper state feedback",
            recommendation="Ensure ALL interactive elements have hover:, focus:, and active: states with transitions",
            evidence=evidence,
        )
    return _result(
        rule, RuleStatus.FAIL,
        f"Interactive elements found ({interactive}) but no interaction states detected",
        issue="Users will not receive visual feedback from interactive elements",
        recommendation=(
            "Add interaction states: hover:bg-blue-600 hover:scale-105 focus:ring-2 "
            "focus:ring-blue-500 transition-all duration-200"
        ),
        evidence=evidence,
    )


@detector("focusKeyboard")
def detect_focus_keyboard(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    explicit = parsed.has(r"\b(?:tabIndex|onKeyDown|keyboard)\b|focus:", re.IGNORECASE)
    aria = parsed.has(r"\baria-|\brole=", re.IGNORECASE)
    semantic = parsed.tag_count("button", "input", "select", "textarea") > 0 or parsed.has(
        r"<a\s+href", re.IGNORECASE
    )
    if explicit or aria:
        return _result(
            rule, RuleStatus.PASS,
            "Explicit keyboard accessibility features detected",
            evidence=["Explicit focus management"] if explicit else ["ARIA support"],
        )
    if semantic:
        return _result(
            rule, RuleStatus.PASS,
            "Semantic HTML elements provide inherent keyboard accessibility",
            evidence=["Semantic HTML elements detected"],
        )
    if parsed.has_interactive_elements:
        return _result(
            rule, RuleStatus.PARTIAL,
            "Interactive elements present but keyboard accessibility unclear",
            recommendation="Ensure all interactive elements are keyboard accessible with proper focus management",
        )
    return _result(
        rule, RuleStatus.FAIL,
        "No keyboard accessibility features detected",
        issue="Interactive elements may not be accessible via keyboard",
        recommendation="Add tabIndex, focus states, and keyboard event handlers for accessibility",
    )


# =============================================================================
# GENERIC KEYWORD-COVERAGE HEURISTIC
# =============================================================================

# (phrases in the rule text, keywords expected in the artifact)
KEYWORD_GROUPS: list[tuple[tuple[str, ...], list[str]]] = [
    (("responsive",), ["responsive", "sm:", "md:", "lg:", "xl:", "grid-cols-"]),
    (("color", "contrast"), ["color", "bg-", "text-", "theme", "primary", "secondary"]),
    (("typography", "font"), ["font-", "text-", "leading-", "tracking-", "<h1", "<p"]),
    (("line height", "leading"), ["leading-", "line-height"]),
    (("navigation", "menu"), ["<nav", "menu", "breadcrumb", "href", "<header", "<Link"]),
    (("mobile",), ["md:hidden", "lg:hidden", "md:flex", "aria-expanded"]),
    (("breadcrumb",), ["breadcrumb", "aria-label=\"breadcrumb\""]),
    (("active page",), ["aria-current", "active"]),
    (("search",), ["search", "type=\"search\""]),
    (("accessibility", "keyboard", "focus"), ["aria-", "role=", "alt=", "tabIndex", "<button", "<input"]),
    (("shortcut",), ["onKeyDown", "keydown", "accessKey"]),
    (("skip to",), ["skip to", "#main", "sr-only"]),
    (("semantic", "landmark"), ["<header", "<main", "<nav", "<section", "<footer"]),
    (("animation", "motion", "transition"), ["transition", "animation", "duration", "animate-", "hover"]),
    (("reduced motion",), ["motion-reduce", "motion-safe", "prefers-reduced-motion"]),
    (("spacing", "margin", "padding"), ["p-", "m-", "space-", "gap-"]),
    (("form", "input", "validation"), ["<form", "<input", "<button", "required", "error"]),
    (("interaction", "button", "click", "tap"), ["<button", "onClick", "hover:", "focus:", "active:"]),
    (("success", "warning", "error"), ["success", "warning", "error", "red-", "green-"]),
    (("card", "container"), ["card", "container", "rounded"]),
    (("loading", "async"), ["useState", "loading", "animate-spin", "skeleton", "disabled"]),
    (("gesture", "swipe", "drag"), ["onTouchStart", "onTouchMove", "swipe", "drag", "snap-"]),
    (("dark mode", "theme"), ["dark:", "theme", "dark"]),
    (("shadow", "depth", "elevation"), ["shadow", "drop-shadow", "ring-"]),
    (("hierarchy", "heading"), ["<h1", "<h2", "<h3", "font-bold"]),
    (("rounded", "corner"), ["rounded", "border-radius"]),
    (("alt text", "image"), ["alt=", "<img"]),
]


def extract_rule_keywords(text: str) -> list[str]:
    """Keywords implied by a rule's text, deduplicated, in table order."""
    lowered = text.lower()
    keywords: list[str] = []
    for phrases, group in KEYWORD_GROUPS:
        if any(p in lowered for p in phrases):
            keywords.extend(k for k in group if k not in keywords)
    return keywords


def generic_keyword_rule(parsed: ParsedArtifact, rule: RuleDefinition) -> RuleResult:
    """PASS at >= half the implied keywords found, PARTIAL on some, FAIL on none."""
    keywords = extract_rule_keywords(rule.text)
    found = [k for k in keywords if parsed.has(re.escape(k), re.IGNORECASE)]

    if not keywords or not found:
        return _result(
            rule, RuleStatus.FAIL,
            f'No evidence of "{rule.text}" implementation',
            issue=f"Rule not implemented: {rule.text}",
            recommendation=(
                f"Implement specific requirements: {', '.join(keywords) if keywords else rule.text}"
            ),
        )
    if len(found) >= math.ceil(len(keywords) / 2):
        return _result(
            rule, RuleStatus.PASS,
            f"Specific implementation found: {', '.join(found)}",
            evidence=found,
        )
    return _result(
        rule, RuleStatus.PARTIAL,
        f"Partial implementation: {', '.join(found)} ({len(found)}/{len(keywords)})",
        recommendation=f"Complete implementation for: {rule.text}",
        evidence=found,
    )
