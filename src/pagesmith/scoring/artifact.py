"""
ParsedArtifact -- one parsed view of an artifact, shared by every detector.

Built once per scoring pass. Detectors read the extracted tags, attributes,
class tokens and capability flags, and count patterns through count()/has(),
which memoise each pattern so a pattern is scanned at most once per pass.
"""

import re
from dataclasses import dataclass, field
from functools import cached_property

_IMPORT = re.compile(r"import.*?from.*?['\"][^'\"]+['\"]")
_CLASS_ATTR = re.compile(r"class(?:Name)?\s*=\s*\{?\s*[\"'`]([^\"'`]+)[\"'`]")
_TAG = re.compile(r"<([A-Za-z][\w.]*)((?:[^>\"']|\"[^\"]*\"|'[^']*')*)>")
_ATTR = re.compile(r"([A-Za-z_:][\w:.-]*)\s*=")

RESPONSIVE = re.compile(
    r"\b(sm|md|lg|xl|2xl):|\bresponsive\b|\bgrid-cols-|\bmax-w-"
)
SPACING = re.compile(
    r"\b(p|m|px|py|mx|my|pt|pb|pl|pr|mt|mb|ml|mr|space-[xy]|gap)-\d+|\bmargin\b|\bpadding\b"
)
TYPOGRAPHY = re.compile(
    r"\b(text-|font-|leading-|tracking-)|<h[1-6]\b|\bTypography\b"
)
INTERACTIVE = re.compile(
    r"<button\b|\bButton\b|onClick|hover:|focus:|active:|\btransition\b|<input\b|<form\b|<select\b"
)
ACCESSIBILITY = re.compile(
    r"aria-|role=|alt=|tabIndex|<nav\b|<main\b|<section\b|<header\b|<footer\b|<article\b"
)
ANIMATION = re.compile(
    r"\b(transition|animate-|animation|transform|duration-|ease-)|hover:(scale|translate|shadow)"
)
NAVIGATION = re.compile(
    r"<nav\b|\bnavbar\b|\bNavigation\b|\bMenu\b|\bbreadcrumb|<Link\b|<header\b|\bHeader\b"
)


@dataclass
class ParsedArtifact:
    """Parsed representation of artifact text.

    Attributes:
        text: The raw artifact.
        tags: Tag names in document order (e.g. "button", "section", "Stat").
        attributes: Attribute names across all tags (e.g. "aria-label").
        classes: Every class token from class/className attributes.
        imports: Import statements.
    """

    text: str
    tags: list[str] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    _counts: dict[tuple[str, int], int] = field(default_factory=dict, repr=False)

    @classmethod
    def parse(cls, text: str) -> "ParsedArtifact":
        text = text or ""
        parsed = cls(text=text)
        parsed.imports = _IMPORT.findall(text)
        for match in _CLASS_ATTR.finditer(text):
            parsed.classes.extend(match.group(1).split())
        for match in _TAG.finditer(text):
            parsed.tags.append(match.group(1))
            parsed.attributes.extend(_ATTR.findall(match.group(2)))
        return parsed

    def count(self, pattern: str, flags: int = 0) -> int:
        """Number of non-overlapping matches of pattern (memoised)."""
        key = (pattern, flags)
        if key not in self._counts:
            self._counts[key] = sum(1 for _ in re.finditer(pattern, self.text, flags))
        return self._counts[key]

    def has(self, pattern: str, flags: int = 0) -> bool:
        return self.count(pattern, flags) > 0

    def count_any(self, patterns: list[str], flags: int = 0) -> int:
        return sum(self.count(p, flags) for p in patterns)

    def tag_count(self, *names: str) -> int:
        wanted = {n.lower() for n in names}
        return sum(1 for t in self.tags if t.lower() in wanted)

    @cached_property
    def lowered(self) -> str:
        return self.text.lower()

    @cached_property
    def has_responsive(self) -> bool:
        return RESPONSIVE.search(self.text) is not None

    @cached_property
    def has_spacing(self) -> bool:
        return SPACING.search(self.text) is not None

    @cached_property
    def has_typography(self) -> bool:
        return TYPOGRAPHY.search(self.text) is not None

    @cached_property
    def has_interactive_elements(self) -> bool:
        return INTERACTIVE.search(self.text) is not None

    @cached_property
    def has_accessibility(self) -> bool:
        return ACCESSIBILITY.search(self.text) is not None

    @cached_property
    def has_animations(self) -> bool:
        return ANIMATION.search(self.text) is not None

    @cached_property
    def has_navigation(self) -> bool:
        return NAVIGATION.search(self.text) is not None
