"""
Content element extraction -- flatten a structured content payload.

A content payload is a mapping of known section shapes:

    {
        "hero": {"title": ..., "subtitle": ..., "ctaButtons": [...]},
        "features": [{"title": ..., "description": ...}, ...],
        "testimonials": [{"quote": ..., "author": ...}, ...],
        "stats": [{"value": ..., "label": ...}, ...],
    }

Each known section has exactly one extractor function. Unknown sections are
ignored; a known section with the wrong shape is skipped with a warning.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from ..errors import MalformedPayload

logger = logging.getLogger(__name__)


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class ElementKind(str, Enum):
    """Enumerated element category. Combined with an index it names an element."""

    HERO_TITLE = "hero_title"
    HERO_SUBTITLE = "hero_subtitle"
    HERO_CTA = "hero_cta"
    FEATURE_TITLE = "feature_title"
    FEATURE_DESCRIPTION = "feature_description"
    TESTIMONIAL_QUOTE = "testimonial_quote"
    TESTIMONIAL_AUTHOR = "testimonial_author"
    STAT_VALUE = "stat_value"
    STAT_LABEL = "stat_label"


# Kinds that occur once per payload and therefore render without an index.
SINGULAR_KINDS = {ElementKind.HERO_TITLE, ElementKind.HERO_SUBTITLE}


@dataclass(frozen=True)
class ContentElement:
    """One piece of supplied content that should appear in the artifact."""

    kind: ElementKind
    index: int
    content: str
    priority: Priority
    section: str

    @property
    def type(self) -> str:
        """Flat name such as 'hero_title' or 'feature_title_2'."""
        if self.kind in SINGULAR_KINDS:
            return self.kind.value
        return f"{self.kind.value}_{self.index}"


# =============================================================================
# PER-SECTION EXTRACTORS
# =============================================================================


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value
    return None


def _items(section: str, value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise MalformedPayload(f"{section} must be a list (got {type(value).__name__})")
    return value


def extract_hero(value: Any) -> list[ContentElement]:
    if not isinstance(value, dict):
        raise MalformedPayload(f"hero must be a mapping (got {type(value).__name__})")

    elements = []
    title = _text(value.get("title"))
    if title:
        elements.append(
            ContentElement(ElementKind.HERO_TITLE, 0, title, Priority.CRITICAL, "hero")
        )
    subtitle = _text(value.get("subtitle"))
    if subtitle:
        elements.append(
            ContentElement(ElementKind.HERO_SUBTITLE, 0, subtitle, Priority.HIGH, "hero")
        )

    ctas = value.get("ctaButtons", value.get("cta_buttons")) or []
    if not isinstance(ctas, list):
        ctas = [ctas]
    for i, cta in enumerate(ctas):
        text = _text(cta.get("text")) if isinstance(cta, dict) else _text(cta)
        if text:
            elements.append(
                ContentElement(ElementKind.HERO_CTA, i, text, Priority.CRITICAL, "hero")
            )
    return elements


def _pairs(
    section: str,
    value: Any,
    first: tuple[str, ElementKind, Priority],
    second: tuple[str, ElementKind, Priority],
) -> list[ContentElement]:
    elements = []
    for i, item in enumerate(_items(section, value)):
        if not isinstance(item, dict):
            logger.warning(f"[Content] Skipping {section}[{i}]: not a mapping")
            continue
        for key, kind, priority in (first, second):
            text = _text(item.get(key))
            if text:
                elements.append(ContentElement(kind, i, text, priority, section))
    return elements


def extract_features(value: Any) -> list[ContentElement]:
    return _pairs(
        "features",
        value,
        ("title", ElementKind.FEATURE_TITLE, Priority.HIGH),
        ("description", ElementKind.FEATURE_DESCRIPTION, Priority.MEDIUM),
    )


def extract_testimonials(value: Any) -> list[ContentElement]:
    return _pairs(
        "testimonials",
        value,
        ("quote", ElementKind.TESTIMONIAL_QUOTE, Priority.HIGH),
        ("author", ElementKind.TESTIMONIAL_AUTHOR, Priority.MEDIUM),
    )


def extract_stats(value: Any) -> list[ContentElement]:
    return _pairs(
        "stats",
        value,
        ("value", ElementKind.STAT_VALUE, Priority.HIGH),
        ("label", ElementKind.STAT_LABEL, Priority.HIGH),
    )


SECTION_EXTRACTORS: dict[str, Callable[[Any], list[ContentElement]]] = {
    "hero": extract_hero,
    "features": extract_features,
    "testimonials": extract_testimonials,
    "stats": extract_stats,
}


def extract_elements(payload: Any) -> list[ContentElement]:
    """Walk every known section of a content payload, in a fixed order."""
    if not isinstance(payload, dict):
        if payload is not None:
            logger.warning(
                f"[Content] Content payload is {type(payload).__name__}, expected mapping"
            )
        return []

    elements: list[ContentElement] = []
    for section, extractor in SECTION_EXTRACTORS.items():
        if section not in payload or payload[section] is None:
            continue
        try:
            elements.extend(extractor(payload[section]))
        except MalformedPayload as e:
            logger.warning(f"[Content] Skipping section '{section}': {e}")
    return elements


def group_by_section(elements: Iterable[ContentElement]) -> dict[str, list[ContentElement]]:
    grouped: dict[str, list[ContentElement]] = {}
    for element in elements:
        grouped.setdefault(element.section, []).append(element)
    return grouped


def content_mapping(payload: Any) -> dict[str, list[dict]]:
    """Extracted elements grouped by section, as plain dicts for stage prompts."""
    return {
        section: [
            {"type": e.type, "content": e.content, "priority": e.priority.value}
            for e in items
        ]
        for section, items in group_by_section(extract_elements(payload)).items()
    }
