"""
Content matching cascade -- decides whether one content element is in an artifact.

Strategies run in order; the first that decides wins:

  1. placeholder   -- known placeholder text is always unused
  2. exact         -- case-insensitive, whitespace-normalised substring
  3. statistic     -- stat values inside quotes, attributes or templates
  4. partial       -- long content: >= 60% of significant words present
  5. linked        -- a stat label whose paired value was used

Statistic values are short tokens ("95%", "10x", "24:7") that collide with
class names and numbers in markup, so their exact match runs against the
artifact's text content only (tags stripped). Their markup occurrences are
caught by the format-aware matchers in step 3.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum

from .elements import ContentElement, ElementKind

PLACEHOLDER_MARKERS = (
    "Lorem ipsum",
    "John Doe",
    "Jane Doe",
    "Acme Corp",
    "Example Inc",
    "[PLACEHOLDER]",
    "[TODO]",
    "[CONTENT]",
    "[Your Company]",
    "[Company Name]",
)
PLACEHOLDER_PREFIX = re.compile(r"^(placeholder|sample|example)", re.IGNORECASE)
BRACKET_ONLY = re.compile(r"^\[.*\]$", re.DOTALL)
MIN_CONTENT_LENGTH = 2
MIN_NORMALIZED_LENGTH = 3

PARTIAL_MIN_LENGTH = 20
PARTIAL_WORD_MIN_LENGTH = 3
PARTIAL_COVERAGE = 0.6

STAT_VALUE_PATTERNS = [
    re.compile(r"^\d+%$"),                              # 95%
    re.compile(r"^\d+\.\d+%$"),                         # 95.5%
    re.compile(r"^\d+\+$"),                             # 20+
    re.compile(r"^\d+k\+?$", re.IGNORECASE),            # 50k, 50k+
    re.compile(r"^\d+(\.\d+)?/\d+$"),                   # 4.8/5
    re.compile(r"^\d{1,3}(,\d{3})*\+?$"),               # 50,000+
    re.compile(r"^\$\d+(\.\d+)?[kmb]?$", re.IGNORECASE),  # $5m
    re.compile(r"^[<>≥≤]\s*\d+(\.\d+)?[%kmb]?$", re.IGNORECASE),  # >95%
    re.compile(r"^\d+(\.\d+)?[x×]$", re.IGNORECASE),    # 10x
    re.compile(r"^\d+(\.\d+)?[kmb]$", re.IGNORECASE),   # 5m
    re.compile(r"^#\d+$"),                              # #1
    re.compile(r"^\d+:\d+$"),                           # 24:7
    re.compile(r"^\d+-\d+$"),                           # 18-24
    re.compile(r"^top\s*\d+%?$", re.IGNORECASE),        # Top 10
    re.compile(r"^\d+(\.\d+)?\s*(years?|months?|days?|hours?)\+?$", re.IGNORECASE),
]
STAT_PLACEHOLDER_TERMS = (
    "lorem", "ipsum", "placeholder", "example", "sample",
    "todo", "insert", "john doe", "jane doe", "acme",
)

_TAG = re.compile(r"<[^>]*>")
_COMMENT_BLOCK = re.compile(r"/\*.*?\*/", re.DOTALL)
_BRACKETED = re.compile(r"\[.*?\]")


class MatchStrategy(str, Enum):
    PLACEHOLDER = "placeholder"
    EXACT = "exact"
    STATISTIC = "statistic"
    PARTIAL = "partial"
    LINKED = "linked"
    NONE = "none"


@dataclass(frozen=True)
class MatchOutcome:
    used: bool
    strategy: MatchStrategy


def is_valid_statistic(value: str) -> bool:
    """True for statistic-shaped values like '95%', '50k+', '4.8/5', '#1'."""
    if not value or not isinstance(value, str):
        return False
    trimmed = value.strip()
    if not any(p.match(trimmed) for p in STAT_VALUE_PATTERNS):
        return False
    lowered = trimmed.lower()
    if any(term in lowered for term in STAT_PLACEHOLDER_TERMS):
        return False
    return not re.search(r"\[.*\]", trimmed)


def is_placeholder(element: ContentElement) -> bool:
    content = element.content.strip()
    if element.kind is ElementKind.STAT_VALUE and is_valid_statistic(content):
        return False
    return (
        len(content) < MIN_CONTENT_LENGTH
        or any(marker in content for marker in PLACEHOLDER_MARKERS)
        or bool(BRACKET_ONLY.match(content))
        or bool(PLACEHOLDER_PREFIX.match(content))
    )


def normalize(content: str) -> str:
    return _BRACKETED.sub("", _COMMENT_BLOCK.sub("", content)).strip()


def _flexible(content: str) -> str:
    """Escaped pattern where any run of whitespace matches any (or no) whitespace."""
    return r"\s*".join(re.escape(part) for part in content.split())


class ContentMatcher:
    """Runs the matching cascade against one artifact.

    Usage:
        matcher = ContentMatcher(artifact_text)
        outcome = matcher.match(element)
        outcome = matcher.match(label_element, paired_value_used=True)
    """

    def __init__(self, artifact: str):
        self.artifact = artifact or ""
        self.text_content = _TAG.sub(" ", self.artifact)

    def match(self, element: ContentElement, paired_value_used: bool = False) -> MatchOutcome:
        if is_placeholder(element):
            return MatchOutcome(False, MatchStrategy.PLACEHOLDER)

        content = normalize(element.content)
        is_stat = element.kind is ElementKind.STAT_VALUE
        if len(content) < MIN_NORMALIZED_LENGTH and not (is_stat and is_valid_statistic(content)):
            return MatchOutcome(False, MatchStrategy.PLACEHOLDER)

        if self._exact(content, is_stat):
            return MatchOutcome(True, MatchStrategy.EXACT)

        if is_stat and self._statistic(content):
            return MatchOutcome(True, MatchStrategy.STATISTIC)

        if len(content) > PARTIAL_MIN_LENGTH and self._partial(content):
            return MatchOutcome(True, MatchStrategy.PARTIAL)

        if element.kind is ElementKind.STAT_LABEL and (
            paired_value_used or self._value_reference(element.index)
        ):
            return MatchOutcome(True, MatchStrategy.LINKED)

        return MatchOutcome(False, MatchStrategy.NONE)

    def _exact(self, content: str, is_stat: bool) -> bool:
        if is_stat:
            pattern = rf"(?<![\w.]){_flexible(content)}(?!\w)"
            return re.search(pattern, self.text_content, re.IGNORECASE) is not None
        return re.search(_flexible(content), self.artifact, re.IGNORECASE) is not None

    def _statistic(self, content: str) -> bool:
        value = re.escape(content)
        patterns = (
            rf"[\"'`]{value}[\"'`]",                      # quoted literal
            rf"\b\w+\s*=\s*\{{?\s*[\"'`]{value}[\"'`]",   # value="95%" / value={'95%'}
            rf"`[^`]*{value}[^`]*`",                      # template literal
            rf"\{{\s*{value}\s*\}}",                      # {95%} style interpolation
        )
        return any(re.search(p, self.artifact, re.IGNORECASE) for p in patterns)

    def _partial(self, content: str) -> bool:
        words = [w for w in content.split() if len(w) > PARTIAL_WORD_MIN_LENGTH]
        if not words:
            return False
        found = sum(
            1
            for w in words
            if re.search(rf"\b{re.escape(w)}\b", self.artifact, re.IGNORECASE)
        )
        return found >= math.ceil(len(words) * PARTIAL_COVERAGE)

    def _value_reference(self, index: int) -> bool:
        pattern = rf"stat_value_{index}\b|stats\[{index}\]\.value"
        return re.search(pattern, self.artifact, re.IGNORECASE) is not None
