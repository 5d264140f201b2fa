"""
Content utilization -- measures how much supplied content reaches the artifact.

Components:
  - elements: per-section extraction into typed ContentElements
  - matching: placeholder / exact / statistic / partial / linked cascade
  - analyzer: ContentUtilizationAnalyzer producing a UtilizationReport
"""

from .analyzer import ContentUtilizationAnalyzer, UtilizationReport, analyze
from .elements import ContentElement, ElementKind, Priority, content_mapping, extract_elements
from .matching import MatchStrategy, is_valid_statistic

__all__ = [
    "ContentElement",
    "ContentUtilizationAnalyzer",
    "ElementKind",
    "MatchStrategy",
    "Priority",
    "UtilizationReport",
    "analyze",
    "content_mapping",
    "extract_elements",
    "is_valid_statistic",
]
