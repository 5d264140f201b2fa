"""
Rule catalog -- the static set of RuleDefinitions the engine scores against.

The catalog is a JSON document validated with pydantic:

    {
      "scoring": {"passing_threshold": 85, "mandatory_rules": [...]},
      "categories": [{"category": "...", "rules": [{"id", "text", "mandatory"}]}]
    }

A rule is mandatory if it is flagged in its entry or listed in
scoring.mandatory_rules. A caller-supplied mandatory list replaces the
catalog's list (rule flags still apply).
"""

import json
import logging
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..errors import CatalogError
from .models import RuleDefinition

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# DOCUMENT SCHEMA
# =============================================================================


class RuleEntry(BaseModel):
    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    mandatory: bool = False


class CategoryEntry(BaseModel):
    category: str = Field(..., min_length=1)
    rules: list[RuleEntry] = Field(..., min_length=1)


class ScoringEntry(BaseModel):
    passing_threshold: float = Field(85, ge=0, le=100)
    mandatory_rules: list[str] = Field(default_factory=list)
    formula: str = ""


class RuleCatalogDocument(BaseModel):
    version: str = "1"
    scoring: ScoringEntry = Field(default_factory=ScoringEntry)
    categories: list[CategoryEntry] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_ids(self) -> "RuleCatalogDocument":
        seen: set[str] = set()
        for category in self.categories:
            for rule in category.rules:
                if rule.id in seen:
                    raise ValueError(f"duplicate rule id: {rule.id}")
                seen.add(rule.id)
        return self


def load_json_document(path: Path, model: type[ModelT]) -> ModelT:
    """Read and validate a JSON catalog file. Raises CatalogError."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return model.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise CatalogError(f"Invalid catalog {path}: {e}") from e


# =============================================================================
# CATALOG
# =============================================================================


FALLBACK_CATALOG = {
    "version": "fallback",
    "scoring": {
        "passing_threshold": 85,
        "mandatory_rules": ["responsiveDesign", "clearNavigation", "interactionStates"],
    },
    "categories": [
        {
            "category": "LayoutAndStructure",
            "rules": [
                {"id": "responsiveDesign", "text": "Pages must be fully responsive", "mandatory": True},
                {"id": "spacingSystem", "text": "Consistent spacing system"},
                {"id": "visualHierarchy", "text": "Clear visual hierarchy"},
            ],
        },
        {
            "category": "InteractionAndFeedback",
            "rules": [
                {"id": "clearNavigation", "text": "Clear navigation structure", "mandatory": True},
                {"id": "interactionStates", "text": "Hover and focus states on interactive elements", "mandatory": True},
            ],
        },
    ],
}


class RuleCatalog:
    """Ordered, validated collection of rules grouped by category.

    Usage:
        catalog = RuleCatalog.load(Path("ui_rules.json"))
        for category, rules in catalog.categories.items(): ...
    """

    def __init__(
        self,
        document: RuleCatalogDocument,
        mandatory_rules: list[str] | None = None,
    ):
        self.version = document.version
        self.passing_threshold = document.scoring.passing_threshold
        listed = set(
            document.scoring.mandatory_rules if mandatory_rules is None else mandatory_rules
        )

        self.categories: dict[str, list[RuleDefinition]] = {}
        known: set[str] = set()
        for category in document.categories:
            rules = self.categories.setdefault(category.category, [])
            for entry in category.rules:
                known.add(entry.id)
                rules.append(RuleDefinition(
                    id=entry.id,
                    category=category.category,
                    text=entry.text,
                    mandatory=entry.mandatory or entry.id in listed,
                ))

        unknown = sorted(listed - known)
        if unknown:
            logger.warning(
                f"[Scoring] Mandatory rule ids not in catalog (ignored): {', '.join(unknown)}"
            )
        logger.debug(
            f"[Scoring] Catalog {self.version}: {len(self.categories)} categories, "
            f"{len(self.rules)} rules, {len(self.mandatory_ids)} mandatory"
        )

    @property
    def rules(self) -> list[RuleDefinition]:
        return [r for rules in self.categories.values() for r in rules]

    @property
    def mandatory_ids(self) -> list[str]:
        return [r.id for r in self.rules if r.mandatory]

    def get(self, rule_id: str) -> RuleDefinition | None:
        return next((r for r in self.rules if r.id == rule_id), None)

    @classmethod
    def from_dict(cls, data: dict, mandatory_rules: list[str] | None = None) -> "RuleCatalog":
        try:
            document = RuleCatalogDocument.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Invalid rule catalog: {e}") from e
        return cls(document, mandatory_rules)

    @classmethod
    def from_rules(
        cls, rules: list[RuleDefinition], passing_threshold: float = 85
    ) -> "RuleCatalog":
        """Build a catalog from definitions (category order follows first use)."""
        categories: dict[str, list[dict]] = {}
        for rule in rules:
            categories.setdefault(rule.category, []).append(
                {"id": rule.id, "text": rule.text, "mandatory": rule.mandatory}
            )
        return cls.from_dict({
            "scoring": {"passing_threshold": passing_threshold},
            "categories": [{"category": c, "rules": r} for c, r in categories.items()],
        })

    @classmethod
    def load(cls, path: Path | None = None, mandatory_rules: list[str] | None = None) -> "RuleCatalog":
        """Load from JSON. Falls back to the built-in catalog only when path is None
        and the packaged file is missing; an explicit bad path raises CatalogError."""
        if path is None:
            from ..config import DATA_DIR

            default = DATA_DIR / "ui_rules.json"
            if not default.exists():
                logger.warning("[Scoring] Packaged rule catalog missing, using fallback rules")
                return cls.from_dict(FALLBACK_CATALOG, mandatory_rules)
            path = default
        return cls(load_json_document(path, RuleCatalogDocument), mandatory_rules)
