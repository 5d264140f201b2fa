"""
Pipeline configuration -- thresholds, weights, attempt budget, catalog paths.

Three ways to build a PipelineConfig:
  PipelineConfig()                     -- defaults
  PipelineConfig.from_env()            -- PAGESMITH_* environment variables
  PipelineConfig.from_file("cfg.json") -- JSON file, validated with pydantic

Every threshold the scoring engine, validator and loop controller use comes
from here. Nothing downstream hardcodes them.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .errors import CatalogError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_GATE_THRESHOLD = 75
DEFAULT_BASE_THRESHOLD = 85
DEFAULT_CONTENT_THRESHOLD = 0.80
DEFAULT_TEMPLATE_THRESHOLD = 80
DEFAULT_INDUSTRY_THRESHOLD = 70
DEFAULT_TEMPLATE_WEIGHT = 0.3
DEFAULT_INDUSTRY_WEIGHT = 0.2
CONTENT_SCORE_CAP = 70

DATA_DIR = Path(__file__).parent / "data"

ENV_PREFIX = "PAGESMITH_"


# =============================================================================
# FILE SCHEMA
# =============================================================================


class PipelineSettings(BaseModel):
    """Schema for a JSON configuration file. Unknown keys are rejected."""

    model_config = {"extra": "forbid"}

    gate_threshold: float = Field(DEFAULT_GATE_THRESHOLD, ge=0, le=100)
    base_threshold: float = Field(DEFAULT_BASE_THRESHOLD, ge=0, le=100)
    content_threshold: float = Field(DEFAULT_CONTENT_THRESHOLD, ge=0, le=1)
    template_threshold: float = Field(DEFAULT_TEMPLATE_THRESHOLD, ge=0, le=100)
    industry_threshold: float = Field(DEFAULT_INDUSTRY_THRESHOLD, ge=0, le=100)
    template_weight: float = Field(DEFAULT_TEMPLATE_WEIGHT, ge=0)
    industry_weight: float = Field(DEFAULT_INDUSTRY_WEIGHT, ge=0)
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    mandatory_rules: list[str] | None = None
    rules_path: str | None = None
    industry_profiles_path: str | None = None
    template_patterns_path: str | None = None
    trace_dir: str | None = None


# =============================================================================
# RUNTIME CONFIG
# =============================================================================


@dataclass
class PipelineConfig:
    """Configuration shared by the scheduler, loop controller and validator."""

    gate_threshold: float = DEFAULT_GATE_THRESHOLD
    base_threshold: float = DEFAULT_BASE_THRESHOLD
    content_threshold: float = DEFAULT_CONTENT_THRESHOLD
    template_threshold: float = DEFAULT_TEMPLATE_THRESHOLD
    industry_threshold: float = DEFAULT_INDUSTRY_THRESHOLD
    template_weight: float = DEFAULT_TEMPLATE_WEIGHT
    industry_weight: float = DEFAULT_INDUSTRY_WEIGHT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    mandatory_rules: list[str] | None = None  # None = use the catalog's list
    rules_path: Path = field(default_factory=lambda: DATA_DIR / "ui_rules.json")
    industry_profiles_path: Path = field(
        default_factory=lambda: DATA_DIR / "industry_profiles.json"
    )
    template_patterns_path: Path = field(
        default_factory=lambda: DATA_DIR / "template_patterns.json"
    )
    trace_dir: Path | None = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1 (got {self.max_attempts})")
        if not 0 <= self.content_threshold <= 1:
            raise ValueError(
                f"content_threshold is a rate in [0, 1] (got {self.content_threshold})"
            )
        for name in ("rules_path", "industry_profiles_path", "template_patterns_path"):
            value = getattr(self, name)
            if not isinstance(value, Path):
                setattr(self, name, Path(value))
        if self.trace_dir is not None and not isinstance(self.trace_dir, Path):
            self.trace_dir = Path(self.trace_dir)

    @classmethod
    def from_settings(cls, settings: PipelineSettings) -> "PipelineConfig":
        values = {k: v for k, v in settings.model_dump().items() if v is not None}
        return cls(**values)

    @classmethod
    def from_file(cls, path: str | Path) -> "PipelineConfig":
        """Load a JSON config file. Raises CatalogError on invalid content."""
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            settings = PipelineSettings.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise CatalogError(f"Invalid config file {path}: {e}") from e
        logger.info(f"[Config] Loaded {path}")
        return cls.from_settings(settings)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "PipelineConfig":
        """Read PAGESMITH_<FIELD> variables, e.g. PAGESMITH_MAX_ATTEMPTS=3."""
        env = os.environ if environ is None else environ
        raw: dict = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key not in env:
                continue
            value = env[key]
            if f.name == "mandatory_rules":
                raw[f.name] = [v.strip() for v in value.split(",") if v.strip()]
            else:
                raw[f.name] = value
        try:
            settings = PipelineSettings.model_validate(raw)
        except ValidationError as e:
            raise CatalogError(f"Invalid {ENV_PREFIX}* environment: {e}") from e
        return cls.from_settings(settings)
