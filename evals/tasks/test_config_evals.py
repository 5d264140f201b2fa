"""
Config Evals -- defaults, environment overrides, config files.

CODE-BASED graders. Invalid configuration must fail at load time, not
halfway through a pipeline run.
"""

import json

import pytest

from pagesmith.config import DATA_DIR, PipelineConfig
from pagesmith.errors import CatalogError


class TestDefaults:
    """Eval: Are the defaults the documented thresholds?"""

    def test_default_values(self):
        """Gate 75, base 85, content 0.8, two attempts, packaged catalogs."""
        config = PipelineConfig()
        assert config.gate_threshold == 75
        assert config.base_threshold == 85
        assert config.content_threshold == 0.8
        assert config.max_attempts == 2
        assert config.mandatory_rules is None
        assert config.rules_path == DATA_DIR / "ui_rules.json"
        assert config.trace_dir is None

    def test_invalid_values_rejected(self):
        """A zero budget or an out-of-range content rate is refused."""
        with pytest.raises(ValueError):
            PipelineConfig(max_attempts=0)
        with pytest.raises(ValueError):
            PipelineConfig(content_threshold=1.5)

    def test_string_paths_become_paths(self, tmp_path):
        """Paths given as strings are normalised."""
        config = PipelineConfig(rules_path=str(tmp_path / "rules.json"), trace_dir=str(tmp_path))
        assert config.rules_path == tmp_path / "rules.json"
        assert config.trace_dir == tmp_path


class TestEnvironment:
    """Eval: Do PAGESMITH_* variables override defaults?"""

    def test_overrides(self):
        """Numbers are coerced and mandatory rules are comma-separated."""
        config = PipelineConfig.from_env({
            "PAGESMITH_MAX_ATTEMPTS": "3",
            "PAGESMITH_GATE_THRESHOLD": "80",
            "PAGESMITH_MANDATORY_RULES": "responsiveDesign, focusKeyboard,",
            "UNRELATED": "ignored",
        })
        assert config.max_attempts == 3
        assert config.gate_threshold == 80
        assert config.mandatory_rules == ["responsiveDesign", "focusKeyboard"]
        assert config.base_threshold == 85

    def test_empty_environment_is_defaults(self):
        """No variables, default config."""
        assert PipelineConfig.from_env({}) == PipelineConfig()

    def test_invalid_value(self):
        """A zero budget in the environment is a CatalogError."""
        with pytest.raises(CatalogError):
            PipelineConfig.from_env({"PAGESMITH_MAX_ATTEMPTS": "0"})
        with pytest.raises(CatalogError):
            PipelineConfig.from_env({"PAGESMITH_GATE_THRESHOLD": "high"})


class TestConfigFile:
    """Eval: Are JSON config files validated strictly?"""

    def test_load(self, tmp_path):
        """Known keys are applied."""
        path = tmp_path / "pagesmith.json"
        path.write_text(json.dumps({"max_attempts": 4, "content_threshold": 0.7}))
        config = PipelineConfig.from_file(path)
        assert config.max_attempts == 4
        assert config.content_threshold == 0.7

    def test_unknown_key(self, tmp_path):
        """A misspelled key is an error, not silently ignored."""
        path = tmp_path / "pagesmith.json"
        path.write_text(json.dumps({"max_attempt": 4}))
        with pytest.raises(CatalogError, match="Invalid config file"):
            PipelineConfig.from_file(path)

    def test_missing_or_broken_file(self, tmp_path):
        """Unreadable and non-JSON files are CatalogErrors."""
        with pytest.raises(CatalogError):
            PipelineConfig.from_file(tmp_path / "absent.json")
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(CatalogError):
            PipelineConfig.from_file(broken)
