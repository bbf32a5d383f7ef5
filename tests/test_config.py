"""Tests for settings loading and the error taxonomy."""

import json

import pytest

from issue_correlator.config import CorrelatorSettings, load_settings
from issue_correlator.exceptions import ConfigurationError, ExhaustedRetry


class TestLoadSettings:
    """Test load_settings."""

    def test_defaults(self) -> None:
        settings = load_settings()
        assert settings == CorrelatorSettings()
        assert settings.search.scores.exact_error == 95
        assert settings.batch.batch_size == 5
        assert settings.batch.page_size == 100

    def test_partial_file_merges_with_defaults(self, tmp_path) -> None:
        config_file = tmp_path / "settings.json"
        config_file.write_text(
            json.dumps({"search": {"scores": {"tag": 50}}, "batch": {"batch_size": 10}})
        )

        settings = load_settings(config_file)

        assert settings.search.scores.tag == 50
        assert settings.search.scores.keyword == 70
        assert settings.batch.batch_size == 10

    def test_overrides_skip_none(self, tmp_path) -> None:
        settings = load_settings(overrides={"max_issues": 20, "batch_size": None})
        assert settings.batch.max_issues == 20
        assert settings.batch.batch_size == 5

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path) -> None:
        config_file = tmp_path / "settings.json"
        config_file.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Could not read"):
            load_settings(config_file)

    def test_invalid_values(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            load_settings(overrides={"page_size": 500})


class TestExceptions:
    def test_to_dict_includes_context(self) -> None:
        error = ExhaustedRetry("gave up", attempts=3, last_error=ValueError("boom"))
        data = error.to_dict()
        assert data["error_type"] == "ExhaustedRetry"
        assert data["context"] == {"attempts": 3, "last_error": "boom"}
