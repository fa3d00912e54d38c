"""Tests for environment configuration."""

import pytest
from pydantic import ValidationError

from alchemist.settings import load_settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = load_settings({})

        assert settings.gemini_credentials == []
        assert settings.gemini_models == ["gemini-1.5-flash-latest", "gemini-1.5-flash"]
        assert settings.retry_attempts == 3
        assert settings.retry_backoff_ms == 500
        assert settings.rate_limit_window_ms == 800
        assert settings.cache_max_size == 0
        assert settings.port == 3000
        assert settings.has_secondary is False

    def test_comma_lists(self) -> None:
        settings = load_settings(
            {"GEMINI_API_KEYS": " a, b ,,c ", "GEMINI_MODELS": "g1", "OPENAI_MODELS": "o1,o2"}
        )

        assert settings.gemini_api_keys == ["a", "b", "c"]
        assert settings.gemini_models == ["g1"]
        assert settings.openai_models == ["o1", "o2"]

    def test_single_key_merged_without_duplicates(self) -> None:
        settings = load_settings({"GEMINI_API_KEYS": "a,b", "GEMINI_API_KEY": "a"})

        assert settings.gemini_credentials == ["a", "b"]

    def test_secondary_enabled_by_key(self) -> None:
        settings = load_settings({"OPENAI_API_KEY": "sk-test"})

        assert settings.has_secondary is True

    def test_unrelated_variables_ignored(self) -> None:
        settings = load_settings({"PATH": "/usr/bin", "PORT": "8080"})

        assert settings.port == 8080

    def test_invalid_value(self) -> None:
        with pytest.raises(ValidationError):
            load_settings({"RETRY_ATTEMPTS": "0"})
