"""Unit tests for context_anchor.config — EngineSettings and environment loading."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from context_anchor.config import ENV_PREFIX, EngineSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)


class TestEngineSettingsDefaults:
    def test_defaults(self) -> None:
        settings = EngineSettings()
        assert settings.minting_url is None
        assert settings.minting_timeout == pytest.approx(5.0)
        assert settings.database_path == "context_anchor.db"
        assert settings.max_update_retries == 5
        assert settings.trust_policy.recalculation_interval == 10

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(minting_timeout=0)

    def test_retries_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(max_update_retries=0)


class TestEngineSettingsFromEnv:
    def test_empty_environment_gives_defaults(self) -> None:
        assert EngineSettings.from_env() == EngineSettings()

    def test_values_are_read(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTEXT_ANCHOR_MINTING_URL", "https://mint.example.test")
        monkeypatch.setenv("CONTEXT_ANCHOR_MINTING_TOKEN", "secret")
        monkeypatch.setenv("CONTEXT_ANCHOR_MINTING_TIMEOUT", "2.5")
        monkeypatch.setenv("CONTEXT_ANCHOR_DB", "/tmp/anchors.db")
        monkeypatch.setenv("CONTEXT_ANCHOR_MAX_RETRIES", "8")
        monkeypatch.setenv("CONTEXT_ANCHOR_RECALC_INTERVAL", "25")
        monkeypatch.setenv("CONTEXT_ANCHOR_MIN_SCORE_DELTA", "0.5")
        settings = EngineSettings.from_env()
        assert settings.minting_url == "https://mint.example.test"
        assert settings.minting_token == "secret"
        assert settings.minting_timeout == pytest.approx(2.5)
        assert settings.database_path == "/tmp/anchors.db"
        assert settings.max_update_retries == 8
        assert settings.trust_policy.recalculation_interval == 25
        assert settings.trust_policy.min_score_delta == pytest.approx(0.5)

    def test_blank_values_are_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTEXT_ANCHOR_MINTING_URL", "   ")
        monkeypatch.setenv("CONTEXT_ANCHOR_DB", "")
        settings = EngineSettings.from_env()
        assert settings.minting_url is None
        assert settings.database_path == "context_anchor.db"

    def test_bad_numbers_fall_back_with_warning(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("CONTEXT_ANCHOR_MINTING_TIMEOUT", "soon")
        monkeypatch.setenv("CONTEXT_ANCHOR_MAX_RETRIES", "many")
        with caplog.at_level(logging.WARNING, logger="context_anchor.config"):
            settings = EngineSettings.from_env()
        assert settings.minting_timeout == pytest.approx(5.0)
        assert settings.max_update_retries == 5
        assert "non-numeric CONTEXT_ANCHOR_MINTING_TIMEOUT" in caplog.text
        assert "non-integer CONTEXT_ANCHOR_MAX_RETRIES" in caplog.text

    def test_out_of_range_value_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTEXT_ANCHOR_RECALC_INTERVAL", "0")
        with pytest.raises(ValidationError):
            EngineSettings.from_env()

    def test_source_profiles_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        path = tmp_path / "sources.json"
        wiki = {"stability": 0.95, "compliance": 0.9, "category": "documentation"}
        path.write_text(json.dumps({"sources": {"wiki.internal": wiki}}), encoding="utf-8")
        monkeypatch.setenv("CONTEXT_ANCHOR_SOURCE_PROFILES", str(path))
        profiles = EngineSettings.from_env().source_profiles
        assert profiles.lookup("wiki.internal").stability == pytest.approx(0.95)
        assert profiles.lookup("x.com").category == "unknown"

    def test_invalid_source_profiles_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        path = tmp_path / "sources.json"
        path.write_text('{"sources": {"a": {"stability": 3}}}', encoding="utf-8")
        monkeypatch.setenv("CONTEXT_ANCHOR_SOURCE_PROFILES", str(path))
        with pytest.raises(ValidationError):
            EngineSettings.from_env()
