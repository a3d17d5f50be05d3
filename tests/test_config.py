"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from dawn_protocol.core.config import Config, get_config


class TestConfig:
    def test_defaults(self, config: Config, tmp_path: Path) -> None:
        assert config.trial.free_full_sessions == 3
        assert config.trial.soft_prompt_cooldown_hours == 24
        assert config.adaptation.history_window == 3
        assert config.sync.enabled is False
        assert config.db_path == tmp_path / "data" / "dawn_protocol.db"
        assert config.config_file == tmp_path / "config" / "config.yaml"

    def test_env_overrides(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("DAWN_PROTOCOL_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DAWN_PROTOCOL_TRIAL__FREE_FULL_SESSIONS", "5")
        monkeypatch.setenv("DAWN_PROTOCOL_SYNC__ENABLED", "true")
        config = Config(data_dir=tmp_path)
        assert config.log_level == "DEBUG"
        assert config.trial.free_full_sessions == 5
        assert config.sync.enabled is True

    def test_invalid_values_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            Config(log_level="LOUD")
        with pytest.raises(ValidationError):
            Config(adaptation={"history_window": 2})

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "data_dir": str(tmp_path / "state"),
                    "billing": {"pro_price_id": "price_pro"},
                    "sync": {"cloud_api_url": "https://example.test"},
                }
            )
        )
        config = Config.load(path)
        assert config.data_dir == tmp_path / "state"
        assert config.billing.pro_price_id == "price_pro"
        assert config.sync.cloud_api_url == "https://example.test"

    def test_load_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = Config.load(tmp_path / "nope.yaml")
        assert config.trial.free_full_sessions == 3

    def test_save_round_trip(self, config: Config) -> None:
        config.trial.free_full_sessions = 7
        config.save()
        assert config.config_file.stat().st_mode & 0o777 == 0o600

        loaded = Config.load(config.config_file)
        assert loaded.trial.free_full_sessions == 7
        assert loaded.data_dir == config.data_dir

    def test_ensure_directories(self, config: Config) -> None:
        config.ensure_directories()
        assert config.data_dir.is_dir()
        assert config.log_dir.is_dir()
        assert config.config_dir.is_dir()

    def test_get_config_is_cached(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        get_config.cache_clear()
        try:
            assert get_config() is get_config()
        finally:
            get_config.cache_clear()
