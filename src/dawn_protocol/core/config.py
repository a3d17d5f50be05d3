"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrialConfig(BaseModel):
    """Free tier limits."""

    free_full_sessions: int = Field(
        default=3, ge=0, description="Full sessions before the paywall"
    )
    program_days: int = Field(default=14, ge=1, description="Length of the guided program")
    soft_prompt_cooldown_hours: int = Field(
        default=24, ge=0, description="Hide the signup prompt this long after dismissal"
    )


class AdaptationConfig(BaseModel):
    """How much session history feeds protocol adaptation."""

    history_window: int = Field(
        default=3, ge=3, description="Recent completed sessions used to derive deltas"
    )


class BillingConfig(BaseModel):
    """Subscription price configuration, consulted only at the boundary."""

    plus_price_id: str | None = Field(default=None, description="Price id for the Plus plan")
    pro_price_id: str | None = Field(default=None, description="Price id for the Pro plan")

    @property
    def prices_available(self) -> dict[str, bool]:
        """Which paid plans can be offered."""
        return {"plus": bool(self.plus_price_id), "pro": bool(self.pro_price_id)}


class SyncConfig(BaseModel):
    """Remote session sync configuration."""

    enabled: bool = False
    cloud_api_url: str = Field(default="http://127.0.0.1:3000")
    timeout_seconds: int = Field(default=15, ge=1, le=300)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DAWN_PROTOCOL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/dawn-protocol"
    )
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/dawn-protocol")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/dawn-protocol")

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    trial: TrialConfig = Field(default_factory=TrialConfig)
    adaptation: AdaptationConfig = Field(default_factory=AdaptationConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "dawn_protocol.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Session history is personal health data
        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. YAML config file (passed as init data)
        2. Environment variables
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/dawn-protocol/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        os.chmod(config_path, 0o600)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
