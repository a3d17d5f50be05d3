"""Core configuration."""

from dawn_protocol.core.config import Config, get_config

__all__ = ["Config", "get_config"]
