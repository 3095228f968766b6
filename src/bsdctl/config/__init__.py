"""Configuration management."""

from ..models.config import HostProfile, OutputConfig, Settings
from .manager import Config, ConfigManager

__all__ = ["Config", "ConfigManager", "HostProfile", "OutputConfig", "Settings"]
