"""Configuration manager for bsdctl."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ..models.config import HostProfile, OutputConfig, Settings
from ..remote.exceptions import ConfigError

CONFIG_DIR_ENV = "BSDCTL_CONFIG_DIR"


class Config(BaseModel):
    """Main configuration model."""

    default_host: str | None = None
    hosts: dict[str, HostProfile] = Field(default_factory=dict)
    settings: Settings = Field(default_factory=Settings)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="before")
    @classmethod
    def name_hosts_from_keys(cls, data: Any) -> Any:
        """Let host entries omit `name`; the mapping key is used."""
        if isinstance(data, dict) and isinstance(data.get("hosts"), dict):
            hosts = {}
            for key, value in data["hosts"].items():
                if isinstance(value, dict):
                    value = {"name": key, **value}
                hosts[key] = value
            data = {**data, "hosts": hosts}
        return data


def default_config_dir() -> Path:
    """~/.config/bsdctl, or $BSDCTL_CONFIG_DIR when set."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "bsdctl"


class ConfigManager:
    """Manage bsdctl configuration."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            config_dir: Custom config directory (defaults to ~/.config/bsdctl)
        """
        self.config_dir = config_dir if config_dir is not None else default_config_dir()
        self.config_file = self.config_dir / "config.yaml"
        self._config: Config | None = None

    def _ensure_config_dir(self) -> None:
        """Create config directory if it doesn't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.config_dir, 0o700)

    def exists(self) -> bool:
        """Check if config file exists.

        Returns:
            True if config file exists
        """
        return self.config_file.exists()

    def load(self) -> Config:
        """Load configuration from file.

        Returns:
            Loaded configuration

        Raises:
            ConfigError: If config file doesn't exist or is invalid
        """
        if not self.exists():
            raise ConfigError(
                f"Configuration file not found at {self.config_file}. "
                "Run 'bsdctl host add' to create one."
            )

        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read config: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.config_file} must contain a mapping")
        try:
            self._config = Config(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
        return self._config

    def save(self, config: Config) -> None:
        """Save configuration to file.

        Args:
            config: Configuration to save

        Raises:
            ConfigError: If save fails
        """
        self._ensure_config_dir()
        data = config.model_dump(mode="json", exclude_none=True)
        try:
            with open(self.config_file, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.chmod(self.config_file, 0o600)
        except OSError as e:
            raise ConfigError(f"Failed to save config: {e}") from e
        self._config = config

    def get(self) -> Config:
        """Get current configuration, loading if necessary.

        Returns:
            Current configuration, empty if no file exists yet
        """
        if self._config is None:
            self._config = self.load() if self.exists() else Config()
        return self._config

    def get_host(self, name: str | None = None) -> HostProfile:
        """Get a specific host profile or the default.

        Args:
            name: Profile name (uses default if None)

        Returns:
            Host profile

        Raises:
            ConfigError: If profile not found
        """
        config = self.get()

        if name is None:
            if config.default_host is None:
                raise ConfigError("No default host set. Use --host to specify one.")
            name = config.default_host

        if name not in config.hosts:
            available = ", ".join(config.hosts) or "none"
            raise ConfigError(f"Host '{name}' not found. Available hosts: {available}")

        return config.hosts[name]

    def add_host(self, profile: HostProfile) -> None:
        """Add or replace a host profile.

        The first host added becomes the default.

        Args:
            profile: Host profile
        """
        config = self.get()
        config.hosts[profile.name] = profile

        if config.default_host is None:
            config.default_host = profile.name

        self.save(config)

    def remove_host(self, name: str) -> None:
        """Remove a host profile.

        Args:
            name: Profile name

        Raises:
            ConfigError: If profile not found
        """
        config = self.get()

        if name not in config.hosts:
            raise ConfigError(f"Host '{name}' not found")

        del config.hosts[name]

        if config.default_host == name:
            config.default_host = next(iter(config.hosts), None)

        self.save(config)

    def set_default_host(self, name: str) -> None:
        """Set the default host.

        Args:
            name: Profile name

        Raises:
            ConfigError: If profile not found
        """
        config = self.get()

        if name not in config.hosts:
            raise ConfigError(f"Host '{name}' not found")

        config.default_host = name
        self.save(config)

    def list_hosts(self) -> list[HostProfile]:
        """List all host profiles.

        Returns:
            Host profiles in insertion order
        """
        return list(self.get().hosts.values())
