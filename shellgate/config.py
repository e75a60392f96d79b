"""Shellgate settings.

Defaults are overlaid by an optional YAML file and then by
``SHELLGATE_*`` environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

ENV_PREFIX = "SHELLGATE_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when settings cannot be loaded or fail validation."""


@dataclass
class Config:
    """Server, SSH and cleanup settings.

    Sources, lowest precedence first: field defaults, the YAML file
    named by SHELLGATE_CONFIG (or ~/.config/shellgate/config.yaml),
    then environment variables.
    """

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # SSH
    known_hosts: Optional[str] = None
    keepalive_interval: float = 15.0
    read_size: int = 4096

    # Inactive session cleanup
    cleanup_interval_seconds: float = 300.0
    inactivity_timeout_minutes: float = 30.0

    @property
    def inactivity_timeout_seconds(self) -> float:
        """Return inactivity threshold in seconds."""
        return self.inactivity_timeout_minutes * 60

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not isinstance(self.port, int):
            errors.append("port must be an integer")
        elif self.port < 1 or self.port > 65535:
            errors.append("port must be between 1 and 65535")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.known_hosts and not Path(self.known_hosts).expanduser().exists():
            errors.append(f"known_hosts file not found: {self.known_hosts}")

        if self.keepalive_interval < 0:
            errors.append("keepalive_interval must not be negative")

        if self.read_size < 1:
            errors.append("read_size must be at least 1")

        if self.cleanup_interval_seconds <= 0:
            errors.append("cleanup_interval_seconds must be positive")

        if self.inactivity_timeout_minutes <= 0:
            errors.append("inactivity_timeout_minutes must be positive")

        return errors

    @classmethod
    def _load_without_validation(cls) -> "Config":
        """Apply the YAML file then the environment on top of the defaults."""
        return cls._load_from_env(cls._load_from_yaml(cls()))

    @classmethod
    def load(cls) -> "Config":
        """Load and validate configuration.

        Raises:
            ConfigError: If any setting is invalid.
        """
        config = cls._load_without_validation()
        errors = config.validate()
        if errors:
            raise ConfigError("; ".join(errors))
        return config

    @classmethod
    def _converters(cls) -> dict[str, Callable[[Any], Any]]:
        """Map each loadable setting to the function that parses it."""
        return {
            "host": str,
            "port": cls._parse_port,
            "debug": cls._parse_bool,
            "cors_origins": cls._parse_list,
            "log_level": str,
            "log_file": str,
            "known_hosts": str,
            "keepalive_interval": float,
            "read_size": int,
            "cleanup_interval_seconds": float,
            "inactivity_timeout_minutes": float,
        }

    @classmethod
    def _load_from_yaml(cls, config: "Config") -> "Config":
        """Overlay settings from SHELLGATE_CONFIG or ~/.config/shellgate/config.yaml."""
        explicit = os.environ.get("SHELLGATE_CONFIG")
        path = Path(explicit) if explicit else Path.home() / ".config" / "shellgate" / "config.yaml"
        if not path.exists():
            return config

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config file: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Failed to load config file: {path} is not a mapping")

        for key, parse in cls._converters().items():
            if data.get(key) is not None:
                try:
                    setattr(config, key, parse(data[key]))
                except (ValueError, TypeError) as e:
                    raise ConfigError(f"Invalid value for {key}: {e}")

        return config

    @classmethod
    def _load_from_env(cls, config: "Config") -> "Config":
        """Overlay SHELLGATE_<SETTING> environment variables."""
        for key, parse in cls._converters().items():
            env_var = f"{ENV_PREFIX}{key.upper()}"
            raw = os.environ.get(env_var)
            if raw is None:
                continue
            try:
                setattr(config, key, parse(raw))
            except (ValueError, TypeError) as e:
                raise ConfigError(f"Invalid value for {env_var}: {e}")

        return config

    @staticmethod
    def _parse_bool(value: str | bool) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1", "yes", "on")

    @staticmethod
    def _parse_list(value: str | list) -> list[str]:
        """Accept a YAML list or a comma-separated string."""
        if isinstance(value, list):
            return [str(v) for v in value]
        return [v.strip() for v in str(value).split(",") if v.strip()]

    @staticmethod
    def _parse_port(value: str | int) -> int:
        # Range is checked in validate()
        try:
            return int(value)
        except (ValueError, TypeError):
            raise ConfigError(f"Invalid port value: {value}")
