"""
vestbond Configuration Manager

Deployment parameters for the issuer, loaded from:
- Environment-based config files (development/staging/production)
- YAML or JSON files in a config directory
- Environment variables (VESTBOND_<SECTION>_<KEY>)
- Command-line overrides

Every section is validated after merging; invalid values raise
ConfigurationError.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
ENV_PREFIX = "VESTBOND_"

WEEK = 7 * 24 * 3600
HOUR = 3600


class Environment(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class IssuerConfig:
    """Issuer deployment parameters"""
    ramp_duration: int = 8 * WEEK
    maturation_window: int = 104 * WEEK
    confirm_window: int = 36 * HOUR
    bonus_min: int = 5
    bonus_max: int = 25
    bonus_ceiling: int = 255
    max_deposit: int = 10**27  # normalized reward units
    grant_scale: int = 1

    def validate(self):
        """Validate issuer configuration"""
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"Invalid {f.name}: {value!r}. Must be an integer")
        for name in ("ramp_duration", "maturation_window", "confirm_window", "max_deposit", "grant_scale"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"Invalid {name}: {getattr(self, name)}. Must be > 0")
        if not (0 <= self.bonus_min < self.bonus_max <= self.bonus_ceiling):
            raise ConfigurationError(
                f"Invalid bonus range: {self.bonus_min}..{self.bonus_max}. "
                f"Must satisfy 0 <= bonus_min < bonus_max <= {self.bonus_ceiling}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    json_format: bool = True
    log_file: str = ""
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5

    def validate(self):
        """Validate logging configuration"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(self.level).upper() not in valid_levels:
            raise ConfigurationError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")
        if not isinstance(self.json_format, bool):
            raise ConfigurationError(f"Invalid json_format: {self.json_format!r}. Must be true or false")
        for name in ("max_bytes", "backup_count"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"Invalid {name}: {value!r}. Must be an integer")
        if self.max_bytes < 1024:
            raise ConfigurationError(f"Invalid max_bytes: {self.max_bytes}. Must be >= 1024")
        if self.backup_count < 0:
            raise ConfigurationError(f"Invalid backup_count: {self.backup_count}. Must be >= 0")


SECTIONS = {
    "issuer": IssuerConfig,
    "logging": LoggingConfig,
}


class ConfigManager:
    """
    Configuration Manager for the bond issuer

    Precedence, highest first:
    1. Command-line overrides
    2. Environment variables (VESTBOND_*)
    3. Environment-specific config file
    4. Default config file
    5. Built-in dataclass defaults
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 config_dir: Optional[str] = None,
                 cli_overrides: Optional[Dict[str, Any]] = None):
        """
        Args:
            environment: Environment name (development/staging/production)
            config_dir: Directory containing config files
            cli_overrides: Overrides keyed as ``section.key`` or nested dicts
        """
        load_dotenv()

        self.environment = self._determine_environment(environment)
        self.config_dir = Path(config_dir).resolve() if config_dir else DEFAULT_CONFIG_DIR
        self.cli_overrides = cli_overrides or {}

        self.issuer: IssuerConfig = IssuerConfig()
        self.logging: LoggingConfig = LoggingConfig()

        self._raw_config: Dict[str, Any] = {}

        self._load_configuration()

    def _determine_environment(self, environment: Optional[str]) -> Environment:
        env_str = (environment or os.getenv(f"{ENV_PREFIX}ENVIRONMENT", "development")).lower()

        env_mapping = {
            "dev": Environment.DEVELOPMENT,
            "development": Environment.DEVELOPMENT,
            "staging": Environment.STAGING,
            "stage": Environment.STAGING,
            "prod": Environment.PRODUCTION,
            "production": Environment.PRODUCTION,
        }

        return env_mapping.get(env_str, Environment.DEVELOPMENT)

    def _load_configuration(self):
        default_config = self._load_config_file("default")
        env_config = self._load_config_file(self.environment.value)

        merged_config = self._merge_configs(default_config, env_config)
        merged_config = self._apply_env_variables(merged_config)
        merged_config = self._apply_cli_overrides(merged_config)

        self._raw_config = merged_config

        self._parse_configuration(merged_config)
        self._validate_configuration()

        logger.debug(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "environment": self.environment.value,
                "config_dir": str(self.config_dir),
            }
        )

    def _load_config_file(self, filename: str) -> Dict[str, Any]:
        """Load ``<filename>.yaml`` or ``<filename>.json``; missing files yield {}."""
        yaml_path = self.config_dir / f"{filename}.yaml"
        if yaml_path.exists():
            with open(yaml_path, "r") as f:
                try:
                    return yaml.safe_load(f) or {}
                except yaml.YAMLError as exc:
                    raise ConfigurationError(f"Malformed config file {yaml_path}: {exc}") from exc

        json_path = self.config_dir / f"{filename}.json"
        if json_path.exists():
            with open(json_path, "r") as f:
                try:
                    return json.load(f)
                except json.JSONDecodeError as exc:
                    raise ConfigurationError(f"Malformed config file {json_path}: {exc}") from exc

        return {}

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_variables(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides.

        Format: VESTBOND_SECTION_KEY=value, e.g. VESTBOND_ISSUER_BONUS_MAX=30
        """
        result = config.copy()

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}ENVIRONMENT":
                continue

            parts = key[len(ENV_PREFIX):].lower().split("_")
            if len(parts) < 2:
                continue

            section = parts[0]
            config_key = "_".join(parts[1:])

            if section in SECTIONS:
                section_dict = dict(result.get(section) or {})
                section_dict[config_key] = self._parse_env_value(value)
                result[section] = section_dict

        return result

    def _apply_cli_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        result = config.copy()
        for key, value in self.cli_overrides.items():
            if isinstance(value, dict):
                result[key] = self._merge_configs(dict(result.get(key) or {}), value)
                continue
            if "." not in key:
                raise ConfigurationError(f"CLI override '{key}' must be of the form section.key")
            section, config_key = key.split(".", 1)
            section_dict = dict(result.get(section) or {})
            section_dict[config_key] = value
            result[section] = section_dict
        return result

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool]:
        try:
            return int(value)
        except ValueError:
            pass

        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _parse_configuration(self, config: Dict[str, Any]):
        for section, section_cls in SECTIONS.items():
            section_data = config.get(section) or {}
            if not isinstance(section_data, dict):
                raise ConfigurationError(f"Config section '{section}' must be a mapping")
            known = {f.name for f in fields(section_cls)}
            unknown = set(section_data) - known
            if unknown:
                raise ConfigurationError(
                    f"Unknown keys in config section '{section}': {sorted(unknown)}"
                )
            setattr(self, section, section_cls(**section_data))

    def _validate_configuration(self):
        self.issuer.validate()
        self.logging.validate()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dotted key, e.g. ``issuer.bonus_max``."""
        section, _, config_key = key.partition(".")
        section_obj = getattr(self, section, None) if section in SECTIONS else None
        if section_obj is None:
            return default
        if not config_key:
            return asdict(section_obj)
        return getattr(section_obj, config_key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment.value,
            "issuer": asdict(self.issuer),
            "logging": asdict(self.logging),
        }
