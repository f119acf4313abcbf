# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
GPEditor Configuration System

Configuration is merged from (lowest precedence first):
- Programmatic defaults
- ~/.gpedit/config.yaml
- .gpedit.yaml in the current directory
- An explicit file (``gpedit --config``)
- GPEDIT_* environment variables
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger("gpedit.config")


# ============================================================================
# Configuration Models
# ============================================================================

class PathsConfig(BaseModel):
    """Path configuration"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    home: Path = Field(
        default_factory=lambda: Path.home() / ".gpedit",
        description="GPEditor home directory",
    )
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".gpedit" / "logs",
        description="Log files directory",
    )

    @field_validator("*", mode="before")
    @classmethod
    def ensure_path(cls, v):
        """Convert strings to Path objects"""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class ObservabilityConfig(BaseModel):
    """Logging configuration"""

    log_level: str = Field(default="INFO", description="Logging level")
    file_logging: bool = Field(default=True, description="Write a rotating log file")
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Rotate the log file after this size", ge=1024
    )
    log_backup_count: int = Field(default=5, description="Rotated files to keep", ge=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper


class RegistryConfig(BaseModel):
    """Policy store configuration"""

    backend: str = Field(default="windows", description="Registry backend: windows or memory")
    policies_root: str = Field(
        default="SOFTWARE\\Policies", description="Policy root walked under each hive"
    )
    max_depth: int = Field(default=32, description="Maximum key depth of a walk", ge=1)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v):
        v_lower = v.lower()
        if v_lower not in ("windows", "memory"):
            raise ValueError("Invalid backend. Must be one of: ['windows', 'memory']")
        return v_lower


class PolicyConfig(BaseModel):
    """Policy scope defaults"""

    default_domain: Optional[str] = Field(
        default=None, description="Domain used when --domain is not given"
    )


class GPEditorConfig(BaseModel):
    """Complete GPEditor configuration"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: PathsConfig = Field(default_factory=PathsConfig, description="Path configuration")
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig, description="Logging configuration"
    )
    registry: RegistryConfig = Field(
        default_factory=RegistryConfig, description="Policy store configuration"
    )
    policy: PolicyConfig = Field(default_factory=PolicyConfig, description="Policy scope defaults")


# ============================================================================
# Configuration Loader
# ============================================================================

_ENV_VARIABLES = {
    "GPEDIT_HOME": ("paths", "home"),
    "GPEDIT_LOG_DIR": ("paths", "log_dir"),
    "GPEDIT_LOG_LEVEL": ("observability", "log_level"),
    "GPEDIT_FILE_LOGGING": ("observability", "file_logging"),
    "GPEDIT_BACKEND": ("registry", "backend"),
    "GPEDIT_POLICIES_ROOT": ("registry", "policies_root"),
    "GPEDIT_MAX_DEPTH": ("registry", "max_depth"),
    "GPEDIT_DOMAIN": ("policy", "default_domain"),
}


class ConfigLoader:
    """Load configuration from multiple sources"""

    @staticmethod
    def load_from_env() -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}
        for variable, (section, key) in _ENV_VARIABLES.items():
            value = os.getenv(variable)
            if value:
                # pydantic coerces "false"/"32" to the field types
                config.setdefault(section, {})[key] = value
        return config

    @staticmethod
    def load_from_file(file_path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file"""
        if not file_path.exists():
            return {}

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config file {file_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Config file {file_path} must contain a mapping")
            return {}
        return data

    @staticmethod
    def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge multiple configuration dictionaries"""
        result: Dict[str, Any] = {}
        for config in configs:
            for key, value in config.items():
                if (
                    key in result
                    and isinstance(result[key], dict)
                    and isinstance(value, dict)
                ):
                    result[key] = ConfigLoader.merge_configs(result[key], value)
                else:
                    result[key] = value
        return result


# ============================================================================
# Global Configuration Instance
# ============================================================================

_config: Optional[GPEditorConfig] = None


def get_config() -> GPEditorConfig:
    """Get the cached global configuration, loading it on first use"""
    global _config

    if _config is None:
        _config = load_config()

    return _config


def load_config(
    config_file: Optional[Path] = None, env_override: bool = True
) -> GPEditorConfig:
    """
    Load configuration from all sources

    Args:
        config_file: Optional specific config file to load
        env_override: Whether environment variables override file config

    Returns:
        GPEditorConfig instance
    """
    configs = []

    default_locations = [
        Path.home() / ".gpedit" / "config.yaml",
        Path.cwd() / ".gpedit.yaml",
    ]

    for location in default_locations:
        file_config = ConfigLoader.load_from_file(location)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {location}")

    if config_file:
        file_config = ConfigLoader.load_from_file(Path(config_file))
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_file}")

    if env_override:
        env_config = ConfigLoader.load_from_env()
        if env_config:
            configs.append(env_config)
            logger.debug("Loaded config from environment")

    merged = ConfigLoader.merge_configs(*configs) if configs else {}

    try:
        return GPEditorConfig(**merged)
    except ValidationError as e:
        logger.error(f"Config validation failed: {e}")
        logger.warning("Using default configuration")
        return GPEditorConfig()


def reload_config(config_file: Optional[Path] = None) -> GPEditorConfig:
    """Reload global configuration"""
    global _config
    _config = load_config(config_file)
    logger.info("Configuration reloaded")
    return _config


def ensure_directories(config: Optional[GPEditorConfig] = None):
    """Ensure all configured directories exist"""
    if config is None:
        config = get_config()

    for directory in (config.paths.home, config.paths.log_dir):
        try:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")
