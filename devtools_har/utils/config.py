"""
Configuration management for devtools-har.
Loads and validates settings from YAML files and environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

ENV_PREFIX = "DEVTOOLS_HAR_"


class GeneralConfig(BaseModel):
    """General configuration."""

    version: str = "0.1.0"
    log_level: str = "INFO"
    logs_dir: str = "logs"


class HarConfig(BaseModel):
    """Archive synthesis defaults.

    These are the values used when a HarBuilder is created without
    explicit options.
    """

    include_resources_from_disk_cache: bool = False
    include_text_from_response_body: bool = False
    mimic_chrome_har: bool = False
    creator_name: str = "devtools-har"


class RecorderConfig(BaseModel):
    """Browser recorder configuration."""

    fetch_response_bodies: bool = True
    response_body_timeout: float = 10.0  # seconds per Network.getResponseBody call


class StorageConfig(BaseModel):
    """Storage configuration."""

    archive_dir: str = "data/archive"


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    har: HarConfig = Field(default_factory=HarConfig)
    recorder: RecorderConfig = Field(default_factory=RecorderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_local_overrides(config_dir: Path) -> dict[str, Any]:
    """Load local.yaml overrides.

    Top-level keys correspond to config file names (without .yaml extension).

    Example local.yaml:
        settings:
          har:
            mimic_chrome_har: true
    """
    local_path = config_dir / "local.yaml"
    if not local_path.exists():
        return {}
    with open(local_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml and apply the `settings` section of local.yaml.

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config: dict[str, Any] = {}

    base_path = config_dir / "settings.yaml"
    if base_path.exists():
        with open(base_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    local_overrides = _load_local_overrides(config_dir)
    if "settings" in local_overrides:
        config = _deep_merge(config, local_overrides["settings"])

    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with DEVTOOLS_HAR_ and use
    double underscores for nested keys.

    Example:
        DEVTOOLS_HAR_HAR__MIMIC_CHROME_HAR=true

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}CONFIG_DIR":
            continue

        key_path = key[len(ENV_PREFIX) :].lower().split("__")

        current = config
        for part in key_path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        # Raw strings; the settings models coerce them by field type
        current[key_path[-1]] = value

    return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. YAML configuration files (settings.yaml, then local.yaml)
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    config_dir = Path(os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "config"))
    config = _load_yaml_config(config_dir)
    config = _apply_env_overrides(config)
    return Settings(**config)


def get_project_root() -> Path:
    """Get the project root directory."""
    # This file is at devtools_har/utils/config.py
    return Path(__file__).parent.parent.parent
