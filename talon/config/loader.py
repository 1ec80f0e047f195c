"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static tuning defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

:func:`load_config` returns the merged dictionary; :func:`load_talon_config`
validates it into the frozen :class:`~talon.config.tuning.TalonConfig`.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from talon.config.settings import Settings
from talon.config.tuning import TalonConfig
from talon.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              the built-in defaults.
        settings: Settings instance to read overrides from.  A fresh one
                  is created when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Malformed YAML in {config_path}: {exc}"
                ) from exc
    else:
        yaml_config = {}

    if not isinstance(yaml_config, dict):
        raise ConfigurationError(message=f"Top level of {config_path} must be a mapping")

    settings = settings or Settings()
    env_overrides: dict = {}
    # Only override the embedding model when one is explicitly configured.
    if settings.openai_embedding_model:
        env_overrides["embedding"] = {"model": settings.openai_embedding_model}

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_talon_config(path: str = "config/config.yaml", settings: Settings | None = None) -> TalonConfig:
    """Load, merge, and validate the tuning configuration.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    raw = load_config(path, settings=settings)
    try:
        return TalonConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid configuration: {exc}") from exc


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
