"""Configuration loading from YAML files with environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from wallstreet.config.models import AppConfig, Environment

ENV_PREFIX = "WALLSTREET__"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge override dict into base dict. Override values win."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found."""
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Convention: WALLSTREET__SECTION__KEY=value
    Double underscore separates nesting levels.
    Example: WALLSTREET__SCHEDULER__INTERVAL_SECONDS=60
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX) :].lower().split("__")
        current = data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value
    return data


def load_config(
    config_dir: Path | str = "config",
    environment: str | None = None,
) -> AppConfig:
    """Load configuration from YAML files with environment overrides.

    Loading order (later values override earlier):
    1. config/base.yaml
    2. config/<environment>.yaml (``development.yaml`` or ``production.yaml``)
    3. Environment variables (WALLSTREET__SECTION__KEY)

    The environment is taken from the ``environment`` argument, then
    ``WALLSTREET__APP__ENVIRONMENT``, then ``app.environment`` in base.yaml.
    """
    config_dir = Path(config_dir)

    data = _load_yaml(config_dir / "base.yaml")

    env = (
        environment
        or os.environ.get(f"{ENV_PREFIX}APP__ENVIRONMENT")
        or data.get("app", {}).get("environment")
        or Environment.DEVELOPMENT.value
    )
    env_data = _load_yaml(config_dir / f"{env}.yaml")
    data = _deep_merge(data, env_data)
    data = _deep_merge(data, {"app": {"environment": env}})

    data = _apply_env_overrides(data)

    return AppConfig.from_dict(data)
