"""
Settings Loading with File/Env/Override Precedence

1. **File level** (YAML/JSON): base configuration, from ``path`` or
   ``DRSHUB_CONFIG_FILE``
2. **Environment level**: ``DRSHUB_*`` variables override the file
3. **Override level**: programmatic overrides (CLI flags, tests) win
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml

from .settings import DrsHubSettings

_LOGGER = logging.getLogger(__name__)

CONFIG_FILE_ENV = "DRSHUB_CONFIG_FILE"


def _read_file(path: str) -> dict[str, Any]:
    """
    Read YAML or JSON settings file.

    Args:
        path: File path (suffix determines format: .yaml/.yml or .json)

    Returns:
        Parsed settings dictionary

    Raises:
        ValueError: If file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def _deep_merge(base: dict[str, Any], overrides: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Recursively merge ``overrides`` into ``base``; later values win."""
    if not overrides:
        return base
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_settings(
    path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> DrsHubSettings:
    """
    Load DrsHubSettings from file, environment, and overrides.

    **Precedence:** file < environment < overrides

    Args:
        path: Path to YAML/JSON settings file (falls back to ``DRSHUB_CONFIG_FILE``)
        overrides: Explicit values that win over everything else

    Returns:
        Validated DrsHubSettings instance

    Raises:
        ValueError: If the file cannot be read or the settings are invalid
    """
    data: dict[str, Any] = {}

    path = path or os.environ.get(CONFIG_FILE_ENV) or None
    if path:
        data = _read_file(path)
        _LOGGER.info(f"Loaded settings from {path}")

    # Only values the environment actually supplied; defaults must not mask the file.
    from_env = DrsHubSettings().model_dump(exclude_unset=True)
    data = _deep_merge(data, from_env)
    data = _deep_merge(data, overrides)

    settings = DrsHubSettings(**data)
    _LOGGER.debug(f"Settings resolved for env={settings.env.value}")
    return settings


__all__ = ["CONFIG_FILE_ENV", "load_settings"]
