"""YAML settings file loader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML

from snapcd_runner.config.schema import RunnerSettings

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised for settings loading / validation errors."""


# Field name → environment variable.
_SETTINGS_ENV_MAP: dict[str, str] = {
    "working_directory": "SNAPCD_WORKING_DIRECTORY",
    "temp_directory": "SNAPCD_TEMP_DIRECTORY",
    "additional_binary_paths": "SNAPCD_ADDITIONAL_BINARY_PATHS",
}


def _resolve_fields(raw: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Resolve settings fields from YAML, env vars, and ``.env`` file.

    Priority (highest wins): YAML value > env var > ``.env`` file.
    """
    env_file = config_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    resolved: dict[str, Any] = {}
    for field, env_key in _SETTINGS_ENV_MAP.items():
        val = raw.get(field)
        if val is None:
            val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val
    return resolved


def load_settings(path: Path | str | None = None) -> RunnerSettings:
    """Load runner settings from an optional YAML file.

    Without *path*, only environment variables and a ``.env`` file in the
    current directory are consulted.

    Raises:
        ConfigError: On YAML parse errors or validation failures.
    """
    raw: dict[str, Any] = {}
    config_dir = Path()
    if path is not None:
        path = Path(path)
        config_dir = path.parent
        try:
            loaded = YAML(typ="safe").load(path)
        except Exception as exc:
            raise ConfigError(f"Failed to read {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        unknown = set(loaded) - set(_SETTINGS_ENV_MAP)
        if unknown:
            raise ConfigError(f"{path}: unknown setting(s): {', '.join(sorted(unknown))}")
        raw = loaded

    try:
        settings = RunnerSettings.model_validate(_resolve_fields(raw, config_dir))
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    logger.debug(
        "Loaded settings: working_directory=%s, %d extra binary path(s)",
        settings.working_directory,
        len(settings.additional_binary_paths),
    )
    return settings
