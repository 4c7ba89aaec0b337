"""Persist the environment resolved during Init for later lifecycle steps.

The file holds one ``export KEY=<json string>`` line per variable. JSON
encoding keeps quotes, newlines and shell metacharacters intact.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

ENV_FILE_NAME = "snapcd.env"
_EXPORT_PREFIX = "export "


def save_env(path: Path, env: Mapping[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"{_EXPORT_PREFIX}{key}={json.dumps(value)}" for key, value in env.items()]
    path.write_text("\n".join(lines), encoding="utf-8")
    logger.debug("Saved %d environment variable(s) to %s", len(lines), path)


def _parse_line(line: str) -> tuple[str, str] | None:
    if not line.startswith(_EXPORT_PREFIX):
        return None
    key, sep, raw_value = line[len(_EXPORT_PREFIX) :].partition("=")
    if not sep or not key:
        return None
    try:
        value = json.loads(raw_value)
    except json.JSONDecodeError:
        return None
    if not isinstance(value, str):
        return None
    return key, value


def load_env(path: Path) -> dict[str, str] | None:
    """Load the environment file, or return ``None`` if it does not exist.

    Lines that are not well-formed exports are skipped.
    """
    if not path.is_file():
        return None

    env: dict[str, str] = {}
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        parsed = _parse_line(line)
        if parsed is None:
            logger.warning("Skipping malformed line %d in %s", lineno, path)
            continue
        env[parsed[0]] = parsed[1]

    logger.debug("Loaded %d environment variable(s) from %s", len(env), path)
    return env
