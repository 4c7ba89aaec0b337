"""Runner settings."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BeforeValidator, Field
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _expand_path(v: Any) -> Any:
    if isinstance(v, str | Path):
        return Path(v).expanduser()
    return v


def _expand_paths(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, str):
        v = [p for p in v.split(":") if p]
    return [_expand_path(p) for p in v]


ExpandedPath = Annotated[Path, BeforeValidator(_expand_path)]
BinaryPaths = Annotated[list[Path], NoDecode, BeforeValidator(_expand_paths)]


class RunnerSettings(BaseSettings):
    """Where modules live on disk and how engine binaries are found.

    Fields can be set via YAML (constructor kwargs) or environment variables
    with the ``SNAPCD_`` prefix.  Constructor kwargs take precedence.
    ``~`` is expanded in every path.
    """

    model_config = SettingsConfigDict(env_prefix="SNAPCD_")

    working_directory: ExpandedPath = Path("~/.snapcd/modules").expanduser()
    temp_directory: ExpandedPath = Path("~/.snapcd/temp").expanduser()
    additional_binary_paths: BinaryPaths = Field(default_factory=list)
