"""Working-directory layout for a module."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from snapcd_runner.config.schema import RunnerSettings
    from snapcd_runner.core.metadata import JobMetadata

logger = logging.getLogger(__name__)

SCRATCH_DIR_NAME = ".snapcd"


class ModuleDirectory:
    """Resolves the root, init and scratch directories of a module.

    Layout::

        <working_directory>/<stack>/<namespace>/<module>     root
        <root>[/<source_subdirectory>]                       init
        <init>/.snapcd                                       scratch
    """

    def __init__(self, metadata: JobMetadata, settings: RunnerSettings) -> None:
        self._settings = settings
        self._root = (
            settings.working_directory
            / metadata.stack_name
            / metadata.namespace_name
            / metadata.module_name
        )
        subdirectory = metadata.source_subdirectory or ""
        self._init = self._root / subdirectory if subdirectory else self._root
        self._scratch = self._init / SCRATCH_DIR_NAME

    @property
    def working_dir(self) -> Path:
        return self._settings.working_directory

    @property
    def temp_dir(self) -> Path:
        return self._settings.temp_directory

    @property
    def root_dir(self) -> Path:
        return self._root

    @property
    def init_dir(self) -> Path:
        return self._init

    @property
    def scratch_dir(self) -> Path:
        return self._scratch

    def ensure_scratch_dir(self) -> Path:
        """Create the scratch directory with a ``.gitignore`` that hides it."""
        self._scratch.mkdir(parents=True, exist_ok=True)
        (self._scratch / ".gitignore").write_text("*\n", encoding="utf-8")
        logger.debug("Scratch directory ready at %s", self._scratch)
        return self._scratch
