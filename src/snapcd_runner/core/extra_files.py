"""Materialize caller-supplied extra files into a module directory.

Files written here are tracked in ``.snapcd/extra-files.json`` so that a
later run which no longer requests them can undo the change: created files
are removed and overwritten files are restored from ``.snapcd/original-files``.
The manifest and backup directory must survive agent restarts.
"""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from pathlib import Path

    from snapcd_runner.core.directories import ModuleDirectory

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "extra-files.json"
BACKUP_DIR_NAME = "original-files"


class ExtraFile(BaseModel):
    """A file to place in the module root before the engine runs."""

    file_name: str
    contents: str
    overwrite: bool = False


class ExtraFilesManifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created: list[str] = Field(default_factory=list, alias="Created")
    overwritten: list[str] = Field(default_factory=list, alias="Overwritten")

    @classmethod
    def load(cls, path: Path) -> ExtraFilesManifest:
        if not path.is_file():
            return cls()
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Failed to read extra files manifest %s: %s", path, exc)
            return cls()

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(by_alias=True), encoding="utf-8")


def _backup(backup_dir: Path, file_name: str, source: Path) -> None:
    backup_path = backup_dir / file_name
    # Keep the first backup: a later run may be overwriting our own content.
    if backup_path.exists():
        return
    backup_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, backup_path)
    logger.info("Backed up original file: %s", file_name)


def _restore(backup_dir: Path, file_name: str, target: Path) -> None:
    backup_path = backup_dir / file_name
    if backup_path.exists():
        shutil.copyfile(backup_path, target)
        backup_path.unlink()
        logger.info("Restored original file: %s", file_name)
    elif target.exists():
        logger.warning("Backup not found for %s, deleting overwritten file", file_name)
        target.unlink()


def sync_extra_files(
    directory: ModuleDirectory,
    extra_files: Sequence[ExtraFile] | None,
    *,
    working_files: Collection[Path] = (),
) -> ExtraFilesManifest:
    """Bring the module root in line with *extra_files* and return the new manifest.

    *working_files* are paths restored from a previous run (engine lock files,
    local state); they are written in place without being tracked.
    """
    root = directory.root_dir
    scratch = directory.scratch_dir
    manifest_path = scratch / MANIFEST_FILE_NAME
    backup_dir = scratch / BACKUP_DIR_NAME

    previous = ExtraFilesManifest.load(manifest_path)
    requested = {f.file_name for f in extra_files or ()}
    current = ExtraFilesManifest()

    for name in previous.created:
        if name in requested:
            continue
        path = root / name
        if path.exists():
            logger.info("Removing extra file: %s", name)
            path.unlink()

    for name in previous.overwritten:
        if name not in requested:
            _restore(backup_dir, name, root / name)

    if extra_files:
        logger.info("Adding %d extra file(s) to %s", len(extra_files), root)

    for extra in extra_files or ():
        path = root / extra.file_name
        if path.exists() and path in working_files:
            path.write_text(extra.contents, encoding="utf-8")
        elif path.exists():
            if not extra.overwrite:
                logger.debug("Leaving existing %s untouched (overwrite disabled)", extra.file_name)
                continue
            _backup(backup_dir, extra.file_name, path)
            path.write_text(extra.contents, encoding="utf-8")
            current.overwritten.append(extra.file_name)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(extra.contents, encoding="utf-8")
            current.created.append(extra.file_name)

    current.save(manifest_path)
    return current
