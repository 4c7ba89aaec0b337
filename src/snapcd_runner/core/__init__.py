"""Collaborators shared by every lifecycle step: job metadata, directories, extra files."""

from snapcd_runner.core.directories import SCRATCH_DIR_NAME, ModuleDirectory
from snapcd_runner.core.extra_files import ExtraFile, ExtraFilesManifest, sync_extra_files
from snapcd_runner.core.metadata import JobMetadata, TaskContext

__all__ = [
    "SCRATCH_DIR_NAME",
    "ExtraFile",
    "ExtraFilesManifest",
    "JobMetadata",
    "ModuleDirectory",
    "TaskContext",
    "sync_extra_files",
]
