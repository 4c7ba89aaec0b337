"""Job metadata and the per-task logging context."""

from __future__ import annotations

import logging
import uuid
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TASK_LOGGER_NAME = "snapcd_runner.task"


class JobMetadata(BaseModel):
    """Identifies the module a job operates on.

    Only used to derive working-directory paths; the engine never interprets
    these names otherwise.
    """

    model_config = ConfigDict(frozen=True)

    stack_name: str
    namespace_name: str
    module_name: str
    module_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    source_subdirectory: str | None = None


class _TaskLogAdapter(logging.LoggerAdapter):
    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        return f"[{extra['task_name']} {extra['job_id']}] {msg}", kwargs


@dataclass(frozen=True)
class TaskContext:
    """Logging context for one lifecycle call.

    Tool output streamed by the process runner goes through :attr:`logger`,
    which tags every line with the task name and job id.
    """

    task_name: str
    metadata: JobMetadata
    job_id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def logger(self) -> logging.LoggerAdapter:
        return _TaskLogAdapter(
            logging.getLogger(TASK_LOGGER_NAME),
            {"task_name": self.task_name, "job_id": str(self.job_id)},
        )
