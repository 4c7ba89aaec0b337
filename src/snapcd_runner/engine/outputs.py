"""Convert an engine's ``output -json`` document into an :class:`OutputSet`."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import threading
import time
from typing import TYPE_CHECKING, Any

from snapcd_runner.engine.errors import OutputPropertyError, OutputSetError
from snapcd_runner.engine.types import Output, OutputSet

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def compute_checksum(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _output_type(body: dict[str, Any]) -> str | None:
    if "type" not in body:
        return None
    # Terraform encodes complex types as ["object", {...}]; keep the head.
    declared = body["type"]
    if declared is None:
        return ""
    if isinstance(declared, list):
        declared = declared[0] if declared else None
    if declared is None:
        return None
    return declared if isinstance(declared, str) else _compact(declared)


def _output_value(body: dict[str, Any]) -> str | None:
    if "value" not in body:
        return None
    # An explicit null is an empty value, only a missing key is an error.
    value = body["value"]
    if value is None:
        return ""
    return value if isinstance(value, str) else _compact(value)


def _convert(name: str, body: Any, output_sources: Mapping[str, bool] | None) -> Output:
    if not isinstance(body, dict):
        raise OutputPropertyError(name, "Output is not a JSON object")
    output_type = _output_type(body)
    if output_type is None:
        raise OutputPropertyError(name, "Output type is not defined")
    value = _output_value(body)
    if value is None:
        raise OutputPropertyError(name, "Output value is not defined")
    sensitive = body.get("sensitive")
    return Output(
        name=name,
        type=output_type,
        value=value,
        sensitive=bool(sensitive) if sensitive is not None else None,
        from_extra_file=bool(output_sources and output_sources.get(name, False)),
    )


async def parse_json_to_output_set(
    raw: str,
    output_sources: Mapping[str, bool] | None = None,
) -> OutputSet:
    """Build an output set from *raw* JSON, one worker per top-level property.

    *output_sources* flags outputs declared in extra files.  Every property
    is attempted; failures are collected and raised together afterwards.

    Raises:
        OutputSetError: At least one property could not be converted.
    """
    document = json.loads(raw)
    if not isinstance(document, dict):
        root_error = OutputPropertyError("<root>", "Output document is not a JSON object")
        raise OutputSetError([root_error])

    outputs: list[Output] = []
    errors: list[OutputPropertyError] = []
    lock = threading.Lock()

    def work(name: str, body: Any) -> None:
        try:
            output = _convert(name, body, output_sources)
        except OutputPropertyError as exc:
            logger.error("%s", exc)
            with lock:
                errors.append(exc)
            return
        with lock:
            outputs.append(output)

    await asyncio.gather(*(asyncio.to_thread(work, n, b) for n, b in document.items()))

    if errors:
        raise OutputSetError(sorted(errors, key=lambda e: e.name))

    outputs.sort(key=lambda o: o.name)
    return OutputSet(
        checksum=compute_checksum(raw),
        timestamp=int(time.time() * 1000),
        outputs=outputs,
    )
