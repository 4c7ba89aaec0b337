"""Tests for output-set construction."""

from __future__ import annotations

import hashlib
import json

import pytest

from snapcd_runner.engine.errors import OutputSetError
from snapcd_runner.engine.outputs import parse_json_to_output_set

_TERRAFORM_OUTPUT = json.dumps(
    {
        "bucket": {"sensitive": False, "type": "string", "value": "my-bucket"},
        "tags": {
            "sensitive": False,
            "type": ["object", {"env": "string"}],
            "value": {"env": "prod"},
        },
        "password": {"sensitive": True, "type": "string", "value": "hunter2"},
        "ports": {"type": ["list", "number"], "value": [80, 443]},
        "count": {"type": "number", "value": 3},
    }
)


@pytest.mark.asyncio
async def test_terraform_outputs() -> None:
    output_set = await parse_json_to_output_set(_TERRAFORM_OUTPUT)

    by_name = {o.name: o for o in output_set.outputs}
    assert [o.name for o in output_set.outputs] == sorted(by_name)
    assert by_name["bucket"].type == "string"
    assert by_name["bucket"].value == "my-bucket"
    assert by_name["bucket"].sensitive is False
    assert by_name["tags"].type == "object"
    assert by_name["tags"].value == '{"env":"prod"}'
    assert by_name["password"].sensitive is True
    assert by_name["ports"].type == "list"
    assert by_name["ports"].value == "[80,443]"
    assert by_name["ports"].sensitive is None
    assert by_name["count"].value == "3"


@pytest.mark.asyncio
async def test_checksum_and_timestamp() -> None:
    output_set = await parse_json_to_output_set(_TERRAFORM_OUTPUT)

    assert output_set.checksum == hashlib.sha256(_TERRAFORM_OUTPUT.encode()).hexdigest()
    assert output_set.timestamp > 1_600_000_000_000


@pytest.mark.asyncio
async def test_output_sources_flag_extra_files() -> None:
    output_set = await parse_json_to_output_set(
        _TERRAFORM_OUTPUT, {"bucket": True, "tags": False}
    )

    flags = {o.name: o.from_extra_file for o in output_set.outputs}
    assert flags["bucket"] is True
    assert flags["tags"] is False
    assert flags["password"] is False


@pytest.mark.asyncio
async def test_empty_document() -> None:
    output_set = await parse_json_to_output_set("{}")
    assert output_set.outputs == []


@pytest.mark.asyncio
async def test_errors_are_collected_for_every_property() -> None:
    raw = json.dumps(
        {
            "ok": {"type": "string", "value": "fine"},
            "no_type": {"value": "x"},
            "no_value": {"type": "string"},
        }
    )

    with pytest.raises(OutputSetError) as exc_info:
        await parse_json_to_output_set(raw)

    errors = {e.name: str(e) for e in exc_info.value.errors}
    assert set(errors) == {"no_type", "no_value"}
    assert "Output type is not defined" in errors["no_type"]
    assert "Output value is not defined" in errors["no_value"]
    assert "no_type" in str(exc_info.value)


@pytest.mark.asyncio
async def test_invalid_json_raises() -> None:
    with pytest.raises(json.JSONDecodeError):
        await parse_json_to_output_set("{not json")


@pytest.mark.asyncio
async def test_null_value_and_type_become_empty_strings() -> None:
    raw = json.dumps(
        {
            "unset": {"type": "string", "value": None, "sensitive": False},
            "untyped": {"type": None, "value": "x"},
        }
    )

    output_set = await parse_json_to_output_set(raw)

    by_name = {o.name: o for o in output_set.outputs}
    assert by_name["unset"].value == ""
    assert by_name["unset"].type == "string"
    assert by_name["untyped"].type == ""
