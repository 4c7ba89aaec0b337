"""Decoder for the binary ``tfplan`` entry of a Terraform/OpenTofu plan file.

Only the part of ``planfile.proto`` needed for change summaries is described;
every other field is skipped by the protobuf parser as an unknown field.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import Message

from snapcd_runner.engine.actions import TerraformAction

_PACKAGE = "tfplan"

_Field = descriptor_pb2.FieldDescriptorProto
_OPTIONAL = _Field.LABEL_OPTIONAL
_REPEATED = _Field.LABEL_REPEATED


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    label: int = _OPTIONAL,
    type_name: str | None = None,
) -> None:
    field = message.field.add(name=name, number=number, type=field_type, label=label)
    if type_name is not None:
        field.type_name = f".{_PACKAGE}.{type_name}"


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fd = descriptor_pb2.FileDescriptorProto(
        name="snapcd_runner/tfplan.proto",
        package=_PACKAGE,
        syntax="proto3",
    )

    action = fd.enum_type.add(name="Action")
    for member in TerraformAction:
        action.value.add(name=member.name, number=member.value)

    change = fd.message_type.add(name="Change")
    _add_field(change, "action", 1, _Field.TYPE_ENUM, type_name="Action")

    resource = fd.message_type.add(name="ResourceInstanceChange")
    _add_field(resource, "deposed_key", 7, _Field.TYPE_STRING)
    _add_field(resource, "provider", 8, _Field.TYPE_STRING)
    _add_field(resource, "change", 9, _Field.TYPE_MESSAGE, type_name="Change")
    _add_field(resource, "addr", 13, _Field.TYPE_STRING)
    _add_field(resource, "prev_run_addr", 14, _Field.TYPE_STRING)

    output = fd.message_type.add(name="OutputChange")
    _add_field(output, "name", 1, _Field.TYPE_STRING)
    _add_field(output, "change", 2, _Field.TYPE_MESSAGE, type_name="Change")
    _add_field(output, "sensitive", 3, _Field.TYPE_BOOL)

    plan = fd.message_type.add(name="Plan")
    _add_field(plan, "version", 1, _Field.TYPE_UINT64)
    _add_field(
        plan,
        "resource_changes",
        3,
        _Field.TYPE_MESSAGE,
        label=_REPEATED,
        type_name="ResourceInstanceChange",
    )
    _add_field(
        plan,
        "output_changes",
        4,
        _Field.TYPE_MESSAGE,
        label=_REPEATED,
        type_name="OutputChange",
    )
    _add_field(plan, "terraform_version", 14, _Field.TYPE_STRING)
    return fd


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())

Plan = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.Plan"))
ResourceInstanceChange = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName(f"{_PACKAGE}.ResourceInstanceChange")
)
OutputChange = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName(f"{_PACKAGE}.OutputChange")
)
Change = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.Change"))


def decode_plan(data: bytes) -> Message:
    """Parse the raw ``tfplan`` bytes into a :data:`Plan` message."""
    plan = Plan()
    plan.ParseFromString(data)
    return plan
