"""Descriptor tree loaded from protoc's FileDescriptorProto messages.

Every node owns its children. Messages and enums keep a non-owning link to
their enclosing message (``parent``) and to their file (``unit``) so the
fully-qualified name can be computed on demand instead of being assembled by
callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Union

from google.protobuf import descriptor_pb2 as d2


class Cardinality(str, Enum):
    OPTIONAL = "optional"
    REQUIRED = "required"
    REPEATED = "repeated"


_LABELS = {
    d2.FieldDescriptorProto.LABEL_OPTIONAL: Cardinality.OPTIONAL,
    d2.FieldDescriptorProto.LABEL_REQUIRED: Cardinality.REQUIRED,
    d2.FieldDescriptorProto.LABEL_REPEATED: Cardinality.REPEATED,
}


@dataclass(eq=False)
class FieldDescriptor:
    """A field declaration: [label] type name = number;"""

    name: str
    number: int
    wire_type: int
    cardinality: Cardinality = Cardinality.OPTIONAL
    type_name: str = ""
    proto3_optional: bool = False
    in_oneof: bool = False

    @property
    def is_repeated(self) -> bool:
        return self.cardinality is Cardinality.REPEATED

    @property
    def references_type(self) -> bool:
        return self.wire_type in (
            d2.FieldDescriptorProto.TYPE_MESSAGE,
            d2.FieldDescriptorProto.TYPE_ENUM,
        )


@dataclass(eq=False)
class EnumDescriptor:
    name: str
    values: List[tuple[str, int]] = field(default_factory=list)
    parent: Optional[MessageDescriptor] = field(default=None, repr=False)
    unit: Optional[CompilationUnit] = field(default=None, repr=False)

    @property
    def full_name(self) -> str:
        return _qualify(self.name, self.parent, self.unit)


@dataclass(eq=False)
class MessageDescriptor:
    name: str
    fields: List[FieldDescriptor] = field(default_factory=list)
    nested_messages: List[MessageDescriptor] = field(default_factory=list)
    nested_enums: List[EnumDescriptor] = field(default_factory=list)
    is_map_entry: bool = False
    parent: Optional[MessageDescriptor] = field(default=None, repr=False)
    unit: Optional[CompilationUnit] = field(default=None, repr=False)

    @property
    def full_name(self) -> str:
        return _qualify(self.name, self.parent, self.unit)

    def walk(self) -> Iterator[MessageDescriptor]:
        """Yield this message and every nested message, depth-first."""
        yield self
        for nested in self.nested_messages:
            yield from nested.walk()


Descriptor = Union[MessageDescriptor, EnumDescriptor]


@dataclass(eq=False)
class CompilationUnit:
    """One .proto file of the request."""

    path: str
    package: str = ""
    syntax: str = "proto2"
    messages: List[MessageDescriptor] = field(default_factory=list)
    enums: List[EnumDescriptor] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)

    @property
    def module_path(self) -> str:
        """Output module path: package ``a.b`` -> ``a/b``."""
        if self.package:
            return self.package.replace(".", "/")
        if self.path.endswith(".proto"):
            return self.path[: -len(".proto")]
        return self.path

    @property
    def module_name(self) -> str:
        """Dotted import name of the output module: ``a/b`` -> ``a.b``."""
        return self.module_path.replace("/", ".")

    def all_messages(self) -> Iterator[MessageDescriptor]:
        for message in self.messages:
            yield from message.walk()

    def all_enums(self) -> Iterator[EnumDescriptor]:
        yield from self.enums
        for message in self.all_messages():
            yield from message.nested_enums


def _qualify(
    name: str,
    parent: Optional[MessageDescriptor],
    unit: Optional[CompilationUnit],
) -> str:
    if parent is not None:
        return f"{parent.full_name}.{name}"
    if unit is not None and unit.package:
        return f"{unit.package}.{name}"
    return name


def _load_field(proto: d2.FieldDescriptorProto) -> FieldDescriptor:
    proto3_optional = proto.proto3_optional
    return FieldDescriptor(
        name=proto.name,
        number=proto.number,
        wire_type=proto.type,
        cardinality=_LABELS.get(proto.label, Cardinality.OPTIONAL),
        type_name=proto.type_name,
        proto3_optional=proto3_optional,
        # proto3 optional fields live in a synthetic oneof of their own
        in_oneof=proto.HasField("oneof_index") and not proto3_optional,
    )


def _load_enum(
    proto: d2.EnumDescriptorProto,
    unit: CompilationUnit,
    parent: Optional[MessageDescriptor] = None,
) -> EnumDescriptor:
    return EnumDescriptor(
        name=proto.name,
        values=[(v.name, v.number) for v in proto.value],
        parent=parent,
        unit=unit,
    )


def _load_message(
    proto: d2.DescriptorProto,
    unit: CompilationUnit,
    parent: Optional[MessageDescriptor] = None,
) -> MessageDescriptor:
    message = MessageDescriptor(
        name=proto.name,
        is_map_entry=proto.options.map_entry,
        parent=parent,
        unit=unit,
    )
    message.fields = [_load_field(f) for f in proto.field]
    message.nested_messages = [_load_message(n, unit, message) for n in proto.nested_type]
    message.nested_enums = [_load_enum(e, unit, message) for e in proto.enum_type]
    return message


def load_file(proto: d2.FileDescriptorProto) -> CompilationUnit:
    """Build a CompilationUnit tree from a FileDescriptorProto."""
    unit = CompilationUnit(
        path=proto.name,
        package=proto.package,
        syntax=proto.syntax or "proto2",
        dependencies=list(proto.dependency),
    )
    unit.messages = [_load_message(m, unit) for m in proto.message_type]
    unit.enums = [_load_enum(e, unit) for e in proto.enum_type]
    return unit
