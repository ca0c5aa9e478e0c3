"""Resolved, render-ready model produced by the builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum as _Enum
from typing import List, Union

from protoc_gen_pydantic.descriptors import EnumDescriptor, MessageDescriptor


class ScalarType(str, _Enum):
    """Semantic scalar types; wire encodings of equal width collapse here."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"


@dataclass(frozen=True)
class MessageRef:
    descriptor: MessageDescriptor

    @property
    def full_name(self) -> str:
        return self.descriptor.full_name


@dataclass(frozen=True)
class EnumRef:
    descriptor: EnumDescriptor

    @property
    def full_name(self) -> str:
        return self.descriptor.full_name


@dataclass(frozen=True)
class MapType:
    key: ScalarType
    value: ResolvedType


ResolvedType = Union[ScalarType, MessageRef, EnumRef, MapType]


@dataclass
class Field:
    name: str
    number: int
    type: ResolvedType
    is_repeated: bool = False
    is_nullable: bool = False
    is_required: bool = False

    @property
    def is_map(self) -> bool:
        return isinstance(self.type, MapType)


@dataclass
class EnumMember:
    name: str
    value: int


@dataclass
class Enum:
    name: str
    full_name: str
    members: List[EnumMember] = field(default_factory=list)


@dataclass
class Class:
    name: str
    full_name: str
    fields: List[Field] = field(default_factory=list)
    nested_classes: List[Class] = field(default_factory=list)
    nested_enums: List[Enum] = field(default_factory=list)


@dataclass
class Module:
    """Everything that lands in one generated Python file."""

    module_path: str
    source_files: List[str] = field(default_factory=list)
    classes: List[Class] = field(default_factory=list)
    enums: List[Enum] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    # Another generated module lives below this one: acme -> acme/v1
    is_package: bool = False

    @property
    def file_name(self) -> str:
        if self.is_package:
            return f"{self.module_path}/__init__.py"
        return f"{self.module_path}.py"
