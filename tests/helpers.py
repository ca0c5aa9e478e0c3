"""Builders for descriptor_pb2 messages, standing in for protoc output."""

from typing import Iterable, List, Optional, Sequence, Tuple

from google.protobuf import descriptor_pb2 as d2
from google.protobuf.compiler import plugin_pb2

from protoc_gen_pydantic.builder import ModelBuilder
from protoc_gen_pydantic.descriptors import CompilationUnit, load_file
from protoc_gen_pydantic.map_entries import collect_map_entries
from protoc_gen_pydantic.models import Class, Module
from protoc_gen_pydantic.symbols import build_symbol_table

T = d2.FieldDescriptorProto


def make_field(
    name: str,
    number: int,
    type_: int,
    type_name: str = "",
    label: int = T.LABEL_OPTIONAL,
    proto3_optional: bool = False,
    oneof_index: Optional[int] = None,
) -> d2.FieldDescriptorProto:
    field = T(name=name, number=number, type=type_, label=label)
    if type_name:
        field.type_name = type_name
    if proto3_optional:
        field.proto3_optional = True
    if oneof_index is not None:
        field.oneof_index = oneof_index
    return field


def make_enum(name: str, values: Sequence[Tuple[str, int]]) -> d2.EnumDescriptorProto:
    enum = d2.EnumDescriptorProto(name=name)
    for value_name, number in values:
        enum.value.add(name=value_name, number=number)
    return enum


def make_message(
    name: str,
    fields: Iterable[d2.FieldDescriptorProto] = (),
    nested: Iterable[d2.DescriptorProto] = (),
    enums: Iterable[d2.EnumDescriptorProto] = (),
    map_entry: bool = False,
    oneofs: Iterable[str] = (),
) -> d2.DescriptorProto:
    message = d2.DescriptorProto(name=name)
    message.field.extend(fields)
    message.nested_type.extend(nested)
    message.enum_type.extend(enums)
    for oneof in oneofs:
        message.oneof_decl.add(name=oneof)
    if map_entry:
        message.options.map_entry = True
    return message


def make_map_entry(
    name: str,
    key_type: int,
    value_type: int,
    value_type_name: str = "",
) -> d2.DescriptorProto:
    return make_message(
        name,
        fields=[
            make_field("key", 1, key_type),
            make_field("value", 2, value_type, type_name=value_type_name),
        ],
        map_entry=True,
    )


def make_file(
    name: str,
    package: str = "",
    messages: Iterable[d2.DescriptorProto] = (),
    enums: Iterable[d2.EnumDescriptorProto] = (),
    dependencies: Iterable[str] = (),
    syntax: str = "proto3",
) -> d2.FileDescriptorProto:
    proto = d2.FileDescriptorProto(name=name, package=package, syntax=syntax)
    proto.message_type.extend(messages)
    proto.enum_type.extend(enums)
    proto.dependency.extend(dependencies)
    return proto


def make_request(
    files: Iterable[d2.FileDescriptorProto],
    to_generate: Iterable[str],
    parameter: str = "",
) -> plugin_pb2.CodeGeneratorRequest:
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.proto_file.extend(files)
    request.file_to_generate.extend(to_generate)
    return request


def make_builder(files: Iterable[d2.FileDescriptorProto]) -> Tuple[List[CompilationUnit], ModelBuilder]:
    """Load files and run the first pass, returning the units and a builder."""
    units = [load_file(f) for f in files]
    symbols = build_symbol_table(units)
    return units, ModelBuilder(symbols, collect_map_entries(units, symbols))


def person_file() -> d2.FileDescriptorProto:
    """message Person { string name = 1; int32 age = 2; map<string,string> tags = 3; }"""
    return make_file(
        "people/person.proto",
        package="people",
        messages=[
            make_message(
                "Person",
                fields=[
                    make_field("name", 1, T.TYPE_STRING),
                    make_field("age", 2, T.TYPE_INT32),
                    make_field(
                        "tags", 3, T.TYPE_MESSAGE,
                        type_name=".people.Person.TagsEntry",
                        label=T.LABEL_REPEATED,
                    ),
                ],
                nested=[make_map_entry("TagsEntry", T.TYPE_STRING, T.TYPE_STRING)],
            ),
        ],
    )


def find_class(module: Module, full_name: str) -> Optional[Class]:
    """Breadth-first search of a module's classes, nested ones included."""
    pending = list(module.classes)
    while pending:
        cls = pending.pop(0)
        if cls.full_name == full_name:
            return cls
        pending.extend(cls.nested_classes)
    return None


def money_file() -> d2.FileDescriptorProto:
    """package common; message Money { int64 cents = 1; }"""
    return make_file(
        "common/money.proto",
        package="common",
        messages=[make_message("Money", fields=[make_field("cents", 1, T.TYPE_INT64)])],
    )


def shadow_file() -> d2.FileDescriptorProto:
    """A top-level Item next to Outer.Item, referenced from inside Outer."""
    return make_file(
        "shadow.proto",
        package="shadowpkg",
        messages=[
            make_message("Item", fields=[make_field("label", 1, T.TYPE_STRING)]),
            make_message(
                "Outer",
                fields=[
                    make_field("top", 1, T.TYPE_MESSAGE, ".shadowpkg.Item"),
                    make_field("own", 2, T.TYPE_MESSAGE, ".shadowpkg.Outer.Item"),
                ],
                nested=[
                    make_message("Item", fields=[make_field("count", 1, T.TYPE_INT32)]),
                    make_message(
                        "Holder",
                        fields=[make_field("top", 1, T.TYPE_MESSAGE, ".shadowpkg.Item")],
                    ),
                ],
            ),
        ],
    )


def builtin_names_file() -> d2.FileDescriptorProto:
    """Fields named after builtins, pydantic and an imported package."""
    return make_file(
        "tricky.proto",
        package="tricky",
        dependencies=["common/money.proto"],
        messages=[
            make_message(
                "Tricky",
                fields=[
                    make_field("str", 1, T.TYPE_STRING),
                    make_field("int", 2, T.TYPE_INT32),
                    make_field("list", 3, T.TYPE_STRING, label=T.LABEL_REPEATED),
                    make_field(
                        "dict", 4, T.TYPE_MESSAGE, ".tricky.Tricky.DictEntry",
                        label=T.LABEL_REPEATED,
                    ),
                    make_field("pydantic", 5, T.TYPE_STRING),
                    make_field("common", 6, T.TYPE_MESSAGE, ".common.Money"),
                    make_field("s", 7, T.TYPE_STRING),
                    make_field("names", 8, T.TYPE_STRING, label=T.LABEL_REPEATED),
                    make_field(
                        "tags", 9, T.TYPE_MESSAGE, ".tricky.Tricky.TagsEntry",
                        label=T.LABEL_REPEATED,
                    ),
                    make_field("total", 10, T.TYPE_MESSAGE, ".common.Money"),
                ],
                nested=[
                    make_map_entry("DictEntry", T.TYPE_STRING, T.TYPE_STRING),
                    make_map_entry("TagsEntry", T.TYPE_STRING, T.TYPE_STRING),
                ],
            ),
        ],
    )
