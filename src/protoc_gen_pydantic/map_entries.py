"""Recognition of the synthetic ``*Entry`` messages protoc emits for map fields.

protoc turns ``map<K, V> tags = 3;`` into a nested message ``TagsEntry`` with
fields ``key = 1`` and ``value = 2`` and the ``map_entry`` option set, plus a
repeated field of that message. The registry built here lets the builder turn
such a field back into ``map(K, V)`` and skip the entry message itself.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from protoc_gen_pydantic.descriptors import (
    CompilationUnit,
    EnumDescriptor,
    FieldDescriptor,
    MessageDescriptor,
)
from protoc_gen_pydantic.errors import CompileError, MalformedInput, UnsupportedFeature
from protoc_gen_pydantic.models import EnumRef, MapType, MessageRef, ResolvedType
from protoc_gen_pydantic.scalars import is_valid_map_key, scalar_type
from protoc_gen_pydantic.symbols import SymbolTable


class MapEntryRegistry:
    """Read-only mapping from entry message full name to its map type."""

    def __init__(self, entries: Mapping[str, MapType]):
        self._entries: Mapping[str, MapType] = MappingProxyType(dict(entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, full_name: object) -> bool:
        return full_name in self._entries

    def lookup(self, full_name: str) -> Optional[MapType]:
        return self._entries.get(full_name)


def resolve_field_type(field: FieldDescriptor, symbols: SymbolTable) -> ResolvedType:
    """Resolve a non-map field to a scalar, message or enum type."""
    if not field.references_type:
        return scalar_type(field.wire_type)
    target = symbols.resolve(field.type_name)
    if isinstance(target, EnumDescriptor):
        return EnumRef(target)
    return MessageRef(target)


def _entry_field(entry: MessageDescriptor, name: str, number: int) -> FieldDescriptor:
    for f in entry.fields:
        if f.name == name and f.number == number:
            return f
    raise MalformedInput(f"has no '{name}' field with number {number}")


def recognize_map_entry(entry: MessageDescriptor, symbols: SymbolTable) -> MapType:
    if len(entry.fields) != 2:
        raise MalformedInput(f"must have exactly two fields, found {len(entry.fields)}")
    key_field = _entry_field(entry, "key", 1)
    value_field = _entry_field(entry, "value", 2)

    key = scalar_type(key_field.wire_type)
    if not is_valid_map_key(key):
        raise UnsupportedFeature(f"uses '{key.value}' as key type")
    value = resolve_field_type(value_field, symbols)
    return MapType(key=key, value=value)


def collect_map_entries(
    units: Iterable[CompilationUnit],
    symbols: SymbolTable,
) -> MapEntryRegistry:
    """Register every map entry message of every unit in the request."""
    entries: Dict[str, MapType] = {}
    for unit in units:
        for message in unit.all_messages():
            if not message.is_map_entry:
                continue
            try:
                entries[message.full_name] = recognize_map_entry(message, symbols)
            except CompileError as e:
                raise type(e)(f"{unit.path}: map entry '{message.full_name}': {e}") from e
    return MapEntryRegistry(entries)
