from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from protoc_gen_pydantic.descriptors import (
    Cardinality,
    CompilationUnit,
    EnumDescriptor,
    FieldDescriptor,
    MessageDescriptor,
)
from protoc_gen_pydantic.errors import CompileError, MalformedInput
from protoc_gen_pydantic.map_entries import MapEntryRegistry, resolve_field_type
from protoc_gen_pydantic.models import (
    Class,
    Enum,
    EnumMember,
    EnumRef,
    Field,
    MapType,
    MessageRef,
    Module,
    ResolvedType,
)
from protoc_gen_pydantic.symbols import SymbolTable


class ModelBuilder:
    """Turn descriptor trees into resolved Class/Enum nodes.

    The symbol table and map-entry registry must already cover the whole
    request; the builder only reads them.
    """

    def __init__(self, symbols: SymbolTable, map_entries: MapEntryRegistry):
        self.symbols = symbols
        self.map_entries = map_entries

    def build_module(self, module_path: str, units: Iterable[CompilationUnit]) -> Module:
        """Build one output module from every unit that maps to it."""
        module = Module(module_path=module_path)
        referenced: Set[str] = set()
        for unit in units:
            if unit.module_path != module_path:
                raise MalformedInput(
                    f"{unit.path} belongs to module '{unit.module_path}', not '{module_path}'"
                )
            classes, enums = self.build_unit(unit, referenced)
            module.source_files.append(unit.path)
            module.classes.extend(classes)
            module.enums.extend(enums)
            referenced.discard(unit.module_name)
        module.imports = sorted(referenced)
        return module

    def build_unit(
        self,
        unit: CompilationUnit,
        referenced: Optional[Set[str]] = None,
    ) -> Tuple[List[Class], List[Enum]]:
        """Return the (classes, enums) of one file, in declaration order."""
        if referenced is None:
            referenced = set()
        classes = [
            self._build_class(message, unit, referenced)
            for message in unit.messages
            if not message.is_map_entry
        ]
        enums = [self._build_enum(enum) for enum in unit.enums]
        return classes, enums

    def _build_class(
        self,
        message: MessageDescriptor,
        unit: CompilationUnit,
        referenced: Set[str],
    ) -> Class:
        cls = Class(name=message.name, full_name=message.full_name)
        for field in message.fields:
            cls.fields.append(self._build_field(field, message, unit, referenced))
        # Nested types are finished before the next sibling is visited
        for nested in message.nested_messages:
            if nested.is_map_entry:
                continue
            cls.nested_classes.append(self._build_class(nested, unit, referenced))
        for nested_enum in message.nested_enums:
            cls.nested_enums.append(self._build_enum(nested_enum))
        return cls

    def _build_field(
        self,
        field: FieldDescriptor,
        message: MessageDescriptor,
        unit: CompilationUnit,
        referenced: Set[str],
    ) -> Field:
        try:
            resolved = self._resolve(field)
        except CompileError as e:
            raise type(e)(
                f"{unit.path}: field '{message.full_name}.{field.name}': {e}"
            ) from e

        _collect_modules(resolved, referenced)
        is_map = isinstance(resolved, MapType)
        return Field(
            name=field.name,
            number=field.number,
            type=resolved,
            is_repeated=field.is_repeated and not is_map,
            is_nullable=_has_presence(field, resolved, unit),
            is_required=field.cardinality is Cardinality.REQUIRED,
        )

    def _resolve(self, field: FieldDescriptor) -> ResolvedType:
        resolved = resolve_field_type(field, self.symbols)
        if isinstance(resolved, MessageRef) and resolved.descriptor.is_map_entry:
            map_type = self.map_entries.lookup(resolved.full_name)
            if map_type is None:
                raise MalformedInput(f"map entry '{resolved.full_name}' was never registered")
            if not field.is_repeated:
                raise MalformedInput(
                    f"map entry '{resolved.full_name}' referenced by a non-repeated field"
                )
            return map_type
        return resolved

    def _build_enum(self, enum: EnumDescriptor) -> Enum:
        if not enum.values:
            raise MalformedInput(f"enum '{enum.full_name}' has no values")
        # Numbers are kept exactly as declared, aliases included
        members = [EnumMember(name=name, value=number) for name, number in enum.values]
        return Enum(name=enum.name, full_name=enum.full_name, members=members)


def _has_presence(field: FieldDescriptor, resolved: ResolvedType, unit: CompilationUnit) -> bool:
    if field.is_repeated or isinstance(resolved, MapType):
        return False
    if field.cardinality is Cardinality.REQUIRED:
        return False
    if isinstance(resolved, MessageRef):
        return True
    if field.proto3_optional or field.in_oneof:
        return True
    return unit.syntax != "proto3" and field.cardinality is Cardinality.OPTIONAL


def _collect_modules(resolved: ResolvedType, referenced: Set[str]) -> None:
    if isinstance(resolved, MapType):
        _collect_modules(resolved.value, referenced)
    elif isinstance(resolved, (MessageRef, EnumRef)):
        unit = resolved.descriptor.unit
        if unit is not None:
            referenced.add(unit.module_name)


def build_modules(
    units: List[CompilationUnit],
    builder: ModelBuilder,
) -> List[Module]:
    """Group units by output module path, keeping request order.

    A module whose path is the parent of another generated module becomes a
    package (``acme/__init__.py`` next to ``acme/v1.py``).
    """
    grouped: Dict[str, List[CompilationUnit]] = {}
    for unit in units:
        grouped.setdefault(unit.module_path, []).append(unit)
    modules = [builder.build_module(path, members) for path, members in grouped.items()]
    for module in modules:
        prefix = module.module_path + "/"
        module.is_package = any(path.startswith(prefix) for path in grouped)
    return modules
