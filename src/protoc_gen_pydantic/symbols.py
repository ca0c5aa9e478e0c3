"""Symbol table of every message and enum in a request, keyed by full name."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping

from protoc_gen_pydantic.descriptors import CompilationUnit, Descriptor
from protoc_gen_pydantic.errors import MalformedInput, UnresolvedReference


class SymbolTable:
    """Read-only mapping from fully-qualified dotted name to descriptor."""

    def __init__(self, symbols: Mapping[str, Descriptor]):
        self._symbols: Mapping[str, Descriptor] = MappingProxyType(dict(symbols))

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, full_name: object) -> bool:
        return full_name in self._symbols

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)

    def get(self, full_name: str) -> Descriptor:
        return self._symbols[full_name]

    def resolve(self, type_name: str) -> Descriptor:
        """Resolve a fully-qualified (leading dot) or relative type name.

        An exact match wins. A relative name otherwise has to be the dotted
        suffix of exactly one symbol.
        """
        if not type_name:
            raise UnresolvedReference("empty type name")
        name = type_name[1:] if type_name.startswith(".") else type_name
        found = self._symbols.get(name)
        if found is not None:
            return found
        if type_name.startswith("."):
            raise UnresolvedReference(f"type '{type_name}' not found")

        suffix = "." + name
        candidates: List[str] = [key for key in self._symbols if key.endswith(suffix)]
        if not candidates:
            raise UnresolvedReference(f"type '{type_name}' not found")
        if len(candidates) > 1:
            raise UnresolvedReference(
                f"type '{type_name}' is ambiguous, candidates: {sorted(candidates)}"
            )
        return self._symbols[candidates[0]]


def build_symbol_table(units: Iterable[CompilationUnit]) -> SymbolTable:
    """Register every message and enum, nested at any depth, of every unit."""
    symbols: Dict[str, Descriptor] = {}

    def register(descriptor: Descriptor) -> None:
        full_name = descriptor.full_name
        if full_name in symbols:
            raise MalformedInput(
                f"duplicate symbol '{full_name}' "
                f"(defined in {descriptor.unit.path if descriptor.unit else '?'})"
            )
        symbols[full_name] = descriptor

    for unit in units:
        for message in unit.all_messages():
            register(message)
        for enum in unit.all_enums():
            register(enum)

    return SymbolTable(symbols)
