from __future__ import annotations

import keyword
from pathlib import Path
from typing import AbstractSet, Dict, FrozenSet, List, Optional, Set

from jinja2 import Environment, FileSystemLoader

from protoc_gen_pydantic.descriptors import Descriptor
from protoc_gen_pydantic.errors import MalformedInput
from protoc_gen_pydantic.models import (
    Class,
    Enum,
    EnumRef,
    Field,
    MapType,
    Module,
    ResolvedType,
    ScalarType,
)
from protoc_gen_pydantic.options import PluginOptions

# Semantic scalar type -> Python annotation
PYTHON_TYPE_MAP: Dict[ScalarType, str] = {
    ScalarType.INT32: "int",
    ScalarType.INT64: "int",
    ScalarType.UINT32: "int",
    ScalarType.UINT64: "int",
    ScalarType.FLOAT: "float",
    ScalarType.DOUBLE: "float",
    ScalarType.BOOL: "bool",
    ScalarType.STRING: "str",
    ScalarType.BYTES: "bytes",
}

# Semantic scalar type -> default value literal
PYTHON_DEFAULT_MAP: Dict[ScalarType, str] = {
    ScalarType.INT32: "0",
    ScalarType.INT64: "0",
    ScalarType.UINT32: "0",
    ScalarType.UINT64: "0",
    ScalarType.FLOAT: "0.0",
    ScalarType.DOUBLE: "0.0",
    ScalarType.BOOL: "False",
    ScalarType.STRING: '""',
    ScalarType.BYTES: 'b""',
}

# Builtins the generated code refers to by name
BUILTIN_NAMES = frozenset(PYTHON_TYPE_MAP.values()) | {"list", "dict"}

_STDLIB_MODULES = ("builtins", "enum")


def safe_identifier(name: str) -> str:
    """Append an underscore to names that are Python keywords."""
    if keyword.iskeyword(name):
        return name + "_"
    return name


def _local_path(descriptor: Descriptor) -> str:
    """Python attribute path of a type inside its own module: Outer.Inner."""
    names: List[str] = []
    node: Optional[Descriptor] = descriptor
    while node is not None:
        names.append(node.name)
        node = node.parent
    return ".".join(reversed(names))


def _collect_type_names(classes: List[Class], enums: List[Enum], names: Set[str]) -> None:
    names.update(e.name for e in enums)
    for cls in classes:
        names.add(cls.name)
        _collect_type_names(cls.nested_classes, cls.nested_enums, names)


def _nested_names(cls: Class) -> FrozenSet[str]:
    return frozenset([c.name for c in cls.nested_classes] + [e.name for e in cls.nested_enums])


class _Namespace:
    """Top-level names bound by a generated module.

    Generated types can be named anything, so every import is bound under a
    name no type in the module uses, and a builtin that a type shadows is
    reached through the ``builtins`` module.
    """

    def __init__(self, module: Module, options: PluginOptions):
        self.type_names: Set[str] = set()
        _collect_type_names(module.classes, module.enums, self.type_names)
        self.bound: Set[str] = set(self.type_names)
        self.imports: Dict[str, Optional[str]] = {}
        self.prefixes: Dict[str, str] = {}
        self.aliases: Dict[str, str] = {}

        for name in ("enum", "pydantic", options.base_module, *module.imports):
            self.module(name)

        # A field named like any of these would shadow it in the class body
        self.field_reserved: FrozenSet[str] = frozenset(
            self.type_names
            | BUILTIN_NAMES
            | {name.split(".")[0] for name in self.imports}
            | {"builtins", "model_config"}
        )

    def _unused(self, name: str) -> str:
        while name in self.bound:
            name = "_" + name
        return name

    def module(self, dotted: str) -> str:
        """Expression naming an imported module; the import is added on first use."""
        prefix = self.prefixes.get(dotted)
        if prefix is None:
            root = dotted.split(".")[0]
            if root in self.type_names:
                prefix = self._unused("_" + dotted.replace(".", "_"))
                self.imports[dotted] = prefix
            else:
                prefix = dotted
                self.imports[dotted] = None
            self.bound.add(prefix.split(".")[0])
            self.prefixes[dotted] = prefix
        return prefix

    def builtin(self, name: str) -> str:
        if name not in self.type_names:
            return name
        return f"{self.module('builtins')}.{name}"

    def top_level(self, name: str) -> str:
        """Module-level alias of a top-level type hidden by a nested one."""
        alias = self.aliases.get(name)
        if alias is None:
            alias = self._unused("_" + name)
            self.aliases[name] = alias
            self.bound.add(alias)
        return alias

    def import_lines(self) -> List[str]:
        ordered = [m for m in _STDLIB_MODULES if m in self.imports]
        ordered += [m for m in self.imports if m not in _STDLIB_MODULES]
        lines = []
        for dotted in ordered:
            alias = self.imports[dotted]
            lines.append(f"import {dotted}" if alias is None else f"import {dotted} as {alias}")
        return lines

    def alias_lines(self) -> List[str]:
        return [f"{alias} = {name}" for name, alias in self.aliases.items()]


class _TypeRenderer:
    def __init__(self, module: Module, names: _Namespace):
        self.module = module
        self.names = names

    def reference(self, descriptor: Descriptor, shadowed: AbstractSet[str] = frozenset()) -> str:
        """Python expression for a type, as seen from a class body.

        ``shadowed`` holds the nested type names visible in that class body;
        a top-level type with one of those names goes through its alias.
        """
        path = _local_path(descriptor)
        unit = descriptor.unit
        if unit is not None and unit.module_path != self.module.module_path:
            return f"{self.names.module(unit.module_name)}.{path}"
        root, dot, rest = path.partition(".")
        if root in shadowed:
            root = self.names.top_level(root)
        return f"{root}{dot}{rest}"

    def annotation(self, resolved: ResolvedType, shadowed: AbstractSet[str]) -> str:
        if isinstance(resolved, ScalarType):
            return self.names.builtin(PYTHON_TYPE_MAP[resolved])
        if isinstance(resolved, MapType):
            key = self.names.builtin(PYTHON_TYPE_MAP[resolved.key])
            value = self.annotation(resolved.value, shadowed)
            return f"{self.names.builtin('dict')}[{key}, {value}]"
        return self.reference(resolved.descriptor, shadowed)

    def enum_default(self, resolved: EnumRef) -> str:
        # Used inside a lambda, which only sees module globals
        first_member = resolved.descriptor.values[0][0]
        return f"{self.reference(resolved.descriptor)}.{safe_identifier(first_member)}"


def _field_names(fields: List[Field], reserved: AbstractSet[str]) -> List[str]:
    """Python attribute names; keywords and reserved names get underscores."""
    taken = {f.name for f in fields}
    names: List[str] = []
    for f in fields:
        name = f.name
        if keyword.iskeyword(name) or name in reserved:
            name += "_"
            while keyword.iskeyword(name) or name in reserved or name in taken:
                name += "_"
            taken.add(name)
        names.append(name)
    return names


def _field_context(
    field: Field,
    name: str,
    types: _TypeRenderer,
    shadowed: AbstractSet[str],
) -> Dict[str, Optional[str]]:
    names = types.names
    annotation = types.annotation(field.type, shadowed)
    default: Optional[str] = None
    factory: Optional[str] = None

    if field.is_map:
        factory = names.builtin("dict")
    elif field.is_repeated:
        annotation = f"{names.builtin('list')}[{annotation}]"
        factory = names.builtin("list")
    elif field.is_nullable:
        annotation = f"{annotation} | None"
        default = "None"
    elif field.is_required:
        # proto2 required: no default, pydantic demands a value
        default = None
    elif isinstance(field.type, ScalarType):
        default = PYTHON_DEFAULT_MAP[field.type]
    elif isinstance(field.type, EnumRef):
        # Evaluated lazily, the enum may be declared further down the module
        factory = f"lambda: {types.enum_default(field.type)}"

    alias = field.name if name != field.name else None

    if alias is None and factory is None:
        value = default
    else:
        args: List[str] = []
        if factory is not None:
            args.append(f"default_factory={factory}")
        elif default is not None:
            args.append(default)
        if alias is not None:
            args.append(f'alias="{alias}"')
        value = f"{names.module('pydantic')}.Field({', '.join(args)})"

    declaration = f"{name}: {annotation}"
    if value is not None:
        declaration += f" = {value}"
    return {"name": name, "declaration": declaration, "alias": alias}


def _enum_context(enum: Enum, names: _Namespace) -> Dict:
    return {
        "name": enum.name,
        "base": f"{names.module('enum')}.IntEnum",
        "members": [
            {"name": safe_identifier(m.name), "value": m.value} for m in enum.members
        ],
    }


def _class_context(
    cls: Class,
    types: _TypeRenderer,
    base_class: str,
    shadowed: FrozenSet[str] = frozenset(),
) -> Dict:
    names = types.names
    # Nested types of this class and of every enclosing class are in scope
    shadowed = shadowed | _nested_names(cls)
    python_names = _field_names(cls.fields, names.field_reserved)
    fields = [
        _field_context(f, name, types, shadowed)
        for f, name in zip(cls.fields, python_names)
    ]
    config = None
    if any(f["alias"] for f in fields):
        config = f"model_config = {names.module('pydantic')}.ConfigDict(populate_by_name=True)"
    return {
        "name": cls.name,
        "base": base_class,
        "fields": fields,
        "config": config,
        "classes": [_class_context(c, types, base_class, shadowed) for c in cls.nested_classes],
        "enums": [_enum_context(e, names) for e in cls.nested_enums],
    }


def _rebuild_order(classes: List[Class], prefix: str = "") -> List[str]:
    paths: List[str] = []
    for cls in classes:
        path = f"{prefix}{cls.name}"
        paths.append(path)
        paths.extend(_rebuild_order(cls.nested_classes, path + "."))
    return paths


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def generate_module(module: Module, options: Optional[PluginOptions] = None) -> str:
    """Render Python source for a resolved module."""
    options = options or PluginOptions()
    env = _get_template_env()
    template = env.get_template("module.py.j2")
    names = _Namespace(module, options)
    types = _TypeRenderer(module, names)

    base_name = options.base_class.rsplit(".", 1)[1]
    base_class = f"{names.module(options.base_module)}.{base_name}"
    enums = [_enum_context(e, names) for e in module.enums]
    classes = [_class_context(c, types, base_class) for c in module.classes]

    source = template.render(
        source_files=module.source_files,
        imports=names.import_lines(),
        enums=enums,
        classes=classes,
        aliases=names.alias_lines(),
        rebuild=_rebuild_order(module.classes),
    )
    try:
        source.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedInput(f"generated text for {module.file_name} is not valid UTF-8: {e}") from e
    return source
