"""Plugin options passed through ``--pydantic_opt=key=value,flag``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict

from protoc_gen_pydantic.errors import MalformedInput

DEFAULT_BASE_CLASS = "pydantic.BaseModel"

_DOTTED_NAME = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)+$")
_TRUE_VALUES = {"", "1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class PluginOptions:
    verbose: bool = False
    base_class: str = DEFAULT_BASE_CLASS

    @property
    def base_module(self) -> str:
        return self.base_class.rsplit(".", 1)[0]


def _parse_parameter_string(parameter: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    if not parameter:
        return values
    for chunk in parameter.split(","):
        if not chunk.strip():
            continue
        key, _, value = chunk.partition("=")
        key = key.strip()
        if not key:
            raise MalformedInput(f"Invalid plugin option '{chunk}'")
        values[key] = value.strip()
    return values


def _parse_flag(key: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise MalformedInput(f"Option '{key}' expects a boolean, got '{value}'")


def parse_options(parameter: str) -> PluginOptions:
    """Parse the request parameter string into PluginOptions."""
    values = _parse_parameter_string(parameter)
    verbose = False
    base_class = DEFAULT_BASE_CLASS

    for key, value in values.items():
        if key == "verbose":
            verbose = _parse_flag(key, value)
        elif key == "base_class":
            if not _DOTTED_NAME.match(value):
                raise MalformedInput(
                    f"Option 'base_class' needs a dotted 'module.Class' name, got '{value}'"
                )
            base_class = value
        else:
            raise MalformedInput(f"Unknown plugin option '{key}'")

    return PluginOptions(verbose=verbose, base_class=base_class)
