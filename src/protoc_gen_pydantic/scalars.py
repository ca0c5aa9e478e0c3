from __future__ import annotations

from typing import Dict

from google.protobuf import descriptor_pb2 as d2

from protoc_gen_pydantic.errors import MalformedInput, UnsupportedFeature
from protoc_gen_pydantic.models import ScalarType

_T = d2.FieldDescriptorProto

# Wire type -> semantic scalar type
SCALAR_TYPE_MAP: Dict[int, ScalarType] = {
    _T.TYPE_INT32: ScalarType.INT32,
    _T.TYPE_SINT32: ScalarType.INT32,
    _T.TYPE_SFIXED32: ScalarType.INT32,
    _T.TYPE_INT64: ScalarType.INT64,
    _T.TYPE_SINT64: ScalarType.INT64,
    _T.TYPE_SFIXED64: ScalarType.INT64,
    _T.TYPE_UINT32: ScalarType.UINT32,
    _T.TYPE_FIXED32: ScalarType.UINT32,
    _T.TYPE_UINT64: ScalarType.UINT64,
    _T.TYPE_FIXED64: ScalarType.UINT64,
    _T.TYPE_FLOAT: ScalarType.FLOAT,
    _T.TYPE_DOUBLE: ScalarType.DOUBLE,
    _T.TYPE_BOOL: ScalarType.BOOL,
    _T.TYPE_STRING: ScalarType.STRING,
    _T.TYPE_BYTES: ScalarType.BYTES,
}

MAP_KEY_TYPES = frozenset({
    ScalarType.INT32,
    ScalarType.INT64,
    ScalarType.UINT32,
    ScalarType.UINT64,
    ScalarType.BOOL,
    ScalarType.STRING,
})


def scalar_type(wire_type: int) -> ScalarType:
    """Map a FieldDescriptorProto.Type to its semantic scalar type.

    Groups are rejected as unsupported; message and enum kinds are not
    scalars and are reported as malformed input.
    """
    if wire_type == _T.TYPE_GROUP:
        raise UnsupportedFeature("group fields are not supported")
    try:
        return SCALAR_TYPE_MAP[wire_type]
    except KeyError:
        raise MalformedInput(f"wire type {wire_type} is not a scalar kind") from None


def is_valid_map_key(scalar: ScalarType) -> bool:
    return scalar in MAP_KEY_TYPES
