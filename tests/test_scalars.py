import pytest
from google.protobuf import descriptor_pb2 as d2

from protoc_gen_pydantic.errors import MalformedInput, UnsupportedFeature
from protoc_gen_pydantic.models import ScalarType
from protoc_gen_pydantic.scalars import SCALAR_TYPE_MAP, is_valid_map_key, scalar_type

T = d2.FieldDescriptorProto

NON_SCALAR = {T.TYPE_MESSAGE, T.TYPE_ENUM, T.TYPE_GROUP}


class TestScalarTable:
    def test_every_scalar_kind_is_mapped(self):
        for name, number in T.Type.items():
            if number in NON_SCALAR:
                continue
            assert isinstance(scalar_type(number), ScalarType), name

    def test_covers_fifteen_kinds(self):
        assert len(SCALAR_TYPE_MAP) == 15

    @pytest.mark.parametrize("wire_type", [T.TYPE_INT32, T.TYPE_SINT32, T.TYPE_SFIXED32])
    def test_signed_32_bit_encodings_collapse(self, wire_type):
        assert scalar_type(wire_type) is ScalarType.INT32

    @pytest.mark.parametrize("wire_type", [T.TYPE_INT64, T.TYPE_SINT64, T.TYPE_SFIXED64])
    def test_signed_64_bit_encodings_collapse(self, wire_type):
        assert scalar_type(wire_type) is ScalarType.INT64

    def test_unsigned_encodings_collapse(self):
        assert scalar_type(T.TYPE_UINT32) is scalar_type(T.TYPE_FIXED32) is ScalarType.UINT32
        assert scalar_type(T.TYPE_UINT64) is scalar_type(T.TYPE_FIXED64) is ScalarType.UINT64

    def test_non_integer_kinds(self):
        assert scalar_type(T.TYPE_FLOAT) is ScalarType.FLOAT
        assert scalar_type(T.TYPE_DOUBLE) is ScalarType.DOUBLE
        assert scalar_type(T.TYPE_BOOL) is ScalarType.BOOL
        assert scalar_type(T.TYPE_STRING) is ScalarType.STRING
        assert scalar_type(T.TYPE_BYTES) is ScalarType.BYTES


class TestRejectedKinds:
    def test_group_is_unsupported(self):
        with pytest.raises(UnsupportedFeature, match="group"):
            scalar_type(T.TYPE_GROUP)

    @pytest.mark.parametrize("wire_type", [T.TYPE_MESSAGE, T.TYPE_ENUM, 99])
    def test_non_scalar_is_malformed(self, wire_type):
        with pytest.raises(MalformedInput):
            scalar_type(wire_type)


class TestMapKeys:
    def test_integral_string_and_bool_keys(self):
        for key in (ScalarType.INT32, ScalarType.UINT64, ScalarType.STRING, ScalarType.BOOL):
            assert is_valid_map_key(key)

    def test_float_and_bytes_keys_rejected(self):
        for key in (ScalarType.FLOAT, ScalarType.DOUBLE, ScalarType.BYTES):
            assert not is_valid_map_key(key)
