"""Unit tests for the SCALE codec."""

from __future__ import annotations

import pytest

from dots.scale.codec import decode, decode_compact, decode_hex, encode, encode_compact
from dots.scale.types import (
    PRIMITIVES,
    Boolean,
    Compact,
    EncodingMismatch,
    Enum,
    EnumValue,
    Field,
    List,
    OptionOf,
    ResultOf,
    Str,
    Struct,
    TruncatedData,
    Tuple,
    TypeRegistry,
    UnsupportedType,
    Variant,
)


@pytest.fixture()
def registry() -> TypeRegistry:
    return TypeRegistry({
        0: PRIMITIVES["U8"],
        1: PRIMITIVES["U16"],
        2: PRIMITIVES["U32"],
        3: PRIMITIVES["U64"],
        4: PRIMITIVES["U128"],
        5: PRIMITIVES["U256"],
        6: PRIMITIVES["I8"],
        7: PRIMITIVES["I32"],
        8: PRIMITIVES["I128"],
        9: Boolean(),
        10: Str(),
        11: Compact(inner=2),
        12: OptionOf(inner=2),
        13: ResultOf(ok=2, err=10),
        14: Tuple(fields=(0, 9)),
        15: List(element=0),
        16: List(element=0, length=4),
        17: List(element=2),
        18: Struct(fields=(Field(2, "id"), Field(9, "active")), name="Point"),
        19: Struct(fields=(Field(2), Field(0))),
        20: Enum(
            variants=(
                Variant(0, "Idle"),
                Variant(1, "Moving", (Field(2), Field(2))),
                Variant(5, "Named", (Field(10),)),
            ),
            name="Motion",
        ),
        21: Struct(fields=(Field(16),), name="Wrapper"),
        22: List(element=20),
    })


class TestCompact:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, "00"),
            (1, "04"),
            (63, "fc"),
            (64, "0101"),
            (16383, "fdff"),
            (16384, "02000100"),
            (2**30 - 1, "feffffff"),
        ],
    )
    def test_boundaries(self, value: int, expected: str) -> None:
        raw = encode_compact(value)
        assert raw.hex() == expected
        assert decode_compact(raw) == (value, len(raw))

    def test_too_large_is_unsupported(self) -> None:
        with pytest.raises(UnsupportedType):
            encode_compact(2**30)

    def test_big_integer_mode_is_unsupported(self) -> None:
        with pytest.raises(UnsupportedType):
            decode_compact(bytes([0b11, 0, 0, 0, 0]))

    def test_negative_is_mismatch(self) -> None:
        with pytest.raises(EncodingMismatch):
            encode_compact(-1)

    def test_decode_at_offset(self) -> None:
        assert decode_compact(bytes([0xAA, 0x01, 0x01]), offset=1) == (64, 2)

    def test_truncated(self) -> None:
        with pytest.raises(TruncatedData):
            decode_compact(bytes([0x02, 0x00]))


class TestIntegers:
    def test_little_endian(self, registry: TypeRegistry) -> None:
        assert encode(0x12345678, 2, registry).hex() == "78563412"
        assert decode(bytes.fromhex("78563412"), 2, registry) == (0x12345678, 4)

    def test_signed(self, registry: TypeRegistry) -> None:
        assert encode(-1, 6, registry) == b"\xff"
        assert decode(b"\xff", 6, registry) == (-1, 1)
        assert decode(encode(-123456, 7, registry), 7, registry) == (-123456, 4)

    def test_wide_integers_keep_full_precision(self, registry: TypeRegistry) -> None:
        big = 2**128 - 1
        assert decode(encode(big, 4, registry), 4, registry) == (big, 16)
        huge = 2**255 + 12345
        assert decode(encode(huge, 5, registry), 5, registry) == (huge, 32)
        assert decode(encode(-(2**127), 8, registry), 8, registry) == (-(2**127), 16)

    def test_out_of_range(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode(256, 0, registry)
        with pytest.raises(EncodingMismatch):
            encode(-1, 2, registry)
        with pytest.raises(EncodingMismatch):
            encode(128, 6, registry)

    def test_rejects_non_integers(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode(True, 2, registry)
        with pytest.raises(EncodingMismatch):
            encode("1", 2, registry)

    def test_truncated(self, registry: TypeRegistry) -> None:
        with pytest.raises(TruncatedData):
            decode(b"\x01\x02", 2, registry)


class TestBooleanAndString:
    def test_boolean(self, registry: TypeRegistry) -> None:
        assert encode(True, 9, registry) == b"\x01"
        assert decode(b"\x00", 9, registry) == (False, 1)

    def test_invalid_boolean_byte(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            decode(b"\x02", 9, registry)

    def test_string_uses_exact_length(self, registry: TypeRegistry) -> None:
        raw = encode("dots", 10, registry)
        assert raw.hex() == "10" + b"dots".hex()
        # Trailing bytes belong to the next value.
        assert decode(raw + b"\xff", 10, registry) == ("dots", 5)

    def test_unicode_string(self, registry: TypeRegistry) -> None:
        value = "ünïcödé"
        assert decode(encode(value, 10, registry), 10, registry)[0] == value


class TestOptionAndResult:
    def test_option(self, registry: TypeRegistry) -> None:
        assert encode(None, 12, registry) == b"\x00"
        assert encode(5, 12, registry).hex() == "0105000000"
        assert decode(b"\x00", 12, registry) == (None, 1)
        assert decode(bytes.fromhex("0105000000"), 12, registry) == (5, 5)

    def test_result_ok_is_first_type(self, registry: TypeRegistry) -> None:
        assert decode(bytes.fromhex("0007000000"), 13, registry) == ({"Ok": 7}, 5)
        assert encode({"Ok": 7}, 13, registry).hex() == "0007000000"

    def test_result_err_is_second_type(self, registry: TypeRegistry) -> None:
        raw = encode({"Err": "no"}, 13, registry)
        assert raw[0] == 1
        assert decode(raw, 13, registry) == ({"Err": "no"}, len(raw))

    def test_invalid_result_value(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode(7, 13, registry)


class TestComposites:
    def test_tuple(self, registry: TypeRegistry) -> None:
        assert encode([7, True], 14, registry).hex() == "0701"
        assert decode(bytes.fromhex("0701"), 14, registry) == ([7, True], 2)

    def test_tuple_arity(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode([7], 14, registry)

    def test_named_struct(self, registry: TypeRegistry) -> None:
        raw = encode({"id": 1, "active": True}, 18, registry)
        assert raw.hex() == "0100000001"
        value, size = decode(raw, 18, registry)
        assert value == {"id": 1, "active": True}
        assert list(value) == ["id", "active"]
        assert size == 5

    def test_struct_missing_field(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode({"id": 1}, 18, registry)

    def test_unnamed_struct_is_a_list(self, registry: TypeRegistry) -> None:
        raw = encode([9, 3], 19, registry)
        assert decode(raw, 19, registry) == ([9, 3], 5)

    def test_single_field_wrapper_takes_inner_value(self, registry: TypeRegistry) -> None:
        assert encode("0x01020304", 21, registry).hex() == "01020304"
        assert encode(["0x01020304"], 21, registry).hex() == "01020304"


class TestLists:
    def test_byte_list_is_hex(self, registry: TypeRegistry) -> None:
        raw = encode("0xdeadbeef", 15, registry)
        assert raw.hex() == "10deadbeef"
        assert decode(raw, 15, registry) == ("0xdeadbeef", 5)

    def test_byte_list_accepts_bytes_and_ints(self, registry: TypeRegistry) -> None:
        assert encode(b"\x01\x02", 15, registry) == encode([1, 2], 15, registry)

    def test_fixed_length_has_no_prefix(self, registry: TypeRegistry) -> None:
        assert encode("0x01020304", 16, registry).hex() == "01020304"
        assert decode(bytes.fromhex("01020304ff"), 16, registry) == ("0x01020304", 4)

    def test_fixed_length_mismatch(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode("0x0102", 16, registry)

    def test_byte_list_rejects_plain_strings(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode("deadbeef", 15, registry)

    def test_integer_list(self, registry: TypeRegistry) -> None:
        raw = encode([1, 2], 17, registry)
        assert raw.hex() == "080100000002000000"
        assert decode(raw, 17, registry) == ([1, 2], 9)


class TestEnums:
    def test_unit_variant(self, registry: TypeRegistry) -> None:
        value, size = decode(b"\x00", 20, registry)
        assert value == EnumValue(name="Motion::Idle", index=0)
        assert value.variant == "Idle"
        assert size == 1

    def test_variant_with_fields(self, registry: TypeRegistry) -> None:
        raw = bytes.fromhex("010100000002000000")
        value, size = decode(raw, 20, registry)
        assert value == EnumValue(name="Motion::Moving", index=1, fields=(1, 2))
        assert size == 9
        assert encode(value, 20, registry) == raw

    def test_sparse_indices(self, registry: TypeRegistry) -> None:
        raw = encode({"index": 5, "fields": ["hi"]}, 20, registry)
        assert raw.hex() == "0508" + b"hi".hex()
        assert decode(raw, 20, registry)[0].name == "Motion::Named"

    @pytest.mark.parametrize("value", ["Idle", "Motion::Idle", 0, {"index": 0}])
    def test_encode_forms(self, registry: TypeRegistry, value: object) -> None:
        assert encode(value, 20, registry) == b"\x00"

    @pytest.mark.parametrize(
        "value",
        [{"Moving": [1, 2]}, {"Motion::Moving": (1, 2)}, {"index": 1, "fields": [1, 2]}],
    )
    def test_variant_mapping_forms(self, registry: TypeRegistry, value: object) -> None:
        assert encode(value, 20, registry).hex() == "010100000002000000"

    def test_single_field_variant_mapping(self, registry: TypeRegistry) -> None:
        assert encode({"Named": "hi"}, 20, registry) == encode({"Named": ["hi"]}, 20, registry)
        assert encode({"Idle": None}, 20, registry) == b"\x00"

    def test_unknown_index(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            decode(b"\x03", 20, registry)
        with pytest.raises(EncodingMismatch):
            encode(3, 20, registry)

    def test_wrong_field_count(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            encode({"index": 1, "fields": [1]}, 20, registry)

    def test_list_of_enums_roundtrip(self, registry: TypeRegistry) -> None:
        values = [
            EnumValue(name="Motion::Idle", index=0),
            EnumValue(name="Motion::Named", index=5, fields=("x",)),
        ]
        raw = encode(values, 22, registry)
        assert decode(raw, 22, registry) == (values, len(raw))


class TestRegistry:
    def test_unknown_type_id(self, registry: TypeRegistry) -> None:
        with pytest.raises(UnsupportedType):
            decode(b"\x00", 99, registry)
        with pytest.raises(UnsupportedType):
            encode(0, 99, registry)

    def test_mapping_protocol(self, registry: TypeRegistry) -> None:
        assert 0 in registry
        assert 99 not in registry
        assert registry.get(99) is None
        assert registry.is_byte(0)
        assert not registry.is_byte(2)

    def test_decode_hex(self, registry: TypeRegistry) -> None:
        assert decode_hex("0x2a000000", 2, registry) == 42

    def test_decode_hex_rejects_garbage(self, registry: TypeRegistry) -> None:
        with pytest.raises(EncodingMismatch):
            decode_hex("0xzz", 2, registry)
