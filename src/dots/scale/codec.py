"""
SCALE codec driven by a Type Registry.

decode(data, type_id, registry) -> (value, bytes_consumed)
encode(value, type_id, registry) -> bytes

Both walk the descriptor tree recursively. Failures raise ``ScaleError``
subclasses; callers abort whatever operation needed the value.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .types import (
    Boolean,
    Compact,
    Enum,
    EnumValue,
    EncodingMismatch,
    List,
    OptionOf,
    Primitive,
    ResultOf,
    Str,
    Struct,
    Tuple,
    TruncatedData,
    TypeRegistry,
    UnsupportedType,
    Variant,
)

logger = logging.getLogger(__name__)

COMPACT_SINGLE_LIMIT = 1 << 6
COMPACT_TWO_LIMIT = 1 << 14
COMPACT_FOUR_LIMIT = 1 << 30


# ============ Compact ============


def encode_compact(value: int) -> bytes:
    """Encode an unsigned integer in compact form (single, two or four byte mode)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingMismatch(f"Compact value must be an integer, got {value!r}")
    if value < 0:
        raise EncodingMismatch(f"Compact value must be unsigned, got {value}")
    if value < COMPACT_SINGLE_LIMIT:
        return bytes([value << 2])
    if value < COMPACT_TWO_LIMIT:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < COMPACT_FOUR_LIMIT:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    raise UnsupportedType(f"Compact values >= 2**30 are not supported (got {value})")


def decode_compact(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a compact integer at ``offset``. Returns (value, bytes_consumed)."""
    mode = _take(data, offset, 1)[0] & 0b11
    if mode == 0b00:
        return data[offset] >> 2, 1
    if mode == 0b01:
        return int.from_bytes(_take(data, offset, 2), "little") >> 2, 2
    if mode == 0b10:
        return int.from_bytes(_take(data, offset, 4), "little") >> 2, 4
    raise UnsupportedType("Big-integer compact mode is not supported")


# ============ Public API ============


def decode(data: bytes, type_id: int, registry: TypeRegistry) -> tuple[Any, int]:
    """
    Decode a value of ``type_id`` from the start of ``data``.

    Args:
        data: Raw SCALE bytes
        type_id: Registry id of the expected type
        registry: Type Registry from chain metadata

    Returns:
        Tuple of (decoded value, number of bytes consumed)

    Raises:
        UnsupportedType: Descriptor or encoding mode the codec cannot handle
        EncodingMismatch: Bytes do not fit the declared type
    """
    value, end = _decode_at(bytes(data), 0, type_id, registry)
    return value, end


def encode(value: Any, type_id: int, registry: TypeRegistry) -> bytes:
    """
    Encode ``value`` as ``type_id``.

    Raises:
        UnsupportedType: Descriptor or value range the codec cannot handle
        EncodingMismatch: Value shape does not match the declared type
    """
    return bytes(_encode(value, type_id, registry))


def decode_hex(hex_value: str, type_id: int, registry: TypeRegistry) -> Any:
    """Decode a ``0x``-prefixed hex payload and return only the value."""
    try:
        raw = bytes.fromhex(hex_value.removeprefix("0x"))
    except ValueError as exc:
        raise EncodingMismatch(f"Not a hex string: {hex_value[:16]!r}") from exc
    value, _ = decode(raw, type_id, registry)
    return value


# ============ Decoding ============


def _take(data: bytes, offset: int, size: int) -> bytes:
    end = offset + size
    if end > len(data):
        raise TruncatedData(
            f"Need {size} bytes at offset {offset}, only {len(data) - offset} left"
        )
    return data[offset:end]


def _decode_at(data: bytes, offset: int, type_id: int, registry: TypeRegistry) -> tuple[Any, int]:
    descriptor = registry[type_id]

    if isinstance(descriptor, Boolean):
        raw = _take(data, offset, 1)[0]
        if raw not in (0, 1):
            raise EncodingMismatch(f"Invalid boolean byte 0x{raw:02x}")
        return raw == 1, offset + 1

    if isinstance(descriptor, Primitive):
        raw = _take(data, offset, descriptor.width)
        value = int.from_bytes(raw, "little", signed=descriptor.signed)
        return value, offset + descriptor.width

    if isinstance(descriptor, Compact):
        value, size = decode_compact(data, offset)
        return value, offset + size

    if isinstance(descriptor, Str):
        length, size = decode_compact(data, offset)
        start = offset + size
        raw = _take(data, start, length)
        try:
            return raw.decode("utf-8"), start + length
        except UnicodeDecodeError as exc:
            raise EncodingMismatch("String is not valid UTF-8") from exc

    if isinstance(descriptor, OptionOf):
        flag = _take(data, offset, 1)[0]
        if flag == 0:
            return None, offset + 1
        if flag != 1:
            raise EncodingMismatch(f"Invalid option discriminant 0x{flag:02x}")
        return _decode_at(data, offset + 1, descriptor.inner, registry)

    if isinstance(descriptor, ResultOf):
        flag = _take(data, offset, 1)[0]
        if flag == 0:
            value, end = _decode_at(data, offset + 1, descriptor.ok, registry)
            return {"Ok": value}, end
        if flag == 1:
            value, end = _decode_at(data, offset + 1, descriptor.err, registry)
            return {"Err": value}, end
        raise EncodingMismatch(f"Invalid result discriminant 0x{flag:02x}")

    if isinstance(descriptor, Tuple):
        values = []
        for field_id in descriptor.fields:
            value, offset = _decode_at(data, offset, field_id, registry)
            values.append(value)
        return values, offset

    if isinstance(descriptor, Struct):
        named = any(f.name for f in descriptor.fields)
        values: Any = {} if named else []
        for position, field in enumerate(descriptor.fields):
            value, offset = _decode_at(data, offset, field.type_id, registry)
            if named:
                values[field.name or str(position)] = value
            else:
                values.append(value)
        return values, offset

    if isinstance(descriptor, Enum):
        index = _take(data, offset, 1)[0]
        variant = descriptor.variant_by_index(index)
        if variant is None:
            raise EncodingMismatch(
                f"{descriptor.name or 'Enum'} has no variant with index {index}"
            )
        offset += 1
        name = _qualified_name(descriptor, variant)
        if not variant.fields:
            return EnumValue(name=name, index=index), offset
        fields = []
        for field in variant.fields:
            value, offset = _decode_at(data, offset, field.type_id, registry)
            fields.append(value)
        return EnumValue(name=name, index=index, fields=tuple(fields)), offset

    if isinstance(descriptor, List):
        length = descriptor.length
        if length is None:
            length, size = decode_compact(data, offset)
            offset += size
        if registry.is_byte(descriptor.element):
            raw = _take(data, offset, length)
            return "0x" + raw.hex(), offset + length
        values = []
        for _ in range(length):
            value, offset = _decode_at(data, offset, descriptor.element, registry)
            values.append(value)
        return values, offset

    raise UnsupportedType(f"Cannot decode type {type_id}: {descriptor!r}")


def _qualified_name(descriptor: Enum, variant: Variant) -> str:
    if descriptor.name:
        return f"{descriptor.name}::{variant.name}"
    return variant.name


# ============ Encoding ============


def _encode(value: Any, type_id: int, registry: TypeRegistry) -> bytearray:
    descriptor = registry[type_id]
    out = bytearray()

    if isinstance(descriptor, Boolean):
        if not isinstance(value, bool):
            raise EncodingMismatch(f"Expected a boolean, got {value!r}")
        out.append(1 if value else 0)
        return out

    if isinstance(descriptor, Primitive):
        out += _encode_int(value, descriptor)
        return out

    if isinstance(descriptor, Compact):
        out += encode_compact(value)
        return out

    if isinstance(descriptor, Str):
        if not isinstance(value, str):
            raise EncodingMismatch(f"Expected a string, got {value!r}")
        raw = value.encode("utf-8")
        out += encode_compact(len(raw))
        out += raw
        return out

    if isinstance(descriptor, OptionOf):
        if value is None:
            out.append(0)
            return out
        out.append(1)
        out += _encode(value, descriptor.inner, registry)
        return out

    if isinstance(descriptor, ResultOf):
        if isinstance(value, Mapping) and len(value) == 1:
            if "Ok" in value:
                out.append(0)
                out += _encode(value["Ok"], descriptor.ok, registry)
                return out
            if "Err" in value:
                out.append(1)
                out += _encode(value["Err"], descriptor.err, registry)
                return out
        raise EncodingMismatch(f"Expected {{'Ok': ...}} or {{'Err': ...}}, got {value!r}")

    if isinstance(descriptor, Tuple):
        if _is_newtype_value(value, descriptor.fields):
            out += _encode(value, descriptor.fields[0], registry)
            return out
        items = _as_sequence(value)
        if len(items) != len(descriptor.fields):
            raise EncodingMismatch(
                f"Tuple expects {len(descriptor.fields)} items, got {len(items)}"
            )
        for item, field_id in zip(items, descriptor.fields):
            out += _encode(item, field_id, registry)
        return out

    if isinstance(descriptor, Struct):
        out += _encode_struct(value, descriptor, registry)
        return out

    if isinstance(descriptor, Enum):
        out += _encode_enum(value, descriptor, registry)
        return out

    if isinstance(descriptor, List):
        if registry.is_byte(descriptor.element):
            raw = _as_bytes(value)
            if descriptor.length is None:
                out += encode_compact(len(raw))
            elif len(raw) != descriptor.length:
                raise EncodingMismatch(
                    f"Expected {descriptor.length} bytes, got {len(raw)}"
                )
            out += raw
            return out
        items = _as_sequence(value)
        if descriptor.length is None:
            out += encode_compact(len(items))
        elif len(items) != descriptor.length:
            raise EncodingMismatch(
                f"Expected {descriptor.length} items, got {len(items)}"
            )
        for item in items:
            out += _encode(item, descriptor.element, registry)
        return out

    raise UnsupportedType(f"Cannot encode type {type_id}: {descriptor!r}")


def _encode_int(value: Any, descriptor: Primitive) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingMismatch(f"{descriptor.name} expects an integer, got {value!r}")
    bits = descriptor.width * 8
    if descriptor.signed:
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    else:
        low, high = 0, (1 << bits) - 1
    if not low <= value <= high:
        raise EncodingMismatch(f"{value} does not fit in {descriptor.name}")
    return value.to_bytes(descriptor.width, "little", signed=descriptor.signed)


def _encode_struct(value: Any, descriptor: Struct, registry: TypeRegistry) -> bytearray:
    out = bytearray()
    if isinstance(value, Mapping):
        for position, field in enumerate(descriptor.fields):
            key = field.name or str(position)
            if key not in value:
                raise EncodingMismatch(
                    f"Missing field '{key}' for {descriptor.name or 'struct'}"
                )
            out += _encode(value[key], field.type_id, registry)
        return out

    if _is_newtype_value(value, descriptor.fields):
        out += _encode(value, descriptor.fields[0].type_id, registry)
        return out

    items = _as_sequence(value)
    if len(items) != len(descriptor.fields):
        raise EncodingMismatch(
            f"{descriptor.name or 'Struct'} expects {len(descriptor.fields)} fields, got {len(items)}"
        )
    for item, field in zip(items, descriptor.fields):
        out += _encode(item, field.type_id, registry)
    return out


def _encode_enum(value: Any, descriptor: Enum, registry: TypeRegistry) -> bytearray:
    fields: Sequence[Any] = ()
    variant = None

    if isinstance(value, EnumValue):
        variant = descriptor.variant_by_index(value.index)
        fields = value.fields or ()
    elif isinstance(value, Mapping) and "index" in value:
        index = value["index"]
        if isinstance(index, int) and not isinstance(index, bool):
            variant = descriptor.variant_by_index(index)
        fields = value.get("fields") or ()
    elif isinstance(value, Mapping) and len(value) == 1:
        # {"Variant": payload}, the shape to_jsonable renders.
        name, payload = next(iter(value.items()))
        variant = descriptor.variant_by_name(str(name))
        if variant is not None:
            fields = _variant_fields(payload, variant)
    elif isinstance(value, str):
        variant = descriptor.variant_by_name(value)
    elif isinstance(value, int) and not isinstance(value, bool):
        variant = descriptor.variant_by_index(value)

    if variant is None:
        logger.warning("Cannot encode enum %s from %r", descriptor.name, value)
        raise EncodingMismatch(f"No variant of {descriptor.name or 'enum'} matches {value!r}")

    if len(fields) != len(variant.fields):
        raise EncodingMismatch(
            f"{_qualified_name(descriptor, variant)} expects {len(variant.fields)} fields, "
            f"got {len(fields)}"
        )

    out = bytearray([variant.index])
    for item, field in zip(fields, variant.fields):
        out += _encode(item, field.type_id, registry)
    return out


def _variant_fields(payload: Any, variant: Variant) -> Sequence[Any]:
    if payload is None:
        return ()
    if _is_newtype_value(payload, variant.fields):
        return (payload,)
    return _as_sequence(payload)


def _is_newtype_value(value: Any, fields: Sequence[Any]) -> bool:
    """A single-field wrapper given its inner value directly."""
    if len(fields) != 1 or isinstance(value, Mapping):
        return False
    return not (isinstance(value, (list, tuple)) and len(value) == 1)


def _as_sequence(value: Any) -> Sequence[Any]:
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
        raise EncodingMismatch(f"Expected a sequence, got {value!r}")
    return value


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        if not value.startswith("0x"):
            raise EncodingMismatch(f"Byte strings must be 0x-prefixed hex, got {value!r}")
        try:
            return bytes.fromhex(value[2:])
        except ValueError as exc:
            raise EncodingMismatch(f"Invalid hex string {value!r}") from exc
    items = _as_sequence(value)
    try:
        return bytes(items)
    except (TypeError, ValueError) as exc:
        raise EncodingMismatch(f"Expected byte values, got {value!r}") from exc
