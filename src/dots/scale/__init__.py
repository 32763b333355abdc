"""
Scale - SCALE codec for Substrate values.

Values are (de)serialized against a Type Registry produced from chain
metadata; the registry is treated as read-only input.
"""

from .codec import decode, decode_compact, decode_hex, encode, encode_compact
from .types import (
    Boolean,
    Compact,
    EncodingMismatch,
    Enum,
    EnumValue,
    Field,
    List,
    OptionOf,
    PRIMITIVES,
    Primitive,
    ResultOf,
    ScaleError,
    Str,
    Struct,
    TruncatedData,
    Tuple,
    TypeDescriptor,
    TypeRegistry,
    UnsupportedType,
    Variant,
)

__all__ = [
    "Boolean",
    "Compact",
    "EncodingMismatch",
    "Enum",
    "EnumValue",
    "Field",
    "List",
    "OptionOf",
    "PRIMITIVES",
    "Primitive",
    "ResultOf",
    "ScaleError",
    "Str",
    "Struct",
    "TruncatedData",
    "Tuple",
    "TypeDescriptor",
    "TypeRegistry",
    "UnsupportedType",
    "Variant",
    "decode",
    "decode_compact",
    "decode_hex",
    "encode",
    "encode_compact",
]
