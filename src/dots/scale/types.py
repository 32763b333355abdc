"""
Type descriptors and the Type Registry.

The registry is produced by a metadata parser and consumed by the codec.
Descriptors form a closed set of immutable records; the codec dispatches
over them explicitly instead of asking each type to decode itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterator, Optional, Union


class ScaleError(ValueError):
    pass


class UnsupportedType(ScaleError):
    pass


class EncodingMismatch(ScaleError):
    pass


class TruncatedData(EncodingMismatch):
    pass


@dataclass(frozen=True)
class Field:
    type_id: int
    name: Optional[str] = None


@dataclass(frozen=True)
class Variant:
    index: int
    name: str
    fields: tuple[Field, ...] = ()


@dataclass(frozen=True)
class Primitive:
    """Fixed-width integer. ``width`` is in bytes."""

    name: str
    width: int
    signed: bool


@dataclass(frozen=True)
class Boolean:
    pass


@dataclass(frozen=True)
class Str:
    pass


@dataclass(frozen=True)
class Compact:
    inner: Optional[int] = None


@dataclass(frozen=True)
class OptionOf:
    inner: int


@dataclass(frozen=True)
class ResultOf:
    ok: int
    err: int


@dataclass(frozen=True)
class Tuple:
    fields: tuple[int, ...] = ()


@dataclass(frozen=True)
class List:
    element: int
    length: Optional[int] = None


@dataclass(frozen=True)
class Struct:
    fields: tuple[Field, ...] = ()
    name: Optional[str] = None


@dataclass(frozen=True)
class Enum:
    variants: tuple[Variant, ...] = ()
    name: Optional[str] = None

    def variant_by_index(self, index: int) -> Optional[Variant]:
        for variant in self.variants:
            if variant.index == index:
                return variant
        return None

    def variant_by_name(self, name: str) -> Optional[Variant]:
        short = name.rsplit("::", 1)[-1]
        for variant in self.variants:
            if variant.name == short:
                return variant
        return None


TypeDescriptor = Union[
    Primitive, Boolean, Str, Compact, OptionOf, ResultOf, Tuple, List, Struct, Enum
]

PRIMITIVES: dict[str, Primitive] = {
    name: Primitive(name, width, name.startswith("I"))
    for name, width in (
        ("U8", 1), ("U16", 2), ("U32", 4), ("U64", 8), ("U128", 16), ("U256", 32),
        ("I8", 1), ("I16", 2), ("I32", 4), ("I64", 8), ("I128", 16), ("I256", 32),
    )
}


@dataclass(frozen=True)
class EnumValue:
    """Decoded enum instance. ``name`` is qualified as ``Type::Variant``."""

    name: str
    index: int
    fields: Optional[tuple] = None

    @property
    def variant(self) -> str:
        return self.name.rsplit("::", 1)[-1]


class TypeRegistry(Mapping):
    """Immutable mapping of type id to descriptor."""

    def __init__(self, types: Optional[Mapping[int, TypeDescriptor]] = None) -> None:
        self._types: dict[int, TypeDescriptor] = dict(types or {})

    def __getitem__(self, type_id: int) -> TypeDescriptor:
        try:
            return self._types[type_id]
        except KeyError:
            raise UnsupportedType(f"Type id {type_id} is not in the registry") from None

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def get(self, type_id: int, default: Optional[TypeDescriptor] = None) -> Optional[TypeDescriptor]:
        return self._types.get(type_id, default)

    def __iter__(self) -> Iterator[int]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"TypeRegistry({len(self._types)} types)"

    def is_byte(self, type_id: int) -> bool:
        descriptor = self._types.get(type_id)
        return isinstance(descriptor, Primitive) and descriptor.name == "U8"
