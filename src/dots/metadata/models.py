from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..scale.types import Field, TypeRegistry


@dataclass(frozen=True)
class MapDefinition:
    hashers: tuple[str, ...]
    key: int
    value: int


@dataclass(frozen=True)
class StorageItem:
    """
    Storage entry of a pallet.

    Plain entries carry ``type_id``; map entries carry ``map`` instead.
    """

    name: str
    type_id: Optional[int] = None
    map: Optional[MapDefinition] = None
    docs: tuple[str, ...] = ()

    @property
    def is_map(self) -> bool:
        return self.map is not None

    @property
    def value_type(self) -> int:
        if self.map is not None:
            return self.map.value
        if self.type_id is None:
            raise ValueError(f"Storage item {self.name} declares no value type")
        return self.type_id


@dataclass(frozen=True)
class Call:
    index: int
    name: str
    fields: tuple[Field, ...] = ()
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class Event:
    index: int
    name: str
    fields: tuple[Field, ...] = ()
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class PalletError:
    index: int
    name: str
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class Constant:
    name: str
    type_id: int
    value: bytes
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class Pallet:
    index: int
    name: str
    storage: Optional[tuple[StorageItem, ...]] = None
    calls: Optional[tuple[Call, ...]] = None
    events: Optional[tuple[Event, ...]] = None
    errors: Optional[tuple[PalletError, ...]] = None
    constants: tuple[Constant, ...] = ()

    def storage_item(self, name: str) -> Optional[StorageItem]:
        for item in self.storage or ():
            if item.name == name:
                return item
        return None

    def call(self, name: str) -> Optional[Call]:
        for call in self.calls or ():
            if call.name == name:
                return call
        return None


@dataclass(frozen=True)
class SignedExtension:
    """
    Signed extension declared by the runtime.

    ``type_id`` describes the bytes added to the transaction itself (extra),
    ``additional_id`` the bytes added only to the signing payload.
    """

    name: str
    type_id: Optional[int] = None
    additional_id: Optional[int] = None


@dataclass(frozen=True)
class SigningInfo:
    version: int = 4
    extensions: tuple[SignedExtension, ...] = ()


@dataclass(frozen=True)
class Metadata:
    types: TypeRegistry
    pallets: tuple[Pallet, ...] = ()
    signing: SigningInfo = field(default_factory=SigningInfo)

    def pallet(self, name: str) -> Optional[Pallet]:
        for pallet in self.pallets:
            if pallet.name == name:
                return pallet
        return None


__all__ = [
    "Call",
    "Constant",
    "Event",
    "MapDefinition",
    "Metadata",
    "Pallet",
    "PalletError",
    "SignedExtension",
    "SigningInfo",
    "StorageItem",
]
