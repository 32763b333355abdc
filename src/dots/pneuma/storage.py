"""
Storage Key Derivation.

Plain item:  twox128(pallet) ++ twox128(item)
Map item:    twox128(pallet) ++ twox128(item) ++ hasher(encode(key))

Only the concatenating hashers are supported, since they are the ones that
keep the key recoverable from the storage key.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..metadata.models import StorageItem
from ..scale.codec import encode
from ..scale.types import TypeRegistry
from ..sigil.hashing import DEFAULT_HASHING, HashingBackend

logger = logging.getLogger(__name__)

SUPPORTED_HASHERS = ("Blake2_128Concat", "Twox64Concat")


class StorageKeyError(ValueError):
    pass


class UnsupportedHasher(StorageKeyError):
    pass


def storage_prefix(
    pallet_name: str,
    item_name: str,
    hashing: HashingBackend = DEFAULT_HASHING,
) -> bytes:
    """Key of a plain storage item (32 bytes)."""
    return hashing.twox128(pallet_name) + hashing.twox128(item_name)


def hash_map_key(
    hasher: str,
    encoded_key: bytes,
    hashing: HashingBackend = DEFAULT_HASHING,
) -> bytes:
    """
    Apply a storage map hasher to an already encoded key.

    Raises:
        UnsupportedHasher: For any hasher other than Blake2_128Concat / Twox64Concat
    """
    if hasher == "Blake2_128Concat":
        return hashing.blake2_128(encoded_key) + encoded_key
    if hasher == "Twox64Concat":
        return hashing.twox64(encoded_key) + encoded_key
    logger.warning("Unknown storage map hasher %s", hasher)
    raise UnsupportedHasher(f"Unsupported storage map hasher: {hasher}")


def storage_key(
    pallet_name: str,
    item: StorageItem,
    key: Any = None,
    registry: Optional[TypeRegistry] = None,
    hashing: HashingBackend = DEFAULT_HASHING,
) -> bytes:
    """
    Derive the raw storage key for a plain or map storage item.

    Args:
        pallet_name: Pallet name (e.g., "System")
        item: Storage item descriptor from metadata
        key: Map key value (map items only)
        registry: Type Registry used to encode the map key
        hashing: Hashing backend

    Returns:
        Raw storage key bytes

    Raises:
        StorageKeyError: Key given for a plain item or missing for a map item
        UnsupportedHasher: Map uses an unsupported hasher
        ScaleError: Map key does not encode as the declared key type
    """
    prefix = storage_prefix(pallet_name, item.name, hashing)
    if item.map is None:
        if key is not None:
            raise StorageKeyError(f"{pallet_name}.{item.name} is not a map")
        return prefix

    if key is None:
        raise StorageKeyError(f"{pallet_name}.{item.name} requires a map key")
    if registry is None:
        raise StorageKeyError("A type registry is required to encode map keys")
    if not item.map.hashers:
        raise UnsupportedHasher(f"{pallet_name}.{item.name} declares no hasher")

    encoded = encode(key, item.map.key, registry)
    return prefix + hash_map_key(item.map.hashers[0], encoded, hashing)


def storage_key_hex(
    pallet_name: str,
    item: StorageItem,
    key: Any = None,
    registry: Optional[TypeRegistry] = None,
    hashing: HashingBackend = DEFAULT_HASHING,
) -> str:
    """Storage key in the 0x-hex form used by ``state_getStorage``."""
    return "0x" + storage_key(pallet_name, item, key, registry, hashing).hex()
