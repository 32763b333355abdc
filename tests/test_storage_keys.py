"""Tests for storage key derivation."""

from __future__ import annotations

import pytest

from dots.metadata.models import MapDefinition, Metadata, StorageItem
from dots.pneuma.storage import (
    StorageKeyError,
    UnsupportedHasher,
    hash_map_key,
    storage_key,
    storage_key_hex,
    storage_prefix,
)
from dots.scale.types import EncodingMismatch

ALICE_PUBLIC_KEY = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"

SYSTEM_PREFIX = "26aa394eea5630e07c48ae0c9558cef7"
BALANCES_PREFIX = "c2261276cc9d1f8598ea4b6a74b15c2f"
ACCOUNT_ITEM = "b99d880ec681799c0cf30e8886371da9"


class TaggingHashing:
    """Hashing stand-in that makes each hasher visible in the output."""

    def blake2_128(self, data: bytes) -> bytes:
        return b"B" * 16

    def blake2_256(self, data: bytes) -> bytes:
        return b"b" * 32

    def twox64(self, data: bytes) -> bytes:
        return b"T" * 8

    def twox128(self, data) -> bytes:
        name = data.encode() if isinstance(data, str) else bytes(data)
        return name[:16].ljust(16, b".")


class TestPlainItems:
    def test_system_events(self) -> None:
        key = storage_key_hex("System", StorageItem(name="Events"))
        assert key == "0x" + SYSTEM_PREFIX + "80d41e5e16056765bc8461851072c9d7"

    def test_balances_total_issuance(self, metadata: Metadata) -> None:
        item = metadata.pallet("Balances").storage_item("TotalIssuance")
        key = storage_key_hex("Balances", item)
        assert key == "0x" + BALANCES_PREFIX + "57c875e4cff74148e4628f264b974c80"

    def test_prefix_is_32_bytes(self) -> None:
        assert len(storage_prefix("System", "Number")) == 32

    def test_plain_item_rejects_key(self, metadata: Metadata) -> None:
        item = metadata.pallet("System").storage_item("Number")
        with pytest.raises(StorageKeyError):
            storage_key("System", item, key=1, registry=metadata.types)


class TestMapItems:
    def test_system_account_for_alice(self, metadata: Metadata) -> None:
        item = metadata.pallet("System").storage_item("Account")
        key = storage_key_hex("System", item, "0x" + ALICE_PUBLIC_KEY, metadata.types)
        assert key == (
            "0x" + SYSTEM_PREFIX + ACCOUNT_ITEM
            + "de1e86a9a8c739864cf3cc5ec2bea59f" + ALICE_PUBLIC_KEY
        )

    def test_balances_account_for_alice(self, metadata: Metadata) -> None:
        item = metadata.pallet("Balances").storage_item("Account")
        key = storage_key(
            "Balances", item, bytes.fromhex(ALICE_PUBLIC_KEY), metadata.types
        )
        assert key.hex() == (
            BALANCES_PREFIX + ACCOUNT_ITEM + "de1e86a9a8c739864cf3cc5ec2bea59f" + ALICE_PUBLIC_KEY
        )

    def test_twox64_concat(self, metadata: Metadata) -> None:
        item = StorageItem(
            name="BlockHash", map=MapDefinition(hashers=("Twox64Concat",), key=3, value=13)
        )
        key = storage_key("System", item, 5, metadata.types, hashing=TaggingHashing())
        assert key == b"System.........." + b"BlockHash......." + b"T" * 8 + bytes([5, 0, 0, 0])

    def test_blake2_concat_structure(self, metadata: Metadata) -> None:
        item = metadata.pallet("System").storage_item("Account")
        raw_key = bytes(range(32))
        key = storage_key("System", item, raw_key, metadata.types, hashing=TaggingHashing())
        assert key[32:48] == b"B" * 16
        assert key[48:] == raw_key

    def test_only_first_hasher_is_used(self, metadata: Metadata) -> None:
        item = StorageItem(
            name="Pair",
            map=MapDefinition(hashers=("Twox64Concat", "Blake2_128Concat"), key=3, value=3),
        )
        key = storage_key("System", item, 1, metadata.types, hashing=TaggingHashing())
        assert key[32:40] == b"T" * 8
        assert len(key) == 32 + 8 + 4

    @pytest.mark.parametrize("hasher", ["Identity", "Blake2_256", "Twox128", "Twox256"])
    def test_unsupported_hashers(self, metadata: Metadata, hasher: str) -> None:
        item = StorageItem(name="Map", map=MapDefinition(hashers=(hasher,), key=3, value=3))
        with pytest.raises(UnsupportedHasher):
            storage_key("System", item, 1, metadata.types)

    def test_no_hashers(self, metadata: Metadata) -> None:
        item = StorageItem(name="Map", map=MapDefinition(hashers=(), key=3, value=3))
        with pytest.raises(UnsupportedHasher):
            storage_key("System", item, 1, metadata.types)

    def test_map_requires_key(self, metadata: Metadata) -> None:
        item = metadata.pallet("System").storage_item("Account")
        with pytest.raises(StorageKeyError):
            storage_key("System", item, None, metadata.types)

    def test_map_requires_registry(self, metadata: Metadata) -> None:
        item = metadata.pallet("System").storage_item("Account")
        with pytest.raises(StorageKeyError):
            storage_key("System", item, "0x" + ALICE_PUBLIC_KEY)

    def test_key_must_match_type(self, metadata: Metadata) -> None:
        item = metadata.pallet("System").storage_item("Account")
        with pytest.raises(EncodingMismatch):
            storage_key("System", item, "0x1234", metadata.types)

    def test_hash_map_key_unknown(self) -> None:
        with pytest.raises(UnsupportedHasher):
            hash_map_key("Identity", b"\x01")
