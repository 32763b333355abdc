"""
Hashing primitives used for storage keys and signing payloads.

Substrate's "twox" hashes are xxHash64 digests written little-endian;
twox128 concatenates the seed-0 and seed-1 digests.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol, Union

import xxhash

Data = Union[bytes, bytearray, str]


class HashingBackend(Protocol):
    def blake2_128(self, data: Data) -> bytes:
        ...

    def blake2_256(self, data: Data) -> bytes:
        ...

    def twox64(self, data: Data) -> bytes:
        ...

    def twox128(self, data: Data) -> bytes:
        ...


def _raw(data: Data) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _xx64(data: bytes, seed: int) -> bytes:
    return xxhash.xxh64(data, seed=seed).intdigest().to_bytes(8, "little")


@dataclass(frozen=True)
class StandardHashing:
    """hashlib blake2b + xxhash implementation of HashingBackend."""

    def blake2_128(self, data: Data) -> bytes:
        return hashlib.blake2b(_raw(data), digest_size=16).digest()

    def blake2_256(self, data: Data) -> bytes:
        return hashlib.blake2b(_raw(data), digest_size=32).digest()

    def twox64(self, data: Data) -> bytes:
        return _xx64(_raw(data), 0)

    def twox128(self, data: Data) -> bytes:
        raw = _raw(data)
        return _xx64(raw, 0) + _xx64(raw, 1)


DEFAULT_HASHING = StandardHashing()
