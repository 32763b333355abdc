"""
Metadata Cache Module

Persists runtime metadata blobs across processes so a reconnecting client
can skip ``state_getMetadata`` when the runtime has not changed.

Entries are keyed ``"<implName>-<specVersion>"`` and hold the 0x-prefixed
hex blob. Learning a new version evicts every older entry of the same
implementation.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...


@dataclass
class MemoryStore:
    """Process-local store, mainly for tests and short-lived sessions."""

    entries: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        return self.entries.get(key)

    def set(self, key: str, value: str) -> None:
        self.entries[key] = value

    def delete(self, key: str) -> None:
        self.entries.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self.entries)


@dataclass
class FileStore:
    """
    Durable store keeping one JSON file per key.

    Reads tolerate a concurrent delete: a vanished or corrupted entry reads
    as missing.
    """

    cache_dir: Path = field(default_factory=lambda: Path.home() / ".dots" / "cache")

    def __post_init__(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = _SAFE_KEY_RE.sub("_", key)
        return self.cache_dir / f"meta_{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return data["value"]
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, TypeError, KeyError, OSError):
            logger.warning("Dropping corrupted cache entry %s", path.name)
            path.unlink(missing_ok=True)
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        payload = {"key": key, "value": value, "cached_at": int(time.time())}
        self._atomic_write(path, json.dumps(payload, sort_keys=True))

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        results = []
        for path in self.cache_dir.glob("meta_*.json"):
            try:
                results.append(json.loads(path.read_text(encoding="utf-8"))["key"])
            except FileNotFoundError:
                continue
            except (json.JSONDecodeError, TypeError, KeyError, OSError):
                logger.warning("Skipping unreadable cache entry %s", path.name)
        return sorted(results)

    def _atomic_write(self, path: Path, text: str) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            if os.name != "nt":
                tmp.chmod(0o600)
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise


def cache_key(impl_name: str, spec_version: int) -> str:
    return f"{impl_name}-{spec_version}"


def _belongs_to(key: str, impl_name: str) -> bool:
    name, sep, version = key.rpartition("-")
    return bool(sep) and name == impl_name and version.isdigit()


@dataclass
class MetadataCache:
    """Metadata blobs by (implementation name, spec version)."""

    store: KeyValueStore = field(default_factory=MemoryStore)

    def load(self, impl_name: str, spec_version: int) -> Optional[str]:
        return self.store.get(cache_key(impl_name, spec_version))

    def save(self, impl_name: str, spec_version: int, metadata_hex: str) -> list[str]:
        """
        Persist a metadata blob after evicting all entries of the same implementation.

        Returns:
            Keys that were evicted
        """
        evicted = self.evict(impl_name)
        self.store.set(cache_key(impl_name, spec_version), metadata_hex)
        return evicted

    def evict(self, impl_name: str) -> list[str]:
        evicted = [key for key in self.store.keys() if _belongs_to(key, impl_name)]
        for key in evicted:
            self.store.delete(key)
        if evicted:
            logger.info("Evicted cached metadata: %s", ", ".join(evicted))
        return evicted

    def clear(self) -> None:
        for key in self.store.keys():
            self.store.delete(key)

    def entries(self) -> list[dict]:
        results = []
        for key in self.store.keys():
            impl_name, _, version = key.rpartition("-")
            value = self.store.get(key)
            results.append({
                "key": key,
                "impl_name": impl_name,
                "spec_version": int(version) if version.isdigit() else None,
                "size_bytes": (len(value) - 2) // 2 if value else 0,
            })
        return results
