"""
Context - the chain-facing surface handed to UI code.

Wraps an RpcSession with storage queries and extrinsic submission. Failures
never escape: queries return None and submissions return
``{"error": {"message": ...}}``, with a logged diagnostic either way.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ..anamnesis.cache import KeyValueStore, MemoryStore, MetadataCache
from ..config import get_metadata_parser, get_ss58_format, get_ws_url
from ..metadata.models import Call, Metadata, Pallet, StorageItem
from ..metadata.schemas import MetadataParser
from ..scale.codec import decode
from ..scale.types import EncodingMismatch, Field, List, Struct, Tuple, TypeRegistry
from ..sigil.account import Signer, is_ss58_address, ss58_decode
from ..sigil.hashing import DEFAULT_HASHING, HashingBackend
from .rpc import Connector, RpcError, RpcSession, StatusCallback
from .storage import storage_key_hex
from .tx import ChainState, build_extrinsic, needs_nonce

logger = logging.getLogger(__name__)

PalletRef = Union[int, str, Pallet]


class ContextError(ValueError):
    pass


def _error(message: str) -> dict:
    return {"error": {"message": message}}


def is_account_id(type_id: int, registry: TypeRegistry) -> bool:
    """Whether a type is (a single-field wrapper around) a 32-byte array."""
    descriptor = registry.get(type_id)
    while isinstance(descriptor, (Struct, Tuple)) and len(descriptor.fields) == 1:
        inner = descriptor.fields[0]
        descriptor = registry.get(inner.type_id if isinstance(inner, Field) else inner)
    return (
        isinstance(descriptor, List)
        and descriptor.length == 32
        and registry.is_byte(descriptor.element)
    )


def account_key(key: Any, type_id: int, registry: TypeRegistry) -> Any:
    """Decode an SS58 address into account id bytes when the key type is an account id."""
    if isinstance(key, str) and is_account_id(type_id, registry) and is_ss58_address(key):
        return ss58_decode(key)
    return key


class Context:
    """
    Connected chain context.

    Use ``await Context.new(url)`` rather than the constructor: it connects,
    loads the system info and fetches the genesis hash.
    """

    def __init__(
        self,
        session: RpcSession,
        account: Optional[Signer] = None,
        hashing: HashingBackend = DEFAULT_HASHING,
    ) -> None:
        self.session = session
        self.account = account
        self.hashing = hashing
        self.genesis_hash: Optional[str] = None

    @classmethod
    async def new(
        cls,
        url: Optional[str] = None,
        account: Optional[Signer] = None,
        store: Optional[KeyValueStore] = None,
        parser: Optional[MetadataParser] = None,
        connect: Optional[Connector] = None,
        hashing: HashingBackend = DEFAULT_HASHING,
    ) -> "Context":
        """
        Connect to a node and prepare a Context.

        Args:
            url: WebSocket endpoint (default: DOTS_WS_URL or Westend)
            account: Signer used for submissions
            store: Durable key-value store for the metadata cache
            parser: Metadata parser (default: DOTS_METADATA_PARSER or the JSON document parser)
            connect: WebSocket connection factory
            hashing: Hashing backend

        Returns:
            A connected Context
        """
        session = RpcSession(
            url or get_ws_url(),
            parser or get_metadata_parser(),
            MetadataCache(store if store is not None else MemoryStore()),
            connect=connect,
        )
        await session.connect()
        context = cls(session, account, hashing)
        try:
            await session.update_system()
            response = await session.request("chain_getBlockHash", 0)
        except BaseException:
            await session.close()
            raise
        context.genesis_hash = response.get("result")
        if context.genesis_hash is None:
            logger.warning("Could not fetch genesis hash: %s", response.get("error"))
        return context

    async def close(self) -> None:
        await self.session.close()

    async def __aenter__(self) -> "Context":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def system(self) -> Optional[Mapping[str, Any]]:
        return self.session.system

    @property
    def ss58_format(self) -> int:
        properties = (self.system or {}).get("properties") or {}
        value = properties.get("ss58Format")
        return value if isinstance(value, int) else get_ss58_format()

    async def metadata(self) -> Metadata:
        return await self.session.metadata()

    async def runtime_version(self) -> Mapping[str, Any]:
        return await self.session.runtime_version()

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def query_storage(
        self,
        pallet: PalletRef,
        item: Union[str, StorageItem],
    ) -> Any:
        """Read a plain storage item; None when missing or on failure."""
        try:
            metadata = await self.metadata()
            pallet_name, storage_item = self._storage_item(metadata, pallet, item)
            key = storage_key_hex(pallet_name, storage_item, hashing=self.hashing)
            return await self._storage_query(key, storage_item.value_type, metadata.types)
        except (ValueError, RpcError) as exc:
            logger.warning("Storage query failed: %s", exc)
            return None

    async def query_storage_map(
        self,
        pallet: PalletRef,
        item: Union[str, StorageItem],
        key: Any,
    ) -> Any:
        """
        Read one entry of a storage map; None when missing or on failure.

        SS58 addresses are accepted for 32-byte account keys.
        """
        try:
            metadata = await self.metadata()
            pallet_name, storage_item = self._storage_item(metadata, pallet, item)
            if storage_item.map is None:
                raise ContextError(f"{pallet_name}.{storage_item.name} is not a map")
            key = account_key(key, storage_item.map.key, metadata.types)
            storage_key = storage_key_hex(
                pallet_name, storage_item, key, metadata.types, self.hashing
            )
            return await self._storage_query(storage_key, storage_item.map.value, metadata.types)
        except (ValueError, RpcError) as exc:
            logger.warning("Storage map query failed: %s", exc)
            return None

    async def _storage_query(self, key: str, type_id: int, registry: TypeRegistry) -> Any:
        response = await self.session.request("state_getStorage", key)
        result = response.get("result")
        if not result:
            logger.warning("No storage value at %s: %s", key, response.get("error"))
            return None
        value, _ = decode(bytes.fromhex(result[2:]), type_id, registry)
        return value

    # ------------------------------------------------------------------
    # Extrinsics
    # ------------------------------------------------------------------

    async def submit_extrinsic(
        self,
        pallet: PalletRef,
        call: Union[str, Call],
        params: Sequence[Any],
        on_status: StatusCallback,
    ) -> dict:
        """
        Sign and submit an extrinsic, then watch its status.

        Args:
            pallet: Pallet index, name or descriptor
            call: Call name or descriptor
            params: One argument per call field
            on_status: Receives each status update (e.g. {"inBlock": hash})

        Returns:
            {"unsubscribe": callable} on success, {"error": {"message": str}} otherwise
        """
        if self.account is None:
            logger.warning("Cannot submit extrinsic (no account)")
            return _error("Cannot submit extrinsic (no account)")

        metadata = await self.metadata()
        if not self.session.signing_capable:
            logger.warning("Cannot submit extrinsic (unsupported signed extensions)")
            return _error("Cannot submit extrinsic (unsupported signed extensions)")

        try:
            pallet_index, call = self._call(metadata, pallet, call)
            if len(params) != len(call.fields):
                raise EncodingMismatch(
                    f"Cannot submit extrinsic (expected {len(call.fields)} params, got {len(params)})"
                )
            version = await self.runtime_version()
            extensions = metadata.signing.extensions
            nonce = await self._account_nonce() if needs_nonce(extensions) else None
            state = ChainState(
                spec_version=version["specVersion"],
                transaction_version=version["transactionVersion"],
                genesis_hash=self.genesis_hash,
                nonce=nonce,
            )
            extrinsic = build_extrinsic(
                pallet_index,
                call,
                params,
                extensions,
                state,
                metadata.types,
                self.account,
                self.hashing,
            )
            response = await self.session.request_subscription(
                "author_submitAndWatchExtrinsic", on_status, extrinsic.to_hex()
            )
        except (ValueError, KeyError, RpcError) as exc:
            logger.warning("Cannot submit extrinsic: %s", exc)
            return _error(str(exc))

        if "error" in response:
            logger.warning("Submit extrinsic error %s", response["error"])
            error = response["error"]
            if not isinstance(error, dict) or "message" not in error:
                error = {"message": str(error)}
            return {"error": error}

        subscription_id = str(response.get("result"))
        return {"unsubscribe": lambda: self.session.unsubscribe(subscription_id)}

    async def _account_nonce(self) -> int:
        address = self.account.address(self.ss58_format)
        response = await self.session.request("system_accountNextIndex", address)
        nonce = response.get("result")
        if not isinstance(nonce, int):
            raise ContextError(f"Could not fetch nonce for {address}: {response.get('error')}")
        return nonce

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def _pallet(metadata: Metadata, pallet: PalletRef) -> Pallet:
        if isinstance(pallet, Pallet):
            return pallet
        for candidate in metadata.pallets:
            if candidate.name == pallet or (
                isinstance(pallet, int) and not isinstance(pallet, bool) and candidate.index == pallet
            ):
                return candidate
        raise ContextError(f"Unknown pallet: {pallet}")

    def _storage_item(
        self,
        metadata: Metadata,
        pallet: PalletRef,
        item: Union[str, StorageItem],
    ) -> tuple[str, StorageItem]:
        if isinstance(pallet, str) and isinstance(item, StorageItem):
            return pallet, item
        found = self._pallet(metadata, pallet)
        if isinstance(item, StorageItem):
            return found.name, item
        storage_item = found.storage_item(item)
        if storage_item is None:
            raise ContextError(f"Unknown storage item: {found.name}.{item}")
        return found.name, storage_item

    def _call(
        self,
        metadata: Metadata,
        pallet: PalletRef,
        call: Union[str, Call],
    ) -> tuple[int, Call]:
        if isinstance(pallet, int) and isinstance(call, Call):
            return pallet, call
        found = self._pallet(metadata, pallet)
        if isinstance(call, Call):
            return found.index, call
        descriptor = found.call(call)
        if descriptor is None:
            raise ContextError(f"Unknown call: {found.name}.{call}")
        return found.index, descriptor


__all__ = ["Context", "ContextError", "account_key", "is_account_id"]
