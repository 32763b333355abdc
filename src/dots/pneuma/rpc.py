"""
JSON-RPC Session over one persistent WebSocket.

A background task owns the socket reads and routes every inbound message:
system-info replies, runtime-version pushes, the metadata reply, one-shot
responses and subscription pushes. Callers suspend on futures and events
that routing resolves.

There is no reconnection: when the socket drops the session returns to
DISCONNECTED and whatever was pending stays pending.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from ..anamnesis.cache import MetadataCache
from ..metadata.models import Metadata
from ..metadata.schemas import MetadataParser, metadata_bytes_from_hex
from .tx import signing_capable

logger = logging.getLogger(__name__)

SYSTEM_KEYS = ("name", "version", "chain", "properties", "health")
VERSION_SUBSCRIPTION_ID = "version-subscription"
METADATA_REQUEST_ID = "metadata"

# Runtime metadata runs to several MiB of hex.
CONNECT_OPTIONS = {"max_size": 2**32, "write_limit": 2**16}

Connector = Callable[..., Awaitable[Any]]
StatusCallback = Callable[[Any], Any]


class RpcError(RuntimeError):
    pass


class SessionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AWAITING_METADATA = "awaiting_metadata"
    READY = "ready"


@dataclass
class Subscription:
    id: str
    callback: StatusCallback


@dataclass
class _PendingRequest:
    future: asyncio.Future
    on_subscription: Optional[StatusCallback] = None


@dataclass
class _SystemBatch:
    values: dict[str, Any] = field(default_factory=lambda: dict.fromkeys(SYSTEM_KEYS))
    updated: int = 0
    done: asyncio.Event = field(default_factory=asyncio.Event)


class RpcSession:
    """
    Long-lived JSON-RPC 2.0 session with a Substrate node.

    Args:
        url: WebSocket endpoint (ws:// or wss://)
        parser: Callable turning the raw metadata blob into Metadata
        cache: Metadata cache consulted before fetching metadata
        connect: Connection factory, ``websockets.asyncio.client.connect`` by default
    """

    def __init__(
        self,
        url: str,
        parser: MetadataParser,
        cache: Optional[MetadataCache] = None,
        connect: Optional[Connector] = None,
    ) -> None:
        self.url = url
        self._parser = parser
        self._cache = cache if cache is not None else MetadataCache()
        self._connect = connect or ws_connect

        self._ws: Any = None
        self._receiver: Optional[asyncio.Task] = None
        self._state = SessionState.DISCONNECTED

        self._pending: dict[str, _PendingRequest] = {}
        self._subscriptions: dict[str, Subscription] = {}

        self._batch: Optional[_SystemBatch] = None
        self._system: Optional[Mapping[str, Any]] = None

        self._runtime_version: Optional[Mapping[str, Any]] = None
        self._version_ready = asyncio.Event()
        self._metadata: Optional[Metadata] = None
        self._metadata_ready = asyncio.Event()
        self._signing_capable = False

    async def __aenter__(self) -> "RpcSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def signing_capable(self) -> bool:
        return self._state is SessionState.READY and self._signing_capable

    @property
    def system(self) -> Optional[Mapping[str, Any]]:
        return self._system

    @property
    def subscriptions(self) -> Mapping[str, Subscription]:
        return MappingProxyType(self._subscriptions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the socket, start routing and subscribe to runtime versions."""
        if self._state is not SessionState.DISCONNECTED:
            raise RpcError(f"Session is already {self._state.value}")

        self._state = SessionState.CONNECTING
        try:
            self._ws = await self._connect(self.url, **CONNECT_OPTIONS)
        except Exception:
            self._state = SessionState.DISCONNECTED
            raise
        self._state = SessionState.CONNECTED
        logger.info("Connected to %s", self.url)

        self._receiver = asyncio.create_task(self._receive())
        await self._send({"id": VERSION_SUBSCRIPTION_ID, "method": "state_subscribeRuntimeVersion"})
        if self._state is SessionState.CONNECTED:
            self._state = SessionState.AWAITING_METADATA

    async def close(self) -> None:
        if self._receiver is not None:
            self._receiver.cancel()
            try:
                await self._receiver
            except asyncio.CancelledError:
                pass
            self._receiver = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self._state = SessionState.DISCONNECTED
        logger.info("Closed session to %s", self.url)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(self, method: str, *params: Any) -> dict:
        """
        Send a one-shot request and wait for its response.

        Returns:
            The full response object (``result`` or ``error``)
        """
        return await self._request(method, params)

    async def request_subscription(
        self,
        method: str,
        callback: StatusCallback,
        *params: Any,
    ) -> dict:
        """
        Send a subscribing request; a successful result registers ``callback``.

        The subscription is registered while the response is routed, so pushes
        that follow the response on the wire are never missed.
        """
        return await self._request(method, params, on_subscription=callback)

    async def _request(
        self,
        method: str,
        params: tuple,
        on_subscription: Optional[StatusCallback] = None,
    ) -> dict:
        request_id = secrets.token_hex(8)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingRequest(future, on_subscription)
        try:
            await self._send({"id": request_id, "method": method, "params": list(params)})
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def update_system(self) -> Mapping[str, Any]:
        """Fetch name, version, chain, properties and health as one batch."""
        batch = _SystemBatch()
        self._batch = batch
        start = time.perf_counter()
        for key in SYSTEM_KEYS:
            await self._send({"id": key, "method": f"system_{key}", "params": []})
        await batch.done.wait()
        logger.info("Updating system info took %.0f ms", (time.perf_counter() - start) * 1000)

        self._system = MappingProxyType(dict(batch.values))
        return self._system

    async def runtime_version(self) -> Mapping[str, Any]:
        if self._runtime_version is None:
            start = time.perf_counter()
            await self._version_ready.wait()
            logger.info("Fetching runtime version took %.0f ms", (time.perf_counter() - start) * 1000)
        return self._runtime_version

    async def metadata(self) -> Metadata:
        if self._metadata is None:
            start = time.perf_counter()
            await self._metadata_ready.wait()
            logger.info("Fetching metadata took %.0f ms", (time.perf_counter() - start) * 1000)
        return self._metadata

    def subscribe(self, subscription_id: str, callback: StatusCallback) -> Subscription:
        subscription = Subscription(subscription_id, callback)
        self._subscriptions[subscription_id] = subscription
        return subscription

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    async def _send(self, request: dict) -> None:
        if self._ws is None:
            raise RpcError("Session is not connected")
        text = json.dumps({**request, "jsonrpc": "2.0"})
        logger.debug(">> %s", text)
        await self._ws.send(text)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def _receive(self) -> None:
        try:
            async for raw in self._ws:
                logger.debug("<< %s", raw)
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Dropping non-JSON message: %.200s", raw)
                    continue
                if not isinstance(message, dict):
                    logger.warning("Unhandled message: %s", message)
                    continue
                try:
                    await self._route(message)
                except Exception:
                    logger.exception("Failed to route message: %.200s", raw)
        except ConnectionClosed as exc:
            logger.warning("Connection to %s lost: %s", self.url, exc)
        finally:
            self._state = SessionState.DISCONNECTED

    async def _route(self, message: dict) -> None:
        message_id = message.get("id")

        if isinstance(message_id, str) and message_id in SYSTEM_KEYS:
            self._on_system_value(message_id, message.get("result"))
            return

        if message.get("method") == "state_runtimeVersion":
            params = message.get("params")
            version = params.get("result") if isinstance(params, dict) else None
            if not isinstance(version, dict):
                logger.warning("Ignoring malformed runtime version: %s", message)
                return
            await self._on_runtime_version(version)
            return

        if message_id == METADATA_REQUEST_ID:
            self._on_metadata(message.get("result"), persist=True)
            return

        pending = self._pending.get(message_id) if isinstance(message_id, str) else None
        if pending is not None:
            if pending.on_subscription is not None and message.get("result") is not None:
                self.subscribe(str(message["result"]), pending.on_subscription)
            if not pending.future.done():
                pending.future.set_result(message)
            return

        params = message.get("params")
        subscription_id = params.get("subscription") if isinstance(params, dict) else None
        if subscription_id is not None and subscription_id in self._subscriptions:
            self._notify(self._subscriptions[subscription_id], params.get("result"))
            return

        if message_id == VERSION_SUBSCRIPTION_ID:
            return

        logger.warning("Unhandled message: %s", message)

    def _on_system_value(self, key: str, value: Any) -> None:
        batch = self._batch
        if batch is None:
            logger.warning("System value %s arrived outside an update", key)
            return
        batch.values[key] = value
        batch.updated += 1
        if batch.updated >= len(SYSTEM_KEYS):
            batch.done.set()

    async def _on_runtime_version(self, version: Mapping[str, Any]) -> None:
        self._runtime_version = MappingProxyType(dict(version))
        self._version_ready.set()
        impl_name = version.get("implName")
        spec_version = version.get("specVersion")
        logger.info("Runtime version %s-%s", impl_name, spec_version)

        cached = self._cache.load(impl_name, spec_version)
        if cached is not None and self._on_metadata(cached, persist=False):
            return
        await self._send({"id": METADATA_REQUEST_ID, "method": "state_getMetadata", "params": []})

    def _on_metadata(self, metadata_hex: Any, persist: bool) -> bool:
        try:
            metadata = self._parser(metadata_bytes_from_hex(metadata_hex))
        except ValueError as exc:
            logger.warning("Dropping malformed metadata: %s", exc)
            return False

        if persist and self._runtime_version is not None:
            self._cache.save(
                self._runtime_version.get("implName"),
                self._runtime_version.get("specVersion"),
                metadata_hex,
            )

        self._metadata = metadata
        self._signing_capable = signing_capable(metadata.signing.extensions)
        self._state = SessionState.READY
        self._metadata_ready.set()
        return True

    def _notify(self, subscription: Subscription, result: Any) -> None:
        try:
            subscription.callback(result)
        except Exception:
            logger.exception("Subscription %s callback failed", subscription.id)
