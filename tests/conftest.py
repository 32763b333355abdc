"""
Shared fixtures: a metadata document modelled on a Westend-like runtime,
an in-memory node speaking JSON-RPC over a fake WebSocket, and a signer
that records what it was asked to sign.
"""

from __future__ import annotations

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from dots.metadata.models import Metadata
from dots.metadata.schemas import metadata_from_document
from dots.sigil.account import ss58_encode

GENESIS_HASH = "0xe143f23803ac50e8f6f8e62695d1ce9e4e1d68aa36c1cd2cfd15340213f3423e"

ALICE_PUBLIC_KEY = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
ALICE_ADDRESS = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"

RUNTIME_VERSION = {
    "specName": "westend",
    "implName": "parity-westend",
    "authoringVersion": 2,
    "specVersion": 9430,
    "implVersion": 0,
    "transactionVersion": 22,
    "stateVersion": 1,
}

SYSTEM_INFO = {
    "name": "Parity Polkadot",
    "version": "1.0.0-test",
    "chain": "Westend",
    "properties": {"ss58Format": 42, "tokenDecimals": 12, "tokenSymbol": "WND"},
    "health": {"peers": 8, "isSyncing": False, "shouldHavePeers": True},
}

# Type ids used throughout the tests:
#   0 u8, 1 [u8; 32], 2 AccountId32, 3 u32, 4 u128, 5 AccountData,
#   6 AccountInfo, 7 Compact<u128>, 8 MultiAddress, 9 Vec<u8>, 10 Era,
#   11 Compact<u32>, 12 (), 13 H256
METADATA_DOCUMENT: dict[str, Any] = {
    "types": {
        "0": {"type": "U8"},
        "1": {"type": "List", "store": 0, "length": 32},
        "2": {"type": "Struct", "name": "AccountId32", "fields": [{"field": 1}]},
        "3": {"type": "U32"},
        "4": {"type": "U128"},
        "5": {
            "type": "Struct",
            "name": "AccountData",
            "fields": [
                {"name": "free", "field": 4},
                {"name": "reserved", "field": 4},
                {"name": "frozen", "field": 4},
                {"name": "flags", "field": 4},
            ],
        },
        "6": {
            "type": "Struct",
            "name": "AccountInfo",
            "fields": [
                {"name": "nonce", "field": 3},
                {"name": "consumers", "field": 3},
                {"name": "providers", "field": 3},
                {"name": "sufficients", "field": 3},
                {"name": "data", "field": 5},
            ],
        },
        "7": {"type": "Compact", "store": 4},
        "8": {
            "type": "Enum",
            "name": "MultiAddress",
            "variants": [
                {"index": 0, "name": "Id", "fields": [{"field": 2}]},
                {"index": 2, "name": "Raw", "fields": [{"field": 9}]},
            ],
        },
        "9": {"type": "List", "store": 0},
        "10": {
            "type": "Enum",
            "name": "Era",
            "variants": [
                {"index": 0, "name": "Immortal"},
                {"index": 1, "name": "Mortal1", "fields": [{"field": 0}]},
            ],
        },
        "11": {"type": "Compact", "store": 3},
        "12": {"type": "Tuple", "fields": []},
        "13": {"type": "Struct", "name": "H256", "fields": [{"field": 1}]},
    },
    "pallets": [
        {
            "index": 0,
            "name": "System",
            "storage": [
                {"name": "Number", "type": 3},
                {
                    "name": "Account",
                    "map": {"hashers": ["Blake2_128Concat"], "key": 2, "value": 6},
                },
            ],
            "calls": [
                {"index": 0, "name": "remark", "fields": [{"name": "remark", "field": 9}]},
            ],
        },
        {
            "index": 4,
            "name": "Balances",
            "storage": [
                {"name": "TotalIssuance", "type": 4},
                {
                    "name": "Account",
                    "map": {"hashers": ["Blake2_128Concat"], "key": 2, "value": 5},
                },
            ],
            "calls": [
                {
                    "index": 3,
                    "name": "transfer_keep_alive",
                    "fields": [
                        {"name": "dest", "field": 8},
                        {"name": "value", "field": 7},
                    ],
                },
            ],
        },
    ],
    "signing": {
        "type": 4,
        "extensions": [
            {"name": "CheckNonZeroSender"},
            {"name": "CheckSpecVersion", "type": 12, "additional": 3},
            {"name": "CheckTxVersion", "type": 12, "additional": 3},
            {"name": "CheckGenesis", "type": 12, "additional": 13},
            {"name": "CheckMortality", "type": 10, "additional": 13},
            {"name": "CheckNonce", "type": 11},
            {"name": "CheckWeight"},
            {"name": "ChargeTransactionPayment", "type": 7},
        ],
    },
}


def document_hex(document: dict[str, Any]) -> str:
    return "0x" + json.dumps(document).encode("utf-8").hex()


Handler = Callable[[dict], Optional[list]]


class FakeNode:
    """
    In-memory node behind a fake WebSocket connection.

    ``connect`` is the connection factory handed to the session. Each sent
    request is answered by the handler registered for its method; handlers
    return the list of messages to push back.
    """

    def __init__(self, document: dict[str, Any]) -> None:
        self.document = document
        self.runtime_version = dict(RUNTIME_VERSION)
        self.system_info = copy.deepcopy(SYSTEM_INFO)
        self.genesis_hash = GENESIS_HASH
        self.storage: dict[str, str] = {}
        self.nonce = 7
        self.extrinsics: list[str] = []
        self.statuses: list[Any] = ["ready", {"inBlock": "0xbb"}, {"finalized": "0xbb"}]

        self.sent: list[dict] = []
        self.connect_calls: list[tuple[str, dict]] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

        self.handlers: dict[str, Handler] = {
            "state_subscribeRuntimeVersion": self._subscribe_runtime_version,
            "state_getMetadata": lambda m: [self.reply(m, document_hex(self.document))],
            "chain_getBlockHash": lambda m: [self.reply(m, self.genesis_hash)],
            "state_getStorage": lambda m: [self.reply(m, self.storage.get(m["params"][0]))],
            "system_accountNextIndex": lambda m: [self.reply(m, self.nonce)],
            "author_submitAndWatchExtrinsic": self._submit,
        }
        for key in ("name", "version", "chain", "properties", "health"):
            self.handlers[f"system_{key}"] = self._system_handler(key)

    # -- connection protocol --------------------------------------------

    async def connect(self, url: str, **options: Any) -> "FakeNode":
        self.connect_calls.append((url, options))
        self.closed = False
        self._inbox = asyncio.Queue()
        return self

    async def send(self, text: str) -> None:
        message = json.loads(text)
        self.sent.append(message)
        handler = self.handlers.get(message.get("method"))
        if handler is None:
            return
        for reply in handler(message) or ():
            self.push(reply)

    def __aiter__(self) -> "FakeNode":
        return self

    async def __anext__(self) -> str:
        raw = await self._inbox.get()
        if raw is None:
            raise StopAsyncIteration
        return raw

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    # -- helpers ----------------------------------------------------------

    def push(self, message: Any) -> None:
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def hang_up(self) -> None:
        self._inbox.put_nowait(None)

    @staticmethod
    def reply(message: dict, result: Any) -> dict:
        return {"jsonrpc": "2.0", "id": message["id"], "result": result}

    def methods(self) -> list[str]:
        return [m.get("method") for m in self.sent]

    def _system_handler(self, key: str) -> Handler:
        return lambda m: [self.reply(m, self.system_info[key])]

    def _subscribe_runtime_version(self, message: dict) -> list:
        return [
            self.reply(message, "rv-sub"),
            {
                "jsonrpc": "2.0",
                "method": "state_runtimeVersion",
                "params": {"subscription": "rv-sub", "result": self.runtime_version},
            },
        ]

    def _submit(self, message: dict) -> list:
        self.extrinsics.append(message["params"][0])
        replies: list = [self.reply(message, "xt-sub")]
        for status in self.statuses:
            replies.append({
                "jsonrpc": "2.0",
                "method": "author_extrinsicUpdate",
                "params": {"subscription": "xt-sub", "result": status},
            })
        return replies


class RecordingSigner:
    """Signer returning a fixed signature and remembering every message."""

    public_key = bytes(range(32))

    def __init__(self) -> None:
        self.messages: list[bytes] = []

    def sign(self, message: bytes) -> bytes:
        self.messages.append(bytes(message))
        return b"\x11" * 64

    def address(self, ss58_format: int = 42) -> str:
        return ss58_encode(self.public_key, ss58_format)


@pytest.fixture()
def metadata_document() -> dict[str, Any]:
    return copy.deepcopy(METADATA_DOCUMENT)


@pytest.fixture()
def metadata(metadata_document: dict[str, Any]) -> Metadata:
    return metadata_from_document(metadata_document)


@pytest.fixture()
def document_file(tmp_path: Path, metadata_document: dict[str, Any]) -> Path:
    path = tmp_path / "metadata.json"
    path.write_text(json.dumps(metadata_document), encoding="utf-8")
    return path


@pytest.fixture()
def node(metadata_document: dict[str, Any]) -> FakeNode:
    return FakeNode(metadata_document)


@pytest.fixture()
def signer() -> RecordingSigner:
    return RecordingSigner()


@pytest.fixture()
def dots_home(tmp_path: Path) -> Path:
    """Temporary ~/.dots directory."""
    home = tmp_path / ".dots"
    home.mkdir()
    return home
