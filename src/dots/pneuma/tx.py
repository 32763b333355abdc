"""
Extrinsic Builder - Assemble and sign signed (v4) extrinsics.

Signed extensions are applied in the order the runtime declares them;
that order fixes both the signing payload and the wire layout. Every
transaction is immortal and carries a zero tip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from ..metadata.models import Call, SignedExtension
from ..scale.codec import encode, encode_compact
from ..scale.types import EncodingMismatch, ScaleError, TypeRegistry
from ..sigil.account import Signer
from ..sigil.hashing import DEFAULT_HASHING, HashingBackend

logger = logging.getLogger(__name__)

RECOGNIZED_EXTENSIONS = (
    "CheckSpecVersion",
    "CheckTxVersion",
    "CheckGenesis",
    "CheckMortality",
    "CheckNonce",
    "ChargeTransactionPayment",
)

SIGNED_V4 = 0x84  # version 4 | signed bit
ADDRESS_ACCOUNT_ID = 0x00  # MultiAddress::Id
SIGNATURE_SR25519 = 0x01  # MultiSignature::Sr25519
SIGN_HASH_THRESHOLD = 256
IMMORTAL_ERA = {"index": 0}


class ExtrinsicError(ValueError):
    pass


class UnsupportedSigningExtension(ExtrinsicError):
    pass


@dataclass(frozen=True)
class ChainState:
    """Chain values the signed extensions commit to."""

    spec_version: int
    transaction_version: int
    genesis_hash: str
    nonce: Optional[int] = None


@dataclass(frozen=True)
class ExtensionContribution:
    extra: bytes = b""
    additional: bytes = b""


@dataclass(frozen=True)
class Extrinsic:
    """
    A signed extrinsic.

    ``additional`` is only part of the signing payload; ``extra`` is part of
    both the signing payload and the wire bytes.
    """

    call: bytes
    extra: bytes
    additional: bytes
    signature: bytes
    public_key: bytes

    @property
    def signing_payload(self) -> bytes:
        return self.call + self.extra + self.additional

    def body(self) -> bytes:
        return (
            bytes([SIGNED_V4, ADDRESS_ACCOUNT_ID])
            + self.public_key
            + bytes([SIGNATURE_SR25519])
            + self.signature
            + self.extra
            + self.call
        )

    def to_bytes(self) -> bytes:
        body = self.body()
        return encode_compact(len(body)) + body

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()


def _contributes(extension: SignedExtension) -> bool:
    return extension.type_id is not None or extension.additional_id is not None


def unsupported_extensions(extensions: Iterable[SignedExtension]) -> list[str]:
    return [
        ext.name
        for ext in extensions
        if _contributes(ext) and ext.name not in RECOGNIZED_EXTENSIONS
    ]


def signing_capable(extensions: Iterable[SignedExtension]) -> bool:
    """Whether every contributing extension is one this builder can fill in."""
    unsupported = unsupported_extensions(extensions)
    for name in unsupported:
        logger.warning("Unsupported signed extension: %s", name)
    return not unsupported


def needs_nonce(extensions: Iterable[SignedExtension]) -> bool:
    return any(ext.name == "CheckNonce" and ext.type_id is not None for ext in extensions)


def _encode_optional(value: Any, type_id: Optional[int], registry: TypeRegistry) -> bytes:
    if type_id is None:
        return b""
    return encode(value, type_id, registry)


def encode_extensions(
    extensions: Sequence[SignedExtension],
    state: ChainState,
    registry: TypeRegistry,
) -> ExtensionContribution:
    """
    Encode the extra and additional bytes of every signed extension, in order.

    Raises:
        UnsupportedSigningExtension: An extension outside the recognized set
        ExtrinsicError: CheckNonce declared but no nonce supplied
        ScaleError: A value does not encode as the declared type
    """
    extra = bytearray()
    additional = bytearray()
    for ext in extensions:
        if not _contributes(ext):
            continue
        if ext.name == "CheckSpecVersion":
            additional += _encode_optional(state.spec_version, ext.additional_id, registry)
        elif ext.name == "CheckTxVersion":
            additional += _encode_optional(state.transaction_version, ext.additional_id, registry)
        elif ext.name == "CheckGenesis":
            additional += _encode_optional(state.genesis_hash, ext.additional_id, registry)
        elif ext.name == "CheckMortality":
            extra += _encode_optional(IMMORTAL_ERA, ext.type_id, registry)
            additional += _encode_optional(state.genesis_hash, ext.additional_id, registry)
        elif ext.name == "CheckNonce":
            if state.nonce is None:
                raise ExtrinsicError("CheckNonce requires the account nonce")
            extra += _encode_optional(state.nonce, ext.type_id, registry)
        elif ext.name == "ChargeTransactionPayment":
            extra += _encode_optional(0, ext.type_id, registry)
        else:
            raise UnsupportedSigningExtension(f"Unsupported signed extension: {ext.name}")
    return ExtensionContribution(extra=bytes(extra), additional=bytes(additional))


def encode_call(
    pallet_index: int,
    call: Call,
    params: Sequence[Any],
    registry: TypeRegistry,
) -> bytes:
    """
    Encode a call as pallet index, call index and arguments.

    Raises:
        EncodingMismatch: Wrong number of params, or a param that does not fit its field
    """
    if len(params) != len(call.fields):
        raise EncodingMismatch(
            f"Expected {len(call.fields)} params for {call.name}, got {len(params)}"
        )

    out = bytearray([pallet_index, call.index])
    for param, field in zip(params, call.fields):
        try:
            out += encode(param, field.type_id, registry)
        except ScaleError as exc:
            label = field.name or f"type {field.type_id}"
            logger.warning("Could not encode %s from %r", label, param)
            raise type(exc)(f"Could not encode {label} from {param!r}: {exc}") from exc
    return bytes(out)


def sign_payload(
    payload: bytes,
    signer: Signer,
    hashing: HashingBackend = DEFAULT_HASHING,
) -> bytes:
    """Sign the payload itself, or its blake2-256 hash when longer than 256 bytes."""
    if len(payload) > SIGN_HASH_THRESHOLD:
        return signer.sign(hashing.blake2_256(payload))
    return signer.sign(payload)


def build_extrinsic(
    pallet_index: int,
    call: Call,
    params: Sequence[Any],
    extensions: Sequence[SignedExtension],
    state: ChainState,
    registry: TypeRegistry,
    signer: Signer,
    hashing: HashingBackend = DEFAULT_HASHING,
) -> Extrinsic:
    """
    Build and sign an extrinsic.

    Args:
        pallet_index: Index of the pallet owning the call
        call: Call descriptor from metadata
        params: Call arguments, one per call field
        extensions: Signed extensions in declaration order
        state: Spec/tx version, genesis hash and nonce
        registry: Type Registry
        signer: Account signing the payload
        hashing: Hashing backend for long payloads

    Returns:
        The signed Extrinsic
    """
    call_bytes = encode_call(pallet_index, call, params, registry)
    contribution = encode_extensions(extensions, state, registry)
    payload = call_bytes + contribution.extra + contribution.additional
    signature = bytes(sign_payload(payload, signer, hashing))

    public_key = bytes(signer.public_key)
    if len(public_key) != 32:
        raise ExtrinsicError(f"Public key must be 32 bytes, got {len(public_key)}")
    if len(signature) != 64:
        raise ExtrinsicError(f"Signature must be 64 bytes, got {len(signature)}")

    return Extrinsic(
        call=call_bytes,
        extra=contribution.extra,
        additional=contribution.additional,
        signature=signature,
        public_key=public_key,
    )
