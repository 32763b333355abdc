__all__ = [
    # Codec
    "EnumValue",
    "ScaleError",
    "TypeRegistry",
    "UnsupportedType",
    "EncodingMismatch",
    "TruncatedData",
    "decode",
    "encode",
    "decode_compact",
    "encode_compact",
    # Metadata
    "Metadata",
    "MetadataError",
    "MalformedMetadata",
    "load_metadata_document",
    "parse_json_metadata",
    # Accounts
    "Account",
    "AccountError",
    "InvalidSecret",
    "get_account",
    "ss58_decode",
    "ss58_encode",
    # Storage and extrinsics
    "StorageKeyError",
    "UnsupportedHasher",
    "storage_key",
    "storage_key_hex",
    "ExtrinsicError",
    "UnsupportedSigningExtension",
    "build_extrinsic",
    # Session
    "Context",
    "RpcError",
    "RpcSession",
    "SessionState",
    # Cache
    "FileStore",
    "MemoryStore",
    "MetadataCache",
]

from .scale.codec import decode, decode_compact, encode, encode_compact
from .scale.types import (
    EncodingMismatch,
    EnumValue,
    ScaleError,
    TruncatedData,
    TypeRegistry,
    UnsupportedType,
)
from .metadata.models import Metadata
from .metadata.schemas import (
    MalformedMetadata,
    MetadataError,
    load_metadata_document,
    parse_json_metadata,
)
from .sigil.account import (
    Account,
    AccountError,
    InvalidSecret,
    get_account,
    ss58_decode,
    ss58_encode,
)
from .pneuma.storage import StorageKeyError, UnsupportedHasher, storage_key, storage_key_hex
from .pneuma.tx import ExtrinsicError, UnsupportedSigningExtension, build_extrinsic
from .pneuma.rpc import RpcError, RpcSession, SessionState
from .pneuma.context import Context
from .anamnesis.cache import FileStore, MemoryStore, MetadataCache
