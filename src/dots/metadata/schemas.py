"""
Metadata document loading.

The raw metadata blob is parsed outside this package. Parsers hand back a
JSON document (``pallets``, ``types``, ``signing``) which is validated
against METADATA_DOCUMENT_SCHEMA and converted into typed models here.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable

import jsonschema
from jsonschema import FormatChecker

from ..scale.types import (
    PRIMITIVES,
    Boolean,
    Compact,
    Enum,
    Field,
    List,
    OptionOf,
    ResultOf,
    Str,
    Struct,
    Tuple,
    TypeDescriptor,
    TypeRegistry,
    Variant,
)
from .models import (
    Call,
    Constant,
    Event,
    MapDefinition,
    Metadata,
    Pallet,
    PalletError,
    SignedExtension,
    SigningInfo,
    StorageItem,
)

MetadataParser = Callable[[bytes], Metadata]

_HEX_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})+$")

TYPE_TAGS = (
    "Boolean", "String", "Compact", "Enum", "Option", "Result", "Tuple", "List", "Struct",
    *PRIMITIVES,
)

_FIELD = {
    "type": "object",
    "required": ["field"],
    "properties": {
        "name": {"type": ["string", "null"]},
        "field": {"type": "integer", "minimum": 0},
    },
}

_NULLABLE_FIELDS = {"type": ["array", "null"], "items": _FIELD}

METADATA_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Substrate metadata document",
    "type": "object",
    "required": ["pallets", "types", "signing"],
    "properties": {
        "types": {
            "type": "object",
            "propertyNames": {"pattern": "^[0-9]+$"},
            "additionalProperties": {
                "type": "object",
                "required": ["type"],
                "properties": {
                    "type": {"enum": list(TYPE_TAGS)},
                    "name": {"type": ["string", "null"]},
                    "store": {"type": ["integer", "null"], "minimum": 0},
                    "length": {"type": ["integer", "null"], "minimum": 0},
                    "fields": _NULLABLE_FIELDS,
                    "variants": {
                        "type": ["array", "null"],
                        "items": {
                            "type": "object",
                            "required": ["index", "name"],
                            "properties": {
                                "index": {"type": "integer", "minimum": 0, "maximum": 255},
                                "name": {"type": "string"},
                                "fields": _NULLABLE_FIELDS,
                            },
                        },
                    },
                },
            },
        },
        "pallets": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["index", "name"],
                "properties": {
                    "index": {"type": "integer", "minimum": 0, "maximum": 255},
                    "name": {"type": "string"},
                    "storage": {
                        "type": ["array", "null"],
                        "items": {
                            "type": "object",
                            "required": ["name"],
                            "properties": {
                                "name": {"type": "string"},
                                "type": {"type": ["integer", "null"]},
                                "map": {
                                    "type": ["object", "null"],
                                    "required": ["hashers", "key", "value"],
                                    "properties": {
                                        "hashers": {"type": "array", "items": {"type": "string"}},
                                        "key": {"type": "integer"},
                                        "value": {"type": "integer"},
                                    },
                                },
                            },
                        },
                    },
                    "calls": {"type": ["array", "null"]},
                    "events": {"type": ["array", "null"]},
                    "errors": {"type": ["array", "null"]},
                    "constants": {"type": ["array", "null"]},
                },
            },
        },
        "signing": {
            "type": "object",
            "required": ["extensions"],
            "properties": {
                "type": {"type": "integer"},
                "extensions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["name"],
                        "properties": {
                            "name": {"type": "string"},
                            "type": {"type": ["integer", "null"]},
                            "additional": {"type": ["integer", "null"]},
                        },
                    },
                },
            },
        },
    },
}


class MetadataError(ValueError):
    pass


class MalformedMetadata(MetadataError):
    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def metadata_bytes_from_hex(hex_value: Any) -> bytes:
    """Check the ``0x`` hex format of a metadata payload and return its bytes."""
    if not isinstance(hex_value, str) or not _HEX_RE.match(hex_value):
        raise MalformedMetadata("Metadata hex is not valid")
    return bytes.fromhex(hex_value[2:])


def validate_document(document: dict[str, Any]) -> None:
    validator_cls = jsonschema.validators.validator_for(METADATA_DOCUMENT_SCHEMA)
    validator_cls.check_schema(METADATA_DOCUMENT_SCHEMA)
    validator = validator_cls(METADATA_DOCUMENT_SCHEMA, format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.path])
    if errors:
        raise MalformedMetadata(
            "Metadata document failed schema validation.",
            errors=[_format_error(err) for err in errors],
        )


def _format_error(error: jsonschema.ValidationError) -> str:
    location = "/".join(str(part) for part in error.path) or "<root>"
    return f"{location}: {error.message}"


def metadata_from_document(document: dict[str, Any]) -> Metadata:
    """
    Convert a parsed metadata document into typed models.

    Args:
        document: Dict with ``pallets``, ``types`` and ``signing`` keys

    Returns:
        Metadata with an immutable Type Registry

    Raises:
        MalformedMetadata: If the document does not match the schema
    """
    validate_document(document)

    types = TypeRegistry(
        {int(type_id): _descriptor(raw) for type_id, raw in document["types"].items()}
    )
    pallets = tuple(_pallet(raw) for raw in document["pallets"])
    signing = document["signing"]
    extensions = tuple(
        SignedExtension(
            name=ext["name"],
            type_id=ext.get("type"),
            additional_id=ext.get("additional"),
        )
        for ext in signing["extensions"]
    )
    return Metadata(
        types=types,
        pallets=pallets,
        signing=SigningInfo(version=signing.get("type", 4), extensions=extensions),
    )


def load_metadata_document(path: Path) -> Metadata:
    with path.open("r", encoding="utf-8") as f:
        try:
            document = json.load(f)
        except json.JSONDecodeError as exc:
            raise MalformedMetadata(f"Metadata document is not JSON: {exc}") from exc
    return metadata_from_document(document)


def parse_json_metadata(raw: bytes) -> Metadata:
    """Parser for blobs that already carry a JSON metadata document."""
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedMetadata("Metadata blob is not a JSON document") from exc
    return metadata_from_document(document)


# ============ Conversion Helpers ============


def _fields(raw: list[dict[str, Any]] | None) -> tuple[Field, ...]:
    return tuple(Field(type_id=f["field"], name=f.get("name")) for f in raw or ())


def _descriptor(raw: dict[str, Any]) -> TypeDescriptor:
    tag = raw["type"]
    if tag in PRIMITIVES:
        return PRIMITIVES[tag]
    if tag == "Boolean":
        return Boolean()
    if tag == "String":
        return Str()
    if tag == "Compact":
        return Compact(inner=raw.get("store"))
    if tag == "Option":
        return OptionOf(inner=_required(raw, "store"))
    if tag == "Result":
        fields = _fields(raw.get("fields"))
        if len(fields) != 2:
            raise MalformedMetadata(f"Result type needs two fields, got {len(fields)}")
        return ResultOf(ok=fields[0].type_id, err=fields[1].type_id)
    if tag == "Tuple":
        return Tuple(fields=tuple(f.type_id for f in _fields(raw.get("fields"))))
    if tag == "List":
        return List(element=_required(raw, "store"), length=raw.get("length"))
    if tag == "Struct":
        return Struct(fields=_fields(raw.get("fields")), name=raw.get("name"))
    if tag == "Enum":
        variants = tuple(
            Variant(index=v["index"], name=v["name"], fields=_fields(v.get("fields")))
            for v in raw.get("variants") or ()
        )
        return Enum(variants=variants, name=raw.get("name"))
    raise MalformedMetadata(f"Unknown type tag: {tag}")


def _required(raw: dict[str, Any], key: str) -> int:
    value = raw.get(key)
    if value is None:
        raise MalformedMetadata(f"{raw['type']} type is missing '{key}'")
    return value


def _pallet(raw: dict[str, Any]) -> Pallet:
    storage = raw.get("storage")
    calls = raw.get("calls")
    events = raw.get("events")
    errors = raw.get("errors")
    return Pallet(
        index=raw["index"],
        name=raw["name"],
        storage=None if storage is None else tuple(_storage_item(s) for s in storage),
        calls=None if calls is None else tuple(
            Call(
                index=c["index"],
                name=c["name"],
                fields=_fields(c.get("fields")),
                docs=tuple(c.get("docs") or ()),
            )
            for c in calls
        ),
        events=None if events is None else tuple(
            Event(
                index=e["index"],
                name=e["name"],
                fields=_fields(e.get("fields")),
                docs=tuple(e.get("docs") or ()),
            )
            for e in events
        ),
        errors=None if errors is None else tuple(
            PalletError(index=e["index"], name=e["name"], docs=tuple(e.get("docs") or ()))
            for e in errors
        ),
        constants=tuple(
            Constant(
                name=c["name"],
                type_id=c["type"],
                value=bytes(c.get("value") or ()),
                docs=tuple(c.get("docs") or ()),
            )
            for c in raw.get("constants") or ()
        ),
    )


def _storage_item(raw: dict[str, Any]) -> StorageItem:
    map_raw = raw.get("map")
    return StorageItem(
        name=raw["name"],
        type_id=raw.get("type"),
        map=None if map_raw is None else MapDefinition(
            hashers=tuple(map_raw["hashers"]),
            key=map_raw["key"],
            value=map_raw["value"],
        ),
        docs=tuple(raw.get("docs") or ()),
    )
