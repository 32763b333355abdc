from __future__ import annotations

import json
from typing import Any, Mapping

from .scale.types import EnumValue


def to_jsonable(value: Any) -> Any:
    """Render a decoded value with JSON types only."""
    if isinstance(value, EnumValue):
        if value.fields is None:
            return value.variant
        return {value.variant: to_jsonable(value.fields)}
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def parse_json_arg(raw: str | None, name: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{name} is not valid JSON: {exc.msg}") from exc


def status_name(status: Any) -> str:
    """Name of an extrinsic status push: "ready", "inBlock", "finalized", ..."""
    if isinstance(status, Mapping) and status:
        return str(next(iter(status)))
    return str(status)
