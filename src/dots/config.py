"""
Configuration from environment variables, with ``~/.dots/.env`` as a fallback source.

Variables:
  DOTS_WS_URL            Node WebSocket endpoint
  DOTS_SECRET            sr25519 mini secret (0x + 64 hex)
  DOTS_CACHE_DIR         Metadata cache directory
  DOTS_METADATA_PARSER   Metadata parser as "module:function"
  DOTS_SS58_FORMAT       Address format when the chain reports none
"""

from __future__ import annotations

import importlib
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .metadata.schemas import MetadataParser, parse_json_metadata
from .sigil.account import DEFAULT_SS58_FORMAT, DOTS_DIR, DOTS_ENV

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "wss://westend-rpc.polkadot.io"
DEFAULT_CACHE_DIR = DOTS_DIR / "cache"


class ConfigError(ValueError):
    pass


def load_env(env_path: Optional[Path] = None) -> bool:
    """Load ``~/.dots/.env`` without overriding variables already set."""
    path = env_path or DOTS_ENV
    if not path.exists():
        return False
    return load_dotenv(path, override=False)


def get_ws_url() -> str:
    return os.environ.get("DOTS_WS_URL", DEFAULT_WS_URL)


def get_cache_dir() -> Path:
    raw = os.environ.get("DOTS_CACHE_DIR")
    return Path(raw).expanduser() if raw else DEFAULT_CACHE_DIR


def get_ss58_format() -> int:
    raw = os.environ.get("DOTS_SS58_FORMAT")
    if not raw:
        return DEFAULT_SS58_FORMAT
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid DOTS_SS58_FORMAT=%r", raw)
        return DEFAULT_SS58_FORMAT
    if not 0 <= value < 16384:
        logger.warning("Ignoring out of range DOTS_SS58_FORMAT=%r", raw)
        return DEFAULT_SS58_FORMAT
    return value


def get_metadata_parser(path: Optional[str] = None) -> MetadataParser:
    """
    Resolve the metadata parser.

    Args:
        path: "module:function" import path; falls back to DOTS_METADATA_PARSER,
            then to the JSON metadata document parser.

    Raises:
        ConfigError: If the path is malformed or does not name a callable
    """
    path = path or os.environ.get("DOTS_METADATA_PARSER")
    if not path:
        return parse_json_metadata

    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Metadata parser must look like 'module:function', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import metadata parser module {module_name!r}: {exc}") from exc

    parser = getattr(module, attr, None)
    if not callable(parser):
        raise ConfigError(f"{path!r} is not callable")
    return parser
