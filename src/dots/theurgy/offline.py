"""
Theurgy Offline - Offline decoding and storage key derivation.

Both commands work from a JSON metadata document on disk and never
contact a node.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import click

from ..metadata.models import StorageItem
from ..metadata.schemas import MalformedMetadata, load_metadata_document
from ..pneuma.context import account_key
from ..pneuma.storage import storage_key_hex
from ..scale.codec import decode_hex
from ..utils import parse_json_arg, to_jsonable

_document_type = click.Path(exists=True, dir_okay=False, path_type=Path)


def _load(document: Path):
    try:
        return load_metadata_document(document)
    except MalformedMetadata as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        for error in exc.errors:
            click.echo(f"  - {error}")
        sys.exit(1)


@click.command()
@click.option("--document", required=True, type=_document_type, help="Metadata document (JSON)")
@click.option("--type-id", required=True, type=int, help="Type id to decode as")
@click.argument("hex_value", metavar="HEX")
def decode(document: Path, type_id: int, hex_value: str) -> None:
    """Decode a 0x-prefixed SCALE payload."""
    metadata = _load(document)
    try:
        value = decode_hex(hex_value, type_id, metadata.types)
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)
    click.echo(json.dumps(to_jsonable(value), indent=2))


@click.command("storage-key")
@click.argument("pallet")
@click.argument("item")
@click.option("--key", "key_json", default=None, help="Map key as JSON")
@click.option("--document", type=_document_type, default=None, help="Metadata document (JSON)")
def storage_key(
    pallet: str,
    item: str,
    key_json: Optional[str],
    document: Optional[Path],
) -> None:
    """Derive the storage key of a plain item or a map entry."""
    try:
        key = parse_json_arg(key_json, "--key")
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    if document is None:
        if key is not None:
            click.secho("ERROR: --document is required to encode map keys", fg="red")
            sys.exit(1)
        click.echo(storage_key_hex(pallet, StorageItem(name=item)))
        return

    metadata = _load(document)
    found = metadata.pallet(pallet)
    storage_item = found.storage_item(item) if found is not None else None
    if storage_item is None:
        click.secho(f"ERROR: Unknown storage item {pallet}.{item}", fg="red")
        sys.exit(1)

    if storage_item.map is not None:
        key = account_key(key, storage_item.map.key, metadata.types)

    try:
        click.echo(storage_key_hex(pallet, storage_item, key, metadata.types))
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)
