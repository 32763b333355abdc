"""
Theurgy Query - Read storage from a node.

Plain items take no key; map items take their key as JSON. SS58
addresses are accepted wherever the key is an account id.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Optional

import click

from ..utils import parse_json_arg, to_jsonable
from .session import open_context, parser_option, run, timeout_option, url_option


async def _query(url: str, parser_path: Optional[str], pallet: str, item: str, key: Any) -> Any:
    context = await open_context(url, parser_path)
    try:
        if key is None:
            return await context.query_storage(pallet, item)
        return await context.query_storage_map(pallet, item, key)
    finally:
        await context.close()


@click.command()
@click.argument("pallet")
@click.argument("item")
@click.option("--key", "key_json", default=None, help="Map key as JSON (e.g. '\"5Grw...\"')")
@url_option
@parser_option
@timeout_option
def query(
    pallet: str,
    item: str,
    key_json: Optional[str],
    url: str,
    parser_path: Optional[str],
    timeout: float,
) -> None:
    """
    Query a storage item.

    Examples: dots query System Number
              dots query System Account --key '"5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"'
    """
    try:
        key = parse_json_arg(key_json, "--key")
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    value = run(_query(url, parser_path, pallet, item, key), timeout)
    if value is None:
        click.secho(f"No value for {pallet}.{item} (run with -v for details)", fg="yellow")
        sys.exit(1)

    click.echo(json.dumps(to_jsonable(value), indent=2))
