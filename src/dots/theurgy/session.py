"""
Shared plumbing for commands that talk to a node.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable, Optional

import click
from websockets.exceptions import WebSocketException

from ..anamnesis.cache import FileStore
from ..config import DEFAULT_WS_URL, ConfigError, get_cache_dir, get_metadata_parser
from ..pneuma.context import Context
from ..pneuma.rpc import RpcError
from ..sigil.account import Signer

DEFAULT_TIMEOUT = 120.0

url_option = click.option(
    "--url",
    envvar="DOTS_WS_URL",
    default=DEFAULT_WS_URL,
    show_default=True,
    help="Node WebSocket URL",
)
parser_option = click.option(
    "--metadata-parser",
    "parser_path",
    envvar="DOTS_METADATA_PARSER",
    default=None,
    help="Metadata parser as module:function",
)
timeout_option = click.option(
    "--timeout",
    default=DEFAULT_TIMEOUT,
    type=float,
    show_default=True,
    help="Seconds to wait for the node",
)


async def open_context(
    url: str,
    parser_path: Optional[str],
    account: Optional[Signer] = None,
) -> Context:
    return await Context.new(
        url,
        account=account,
        store=FileStore(get_cache_dir()),
        parser=get_metadata_parser(parser_path),
    )


def run(coro: Awaitable[Any], timeout: float) -> Any:
    """Run a command coroutine, exiting with a message on connection failures."""
    try:
        return asyncio.run(asyncio.wait_for(coro, timeout))
    except asyncio.TimeoutError:
        click.secho(f"ERROR: Node did not answer within {timeout:.0f}s", fg="red")
        sys.exit(1)
    except ConfigError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)
    except (OSError, WebSocketException, RpcError) as exc:
        click.secho(f"ERROR: Cannot reach node: {exc}", fg="red")
        sys.exit(1)
