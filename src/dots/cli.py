"""
dots CLI

Command-line interface for talking to a Substrate node.

Commands:
  keygen       - Create the local sr25519 account
  whoami       - Show the account address and public key
  info         - Show node system info and runtime version
  query        - Read plain or map storage
  submit       - Sign, submit and watch an extrinsic
  decode       - Decode a SCALE payload offline
  storage-key  - Derive a storage key offline
  cache        - Manage the metadata cache
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import click

from .anamnesis.cache import FileStore, MetadataCache
from .config import get_cache_dir, get_ss58_format, load_env
from .sigil.account import get_account

# ============ Constants ============

VERSION = "0.1.0"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ============ Banner ============


def _print_banner() -> None:
    click.echo(
        click.style("  ● ", fg="magenta")
        + click.style("D O T S", fg="bright_white", bold=True)
        + click.style(f"  v{VERSION}", dim=True)
    )
    click.echo()


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="dots")
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """dots - Substrate node client."""
    _configure_logging(verbose)
    load_env()
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.keygen import keygen
from .theurgy.offline import decode, storage_key
from .theurgy.query import query
from .theurgy.session import open_context, parser_option, run, timeout_option, url_option
from .theurgy.submit import submit

cli.add_command(keygen)
cli.add_command(query)
cli.add_command(submit)
cli.add_command(decode)
cli.add_command(storage_key)


# ============ Identity ============


@cli.command()
@click.option("--ss58-format", type=int, default=None, help="Address format (default: DOTS_SS58_FORMAT or 42)")
def whoami(ss58_format: Optional[int]) -> None:
    """Show the current account."""
    try:
        account = get_account()
    except ValueError:
        click.echo("No account found.")
        click.echo("Run 'dots keygen' to create one.")
        sys.exit(1)

    if ss58_format is None:
        ss58_format = get_ss58_format()
    click.echo(f"Address:    {account.address(ss58_format)}")
    click.echo(f"Public key: {account.public_key_hex}")


# ============ Info ============


async def _info(url: str, parser_path: Optional[str]) -> dict[str, Any]:
    context = await open_context(url, parser_path)
    try:
        version = await context.runtime_version()
        metadata = await context.metadata()
        return {
            "system": dict(context.system or {}),
            "version": dict(version),
            "pallets": len(metadata.pallets),
            "signing_capable": context.session.signing_capable,
        }
    finally:
        await context.close()


def _row(label: str, value: Any) -> None:
    click.echo(
        click.style(f"  {label:<13}", dim=True)
        + click.style(str(value), fg="bright_white")
    )


@cli.command()
@url_option
@parser_option
@timeout_option
def info(url: str, parser_path: Optional[str], timeout: float) -> None:
    """Show node system info and runtime version."""
    _print_banner()
    result = run(_info(url, parser_path), timeout)

    system = result["system"]
    version = result["version"]
    health = system.get("health") or {}

    click.secho("  Node ───────────────────────────────────", fg="magenta")
    click.echo()
    _row("Endpoint:", url)
    _row("Chain:", system.get("chain"))
    _row("Node:", f"{system.get('name')} {system.get('version')}")
    _row("Peers:", health.get("peers", "?"))
    _row("Syncing:", health.get("isSyncing", "?"))
    click.echo()

    click.secho("  Runtime ────────────────────────────────", fg="magenta")
    click.echo()
    _row("Runtime:", f"{version.get('implName')}-{version.get('specVersion')}")
    _row("Tx version:", version.get("transactionVersion"))
    _row("Pallets:", result["pallets"])
    if result["signing_capable"]:
        _row("Signing:", click.style("supported", fg="green"))
    else:
        _row("Signing:", click.style("unsupported signed extensions", fg="yellow"))
    click.echo()


# ============ Cache Management ============


@cli.group()
def cache() -> None:
    """Manage the metadata cache."""
    pass


def _metadata_cache() -> MetadataCache:
    return MetadataCache(FileStore(get_cache_dir()))


@cache.command("clear")
@click.option("--impl-name", default=None, help="Only evict entries of this runtime")
def cache_clear(impl_name: Optional[str]) -> None:
    """Delete cached metadata."""
    metadata_cache = _metadata_cache()
    if impl_name:
        evicted = metadata_cache.evict(impl_name)
        click.echo(f"Evicted {len(evicted)} entries for: {impl_name}")
    else:
        metadata_cache.clear()
        click.echo("Cache cleared.")


@cache.command("info")
def cache_info() -> None:
    """Show cached metadata entries."""
    entries = _metadata_cache().entries()
    if not entries:
        click.echo("No cached metadata.")
        return

    click.echo(f"Cached metadata: {len(entries)}")
    for entry in entries:
        click.echo(f"  {entry['key']}: {entry['size_bytes']} bytes")


# ============ Entry Points ============


def main() -> None:
    """dots CLI entry point."""
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
