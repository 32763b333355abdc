"""
Theurgy Submit - Sign, submit and watch an extrinsic.

Status updates are streamed until the extrinsic is finalized or reaches
another terminal status, unless --no-wait is given.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Optional

import click

from ..pneuma.context import Context
from ..sigil.account import DEV_SECRET, Account, get_account
from ..utils import parse_json_arg, status_name
from .session import open_context, parser_option, run, timeout_option, url_option

TERMINAL_STATUSES = ("finalized", "usurped", "dropped", "invalid", "finalityTimeout")


def _echo_status(status: Any) -> None:
    name = status_name(status)
    if isinstance(status, dict):
        click.echo(f"  {name}: {status[name]}")
    else:
        click.echo(f"  {name}")


async def _submit(
    context: Context,
    pallet: Any,
    call: str,
    args: list,
    wait: bool,
) -> bool:
    done = asyncio.Event()
    outcome: dict[str, str] = {}

    def on_status(status: Any) -> None:
        _echo_status(status)
        name = status_name(status)
        if name in TERMINAL_STATUSES:
            outcome["status"] = name
            done.set()

    result = await context.submit_extrinsic(pallet, call, args, on_status)
    if "error" in result:
        click.secho(f"ERROR: {result['error'].get('message')}", fg="red")
        return False

    click.secho("Submitted.", fg="green")
    if not wait:
        result["unsubscribe"]()
        return True

    await done.wait()
    result["unsubscribe"]()
    return outcome.get("status") == "finalized"


async def _run(
    url: str,
    parser_path: Optional[str],
    account: Account,
    pallet: Any,
    call: str,
    args: list,
    wait: bool,
) -> bool:
    context = await open_context(url, parser_path, account)
    try:
        return await _submit(context, pallet, call, args, wait)
    finally:
        await context.close()


@click.command()
@click.argument("pallet")
@click.argument("call")
@click.option("--args", "args_json", default="[]", help="Call arguments as a JSON array")
@click.option("--no-wait", is_flag=True, help="Return once the node accepts the extrinsic")
@click.option("--dev", is_flag=True, help="Sign with the development account (Alice)")
@url_option
@parser_option
@timeout_option
def submit(
    pallet: str,
    call: str,
    args_json: str,
    no_wait: bool,
    dev: bool,
    url: str,
    parser_path: Optional[str],
    timeout: float,
) -> None:
    """
    Sign and submit an extrinsic.

    PALLET is a pallet name or index, CALL a call name.
    """
    try:
        args = parse_json_arg(args_json, "--args")
        if not isinstance(args, list):
            raise ValueError("--args must be a JSON array")
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    try:
        account = Account.from_secret(DEV_SECRET) if dev else get_account()
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    click.echo(f"  Sender: {account.address()}")
    click.echo(f"  Call:   {pallet}.{call}")
    click.echo(f"  Args:   {args}")
    click.echo("")

    target: Any = int(pallet) if pallet.isdigit() else pallet
    if not run(_run(url, parser_path, account, target, call, args, not no_wait), timeout):
        sys.exit(1)
