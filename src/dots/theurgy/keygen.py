"""
Theurgy Keygen - Create the local sr25519 account.

The secret is written to ~/.dots/.env as DOTS_SECRET. An existing
secret is kept unless --force is given.
"""

from __future__ import annotations

import sys

import click

from ..config import get_ss58_format
from ..sigil.account import DOTS_ENV, Account, load_secret, save_secret


@click.command()
@click.option("--force", is_flag=True, help="Replace an existing secret")
@click.option("--ss58-format", type=int, default=None, help="Address format to display")
def keygen(force: bool, ss58_format: int | None) -> None:
    """Generate an account secret and store it in ~/.dots/.env."""
    if ss58_format is None:
        ss58_format = get_ss58_format()

    if not force:
        try:
            existing = Account.from_secret(load_secret(DOTS_ENV))
        except ValueError:
            existing = None
        if existing is not None:
            click.secho("An account already exists (use --force to replace it).", fg="yellow")
            click.echo(f"  Address: {existing.address(ss58_format)}")
            sys.exit(1)

    account = Account.generate()
    path = save_secret(account.secret_hex, DOTS_ENV)

    click.secho("Account created.", fg="green")
    click.echo(f"  Address:    {account.address(ss58_format)}")
    click.echo(f"  Public key: {account.public_key_hex}")
    click.echo(f"  Saved to:   {path}")
