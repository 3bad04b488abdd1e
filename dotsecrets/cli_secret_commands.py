"""Secret store commands for dotsecrets CLI."""
from __future__ import annotations

import shlex
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from dotsecrets.cli_support import (
    Engine,
    build_engine,
    ensure_signed_in,
    handle_cli_error,
    print_success,
    print_warning,
)
from dotsecrets.core.config import DEFAULT_CATEGORY, DEFAULT_FIELD
from dotsecrets.core.errors import DotsecretsError

secret_app = typer.Typer(help="Read and write secrets in the secret store", add_completion=False)
_SECRET_APP_ATTACHED = False
console = Console()


def register_secret_commands(app: typer.Typer, shared_console: Console) -> None:
    """Attach secret subcommands to the main Typer app."""
    global console, _SECRET_APP_ATTACHED
    console = shared_console

    if not _SECRET_APP_ATTACHED:
        app.add_typer(secret_app, name="secret")
        _SECRET_APP_ATTACHED = True


def _signed_in_engine(account: Optional[str], vault: Optional[str]) -> Engine:
    try:
        engine = build_engine(account=account, vault=vault)
    except DotsecretsError as e:
        handle_cli_error(e, console)
    ensure_signed_in(engine, console)
    return engine


@secret_app.command("get")
def secret_get(
    name: str = typer.Argument(..., help="Secret name"),
    field: str = typer.Option(DEFAULT_FIELD, "--field", help="Field to read"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault name"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
    default: Optional[str] = typer.Option(None, "--default", help="Print this instead of failing"),
) -> None:
    """Print one secret value to stdout."""
    engine = _signed_in_engine(account, vault)
    if default is not None:
        typer.echo(engine.resolver.get_or_default(name, default, field=field))
        return
    try:
        typer.echo(engine.resolver.resolve(name, field=field))
    except DotsecretsError as e:
        handle_cli_error(e, console)


@secret_app.command("exists")
def secret_exists(
    name: str = typer.Argument(..., help="Secret name"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault name"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
) -> None:
    """Exit 0 if the secret exists, 1 otherwise."""
    engine = _signed_in_engine(account, vault)
    if engine.resolver.exists(name):
        print_success(console, f"{name} exists")
    else:
        print_warning(console, f"{name} not found")
        raise typer.Exit(1)


@secret_app.command("set")
def secret_set(
    name: str = typer.Argument(..., help="Secret name"),
    value: Optional[str] = typer.Option(None, "--value", help="Secret value (prompted when omitted)"),
    field: str = typer.Option(DEFAULT_FIELD, "--field", help="Field to write"),
    category: str = typer.Option(DEFAULT_CATEGORY, "--category", help="Item category for new secrets"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault name"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
) -> None:
    """Create a secret, or update a field of an existing one."""
    engine = _signed_in_engine(account, vault)
    if value is None:
        value = typer.prompt("Secret value", hide_input=True)

    try:
        created = engine.provider.create_or_update_secret(
            name, value, vault=engine.vault, category=category, field=field
        )
    except DotsecretsError as e:
        handle_cli_error(e, console)

    print_success(console, f"{'Created' if created else 'Updated'} secret: {name}")


@secret_app.command("list")
def secret_list(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault name"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
) -> None:
    """List secret names in a vault."""
    engine = _signed_in_engine(account, vault)
    try:
        names = engine.provider.list_secrets(engine.vault)
    except DotsecretsError as e:
        handle_cli_error(e, console)

    if not names:
        print_warning(console, f"No secrets in vault '{engine.vault}'")
        return

    table = Table(title=f"Secrets in '{engine.vault}' ({engine.account})")
    table.add_column("Name", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)


@secret_app.command("env")
def secret_env(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault name"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
) -> None:
    """Print `export VAR=value` lines for the configured env secrets.

    Usage: eval "$(dotsecrets secret env)"
    """
    engine = _signed_in_engine(account, vault)
    try:
        env, missing = engine.resolver.load_environment(engine.settings.env_secrets, engine.vault)
    except DotsecretsError as e:
        handle_cli_error(e, console)

    for variable, value in env.items():
        typer.echo(f"export {variable}={shlex.quote(value)}")
    typer.echo(f"Loaded {len(env)} secrets, {len(missing)} not found", err=True)
