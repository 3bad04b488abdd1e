"""Shared utilities for dotsecrets CLI modules."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from dotsecrets.core.account import detect_account_alias
from dotsecrets.core.cache import CacheManager
from dotsecrets.core.config import (
    DotsecretsConfig,
    SecretsSettings,
    get_config,
    load_settings,
)
from dotsecrets.core.errors import DotsecretsError
from dotsecrets.core.resolver import SecretResolver
from dotsecrets.services.providers import InMemoryProvider, OnePasswordProvider, SecretProvider


@dataclass
class Engine:
    """Everything a command needs to resolve secrets."""
    settings: SecretsSettings
    config: DotsecretsConfig
    provider: SecretProvider
    cache: CacheManager
    resolver: SecretResolver
    account: str
    vault: str


def is_mock() -> bool:
    """Return True when the CLI runs against an in-memory secret store."""
    return os.environ.get("DOTSECRETS_MOCK") == "1"


def load_mock_secrets(path: Optional[str]) -> dict:
    """Load {vault: {name: {field: value}}} from a YAML file for mock mode."""
    if not path or not Path(path).exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def create_provider(
    settings: SecretsSettings,
    account: str,
    config: DotsecretsConfig,
) -> SecretProvider:
    """Build the provider for this run (1Password, or in-memory in mock mode)."""
    if is_mock():
        provider = InMemoryProvider(vault=settings.default_vault, account=account)
        for vault, items in load_mock_secrets(os.environ.get("DOTSECRETS_MOCK_SECRETS")).items():
            for name, fields in (items or {}).items():
                for field_name, value in (fields or {}).items():
                    provider.add(name, str(value), field=field_name, vault=vault)
        return provider

    return OnePasswordProvider(settings=settings, account_alias=account, timeout=config.op_timeout)


def build_engine(
    account: Optional[str] = None,
    vault: Optional[str] = None,
    no_cache: bool = False,
    cache_ttl: Optional[int] = None,
    settings_path: Optional[str] = None,
) -> Engine:
    """Wire settings, provider, cache and resolver from CLI options."""
    config = get_config()
    settings = load_settings(settings_path)

    account = account or config.account or detect_account_alias(settings)
    vault = vault or settings.default_vault

    cache = CacheManager(
        cache_dir=config.cache_dir,
        ttl=config.cache_ttl if cache_ttl is None else cache_ttl,
        enabled=config.cache_enabled and not no_cache,
    )
    cache.init()

    provider = create_provider(settings, account, config)
    resolver = SecretResolver(provider, cache, default_vault=vault)
    return Engine(
        settings=settings,
        config=config,
        provider=provider,
        cache=cache,
        resolver=resolver,
        account=account,
        vault=vault,
    )


def ensure_signed_in(engine: Engine, console: Console) -> None:
    """Exit with a sign-in hint unless the provider session is usable."""
    try:
        engine.provider.ensure_signed_in(engine.account)
    except DotsecretsError as e:
        handle_cli_error(e, console)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting."""
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting."""
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    """Print info message with consistent formatting."""
    console.print(f"[cyan]{prefix}[/cyan] {message}")
