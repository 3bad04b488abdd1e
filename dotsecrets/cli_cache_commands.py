"""Cache CLI commands - warm-cache, clear-cache, cache-status."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from dotsecrets.cli_support import (
    build_engine,
    ensure_signed_in,
    handle_cli_error,
    print_info,
    print_success,
    print_warning,
)
from dotsecrets.core.cache import CacheManager
from dotsecrets.core.config import get_config
from dotsecrets.core.errors import DotsecretsError

console: Console = Console()


def _local_cache() -> CacheManager:
    try:
        config = get_config()
    except DotsecretsError as e:
        handle_cli_error(e, console)
    return CacheManager(cache_dir=config.cache_dir, ttl=config.cache_ttl, enabled=config.cache_enabled)


def warm_cache(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault to warm"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
    common: bool = typer.Option(False, "--common", help="Only warm the secrets listed in settings"),
    workers: int = typer.Option(1, "--workers", "-w", min=1, max=16, help="Parallel fetches"),
    settings: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Preload secrets into the cache before bulk processing."""
    try:
        engine = build_engine(account=account, vault=vault, settings_path=settings)
    except DotsecretsError as e:
        handle_cli_error(e, console)

    if not engine.cache.enabled:
        print_warning(console, "Caching is disabled (DOTSECRETS_CACHE_ENABLED=false)")
        return

    ensure_signed_in(engine, console)
    print_info(console, f"Warming secret cache for vault '{engine.vault}'...")

    specs = engine.settings.warm_secrets if common else None
    try:
        warmed = engine.resolver.warm_cache(engine.vault, specs=specs, max_workers=workers)
    except DotsecretsError as e:
        handle_cli_error(e, console)

    print_success(console, f"Warmed {warmed} secrets in cache")


def clear_cache():
    """Remove every cached secret."""
    cache = _local_cache()
    if cache.clear():
        print_success(console, f"Cleared cache: {cache.cache_dir}")
    else:
        print_warning(console, f"Could not fully clear {cache.cache_dir}")
        raise typer.Exit(1)


def cache_status(
    sweep: bool = typer.Option(False, "--sweep", help="Remove expired entries first"),
):
    """Show cache location, TTL and entry counts."""
    cache = _local_cache()
    if sweep:
        removed = cache.sweep()
        print_success(console, f"Removed {removed} expired entries")

    stats = cache.stats()
    table = Table(title="Secret Cache")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Directory", stats["directory"])
    table.add_row("Enabled", "yes" if stats["enabled"] else "no")
    table.add_row("TTL", f"{stats['ttl']}s")
    table.add_row("Entries", str(stats["entries"]))
    table.add_row("Expired", str(stats["expired"]))
    console.print(table)


def register_cache_commands(app: typer.Typer, shared_console: Console):
    """Register cache commands with the main Typer app."""
    global console
    console = shared_console

    app.command("warm-cache")(warm_cache)
    app.command("clear-cache")(clear_cache)
    app.command("cache-status")(cache_status)
