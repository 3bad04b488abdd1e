"""Template CLI commands - validate, diff, process, inject-all."""
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from dotsecrets.cli_support import (
    Engine,
    build_engine,
    ensure_signed_in,
    handle_cli_error,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from dotsecrets.core.discovery import find_common_templates, find_templates
from dotsecrets.core.errors import DotsecretsError, NotSignedInError, ProviderError
from dotsecrets.core.logger import get_logger
from dotsecrets.core.processor import (
    ProcessingResult,
    RunSummary,
    TemplateProcessor,
    read_template,
    write_atomic,
)

# Module-level console instance (will be set by register function)
console: Console = Console()
logger = get_logger(__name__)

FORMAT_HELP = "Template format (env, env-simple, go, custom, double-brace, auto)"


def _engine(account: Optional[str], vault: Optional[str], no_cache: bool = False,
            cache_ttl: Optional[int] = None, settings: Optional[str] = None) -> Engine:
    try:
        return build_engine(account=account, vault=vault, no_cache=no_cache,
                            cache_ttl=cache_ttl, settings_path=settings)
    except DotsecretsError as e:
        handle_cli_error(e, console)


def _collect_files(specs: List[str], recursive: bool = True, force: bool = False) -> List[Path]:
    files: List[Path] = []
    for spec in specs:
        path = Path(spec).expanduser()
        if path.is_dir():
            files.extend(find_templates(path, recursive=recursive, force=force))
        else:
            files.append(path)
    return files


def _print_result(result: ProcessingResult, dry_run: bool) -> None:
    source = escape(str(result.source))
    if result.format is None:
        if result.written:
            print_info(console, f"No placeholders in {source}, copied to {escape(str(result.output_path))}")
        else:
            print_warning(console, f"No placeholders found in {source}, skipped")
        return

    for warning in result.warnings:
        print_warning(console, escape(warning))

    if dry_run:
        print_info(console, f"Dry run: {source} -> {escape(str(result.output_path))}")
        console.print(result.preview, markup=False, highlight=False, soft_wrap=True)
    else:
        print_success(console, f"Processed: {escape(str(result.output_path))}")


def _log_warnings(result: ProcessingResult) -> None:
    # stderr only: stdout may be carrying the resolved content
    for warning in result.warnings:
        logger.warning(warning)


def _echo_content(result: ProcessingResult, dry_run: bool) -> None:
    _log_warnings(result)
    text = result.preview if dry_run and result.preview is not None else result.content
    typer.echo(text, nl=False)


def _report_summary(summary: RunSummary, dry_run: bool) -> None:
    for path in summary.succeeded + summary.skipped:
        _print_result(summary.results[path], dry_run)
    for path, reason in summary.failed.items():
        print_error(console, f"Failed to process {escape(str(path))}: {escape(reason)}")

    total = len(summary.succeeded) + len(summary.skipped) + len(summary.failed)
    console.print(
        f"Processed {len(summary.succeeded)} of {total} files, "
        f"{len(summary.skipped)} skipped, {len(summary.failed)} failed"
    )
    if not summary.ok:
        raise typer.Exit(1)


def process(
    path: Optional[str] = typer.Argument(None, help="Template file or directory"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file ('-' for stdout)"),
    fmt: str = typer.Option("auto", "--format", "-f", help=FORMAT_HELP),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault for placeholders without one"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias (e.g. work, personal)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Preview changes without writing"),
    debug: bool = typer.Option(False, "--debug", help="Trace each token to stderr"),
    allow_missing: bool = typer.Option(False, "--allow-missing", help="Keep placeholders for missing secrets"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Process directories recursively"),
    force: bool = typer.Option(False, "--force", help="Also process files without a template extension"),
    backup: bool = typer.Option(False, "--backup", "-b", help="Back up files before overwriting"),
    stdin: bool = typer.Option(False, "--stdin", help="Read the template from stdin"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable the secret cache"),
    cache_ttl: Optional[int] = typer.Option(None, "--cache-ttl", help="Cache TTL in seconds"),
    warm: bool = typer.Option(False, "--warm-cache", help="Preload common secrets first"),
    settings: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Inject secrets into template files."""
    if stdin and path:
        print_error(console, "Cannot specify a path when using --stdin")
        raise typer.Exit(1)
    if not stdin and not path:
        print_error(console, "No input file or directory specified")
        raise typer.Exit(1)

    engine = _engine(account, vault, no_cache, cache_ttl, settings)
    ensure_signed_in(engine, console)
    debug = debug or engine.config.debug

    try:
        processor = TemplateProcessor(
            engine.resolver,
            allow_missing=allow_missing,
            dry_run=dry_run,
            debug=debug,
            debug_stream=sys.stderr,
            backup=backup,
            vault=engine.vault,
            fmt=fmt,
        )
        if warm:
            engine.resolver.warm_cache(engine.vault, specs=engine.settings.warm_secrets)

        if stdin:
            result = processor.process_content(sys.stdin.read())
            if output and output != "-" and not dry_run:
                _log_warnings(result)
                write_atomic(Path(output), result.content)
                print_success(console, f"Wrote output to: {escape(output)}")
            else:
                _echo_content(result, dry_run)
            return

        source = Path(path).expanduser()
        if source.is_dir():
            if not recursive:
                print_error(console, f"{escape(str(source))} is a directory. Use -r for recursive processing.")
                raise typer.Exit(1)
            files = find_templates(source, recursive=True, force=force)
            print_info(console, f"Processing directory: {escape(str(source))} ({len(files)} templates)")
            _report_summary(processor.process_many(files), dry_run)
            return

        if output == "-":
            _echo_content(processor.process_content(read_template(source), source=source), dry_run)
            return

        result = processor.process_file(source, output)
        _print_result(result, dry_run)
    except (DotsecretsError, OSError) as e:
        handle_cli_error(e, console)


def inject_all(
    home: Optional[str] = typer.Option(None, "--home", help="Home directory to search (default: ~)"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault for placeholders without one"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Preview changes without writing"),
    allow_missing: bool = typer.Option(False, "--allow-missing", help="Keep placeholders for missing secrets"),
    no_backup: bool = typer.Option(False, "--no-backup", "-n", help="Don't create backup files"),
    settings: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Process every template in the usual dotfile locations (~/.aws, ~/.config, ...)."""
    engine = _engine(account, vault, settings=settings)
    ensure_signed_in(engine, console)

    files = find_common_templates(Path(home).expanduser() if home else None)
    if not files:
        print_warning(console, "No template files found")
        return

    processor = TemplateProcessor(
        engine.resolver,
        allow_missing=allow_missing,
        dry_run=dry_run,
        backup=not no_backup,
        vault=engine.vault,
    )
    try:
        summary = processor.process_many(files)
    except DotsecretsError as e:
        handle_cli_error(e, console)
    _report_summary(summary, dry_run)


def validate(
    files: List[str] = typer.Argument(..., help="Template files or directories"),
    no_check: bool = typer.Option(False, "--no-check", "-n", help="Don't check that secrets exist"),
    fmt: str = typer.Option("auto", "--format", "-f", help=FORMAT_HELP),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault for placeholders without one"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
    settings: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Check template syntax and list the secrets each template needs."""
    engine = _engine(account, vault, settings=settings)
    check_secrets = not no_check
    if check_secrets:
        try:
            engine.provider.ensure_signed_in(engine.account)
        except (NotSignedInError, ProviderError):
            print_warning(console, "Not signed in - skipping secret existence checks")
            check_secrets = False

    processor = TemplateProcessor(engine.resolver, vault=engine.vault, fmt=fmt)
    passed = 0
    failed = 0

    for path in _collect_files(files):
        console.print(f"\n[blue]Validating:[/blue] {escape(str(path))}")
        try:
            report = processor.validate(path, check_secrets=check_secrets)
        except NotSignedInError as e:
            handle_cli_error(e, console)
        except (DotsecretsError, OSError) as e:
            print_error(console, escape(str(e)))
            failed += 1
            continue

        if report.format is None:
            print_warning(console, "No template tokens detected")
            passed += 1
            continue

        console.print(f"  Format: {report.format.value}")
        console.print(f"  Tokens: {len(report.tokens)} found")
        for token in report.tokens:
            if not report.checked:
                console.print(f"    • {escape(str(token))}")
            elif token in report.missing:
                console.print(f"    [red]✗[/red] {escape(str(token))} (not found)")
            else:
                console.print(f"    [green]✓[/green] {escape(str(token))}")

        for issue in report.issues:
            print_warning(console, escape(issue))

        if report.resolvable is False:
            print_error(console, "Validation failed")
            failed += 1
        else:
            print_success(console, "Validation passed")
            passed += 1

    table = Table(title="Template Validation")
    table.add_column("Total", style="cyan")
    table.add_column("Passed", style="green")
    table.add_column("Failed", style="red")
    table.add_row(str(passed + failed), str(passed), str(failed))
    console.print(table)

    if failed:
        raise typer.Exit(1)


def diff(
    files: List[str] = typer.Argument(..., help="Template files or directories"),
    fmt: str = typer.Option("auto", "--format", "-f", help=FORMAT_HELP),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault for placeholders without one"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account alias"),
    settings: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Show what would change after secret injection (values are NOT redacted)."""
    engine = _engine(account, vault, settings=settings)
    ensure_signed_in(engine, console)

    processor = TemplateProcessor(engine.resolver, vault=engine.vault, fmt=fmt)
    failed = 0
    for path in _collect_files(files):
        try:
            text = processor.diff(path)
        except NotSignedInError as e:
            handle_cli_error(e, console)
        except (DotsecretsError, OSError) as e:
            print_error(console, escape(str(e)))
            failed += 1
            continue

        if not text:
            print_info(console, f"No changes: {escape(str(path))}")
            continue
        console.print(Syntax(text, "diff", background_color="default", word_wrap=True))

    if failed:
        raise typer.Exit(1)


def register_template_commands(app: typer.Typer, shared_console: Console):
    """Register template commands with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console

    app.command()(process)
    app.command("inject-all")(inject_all)
    app.command()(validate)
    app.command()(diff)
