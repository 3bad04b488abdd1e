#!/usr/bin/env python3
"""dotsecrets CLI - Secret injection for dotfile templates."""

from typing import Optional

import typer
from rich.console import Console

from dotsecrets.cli_cache_commands import register_cache_commands
from dotsecrets.cli_secret_commands import register_secret_commands
from dotsecrets.cli_template_commands import register_template_commands
from dotsecrets.core.logger import get_logger, set_verbose, setup_file_logging

app = typer.Typer(
    name="dotsecrets",
    help="""dotsecrets - Inject secrets from 1Password into config templates

Placeholders: ${NAME}  $NAME  {{ op://Vault/NAME/field }}  %%NAME%%  {{NAME}}

Quick start:
  dotsecrets validate ~/.aws/credentials.template   # What does it need?
  dotsecrets diff ~/.aws/credentials.template       # What will change?
  dotsecrets process ~/.aws/credentials.template    # Write ~/.aws/credentials
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also log to this file"),
):
    """Global options."""
    if verbose:
        set_verbose(True)
    if log_file:
        setup_file_logging(log_file=log_file, verbose=verbose)


# Attach modular subcommands
register_template_commands(app, console)
register_cache_commands(app, console)
register_secret_commands(app, console)

if __name__ == "__main__":
    app()
