"""
shopform CLI - Main application entry point.

This module sets up the Typer CLI application with the diff and deploy
commands.
"""

import logging
import sys

import typer
from rich.console import Console

from shopform import __version__
from shopform.cli import deploy, diff
from shopform.cli.argv import preprocess_argv

app = typer.Typer(
    name="shopform",
    help="Declarative configuration for e-commerce instances",
    no_args_is_help=False,
    invoke_without_command=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def configure_logging(debug: bool) -> None:
    """WARNING and above on stderr; everything with --debug."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    shopform - keep a shop's configuration in a YAML file.

    Quick Start:
        1. shopform diff             # See what differs from the remote instance
        2. shopform deploy           # Apply the configuration file

    Common Workflows:
        shopform diff --include=categories,products
        shopform diff --format json > diff.json
        shopform deploy --dry-run
        shopform deploy --ci --fail-on-delete
    """
    configure_logging(debug)

    ctx.obj = {"debug": debug}

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


app.command(name="diff")(diff.diff)
app.command(name="deploy")(deploy.deploy)


@app.command()
def version() -> None:
    """Show shopform version and exit."""
    console.print(f"shopform version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """
    Main CLI entry point.

    The argv preprocessor normalizes common patterns before Typer
    parses them (e.g. ``shopform --version``, ``shopform deploy --debug``).
    """
    sys.argv[1:] = preprocess_argv(sys.argv[1:])
    app()


__all__ = ["app", "cli_main"]
