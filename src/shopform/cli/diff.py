"""
shopform CLI - diff command.

Shows what deploy would change. Finding differences is not a failure:
the command exits 0 whenever it completes.
"""

from enum import Enum
from pathlib import Path

import typer
from rich.console import Console

from shopform.cli import shared
from shopform.cli.errors import handle_errors
from shopform.core.config import ShopformSettings
from shopform.core.deadline import Deadline, run_with_deadline
from shopform.core.diff.engine import DiffScope
from shopform.core.diff.formatters import (
    NO_CHANGES,
    build_diff_table,
    format_json,
    format_summary,
)
from shopform.core.diff.models import DiffSummary
from shopform.core.diff.service import DiffService
from shopform.core.document.loader import load_document
from shopform.core.document.schema import ConfigDocument

console = Console()


class DiffFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    SUMMARY = "summary"


async def compute_remote_diff(
    settings: ShopformSettings, document: ConfigDocument, scope: DiffScope
) -> DiffSummary:
    """Fetch remote state for the scope and diff it against ``document``."""
    async with shared.open_repositories(settings) as repositories:
        return await DiffService(repositories).compare(document, scope)


def diff(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the configuration document (default: config.yml)",
    ),
    include: str | None = typer.Option(
        None,
        "--include",
        help="Only compare these sections (comma-separated)",
    ),
    exclude: str | None = typer.Option(
        None,
        "--exclude",
        help="Skip these sections (comma-separated)",
    ),
    output_format: DiffFormat = typer.Option(
        DiffFormat.TABLE,
        "--format",
        "-f",
        help="Output format: table, json, or summary",
    ),
    url: str | None = typer.Option(None, "--url", help="Admin API URL"),
    token: str | None = typer.Option(None, "--token", help="Admin API token"),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Deadline for the whole command, in seconds",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show error details"),
) -> None:
    """
    Show differences between the configuration file and the remote instance.

    Examples:
        shopform diff
        shopform diff --include=channels,categories
        shopform diff --format json > diff.json
    """
    debug = bool(ctx.obj and ctx.obj.get("debug"))

    with handle_errors(verbose=verbose or debug):
        scope = shared.resolve_scope(include, exclude)
        settings = shared.resolve_settings(config=config, url=url, token=token, timeout=timeout)
        shared.require_api_url(settings)
        document = load_document(settings.document_path)

        deadline = Deadline(settings.deploy.command_timeout)
        summary = shared.run_async(
            run_with_deadline(compute_remote_diff(settings, document, scope), deadline)
        )

    if output_format is DiffFormat.JSON:
        typer.echo(
            format_json(
                summary,
                config_file=str(settings.document_path),
                api_url=settings.api.url,
            )
        )
    elif output_format is DiffFormat.SUMMARY:
        typer.echo(format_summary(summary))
    elif not summary.has_changes:
        console.print(f"[green]✓[/green] {NO_CHANGES}")
    else:
        console.print(build_diff_table(summary))
        console.print()
        typer.echo(format_summary(summary))

    raise typer.Exit(0)
