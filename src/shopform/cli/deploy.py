"""
shopform CLI - deploy command.

Computes the diff, shows it, asks for confirmation (unless --ci), then
applies it stage by stage. A failing stage prints the full per-entity
report and exits 1; nothing is said about the stages that never ran.
"""

from pathlib import Path

import typer
from rich.console import Console

from shopform.cli import shared
from shopform.cli.diff import compute_remote_diff
from shopform.cli.errors import ExitCode, handle_errors, print_error, print_stage_failure
from shopform.core.config import ShopformSettings
from shopform.core.deadline import Deadline, run_with_deadline
from shopform.core.deploy.metrics import DeploymentMetrics, MetricsCollector
from shopform.core.deploy.orchestrator import DeploymentOrchestrator, DeployResult
from shopform.core.deploy.report import build_deployment_report, render_summary_panel, save_report
from shopform.core.diff.formatters import NO_CHANGES, build_diff_table, format_summary
from shopform.core.diff.models import DiffSummary
from shopform.core.document.loader import load_document
from shopform.core.errors import CLI_NAME, ConfiguratorError, StageAggregateError
from shopform.core.recovery import RecoveryGuide

console = Console()


async def apply_changes(
    settings: ShopformSettings,
    summary: DiffSummary,
    *,
    deadline: Deadline,
    metrics: MetricsCollector,
) -> DeployResult:
    async with shared.open_repositories(settings) as repositories:
        orchestrator = DeploymentOrchestrator(
            repositories,
            concurrency=settings.deploy.concurrency,
            delay=settings.deploy.delay,
            recovery_guide=RecoveryGuide.with_defaults(),
            deadline=deadline,
            metrics=metrics,
        )
        return await orchestrator.deploy(summary)


def _write_report(
    settings: ShopformSettings,
    metrics: DeploymentMetrics,
    summary: DiffSummary,
    *,
    report_path: Path | None,
    no_report: bool,
    error: ConfiguratorError | None = None,
) -> None:
    if no_report or (report_path is None and not settings.reports.enabled):
        return
    report = build_deployment_report(
        metrics,
        summary,
        status="failed" if error is not None else "success",
        error=str(error) if error is not None else None,
    )
    path = save_report(
        report,
        custom_path=report_path,
        reports_dir=settings.reports.directory,
        max_reports=settings.reports.max_reports,
    )
    console.print(f"[dim]Deployment report saved to {path}[/dim]", highlight=False)


def deploy(
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
        help="Only deploy these sections (comma-separated)",
    ),
    exclude: str | None = typer.Option(
        None,
        "--exclude",
        help="Skip these sections (comma-separated)",
    ),
    url: str | None = typer.Option(None, "--url", help="Admin API URL"),
    token: str | None = typer.Option(None, "--token", help="Admin API token"),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Deadline for the whole command, in seconds",
    ),
    ci: bool = typer.Option(
        False,
        "--ci",
        help="Non-interactive: skip the confirmation prompt",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would change without applying anything",
    ),
    skip_diff: bool = typer.Option(
        False,
        "--skip-diff",
        help="Apply without printing the diff preview",
    ),
    fail_on_delete: bool = typer.Option(
        False,
        "--fail-on-delete",
        help="Exit with an error instead of deploying when anything would be deleted",
    ),
    report_path: Path | None = typer.Option(
        None,
        "--report-path",
        help="Write the deployment report to this file",
    ),
    no_report: bool = typer.Option(
        False,
        "--no-report",
        help="Do not write a deployment report",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        min=1,
        help="Operations in flight per batch (default: 5)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed error traces",
    ),
) -> None:
    """
    Apply the configuration file to the remote instance.

    Examples:
        shopform deploy
        shopform deploy --dry-run
        shopform deploy --ci --include=categories,products
    """
    debug = bool(ctx.obj and ctx.obj.get("debug"))
    verbose = verbose or debug

    with handle_errors(verbose=verbose):
        scope = shared.resolve_scope(include, exclude)
        settings = shared.resolve_settings(
            config=config,
            url=url,
            token=token,
            timeout=timeout,
            concurrency=concurrency,
        )
        shared.require_api_url(settings)
        document = load_document(settings.document_path)

        deadline = Deadline(settings.deploy.command_timeout)
        summary = shared.run_async(
            run_with_deadline(compute_remote_diff(settings, document, scope), deadline)
        )

    if not summary.has_changes:
        console.print(f"[green]✓[/green] {NO_CHANGES}")
        raise typer.Exit(ExitCode.SUCCESS)

    if not skip_diff:
        console.print(build_diff_table(summary))
        console.print()
        typer.echo(format_summary(summary))
        console.print()

    if fail_on_delete and summary.has_destructive_changes:
        print_error(
            f"Deployment would delete {summary.deletes} entities",
            reason="--fail-on-delete refuses deployments that contain deletions",
            solution=f"{CLI_NAME} diff  # review deletions, then deploy without --fail-on-delete",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if dry_run:
        console.print(
            f"[yellow]Dry run:[/yellow] {summary.total_changes} changes would be applied. "
            "Nothing was changed."
        )
        raise typer.Exit(ExitCode.SUCCESS)

    if not ci:
        if summary.has_destructive_changes:
            console.print(
                f"[yellow]Warning:[/yellow] {summary.deletes} entities will be deleted "
                "from the remote instance"
            )
        if not typer.confirm(f"Apply {summary.total_changes} changes?", default=False):
            console.print("[dim]Deployment cancelled[/dim]")
            raise typer.Exit(ExitCode.SUCCESS)

    collector = MetricsCollector()
    with handle_errors(verbose=verbose):
        try:
            result = shared.run_async(
                run_with_deadline(
                    apply_changes(settings, summary, deadline=deadline, metrics=collector),
                    deadline,
                )
            )
        except ConfiguratorError as e:
            _write_report(
                settings,
                collector.complete(),
                summary,
                report_path=report_path,
                no_report=no_report,
                error=e,
            )
            if isinstance(e, StageAggregateError):
                print_stage_failure(e, verbose=verbose)
                raise typer.Exit(ExitCode.GENERAL_ERROR) from e
            raise

    metrics = collector.complete()
    console.print(render_summary_panel(metrics, summary))
    _write_report(settings, metrics, summary, report_path=report_path, no_report=no_report)
    console.print(
        f"[green]✓[/green] Deployment complete: {result.applied} changes applied "
        f"in {len(result.stages)} stages"
    )
    raise typer.Exit(ExitCode.SUCCESS)
