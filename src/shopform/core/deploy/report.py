"""
Deployment reports: the rich summary panel and the JSON report file.

Reports written to the managed directory (``.shopform/reports`` by default)
are named ``deployment-report-<timestamp>.json`` and pruned to the newest
``max_reports``. A report written to a custom ``--report-path`` is never
pruned.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from rich.panel import Panel
from rich.table import Table

from shopform.core.deploy.metrics import DeploymentMetrics, format_duration
from shopform.core.diff.models import DiffSummary

logger = logging.getLogger(__name__)

REPORTS_DIR = Path(".shopform") / "reports"
REPORT_PREFIX = "deployment-report-"
REPORT_EXTENSION = ".json"
DEFAULT_MAX_REPORTS = 5


class ChangeCounts(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0


class StageTiming(BaseModel):
    name: str
    duration_ms: int = Field(alias="durationMs")
    duration_formatted: str = Field(alias="durationFormatted")

    model_config = ConfigDict(populate_by_name=True)


class ReportedChange(BaseModel):
    entity_type: str = Field(alias="entityType")
    entity_name: str = Field(alias="entityName")
    operation: str
    fields: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class DeploymentReport(BaseModel):
    """Machine-readable record of one deployment."""

    timestamp: str
    status: Literal["success", "failed"]
    duration_ms: int = Field(alias="durationMs")
    duration_formatted: str = Field(alias="durationFormatted")
    changes: ChangeCounts
    stages: list[StageTiming] = Field(default_factory=list)
    operations: list[ReportedChange] = Field(default_factory=list)
    entity_counts: dict[str, ChangeCounts] = Field(default_factory=dict, alias="entityCounts")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    error: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


def build_deployment_report(
    metrics: DeploymentMetrics,
    summary: DiffSummary,
    *,
    status: Literal["success", "failed"] = "success",
    error: str | None = None,
) -> DeploymentReport:
    """Assemble a DeploymentReport from metrics and the applied diff."""
    return DeploymentReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        status=status,
        duration_ms=int(metrics.duration_seconds * 1000),
        duration_formatted=format_duration(metrics.duration_seconds),
        changes=ChangeCounts(
            total=summary.total_changes,
            created=summary.creates,
            updated=summary.updates,
            deleted=summary.deletes,
        ),
        stages=[
            StageTiming(
                name=name,
                duration_ms=int(seconds * 1000),
                duration_formatted=format_duration(seconds),
            )
            for name, seconds in metrics.stage_durations.items()
        ],
        operations=[
            ReportedChange(
                entity_type=op.entity_type.value,
                entity_name=op.key,
                operation=op.kind.value,
                fields=[
                    {"field": c.field, "oldValue": c.before, "newValue": c.after}
                    for c in op.changed_fields
                ],
            )
            for op in summary.operations
        ],
        entity_counts={
            section.value: ChangeCounts(
                total=count.total,
                created=count.created,
                updated=count.updated,
                deleted=count.deleted,
            )
            for section, count in metrics.entity_counts.items()
        },
        start_time=metrics.start_time.isoformat(),
        end_time=metrics.end_time.isoformat(),
        error=error,
    )


def render_summary_panel(metrics: DeploymentMetrics, summary: DiffSummary) -> Panel:
    """Rich panel shown after a successful deployment."""
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Duration", format_duration(metrics.duration_seconds))
    table.add_row("Changes applied", str(metrics.total_applied))
    table.add_row("Created", str(summary.creates))
    table.add_row("Updated", str(summary.updates))
    table.add_row("Deleted", str(summary.deletes))

    if metrics.stage_durations:
        table.add_row("", "")
        for name, seconds in metrics.stage_durations.items():
            table.add_row(f"  {name}", format_duration(seconds))

    if metrics.entity_counts:
        table.add_row("", "")
        for section, count in metrics.entity_counts.items():
            parts = []
            if count.created:
                parts.append(f"{count.created} created")
            if count.updated:
                parts.append(f"{count.updated} updated")
            if count.deleted:
                parts.append(f"{count.deleted} deleted")
            table.add_row(f"  {section.label}", ", ".join(parts))

    return Panel(table, title="[bold]Deployment Summary[/bold]", border_style="green")


def generate_report_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{REPORT_PREFIX}{now.strftime('%Y-%m-%d_%H-%M-%S-%f')}{REPORT_EXTENSION}"


def resolve_report_path(custom_path: Path | None, reports_dir: Path = REPORTS_DIR) -> Path:
    """Custom path as given, otherwise a fresh file name in ``reports_dir``."""
    if custom_path is not None:
        return custom_path
    return reports_dir / generate_report_filename()


def prune_old_reports(reports_dir: Path, max_reports: int = DEFAULT_MAX_REPORTS) -> list[str]:
    """
    Delete the oldest managed reports beyond ``max_reports``.

    Returns:
        Names of the deleted files, oldest first
    """
    if not reports_dir.is_dir():
        return []

    reports = sorted(
        (
            path
            for path in reports_dir.iterdir()
            if path.name.startswith(REPORT_PREFIX) and path.name.endswith(REPORT_EXTENSION)
        ),
        key=lambda path: (path.stat().st_mtime, path.name),
    )
    excess = reports[: max(0, len(reports) - max_reports)]

    deleted = []
    for path in excess:
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Failed to prune report %s: %s", path.name, e)
            continue
        deleted.append(path.name)

    if deleted:
        logger.info("Pruned %d old deployment reports", len(deleted))
    return deleted


def save_report(
    report: DeploymentReport,
    *,
    custom_path: Path | None = None,
    reports_dir: Path = REPORTS_DIR,
    max_reports: int = DEFAULT_MAX_REPORTS,
) -> Path:
    """
    Write ``report`` to disk and prune managed reports.

    Returns:
        The path written
    """
    path = resolve_report_path(custom_path, reports_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.to_json(), encoding="utf-8")
    logger.debug("Deployment report written to %s", path)

    if custom_path is None:
        prune_old_reports(reports_dir, max_reports)
    return path


__all__ = [
    "DEFAULT_MAX_REPORTS",
    "DeploymentReport",
    "REPORTS_DIR",
    "build_deployment_report",
    "generate_report_filename",
    "prune_old_reports",
    "render_summary_panel",
    "resolve_report_path",
    "save_report",
]
