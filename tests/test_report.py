"""Tests for deployment metrics and report files."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console

from shopform.core.deploy.metrics import MetricsCollector, format_duration
from shopform.core.deploy.report import (
    REPORT_PREFIX,
    build_deployment_report,
    generate_report_filename,
    prune_old_reports,
    render_summary_panel,
    save_report,
)
from shopform.core.diff.models import DiffOperation, DiffSummary, FieldChange, OperationKind
from shopform.core.document.schema import Section


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def sample_metrics():
    clock = FakeClock()
    collector = MetricsCollector(clock=clock)
    collector.start_stage("Managing Categories")
    collector.record_entity(Section.CATEGORIES, OperationKind.CREATE)
    collector.record_entity(Section.CATEGORIES, OperationKind.UPDATE)
    clock.now = 1.5
    collector.end_stage("Managing Categories")
    clock.now = 2.0
    return collector.complete()


SUMMARY = DiffSummary(
    operations=(
        DiffOperation(
            entity_type=Section.CATEGORIES, kind=OperationKind.CREATE, key="shoes", local_value={}
        ),
        DiffOperation(
            entity_type=Section.CATEGORIES,
            kind=OperationKind.UPDATE,
            key="hats",
            local_value={},
            remote_value={"id": "c2"},
            changed_fields=(FieldChange(field="name", before="Hat", after="Hats"),),
        ),
    )
)


class TestMetrics:
    """Tests for MetricsCollector."""

    def test_stage_durations_and_counts(self) -> None:
        """Test timings come from the injected clock."""
        metrics = sample_metrics()

        assert metrics.duration_seconds == 2.0
        assert metrics.stage_durations == {"Managing Categories": 1.5}
        assert metrics.entity_counts[Section.CATEGORIES].total == 2
        assert metrics.total_applied == 2

    def test_snapshot_is_a_copy(self) -> None:
        """Test later records don't change an earlier snapshot."""
        collector = MetricsCollector()
        collector.record_entity(Section.PAGES, OperationKind.DELETE)
        snapshot = collector.snapshot()
        collector.record_entity(Section.PAGES, OperationKind.DELETE)

        assert snapshot.entity_counts[Section.PAGES].deleted == 1

    def test_format_duration(self) -> None:
        """Test human-readable durations."""
        assert format_duration(0.25) == "250ms"
        assert format_duration(3.0) == "3.0s"
        assert format_duration(75.5) == "1m 15.5s"


class TestDeploymentReport:
    """Tests for building and saving reports."""

    def test_report_contents(self) -> None:
        """Test the JSON report fields use camelCase."""
        report = build_deployment_report(sample_metrics(), SUMMARY)

        data = json.loads(report.to_json())
        assert data["status"] == "success"
        assert data["durationMs"] == 2000
        assert data["changes"] == {"total": 2, "created": 1, "updated": 1, "deleted": 0}
        assert data["stages"][0]["name"] == "Managing Categories"
        assert data["entityCounts"]["categories"]["created"] == 1
        assert data["operations"][1]["fields"] == [
            {"field": "name", "oldValue": "Hat", "newValue": "Hats"}
        ]
        assert data["error"] is None

    def test_failed_report(self) -> None:
        """Test failed status carries the error text."""
        report = build_deployment_report(
            sample_metrics(), SUMMARY, status="failed", error="Creating Categories failed"
        )

        assert report.status == "failed"
        assert report.error == "Creating Categories failed"

    def test_filename_format(self) -> None:
        """Test managed report names."""
        name = generate_report_filename(datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc))

        assert name.startswith(f"{REPORT_PREFIX}2024-05-01_12-30-00")
        assert name.endswith(".json")

    def test_save_to_custom_path(self, tmp_path: Path) -> None:
        """Test a custom path is written as given and nothing is pruned."""
        reports_dir = tmp_path / "reports"
        reports_dir.mkdir()
        old = reports_dir / f"{REPORT_PREFIX}old.json"
        old.write_text("{}")
        target = tmp_path / "out" / "report.json"

        path = save_report(
            build_deployment_report(sample_metrics(), SUMMARY),
            custom_path=target,
            reports_dir=reports_dir,
            max_reports=1,
        )

        assert path == target
        assert json.loads(target.read_text())["status"] == "success"
        assert old.exists()

    def test_save_prunes_managed_reports(self, tmp_path: Path) -> None:
        """Test only the newest max_reports managed files are kept."""
        reports_dir = tmp_path / "reports"
        reports_dir.mkdir()
        for index in range(3):
            old = reports_dir / f"{REPORT_PREFIX}old-{index}.json"
            old.write_text("{}")
            os.utime(old, (1000 + index, 1000 + index))
        (reports_dir / "notes.txt").write_text("keep me")

        path = save_report(
            build_deployment_report(sample_metrics(), SUMMARY),
            reports_dir=reports_dir,
            max_reports=2,
        )

        remaining = sorted(p.name for p in reports_dir.iterdir())
        assert path.name in remaining
        assert f"{REPORT_PREFIX}old-2.json" in remaining
        assert f"{REPORT_PREFIX}old-0.json" not in remaining
        assert "notes.txt" in remaining
        assert len(remaining) == 3

    def test_prune_missing_directory(self, tmp_path: Path) -> None:
        """Test pruning a directory that doesn't exist is a no-op."""
        assert prune_old_reports(tmp_path / "absent") == []


class TestSummaryPanel:
    """Tests for the rich summary panel."""

    def test_panel_lists_stages_and_counts(self) -> None:
        """Test the panel renders timing and per-section counts."""
        console = Console(width=100, record=True)
        console.print(render_summary_panel(sample_metrics(), SUMMARY))
        output = console.export_text()

        assert "Deployment Summary" in output
        assert "Managing Categories" in output
        assert "1 created, 1 updated" in output
