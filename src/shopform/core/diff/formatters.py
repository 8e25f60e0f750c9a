"""
Render a DiffSummary for people (table, summary) and machines (json).
"""

import json
from datetime import datetime, timezone
from typing import Any

from rich.table import Table

from shopform.core.diff.models import DiffOperation, DiffSummary, OperationKind

NO_CHANGES = "No differences found. Local configuration matches the remote instance."

OPERATION_STYLES = {
    OperationKind.CREATE: ("+", "green"),
    OperationKind.UPDATE: ("~", "yellow"),
    OperationKind.DELETE: ("-", "red"),
}

JSON_FORMAT_VERSION = "1.0"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def describe_operation(op: DiffOperation) -> list[str]:
    """Human-readable detail lines for one operation."""
    if op.kind is OperationKind.CREATE:
        return [f"New {op.label.lower()} will be created"]
    if op.kind is OperationKind.DELETE:
        return ["Exists on the remote instance but is missing from the local configuration"]
    return [change.describe() for change in op.changed_fields]


def format_summary(summary: DiffSummary) -> str:
    """
    Brief plain-text summary: totals, per-operation and per-section counts.

    Example:
        >>> print(format_summary(summary))
        Found 3 differences
        + 3 items to create
        <BLANKLINE>
        By entity type:
        • Channels: 1 change
        • Categories: 2 changes
    """
    if not summary.has_changes:
        return NO_CHANGES

    lines = [f"Found {_plural(summary.total_changes, 'difference')}"]
    if summary.creates:
        lines.append(f"+ {_plural(summary.creates, 'item')} to create")
    if summary.updates:
        lines.append(f"~ {_plural(summary.updates, 'item')} to update")
    if summary.deletes:
        lines.append(f"- {_plural(summary.deletes, 'item')} to delete")

    lines.append("")
    lines.append("By entity type:")
    for section, operations in summary.by_entity_type().items():
        lines.append(f"• {section.label}: {_plural(len(operations), 'change')}")
    return "\n".join(lines)


def build_diff_table(summary: DiffSummary) -> Table:
    """One row per operation, with field-level detail for updates."""
    table = Table(title="Configuration Diff", show_header=True, header_style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Operation")
    table.add_column("Key", style="bold")
    table.add_column("Details", style="dim")

    for op in summary.operations:
        symbol, color = OPERATION_STYLES[op.kind]
        table.add_row(
            op.label,
            f"[{color}]{symbol} {op.kind.value.title()}[/{color}]",
            op.key,
            "\n".join(describe_operation(op)),
        )
    return table


def _operation_to_json(op: DiffOperation) -> dict[str, Any]:
    data: dict[str, Any] = {
        "entityType": op.entity_type.value,
        "operation": op.kind.value,
        "key": op.key,
    }
    if op.changed_fields:
        data["changes"] = [
            {"field": change.field, "before": change.before, "after": change.after}
            for change in op.changed_fields
        ]
    return data


def build_json_output(
    summary: DiffSummary,
    *,
    config_file: str | None = None,
    api_url: str | None = None,
) -> dict[str, Any]:
    """Versioned, CI-friendly representation of a diff."""
    by_entity_type: dict[str, Any] = {}
    for section, operations in summary.by_entity_type().items():
        by_entity_type[section.value] = {
            "creates": sum(1 for op in operations if op.kind is OperationKind.CREATE),
            "updates": sum(1 for op in operations if op.kind is OperationKind.UPDATE),
            "deletes": sum(1 for op in operations if op.kind is OperationKind.DELETE),
            "entities": [op.key for op in operations],
        }

    return {
        "version": JSON_FORMAT_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "apiUrl": api_url,
        "configFile": config_file,
        "summary": {
            "totalChanges": summary.total_changes,
            "creates": summary.creates,
            "updates": summary.updates,
            "deletes": summary.deletes,
            "hasDestructiveChanges": summary.has_destructive_changes,
        },
        "byEntityType": by_entity_type,
        "changes": [_operation_to_json(op) for op in summary.operations],
    }


def format_json(
    summary: DiffSummary,
    *,
    config_file: str | None = None,
    api_url: str | None = None,
) -> str:
    return json.dumps(
        build_json_output(summary, config_file=config_file, api_url=api_url), indent=2
    )


__all__ = [
    "NO_CHANGES",
    "build_diff_table",
    "build_json_output",
    "describe_operation",
    "format_json",
    "format_summary",
]
