"""Diff engine: compare desired state with remote state."""

from shopform.core.diff.engine import DiffScope, compute_diff
from shopform.core.diff.models import DiffOperation, DiffSummary, FieldChange, OperationKind
from shopform.core.diff.service import DiffService

__all__ = [
    "DiffOperation",
    "DiffScope",
    "DiffService",
    "DiffSummary",
    "FieldChange",
    "OperationKind",
    "compute_diff",
]
