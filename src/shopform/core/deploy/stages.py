"""
Stage planner: the fixed dependency order applied to a diff.

One stage per section, in ``Section`` declaration order. Within a stage the
operations run in three phases (deletes, creates, updates) so a slug can be
freed before it is reused. Categories run one at a time along the tree:
children are deleted before their parents, and parents are created before
children so a child can reference a parent created moments earlier.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from shopform.core.diff.models import DiffOperation, DiffSummary, OperationKind
from shopform.core.document.schema import Section

PHASE_ORDER = (OperationKind.DELETE, OperationKind.CREATE, OperationKind.UPDATE)
PHASE_VERBS = {
    OperationKind.DELETE: "Deleting",
    OperationKind.CREATE: "Creating",
    OperationKind.UPDATE: "Updating",
}

OperationOrder = Callable[[Sequence[DiffOperation]], list[DiffOperation]]


def _tree_depths(operations: Sequence[DiffOperation], side: str) -> dict[str, int]:
    parents: dict[str, str | None] = {
        op.key: (getattr(op, side) or {}).get("parent") for op in operations
    }

    def depth(key: str) -> int:
        seen = {key}
        level = 0
        parent = parents.get(key)
        while parent is not None and parent in parents and parent not in seen:
            seen.add(parent)
            level += 1
            parent = parents.get(parent)
        return level

    return {key: depth(key) for key in parents}


def order_categories_by_depth(operations: Sequence[DiffOperation]) -> list[DiffOperation]:
    """
    Sort category operations along the category tree.

    Creates and updates run parents first, using the local tree. Deletes run
    children first, using the remote tree, so a parent is never removed
    (possibly taking its subtree with it) before its children.

    Depth counts parent links that stay inside the same group of operations;
    a parent that is not being changed already exists and adds no depth.
    Ties keep natural-key order.
    """
    deletes = [op for op in operations if op.kind is OperationKind.DELETE]
    others = [op for op in operations if op.kind is not OperationKind.DELETE]

    delete_depths = _tree_depths(deletes, "remote_value")
    other_depths = _tree_depths(others, "local_value")

    return [
        *sorted(deletes, key=lambda op: (-delete_depths[op.key], op.key)),
        *sorted(others, key=lambda op: (other_depths[op.key], op.key)),
    ]


@dataclass(frozen=True)
class StageDefinition:
    entity_type: Section
    sequential: bool = False
    order: OperationOrder | None = None


STAGE_DEFINITIONS: tuple[StageDefinition, ...] = tuple(
    StageDefinition(section, sequential=True, order=order_categories_by_depth)
    if section is Section.CATEGORIES
    else StageDefinition(section)
    for section in Section
)


@dataclass(frozen=True)
class Phase:
    name: str
    kind: OperationKind
    operations: tuple[DiffOperation, ...]


@dataclass(frozen=True)
class Stage:
    """One section's slice of a deployment."""

    name: str
    entity_type: Section
    operations: tuple[DiffOperation, ...]
    sequential: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def phases(self) -> list[Phase]:
        """Non-empty phases in execution order: deletes, creates, updates."""
        phases = []
        for kind in PHASE_ORDER:
            operations = tuple(op for op in self.operations if op.kind is kind)
            if operations:
                phases.append(
                    Phase(f"{PHASE_VERBS[kind]} {self.entity_type.label}", kind, operations)
                )
        return phases


def plan_stages(summary: DiffSummary) -> list[Stage]:
    """
    Group a diff's operations into the fixed stage order.

    Every section gets a stage, empty ones included; the orchestrator skips
    empty stages without running anything.
    """
    grouped = summary.by_entity_type()
    stages = []
    for definition in STAGE_DEFINITIONS:
        operations = grouped.get(definition.entity_type, [])
        if definition.order is not None:
            operations = definition.order(operations)
        stages.append(
            Stage(
                name=f"Managing {definition.entity_type.label}",
                entity_type=definition.entity_type,
                operations=tuple(operations),
                sequential=definition.sequential,
            )
        )
    return stages


__all__ = [
    "PHASE_ORDER",
    "Phase",
    "STAGE_DEFINITIONS",
    "Stage",
    "StageDefinition",
    "order_categories_by_depth",
    "plan_stages",
]
