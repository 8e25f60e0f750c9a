"""
Typed results of a diff run.

A DiffSummary holds the ordered operations; its counts are computed
properties, so ``total_changes == creates + updates + deletes`` always
holds and none of them can be set on their own.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field

from shopform.core.document.schema import Section


class OperationKind(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class FieldChange(BaseModel):
    """One differing field; ``before`` is remote, ``after`` is local."""

    model_config = ConfigDict(frozen=True)

    field: str
    before: Any = None
    after: Any = None

    def describe(self) -> str:
        if self.before is None:
            return f"{self.field}: added {_render(self.after)}"
        if self.after is None:
            return f"{self.field}: removed {_render(self.before)}"
        return f"{self.field}: {_render(self.before)} → {_render(self.after)}"


def _render(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, list):
        return "[" + ", ".join(_render(item) for item in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {_render(v)}" for k, v in value.items()) + "}"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class DiffOperation(BaseModel):
    """A single CREATE/UPDATE/DELETE decision for one entity."""

    model_config = ConfigDict(frozen=True)

    entity_type: Section
    kind: OperationKind
    key: str
    local_value: dict[str, Any] | None = None
    remote_value: dict[str, Any] | None = None
    changed_fields: tuple[FieldChange, ...] = ()

    @property
    def remote_id(self) -> str | None:
        """Remote identifier of the matched entity, when there is one."""
        if self.remote_value is None:
            return None
        value = self.remote_value.get("id")
        return str(value) if value is not None else None

    @property
    def label(self) -> str:
        return self.entity_type.label


class DiffSummary(BaseModel):
    """Ordered operations of a diff with derived counts."""

    model_config = ConfigDict(frozen=True)

    operations: tuple[DiffOperation, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def creates(self) -> int:
        return self._count(OperationKind.CREATE)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def updates(self) -> int:
        return self._count(OperationKind.UPDATE)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def deletes(self) -> int:
        return self._count(OperationKind.DELETE)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_changes(self) -> int:
        return len(self.operations)

    @property
    def has_changes(self) -> bool:
        return bool(self.operations)

    @property
    def has_destructive_changes(self) -> bool:
        return self.deletes > 0

    def _count(self, kind: OperationKind) -> int:
        return sum(1 for op in self.operations if op.kind is kind)

    def by_entity_type(self) -> dict[Section, list[DiffOperation]]:
        """Group operations by section, preserving operation order."""
        grouped: dict[Section, list[DiffOperation]] = {}
        for op in self.operations:
            grouped.setdefault(op.entity_type, []).append(op)
        return grouped

    def for_section(self, section: Section) -> list[DiffOperation]:
        return [op for op in self.operations if op.entity_type is section]


__all__ = ["DiffOperation", "DiffSummary", "FieldChange", "OperationKind"]
