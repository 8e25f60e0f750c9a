"""
Deployment metrics: stage timings and per-entity-type change counts.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from shopform.core.diff.models import OperationKind
from shopform.core.document.schema import Section


@dataclass
class EntityCount:
    created: int = 0
    updated: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.deleted


@dataclass(frozen=True)
class DeploymentMetrics:
    """Snapshot taken from a MetricsCollector."""

    start_time: datetime
    end_time: datetime
    duration_seconds: float
    stage_durations: dict[str, float] = field(default_factory=dict)
    entity_counts: dict[Section, EntityCount] = field(default_factory=dict)

    @property
    def total_applied(self) -> int:
        return sum(count.total for count in self.entity_counts.values())


class MetricsCollector:
    """Collects timings while a deployment runs."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._start_time = datetime.now(timezone.utc)
        self._started = clock()
        self._end_time: datetime | None = None
        self._ended: float | None = None
        self._stage_started: dict[str, float] = {}
        self._stage_durations: dict[str, float] = {}
        self._entity_counts: dict[Section, EntityCount] = {}

    def start_stage(self, name: str) -> None:
        self._stage_started[name] = self._clock()

    def end_stage(self, name: str) -> None:
        started = self._stage_started.pop(name, None)
        if started is not None:
            self._stage_durations[name] = self._clock() - started

    def record_entity(self, section: Section, kind: OperationKind) -> None:
        count = self._entity_counts.setdefault(section, EntityCount())
        if kind is OperationKind.CREATE:
            count.created += 1
        elif kind is OperationKind.UPDATE:
            count.updated += 1
        else:
            count.deleted += 1

    def complete(self) -> DeploymentMetrics:
        """Stop the clock and return the final metrics."""
        self._end_time = datetime.now(timezone.utc)
        self._ended = self._clock()
        return self.snapshot()

    def snapshot(self) -> DeploymentMetrics:
        ended = self._ended if self._ended is not None else self._clock()
        return DeploymentMetrics(
            start_time=self._start_time,
            end_time=self._end_time or datetime.now(timezone.utc),
            duration_seconds=ended - self._started,
            stage_durations=dict(self._stage_durations),
            entity_counts={
                section: EntityCount(c.created, c.updated, c.deleted)
                for section, c in self._entity_counts.items()
            },
        )


def format_duration(seconds: float) -> str:
    """``0.25`` -> ``250ms``, ``75.5`` -> ``1m 15.5s``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m {rest:.1f}s"


__all__ = ["DeploymentMetrics", "EntityCount", "MetricsCollector", "format_duration"]
