"""
Deployment orchestrator.

Drives the planned stages through the batch executor, strictly one stage
after another. Each stage runs its deletes, then creates, then updates as
separate batches. The first phase that finishes with any failed item
raises a StageAggregateError and the run ends; later phases and stages are
never attempted.

Example:
    >>> orchestrator = DeploymentOrchestrator(repositories, concurrency=5)
    >>> result = await orchestrator.deploy(summary)
    >>> result.applied
    3
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from shopform.core.deadline import Deadline
from shopform.core.deploy.batch import DEFAULT_CONCURRENCY, run_batch
from shopform.core.deploy.metrics import MetricsCollector
from shopform.core.deploy.references import ReferenceResolver
from shopform.core.deploy.stages import Stage, plan_stages
from shopform.core.diff.models import DiffOperation, DiffSummary, OperationKind
from shopform.core.document.schema import Section
from shopform.core.errors import ConfiguratorError, StageAggregateError
from shopform.core.recovery import RecoveryGuide
from shopform.core.remote.repository import EntityRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeployResult:
    """Outcome of a deployment that completed without failures."""

    applied: int = 0
    stages: tuple[str, ...] = ()
    dry_run: bool = False


def _operation_key(operation: DiffOperation) -> str:
    return operation.key


class DeploymentOrchestrator:
    """
    Applies a DiffSummary through per-section repositories.

    Args:
        repositories: Repository per section
        concurrency: Worker pool size for non-sequential stages
        delay: Pause in seconds between items of one worker
        recovery_guide: Guide handed to StageAggregateError for suggestions
        deadline: Command deadline, checked before each item
        metrics: Collector for stage timings and entity counts
    """

    def __init__(
        self,
        repositories: Mapping[Section, EntityRepository],
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        delay: float = 0.0,
        recovery_guide: RecoveryGuide | None = None,
        deadline: Deadline | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.repositories = repositories
        self.concurrency = concurrency
        self.delay = delay
        self.recovery_guide = recovery_guide or RecoveryGuide.with_defaults()
        self.deadline = deadline
        self.metrics = metrics or MetricsCollector()
        self._references = ReferenceResolver(repositories)

    async def deploy(self, summary: DiffSummary, *, dry_run: bool = False) -> DeployResult:
        """
        Apply every operation in ``summary``.

        Returns:
            DeployResult with the applied count and the stages that ran

        Raises:
            StageAggregateError: When a phase finishes with failed items
            ConfiguratorError: TIMEOUT when the deadline expires
        """
        stages = plan_stages(summary)
        if dry_run:
            logger.info("Dry run: %d changes planned, nothing applied", summary.total_changes)
            return DeployResult(dry_run=True)

        applied = 0
        completed: list[str] = []
        for stage in stages:
            if stage.is_empty:
                logger.debug("Skipping stage with no changes: %s", stage.name)
                continue
            applied += await self._run_stage(stage)
            completed.append(stage.name)

        logger.info("Deployment complete: %d operations in %d stages", applied, len(completed))
        return DeployResult(applied=applied, stages=tuple(completed))

    async def _run_stage(self, stage: Stage) -> int:
        logger.info("Starting stage: %s (%d operations)", stage.name, len(stage.operations))
        self.metrics.start_stage(stage.name)
        applied = 0
        try:
            for phase in stage.phases():
                result = await run_batch(
                    phase.operations,
                    phase.name,
                    key_of=_operation_key,
                    process=self._apply,
                    concurrency=self.concurrency,
                    sequential=stage.sequential,
                    delay=self.delay,
                    deadline=self.deadline,
                )
                for success in result.successes:
                    self.metrics.record_entity(success.item.entity_type, success.item.kind)

                if result.failures:
                    raise StageAggregateError(
                        phase.name,
                        failures=[(f.item.key, f.error) for f in result.failures],
                        successes=[s.item.key for s in result.successes],
                        recovery_guide=self.recovery_guide,
                    )
                applied += len(result.successes)
        finally:
            self.metrics.end_stage(stage.name)

        logger.info("Finished stage: %s", stage.name)
        return applied

    def _repository(self, section: Section) -> EntityRepository:
        repository = self.repositories.get(section)
        if repository is None:
            raise ConfiguratorError.validation(f"No repository configured for {section.value}")
        return repository

    async def _apply(self, operation: DiffOperation) -> Any:
        repository = self._repository(operation.entity_type)
        remote_id = operation.remote_id or operation.key

        if operation.kind is OperationKind.DELETE:
            await repository.delete(remote_id)
            self._references.record_deleted(operation.entity_type, operation.key)
            return None

        await self._references.ensure_references(operation)
        payload = dict(operation.local_value or {})

        if operation.kind is OperationKind.CREATE:
            created = await repository.create(payload)
            self._references.record_created(operation.entity_type, operation.key)
            return created

        return await repository.update(remote_id, payload)


__all__ = ["DeployResult", "DeploymentOrchestrator"]
