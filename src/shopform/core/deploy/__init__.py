"""Deployment: stage planning, batch execution, orchestration, reports."""

from shopform.core.deploy.batch import BatchResult, normalize_error, run_batch
from shopform.core.deploy.orchestrator import DeploymentOrchestrator, DeployResult
from shopform.core.deploy.stages import Stage, plan_stages

__all__ = [
    "BatchResult",
    "DeployResult",
    "DeploymentOrchestrator",
    "Stage",
    "normalize_error",
    "plan_stages",
    "run_batch",
]
