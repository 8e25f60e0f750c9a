"""
shopform - declarative configuration for e-commerce instances

Describe a shop in one YAML document, see how it differs from the live
instance, and deploy the difference stage by stage.
"""

__version__ = "0.1.0"

# Re-export core types for convenience
from shopform.core.deploy.orchestrator import DeploymentOrchestrator
from shopform.core.diff.engine import compute_diff
from shopform.core.document.schema import ConfigDocument
from shopform.core.errors import ConfiguratorError, StageAggregateError
from shopform.core.recovery import RecoveryGuide

__all__ = [
    "ConfigDocument",
    "ConfiguratorError",
    "DeploymentOrchestrator",
    "RecoveryGuide",
    "StageAggregateError",
    "__version__",
    "compute_diff",
]
