"""Remote admin API access: client, repositories, snapshots."""

from shopform.core.remote.client import AdminApiClient
from shopform.core.remote.repository import EntityRepository, build_repositories
from shopform.core.remote.retry import RetryConfig
from shopform.core.remote.snapshot import fetch_remote_document

__all__ = [
    "AdminApiClient",
    "EntityRepository",
    "RetryConfig",
    "build_repositories",
    "fetch_remote_document",
]
