"""
Diff against the live remote instance.

Fetches only the in-scope sections, then hands both documents to the pure
engine.
"""

import logging
from collections.abc import Mapping

from shopform.core.diff.engine import DiffScope, compute_diff
from shopform.core.diff.models import DiffSummary
from shopform.core.document.schema import ConfigDocument, Section
from shopform.core.remote.repository import EntityRepository
from shopform.core.remote.snapshot import fetch_remote_document

logger = logging.getLogger(__name__)


class DiffService:
    """Compares a local document with the remote state behind ``repositories``."""

    def __init__(self, repositories: Mapping[Section, EntityRepository]) -> None:
        self.repositories = repositories

    async def compare(self, local: ConfigDocument, scope: DiffScope | None = None) -> DiffSummary:
        scope = scope or DiffScope()
        sections = scope.sections()
        logger.info("Starting diff for %d sections", len(sections))
        remote = await fetch_remote_document(self.repositories, sections)
        return compute_diff(local, remote, scope)


__all__ = ["DiffService"]
