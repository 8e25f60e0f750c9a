"""
Reference checks run before each create or update.

A reference (a category's parent, a product's product type, ...) must name
an entity that exists remotely or was created earlier in the same deploy.
Remote keys are listed lazily, once per section, and the cache is kept in
step with the creates and deletes this run performs.
"""

import asyncio
from collections import defaultdict
from collections.abc import Mapping

from shopform.core.diff.models import DiffOperation
from shopform.core.document.schema import Section, entity_schema
from shopform.core.errors import ConfiguratorError
from shopform.core.remote.repository import EntityRepository


class ReferenceResolver:
    """Tracks which natural keys exist on the remote during one deploy."""

    def __init__(self, repositories: Mapping[Section, EntityRepository]) -> None:
        self._repositories = repositories
        self._known: dict[Section, set[str]] = {}
        self._locks: defaultdict[Section, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def known_keys(self, section: Section) -> set[str]:
        async with self._locks[section]:
            if section not in self._known:
                key_alias = entity_schema(section).key_alias()
                records = await self._repositories[section].list()
                self._known[section] = {
                    str(record[key_alias]) for record in records if key_alias in record
                }
            return self._known[section]

    async def ensure_references(self, operation: DiffOperation) -> None:
        """
        Raise NOT_FOUND for the first reference that names a missing entity.

        Raises:
            ConfiguratorError: kind NOT_FOUND, e.g. "Parent category 'x' not found"
        """
        if operation.entity_type.is_singleton or operation.local_value is None:
            return

        schema = entity_schema(operation.entity_type)
        for field_name, reference in schema.references.items():
            alias = schema.model_fields[field_name].alias or field_name
            value = operation.local_value.get(alias)
            if not value:
                continue
            targets = value if isinstance(value, list) else [value]
            known = await self.known_keys(reference.section)
            for target in targets:
                if str(target) not in known:
                    raise ConfiguratorError.not_found(
                        reference.label,
                        str(target),
                        entity=operation.key,
                        section=operation.entity_type.value,
                    )

    def record_created(self, section: Section, key: str) -> None:
        # Uncached sections pick the entity up from their first listing
        if section in self._known:
            self._known[section].add(key)

    def record_deleted(self, section: Section, key: str) -> None:
        if section in self._known:
            self._known[section].discard(key)


__all__ = ["ReferenceResolver"]
