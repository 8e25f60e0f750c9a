"""
Build a ConfigDocument from the remote instance's current state.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from shopform.core.document.loader import format_validation_errors
from shopform.core.document.schema import (
    SECTION_SCHEMAS,
    ConfigDocument,
    Section,
    ShopSettings,
)
from shopform.core.errors import ConfiguratorError
from shopform.core.remote.repository import EntityRepository

logger = logging.getLogger(__name__)


async def _list_section(
    section: Section, repositories: Mapping[Section, EntityRepository]
) -> tuple[Section, list[dict[str, Any]]]:
    repository = repositories.get(section)
    if repository is None:
        raise ConfiguratorError.validation(f"No repository configured for {section.value}")
    return section, await repository.list()


def _from_remote(section: Section, record: dict[str, Any]) -> Any:
    schema = SECTION_SCHEMAS[section]
    try:
        return schema.from_remote(record)
    except ValidationError as e:
        key = "shop" if section.is_singleton else record.get(schema.key_alias(), "<unknown>")
        errors = format_validation_errors(e)
        details = "\n".join(f"  - {line}" for line in errors)
        raise ConfiguratorError.validation(
            f"Remote {section.value} entry '{key}' failed validation:\n{details}",
            section=section.value,
            entity=str(key),
            errors=errors,
        ) from e


async def fetch_remote_document(
    repositories: Mapping[Section, EntityRepository],
    sections: Iterable[Section] | None = None,
) -> ConfigDocument:
    """
    List the requested sections concurrently and assemble a snapshot.

    Fields the schemas don't declare are ignored, so newer API versions
    returning extra data don't break the diff.

    Args:
        repositories: Repository per section
        sections: Sections to fetch (all when omitted); others stay empty

    Returns:
        ConfigDocument of the remote state
    """
    wanted = list(sections) if sections is not None else list(Section)
    logger.debug("Fetching remote state for: %s", ", ".join(s.value for s in wanted))

    results = await asyncio.gather(*(_list_section(s, repositories) for s in wanted))

    document = ConfigDocument()
    for section, records in results:
        if section.is_singleton:
            document.shop = _from_remote(section, records[0]) if records else ShopSettings()
            continue
        setattr(document, section.field_name, [_from_remote(section, r) for r in records])
    return document


__all__ = ["fetch_remote_document"]
