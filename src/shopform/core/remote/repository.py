"""
Entity repositories: the four-call contract the core uses to touch the remote.

The diff and deploy code only ever see the EntityRepository protocol.
``build_repositories`` wires one ApiRepository per section onto a shared
AdminApiClient; tests substitute in-memory implementations.
"""

import re
from typing import Any, Protocol, runtime_checkable

from shopform.core.document.schema import Section
from shopform.core.errors import ConfiguratorError
from shopform.core.remote.client import AdminApiClient

SHOP_PATH = "/shop"


@runtime_checkable
class EntityRepository(Protocol):
    """Remote access for one entity type."""

    async def list(self) -> list[dict[str, Any]]:
        """All entities of this type, in camelCase form, with their ``id``."""
        ...

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def update(self, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def delete(self, entity_id: str) -> None: ...


def resource_path(section: Section) -> str:
    """``taxClasses`` -> ``/tax-classes``."""
    return "/" + re.sub(r"(?<!^)(?=[A-Z])", "-", section.value).lower()


class ApiRepository:
    """EntityRepository for a collection section over the admin API."""

    def __init__(self, client: AdminApiClient, section: Section) -> None:
        self.client = client
        self.section = section
        self.path = resource_path(section)

    async def list(self) -> list[dict[str, Any]]:
        body = await self.client.get(self.path)
        if isinstance(body, dict):
            body = body.get("items", [])
        return list(body or [])

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = await self.client.post(self.path, payload)
        return result

    async def update(self, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = await self.client.patch(f"{self.path}/{entity_id}", payload)
        return result

    async def delete(self, entity_id: str) -> None:
        await self.client.delete(f"{self.path}/{entity_id}")


class ShopRepository:
    """The shop singleton: listed as one record, updated in place, never created."""

    section = Section.SHOP

    def __init__(self, client: AdminApiClient) -> None:
        self.client = client

    async def list(self) -> list[dict[str, Any]]:
        body = await self.client.get(SHOP_PATH)
        return [body] if body else []

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.update("shop", payload)

    async def update(self, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = await self.client.patch(SHOP_PATH, payload)
        return result

    async def delete(self, entity_id: str) -> None:
        raise ConfiguratorError.validation("Shop settings cannot be deleted")


def build_repositories(client: AdminApiClient) -> dict[Section, EntityRepository]:
    """One repository per section, sharing ``client``."""
    repositories: dict[Section, EntityRepository] = {Section.SHOP: ShopRepository(client)}
    for section in Section:
        if not section.is_singleton:
            repositories[section] = ApiRepository(client, section)
    return repositories


__all__ = [
    "ApiRepository",
    "EntityRepository",
    "ShopRepository",
    "build_repositories",
    "resource_path",
]
