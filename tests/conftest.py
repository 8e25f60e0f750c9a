"""
Pytest configuration and shared fixtures.

Provides an in-memory EntityRepository, sample desired-state documents,
and an isolated settings environment used across the test suite.
"""

import itertools
from pathlib import Path
from typing import Any

import pytest

from shopform.core.config import clear_cache
from shopform.core.document.schema import ConfigDocument, Section, entity_schema
from shopform.core.errors import ConfiguratorError

# ==============================================================================
# In-memory remote
# ==============================================================================


class InMemoryRepository:
    """
    EntityRepository backed by a list of dicts.

    Records get ids of the form ``<section>-<n>``. ``fail_keys`` maps a
    natural key to the exception raised when that entity is created,
    updated or deleted.
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        section: Section,
        records: list[dict[str, Any]] | None = None,
        *,
        fail_keys: dict[str, Exception] | None = None,
    ) -> None:
        self.section = section
        self.key_field = None if section.is_singleton else entity_schema(section).key_alias()
        self.records: list[dict[str, Any]] = []
        self.fail_keys = fail_keys or {}
        self.calls: list[tuple[str, str]] = []
        for record in records or []:
            self.records.append({"id": self._new_id(), **record})

    def _new_id(self) -> str:
        return f"{self.section.value}-{next(self._ids)}"

    def _key(self, record: dict[str, Any]) -> str:
        if self.key_field is None:
            return "shop"
        return str(record.get(self.key_field))

    def _check(self, key: str) -> None:
        if key in self.fail_keys:
            raise self.fail_keys[key]

    def keys(self) -> list[str]:
        return [self._key(record) for record in self.records]

    async def list(self) -> list[dict[str, Any]]:
        self.calls.append(("list", ""))
        return [dict(record) for record in self.records]

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        key = self._key(payload)
        self.calls.append(("create", key))
        self._check(key)
        record = {**payload, "id": self._new_id()}
        self.records.append(record)
        return dict(record)

    async def update(self, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self.key_field is None:
            self.calls.append(("update", "shop"))
            if not self.records:
                self.records.append({"id": self._new_id()})
            self.records[0].update(payload)
            return dict(self.records[0])

        for record in self.records:
            if record["id"] == entity_id:
                key = self._key(record)
                self.calls.append(("update", key))
                self._check(key)
                record.update(payload)
                return dict(record)
        raise ConfiguratorError.not_found(self.section.label, entity_id)

    async def delete(self, entity_id: str) -> None:
        for record in self.records:
            if record["id"] == entity_id:
                key = self._key(record)
                self.calls.append(("delete", key))
                self._check(key)
                self.records.remove(record)
                return
        raise ConfiguratorError.not_found(self.section.label, entity_id)


def make_repositories(
    remote: dict[Section, list[dict[str, Any]]] | None = None,
    *,
    fail_keys: dict[Section, dict[str, Exception]] | None = None,
) -> dict[Section, InMemoryRepository]:
    """One InMemoryRepository per section, seeded from ``remote``."""
    remote = remote or {}
    fail_keys = fail_keys or {}
    return {
        section: InMemoryRepository(
            section, remote.get(section), fail_keys=fail_keys.get(section)
        )
        for section in Section
    }


@pytest.fixture
def repositories() -> dict[Section, InMemoryRepository]:
    """Empty in-memory remote."""
    return make_repositories()


@pytest.fixture
def repo_factory():
    """The make_repositories factory, for tests that seed remote state."""
    return make_repositories


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


def _channel(slug: str = "default", **overrides: Any) -> dict[str, Any]:
    data = {
        "name": slug.title(),
        "slug": slug,
        "currencyCode": "USD",
        "defaultCountry": "US",
    }
    data.update(overrides)
    return data


def _category(slug: str, parent: str | None = None, **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"name": slug.title(), "slug": slug}
    if parent is not None:
        data["parent"] = parent
    data.update(overrides)
    return data


@pytest.fixture
def sample_document() -> ConfigDocument:
    """One channel and two categories, nothing else."""
    return ConfigDocument.model_validate(
        {
            "channels": [_channel("default")],
            "categories": [_category("electronics"), _category("phones", parent="electronics")],
        }
    )


@pytest.fixture
def sample_yaml() -> str:
    return """\
shop:
  headerText: Acme Store
channels:
  - name: Default
    slug: default
    currencyCode: USD
    defaultCountry: US
categories:
  - name: Electronics
    slug: electronics
  - name: Phones
    slug: phones
    parent: electronics
"""


# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Run in an empty project directory with no user config and no SHOPFORM_* vars.

    Returns:
        The project directory (also the working directory)
    """
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    for name in ("SHOPFORM_URL", "SHOPFORM_TOKEN", "SHOPFORM_TIMEOUT", "SHOPFORM_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield project
    clear_cache()
