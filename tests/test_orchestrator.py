"""
Tests for the deployment orchestrator.

Runs diffs against the in-memory remote from conftest and checks stage
ordering, fail-fast behavior, reference checks and convergence.
"""

import pytest

from shopform.core.deadline import Deadline
from shopform.core.deploy.metrics import MetricsCollector
from shopform.core.deploy.orchestrator import DeploymentOrchestrator
from shopform.core.diff.engine import compute_diff
from shopform.core.diff.models import OperationKind
from shopform.core.document.schema import ConfigDocument, Section
from shopform.core.errors import ConfiguratorError, ErrorKind, StageAggregateError
from shopform.core.remote.snapshot import fetch_remote_document


async def diff_against(repositories, local: ConfigDocument):
    remote = await fetch_remote_document(repositories)
    return compute_diff(local, remote)


class TestDeploy:
    """Tests for DeploymentOrchestrator.deploy."""

    @pytest.mark.asyncio
    async def test_applies_creates_in_stage_order(self, repositories, sample_document) -> None:
        """Test channel and categories are created, channels first."""
        summary = await diff_against(repositories, sample_document)

        result = await DeploymentOrchestrator(repositories).deploy(summary)

        assert result.applied == 3
        assert result.stages == ("Managing Channels", "Managing Categories")
        assert repositories[Section.CHANNELS].keys() == ["default"]
        assert repositories[Section.CATEGORIES].keys() == ["electronics", "phones"]

    @pytest.mark.asyncio
    async def test_redeploy_converges(self, repositories, sample_document) -> None:
        """Test that a second diff after deploy is empty."""
        summary = await diff_against(repositories, sample_document)
        await DeploymentOrchestrator(repositories).deploy(summary)

        second = await diff_against(repositories, sample_document)

        assert second.total_changes == 0

    @pytest.mark.asyncio
    async def test_updates_use_remote_id(self, repo_factory) -> None:
        """Test an update goes to the matched remote record."""
        repositories = repo_factory(
            {
                Section.CHANNELS: [
                    {"name": "Old", "slug": "eu", "currencyCode": "EUR", "defaultCountry": "DE"}
                ]
            }
        )
        local = ConfigDocument.model_validate(
            {"channels": [{"name": "Europe", "slug": "eu", "currencyCode": "EUR", "defaultCountry": "DE"}]}
        )
        summary = await diff_against(repositories, local)

        await DeploymentOrchestrator(repositories).deploy(summary)

        assert repositories[Section.CHANNELS].records[0]["name"] == "Europe"
        assert repositories[Section.CHANNELS].calls[-1] == ("update", "eu")

    @pytest.mark.asyncio
    async def test_deletes_run_before_creates(self, repo_factory) -> None:
        """Test that within a stage deletes happen first."""
        repositories = repo_factory({Section.PAGE_TYPES: [{"name": "Old"}]})
        local = ConfigDocument.model_validate({"pageTypes": [{"name": "New"}]})
        summary = await diff_against(repositories, local)

        await DeploymentOrchestrator(repositories).deploy(summary)

        mutations = [call for call in repositories[Section.PAGE_TYPES].calls if call[0] != "list"]
        assert mutations == [("delete", "Old"), ("create", "New")]

    @pytest.mark.asyncio
    async def test_shop_update(self, repositories) -> None:
        """Test shop settings are patched in place."""
        local = ConfigDocument.model_validate({"shop": {"headerText": "Acme"}})
        summary = await diff_against(repositories, local)

        await DeploymentOrchestrator(repositories).deploy(summary)

        assert repositories[Section.SHOP].records[0]["headerText"] == "Acme"

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, repositories, sample_document) -> None:
        """Test dry run plans but does not call the repositories."""
        summary = await diff_against(repositories, sample_document)

        result = await DeploymentOrchestrator(repositories).deploy(summary, dry_run=True)

        assert result.dry_run is True
        assert result.applied == 0
        assert repositories[Section.CATEGORIES].records == []

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, repositories, sample_document) -> None:
        """Test entity counts and stage timings are collected."""
        metrics = MetricsCollector()
        summary = await diff_against(repositories, sample_document)

        await DeploymentOrchestrator(repositories, metrics=metrics).deploy(summary)

        snapshot = metrics.complete()
        assert snapshot.entity_counts[Section.CATEGORIES].created == 2
        assert snapshot.total_applied == 3
        assert set(snapshot.stage_durations) == {"Managing Channels", "Managing Categories"}

    def test_invalid_concurrency(self, repositories) -> None:
        """Test that concurrency < 1 is rejected."""
        with pytest.raises(ValueError):
            DeploymentOrchestrator(repositories, concurrency=0)


class TestStageFailure:
    """Tests for failing stages."""

    @pytest.mark.asyncio
    async def test_missing_parent_fails_only_that_category(self, repositories) -> None:
        """Test one bad parent fails one of three categories with a suggestion."""
        local = ConfigDocument.model_validate(
            {
                "categories": [
                    {"name": "Electronics", "slug": "electronics"},
                    {"name": "Phones", "slug": "phones", "parent": "electronics"},
                    {"name": "Kids", "slug": "kids", "parent": "missing-parent"},
                ]
            }
        )
        summary = await diff_against(repositories, local)

        with pytest.raises(StageAggregateError) as exc_info:
            await DeploymentOrchestrator(repositories).deploy(summary)

        error = exc_info.value
        assert error.stage_name == "Creating Categories"
        assert error.successes == ("electronics", "phones")
        assert [f.entity for f in error.failures] == ["kids"]
        assert str(error.failures[0].error) == "Parent category 'missing-parent' not found"

        message = error.get_user_message()
        assert message.splitlines()[0] == "Creating Categories - 1 of 3 failed"
        assert "Define parent category 'missing-parent' in categories" in message
        assert repositories[Section.CATEGORIES].keys() == ["electronics", "phones"]

    @pytest.mark.asyncio
    async def test_failure_stops_later_stages(self, repo_factory) -> None:
        """Test that stages after a failed one never run."""
        repositories = repo_factory(
            fail_keys={Section.CHANNELS: {"eu": ConfiguratorError.permission("forbidden")}}
        )
        local = ConfigDocument.model_validate(
            {
                "channels": [
                    {"name": "EU", "slug": "eu", "currencyCode": "EUR", "defaultCountry": "DE"},
                    {"name": "US", "slug": "us", "currencyCode": "USD", "defaultCountry": "US"},
                ],
                "categories": [{"name": "Shoes", "slug": "shoes"}],
            }
        )
        summary = await diff_against(repositories, local)

        with pytest.raises(StageAggregateError) as exc_info:
            await DeploymentOrchestrator(repositories).deploy(summary)

        assert exc_info.value.stage_name == "Creating Channels"
        assert exc_info.value.kind is ErrorKind.STAGE_FAILURE
        assert repositories[Section.CHANNELS].keys() == ["us"]
        assert repositories[Section.CATEGORIES].calls == [("list", "")]

    @pytest.mark.asyncio
    async def test_failure_stops_later_phases(self, repo_factory) -> None:
        """Test a failed delete phase prevents the create phase."""
        repositories = repo_factory(
            {Section.PAGE_TYPES: [{"name": "Old"}]},
            fail_keys={Section.PAGE_TYPES: {"Old": RuntimeError("in use")}},
        )
        local = ConfigDocument.model_validate({"pageTypes": [{"name": "New"}]})
        summary = await diff_against(repositories, local)

        with pytest.raises(StageAggregateError) as exc_info:
            await DeploymentOrchestrator(repositories).deploy(summary)

        assert exc_info.value.stage_name == "Deleting Page Types"
        assert ("create", "New") not in repositories[Section.PAGE_TYPES].calls

    @pytest.mark.asyncio
    async def test_missing_reference_to_other_section(self, repositories) -> None:
        """Test a product naming an unknown product type fails with NOT_FOUND."""
        local = ConfigDocument.model_validate(
            {
                "categories": [{"name": "Shirts", "slug": "shirts"}],
                "products": [
                    {"name": "Tee", "slug": "tee", "productType": "Apparel", "category": "shirts"}
                ],
            }
        )
        summary = await diff_against(repositories, local)

        with pytest.raises(StageAggregateError) as exc_info:
            await DeploymentOrchestrator(repositories).deploy(summary)

        failure = exc_info.value.failures[0]
        assert isinstance(failure.error, ConfiguratorError)
        assert failure.error.kind is ErrorKind.NOT_FOUND
        assert str(failure.error) == "Product type 'Apparel' not found"

    @pytest.mark.asyncio
    async def test_expired_deadline_is_timeout_not_stage_failure(
        self, repositories, sample_document
    ) -> None:
        """Test that an expired deadline surfaces as TIMEOUT."""
        now = [0.0]
        deadline = Deadline(1, clock=lambda: now[0])
        summary = await diff_against(repositories, sample_document)
        now[0] = 5.0

        with pytest.raises(ConfiguratorError) as exc_info:
            await DeploymentOrchestrator(repositories, deadline=deadline).deploy(summary)

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert not isinstance(exc_info.value, StageAggregateError)

    @pytest.mark.asyncio
    async def test_only_successful_operations_counted(self, repo_factory) -> None:
        """Test metrics include only the items that succeeded."""
        repositories = repo_factory(
            fail_keys={Section.WAREHOUSES: {"b": RuntimeError("nope")}}
        )
        metrics = MetricsCollector()
        local = ConfigDocument.model_validate(
            {"warehouses": [{"name": "A", "slug": "a"}, {"name": "B", "slug": "b"}]}
        )
        summary = await diff_against(repositories, local)

        with pytest.raises(StageAggregateError):
            await DeploymentOrchestrator(repositories, metrics=metrics).deploy(summary)

        counts = metrics.complete().entity_counts[Section.WAREHOUSES]
        assert counts.created == 1
        assert summary.for_section(Section.WAREHOUSES)[0].kind is OperationKind.CREATE


class CascadingCategories:
    """Category repository that removes a category's subtree along with it."""

    def __init__(self, inner) -> None:
        self.inner = inner

    @property
    def records(self):
        return self.inner.records

    async def list(self):
        return await self.inner.list()

    async def create(self, payload):
        return await self.inner.create(payload)

    async def update(self, entity_id, payload):
        return await self.inner.update(entity_id, payload)

    async def delete(self, entity_id) -> None:
        slugs = {r["slug"] for r in self.records if r["id"] == entity_id}
        await self.inner.delete(entity_id)
        while slugs:
            children = [r for r in self.records if r.get("parent") in slugs]
            slugs = {r["slug"] for r in children}
            for child in children:
                self.records.remove(child)


class TestConvergence:
    """Tests that a deploy reaches the desired state."""

    @pytest.mark.asyncio
    async def test_category_subtree_deleted_leaf_first(self, repo_factory) -> None:
        """Test deleting a category tree succeeds when the remote cascades deletes."""
        repositories = repo_factory(
            {
                Section.CATEGORIES: [
                    {"name": "Root", "slug": "a-root"},
                    {"name": "Child", "slug": "b-child", "parent": "a-root"},
                ]
            }
        )
        repositories[Section.CATEGORIES] = CascadingCategories(repositories[Section.CATEGORIES])
        summary = await diff_against(repositories, ConfigDocument())

        result = await DeploymentOrchestrator(repositories).deploy(summary)

        assert result.applied == 2
        assert repositories[Section.CATEGORIES].records == []
        mutations = [c for c in repositories[Section.CATEGORIES].inner.calls if c[0] != "list"]
        assert mutations == [("delete", "b-child"), ("delete", "a-root")]

    @pytest.mark.asyncio
    async def test_updates_and_deletes_converge(self, repo_factory) -> None:
        """Test keyed sub-list updates plus deletes leave nothing to diff."""
        repositories = repo_factory(
            {
                Section.TAX_CLASSES: [
                    {
                        "name": "Standard",
                        "countryRates": [
                            {"countryCode": "PL", "rate": 23},
                            {"countryCode": "DE", "rate": 19},
                        ],
                    },
                    {"name": "Legacy"},
                ],
                Section.PRODUCT_TYPES: [{"name": "Apparel"}],
                Section.CATEGORIES: [{"name": "Shirts", "slug": "shirts"}],
                Section.PRODUCTS: [
                    {
                        "name": "Tee",
                        "slug": "tee",
                        "productType": "Apparel",
                        "category": "shirts",
                        "variants": [
                            {"sku": "tee-s", "name": "Small"},
                            {"sku": "tee-m", "name": "Medium"},
                        ],
                    },
                    {
                        "name": "Old Tee",
                        "slug": "old-tee",
                        "productType": "Apparel",
                        "category": "shirts",
                    },
                ],
            }
        )
        local = ConfigDocument.model_validate(
            {
                "taxClasses": [
                    {
                        "name": "Standard",
                        "countryRates": [
                            {"countryCode": "PL", "rate": 8},
                            {"countryCode": "FR", "rate": 20},
                        ],
                    }
                ],
                "productTypes": [{"name": "Apparel"}],
                "categories": [{"name": "Shirts", "slug": "shirts"}],
                "products": [
                    {
                        "name": "Tee",
                        "slug": "tee",
                        "productType": "Apparel",
                        "category": "shirts",
                        "variants": [
                            {"sku": "tee-s", "name": "Small fit"},
                            {"sku": "tee-l", "name": "Large"},
                        ],
                    }
                ],
            }
        )
        summary = await diff_against(repositories, local)

        assert summary.updates == 2
        assert summary.deletes == 2
        standard = summary.for_section(Section.TAX_CLASSES)[-1]
        assert [c.field for c in standard.changed_fields] == [
            "countryRates[DE]",
            "countryRates[FR]",
            "countryRates[PL].rate",
        ]

        await DeploymentOrchestrator(repositories).deploy(summary)
        second = await diff_against(repositories, local)

        assert second.total_changes == 0
        assert repositories[Section.TAX_CLASSES].keys() == ["Standard"]
        assert repositories[Section.PRODUCTS].keys() == ["tee"]
