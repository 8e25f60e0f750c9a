"""Tests for the stage planner."""

from shopform.core.deploy.stages import order_categories_by_depth, plan_stages
from shopform.core.diff.models import DiffOperation, DiffSummary, OperationKind
from shopform.core.document.schema import Section


def op(section: Section, key: str, kind: OperationKind = OperationKind.CREATE, **local) -> DiffOperation:
    return DiffOperation(
        entity_type=section,
        kind=kind,
        key=key,
        local_value=None if kind is OperationKind.DELETE else {"slug": key, **local},
        remote_value={"id": f"id-{key}"} if kind is not OperationKind.CREATE else None,
    )


class TestPlanStages:
    """Tests for plan_stages."""

    def test_every_section_gets_a_stage_in_order(self) -> None:
        """Test that stages follow the fixed dependency order."""
        stages = plan_stages(DiffSummary())

        assert [stage.entity_type for stage in stages] == list(Section)
        assert all(stage.is_empty for stage in stages)

    def test_stage_names(self) -> None:
        """Test stage display names."""
        stages = plan_stages(DiffSummary())

        assert stages[0].name == "Managing Shop Settings"
        assert stages[7].name == "Managing Categories"

    def test_operations_grouped_by_section(self) -> None:
        """Test that each stage carries only its section's operations."""
        summary = DiffSummary(
            operations=(
                op(Section.CHANNELS, "eu"),
                op(Section.PRODUCTS, "shirt"),
                op(Section.CHANNELS, "us"),
            )
        )

        stages = {stage.entity_type: stage for stage in plan_stages(summary)}

        assert [o.key for o in stages[Section.CHANNELS].operations] == ["eu", "us"]
        assert [o.key for o in stages[Section.PRODUCTS].operations] == ["shirt"]
        assert stages[Section.CATEGORIES].is_empty

    def test_only_categories_are_sequential(self) -> None:
        """Test the categories stage runs one item at a time."""
        sequential = [stage.entity_type for stage in plan_stages(DiffSummary()) if stage.sequential]

        assert sequential == [Section.CATEGORIES]


class TestPhases:
    """Tests for Stage.phases."""

    def test_deletes_then_creates_then_updates(self) -> None:
        """Test phase order inside a stage."""
        summary = DiffSummary(
            operations=(
                op(Section.CHANNELS, "a", OperationKind.UPDATE),
                op(Section.CHANNELS, "b", OperationKind.CREATE),
                op(Section.CHANNELS, "c", OperationKind.DELETE),
            )
        )
        stage = plan_stages(summary)[1]

        phases = stage.phases()

        assert [phase.name for phase in phases] == [
            "Deleting Channels",
            "Creating Channels",
            "Updating Channels",
        ]
        assert [phase.operations[0].key for phase in phases] == ["c", "b", "a"]

    def test_empty_phases_are_omitted(self) -> None:
        """Test that a create-only stage has a single phase."""
        summary = DiffSummary(operations=(op(Section.CATEGORIES, "shoes"),))
        stage = plan_stages(summary)[7]

        assert [phase.name for phase in stage.phases()] == ["Creating Categories"]


class TestCategoryOrdering:
    """Tests for order_categories_by_depth."""

    def test_parents_before_children(self) -> None:
        """Test a chain listed child-first comes out parent-first."""
        operations = [
            op(Section.CATEGORIES, "a-phones", parent="b-electronics"),
            op(Section.CATEGORIES, "b-electronics", parent="c-root"),
            op(Section.CATEGORIES, "c-root"),
        ]

        ordered = order_categories_by_depth(operations)

        assert [o.key for o in ordered] == ["c-root", "b-electronics", "a-phones"]

    def test_existing_parent_adds_no_depth(self) -> None:
        """Test a parent outside the operation set counts as depth zero."""
        operations = [
            op(Section.CATEGORIES, "kids", parent="already-remote"),
            op(Section.CATEGORIES, "adults"),
        ]

        assert [o.key for o in order_categories_by_depth(operations)] == ["adults", "kids"]

    def test_cycle_terminates(self) -> None:
        """Test that a parent cycle does not loop forever."""
        operations = [
            op(Section.CATEGORIES, "x", parent="y"),
            op(Section.CATEGORIES, "y", parent="x"),
        ]

        assert len(order_categories_by_depth(operations)) == 2

    def test_deletes_children_before_parents(self) -> None:
        """Test deletes follow the remote tree leaf-first."""
        operations = [
            DiffOperation(
                entity_type=Section.CATEGORIES,
                kind=OperationKind.DELETE,
                key=key,
                remote_value={"id": f"id-{key}", "slug": key, **({"parent": parent} if parent else {})},
            )
            for key, parent in [("a-root", None), ("b-child", "a-root"), ("c-grandchild", "b-child")]
        ]

        ordered = order_categories_by_depth(operations)

        assert [o.key for o in ordered] == ["c-grandchild", "b-child", "a-root"]

    def test_deletes_and_creates_ordered_independently(self) -> None:
        """Test delete depth comes from the remote tree and create depth from the local one."""
        operations = [
            op(Section.CATEGORIES, "new-child", parent="new-root"),
            op(Section.CATEGORIES, "new-root"),
            DiffOperation(
                entity_type=Section.CATEGORIES,
                kind=OperationKind.DELETE,
                key="old-root",
                remote_value={"id": "id-old-root", "slug": "old-root"},
            ),
            DiffOperation(
                entity_type=Section.CATEGORIES,
                kind=OperationKind.DELETE,
                key="old-child",
                remote_value={"id": "id-old-child", "slug": "old-child", "parent": "old-root"},
            ),
        ]

        ordered = order_categories_by_depth(operations)

        assert [o.key for o in ordered] == ["old-child", "old-root", "new-root", "new-child"]
