"""
Structural diff between a local desired-state document and a remote snapshot.

The engine performs no I/O. Entities are paired by natural key, never by
remote id:

- key only local   -> CREATE
- key only remote  -> DELETE
- key on both sides and any compared field differs -> UPDATE

Comparison runs on the pydantic models, so unset fields already hold their
schema default on both sides. A local value of ``None`` means the field is
not managed and is skipped. Nested models are compared field by field
(``address.city``), lists of scalars as sets, and lists of records as sets
keyed by their declared sub-key (``countryRates[PL].rate``).

Operations come out grouped by section in deployment order, then by
natural key ascending, so the same inputs always give the same list.

Example:
    >>> summary = compute_diff(local, remote, DiffScope.from_names(include="shop"))
    >>> summary.total_changes
    1
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from shopform.core.diff.models import DiffOperation, DiffSummary, FieldChange, OperationKind
from shopform.core.document.schema import (
    ConfigDocument,
    Entity,
    SchemaModel,
    Section,
    ShopSettings,
    ensure_unique_keys,
)
from shopform.core.errors import ConfiguratorError

logger = logging.getLogger(__name__)

SHOP_KEY = "shop"
IGNORED_FIELDS = frozenset({"id"})


def _split_names(value: str | Iterable[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    names: list[str] = []
    for chunk in value:
        names.extend(part.strip() for part in chunk.split(",") if part.strip())
    return names


def _parse_sections(names: list[str], flag: str) -> tuple[Section, ...]:
    sections: list[Section] = []
    invalid: list[str] = []
    for name in names:
        try:
            sections.append(Section.parse(name))
        except ValueError:
            invalid.append(name)
    if invalid:
        available = ", ".join(section.value for section in Section)
        raise ConfiguratorError.validation(
            f"Invalid sections specified in {flag}: {', '.join(invalid)}. "
            f"Available sections: {available}",
            invalid=invalid,
        )
    return tuple(sections)


@dataclass(frozen=True)
class DiffScope:
    """
    Which sections a diff (and the deploy built on it) covers.

    ``include`` and ``exclude`` are mutually exclusive. An empty scope
    covers every section.
    """

    include: tuple[Section, ...] = ()
    exclude: tuple[Section, ...] = ()

    def __post_init__(self) -> None:
        if self.include and self.exclude:
            raise ConfiguratorError.validation(
                "Cannot use --include and --exclude together",
                include=[s.value for s in self.include],
                exclude=[s.value for s in self.exclude],
            )

    @classmethod
    def from_names(
        cls,
        include: str | Iterable[str] | None = None,
        exclude: str | Iterable[str] | None = None,
    ) -> "DiffScope":
        """
        Build a scope from CLI-style section names.

        Accepts comma-separated strings or iterables of them; names match
        document sections case-insensitively.

        Raises:
            ConfiguratorError: VALIDATION for unknown names or when both
                include and exclude are given
        """
        include_names = _split_names(include)
        exclude_names = _split_names(exclude)
        if include_names and exclude_names:
            raise ConfiguratorError.validation(
                "Cannot use --include and --exclude together",
                include=include_names,
                exclude=exclude_names,
            )
        return cls(
            include=_parse_sections(include_names, "--include"),
            exclude=_parse_sections(exclude_names, "--exclude"),
        )

    def includes(self, section: Section) -> bool:
        if self.include:
            return section in self.include
        return section not in self.exclude

    def sections(self) -> tuple[Section, ...]:
        """In-scope sections in deployment order."""
        return tuple(section for section in Section if self.includes(section))

    @property
    def is_filtered(self) -> bool:
        return bool(self.include or self.exclude)


def dump_model(model: SchemaModel, *, keep_id: bool = False) -> dict[str, Any]:
    """Serialize a model the way operations carry it: camelCase, no unset Nones."""
    exclude = None if keep_id else IGNORED_FIELDS
    return model.model_dump(mode="json", by_alias=True, exclude_none=True, exclude=exclude)


def _plain(value: Any) -> Any:
    if isinstance(value, SchemaModel):
        return dump_model(value)
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def _set_key(value: Any) -> Any:
    return repr(_plain(value)) if isinstance(value, (SchemaModel, dict, list)) else value


def compare_models(local: SchemaModel, remote: SchemaModel, prefix: str = "") -> list[FieldChange]:
    """
    Compare two models of the same schema field by field.

    Args:
        local: Desired state
        remote: Current state
        prefix: Dotted path of the enclosing field, for nested models

    Returns:
        One FieldChange per differing leaf, in schema field order
    """
    changes: list[FieldChange] = []
    schema = type(local)
    for name, info in schema.model_fields.items():
        if name in IGNORED_FIELDS:
            continue
        local_value = getattr(local, name)
        if local_value is None:
            continue
        path = f"{prefix}{info.alias or name}"
        remote_value = getattr(remote, name)
        changes.extend(
            _compare_values(path, local_value, remote_value, schema.sub_keys.get(name))
        )
    return changes


def _compare_values(
    path: str, local_value: Any, remote_value: Any, sub_key: str | None
) -> list[FieldChange]:
    if isinstance(local_value, SchemaModel):
        if remote_value is None:
            return [FieldChange(field=path, before=None, after=_plain(local_value))]
        return compare_models(local_value, remote_value, prefix=f"{path}.")

    if isinstance(local_value, list):
        remote_items = remote_value or []
        if sub_key is not None:
            return _compare_keyed(path, local_value, remote_items, sub_key)
        local_set = {_set_key(item) for item in local_value}
        remote_set = {_set_key(item) for item in remote_items}
        if local_set == remote_set:
            return []
        return [
            FieldChange(
                field=path,
                before=sorted(_plain(remote_items), key=str),
                after=sorted(_plain(local_value), key=str),
            )
        ]

    if local_value == remote_value:
        return []
    return [FieldChange(field=path, before=_plain(remote_value), after=_plain(local_value))]


def _compare_keyed(
    path: str,
    local_items: Sequence[SchemaModel],
    remote_items: Sequence[SchemaModel],
    sub_key: str,
) -> list[FieldChange]:
    local_by_key = {str(getattr(item, sub_key)): item for item in local_items}
    remote_by_key = {str(getattr(item, sub_key)): item for item in remote_items}

    changes: list[FieldChange] = []
    for key in sorted(local_by_key.keys() | remote_by_key.keys()):
        item_path = f"{path}[{key}]"
        local_item = local_by_key.get(key)
        remote_item = remote_by_key.get(key)
        if remote_item is None:
            changes.append(FieldChange(field=item_path, before=None, after=_plain(local_item)))
        elif local_item is None:
            changes.append(FieldChange(field=item_path, before=_plain(remote_item), after=None))
        else:
            changes.extend(compare_models(local_item, remote_item, prefix=f"{item_path}."))
    return changes


def _diff_shop(local: ShopSettings | None, remote: ShopSettings | None) -> list[DiffOperation]:
    if local is None:
        return []
    current = remote if remote is not None else ShopSettings()
    changes = compare_models(local, current)
    if not changes:
        return []
    return [
        DiffOperation(
            entity_type=Section.SHOP,
            kind=OperationKind.UPDATE,
            key=SHOP_KEY,
            local_value=dump_model(local),
            remote_value=dump_model(current, keep_id=True),
            changed_fields=tuple(changes),
        )
    ]


def _diff_collection(
    section: Section, local: Sequence[Entity], remote: Sequence[Entity]
) -> list[DiffOperation]:
    local_by_key = {entity.key: entity for entity in local}
    remote_by_key = {entity.key: entity for entity in remote}

    operations: list[DiffOperation] = []
    for key in sorted(local_by_key.keys() | remote_by_key.keys()):
        desired = local_by_key.get(key)
        current = remote_by_key.get(key)
        if current is None:
            operations.append(
                DiffOperation(
                    entity_type=section,
                    kind=OperationKind.CREATE,
                    key=key,
                    local_value=dump_model(desired),
                )
            )
        elif desired is None:
            operations.append(
                DiffOperation(
                    entity_type=section,
                    kind=OperationKind.DELETE,
                    key=key,
                    remote_value=dump_model(current, keep_id=True),
                )
            )
        else:
            changes = compare_models(desired, current)
            if changes:
                operations.append(
                    DiffOperation(
                        entity_type=section,
                        kind=OperationKind.UPDATE,
                        key=key,
                        local_value=dump_model(desired),
                        remote_value=dump_model(current, keep_id=True),
                        changed_fields=tuple(changes),
                    )
                )
    return operations


def compute_diff(
    local: ConfigDocument, remote: ConfigDocument, scope: DiffScope | None = None
) -> DiffSummary:
    """
    Compute the operations that turn ``remote`` into ``local``.

    Args:
        local: Desired-state document
        remote: Current remote state, in the same shape
        scope: Sections to compare (all when omitted)

    Returns:
        DiffSummary with operations ordered by section, then natural key

    Raises:
        ConfiguratorError: DUPLICATE when either side repeats a natural key
            in an in-scope section
    """
    scope = scope or DiffScope()
    sections = scope.sections()

    ensure_unique_keys(local, sections)
    ensure_unique_keys(remote, sections)

    operations: list[DiffOperation] = []
    for section in sections:
        if section.is_singleton:
            operations.extend(_diff_shop(local.shop, remote.shop))
        else:
            operations.extend(
                _diff_collection(section, local.entities(section), remote.entities(section))
            )

    summary = DiffSummary(operations=tuple(operations))
    logger.info(
        "Diff complete: %d changes (%d creates, %d updates, %d deletes)",
        summary.total_changes,
        summary.creates,
        summary.updates,
        summary.deletes,
    )
    return summary


__all__ = ["DiffScope", "SHOP_KEY", "compare_models", "compute_diff", "dump_model"]
