from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..models.write_batch import NewRecordRef, PendingCreate

"""Placeholder id propagation for write batches.

Parent rows are inserted first; their generated primary keys are collected
into a map keyed by NewRecordRef and propagated into the child rows that
reference them before those are inserted.
"""


class RefResolutionError(Exception):
    """Raised when a child references a record the batch never created."""


def group_creates_by_table(creates: Sequence[PendingCreate]) -> list[tuple[str, list[PendingCreate]]]:
    """Group creates by table, keeping first-appearance table order."""
    groups: dict[str, list[PendingCreate]] = {}
    for create in creates:
        groups.setdefault(create.table, []).append(create)
    return list(groups.items())


def build_ref_map(creates: Sequence[PendingCreate], returned_ids: Sequence[Any]) -> dict[NewRecordRef, Any]:
    if len(creates) != len(returned_ids):
        raise RefResolutionError(
            f"got {len(returned_ids)} ids for {len(creates)} created records"
        )
    return {create.ref: pk for create, pk in zip(creates, returned_ids, strict=True)}


def resolve_refs(values: dict[str, Any], ref_map: dict[NewRecordRef, Any]) -> dict[str, Any]:
    """Return a copy of ``values`` with every NewRecordRef replaced by its id."""
    resolved: dict[str, Any] = {}
    for column, value in values.items():
        if isinstance(value, NewRecordRef):
            if value not in ref_map:
                raise RefResolutionError(f"unresolved reference {value} in column '{column}'")
            value = ref_map[value]
        resolved[column] = value
    return resolved


def ordered_columns(creates: Sequence[PendingCreate]) -> list[str]:
    """Union of value keys across creates, first-appearance order."""
    columns: dict[str, None] = {}
    for create in creates:
        for column in create.values:
            columns.setdefault(column, None)
    return list(columns)
