from __future__ import annotations

import pytest

from billing_import.db.ref_resolution import (
    RefResolutionError,
    build_ref_map,
    group_creates_by_table,
    ordered_columns,
    resolve_refs,
)
from billing_import.models.write_batch import NewRecordRef, WriteBatch


def _batch() -> WriteBatch:
    batch = WriteBatch()
    company = batch.create("companies", "ооо новая", {"name": "ООО Новая"})
    operator = batch.create("operators", "билайн", {"name": "Билайн"})
    batch.create("contracts", "N-1", {"number": "N-1", "company_id": company, "operator_id": operator})
    batch.create("contracts", "N-2", {"number": "N-2", "company_id": 1, "operator_id": operator, "sim_count": 3})
    return batch


def test_group_creates_keeps_first_appearance_order():
    groups = group_creates_by_table(_batch().creates)
    assert [table for table, _ in groups] == ["companies", "operators", "contracts"]
    assert [len(creates) for _, creates in groups] == [1, 1, 2]


def test_build_ref_map_and_resolve():
    batch = _batch()
    groups = dict(group_creates_by_table(batch.creates))
    ref_map = {}
    ref_map.update(build_ref_map(groups["companies"], [10]))
    ref_map.update(build_ref_map(groups["operators"], [20]))

    resolved = [resolve_refs(c.values, ref_map) for c in groups["contracts"]]
    assert resolved[0] == {"number": "N-1", "company_id": 10, "operator_id": 20}
    assert resolved[1]["company_id"] == 1
    # input values untouched
    assert isinstance(groups["contracts"][0].values["company_id"], NewRecordRef)


def test_build_ref_map_count_mismatch():
    batch = _batch()
    with pytest.raises(RefResolutionError):
        build_ref_map(batch.creates, [1])


def test_resolve_unknown_ref_raises():
    with pytest.raises(RefResolutionError) as e:
        resolve_refs({"company_id": NewRecordRef("companies", "x")}, {})
    assert "new:companies:x" in str(e.value)


def test_ordered_columns_union():
    groups = dict(group_creates_by_table(_batch().creates))
    assert ordered_columns(groups["contracts"]) == ["number", "company_id", "operator_id", "sim_count"]


def test_write_batch_counts():
    batch = _batch()
    batch.update("billing_imports", 5, {"status": "applied"})
    assert batch.count("contracts") == 2
    assert len(batch) == 5
