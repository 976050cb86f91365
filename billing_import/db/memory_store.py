from __future__ import annotations

import copy
from typing import Any

from ..models.master_data import Company, Contract, MasterDataSnapshot, Operator, SimCard, Tariff
from ..models.write_batch import WriteBatch
from ..services.normalization import phone_variants, tariff_key
from .ref_resolution import RefResolutionError, build_ref_map, group_creates_by_table, resolve_refs
from .store import ImportNotFoundError, WriteBatchError

"""In-memory master data store.

Used by tests and by the CLI mock mode. Mirrors the uniqueness constraints of
db/schema.sql (contract number, SIM number across phone variants, operator +
tariff name) so two applies racing for the same natural key fail the second
batch instead of duplicating data. Batches are all-or-nothing.
"""


class InMemoryStore:
    def __init__(self, files: dict[Any, bytes] | None = None) -> None:
        self.files: dict[Any, bytes] = {}
        self.tables: dict[str, dict[Any, dict[str, Any]]] = {
            "companies": {},
            "operators": {},
            "contracts": {},
            "tariffs": {},
            "sim_cards": {},
            "expenses": {},
            "billing_imports": {},
        }
        self._next_id = 1
        for file_id, data in (files or {}).items():
            self.add_file(file_id, data)

    # -- seeding helpers -------------------------------------------------

    def insert(self, table: str, values: dict[str, Any]) -> int:
        """Insert a row directly (test/seed helper), returning its new id."""
        pk = self._next_id
        self._next_id += 1
        self.tables[table][pk] = {"id": pk, **values}
        return pk

    def add_file(self, file_id: Any, data: bytes) -> None:
        self.files[file_id] = data
        self.tables["billing_imports"][file_id] = {"id": file_id, "status": "pending"}

    # -- collaborator interface -----------------------------------------

    def load_file(self, file_id: Any) -> bytes:
        if file_id not in self.files:
            raise ImportNotFoundError(f"billing import not found: {file_id}")
        return self.files[file_id]

    def query_master_data(self) -> MasterDataSnapshot:
        t = self.tables
        return MasterDataSnapshot(
            contracts=[
                Contract(id=r["id"], number=r["number"], company_id=r["company_id"], operator_id=r["operator_id"])
                for r in t["contracts"].values()
            ],
            operators=[Operator(id=r["id"], name=r["name"]) for r in t["operators"].values()],
            sim_cards=[SimCard(id=r["id"], number=r["number"]) for r in t["sim_cards"].values()],
            tariffs=[
                Tariff(id=r["id"], operator_id=r["operator_id"], name=r["name"])
                for r in t["tariffs"].values()
            ],
            companies=[Company(id=r["id"], name=r["name"]) for r in t["companies"].values()],
        )

    def write_batch(self, batch: WriteBatch) -> dict[str, int]:
        saved_tables = copy.deepcopy(self.tables)
        saved_next_id = self._next_id
        try:
            counts = self._apply(batch)
        except (WriteBatchError, RefResolutionError, KeyError) as e:
            self.tables = saved_tables
            self._next_id = saved_next_id
            raise WriteBatchError(str(e)) from e
        return counts

    # -- internals -------------------------------------------------------

    def _check_unique(self, table: str, values: dict[str, Any]) -> None:
        rows = self.tables[table].values()
        if table == "contracts":
            if any(r["number"] == values["number"] for r in rows):
                raise WriteBatchError(f"duplicate contract number {values['number']}")
        elif table == "sim_cards":
            wanted = set(phone_variants(values["number"]))
            if any(wanted & set(phone_variants(r["number"])) for r in rows):
                raise WriteBatchError(f"duplicate sim card {values['number']}")
        elif table == "tariffs":
            key = tariff_key(values["operator_id"], values["name"])
            if any(tariff_key(r["operator_id"], r["name"]) == key for r in rows):
                raise WriteBatchError(f"duplicate tariff {values['name']}")

    def _apply(self, batch: WriteBatch) -> dict[str, int]:
        ref_map: dict[Any, Any] = {}
        counts: dict[str, int] = {}
        for table, creates in group_creates_by_table(batch.creates):
            ids = []
            for create in creates:
                values = resolve_refs(create.values, ref_map)
                self._check_unique(table, values)
                ids.append(self.insert(table, values))
            ref_map.update(build_ref_map(creates, ids))
            counts[table] = len(creates)
        for update in batch.updates:
            row = self.tables[update.table][update.id]
            row.update(resolve_refs(update.values, ref_map))
        return counts
