from __future__ import annotations

import pytest

import billing_import.db.batch_insert as bi
from billing_import.db.memory_store import InMemoryStore
from billing_import.db.postgres_store import PostgresStore, resolve_dsn
from billing_import.db.store import ImportNotFoundError, LocalFileLoader, WriteBatchError
from billing_import.models.config_models import DatabaseConfig
from billing_import.models.write_batch import WriteBatch


def test_memory_store_load_file():
    store = InMemoryStore({"f1": b"data"})
    assert store.load_file("f1") == b"data"
    assert store.tables["billing_imports"]["f1"]["status"] == "pending"
    with pytest.raises(ImportNotFoundError):
        store.load_file("nope")


def test_memory_store_sim_uniqueness_across_variants(seeded_store):
    batch = WriteBatch()
    batch.create("sim_cards", "9001234567", {"number": "9001234567"})
    with pytest.raises(WriteBatchError):
        seeded_store.write_batch(batch)


def test_memory_store_tariff_uniqueness_ignores_case(seeded_store):
    operator_id = next(iter(seeded_store.tables["operators"]))
    batch = WriteBatch()
    batch.create("companies", "x", {"name": "X"})
    batch.create("tariffs", "t", {"operator_id": operator_id, "name": " тестовый "})
    with pytest.raises(WriteBatchError):
        seeded_store.write_batch(batch)
    # the company insert was rolled back with the batch
    assert [c["name"] for c in seeded_store.tables["companies"].values()] == ["ООО Ромашка"]


def test_memory_store_applies_updates_with_refs():
    store = InMemoryStore({7: b"x"})
    batch = WriteBatch()
    ref = batch.create("companies", "n", {"name": "N"})
    batch.update("billing_imports", 7, {"status": "applied", "company_id": ref})
    counts = store.write_batch(batch)
    assert counts == {"companies": 1}
    row = store.tables["billing_imports"][7]
    assert row["status"] == "applied"
    assert store.tables["companies"][row["company_id"]]["name"] == "N"


def test_memory_store_update_unknown_record_fails():
    batch = WriteBatch()
    batch.update("billing_imports", 99, {"status": "applied"})
    with pytest.raises(WriteBatchError):
        InMemoryStore().write_batch(batch)


def test_local_file_loader(tmp_path):
    f = tmp_path / "bill.csv"
    f.write_bytes(b"abc")
    assert LocalFileLoader().load_file(str(f)) == b"abc"
    assert LocalFileLoader(tmp_path).load_file("bill.csv") == b"abc"
    with pytest.raises(ImportNotFoundError):
        LocalFileLoader(tmp_path).load_file("missing.csv")


class DummyCursor:
    def __init__(self, results: dict[str, list[tuple]] | None = None) -> None:
        self.executed: list[tuple[str, tuple | None]] = []
        self.inserted: list[tuple[str, list]] = []
        self.results = results or {}
        self._last: list[tuple] = []
        self._next_id = 100
        self.fail_on: str | None = None

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        for prefix, rows in self.results.items():
            if sql.startswith(prefix):
                self._last = rows
                return
        self._last = []

    def fetchone(self):
        return self._last[0] if self._last else None

    def fetchall(self):
        return self._last


@pytest.fixture()
def fake_execute_values(monkeypatch):
    def fake(cursor, sql, rows, page_size=1000, fetch=False):
        if cursor.fail_on and cursor.fail_on in sql:
            raise RuntimeError("duplicate key value violates unique constraint")
        cursor.inserted.append((sql, list(rows)))
        ids = []
        for _ in rows:
            ids.append((cursor._next_id,))
            cursor._next_id += 1
        return ids if fetch else None

    monkeypatch.setattr(bi, "execute_values", fake)


def test_postgres_store_load_file():
    cur = DummyCursor({"SELECT file FROM billing_imports": [(memoryview(b"bytes"),)]})
    assert PostgresStore(cur).load_file(1) == b"bytes"
    assert cur.executed[0][1] == (1,)
    with pytest.raises(ImportNotFoundError):
        PostgresStore(DummyCursor()).load_file(2)


def test_postgres_store_query_master_data():
    cur = DummyCursor(
        {
            "SELECT id, number, company_id": [(1, "123", 2, 3)],
            "SELECT id, name FROM operators": [(3, "МТС")],
            "SELECT id, number FROM sim_cards": [(4, "79001234567")],
            "SELECT id, operator_id, name FROM tariffs": [(5, 3, "Тестовый")],
            "SELECT id, name FROM companies": [(2, "ООО Ромашка")],
        }
    )
    snapshot = PostgresStore(cur).query_master_data()
    assert snapshot.contracts[0].number == "123"
    assert snapshot.operators[0].name == "МТС"
    assert snapshot.sim_cards[0].number == "79001234567"
    assert snapshot.tariffs[0].operator_id == 3
    assert snapshot.companies[0].name == "ООО Ромашка"


def test_postgres_store_write_batch_propagates_ids(fake_execute_values):
    cur = DummyCursor()
    batch = WriteBatch()
    company = batch.create("companies", "n", {"name": "N"})
    batch.create("contracts", "A-1", {"number": "A-1", "company_id": company})
    batch.update("billing_imports", 9, {"status": "applied"})

    store = PostgresStore(cur, page_size=10)
    counts = store.write_batch(batch)
    assert counts == {"companies": 1, "contracts": 1}
    assert cur.inserted[1][1] == [("A-1", 100)]
    statements = [sql for sql, _ in cur.executed]
    assert statements[0] == "BEGIN"
    assert statements[-1] == "COMMIT"
    assert cur.executed[1] == ('UPDATE billing_imports SET "status" = %s WHERE id = %s', ("applied", 9))
    assert [m.table for m in store.metrics] == ["companies", "contracts"]


def test_postgres_store_write_batch_rolls_back(fake_execute_values):
    cur = DummyCursor()
    cur.fail_on = "contracts"
    batch = WriteBatch()
    batch.create("companies", "n", {"name": "N"})
    batch.create("contracts", "A-1", {"number": "A-1"})
    with pytest.raises(WriteBatchError):
        PostgresStore(cur).write_batch(batch)
    statements = [sql for sql, _ in cur.executed]
    assert statements == ["BEGIN", "ROLLBACK"]


def test_resolve_dsn_priority(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    cfg = DatabaseConfig(host="db", port=5433, user="u", database="billing")
    assert resolve_dsn(cfg) == "host=db port=5433 user=u dbname=billing"

    monkeypatch.setenv("PGHOST", "envhost")
    monkeypatch.setenv("PGPASSWORD", "pw")
    assert resolve_dsn(cfg) == "host=envhost port=5433 user=u dbname=billing password=pw"

    monkeypatch.setenv("DATABASE_URL", "postgresql://x/y")
    assert resolve_dsn(cfg) == "postgresql://x/y"
