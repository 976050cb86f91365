from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..models.config_models import DatabaseConfig
from ..models.master_data import Company, Contract, MasterDataSnapshot, Operator, SimCard, Tariff
from ..models.write_batch import WriteBatch
from .batch_insert import BatchMetrics, batch_insert
from .ref_resolution import (
    build_ref_map,
    group_creates_by_table,
    ordered_columns,
    resolve_refs,
)
from .store import DatabaseConnectError, ImportNotFoundError, WriteBatchError

"""PostgreSQL backed store.

One write batch is one transaction: creates are inserted table by table with
RETURNING "id" so later tables can reference new parents, then updates run,
then COMMIT. Any failure rolls the whole batch back. Uniqueness of contract
numbers, SIM numbers and operator tariffs is enforced by db/schema.sql.
"""

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection DSN.

    Priority: DATABASE_URL / PGDSN, then the config dsn, then individual
    PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE with config fallbacks.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (needs a live server)
    """Yield a psycopg2 cursor; transactions are driven by PostgresStore."""
    try:
        import psycopg2  # type: ignore
    except ImportError as e:
        raise DatabaseConnectError(f"psycopg2 not available: {e}") from e

    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise DatabaseConnectError(str(e)) from e
    conn.autocommit = True  # PostgresStore issues BEGIN/COMMIT itself
    cur = conn.cursor()
    try:
        yield cur
    finally:
        cur.close()
        conn.close()


class PostgresStore:
    def __init__(self, cursor: Any, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.page_size = page_size
        self.metrics: list[BatchMetrics] = []

    def load_file(self, import_id: Any) -> bytes:
        self.cursor.execute("SELECT file FROM billing_imports WHERE id = %s", (import_id,))
        row = self.cursor.fetchone()
        if row is None or row[0] is None:
            raise ImportNotFoundError(f"billing import not found: {import_id}")
        return bytes(row[0])

    def _select(self, sql: str) -> list[tuple[Any, ...]]:
        self.cursor.execute(sql)
        return list(self.cursor.fetchall())

    def query_master_data(self) -> MasterDataSnapshot:
        return MasterDataSnapshot(
            contracts=[
                Contract(id=r[0], number=r[1], company_id=r[2], operator_id=r[3])
                for r in self._select("SELECT id, number, company_id, operator_id FROM contracts")
            ],
            operators=[Operator(id=r[0], name=r[1]) for r in self._select("SELECT id, name FROM operators")],
            sim_cards=[SimCard(id=r[0], number=r[1]) for r in self._select("SELECT id, number FROM sim_cards")],
            tariffs=[
                Tariff(id=r[0], operator_id=r[1], name=r[2])
                for r in self._select("SELECT id, operator_id, name FROM tariffs")
            ],
            companies=[Company(id=r[0], name=r[1]) for r in self._select("SELECT id, name FROM companies")],
        )

    def write_batch(self, batch: WriteBatch) -> dict[str, int]:
        cursor = self.cursor
        counts: dict[str, int] = {}
        cursor.execute("BEGIN")
        try:
            ref_map: dict[Any, Any] = {}
            for table, creates in group_creates_by_table(batch.creates):
                columns = ordered_columns(creates)
                rows = []
                for create in creates:
                    values = resolve_refs(create.values, ref_map)
                    rows.append(tuple(values.get(c) for c in columns))
                result = batch_insert(
                    cursor,
                    table,
                    columns,
                    rows,
                    returning="id",
                    page_size=self.page_size,
                    metrics_callback=self.metrics.append,
                )
                ref_map.update(build_ref_map(creates, [r[0] for r in result.returned_values or []]))
                counts[table] = result.inserted_rows
                logger.debug("inserted table=%s rows=%d", table, result.inserted_rows)
            for update in batch.updates:
                values = resolve_refs(update.values, ref_map)
                assignments = ", ".join(f'"{c}" = %s' for c in values)
                cursor.execute(
                    f"UPDATE {update.table} SET {assignments} WHERE id = %s",
                    (*values.values(), update.id),
                )
            cursor.execute("COMMIT")
        except Exception as e:
            try:
                cursor.execute("ROLLBACK")
            except Exception as rb_e:  # pragma: no cover
                logger.error("rollback failed: %s", rb_e)
            raise WriteBatchError(str(e)) from e
        return counts
