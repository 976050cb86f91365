from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

"""DB batch insert helper.

Batched INSERT via psycopg2.extras.execute_values. When ``returning`` is set
the generated primary keys are fetched for every page (fetch=True), in input
order, so callers can map natural keys to new ids.
"""

try:  # pragma: no cover - optional until psycopg2 present at runtime
    import psycopg2
    from psycopg2.extras import execute_values
except ImportError:  # pragma: no cover
    psycopg2 = None  # type: ignore
    execute_values = None  # type: ignore


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batch insert call."""
    table: str
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: str | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier, never user input)
    columns: insert columns
    rows: row value sequences, same order as ``columns``
    returning: column to return per inserted row (usually "id"), or None
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the call; not invoked for
        empty ``rows``
    """
    if execute_values is None:
        raise BatchInsertError("psycopg2 not available")

    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if returning:
        sql += f' RETURNING "{returning}"'

    start_time = time.time()
    returned = None
    try:
        result = execute_values(
            cursor, sql, rows_list, page_size=page_size, fetch=bool(returning)
        )
        if returning:
            returned = list(result or [])
    except Exception as e:
        raise BatchInsertError(f"{table}: {e}") from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    table=table,
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    if returning and len(returned or []) != len(rows_list):
        raise BatchInsertError(
            f"{table}: expected {len(rows_list)} RETURNING rows, got {len(returned or [])}"
        )
    return InsertResult(inserted_rows=len(rows_list), returned_values=returned)
