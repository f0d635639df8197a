from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extensions import QueryCanceledError
from psycopg2.extras import execute_values

from ..errors import ImportFatalError

"""Batched INSERT helper on top of psycopg2.extras.execute_values.

Driver errors are split in two:
- StoreUnavailableError: the connection is gone (OperationalError / InterfaceError);
  the batch cannot continue.
- BatchInsertError (a StoreError): the statement itself failed (constraint, type, ...); only
  the current record or sub-record is affected.
"""

__all__ = [
    "StoreError",
    "BatchInsertError",
    "StoreUnavailableError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]


class StoreError(Exception):
    """A statement failed; the current record (or sub-record) is affected, not the batch."""


class BatchInsertError(StoreError):
    pass


class StoreUnavailableError(ImportFatalError):
    """Backing store unreachable; aborts the whole batch."""


@dataclass(frozen=True)
class BatchMetrics:
    table: str
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: str | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """INSERT ``rows`` into ``table`` with execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (taken from config, may be schema qualified)
    columns: column names, quoted here
    rows: value tuples in ``columns`` order
    returning: column to return for every inserted row (e.g. generated ``id``)
    metrics_callback: receives timing for the statement; not called for empty input
    """
    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(_quote_ident(c) for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if returning:
        sql += f" RETURNING {_quote_ident(returning)}"

    start_time = time.time()
    try:
        returned = execute_values(
            cursor, sql, rows_list, page_size=page_size, fetch=bool(returning)
        )
    except QueryCanceledError as e:  # statement_timeout hit; the row fails, the batch goes on
        raise BatchInsertError(f"{table}: statement timed out") from e
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
        raise StoreUnavailableError(f"database connection lost: {e}") from e
    except psycopg2.Error as e:
        raise BatchInsertError(f"{table}: {str(e).strip()}") from e
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

    return InsertResult(
        inserted_rows=len(rows_list),
        returned_values=list(returned) if returning else None,
    )
