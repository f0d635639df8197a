from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Protocol

import psycopg2
from psycopg2.extensions import QueryCanceledError

from .insert import (
    BatchInsertError,
    BatchMetrics,
    StoreError,
    StoreUnavailableError,
    batch_insert,
)

"""Tutor graph stores.

The orchestrator only talks to the TutorStore protocol:

- begin_record / commit_record / rollback_record: one transaction per tutor row
- sub_record(part): a savepoint around one dependent record, so a failing part
  is undone on its own while the rest of the graph is kept
- create_identity / insert_rows / role lookup: the writes themselves

PostgresTutorStore runs this over a psycopg2 cursor; DryRunStore keeps
everything in memory (--dry-run and tests) and can be told to fail
at given rows or parts.
"""

__all__ = [
    "StoreError",
    "StoreUnavailableError",
    "TutorStore",
    "PostgresTutorStore",
    "DryRunStore",
]

logger = logging.getLogger(__name__)


class TutorStore(Protocol):
    def begin_record(self, row_number: int) -> None: ...
    def commit_record(self) -> None: ...
    def rollback_record(self) -> None: ...
    def sub_record(self, part: str) -> Any: ...
    def email_exists(self, email: str) -> bool: ...
    def user_code_exists(self, user_code: str) -> bool: ...
    def create_identity(self, values: Mapping[str, Any]) -> str: ...
    def insert_rows(self, table_key: str, rows: Sequence[Mapping[str, Any]]) -> int: ...
    def find_role_id(self, role_code: str) -> str | None: ...
    def assign_role(self, user_id: str, role_id: str) -> None: ...


def _columns(rows: Sequence[Mapping[str, Any]]) -> list[str]:
    cols: list[str] = []
    for r in rows:
        for k in r:
            if k not in cols:
                cols.append(k)
    return cols


class PostgresTutorStore:
    """psycopg2-backed store; the cursor's connection must not be in autocommit mode."""

    def __init__(
        self,
        cursor: Any,
        tables: Mapping[str, str],
        statement_timeout_ms: int | None = None,
        page_size: int = 1000,
    ) -> None:
        self.cursor = cursor
        self.tables = dict(tables)
        self.statement_timeout_ms = statement_timeout_ms
        self.page_size = page_size
        self._savepoint_seq = 0
        self._role_ids: dict[str, str | None] = {}

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self.cursor.execute(sql, params)
        except QueryCanceledError as e:
            raise StoreError(f"statement timed out: {sql.split()[0]}") from e
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StoreUnavailableError(f"database connection lost: {e}") from e
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def _fetchone(self, sql: str, params: Sequence[Any]) -> tuple[Any, ...] | None:
        self._execute(sql, params)
        try:
            return self.cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"failed fetching result: {e}") from e

    def _log_metrics(self, m: BatchMetrics) -> None:
        logger.debug("insert table=%s rows=%d elapsed=%.4fs", m.table, m.batch_size, m.elapsed_seconds)

    def prepare_session(self) -> None:
        """Apply the per-statement timeout for this session and close any open transaction."""
        if self.statement_timeout_ms is not None:
            self._execute("SET statement_timeout = %s", (int(self.statement_timeout_ms),))
        self._execute("COMMIT")

    def begin_record(self, row_number: int) -> None:
        self._execute("BEGIN")

    def commit_record(self) -> None:
        self._execute("COMMIT")

    def rollback_record(self) -> None:
        self._execute("ROLLBACK")

    @contextmanager
    def sub_record(self, part: str) -> Iterator[None]:
        self._savepoint_seq += 1
        name = f"sp_{self._savepoint_seq}"
        self._execute(f"SAVEPOINT {name}")
        try:
            yield
        except StoreError:
            self._execute(f"ROLLBACK TO SAVEPOINT {name}")
            raise
        self._execute(f"RELEASE SAVEPOINT {name}")

    def email_exists(self, email: str) -> bool:
        table = self.tables["identity"]
        row = self._fetchone(f"SELECT 1 FROM {table} WHERE lower(email) = lower(%s) LIMIT 1", (email,))
        return row is not None

    def user_code_exists(self, user_code: str) -> bool:
        table = self.tables["identity"]
        row = self._fetchone(f"SELECT 1 FROM {table} WHERE user_code = %s LIMIT 1", (user_code,))
        return row is not None

    def create_identity(self, values: Mapping[str, Any]) -> str:
        columns = list(values)
        result = batch_insert(
            self.cursor,
            self.tables["identity"],
            columns,
            [[values[c] for c in columns]],
            returning="id",
            page_size=self.page_size,
            metrics_callback=self._log_metrics,
        )
        if not result.returned_values:
            raise BatchInsertError(f"{self.tables['identity']}: no id returned")
        return str(result.returned_values[0][0])

    def insert_rows(self, table_key: str, rows: Sequence[Mapping[str, Any]]) -> int:
        if not rows:
            return 0
        columns = _columns(rows)
        result = batch_insert(
            self.cursor,
            self.tables[table_key],
            columns,
            [[r.get(c) for c in columns] for r in rows],
            page_size=self.page_size,
            metrics_callback=self._log_metrics,
        )
        return result.inserted_rows

    def find_role_id(self, role_code: str) -> str | None:
        if role_code not in self._role_ids:
            table = self.tables["roles"]
            row = self._fetchone(f"SELECT id FROM {table} WHERE role_code = %s LIMIT 1", (role_code,))
            self._role_ids[role_code] = str(row[0]) if row is not None else None
        return self._role_ids[role_code]

    def assign_role(self, user_id: str, role_id: str) -> None:
        table = self.tables["identity"]
        self._execute(f"UPDATE {table} SET primary_role_id = %s WHERE id = %s", (role_id, user_id))


class DryRunStore:
    """In-memory TutorStore.

    Parameters
    ----------
    existing_emails / existing_codes: identities that already "exist"
    fail_identity_rows: rows whose identity insert fails
    fail_parts: row -> parts (e.g. {"banking"}) whose insert fails
    unavailable_from_row: from this row on the store behaves as unreachable
    roles: role_code -> id
    """

    def __init__(
        self,
        existing_emails: Sequence[str] = (),
        existing_codes: Sequence[str] = (),
        fail_identity_rows: Sequence[int] = (),
        fail_parts: Mapping[int, Sequence[str]] | None = None,
        unavailable_from_row: int | None = None,
        roles: Mapping[str, str] | None = None,
    ) -> None:
        self.committed: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._emails = {e.lower() for e in existing_emails}
        self._codes = set(existing_codes)
        self.fail_identity_rows = set(fail_identity_rows)
        self.fail_parts = {row: set(parts) for row, parts in (fail_parts or {}).items()}
        self.unavailable_from_row = unavailable_from_row
        self.roles = dict(roles) if roles is not None else {"tutor": "role-tutor"}
        self._pending: dict[str, list[dict[str, Any]]] | None = None
        self._row: int | None = None
        self._part: str | None = None
        self._next_id = 1

    def _check_open(self) -> dict[str, list[dict[str, Any]]]:
        if self._pending is None:
            raise StoreError("no record transaction in progress")
        return self._pending

    def begin_record(self, row_number: int) -> None:
        if self.unavailable_from_row is not None and row_number >= self.unavailable_from_row:
            raise StoreUnavailableError("database connection lost (simulated)")
        self._row = row_number
        self._pending = defaultdict(list)

    def commit_record(self) -> None:
        pending = self._check_open()
        for key, rows in pending.items():
            self.committed[key].extend(rows)
            if key == "identity":
                for r in rows:
                    self._emails.add(str(r.get("email", "")).lower())
                    self._codes.add(r.get("user_code"))
        self._pending = None

    def rollback_record(self) -> None:
        self._pending = None

    @contextmanager
    def sub_record(self, part: str) -> Iterator[None]:
        pending = self._check_open()
        snapshot = {k: len(v) for k, v in pending.items()}
        self._part = part
        try:
            yield
        except StoreError:
            for k in list(pending):
                del pending[k][snapshot.get(k, 0):]
            raise
        finally:
            self._part = None

    def email_exists(self, email: str) -> bool:
        return email.lower() in self._emails

    def user_code_exists(self, user_code: str) -> bool:
        return user_code in self._codes

    def create_identity(self, values: Mapping[str, Any]) -> str:
        pending = self._check_open()
        if self._row in self.fail_identity_rows:
            raise BatchInsertError("identity: duplicate key value violates unique constraint (simulated)")
        user_id = f"dry-{self._next_id:06d}"
        self._next_id += 1
        pending["identity"].append({"id": user_id, **values})
        return user_id

    def insert_rows(self, table_key: str, rows: Sequence[Mapping[str, Any]]) -> int:
        pending = self._check_open()
        failing = self.fail_parts.get(self._row or -1, set())
        if self._part in failing or table_key in failing:
            raise BatchInsertError(f"{table_key}: insert failed (simulated)")
        pending[table_key].extend(dict(r) for r in rows)
        return len(rows)

    def find_role_id(self, role_code: str) -> str | None:
        return self.roles.get(role_code)

    def assign_role(self, user_id: str, role_id: str) -> None:
        pending = self._check_open()
        if "role" in self.fail_parts.get(self._row or -1, set()):
            raise StoreError("role assignment failed (simulated)")
        for r in pending["identity"]:
            if r["id"] == user_id:
                r["primary_role_id"] = role_id

    def rows(self, table_key: str) -> list[dict[str, Any]]:
        return list(self.committed.get(table_key, []))
