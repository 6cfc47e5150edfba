"""Storage capability detection: which optional columns a table actually has.

Deployed databases are not always migrated in step with the code, so writes
to optional columns (for example `created_by`, spelled `createdby` on older
tables) go through a ColumnCatalog and `build_insert` instead of hardcoding
the column list. The domain code never needs to know which variant exists.
"""

import logging
import sqlite3
import threading
from functools import cache
from typing import NamedTuple

from . import connection

logger = logging.getLogger(__name__)


class ColumnCatalog:
    """Caches the column names of (schema, table) pairs for the catalog's lifetime.

    Entries are never invalidated; a migration needs a process restart.
    """

    def __init__(self) -> None:
        self._columns: dict[tuple[str, str], frozenset[str]] = {}
        self._lock = threading.Lock()

    def columns_of(self, schema: str, table: str, conn: sqlite3.Connection | None = None) -> frozenset[str]:
        """Return the lower-cased column names of a table, or an empty set if unknown."""
        key = (schema, table)
        cached = self._columns.get(key)
        if cached is not None:
            return cached

        own_conn = conn is None
        try:
            if own_conn:
                conn = connection.get_connection()
            rows = conn.execute(
                "SELECT name FROM pragma_table_info(?, ?)", (table, schema)
            ).fetchall()
        except sqlite3.Error as e:
            # Not cached, so the next call retries the catalog
            logger.warning("Could not read columns of %s.%s: %s", schema, table, e)
            return frozenset()
        finally:
            if own_conn and conn is not None:
                conn.close()

        columns = frozenset(str(row[0]).lower() for row in rows)
        with self._lock:
            self._columns.setdefault(key, columns)
        return self._columns[key]

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._columns


@cache
def default_catalog() -> ColumnCatalog:
    """The process-wide catalog, built on first use."""
    return ColumnCatalog()


def pick_existing(columns, candidates) -> str | None:
    """Return the first candidate column present in `columns` (case-insensitive)."""
    for candidate in candidates:
        if candidate.lower() in columns:
            return candidate
    return None


class InsertStatement(NamedTuple):
    sql: str
    params: list
    skipped: list[str]


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def build_insert(
    table: str,
    values: dict,
    optional_values: dict,
    candidates: dict[str, tuple[str, ...]],
    columns,
) -> InsertStatement:
    """Build a parameterised INSERT.

    `values` are always written. Each entry of `optional_values` is a logical
    field whose physical column is the first of `candidates[field]` present in
    `columns`; fields with no matching column are left out and reported in
    `skipped`.
    """
    names = list(values)
    params = list(values.values())
    skipped = []

    for field, value in optional_values.items():
        column = pick_existing(columns, candidates.get(field, (field,)))
        if column is None:
            skipped.append(field)
            continue
        names.append(column)
        params.append(value)

    column_sql = ", ".join(quote_identifier(n) for n in names)
    placeholders = ", ".join("?" for _ in names)
    sql = f"INSERT INTO {quote_identifier(table)} ({column_sql}) VALUES ({placeholders})"
    return InsertStatement(sql, params, skipped)
