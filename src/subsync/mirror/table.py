"""
Durable tabular mirror of the remote membership list.

The mirror behaves like a spreadsheet: row 1 is the header, data rows follow
in insertion order and are never reordered. It is stored as a DuckDB table
(one per mirror id) whose ``row_number`` column keeps the sheet row.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import ibis

from subsync.connections.base import BaseConnection
from subsync.connections.sql import execute_statement, fetch_rows, sql_value
from subsync.core.types import MirrorRecord
from subsync.exceptions import ConfigurationError, MirrorError
from subsync.utils.logging import get_logger

logger = get_logger("subsync.mirror")

# One table per mirror, in the default schema like the checkpoint table
TABLE_PREFIX = "mirror_"
HEADER: tuple[str, str, str] = ("Channel ID", "Channel Name", "Channel URL")
COLUMNS: tuple[str, str, str] = ("identifier", "display_name", "url")
HEADER_ROW = 1

_MIRROR_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def validate_mirror_id(mirror_id: str | None) -> str:
    """Return the mirror id if it can name a table, else raise ConfigurationError."""
    if not mirror_id or not _MIRROR_ID.match(mirror_id):
        raise ConfigurationError(
            f"Invalid mirror id {mirror_id!r}: use letters, digits and underscores, starting with a letter",
            details={"mirror_id": mirror_id},
        )
    return mirror_id


class MirrorTable:
    """
    Append-only mirror table.

    Supports exactly the operations the sync jobs need: ``append_rows``,
    ``read_column`` and ``last_row_index``. Every database failure is raised
    as MirrorError, which the engine treats as fatal.
    """

    def __init__(self, connection: BaseConnection, mirror_id: str):
        self._conn_wrapper = connection
        self.mirror_id = validate_mirror_id(mirror_id)
        self.table_name = f"{TABLE_PREFIX}{self.mirror_id}"
        self.table = f'"{self.table_name}"'

    @classmethod
    def from_backend(cls, backend: ibis.BaseBackend, mirror_id: str) -> MirrorTable:
        """Wrap an already-open ibis backend (used for in-memory databases)."""
        from subsync.connections.duckdb import DuckDBConnection

        wrapper = DuckDBConnection("mirror", {"type": "duckdb"})
        wrapper._connection = backend
        return cls(wrapper, mirror_id)

    @property
    def _conn(self) -> ibis.BaseBackend:
        try:
            return self._conn_wrapper.connection
        except Exception as e:
            raise MirrorError(f"Mirror store unavailable: {e}", details={"mirror_id": self.mirror_id}) from e

    def exists(self) -> bool:
        try:
            rows = fetch_rows(
                self._conn,
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_catalog = current_database() AND table_schema = current_schema() "
                f"AND table_name = {sql_value(self.table_name)}",
            )
        except MirrorError:
            raise
        except Exception as e:
            raise MirrorError(f"Could not inspect mirror {self.mirror_id}: {e}") from e
        return bool(rows)

    def ensure(self) -> None:
        """Create the mirror table if it does not exist yet."""
        try:
            execute_statement(
                self._conn,
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    row_number BIGINT PRIMARY KEY,
                    identifier VARCHAR NOT NULL,
                    display_name VARCHAR,
                    url VARCHAR
                )
                """,
            )
        except MirrorError:
            raise
        except Exception as e:
            raise MirrorError(f"Could not create mirror {self.mirror_id}: {e}") from e

    @staticmethod
    def header() -> tuple[str, str, str]:
        return HEADER

    def last_row_index(self) -> int:
        """Index of the last used row; 1 (the header) when there is no data."""
        rows = self._query(f"SELECT COALESCE(MAX(row_number), {HEADER_ROW}) AS last_row FROM {self.table}")
        return int(rows[0][0])

    def row_count(self) -> int:
        """Number of data rows."""
        return self.last_row_index() - HEADER_ROW

    def read_column(self, column: str = "identifier", start_row: int = HEADER_ROW + 1) -> list[str]:
        """
        Values of one column from ``start_row`` down, in row order.

        Args:
            column: One of ``identifier``, ``display_name``, ``url``
            start_row: First sheet row to read (default: first data row)
        """
        if column not in COLUMNS:
            raise ValueError(f"Unknown mirror column {column!r}; expected one of {COLUMNS}")
        rows = self._query(
            f"SELECT {column} FROM {self.table} WHERE row_number >= {int(start_row)} ORDER BY row_number"
        )
        return [value for (value,) in rows]

    def read_records(self) -> list[MirrorRecord]:
        rows = self._query(f"SELECT identifier, display_name, url FROM {self.table} ORDER BY row_number")
        return [MirrorRecord(identifier=i, display_name=n or "", url=u or "") for i, n, u in rows]

    def append_rows(self, records: Sequence[MirrorRecord]) -> int:
        """
        Append records after the last row in one write.

        The whole batch is a single INSERT, so either every row lands or none
        does.

        Returns:
            Number of rows appended
        """
        if not records:
            return 0
        first_row = self.last_row_index() + 1
        values = ",\n".join(
            f"({first_row + offset}, {sql_value(r.identifier)}, {sql_value(r.display_name)}, {sql_value(r.url)})"
            for offset, r in enumerate(records)
        )
        try:
            execute_statement(
                self._conn,
                f"INSERT INTO {self.table} (row_number, identifier, display_name, url) VALUES\n{values}",
            )
        except Exception as e:
            raise MirrorError(
                f"Could not append {len(records)} rows to mirror {self.mirror_id}: {e}",
                details={"mirror_id": self.mirror_id, "first_row": first_row},
            ) from e
        logger.debug(f"Appended rows {first_row}-{first_row + len(records) - 1} to mirror {self.mirror_id}")
        return len(records)

    def _query(self, query: str) -> list[tuple]:
        try:
            return fetch_rows(self._conn, query)
        except MirrorError:
            raise
        except Exception as e:
            raise MirrorError(f"Could not read mirror {self.mirror_id}: {e}", details={"mirror_id": self.mirror_id}) from e
