"""
Checkpoint store.

Durable key -> value storage for the resume position of each job and for the
configured mirror id. Backed by a DuckDB table through ibis; every read goes
to the database so the next scheduled invocation always sees the last write.
"""

from __future__ import annotations

import ibis

from subsync.connections.base import BaseConnection
from subsync.connections.sql import escape_sql_string, execute_statement, fetch_rows
from subsync.exceptions import StateStoreError
from subsync.utils.logging import get_logger

logger = get_logger("subsync.state")

# Persisted keys
PULL_CURSOR = "pull_cursor"
PUSH_INDEX = "push_index"
MIRROR_ID = "mirror_id"

# Lives in the default schema; DuckDB names the catalog after the database
# file, and a schema of the same name makes qualified references ambiguous
CHECKPOINT_TABLE = "subsync_checkpoints"


class CheckpointStore:
    """
    Key/value checkpoint storage.

    Any failure to reach or use the database raises StateStoreError. There is
    no retry here: the scheduler's next tick is the retry.
    """

    def __init__(self, connection: BaseConnection):
        """
        Initialize checkpoint store.

        Args:
            connection: Connection wrapper for the state database
        """
        self._conn_wrapper = connection
        self._initialized = False

    @classmethod
    def from_backend(cls, backend: ibis.BaseBackend) -> CheckpointStore:
        """Wrap an already-open ibis backend (used for in-memory databases)."""
        from subsync.connections.duckdb import DuckDBConnection

        wrapper = DuckDBConnection("state", {"type": "duckdb"})
        wrapper._connection = backend
        return cls(wrapper)

    def _get_connection(self) -> ibis.BaseBackend:
        try:
            conn = self._conn_wrapper.connection
        except Exception as e:
            raise StateStoreError(
                f"Checkpoint store unavailable: {e}", details={"connection": self._conn_wrapper.name}
            ) from e
        if not self._initialized:
            self._initialize_schema(conn)
        return conn

    def _initialize_schema(self, conn: ibis.BaseBackend) -> None:
        """Create the checkpoint table if it doesn't exist."""
        try:
            execute_statement(
                conn,
                f"""
                CREATE TABLE IF NOT EXISTS {CHECKPOINT_TABLE} (
                    key VARCHAR PRIMARY KEY,
                    value VARCHAR NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """,
            )
        except Exception as e:
            raise StateStoreError(f"Could not create checkpoint table: {e}") from e
        self._initialized = True
        logger.debug(f"Checkpoint store initialized ({CHECKPOINT_TABLE})")

    def get(self, key: str) -> str | None:
        """
        Get the stored value for a key.

        Returns:
            The value, or ``None`` if the key has never been set or was deleted.
        """
        conn = self._get_connection()
        try:
            rows = fetch_rows(conn, f"SELECT value FROM {CHECKPOINT_TABLE} WHERE key = '{escape_sql_string(key)}'")
        except Exception as e:
            raise StateStoreError(f"Could not read checkpoint '{key}': {e}", details={"key": key}) from e
        if not rows:
            return None
        return rows[0][0]

    def set(self, key: str, value: str | int) -> None:
        """
        Store a value for a key, replacing any previous value.

        A single upsert statement: the old value stays in place until the new
        one is committed.
        """
        conn = self._get_connection()
        safe_key = escape_sql_string(key)
        safe_val = escape_sql_string(str(value))
        try:
            execute_statement(
                conn,
                f"INSERT INTO {CHECKPOINT_TABLE} (key, value, updated_at) "
                f"VALUES ('{safe_key}', '{safe_val}', CURRENT_TIMESTAMP) "
                "ON CONFLICT (key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            )
        except Exception as e:
            raise StateStoreError(f"Could not write checkpoint '{key}': {e}", details={"key": key}) from e
        logger.debug(f"Checkpoint {key} = {value}")

    def delete(self, key: str) -> None:
        """Delete a key. Deleting an absent key is a no-op."""
        conn = self._get_connection()
        try:
            execute_statement(conn, f"DELETE FROM {CHECKPOINT_TABLE} WHERE key = '{escape_sql_string(key)}'")
        except Exception as e:
            raise StateStoreError(f"Could not delete checkpoint '{key}': {e}", details={"key": key}) from e
        logger.debug(f"Checkpoint {key} deleted")

    def items(self) -> dict[str, str]:
        """All stored keys and values (for status reporting)."""
        conn = self._get_connection()
        try:
            rows = fetch_rows(conn, f"SELECT key, value FROM {CHECKPOINT_TABLE} ORDER BY key")
        except Exception as e:
            raise StateStoreError(f"Could not list checkpoints: {e}") from e
        return {key: value for key, value in rows}

    def get_index(self, key: str) -> int | None:
        """
        Read a non-negative integer checkpoint.

        A corrupt value is logged and treated as absent; restarting from zero
        is safe because already-satisfied units are skipped.
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            index = int(raw)
        except ValueError:
            logger.warning(f"Ignoring non-integer checkpoint {key}={raw!r}; restarting from 0")
            return None
        if index < 0:
            logger.warning(f"Ignoring negative checkpoint {key}={index}; restarting from 0")
            return None
        return index
