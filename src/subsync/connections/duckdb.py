"""
DuckDB connection via ibis.
"""

import re
from pathlib import Path
from typing import Any

import ibis

from subsync.connections.base import BaseConnection
from subsync.utils.logging import get_logger

logger = get_logger("subsync.connections.duckdb")


class DuckDBConnection(BaseConnection):
    """DuckDB connection wrapper using ibis."""

    @property
    def path(self) -> str:
        return str(self.config.get("path", ":memory:"))

    @property
    def connection(self) -> ibis.BaseBackend:
        """
        Get DuckDB connection via ibis (lazy initialization).

        File databases are opened with DuckDB's single-writer lock; a second
        process holding the file surfaces here as a RuntimeError.
        """
        if self._connection is None:
            path = self.path
            if path == ":memory:":
                self._connection = ibis.duckdb.connect()
                return self._connection

            Path(path).parent.mkdir(parents=True, exist_ok=True)
            try:
                self._connection = ibis.duckdb.connect(path)
            except Exception as e:
                error_str = str(e)
                if "lock" in error_str.lower() or "conflicting" in error_str.lower():
                    pid_match = re.search(r"PID\s+(\d+)", error_str)
                    pid_info = f" (PID: {pid_match.group(1)})" if pid_match else ""
                    raise RuntimeError(
                        f"Cannot connect to DuckDB database '{path}': File is locked by another process{pid_info}. "
                        f"Another invocation of the same job may still be running."
                    ) from e
                raise RuntimeError(f"Cannot connect to DuckDB database '{path}': {error_str}") from e
            logger.debug(f"Opened DuckDB connection '{self.name}' at {path}")
        return self._connection
