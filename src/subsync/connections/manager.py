"""
Connection manager.

Resolves the named connections declared under ``connections:`` in
config.yaml. Only DuckDB is supported as a backend for the checkpoint store
and the mirror.
"""

from typing import Any

from subsync.connections.base import BaseConnection
from subsync.connections.duckdb import DuckDBConnection
from subsync.exceptions import ConfigurationError, ConnectionNotFoundError
from subsync.utils.logging import get_logger

logger = get_logger("subsync.connections.manager")

CONNECTION_TYPES: dict[str, type[BaseConnection]] = {
    "duckdb": DuckDBConnection,
}


class ConnectionManager:
    """Manages the named connections of one subsync project."""

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self._connections: dict[str, BaseConnection] = {}
        self._load_connections()

    def _load_connections(self) -> None:
        """Load connections from configuration."""
        for name, conn_config in (self.config.get("connections") or {}).items():
            conn_type = (conn_config or {}).get("type")
            conn_cls = CONNECTION_TYPES.get(conn_type)
            if conn_cls is None:
                raise ConfigurationError(
                    f"Unknown connection type '{conn_type}' for connection '{name}'. "
                    f"Supported: {sorted(CONNECTION_TYPES)}",
                    details={"connection": name, "type": conn_type},
                )
            self._connections[name] = conn_cls(name, conn_config)

    def get(self, name: str) -> BaseConnection:
        """Get connection by name."""
        if name not in self._connections:
            raise ConnectionNotFoundError(name)
        return self._connections[name]

    def for_role(self, role: str, default: str | None = None) -> BaseConnection:
        """
        Get the connection assigned to a role (``state`` or ``mirror``).

        The role section names the connection (``state: {connection: state}``);
        without one the connection called ``default`` (or the role name) is used.
        """
        name = (self.config.get(role) or {}).get("connection") or default or role
        return self.get(name)

    def list(self) -> list[str]:
        """List all connection names."""
        return list(self._connections.keys())

    def close_all(self) -> None:
        for conn in self._connections.values():
            try:
                conn.close()
            except Exception as e:
                logger.warning(f"Error closing connection {conn.name}: {e}")
