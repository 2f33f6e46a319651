"""
Connections to the durable stores (checkpoint store, tabular mirror).
"""

from subsync.connections.base import BaseConnection
from subsync.connections.duckdb import DuckDBConnection
from subsync.connections.manager import ConnectionManager

__all__ = ["BaseConnection", "DuckDBConnection", "ConnectionManager"]
