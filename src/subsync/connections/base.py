"""
Abstract base connection class for ibis-backed stores.
"""

from abc import ABC, abstractmethod
from typing import Any

import ibis

from subsync.utils.logging import get_logger

logger = get_logger("subsync.connections.base")


class BaseConnection(ABC):
    """
    Base class for queryable connections using ibis.

    Both the checkpoint store and the tabular mirror sit on one of these; the
    connection is opened lazily on first access so that a job that aborts on
    a configuration error never touches the database.
    """

    def __init__(self, name: str, config: dict[str, Any]):
        """
        Initialize connection.

        Args:
            name: Connection name (from config)
            config: Connection configuration dictionary
        """
        self.name = name
        self.config = config
        self._connection: ibis.BaseBackend | None = None

    @property
    @abstractmethod
    def connection(self) -> ibis.BaseBackend:
        """
        Get ibis backend connection (lazy initialization).

        Returns:
            ibis.BaseBackend: ibis backend connection
        """

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def close(self) -> None:
        """Close connection and cleanup resources."""
        if self._connection is None:
            return
        try:
            self._connection.disconnect()
        except Exception as e:
            logger.debug(f"Error during disconnect() for {self.name}: {e}")
        self._connection = None

    def __enter__(self) -> "BaseConnection":
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        """Context manager exit - closes connection."""
        try:
            self.close()
        except Exception as e:
            if exc_type is None:
                raise
            logger.warning(f"Error closing connection {self.name} during context exit: {e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
