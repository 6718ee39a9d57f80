"""
Base database connection module.
Abstract connection factory; concrete drivers only say how to connect.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Optional


class DatabaseConnection(ABC):
    """Abstract base class for database connection factories."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int,
        database: Optional[str] = None,
    ):
        self.host = host
        self.user = user
        self.password = password
        self.port = port
        self.database = database

    @abstractmethod
    def connect(self) -> Any:
        """Open and return a new connection."""

    @contextmanager
    def get_connection(self):
        """Connection closed on exit, whatever happens in the block."""
        connection = self.connect()
        try:
            yield connection
        finally:
            connection.close()

    @abstractmethod
    def get_connection_info(self) -> dict:
        """Keyword arguments passed to the driver's connect()."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(host={self.host!r}, port={self.port}, database={self.database!r})"
