"""Database connection module."""

from shared.connection.base import DatabaseConnection
from shared.connection.vertica import VerticaConnection

__all__ = ["DatabaseConnection", "VerticaConnection"]
