"""
Vertica database connection module.
"""

import logging
from typing import Optional

import vertica_python
from vertica_python.vertica.connection import Connection

from shared.connection.base import DatabaseConnection
from shared.utils.env import get_env, get_env_or_raise

DEFAULT_PORT = 5433


class VerticaConnection(DatabaseConnection):
    """Vertica connection factory.

    Parameters left out are read from VERTICA_HOST, VERTICA_USER,
    VERTICA_PASSWORD, VERTICA_PORT and VERTICA_DATABASE.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        connection_timeout: int = 30,
    ):
        super().__init__(
            host=host or get_env_or_raise("VERTICA_HOST"),
            user=user or get_env_or_raise("VERTICA_USER"),
            password=password or get_env_or_raise("VERTICA_PASSWORD"),
            port=port or int(get_env("VERTICA_PORT", str(DEFAULT_PORT))),
            database=database or get_env_or_raise("VERTICA_DATABASE"),
        )
        self.connection_timeout = connection_timeout

    def get_connection_info(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.database,
            "connection_timeout": self.connection_timeout,
            "unicode_error": "replace",
            "log_level": logging.ERROR,
        }

    def connect(self) -> Connection:
        """
        Open a new Vertica connection.

        Returns:
            Vertica connection object
        """
        return vertica_python.connect(**self.get_connection_info())
