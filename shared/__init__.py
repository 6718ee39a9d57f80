"""
Shared infrastructure for the ads insights pipeline.
Vertica connections, environment helpers and logging setup.
"""

from shared.connection.vertica import VerticaConnection
from shared.utils.env import get_env, get_env_or_raise
from shared.utils.logging import setup_logging

__all__ = [
    "VerticaConnection",
    "setup_logging",
    "get_env",
    "get_env_or_raise",
]
