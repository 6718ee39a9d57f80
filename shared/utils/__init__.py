"""Utility functions module."""

from shared.utils.env import get_env, get_env_or_raise
from shared.utils.logging import setup_logging

__all__ = [
    "setup_logging",
    "get_env",
    "get_env_or_raise",
]
