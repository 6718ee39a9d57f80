"""
Environment variable helpers.
"""

import os
from typing import Optional


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get an environment variable, treating empty values as unset.

    Args:
        key: Environment variable name
        default: Value returned when the variable is unset or empty

    Returns:
        Environment variable value or default
    """
    value = os.environ.get(key)
    if value is None or value == "":
        return default
    return value


def get_env_or_raise(key: str) -> str:
    """
    Get an environment variable that must be set.

    Raises:
        ValueError: If the variable is unset or empty
    """
    value = get_env(key)
    if value is None:
        raise ValueError(
            f"Environment variable '{key}' is not set. "
            f"Please set it in your .env file or environment."
        )
    return value
