"""Core abstractions: exceptions, protocols, configuration and constants.

Only the exception hierarchy is re-exported here; import config and protocols
from their modules, they depend on the domain models.
"""

from ads_insights.core.exceptions import (
    APIError,
    AuthorizationError,
    ConfigurationError,
    DatabaseError,
    FanoutError,
    InsightsError,
    PipelineError,
    TokenNotFoundError,
    TransientRemoteError,
    UnknownSchemaError,
    UnknownSourceError,
)

__all__ = [
    "InsightsError",
    "AuthorizationError",
    "TokenNotFoundError",
    "APIError",
    "TransientRemoteError",
    "ConfigurationError",
    "UnknownSourceError",
    "UnknownSchemaError",
    "DatabaseError",
    "FanoutError",
    "PipelineError",
]
