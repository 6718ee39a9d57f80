"""Infrastructure layer for external dependencies.

Token gates, the YAML schema registry and the Vertica warehouse client.
"""

from ads_insights.infrastructure.schema_registry import YamlSchemaRegistry
from ads_insights.infrastructure.token_gate import (
    FileTokenGate,
    VerticaTokenGate,
    create_token_gate,
)
from ads_insights.infrastructure.warehouse import VerticaWarehouseClient

__all__ = [
    "YamlSchemaRegistry",
    "FileTokenGate",
    "VerticaTokenGate",
    "create_token_gate",
    "VerticaWarehouseClient",
]
