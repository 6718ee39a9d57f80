"""YAML-backed registry of warehouse table schemas."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from ads_insights.core.exceptions import ConfigurationError
from ads_insights.domain.models import Column, TableSchema

DEFAULT_SCHEMAS_PATH = Path(__file__).parent.parent / "schemas_insights.yml"


class YamlSchemaRegistry:
    """Schemas declared in a YAML file.

    The file holds a ``common`` section (identity, metrics and audit columns
    shared by every table) and a ``tables`` section giving each table its
    breakdown dimension columns. A table's schema is identity + dimensions +
    metrics + audit, in that order.
    """

    def __init__(self, schemas: Dict[str, TableSchema]):
        self._schemas = dict(schemas)

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "YamlSchemaRegistry":
        """Load schemas from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(path) if path else DEFAULT_SCHEMAS_PATH
        if not path.exists():
            raise ConfigurationError(f"Schemas file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse schemas file: {path}",
                details={"error": str(e)},
            )

        registry = cls(_build_schemas(data))
        logger.info(f"Loaded {len(registry)} table schema(s) from {path}")
        return registry

    def schema_for(self, table_name: str) -> Optional[TableSchema]:
        return self._schemas.get(table_name)

    def table_names(self) -> List[str]:
        return sorted(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)


def _build_schemas(data: Dict[str, Any]) -> Dict[str, TableSchema]:
    common = data.get("common") or {}
    tables = data.get("tables") or {}
    if not isinstance(tables, dict):
        raise ConfigurationError("'tables' must be a mapping of table name to definition")

    identity = _columns(common.get("identity"))
    metrics = _columns(common.get("metrics"))
    audit = _columns(common.get("audit"))

    schemas = {}
    for table_name, definition in tables.items():
        definition = definition or {}
        dimensions = _columns(definition.get("dimensions"))
        extra = _columns(definition.get("columns"))
        columns = identity + dimensions + metrics + extra + audit

        names = [c.name for c in columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate columns in schema of {table_name}",
                details={"columns": duplicates},
            )
        schemas[str(table_name)] = columns
    return schemas


def _columns(section: Any) -> TableSchema:
    if not section:
        return ()
    if not isinstance(section, dict):
        raise ConfigurationError("Column sections must map column name to type")
    return tuple(Column(name=str(name), type=str(col_type)) for name, col_type in section.items())
