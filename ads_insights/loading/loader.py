"""Warehouse loader.

Routes each insight record to the table of its (period, breakdowns) pair,
provisioning tables on first use, and appends it. Loading is append-only:
loading the same records twice produces the rows twice.
"""

from typing import Iterable, Optional

from loguru import logger

from ads_insights.core.config import WarehouseConfig
from ads_insights.core.exceptions import UnknownSchemaError
from ads_insights.core.protocols import SchemaRegistry, WarehouseClient
from ads_insights.domain.models import InsightRecord, TableHandle
from ads_insights.loading.table_registry import TableRegistry
from ads_insights.services.concurrency import BoundedExecutor


class WarehouseLoader:
    """Loads insight records into their warehouse tables.

    Attributes:
        schema_registry: Table name -> column schema
        warehouse: Warehouse client
        executor: Bounded-concurrency executor for per-record inserts
        warehouse_config: Project and dataset used to qualify table names
        tables: Single-flight table cache for this run
    """

    def __init__(
        self,
        schema_registry: SchemaRegistry,
        warehouse: WarehouseClient,
        executor: BoundedExecutor,
        warehouse_config: Optional[WarehouseConfig] = None,
        tables: Optional[TableRegistry] = None,
    ):
        self.schema_registry = schema_registry
        self.warehouse = warehouse
        self.executor = executor
        self.warehouse_config = warehouse_config or WarehouseConfig()
        self.tables = tables if tables is not None else TableRegistry()

    def load(self, records: Iterable[InsightRecord]) -> int:
        """Insert every record into its table.

        Args:
            records: Records to load

        Returns:
            Number of rows inserted

        Raises:
            UnknownSchemaError: A record routes to a table with no schema
            DatabaseError: The warehouse rejected a create or insert
        """
        records = list(records)
        if not records:
            logger.info("No records to load")
            return 0

        rows = sum(self.executor.map(self._load_record, records))
        logger.success(
            f"Loaded {rows} row(s) from {len(records)} record(s) into {len(self.tables)} table(s)"
        )
        return rows

    @property
    def tables_used(self):
        return self.tables.table_names()

    def table_for(self, record: InsightRecord) -> TableHandle:
        """Handle of the table a record routes to, provisioning it if needed."""
        table_name = record.table_name
        return self.tables.get_or_create(table_name, lambda: self._provision(table_name))

    def _load_record(self, record: InsightRecord) -> int:
        table = self.table_for(record)
        return self.warehouse.insert(table, record)

    def _provision(self, table_name: str) -> TableHandle:
        schema = self.schema_registry.schema_for(table_name)
        if schema is None:
            raise UnknownSchemaError([table_name])

        qualified_name = self.warehouse_config.qualify(table_name)
        handle = self.warehouse.get_or_create_table(qualified_name, schema)
        logger.info(f"Table ready: {handle.qualified_name}")
        return handle
