"""Vertica warehouse client.

Tables are created on demand from their declared schema and written with
``COPY ... FROM STDIN``. Writes are append-only: nothing is deduplicated or
truncated, so loading the same record twice stores its rows twice.
"""

import json
import threading
from datetime import datetime
from io import StringIO
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from ads_insights.core.config import DatabaseConfig
from ads_insights.core.constants import ESCAPE_CHARS, PIPE_DELIMITER
from ads_insights.core.exceptions import DatabaseError
from ads_insights.domain.models import InsightRecord, TableHandle, TableSchema
from shared.connection.vertica import VerticaConnection

LOADED_AT_COLUMN = "row_loaded_date"


def record_to_frame(
    record: InsightRecord,
    columns: Sequence[str],
    loaded_at: Optional[datetime] = None,
) -> pd.DataFrame:
    """Flatten a record into one row per insight bucket.

    Identity fields come from the record, everything else from the insight
    row. Columns the row does not carry are left empty; keys the schema does
    not declare are dropped.

    Args:
        record: Record to flatten
        columns: Target column names, in table order
        loaded_at: Value of the load timestamp column

    Returns:
        DataFrame with exactly ``columns``
    """
    loaded_at = loaded_at or datetime.now()
    identity = {
        "user_id": record.user_id,
        "ad_account_id": record.ad_account_id,
        "ad_id": record.ad_id,
        "period": record.period.value,
        "breakdowns": ",".join(record.breakdowns),
        LOADED_AT_COLUMN: loaded_at,
    }

    rows = []
    for insight in record.insights:
        row = {key: _scalar(value) for key, value in insight.items()}
        row.update(identity)
        rows.append(row)

    df = pd.DataFrame(rows, columns=list(columns))
    return df.astype(object).where(pd.notna(df), None)


def _scalar(value: Any) -> Any:
    # actions, video metrics and similar come back as lists of dicts
    if isinstance(value, (list, dict)):
        return json.dumps(value, sort_keys=True)
    return value


def build_create_table_sql(qualified_name: str, schema: TableSchema) -> str:
    columns = ", ".join(f"{column.name} {column.type}" for column in schema)
    return f"CREATE TABLE IF NOT EXISTS {qualified_name} ({columns})"


def build_copy_payload(df: pd.DataFrame) -> str:
    """Pipe-delimited COPY payload with special characters escaped."""
    buff = StringIO()
    row_format = PIPE_DELIMITER.join(["{}"] * len(df.columns)) + "\n"

    for row_values in df.values.tolist():
        escaped_values = []
        for val in row_values:
            if isinstance(val, str):
                for char, replacement in ESCAPE_CHARS.items():
                    val = val.replace(char, replacement)
            escaped_values.append(val)
        buff.write(row_format.format(*escaped_values))

    return buff.getvalue()


class VerticaWarehouseClient:
    """Warehouse client backed by Vertica.

    Each worker thread gets its own connection; vertica-python connections
    are not safe to share between threads.

    Attributes:
        connection: Connection factory
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, connection: Optional[VerticaConnection] = None):
        if connection is None:
            config = config or DatabaseConfig.from_env()
            connection = VerticaConnection(
                host=config.host,
                user=config.user,
                password=config.password,
                port=config.port,
                database=config.database,
            )
        self.connection = connection
        self._local = threading.local()
        self._lock = threading.Lock()
        self._open: List[Any] = []

    def get_or_create_table(self, qualified_name: str, schema: TableSchema) -> TableHandle:
        """Create the table (and its schema) if missing.

        An existing table that lacks some declared columns gets them added,
        so metrics introduced after the first load do not break COPY.

        Raises:
            DatabaseError: If the DDL or the catalog lookup fails
        """
        cursor = self._get_cursor()
        namespace = _namespace_of(qualified_name)
        if namespace:
            self._execute(cursor, f"CREATE SCHEMA IF NOT EXISTS {namespace}", qualified_name)
        self._execute(cursor, build_create_table_sql(qualified_name, schema), qualified_name)

        table = qualified_name.split(".")[-1]
        catalog_query = "SELECT column_name FROM v_catalog.columns WHERE table_schema ILIKE %s AND table_name ILIKE %s"
        self._execute(cursor, catalog_query, qualified_name, (namespace or "public", table))
        try:
            existing = [row[0] for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Catalog lookup failed for {qualified_name}: {e}")
            raise DatabaseError(
                f"Failed to read columns of {qualified_name}",
                query=catalog_query,
                details={"error": str(e)},
            ) from e

        for name in missing_columns(existing, schema):
            column_type = next(c.type for c in schema if c.name == name)
            logger.info(f"Adding column {name} {column_type} to {qualified_name}")
            self._execute(cursor, f"ALTER TABLE {qualified_name} ADD COLUMN {name} {column_type}", qualified_name)
        self._execute(cursor, "COMMIT", qualified_name)

        logger.debug(f"Ensured table {qualified_name} ({len(schema)} columns)")
        return TableHandle(qualified_name=qualified_name, schema=schema)

    @staticmethod
    def _execute(cursor, sql: str, qualified_name: str, params: Optional[Tuple[Any, ...]] = None) -> None:
        try:
            if params is None:
                cursor.execute(sql)
            else:
                cursor.execute(sql, params)
        except Exception as e:
            logger.error(f"Statement failed for {qualified_name}: {e}")
            raise DatabaseError(
                f"Failed to prepare table {qualified_name}",
                query=sql[:500],
                details={"error": str(e)},
            ) from e

    def insert(self, table: TableHandle, record: InsightRecord) -> int:
        """Append the rows of a record to a table.

        Returns:
            Number of rows written; 0 for a record with no insight rows

        Raises:
            DatabaseError: If the COPY fails
        """
        df = record_to_frame(record, table.column_names)
        if df.empty:
            logger.debug(f"No insight rows for {record.ad_id} ({table.qualified_name})")
            return 0

        sql = (
            f"COPY {table.qualified_name} ({','.join(df.columns)}) "
            f"FROM STDIN DELIMITER '{PIPE_DELIMITER}' null 'None' ABORT ON ERROR"
        )
        cursor = self._get_cursor()
        try:
            cursor.copy(sql, build_copy_payload(df))
            cursor.execute("COMMIT")
        except Exception as e:
            logger.error(f"COPY command failed: {e}")
            raise DatabaseError(
                "COPY command failed",
                query=sql[:500],
                details={"error": str(e), "rows": len(df), "table": table.qualified_name},
            ) from e

        return len(df)

    def close(self) -> None:
        """Close every connection opened by this client."""
        with self._lock:
            connections, self._open = self._open, []
        for conn in connections:
            try:
                conn.close()
            except Exception as e:
                logger.warning(f"Error closing Vertica connection: {e}")
        self._local = threading.local()
        logger.debug(f"Closed {len(connections)} Vertica connection(s)")

    def _get_cursor(self):
        cursor = getattr(self._local, "cursor", None)
        if cursor is None:
            try:
                conn = self.connection.connect()
            except Exception as e:
                raise DatabaseError(
                    "Failed to connect to Vertica",
                    details={"host": self.connection.host, "error": str(e)},
                ) from e
            with self._lock:
                self._open.append(conn)
            cursor = conn.cursor()
            self._local.cursor = cursor
        return cursor

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _namespace_of(qualified_name: str) -> Optional[str]:
    # Vertica has no project level: "project.dataset.table" maps to dataset
    parts = qualified_name.split(".")
    if len(parts) < 2:
        return None
    return parts[-2]


def missing_columns(existing: Iterable[str], schema: TableSchema) -> List[str]:
    """Schema columns absent from an existing table."""
    existing = {name.lower() for name in existing}
    return [column.name for column in schema if column.name.lower() not in existing]
