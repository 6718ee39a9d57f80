"""Protocol definitions (interfaces) for the pipeline's collaborators.

The core never talks to OAuth, HTTP or the warehouse directly; it consumes
these narrow interfaces so that tests can swap in in-memory fakes.
"""

from typing import Any, Dict, Optional, Protocol

from ads_insights.domain.models import InsightRecord, TableHandle, TableSchema, Token


class TokenGate(Protocol):
    """Interface for retrieving stored access tokens."""

    def fetch_token(self, user_id: str, app_id: str) -> Token:
        """Retrieve the token of a user for an app.

        Args:
            user_id: Facebook user id
            app_id: Facebook app id

        Returns:
            Token: Stored token

        Raises:
            TokenNotFoundError: If no token is stored for the pair
        """
        ...


class Transport(Protocol):
    """Interface for a single raw Graph API request."""

    def request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GET request against the Graph API.

        Args:
            path: Endpoint path, e.g. ``/me/adaccounts``
            params: Query parameters

        Returns:
            Parsed JSON body

        Raises:
            TransientRemoteError: If the failure may succeed on retry
            AuthorizationError: If the token is invalid or expired
            APIError: For any other failure
        """
        ...


class SchemaRegistry(Protocol):
    """Interface for looking up warehouse table schemas."""

    def schema_for(self, table_name: str) -> Optional[TableSchema]:
        """Get the column schema registered for a table.

        Args:
            table_name: Unqualified table name

        Returns:
            The schema, or None if the table is unknown
        """
        ...


class WarehouseClient(Protocol):
    """Interface for the warehouse sink."""

    def get_or_create_table(self, qualified_name: str, schema: TableSchema) -> TableHandle:
        """Return a handle to a table, creating it if missing.

        Args:
            qualified_name: ``{project}.{dataset}.{table}``
            schema: Column schema for creation

        Returns:
            Handle to the table

        Raises:
            DatabaseError: If the table cannot be created
        """
        ...

    def insert(self, table: TableHandle, record: InsightRecord) -> int:
        """Append a record to a table.

        Args:
            table: Target table
            record: Record to insert

        Returns:
            Number of rows written

        Raises:
            DatabaseError: If the insert fails
        """
        ...
