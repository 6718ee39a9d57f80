"""In-memory stand-ins for the pipeline's external collaborators."""

import threading
import time
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from ads_insights.core.exceptions import DatabaseError, TokenNotFoundError
from ads_insights.domain.models import InsightRecord, TableHandle, TableSchema, Token


def page(items: List[Dict[str, Any]], after: Optional[str] = None) -> Dict[str, Any]:
    """A Graph API page body; ``after`` set means another page follows."""
    body: Dict[str, Any] = {"data": list(items)}
    if after:
        body["paging"] = {"cursors": {"after": after}, "next": f"https://graph.facebook.com/next?after={after}"}
    else:
        body["paging"] = {"cursors": {"after": "END"}}
    return body


class FakeTransport:
    """Scripted transport.

    ``routes`` maps a path to one of:
      - a dict: returned on every call
      - an exception instance: raised on every call
      - a list: consumed one outcome per call, the last one repeats
      - a callable ``(params) -> dict``
    Unknown paths return an empty page.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None, delay: float = 0.0):
        self.routes = dict(routes or {})
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._positions: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = dict(params or {})
        with self._lock:
            self.calls.append((path, params))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            outcome = self._next_outcome(path)
        try:
            if self.delay:
                time.sleep(self.delay)
            if isinstance(outcome, BaseException):
                raise outcome
            if callable(outcome):
                return outcome(params)
            return outcome
        finally:
            with self._lock:
                self.in_flight -= 1

    def _next_outcome(self, path: str) -> Any:
        route = self.routes.get(path, page([]))
        if isinstance(route, list):
            position = self._positions[path]
            self._positions[path] = position + 1
            return route[min(position, len(route) - 1)]
        return route

    def paths(self) -> List[str]:
        with self._lock:
            return [path for path, _ in self.calls]

    def calls_to(self, path: str) -> int:
        return self.paths().count(path)


class FakeTokenGate:
    """Token gate over a ``(user_id, app_id) -> Token`` mapping."""

    def __init__(self, tokens: Optional[Dict[Tuple[str, str], Token]] = None):
        self.tokens = dict(tokens or {})
        self.requests: List[Tuple[str, str]] = []

    def fetch_token(self, user_id: str, app_id: str) -> Token:
        self.requests.append((user_id, app_id))
        token = self.tokens.get((user_id, app_id))
        if token is None:
            raise TokenNotFoundError(user_id, app_id)
        return token


class FakeSchemaRegistry:
    def __init__(self, schemas: Optional[Dict[str, TableSchema]] = None):
        self.schemas = dict(schemas or {})

    def schema_for(self, table_name: str) -> Optional[TableSchema]:
        return self.schemas.get(table_name)


class FakeWarehouse:
    """Warehouse keeping rows in memory.

    ``create_delay`` widens the window between the existence check and the
    creation, which is where a non-single-flight registry would race.
    """

    def __init__(self, create_delay: float = 0.0, fail_insert: Optional[Callable[[InsightRecord], bool]] = None):
        self.create_delay = create_delay
        self.fail_insert = fail_insert
        self.create_calls: List[str] = []
        self.tables: Dict[str, TableHandle] = {}
        self.rows: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = threading.Lock()

    def get_or_create_table(self, qualified_name: str, schema: TableSchema) -> TableHandle:
        with self._lock:
            self.create_calls.append(qualified_name)
        if self.create_delay:
            time.sleep(self.create_delay)
        handle = TableHandle(qualified_name=qualified_name, schema=schema)
        with self._lock:
            self.tables.setdefault(qualified_name, handle)
        return handle

    def insert(self, table: TableHandle, record: InsightRecord) -> int:
        if self.fail_insert and self.fail_insert(record):
            raise DatabaseError("insert rejected", details={"table": table.qualified_name})
        new_rows = [
            {"ad_id": record.ad_id, "ad_account_id": record.ad_account_id, **dict(row)}
            for row in record.insights
        ]
        with self._lock:
            self.rows[table.qualified_name].extend(new_rows)
        return len(new_rows)

    def row_count(self) -> int:
        with self._lock:
            return sum(len(rows) for rows in self.rows.values())
