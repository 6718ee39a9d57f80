"""Single-flight memoizing registry of warehouse tables.

Scoped to one pipeline run. Concurrent lookups of the same not-yet-provisioned
table share one creation: the first caller runs the factory, everyone else
waits on the same Future.
"""

import threading
from concurrent.futures import Future
from typing import Callable, Dict, List

from loguru import logger

from ads_insights.domain.models import TableHandle


class TableRegistry:
    """Table name -> TableHandle cache with get-or-create semantics."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, Future] = {}

    def get_or_create(self, table_name: str, factory: Callable[[], TableHandle]) -> TableHandle:
        """Return the cached handle, creating it once if missing.

        Args:
            table_name: Cache key
            factory: Provisions the table; called at most once per successful key

        Returns:
            The handle every concurrent caller observes

        Raises:
            Exception: Whatever the factory raised; failed entries are not cached
        """
        with self._lock:
            entry = self._entries.get(table_name)
            owner = entry is None
            if owner:
                entry = Future()
                self._entries[table_name] = entry

        if owner:
            logger.debug(f"Provisioning table {table_name}")
            try:
                entry.set_result(factory())
            except BaseException as e:
                with self._lock:
                    self._entries.pop(table_name, None)
                entry.set_exception(e)

        return entry.result()

    def table_names(self) -> List[str]:
        """Names of the tables provisioned successfully so far."""
        with self._lock:
            entries = dict(self._entries)
        return sorted(
            name for name, entry in entries.items()
            if entry.done() and entry.exception() is None
        )

    def __len__(self) -> int:
        return len(self.table_names())
