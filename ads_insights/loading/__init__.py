"""Warehouse loading."""

from ads_insights.loading.loader import WarehouseLoader
from ads_insights.loading.table_registry import TableRegistry

__all__ = ["WarehouseLoader", "TableRegistry"]
