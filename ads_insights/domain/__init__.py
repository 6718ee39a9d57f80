"""Domain models."""

from ads_insights.domain.models import (
    AccountSource,
    Ad,
    AdAccount,
    Breakdowns,
    Column,
    InsightRecord,
    InsightRequest,
    Period,
    RunSummary,
    TableHandle,
    TableSchema,
    Token,
    table_name_for,
)

__all__ = [
    "AccountSource",
    "Ad",
    "AdAccount",
    "Breakdowns",
    "Column",
    "InsightRecord",
    "InsightRequest",
    "Period",
    "RunSummary",
    "TableHandle",
    "TableSchema",
    "Token",
    "table_name_for",
]
