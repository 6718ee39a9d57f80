"""Domain models for the insights pipeline.

Frozen dataclasses and closed enumerations. Everything here is immutable once
built, so records can be shared freely between worker threads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ads_insights.core.constants import AD_ACCOUNT_PREFIX, TABLE_PREFIX
from ads_insights.core.exceptions import ConfigurationError, UnknownSourceError


Breakdowns = Tuple[str, ...]


class AccountSource(Enum):
    """Where ad accounts are resolved from."""

    PERSONAL = "personal"
    BUSINESS = "business"

    @classmethod
    def parse(cls, value: Union[str, "AccountSource"]) -> "AccountSource":
        """Parse a user supplied source.

        Raises:
            UnknownSourceError: If the value is not a known source
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownSourceError(value) from None


class Period(Enum):
    """Time granularity of an insights query."""

    DAILY = "daily"
    LIFETIME = "lifetime"

    @property
    def time_increment(self) -> Optional[int]:
        """Day-level increment for daily queries, none for lifetime."""
        return 1 if self is Period.DAILY else None

    @classmethod
    def parse(cls, value: Union[str, "Period"]) -> "Period":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown period {value!r}",
                details={"allowed": [p.value for p in cls]},
            ) from None


@dataclass(frozen=True)
class Token:
    """An access token for one user of one app."""

    user_id: str
    app_id: str
    access_token: str = field(repr=False)
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the token is past its validity window.

        Tokens without an expiry (never-expiring system user tokens) are
        always valid.
        """
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if now is None:
            now = datetime.now(timezone.utc) if expires_at.tzinfo else datetime.now()
        return now >= expires_at


@dataclass(frozen=True)
class AdAccount:
    """An ad account reachable by the user."""

    id: str
    name: Optional[str] = None
    source: Optional[AccountSource] = None

    @property
    def numeric_id(self) -> str:
        """Account id without the ``act_`` prefix."""
        if self.id.startswith(AD_ACCOUNT_PREFIX):
            return self.id[len(AD_ACCOUNT_PREFIX):]
        return self.id


@dataclass(frozen=True)
class Ad:
    """An ad and the account that owns it."""

    id: str
    account_id: str


@dataclass(frozen=True)
class InsightRequest:
    """One unit of fan-out work."""

    ad: Ad
    period: Period
    breakdowns: Breakdowns

    @property
    def key(self) -> Tuple[str, Period, Breakdowns]:
        return (self.ad.id, self.period, self.breakdowns)

    def __str__(self) -> str:
        return f"ad={self.ad.id} period={self.period.value} breakdowns={','.join(self.breakdowns)}"


def table_name_for(period: Period, breakdowns: Breakdowns) -> str:
    """Warehouse table holding records of a (period, breakdowns) pair.

    Breakdown order is significant: ``(age, gender)`` and ``(gender, age)``
    land in different tables.
    """
    parts = [TABLE_PREFIX, period.value, *breakdowns]
    return "_".join(parts)


@dataclass(frozen=True)
class InsightRecord:
    """Insights of one ad for one period and breakdown combination.

    ``insights`` holds the rows returned by the insights call, one mapping of
    metric/dimension name to value per breakdown bucket (and per day for the
    daily period).
    """

    user_id: str
    ad_account_id: str
    ad_id: str
    period: Period
    breakdowns: Breakdowns
    insights: Tuple[Mapping[str, Any], ...] = ()

    @property
    def key(self) -> Tuple[str, Period, Breakdowns]:
        return (self.ad_id, self.period, self.breakdowns)

    @property
    def table_name(self) -> str:
        return table_name_for(self.period, self.breakdowns)

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-serializable representation."""
        return {
            "user_id": self.user_id,
            "ad_account_id": self.ad_account_id,
            "ad_id": self.ad_id,
            "period": self.period.value,
            "breakdowns": list(self.breakdowns),
            "insights": [dict(row) for row in self.insights],
        }


@dataclass(frozen=True)
class Column:
    """A warehouse column definition."""

    name: str
    type: str


TableSchema = Tuple[Column, ...]


@dataclass(frozen=True)
class TableHandle:
    """A provisioned warehouse table."""

    qualified_name: str
    schema: TableSchema

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.schema)


@dataclass
class RunSummary:
    """Outcome of one pipeline run."""

    record_count: int
    table_count: int
    row_count: int = 0
    account_count: int = 0
    ad_count: int = 0
    duration_seconds: float = 0.0
