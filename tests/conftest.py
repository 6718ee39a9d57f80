"""Shared pytest fixtures."""

from typing import Any, Dict, List

import pytest

from ads_insights.adapters.api_client import RateLimitedApiClient
from ads_insights.core.config import AppConfig, InsightsConfig, RetryConfig
from ads_insights.domain.models import Period, Token
from ads_insights.infrastructure.schema_registry import YamlSchemaRegistry
from ads_insights.services.concurrency import BoundedExecutor
from tests.fakes import FakeTokenGate, FakeTransport, FakeWarehouse, page

USER_ID = "10001"
APP_ID = "20002"


def insight_rows(params: Dict[str, Any]) -> Dict[str, Any]:
    """Insights edge answering with one bucket per breakdown value pair."""
    breakdowns = params.get("breakdowns", [])
    rows: List[Dict[str, Any]] = []
    for value in ("a", "b"):
        row = {"impressions": "100", "spend": "1.50", "date_start": "2026-01-01", "date_stop": "2026-01-01"}
        row.update({dimension: f"{dimension}-{value}" for dimension in breakdowns})
        rows.append(row)
    return page(rows)


def personal_routes(ads_per_account: int = 2) -> Dict[str, Any]:
    """One personal account owning ``ads_per_account`` ads."""
    routes: Dict[str, Any] = {
        "/me/adaccounts": page([{"id": "act_1", "name": "Main"}]),
        "/act_1/ads": page([{"id": f"ad{i}", "account_id": "1"} for i in range(1, ads_per_account + 1)]),
    }
    for i in range(1, ads_per_account + 1):
        routes[f"/ad{i}/insights"] = insight_rows
    return routes


@pytest.fixture
def sleeps() -> List[float]:
    """Delays requested by the API client, recorded instead of slept."""
    return []


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(max_attempts=3, base_delay_seconds=1.0, backoff_factor=2.0, max_delay_seconds=10.0)


@pytest.fixture
def make_client(sleeps, retry_config):
    def _make(transport: FakeTransport) -> RateLimitedApiClient:
        return RateLimitedApiClient(transport, retry=retry_config, sleep=sleeps.append)

    return _make


@pytest.fixture
def executor() -> BoundedExecutor:
    return BoundedExecutor(4, name="test")


@pytest.fixture
def schema_registry() -> YamlSchemaRegistry:
    return YamlSchemaRegistry.from_file()


@pytest.fixture
def warehouse() -> FakeWarehouse:
    return FakeWarehouse()


@pytest.fixture
def token() -> Token:
    return Token(user_id=USER_ID, app_id=APP_ID, access_token="EAAB-test-token")


@pytest.fixture
def token_gate(token) -> FakeTokenGate:
    return FakeTokenGate({(USER_ID, APP_ID): token})


@pytest.fixture
def app_config(retry_config) -> AppConfig:
    return AppConfig(
        retry=retry_config,
        insights=InsightsConfig(
            periods=(Period.DAILY, Period.LIFETIME),
            breakdowns=(("age", "gender"),),
            max_concurrency=4,
        ),
    )
