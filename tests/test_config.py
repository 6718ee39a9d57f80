"""Tests for configuration loading."""

import pytest

from ads_insights.core.config import (
    ConfigurationManager,
    FailurePolicy,
    InsightsConfig,
    RetryConfig,
    WarehouseConfig,
)
from ads_insights.core.exceptions import ConfigurationError
from ads_insights.domain.models import Period

VERTICA_VARS = ["VERTICA_HOST", "VERTICA_PORT", "VERTICA_DATABASE", "VERTICA_USER", "VERTICA_PASSWORD"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in VERTICA_VARS + [
        "FACEBOOK_APP_ID",
        "FACEBOOK_APP_SECRET",
        "FACEBOOK_API_VERSION",
        "INSIGHTS_MAX_CONCURRENCY",
        "WAREHOUSE_PROJECT",
        "WAREHOUSE_DATASET",
    ]:
        monkeypatch.delenv(var, raising=False)


class TestConfigurationManager:
    def test_shipped_defaults(self):
        config = ConfigurationManager().load_config()

        assert config.insights.periods == (Period.DAILY, Period.LIFETIME)
        assert config.insights.breakdowns == (("age", "gender"), ("country", "region"))
        assert config.insights.max_concurrency == 8
        assert config.insights.failure_policy is FailurePolicy.FAIL_FAST
        assert config.warehouse.dataset == "facebook_ads_insights"
        assert config.schemas_file.name == "schemas_insights.yml"
        assert config.database is None

    def test_environment_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("INSIGHTS_MAX_CONCURRENCY", "3")
        monkeypatch.setenv("WAREHOUSE_PROJECT", "analytics")
        config = ConfigurationManager().load_config()

        assert config.insights.max_concurrency == 3
        assert config.warehouse.project == "analytics"

    def test_overrides_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("INSIGHTS_MAX_CONCURRENCY", "3")
        config = ConfigurationManager().load_config({"insights.max_concurrency": 5})
        assert config.insights.max_concurrency == 5

    def test_database_from_environment(self, monkeypatch):
        for var, value in zip(VERTICA_VARS, ["db.local", "5433", "dwh", "etl", "secret"]):
            monkeypatch.setenv(var, value)
        config = ConfigurationManager().load_config()

        assert config.database.host == "db.local"
        assert config.database.port == 5433
        assert "secret" not in repr(config.database)

    def test_custom_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            "insights:\n"
            "  periods: [lifetime]\n"
            "  breakdowns: ['publisher_platform,platform_position']\n"
            "  failure_policy: continue\n"
        )
        config = ConfigurationManager(path).load_config()

        assert config.insights.periods == (Period.LIFETIME,)
        assert config.insights.breakdowns == (("publisher_platform", "platform_position"),)
        assert config.insights.failure_policy is FailurePolicy.CONTINUE

    @pytest.mark.parametrize("body", [
        "insights:\n  periods: [weekly]\n",
        "insights:\n  failure_policy: sometimes\n",
        "insights:\n  max_concurrency: 0\n",
        "insights:\n  breakdowns: [[age, gender], [age, gender]]\n",
        "retry:\n  max_attempts: 0\n",
    ])
    def test_invalid_values(self, tmp_path, body):
        path = tmp_path / "config.yml"
        path.write_text(body)
        with pytest.raises(ConfigurationError):
            ConfigurationManager(path).load_config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigurationManager(tmp_path / "nope.yml").load_config()

    def test_get_config_before_load(self):
        with pytest.raises(ConfigurationError):
            ConfigurationManager().get_config()


class TestRetryConfig:
    def test_backoff_grows_and_is_capped(self):
        retry = RetryConfig(base_delay_seconds=2, backoff_factor=2, max_delay_seconds=5)
        assert [retry.get_backoff_time(a) for a in (1, 2, 3, 4)] == [2, 4, 5, 5]


def test_warehouse_qualify():
    assert WarehouseConfig("proj", "ds").qualify("t") == "proj.ds.t"
    assert WarehouseConfig("", "ds").qualify("t") == "ds.t"


def test_insights_config_requires_breakdowns():
    with pytest.raises(ConfigurationError):
        InsightsConfig(breakdowns=()).validate()
