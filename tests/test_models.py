"""Tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest

from ads_insights.core.exceptions import ConfigurationError, UnknownSourceError
from ads_insights.domain.models import (
    AccountSource,
    Ad,
    AdAccount,
    InsightRecord,
    InsightRequest,
    Period,
    Token,
    table_name_for,
)


class TestTableNaming:
    """Table names derive from (period, breakdowns) only."""

    def test_name_joins_period_and_breakdowns(self):
        assert table_name_for(Period.DAILY, ("age", "gender")) == "ads_insights_daily_age_gender"
        assert table_name_for(Period.LIFETIME, ("country", "region")) == "ads_insights_lifetime_country_region"

    def test_name_is_pure(self):
        names = {table_name_for(Period.DAILY, ("age", "gender")) for _ in range(10)}
        assert len(names) == 1

    def test_breakdown_order_is_significant(self):
        assert table_name_for(Period.DAILY, ("age", "gender")) != table_name_for(Period.DAILY, ("gender", "age"))

    def test_records_of_same_pair_share_a_table(self):
        first = InsightRecord("u", "1", "ad1", Period.DAILY, ("age", "gender"))
        second = InsightRecord("u", "2", "ad9", Period.DAILY, ("age", "gender"))
        assert first.table_name == second.table_name


class TestAccountSource:
    def test_parse_accepts_any_case(self):
        assert AccountSource.parse("Personal") is AccountSource.PERSONAL
        assert AccountSource.parse(" business ") is AccountSource.BUSINESS
        assert AccountSource.parse(AccountSource.BUSINESS) is AccountSource.BUSINESS

    def test_parse_rejects_unknown_source(self):
        with pytest.raises(UnknownSourceError):
            AccountSource.parse("agency")


class TestPeriod:
    def test_time_increment(self):
        assert Period.DAILY.time_increment == 1
        assert Period.LIFETIME.time_increment is None

    def test_parse_rejects_unknown_period(self):
        with pytest.raises(ConfigurationError):
            Period.parse("weekly")


class TestToken:
    def test_token_without_expiry_never_expires(self):
        assert not Token("u", "a", "t").is_expired()

    def test_expired_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        assert Token("u", "a", "t", expires_at=past).is_expired()

    def test_valid_token(self):
        future = datetime.now(timezone.utc) + timedelta(days=30)
        assert not Token("u", "a", "t", expires_at=future).is_expired()

    def test_access_token_not_in_repr(self):
        assert "secret-value" not in repr(Token("u", "a", "secret-value"))


class TestIdentities:
    def test_numeric_account_id(self):
        assert AdAccount("act_123").numeric_id == "123"
        assert AdAccount("123").numeric_id == "123"

    def test_request_and_record_share_key(self):
        request = InsightRequest(Ad("ad1", "1"), Period.LIFETIME, ("age", "gender"))
        record = InsightRecord("u", "1", "ad1", Period.LIFETIME, ("age", "gender"))
        assert request.key == record.key

    def test_record_to_dict(self):
        record = InsightRecord(
            "u", "1", "ad1", Period.DAILY, ("age", "gender"), insights=({"impressions": "5"},)
        )
        assert record.to_dict() == {
            "user_id": "u",
            "ad_account_id": "1",
            "ad_id": "ad1",
            "period": "daily",
            "breakdowns": ["age", "gender"],
            "insights": [{"impressions": "5"}],
        }
