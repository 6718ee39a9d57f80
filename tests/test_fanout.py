"""Tests for the insights fan-out."""

import pytest

from ads_insights.core.config import FailurePolicy
from ads_insights.core.exceptions import APIError, AuthorizationError, FanoutError, TransientRemoteError
from ads_insights.domain.models import Ad, Period
from ads_insights.services.concurrency import BoundedExecutor
from ads_insights.services.fanout import InsightsFanoutEngine, build_request_matrix
from tests.conftest import USER_ID, insight_rows
from tests.fakes import FakeTransport

PERIODS = (Period.DAILY, Period.LIFETIME)
BREAKDOWNS = (("age", "gender"), ("country", "region"))


def ads(n):
    return [Ad(id=f"ad{i}", account_id="1") for i in range(1, n + 1)]


def insights_routes(n):
    return {f"/ad{i}/insights": insight_rows for i in range(1, n + 1)}


class TestRequestMatrix:
    @pytest.mark.parametrize("n_ads", [0, 1, 3, 7])
    def test_size_is_product(self, n_ads):
        matrix = build_request_matrix(ads(n_ads), PERIODS, BREAKDOWNS)
        assert len(matrix) == n_ads * len(PERIODS) * len(BREAKDOWNS)

    def test_keys_are_distinct(self):
        matrix = build_request_matrix(ads(3), PERIODS, BREAKDOWNS)
        assert len({request.key for request in matrix}) == len(matrix)

    def test_duplicate_inputs_are_collapsed(self):
        matrix = build_request_matrix(ads(2) + ads(1), PERIODS + (Period.DAILY,), BREAKDOWNS + (("age", "gender"),))
        assert len(matrix) == 2 * 2 * 2


class TestFanout:
    def test_one_record_per_request(self, make_client):
        transport = FakeTransport(insights_routes(2))
        engine = InsightsFanoutEngine(make_client(transport), BoundedExecutor(4), USER_ID)

        records = engine.fanout(ads(2), PERIODS, [("age", "gender")])

        assert len(records) == 4
        assert {r.table_name for r in records} == {
            "ads_insights_daily_age_gender",
            "ads_insights_lifetime_age_gender",
        }
        assert all(r.user_id == USER_ID and r.ad_account_id == "1" for r in records)
        assert all(len(r.insights) == 2 for r in records)

    def test_in_flight_calls_stay_within_limit(self, make_client):
        transport = FakeTransport(insights_routes(6), delay=0.02)
        engine = InsightsFanoutEngine(make_client(transport), BoundedExecutor(2), USER_ID)

        records = engine.fanout(ads(6), PERIODS, [("age", "gender")])

        assert len(records) == 12
        assert transport.max_in_flight <= 2

    def test_request_parameters(self, make_client):
        transport = FakeTransport(insights_routes(1))
        engine = InsightsFanoutEngine(make_client(transport), BoundedExecutor(1), USER_ID, metrics=["impressions"])
        engine.fanout(ads(1), PERIODS, [("country", "region")])

        params = {p.get("time_increment"): p for _, p in transport.calls}
        assert params[1]["breakdowns"] == ["country", "region"]
        assert params[1]["fields"] == ["impressions"]
        assert "time_increment" not in params[None]

    def test_permanent_failure_fails_whole_fanout(self, make_client):
        routes = insights_routes(3)
        routes["/ad2/insights"] = APIError("Invalid parameter", status_code=400)
        engine = InsightsFanoutEngine(make_client(FakeTransport(routes)), BoundedExecutor(2), USER_ID)

        with pytest.raises(FanoutError) as exc_info:
            engine.fanout(ads(3), PERIODS, BREAKDOWNS)

        error = exc_info.value
        assert error.failed_request.ad.id == "ad2"
        assert isinstance(error.cause, APIError)

    def test_exhausted_retries_fail_fanout(self, make_client, sleeps):
        routes = insights_routes(1)
        routes["/ad1/insights"] = TransientRemoteError("Service unavailable", status_code=503)
        engine = InsightsFanoutEngine(make_client(FakeTransport(routes)), BoundedExecutor(1), USER_ID)

        with pytest.raises(FanoutError) as exc_info:
            engine.fanout(ads(1), [Period.LIFETIME], [("age", "gender")])
        assert isinstance(exc_info.value.cause, TransientRemoteError)
        assert len(sleeps) == 2

    def test_continue_policy_reports_every_failure(self, make_client):
        routes = insights_routes(3)
        routes["/ad1/insights"] = APIError("bad")
        routes["/ad3/insights"] = APIError("bad")
        engine = InsightsFanoutEngine(
            make_client(FakeTransport(routes)),
            BoundedExecutor(2),
            USER_ID,
            failure_policy=FailurePolicy.CONTINUE,
        )

        with pytest.raises(FanoutError) as exc_info:
            engine.fanout(ads(3), PERIODS, BREAKDOWNS)
        failed_ads = {request.ad.id for request, _ in exc_info.value.failures}
        assert failed_ads == {"ad1", "ad3"}
        assert len(exc_info.value.failures) == 8

    def test_authorization_failure_aborts_without_further_calls(self, make_client):
        routes = insights_routes(5)
        routes["/ad1/insights"] = AuthorizationError("Session has expired")
        transport = FakeTransport(routes)
        engine = InsightsFanoutEngine(make_client(transport), BoundedExecutor(1), USER_ID)

        with pytest.raises(AuthorizationError):
            engine.fanout(ads(5), PERIODS, BREAKDOWNS)

        assert transport.paths()[-1] == "/ad1/insights"
        assert transport.calls_to("/ad1/insights") == 1
