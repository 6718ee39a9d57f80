"""Insights fan-out.

Expands ads into the full (ad x period x breakdown) request matrix and
executes it under bounded concurrency. The matrix is built up front, so its
size is a named, testable quantity rather than a side effect of nested loops.
"""

from itertools import product
from typing import Any, Dict, Iterable, List, Sequence

from loguru import logger

from ads_insights.adapters.api_client import RateLimitedApiClient
from ads_insights.core.config import FailurePolicy
from ads_insights.core.constants import DEFAULT_METRICS, ENDPOINT_AD_INSIGHTS
from ads_insights.core.exceptions import APIError, FanoutError
from ads_insights.domain.models import (
    Ad,
    Breakdowns,
    InsightRecord,
    InsightRequest,
    Period,
)
from ads_insights.services.concurrency import BatchFailure, BoundedExecutor


def build_request_matrix(
    ads: Iterable[Ad],
    periods: Iterable[Period],
    breakdowns: Iterable[Breakdowns],
) -> List[InsightRequest]:
    """Cartesian product of ads, periods and breakdown combinations.

    Repeated inputs are collapsed first, so every (ad, period, breakdowns)
    key appears exactly once.
    """
    unique_ads = _unique(ads, key=lambda ad: ad.id)
    unique_periods = _unique(periods, key=lambda period: period)
    unique_breakdowns = _unique((tuple(b) for b in breakdowns), key=lambda b: b)

    return [
        InsightRequest(ad=ad, period=period, breakdowns=combination)
        for ad, period, combination in product(unique_ads, unique_periods, unique_breakdowns)
    ]


def _unique(items: Iterable, key) -> list:
    seen = set()
    result = []
    for item in items:
        k = key(item)
        if k in seen:
            logger.warning(f"Ignoring duplicate fan-out input: {k}")
            continue
        seen.add(k)
        result.append(item)
    return result


class InsightsFanoutEngine:
    """Fetches insights for every request of the matrix.

    Attributes:
        client: Graph API client
        executor: Bounded-concurrency executor
        user_id: Owner of the token, stamped on every record
        metrics: Fields requested from the insights edge
        failure_policy: What to do when a unit fails
    """

    def __init__(
        self,
        client: RateLimitedApiClient,
        executor: BoundedExecutor,
        user_id: str,
        metrics: Sequence[str] = DEFAULT_METRICS,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    ):
        self.client = client
        self.executor = executor
        self.user_id = user_id
        self.metrics = list(metrics)
        self.failure_policy = failure_policy

    def fanout(
        self,
        ads: Iterable[Ad],
        periods: Iterable[Period],
        breakdowns: Iterable[Breakdowns],
    ) -> List[InsightRecord]:
        """Fetch insights for every (ad, period, breakdowns) combination.

        Args:
            ads: Ads to query
            periods: Periods to query
            breakdowns: Breakdown combinations to query

        Returns:
            One record per request; order is not meaningful

        Raises:
            FanoutError: A request failed for good; no partial list is returned
            AuthorizationError: The access token was rejected
        """
        matrix = build_request_matrix(ads, periods, breakdowns)
        logger.info(f"Fanning out {len(matrix)} insights request(s)")

        try:
            records = self.executor.map(self._fetch, matrix, self.failure_policy)
        except FanoutError:
            raise
        except BatchFailure as e:
            failures = [
                (error.failed_request, error.cause) if isinstance(error, FanoutError) else (request, error)
                for request, error in e.errors
            ]
            unexpected = [cause for _, cause in failures if not isinstance(cause, APIError)]
            if unexpected:
                raise unexpected[0]
            first_request, first_cause = failures[0]
            raise FanoutError(first_request, first_cause, failures) from first_cause

        logger.success(f"Fetched {len(records)} insight record(s)")
        return records

    def _fetch(self, request: InsightRequest) -> InsightRecord:
        path = ENDPOINT_AD_INSIGHTS.format(ad_id=request.ad.id)
        try:
            rows = self.client.fetch_all(path, self._params(request))
        except APIError as e:
            logger.error(f"Insights request failed ({request}): {e.message}")
            raise FanoutError(request, e) from e

        return InsightRecord(
            user_id=self.user_id,
            ad_account_id=request.ad.account_id,
            ad_id=request.ad.id,
            period=request.period,
            breakdowns=request.breakdowns,
            insights=tuple(rows),
        )

    def _params(self, request: InsightRequest) -> Dict[str, Any]:
        params: Dict[str, Any] = {"fields": self.metrics}
        if request.breakdowns:
            params["breakdowns"] = list(request.breakdowns)
        if request.period.time_increment is not None:
            params["time_increment"] = request.period.time_increment
        return params
