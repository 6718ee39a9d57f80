"""Rate-limited Graph API client.

Thin, domain-agnostic wrapper around a Transport that adds exponential
backoff for transient failures, cursor pagination, and abort-on-authorization
semantics shared by every worker thread using the client.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ads_insights.core.config import RetryConfig
from ads_insights.core.constants import DEFAULT_PAGE_SIZE
from ads_insights.core.exceptions import APIError, AuthorizationError, TransientRemoteError
from ads_insights.core.protocols import Transport

SENSITIVE_KEYS = {"access_token", "appsecret_proof", "secret", "password"}


class RateLimitedApiClient:
    """Graph API client with retry and backoff.

    The client is bound to one transport, hence to one access token, for its
    whole lifetime. After the first AuthorizationError every further call fails
    immediately without reaching the network.

    Attributes:
        transport: Raw request primitive
        retry: Retry policy
    """

    def __init__(
        self,
        transport: Transport,
        retry: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the client.

        Args:
            transport: Transport bound to an access token
            retry: Retry configuration (defaults to RetryConfig())
            sleep: Sleep function, injectable for tests
        """
        self.transport = transport
        self.retry = retry or RetryConfig()
        self._sleep = sleep
        self._unauthorized = threading.Event()
        self._auth_error: Optional[AuthorizationError] = None

    @property
    def is_unauthorized(self) -> bool:
        return self._unauthorized.is_set()

    def call(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute one logical API call with retries.

        Args:
            path: Endpoint path
            params: Query parameters

        Returns:
            Parsed JSON body

        Raises:
            AuthorizationError: Token rejected (now or by an earlier call)
            TransientRemoteError: Retries exhausted
            APIError: Non-retryable failure
        """
        max_attempts = self.retry.max_attempts

        for attempt in range(1, max_attempts + 1):
            self._check_authorized(path)
            logger.debug(f"GET {path} {self._sanitize_log_data(params or {})}")

            try:
                return self.transport.request(path, params)

            except AuthorizationError as e:
                self._auth_error = e
                self._unauthorized.set()
                logger.error(f"Authorization failed for {path}: {e.message}")
                raise

            except TransientRemoteError as e:
                if attempt == max_attempts:
                    logger.error(f"API call to {path} failed after {max_attempts} attempts: {e.message}")
                    raise

                delay = self.retry.get_backoff_time(attempt)
                if e.retry_after is not None:
                    delay = max(delay, e.retry_after)
                logger.warning(
                    f"API call to {path} failed (attempt {attempt}/{max_attempts}), "
                    f"retrying in {delay}s: {e.message}"
                )
                self._sleep(delay)

        # max_attempts >= 1 is validated, the loop always returns or raises
        raise APIError(f"No attempt made for {path}")

    def fetch_all(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every item of a paginated Graph API edge.

        Follows ``paging.cursors.after`` while the response advertises a
        ``paging.next`` page.

        Args:
            path: Endpoint path
            params: Query parameters
            page_size: Items per page
            max_pages: Maximum pages to fetch (None = all)

        Returns:
            Items of every page, in API order
        """
        page_params = dict(params or {})
        page_params.setdefault("limit", page_size)
        items: List[Dict[str, Any]] = []
        pages = 0

        while True:
            body = self.call(path, page_params)
            items.extend(body.get("data", []))
            pages += 1

            paging = body.get("paging") or {}
            after = (paging.get("cursors") or {}).get("after")
            if not paging.get("next") or not after:
                break
            if max_pages and pages >= max_pages:
                logger.warning(f"Stopped paging {path} after {pages} pages")
                break
            page_params = {**page_params, "after": after}

        return items

    def _check_authorized(self, path: str) -> None:
        if self._unauthorized.is_set():
            raise AuthorizationError(
                "Aborting call: access token was rejected earlier in this run",
                details={"path": path, "error": str(self._auth_error)},
            )

    @staticmethod
    def _sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
        """Remove sensitive data from logs."""
        return {
            key: "***REDACTED***" if any(sk in key.lower() for sk in SENSITIVE_KEYS) else value
            for key, value in data.items()
        }
