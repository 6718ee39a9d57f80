"""Graph API transport built on the Facebook Business SDK.

Issues exactly one GET per ``request`` and turns every failure into one of the
pipeline's typed errors. Retrying is not done here; see RateLimitedApiClient.
"""

from typing import Any, Dict, Optional, Tuple, Type

import requests
from facebook_business.api import FacebookAdsApi, FacebookSession
from facebook_business.exceptions import FacebookRequestError
from loguru import logger

from ads_insights.core.constants import (
    ADS_RATE_LIMIT_ERROR_CODE_RANGE,
    API_VERSION,
    AUTH_ERROR_CODES,
    PERMISSION_ERROR_CODE_RANGE,
    RATE_LIMIT_ERROR_CODES,
    REQUEST_TIMEOUT_SECONDS,
    TRANSIENT_ERROR_CODES,
)
from ads_insights.core.exceptions import (
    APIError,
    AuthorizationError,
    InsightsError,
    TransientRemoteError,
)


def classify_error(
    http_status: Optional[int],
    error_code: Optional[int],
    is_transient: bool = False,
) -> Type[InsightsError]:
    """Map a Graph API failure to an error kind.

    Args:
        http_status: HTTP status of the response
        error_code: Graph API ``error.code``
        is_transient: Graph API ``error.is_transient`` flag

    Returns:
        AuthorizationError, TransientRemoteError or APIError
    """
    if http_status == 401 or error_code in AUTH_ERROR_CODES:
        return AuthorizationError
    if error_code is not None and error_code in PERMISSION_ERROR_CODE_RANGE:
        return AuthorizationError
    if error_code in RATE_LIMIT_ERROR_CODES or error_code in TRANSIENT_ERROR_CODES:
        return TransientRemoteError
    if error_code is not None and error_code in ADS_RATE_LIMIT_ERROR_CODE_RANGE:
        return TransientRemoteError
    if is_transient or http_status == 429:
        return TransientRemoteError
    if http_status is not None and http_status >= 500:
        return TransientRemoteError
    return APIError


def _split_path(path: str) -> Tuple[str, ...]:
    """Turn ``/act_1/ads`` into the SDK's path tuple ``("act_1", "ads")``."""
    return tuple(part for part in path.strip("/").split("/") if part)


class GraphApiTransport:
    """Raw Graph API GET requests bound to one access token.

    Attributes:
        api: Facebook Ads API instance (not registered as SDK default)
        api_version: Graph API version used in every path
    """

    def __init__(
        self,
        access_token: str,
        app_id: Optional[str] = None,
        app_secret: Optional[str] = None,
        api_version: str = API_VERSION,
        timeout: int = REQUEST_TIMEOUT_SECONDS,
    ):
        """Initialize the transport.

        Args:
            access_token: User access token
            app_id: Facebook App ID
            app_secret: Facebook App Secret (enables appsecret_proof)
            api_version: Graph API version
            timeout: Request timeout in seconds
        """
        session = FacebookSession(
            app_id=app_id,
            app_secret=app_secret,
            access_token=access_token,
            timeout=timeout,
        )
        self.api = FacebookAdsApi(session, api_version=api_version)
        self.api_version = api_version
        logger.debug(f"Graph API transport ready (version: {api_version})")

    def request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute one GET request.

        Args:
            path: Endpoint path, e.g. ``/me/adaccounts``
            params: Query parameters; lists are JSON-encoded by the SDK

        Returns:
            Parsed JSON body

        Raises:
            AuthorizationError: Token invalid, expired or missing permissions
            TransientRemoteError: Rate limited, server error or network failure
            APIError: Any other failure
        """
        try:
            response = self.api.call("GET", _split_path(path), params=dict(params or {}))
        except FacebookRequestError as e:
            raise self._translate(path, e) from e
        except requests.exceptions.Timeout as e:
            raise TransientRemoteError(
                "Request timeout",
                details={"path": path, "error": str(e)},
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise TransientRemoteError(
                "Connection error",
                details={"path": path, "error": str(e)},
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise APIError(
                "Invalid JSON in response",
                status_code=response.status(),
                details={"path": path, "error": str(e)},
            ) from e

        if not isinstance(body, dict):
            raise APIError("Unexpected response shape", details={"path": path, "type": type(body).__name__})
        return body

    @staticmethod
    def _translate(path: str, error: FacebookRequestError) -> InsightsError:
        error_class = classify_error(
            error.http_status(),
            error.api_error_code(),
            bool(error.api_transient_error()),
        )
        message = error.api_error_message() or "Graph API request failed"
        details = {
            "path": path,
            "code": error.api_error_code(),
            "subcode": error.api_error_subcode(),
        }

        if error_class is AuthorizationError:
            return AuthorizationError(message, details={**details, "status": error.http_status()})
        if error_class is TransientRemoteError:
            return TransientRemoteError(
                message,
                status_code=error.http_status(),
                retry_after=_retry_after(error.http_headers()),
                details=details,
            )
        return APIError(message, status_code=error.http_status(), details=details)


def _retry_after(headers: Any) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("Retry-After") if hasattr(headers, "get") else None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
