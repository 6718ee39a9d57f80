"""Custom exception hierarchy for the ads insights pipeline.

Every error raised by the pipeline derives from InsightsError, so callers can
catch the whole family at once while still reacting to specific kinds:
transient remote failures are retried inside the API client, everything else
propagates and aborts the run.
"""

from typing import Optional, Dict, Any, List, Sequence


class InsightsError(Exception):
    """Base exception for all ads insights pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthorizationError(InsightsError):
    """Raised when the access token is invalid, expired or lacks permissions.

    Never retried by the API client. The caller is expected to obtain a fresh
    token from the token gate and re-run.
    """

    pass


class TokenNotFoundError(AuthorizationError):
    """Raised by a token gate when no token is stored for a user/app pair."""

    def __init__(self, user_id: str, app_id: str):
        super().__init__(
            f"No token stored for user {user_id} and app {app_id}",
            details={"user_id": user_id, "app_id": app_id},
        )
        self.user_id = user_id
        self.app_id = app_id


class APIError(InsightsError):
    """Raised when a Graph API request fails and retrying will not help.

    Examples:
        - Invalid parameter (unknown field or breakdown)
        - Unsupported endpoint
        - Malformed response
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize API error with HTTP details.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            response_body: Raw response body
            details: Optional additional context
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        """Return string representation including HTTP status."""
        base = self.message
        if self.status_code:
            base = f"[HTTP {self.status_code}] {base}"
        if self.response_body:
            base = f"{base}\nResponse: {self.response_body[:500]}"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base


class TransientRemoteError(APIError):
    """Raised for failures that may succeed if retried.

    Network blips, timeouts, HTTP 5xx and Graph API rate limiting all land
    here. The API client retries these with exponential backoff.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize transient error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code, if any
            response_body: Raw response body, if any
            retry_after: Seconds the server asked us to wait
            details: Optional additional context
        """
        super().__init__(message, status_code, response_body, details)
        self.retry_after = retry_after


class ConfigurationError(InsightsError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Missing required configuration keys
        - Invalid period or breakdown values
        - Configuration file not found
    """

    pass


class UnknownSourceError(ConfigurationError):
    """Raised when an ad account source is neither personal nor business."""

    def __init__(self, source: Any):
        super().__init__(
            f"Unknown ad accounts source {source!r}",
            details={"source": str(source)},
        )
        self.source = source


class UnknownSchemaError(ConfigurationError):
    """Raised when no warehouse schema is registered for a table name.

    Indicates a mismatch between the configured periods/breakdowns and the
    schemas registered for the warehouse.
    """

    def __init__(self, table_names: Sequence[str]):
        names = list(table_names)
        super().__init__(
            f"No warehouse schema registered for table(s): {', '.join(names)}",
            details={"tables": names},
        )
        self.table_names = names


class DatabaseError(InsightsError):
    """Raised when warehouse operations fail.

    Examples:
        - Connection failures
        - CREATE TABLE rejected
        - COPY aborted
    """

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize database error with query context.

        Args:
            message: Human-readable error message
            query: SQL statement that caused the error
            details: Optional additional context
        """
        super().__init__(message, details)
        self.query = query

    def __str__(self) -> str:
        """Return string representation with query."""
        base = self.message
        if self.query:
            base = f"{base}\nQuery: {self.query[:500]}"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base


class FanoutError(InsightsError):
    """Raised when an insights request of the fan-out batch fails for good.

    Carries the failing request so the run can be diagnosed and re-run.
    When the batch ran under the continue policy, ``failures`` holds every
    (request, cause) pair and ``failed_request`` is the first of them.
    """

    def __init__(
        self,
        failed_request: Any,
        cause: BaseException,
        failures: Optional[List[tuple]] = None,
    ):
        self.failed_request = failed_request
        self.cause = cause
        self.failures = failures or [(failed_request, cause)]
        super().__init__(
            f"Insights request failed: {failed_request}",
            details={
                "request": str(failed_request),
                "error": str(cause),
                "failed_units": len(self.failures),
            },
        )


class PipelineError(InsightsError):
    """Raised when a pipeline run aborts.

    Wraps the underlying error with the stage it happened in
    (token/accounts/ads/fanout/load).
    """

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize pipeline error.

        Args:
            message: Human-readable error message
            stage: Pipeline stage where error occurred
            cause: Underlying exception
            details: Optional additional context
        """
        super().__init__(message, details)
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation with stage context."""
        base = self.message
        if self.stage:
            base = f"{base} (stage: {self.stage})"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base
