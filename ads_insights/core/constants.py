"""Constants for the ads insights pipeline.

Centralizes Graph API endpoints, error codes, defaults and environment
variable names.
"""

from typing import Final, FrozenSet, Tuple


# Graph API
API_VERSION: Final[str] = "v24.0"
REQUEST_TIMEOUT_SECONDS: Final[int] = 60
DEFAULT_PAGE_SIZE: Final[int] = 500

ENDPOINT_MY_AD_ACCOUNTS: Final[str] = "/me/adaccounts"
ENDPOINT_MY_BUSINESSES: Final[str] = "/me/businesses"
ENDPOINT_OWNED_AD_ACCOUNTS: Final[str] = "/{business_id}/owned_ad_accounts"
ENDPOINT_ACCOUNT_ADS: Final[str] = "/{account_id}/ads"
ENDPOINT_AD_INSIGHTS: Final[str] = "/{ad_id}/insights"

AD_ACCOUNT_FIELDS: Final[Tuple[str, ...]] = ("id", "name")
AD_FIELDS: Final[Tuple[str, ...]] = ("id", "account_id")
AD_ACCOUNT_PREFIX: Final[str] = "act_"

# Graph API error classification
# https://developers.facebook.com/docs/graph-api/guides/error-handling
AUTH_ERROR_CODES: Final[FrozenSet[int]] = frozenset({102, 190, 10})
PERMISSION_ERROR_CODE_RANGE: Final[range] = range(200, 300)
RATE_LIMIT_ERROR_CODES: Final[FrozenSet[int]] = frozenset({4, 17, 32, 613})
ADS_RATE_LIMIT_ERROR_CODE_RANGE: Final[range] = range(80000, 80015)
TRANSIENT_ERROR_CODES: Final[FrozenSet[int]] = frozenset({1, 2})

# Retry defaults
MAX_RETRIES: Final[int] = 3
RETRY_BASE_DELAY_SECONDS: Final[float] = 2.0
RETRY_BACKOFF_FACTOR: Final[float] = 2.0
RETRY_MAX_DELAY_SECONDS: Final[float] = 60.0

# Fan-out defaults
DEFAULT_MAX_CONCURRENCY: Final[int] = 8
DEFAULT_PERIODS: Final[Tuple[str, ...]] = ("daily", "lifetime")
DEFAULT_BREAKDOWNS: Final[Tuple[Tuple[str, ...], ...]] = (
    ("age", "gender"),
    ("country", "region"),
)
DEFAULT_METRICS: Final[Tuple[str, ...]] = (
    "impressions",
    "reach",
    "frequency",
    "clicks",
    "unique_clicks",
    "inline_link_clicks",
    "spend",
    "cpc",
    "cpm",
    "cpp",
    "ctr",
    "unique_ctr",
    "inline_link_click_ctr",
)

# Warehouse
TABLE_PREFIX: Final[str] = "ads_insights"
DEFAULT_DATASET: Final[str] = "facebook_ads_insights"
PIPE_DELIMITER: Final[str] = "|"
ESCAPE_CHARS: Final[dict] = {
    "\\": "\\\\",  # Backslash must be escaped first
    "|": "\\|",
    "\n": " ",
}

# Environment variables
ENV_APP_ID: Final[str] = "FACEBOOK_APP_ID"
ENV_APP_SECRET: Final[str] = "FACEBOOK_APP_SECRET"
ENV_API_VERSION: Final[str] = "FACEBOOK_API_VERSION"
ENV_MAX_CONCURRENCY: Final[str] = "INSIGHTS_MAX_CONCURRENCY"
ENV_WAREHOUSE_PROJECT: Final[str] = "WAREHOUSE_PROJECT"
ENV_WAREHOUSE_DATASET: Final[str] = "WAREHOUSE_DATASET"
ENV_DATABASE_HOST: Final[str] = "VERTICA_HOST"
ENV_DATABASE_PORT: Final[str] = "VERTICA_PORT"
ENV_DATABASE_NAME: Final[str] = "VERTICA_DATABASE"
ENV_DATABASE_USER: Final[str] = "VERTICA_USER"
ENV_DATABASE_PASSWORD: Final[str] = "VERTICA_PASSWORD"
ENV_CREDENTIALS_FILE: Final[str] = "CREDENTIALS_FILE"
ENV_TOKEN_STORE: Final[str] = "TOKEN_STORE"
ENV_LOG_LEVEL: Final[str] = "LOG_LEVEL"

# Token store
TOKEN_SCHEMA: Final[str] = "ESPDM"
TOKEN_TABLE: Final[str] = "FACEBOOK_ACCESS_TOKENS"
