"""Configuration management for the insights pipeline.

Configuration is resolved with a clear precedence:
CLI arguments > Environment variables > YAML file > Defaults

The configuration is type-safe using dataclasses and validated on load.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from loguru import logger

from ads_insights.core.constants import (
    API_VERSION,
    DEFAULT_BREAKDOWNS,
    DEFAULT_DATASET,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_METRICS,
    DEFAULT_PERIODS,
    ENV_API_VERSION,
    ENV_APP_ID,
    ENV_APP_SECRET,
    ENV_DATABASE_HOST,
    ENV_DATABASE_NAME,
    ENV_DATABASE_PASSWORD,
    ENV_DATABASE_PORT,
    ENV_DATABASE_USER,
    ENV_MAX_CONCURRENCY,
    ENV_WAREHOUSE_DATASET,
    ENV_WAREHOUSE_PROJECT,
    MAX_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BACKOFF_FACTOR,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
)
from ads_insights.core.exceptions import ConfigurationError
from ads_insights.domain.models import Breakdowns, Period

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config_insights.yml"


class FailurePolicy(Enum):
    """What a fan-out batch does when one of its units fails."""

    FAIL_FAST = "fail_fast"  # Cancel the rest of the batch on first failure
    CONTINUE = "continue"    # Run every unit, then report all failures


@dataclass
class RetryConfig:
    """Retry configuration for remote calls.

    Attributes:
        max_attempts: Total attempts per call, first one included
        base_delay_seconds: Delay before the first retry
        backoff_factor: Multiplier for exponential backoff
        max_delay_seconds: Upper bound of a single delay
    """

    max_attempts: int = MAX_RETRIES
    base_delay_seconds: float = RETRY_BASE_DELAY_SECONDS
    backoff_factor: float = RETRY_BACKOFF_FACTOR
    max_delay_seconds: float = RETRY_MAX_DELAY_SECONDS

    def get_backoff_time(self, attempt: int) -> float:
        """Calculate backoff time after a failed attempt.

        Args:
            attempt: Failed attempt number (1-indexed)

        Returns:
            Backoff time in seconds
        """
        backoff = self.base_delay_seconds * (self.backoff_factor ** (attempt - 1))
        return min(backoff, self.max_delay_seconds)

    def validate(self) -> None:
        """Validate retry configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ConfigurationError("base_delay_seconds must be non-negative")
        if self.backoff_factor < 1.0:
            raise ConfigurationError("backoff_factor must be at least 1.0")


@dataclass
class GraphApiConfig:
    """Facebook Graph API settings."""

    api_version: str = API_VERSION
    app_id: Optional[str] = None
    app_secret: Optional[str] = field(default=None, repr=False)
    timeout: int = REQUEST_TIMEOUT_SECONDS


@dataclass
class DatabaseConfig:
    """Vertica connection configuration."""

    host: str
    port: int
    database: str
    user: str
    password: str = field(repr=False)

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Create configuration from environment variables.

        Returns:
            DatabaseConfig instance

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        required_vars = {
            "host": ENV_DATABASE_HOST,
            "port": ENV_DATABASE_PORT,
            "database": ENV_DATABASE_NAME,
            "user": ENV_DATABASE_USER,
            "password": ENV_DATABASE_PASSWORD,
        }

        config_values: Dict[str, Any] = {}
        missing_vars = []

        for key, env_var in required_vars.items():
            value = os.getenv(env_var)
            if value is None:
                missing_vars.append(env_var)
                continue
            if key == "port":
                try:
                    value = int(value)
                except ValueError:
                    raise ConfigurationError(
                        f"Invalid port number: {value}",
                        details={"env_var": env_var},
                    )
            config_values[key] = value

        if missing_vars:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

        return cls(**config_values)


@dataclass
class WarehouseConfig:
    """Where insight tables live: ``{project}.{dataset}.{table}``."""

    project: str = ""
    dataset: str = DEFAULT_DATASET

    def qualify(self, table_name: str) -> str:
        if not self.project:
            return f"{self.dataset}.{table_name}"
        return f"{self.project}.{self.dataset}.{table_name}"


@dataclass
class InsightsConfig:
    """What to extract and how hard to hit the API."""

    periods: Tuple[Period, ...] = tuple(Period.parse(p) for p in DEFAULT_PERIODS)
    breakdowns: Tuple[Breakdowns, ...] = DEFAULT_BREAKDOWNS
    metrics: Tuple[str, ...] = DEFAULT_METRICS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST

    def validate(self) -> None:
        """Validate insights configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.periods:
            raise ConfigurationError("At least one period must be configured")
        if not self.breakdowns:
            raise ConfigurationError("At least one breakdown combination must be configured")
        if not self.metrics:
            raise ConfigurationError("At least one metric must be configured")
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")
        if len(set(self.breakdowns)) != len(self.breakdowns):
            raise ConfigurationError(
                "Breakdown combinations must be unique",
                details={"breakdowns": [list(b) for b in self.breakdowns]},
            )


@dataclass
class AppConfig:
    """Application-wide configuration."""

    graph_api: GraphApiConfig = field(default_factory=GraphApiConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    insights: InsightsConfig = field(default_factory=InsightsConfig)
    warehouse: WarehouseConfig = field(default_factory=WarehouseConfig)
    database: Optional[DatabaseConfig] = None
    schemas_file: Optional[Path] = None

    def validate(self) -> None:
        self.retry.validate()
        self.insights.validate()


class ConfigurationManager:
    """Loads AppConfig from YAML, environment variables and overrides.

    Configuration precedence (highest to lowest):
    1. Overrides (CLI arguments, passed to load_config)
    2. Environment variables
    3. YAML configuration file
    4. Default values
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize the configuration manager.

        Args:
            config_path: YAML configuration file. Defaults to the
                         config_insights.yml shipped with the package.
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._app_config: Optional[AppConfig] = None

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
        """Load application configuration.

        Args:
            overrides: Highest precedence values, keyed like the YAML sections
                       flattened with dots (e.g. ``insights.max_concurrency``)

        Returns:
            AppConfig instance with loaded configuration

        Raises:
            ConfigurationError: If configuration loading or validation fails
        """
        raw = self._read_yaml()
        self._apply_env(raw)
        for dotted_key, value in (overrides or {}).items():
            if value is None:
                continue
            section, _, key = dotted_key.partition(".")
            raw.setdefault(section, {})[key] = value

        app_config = self._build(raw)

        try:
            app_config.database = DatabaseConfig.from_env()
        except ConfigurationError as e:
            logger.warning(f"Database configuration not available: {e}")

        app_config.validate()
        self._app_config = app_config
        return app_config

    def get_config(self) -> AppConfig:
        """Get the current application configuration.

        Raises:
            ConfigurationError: If configuration not loaded yet
        """
        if self._app_config is None:
            raise ConfigurationError(
                "Configuration not loaded. Call load_config() first."
            )
        return self._app_config

    def _read_yaml(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {self.config_path}",
                details={"error": str(e)},
            )

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")
        logger.debug(f"Loaded configuration from {self.config_path}")
        return {k: dict(v or {}) for k, v in data.items()}

    @staticmethod
    def _apply_env(raw: Dict[str, Dict[str, Any]]) -> None:
        env_map = {
            ENV_APP_ID: ("graph_api", "app_id"),
            ENV_APP_SECRET: ("graph_api", "app_secret"),
            ENV_API_VERSION: ("graph_api", "api_version"),
            ENV_MAX_CONCURRENCY: ("insights", "max_concurrency"),
            ENV_WAREHOUSE_PROJECT: ("warehouse", "project"),
            ENV_WAREHOUSE_DATASET: ("warehouse", "dataset"),
        }
        for env_var, (section, key) in env_map.items():
            value = os.getenv(env_var)
            if value:
                raw.setdefault(section, {})[key] = value

    def _build(self, raw: Dict[str, Dict[str, Any]]) -> AppConfig:
        try:
            graph = raw.get("graph_api", {})
            retry = raw.get("retry", {})
            insights = raw.get("insights", {})
            warehouse = raw.get("warehouse", {})

            insights_config = InsightsConfig()
            if "periods" in insights:
                insights_config.periods = tuple(Period.parse(p) for p in insights["periods"])
            if "breakdowns" in insights:
                insights_config.breakdowns = _parse_breakdowns(insights["breakdowns"])
            if "metrics" in insights:
                insights_config.metrics = tuple(str(m) for m in insights["metrics"])
            if "max_concurrency" in insights:
                insights_config.max_concurrency = int(insights["max_concurrency"])
            if "failure_policy" in insights:
                insights_config.failure_policy = FailurePolicy(str(insights["failure_policy"]).lower())

            schemas_file = raw.get("warehouse", {}).get("schemas_file")
            if schemas_file:
                schemas_file = Path(schemas_file)
                if not schemas_file.is_absolute():
                    schemas_file = self.config_path.parent / schemas_file

            return AppConfig(
                graph_api=GraphApiConfig(
                    api_version=str(graph.get("api_version", API_VERSION)),
                    app_id=_optional_str(graph.get("app_id")),
                    app_secret=_optional_str(graph.get("app_secret")),
                    timeout=int(graph.get("timeout", REQUEST_TIMEOUT_SECONDS)),
                ),
                retry=RetryConfig(
                    max_attempts=int(retry.get("max_attempts", MAX_RETRIES)),
                    base_delay_seconds=float(retry.get("base_delay_seconds", RETRY_BASE_DELAY_SECONDS)),
                    backoff_factor=float(retry.get("backoff_factor", RETRY_BACKOFF_FACTOR)),
                    max_delay_seconds=float(retry.get("max_delay_seconds", RETRY_MAX_DELAY_SECONDS)),
                ),
                insights=insights_config,
                warehouse=WarehouseConfig(
                    project=str(warehouse.get("project", "") or ""),
                    dataset=str(warehouse.get("dataset", DEFAULT_DATASET)),
                ),
                schemas_file=schemas_file,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid configuration in {self.config_path}",
                details={"error": str(e)},
            ) from e


def _parse_breakdowns(value: Any) -> Tuple[Breakdowns, ...]:
    """Accept ``[[age, gender], ...]`` or ``["age,gender", ...]``."""
    combinations: List[Breakdowns] = []
    for item in value:
        if isinstance(item, str):
            dims = tuple(d.strip() for d in item.split(",") if d.strip())
        else:
            dims = tuple(str(d).strip() for d in item)
        combinations.append(dims)
    return tuple(combinations)


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
