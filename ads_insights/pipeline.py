"""Pipeline orchestrator.

Runs one extraction for one user: token -> accounts -> ads -> insights
fan-out -> warehouse load. Each stage feeds the next. The orchestrator holds
no retry logic of its own; retries live in the API client and any failure
aborts the run with the stage it happened in.
"""

import json
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from loguru import logger

from ads_insights.adapters.api_client import RateLimitedApiClient
from ads_insights.adapters.graph_transport import GraphApiTransport
from ads_insights.core.config import AppConfig
from ads_insights.core.constants import AD_ACCOUNT_PREFIX
from ads_insights.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    FanoutError,
    InsightsError,
    PipelineError,
    UnknownSchemaError,
)
from ads_insights.core.protocols import SchemaRegistry, TokenGate, WarehouseClient
from ads_insights.domain.models import (
    AccountSource,
    AdAccount,
    InsightRecord,
    RunSummary,
    Token,
    table_name_for,
)
from ads_insights.loading.loader import WarehouseLoader
from ads_insights.loading.table_registry import TableRegistry
from ads_insights.services.accounts import AccountResolver
from ads_insights.services.ads import AdResolver
from ads_insights.services.concurrency import BoundedExecutor
from ads_insights.services.fanout import InsightsFanoutEngine

ClientFactory = Callable[[Token], RateLimitedApiClient]


class PipelineOrchestrator:
    """Wires the stages of an insights extraction together.

    Attributes:
        config: Application configuration
        token_gate: Source of stored access tokens
        schema_registry: Warehouse table schemas
        warehouse: Warehouse client; only extraction runs need one
        client_factory: Builds an API client bound to a token
    """

    def __init__(
        self,
        config: AppConfig,
        token_gate: TokenGate,
        schema_registry: SchemaRegistry,
        warehouse: Optional[WarehouseClient] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.config = config
        self.token_gate = token_gate
        self.schema_registry = schema_registry
        self.warehouse = warehouse
        self.client_factory = client_factory or self._default_client
        self.executor = BoundedExecutor(config.insights.max_concurrency)

    def run(
        self,
        user_id: str,
        app_id: str,
        source: Union[AccountSource, str],
        dump_path: Optional[Union[str, Path]] = None,
    ) -> RunSummary:
        """Extract and load insights for every ad reachable through a source.

        Args:
            user_id: Facebook user id
            app_id: Facebook app id
            source: ``personal`` or ``business``
            dump_path: Optional JSON file receiving the fetched records

        Returns:
            RunSummary of the run

        Raises:
            UnknownSourceError: Source is neither personal nor business
            UnknownSchemaError: A configured table has no schema
            PipelineError: A stage failed; ``stage`` and ``cause`` say which and why
        """
        source = AccountSource.parse(source)
        self._require_warehouse()
        self.validate_schema_coverage()
        started = time.monotonic()
        logger.info(f"Starting insights run for user {user_id} ({source.value} accounts)")

        client = self._client_for(user_id, app_id)
        with self._stage("accounts"):
            accounts = AccountResolver(client, self.executor).resolve_accounts(source)

        return self._extract(user_id, client, accounts, dump_path, started)

    def run_for_accounts(
        self,
        user_id: str,
        app_id: str,
        account_ids: Sequence[str],
        dump_path: Optional[Union[str, Path]] = None,
    ) -> RunSummary:
        """Extract and load insights for an explicit selection of accounts.

        Skips account resolution; ids may be given with or without the
        ``act_`` prefix.
        """
        self._require_warehouse()
        self.validate_schema_coverage()
        started = time.monotonic()
        accounts = [AdAccount(id=account_id) for account_id in _unique_ids(account_ids)]
        logger.info(f"Starting insights run for user {user_id} ({len(accounts)} selected account(s))")

        client = self._client_for(user_id, app_id)
        return self._extract(user_id, client, accounts, dump_path, started)

    def list_selectable_accounts(self, user_id: str, app_id: str) -> List[AdAccount]:
        """Personal and business accounts the user can pick from."""
        client = self._client_for(user_id, app_id)
        with self._stage("accounts"):
            return AccountResolver(client, self.executor).list_selectable_accounts()

    def validate_schema_coverage(self) -> None:
        """Check every configured period x breakdown table has a schema.

        Raises:
            UnknownSchemaError: Listing every table without a schema
        """
        insights = self.config.insights
        expected = [
            table_name_for(period, breakdowns)
            for period in insights.periods
            for breakdowns in insights.breakdowns
        ]
        missing = [name for name in expected if self.schema_registry.schema_for(name) is None]
        if missing:
            logger.error(f"No warehouse schema for: {', '.join(missing)}")
            raise UnknownSchemaError(missing)

    def _require_warehouse(self) -> None:
        if self.warehouse is None:
            raise ConfigurationError("A warehouse client is required to run an extraction")

    def _extract(
        self,
        user_id: str,
        client: RateLimitedApiClient,
        accounts: List[AdAccount],
        dump_path: Optional[Union[str, Path]],
        started: float,
    ) -> RunSummary:
        insights = self.config.insights

        with self._stage("ads"):
            ads = AdResolver(client, self.executor).resolve_ads(accounts)

        engine = InsightsFanoutEngine(
            client,
            self.executor,
            user_id,
            metrics=insights.metrics,
            failure_policy=insights.failure_policy,
        )
        with self._stage("fanout"):
            records = engine.fanout(ads, insights.periods, insights.breakdowns)

        if dump_path:
            dump_records(records, dump_path)

        loader = WarehouseLoader(
            self.schema_registry,
            self.warehouse,
            self.executor,
            warehouse_config=self.config.warehouse,
            tables=TableRegistry(),
        )
        with self._stage("load"):
            rows = loader.load(records)

        summary = RunSummary(
            record_count=len(records),
            table_count=len(loader.tables_used),
            row_count=rows,
            account_count=len(accounts),
            ad_count=len(ads),
            duration_seconds=round(time.monotonic() - started, 3),
        )
        logger.success(
            f"Run complete: {summary.account_count} account(s), {summary.ad_count} ad(s), "
            f"{summary.record_count} record(s), {summary.row_count} row(s) in "
            f"{summary.table_count} table(s) ({summary.duration_seconds}s)"
        )
        return summary

    def _client_for(self, user_id: str, app_id: str) -> RateLimitedApiClient:
        with self._stage("token"):
            token = self.token_gate.fetch_token(user_id, app_id)
            if token.is_expired():
                raise AuthorizationError(
                    f"Stored token for user {user_id} expired at {token.expires_at}",
                    details={"user_id": user_id, "app_id": app_id},
                )
            return self.client_factory(token)

    def _default_client(self, token: Token) -> RateLimitedApiClient:
        graph_api = self.config.graph_api
        # appsecret_proof only applies when the token was issued to the configured app
        app_secret = graph_api.app_secret if graph_api.app_id == token.app_id else None
        transport = GraphApiTransport(
            access_token=token.access_token,
            app_id=token.app_id,
            app_secret=app_secret,
            api_version=graph_api.api_version,
            timeout=graph_api.timeout,
        )
        return RateLimitedApiClient(transport, retry=self.config.retry)

    @contextmanager
    def _stage(self, stage: str):
        logger.info(f"Stage started: {stage}")
        try:
            yield
        except InsightsError as e:
            details = {"error_type": type(e).__name__}
            if isinstance(e, FanoutError):
                details["request"] = str(e.failed_request)
                details["failed_units"] = len(e.failures)
            logger.error(f"Stage {stage} failed: {e.message}")
            raise PipelineError(
                f"Pipeline failed during {stage}: {e.message}",
                stage=stage,
                cause=e,
                details=details,
            ) from e
        logger.info(f"Stage finished: {stage}")


def dump_records(records: Iterable[InsightRecord], path: Union[str, Path]) -> Path:
    """Write records to a JSON file for inspection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.to_dict() for record in records]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    logger.info(f"Dumped {len(payload)} record(s) to {path}")
    return path


def _account_node_id(account_id: str) -> str:
    account_id = str(account_id).strip()
    if account_id.startswith(AD_ACCOUNT_PREFIX):
        return account_id
    return f"{AD_ACCOUNT_PREFIX}{account_id}"


def _unique_ids(ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for account_id in ids:
        if not str(account_id).strip():
            continue
        node_id = _account_node_id(account_id)
        if node_id not in seen:
            seen.add(node_id)
            result.append(node_id)
    return result
