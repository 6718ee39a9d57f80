#!/usr/bin/env python3
"""
Ads Insights Pipeline Runner.

Command line entry point. Runs one extraction for one user:
1. Load configuration (YAML + environment + command line)
2. Load warehouse schemas and check they cover every configured table
3. Setup the token gate (credentials file or Vertica token table)
4. Setup the Vertica warehouse client (skipped when listing accounts)
5. Run the pipeline (or just list the selectable accounts)

Usage:
    python -m ads_insights.run_pipeline --user-id 123 --app-id 456 --source personal
    python -m ads_insights.run_pipeline --user-id 123 --app-id 456 --accounts act_1,act_2
    python -m ads_insights.run_pipeline --user-id 123 --app-id 456 --list-accounts

Environment Variables:
    - FACEBOOK_APP_ID / FACEBOOK_APP_SECRET: App credentials (appsecret_proof)
    - TOKEN_STORE: "file" (default) or "vertica"
    - CREDENTIALS_FILE: YAML credentials file for the file token store
    - VERTICA_HOST, VERTICA_PORT, VERTICA_DATABASE, VERTICA_USER, VERTICA_PASSWORD
    - LOG_LEVEL: Logging level (default: INFO)
    - LOG_FILE: Optional log file (rotated at 10 MB, kept 7 days)

Exit Codes:
    0: Success
    1: Configuration error
    2: Authorization error
    3: Pipeline execution error
    4: Warehouse error
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from loguru import logger

from ads_insights.core.config import ConfigurationManager, DatabaseConfig
from ads_insights.core.constants import ENV_CREDENTIALS_FILE, ENV_LOG_LEVEL, ENV_TOKEN_STORE
from ads_insights.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DatabaseError,
    PipelineError,
)
from ads_insights.domain.models import AccountSource
from ads_insights.infrastructure.schema_registry import YamlSchemaRegistry
from ads_insights.infrastructure.token_gate import create_token_gate
from ads_insights.infrastructure.warehouse import VerticaWarehouseClient
from ads_insights.pipeline import PipelineOrchestrator
from shared.utils.env import get_env
from shared.utils.logging import setup_logging

EXIT_OK = 0
EXIT_CONFIGURATION = 1
EXIT_AUTHORIZATION = 2
EXIT_PIPELINE = 3
EXIT_WAREHOUSE = 4


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract Facebook ad insights and load them into the warehouse",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--user-id", required=True, help="Facebook user id owning the token")
    parser.add_argument("--app-id", required=True, help="Facebook app id the token was issued to")
    parser.add_argument(
        "--source",
        default=AccountSource.PERSONAL.value,
        help="Account source: personal or business (default: personal)",
    )
    parser.add_argument(
        "--accounts",
        help="Comma-separated ad account ids; skips account resolution",
    )
    parser.add_argument(
        "--list-accounts",
        action="store_true",
        help="List selectable personal and business accounts and exit",
    )
    parser.add_argument("--config", help="Path to configuration YAML")
    parser.add_argument("--max-concurrency", type=int, help="Maximum in-flight API calls")
    parser.add_argument("--dump", help="Write fetched records to this JSON file before loading")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Configuration overrides taken from the command line."""
    overrides: Dict[str, Any] = {}
    if args.max_concurrency is not None:
        overrides["insights.max_concurrency"] = args.max_concurrency
    return overrides


def split_accounts(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [account.strip() for account in value.split(",") if account.strip()]


def exit_code_for(error: BaseException) -> int:
    """Map an error to the process exit code."""
    if isinstance(error, PipelineError) and error.cause is not None:
        error = error.cause
    if isinstance(error, ConfigurationError):
        return EXIT_CONFIGURATION
    if isinstance(error, AuthorizationError):
        return EXIT_AUTHORIZATION
    if isinstance(error, DatabaseError):
        return EXIT_WAREHOUSE
    return EXIT_PIPELINE


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = parse_args(argv)
    setup_logging(
        level=(args.log_level or get_env(ENV_LOG_LEVEL, "INFO")).upper(),
        log_file=get_env("LOG_FILE"),
    )

    logger.info("=" * 60)
    logger.info("Ads Insights Pipeline")
    logger.info("=" * 60)

    warehouse = None
    try:
        logger.info("[1/5] Loading configuration...")
        config = ConfigurationManager(args.config).load_config(build_overrides(args))

        logger.info("[2/5] Loading warehouse schemas...")
        schema_registry = YamlSchemaRegistry.from_file(config.schemas_file)

        logger.info("[3/5] Setting up token gate...")
        token_gate = create_token_gate(
            get_env(ENV_TOKEN_STORE, "file"),
            credentials_file=get_env(ENV_CREDENTIALS_FILE),
            database=config.database,
        )

        if args.list_accounts:
            logger.info("[4/5] Listing selectable accounts...")
            orchestrator = PipelineOrchestrator(config, token_gate, schema_registry)
            accounts = orchestrator.list_selectable_accounts(args.user_id, args.app_id)
            for account in accounts:
                print(f"{account.id}\t{account.source.value if account.source else ''}\t{account.name or ''}")
            logger.success(f"{len(accounts)} selectable account(s)")
            return EXIT_OK

        logger.info("[4/5] Setting up warehouse client...")
        warehouse = VerticaWarehouseClient(config.database or DatabaseConfig.from_env())
        orchestrator = PipelineOrchestrator(config, token_gate, schema_registry, warehouse)

        logger.info("[5/5] Running pipeline...")
        account_ids = split_accounts(args.accounts)
        if account_ids:
            summary = orchestrator.run_for_accounts(args.user_id, args.app_id, account_ids, dump_path=args.dump)
        else:
            summary = orchestrator.run(args.user_id, args.app_id, args.source, dump_path=args.dump)

        logger.info("=" * 60)
        logger.success(
            f"Ads Insights Pipeline completed: {summary.record_count} record(s), "
            f"{summary.row_count} row(s), {summary.table_count} table(s)"
        )
        logger.info("=" * 60)
        return EXIT_OK

    except (ConfigurationError, AuthorizationError, DatabaseError, PipelineError) as e:
        code = exit_code_for(e)
        logger.error(f"Run failed (exit code {code}): {e}")
        return code

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_PIPELINE

    finally:
        if warehouse is not None:
            warehouse.close()


if __name__ == "__main__":
    sys.exit(main())
