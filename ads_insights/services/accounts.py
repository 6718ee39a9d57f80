"""Ad account resolution.

Personal accounts come from the user's own ad account edge; business accounts
are the accounts owned by every business the user belongs to.
"""

from typing import Any, Dict, List, Union

from loguru import logger

from ads_insights.adapters.api_client import RateLimitedApiClient
from ads_insights.core.constants import (
    AD_ACCOUNT_FIELDS,
    ENDPOINT_MY_AD_ACCOUNTS,
    ENDPOINT_MY_BUSINESSES,
    ENDPOINT_OWNED_AD_ACCOUNTS,
)
from ads_insights.core.exceptions import UnknownSourceError
from ads_insights.domain.models import AccountSource, AdAccount
from ads_insights.services.concurrency import BoundedExecutor


class AccountResolver:
    """Resolves the ad accounts reachable for an account source."""

    def __init__(self, client: RateLimitedApiClient, executor: BoundedExecutor):
        self.client = client
        self.executor = executor

    def resolve_accounts(self, source: Union[AccountSource, str]) -> List[AdAccount]:
        """Resolve ad accounts for a source.

        Args:
            source: AccountSource or its string value

        Returns:
            Flat list of ad accounts (business accounts are not de-duplicated)

        Raises:
            UnknownSourceError: If the source is not personal or business
        """
        source = AccountSource.parse(source)

        if source is AccountSource.PERSONAL:
            accounts = self._personal_accounts()
        elif source is AccountSource.BUSINESS:
            accounts = self._business_accounts()
        else:
            raise UnknownSourceError(source)

        logger.info(f"Resolved {len(accounts)} {source.value} ad account(s)")
        return accounts

    def resolve_all_sources(self) -> Dict[AccountSource, List[AdAccount]]:
        """Resolve accounts of every source.

        Sources are resolved one after the other; only the per-business
        expansion runs on the executor, so in-flight calls stay within its cap.
        """
        return {source: self.resolve_accounts(source) for source in AccountSource}

    def list_selectable_accounts(self) -> List[AdAccount]:
        """Personal and business accounts merged for the account-selection screen."""
        by_source = self.resolve_all_sources()
        return [account for source in AccountSource for account in by_source.get(source, [])]

    def _personal_accounts(self) -> List[AdAccount]:
        payload = self.client.fetch_all(ENDPOINT_MY_AD_ACCOUNTS, {"fields": list(AD_ACCOUNT_FIELDS)})
        return [_to_account(item, AccountSource.PERSONAL) for item in payload]

    def _business_accounts(self) -> List[AdAccount]:
        businesses = self.client.fetch_all(ENDPOINT_MY_BUSINESSES, {"fields": ["id", "name"]})
        logger.debug(f"User belongs to {len(businesses)} business(es)")
        return self.executor.flat_map(self._owned_accounts, businesses)

    def _owned_accounts(self, business: Dict[str, Any]) -> List[AdAccount]:
        path = ENDPOINT_OWNED_AD_ACCOUNTS.format(business_id=business["id"])
        payload = self.client.fetch_all(path, {"fields": list(AD_ACCOUNT_FIELDS)})
        return [_to_account(item, AccountSource.BUSINESS) for item in payload]


def _to_account(item: Dict[str, Any], source: AccountSource) -> AdAccount:
    return AdAccount(id=str(item["id"]), name=item.get("name"), source=source)
