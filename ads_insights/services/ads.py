"""Ad resolution.

Listing ads costs one extra call per account, but once ad ids are known every
insights request can run at full concurrency without walking accounts and
campaigns again.
"""

from typing import Iterable, List

from loguru import logger

from ads_insights.adapters.api_client import RateLimitedApiClient
from ads_insights.core.constants import AD_FIELDS, ENDPOINT_ACCOUNT_ADS
from ads_insights.domain.models import Ad, AdAccount
from ads_insights.services.concurrency import BoundedExecutor


class AdResolver:
    """Resolves the ads under a set of ad accounts."""

    def __init__(self, client: RateLimitedApiClient, executor: BoundedExecutor):
        self.client = client
        self.executor = executor

    def resolve_ads(self, accounts: Iterable[AdAccount]) -> List[Ad]:
        """List the ads of every account, concurrently.

        Args:
            accounts: Ad accounts to list

        Returns:
            Flat list of ads, each carrying its owning account id
        """
        accounts = list(accounts)
        ads = self.executor.flat_map(self._account_ads, accounts)
        logger.info(f"Resolved {len(ads)} ad(s) across {len(accounts)} account(s)")
        return ads

    def _account_ads(self, account: AdAccount) -> List[Ad]:
        path = ENDPOINT_ACCOUNT_ADS.format(account_id=account.id)
        payload = self.client.fetch_all(path, {"fields": list(AD_FIELDS)})
        return [
            Ad(id=str(item["id"]), account_id=str(item.get("account_id") or account.numeric_id))
            for item in payload
        ]
