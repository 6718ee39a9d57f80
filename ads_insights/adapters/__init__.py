"""Graph API adapters: raw transport and the rate-limited client."""

from ads_insights.adapters.api_client import RateLimitedApiClient
from ads_insights.adapters.graph_transport import GraphApiTransport

__all__ = ["RateLimitedApiClient", "GraphApiTransport"]
