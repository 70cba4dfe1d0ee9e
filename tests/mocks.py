"""Mock objects and payload builders for testing the pipeline."""

from collections.abc import Callable

import httpx

from config.config import KlaviyoConfig, ShopifyConfig
from connectors.exceptions import RateLimitedError
from connectors.klaviyo import KlaviyoClient
from connectors.shopify import ShopifyClient
from models.enrichment import Customer, OrderSummary

KLAVIYO_CONFIG = KlaviyoConfig(api_key="pk_test", segment_id="SEG123")
SHOPIFY_CONFIG = ShopifyConfig(access_token="shpat_test", store_domain="test-store.myshopify.com")


def make_klaviyo_client(handler: Callable[[httpx.Request], httpx.Response]) -> KlaviyoClient:
    """KlaviyoClient wired to an in-process MockTransport."""
    return KlaviyoClient(KLAVIYO_CONFIG, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def make_shopify_client(handler: Callable[[httpx.Request], httpx.Response]) -> ShopifyClient:
    """ShopifyClient wired to an in-process MockTransport."""
    return ShopifyClient(SHOPIFY_CONFIG, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def segment_payload(members: list[tuple[str, str | None]], next_cursor: str | None = None) -> dict:
    """Klaviyo segment page body for ``(profile_id, email)`` pairs."""
    next_link = None
    if next_cursor:
        next_link = (
            "https://a.klaviyo.com/api/segments/SEG123/profiles/"
            f"?page%5Bsize%5D=100&page%5Bcursor%5D={next_cursor}"
        )
    return {
        "data": [{"type": "profile", "id": pid, "attributes": {"email": email}} for pid, email in members],
        "links": {"self": "https://a.klaviyo.com/api/segments/SEG123/profiles/", "next": next_link},
    }


# Mock for the Shopify connector used by the enricher and report
class MockShopify:
    def __init__(
        self,
        customers: dict[str, Customer] | None = None,
        orders: dict[int | str, OrderSummary] | None = None,
        rate_limited_times: int = 0,
    ):
        self.customers = customers or {}
        self.orders = orders or {}
        self.rate_limited_times = rate_limited_times
        self.customer_calls: list[str] = []
        self.order_calls: list[int | str] = []

    async def search_customer_by_email(self, email):
        self.customer_calls.append(email)
        if self.rate_limited_times > 0:
            self.rate_limited_times -= 1
            raise RateLimitedError("https://test-store.myshopify.com/customers/search.json")
        return self.customers.get(email)

    async def get_most_recent_order(self, customer_id):
        self.order_calls.append(customer_id)
        return self.orders.get(customer_id)
