"""
Module: connectors.shopify

Async connector for the Shopify Admin REST lookups used during enrichment.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from config.config import ShopifyConfig
from connectors.exceptions import MalformedResponseError, RateLimitedError
from models.enrichment import Customer, OrderSummary

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = "id,email,first_name,last_name"


class ShopifyClient:
    """
    Customer-by-email and most-recent-order lookups.

    A 429 response raises RateLimitedError so callers can apply their own
    retry policy; other non-2xx responses raise ``httpx.HTTPStatusError``.
    """

    def __init__(
        self,
        config: ShopifyConfig,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def __aenter__(self) -> "ShopifyClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("ShopifyClient used outside of 'async with'.")
        return self._client

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.config.base_url}/{path}"
        response = await self.client.get(url, params=params, headers=self.config.headers)
        if response.status_code == 429:
            raise RateLimitedError(url, response.headers.get("Retry-After"))
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Non-JSON body from {url}") from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Unexpected payload type from {url}")
        return payload

    async def search_customer_by_email(self, email: str) -> Customer | None:
        """Return the first customer matching ``email``, or None.

        Raises:
            MalformedResponseError: If the customer record does not validate.
        """
        payload = await self._get_json(
            "customers/search.json",
            {"query": f"email:{email}", "fields": CUSTOMER_FIELDS},
        )
        customers = payload.get("customers") or []
        if not customers:
            return None
        if not isinstance(customers, list):
            raise MalformedResponseError(f"Unexpected customers payload for {email}")
        try:
            return Customer.model_validate(customers[0])
        except ValidationError as exc:
            raise MalformedResponseError(f"Invalid customer record for {email}: {exc}") from exc

    async def get_most_recent_order(self, customer_id: int | str) -> OrderSummary | None:
        """Return a summary of the customer's latest order, or None if they have none.

        Raises:
            MalformedResponseError: If the order or its line items have the wrong shape.
        """
        payload = await self._get_json(
            "orders.json",
            {
                "customer_id": customer_id,
                "status": "any",
                "limit": 1,
                "order": "created_at desc",
            },
        )
        orders = payload.get("orders") or []
        if not orders:
            return None
        if not isinstance(orders, list) or not isinstance(orders[0], dict):
            raise MalformedResponseError(f"Unexpected orders payload for customer {customer_id}")
        order = orders[0]
        line_items = order.get("line_items") or []
        if not isinstance(line_items, list) or (line_items and not isinstance(line_items[0], dict)):
            raise MalformedResponseError(f"Unexpected line items for customer {customer_id}")
        try:
            return OrderSummary.from_order(order)
        except ValidationError as exc:
            raise MalformedResponseError(f"Invalid order for customer {customer_id}: {exc}") from exc
