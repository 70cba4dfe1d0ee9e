"""
Module: connectors.klaviyo

Async connector for the Klaviyo segment endpoints used by the pipeline.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx

from config.config import KlaviyoConfig
from connectors.exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

CURSOR_PARAM = "page[cursor]"


@dataclass
class SegmentPage:
    """One page of segment members plus the cursor for the next page."""

    members: list[dict[str, Any]] = field(default_factory=list)
    next_link: str | None = None


def parse_next_cursor(next_link: str) -> str:
    """Extract the ``page[cursor]`` value from a ``links.next`` URL.

    Raises:
        ValueError: If the link carries no cursor.
    """
    values = parse_qs(urlparse(next_link).query).get(CURSOR_PARAM)
    if not values or not values[0]:
        raise ValueError(f"No {CURSOR_PARAM} in next link: {next_link}")
    return values[0]


class KlaviyoClient:
    """
    Thin wrapper around ``httpx.AsyncClient`` for segment membership reads.

    Use as an async context manager; an externally supplied client is borrowed
    and left open.
    """

    def __init__(
        self,
        config: KlaviyoConfig,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def __aenter__(self) -> "KlaviyoClient":
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
            raise RuntimeError("KlaviyoClient used outside of 'async with'.")
        return self._client

    def segment_url(self) -> str:
        return f"{self.config.base_url}/segments/{self.config.segment_id}/"

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self.client.get(url, params=params, headers=self.config.headers)
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Non-JSON body from {url}") from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Unexpected payload type from {url}: {type(payload).__name__}")
        return payload

    async def fetch_segment_page(self, cursor: str | None = None, page_size: int = 100) -> SegmentPage:
        """
        Fetch one page of segment profiles.

        Raises:
            MalformedResponseError: If the body has no ``data`` list.
            httpx.HTTPError: On transport errors or non-2xx responses.
        """
        params: dict[str, Any] = {"page[size]": page_size}
        if cursor:
            params[CURSOR_PARAM] = cursor
        payload = await self._get_json(f"{self.segment_url()}profiles/", params=params)
        data = payload.get("data")
        if not isinstance(data, list):
            raise MalformedResponseError("Invalid data format")
        links = payload.get("links") or {}
        return SegmentPage(members=data, next_link=links.get("next"))

    async def get_segment_name(self) -> str | None:
        """Return the segment's display name, or None if it cannot be read."""
        try:
            payload = await self._get_json(self.segment_url())
        except (httpx.HTTPError, MalformedResponseError) as exc:
            logger.warning(f"Could not fetch segment name for {self.config.segment_id}: {exc}")
            return None
        data = payload.get("data")
        attributes = data.get("attributes") if isinstance(data, dict) else None
        if not isinstance(attributes, dict):
            logger.warning(f"Segment {self.config.segment_id} response has no attributes")
            return None
        name = attributes.get("name")
        return name if isinstance(name, str) and name else None
