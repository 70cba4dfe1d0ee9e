"""
Module: connectors.exceptions

Errors raised by the Klaviyo and Shopify connectors.
"""


class ConnectorError(Exception):
    """Base error for upstream API failures."""


class RateLimitedError(ConnectorError):
    """Upstream answered 429 Too Many Requests."""

    def __init__(self, url: str, retry_after: str | None = None):
        self.url = url
        self.retry_after = retry_after
        super().__init__(f"Rate limited by {url}")


class MalformedResponseError(ConnectorError):
    """Upstream body was not JSON or did not have the expected shape."""
