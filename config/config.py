"""
Configuration classes for the segment purchase enrichment pipeline.
Defines API credentials and pipeline knobs in a type-safe, extensible way.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_KLAVIYO_API_VERSION = "2025-04-15"
DEFAULT_SHOPIFY_API_VERSION = "2025-04"
UNKNOWN_SEGMENT_NAME = "Unknown Segment"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass
class KlaviyoConfig:
    api_key: str
    segment_id: str
    api_version: str = DEFAULT_KLAVIYO_API_VERSION
    segment_name: str | None = None  # Falls back to the segment endpoint
    base_url: str = "https://a.klaviyo.com/api"

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.segment_id)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Klaviyo-API-Key {self.api_key}",
            "Accept": "application/json",
            "Revision": self.api_version,
        }


@dataclass
class ShopifyConfig:
    access_token: str
    store_domain: str
    api_version: str = DEFAULT_SHOPIFY_API_VERSION

    @property
    def base_url(self) -> str:
        domain = self.store_domain.strip().removeprefix("https://").rstrip("/")
        return f"https://{domain}/admin/api/{self.api_version}"

    @property
    def headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }


@dataclass
class RetrySettings:
    fetch_max_retries: int = 3
    fetch_backoff: float = 0.5  # seconds, multiplied by the attempt number
    rate_limit_delay: float = 1.0
    rate_limit_max_retries: int | None = 60  # None retries forever


@dataclass
class PipelineConfig:
    profiles_path: Path = Path("klaviyo_profiles.json")
    enriched_path: Path = Path("enriched_profiles.ndjson")
    csv_path: Path = Path("enriched_klaviyo_shopify_data.csv")
    chart_path: Path = Path("top_products_pie_chart.png")
    limit: int = 110000
    page_size: int = 100
    page_delay: float = 0.15
    top_n: int = 10
    request_timeout: float = 30.0


@dataclass
class Settings:
    klaviyo: KlaviyoConfig
    shopify: ShopifyConfig
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    log_level: str = "INFO"


REQUIRED_ENV_VARS = (
    "KLAVIYO_API_KEY",
    "KLAVIYO_SEGMENT_UUID",
    "SHOPIFY_API_TOKEN",
    "SHOPIFY_STORE_DOMAIN",
)


def load_settings(env: Mapping[str, str] | None = None, require_credentials: bool = True) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read from. Defaults to ``os.environ``.
        require_credentials: When False, missing API variables are left empty
            instead of raising. Used by commands that only read local files.

    Raises:
        ConfigError: If any required variable is missing or empty.
    """
    env = os.environ if env is None else env
    missing = [name for name in REQUIRED_ENV_VARS if not env.get(name, "").strip()]
    if missing and require_credentials:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    klaviyo = KlaviyoConfig(
        api_key=env.get("KLAVIYO_API_KEY", "").strip(),
        segment_id=env.get("KLAVIYO_SEGMENT_UUID", "").strip(),
        api_version=env.get("KLAVIYO_API_VERSION") or DEFAULT_KLAVIYO_API_VERSION,
        segment_name=env.get("KLAVIYO_SEGMENT_NAME") or None,
    )
    shopify = ShopifyConfig(
        access_token=env.get("SHOPIFY_API_TOKEN", "").strip(),
        store_domain=env.get("SHOPIFY_STORE_DOMAIN", "").strip(),
        api_version=env.get("SHOPIFY_API_VERSION") or DEFAULT_SHOPIFY_API_VERSION,
    )
    return Settings(
        klaviyo=klaviyo,
        shopify=shopify,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


# Example usage:
# settings = load_settings()
# settings.pipeline.limit = 500
