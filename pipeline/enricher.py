"""
Resumable per-profile enrichment against the commerce store.

Each profile is resolved to a customer by email, the customer's latest order
is summarized, and the result is appended to an NDJSON log straight away.
Emails already present in the log are skipped, so interrupted runs resume
without reprocessing.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import httpx

from connectors.exceptions import ConnectorError, RateLimitedError
from connectors.shopify import ShopifyClient
from models.enrichment import EnrichedRecord, Profile, normalize_email
from pipeline.storage import append_enriched_record, load_processed_emails
from utils.retry import RetryPolicy, fixed_delay, retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")


def default_rate_limit_policy(delay: float = 1.0, max_retries: int | None = 60) -> RetryPolicy:
    """Fixed ``delay`` between retries on 429; ``max_retries=None`` never gives up."""
    max_attempts = None if max_retries is None else max_retries + 1
    return RetryPolicy(max_attempts=max_attempts, backoff=fixed_delay(delay))


@dataclass
class EnrichmentStats:
    total: int = 0
    processed: int = 0
    enriched: int = 0
    skipped: int = 0
    missing_customer: int = 0
    missing_order: int = 0
    failed: int = 0


class ProfileEnricher:
    """Enriches profiles one at a time and appends successes to ``output_path``."""

    def __init__(
        self,
        shopify: ShopifyClient,
        *,
        output_path: Path,
        processed_emails: set[str] | None = None,
        rate_limit_policy: RetryPolicy | None = None,
    ):
        self.shopify = shopify
        self.output_path = Path(output_path)
        if processed_emails is None:
            processed_emails = load_processed_emails(self.output_path)
        self.processed_emails = processed_emails
        self.rate_limit_policy = rate_limit_policy or default_rate_limit_policy()
        self.stats = EnrichmentStats()

    async def _with_rate_limit(self, func: Callable[[], Awaitable[T]], description: str) -> T:
        return await retry_async(
            func,
            self.rate_limit_policy,
            retry_on=(RateLimitedError,),
            description=description,
            logger=logger,
        )

    async def enrich(self, profile: Profile) -> EnrichedRecord | None:
        """
        Enrich a single profile.

        Returns the appended record, or None when the profile was skipped,
        had no customer or order, or failed.
        """
        email = normalize_email(profile.email)
        if email in self.processed_emails:
            self.stats.skipped += 1
            logger.info(f"[SKIP] {email} already enriched.")
            return None

        logger.info(f"[PROCESSING] Fetching store data for {email}...")
        try:
            customer = await self._with_rate_limit(
                lambda: self.shopify.search_customer_by_email(email),
                f"Customer lookup for {email}",
            )
            if customer is None:
                self.stats.missing_customer += 1
                logger.warning(f"[MISSING] No store customer found for {email}")
                return None

            order = await self._with_rate_limit(
                lambda: self.shopify.get_most_recent_order(customer.id),
                f"Order lookup for {email}",
            )
            if order is None:
                self.stats.missing_order += 1
                logger.warning(f"[MISSING] No order found for {email}")
                return None
        except (ConnectorError, httpx.HTTPError) as exc:
            self.stats.failed += 1
            logger.error(f"[ERROR] Failed to enrich {email}: {exc}")
            return None

        record = EnrichedRecord(
            profile_id=profile.profile_id,
            email=email,
            most_recent_order=order,
            first_name=customer.first_name,
            last_name=customer.last_name,
        )
        append_enriched_record(self.output_path, record)
        self.processed_emails.add(email)
        self.stats.enriched += 1
        logger.info(f"[SUCCESS] Enriched {email} - Order: {order.title} | SKU: {order.sku}")
        return record

    async def enrich_all(self, profiles: Iterable[Profile]) -> EnrichmentStats:
        """Enrich every profile in order; per-record failures never stop the loop."""
        profiles = list(profiles)
        self.stats.total = len(profiles)
        logger.info(f"Starting enrichment of {len(profiles)} profiles...")
        for profile in profiles:
            await self.enrich(profile)
            self.stats.processed += 1
            if self.stats.processed % 100 == 0 or self.stats.processed == self.stats.total:
                logger.info(f"Processed {self.stats.processed}/{self.stats.total} profiles...")
        logger.info(
            f"Enrichment complete: {self.stats.enriched} enriched, {self.stats.skipped} skipped, "
            f"{self.stats.missing_customer} without customer, {self.stats.missing_order} without order, "
            f"{self.stats.failed} failed"
        )
        return self.stats
