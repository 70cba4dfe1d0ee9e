"""
One-shot segment report: every profile matched to a store customer, with the
customer's latest purchase when there is one.

Unlike the enrichment log, customers without orders are kept (with "None"
order fields), and nothing is checkpointed.
"""

import logging
from collections.abc import Iterable

import httpx

from config.config import UNKNOWN_SEGMENT_NAME, KlaviyoConfig
from connectors.exceptions import ConnectorError, RateLimitedError
from connectors.klaviyo import KlaviyoClient
from connectors.shopify import ShopifyClient
from exporters.csv_export import build_report_row
from models.enrichment import EnrichedRecord, Profile, ReportRow
from pipeline.enricher import default_rate_limit_policy
from utils.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


async def resolve_segment_name(config: KlaviyoConfig, klaviyo: KlaviyoClient | None = None) -> str:
    """Configured name first, then the segment endpoint, then "Unknown Segment"."""
    if config.segment_name:
        return config.segment_name
    if klaviyo is not None:
        name = await klaviyo.get_segment_name()
        if name:
            return name
    return UNKNOWN_SEGMENT_NAME


async def build_segment_report(
    profiles: Iterable[Profile],
    shopify: ShopifyClient,
    segment_name: str,
    rate_limit_policy: RetryPolicy | None = None,
) -> list[ReportRow]:
    """Match each profile to a customer and flatten the result into report rows."""
    policy = rate_limit_policy or default_rate_limit_policy()
    rows: list[ReportRow] = []

    for profile in profiles:
        email = profile.email
        if not email:
            logger.warning(f"Skipping profile with no email: {profile.profile_id}")
            continue
        try:
            customer = await retry_async(
                lambda: shopify.search_customer_by_email(email),
                policy,
                retry_on=(RateLimitedError,),
                description=f"Customer lookup for {email}",
                logger=logger,
            )
            if customer is None:
                logger.warning(f"No store customer for email: {email}")
                continue
            order = await retry_async(
                lambda: shopify.get_most_recent_order(customer.id),
                policy,
                retry_on=(RateLimitedError,),
                description=f"Order lookup for {email}",
                logger=logger,
            )
        except (ConnectorError, httpx.HTTPError) as exc:
            logger.error(f"Failed to look up {email}: {exc}")
            continue

        record = EnrichedRecord(
            profile_id=profile.profile_id,
            email=email,
            most_recent_order=order,
            first_name=customer.first_name,
            last_name=customer.last_name,
        )
        rows.append(build_report_row(record, segment_name))

    logger.info(f"Built {len(rows)} report rows for segment '{segment_name}'")
    return rows
