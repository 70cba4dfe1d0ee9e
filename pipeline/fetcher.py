"""
Paginated segment fetch with email deduplication and per-page snapshots.
"""

import asyncio
import logging
from pathlib import Path

from connectors.klaviyo import KlaviyoClient, SegmentPage, parse_next_cursor
from models.enrichment import Profile, normalize_email
from pipeline.storage import save_profile_snapshot
from utils.retry import RetryPolicy, linear_backoff, retry_async

logger = logging.getLogger(__name__)


def default_fetch_policy(max_retries: int = 3, backoff: float = 0.5) -> RetryPolicy:
    """Up to ``max_retries`` attempts per page, waiting ``backoff * attempt`` between them."""
    return RetryPolicy(max_attempts=max_retries, backoff=linear_backoff(backoff))


def collect_new_profiles(members: list[dict], seen_emails: set[str]) -> list[Profile]:
    """
    Convert raw segment members into Profiles, dropping blank and already-seen emails.

    ``seen_emails`` is updated in place.
    """
    new_profiles = []
    for member in members:
        attributes = member.get("attributes") or {}
        email = normalize_email(attributes.get("email"))
        if not email or email in seen_emails:
            continue
        seen_emails.add(email)
        new_profiles.append(Profile(email=email, profile_id=str(member.get("id", ""))))
    return new_profiles


async def fetch_all_segment_profiles(
    client: KlaviyoClient,
    *,
    limit: int = 110000,
    retry_policy: RetryPolicy | None = None,
    snapshot_path: Path | None = None,
    page_delay: float = 0.15,
    page_size: int = 100,
) -> list[Profile]:
    """
    Fetch every segment member, deduplicated by email and capped at ``limit``.

    The snapshot at ``snapshot_path`` is rewritten after each page, so a crash
    loses at most one page. If a page exhausts its retries the fetch stops and
    whatever was collected so far is returned.
    """
    retry_policy = retry_policy or default_fetch_policy()
    profiles: list[Profile] = []
    seen_emails: set[str] = set()
    cursor: str | None = None
    page_number = 1

    logger.info("Fetching segment profiles (deduping by email)...")

    while len(profiles) < limit:
        current_cursor = cursor

        async def _fetch_page() -> SegmentPage:
            return await client.fetch_segment_page(current_cursor, page_size=page_size)

        try:
            page = await retry_async(
                _fetch_page,
                retry_policy,
                retry_on=(Exception,),
                description=f"Segment page {page_number}",
                logger=logger,
            )
        except Exception:
            logger.error(f"Giving up on page {page_number} after {retry_policy.max_attempts} attempts")
            break

        new_profiles = collect_new_profiles(page.members, seen_emails)
        profiles.extend(new_profiles)
        del profiles[limit:]
        logger.info(
            f"Page {page_number}: added {len(new_profiles)} new -> total unique = {len(profiles)}/{limit}"
        )
        page_number += 1

        if snapshot_path is not None:
            try:
                saved = save_profile_snapshot(snapshot_path, profiles)
                logger.info(f"Incrementally saved {saved} profiles to {snapshot_path}")
            except OSError as exc:
                logger.error(f"Error during incremental save to {snapshot_path}: {exc}")

        if not page.next_link:
            logger.info("No more pages. Reached end of pagination.")
            break
        try:
            cursor = parse_next_cursor(page.next_link)
        except ValueError as exc:
            logger.error(f"Failed to parse next cursor: {exc}")
            break

        await asyncio.sleep(page_delay)

    logger.info(f"Finished fetching. Final total: {len(profiles)} unique profiles")
    return profiles
