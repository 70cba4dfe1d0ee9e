"""
Command-line entry point for the segment purchase enrichment pipeline.

Run with: segment-enrich <command>   (or: python -m pipeline.cli <command>)

Commands:
    fetch       Fetch segment profiles into the snapshot file.
    enrich      Enrich the snapshot into the NDJSON log (resumable).
    export-csv  Export the NDJSON log to CSV.
    chart       Render the top-products pie chart from the NDJSON log.
    report      Fetch the segment and write a one-shot CSV report.
    run-all     fetch, enrich, export-csv and chart in sequence.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from config.config import ConfigError, Settings, load_settings
from connectors.klaviyo import KlaviyoClient
from connectors.shopify import ShopifyClient
from exporters.csv_export import export_log_to_csv, write_report_csv
from exporters.pie_chart import export_log_to_chart
from pipeline.enricher import EnrichmentStats, ProfileEnricher, default_rate_limit_policy
from pipeline.fetcher import default_fetch_policy, fetch_all_segment_profiles
from pipeline.report import build_segment_report, resolve_segment_name
from pipeline.storage import load_profile_snapshot
from utils import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="segment-enrich",
        description="Enrich a Klaviyo segment with each member's most recent Shopify purchase.",
    )
    parser.add_argument("--profiles-path", type=Path, help="Profile snapshot JSON file")
    parser.add_argument("--enriched-path", type=Path, help="Enriched NDJSON log")
    parser.add_argument("--csv-path", type=Path, help="CSV output file")
    parser.add_argument("--chart-path", type=Path, help="PNG output file")

    sub = parser.add_subparsers(dest="command", required=True)
    for name in ("fetch", "report", "run-all"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--limit", type=int, help="Maximum number of unique profiles")
        cmd.add_argument("--max-retries", type=int, help="Attempts per segment page")
    sub.add_parser("enrich")
    sub.add_parser("export-csv")
    chart = sub.add_parser("chart")
    chart.add_argument("--top", type=int, help="Number of products in the chart")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Copy command-line overrides onto the loaded settings."""
    pipeline = settings.pipeline
    for attr in ("profiles_path", "enriched_path", "csv_path", "chart_path"):
        value = getattr(args, attr, None)
        if value is not None:
            setattr(pipeline, attr, value)
    if getattr(args, "limit", None) is not None:
        pipeline.limit = args.limit
    if getattr(args, "top", None) is not None:
        pipeline.top_n = args.top
    if getattr(args, "max_retries", None) is not None:
        settings.retry.fetch_max_retries = args.max_retries
    return settings


async def run_fetch(settings: Settings) -> int:
    async with KlaviyoClient(settings.klaviyo, timeout=settings.pipeline.request_timeout) as klaviyo:
        profiles = await fetch_all_segment_profiles(
            klaviyo,
            limit=settings.pipeline.limit,
            retry_policy=default_fetch_policy(settings.retry.fetch_max_retries, settings.retry.fetch_backoff),
            snapshot_path=settings.pipeline.profiles_path,
            page_delay=settings.pipeline.page_delay,
            page_size=settings.pipeline.page_size,
        )
    return len(profiles)


async def run_enrich(settings: Settings) -> EnrichmentStats:
    profiles = load_profile_snapshot(settings.pipeline.profiles_path)
    async with ShopifyClient(settings.shopify, timeout=settings.pipeline.request_timeout) as shopify:
        enricher = ProfileEnricher(
            shopify,
            output_path=settings.pipeline.enriched_path,
            rate_limit_policy=default_rate_limit_policy(
                settings.retry.rate_limit_delay, settings.retry.rate_limit_max_retries
            ),
        )
        stats = await enricher.enrich_all(profiles)
    logger.info(f"Enrichment complete! Profiles saved to {settings.pipeline.enriched_path}")
    return stats


async def segment_name_for(settings: Settings) -> str:
    if settings.klaviyo.segment_name or not settings.klaviyo.has_credentials:
        return await resolve_segment_name(settings.klaviyo)
    async with KlaviyoClient(settings.klaviyo, timeout=settings.pipeline.request_timeout) as klaviyo:
        return await resolve_segment_name(settings.klaviyo, klaviyo)


async def run_export_csv(settings: Settings) -> int:
    segment_name = await segment_name_for(settings)
    return export_log_to_csv(settings.pipeline.enriched_path, settings.pipeline.csv_path, segment_name)


async def run_chart(settings: Settings) -> Path:
    segment_name = await segment_name_for(settings)
    return export_log_to_chart(
        settings.pipeline.enriched_path,
        settings.pipeline.chart_path,
        segment_name,
        top_n=settings.pipeline.top_n,
    )


async def run_report(settings: Settings) -> int:
    async with KlaviyoClient(settings.klaviyo, timeout=settings.pipeline.request_timeout) as klaviyo:
        profiles = await fetch_all_segment_profiles(
            klaviyo,
            limit=settings.pipeline.limit,
            retry_policy=default_fetch_policy(settings.retry.fetch_max_retries, settings.retry.fetch_backoff),
            snapshot_path=settings.pipeline.profiles_path,
            page_delay=settings.pipeline.page_delay,
            page_size=settings.pipeline.page_size,
        )
        if not profiles:
            logger.warning("No segment profiles found.")
            return 0
        segment_name = await resolve_segment_name(settings.klaviyo, klaviyo)
    logger.info(f"Segment Name: {segment_name}")

    async with ShopifyClient(settings.shopify, timeout=settings.pipeline.request_timeout) as shopify:
        rows = await build_segment_report(
            profiles,
            shopify,
            segment_name,
            rate_limit_policy=default_rate_limit_policy(
                settings.retry.rate_limit_delay, settings.retry.rate_limit_max_retries
            ),
        )
    if not rows:
        logger.warning("No enriched data to write to CSV.")
        return 0
    return write_report_csv(rows, settings.pipeline.csv_path)


async def run_all(settings: Settings) -> None:
    await run_fetch(settings)
    await run_enrich(settings)
    await run_export_csv(settings)
    await run_chart(settings)


COMMANDS = {
    "fetch": run_fetch,
    "enrich": run_enrich,
    "export-csv": run_export_csv,
    "chart": run_chart,
    "report": run_report,
    "run-all": run_all,
}

# Commands that only read the enriched log and need no API credentials
LOCAL_COMMANDS = {"export-csv", "chart"}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(require_credentials=args.command not in LOCAL_COMMANDS)
    except ConfigError as exc:
        configure_logging()
        logger.error(str(exc))
        return 2
    configure_logging(settings.log_level)
    apply_overrides(settings, args)

    try:
        asyncio.run(COMMANDS[args.command](settings))
    except Exception:
        logger.exception(f"Command '{args.command}' failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
