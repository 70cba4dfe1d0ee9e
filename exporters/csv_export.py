"""
CSV export of enriched records.
"""

import csv
import logging
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from models.enrichment import (
    MISSING_NAME_VALUE,
    NO_ORDER_VALUE,
    EnrichedRecord,
    ReportRow,
)
from pipeline.storage import iter_enriched_records

logger = logging.getLogger(__name__)

# Column order of the exported file: ReportRow field -> header title
CSV_COLUMNS = {
    "email": "Customer Email",
    "first_name": "First Name",
    "last_name": "Last Name",
    "segment_name": "Segment Name",
    "product_title": "Most Recently Purchased",
    "sku": "Most Recent SKU",
    "order_date": "Most Recent Order Date",
}


def build_report_row(record: EnrichedRecord, segment_name: str) -> ReportRow:
    """Flatten one enriched record; absent order data becomes "None"."""
    order = record.most_recent_order
    return ReportRow(
        email=record.email,
        first_name=record.first_name or MISSING_NAME_VALUE,
        last_name=record.last_name or MISSING_NAME_VALUE,
        segment_name=segment_name,
        product_title=(order.title if order else None) or NO_ORDER_VALUE,
        sku=(order.sku if order else None) or NO_ORDER_VALUE,
        order_date=(order.order_date if order else None) or NO_ORDER_VALUE,
    )


def records_to_rows(records: Iterable[EnrichedRecord], segment_name: str) -> list[ReportRow]:
    return [build_report_row(r, segment_name) for r in records]


def rows_to_dataframe(rows: Iterable[ReportRow]) -> pd.DataFrame:
    """Rows as a DataFrame with the fixed, titled 7-column header."""
    df = pd.DataFrame([r.model_dump() for r in rows], columns=list(CSV_COLUMNS))
    return df.rename(columns=CSV_COLUMNS)


def write_report_csv(rows: Iterable[ReportRow], path: Path) -> int:
    """Write rows to ``path`` and return how many were written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = rows_to_dataframe(rows)
    df.to_csv(path, index=False, encoding="utf-8", quoting=csv.QUOTE_MINIMAL)
    logger.info(f"Saved {len(df)} rows to {path}")
    return len(df)


def export_log_to_csv(log_path: Path, csv_path: Path, segment_name: str) -> int:
    """Export the enrichment log straight to CSV."""
    rows = records_to_rows(iter_enriched_records(log_path), segment_name)
    if not rows:
        logger.warning(f"No enriched data in {log_path} to write to CSV.")
    return write_report_csv(rows, csv_path)
