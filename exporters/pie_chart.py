"""
Pie chart of the most recently purchased products in the enrichment log.
"""

import colorsys
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import matplotlib.pyplot as plt
from tqdm import tqdm

from pipeline.storage import iter_log_lines

logger = logging.getLogger(__name__)

MAX_PRODUCTS = 10
TEXT_COLOR = "#004175"
FIGSIZE = (12, 10)  # inches at 100 dpi -> 1200x1000 px


@dataclass
class ProductCounts:
    counts: Counter = field(default_factory=Counter)
    total_profiles: int = 0
    malformed_lines: int = 0


def aggregate_product_counts(log_path: Path, show_progress: bool = True) -> ProductCounts:
    """
    Stream the log and count purchases per ``"title (SKU: sku)"`` key.

    Only orders with both a title and a SKU are counted; every non-blank
    line counts towards ``total_profiles``.
    """
    result = ProductCounts()
    lines = iter_log_lines(log_path)
    for _number, line in tqdm(lines, desc="Processing NDJSON", unit=" lines", disable=not show_progress):
        result.total_profiles += 1
        try:
            profile = json.loads(line)
        except json.JSONDecodeError:
            result.malformed_lines += 1
            continue
        order = profile.get("mostRecentOrder") if isinstance(profile, dict) else None
        if not isinstance(order, dict):
            continue
        title, sku = order.get("title"), order.get("sku")
        if title and sku:
            result.counts[f"{title} (SKU: {sku})"] += 1

    if result.malformed_lines:
        logger.warning(f"Ignored {result.malformed_lines} malformed lines in {log_path}")
    logger.info(f"Parsed {result.total_profiles} lines, {len(result.counts)} distinct products")
    return result


def top_products(counts: Counter | dict[str, int], n: int = MAX_PRODUCTS) -> list[tuple[str, int]]:
    """Top ``n`` entries by count, descending; ties keep first-seen order."""
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:n]


def slice_colors(count: int) -> list[tuple[float, float, float]]:
    """Evenly spaced pastel hues, 36 degrees apart."""
    return [colorsys.hls_to_rgb(((i * 36) % 360) / 360, 0.7, 0.7) for i in range(count)]


def build_title(segment_name: str, total_profiles: int, generated_at: datetime) -> str:
    return "\n".join(
        [
            "Most Recently Purchased Products",
            f"Segment Name: {segment_name}",
            f"Profiles Enriched: {total_profiles:,}",
            f"Generated: {generated_at:%Y-%m-%d %H:%M:%S}",
        ]
    )


def render_pie_chart(
    top: list[tuple[str, int]],
    *,
    total_profiles: int,
    segment_name: str,
    output_path: Path,
    generated_at: datetime | None = None,
) -> Path:
    """
    Render the top products as a labelled pie chart and save it as PNG.

    Args:
        top: ``(label, count)`` pairs, typically from :func:`top_products`.
        total_profiles: Number of profiles shown in the title block.
        segment_name: Segment name shown in the title block.
        output_path: Destination PNG file.
        generated_at: Timestamp for the title; defaults to now.

    Returns:
        The path the chart was written to.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    generated_at = generated_at or datetime.now()

    labels = [label for label, _ in top]
    values = [value for _, value in top]
    total = sum(values)
    percentages = [(v / total) * 100 if total else 0.0 for v in values]

    fig, ax = plt.subplots(figsize=FIGSIZE)
    try:
        if values:
            wedges, _texts, _autotexts = ax.pie(
                values,
                colors=slice_colors(len(values)),
                autopct="%1.1f%%",
                startangle=90,
                counterclock=False,
                textprops={"color": TEXT_COLOR, "fontweight": "bold", "fontsize": 14},
            )
            legend_labels = [
                f"{label} ({pct:.1f}%) ({value:,})" for label, pct, value in zip(labels, percentages, values)
            ]
            ax.legend(
                wedges,
                legend_labels,
                loc="center left",
                bbox_to_anchor=(1.0, 0.5),
                frameon=False,
                labelcolor=TEXT_COLOR,
                prop={"weight": "bold"},
            )
        else:
            ax.text(0.5, 0.5, "No purchases to display", ha="center", va="center", color=TEXT_COLOR)
            ax.set_axis_off()
        ax.axis("equal")
        ax.set_title(
            build_title(segment_name, total_profiles, generated_at),
            color=TEXT_COLOR,
            fontsize=18,
            fontweight="bold",
            pad=20,
        )
        fig.savefig(output_path, format="png", bbox_inches="tight", facecolor="white")
    finally:
        plt.close(fig)

    logger.info(f"Pie chart saved to {output_path}")
    return output_path


def export_log_to_chart(
    log_path: Path,
    output_path: Path,
    segment_name: str,
    top_n: int = MAX_PRODUCTS,
    show_progress: bool = True,
) -> Path:
    """Aggregate the log and render the top-``top_n`` pie chart."""
    aggregated = aggregate_product_counts(log_path, show_progress=show_progress)
    return render_pie_chart(
        top_products(aggregated.counts, top_n),
        total_profiles=aggregated.total_profiles,
        segment_name=segment_name,
        output_path=output_path,
    )
