"""Plain-text daily production recap, ready to paste into a chat message."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from mes_engines.stats import WorkflowStats
from mes_kernel.domain.values import SALES_CHANNEL_LABELS

RECAP_TITLE = "*Daily Production Report*"
RECAP_FOOTER = "_Generated automatically by the production board_"
NO_SALES_LINE = "   - (none yet)"


def format_daily_recap(
    stats: WorkflowStats,
    as_of: datetime,
    channel_labels: Mapping[str, str] | None = None,
    title: str = RECAP_TITLE,
) -> str:
    """Render ``stats`` as the end-of-day summary.

    Channels without a label are shown by their raw value.  Channels appear
    in descending order of sales, ties by label.
    """
    labels = channel_labels if channel_labels is not None else {
        channel.value: label for channel, label in SALES_CHANNEL_LABELS.items()
    }
    breakdown = sorted(
        ((labels.get(channel, channel), count) for channel, count in stats.sales_by_channel.items()),
        key=lambda pair: (-pair[1], pair[0]),
    )
    sales_lines = [f"   - {label}: {count} sales" for label, count in breakdown] or [NO_SALES_LINE]

    lines = [
        title,
        as_of.strftime("%A, %d %B %Y"),
        "",
        "Transformations today:",
        f"   - Splits: {stats.split_today_count} batch",
        f"   - Assemblies: {stats.merge_today_count} runs",
        f"Sold: {stats.sales_today_count} sales, {stats.units_sold_today} pcs",
        "Sales by channel:",
        *sales_lines,
        f"WIP (in production): {stats.wip_count} pcs",
        f"Ready stock: {stats.ready_stock_count} pcs",
        f"Waste / reject: {stats.rejected_count} pcs",
        "",
        "---",
        RECAP_FOOTER,
    ]
    return "\n".join(lines)
