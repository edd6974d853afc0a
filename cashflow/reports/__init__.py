"""Monthly reporting package."""

from cashflow.reports.aggregation import (
    build_monthly_view,
    filter_by_month,
    merge_feed,
    summarize_categories,
)
from cashflow.reports.charts import breakdown_chart
from cashflow.reports.formatting import (
    FeedEntry,
    feed_entry,
    format_currency,
    format_date,
)

__all__ = [
    "FeedEntry",
    "breakdown_chart",
    "build_monthly_view",
    "feed_entry",
    "filter_by_month",
    "format_currency",
    "format_date",
    "merge_feed",
    "summarize_categories",
]
