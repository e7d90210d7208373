"""Pure aggregation over transaction snapshots."""

from expense_tracker.analytics.aggregator import (
    ExpenseAggregator,
    percent_change,
    week_of_month,
    weeks_in_month,
)

__all__ = [
    "ExpenseAggregator",
    "percent_change",
    "week_of_month",
    "weeks_in_month",
]
