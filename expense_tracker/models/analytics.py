"""
Analytics Models for Expense Tracker

Derived views over a transaction snapshot. None of these are persisted;
each is recomputed on demand from its inputs.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from expense_tracker.models.transaction import ExpenseCategory, YearMonth


class CategoryTotal(BaseModel):
    """Spending in one category and its share of the grand total."""
    model_config = ConfigDict(frozen=True)

    category: ExpenseCategory
    total: float
    count: int = Field(default=0, ge=0, description="Number of transactions")
    percent: float = Field(
        ...,
        description="total / grand total * 100, 0 when the grand total is 0"
    )


class DailyAggregate(BaseModel):
    """
    Spending on one calendar day.

    category_totals only holds categories that actually occur that day;
    it feeds a stacked-bar chart.
    """
    model_config = ConfigDict(frozen=True)

    date: dt.date
    total: float
    category_totals: dict[ExpenseCategory, float] = Field(default_factory=dict)


class WeeklyAggregate(BaseModel):
    """Spending in one Monday-start week of a month (week 1 holds the 1st)."""
    model_config = ConfigDict(frozen=True)

    week_of_month: int = Field(..., ge=1, le=6)
    total: float
    days: list[DailyAggregate] = Field(default_factory=list)


class MonthlyAggregate(BaseModel):
    """
    Everything the monthly overview needs, for one calendar month.

    Amounts are summed as stored; currency conversion, when wanted,
    happens before aggregation.
    """
    model_config = ConfigDict(frozen=True)

    month: YearMonth
    total_expenses: float = 0.0
    transaction_count: int = Field(default=0, ge=0)
    average_daily: float = Field(
        default=0.0,
        description="total / days in the month"
    )
    average_weekly: float = Field(
        default=0.0,
        description="total / Monday-start weeks overlapping the month"
    )
    categories: list[CategoryTotal] = Field(default_factory=list)
    weekly: list[WeeklyAggregate] = Field(default_factory=list)
    daily: list[DailyAggregate] = Field(default_factory=list)


class MonthlyReport(BaseModel):
    """
    A month's aggregate in the preferred base currency, with the change
    against the previous month.
    """

    base_currency: Optional[str] = Field(
        default=None,
        description="Currency amounts were converted to (None = not converted)"
    )
    aggregate: MonthlyAggregate
    previous_total: Optional[float] = None
    month_over_month_change: Optional[float] = Field(
        default=None,
        description="Percent change; None when there is no baseline"
    )
    unconverted_transaction_ids: list[str] = Field(
        default_factory=list,
        description="Transactions left out because no rate was available"
    )

    @property
    def is_complete(self) -> bool:
        """True when every transaction of the period made it into the totals."""
        return not self.unconverted_transaction_ids
