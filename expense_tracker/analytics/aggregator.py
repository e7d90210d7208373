"""
Expense Aggregation

DESIGN DECISION: Aggregation is a PURE function of its inputs.
It takes an explicit snapshot of transactions and a month, performs no I/O
and keeps no state, so it is safe to call from any task or thread.

Amounts are summed exactly as stored. This layer does NOT convert
currencies; callers that want a single-currency view convert upstream
(see CurrencyConverter.to_base_currency) before aggregating.

Weeks start on Monday. Week 1 of a month is the week containing the 1st,
even when that week began in the previous month.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from expense_tracker.models.analytics import (
    CategoryTotal,
    DailyAggregate,
    MonthlyAggregate,
    WeeklyAggregate,
)
from expense_tracker.models.transaction import ExpenseCategory, Transaction, YearMonth


def week_of_month(day: date) -> int:
    """1-based Monday-start week ordinal of a date within its month."""
    first_weekday = day.replace(day=1).weekday()
    return (day.day + first_weekday - 1) // 7 + 1


def weeks_in_month(month: YearMonth) -> int:
    """Number of Monday-start weeks that overlap the month (4 to 6)."""
    return week_of_month(month.last_day)


def percent_change(current: float, previous: Optional[float]) -> Optional[float]:
    """Percent change from previous to current; None without a baseline."""
    if previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


class ExpenseAggregator:
    """
    Builds monthly, weekly, daily and per-category rollups.

    GUARANTEES:
    - Never fails for well-typed input
    - An empty input yields zero-valued aggregates
    - Inputs are never mutated
    """

    # =========================================================================
    # FILTERS
    # =========================================================================

    def filter_by_month(
        self,
        transactions: Iterable[Transaction],
        month: YearMonth,
    ) -> list[Transaction]:
        return [tx for tx in transactions if month.contains(tx.transaction_date)]

    def filter_by_date_range(
        self,
        transactions: Iterable[Transaction],
        start: date,
        end: date,
    ) -> list[Transaction]:
        """Transactions whose calendar day is within [start, end]."""
        return [tx for tx in transactions if start <= tx.transaction_date <= end]

    def filter_by_category(
        self,
        transactions: Iterable[Transaction],
        category: ExpenseCategory,
    ) -> list[Transaction]:
        return [tx for tx in transactions if tx.category == category]

    def search(self, transactions: Iterable[Transaction], query: str) -> list[Transaction]:
        """
        Case-insensitive match on description or category name.

        A blank query matches everything.
        """
        needle = (query or "").strip().lower()
        if not needle:
            return list(transactions)
        return [
            tx for tx in transactions
            if needle in tx.description.lower()
            or needle in tx.category.display_name.lower()
        ]

    # =========================================================================
    # GROUPINGS
    # =========================================================================

    def group_by_category(self, transactions: Iterable[Transaction]) -> list[CategoryTotal]:
        """
        One CategoryTotal per category present, largest total first.

        Percent is of the grand total of the given transactions (0 when
        that total is 0).
        """
        totals: dict[ExpenseCategory, float] = defaultdict(float)
        counts: dict[ExpenseCategory, int] = defaultdict(int)
        for tx in transactions:
            totals[tx.category] += tx.amount
            counts[tx.category] += 1

        grand_total = sum(totals.values())
        categories = [
            CategoryTotal(
                category=category,
                total=total,
                count=counts[category],
                percent=(total / grand_total * 100) if grand_total > 0 else 0.0,
            )
            for category, total in totals.items()
        ]
        return sorted(categories, key=lambda c: c.total, reverse=True)

    def top_categories(
        self,
        transactions: Iterable[Transaction],
        limit: int = 3,
    ) -> list[CategoryTotal]:
        return self.group_by_category(transactions)[:limit]

    def group_by_day(self, transactions: Iterable[Transaction]) -> list[DailyAggregate]:
        """
        One DailyAggregate per calendar day with activity, oldest first.

        Each day's category_totals omits categories with no spending.
        """
        by_day: dict[date, dict[ExpenseCategory, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        for tx in transactions:
            by_day[tx.transaction_date][tx.category] += tx.amount

        return [
            DailyAggregate(
                date=day,
                total=sum(category_totals.values()),
                category_totals={c: t for c, t in category_totals.items() if t != 0},
            )
            for day, category_totals in sorted(by_day.items())
        ]

    def group_by_week(
        self,
        transactions: Iterable[Transaction],
        month: YearMonth,
    ) -> list[WeeklyAggregate]:
        """
        One WeeklyAggregate per week of `month` with activity.

        Transactions outside the month are ignored.
        """
        by_week: dict[int, list[DailyAggregate]] = defaultdict(list)
        for daily in self.group_by_day(self.filter_by_month(transactions, month)):
            by_week[week_of_month(daily.date)].append(daily)

        return [
            WeeklyAggregate(
                week_of_month=week,
                total=sum(d.total for d in days),
                days=days,
            )
            for week, days in sorted(by_week.items())
        ]

    # =========================================================================
    # MONTHLY
    # =========================================================================

    def get_monthly_aggregate(
        self,
        transactions: Iterable[Transaction],
        month: YearMonth,
    ) -> MonthlyAggregate:
        """
        Aggregate everything that happened in one calendar month.

        average_daily divides by the days in the month, not the days with
        activity. average_weekly divides by the Monday-start weeks that
        overlap the month.
        """
        in_month = self.filter_by_month(transactions, month)
        total = sum(tx.amount for tx in in_month)

        return MonthlyAggregate(
            month=month,
            total_expenses=total,
            transaction_count=len(in_month),
            average_daily=total / month.length_of_month,
            average_weekly=total / weeks_in_month(month),
            categories=self.group_by_category(in_month),
            weekly=self.group_by_week(in_month, month),
            daily=self.group_by_day(in_month),
        )

    def calculate_month_over_month_change(
        self,
        current: MonthlyAggregate,
        previous: Optional[MonthlyAggregate],
    ) -> Optional[float]:
        """
        Percent change in total spending versus the previous month.

        Positive means spending went up. None when there is no previous
        month or it had no spending; that is "no baseline", not 0%.
        """
        if previous is None:
            return None
        return percent_change(current.total_expenses, previous.total_expenses)

    def get_month_over_month(
        self,
        transactions: Iterable[Transaction],
        month: YearMonth,
    ) -> tuple[MonthlyAggregate, MonthlyAggregate, Optional[float]]:
        """(current aggregate, previous month's aggregate, percent change)."""
        snapshot = list(transactions)
        current = self.get_monthly_aggregate(snapshot, month)
        previous = self.get_monthly_aggregate(snapshot, month.previous())
        return current, previous, self.calculate_month_over_month_change(current, previous)
