"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker core.
"""

from expense_tracker.models.transaction import (
    ConvertedTransaction,
    Currency,
    ExpenseCategory,
    Transaction,
    YearMonth,
)
from expense_tracker.models.rates import (
    CachedRate,
    LatestRates,
    RateKey,
    RefreshErrorType,
    RefreshResult,
)
from expense_tracker.models.analytics import (
    CategoryTotal,
    DailyAggregate,
    MonthlyAggregate,
    MonthlyReport,
    WeeklyAggregate,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "ConvertedTransaction",
    "Currency",
    "ExpenseCategory",
    "Transaction",
    "YearMonth",
    # Rate models
    "CachedRate",
    "LatestRates",
    "RateKey",
    "RefreshErrorType",
    "RefreshResult",
    # Analytics models
    "CategoryTotal",
    "DailyAggregate",
    "MonthlyAggregate",
    "MonthlyReport",
    "WeeklyAggregate",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
