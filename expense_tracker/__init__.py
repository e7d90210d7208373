"""
Expense Tracker - Core Package

The non-UI core of a personal expense tracker: transaction storage,
a cached multi-currency rate table, and monthly spending analytics.

DESIGN PRINCIPLES:
1. A missing rate is reported as missing, never guessed
2. Aggregation is a pure function of a transaction snapshot
3. Network failures are typed results, not crashes
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
