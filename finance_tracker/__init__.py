"""Top-level package for the finance tracker.

The package turns a user's income, expense and investment transactions into
dashboard figures.  The primary modules are:

* ``date_ranges`` - resolves presets and custom ranges in the reporting timezone
* ``filters`` - search, tag filtering and pagination
* ``analytics`` - pandas-based totals, breakdowns, trends and heatmaps
* ``budgets`` - monthly budget evaluation and alerts
* ``db`` - sqlite-backed transaction and budget stores
* ``dashboard`` - the end-to-end loading pipeline
"""

from .analytics import TransactionAnalytics, calculate_savings
from .budgets import BudgetStatus, NoBudgetSet, evaluate_budget, save_budget
from .dashboard import DashboardService, DashboardView
from .date_ranges import DateRange, custom_range, normalize_range, resolve_preset
from .db import SqliteBudgetStore, SqliteTransactionStore
from .errors import DataUnavailable, FinanceTrackerError, InvalidArgument, NotFound
from .filters import filter_transactions, paginate
from .models import Budget, Expense, Income, Investment, Transaction

__all__ = [
    'Budget',
    'BudgetStatus',
    'DashboardService',
    'DashboardView',
    'DataUnavailable',
    'DateRange',
    'Expense',
    'FinanceTrackerError',
    'Income',
    'InvalidArgument',
    'Investment',
    'NoBudgetSet',
    'NotFound',
    'SqliteBudgetStore',
    'SqliteTransactionStore',
    'Transaction',
    'TransactionAnalytics',
    'calculate_savings',
    'custom_range',
    'evaluate_budget',
    'filter_transactions',
    'normalize_range',
    'paginate',
    'resolve_preset',
    'save_budget',
]
