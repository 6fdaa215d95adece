"""Monthly budget evaluation and alerts.

A budget is a single spending ceiling per user and month.  The evaluator
compares it with the month's expense total and classifies the result as
within budget, near the limit (80%) or over budget (100%).  A month without a
budget yields :class:`NoBudgetSet`, which is a distinct state from a zero limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from .analytics import TransactionAnalytics
from .config import NEAR_LIMIT_PERCENT, OVER_BUDGET_PERCENT
from .date_ranges import month_range
from .errors import InvalidArgument
from .formatting import format_currency
from .models import EXPENSE, INCOME, Budget, parse_month_key

logger = logging.getLogger(__name__)

WITHIN_BUDGET = 'within_budget'
NEAR_LIMIT = 'near_limit'
OVER_BUDGET = 'over_budget'
NO_BUDGET = 'no_budget'


@dataclass(frozen=True)
class BudgetStatus:
    current_expenses: float
    monthly_limit: float
    percentage: float
    remaining_budget: float
    is_near_limit: bool
    is_over_budget: bool
    month: Optional[str] = None

    is_set = True

    @property
    def state(self) -> str:
        if self.is_over_budget:
            return OVER_BUDGET
        if self.is_near_limit:
            return NEAR_LIMIT
        return WITHIN_BUDGET


@dataclass(frozen=True)
class NoBudgetSet:
    """No budget exists for the month; expenses are still reported."""

    current_expenses: float = 0.0
    month: Optional[str] = None

    is_set = False
    state = NO_BUDGET


BudgetEvaluation = Union[BudgetStatus, NoBudgetSet]


@dataclass(frozen=True)
class BudgetAlert:
    level: str
    title: str
    message: str
    expense_to_income: float


def evaluate_budget(
    budget: Optional[Union[Budget, float]],
    current_expenses: float,
    month: Optional[str] = None,
) -> BudgetEvaluation:
    """Classify a month's spending against its limit.

    Args:
        budget: The month's Budget, a bare limit, or None when no budget exists.
        current_expenses: Sum of expense transactions within the month.
        month: Optional ``YYYY-MM`` key carried into the result.

    Returns:
        :class:`NoBudgetSet` when ``budget`` is None, else a :class:`BudgetStatus`.
        Over budget (>= 100%) takes precedence over near limit (>= 80%).
    """
    if current_expenses < 0:
        raise InvalidArgument(f"current_expenses cannot be negative, got {current_expenses}")
    if budget is None:
        return NoBudgetSet(current_expenses=float(current_expenses), month=month)

    if isinstance(budget, Budget):
        limit = budget.limit
        month = month or budget.month
    else:
        limit = float(budget)

    percentage = (current_expenses / limit) * 100 if limit > 0 else 0.0
    is_over_budget = percentage >= OVER_BUDGET_PERCENT
    is_near_limit = not is_over_budget and percentage >= NEAR_LIMIT_PERCENT
    return BudgetStatus(
        current_expenses=float(current_expenses),
        monthly_limit=float(limit),
        percentage=percentage,
        remaining_budget=limit - current_expenses,
        is_near_limit=is_near_limit,
        is_over_budget=is_over_budget,
        month=month,
    )


def save_budget(store, owner_id: str, month: str, limit: float) -> Budget:
    """Create or update the budget for ``(owner_id, month)``.

    Raises:
        InvalidArgument: For a malformed month, missing owner or non-positive
            limit, before the store is touched.
    """
    candidate = Budget(owner_id=owner_id, month=month, limit=limit)
    saved = store.upsert(candidate.owner_id, candidate.month, candidate.limit)
    logger.info("Saved budget for %s %s: %s", owner_id, month, saved.limit)
    return saved


def monthly_expense_total(transaction_store, owner_id: str, month: str) -> float:
    window = month_range(month)
    start, end = window.as_query_bounds()
    expenses = transaction_store.query(owner_id, kind=EXPENSE, start_date=start, end_date=end)
    return TransactionAnalytics(expenses).kind_total_for_month(EXPENSE, month)


def monthly_income_total(transaction_store, owner_id: str, month: str) -> float:
    window = month_range(month)
    start, end = window.as_query_bounds()
    income = transaction_store.query(owner_id, kind=INCOME, start_date=start, end_date=end)
    return TransactionAnalytics(income).kind_total_for_month(INCOME, month)


def budget_status_for_month(budget_store, transaction_store, owner_id: str, month: str) -> BudgetEvaluation:
    """Fetch the month's budget and expenses and evaluate them.

    Store failures propagate as ``DataUnavailable``.
    """
    parse_month_key(month)
    budget = budget_store.get(owner_id, month)
    expenses = monthly_expense_total(transaction_store, owner_id, month)
    return evaluate_budget(budget, expenses, month=month)


def expense_to_income_percentage(expenses: float, income: float) -> float:
    return (expenses / income) * 100 if income > 0 else 0.0


def budget_alert(status: BudgetEvaluation, monthly_income: float = 0.0) -> Optional[BudgetAlert]:
    """Alert for near-limit or over-budget months, None otherwise."""
    if not status.is_set or not (status.is_near_limit or status.is_over_budget):
        return None
    ratio = expense_to_income_percentage(status.current_expenses, monthly_income)
    if status.is_over_budget:
        overspend = format_currency(abs(status.remaining_budget))
        return BudgetAlert(
            level='danger',
            title='Budget Exceeded!',
            message=f"You've exceeded your monthly budget by {overspend}.",
            expense_to_income=ratio,
        )
    return BudgetAlert(
        level='warning',
        title='Budget Alert',
        message=f"You've used {status.percentage:.1f}% of your monthly budget.",
        expense_to_income=ratio,
    )
