"""End-to-end dashboard loading.

``DashboardService.load`` runs the whole pipeline for one owner: resolve the
window, fetch from the stores, apply search and tag filters, then compute the
aggregates and the budget status for the month the window ends in.

When a store is unavailable the service hands back the owner's last good
metrics marked ``stale`` rather than an empty dashboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .analytics import TransactionAnalytics
from .budgets import (
    BudgetAlert,
    BudgetEvaluation,
    budget_alert,
    budget_status_for_month,
    monthly_income_total,
)
from .config import CATEGORY_RANKING_LIMIT, DEFAULT_PAGE_SIZE, TOP_EXPENSES_LIMIT
from .date_ranges import DateRange, normalize_range
from .errors import DataUnavailable
from .filters import Page, distinct_tags, filter_transactions, paginate
from .models import EXPENSE, KINDS, Transaction, month_key

logger = logging.getLogger(__name__)

SAVINGS_BREAKDOWN = 'savings'


@dataclass(frozen=True, eq=False)
class DashboardMetrics:
    window: DateRange
    transactions: List[Transaction]
    summary: Dict[str, Any]
    breakdowns: Dict[str, Dict[str, float]]
    category_ranking: pd.Series
    top_expenses: List[Transaction]
    monthly_trend: pd.DataFrame
    daily_intensity: pd.DataFrame
    budget_month: str
    budget: BudgetEvaluation
    alert: Optional[BudgetAlert]
    tags: List[str]

    def page(self, number: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Page[Transaction]:
        return paginate(self.transactions, page=number, per_page=per_page)


@dataclass(frozen=True, eq=False)
class DashboardView:
    """What the caller renders: metrics, plus an error when they are stale or missing."""

    metrics: Optional[DashboardMetrics]
    error: Optional[str] = None
    stale: bool = False


class DashboardService:
    """Load dashboard metrics from a transaction store and a budget store."""

    def __init__(
        self,
        transaction_store,
        budget_store,
        ranking_limit: int = CATEGORY_RANKING_LIMIT,
        top_limit: int = TOP_EXPENSES_LIMIT,
    ):
        self.transaction_store = transaction_store
        self.budget_store = budget_store
        self.ranking_limit = ranking_limit
        self.top_limit = top_limit
        self._last_metrics: Dict[str, DashboardMetrics] = {}

    def last_metrics(self, owner_id: str) -> Optional[DashboardMetrics]:
        return self._last_metrics.get(owner_id)

    def load(
        self,
        owner_id: str,
        window: Any,
        search_text: Optional[str] = '',
        required_tags: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> DashboardView:
        """Compute the dashboard for ``owner_id`` over ``window``.

        Args:
            owner_id: Owner whose data is loaded.
            window: Preset name, ``(start, end)`` pair or :class:`DateRange`.
            search_text: Free-text search over category/instrument names.
            required_tags: Tags to match (any of them).
            now: Reference moment for presets.

        Returns:
            A fresh :class:`DashboardView`, or on ``DataUnavailable`` the last
            good metrics with ``stale=True`` (``metrics`` is None when there
            are none yet).

        Raises:
            InvalidArgument: For a bad window or owner; never masked as stale.
        """
        resolved = normalize_range(window, now=now)
        start, end = resolved.as_query_bounds()
        budget_month = month_key(resolved.end_date)

        try:
            fetched = self.transaction_store.query(owner_id, start_date=start, end_date=end)
            budget = budget_status_for_month(self.budget_store, self.transaction_store, owner_id, budget_month)
            income = monthly_income_total(self.transaction_store, owner_id, budget_month)
        except DataUnavailable as exc:
            previous = self._last_metrics.get(owner_id)
            logger.warning(
                "Data unavailable for %s (%s); serving %s",
                owner_id, exc, "stale metrics" if previous else "no metrics",
            )
            return DashboardView(metrics=previous, error=str(exc), stale=previous is not None)

        filtered = filter_transactions(fetched, search_text=search_text, required_tags=required_tags)
        analytics = TransactionAnalytics(filtered)
        metrics = DashboardMetrics(
            window=resolved,
            transactions=filtered,
            summary=analytics.period_summary(),
            breakdowns={
                **{kind: analytics.category_breakdown(kind) for kind in KINDS},
                SAVINGS_BREAKDOWN: analytics.savings_breakdown(),
            },
            category_ranking=analytics.category_ranking(EXPENSE, limit=self.ranking_limit),
            top_expenses=analytics.top_expenses(limit=self.top_limit),
            monthly_trend=analytics.monthly_trend(resolved),
            daily_intensity=analytics.daily_intensity(resolved),
            budget_month=budget_month,
            budget=budget,
            alert=budget_alert(budget, monthly_income=income),
            tags=distinct_tags(fetched),
        )
        self._last_metrics[owner_id] = metrics
        logger.debug(
            "Loaded %d of %d transactions for %s between %s and %s",
            len(filtered), len(fetched), owner_id, start, end,
        )
        return DashboardView(metrics=metrics)
