"""Transaction aggregation and derived metrics.

This module turns a transaction collection that has already been scoped to a
reporting window into the figures the dashboard shows: totals by kind,
savings, tag breakdowns, category rankings, top expenses, a gap-free monthly
trend and a daily spending heatmap.  Everything here is a pure computation
over the collection passed in; nothing is fetched or cached.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from .config import (
    CATEGORY_RANKING_LIMIT,
    OTHERS_LABEL,
    TOP_EXPENSES_LIMIT,
    UNCATEGORIZED_LABEL,
)
from .date_ranges import DateRange
from .errors import InvalidArgument
from .models import EXPENSE, INCOME, INVESTMENT, KINDS, Transaction, parse_month_key, validate_kind

SAVINGS_LABEL = 'Total Savings'
NO_SAVINGS_LABEL = 'No Savings'

FRAME_COLUMNS = ['position', 'id', 'kind', 'label', 'amount', 'occurred_on', 'tags']

# Upper ratio bound (inclusive) for heatmap levels 1-4; anything above is level 5.
INTENSITY_BANDS = (0.2, 0.4, 0.6, 0.8)

TREND_COLUMNS = ['Month', 'Month_Label', 'Income', 'Expenses', 'Investments', 'Savings', 'Transaction_Count']
HEATMAP_COLUMNS = ['Date', 'Amount', 'Transaction_Count', 'Level']


def calculate_savings(income: float, expenses: float, investments: float) -> float:
    """Savings left after expenses and investments; negative means overspending."""
    return income - (expenses + investments)


def intensity_levels(amounts: Iterable[float]) -> List[int]:
    """Classify daily totals into heatmap levels 0-5.

    Level 0 means no spend.  Levels 1-5 split ``(0, max]`` into five
    equal-width bands of the ratio to the largest total in ``amounts``.
    When the largest total is zero every day is level 0.
    """
    values = np.asarray(list(amounts), dtype=float)
    if values.size == 0:
        return []
    peak = values.max()
    if peak <= 0:
        return [0] * int(values.size)
    ratio = values / peak
    conditions = [values <= 0] + [ratio <= bound for bound in INTENSITY_BANDS]
    levels = np.select(conditions, [0, 1, 2, 3, 4], default=5)
    return [int(level) for level in levels]


def transactions_to_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    """Tabulate transactions; ``position`` keeps the original collection order."""
    rows = [
        {
            'position': position,
            'id': txn.id,
            'kind': txn.kind,
            'label': txn.label,
            'amount': txn.amount,
            'occurred_on': txn.occurred_on,
            'tags': txn.tags,
        }
        for position, txn in enumerate(transactions)
    ]
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    frame['amount'] = pd.to_numeric(frame['amount']).astype(float)
    frame['occurred_on'] = pd.to_datetime(frame['occurred_on'])
    return frame


class TransactionAnalytics:
    """Derived metrics over one transaction collection."""

    def __init__(self, transactions: Iterable[Transaction]):
        """Initialize with transactions already scoped to the reporting window."""
        self.transactions: List[Transaction] = list(transactions)
        self.data = transactions_to_frame(self.transactions)

    def _kind_rows(self, kind: str) -> pd.DataFrame:
        return self.data[self.data['kind'] == validate_kind(kind)]

    def _window_rows(self, window: DateRange) -> pd.DataFrame:
        dates = self.data['occurred_on']
        mask = (dates >= pd.Timestamp(window.start_date)) & (dates <= pd.Timestamp(window.end_date))
        return self.data[mask]

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def totals_by_kind(self) -> Dict[str, float]:
        sums = self.data.groupby('kind')['amount'].sum()
        return {kind: float(sums.get(kind, 0.0)) for kind in KINDS}

    def savings(self) -> float:
        totals = self.totals_by_kind()
        return calculate_savings(totals[INCOME], totals[EXPENSE], totals[INVESTMENT])

    def savings_breakdown(self) -> Dict[str, float]:
        """Single-bucket savings view: ``Total Savings`` or ``No Savings``.

        A shortfall is reported as its absolute value under ``No Savings``.
        """
        savings = self.savings()
        if savings > 0:
            return {SAVINGS_LABEL: savings}
        return {NO_SAVINGS_LABEL: abs(savings)}

    def period_summary(self) -> Dict[str, Any]:
        """Calculate the headline figures for the window."""
        totals = self.totals_by_kind()
        income = totals[INCOME]
        savings = calculate_savings(income, totals[EXPENSE], totals[INVESTMENT])
        return {
            'income': income,
            'expenses': totals[EXPENSE],
            'investments': totals[INVESTMENT],
            'savings': savings,
            'savings_rate': (savings / income * 100) if income > 0 else 0.0,
            'transaction_count': len(self.data),
        }

    def kind_total_for_month(self, kind: str, month: str) -> float:
        """Sum of ``kind`` amounts dated inside the calendar month ``YYYY-MM``."""
        year, month_number = parse_month_key(month)
        rows = self._kind_rows(kind)
        dates = rows['occurred_on']
        in_month = (dates.dt.year == year) & (dates.dt.month == month_number)
        return float(rows.loc[in_month, 'amount'].sum())

    # ------------------------------------------------------------------
    # Breakdowns and rankings
    # ------------------------------------------------------------------

    def category_breakdown(self, kind: str = EXPENSE) -> Dict[str, float]:
        """Group ``kind`` amounts by tag.

        A transaction contributes its full amount to every tag it carries, so
        the breakdown can total more than the kind itself.  Untagged
        transactions land in ``Uncategorized``.  Keys follow first occurrence.
        """
        rows = self._kind_rows(kind)
        if rows.empty:
            return {}
        tagged = rows[['amount']].assign(
            tag=rows['tags'].map(lambda tags: list(tags) or [UNCATEGORIZED_LABEL])
        ).explode('tag')
        totals = tagged.groupby('tag', sort=False)['amount'].sum()
        return {str(tag): float(amount) for tag, amount in totals.items()}

    def category_ranking(self, kind: str = EXPENSE, limit: int = CATEGORY_RANKING_LIMIT) -> pd.Series:
        """Rank labels by total and fold the tail into ``Others``.

        Args:
            kind: Transaction kind to rank.
            limit: How many labels to keep before folding.

        Returns:
            Series indexed by label, largest first (ties keep first
            occurrence).  ``Others`` is appended only when labels were cut
            or a label is itself called ``Others``; it appears once.
        """
        if limit < 1:
            raise InvalidArgument(f"limit must be >= 1, got {limit}")
        rows = self._kind_rows(kind)
        if rows.empty:
            ranked = pd.Series(dtype=float)
        else:
            totals = rows.groupby('label', sort=False)['amount'].sum()
            # A label literally named "Others" always lands in the folded bucket.
            has_own_others = OTHERS_LABEL in totals.index
            own_others = float(totals.pop(OTHERS_LABEL)) if has_own_others else 0.0
            totals = totals.sort_values(ascending=False, kind='mergesort')
            ranked = totals.iloc[:limit]
            tail = totals.iloc[limit:]
            if has_own_others or not tail.empty:
                folded = float(tail.sum()) + own_others
                ranked = pd.concat([ranked, pd.Series({OTHERS_LABEL: folded})])
        ranked = ranked.astype(float)
        ranked.name = 'Amount'
        ranked.index.name = 'Category'
        return ranked

    def top_expenses(self, limit: int = TOP_EXPENSES_LIMIT) -> List[Transaction]:
        """Largest expenses first; equal amounts keep collection order."""
        if limit < 0:
            raise InvalidArgument(f"limit must be >= 0, got {limit}")
        expenses = self._kind_rows(EXPENSE)
        ordered = expenses.sort_values('amount', ascending=False, kind='mergesort').head(limit)
        return [self.transactions[position] for position in ordered['position']]

    # ------------------------------------------------------------------
    # Time series
    # ------------------------------------------------------------------

    def monthly_trend(self, window: DateRange) -> pd.DataFrame:
        """Per-month totals for every calendar month the window touches.

        Months without transactions are present with zeros, so the frame has
        no gaps and is in chronological order.
        """
        months = pd.period_range(start=pd.Timestamp(window.start_date), end=pd.Timestamp(window.end_date), freq='M')
        rows = self._window_rows(window)
        if rows.empty:
            totals = pd.DataFrame(0.0, index=months, columns=list(KINDS))
            counts = pd.Series(0, index=months)
        else:
            periods = rows['occurred_on'].dt.to_period('M')
            totals = (
                rows.groupby([periods, 'kind'])['amount'].sum()
                .unstack('kind', fill_value=0.0)
                .reindex(index=months, columns=list(KINDS), fill_value=0.0)
            )
            counts = rows.groupby(periods).size().reindex(months, fill_value=0)

        trend = pd.DataFrame({
            'Month': [str(period) for period in months],
            'Month_Label': [period.strftime('%b %Y') for period in months],
            'Income': totals[INCOME].to_numpy(dtype=float),
            'Expenses': totals[EXPENSE].to_numpy(dtype=float),
            'Investments': totals[INVESTMENT].to_numpy(dtype=float),
        }, columns=TREND_COLUMNS[:5])
        trend['Savings'] = calculate_savings(trend['Income'], trend['Expenses'], trend['Investments'])
        trend['Transaction_Count'] = counts.to_numpy(dtype=int)
        return trend

    def daily_intensity(self, window: DateRange, kind: str = EXPENSE) -> pd.DataFrame:
        """One row per calendar day in the window with spend, count and level."""
        days = pd.date_range(start=pd.Timestamp(window.start_date), end=pd.Timestamp(window.end_date), freq='D')
        rows = self._window_rows(window)
        rows = rows[rows['kind'] == validate_kind(kind)]
        if rows.empty:
            amounts = np.zeros(len(days), dtype=float)
            counts = np.zeros(len(days), dtype=int)
        else:
            daily = rows.groupby(rows['occurred_on'].dt.normalize())['amount'].agg(['sum', 'count'])
            daily = daily.reindex(days, fill_value=0)
            amounts = daily['sum'].to_numpy(dtype=float)
            counts = daily['count'].to_numpy(dtype=int)

        heatmap = pd.DataFrame({
            'Date': [day.date() for day in days],
            'Amount': amounts,
            'Transaction_Count': counts,
        })
        heatmap['Level'] = intensity_levels(heatmap['Amount'])
        return heatmap[HEATMAP_COLUMNS]
