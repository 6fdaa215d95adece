from datetime import date, datetime, timezone

import pytest

from finance_tracker.budgets import NoBudgetSet
from finance_tracker.dashboard import DashboardService
from finance_tracker.db import SqliteBudgetStore, SqliteTransactionStore
from finance_tracker.errors import DataUnavailable, InvalidArgument
from finance_tracker.models import Budget, Expense, Income, Investment

# 11:30 on 20 March in the reporting timezone.
NOW = datetime(2024, 3, 20, 6, 0, tzinfo=timezone.utc)


class FlakyTransactionStore:
    def __init__(self, transactions):
        self.transactions = list(transactions)
        self.available = True

    def query(self, owner_id, kind=None, start_date=None, end_date=None):
        if not self.available:
            raise DataUnavailable("transaction backend offline")
        return [
            txn for txn in self.transactions
            if txn.owner_id == owner_id
            and (kind is None or txn.kind == kind)
            and (start_date is None or txn.occurred_on >= date.fromisoformat(start_date))
            and (end_date is None or txn.occurred_on <= date.fromisoformat(end_date))
        ]


class MemoryBudgetStore:
    def __init__(self, budgets=()):
        self.budgets = {budget.key: budget for budget in budgets}

    def get(self, owner_id, month):
        return self.budgets.get((owner_id, month))

    def upsert(self, owner_id, month, limit):
        budget = Budget(owner_id=owner_id, month=month, limit=limit)
        self.budgets[budget.key] = budget
        return budget


def sample_transactions():
    return [
        Income(owner_id='u1', amount=1000, occurred_on=date(2024, 3, 1), category='Salary'),
        Expense(owner_id='u1', amount=300, occurred_on=date(2024, 3, 2), category='Groceries', tags=['food']),
        Expense(owner_id='u1', amount=500, occurred_on=date(2024, 3, 5), category='Rent', tags=['housing']),
        Investment(owner_id='u1', amount=100, occurred_on=date(2024, 3, 10), instrument_name='Index Fund'),
        # Later in March than the window's end; counts toward the month's budget only.
        Expense(owner_id='u1', amount=50, occurred_on=date(2024, 3, 25), category='Dinner', tags=['food', 'dining']),
        Expense(owner_id='u1', amount=75, occurred_on=date(2024, 2, 27), category='Fuel'),
        Expense(owner_id='u2', amount=400, occurred_on=date(2024, 3, 3), category='Groceries', tags=['food']),
    ]


def _service(budgets=(Budget(owner_id='u1', month='2024-03', limit=1000),)):
    store = FlakyTransactionStore(sample_transactions())
    return DashboardService(store, MemoryBudgetStore(budgets)), store


def test_load_computes_metrics_for_window():
    service, _ = _service()
    view = service.load('u1', 'thisMonth', now=NOW)
    assert view.error is None and view.stale is False

    metrics = view.metrics
    assert (metrics.window.start_date, metrics.window.end_date) == (date(2024, 3, 1), date(2024, 3, 20))
    assert metrics.summary['income'] == 1000.0
    assert metrics.summary['expenses'] == 800.0
    assert metrics.summary['investments'] == 100.0
    assert metrics.summary['savings'] == 100.0
    assert metrics.breakdowns['expense'] == {'food': 300.0, 'housing': 500.0}
    assert metrics.breakdowns['investment'] == {'Uncategorized': 100.0}
    assert metrics.breakdowns['savings'] == {'Total Savings': 100.0}
    assert list(metrics.category_ranking.index) == ['Rent', 'Groceries']
    assert [txn.label for txn in metrics.top_expenses] == ['Rent', 'Groceries']
    assert list(metrics.monthly_trend['Month']) == ['2024-03']
    assert len(metrics.daily_intensity) == 20
    assert metrics.tags == ['food', 'housing']


def test_budget_uses_whole_month_of_window_end():
    service, _ = _service()
    metrics = service.load('u1', 'thisMonth', now=NOW).metrics
    assert metrics.budget_month == '2024-03'
    assert metrics.budget.current_expenses == 850.0
    assert metrics.budget.percentage == pytest.approx(85.0)
    assert metrics.budget.is_near_limit
    assert metrics.alert.title == 'Budget Alert'
    assert metrics.alert.expense_to_income == pytest.approx(85.0)


def test_no_budget_month():
    service, _ = _service(budgets=())
    metrics = service.load('u1', 'lastMonth', now=NOW).metrics
    assert metrics.budget_month == '2024-02'
    assert isinstance(metrics.budget, NoBudgetSet)
    assert metrics.budget.current_expenses == 75.0
    assert metrics.alert is None


def test_search_and_tags_narrow_aggregates_only():
    service, _ = _service()
    metrics = service.load('u1', 'thisMonth', search_text='groc', now=NOW).metrics
    assert [txn.label for txn in metrics.transactions] == ['Groceries']
    assert metrics.summary['expenses'] == 300.0
    assert metrics.summary['income'] == 0.0
    assert metrics.tags == ['food', 'housing']
    assert metrics.budget.current_expenses == 850.0

    tagged = service.load('u1', 'thisMonth', required_tags=['housing'], now=NOW).metrics
    assert [txn.label for txn in tagged.transactions] == ['Rent']


def test_custom_window_and_pagination():
    service, _ = _service()
    metrics = service.load('u1', (date(2024, 2, 1), date(2024, 3, 31)), now=NOW).metrics
    assert list(metrics.monthly_trend['Month']) == ['2024-02', '2024-03']
    assert len(metrics.transactions) == 6

    page = metrics.page(2, per_page=4)
    assert len(page.items) == 2
    assert page.total_pages == 2


def test_outage_serves_last_metrics_as_stale():
    service, store = _service()
    fresh = service.load('u1', 'thisMonth', now=NOW)

    store.available = False
    view = service.load('u1', 'thisMonth', now=NOW)
    assert view.stale is True
    assert view.metrics is fresh.metrics
    assert service.last_metrics('u1') is fresh.metrics
    assert view.metrics.summary['expenses'] == 800.0
    assert 'offline' in view.error


def test_outage_without_history_returns_no_metrics():
    service, store = _service()
    service.load('u1', 'thisMonth', now=NOW)
    store.available = False

    view = service.load('u2', 'thisMonth', now=NOW)
    assert view.metrics is None
    assert view.stale is False
    assert view.error


def test_invalid_window_is_not_masked_as_stale():
    service, store = _service()
    service.load('u1', 'thisMonth', now=NOW)
    store.available = False
    with pytest.raises(InvalidArgument):
        service.load('u1', 'fortnight', now=NOW)


def test_load_against_sqlite_stores(tmp_path):
    db_path = tmp_path / 'finance.db'
    transactions = SqliteTransactionStore(db_path)
    budgets = SqliteBudgetStore(db_path)
    for txn in sample_transactions():
        transactions.create(txn)
    budgets.upsert('u1', '2024-03', 800)

    metrics = DashboardService(transactions, budgets).load('u1', 'thisMonth', now=NOW).metrics
    assert metrics.summary['savings'] == 100.0
    assert metrics.budget.is_over_budget
    assert metrics.alert.message == "You've exceeded your monthly budget by ₹50.00."
