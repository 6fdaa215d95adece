from datetime import date

import pytest

from finance_tracker.errors import InvalidArgument
from finance_tracker.filters import distinct_tags, filter_transactions, matches_tags, paginate
from finance_tracker.models import Expense, Income, Investment


def _build():
    return [
        Expense(owner_id='u1', amount=100, occurred_on=date(2024, 3, 1), category='Groceries', tags=['food']),
        Expense(owner_id='u1', amount=45, occurred_on=date(2024, 3, 2), category='Dinner out', tags=['food', 'dining']),
        Income(owner_id='u1', amount=1000, occurred_on=date(2024, 3, 1), category='Salary'),
        Investment(owner_id='u1', amount=300, occurred_on=date(2024, 3, 3), instrument_name='Nifty Index Fund',
                   tags=['mf']),
    ]


def test_no_filters_is_identity():
    transactions = _build()
    result = filter_transactions(transactions, search_text='', required_tags=[])
    assert result == transactions
    assert all(a is b for a, b in zip(result, transactions))
    assert result is not transactions


def test_whitespace_search_is_treated_as_empty():
    transactions = _build()
    assert filter_transactions(transactions, search_text='   ') == transactions


def test_search_is_case_insensitive_substring_on_label():
    result = filter_transactions(_build(), search_text='NIFTY')
    assert [txn.label for txn in result] == ['Nifty Index Fund']

    result = filter_transactions(_build(), search_text='er')
    assert [txn.label for txn in result] == ['Groceries', 'Dinner out']


def test_tags_match_any_required_tag():
    result = filter_transactions(_build(), required_tags=['dining', 'mf'])
    assert [txn.label for txn in result] == ['Dinner out', 'Nifty Index Fund']


def test_untagged_never_matches_tag_filter():
    salary = _build()[2]
    assert not matches_tags(salary, ['food'])
    assert matches_tags(salary, [])
    assert salary not in filter_transactions(_build(), required_tags=['food', 'mf', 'dining'])


def test_search_and_tags_combine():
    result = filter_transactions(_build(), search_text='groc', required_tags=['food'])
    assert [txn.label for txn in result] == ['Groceries']
    assert filter_transactions(_build(), search_text='groc', required_tags=['mf']) == []


def test_input_is_not_mutated():
    transactions = _build()
    snapshot = list(transactions)
    filter_transactions(transactions, search_text='din', required_tags=['food'])
    assert transactions == snapshot


def test_distinct_tags_are_sorted():
    assert distinct_tags(_build()) == ['dining', 'food', 'mf']
    assert distinct_tags([]) == []


def test_paginate():
    items = list(range(45))
    page = paginate(items, page=3, per_page=20)
    assert page.items == list(range(40, 45))
    assert page.total_pages == 3
    assert page.has_previous and not page.has_next

    first = paginate(items)
    assert len(first.items) == 20
    assert first.has_next and not first.has_previous


def test_paginate_past_end_and_empty():
    assert paginate(list(range(5)), page=4, per_page=2).items == []
    empty = paginate([], page=1)
    assert empty.items == []
    assert empty.total_pages == 1


@pytest.mark.parametrize('page, per_page', [(0, 20), (1, 0)])
def test_paginate_rejects_bad_arguments(page, per_page):
    with pytest.raises(InvalidArgument):
        paginate([1, 2, 3], page=page, per_page=per_page)


def test_required_tags_are_normalized_like_stored_tags():
    result = filter_transactions(_build(), required_tags=[' food', ''])
    assert [txn.label for txn in result] == ['Groceries', 'Dinner out']
    assert matches_tags(_build()[3], ['mf '])
    assert filter_transactions(_build(), required_tags=['  ']) == _build()
