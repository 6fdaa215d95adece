from datetime import date, datetime

import pytest

from finance_tracker.errors import InvalidArgument
from finance_tracker.models import (
    Budget,
    Expense,
    Income,
    Investment,
    Transaction,
    make_transaction,
    month_key,
    normalize_tags,
    parse_month_key,
    transaction_from_record,
    transaction_to_record,
)


def test_expense_fields_are_normalized():
    txn = Expense(owner_id='u1', amount='120.5', occurred_on='2024-03-02T10:00:00', category=' Groceries ',
                  tags=[' food', 'food', '', 'weekly'])
    assert txn.amount == 120.5
    assert txn.occurred_on == date(2024, 3, 2)
    assert txn.label == 'Groceries'
    assert txn.tags == ('food', 'weekly')
    assert txn.kind == 'expense'


def test_datetime_is_reduced_to_calendar_date():
    txn = Income(owner_id='u1', amount=10, occurred_on=datetime(2024, 1, 31, 23, 0), category='Salary')
    assert txn.occurred_on == date(2024, 1, 31)


@pytest.mark.parametrize('amount', [0, -5, 'abc', None, True, float('nan')])
def test_invalid_amounts_are_rejected(amount):
    with pytest.raises(InvalidArgument):
        Expense(owner_id='u1', amount=amount, occurred_on=date(2024, 1, 1), category='Food')


def test_label_is_required_per_variant():
    with pytest.raises(InvalidArgument):
        Expense(owner_id='u1', amount=10, occurred_on=date(2024, 1, 1), category='  ')
    with pytest.raises(InvalidArgument):
        Investment(owner_id='u1', amount=10, occurred_on=date(2024, 1, 1))


def test_owner_is_required():
    with pytest.raises(InvalidArgument):
        Income(owner_id='', amount=10, occurred_on=date(2024, 1, 1), category='Salary')


def test_base_transaction_cannot_be_built():
    with pytest.raises(TypeError):
        Transaction(owner_id='u1', amount=10, occurred_on=date(2024, 1, 1))


def test_make_transaction_routes_label_to_variant_field():
    txn = make_transaction('investment', label='Nifty Index', owner_id='u1', amount=500, occurred_on='2024-02-01')
    assert isinstance(txn, Investment)
    assert txn.instrument_name == 'Nifty Index'

    with pytest.raises(InvalidArgument):
        make_transaction('transfer', label='x', owner_id='u1', amount=1, occurred_on='2024-02-01')


def test_normalize_tags_accepts_comma_separated_text():
    assert normalize_tags('food, dining,,food') == ('food', 'dining')
    assert normalize_tags(None) == ()


def test_investment_record_uses_investment_name_column():
    record = {
        'id': 'abc',
        'type': 'investment',
        'user_id': 'u1',
        'amount': '500',
        'source': '',
        'investment_name': 'Nifty Index',
        'tags': '["mf", "long-term"]',
        'date': '2024-03-02',
    }
    txn = transaction_from_record(record)
    assert isinstance(txn, Investment)
    assert txn.label == 'Nifty Index'
    assert txn.tags == ('mf', 'long-term')
    assert txn.amount == 500.0

    flat = transaction_to_record(txn)
    assert flat['source'] == ''
    assert flat['investment_name'] == 'Nifty Index'
    assert flat['tags'] == ['mf', 'long-term']
    assert flat['date'] == '2024-03-02'


def test_expense_record_reads_source_as_category():
    txn = transaction_from_record({'type': 'expense', 'user_id': 'u1', 'amount': 40,
                                   'source': 'Coffee', 'tags': None, 'date': '2024-03-02'})
    assert isinstance(txn, Expense)
    assert txn.category == 'Coffee'
    assert txn.tags == ()
    assert transaction_to_record(txn)['investment_name'] is None


def test_month_keys():
    assert month_key(date(2024, 3, 9)) == '2024-03'
    assert parse_month_key('2023-12') == (2023, 12)
    for bad in ['2023-13', '2023-1', '202312', '', None]:
        with pytest.raises(InvalidArgument):
            parse_month_key(bad)


def test_budget_validation():
    budget = Budget(owner_id='u1', month='2024-03', limit=1000)
    assert budget.limit == 1000.0
    assert budget.key == ('u1', '2024-03')
    with pytest.raises(InvalidArgument):
        Budget(owner_id='u1', month='2024-03', limit=0)
    with pytest.raises(InvalidArgument):
        Budget(owner_id='u1', month='March', limit=100)
