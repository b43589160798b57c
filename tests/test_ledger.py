from datetime import date

import pandas as pd

from household_budget.categorization import Bucket
from household_budget.grid import TableResponse
from household_budget.ledger import (
    NormalizationReport,
    available_months,
    default_month,
    normalize_rows,
    normalize_table,
    transactions_to_frame,
)


def _row(day, desc, amount, category='General Merchandise', type_='Discretionary', ignore=''):
    return {
        'Date': day,
        'Transaction': desc,
        'Category': category,
        'Type': type_,
        'Amount': amount,
        'Ignore': ignore,
    }


def test_identical_rows_collapse_to_one():
    rows = [_row('2024-01-10', 'Store', '-42.00'), _row('2024-01-10', 'Store', '-42.00')]
    report = NormalizationReport()
    result = normalize_rows(rows, report)
    assert len(result) == 1
    assert report.duplicates == 1


def test_dedup_ignores_description_case_and_input_order():
    a = _row('2024-01-10', 'Corner Store', '-5')
    b = _row('1/10/2024', 'CORNER STORE', '-5.00')
    forward = normalize_rows([a, b])
    backward = normalize_rows([b, a])
    assert len(forward) == len(backward) == 1
    assert forward[0].dedup_key() == backward[0].dedup_key()


def test_normalization_is_deterministic():
    rows = [
        _row('2024-01-10', 'Store', '-42.00'),
        _row('2024-01-12', 'Gas Station', '-30', category='Other Discretionary'),
        _row('2024-01-10', 'Bakery', '-8', category='Restaurants/Dining'),
    ]
    assert normalize_rows(rows) == normalize_rows(rows)


def test_rows_sorted_newest_first_with_stable_ties():
    rows = [
        _row('2024-01-10', 'First', '-1'),
        _row('2024-02-01', 'Later', '-1'),
        _row('2024-01-10', 'Second', '-2'),
    ]
    result = normalize_rows(rows)
    assert [t.description for t in result] == ['Later', 'First', 'Second']


def test_drop_reasons_are_counted():
    rows = [
        _row('garbage', 'Bad date', '-1'),
        _row('2024-01-01', '   ', '-1'),
        _row('2024-01-01', 'Ignored', '-1', ignore='TRUE'),
        _row('2024-01-01', 'Move money', '-1', type_='Transfer'),
        _row('2024-01-01', 'Card payment', '-1', category='Transfers'),
        _row('2024-01-01', 'Kept', 'oops'),
    ]
    report = NormalizationReport()
    result = normalize_rows(rows, report)
    assert [t.description for t in result] == ['Kept']
    assert result[0].amount == 0.0
    assert report.rows_read == 6
    assert report.dropped == {
        'bad_date': 1,
        'empty_description': 1,
        'ignore_flag': 1,
        'transfer_type': 1,
        'ignored_category': 1,
    }


def test_out_of_range_serial_date_drops_only_that_row():
    report = NormalizationReport()
    result = normalize_rows([_row('2024-01-10', 'Store', '-42.00'), _row('3000000', 'Far future', '-1')], report)
    assert [t.description for t in result] == ['Store']
    assert report.dropped['bad_date'] == 1


def test_normalize_table_and_bucket():
    table = TableResponse(
        headers=['Date', 'Transaction', 'Category', 'Type', 'Amount', 'Ignore'],
        rows=[['2024-03-05', 'Coffee Shop', 'Restaurants/Dining', 'Discretionary', '-12.50']],
    )
    result = normalize_table(table)
    assert len(result) == 1
    assert result[0].bucket is Bucket.FOOD
    assert result[0].amount == -12.5


def test_transactions_to_frame_columns():
    frame = transactions_to_frame(normalize_rows([_row('2024-03-05', 'Store', '-1')]))
    assert list(frame.columns) == ['Date', 'Description', 'Category', 'Type', 'Kind', 'Amount', 'Bucket', 'Month']
    assert frame.loc[0, 'Month'] == pd.Period('2024-03', freq='M')
    assert frame.loc[0, 'Kind'] == 'discretionary'

    empty = transactions_to_frame([])
    assert empty.empty
    assert 'Month' in empty.columns


def test_available_months_respects_start_month():
    rows = [
        _row('2023-11-20', 'Old', '-1'),
        _row('2023-12-05', 'Dec', '-1'),
        _row('2024-01-05', 'Jan', '-1'),
    ]
    frame = transactions_to_frame(normalize_rows(rows))
    months = available_months(frame, '2023-12')
    assert months == [pd.Period('2023-12', freq='M'), pd.Period('2024-01', freq='M')]
    assert default_month(months) == pd.Period('2024-01', freq='M')
    assert default_month([], date(2025, 6, 3)) == pd.Period('2025-06', freq='M')
