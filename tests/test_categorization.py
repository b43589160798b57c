import pytest

from household_budget.categorization import (
    Bucket,
    BucketSentinel,
    FixedLine,
    FixedSentinel,
    TxType,
    UtilityLine,
    category_to_bucket,
    normalize_fixed_bucket,
    should_force_to_discretionary,
    tx_type,
    utility_line,
)


@pytest.mark.parametrize('category, expected', [
    ('Restaurants/Dining', Bucket.FOOD),
    ('Other Discretionary', Bucket.GAS),
    ('Travel', Bucket.OTHER),
    ('Gifts', Bucket.OTHER),
    ('Clothing/Shoes', Bucket.GENERAL_MERCHANDISE),
    ('Transfers', BucketSentinel.IGNORE),
    ('Something New', Bucket.GENERAL_MERCHANDISE),
])
def test_category_to_bucket(category, expected):
    assert category_to_bucket(category) is expected


@pytest.mark.parametrize('category, expected', [
    ('Interest', FixedSentinel.IGNORE),
    ('Education', FixedLine.STUDENT_LOANS),
    ('Healthcare/Medical', FixedLine.MEDICAL),
    ('Doctors and Physicians - Specialist', FixedLine.MEDICAL),
    ('Retirement Contributions', FixedLine.NORTHWEST),
    ('Mortgages', FixedLine.MORTAGE),
    ('Savings', FixedSentinel.SAVINGS),
    ('Telephone Services', FixedLine.UTIITIES),
    ('Toll Bridge and Road Fees', FixedLine.UTIITIES),
    ('Brand New Category', FixedLine.UTIITIES),
])
def test_normalize_fixed_bucket(category, expected):
    assert normalize_fixed_bucket(category) is expected


def test_fixed_line_labels_keep_sheet_spelling():
    assert FixedLine.MORTAGE.value == 'Mortage'
    assert FixedLine.UTIITIES.value == 'Utiities'


@pytest.mark.parametrize('description, expected', [
    ('NATIONAL GRID US', UtilityLine.NATIONAL_GRID),
    ('Transfer to Venmo', UtilityLine.JOANN_PHONE),
    ('HULU 877-824-4858', UtilityLine.PEACOCK),
    ('ELEVATE FITNESS', UtilityLine.GYM),
    ('Onondaga County Water Auth', UtilityLine.WATER),
    ('Apple', UtilityLine.APPLE),
    ('APPLE.COM/BILL', UtilityLine.APPLE),
    ('Apple Store Downtown', UtilityLine.OTHER),
    ('Mystery Biller', UtilityLine.OTHER),
])
def test_utility_line(description, expected):
    assert utility_line(description) is expected


def test_force_to_discretionary_and_types():
    assert should_force_to_discretionary('Rent')
    assert should_force_to_discretionary(' home improvement ')
    assert not should_force_to_discretionary('Mortgages')
    assert tx_type('Fixed') is TxType.FIXED
    assert tx_type(' TRANSFER ') is TxType.TRANSFER
    assert tx_type('Payment') is TxType.UNKNOWN
