"""Category routing tables.

Three independent lookups drive every aggregate:

* ``category_to_bucket`` - ledger category to discretionary bucket
  (or the ``IGNORE`` sentinel), applied once during normalization.
* ``normalize_fixed_bucket`` - category of a fixed-type row to its fixed
  line, or to the ``Savings`` / ``Ignore`` sentinels.
* ``utility_line`` - description of a utilities row to its sub-line.

Each table is an ordered list of rules with an explicit default arm;
the first matching rule wins.  Some labels keep the household's sheet
spelling (``Mortage``, ``Utiities``) because budget tables key off them.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Tuple, Union

from .parsing import safe_lower, safe_trim


class Bucket(str, Enum):
    FOOD = 'Food'
    GAS = 'Gas'
    GENERAL_MERCHANDISE = 'General Merchandise'
    OTHER = 'Other'


class BucketSentinel(str, Enum):
    IGNORE = 'IGNORE'


class FixedLine(str, Enum):
    MORTAGE = 'Mortage'
    ADDITIONAL_PAYMENT = 'Additional Payment'
    AUTO = 'Auto'
    MEDICAL = 'Medical'
    CAR_INSURANCE = 'Car Insurance'
    UTIITIES = 'Utiities'
    STUDENT_LOANS = 'Student Loans'
    NORTHWEST = 'NorthWest'


class FixedSentinel(str, Enum):
    SAVINGS = 'Savings'
    IGNORE = 'Ignore'


class UtilityLine(str, Enum):
    NATIONAL_GRID = 'National Grid'
    SPECTRUM = 'Spectrum'
    JOANN_PHONE = 'Joann Phone'
    PEACOCK = 'Peacock'
    GYM = 'Gym'
    WATER = 'Water'
    NETFLIX = 'Netflix'
    APPLE = 'Apple'
    OTHER = 'Other'


class TxType(str, Enum):
    INCOME = 'income'
    FIXED = 'fixed'
    DISCRETIONARY = 'discretionary'
    TRANSFER = 'transfer'
    UNKNOWN = 'unknown'


BucketRoute = Union[Bucket, BucketSentinel]
FixedRoute = Union[FixedLine, FixedSentinel]

BUCKETS: Tuple[Bucket, ...] = tuple(Bucket)
CONTROLLED_BUCKETS: Tuple[Bucket, ...] = (Bucket.FOOD, Bucket.GAS, Bucket.GENERAL_MERCHANDISE)
FIXED_ORDER: Tuple[FixedLine, ...] = tuple(FixedLine)
UTILITIES_ORDER: Tuple[UtilityLine, ...] = tuple(UtilityLine)

# Categories whose rows count as discretionary even when typed "fixed"
FORCE_DISCRETIONARY_CATEGORIES = {'restaurants/dining', 'gifts', 'home improvement', 'rent'}

# Exact-match category rules (source label spelling, case-sensitive)
_BUCKET_RULES: List[Tuple[Tuple[str, ...], BucketRoute]] = [
    (('Transfers',), BucketSentinel.IGNORE),
    (('Restaurants/Dining',), Bucket.FOOD),
    # Sheet label is misleading; this category is the household's fuel spend
    (('Other Discretionary',), Bucket.GAS),
    (('Travel', 'Gifts', 'Home Improvement', 'Automotive Expenses'), Bucket.OTHER),
    (
        ('General Merchandise', 'Clothing/Shoes', 'Entertainment', 'Repairs & Maintenance', 'Uncategorized'),
        Bucket.GENERAL_MERCHANDISE,
    ),
]
DEFAULT_BUCKET: Bucket = Bucket.GENERAL_MERCHANDISE

UTILITY_CATEGORIES = {
    'utilities',
    'dues and subscriptions',
    'telephone services',
    'cable/satellite services',
    'taxes',
    'insurance',
    'other fixed',
    'child/dependent expenses',
    'pets/pet care',
    'services',
}

_FIXED_RULES: List[Tuple[Callable[[str], bool], FixedRoute]] = [
    (lambda c: c == 'interest', FixedSentinel.IGNORE),
    (lambda c: c == 'education', FixedLine.STUDENT_LOANS),
    (lambda c: c in {'healthcare/medical', 'chiropractors'}, FixedLine.MEDICAL),
    (lambda c: 'doctors and physicians' in c, FixedLine.MEDICAL),
    (lambda c: c == 'retirement contributions', FixedLine.NORTHWEST),
    (lambda c: c == 'mortgages', FixedLine.MORTAGE),
    (lambda c: c == 'savings', FixedSentinel.SAVINGS),
    (lambda c: c in UTILITY_CATEGORIES, FixedLine.UTIITIES),
    (lambda c: 'bridge and road fees' in c, FixedLine.UTIITIES),
    (lambda c: 'membership clubs' in c, FixedLine.UTIITIES),
]
DEFAULT_FIXED_LINE: FixedLine = FixedLine.UTIITIES

_UTILITY_RULES: List[Tuple[Callable[[str], bool], UtilityLine]] = [
    (lambda d: 'national grid' in d, UtilityLine.NATIONAL_GRID),
    (lambda d: 'spectrum' in d, UtilityLine.SPECTRUM),
    (lambda d: 'venmo inc' in d or 'transfer to venmo' in d, UtilityLine.JOANN_PHONE),
    (lambda d: 'netflix' in d, UtilityLine.NETFLIX),
    (lambda d: 'peacock' in d or 'hulu' in d, UtilityLine.PEACOCK),
    (lambda d: 'liverpoolclub' in d or 'elevate fitn' in d, UtilityLine.GYM),
    (lambda d: 'onondaga county water' in d or 'water authority' in d, UtilityLine.WATER),
    (lambda d: d == 'apple' or 'apple.com' in d, UtilityLine.APPLE),
]
DEFAULT_UTILITY_LINE: UtilityLine = UtilityLine.OTHER


def tx_type(raw: object) -> TxType:
    """Normalize a ledger ``Type`` cell; unknown labels map to ``TxType.UNKNOWN``."""
    label = safe_lower(raw)
    try:
        return TxType(label)
    except ValueError:
        return TxType.UNKNOWN


def category_to_bucket(category: object) -> BucketRoute:
    """Map a ledger category to a discretionary bucket.

    Example:
        >>> category_to_bucket('Restaurants/Dining')
        <Bucket.FOOD: 'Food'>
        >>> category_to_bucket('Something New')
        <Bucket.GENERAL_MERCHANDISE: 'General Merchandise'>
    """
    cat = safe_trim(category)
    for labels, route in _BUCKET_RULES:
        if cat in labels:
            return route
    return DEFAULT_BUCKET


def normalize_fixed_bucket(category: object) -> FixedRoute:
    """Map the category of a fixed-type row to its fixed line or sentinel."""
    low = safe_lower(category)
    for matches, route in _FIXED_RULES:
        if matches(low):
            return route
    return DEFAULT_FIXED_LINE


def should_force_to_discretionary(category: object) -> bool:
    return safe_lower(category) in FORCE_DISCRETIONARY_CATEGORIES


def utility_line(description: object) -> UtilityLine:
    """Resolve the utilities sub-line from a transaction description."""
    desc = safe_lower(description)
    for matches, line in _UTILITY_RULES:
        if matches(desc):
            return line
    return DEFAULT_UTILITY_LINE
