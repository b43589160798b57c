"""Pay schedule: paychecks per month for the two household earners.

The weekly earner is paid on a fixed weekday; the biweekly earner every
14 days from an anchor pay date.  A payday that lands on a US federal
holiday moves back to the previous business day, which can move it into
the previous month.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional, Set

import pandas as pd

from .parsing import parse_date
from .settings import get_household_config

THURSDAY = 3
MONDAY = 0

# Long enough that a payday of the next month shifted back over a
# holiday weekend is still considered
_SHIFT_SLACK = timedelta(days=7)


def _month_bounds(month: date) -> tuple:
    start = date(month.year, month.month, 1)
    end = (pd.Timestamp(start) + pd.offsets.MonthBegin(1)).date()
    return start, end


def _observed(day: date) -> date:
    if day.weekday() == 5:
        return day - timedelta(days=1)
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day


def nth_weekday_of_month(year: int, month: int, weekday: int, nth: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + (nth - 1) * 7)


def last_weekday_of_month(year: int, month: int, weekday: int) -> date:
    _, end = _month_bounds(date(year, month, 1))
    last = end - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def build_holiday_set(years: Iterable[int]) -> Set[date]:
    """US federal holidays (observed dates) for the given years."""
    holidays: Set[date] = set()
    for year in years:
        for month, day in ((1, 1), (6, 19), (7, 4), (11, 11), (12, 25)):
            holidays.add(_observed(date(year, month, day)))
        holidays.add(nth_weekday_of_month(year, 1, MONDAY, 3))    # MLK Day
        holidays.add(nth_weekday_of_month(year, 2, MONDAY, 3))    # Presidents Day
        holidays.add(last_weekday_of_month(year, 5, MONDAY))      # Memorial Day
        holidays.add(nth_weekday_of_month(year, 9, MONDAY, 1))    # Labor Day
        holidays.add(nth_weekday_of_month(year, 10, MONDAY, 2))   # Columbus Day
        holidays.add(nth_weekday_of_month(year, 11, THURSDAY, 4))  # Thanksgiving
    return holidays


def previous_business_day(day: date, holidays: Set[date]) -> date:
    """Step back from ``day`` until it is neither a weekend nor a holiday."""
    current = day
    while current.weekday() >= 5 or current in holidays:
        current -= timedelta(days=1)
    return current


def _adjust(payday: date, holidays: Set[date]) -> date:
    return previous_business_day(payday, holidays) if payday in holidays else payday


def _holidays_around(month: date) -> Set[date]:
    return build_holiday_set(range(month.year - 1, month.year + 2))


def count_weekly_paychecks(month: date, weekday: int = THURSDAY, holidays: Optional[Set[date]] = None) -> int:
    """Weekly paydays (after holiday adjustment) that fall inside ``month``."""
    start, end = _month_bounds(month)
    holidays = _holidays_around(start) if holidays is None else holidays
    payday = start + timedelta(days=(weekday - start.weekday()) % 7)
    count = 0
    while payday < end + _SHIFT_SLACK:
        if start <= _adjust(payday, holidays) < end:
            count += 1
        payday += timedelta(days=7)
    return count


def count_biweekly_paychecks(month: date, anchor: date, holidays: Optional[Set[date]] = None) -> int:
    """Occurrences of ``anchor + 14k`` (any integer k) paid inside ``month``."""
    start, end = _month_bounds(month)
    holidays = _holidays_around(start) if holidays is None else holidays
    first = start - timedelta(days=14)
    k = math.ceil((first - anchor).days / 14)
    payday = anchor + timedelta(days=14 * k)
    count = 0
    while payday < end + _SHIFT_SLACK:
        if start <= _adjust(payday, holidays) < end:
            count += 1
        payday += timedelta(days=14)
    return count


def count_weekday_in_month(month: date, weekday: int) -> int:
    """Plain count of ``weekday`` occurrences in the month, no holiday logic."""
    start, end = _month_bounds(month)
    first = start + timedelta(days=(weekday - start.weekday()) % 7)
    if first >= end:
        return 0
    return (end - first - timedelta(days=1)).days // 7 + 1


@dataclass
class MonthlyPay:
    weekly_earner: float
    biweekly_earner: float

    @property
    def total(self) -> float:
        return self.weekly_earner + self.biweekly_earner


@dataclass
class PaySchedule:
    """Monthly pay for a weekly earner and a biweekly earner.

    Example:
        >>> schedule = PaySchedule(weekly_payday=3, biweekly_anchor=date(2024, 1, 5))
        >>> schedule.pay_for_month(date(2024, 3, 1), 1000, 800).weekly_earner
        4000
    """

    weekly_payday: int = THURSDAY
    biweekly_anchor: date = date(2024, 1, 5)
    holiday_aware: bool = True
    weekly_earner_name: str = 'Austin'
    biweekly_earner_name: str = 'Jenna'

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None) -> 'PaySchedule':
        section = (config or get_household_config())['pay_schedule']
        anchor = parse_date(section.get('biweekly_anchor')) or date(2024, 1, 5)
        return cls(
            weekly_payday=int(section.get('weekly_payday', THURSDAY)),
            biweekly_anchor=anchor,
            holiday_aware=bool(section.get('holiday_aware', True)),
            weekly_earner_name=section.get('weekly_earner', 'Austin'),
            biweekly_earner_name=section.get('biweekly_earner', 'Jenna'),
        )

    def paychecks(self, month: date) -> tuple:
        """(weekly earner checks, biweekly earner checks) for the month."""
        if self.holiday_aware:
            holidays = _holidays_around(month)
            return (
                count_weekly_paychecks(month, self.weekly_payday, holidays),
                count_biweekly_paychecks(month, self.biweekly_anchor, holidays),
            )
        return (
            count_weekday_in_month(month, self.weekly_payday),
            math.ceil(count_weekday_in_month(month, MONDAY) / 2),
        )

    def pay_for_month(self, month: date, weekly_rate: float, biweekly_weekly_rate: float) -> MonthlyPay:
        weekly_checks, biweekly_checks = self.paychecks(month)
        return MonthlyPay(
            weekly_earner=weekly_checks * weekly_rate,
            biweekly_earner=biweekly_checks * biweekly_weekly_rate * 2,
        )
