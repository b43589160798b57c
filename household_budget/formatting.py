"""Display formatting helpers."""

from __future__ import annotations

from datetime import date
from typing import Optional, Union

import pandas as pd

MonthLike = Union[date, pd.Period, pd.Timestamp]


def format_money0(value: float) -> str:
    """Whole-dollar amount with sign before the symbol: ``-$1,235``."""
    sign = '-' if value < 0 else ''
    return f"{sign}${abs(value):,.0f}"


def format_currency(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return '–'
    sign = '-' if value < 0 else ''
    return f"{sign}${abs(value):,.2f}"


def month_label(month: MonthLike) -> str:
    """``March 2024``"""
    return pd.Period(month, freq='M').strftime('%B %Y')


def short_month(month: MonthLike) -> str:
    return pd.Period(month, freq='M').strftime('%b')
