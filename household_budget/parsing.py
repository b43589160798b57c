"""Cell-level parsing primitives.

Every function here is total: malformed input resolves to a defined
default (``0``, ``''`` or ``None``) instead of raising, so one bad cell
can never abort a whole ingestion pass.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

TRUTHY_VALUES = {'true', 'yes', 'y', '1', 'x'}

# Google Sheets serial day 0
SHEETS_EPOCH = datetime(1899, 12, 30)
MIN_SERIAL = 20000

_ISO_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_US_DATE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_SERIAL = re.compile(r'^\d+(\.\d+)?$')
_NON_NUMERIC = re.compile(r'[^0-9.]')


def safe_trim(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and math.isnan(value):
        return ''
    return str(value).strip()


def safe_lower(value: Any) -> str:
    return safe_trim(value).lower()


def is_truthy(value: Any) -> bool:
    """Return True for the spreadsheet checkbox spellings ``true|yes|y|1|x``."""
    return safe_lower(value) in TRUTHY_VALUES


def parse_amount(value: Any) -> float:
    """Parse a currency cell such as ``$1,234.50`` or ``(12.00)``.

    A ``(`` or ``-`` anywhere marks the value negative; the magnitude is
    built from the remaining digits and decimal point.  Unparsable input
    yields ``0.0``.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0
    text = safe_trim(value)
    if not text:
        return 0.0
    negative = '(' in text or '-' in text
    digits = _NON_NUMERIC.sub('', text)
    if not digits:
        return 0.0
    try:
        magnitude = float(digits)
    except ValueError:
        return 0.0
    if not math.isfinite(magnitude):
        return 0.0
    return -magnitude if negative else magnitude


def safe_number(value: Any) -> float:
    """Lenient numeric coercion used for forecast input cells."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0
    text = safe_trim(value).replace('$', '').replace(',', '')
    if not text:
        return 0.0
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def finite_or_zero(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_date(value: Any) -> Optional[date]:
    """Parse a ledger date cell into a calendar day.

    Accepts spreadsheet serial numbers, ISO ``YYYY-MM-DD``, US
    ``M/D/YYYY`` and, as a last resort, anything pandas can read.
    Returns ``None`` when nothing matches.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = safe_trim(value)
    if not text:
        return None

    if _SERIAL.match(text):
        serial = float(text)
        if serial > MIN_SERIAL:
            try:
                moment = SHEETS_EPOCH + timedelta(milliseconds=round(serial * 86400000))
            except (OverflowError, ValueError):
                return None
            return moment.date()

    iso = _ISO_DATE.match(text)
    if iso:
        return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    us = _US_DATE.match(text)
    if us:
        return _safe_date(int(us.group(3)), int(us.group(1)), int(us.group(2)))

    parsed = pd.to_datetime(text, errors='coerce')
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_month(value: Any) -> Optional[date]:
    """Parse a month cell (``Jan 2025``, ``1/1/2025``, a serial...) to its first day."""
    parsed = parse_date(value)
    if parsed is None:
        return None
    return parsed.replace(day=1)


def pick(row: Mapping[str, Any], names: Sequence[str]) -> Any:
    """Return the first non-empty value among candidate column names."""
    for name in names:
        value = row.get(name)
        if value is not None and value != '':
            return value
    return ''
