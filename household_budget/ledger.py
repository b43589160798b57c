"""Ledger normalization: raw store rows to typed, classified transactions.

Ingestion is best-effort.  Rows with an unparseable date are dropped,
unparseable amounts read as zero, and unknown categories fall through to
the default bucket; nothing in this module raises for a single bad row.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .categorization import Bucket, BucketSentinel, TxType, category_to_bucket, tx_type
from .grid import TableResponse
from .logging_setup import get_logger
from .parsing import is_truthy, parse_amount, parse_date, parse_month, pick, safe_lower, safe_trim

logger = get_logger(__name__)

# Column names emitted by the store's ledger range
DATE_COLUMN = 'Date'
DESCRIPTION_COLUMN = 'Transaction'
CATEGORY_COLUMN = 'Category'
TYPE_COLUMN = 'Type'
AMOUNT_COLUMN = 'Amount'
IGNORE_COLUMN = 'Ignore'

FRAME_COLUMNS = ['Date', 'Description', 'Category', 'Type', 'Kind', 'Amount', 'Bucket', 'Month']


@dataclass(frozen=True)
class Transaction:
    """One classified ledger entry.

    ``amount`` is negative for money leaving the account and positive for
    refunds/credits; income rows carry the gross inflow.
    """

    date: date
    description: str
    category: str
    type: str
    amount: float
    bucket: Bucket

    @property
    def kind(self) -> TxType:
        return tx_type(self.type)

    @property
    def day_key(self) -> str:
        return self.date.isoformat()

    @property
    def month(self) -> date:
        return self.date.replace(day=1)

    def dedup_key(self) -> Tuple[str, str, float]:
        return (self.day_key, self.description.lower(), self.amount)


@dataclass
class NormalizationReport:
    """Counts describing one normalization pass."""

    rows_read: int = 0
    kept: int = 0
    duplicates: int = 0
    dropped: Counter = field(default_factory=Counter)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'rows_read': self.rows_read,
            'kept': self.kept,
            'duplicates': self.duplicates,
            'dropped': dict(self.dropped),
        }


def _drop_reason(description: str, ignore_flag: Any, kind: TxType, bucket: object) -> Optional[str]:
    if not description:
        return 'empty_description'
    if is_truthy(ignore_flag):
        return 'ignore_flag'
    if kind is TxType.TRANSFER:
        return 'transfer_type'
    if bucket is BucketSentinel.IGNORE:
        return 'ignored_category'
    return None


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    report: Optional[NormalizationReport] = None,
) -> List[Transaction]:
    """Convert raw ledger records into deduplicated transactions, newest first.

    Args:
        rows: Mappings of store column name to raw cell value
        report: Optional report populated with row counts

    Returns:
        Transactions sorted by date descending; ties keep input order
    """
    report = report if report is not None else NormalizationReport()
    seen = set()
    kept: List[Transaction] = []

    for row in rows:
        report.rows_read += 1
        day = parse_date(pick(row, [DATE_COLUMN]))
        if day is None:
            report.dropped['bad_date'] += 1
            continue

        description = safe_trim(pick(row, [DESCRIPTION_COLUMN]))
        category = safe_trim(pick(row, [CATEGORY_COLUMN]))
        type_label = safe_trim(pick(row, [TYPE_COLUMN]))
        amount = parse_amount(pick(row, [AMOUNT_COLUMN]))
        bucket = category_to_bucket(category)

        reason = _drop_reason(description, pick(row, [IGNORE_COLUMN]), tx_type(type_label), bucket)
        if reason:
            report.dropped[reason] += 1
            continue

        txn = Transaction(
            date=day,
            description=description,
            category=category,
            type=type_label,
            amount=amount,
            bucket=bucket,
        )
        key = txn.dedup_key()
        if key in seen:
            report.duplicates += 1
            continue
        seen.add(key)
        kept.append(txn)

    kept.sort(key=lambda t: t.date, reverse=True)
    report.kept = len(kept)
    logger.info(
        "Normalized ledger: read=%d kept=%d duplicates=%d dropped=%s",
        report.rows_read, report.kept, report.duplicates, dict(report.dropped),
    )
    return kept


def normalize_table(table: TableResponse, report: Optional[NormalizationReport] = None) -> List[Transaction]:
    """Normalize a ``{headers, rows}`` ledger response."""
    missing = [
        col for col in (DATE_COLUMN, DESCRIPTION_COLUMN, CATEGORY_COLUMN, TYPE_COLUMN, AMOUNT_COLUMN)
        if col not in table.headers
    ]
    if missing and table.headers:
        logger.warning("Ledger headers missing expected columns: %s", ", ".join(missing))
    return normalize_rows(table.records(), report)


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Build the analysis DataFrame used by the aggregation engine.

    Columns: Date (datetime64), Description, Category, Type (raw label),
    Kind (normalized type), Amount, Bucket, Month (``Period[M]``).
    """
    records = [
        {
            'Date': t.date,
            'Description': t.description,
            'Category': t.category,
            'Type': t.type,
            'Kind': t.kind.value,
            'Amount': float(t.amount),
            'Bucket': t.bucket.value,
        }
        for t in transactions
    ]
    if not records:
        frame = pd.DataFrame({col: pd.Series(dtype='object') for col in FRAME_COLUMNS})
        frame['Amount'] = frame['Amount'].astype(float)
        frame['Date'] = pd.to_datetime(frame['Date'])
        frame['Month'] = pd.Series(dtype='period[M]')
        return frame
    frame = pd.DataFrame(records)
    frame['Date'] = pd.to_datetime(frame['Date'])
    frame['Month'] = frame['Date'].dt.to_period('M')
    return frame[FRAME_COLUMNS]


def available_months(frame: pd.DataFrame, start_month: Optional[str] = None) -> List[pd.Period]:
    """Months present in the ledger on or after ``start_month``, ascending."""
    if frame.empty:
        return []
    months = sorted(frame['Month'].dropna().unique())
    if start_month:
        floor = parse_month(start_month)
        if floor is not None:
            floor_period = pd.Period(floor, freq='M')
            months = [m for m in months if m >= floor_period]
    return list(months)


def default_month(months: List[pd.Period], today: Optional[date] = None) -> pd.Period:
    """Latest ledger month, or the current calendar month when the ledger is empty."""
    if months:
        return months[-1]
    return pd.Period(today or date.today(), freq='M')
