"""Tabular primitives: CSV text to grid, and header/row tables to records."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

Grid = List[List[str]]


def _cell(value: Any) -> str:
    return '' if value is None else str(value)


def pad_grid(rows: Sequence[Sequence[Any]]) -> Grid:
    """Return a rectangular copy of ``rows`` with short rows padded by ``''``."""
    out = [[_cell(v) for v in row] for row in rows]
    width = max((len(r) for r in out), default=0)
    for row in out:
        row.extend([''] * (width - len(row)))
    return out


def parse_csv_grid(text: str) -> Grid:
    """Parse CSV text into a rectangular grid of strings.

    Quoted fields may contain the delimiter, newlines and doubled quotes.
    """
    if not text:
        return []
    reader = csv.reader(io.StringIO(text, newline=''))
    return pad_grid(list(reader))


def cell(grid: Sequence[Sequence[str]], row: int, col: int) -> str:
    """Bounds-safe cell access (0-based)."""
    if row < 0 or row >= len(grid):
        return ''
    values = grid[row]
    if col < 0 or col >= len(values):
        return ''
    return _cell(values[col])


def rows_as_records(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> List[Dict[str, Any]]:
    """Zip each row with the header names; missing trailing cells become ``''``."""
    names = [str(h or '').strip() for h in headers]
    records: List[Dict[str, Any]] = []
    for row in rows:
        values = list(row or [])
        records.append({
            name: (values[i] if i < len(values) and values[i] is not None else '')
            for i, name in enumerate(names)
        })
    return records


@dataclass
class TableResponse:
    """The ``{headers, rows}`` shape returned by the store's read endpoints."""

    headers: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> 'TableResponse':
        payload = payload or {}
        headers = payload.get('headers')
        rows = payload.get('rows')
        return cls(
            headers=[str(h or '').strip() for h in headers] if isinstance(headers, list) else [],
            rows=[list(r) if isinstance(r, (list, tuple)) else [] for r in rows] if isinstance(rows, list) else [],
        )

    @property
    def empty(self) -> bool:
        return not self.headers and not self.rows

    def records(self) -> List[Dict[str, Any]]:
        return rows_as_records(self.headers, self.rows)

    def as_grid(self) -> Grid:
        """Headers as row 0 followed by the data rows, padded."""
        return pad_grid([self.headers, *self.rows])
