"""Forecast projector.

Projects income, fixed and discretionary totals month by month from the
plan baseline plus per-month user adjustments, carrying running overflow
and HYS balances forward::

    month_overflow = income_total - fixed_total - disc_total - hys_transfer
    end_overflow[i] = end_overflow[i - 1] + month_overflow[i]
    end_hys[i]      = end_hys[i - 1] + hys_transfer[i]

Adjustments are edited locally (``ForecastState``) and written through
to four label rows of the PLAN sheet, one column per month.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .errors import AddressResolutionError
from .grid import TableResponse
from .logging_setup import get_logger
from .parsing import finite_or_zero, parse_month, safe_number, safe_trim
from .payroll import PaySchedule
from .settings import get_config_value, get_household_config
from .store import CellUpdate

logger = get_logger(__name__)

# Rows of the {headers, rows} response start at sheet row 2
FIRST_DATA_ROW = 2

ADJUSTMENT_FIELDS = ('income_add', 'add_fixed', 'add_disc', 'hys_transfer')


def month_key(month: date) -> str:
    return f"{month.year:04d}-{month.month:02d}"


def add_months(month: date, count: int) -> date:
    return (pd.Period(month, freq='M') + count).start_time.date()


def months_ahead_bounds(config: Optional[Mapping[str, Any]] = None) -> Tuple[int, int, int]:
    """``(low, high, default)`` projection lengths from the ``forecast`` settings."""
    section = config['forecast'] if config is not None else get_config_value('household', 'forecast')
    return (
        int(section['min_months_ahead']),
        int(section['max_months_ahead']),
        int(section['default_months_ahead']),
    )


def clamp_months_ahead(value: Any, config: Optional[Mapping[str, Any]] = None) -> int:
    """Floor to a whole month count in ``[low, high]``; zero or junk means the default."""
    low, high, default = months_ahead_bounds(config)
    number = finite_or_zero(value) or default
    return max(low, min(high, int(math.floor(number))))


@dataclass
class MonthAdjustment:
    income_add: float = 0.0
    add_fixed: float = 0.0
    add_disc: float = 0.0
    hys_transfer: float = 0.0

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> 'MonthAdjustment':
        payload = payload or {}
        return cls(**{name: finite_or_zero(payload.get(name, 0.0)) for name in ADJUSTMENT_FIELDS})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class ForecastState:
    """User-owned forecast inputs, persisted between sessions.

    Start balances follow the dashboard's projected end-of-month balances
    (``apply_auto_start``) until the user types their own, after which
    they stay put until ``reset_start_to_auto``.
    """

    VERSION: ClassVar[int] = 1

    months_ahead: int = field(default_factory=lambda: months_ahead_bounds()[2])
    per_month: Dict[str, MonthAdjustment] = field(default_factory=dict)
    start_overflow: float = 0.0
    start_hys: float = 0.0
    start_user_override: bool = False
    last_auto_overflow: float = 0.0
    last_auto_hys: float = 0.0

    def adjustment(self, key: str) -> MonthAdjustment:
        return self.per_month.get(key) or MonthAdjustment()

    def set_months_ahead(self, value: Any, config: Optional[Mapping[str, Any]] = None) -> None:
        self.months_ahead = clamp_months_ahead(value, config)

    def set_start_overflow(self, value: Any) -> None:
        self.start_overflow = float(round(finite_or_zero(value)))
        self.start_user_override = True

    def set_start_hys(self, value: Any) -> None:
        self.start_hys = float(round(finite_or_zero(value)))
        self.start_user_override = True

    def reset_start_to_auto(self) -> None:
        self.start_user_override = False
        self.start_overflow = self.last_auto_overflow
        self.start_hys = self.last_auto_hys

    def set_month_field(self, key: str, name: str, value: Any) -> MonthAdjustment:
        if name not in ADJUSTMENT_FIELDS:
            raise ValueError(f"Unknown adjustment field: {name}")
        current = self.adjustment(key)
        updated = MonthAdjustment(**{**current.to_dict(), name: finite_or_zero(value)})
        self.per_month[key] = updated
        return updated

    def apply_auto_start(self, overflow: Any, hys: Any) -> None:
        self.last_auto_overflow = float(round(finite_or_zero(overflow)))
        self.last_auto_hys = float(round(finite_or_zero(hys)))
        if not self.start_user_override:
            self.start_overflow = self.last_auto_overflow
            self.start_hys = self.last_auto_hys

    def merge_sheet_inputs(self, inputs: Mapping[str, MonthAdjustment]) -> None:
        """Values read from the sheet replace local ones for the same month."""
        self.per_month.update(inputs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.VERSION,
            'months_ahead': self.months_ahead,
            'per_month': {k: v.to_dict() for k, v in sorted(self.per_month.items())},
            'start_overflow': self.start_overflow,
            'start_hys': self.start_hys,
            'start_user_override': self.start_user_override,
            'last_auto_overflow': self.last_auto_overflow,
            'last_auto_hys': self.last_auto_hys,
        }

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> 'ForecastState':
        if not isinstance(payload, Mapping) or payload.get('version') != cls.VERSION:
            return cls()
        per_month = payload.get('per_month')
        return cls(
            months_ahead=clamp_months_ahead(payload.get('months_ahead')),
            per_month={
                str(k): MonthAdjustment.from_dict(v)
                for k, v in (per_month.items() if isinstance(per_month, Mapping) else [])
                if isinstance(v, Mapping)
            },
            start_overflow=finite_or_zero(payload.get('start_overflow')),
            start_hys=finite_or_zero(payload.get('start_hys')),
            start_user_override=bool(payload.get('start_user_override', False)),
            last_auto_overflow=finite_or_zero(payload.get('last_auto_overflow')),
            last_auto_hys=finite_or_zero(payload.get('last_auto_hys')),
        )


@dataclass(frozen=True)
class ForecastRow:
    month: date
    key: str
    weekly_earner_pay: float
    biweekly_earner_pay: float
    income_add: float
    fixed_base: float
    fixed_add: float
    disc_base: float
    disc_add: float
    hys_transfer: float
    end_overflow: float
    end_hys: float

    @property
    def income_base(self) -> float:
        return self.weekly_earner_pay + self.biweekly_earner_pay

    @property
    def income_total(self) -> float:
        return self.income_base + self.income_add

    @property
    def fixed_total(self) -> float:
        return self.fixed_base + self.fixed_add

    @property
    def disc_total(self) -> float:
        return self.disc_base + self.disc_add

    @property
    def month_overflow(self) -> float:
        return self.income_total - self.fixed_total - self.disc_total - self.hys_transfer


def project_forecast(
    start_month: date,
    months_ahead: int,
    base_fixed: float,
    base_disc_controlled: float,
    weekly_rate: float,
    biweekly_weekly_rate: float,
    start_overflow: float = 0.0,
    start_hys: float = 0.0,
    adjustments: Optional[Mapping[str, MonthAdjustment]] = None,
    schedule: Optional[PaySchedule] = None,
    config: Optional[Mapping[str, Any]] = None,
) -> List[ForecastRow]:
    """Project ``months_ahead`` months starting the month after ``start_month``.

    Args:
        start_month: The selected (current) month; projection begins one month later
        months_ahead: Number of months, clamped to the configured bounds
        base_fixed: Fixed budget total applied to every month
        base_disc_controlled: Food + Gas + General Merchandise budget
        weekly_rate: Weekly pay of the weekly earner
        biweekly_weekly_rate: Weekly-equivalent pay of the biweekly earner
        start_overflow: Overflow balance before the first projected month
        start_hys: HYS balance before the first projected month
        adjustments: Per-month adjustments keyed by ``YYYY-MM``
        schedule: Pay schedule; read from settings when omitted
        config: Household configuration holding the ``forecast`` bounds

    Returns:
        One ``ForecastRow`` per month, in order
    """
    schedule = schedule or PaySchedule.from_config(config)
    adjustments = adjustments or {}
    count = clamp_months_ahead(months_ahead, config)
    base_fixed = finite_or_zero(base_fixed)
    base_disc = finite_or_zero(base_disc_controlled)
    weekly_rate = finite_or_zero(weekly_rate)
    biweekly_weekly_rate = finite_or_zero(biweekly_weekly_rate)

    running_overflow = finite_or_zero(start_overflow)
    running_hys = finite_or_zero(start_hys)
    rows: List[ForecastRow] = []
    for offset in range(1, count + 1):
        month = add_months(start_month, offset)
        key = month_key(month)
        adj = adjustments.get(key) or MonthAdjustment()
        pay = schedule.pay_for_month(month, weekly_rate, biweekly_weekly_rate)

        hys_transfer = finite_or_zero(adj.hys_transfer)
        month_overflow = (
            pay.total + finite_or_zero(adj.income_add)
            - (base_fixed + finite_or_zero(adj.add_fixed))
            - (base_disc + finite_or_zero(adj.add_disc))
            - hys_transfer
        )
        running_overflow += month_overflow
        running_hys += hys_transfer
        rows.append(ForecastRow(
            month=month,
            key=key,
            weekly_earner_pay=pay.weekly_earner,
            biweekly_earner_pay=pay.biweekly_earner,
            income_add=finite_or_zero(adj.income_add),
            fixed_base=base_fixed,
            fixed_add=finite_or_zero(adj.add_fixed),
            disc_base=base_disc,
            disc_add=finite_or_zero(adj.add_disc),
            hys_transfer=hys_transfer,
            end_overflow=running_overflow,
            end_hys=running_hys,
        ))
    return rows


def project_from_state(
    state: ForecastState,
    start_month: date,
    base_fixed: float,
    base_disc_controlled: float,
    weekly_rate: float,
    biweekly_weekly_rate: float,
    schedule: Optional[PaySchedule] = None,
    config: Optional[Mapping[str, Any]] = None,
) -> List[ForecastRow]:
    return project_forecast(
        start_month,
        state.months_ahead,
        base_fixed,
        base_disc_controlled,
        weekly_rate,
        biweekly_weekly_rate,
        start_overflow=state.start_overflow,
        start_hys=state.start_hys,
        adjustments=state.per_month,
        schedule=schedule,
        config=config,
    )


def forecast_frame(rows: Sequence[ForecastRow]) -> pd.DataFrame:
    columns = [
        'Month', 'Income Base', 'Income Add', 'Income Total', 'Fixed Total',
        'Disc Total', 'HYS Transfer', 'Month Overflow', 'End Overflow', 'End HYS',
    ]
    return pd.DataFrame(
        [
            {
                'Month': pd.Period(r.month, freq='M'),
                'Income Base': r.income_base,
                'Income Add': r.income_add,
                'Income Total': r.income_total,
                'Fixed Total': r.fixed_total,
                'Disc Total': r.disc_total,
                'HYS Transfer': r.hys_transfer,
                'Month Overflow': r.month_overflow,
                'End Overflow': r.end_overflow,
                'End HYS': r.end_hys,
            }
            for r in rows
        ],
        columns=columns,
    )


# ----------------------------------------------------------------------
# Sheet addressing
# ----------------------------------------------------------------------

def _label_matches(value: Any, wanted: str) -> bool:
    return safe_trim(value).lower() == wanted.strip().lower()


def _find_row(rows: Sequence[Sequence[Any]], labels: Sequence[str], label_col: int) -> Optional[int]:
    """Sheet row (1-based) of the first label found; aliases are tried in order."""
    for label in labels:
        for index, row in enumerate(rows):
            value = row[label_col] if label_col < len(row) else ''
            if _label_matches(value, label):
                return index + FIRST_DATA_ROW
    return None


@dataclass
class SheetMap:
    """Resolved cell addresses of the forecast block in the PLAN sheet."""

    month_cols: Dict[str, int] = field(default_factory=dict)
    income_row: Optional[int] = None
    fixed_row: Optional[int] = None
    disc_row: Optional[int] = None
    hys_row: Optional[int] = None

    @property
    def ready(self) -> bool:
        return bool(self.month_cols)

    @property
    def rows_resolved(self) -> bool:
        return all((self.income_row, self.fixed_row, self.disc_row, self.hys_row))

    @classmethod
    def build(cls, table: TableResponse, layout: Optional[Mapping[str, Any]] = None) -> 'SheetMap':
        layout = layout or get_household_config()['forecast_layout']
        label_col = int(layout.get('label_col', 0))
        first_month_col = int(layout.get('first_month_col', 2))
        rows = table.rows

        month_cols: Dict[str, int] = {}
        for row in rows:
            value = row[label_col] if label_col < len(row) else ''
            if not _label_matches(value, layout.get('month_header_label', 'Month')):
                continue
            for col in range(first_month_col, len(row) + 1):
                month = parse_month(row[col - 1])
                if month is not None:
                    month_cols[month_key(month)] = col
            break

        sheet_map = cls(
            month_cols=month_cols,
            income_row=_find_row(rows, layout.get('income_labels', []), label_col),
            fixed_row=_find_row(rows, layout.get('fixed_labels', []), label_col),
            disc_row=_find_row(rows, layout.get('disc_labels', []), label_col),
            hys_row=_find_row(rows, layout.get('hys_labels', []), label_col),
        )
        logger.debug("Forecast sheet map: %d month columns, rows resolved=%s",
                     len(month_cols), sheet_map.rows_resolved)
        return sheet_map

    def row_values(self, table: TableResponse, sheet_row: Optional[int]) -> Sequence[Any]:
        if not sheet_row:
            return []
        index = sheet_row - FIRST_DATA_ROW
        if index < 0 or index >= len(table.rows):
            return []
        return table.rows[index]


def read_sheet_adjustments(table: TableResponse, sheet_map: SheetMap) -> Dict[str, MonthAdjustment]:
    """Current adjustment values for every month column in the sheet."""
    if not sheet_map.ready:
        return {}
    income = sheet_map.row_values(table, sheet_map.income_row)
    fixed = sheet_map.row_values(table, sheet_map.fixed_row)
    disc = sheet_map.row_values(table, sheet_map.disc_row)
    hys = sheet_map.row_values(table, sheet_map.hys_row)

    def at(values: Sequence[Any], col: int) -> float:
        return safe_number(values[col - 1]) if col - 1 < len(values) else 0.0

    return {
        key: MonthAdjustment(
            income_add=at(income, col),
            add_fixed=at(fixed, col),
            add_disc=at(disc, col),
            hys_transfer=at(hys, col),
        )
        for key, col in sheet_map.month_cols.items()
    }


def build_month_updates(sheet_map: SheetMap, key: str, adjustment: MonthAdjustment) -> List[CellUpdate]:
    """The four cell writes for one month; raises when any address is unresolved."""
    if not sheet_map.ready:
        raise AddressResolutionError("Sheet map not ready yet")
    col = sheet_map.month_cols.get(key)
    if not col:
        raise AddressResolutionError("Could not find month column in PLAN")
    if not sheet_map.rows_resolved:
        raise AddressResolutionError("Could not find forecast rows in PLAN")
    return [
        CellUpdate(row=sheet_map.income_row, col=col, value=finite_or_zero(adjustment.income_add)),
        CellUpdate(row=sheet_map.fixed_row, col=col, value=finite_or_zero(adjustment.add_fixed)),
        CellUpdate(row=sheet_map.disc_row, col=col, value=finite_or_zero(adjustment.add_disc)),
        CellUpdate(row=sheet_map.hys_row, col=col, value=finite_or_zero(adjustment.hys_transfer)),
    ]


def save_month(client: Any, sheet_map: SheetMap, state: ForecastState, key: str) -> List[CellUpdate]:
    """Write one month's adjustments to the sheet in a single batch.

    The local ``state`` is never rolled back: on any error the edit stays
    in place and the exception propagates so the caller can retry.
    """
    updates = build_month_updates(sheet_map, key, state.adjustment(key))
    client.write_cells(updates)
    logger.info("Saved forecast adjustments for %s", key)
    return updates
