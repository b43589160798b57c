"""Plan extraction: the free-form PLAN worksheet to a budget snapshot.

The worksheet has no schema beyond its label text, so extraction is
label driven:

* scalar labels are searched across the whole grid and the value is the
  cell to the right; when a label repeats, the last non-empty match wins
* budget lines are read from one label/value column pair
* the utilities block starts under a sentinel header and ends at the
  first blank name
* weekly pay is back-computed from a monthly average
  (``weekly = monthly * 12 / 52``)

Column positions and label strings come from the ``plan_layout`` section
of the household settings, since the sheet layout has changed over time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .categorization import BUCKETS, FIXED_ORDER, Bucket
from .grid import Grid, cell, parse_csv_grid
from .logging_setup import get_logger
from .parsing import parse_amount, parse_month, safe_lower, safe_trim
from .settings import get_household_config

logger = get_logger(__name__)

WEEKS_PER_YEAR = 52
MONTHS_PER_YEAR = 12


@dataclass
class PlanSnapshot:
    """One parsed budget configuration, valid for ``plan_month``."""

    loaded: bool = False
    error: str = ''

    plan_month_raw: str = ''
    plan_month: Optional[date] = None

    overflow_balance: float = 0.0
    hys_balance: float = 0.0

    add_fix: float = 0.0
    add_desc: float = 0.0

    income_projection: float = 0.0
    income_budget_base: float = 0.0

    planned_hys_transfer: float = 0.0

    fixed_budgets: Dict[str, float] = field(default_factory=dict)
    discretionary_budgets: Dict[str, float] = field(
        default_factory=lambda: {b.value: 0.0 for b in BUCKETS}
    )

    utilities_budgets: Dict[str, float] = field(default_factory=dict)
    utilities_order: List[str] = field(default_factory=list)

    austin_weekly: float = 0.0
    jenna_weekly: float = 0.0

    @property
    def has_plan(self) -> bool:
        return self.loaded and not self.error

    @property
    def fixed_total(self) -> float:
        return sum(self.fixed_budgets.values())

    @property
    def discretionary_total(self) -> float:
        return sum(self.discretionary_budgets.values())


def empty_plan() -> PlanSnapshot:
    return PlanSnapshot()


def failed_plan(message: str) -> PlanSnapshot:
    """A loaded snapshot carrying an error and zero-value defaults."""
    return PlanSnapshot(loaded=True, error=message)


def find_label_value(grid: Sequence[Sequence[str]], label: str) -> str:
    """Scan every cell for ``label``; return the last non-empty right-hand neighbour."""
    target = safe_lower(label)
    found = ''
    for row in grid:
        for c in range(len(row) - 1):
            if safe_lower(row[c]) == target:
                neighbour = safe_trim(row[c + 1])
                if neighbour:
                    found = neighbour
    return found


def weekly_from_monthly_label(grid: Sequence[Sequence[str]], label: str) -> float:
    """Convert the monthly average next to ``label`` into a weekly rate.

    Missing or non-positive monthly figures yield ``0.0``.
    """
    target = safe_lower(label)
    for row in grid:
        for c in range(len(row) - 1):
            if safe_lower(row[c]) == target:
                monthly = parse_amount(row[c + 1])
                if monthly <= 0:
                    return 0.0
                return monthly * MONTHS_PER_YEAR / WEEKS_PER_YEAR
    return 0.0


def _read_budget_lines(grid: Grid, layout: Mapping[str, Any], out: PlanSnapshot) -> None:
    label_col = int(layout['budget_label_col'])
    value_col = int(layout['budget_value_col'])
    fixed_names = {line.value for line in FIXED_ORDER}
    disc_labels: Mapping[str, str] = layout['discretionary_labels']

    for r in range(len(grid)):
        label = safe_trim(cell(grid, r, label_col))
        if not label:
            continue
        value = cell(grid, r, value_col)
        if label in fixed_names:
            out.fixed_budgets[label] = parse_amount(value)
        bucket = disc_labels.get(label)
        if bucket in out.discretionary_budgets:
            out.discretionary_budgets[bucket] = parse_amount(value)


def _read_utilities_block(grid: Grid, layout: Mapping[str, Any], out: PlanSnapshot) -> None:
    name_col = int(layout['utilities_name_col'])
    amount_col = int(layout['utilities_amount_col'])
    header = safe_lower(layout['utilities_header'])

    start = -1
    for r in range(len(grid)):
        if safe_lower(cell(grid, r, name_col)) == header:
            start = r + 1
    if start < 0:
        return

    for r in range(start, len(grid)):
        name = safe_trim(cell(grid, r, name_col))
        if not name:
            break
        out.utilities_budgets[name] = parse_amount(cell(grid, r, amount_col))
        if name not in out.utilities_order:
            out.utilities_order.append(name)


def validate_plan(plan: PlanSnapshot, ceiling: float) -> str:
    """Layout sanity check; returns a warning string or ``''``."""
    fixed_total = plan.fixed_total
    disc_total = plan.discretionary_total
    error = ''
    if fixed_total <= 0 or disc_total <= 0:
        error = "Plan parsed but budgets came out 0. Check Plan CSV layout."
    if fixed_total > ceiling or disc_total > ceiling:
        error = "Plan parse mismatch. Budgets look too large."
    return error


def extract_plan(grid: Grid, config: Optional[Mapping[str, Any]] = None) -> PlanSnapshot:
    """Extract a :class:`PlanSnapshot` from a label/value grid.

    Args:
        grid: Rectangular grid of cell strings
        config: Household configuration (defaults to the packaged settings)

    Returns:
        A loaded snapshot.  ``error`` is set when the grid is empty or the
        budgets fail the layout sanity check; the numbers are still filled
        in on a best-effort basis in the latter case.
    """
    config = config or get_household_config()
    layout = config['plan_layout']
    schedule = config['pay_schedule']

    if not grid or not any(safe_trim(v) for row in grid for v in row):
        return failed_plan("Plan grid is empty.")

    out = PlanSnapshot(loaded=True)

    out.plan_month_raw = find_label_value(grid, layout['month_label'])
    out.plan_month = parse_month(out.plan_month_raw)
    if out.plan_month_raw and out.plan_month is None:
        logger.warning("Plan month %r could not be parsed", out.plan_month_raw)

    out.overflow_balance = parse_amount(find_label_value(grid, layout['overflow_label']))
    out.hys_balance = parse_amount(find_label_value(grid, layout['hys_balance_label']))
    out.add_fix = parse_amount(find_label_value(grid, layout['add_fixed_label']))
    out.add_desc = parse_amount(find_label_value(grid, layout['add_disc_label']))
    out.income_projection = parse_amount(find_label_value(grid, layout['income_projection_label']))

    base_row, base_col = layout['income_base_cell']
    out.income_budget_base = parse_amount(cell(grid, int(base_row), int(base_col)))

    out.planned_hys_transfer = parse_amount(find_label_value(grid, layout['planned_hys_label']))

    out.austin_weekly = weekly_from_monthly_label(grid, f"{schedule['weekly_earner']} Income")
    out.jenna_weekly = weekly_from_monthly_label(grid, f"{schedule['biweekly_earner']} Income")

    _read_budget_lines(grid, layout, out)
    _read_utilities_block(grid, layout, out)

    out.error = validate_plan(out, float(layout['sanity_ceiling']))
    if out.error:
        logger.warning("Plan snapshot flagged: %s", out.error)
    return out


def parse_plan_csv(text: str, config: Optional[Mapping[str, Any]] = None) -> PlanSnapshot:
    """Parse published PLAN CSV text into a snapshot."""
    return extract_plan(parse_csv_grid(text), config)
