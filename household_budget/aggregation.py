"""Monthly aggregation engine.

All figures are recomputed from the normalized ledger frame on demand.
Within every group the signed amounts are netted first and then turned
into spend with ``max(0, -net)``, so refunds offset spend but a group
never reports negative spend.

Routing of a non-income row:

1. a category in ``FORCE_DISCRETIONARY_CATEGORIES`` always counts as
   discretionary, whatever its type says
2. discretionary-typed rows count as discretionary
3. fixed-typed rows go through ``normalize_fixed_bucket``: ``Ignore``
   rows are dropped, ``Savings`` rows feed the savings transfer and
   everything else lands on a fixed line
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .categorization import (
    BUCKETS,
    CONTROLLED_BUCKETS,
    FIXED_ORDER,
    UTILITIES_ORDER,
    Bucket,
    FixedLine,
    FixedSentinel,
    TxType,
    normalize_fixed_bucket,
    should_force_to_discretionary,
    utility_line,
)
from .plan import PlanSnapshot
from .settings import get_household_config

GROUP_INCOME = 'income'
GROUP_DISCRETIONARY = 'discretionary'
GROUP_FIXED = 'fixed'
GROUP_SAVINGS = 'savings'
GROUP_NONE = ''

SpendByLine = Dict[str, float]


def net_to_spend(net: float) -> float:
    """Spend for a group whose signed amounts sum to ``net``."""
    return max(0.0, -float(net))


@dataclass(frozen=True)
class MonthlyAggregate:
    """Income and spend for one calendar month; ``overflow`` is the residual."""

    month: pd.Period
    income: float = 0.0
    fixed_spend: float = 0.0
    disc_spend: float = 0.0
    savings_transfer: float = 0.0

    @property
    def overflow(self) -> float:
        return self.income - self.fixed_spend - self.disc_spend - self.savings_transfer

    def as_dict(self) -> Dict[str, Any]:
        return {
            'Month': self.month,
            'Income': self.income,
            'Fixed Spend': self.fixed_spend,
            'Disc Spend': self.disc_spend,
            'Savings Transfer': self.savings_transfer,
            'Overflow': self.overflow,
        }


@dataclass
class EffectiveBudgets:
    """Budgets in force for the dashboard: the plan's, or configured fallbacks."""

    discretionary: Dict[str, float]
    fixed: Dict[str, float]
    utilities: Dict[str, float]
    utilities_lines: List[str]
    fallback_discretionary_total: float = 0.0

    @classmethod
    def resolve(cls, plan: Optional[PlanSnapshot], config: Optional[Mapping[str, Any]] = None) -> 'EffectiveBudgets':
        config = config or get_household_config()
        fallback = config['fallback_budgets']
        default_disc = {b.value: float(fallback['discretionary'].get(b.value, 0.0)) for b in BUCKETS}
        default_fixed = {line.value: float(fallback['fixed'].get(line.value, 0.0)) for line in FIXED_ORDER}
        default_utils = {str(k): float(v) for k, v in fallback['utilities'].items()}
        fallback_disc_total = float(sum(fallback['discretionary'].values()))

        if plan is None or not plan.has_plan:
            return cls(
                discretionary=default_disc,
                fixed=default_fixed,
                utilities=dict(default_utils),
                utilities_lines=list(default_utils) or [u.value for u in UTILITIES_ORDER],
                fallback_discretionary_total=fallback_disc_total,
            )

        # A zero discretionary budget in the plan means "not filled in"
        disc = {
            b: (plan.discretionary_budgets.get(b) or default_disc.get(b, 0.0))
            for b in default_disc
        }
        fixed = {
            line: plan.fixed_budgets.get(line, default_fixed.get(line, 0.0))
            for line in default_fixed
        }
        if plan.utilities_order:
            lines = list(plan.utilities_order)
        elif plan.utilities_budgets:
            lines = list(plan.utilities_budgets)
        else:
            lines = list(default_utils)
        utilities = {
            line: plan.utilities_budgets.get(line, default_utils.get(line, 0.0))
            for line in lines
        }
        return cls(
            discretionary=disc,
            fixed=fixed,
            utilities=utilities,
            utilities_lines=lines,
            fallback_discretionary_total=fallback_disc_total,
        )

    @property
    def discretionary_total(self) -> float:
        total = sum(self.discretionary.values())
        if total > 0:
            return total
        return self.fallback_discretionary_total

    @property
    def controlled_total(self) -> float:
        return sum(self.discretionary.get(b.value, 0.0) for b in CONTROLLED_BUCKETS)

    @property
    def fixed_total(self) -> float:
        return sum(self.fixed.values())

    @property
    def utilities_total(self) -> float:
        return sum(self.utilities.get(line, 0.0) for line in self.utilities_lines)


def _route_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Attach Group / Fixed Line / Utility Line columns to a ledger frame."""
    routed = frame.copy()
    if routed.empty:
        for col in ('Group', 'Fixed Line', 'Utility Line'):
            routed[col] = pd.Series(dtype='object')
        return routed

    kind = routed['Kind']
    forced = routed['Category'].map(should_force_to_discretionary).astype(bool)
    is_income = kind.eq(TxType.INCOME.value)
    is_disc = ~is_income & (kind.eq(TxType.DISCRETIONARY.value) | forced)
    is_fixed = kind.eq(TxType.FIXED.value) & ~forced

    fixed_route = np.where(
        is_fixed,
        routed['Category'].map(lambda c: normalize_fixed_bucket(c).value),
        '',
    )
    routed['Fixed Line'] = fixed_route
    is_savings = is_fixed & (routed['Fixed Line'] == FixedSentinel.SAVINGS.value)
    is_ignored = is_fixed & (routed['Fixed Line'] == FixedSentinel.IGNORE.value)
    is_fixed_line = is_fixed & ~is_savings & ~is_ignored

    routed['Group'] = np.select(
        [is_income, is_disc, is_fixed_line, is_savings],
        [GROUP_INCOME, GROUP_DISCRETIONARY, GROUP_FIXED, GROUP_SAVINGS],
        default=GROUP_NONE,
    )
    is_utility = is_fixed_line & (routed['Fixed Line'] == FixedLine.UTIITIES.value)
    routed['Utility Line'] = np.where(
        is_utility,
        routed['Description'].map(lambda d: utility_line(d).value),
        '',
    )
    return routed


def _spend_by(rows: pd.DataFrame, column: str, lines: Sequence[str]) -> SpendByLine:
    """Net each ``column`` group and convert to spend, seeded with ``lines`` at zero."""
    out: SpendByLine = {line: 0.0 for line in lines}
    if rows.empty:
        return out
    nets = rows.groupby(column)['Amount'].sum()
    for line, net in nets.items():
        out[str(line)] = net_to_spend(net)
    return out


class LedgerAnalytics:
    """Month-level aggregates over a normalized ledger frame."""

    def __init__(
        self,
        frame: pd.DataFrame,
        months: Optional[Sequence[pd.Period]] = None,
        *,
        trailing_window: int = 3,
    ):
        self.data = _route_frame(frame)
        if months is None:
            months = sorted(self.data['Month'].dropna().unique()) if not self.data.empty else []
        self.months: List[pd.Period] = list(months)
        self.trailing_window = max(1, int(trailing_window))
        self._by_month: Dict[pd.Period, pd.DataFrame] = (
            {m: g for m, g in self.data.groupby('Month')} if not self.data.empty else {}
        )

    def month_rows(self, month: pd.Period) -> pd.DataFrame:
        return self._by_month.get(pd.Period(month, freq='M'), self.data.iloc[0:0])

    # ------------------------------------------------------------------
    # Single-month figures
    # ------------------------------------------------------------------

    def month_overview(self, month: pd.Period) -> MonthlyAggregate:
        rows = self.month_rows(month)
        nets = rows.groupby('Group')['Amount'].sum() if not rows.empty else pd.Series(dtype=float)
        return MonthlyAggregate(
            month=pd.Period(month, freq='M'),
            income=float(nets.get(GROUP_INCOME, 0.0)),
            fixed_spend=net_to_spend(nets.get(GROUP_FIXED, 0.0)),
            disc_spend=net_to_spend(nets.get(GROUP_DISCRETIONARY, 0.0)),
            savings_transfer=net_to_spend(nets.get(GROUP_SAVINGS, 0.0)),
        )

    def bucket_spend(self, month: pd.Period) -> SpendByLine:
        rows = self.month_rows(month)
        disc = rows[rows['Group'] == GROUP_DISCRETIONARY] if not rows.empty else rows
        return _spend_by(disc, 'Bucket', [b.value for b in BUCKETS])

    def fixed_line_spend(self, month: pd.Period) -> SpendByLine:
        rows = self.month_rows(month)
        fixed = rows[rows['Group'] == GROUP_FIXED] if not rows.empty else rows
        return _spend_by(fixed, 'Fixed Line', [line.value for line in FIXED_ORDER])

    def utility_line_spend(self, month: pd.Period, lines: Optional[Sequence[str]] = None) -> SpendByLine:
        rows = self.month_rows(month)
        utils = rows[rows['Utility Line'] != ''] if not rows.empty else rows
        seed = list(lines) if lines is not None else [u.value for u in UTILITIES_ORDER]
        return _spend_by(utils, 'Utility Line', seed)

    def discretionary_rows(self, month: pd.Period, bucket: Optional[str] = None) -> pd.DataFrame:
        """Discretionary transactions for the month, newest first."""
        rows = self.month_rows(month)
        if rows.empty:
            return rows
        rows = rows[rows['Group'] == GROUP_DISCRETIONARY]
        if bucket and bucket != 'all':
            rows = rows[rows['Bucket'] == bucket]
        return rows.sort_values('Date', ascending=False, kind='stable')

    # ------------------------------------------------------------------
    # Windows and history
    # ------------------------------------------------------------------

    def trailing_months(self, month: pd.Period) -> List[pd.Period]:
        """The selected month plus up to ``trailing_window - 1`` preceding ledger months."""
        month = pd.Period(month, freq='M')
        if month not in self.months:
            return []
        idx = self.months.index(month)
        return self.months[max(0, idx - self.trailing_window + 1): idx + 1]

    def trailing_average(
        self,
        month: pd.Period,
        breakdown: Callable[[pd.Period], SpendByLine],
        lines: Sequence[str],
    ) -> SpendByLine:
        window = self.trailing_months(month)
        out: SpendByLine = {line: 0.0 for line in lines}
        if not window:
            return out
        for m in window:
            spend = breakdown(m)
            for line in lines:
                out[line] += spend.get(line, 0.0)
        return {line: total / len(window) for line, total in out.items()}

    def bucket_trailing_average(self, month: pd.Period) -> SpendByLine:
        return self.trailing_average(month, self.bucket_spend, [b.value for b in BUCKETS])

    def fixed_trailing_average(self, month: pd.Period) -> SpendByLine:
        return self.trailing_average(month, self.fixed_line_spend, [line.value for line in FIXED_ORDER])

    def utility_trailing_average(self, month: pd.Period, lines: Sequence[str]) -> SpendByLine:
        return self.trailing_average(month, lambda m: self.utility_line_spend(m, lines), list(lines))

    def overview_trailing_average(self, month: pd.Period) -> Dict[str, float]:
        window = self.trailing_months(month)
        keys = ('Income', 'Fixed Spend', 'Disc Spend', 'Savings Transfer', 'Overflow')
        if not window:
            return {k: 0.0 for k in keys}
        frame = pd.DataFrame([self.month_overview(m).as_dict() for m in window])
        return {k: float(frame[k].mean()) for k in keys}

    def history(self) -> pd.DataFrame:
        """Per-month aggregates, newest month first."""
        columns = ['Month', 'Income', 'Fixed Spend', 'Disc Spend', 'Savings Transfer', 'Overflow']
        rows = [self.month_overview(m).as_dict() for m in sorted(self.months, reverse=True)]
        return pd.DataFrame(rows, columns=columns)

    def history_by_year(self, today: Optional[date] = None) -> pd.DataFrame:
        """Completed months grouped by year (newest first), each year preceded by its subtotal row."""
        current = pd.Period(today or date.today(), freq='M')
        history = self.history()
        history = history[history['Month'] != current]
        columns = ['Kind', 'Year', 'Month', 'Income', 'Fixed Spend', 'Disc Spend', 'Savings Transfer', 'Overflow']
        if history.empty:
            return pd.DataFrame(columns=columns)
        history = history.assign(Year=history['Month'].map(lambda p: p.year))
        value_cols = ['Income', 'Fixed Spend', 'Disc Spend', 'Savings Transfer', 'Overflow']
        out: List[Dict[str, Any]] = []
        for year in sorted(history['Year'].unique(), reverse=True):
            months = history[history['Year'] == year]
            subtotal = {'Kind': 'year', 'Year': int(year), 'Month': None}
            subtotal.update({c: float(months[c].sum()) for c in value_cols})
            out.append(subtotal)
            for _, row in months.iterrows():
                entry = {'Kind': 'month', 'Year': int(year), 'Month': row['Month']}
                entry.update({c: float(row[c]) for c in value_cols})
                out.append(entry)
        return pd.DataFrame(out, columns=columns)

    def completed_history(self, today: Optional[date] = None, limit: int = 24) -> pd.DataFrame:
        """Up to ``limit`` most recent completed months, oldest first (chart order)."""
        current = pd.Period(today or date.today(), freq='M')
        history = self.history()
        history = history[history['Month'] != current].head(limit)
        return history.iloc[::-1].reset_index(drop=True)

    def bucket_sparklines(self, count: int = 6) -> pd.DataFrame:
        """Bucket spend for the last ``count`` ledger months (rows) by bucket (columns)."""
        recent = self.months[-count:] if count > 0 else []
        data = [self.bucket_spend(m) for m in recent]
        return pd.DataFrame(data, index=pd.PeriodIndex(recent, freq='M'), columns=[b.value for b in BUCKETS])


@dataclass
class MonthFigures:
    income: float = 0.0
    fixed: float = 0.0
    discretionary: float = 0.0
    savings: float = 0.0

    @property
    def overflow(self) -> float:
        return self.income - self.fixed - self.discretionary - self.savings


@dataclass
class FixedHealth:
    lines_on_track: int
    total: int


@dataclass
class BudgetView:
    """Budget vs actual vs projected for one selected month.

    In the current calendar month the projection blends actuals with the
    plan (the month is not over yet); in past months it equals actuals.
    """

    month: pd.Period
    is_current_month: bool
    budget: MonthFigures
    actual: MonthFigures
    projected: MonthFigures
    bucket_spend: SpendByLine
    bucket_average: SpendByLine
    fixed_spend: SpendByLine
    fixed_average: SpendByLine
    utility_spend: SpendByLine
    utility_average: SpendByLine
    controlled_budget: float
    controlled_spent: float
    projected_end_overflow: Optional[float] = None
    projected_end_hys: Optional[float] = None
    plan_month_mismatch: bool = False
    fixed_health: FixedHealth = field(default_factory=lambda: FixedHealth(0, 0))

    @property
    def remaining(self) -> float:
        return self.controlled_budget - self.controlled_spent

    @classmethod
    def build(
        cls,
        analytics: LedgerAnalytics,
        month: pd.Period,
        plan: Optional[PlanSnapshot],
        budgets: Optional[EffectiveBudgets] = None,
        today: Optional[date] = None,
    ) -> 'BudgetView':
        month = pd.Period(month, freq='M')
        plan = plan or PlanSnapshot()
        budgets = budgets or EffectiveBudgets.resolve(plan)
        is_current = month == pd.Period(today or date.today(), freq='M')
        lines = budgets.utilities_lines

        overview = analytics.month_overview(month)
        buckets = analytics.bucket_spend(month)
        fixed = analytics.fixed_line_spend(month)

        controlled_spent = sum(buckets.get(b.value, 0.0) for b in CONTROLLED_BUCKETS)
        actual = MonthFigures(
            income=overview.income,
            fixed=sum(fixed.get(line.value, 0.0) for line in FIXED_ORDER),
            discretionary=sum(buckets.values()),
            savings=overview.savings_transfer,
        )
        budget = MonthFigures(
            income=plan.income_projection if is_current else plan.income_budget_base,
            fixed=budgets.fixed_total,
            discretionary=budgets.discretionary_total,
            savings=plan.planned_hys_transfer,
        )
        if is_current:
            projected = MonthFigures(
                income=budget.income,
                fixed=max(actual.fixed, budget.fixed) + plan.add_fix,
                discretionary=(
                    max(controlled_spent, budgets.controlled_total)
                    + buckets.get(Bucket.OTHER.value, 0.0)
                    + plan.add_desc
                ),
                savings=actual.savings if actual.savings > 0 else budget.savings,
            )
        else:
            projected = MonthFigures(
                income=actual.income,
                fixed=actual.fixed,
                discretionary=actual.discretionary,
                savings=actual.savings,
            )

        with_budget = [line for line, amount in budgets.fixed.items() if amount > 0]
        on_track = [line for line in with_budget if fixed.get(line, 0.0) <= budgets.fixed[line]]

        mismatch = False
        if plan.plan_month is not None:
            mismatch = pd.Period(plan.plan_month, freq='M') != month

        return cls(
            month=month,
            is_current_month=is_current,
            budget=budget,
            actual=actual,
            projected=projected,
            bucket_spend=buckets,
            bucket_average=analytics.bucket_trailing_average(month),
            fixed_spend=fixed,
            fixed_average=analytics.fixed_trailing_average(month),
            utility_spend=analytics.utility_line_spend(month, lines),
            utility_average=analytics.utility_trailing_average(month, lines),
            controlled_budget=budgets.controlled_total,
            controlled_spent=controlled_spent,
            projected_end_overflow=(plan.overflow_balance + projected.overflow) if is_current else None,
            projected_end_hys=(plan.hys_balance + projected.savings) if is_current else None,
            plan_month_mismatch=mismatch,
            fixed_health=FixedHealth(lines_on_track=len(on_track), total=len(with_budget)),
        )

    def comparison_frame(self) -> pd.DataFrame:
        """Budget / Actual / Projected rows for the overview table."""
        rows = []
        for label, attr in (
            ('Income', 'income'),
            ('Fixed', 'fixed'),
            ('Discretionary', 'discretionary'),
            ('Savings', 'savings'),
            ('Overflow', 'overflow'),
        ):
            rows.append({
                'Line': label,
                'Budget': getattr(self.budget, attr),
                'Actual': getattr(self.actual, attr),
                'Projected': getattr(self.projected, attr),
            })
        return pd.DataFrame(rows)

    def line_table(self, budgets: Mapping[str, float], spend: SpendByLine, average: SpendByLine) -> pd.DataFrame:
        """Per-line Budget / Actual / Variance / 3-month average table."""
        rows = []
        for line, amount in budgets.items():
            actual = spend.get(line, 0.0)
            rows.append({
                'Line': line,
                'Budget': amount,
                'Actual': actual,
                'Variance': amount - actual,
                'Trailing Avg': average.get(line, 0.0),
            })
        return pd.DataFrame(rows, columns=['Line', 'Budget', 'Actual', 'Variance', 'Trailing Avg'])


GOOD = 'good'
WARN = 'warn'
BAD = 'bad'

# Spend above this share of the budget is flagged before it goes over
BUDGET_WARN_RATIO = 0.83
REMAINING_COMFORT = 500.0


def budget_status(spent: float, budget: float) -> str:
    """Traffic-light status for one budget line."""
    if not budget or budget <= 0:
        return WARN
    if spent > budget:
        return BAD
    if spent > budget * BUDGET_WARN_RATIO:
        return WARN
    return GOOD


def remaining_status(remaining: float) -> str:
    if remaining > REMAINING_COMFORT:
        return GOOD
    if remaining >= 0:
        return WARN
    return BAD
