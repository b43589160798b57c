"""Dashboard session: loads, derived views and forecast write-through.

Each load returns a :class:`LoadStatus` instead of raising, so a failed
remote call leaves the previous data in place with an error string next
to it.  Loads are stamped; a response whose stamp has been superseded by
a newer request of the same kind is discarded.
"""

from __future__ import annotations

import itertools
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd

from .aggregation import BudgetView, EffectiveBudgets, LedgerAnalytics
from .errors import AddressResolutionError, LoadStatus, StoreError
from .forecast import (
    ForecastRow,
    ForecastState,
    SheetMap,
    project_from_state,
    read_sheet_adjustments,
    save_month,
)
from .grid import TableResponse
from .ledger import (
    NormalizationReport,
    Transaction,
    available_months,
    default_month,
    normalize_table,
    transactions_to_frame,
)
from .logging_setup import get_logger
from .payroll import PaySchedule
from .plan import PlanSnapshot, empty_plan, extract_plan, failed_plan, parse_plan_csv
from .settings import get_household_config
from .state_storage import ForecastStateStore
from .store import SheetStoreClient

logger = get_logger(__name__)


class RequestStamp:
    """Monotonic stamps; only the most recently issued one is current."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = 0

    def next(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    def is_current(self, stamp: int) -> bool:
        return stamp == self._latest


class BudgetSession:
    """State for one dashboard user.

    Args:
        client: Store client (``SheetStoreClient`` by default)
        state_store: Where forecast inputs are persisted
        config: Household settings; packaged defaults when omitted
        today: Callable returning the current date (tests pin it)
    """

    def __init__(
        self,
        client: Optional[SheetStoreClient] = None,
        state_store: Optional[ForecastStateStore] = None,
        config: Optional[Mapping[str, Any]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.client = client or SheetStoreClient()
        self.state_store = state_store or ForecastStateStore()
        self.config = config or get_household_config()
        self._today = today or date.today

        self.transactions: List[Transaction] = []
        self.frame: pd.DataFrame = transactions_to_frame([])
        self.months: List[pd.Period] = []
        self.ledger_report = NormalizationReport()
        self.ledger_status = LoadStatus.pending()

        self.plan: PlanSnapshot = empty_plan()
        self.plan_status = LoadStatus.pending()

        self.forecast_table = TableResponse()
        self.sheet_map = SheetMap()
        self.forecast_status = LoadStatus.pending()
        self.save_status = LoadStatus.pending()
        self.forecast_state: ForecastState = self.state_store.load()

        self._ledger_stamp = RequestStamp()
        self._plan_stamp = RequestStamp()
        self._forecast_stamp = RequestStamp()

    @property
    def today(self) -> date:
        return self._today()

    # ------------------------------------------------------------------
    # Loads
    # ------------------------------------------------------------------

    def reload_ledger(self) -> LoadStatus:
        stamp = self._ledger_stamp.next()
        try:
            table = self.client.read_transactions()
        except StoreError as exc:
            if not self._ledger_stamp.is_current(stamp):
                return self.ledger_status
            logger.error("Ledger load failed: %s", exc)
            self.ledger_status = LoadStatus.failed(exc)
            return self.ledger_status

        if not self._ledger_stamp.is_current(stamp):
            logger.info("Discarding stale ledger response (stamp %d)", stamp)
            return self.ledger_status

        report = NormalizationReport()
        self.transactions = normalize_table(table, report)
        self.ledger_report = report
        self.frame = transactions_to_frame(self.transactions)
        self.months = available_months(self.frame, self.config['history']['start_month'])
        self.ledger_status = LoadStatus.ok()
        return self.ledger_status

    def reload_plan(self, published_csv: bool = False) -> LoadStatus:
        """Fetch and extract the plan, from the store API or the published CSV export."""
        stamp = self._plan_stamp.next()
        try:
            if published_csv:
                plan = parse_plan_csv(self.client.read_published_csv(), self.config)
            else:
                plan = extract_plan(self.client.read_plan_table().as_grid(), self.config)
        except StoreError as exc:
            if not self._plan_stamp.is_current(stamp):
                return self.plan_status
            logger.error("Plan load failed: %s", exc)
            self.plan = failed_plan(str(exc))
            self.plan_status = LoadStatus.failed(exc)
            return self.plan_status

        if not self._plan_stamp.is_current(stamp):
            logger.info("Discarding stale plan response (stamp %d)", stamp)
            return self.plan_status

        self.plan = plan
        self.plan_status = LoadStatus(loaded=True, error=plan.error)
        return self.plan_status

    def reload_forecast_sheet(self) -> LoadStatus:
        """Re-read the forecast block and merge its values into local state."""
        stamp = self._forecast_stamp.next()
        try:
            table = self.client.read_plan_table()
        except StoreError as exc:
            if not self._forecast_stamp.is_current(stamp):
                return self.forecast_status
            logger.error("Forecast sheet load failed: %s", exc)
            self.forecast_status = LoadStatus.failed(exc)
            return self.forecast_status

        if not self._forecast_stamp.is_current(stamp):
            logger.info("Discarding stale forecast sheet response (stamp %d)", stamp)
            return self.forecast_status

        self.forecast_table = table
        self.sheet_map = SheetMap.build(table, self.config['forecast_layout'])
        self.forecast_state.merge_sheet_inputs(read_sheet_adjustments(table, self.sheet_map))
        self.refresh_auto_start()
        self.forecast_status = LoadStatus.ok()
        return self.forecast_status

    def reload_all(self) -> Dict[str, LoadStatus]:
        return {
            'ledger': self.reload_ledger(),
            'plan': self.reload_plan(),
            'forecast': self.reload_forecast_sheet(),
        }

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def budgets(self) -> EffectiveBudgets:
        return EffectiveBudgets.resolve(self.plan, self.config)

    def analytics(self) -> LedgerAnalytics:
        return LedgerAnalytics(
            self.frame,
            self.months,
            trailing_window=self.config['history'].get('trailing_window', 3),
        )

    def default_month(self) -> pd.Period:
        return default_month(self.months, self.today)

    def budget_view(self, month: Optional[pd.Period] = None) -> BudgetView:
        month = month if month is not None else self.default_month()
        return BudgetView.build(self.analytics(), month, self.plan, self.budgets, self.today)

    def refresh_auto_start(self) -> None:
        """Seed forecast start balances from this month's projected end balances."""
        view = self.budget_view(pd.Period(self.today, freq='M'))
        self.forecast_state.apply_auto_start(view.projected_end_overflow, view.projected_end_hys)
        self.state_store.save(self.forecast_state)

    def forecast_rows(self, start_month: Optional[date] = None) -> List[ForecastRow]:
        budgets = self.budgets
        return project_from_state(
            self.forecast_state,
            start_month or self.today.replace(day=1),
            base_fixed=budgets.fixed_total,
            base_disc_controlled=budgets.controlled_total,
            weekly_rate=self.plan.austin_weekly,
            biweekly_weekly_rate=self.plan.jenna_weekly,
            schedule=PaySchedule.from_config(self.config),
            config=self.config,
        )

    # ------------------------------------------------------------------
    # Forecast edits
    # ------------------------------------------------------------------

    def set_forecast_field(self, key: str, name: str, value: Any) -> None:
        self.forecast_state.set_month_field(key, name, value)
        self.state_store.save(self.forecast_state)

    def set_months_ahead(self, value: Any) -> None:
        self.forecast_state.set_months_ahead(value, self.config)
        self.state_store.save(self.forecast_state)

    def set_start_balances(self, overflow: Any = None, hys: Any = None) -> None:
        if overflow is not None:
            self.forecast_state.set_start_overflow(overflow)
        if hys is not None:
            self.forecast_state.set_start_hys(hys)
        self.state_store.save(self.forecast_state)

    def reset_start_balances(self) -> None:
        self.forecast_state.reset_start_to_auto()
        self.state_store.save(self.forecast_state)

    def save_forecast_month(self, key: str) -> LoadStatus:
        """Write one month's adjustments through to the sheet.

        The local edit is kept whatever happens; on success the sheet is
        re-read so local state reflects what was stored.
        """
        try:
            save_month(self.client, self.sheet_map, self.forecast_state, key)
        except (AddressResolutionError, StoreError) as exc:
            logger.warning("Forecast save for %s failed: %s", key, exc)
            self.save_status = LoadStatus.failed(exc)
            return self.save_status
        self.save_status = LoadStatus.ok()
        self.reload_forecast_sheet()
        return self.save_status
