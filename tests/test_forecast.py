from datetime import date

import pytest

from household_budget.errors import AddressResolutionError, StoreError
from household_budget.forecast import (
    ForecastState,
    MonthAdjustment,
    SheetMap,
    build_month_updates,
    clamp_months_ahead,
    forecast_frame,
    months_ahead_bounds,
    project_forecast,
    read_sheet_adjustments,
    save_month,
)
from household_budget.grid import TableResponse
from household_budget.payroll import PaySchedule
from household_budget.store import CellUpdate

SCHEDULE = PaySchedule(weekly_payday=3, biweekly_anchor=date(2024, 1, 5))


def _sheet():
    return TableResponse(
        headers=['PLAN'],
        rows=[
            ['Month', '', 'Jan 2024', 'Feb 2024', 'Mar 2024'],
            ['FORECAST INCOME', '', '100', '$200', ''],
            ['FORECAT FIXED', '', '10', '20', '30'],
            ['FORECAST DES', '', '', '5', ''],
            ['FORECAST HYS', '', '300', '300', '300'],
        ],
    )


def test_clamp_months_ahead():
    assert clamp_months_ahead(0) == 12
    assert clamp_months_ahead('junk') == 12
    assert clamp_months_ahead(2) == 3
    assert clamp_months_ahead(100) == 36
    assert clamp_months_ahead(7.9) == 7


def test_months_ahead_bounds_follow_settings():
    config = {'forecast': {'min_months_ahead': 1, 'max_months_ahead': 6, 'default_months_ahead': 4}}
    assert months_ahead_bounds(config) == (1, 6, 4)
    assert clamp_months_ahead(0, config) == 4
    assert clamp_months_ahead(12, config) == 6
    assert len(project_forecast(date(2024, 1, 1), 24, 0, 0, 0, 0, schedule=SCHEDULE, config=config)) == 6

    state = ForecastState()
    assert state.months_ahead == 12
    state.set_months_ahead(12, config)
    assert state.months_ahead == 6


def test_project_forecast_rows():
    rows = project_forecast(
        date(2024, 1, 1), 3,
        base_fixed=4000, base_disc_controlled=2000,
        weekly_rate=1000, biweekly_weekly_rate=800,
        start_overflow=1000, start_hys=5000,
        adjustments={'2024-02': MonthAdjustment(income_add=500, hys_transfer=300)},
        schedule=SCHEDULE,
    )
    assert [r.key for r in rows] == ['2024-02', '2024-03', '2024-04']
    feb, mar, apr = rows
    assert feb.weekly_earner_pay == 5000
    assert feb.biweekly_earner_pay == 3200
    assert feb.income_total == 8700
    assert feb.month_overflow == 2400
    assert feb.end_overflow == 3400
    assert feb.end_hys == 5300
    assert mar.income_base == 8800
    assert mar.end_overflow == 6200
    assert apr.end_overflow == 7400
    assert apr.end_hys == 5300


def test_running_balance_recurrence():
    adjustments = {
        '2024-05': MonthAdjustment(add_fixed=250, hys_transfer=100),
        '2024-07': MonthAdjustment(add_disc=75.5, income_add=-20),
    }
    rows = project_forecast(
        date(2024, 4, 1), 6, 3500.25, 1800, 950, 700,
        start_overflow=-200, start_hys=1000, adjustments=adjustments, schedule=SCHEDULE,
    )
    assert len(rows) == 6
    assert rows[0].end_overflow == -200 + rows[0].month_overflow
    assert rows[0].end_hys == 1000 + rows[0].hys_transfer
    for prev, cur in zip(rows, rows[1:]):
        assert cur.end_overflow == prev.end_overflow + cur.month_overflow
        assert cur.end_hys == prev.end_hys + cur.hys_transfer


def test_months_ahead_is_clamped_in_projection():
    rows = project_forecast(date(2024, 1, 1), 1, 0, 0, 0, 0, schedule=SCHEDULE)
    assert len(rows) == 3
    frame = forecast_frame(rows)
    assert list(frame['End Overflow']) == [r.end_overflow for r in rows]


def test_state_start_override_and_auto():
    state = ForecastState()
    state.apply_auto_start(1499.6, 800.2)
    assert (state.start_overflow, state.start_hys) == (1500.0, 800.0)
    state.set_start_overflow(1234.6)
    assert state.start_overflow == 1235.0
    assert state.start_user_override
    state.apply_auto_start(99, 99)
    assert state.start_overflow == 1235.0
    assert state.last_auto_overflow == 99.0
    state.reset_start_to_auto()
    assert (state.start_overflow, state.start_hys) == (99.0, 99.0)


def test_state_serialisation():
    state = ForecastState()
    state.set_months_ahead(40)
    state.set_month_field('2024-02', 'add_fixed', '125')
    restored = ForecastState.from_dict(state.to_dict())
    assert restored == state
    assert restored.months_ahead == 36
    assert restored.adjustment('2024-02').add_fixed == 125.0
    assert ForecastState.from_dict({'version': 99, 'months_ahead': 5}) == ForecastState()
    assert ForecastState.from_dict(None) == ForecastState()
    with pytest.raises(ValueError):
        state.set_month_field('2024-02', 'bogus', 1)


def test_merge_sheet_inputs_prefers_sheet_values():
    state = ForecastState()
    state.set_month_field('2024-02', 'income_add', 1)
    state.set_month_field('2024-09', 'income_add', 9)
    state.merge_sheet_inputs({'2024-02': MonthAdjustment(income_add=200)})
    assert state.adjustment('2024-02').income_add == 200
    assert state.adjustment('2024-09').income_add == 9


def test_sheet_map_and_adjustments():
    table = _sheet()
    sheet_map = SheetMap.build(table)
    assert sheet_map.ready
    assert sheet_map.month_cols == {'2024-01': 3, '2024-02': 4, '2024-03': 5}
    assert (sheet_map.income_row, sheet_map.fixed_row, sheet_map.disc_row, sheet_map.hys_row) == (3, 4, 5, 6)
    adjustments = read_sheet_adjustments(table, sheet_map)
    assert adjustments['2024-02'] == MonthAdjustment(200.0, 20.0, 5.0, 300.0)
    assert adjustments['2024-03'].income_add == 0.0


def test_build_month_updates():
    sheet_map = SheetMap.build(_sheet())
    updates = build_month_updates(sheet_map, '2024-02', MonthAdjustment(1, 2, 3, 4))
    assert updates == [
        CellUpdate(row=3, col=4, value=1.0),
        CellUpdate(row=4, col=4, value=2.0),
        CellUpdate(row=5, col=4, value=3.0),
        CellUpdate(row=6, col=4, value=4.0),
    ]


def test_build_month_updates_reports_unresolved_addresses():
    with pytest.raises(AddressResolutionError, match="Sheet map not ready yet"):
        build_month_updates(SheetMap(), '2024-02', MonthAdjustment())
    sheet_map = SheetMap.build(_sheet())
    with pytest.raises(AddressResolutionError, match="Could not find month column in PLAN"):
        build_month_updates(sheet_map, '2030-01', MonthAdjustment())
    table = _sheet()
    table.rows = [r for r in table.rows if r[0] != 'FORECAST HYS']
    with pytest.raises(AddressResolutionError, match="Could not find forecast rows in PLAN"):
        build_month_updates(SheetMap.build(table), '2024-02', MonthAdjustment())


class _RecordingClient:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def write_cells(self, updates):
        self.calls.append(list(updates))
        if self.error:
            raise self.error
        return {'ok': True}


def test_save_month_writes_one_batch():
    client = _RecordingClient()
    state = ForecastState()
    state.set_month_field('2024-02', 'hys_transfer', 250)
    updates = save_month(client, SheetMap.build(_sheet()), state, '2024-02')
    assert len(client.calls) == 1
    assert client.calls[0] == updates
    assert updates[3].value == 250.0


def test_save_month_failure_keeps_local_edit():
    client = _RecordingClient(error=StoreError("WRITE HTTP 500 boom", status_code=500))
    state = ForecastState()
    state.set_month_field('2024-02', 'add_disc', 75)
    with pytest.raises(StoreError, match="WRITE HTTP 500"):
        save_month(client, SheetMap.build(_sheet()), state, '2024-02')
    assert state.adjustment('2024-02').add_disc == 75.0
