import dataclasses
from datetime import date

import pandas as pd

from household_budget.errors import StoreError
from household_budget.grid import TableResponse
from household_budget.session import BudgetSession, RequestStamp
from household_budget.state_storage import ForecastStateStore, MemoryStateBackend

LEDGER_HEADERS = ['Date', 'Transaction', 'Category', 'Type', 'Amount', 'Ignore']
TODAY = date(2024, 3, 20)


def _ledger(*rows):
    return TableResponse(headers=list(LEDGER_HEADERS), rows=[list(r) for r in rows])


def _plan_table():
    rows = [
        ['Month', '', 'Mar 2024', 'Apr 2024', 'May 2024'],
        ['FORECAST INCOME', '', '', '', ''],
        ['FORECAST FIXED', '', '', '', ''],
        ['FORECAST DES', '', '', '', ''],
        ['FORECAST HYS', '', '', '250', ''],
        ['', 'MONTH', 'March 2024'],
        ['', 'Mortage', '2969'],
        ['', 'Food', '1000'],
    ]
    return TableResponse(headers=['PLAN'], rows=rows)


class FakeClient:
    def __init__(self, ledger=None, plan=None):
        self.ledger = ledger or _ledger()
        self.plan = plan or _plan_table()
        self.ledger_error = None
        self.plan_error = None
        self.write_error = None
        self.writes = []

    def read_transactions(self):
        if self.ledger_error:
            raise self.ledger_error
        return self.ledger

    def read_plan_table(self):
        if self.plan_error:
            raise self.plan_error
        return self.plan

    def write_cells(self, updates):
        if self.write_error:
            raise self.write_error
        self.writes.append(list(updates))
        return {'ok': True}


def _session(client):
    return BudgetSession(
        client=client,
        state_store=ForecastStateStore(MemoryStateBackend()),
        today=lambda: TODAY,
    )


def test_request_stamp():
    stamps = RequestStamp()
    first = stamps.next()
    second = stamps.next()
    assert second > first
    assert stamps.is_current(second)
    assert not stamps.is_current(first)


def test_reload_ledger_success_and_failure():
    client = FakeClient(ledger=_ledger(
        ['2024-03-05', 'Coffee Shop', 'Restaurants/Dining', 'Discretionary', '-12.50', ''],
        ['2023-06-05', 'Too old', 'Restaurants/Dining', 'Discretionary', '-1', ''],
    ))
    session = _session(client)
    assert not session.ledger_status.loaded

    status = session.reload_ledger()
    assert status.trustworthy
    assert len(session.transactions) == 2
    assert session.months == [pd.Period('2024-03', freq='M')]

    client.ledger_error = StoreError('LEDGER HTTP 500')
    status = session.reload_ledger()
    assert status.loaded
    assert status.error == 'LEDGER HTTP 500'
    assert not status.trustworthy
    # previous data stays available
    assert len(session.transactions) == 2


def test_stale_ledger_response_is_discarded():
    newer = _ledger(['2024-03-06', 'Newer', 'Travel', 'Discretionary', '-5', ''])
    older = _ledger(['2024-03-01', 'Older', 'Travel', 'Discretionary', '-5', ''])
    client = FakeClient()
    session = _session(client)
    calls = []

    def read_transactions():
        calls.append(1)
        if len(calls) == 1:
            # a second reload is issued while the first is still in flight
            client.read_transactions = lambda: newer
            session.reload_ledger()
            return older
        return newer

    client.read_transactions = read_transactions
    session.reload_ledger()
    assert [t.description for t in session.transactions] == ['Newer']


def test_reload_plan_reports_layout_warning():
    session = _session(FakeClient())
    status = session.reload_plan()
    assert status.loaded
    assert status.error == ''
    assert session.plan.fixed_budgets['Mortage'] == 2969.0
    assert session.plan.plan_month == date(2024, 3, 1)

    empty = TableResponse(headers=['PLAN'], rows=[['', 'Food', '0']])
    session.client.plan = empty
    status = session.reload_plan()
    assert status.error == "Plan parsed but budgets came out 0. Check Plan CSV layout."


def test_reload_plan_failure_zeroes_plan_fields():
    client = FakeClient()
    session = _session(client)
    session.reload_plan()
    session.plan = dataclasses.replace(session.plan, overflow_balance=1234.0, austin_weekly=900.0)
    client.plan_error = StoreError('PLAN HTTP 404')
    status = session.reload_plan()
    assert status.error == 'PLAN HTTP 404'
    assert session.plan.loaded
    assert session.plan.error == 'PLAN HTTP 404'
    assert session.plan.overflow_balance == 0.0
    assert session.plan.austin_weekly == 0.0
    assert session.plan.jenna_weekly == 0.0
    assert session.plan.fixed_budgets == {}
    assert all(row.income_base == 0.0 for row in session.forecast_rows())


def test_forecast_sheet_merges_inputs_and_saves_month():
    client = FakeClient()
    session = _session(client)
    session.reload_plan()
    status = session.reload_forecast_sheet()
    assert status.trustworthy
    assert session.forecast_state.adjustment('2024-04').hys_transfer == 250.0

    session.set_forecast_field('2024-05', 'add_disc', 80)
    status = session.save_forecast_month('2024-05')
    assert status.trustworthy
    assert len(client.writes) == 1
    assert [u.row for u in client.writes[0]] == [3, 4, 5, 6]
    assert {u.col for u in client.writes[0]} == {5}
    assert client.writes[0][2].value == 80.0


def test_failed_save_keeps_local_edit():
    client = FakeClient()
    session = _session(client)
    session.reload_forecast_sheet()
    session.set_forecast_field('2030-01', 'income_add', 10)
    status = session.save_forecast_month('2030-01')
    assert status.error == "Could not find month column in PLAN"
    assert session.forecast_state.adjustment('2030-01').income_add == 10.0

    client.write_error = StoreError('WRITE HTTP 500 quota')
    session.set_forecast_field('2024-04', 'income_add', 5)
    status = session.save_forecast_month('2024-04')
    assert status.error == 'WRITE HTTP 500 quota'
    assert session.forecast_state.adjustment('2024-04').income_add == 5.0
    assert client.writes == []


def test_forecast_rows_start_after_current_month():
    session = _session(FakeClient())
    session.reload_plan()
    session.set_months_ahead(4)
    rows = session.forecast_rows()
    assert [r.key for r in rows] == ['2024-04', '2024-05', '2024-06', '2024-07']
    assert rows[0].fixed_base == session.budgets.fixed_total


def test_forecast_rows_start_after_selected_month():
    session = _session(FakeClient())
    session.set_months_ahead(3)
    rows = session.forecast_rows(start_month=date(2024, 1, 1))
    assert [r.key for r in rows] == ['2024-02', '2024-03', '2024-04']
