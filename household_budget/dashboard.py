"""Streamlit app for the household budget dashboard.

To run the dashboard from the command line::

    streamlit run household_budget/dashboard.py

The page is a thin shell over :class:`household_budget.session.BudgetSession`;
all numbers come from the aggregation and forecast modules.
"""

from __future__ import annotations

import os
import sys

import pandas as pd
import streamlit as st

if __package__:
    from . import config
    from . import visualization as viz
    from .aggregation import BudgetView, remaining_status
    from .formatting import format_money0, month_label
    from .forecast import ADJUSTMENT_FIELDS, forecast_frame, months_ahead_bounds
    from .logging_setup import configure_logging
    from .session import BudgetSession
else:
    # ``streamlit run household_budget/dashboard.py`` executes this file
    # as a script, so make the package importable
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from household_budget import config  # type: ignore
    from household_budget import visualization as viz  # type: ignore
    from household_budget.aggregation import BudgetView, remaining_status  # type: ignore
    from household_budget.formatting import format_money0, month_label  # type: ignore
    from household_budget.forecast import ADJUSTMENT_FIELDS, forecast_frame, months_ahead_bounds  # type: ignore
    from household_budget.logging_setup import configure_logging  # type: ignore
    from household_budget.session import BudgetSession  # type: ignore

FIELD_LABELS = {
    'income_add': 'Income add',
    'add_fixed': 'Fixed add',
    'add_disc': 'Disc add',
    'hys_transfer': 'HYS transfer',
}


def get_session() -> BudgetSession:
    if 'budget_session' not in st.session_state:
        config.ensure_data_directories()
        session = BudgetSession()
        session.reload_all()
        st.session_state['budget_session'] = session
    return st.session_state['budget_session']


def show_status(name: str, status) -> None:
    if not status.loaded:
        st.sidebar.info(f"{name}: loading…")
    elif status.error:
        st.sidebar.error(f"{name}: {status.error}")


def render_overview(view: BudgetView, session: BudgetSession) -> None:
    cols = st.columns(3)
    cols[0].metric("Remaining (controlled)", format_money0(view.remaining),
                   help=f"Status: {remaining_status(view.remaining)}")
    cols[1].metric("Projected overflow", format_money0(view.projected.overflow))
    cols[2].metric(
        "Fixed lines on track",
        f"{view.fixed_health.lines_on_track}/{view.fixed_health.total}",
    )
    if view.is_current_month and view.projected_end_overflow is not None:
        st.caption(
            f"Projected end of month: overflow {format_money0(view.projected_end_overflow)}, "
            f"HYS {format_money0(view.projected_end_hys or 0.0)}"
        )
    if view.plan_month_mismatch:
        st.warning(f"Plan is for {session.plan.plan_month_raw}, not {month_label(view.month)}.")
    st.dataframe(view.comparison_frame(), hide_index=True)

    analytics = session.analytics()
    history = analytics.completed_history(session.today, session.config['history']['chart_months'])
    st.plotly_chart(viz.create_overflow_history_chart(history))


def render_discretionary(view: BudgetView, session: BudgetSession) -> None:
    budgets = session.budgets
    left, right = st.columns(2)
    left.plotly_chart(viz.create_bucket_donut(view.bucket_spend))
    right.plotly_chart(viz.create_budget_vs_actual_chart(budgets.discretionary, view.bucket_spend))
    st.dataframe(
        view.line_table(budgets.discretionary, view.bucket_spend, view.bucket_average),
        hide_index=True,
    )
    sparks = session.analytics().bucket_sparklines(session.config['history']['sparkline_months'])
    spark_cols = st.columns(len(sparks.columns) or 1)
    for col, bucket in zip(spark_cols, sparks.columns):
        col.caption(bucket)
        col.plotly_chart(viz.create_sparkline(sparks[bucket].tolist(), viz.BUCKET_COLORS.get(bucket, '#0891B2')))

    bucket = st.selectbox("Transactions", ['all'] + list(budgets.discretionary))
    rows = session.analytics().discretionary_rows(view.month, bucket)
    st.dataframe(rows[['Date', 'Description', 'Category', 'Bucket', 'Amount']], hide_index=True)


def render_fixed(view: BudgetView, session: BudgetSession) -> None:
    budgets = session.budgets
    st.plotly_chart(viz.create_budget_vs_actual_chart(budgets.fixed, view.fixed_spend))
    st.dataframe(view.line_table(budgets.fixed, view.fixed_spend, view.fixed_average), hide_index=True)
    st.subheader("Utilities")
    utilities = {line: budgets.utilities.get(line, 0.0) for line in budgets.utilities_lines}
    st.dataframe(view.line_table(utilities, view.utility_spend, view.utility_average), hide_index=True)


def render_history(session: BudgetSession) -> None:
    table = session.analytics().history_by_year(session.today)
    if table.empty:
        st.info("No completed months yet.")
        return
    display = table.copy()
    display['Month'] = [
        f"{year} total" if kind == 'year' else month_label(month)
        for kind, year, month in zip(display['Kind'], display['Year'], display['Month'])
    ]
    st.dataframe(display.drop(columns=['Kind', 'Year']), hide_index=True)


def render_forecast(session: BudgetSession, month: pd.Period) -> None:
    state = session.forecast_state
    low, high, _ = months_ahead_bounds(session.config)
    months = st.number_input(
        "Months ahead", min_value=low, max_value=high,
        value=state.months_ahead, step=1,
    )
    if months != state.months_ahead:
        session.set_months_ahead(months)

    c1, c2, c3 = st.columns(3)
    start_overflow = c1.number_input("Start overflow", value=float(state.start_overflow), step=50.0)
    start_hys = c2.number_input("Start HYS", value=float(state.start_hys), step=50.0)
    if start_overflow != state.start_overflow or start_hys != state.start_hys:
        session.set_start_balances(start_overflow, start_hys)
    if state.start_user_override and c3.button("Use projected balances"):
        session.reset_start_balances()

    rows = session.forecast_rows(start_month=month.start_time.date())
    st.plotly_chart(viz.create_forecast_chart(rows))
    st.dataframe(forecast_frame(rows), hide_index=True)

    st.subheader("Adjust a month")
    keys = [r.key for r in rows]
    if not keys:
        return
    key = st.selectbox("Month", keys)
    current = state.adjustment(key)
    field_cols = st.columns(len(ADJUSTMENT_FIELDS))
    for col, name in zip(field_cols, ADJUSTMENT_FIELDS):
        value = col.number_input(FIELD_LABELS[name], value=float(getattr(current, name)), key=f"{key}-{name}")
        if value != getattr(current, name):
            session.set_forecast_field(key, name, value)
    if st.button("Save month to sheet"):
        status = session.save_forecast_month(key)
        if status.error:
            st.error(status.error)
        else:
            st.success("Saved")


def main() -> None:
    """Entry point for the Streamlit app."""
    configure_logging()
    st.set_page_config(page_title="Household Budget", layout="wide")
    st.title("Household Budget")

    session = get_session()
    if st.sidebar.button("Reload"):
        session.reload_all()
    show_status("Transactions", session.ledger_status)
    show_status("Plan", session.plan_status)
    show_status("Forecast sheet", session.forecast_status)

    months = session.months or [session.default_month()]
    default = session.default_month()
    index = months.index(default) if default in months else len(months) - 1
    month = st.sidebar.selectbox(
        "Month", months, index=index, format_func=month_label,
    )
    view = session.budget_view(pd.Period(month, freq='M'))

    overview, disc, fixed, history, forecast = st.tabs(
        ["Overview", "Discretionary", "Fixed", "History", "Forecast"]
    )
    with overview:
        render_overview(view, session)
    with disc:
        render_discretionary(view, session)
    with fixed:
        render_fixed(view, session)
    with history:
        render_history(session)
    with forecast:
        render_forecast(session, view.month)


if __name__ == "__main__":  # pragma: no cover
    main()
