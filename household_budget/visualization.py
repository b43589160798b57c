"""Plotly figures for the household budget dashboard.

Every function takes data produced by :mod:`household_budget.aggregation`
or :mod:`household_budget.forecast` and returns a
``plotly.graph_objects.Figure`` that Streamlit renders with
``st.plotly_chart``.  Empty input yields an empty figure titled
"No data to display" rather than an error.
"""

from __future__ import annotations

from typing import Mapping, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .aggregation import GOOD, BAD, WARN, budget_status
from .forecast import ForecastRow, forecast_frame
from .formatting import short_month

BUCKET_COLORS = {
    'Food': '#E11D48',
    'Gas': '#D97706',
    'General Merchandise': '#7C3AED',
    'Other': '#0891B2',
}
STATUS_COLORS = {GOOD: '#16A34A', WARN: '#D97706', BAD: '#DC2626'}


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_overflow_history_chart(history: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Bar chart of monthly overflow, green for surplus and red for deficit.

    Parameters
    ----------
    history : pandas.DataFrame
        Output of ``LedgerAnalytics.completed_history`` (oldest first)
        with ``Month`` and ``Overflow`` columns.
    title : str, optional
        Chart title.
    """
    if history.empty:
        return _empty_figure()
    labels = [short_month(m) + f" {m.year % 100:02d}" for m in history['Month']]
    colors = [STATUS_COLORS[GOOD] if v >= 0 else STATUS_COLORS[BAD] for v in history['Overflow']]
    fig = go.Figure(go.Bar(x=labels, y=history['Overflow'], marker_color=colors))
    fig.update_layout(
        title=title or "Monthly overflow",
        xaxis_title="Month",
        yaxis_title="Overflow ($)",
    )
    return fig


def create_bucket_donut(spend: Mapping[str, float], title: str | None = None) -> go.Figure:
    """Donut of discretionary spend by bucket."""
    data = pd.DataFrame({'Bucket': list(spend), 'Spend': list(spend.values())})
    data = data[data['Spend'] > 0]
    if data.empty:
        return _empty_figure()
    fig = px.pie(
        data, names='Bucket', values='Spend', hole=0.6,
        color='Bucket', color_discrete_map=BUCKET_COLORS,
    )
    fig.update_layout(title=title or "Discretionary spend")
    return fig


def create_budget_vs_actual_chart(
    budgets: Mapping[str, float],
    spend: Mapping[str, float],
    title: str | None = None,
) -> go.Figure:
    """Grouped bars of budget and actual per line, actual colored by status."""
    lines = [line for line in budgets if budgets[line] > 0 or spend.get(line, 0.0) > 0]
    if not lines:
        return _empty_figure()
    actual = [spend.get(line, 0.0) for line in lines]
    colors = [STATUS_COLORS[budget_status(a, budgets[line])] for line, a in zip(lines, actual)]
    fig = go.Figure()
    fig.add_trace(go.Bar(name='Budget', x=lines, y=[budgets[line] for line in lines], marker_color='#CBD5E1'))
    fig.add_trace(go.Bar(name='Actual', x=lines, y=actual, marker_color=colors))
    fig.update_layout(barmode='group', title=title or "Budget vs actual", yaxis_title="$")
    return fig


def create_forecast_chart(rows: Sequence[ForecastRow], title: str | None = None) -> go.Figure:
    """Running overflow and HYS balances across the forecast horizon."""
    if not rows:
        return _empty_figure()
    frame = forecast_frame(rows)
    x = [m.strftime('%b %Y') for m in frame['Month']]
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=x, y=frame['End Overflow'], mode='lines+markers', name='Overflow'))
    fig.add_trace(go.Scatter(x=x, y=frame['End HYS'], mode='lines+markers', name='HYS'))
    fig.update_layout(title=title or "Projected balances", xaxis_title="Month", yaxis_title="$")
    return fig


def create_sparkline(values: Sequence[float], color: str = '#0891B2') -> go.Figure:
    fig = go.Figure(go.Scatter(y=list(values), mode='lines', line={'color': color, 'width': 2}))
    fig.update_layout(
        height=60,
        margin={'l': 0, 'r': 0, 't': 0, 'b': 0},
        xaxis={'visible': False},
        yaxis={'visible': False},
        showlegend=False,
    )
    return fig
