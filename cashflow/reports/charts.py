"""Plotly figures for the dashboard."""

import plotly.graph_objects as go

from cashflow.categories import CATEGORY_COLORS
from cashflow.models.report import MonthlyView


def _empty_figure(message: str) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        text=message,
        showarrow=False,
        x=0.5,
        y=0.5,
        xref="paper",
        yref="paper",
        font=dict(size=14, color="#6c757d"),
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    fig.update_layout(margin=dict(l=0, r=0, t=20, b=20))
    return fig


def breakdown_chart(view: MonthlyView, currency_symbol: str = "₹") -> go.Figure:
    """Donut chart of the month's expenses per category label."""
    by_label = view.breakdown_by_label()
    if not by_label:
        return _empty_figure("no expenses this month.")

    labels = list(by_label)
    values = [float(amount) for amount in by_label.values()]
    colors = [CATEGORY_COLORS[i % len(CATEGORY_COLORS)] for i in range(len(labels))]

    fig = go.Figure(
        go.Pie(
            labels=labels,
            values=values,
            hole=0.6,
            marker=dict(colors=colors),
            sort=False,
            hovertemplate=f"%{{label}}: {currency_symbol}%{{value:,.2f}}<extra></extra>",
        )
    )
    fig.update_layout(
        margin=dict(l=0, r=0, t=20, b=20),
        legend=dict(orientation="h"),
    )
    return fig
