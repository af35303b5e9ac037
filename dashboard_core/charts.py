from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Sequence

import altair as alt
import pandas as pd

from dashboard_core.aggregation import ChartDataBundle, GroupCount, PeriodCount

alt.data_transformers.disable_max_rows()

RANKING_TITLES = {
    "by_operator": "Services per operator (top 10)",
    "by_status": "Services per status",
    "by_unit": "Services per operational unit",
    "by_client": "Services per client (top 10)",
}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _frame(rows: Sequence[Any]) -> pd.DataFrame:
    return pd.DataFrame([asdict(row) for row in rows])


def period_chart(by_period: Sequence[PeriodCount], title: str) -> alt.Chart:
    df = _frame(by_period)
    return (
        alt.Chart(df, title=title)
        .mark_bar()
        .encode(
            x=alt.X("key:O", title="Period", sort=None),
            y=alt.Y("count:Q", title="Services", axis=alt.Axis(format="d", gridDash=[4, 4])),
            tooltip=[
                alt.Tooltip("key:N", title="Period"),
                alt.Tooltip("count:Q", title="Services"),
                alt.Tooltip("cost_total:Q", title="Total cost", format="$,.0f"),
            ],
        )
    )


def hour_chart(by_hour: Sequence[GroupCount]) -> alt.Chart:
    df = _frame(by_hour)
    return (
        alt.Chart(df, title="Services per hour of contact")
        .mark_line(point={"filled": True})
        .encode(
            x=alt.X("key:O", title="Hour", sort=None),
            y=alt.Y("count:Q", title="Services", axis=alt.Axis(format="d")),
            tooltip=[alt.Tooltip("key:N", title="Hour"), alt.Tooltip("count:Q", title="Services")],
        )
    )


def ranking_chart(rows: Sequence[GroupCount], title: str) -> alt.Chart:
    df = _frame(rows)
    return (
        alt.Chart(df, title=title)
        .mark_bar()
        .encode(
            y=alt.Y("key:N", title=None, sort="-x"),
            x=alt.X("count:Q", title="Services", axis=alt.Axis(format="d")),
            tooltip=[alt.Tooltip("key:N", title="Name"), alt.Tooltip("count:Q", title="Services")],
        )
    )


def bundle_charts(bundle: ChartDataBundle) -> Dict[str, Dict[str, Any]]:
    charts: Dict[str, Dict[str, Any]] = {}
    if bundle.by_period:
        charts["by_period"] = to_vega_spec(period_chart(bundle.by_period, bundle.period_title))
    for name, title in RANKING_TITLES.items():
        rows = getattr(bundle, name)
        if rows:
            charts[name] = to_vega_spec(ranking_chart(rows, title))
    if any(row.count for row in bundle.by_hour):
        charts["by_hour"] = to_vega_spec(hour_chart(bundle.by_hour))
    return charts
