from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from core.aggregation import AggregateNode

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _nodes_frame(nodes: List[AggregateNode]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"name": n.name, "total": n.total, "share": n.share, "color": n.color, "kind": n.kind or ""} for n in nodes],
        columns=["name", "total", "share", "color", "kind"],
    )


def _color_scale(df: pd.DataFrame) -> alt.Scale:
    # Colors come from the name hash, so the scale is pinned to the node list.
    # A name can repeat across kinds; it maps to one color either way.
    colors = dict(zip(df["name"], df["color"]))
    return alt.Scale(domain=list(colors), range=list(colors.values()))


def treemap_chart(nodes: List[AggregateNode], *, title: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Area-proportional stand-in for a treemap: one normalized stacked bar, largest first."""
    df = _nodes_frame(nodes)
    if df.empty:
        return None
    hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
    chart = (
        alt.Chart(df)
        .mark_bar(stroke="#ffffff", strokeWidth=1)
        .encode(
            x=alt.X("total:Q", stack="normalize", axis=None),
            color=alt.Color("name:N", scale=_color_scale(df), legend=alt.Legend(title=None, orient="bottom", columns=3)),
            order=alt.Order("total:Q", sort="descending"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip("name:N", title="Name"),
                alt.Tooltip("total:Q", title="Adjusted", format="$,.0f"),
                alt.Tooltip("share:Q", title="Share", format=".1%"),
            ],
        )
        .add_params(hover)
        .properties(height=120, title=title or "")
    )
    return to_vega_spec(chart)


def donut_chart(nodes: List[AggregateNode], *, title: Optional[str] = None) -> Optional[Dict[str, Any]]:
    df = _nodes_frame(nodes)
    if df.empty:
        return None
    chart = (
        alt.Chart(df)
        .mark_arc(innerRadius=92, outerRadius=130, stroke="#ffffff", strokeWidth=1)
        .encode(
            theta=alt.Theta("total:Q", stack=True),
            color=alt.Color("name:N", scale=_color_scale(df), legend=None),
            order=alt.Order("total:Q", sort="descending"),
            tooltip=[
                alt.Tooltip("name:N", title="Name"),
                alt.Tooltip("total:Q", title="Amount", format="$,.0f"),
                alt.Tooltip("share:Q", title="Share", format=".1%"),
            ],
        )
        .properties(height=360, title=title or "")
    )
    return to_vega_spec(chart)


def before_after_chart(totals: Dict[str, Dict[str, float]]) -> Dict[str, Any]:
    rows = [
        {"metric": metric.capitalize(), "state": state, "amount": float(values.get(metric, 0.0))}
        for state, values in (("Before", totals.get("original", {})), ("After", totals.get("adjusted", {})))
        for metric in ("revenue", "spending", "surplus")
    ]
    df = pd.DataFrame(rows)
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("metric:N", title=None, axis=alt.Axis(grid=False)),
            xOffset="state:N",
            y=alt.Y("amount:Q", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("state:N", scale=alt.Scale(domain=["Before", "After"], range=["#111111", "#1877F2"])),
            tooltip=["metric", "state", alt.Tooltip("amount:Q", format="$,.0f")],
        )
        .properties(height=260)
    )
    return to_vega_spec(chart)
