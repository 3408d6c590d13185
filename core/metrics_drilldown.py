from __future__ import annotations

from typing import Any, Dict, Optional

from core.aggregation import Deltas, DrilldownState, group_totals, level_one_nodes, level_two_nodes, share
from core.charts import donut_chart, treemap_chart
from core.data import RowStore

DIMENSION_TITLES = {"subgroup": "Division breakdown", "source": "Funding sources"}


def compute_drilldown(
    store: RowStore,
    ledger: Deltas,
    state: DrilldownState,
    *,
    kind: Optional[str] = None,
) -> Dict[str, Any]:
    grand_total = sum(group_totals(store, "group", ledger, kind=kind).values())

    if state.group is None:
        nodes = level_one_nodes(store, ledger, kind=kind)
        return {
            "level": 1,
            "group": None,
            "dimension": state.dimension,
            "grand_total": grand_total,
            "nodes": [n.to_dict() for n in nodes],
            "tiles": None,
            "charts": {"treemap": treemap_chart(nodes, title="Categories"), "donut": None},
        }

    nodes = level_two_nodes(store, ledger, state.group, state.dimension, kind=kind)
    group_total = sum(n.total for n in nodes)
    subgroup_count = len(group_totals(store, "subgroup", ledger, kind=kind, where={"group": state.group}))
    title = f"{DIMENSION_TITLES[state.dimension]}: {state.group}"
    return {
        "level": 2,
        "group": state.group,
        "dimension": state.dimension,
        "grand_total": grand_total,
        "nodes": [n.to_dict() for n in nodes],
        "tiles": {
            "group_total": group_total,
            "subgroup_count": subgroup_count,
            "pct_of_total": share(group_total, grand_total) * 100,
        },
        "charts": {"treemap": treemap_chart(nodes, title=state.group), "donut": donut_chart(nodes, title=title)},
    }
