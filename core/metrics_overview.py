from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.aggregation import (
    Deltas,
    adjusted_amount,
    budget_totals,
    delta_map,
    delta_summary,
    level_one_nodes,
)
from core.charts import before_after_chart, treemap_chart
from core.data import KINDS, RowStore
from core.ledger import DraftLedger

CARD_LABELS = {"revenue": "Revenue", "spending": "Spending", "surplus": "Surplus / Deficit"}


def _cards(totals: Dict[str, Dict[str, float]]) -> List[Dict[str, Any]]:
    cards = []
    for key, label in CARD_LABELS.items():
        summary = delta_summary(totals["original"][key], totals["adjusted"][key])
        if key == "surplus":
            summary["tone"] = "negative" if summary["after"] < 0 else "positive"
        else:
            summary["tone"] = "positive" if summary["delta"] >= 0 else "negative"
        cards.append({"key": key, "label": label, **summary})
    return cards


def _accordions(store: RowStore, ledger: Deltas, drafts: Optional[DraftLedger]) -> Dict[str, List[Dict[str, Any]]]:
    deltas = delta_map(ledger)
    draft_text = drafts.snapshot() if drafts is not None else {}
    out: Dict[str, List[Dict[str, Any]]] = {}
    for kind in KINDS:
        by_group: Dict[str, List[Dict[str, Any]]] = {}
        for item in store:
            if item.kind != kind:
                continue
            by_group.setdefault(item.group, []).append(
                {
                    "key": item.key,
                    "subgroup": item.subgroup,
                    "source": item.source,
                    "amount": item.amount,
                    "delta": deltas.get(item.key, 0.0),
                    "adjusted": adjusted_amount(item, deltas),
                    "draft": draft_text.get(item.key, ""),
                }
            )
        out[kind] = [
            {
                "group": group,
                "original": sum(i["amount"] for i in items),
                "adjusted": sum(i["adjusted"] for i in items),
                "items": items,
            }
            for group, items in by_group.items()
        ]
    return out


def compute_overview(
    store: RowStore,
    ledger: Deltas = None,
    *,
    drafts: Optional[DraftLedger] = None,
    kind: Optional[str] = "spending",
) -> Dict[str, Any]:
    totals = budget_totals(store, ledger)
    nodes = level_one_nodes(store, ledger, kind=kind)
    deltas = delta_map(ledger)

    adjustments = []
    for item in store:
        if item.key in deltas:
            adjustments.append(
                {
                    "key": item.key,
                    "group": item.group,
                    "subgroup": item.subgroup,
                    "delta": deltas[item.key],
                    "adjusted": adjusted_amount(item, deltas),
                }
            )

    return {
        "row_count": len(store),
        "totals": totals,
        "cards": _cards(totals),
        "treemap": [n.to_dict() for n in nodes],
        "accordions": _accordions(store, ledger, drafts),
        "adjustments": adjustments,
        "charts": {
            "treemap": treemap_chart(nodes, title="Budget Treemap: Categories"),
            "before_after": before_after_chart(totals),
        },
    }
