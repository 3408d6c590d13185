from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from core.data import LineItem, RowStore
from core.ledger import AdjustmentLedger

Dimension = Literal["subgroup", "source"]
GroupBy = Literal["group", "subgroup", "source", "kind"]
Deltas = Union[AdjustmentLedger, Mapping[str, float], None]

CATEGORY_COLORS = ["#F3EEE2", "#E6F0E7", "#FDEAD7", "#EAF3FF", "#EFEAF7", "#FFF7CF", "#FFDAD1", "#E8F3D9"]
FUND_COLORS = ["#C1B7A8", "#B2A59A", "#ADBCC6", "#C8D4DA", "#B8BEE2", "#A3D6CF", "#BBDAB9", "#F2E49D", "#F6B5A3", "#C9A7DB"]
SLICE_COLORS = [
    "#4F6EF7", "#7D89F8", "#2DC5F4", "#C15CFC", "#F54AC0", "#08BDBA",
    "#7A9364", "#F0C808", "#DD1C1A", "#B8BEE2", "#A3D6CF", "#C1B7A8",
]

ROOT_NAME = "Budget"


def delta_map(ledger: Deltas) -> Dict[str, float]:
    if ledger is None:
        return {}
    if isinstance(ledger, AdjustmentLedger):
        return ledger.snapshot()
    return dict(ledger)


def adjusted_amount(item: LineItem, ledger: Deltas = None) -> float:
    delta = ledger.get(item.key, 0.0) if ledger is not None else 0.0
    return max(0.0, float(item.amount) + float(delta))


def amount_series(store: RowStore, ledger: Deltas = None) -> pd.Series:
    """Raw amounts when ledger is None, otherwise max(0, amount + delta) per row."""
    frame = store.frame
    if ledger is None:
        return frame["amount"].astype(float)
    deltas = frame["key"].map(delta_map(ledger)).astype(float).fillna(0.0)
    return (frame["amount"] + deltas).clip(lower=0.0)


def _restrict(frame: pd.DataFrame, kind: Optional[str], where: Optional[Mapping[str, str]]) -> pd.DataFrame:
    mask = pd.Series(True, index=frame.index)
    if kind:
        mask &= frame["kind"].eq(kind)
    for col, value in (where or {}).items():
        if value:
            mask &= frame[col].eq(value)
    return frame[mask]


def group_totals(
    store: RowStore,
    by: GroupBy = "group",
    ledger: Deltas = None,
    *,
    kind: Optional[str] = None,
    where: Optional[Mapping[str, str]] = None,
) -> Dict[str, float]:
    frame = _restrict(store.frame, kind, where)
    if frame.empty:
        return {}
    values = amount_series(store, ledger).loc[frame.index]
    totals = frame.assign(value=values).groupby(by, sort=False)["value"].sum()
    return {str(name): float(total) for name, total in totals.items()}


def sorted_totals(totals: Mapping[str, float], order: Literal["desc", "alpha"] = "desc") -> List[Tuple[str, float]]:
    if order == "alpha":
        return sorted(totals.items(), key=lambda kv: kv[0].lower())
    return sorted(totals.items(), key=lambda kv: (-kv[1], kv[0].lower()))


def share(part: float, whole: float) -> float:
    return float(part) / float(whole) if whole else 0.0


def _kind_totals(store: RowStore, ledger: Deltas) -> Dict[str, float]:
    frame = store.frame
    values = amount_series(store, ledger)
    revenue = float(values[frame["kind"].eq("revenue")].sum())
    spending = float(values[frame["kind"].eq("spending")].sum())
    return {"revenue": revenue, "spending": spending, "surplus": revenue - spending}


def budget_totals(store: RowStore, ledger: Deltas = None) -> Dict[str, Dict[str, float]]:
    """Revenue, spending and surplus (negative = deficit) before and after adjustments."""
    return {"original": _kind_totals(store, None), "adjusted": _kind_totals(store, ledger or {})}


def delta_summary(before: float, after: float) -> Dict[str, Any]:
    delta = float(after) - float(before)
    return {
        "before": float(before),
        "after": float(after),
        "delta": delta,
        "pct": delta / before * 100 if before else 0.0,
        "changed": abs(delta) > 1,
    }


def color_by_name(name: str, palette: Sequence[str] = CATEGORY_COLORS) -> str:
    h = 0
    for ch in name or "":
        h = (h * 31 + ord(ch)) % 2**32
    return palette[h % len(palette)]


@dataclass
class AggregateNode:
    name: str
    total: float
    share: float = 0.0
    color: Optional[str] = None
    kind: Optional[str] = None
    children: List["AggregateNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "total": self.total, "share": self.share, "color": self.color}
        if self.kind is not None:
            out["kind"] = self.kind
        if self.children:
            out["children"] = [c.to_dict() for c in self.children]
        return out


@dataclass(frozen=True)
class DrilldownState:
    group: Optional[str] = None
    dimension: Dimension = "subgroup"

    @property
    def level(self) -> int:
        return 2 if self.group else 1

    def select(self, group: Optional[str]) -> "DrilldownState":
        if group == self.group:
            return self
        return DrilldownState(group=group or None, dimension="subgroup")

    def with_dimension(self, dimension: Dimension) -> "DrilldownState":
        if dimension not in ("subgroup", "source"):
            raise ValueError(f"unknown drill-down dimension: {dimension}")
        return replace(self, dimension=dimension)

    def clear(self) -> "DrilldownState":
        return DrilldownState()


def level_one_nodes(store: RowStore, ledger: Deltas = None, *, kind: Optional[str] = None) -> List[AggregateNode]:
    totals = group_totals(store, "group", ledger, kind=kind)
    grand = sum(totals.values())
    return [
        AggregateNode(name=name, total=total, share=share(total, grand), color=color_by_name(name, CATEGORY_COLORS))
        for name, total in sorted_totals(totals)
    ]


def level_two_nodes(
    store: RowStore,
    ledger: Deltas,
    group: str,
    dimension: Dimension = "subgroup",
    *,
    kind: Optional[str] = None,
) -> List[AggregateNode]:
    frame = _restrict(store.frame, kind, {"group": group})
    if frame.empty:
        return []
    palette = FUND_COLORS if dimension == "subgroup" else SLICE_COLORS
    values = amount_series(store, ledger).loc[frame.index]
    grouped = frame.assign(value=values).groupby([dimension, "kind"], sort=False)["value"].sum()
    parent_total = float(grouped.sum())
    nodes = [
        AggregateNode(
            name=str(name),
            total=float(total),
            share=share(total, parent_total),
            color=color_by_name(str(name), palette),
            kind=str(node_kind),
        )
        for (name, node_kind), total in grouped.items()
    ]
    nodes.sort(key=lambda n: (-n.total, n.name.lower()))
    return nodes


def build_tree(store: RowStore, ledger: Deltas = None, *, kind: Optional[str] = None) -> AggregateNode:
    level_one = level_one_nodes(store, ledger, kind=kind)
    for node in level_one:
        node.children = level_two_nodes(store, ledger, node.name, "subgroup", kind=kind)
    grand = sum(n.total for n in level_one)
    return AggregateNode(name=ROOT_NAME, total=grand, share=1.0 if grand else 0.0, children=level_one)
