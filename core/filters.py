from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional, Tuple

import pandas as pd

from core.aggregation import Deltas, amount_series
from core.data import LineItem, RowStore

CategoricalField = Literal["group", "subgroup", "source"]

# Upstream first; setting one filter clears everything after it.
CASCADE: Tuple[CategoricalField, ...] = ("group", "subgroup", "source")

FIELD_ALIASES = {
    "group": ("group", "agency", "category"),
    "subgroup": ("subgroup", "division", "fund"),
    "source": ("source", "funding_source"),
    "query": ("query", "q", "search"),
}

_UNSET = {"", "all"}


@dataclass(frozen=True)
class FilterState:
    query: str = ""
    group: str = ""
    subgroup: str = ""
    source: str = ""

    def selection(self, name: CategoricalField) -> str:
        return getattr(self, name)

    @property
    def categorical(self) -> dict:
        return {name: self.selection(name) for name in CASCADE if self.selection(name)}

    def with_selection(self, name: CategoricalField, value: Optional[str]) -> "FilterState":
        if name not in CASCADE:
            raise ValueError(f"unknown filter: {name}")
        changes = {name: _clean(value)}
        if changes[name] != self.selection(name):
            for downstream in CASCADE[CASCADE.index(name) + 1:]:
                changes[downstream] = ""
        return replace(self, **changes)

    def with_query(self, text: Optional[str]) -> "FilterState":
        return replace(self, query=(text or "").strip())


@dataclass(frozen=True)
class FilteredRowSet:
    rows: Tuple[LineItem, ...] = field(default_factory=tuple)
    total: float = 0.0

    @property
    def count(self) -> int:
        return len(self.rows)


def _clean(value: object) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return "" if text.lower() in _UNSET else text


def normalize_filters(raw: Optional[dict]) -> FilterState:
    raw = raw or {}

    def pick(name: str) -> str:
        for alias in FIELD_ALIASES[name]:
            value = _clean(raw.get(alias))
            if value:
                return value
        return ""

    return FilterState(
        query=(raw.get("query") or raw.get("q") or raw.get("search") or "").strip(),
        group=pick("group"),
        subgroup=pick("subgroup"),
        source=pick("source"),
    )


def filter_mask(store: RowStore, state: FilterState) -> pd.Series:
    frame = store.frame
    mask = pd.Series(True, index=frame.index)
    for name, value in state.categorical.items():
        mask &= frame[name].eq(value)
    query = state.query.strip().lower()
    if query:
        mask &= frame["haystack"].str.contains(query, regex=False)
    return mask


def apply_filters(store: RowStore, state: FilterState, ledger: Deltas = None) -> FilteredRowSet:
    if store.empty:
        return FilteredRowSet()
    mask = filter_mask(store, state)
    positions = [i for i, keep in enumerate(mask.tolist()) if keep]
    rows = tuple(store.items[i] for i in positions)
    total = float(amount_series(store, ledger)[mask].sum()) if rows else 0.0
    return FilteredRowSet(rows=rows, total=total)


def available_options(store: RowStore, state: FilterState, name: CategoricalField) -> List[str]:
    """Distinct values of one filter among rows matching every filter upstream of it."""
    if store.empty:
        return []
    frame = store.frame
    mask = pd.Series(True, index=frame.index)
    for upstream in CASCADE[: CASCADE.index(name)]:
        value = state.selection(upstream)
        if value:
            mask &= frame[upstream].eq(value)
    return sorted({str(v) for v in frame.loc[mask, name].tolist()}, key=str.lower)
