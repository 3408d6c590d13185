from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from core.aggregation import Deltas, adjusted_amount, delta_map
from core.config import Settings
from core.data import RowStore
from core.filters import CASCADE, FilterState, apply_filters, available_options
from core.windowing import compute_window


def compute_explorer(
    store: RowStore,
    filters: FilterState,
    *,
    ledger: Deltas = None,
    scroll_offset: float = 0.0,
    settings: Settings = Settings(),
) -> Dict[str, Any]:
    result = apply_filters(store, filters, ledger)
    window = compute_window(
        result.count,
        scroll_offset,
        row_height=settings.row_height,
        viewport_height=settings.viewport_height,
        overscan=settings.overscan,
    )
    deltas = delta_map(ledger)
    rows = [
        {
            "index": window.start + offset,
            "key": item.key,
            "group": item.group,
            "subgroup": item.subgroup,
            "source": item.source,
            "label": item.label,
            "kind": item.kind,
            "amount": item.amount,
            "adjusted": adjusted_amount(item, deltas),
        }
        for offset, item in enumerate(window.slice(result.rows))
    ]
    return {
        "filters": asdict(filters),
        "options": {name: available_options(store, filters, name) for name in CASCADE},
        "count": result.count,
        "total": result.total,
        "window": window.to_dict(),
        "rows": rows,
    }
