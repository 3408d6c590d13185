from __future__ import annotations

import re
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from core.aggregation import Deltas, delta_map, adjusted_amount
from core.data import RowStore

EXPORT_COLUMNS = ["Group", "Subgroup", "Source", "Original Amount", "Change", "Adjusted Amount", "Type"]
DEFAULT_EXPORT_NAME = "budget_scenario"


def export_records(store: RowStore, ledger: Deltas = None) -> List[Dict[str, object]]:
    deltas = delta_map(ledger)
    return [
        {
            "Group": item.group,
            "Subgroup": item.subgroup,
            "Source": item.source,
            "Original Amount": item.amount,
            "Change": deltas.get(item.key, 0.0),
            "Adjusted Amount": round(adjusted_amount(item, deltas), 2),
            "Type": item.kind,
        }
        for item in store
    ]


def export_frame(store: RowStore, ledger: Deltas = None) -> pd.DataFrame:
    return pd.DataFrame(export_records(store, ledger), columns=EXPORT_COLUMNS)


def export_csv(store: RowStore, ledger: Deltas = None) -> str:
    return export_frame(store, ledger).to_csv(index=False)


def export_filename(name: Optional[str], today: Optional[date] = None) -> str:
    base = (name or "").strip() or DEFAULT_EXPORT_NAME
    slug = re.sub(r"[^a-z0-9]", "_", base, flags=re.IGNORECASE).lower()
    return f"{slug}_{(today or date.today()).isoformat()}.csv"
