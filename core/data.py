from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
import requests


logger = logging.getLogger(__name__)

KEY_SEP = "|||"
UNSPECIFIED_SOURCE = "(Unspecified Source)"
KINDS = ("revenue", "spending")
DEFAULT_KIND = "spending"
MILLION = 1_000_000
HTTP_TIMEOUT_S = 30

# Aliases are tried in order; the first present, non-null value wins.
GROUP_ALIASES = ("agency", "Agency", "category", "Category", "Fund Category")
SUBGROUP_ALIASES = ("division", "Division", "fund", "Fund", "Fund Name")
SOURCE_ALIASES = ("source", "Source", "Funding Source", "Fund Source")
LABEL_ALIASES = ("appropriation", "Appropriation", "Line Item")
KIND_ALIASES = ("type", "Type", "kind")
AMOUNT_ALIASES = ("amount", "Amount", "Funds", "Allocation")
AMOUNT_M_ALIASES = ("amountM", "amount_m", "Amount (M)")

FRAME_COLUMNS = ["group", "subgroup", "source", "kind", "label", "amount", "key"]

_TOTAL_RE = re.compile(r"(^|\s)totals?(\s|$)", re.IGNORECASE)
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")


class DatasetLoadError(Exception):
    """Raised when the row dataset cannot be fetched or decoded."""


@dataclass(frozen=True)
class LineItem:
    group: str
    subgroup: str
    source: str = UNSPECIFIED_SOURCE
    amount: float = 0.0
    kind: str = DEFAULT_KIND
    label: str = ""

    @property
    def key(self) -> str:
        return make_key(self.group, self.subgroup, self.source, self.kind)


def make_key(group: str, subgroup: str, source: str = UNSPECIFIED_SOURCE, kind: str = DEFAULT_KIND) -> str:
    return KEY_SEP.join((group, subgroup, source, kind))


def to_number(value: object) -> float:
    """Coerce a loosely formatted number ("$1,234.50", 12, None) to float; junk becomes 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        out = float(value)
        return out if math.isfinite(out) else 0.0
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    if not cleaned:
        return 0.0
    try:
        out = float(cleaned)
    except ValueError:
        return 0.0
    return out if math.isfinite(out) else 0.0


def is_likely_total_row(subgroup: str) -> bool:
    s = (subgroup or "").strip()
    if not s:
        return True
    return bool(_TOTAL_RE.search(s))


def _first(raw: Dict[str, Any], aliases: Iterable[str]) -> Optional[Any]:
    for alias in aliases:
        value = raw.get(alias)
        if value is not None:
            return value
    return None


def _text(raw: Dict[str, Any], aliases: Iterable[str]) -> str:
    value = _first(raw, aliases)
    return "" if value is None else str(value).strip()


def _kind(raw: Dict[str, Any]) -> str:
    value = _text(raw, KIND_ALIASES).lower()
    return value if value in KINDS else DEFAULT_KIND


def _amount(raw: Dict[str, Any]) -> float:
    value = _first(raw, AMOUNT_ALIASES)
    if value is not None:
        return to_number(value)
    value = _first(raw, AMOUNT_M_ALIASES)
    if value is not None:
        return to_number(value) * MILLION
    return 0.0


def coerce_line_item(raw: object) -> Optional[LineItem]:
    """Map one loose row dict to a LineItem, or None when it should be dropped."""
    if not isinstance(raw, dict):
        return None
    group = _text(raw, GROUP_ALIASES)
    subgroup = _text(raw, SUBGROUP_ALIASES)
    if not group or is_likely_total_row(subgroup):
        return None
    return LineItem(
        group=group,
        subgroup=subgroup,
        source=_text(raw, SOURCE_ALIASES) or UNSPECIFIED_SOURCE,
        amount=_amount(raw),
        kind=_kind(raw),
        label=_text(raw, LABEL_ALIASES),
    )


def consolidate(items: Iterable[LineItem]) -> List[LineItem]:
    """Merge rows sharing an identity key, summing amounts; first-seen order and label are kept."""
    merged: Dict[str, LineItem] = {}
    for item in items:
        prev = merged.get(item.key)
        if prev is None:
            merged[item.key] = item
        else:
            merged[item.key] = LineItem(
                group=prev.group,
                subgroup=prev.subgroup,
                source=prev.source,
                amount=prev.amount + item.amount,
                kind=prev.kind,
                label=prev.label or item.label,
            )
    return list(merged.values())


def normalize_rows(payload: object) -> List[LineItem]:
    if isinstance(payload, dict):
        payload = payload.get("rows")
    if not isinstance(payload, list):
        return []
    coerced = [coerce_line_item(r) for r in payload]
    items = [r for r in coerced if r is not None]
    dropped = len(payload) - len(items)
    if dropped:
        logger.debug("dropped %d rows without identity fields or marked as totals", dropped)
    return consolidate(items)


class RowStore:
    """Immutable, ingestion-ordered set of line items plus a DataFrame view for vectorized work."""

    def __init__(self, items: Sequence[LineItem] = ()):
        self._items: Tuple[LineItem, ...] = tuple(items)
        self._by_key: Dict[str, LineItem] = {r.key: r for r in self._items}
        frame = pd.DataFrame(
            [
                {
                    "group": r.group,
                    "subgroup": r.subgroup,
                    "source": r.source,
                    "kind": r.kind,
                    "label": r.label,
                    "amount": float(r.amount),
                    "key": r.key,
                }
                for r in self._items
            ],
            columns=FRAME_COLUMNS,
        )
        frame["amount"] = pd.to_numeric(frame["amount"], errors="coerce").fillna(0.0).astype(float)
        frame["haystack"] = (
            frame["group"].astype(str)
            + "\n" + frame["subgroup"].astype(str)
            + "\n" + frame["source"].astype(str)
            + "\n" + frame["label"].astype(str)
        ).str.lower()
        self._frame = frame

    @classmethod
    def from_payload(cls, payload: object) -> "RowStore":
        return cls(normalize_rows(payload))

    @property
    def items(self) -> Tuple[LineItem, ...]:
        return self._items

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def keys(self) -> List[str]:
        return [r.key for r in self._items]

    def get(self, key: str) -> Optional[LineItem]:
        return self._by_key.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    @property
    def empty(self) -> bool:
        return not self._items


def is_url(source: str) -> bool:
    return str(source).lower().startswith(("http://", "https://"))


def file_signature(path: Path) -> Tuple[str, float]:
    return (str(path), path.stat().st_mtime)


@lru_cache(maxsize=4)
def _load_json_cached(signature: Tuple[str, float]) -> object:
    path = Path(signature[0])
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def fetch_json(source: str) -> object:
    if is_url(source):
        try:
            resp = requests.get(source, timeout=HTTP_TIMEOUT_S)
        except requests.RequestException as exc:
            raise DatasetLoadError(f"Failed to fetch {source}: {exc}") from exc
        if not resp.ok:
            raise DatasetLoadError(f"HTTP {resp.status_code} fetching {source}")
        try:
            return resp.json()
        except ValueError as exc:
            raise DatasetLoadError(f"Invalid JSON from {source}") from exc

    path = Path(source)
    if not path.is_file():
        raise DatasetLoadError(f"Dataset not found: {path}")
    try:
        return _load_json_cached(file_signature(path))
    except (OSError, ValueError) as exc:
        raise DatasetLoadError(f"Failed to read {path}: {exc}") from exc


def load_dataset(source: str) -> RowStore:
    payload = fetch_json(source)
    store = RowStore.from_payload(payload)
    logger.info("loaded %d line items from %s", len(store), source)
    return store


def load_metadata(source: Optional[str]) -> Optional[str]:
    """Return the sidecar's lastUpdated string, or None when the sidecar is missing or malformed."""
    if not source:
        return None
    try:
        meta = fetch_json(source)
    except DatasetLoadError as exc:
        logger.debug("metadata sidecar unavailable: %s", exc)
        return None
    if not isinstance(meta, dict):
        return None
    value = meta.get("lastUpdated")
    return str(value) if value else None
