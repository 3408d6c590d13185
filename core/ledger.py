from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterator, List, Mapping, Optional


_CURRENCY_RE = re.compile(r"[^0-9.\-]")


def parse_currency(text: object) -> float:
    """Parse a partially typed delta ("-3,000,000", "$12.5") to float; anything unusable is 0."""
    if text is None:
        return 0.0
    cleaned = _CURRENCY_RE.sub("", str(text))
    if not cleaned:
        return 0.0
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def format_currency_with_commas(value: float) -> str:
    rounded = Decimal(str(float(value or 0))).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"{int(rounded):,}"


class AdjustmentLedger:
    """Committed deltas (currency units) keyed by line item identity key."""

    def __init__(self, values: Optional[Mapping[str, float]] = None):
        self._values: Dict[str, float] = {k: float(v) for k, v in (values or {}).items()}

    def get(self, key: str, default: float = 0.0) -> float:
        return self._values.get(key, default)

    def set(self, key: str, delta: float) -> None:
        self._values[key] = float(delta)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()

    def snapshot(self) -> Dict[str, float]:
        return dict(self._values)

    def replace(self, values: Mapping[str, float]) -> None:
        self._values = {k: float(v) for k, v in values.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def items(self):
        return self._values.items()


class DraftLedger:
    """Raw, possibly invalid text typed per key; only commit() touches the committed ledger."""

    def __init__(self):
        self._text: Dict[str, str] = {}

    def set(self, key: str, raw_text: str) -> None:
        self._text[key] = "" if raw_text is None else str(raw_text)

    def get(self, key: str, default: str = "") -> str:
        return self._text.get(key, default)

    def remove(self, key: str) -> None:
        self._text.pop(key, None)

    def clear(self) -> None:
        self._text.clear()

    def snapshot(self) -> Dict[str, str]:
        return dict(self._text)

    def commit(self, ledger: AdjustmentLedger) -> None:
        for key, text in self._text.items():
            ledger.set(key, parse_currency(text))

    def regenerate(self, values: Mapping[str, float]) -> None:
        self._text = {k: format_currency_with_commas(v) for k, v in values.items()}

    def __len__(self) -> int:
        return len(self._text)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Scenario:
    name: str
    adjustments: Dict[str, float] = field(default_factory=dict)
    description: str = ""
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "adjustments": dict(self.adjustments),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "adjustment_count": len(self.adjustments),
        }


class ScenarioCatalog:
    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._scenarios: Dict[str, Scenario] = {}
        self._clock = clock

    def save(self, name: str, adjustments: Mapping[str, float], description: str = "") -> Scenario:
        scenario = Scenario(
            name=name,
            adjustments={k: float(v) for k, v in adjustments.items()},
            description=description or "",
            created_at=self._clock(),
        )
        self._scenarios[name] = scenario
        return scenario

    def get(self, name: str) -> Optional[Scenario]:
        return self._scenarios.get(name)

    def names(self) -> List[str]:
        return sorted(self._scenarios)

    def list(self) -> List[Scenario]:
        return sorted(self._scenarios.values(), key=lambda s: s.created_at, reverse=True)

    def __contains__(self, name: object) -> bool:
        return name in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)
