from __future__ import annotations

import itertools
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Literal

Severity = Literal["info", "success", "error"]

DEFAULT_TTL_S = 3.5


@dataclass(frozen=True)
class Notification:
    id: int
    message: str
    severity: Severity
    created_at: float
    expires_at: float


class NotificationCenter:
    """Single user-visible channel; entries drop out of active() once their TTL passes."""

    def __init__(self, ttl_s: float = DEFAULT_TTL_S, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = ttl_s
        self._clock = clock
        self._ids = itertools.count(1)
        self._items: List[Notification] = []

    def notify(self, message: str, severity: Severity = "info") -> Notification:
        now = self._clock()
        note = Notification(
            id=next(self._ids),
            message=message,
            severity=severity,
            created_at=now,
            expires_at=now + self.ttl_s,
        )
        self._items.append(note)
        return note

    def info(self, message: str) -> Notification:
        return self.notify(message, "info")

    def success(self, message: str) -> Notification:
        return self.notify(message, "success")

    def error(self, message: str) -> Notification:
        return self.notify(message, "error")

    def active(self) -> List[Notification]:
        now = self._clock()
        self._items = [n for n in self._items if n.expires_at > now]
        return list(self._items)

    def dismiss(self, note_id: int) -> None:
        self._items = [n for n in self._items if n.id != note_id]

    def latest(self) -> Notification | None:
        active = self.active()
        return active[-1] if active else None

    def to_dicts(self) -> List[Dict[str, object]]:
        return [asdict(n) for n in self.active()]
