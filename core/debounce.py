from __future__ import annotations

import threading
from typing import Any, Callable, Optional, Tuple


class Debouncer:
    """Cancel-and-restart timer: only the last scheduled call fires, at most once.

    ``timer_factory`` must build an object with ``start()`` and ``cancel()``
    from ``(interval, function)``; ``threading.Timer`` by default.
    """

    def __init__(
        self,
        delay_s: float,
        callback: Callable[..., Any],
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        self.delay_s = delay_s
        self._callback = callback
        self._timer_factory = timer_factory
        self._timer: Optional[Any] = None
        self._args: Tuple[Any, ...] = ()
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self, *args: Any) -> None:
        self.cancel()
        self._generation += 1
        generation = self._generation
        self._args = args
        timer = self._timer_factory(self.delay_s, lambda: self._fire(generation))
        if hasattr(timer, "daemon"):
            timer.daemon = True
        self._timer = timer
        timer.start()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._generation += 1

    def flush(self) -> None:
        if self._timer is None:
            return
        self.cancel()
        self._callback(*self._args)

    def _fire(self, generation: int) -> None:
        # A timer cancelled too late to stop its thread must not fire a stale call.
        if generation != self._generation:
            return
        self._timer = None
        self._generation += 1
        self._callback(*self._args)
