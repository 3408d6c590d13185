from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.aggregation import Dimension, DrilldownState
from core.config import Settings
from core.data import DatasetLoadError, RowStore, load_dataset, load_metadata
from core.debounce import Debouncer
from core.export import export_csv, export_filename
from core.filters import CategoricalField, FilterState
from core.ledger import AdjustmentLedger, DraftLedger, Scenario, ScenarioCatalog
from core.notifications import NotificationCenter


logger = logging.getLogger(__name__)


class BudgetSession:
    """Everything one dashboard user mutates: ledgers, scenarios, notifications and view state.

    The compute modules never read this object; they are handed ``store``,
    ``ledger`` and ``filters`` explicitly.
    """

    def __init__(
        self,
        store: Optional[RowStore] = None,
        settings: Optional[Settings] = None,
        *,
        notifications: Optional[NotificationCenter] = None,
        scenarios: Optional[ScenarioCatalog] = None,
        timer_factory: Optional[Callable[..., Any]] = None,
    ):
        self.settings = settings or Settings()
        self.store = store or RowStore()
        self.ledger = AdjustmentLedger()
        self.drafts = DraftLedger()
        self.scenarios = scenarios or ScenarioCatalog()
        self.notifications = notifications or NotificationCenter(ttl_s=self.settings.notification_ttl_s)
        self.drilldown = DrilldownState()
        self.filters = FilterState()
        self.pending_query = ""
        self.scroll_offset = 0.0
        self.last_updated: Optional[str] = None
        self.load_error: Optional[str] = None
        self.loaded = store is not None
        self.closed = False
        self._load_token = 0

        debounce_kwargs = {"timer_factory": timer_factory} if timer_factory is not None else {}
        self._query_debouncer = Debouncer(self.settings.debounce_ms / 1000.0, self._apply_query, **debounce_kwargs)

    # ---------------- Loading ----------------
    def begin_load(self) -> int:
        self._load_token += 1
        return self._load_token

    def finish_load(
        self,
        token: int,
        store: Optional[RowStore] = None,
        error: Optional[BaseException] = None,
        last_updated: Optional[str] = None,
    ) -> bool:
        """Apply a load result unless the session was closed or a newer load started."""
        if self.closed or token != self._load_token:
            logger.debug("ignoring stale load result (token=%s, current=%s)", token, self._load_token)
            return False
        if error is not None or store is None:
            self.store = RowStore()
            self.loaded = False
            self.load_error = str(error) if error is not None else "No dataset returned"
            self.notifications.error(f"Failed to load budget data: {self.load_error}")
            return True
        self.store = store
        self.loaded = True
        self.load_error = None
        self.last_updated = last_updated
        self.set_scroll(0)
        return True

    def load(self, source: Optional[str] = None, meta_source: Optional[str] = None) -> bool:
        token = self.begin_load()
        source = source or self.settings.data_url
        meta_source = meta_source if meta_source is not None else self.settings.meta_url
        try:
            store = load_dataset(source)
        except DatasetLoadError as exc:
            logger.warning("dataset load failed: %s", exc)
            self.finish_load(token, error=exc)
            return False
        self.finish_load(token, store=store, last_updated=load_metadata(meta_source))
        return self.loaded

    def close(self) -> None:
        self.closed = True
        self._query_debouncer.cancel()

    # ---------------- Adjustments ----------------
    def set_draft(self, key: str, raw_text: str) -> bool:
        """Record draft text for a line item; keys the store does not hold are refused."""
        if key not in self.store:
            self.notifications.error(f"Unknown line item: {key}")
            return False
        self.drafts.set(key, raw_text)
        return True

    def commit_all(self) -> Dict[str, float]:
        self.drafts.commit(self.ledger)
        self.notifications.success("Adjustments applied")
        return self.ledger.snapshot()

    def remove(self, key: str) -> None:
        self.ledger.remove(key)
        self.drafts.remove(key)

    def reset_all(self) -> None:
        self.ledger.clear()
        self.drafts.clear()
        self.notifications.success("All adjustments cleared")

    # ---------------- Scenarios ----------------
    def save_scenario(self, name: Optional[str], description: str = "") -> Optional[Scenario]:
        name = (name or "").strip()
        if not len(self.ledger):
            self.notifications.error("No adjustments to save")
            return None
        if not name:
            self.notifications.error("Scenario name is required")
            return None
        scenario = self.scenarios.save(name, self.ledger.snapshot(), description)
        self.notifications.success(f'Scenario "{name}" saved')
        return scenario

    def load_scenario(self, name: str) -> bool:
        scenario = self.scenarios.get(name)
        if scenario is None:
            self.notifications.error(f"Unknown scenario: {name}")
            return False
        adjustments = {k: v for k, v in scenario.adjustments.items() if k in self.store}
        if len(adjustments) < len(scenario.adjustments):
            logger.info("scenario %s: skipped %d keys missing from the dataset", name, len(scenario.adjustments) - len(adjustments))
        self.ledger.replace(adjustments)
        self.drafts.regenerate(adjustments)
        self.notifications.success(f"Loaded scenario: {name}")
        return True

    def list_scenarios(self) -> List[Dict[str, object]]:
        return [s.to_dict() for s in self.scenarios.list()]

    # ---------------- Drill-down ----------------
    def select_group(self, group: Optional[str]) -> DrilldownState:
        self.drilldown = self.drilldown.select(group)
        return self.drilldown

    def set_dimension(self, dimension: Dimension) -> DrilldownState:
        self.drilldown = self.drilldown.with_dimension(dimension)
        return self.drilldown

    def clear_group(self) -> DrilldownState:
        self.drilldown = self.drilldown.clear()
        return self.drilldown

    # ---------------- Explorer ----------------
    def _set_filters(self, state: FilterState) -> None:
        if state != self.filters:
            self.filters = state
            self.scroll_offset = 0.0

    def set_filter(self, name: CategoricalField, value: Optional[str]) -> FilterState:
        self._set_filters(self.filters.with_selection(name, value))
        return self.filters

    def type_query(self, text: str) -> None:
        self.pending_query = text or ""
        self._query_debouncer.schedule(self.pending_query)

    def flush_query(self) -> FilterState:
        self._query_debouncer.flush()
        return self.filters

    def submit_query(self, text: str) -> FilterState:
        """Apply a query immediately, dropping any pending debounced one."""
        self._query_debouncer.cancel()
        self.pending_query = text or ""
        self._apply_query(self.pending_query)
        return self.filters

    def _apply_query(self, text: str) -> None:
        self._set_filters(self.filters.with_query(text))

    def set_scroll(self, offset: float) -> None:
        self.scroll_offset = max(0.0, float(offset or 0))

    # ---------------- Export ----------------
    def export_csv(self, name: Optional[str] = None, today: Optional[date] = None) -> Optional[Tuple[str, str]]:
        if not len(self.ledger):
            self.notifications.error("No adjustments to export")
            return None
        filename = export_filename(name, today)
        text = export_csv(self.store, self.ledger)
        self.notifications.success("Scenario exported")
        return filename, text
