"""Shared fixtures: small budget datasets in both row shapes, stores and sessions."""
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.config import Settings
from core.data import RowStore
from core.session import BudgetSession


class FakeTimer:
    """Stands in for threading.Timer; tests fire it by hand."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture()
def fake_timer():
    FakeTimer.created = []
    yield FakeTimer
    FakeTimer.created = []


@pytest.fixture()
def fund_rows():
    """Category/fund/type rows with amounts in millions."""
    return [
        {"category": "A", "fund": "F1", "amountM": 10, "type": "spending"},
        {"category": "A", "fund": "F2", "amountM": 5, "type": "spending"},
        {"category": "B", "fund": "F3", "amountM": 8, "type": "spending"},
        {"category": "General Funds", "fund": "Income Tax", "amountM": 30, "type": "revenue"},
    ]


@pytest.fixture()
def agency_rows():
    """Agency/division/source rows with dollar amounts, as produced by the spreadsheet export."""
    return [
        {"Agency": "Department X", "Division": "Parks", "Funding Source": "General", "Funds": "1,000"},
        {"agency": "Department X", "division": "Libraries", "source": "Federal", "amount": 2500},
        {"agency": "Department X", "division": "Parks", "source": "Federal", "amount": 400, "appropriation": "Trail upkeep"},
        {"agency": "Department Y", "division": "Highways", "source": "Road Fund", "amount": 9000, "Line Item": "Transport grants"},
        {"agency": "Department Y", "division": "Transit", "source": "Road Fund", "amount": 3000},
        {"agency": "Department Y", "division": "Agency Total", "source": "Road Fund", "amount": 12000},
        {"agency": "", "division": "Orphan", "source": "General", "amount": 10},
    ]


@pytest.fixture()
def fund_store(fund_rows):
    return RowStore.from_payload(fund_rows)


@pytest.fixture()
def agency_store(agency_rows):
    return RowStore.from_payload({"rows": agency_rows})


@pytest.fixture()
def settings():
    return Settings(debounce_ms=150, row_height=36, viewport_height=560, overscan=10, notification_ttl_s=3.5)


@pytest.fixture()
def session(fund_store, settings, fake_timer):
    return BudgetSession(fund_store, settings, timer_factory=fake_timer)


@pytest.fixture()
def dataset_file(tmp_path, agency_rows):
    path = tmp_path / "budget_latest.json"
    path.write_text(json.dumps(agency_rows), encoding="utf-8")
    meta = tmp_path / "budget_meta.json"
    meta.write_text(json.dumps({"lastUpdated": "2025-07-01"}), encoding="utf-8")
    return path, meta
