"""Tests for core/ledger.py and core/notifications.py."""
from datetime import datetime, timedelta, timezone

import pytest

from core.ledger import (
    AdjustmentLedger,
    DraftLedger,
    ScenarioCatalog,
    format_currency_with_commas,
    parse_currency,
)
from core.notifications import NotificationCenter


@pytest.mark.parametrize("text,expected", [
    ("-3,000,000", -3_000_000.0),
    ("$1,250.75", 1250.75),
    ("  42 ", 42.0),
    ("", 0.0),
    (None, 0.0),
    ("-", 0.0),
    ("abc", 0.0),
    ("1-2", 0.0),
])
def test_parse_currency(text, expected):
    assert parse_currency(text) == expected


@pytest.mark.parametrize("value,expected", [
    (-3_000_000, "-3,000,000"),
    (1234.5, "1,235"),
    (1234.4, "1,234"),
    (0, "0"),
    (-0.5, "-1"),
])
def test_format_currency_with_commas(value, expected):
    assert format_currency_with_commas(value) == expected


class TestDraftLedger:
    def test_commit_overwrites_only_drafted_keys(self):
        ledger = AdjustmentLedger({"a": 100.0, "b": 200.0})
        drafts = DraftLedger()
        drafts.set("a", "-1,000")
        drafts.set("c", "oops")
        drafts.commit(ledger)
        assert ledger.snapshot() == {"a": -1000.0, "b": 200.0, "c": 0.0}

    def test_commit_is_idempotent(self):
        ledger = AdjustmentLedger()
        drafts = DraftLedger()
        drafts.set("a", "5,000")
        drafts.commit(ledger)
        first = ledger.snapshot()
        drafts.commit(ledger)
        assert ledger.snapshot() == first

    def test_stores_text_verbatim(self):
        drafts = DraftLedger()
        drafts.set("a", "-3,0")
        assert drafts.get("a") == "-3,0"

    def test_regenerate(self):
        drafts = DraftLedger()
        drafts.set("stale", "1")
        drafts.regenerate({"a": -3_000_000.4})
        assert drafts.snapshot() == {"a": "-3,000,000"}


class TestAdjustmentLedger:
    def test_remove_missing_key_is_noop(self):
        ledger = AdjustmentLedger({"a": 1})
        ledger.remove("zzz")
        assert ledger.snapshot() == {"a": 1.0}

    def test_snapshot_is_a_copy(self):
        ledger = AdjustmentLedger({"a": 1})
        snap = ledger.snapshot()
        snap["a"] = 99
        assert ledger.get("a") == 1.0


class TestScenarioCatalog:
    def test_snapshot_not_affected_by_later_mutation(self):
        catalog = ScenarioCatalog()
        source = {"a": 1.0}
        catalog.save("A", source)
        source["a"] = 50.0
        assert catalog.get("A").adjustments == {"a": 1.0}

    def test_overwrite_replaces_silently(self):
        catalog = ScenarioCatalog()
        catalog.save("A", {"a": 1.0}, "first")
        catalog.save("A", {"b": 2.0}, "second")
        assert len(catalog) == 1
        assert catalog.get("A").description == "second"

    def test_list_newest_first(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        ticks = iter([start, start + timedelta(minutes=1)])
        catalog = ScenarioCatalog(clock=lambda: next(ticks))
        catalog.save("old", {"a": 1.0})
        catalog.save("new", {"a": 2.0})
        assert [s.name for s in catalog.list()] == ["new", "old"]
        assert catalog.get("old").to_dict()["created_at"] == "2025-01-01T00:00:00+00:00"


class TestNotificationCenter:
    def test_auto_dismissal(self):
        now = [100.0]
        center = NotificationCenter(ttl_s=3.5, clock=lambda: now[0])
        center.success("saved")
        center.error("nope")
        assert [n.severity for n in center.active()] == ["success", "error"]
        now[0] = 103.6
        assert center.active() == []

    def test_ids_increase_and_dismiss(self):
        center = NotificationCenter(clock=lambda: 0.0)
        a = center.info("a")
        b = center.info("b")
        assert b.id > a.id
        center.dismiss(a.id)
        assert [n.message for n in center.active()] == ["b"]
        assert center.latest().message == "b"
        assert center.to_dicts()[0]["severity"] == "info"
