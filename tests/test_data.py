"""
Tests for core/data.py

Row normalization from loose JSON, total-row dropping, consolidation and
dataset/metadata loading.
"""
import json

import pytest
import requests

from core import data
from core.data import (
    DatasetLoadError,
    LineItem,
    RowStore,
    coerce_line_item,
    consolidate,
    is_likely_total_row,
    load_dataset,
    load_metadata,
    make_key,
    normalize_rows,
    to_number,
)


class TestToNumber:
    @pytest.mark.parametrize("raw,expected", [
        ("1,234", 1234.0),
        ("$12.50", 12.5),
        ("-3,000,000", -3000000.0),
        (7, 7.0),
        (None, 0.0),
        ("", 0.0),
        ("n/a", 0.0),
        ("1.2.3", 0.0),
        (float("inf"), 0.0),
    ])
    def test_values(self, raw, expected):
        assert to_number(raw) == expected


class TestTotalRows:
    @pytest.mark.parametrize("value", ["", "   ", "Total", "Agency Total", "totals", "TOTAL FUNDS"])
    def test_total_like(self, value):
        assert is_likely_total_row(value)

    @pytest.mark.parametrize("value", ["Parks", "Totally Awesome Division", "Subtotal Office"])
    def test_detail_rows(self, value):
        assert not is_likely_total_row(value)


class TestCoerceLineItem:
    def test_agency_aliases(self):
        item = coerce_line_item({"Agency": " Dept ", "Division": "Parks", "Fund Source": "GRF", "Allocation": "2,000"})
        assert item == LineItem(group="Dept", subgroup="Parks", source="GRF", amount=2000.0)

    def test_fund_rows_scale_millions(self):
        item = coerce_line_item({"category": "A", "fund": "F1", "amountM": 10, "type": "Revenue"})
        assert item.amount == 10_000_000
        assert item.kind == "revenue"

    def test_amount_takes_precedence_over_millions(self):
        item = coerce_line_item({"category": "A", "fund": "F1", "amount": 5, "amountM": 10})
        assert item.amount == 5.0

    def test_missing_source_and_unknown_type(self):
        item = coerce_line_item({"category": "A", "fund": "F1", "amount": 1, "type": "transfer"})
        assert item.source == data.UNSPECIFIED_SOURCE
        assert item.kind == "spending"

    def test_unparseable_amount_is_zero(self):
        assert coerce_line_item({"agency": "A", "division": "D", "amount": "abc"}).amount == 0.0

    def test_unknown_fields_dropped(self):
        item = coerce_line_item({"agency": "A", "division": "D", "amount": 1, "extra": "x"})
        assert not hasattr(item, "extra")

    @pytest.mark.parametrize("raw", [
        {"division": "D", "amount": 1},
        {"agency": "A", "amount": 1},
        {"agency": "A", "division": "Grand Total", "amount": 1},
        "not a row",
    ])
    def test_dropped(self, raw):
        assert coerce_line_item(raw) is None


class TestNormalizeRows:
    def test_plain_list_and_rows_wrapper(self, agency_rows):
        assert normalize_rows(agency_rows) == normalize_rows({"rows": agency_rows})

    def test_drops_totals_and_blank_agency(self, agency_rows):
        rows = normalize_rows(agency_rows)
        assert len(rows) == 5
        assert all(r.subgroup != "Agency Total" for r in rows)

    @pytest.mark.parametrize("payload", [None, 42, "rows", {"data": []}, {"rows": None}])
    def test_unusable_payloads(self, payload):
        assert normalize_rows(payload) == []

    def test_consolidates_duplicates(self):
        rows = normalize_rows([
            {"agency": "A", "division": "D", "source": "S", "amount": 10},
            {"agency": "A", "division": "D", "source": "S", "amount": 5, "appropriation": "Late label"},
            {"agency": "A", "division": "D", "source": "T", "amount": 1},
        ])
        assert [(r.source, r.amount) for r in rows] == [("S", 15.0), ("T", 1.0)]
        assert rows[0].label == "Late label"

    def test_consolidate_keeps_first_seen_order(self):
        items = [LineItem("B", "x", amount=1), LineItem("A", "y", amount=2), LineItem("B", "x", amount=3)]
        assert [i.group for i in consolidate(items)] == ["B", "A"]


class TestRowStore:
    def test_keys_are_unique(self, agency_store):
        assert len(set(agency_store.keys)) == len(agency_store)

    def test_key_format(self):
        item = LineItem("A", "F1", kind="revenue")
        assert item.key == make_key("A", "F1", data.UNSPECIFIED_SOURCE, "revenue")
        assert item.key.split(data.KEY_SEP) == ["A", "F1", data.UNSPECIFIED_SOURCE, "revenue"]

    def test_frame_matches_items(self, agency_store):
        frame = agency_store.frame
        assert frame["key"].tolist() == agency_store.keys
        assert frame["amount"].sum() == pytest.approx(sum(r.amount for r in agency_store))

    def test_haystack_lowercases_text_fields(self, agency_store):
        assert "transport grants" in agency_store.frame["haystack"].iloc[3]

    def test_get(self, agency_store):
        first = agency_store.items[0]
        assert agency_store.get(first.key) is first
        assert agency_store.get("missing") is None

    def test_empty_store(self):
        store = RowStore()
        assert store.empty
        assert list(store.frame.columns)[:7] == data.FRAME_COLUMNS


class TestLoadDataset:
    def test_local_file(self, dataset_file):
        path, _ = dataset_file
        store = load_dataset(str(path))
        assert len(store) == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetLoadError):
            load_dataset(str(tmp_path / "nope.json"))

    def test_bad_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DatasetLoadError):
            load_dataset(str(path))

    def test_url_non_success_status(self, monkeypatch):
        class _Resp:
            ok = False
            status_code = 404

        monkeypatch.setattr(data.requests, "get", lambda url, timeout: _Resp())
        with pytest.raises(DatasetLoadError, match="HTTP 404"):
            load_dataset("https://example.test/budget_latest.json")

    def test_url_connection_error(self, monkeypatch):
        def _raise(url, timeout):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(data.requests, "get", _raise)
        with pytest.raises(DatasetLoadError):
            load_dataset("https://example.test/budget_latest.json")

    def test_url_success(self, monkeypatch, agency_rows):
        class _Resp:
            ok = True
            status_code = 200

            def json(self):
                return {"rows": agency_rows}

        monkeypatch.setattr(data.requests, "get", lambda url, timeout: _Resp())
        assert len(load_dataset("http://example.test/budget.json")) == 5


class TestLoadMetadata:
    def test_reads_last_updated(self, dataset_file):
        _, meta = dataset_file
        assert load_metadata(str(meta)) == "2025-07-01"

    def test_missing_sidecar_is_none(self, tmp_path):
        assert load_metadata(str(tmp_path / "budget_meta.json")) is None
        assert load_metadata(None) is None

    def test_sidecar_without_date(self, tmp_path):
        meta = tmp_path / "meta.json"
        meta.write_text(json.dumps({"other": 1}), encoding="utf-8")
        assert load_metadata(str(meta)) is None
