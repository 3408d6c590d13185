"""Core (UI-agnostic) budget explorer logic.

This package contains:
- row loading and normalization (JSON -> LineItem / pandas)
- the adjustment ledger, scenarios and notifications
- aggregation, filtering and windowing
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
