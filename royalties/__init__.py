"""Core (UI-agnostic) royalty dashboard logic.

This package contains:
- record types and validation
- CSV import/export
- currency conversion and aggregations (pandas)
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- the record store and its best-effort JSON persistence
"""
