"""Core (UI-agnostic) conference-history logic.

This package contains:
- data loading (JSON files -> pydantic records -> pandas)
- filter normalization, URL codec and the faceted filter engine
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict) and header display helpers
"""
