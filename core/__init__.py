"""Core (UI-agnostic) request reporting logic.

This package contains:
- record normalization (loose upstream rows -> typed records)
- monthly series and latest-month department cross-tab aggregation
- the report facade (never raises, falls back to an empty report)
- chart helpers (Altair -> Vega-Lite spec dict)
- workbook / snapshot exports
"""
