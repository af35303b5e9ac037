"""Core (UI-agnostic) service-records dashboard logic.

This package contains:
- the normalized service record model
- filter normalization and application
- chart data aggregation (+ a bounded memo cache)
- KPI statistics
- chart helpers (Altair -> Vega-Lite spec dict)
"""
