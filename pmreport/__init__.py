"""Core (UI-agnostic) PM report logic.

This package contains:
- threshold band configuration and normalization
- variance / budget-status classification
- project aggregation (by band, by PM, by budget status)
- CSV ingestion and week storage
- chart helpers (Altair -> Vega-Lite spec dict)
"""
