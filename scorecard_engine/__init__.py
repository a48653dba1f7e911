"""
Scorecard Engine Package.

Scoring and value-ingestion library for KPI scorecards. Turns raw reported
values (manual entries, imported spreadsheet/database rows, calculated
equations) into normalized, scored KPI values ready to be persisted.

Subpackages:
    - core: Configuration and logging setup
    - models: Pydantic schemas and enums
    - services: Coercion, scoring, permission filtering, ingestion,
      import transformations/mapping and calculated KPIs

The engine is pure and synchronous: it performs no I/O and returns values
for the caller to persist.
"""

__version__ = "1.0.0"
