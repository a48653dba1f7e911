'''
Scorecard Engine Test Suite

Test Modules:
-------------
- test_configuration.py: KPI configuration validation
  - Scoring type / data type pairing
  - Payload validation errors returned as values

- test_coercion.py: Value coercion
  - Empty input, NaN/Infinity, precision formatting (ROUND_HALF_UP)
  - Yes/No words, manual vs import failure handling

- test_scoring.py: Threshold scoring
  - Goal/Red Flag bands and inclusive boundaries
  - No-target fallback, indeterminate results, clamp
  - Yes/No and Text

- test_permissions.py: Threshold field filter
  - Unset vs explicit None

- test_ingestion.py: Ingestion pipeline
  - Authorization, coercion, scoring and note gate
  - Batches: row numbers, duplicates, atomicity
  - Idempotence

- test_transformations.py: Import transformation rules
- test_import_mapping.py: Import row mapping and DataFrame imports
- test_calculation.py: Calculated KPI equations
- test_config.py: Settings and logging setup

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

# This file enables pytest discovery of the tests directory

__all__ = []
