"""
Scorecard Engine Services Module

This module contains the scoring and ingestion services of the scorecard
engine. Every service is a set of pure, stateless functions: configuration and
policy come in as arguments, results go out as pydantic models, and nothing
here performs I/O.

Services:
- configuration: KPI configuration validation (scoring/data type pairing)
- coercion: Free-text value coercion to the KPI data type
- scoring: Threshold scoring (Goal/Red Flag, Yes/No, Text)
- permissions: Updater authorization and threshold field filter
- ingestion: Single observation and batch ingestion pipeline
- transformations: Import transformation rules on pandas DataFrames
- import_mapping: Import row mapping onto KPI observations
- calculation: Calculated KPI equations

The caller persists the returned ScoredValue rows and owns the transaction.
"""

# =============================================================================
# Configuration Service Exports
# Scoring type / data type validation at configuration time
# =============================================================================

from scorecard_engine.services.configuration import (
    check_configuration_consistency,
    build_kpi_configuration,
    apply_configuration_update,
)

# =============================================================================
# Coercion Service Exports
# Parses raw text values and formats numbers to the KPI decimal precision
# =============================================================================

from scorecard_engine.services.coercion import (
    parse_decimal,
    format_decimal,
    coerce_numeric,
    coerce_yes_no,
    coerce_text,
    coerce_observation,
)

# =============================================================================
# Scoring Service Exports
# The single scoring function shared by manual, import and calculated paths
# =============================================================================

from scorecard_engine.services.scoring import (
    INDETERMINATE,
    clamp_score,
    round_score,
    score_goal_red_flag,
    score_yes_no,
    score_value,
)

# =============================================================================
# Permission Service Exports
# =============================================================================

from scorecard_engine.services.permissions import (
    is_registered_updater,
    can_modify_thresholds,
    filter_writable_fields,
)

# =============================================================================
# Ingestion Service Exports
# received -> authorization_checked -> coerced -> scored
# -> note_gate_checked -> upsert_ready, or rejected
# =============================================================================

from scorecard_engine.services.ingestion import (
    ingest_observation,
    ingest_batch,
)

# =============================================================================
# Import Service Exports
# Transformation rules, row mapping and batch import of DataFrames
# =============================================================================

from scorecard_engine.services.transformations import (
    parse_condition,
    apply_transformation,
    apply_transformations,
)

from scorecard_engine.services.import_mapping import (
    get_mapped_value,
    normalize_period_date,
    map_rows_to_observations,
    import_dataframe,
)

# =============================================================================
# Calculation Service Exports
# =============================================================================

from scorecard_engine.services.calculation import (
    extract_kpi_references,
    substitute_kpi_values,
    evaluate_expression,
    evaluate_equation,
    build_calculated_observation,
)


__all__ = [
    # Configuration
    'check_configuration_consistency',
    'build_kpi_configuration',
    'apply_configuration_update',
    # Coercion
    'parse_decimal',
    'format_decimal',
    'coerce_numeric',
    'coerce_yes_no',
    'coerce_text',
    'coerce_observation',
    # Scoring
    'INDETERMINATE',
    'clamp_score',
    'round_score',
    'score_goal_red_flag',
    'score_yes_no',
    'score_value',
    # Permissions
    'is_registered_updater',
    'can_modify_thresholds',
    'filter_writable_fields',
    # Ingestion
    'ingest_observation',
    'ingest_batch',
    # Import
    'parse_condition',
    'apply_transformation',
    'apply_transformations',
    'get_mapped_value',
    'normalize_period_date',
    'map_rows_to_observations',
    'import_dataframe',
    # Calculation
    'extract_kpi_references',
    'substitute_kpi_values',
    'evaluate_expression',
    'evaluate_equation',
    'build_calculated_observation',
]
