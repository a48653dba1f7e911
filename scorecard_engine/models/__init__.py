"""
Package initialization file for scorecard engine models.

This module exports all Pydantic schemas and enumerations from schemas.py and
enums.py, making them importable from scorecard_engine.models directly.

Usage:
    from scorecard_engine.models import (
        ScoringType,
        KpiConfiguration,
        RawObservation,
        ScoredValue,
        # ... etc
    )
"""

# =============================================================================
# Enums - Import and re-export all enumerations from enums.py
# =============================================================================

from scorecard_engine.models.enums import (
    # KPI configuration enums
    ScoringType,
    DataType,
    NUMERIC_DATA_TYPES,
    CalendarFrequency,
    AggregationType,
    # Scoring output
    KpiColor,
    # Ingestion pipeline enums
    IngestionSource,
    IngestionStage,
    RejectionReason,
    TransformationType,
)

# =============================================================================
# Schemas - Import and re-export all Pydantic models from schemas.py
# =============================================================================

from scorecard_engine.models.schemas import (
    # Limits and field groups
    MAX_VALUE_LENGTH,
    MAX_NOTE_LENGTH,
    MAX_EQUATION_LENGTH,
    MAX_DECIMAL_PRECISION,
    THRESHOLD_FIELDS,
    VALUE_FIELDS,
    is_consistent_configuration,
    # Configuration
    KpiConfiguration,
    # Updaters and observations
    UpdaterGrant,
    UpdaterIdentity,
    RawObservation,
    KpiThresholds,
    # Coercion and scoring
    CoercionError,
    CoercionResult,
    ScoreResult,
    ScoredValue,
    # Errors, policy and outcomes
    IngestionError,
    IngestionPolicy,
    IngestionOutcome,
    BatchIngestionResult,
    # Import mapping and transformations
    KpiMappingField,
    KpiMapping,
    TransformationRule,
    KpiReference,
)

__all__ = [
    # Enums
    'ScoringType',
    'DataType',
    'NUMERIC_DATA_TYPES',
    'CalendarFrequency',
    'AggregationType',
    'KpiColor',
    'IngestionSource',
    'IngestionStage',
    'RejectionReason',
    'TransformationType',
    # Schemas
    'MAX_VALUE_LENGTH',
    'MAX_NOTE_LENGTH',
    'MAX_EQUATION_LENGTH',
    'MAX_DECIMAL_PRECISION',
    'THRESHOLD_FIELDS',
    'VALUE_FIELDS',
    'is_consistent_configuration',
    'KpiConfiguration',
    'UpdaterGrant',
    'UpdaterIdentity',
    'RawObservation',
    'KpiThresholds',
    'CoercionError',
    'CoercionResult',
    'ScoreResult',
    'ScoredValue',
    'IngestionError',
    'IngestionPolicy',
    'IngestionOutcome',
    'BatchIngestionResult',
    'KpiMappingField',
    'KpiMapping',
    'TransformationRule',
    'KpiReference',
]
