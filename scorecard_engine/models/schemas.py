"""
Pydantic models for the scorecard engine.

This module provides type-safe data validation for every value that flows
through the engine: KPI configuration, raw observations, updater grants,
scored values, ingestion outcomes, and the import mapping/transformation
configuration.

Unset vs explicit None matters for threshold fields: an updater without the
threshold grant must leave stored thresholds untouched, while an explicit None
from a privileged updater clears them. Both cases are tracked through
pydantic's ``model_fields_set``.

All models use Pydantic v2 syntax.
"""

from datetime import date as DateType
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from scorecard_engine.models.enums import (
    AggregationType,
    CalendarFrequency,
    DataType,
    IngestionSource,
    IngestionStage,
    KpiColor,
    NUMERIC_DATA_TYPES,
    RejectionReason,
    ScoringType,
    TransformationType,
)


# =============================================================================
# Field Limits
# =============================================================================

MAX_VALUE_LENGTH = 255
MAX_NOTE_LENGTH = 1000
MAX_EQUATION_LENGTH = 1000
MAX_DECIMAL_PRECISION = 20

# Fields an updater may only write with the threshold grant
THRESHOLD_FIELDS: Tuple[str, ...] = ('target_value', 'threshold_red', 'threshold_yellow')

# Raw value fields subject to coercion
VALUE_FIELDS: Tuple[str, ...] = ('actual_value',) + THRESHOLD_FIELDS


def is_consistent_configuration(scoring_type: ScoringType, data_type: DataType) -> bool:
    """
    Check the scoring type / data type pairing rule.

    - Goal/Red Flag requires a numeric data type (Number, Percentage, Currency)
    - Yes/No requires Number (values 0/1)
    - Text requires Text
    """
    if scoring_type == ScoringType.GOAL_RED_FLAG:
        return data_type in NUMERIC_DATA_TYPES
    if scoring_type == ScoringType.YES_NO:
        return data_type == DataType.NUMBER
    if scoring_type == ScoringType.TEXT:
        return data_type == DataType.TEXT
    return False


# =============================================================================
# KPI Configuration
# =============================================================================


class KpiConfiguration(BaseModel):
    """
    Immutable description of one KPI, as read by the scoring engine.

    An inconsistent scoring type / data type pairing cannot be constructed;
    the check runs here, at configuration time, and never during scoring.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "kpi_id": "3f1c9a52-8a7e-4a53-9a43-1d7c7b0b2f10",
                "scoring_type": "Goal/Red Flag",
                "data_type": "Currency",
                "decimal_precision": 2,
                "calendar_frequency": "Monthly",
                "aggregation_type": "Sum",
            }
        }
    )

    kpi_id: str = Field(
        ...,
        min_length=1,
        description="KPI identifier"
    )
    scoring_type: ScoringType = Field(
        ...,
        description="Scoring rule family"
    )
    data_type: DataType = Field(
        ...,
        description="Declared data type of reported values"
    )
    decimal_precision: int = Field(
        default=0,
        ge=0,
        le=MAX_DECIMAL_PRECISION,
        description="Fractional digits used for every numeric output"
    )
    calendar_frequency: CalendarFrequency = Field(
        default=CalendarFrequency.MONTHLY,
        description="Expected reporting cadence"
    )
    aggregation_type: AggregationType = Field(
        default=AggregationType.LAST_VALUE,
        description="Aggregation across periods"
    )
    is_manual_update: bool = Field(
        default=False,
        description="Whether values are entered manually by updaters"
    )
    calculation_equation: Optional[str] = Field(
        default=None,
        max_length=MAX_EQUATION_LENGTH,
        description="Equation referencing other KPIs as [KPI:<id or name>]"
    )
    rollup_enabled: bool = Field(
        default=False,
        description="Whether child organization values roll up into this KPI"
    )

    @model_validator(mode='after')
    def _check_scoring_data_type(self) -> 'KpiConfiguration':
        if not is_consistent_configuration(self.scoring_type, self.data_type):
            raise ValueError(
                f"Inconsistent KPI configuration: scoring type '{self.scoring_type.value}' "
                f"does not accept data type '{self.data_type.value}'"
            )
        return self

    @property
    def is_numeric(self) -> bool:
        return self.data_type in NUMERIC_DATA_TYPES


# =============================================================================
# Updaters and Observations
# =============================================================================


class UpdaterGrant(BaseModel):
    """
    Registration of a user as an updater for one KPI.

    The existence of the grant is what authorizes the user to submit values;
    can_modify_thresholds additionally lets them write target and thresholds.
    """
    model_config = ConfigDict(frozen=True)

    kpi_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    can_modify_thresholds: bool = Field(
        default=False,
        description="Whether the updater may write target and thresholds"
    )


class UpdaterIdentity(BaseModel):
    """Whoever supplied an observation, with their grant when registered."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    grant: Optional[UpdaterGrant] = Field(
        default=None,
        description="Updater grant for the observed KPI, None when not registered"
    )


class RawObservation(BaseModel):
    """
    One candidate update for one KPI and one reporting period.

    Value fields are untyped text as received from a form, spreadsheet cell or
    database row. Leaving a field unset is different from passing None: unset
    fields are not written on upsert.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "kpi_id": "3f1c9a52-8a7e-4a53-9a43-1d7c7b0b2f10",
                "period_date": "2026-01-01",
                "actual_value": "140000",
                "target_value": "150000",
                "threshold_red": "120000",
                "threshold_yellow": "135000",
                "note": None,
                "requested_by": {"user_id": "user_123"},
            }
        }
    )

    kpi_id: str = Field(..., min_length=1)
    period_date: DateType = Field(
        ...,
        description="Calendar date identifying the reporting period"
    )
    actual_value: Optional[str] = Field(default=None, max_length=MAX_VALUE_LENGTH)
    target_value: Optional[str] = Field(default=None, max_length=MAX_VALUE_LENGTH)
    threshold_red: Optional[str] = Field(default=None, max_length=MAX_VALUE_LENGTH)
    threshold_yellow: Optional[str] = Field(default=None, max_length=MAX_VALUE_LENGTH)
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)
    requested_by: UpdaterIdentity

    def is_set(self, field_name: str) -> bool:
        """Whether the field was explicitly supplied, None included."""
        return field_name in self.model_fields_set


class KpiThresholds(BaseModel):
    """
    Target and thresholds currently stored for a (KPI, period) row.

    Used as the scoring fallback when the updater could not supply them.
    """
    target_value: Optional[str] = None
    threshold_red: Optional[str] = None
    threshold_yellow: Optional[str] = None


# =============================================================================
# Coercion and Scoring Results
# =============================================================================


class CoercionError(BaseModel):
    """A value that could not be parsed as required by the KPI data type."""
    field: str = Field(..., description="Observation field that failed")
    raw_value: Optional[str] = Field(default=None, description="Value as received")
    message: str = Field(..., description="Error message")
    row_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Batch row where the value was found"
    )


class CoercionResult(BaseModel):
    """
    Outcome of coercing one raw field.

    On success ``value`` holds the normalized text (None when absent) and
    ``number`` the parsed decimal for numeric fields.
    """
    field: str
    value: Optional[str] = None
    number: Optional[Decimal] = None
    error: Optional[CoercionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ScoreResult(BaseModel):
    """Score in [0, 100] and color, both present or both absent."""
    model_config = ConfigDict(frozen=True)

    score: Optional[float] = Field(default=None, ge=0, le=100)
    color: Optional[KpiColor] = None

    @model_validator(mode='after')
    def _check_pair(self) -> 'ScoreResult':
        if (self.score is None) != (self.color is None):
            raise ValueError("score and color must both be set or both be None")
        return self

    @property
    def is_indeterminate(self) -> bool:
        return self.score is None


class ScoredValue(BaseModel):
    """
    Engine output for one (KPI, period): the row to upsert.

    Threshold fields may be left unset when the updater lacked the threshold
    grant; upsert_payload() omits them so stored thresholds are preserved.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "kpi_id": "3f1c9a52-8a7e-4a53-9a43-1d7c7b0b2f10",
                "period_date": "2026-01-01",
                "actual_value": "140000.00",
                "target_value": "150000.00",
                "threshold_red": "120000.00",
                "threshold_yellow": "135000.00",
                "score": 66.67,
                "color": "Yellow",
                "note": None,
                "is_manual_entry": True,
                "updated_by_user_id": "user_123",
            }
        }
    )

    kpi_id: str
    period_date: DateType
    actual_value: Optional[str] = None
    target_value: Optional[str] = None
    threshold_red: Optional[str] = None
    threshold_yellow: Optional[str] = None
    score: Optional[float] = Field(default=None, ge=0, le=100)
    color: Optional[KpiColor] = None
    note: Optional[str] = None
    is_manual_entry: bool = False
    updated_by_user_id: Optional[str] = None

    @model_validator(mode='after')
    def _check_score_color(self) -> 'ScoredValue':
        if (self.score is None) != (self.color is None):
            raise ValueError("score and color must both be set or both be None")
        return self

    @property
    def upsert_key(self) -> Tuple[str, DateType]:
        return (self.kpi_id, self.period_date)

    def is_set(self, field_name: str) -> bool:
        return field_name in self.model_fields_set

    def upsert_payload(self) -> Dict[str, Any]:
        """
        Columns to write for this row.

        Every non-key column is overwritten except threshold fields that were
        never set.
        """
        payload = self.model_dump(mode='json')
        for field_name in THRESHOLD_FIELDS:
            if not self.is_set(field_name):
                payload.pop(field_name, None)
        return payload


# =============================================================================
# Errors, Policy and Outcomes
# =============================================================================


class IngestionError(BaseModel):
    """
    Tagged rejection reported back to the caller.

    Used for configuration, authorization, coercion and policy failures, and
    for rows skipped during imports.
    """
    reason: RejectionReason = Field(..., description="Rejection tag")
    message: str = Field(..., description="Error message")
    field: Optional[str] = Field(default=None, description="Field with the error")
    kpi_id: Optional[str] = Field(default=None)
    row_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Row number where error occurred"
    )


class IngestionPolicy(BaseModel):
    """
    Policy flags threaded explicitly into ingestion calls.

    Build one per request or batch with from_settings() rather than reading
    global state during ingestion.
    """
    model_config = ConfigDict(frozen=True)

    require_note_on_red: bool = False

    @classmethod
    def from_settings(cls, settings: Optional[Any] = None) -> 'IngestionPolicy':
        if settings is None:
            from scorecard_engine.core.config import get_settings
            settings = get_settings()
        return cls(require_note_on_red=settings.require_note_for_red_kpi)


class IngestionOutcome(BaseModel):
    """
    Result of ingesting one observation.

    ``stage`` is UPSERT_READY with a scored value on success, or REJECTED with
    an error. Non-fatal coercion problems are listed in ``warnings``.
    """
    stage: IngestionStage
    source: IngestionSource
    scored_value: Optional[ScoredValue] = None
    error: Optional[IngestionError] = None
    warnings: List[CoercionError] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.stage == IngestionStage.UPSERT_READY and self.scored_value is not None


class BatchIngestionResult(BaseModel):
    """
    Result of ingesting a batch of observations.

    ``scored_values`` is what the caller upserts inside one transaction; with
    atomic batches it is empty whenever any row was rejected.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "rows_processed": 12,
                "rows_accepted": 12,
                "scored_values": [],
                "errors": [],
                "warnings": []
            }
        }
    )

    success: bool = Field(..., description="Whether every row was accepted")
    rows_processed: int = Field(..., ge=0)
    rows_accepted: int = Field(..., ge=0)
    scored_values: List[ScoredValue] = Field(default_factory=list)
    errors: List[IngestionError] = Field(default_factory=list)
    warnings: List[CoercionError] = Field(default_factory=list)


# =============================================================================
# Import Mapping and Transformations
# =============================================================================


class KpiMappingField(BaseModel):
    """How one logical field is read from a source row."""
    source_field: str = Field(..., min_length=1, description="Source column name")
    default_value: Optional[str] = Field(
        default=None,
        description="Value used when the source cell is empty"
    )


class KpiMapping(BaseModel):
    """Mapping of source columns onto the logical fields of one KPI."""
    kpi_id: str = Field(..., min_length=1)
    period_date: KpiMappingField
    actual_value: KpiMappingField
    target_value: Optional[KpiMappingField] = None
    threshold_red: Optional[KpiMappingField] = None
    threshold_yellow: Optional[KpiMappingField] = None
    note: Optional[KpiMappingField] = None


class TransformationRule(BaseModel):
    """
    One transformation applied to imported rows.

    Parameters by type:
        filter: {"condition": "value > 100"}
        regex_replace: {"pattern": str, "replacement": str}
        set_default: {"defaultValue": Any}
        data_type_conversion: {"targetType": "number" | "string" | "date"}
    """
    type: TransformationType
    field: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class KpiReference(BaseModel):
    """A [KPI:...] reference found in a calculation equation."""
    model_config = ConfigDict(frozen=True)

    identifier: str
    is_id: bool
    original_match: str


__all__ = [
    "MAX_VALUE_LENGTH",
    "MAX_NOTE_LENGTH",
    "MAX_EQUATION_LENGTH",
    "MAX_DECIMAL_PRECISION",
    "THRESHOLD_FIELDS",
    "VALUE_FIELDS",
    "is_consistent_configuration",
    "KpiConfiguration",
    "UpdaterGrant",
    "UpdaterIdentity",
    "RawObservation",
    "KpiThresholds",
    "CoercionError",
    "CoercionResult",
    "ScoreResult",
    "ScoredValue",
    "IngestionError",
    "IngestionPolicy",
    "IngestionOutcome",
    "BatchIngestionResult",
    "KpiMappingField",
    "KpiMapping",
    "TransformationRule",
    "KpiReference",
]
