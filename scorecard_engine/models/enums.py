"""
Enumeration definitions for the scorecard engine.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models. Values match the labels stored for KPIs
(e.g. "Goal/Red Flag"), so configurations loaded from storage validate
without translation.
"""

from enum import Enum


class ScoringType(str, Enum):
    """
    Classification rule family applied to a KPI's values.

    - Goal/Red Flag: Compare the actual value with target and red/yellow thresholds
    - Yes/No: Binary outcome, 1/"yes" is Green and 0/"no" is Red
    - Text: Free text, never scored
    """
    GOAL_RED_FLAG = "Goal/Red Flag"
    YES_NO = "Yes/No"
    TEXT = "Text"


class DataType(str, Enum):
    """
    Declared data type of a KPI's values.

    Number, Percentage and Currency are numeric and are formatted to the KPI's
    decimal precision. Text values are stored as supplied.
    """
    NUMBER = "Number"
    PERCENTAGE = "Percentage"
    CURRENCY = "Currency"
    TEXT = "Text"


# Data types whose values are parsed and formatted as decimals
NUMERIC_DATA_TYPES = frozenset({DataType.NUMBER, DataType.PERCENTAGE, DataType.CURRENCY})


class KpiColor(str, Enum):
    """Traffic-light classification of a scored value."""
    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


class CalendarFrequency(str, Enum):
    """Expected reporting cadence of a KPI."""
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ANNUALLY = "Annually"


class AggregationType(str, Enum):
    """How values are aggregated across periods or organizations."""
    SUM = "Sum"
    AVERAGE = "Average"
    LAST_VALUE = "Last Value"


class IngestionSource(str, Enum):
    """
    Origin of a raw observation.

    - manual: Direct entry by an updater; coercion failures reject the update
    - import: Spreadsheet or database import; coercion failures degrade to null
    - calculated: Produced by a KPI calculation equation; treated like imports
    """
    MANUAL = "manual"
    IMPORT = "import"
    CALCULATED = "calculated"


class IngestionStage(str, Enum):
    """
    States of the single-observation ingestion pipeline.

    received -> authorization_checked -> coerced -> scored
    -> note_gate_checked -> upsert_ready, with rejected reachable from any state.
    """
    RECEIVED = "received"
    AUTHORIZATION_CHECKED = "authorization_checked"
    COERCED = "coerced"
    SCORED = "scored"
    NOTE_GATE_CHECKED = "note_gate_checked"
    UPSERT_READY = "upsert_ready"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    """
    Tagged reasons reported back to callers.

    - configuration_inconsistent: Scoring type and data type do not match
    - invalid_configuration: A configuration payload failed field validation
    - coercion_error: A supplied value could not be parsed for the KPI data type
    - not_authorized: Caller is not a registered updater for the KPI
    - note_required: Policy requires a note for a Red value and none was given
    - kpi_not_found: An import mapping references a KPI with no configuration
    - invalid_period_date: An imported row has no usable period date
    """
    CONFIGURATION_INCONSISTENT = "configuration_inconsistent"
    INVALID_CONFIGURATION = "invalid_configuration"
    COERCION_ERROR = "coercion_error"
    NOT_AUTHORIZED = "not_authorized"
    NOTE_REQUIRED = "note_required"
    KPI_NOT_FOUND = "kpi_not_found"
    INVALID_PERIOD_DATE = "invalid_period_date"


class TransformationType(str, Enum):
    """
    Transformation rules applied to imported rows before mapping.

    - filter: Keep rows whose field satisfies a comparison, e.g. "value > 100"
    - regex_replace: Replace pattern matches within a field
    - set_default: Fill empty cells with a default value
    - data_type_conversion: Convert a field to number, string or date
    """
    FILTER = "filter"
    REGEX_REPLACE = "regex_replace"
    SET_DEFAULT = "set_default"
    DATA_TYPE_CONVERSION = "data_type_conversion"


__all__ = [
    "ScoringType",
    "DataType",
    "NUMERIC_DATA_TYPES",
    "KpiColor",
    "CalendarFrequency",
    "AggregationType",
    "IngestionSource",
    "IngestionStage",
    "RejectionReason",
    "TransformationType",
]
