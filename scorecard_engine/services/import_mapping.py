"""
Import Row Mapping Service

Reduces imported rows (spreadsheet sheets or database query results, loaded
into a pandas DataFrame) to RawObservation records, then runs them through the
ingestion pipeline as one batch.

Each KpiMapping names the source column for every logical KPI field. A row
produces one observation per mapping:
- empty cells fall back to the mapping's default value
- the period date must be YYYY-MM-DD; an ISO time part is stripped
- only mapped fields are set, so unmapped thresholds keep their stored values

Problems are reported as IngestionError values with the source row number:
- KPI_NOT_FOUND: the mapping references a KPI with no configuration
- INVALID_PERIOD_DATE: the row has no usable period date and is skipped

A cell longer than its field allows is set to null and reported as a
warning, like any other value that cannot be coerced during an import.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import ValidationError

from scorecard_engine.models import (
    BatchIngestionResult,
    CoercionError,
    IngestionError,
    IngestionPolicy,
    IngestionSource,
    KpiConfiguration,
    KpiMapping,
    KpiMappingField,
    MAX_NOTE_LENGTH,
    MAX_VALUE_LENGTH,
    RawObservation,
    RejectionReason,
    TransformationRule,
    UpdaterIdentity,
)
from scorecard_engine.services.ingestion import StoredThresholds, ingest_batch
from scorecard_engine.services.transformations import apply_transformations

# Configure module logger
logger = logging.getLogger(__name__)

PERIOD_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Optional logical fields, in mapping order
OPTIONAL_MAPPED_FIELDS: Tuple[str, ...] = (
    'target_value',
    'threshold_red',
    'threshold_yellow',
    'note',
)

# Longest text stored per mapped field
FIELD_LENGTH_LIMITS: Dict[str, int] = {
    'actual_value': MAX_VALUE_LENGTH,
    'target_value': MAX_VALUE_LENGTH,
    'threshold_red': MAX_VALUE_LENGTH,
    'threshold_yellow': MAX_VALUE_LENGTH,
    'note': MAX_NOTE_LENGTH,
}

# One identity for every KPI, or one per KPI id
RequestedBy = Union[UpdaterIdentity, Mapping[str, UpdaterIdentity]]

# (source row number, observation)
MappedRow = Tuple[int, RawObservation]


def _cell_text(value: Any) -> Optional[str]:
    """Convert a DataFrame cell to text, None when empty."""
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, (float, np.floating)) and np.isnan(value):
        return None
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    text = str(value)
    if not text.strip():
        return None
    return text


def get_mapped_value(row: Mapping[str, Any], field: Optional[KpiMappingField]) -> Optional[str]:
    """
    Read one logical field from a source row.

    Args:
        row: Source row keyed by column name
        field: How the field is mapped, or None when it is not mapped

    Returns:
        Cell text, the mapping default when the cell is empty, or None
    """
    if field is None:
        return None
    text = _cell_text(row.get(field.source_field))
    if text is None:
        return field.default_value
    return text


def normalize_period_date(raw: Any) -> Optional[date]:
    """
    Normalize an imported period date.

    Dates and timestamps are truncated to the day. Text must be YYYY-MM-DD,
    optionally followed by an ISO time part ("2026-01-31T00:00:00Z").

    Returns:
        The period date, or None if the value is not a valid date
    """
    if raw is None:
        return None
    if isinstance(raw, (pd.Timestamp, datetime)):
        return None if pd.isna(raw) else raw.date()
    if isinstance(raw, date):
        return raw

    text = _cell_text(raw)
    if text is None:
        return None

    text = text.strip().split('T')[0].split(' ')[0]
    if not PERIOD_DATE_PATTERN.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _identity_for(requested_by: RequestedBy, kpi_id: str) -> Optional[UpdaterIdentity]:
    if isinstance(requested_by, UpdaterIdentity):
        return requested_by
    return requested_by.get(kpi_id)


def _row_number(index: Any, position: int) -> int:
    """1-based source row number: the index label for a default index, else the position."""
    if isinstance(index, (int, np.integer)) and index >= 0:
        return int(index) + 1
    return position


def _map_rows(
    df: pd.DataFrame,
    mappings: Sequence[KpiMapping],
    configurations: Mapping[str, KpiConfiguration],
    requested_by: RequestedBy
) -> Tuple[List[MappedRow], List[IngestionError], List[CoercionError]]:
    errors: List[IngestionError] = []
    warnings: List[CoercionError] = []
    active: List[Tuple[KpiMapping, UpdaterIdentity]] = []

    for mapping in mappings:
        if mapping.kpi_id not in configurations:
            logger.warning(f"KPI {mapping.kpi_id} not found; mapping skipped")
            errors.append(IngestionError(
                reason=RejectionReason.KPI_NOT_FOUND,
                kpi_id=mapping.kpi_id,
                message=f"KPI {mapping.kpi_id} not found",
            ))
            continue

        identity = _identity_for(requested_by, mapping.kpi_id)
        if identity is None:
            logger.warning(f"No updater identity for KPI {mapping.kpi_id}; mapping skipped")
            errors.append(IngestionError(
                reason=RejectionReason.NOT_AUTHORIZED,
                kpi_id=mapping.kpi_id,
                message=f"No updater supplied for KPI {mapping.kpi_id}",
            ))
            continue

        active.append((mapping, identity))

    mapped: List[MappedRow] = []
    records = df.to_dict(orient='records')

    for position, (index, row) in enumerate(zip(df.index, records), start=1):
        row_number = _row_number(index, position)

        for mapping, identity in active:
            raw_period = get_mapped_value(row, mapping.period_date)
            period_date = normalize_period_date(raw_period)
            if period_date is None:
                logger.info(f"Invalid period date '{raw_period}' for KPI {mapping.kpi_id} in row {row_number}")
                errors.append(IngestionError(
                    reason=RejectionReason.INVALID_PERIOD_DATE,
                    field='period_date',
                    kpi_id=mapping.kpi_id,
                    row_number=row_number,
                    message=f"Invalid period date '{raw_period}'; expected YYYY-MM-DD",
                ))
                continue

            data: Dict[str, Any] = {
                'kpi_id': mapping.kpi_id,
                'period_date': period_date,
                'actual_value': get_mapped_value(row, mapping.actual_value),
                'requested_by': identity,
            }
            for field in OPTIONAL_MAPPED_FIELDS:
                field_mapping = getattr(mapping, field)
                if field_mapping is not None:
                    data[field] = get_mapped_value(row, field_mapping)

            for field, limit in FIELD_LENGTH_LIMITS.items():
                value = data.get(field)
                if value is not None and len(value) > limit:
                    logger.warning(
                        f"Row {row_number} for KPI {mapping.kpi_id}: {field} is longer than "
                        f"{limit} characters; value set to null"
                    )
                    warnings.append(CoercionError(
                        field=field,
                        raw_value=value[:limit],
                        message=f"Value for field '{field}' is longer than {limit} characters",
                        row_number=row_number,
                    ))
                    data[field] = None

            try:
                observation = RawObservation.model_validate(data)
            except ValidationError as e:
                for detail in e.errors():
                    field = '.'.join(str(part) for part in detail.get('loc', ())) or None
                    errors.append(IngestionError(
                        reason=RejectionReason.COERCION_ERROR,
                        field=field,
                        kpi_id=mapping.kpi_id,
                        row_number=row_number,
                        message=detail.get('msg', 'Invalid value'),
                    ))
                logger.warning(f"Row {row_number} for KPI {mapping.kpi_id} failed validation; row skipped")
                continue

            mapped.append((row_number, observation))

    return mapped, errors, warnings


def map_rows_to_observations(
    df: pd.DataFrame,
    mappings: Sequence[KpiMapping],
    configurations: Mapping[str, KpiConfiguration],
    requested_by: RequestedBy
) -> Tuple[List[RawObservation], List[IngestionError]]:
    """
    Map source rows onto raw observations.

    Args:
        df: Source rows, one column per source field
        mappings: KPI mappings; each row yields one observation per mapping
        configurations: KPI configurations keyed by KPI id
        requested_by: Identity running the import, or one identity per KPI id

    Returns:
        Tuple of (observations in row order, list of errors)
    """
    mapped, errors, _ = _map_rows(df, mappings, configurations, requested_by)
    return [observation for _, observation in mapped], errors


def import_dataframe(
    df: pd.DataFrame,
    mappings: Sequence[KpiMapping],
    configurations: Mapping[str, KpiConfiguration],
    requested_by: RequestedBy,
    *,
    policy: IngestionPolicy,
    rules: Optional[Sequence[TransformationRule]] = None,
    stored: Optional[StoredThresholds] = None,
    atomic: bool = True
) -> BatchIngestionResult:
    """
    Transform, map and ingest imported rows as one batch.

    Mapping errors count as rejections, so an atomic import with an unknown
    KPI or a bad period date applies nothing.

    Args:
        df: Source rows as loaded from the sheet or query
        mappings: KPI mappings
        configurations: KPI configurations keyed by KPI id
        requested_by: Identity running the import, or one identity per KPI id
        policy: Ingestion policy flags
        rules: Transformation rules applied before mapping
        stored: Stored thresholds keyed by (kpi_id, period_date)
        atomic: Whether the caller persists the batch in one transaction

    Returns:
        BatchIngestionResult with mapping and ingestion errors combined
    """
    logger.info(f"Importing {len(df)} rows for {len(mappings)} KPI mapping(s)")

    # Row numbers refer to source rows, even after filter rules drop some
    source = df.reset_index(drop=True)
    transformed = apply_transformations(source, rules)

    mapped, mapping_errors, mapping_warnings = _map_rows(transformed, mappings, configurations, requested_by)

    batch = ingest_batch(
        [(configurations[observation.kpi_id], observation) for _, observation in mapped],
        source=IngestionSource.IMPORT,
        policy=policy,
        stored=stored,
        atomic=atomic,
        row_numbers=[row_number for row_number, _ in mapped],
    )

    errors = mapping_errors + batch.errors
    skipped_rows = sum(1 for error in mapping_errors if error.row_number is not None)
    scored_values = batch.scored_values
    if errors and atomic:
        scored_values = []

    return BatchIngestionResult(
        success=not errors,
        rows_processed=batch.rows_processed + skipped_rows,
        rows_accepted=batch.rows_accepted,
        scored_values=scored_values,
        errors=errors,
        warnings=mapping_warnings + batch.warnings,
    )


__all__ = [
    'RequestedBy',
    'get_mapped_value',
    'normalize_period_date',
    'map_rows_to_observations',
    'import_dataframe',
]
