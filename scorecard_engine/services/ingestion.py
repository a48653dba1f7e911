"""
Ingestion Orchestrator

Runs one raw observation through the scoring pipeline and returns the row to
upsert. Manual entries, imports and calculated KPIs all go through here.

Pipeline per observation:
    received -> authorization_checked -> coerced -> scored
    -> note_gate_checked -> upsert_ready
with rejected reachable from any state.

- authorization_checked: the requester must hold an updater grant for the KPI
- field filter: threshold fields are dropped without the threshold grant
- coerced: manual entries reject on a bad value; imports and calculated
  values degrade the field to null and keep a warning
- scored: one scoring function for every source; Text KPIs force target and
  thresholds to null
- note_gate_checked: with require_note_on_red, a Red value needs a note

Every rejection is returned as a tagged IngestionError, never raised. The
engine performs no I/O: the caller upserts ScoredValue.upsert_payload() keyed
by (kpi_id, period_date), one transaction per batch.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from scorecard_engine.models import (
    BatchIngestionResult,
    CoercionError,
    CoercionResult,
    IngestionError,
    IngestionOutcome,
    IngestionPolicy,
    IngestionSource,
    IngestionStage,
    KpiColor,
    KpiConfiguration,
    KpiThresholds,
    RawObservation,
    RejectionReason,
    ScoredValue,
    ScoringType,
    THRESHOLD_FIELDS,
)
from scorecard_engine.services.coercion import coerce_observation
from scorecard_engine.services.permissions import filter_writable_fields, is_registered_updater
from scorecard_engine.services.scoring import score_value

# Configure module logger
logger = logging.getLogger(__name__)

# (configuration, observation) pair submitted in a batch
BatchItem = Tuple[KpiConfiguration, RawObservation]

# Stored thresholds keyed by (kpi_id, period_date)
StoredThresholds = Mapping[Tuple[str, date], KpiThresholds]


def _reject(
    source: IngestionSource,
    stage: IngestionStage,
    reason: RejectionReason,
    message: str,
    observation: RawObservation,
    field: Optional[str] = None,
    row_number: Optional[int] = None,
    warnings: Optional[List[CoercionError]] = None
) -> IngestionOutcome:
    logger.warning(
        f"Rejected {source.value} observation for KPI {observation.kpi_id} "
        f"period {observation.period_date} at {stage.value}: {message}"
    )
    return IngestionOutcome(
        stage=IngestionStage.REJECTED,
        source=source,
        error=IngestionError(
            reason=reason,
            message=message,
            field=field,
            kpi_id=observation.kpi_id,
            row_number=row_number,
        ),
        warnings=warnings or [],
    )


def _scoring_input(
    field: str,
    coerced: Dict[str, CoercionResult],
    stored: Optional[KpiThresholds]
) -> Optional[object]:
    """
    Value used for scoring one field.

    Fields the observation supplied use their coerced number (or text for
    Yes/No words already normalised). Threshold fields the observation left
    unset fall back to the stored thresholds.
    """
    if field in coerced:
        result = coerced[field]
        return result.number if result.number is not None else result.value
    if stored is not None and field in THRESHOLD_FIELDS:
        return getattr(stored, field)
    return None


def _is_blank_note(note: Optional[str]) -> bool:
    return note is None or not note.strip()


def ingest_observation(
    configuration: KpiConfiguration,
    observation: RawObservation,
    *,
    source: IngestionSource,
    policy: IngestionPolicy,
    stored: Optional[KpiThresholds] = None,
    row_number: Optional[int] = None
) -> IngestionOutcome:
    """
    Authorize, filter, coerce, score and gate one observation.

    Args:
        configuration: Configuration of the observed KPI
        observation: Raw observation to ingest
        source: Where the observation came from
        policy: Ingestion policy flags
        stored: Thresholds currently stored for the (KPI, period) row, used for
            scoring when the observation does not supply them
        row_number: Batch row number attached to errors and warnings

    Returns:
        IngestionOutcome, UPSERT_READY with a ScoredValue or REJECTED with an error

    Raises:
        ValueError: If the observation is for a different KPI than the configuration
    """
    if observation.kpi_id != configuration.kpi_id:
        raise ValueError(
            f"Observation for KPI {observation.kpi_id} ingested with configuration "
            f"for KPI {configuration.kpi_id}"
        )

    source = IngestionSource(source)
    stage = IngestionStage.RECEIVED
    requester = observation.requested_by

    # Authorization
    if not is_registered_updater(requester.grant, configuration.kpi_id, requester.user_id):
        return _reject(
            source, stage, RejectionReason.NOT_AUTHORIZED,
            f"User {requester.user_id} is not a registered updater for KPI {configuration.kpi_id}",
            observation, row_number=row_number,
        )
    stage = IngestionStage.AUTHORIZATION_CHECKED

    # Field filter, then coercion
    writable = filter_writable_fields(observation, requester.grant)
    strict = source == IngestionSource.MANUAL
    coerced, coercion_errors = coerce_observation(
        configuration, writable, strict=strict, row_number=row_number
    )

    if coercion_errors and strict:
        first = coercion_errors[0]
        return _reject(
            source, stage, RejectionReason.COERCION_ERROR, first.message,
            observation, field=first.field, row_number=row_number,
        )
    warnings = list(coercion_errors)
    stage = IngestionStage.COERCED

    # Scoring
    is_text = configuration.scoring_type == ScoringType.TEXT
    if is_text:
        # Not applicable for Text KPIs; stored values are never consulted
        stored = None

    result = score_value(
        _scoring_input('actual_value', coerced, stored),
        _scoring_input('target_value', coerced, stored),
        _scoring_input('threshold_red', coerced, stored),
        _scoring_input('threshold_yellow', coerced, stored),
        configuration.scoring_type,
        precision=configuration.decimal_precision,
    )
    stage = IngestionStage.SCORED

    # Note gate
    if (
        policy.require_note_on_red
        and result.color == KpiColor.RED
        and _is_blank_note(writable.note)
    ):
        return _reject(
            source, stage, RejectionReason.NOTE_REQUIRED,
            "A note is required when the KPI value is Red",
            observation, field='note', row_number=row_number, warnings=warnings,
        )
    stage = IngestionStage.NOTE_GATE_CHECKED

    values = {
        'kpi_id': configuration.kpi_id,
        'period_date': observation.period_date,
        'actual_value': coerced['actual_value'].value if 'actual_value' in coerced else None,
        'score': result.score,
        'color': result.color,
        'note': writable.note,
        'is_manual_entry': source == IngestionSource.MANUAL,
        'updated_by_user_id': requester.user_id,
    }
    for field in THRESHOLD_FIELDS:
        if is_text:
            values[field] = None
        elif field in coerced:
            values[field] = coerced[field].value

    scored_value = ScoredValue(**values)
    stage = IngestionStage.UPSERT_READY

    logger.debug(
        f"KPI {configuration.kpi_id} period {observation.period_date} "
        f"{stage.value}: score={result.score} color={result.color}"
    )

    return IngestionOutcome(
        stage=stage,
        source=source,
        scored_value=scored_value,
        warnings=warnings,
    )


def ingest_batch(
    items: Iterable[BatchItem],
    *,
    source: IngestionSource,
    policy: IngestionPolicy,
    stored: Optional[StoredThresholds] = None,
    atomic: bool = True,
    row_numbers: Optional[Sequence[int]] = None
) -> BatchIngestionResult:
    """
    Ingest a batch of observations.

    Every row is evaluated so all rejections are reported at once. Rows that
    share a (kpi_id, period_date) key collapse to the last one. When atomic,
    the batch is all-or-nothing: a single rejected row leaves scored_values
    empty so nothing is persisted.

    Args:
        items: (configuration, observation) pairs in row order
        source: Where the observations came from
        policy: Ingestion policy flags
        stored: Stored thresholds keyed by (kpi_id, period_date)
        atomic: Whether the caller persists the batch in one transaction
        row_numbers: Source row number of each item, defaults to its position

    Returns:
        BatchIngestionResult
    """
    source = IngestionSource(source)
    accepted: Dict[Tuple[str, date], ScoredValue] = {}
    errors: List[IngestionError] = []
    warnings: List[CoercionError] = []
    rows_processed = 0
    rows_accepted = 0

    for position, (configuration, observation) in enumerate(items):
        rows_processed += 1
        row_number = row_numbers[position] if row_numbers is not None else position + 1
        key = (observation.kpi_id, observation.period_date)

        outcome = ingest_observation(
            configuration,
            observation,
            source=source,
            policy=policy,
            stored=stored.get(key) if stored else None,
            row_number=row_number,
        )
        warnings.extend(outcome.warnings)

        if not outcome.success:
            errors.append(outcome.error)
            continue

        rows_accepted += 1
        if key in accepted:
            logger.info(f"Row {row_number} replaces an earlier row for KPI {key[0]} period {key[1]}")
            # Move to the end so output order follows the last write
            del accepted[key]
        accepted[key] = outcome.scored_value

    success = not errors
    scored_values = list(accepted.values())
    if errors and atomic:
        scored_values = []

    logger.info(
        f"Ingested {source.value} batch: {rows_accepted}/{rows_processed} rows accepted, "
        f"{len(errors)} rejected, {len(warnings)} warnings"
        + ("" if success or not atomic else "; batch not applied")
    )

    return BatchIngestionResult(
        success=success,
        rows_processed=rows_processed,
        rows_accepted=rows_accepted,
        scored_values=scored_values,
        errors=errors,
        warnings=warnings,
    )


__all__ = [
    'BatchItem',
    'StoredThresholds',
    'ingest_observation',
    'ingest_batch',
]
