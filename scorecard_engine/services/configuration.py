"""
KPI Configuration Validation Service

Validates KPI configuration payloads at creation and update time. The scoring
engine trusts every KpiConfiguration it receives, so the scoring type / data
type pairing rule is enforced here, once, and never again during scoring:

- Goal/Red Flag: data type must be Number, Percentage or Currency
- Yes/No: data type must be Number (values 0/1)
- Text: data type must be Text

Failures are returned as IngestionError values rather than raised, matching
the rest of the engine.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from scorecard_engine.core.config import get_settings
from scorecard_engine.models import (
    DataType,
    IngestionError,
    KpiConfiguration,
    RejectionReason,
    ScoringType,
    is_consistent_configuration,
)

logger = logging.getLogger(__name__)


def check_configuration_consistency(
    scoring_type: ScoringType,
    data_type: DataType
) -> Optional[IngestionError]:
    """
    Check that a scoring type accepts a data type.

    Args:
        scoring_type: The KPI scoring type
        data_type: The KPI data type

    Returns:
        A CONFIGURATION_INCONSISTENT error, or None when the pair is valid
    """
    scoring_type = ScoringType(scoring_type)
    data_type = DataType(data_type)

    if is_consistent_configuration(scoring_type, data_type):
        return None

    return IngestionError(
        reason=RejectionReason.CONFIGURATION_INCONSISTENT,
        field='scoring_type',
        message=(
            f"Scoring type '{scoring_type.value}' is inconsistent with "
            f"data type '{data_type.value}'"
        ),
    )


def _errors_from_validation(
    exc: ValidationError,
    kpi_id: Optional[str]
) -> List[IngestionError]:
    """Convert pydantic validation errors into tagged configuration errors."""
    errors: List[IngestionError] = []
    for detail in exc.errors():
        location = '.'.join(str(part) for part in detail.get('loc', ()))
        errors.append(IngestionError(
            reason=RejectionReason.INVALID_CONFIGURATION,
            field=location or None,
            kpi_id=kpi_id,
            message=detail.get('msg', 'Invalid value'),
        ))
    return errors


def build_kpi_configuration(
    payload: Mapping[str, Any]
) -> Tuple[Optional[KpiConfiguration], List[IngestionError]]:
    """
    Validate a configuration payload for a new KPI.

    The pairing rule is checked before full model validation so an
    inconsistent pair is reported with its own tag. A payload without a
    decimal precision gets Settings.default_decimal_precision.

    Args:
        payload: Configuration fields keyed by KpiConfiguration field name

    Returns:
        Tuple of (configuration or None, list of errors)
    """
    payload = dict(payload)
    kpi_id = payload.get('kpi_id')

    # Get default precision from config if not provided
    if payload.get('decimal_precision') is None:
        payload['decimal_precision'] = get_settings().default_decimal_precision

    try:
        scoring_type = ScoringType(payload.get('scoring_type'))
        data_type = DataType(payload.get('data_type'))
    except ValueError:
        # Unknown enum values are reported by the model validation below
        pass
    else:
        consistency_error = check_configuration_consistency(scoring_type, data_type)
        if consistency_error is not None:
            consistency_error = consistency_error.model_copy(update={'kpi_id': kpi_id})
            logger.warning(f"Rejected KPI configuration {kpi_id}: {consistency_error.message}")
            return None, [consistency_error]

    try:
        configuration = KpiConfiguration.model_validate(payload)
    except ValidationError as e:
        errors = _errors_from_validation(e, kpi_id)
        logger.warning(f"Rejected KPI configuration {kpi_id}: {len(errors)} validation error(s)")
        return None, errors

    return configuration, []


def apply_configuration_update(
    configuration: KpiConfiguration,
    changes: Mapping[str, Any]
) -> Tuple[Optional[KpiConfiguration], List[IngestionError]]:
    """
    Apply a partial update to an existing configuration.

    The pairing rule is checked on the merged result, so changing only the
    scoring type of a Number KPI to Text is rejected.

    Args:
        configuration: The current configuration
        changes: Fields to change; kpi_id cannot be changed

    Returns:
        Tuple of (updated configuration or None, list of errors)
    """
    merged: Dict[str, Any] = configuration.model_dump()
    merged.update({k: v for k, v in changes.items() if k != 'kpi_id'})

    if 'kpi_id' in changes and changes['kpi_id'] != configuration.kpi_id:
        logger.warning(f"Ignoring kpi_id change in update for KPI {configuration.kpi_id}")

    return build_kpi_configuration(merged)


__all__ = [
    'check_configuration_consistency',
    'build_kpi_configuration',
    'apply_configuration_update',
]
