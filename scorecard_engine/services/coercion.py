"""
Value Coercion Service

Converts free-text reported values into typed values according to a KPI's
declared data type. Values arrive as text from forms, spreadsheet cells and
database rows, and are stored as text, so numeric values are parsed for
comparison and re-formatted to the KPI's decimal precision for storage.

Rules:
- None, empty or whitespace-only input is a successful absent value
- Numeric data types parse as Decimal; NaN, Infinity, "_" digit separators
  and magnitudes too large to store as text are rejected
- Numeric output is formatted with exactly `precision` fractional digits
  (ROUND_HALF_UP), e.g. "100" at precision 2 -> "100.00"
- Yes/No actual values also accept "yes"/"no" (case-insensitive) as 1/0

Coercion never raises. Whether a failure is fatal is the caller's decision:
manual entries reject the whole update, imports degrade the field to None and
keep a warning.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Dict, List, Optional, Tuple

from scorecard_engine.models import (
    CoercionError,
    CoercionResult,
    KpiConfiguration,
    MAX_VALUE_LENGTH,
    RawObservation,
    ScoringType,
    THRESHOLD_FIELDS,
)

logger = logging.getLogger(__name__)

# Textual Yes/No answers and their numeric equivalents
YES_NO_WORDS: Dict[str, Decimal] = {
    'yes': Decimal(1),
    'no': Decimal(0),
}


def _is_blank(raw: Optional[str]) -> bool:
    return raw is None or str(raw).strip() == ''


def parse_decimal(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse text as a finite decimal.

    Args:
        raw: Text to parse

    Returns:
        The Decimal value, or None if the text is blank, not a finite number,
        or too large to store as a value
    """
    if _is_blank(raw):
        return None
    text = str(raw).strip()
    # Decimal() accepts "1_000"; thousands separators are rejected like "1,000"
    if '_' in text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    # More integer digits than a stored value can hold
    if number.adjusted() >= MAX_VALUE_LENGTH:
        return None
    return number


def format_decimal(number: Decimal, precision: int) -> str:
    """
    Format a decimal with exactly `precision` fractional digits.

    Args:
        number: Value to format
        precision: Fractional digits (0-20)

    Returns:
        Fixed-point string, e.g. format_decimal(Decimal("100"), 2) == "100.00"
    """
    exponent = Decimal(1).scaleb(-precision)
    with localcontext() as ctx:
        # quantize fails when the result needs more digits than the context allows
        ctx.prec = max(ctx.prec, number.adjusted() + precision + 2)
        quantized = number.quantize(exponent, rounding=ROUND_HALF_UP)
    if quantized.is_zero():
        quantized = abs(quantized)
    return format(quantized, 'f')


def coerce_numeric(
    raw: Optional[str],
    precision: int,
    field: str = 'value'
) -> CoercionResult:
    """
    Coerce a raw value for a numeric data type.

    Args:
        raw: Value as received, may be None
        precision: KPI decimal precision
        field: Observation field name, reported in errors

    Returns:
        CoercionResult with the formatted value and parsed number, or an error
    """
    if _is_blank(raw):
        return CoercionResult(field=field)

    number = parse_decimal(raw)
    if number is None:
        return CoercionResult(
            field=field,
            error=CoercionError(
                field=field,
                raw_value=str(raw),
                message=f"'{raw}' is not a valid number for field '{field}'",
            ),
        )

    return CoercionResult(
        field=field,
        value=format_decimal(number, precision),
        number=number,
    )


def coerce_yes_no(
    raw: Optional[str],
    precision: int,
    field: str = 'actual_value'
) -> CoercionResult:
    """
    Coerce a Yes/No answer.

    "yes" and "no" map to 1 and 0; any other text goes through numeric
    coercion, so "1", "0" and other numbers are accepted as numbers.
    """
    if _is_blank(raw):
        return CoercionResult(field=field)

    word = str(raw).strip().lower()
    if word in YES_NO_WORDS:
        number = YES_NO_WORDS[word]
        return CoercionResult(
            field=field,
            value=format_decimal(number, precision),
            number=number,
        )

    return coerce_numeric(raw, precision, field)


def coerce_text(raw: Optional[str], field: str = 'actual_value') -> CoercionResult:
    """Pass text through unchanged; blank text is absent."""
    if _is_blank(raw):
        return CoercionResult(field=field)
    return CoercionResult(field=field, value=str(raw))


def _coerce_field(
    configuration: KpiConfiguration,
    field: str,
    raw: Optional[str]
) -> CoercionResult:
    precision = configuration.decimal_precision

    if configuration.scoring_type == ScoringType.TEXT:
        return coerce_text(raw, field)

    if configuration.scoring_type == ScoringType.YES_NO and field == 'actual_value':
        return coerce_yes_no(raw, precision, field)

    return coerce_numeric(raw, precision, field)


def coerce_observation(
    configuration: KpiConfiguration,
    observation: RawObservation,
    *,
    strict: bool,
    row_number: Optional[int] = None
) -> Tuple[Dict[str, CoercionResult], List[CoercionError]]:
    """
    Coerce every value field that was set on the observation.

    Fields that were never set are left out of the result so they stay unset
    downstream. Text KPIs do not coerce target or thresholds; those are not
    applicable and are cleared by the ingestion pipeline.

    Args:
        configuration: The KPI configuration
        observation: The (already permission-filtered) observation
        strict: When True, failed fields keep their error and the caller is
            expected to reject the update. When False, failed fields are
            degraded to None and the errors are returned as warnings.
        row_number: Batch row number, attached to reported errors

    Returns:
        Tuple of (results keyed by field name, list of coercion errors)
    """
    fields = ['actual_value']
    if configuration.scoring_type != ScoringType.TEXT:
        fields.extend(THRESHOLD_FIELDS)

    results: Dict[str, CoercionResult] = {}
    errors: List[CoercionError] = []

    for field in fields:
        if not observation.is_set(field):
            continue

        result = _coerce_field(configuration, field, getattr(observation, field))

        if result.error is not None:
            error = result.error.model_copy(update={'row_number': row_number})
            errors.append(error)
            if not strict:
                logger.warning(
                    f"KPI {observation.kpi_id} period {observation.period_date}: "
                    f"{error.message}; value set to null"
                )
                result = CoercionResult(field=field)
            else:
                result = result.model_copy(update={'error': error})

        results[field] = result

    return results, errors


__all__ = [
    'YES_NO_WORDS',
    'parse_decimal',
    'format_decimal',
    'coerce_numeric',
    'coerce_yes_no',
    'coerce_text',
    'coerce_observation',
]
