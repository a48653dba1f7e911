"""
Threshold Scoring Service

This module is the single scoring function used by every ingestion path
(manual entry, spreadsheet/database import and calculated KPIs). It maps an
actual value plus target and red/yellow thresholds onto a 0-100 score and a
Green/Yellow/Red color.

Goal/Red Flag rules, evaluated in order:
1. actual missing or NaN                      -> (None, None)
2. target present and > 0:
   a. actual >= target                        -> 100, Green
   b. yellow present and actual >= yellow     -> 50 + (actual - yellow) / (target - yellow) * 50, Yellow
   c. red present and actual >= red           -> actual / red * 50, Red
   d. otherwise                               -> 0, Red
3. no usable target but red present:
   actual < red -> 0, Red; otherwise 100, Green
4. otherwise                                  -> (None, None)

The Yellow band gets the 50-100 range while the Red band is scaled against the
red threshold itself into 0-50. Every comparison is inclusive, so a value on a
boundary belongs to the better band.

Yes/No: 1 or "yes" -> 100, Green; 0 or "no" -> 0, Red; anything else -> (None, None).
Text: always (None, None).

An indeterminate result is a valid outcome, not an error.
"""

import logging
import math
from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    Decimal,
    InvalidOperation,
    Overflow,
    ROUND_HALF_UP,
    localcontext,
)
from typing import Optional, Union

from scorecard_engine.models import KpiColor, ScoreResult, ScoringType
from scorecard_engine.services.coercion import YES_NO_WORDS

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str, None]

SCORE_MIN = Decimal(0)
SCORE_MAX = Decimal(100)
BAND_MIDPOINT = Decimal(50)

INDETERMINATE = ScoreResult()


def _to_decimal(value: Number) -> Optional[Decimal]:
    """Convert an input to a finite Decimal, or None if absent or unusable."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def clamp_score(score: Decimal) -> Decimal:
    """Clamp a score into [0, 100]."""
    return max(SCORE_MIN, min(SCORE_MAX, score))


def round_score(score: Decimal, precision: Optional[int] = None) -> float:
    """
    Round a score to the KPI's decimal precision.

    Args:
        score: Clamped score
        precision: Fractional digits, or None to keep full precision

    Returns:
        The score as a float
    """
    if precision is None:
        return float(score)
    return float(score.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP))


def _result(score: Decimal, color: KpiColor, precision: Optional[int]) -> ScoreResult:
    return ScoreResult(score=round_score(clamp_score(score), precision), color=color)


def _score_goal_bands(
    actual_num: Decimal,
    target_num: Optional[Decimal],
    red_num: Optional[Decimal],
    yellow_num: Optional[Decimal],
    precision: Optional[int]
) -> ScoreResult:
    if target_num is not None and target_num > 0:
        if actual_num >= target_num:
            return _result(SCORE_MAX, KpiColor.GREEN, precision)

        if yellow_num is not None and actual_num >= yellow_num:
            score = BAND_MIDPOINT + (actual_num - yellow_num) / (target_num - yellow_num) * BAND_MIDPOINT
            return _result(score, KpiColor.YELLOW, precision)

        if red_num is not None and actual_num >= red_num:
            if red_num == 0:
                return _result(SCORE_MIN, KpiColor.RED, precision)
            return _result(actual_num / red_num * BAND_MIDPOINT, KpiColor.RED, precision)

        return _result(SCORE_MIN, KpiColor.RED, precision)

    if red_num is not None:
        # No partial credit without a target
        if actual_num < red_num:
            return _result(SCORE_MIN, KpiColor.RED, precision)
        return _result(SCORE_MAX, KpiColor.GREEN, precision)

    return INDETERMINATE


def score_goal_red_flag(
    actual: Number,
    target: Number,
    threshold_red: Number,
    threshold_yellow: Number,
    precision: Optional[int] = None
) -> ScoreResult:
    """
    Score a Goal/Red Flag KPI value.

    Band arithmetic runs with the widest exponent range; a quotient that still
    overflows saturates to infinity and is clamped like any other score.

    Args:
        actual: Actual value
        target: Target (goal) value
        threshold_red: Red threshold
        threshold_yellow: Yellow threshold
        precision: Fractional digits for the returned score

    Returns:
        ScoreResult with score and color, or both None when indeterminate
    """
    actual_num = _to_decimal(actual)
    if actual_num is None:
        return INDETERMINATE

    target_num = _to_decimal(target)
    red_num = _to_decimal(threshold_red)
    yellow_num = _to_decimal(threshold_yellow)

    with localcontext() as ctx:
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        ctx.traps[Overflow] = False
        try:
            return _score_goal_bands(actual_num, target_num, red_num, yellow_num, precision)
        except InvalidOperation as e:
            logger.warning(
                f"Could not score actual={actual} target={target} "
                f"red={threshold_red} yellow={threshold_yellow}: {e!r}"
            )
            return INDETERMINATE


def score_yes_no(actual: Number, precision: Optional[int] = None) -> ScoreResult:
    """Score a Yes/No KPI value: 1/"yes" is Green, 0/"no" is Red."""
    if isinstance(actual, str):
        word = actual.strip().lower()
        if word in YES_NO_WORDS:
            actual = YES_NO_WORDS[word]

    actual_num = _to_decimal(actual)
    if actual_num is None:
        return INDETERMINATE

    if actual_num == 1:
        return _result(SCORE_MAX, KpiColor.GREEN, precision)
    if actual_num == 0:
        return _result(SCORE_MIN, KpiColor.RED, precision)
    return INDETERMINATE


def score_value(
    actual: Number,
    target: Number,
    threshold_red: Number,
    threshold_yellow: Number,
    scoring_type: ScoringType,
    precision: Optional[int] = None
) -> ScoreResult:
    """
    Compute the score and color for one KPI value.

    Args:
        actual: Actual value
        target: Target value
        threshold_red: Red threshold
        threshold_yellow: Yellow threshold
        scoring_type: KPI scoring type
        precision: KPI decimal precision applied to the score

    Returns:
        ScoreResult
    """
    scoring_type = ScoringType(scoring_type)

    if scoring_type == ScoringType.GOAL_RED_FLAG:
        result = score_goal_red_flag(actual, target, threshold_red, threshold_yellow, precision)
    elif scoring_type == ScoringType.YES_NO:
        result = score_yes_no(actual, precision)
    else:
        result = INDETERMINATE

    logger.debug(
        f"Scored {scoring_type.value} actual={actual} target={target} "
        f"red={threshold_red} yellow={threshold_yellow} -> {result.score} {result.color}"
    )
    return result


__all__ = [
    'INDETERMINATE',
    'clamp_score',
    'round_score',
    'score_goal_red_flag',
    'score_yes_no',
    'score_value',
]
