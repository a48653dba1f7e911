"""
Import Transformation Rules

Applies the transformation rules configured on an import to the source rows
before they are mapped onto KPI fields. Rules run in order on a copy of the
DataFrame; the input is never modified.

Rule types:
- filter: keep rows where the field satisfies "value <op> <literal>", with op
  one of == != > >= < <=. Numeric literals compare numerically, quoted
  literals compare as text. Conditions are parsed, never evaluated as code.
- regex_replace: replace every match of `pattern` with `replacement` in
  non-null values. "$1" style group references are accepted.
- set_default: fill null, empty and whitespace-only cells with `defaultValue`
- data_type_conversion: convert to "number", "string" or "date" (ISO
  YYYY-MM-DD). Values that fail to convert become null.

A rule with an unknown type, missing parameters or a column not present in the
data is skipped with a warning, and the import continues.
"""

import logging
import operator
import re
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from scorecard_engine.models import TransformationRule, TransformationType

# Configure module logger
logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS - Filter condition grammar
# =============================================================================

FILTER_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    '==': operator.eq,
    '!=': operator.ne,
    '>=': operator.ge,
    '<=': operator.le,
    '>': operator.gt,
    '<': operator.lt,
}

# "value" <op> <literal>; two-character operators listed first
CONDITION_PATTERN = re.compile(r'^\s*value\s*(==|!=|>=|<=|>|<)\s*(.+?)\s*$')

SUPPORTED_TARGET_TYPES = ('number', 'string', 'date')


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return False
    return bool(pd.isna(value))


def parse_condition(condition: str) -> Optional[Tuple[str, Any]]:
    """
    Parse a filter condition such as "value > 100" or "value == 'North'".

    Returns:
        Tuple of (operator symbol, literal), or None if the condition is not
        of the supported form. Quoted literals are returned as str, anything
        else must be a number and is returned as float.
    """
    match = CONDITION_PATTERN.match(condition)
    if not match:
        return None

    symbol, literal = match.group(1), match.group(2)

    if len(literal) >= 2 and literal[0] == literal[-1] and literal[0] in ('"', "'"):
        return symbol, literal[1:-1]

    try:
        number = float(literal)
    except ValueError:
        return None
    if np.isnan(number):
        return None
    return symbol, number


def _apply_filter(df: pd.DataFrame, field: str, parameters: Dict[str, Any]) -> pd.DataFrame:
    condition = parameters.get('condition')
    if not isinstance(condition, str):
        logger.warning(f"Filter rule for field '{field}' has no 'condition' string; rule skipped")
        return df

    parsed = parse_condition(condition)
    if parsed is None:
        logger.warning(f"Unsupported filter condition '{condition}' for field '{field}'; rule skipped")
        return df

    symbol, literal = parsed
    compare = FILTER_OPERATORS[symbol]

    if isinstance(literal, str):
        values = df[field].astype('string')
        mask = compare(values, literal).fillna(False).astype(bool)
    else:
        values = pd.to_numeric(df[field], errors='coerce')
        # NaN never passes, including for !=
        mask = compare(values, literal) & values.notna()

    dropped = int((~mask).sum())
    if dropped:
        logger.info(f"Filter '{condition}' on field '{field}' dropped {dropped} row(s)")
    return df[mask]


def _apply_regex_replace(df: pd.DataFrame, field: str, parameters: Dict[str, Any]) -> pd.DataFrame:
    pattern = parameters.get('pattern')
    if not isinstance(pattern, str) or 'replacement' not in parameters:
        logger.warning(
            f"Regex replace rule for field '{field}' needs 'pattern' and 'replacement'; rule skipped"
        )
        return df

    try:
        regex = re.compile(pattern)
    except re.error as e:
        logger.error(f"Invalid regex '{pattern}' for field '{field}': {e}; rule skipped")
        return df

    replacement = re.sub(r'\$(\d+)', r'\\g<\1>', str(parameters['replacement']))

    column = df[field].astype(object)
    present = column.notna()
    column[present] = column[present].map(lambda value: regex.sub(replacement, str(value)))
    df[field] = column
    return df


def _apply_set_default(df: pd.DataFrame, field: str, parameters: Dict[str, Any]) -> pd.DataFrame:
    if 'defaultValue' not in parameters:
        logger.warning(f"Set default rule for field '{field}' has no 'defaultValue'; rule skipped")
        return df

    column = df[field].astype(object)
    blank = column.map(_is_blank).astype(bool)
    column[blank] = parameters['defaultValue']
    df[field] = column
    return df


def _to_iso_date(value: Any) -> Optional[str]:
    try:
        timestamp = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(timestamp):
        return None
    return timestamp.date().isoformat()


def _convert_value(value: Any, target_type: str) -> Any:
    if target_type == 'number':
        number = pd.to_numeric(value, errors='coerce') if not isinstance(value, bool) else float(value)
        return None if pd.isna(number) else number
    if target_type == 'string':
        return str(value)
    return _to_iso_date(value)


def _apply_data_type_conversion(df: pd.DataFrame, field: str, parameters: Dict[str, Any]) -> pd.DataFrame:
    target_type = parameters.get('targetType')
    if not isinstance(target_type, str):
        logger.warning(f"Conversion rule for field '{field}' has no 'targetType'; rule skipped")
        return df

    if target_type not in SUPPORTED_TARGET_TYPES:
        logger.warning(f"Unsupported target type '{target_type}' for field '{field}'; rule skipped")
        return df

    column = df[field].astype(object)
    present = column.notna()
    converted = column[present].map(lambda value: _convert_value(value, target_type))

    failed = int(converted.isna().sum())
    if failed:
        logger.warning(
            f"{failed} value(s) in field '{field}' could not be converted to {target_type}; set to null"
        )

    column[present] = converted
    column = column.where(column.notna(), None)
    df[field] = column
    return df


_RULE_HANDLERS: Dict[TransformationType, Callable[[pd.DataFrame, str, Dict[str, Any]], pd.DataFrame]] = {
    TransformationType.FILTER: _apply_filter,
    TransformationType.REGEX_REPLACE: _apply_regex_replace,
    TransformationType.SET_DEFAULT: _apply_set_default,
    TransformationType.DATA_TYPE_CONVERSION: _apply_data_type_conversion,
}


def apply_transformation(df: pd.DataFrame, rule: TransformationRule) -> pd.DataFrame:
    """Apply one rule to a copy of the DataFrame."""
    handler = _RULE_HANDLERS.get(rule.type)
    if handler is None:
        logger.warning(f"Unknown transformation type '{rule.type}' for field '{rule.field}'; rule skipped")
        return df

    if rule.field not in df.columns:
        logger.warning(f"Field '{rule.field}' not found for {rule.type.value} rule; rule skipped")
        return df

    return handler(df.copy(), rule.field, rule.parameters or {})


def apply_transformations(
    df: pd.DataFrame,
    rules: Optional[Iterable[TransformationRule]]
) -> pd.DataFrame:
    """
    Apply transformation rules in order.

    Args:
        df: Source rows, one column per source field
        rules: Rules to apply, in order

    Returns:
        Transformed copy of the DataFrame; the index of kept rows is preserved
    """
    result = df.copy()
    for rule in rules or []:
        result = apply_transformation(result, rule)
    return result


__all__ = [
    'FILTER_OPERATORS',
    'parse_condition',
    'apply_transformation',
    'apply_transformations',
]
