"""
Calculated KPI Equations

A calculated KPI derives its actual value from other KPIs through an equation
such as "([KPI:Revenue] - [KPI:Cost]) / [KPI:Revenue] * 100". References are
written [KPI:<uuid>] or [KPI:<name>].

The equation is evaluated in three steps:
1. extract the references
2. substitute each reference with the referenced value ("0" when the value is
   missing; unknown references are left in place)
3. evaluate the arithmetic with decimals, walking a whitelisted AST

Only numbers, + - * / // % **, unary +/- and parentheses are accepted. The
expression is never handed to eval(). A result that cannot be computed (syntax
error, unresolved reference, division by zero) is None.

The result is ingested like an import, with source=calculated.
"""

import ast
import logging
import re
from datetime import date
from decimal import Decimal, DecimalException
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from scorecard_engine.models import (
    KpiConfiguration,
    KpiReference,
    MAX_VALUE_LENGTH,
    RawObservation,
    UpdaterIdentity,
)
from scorecard_engine.services.coercion import format_decimal

logger = logging.getLogger(__name__)

UUID_PATTERN = r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'

KPI_REFERENCE_PATTERN = re.compile(r'\[KPI:(' + UUID_PATTERN + r'|[^\]]+?)\]')
UUID_REGEX = re.compile(r'^' + UUID_PATTERN + r'$')

# Largest exponent accepted by **
MAX_EXPONENT = Decimal(1000)

_BINARY_OPERATORS: Dict[Type[ast.operator], Callable[[Decimal, Decimal], Decimal]] = {
    ast.Add: lambda left, right: left + right,
    ast.Sub: lambda left, right: left - right,
    ast.Mult: lambda left, right: left * right,
    ast.Div: lambda left, right: left / right,
    ast.FloorDiv: lambda left, right: left // right,
    ast.Mod: lambda left, right: left % right,
    ast.Pow: lambda left, right: left ** right,
}

_UNARY_OPERATORS: Dict[Type[ast.unaryop], Callable[[Decimal], Decimal]] = {
    ast.UAdd: lambda operand: +operand,
    ast.USub: lambda operand: -operand,
}


def extract_kpi_references(equation: str) -> List[KpiReference]:
    """
    Find the KPI references in an equation, in order of appearance.

    Args:
        equation: Calculation equation

    Returns:
        References with is_id set when the identifier is a UUID
    """
    references = []
    for match in KPI_REFERENCE_PATTERN.finditer(equation or ''):
        identifier = match.group(1).strip()
        references.append(KpiReference(
            identifier=identifier,
            is_id=bool(UUID_REGEX.match(identifier)),
            original_match=match.group(0),
        ))

    if references:
        logger.debug(f"Extracted {len(references)} KPI reference(s) from '{equation}'")
    return references


def substitute_kpi_values(equation: str, values: Mapping[str, Any]) -> str:
    """
    Replace KPI references with their values.

    Args:
        equation: Calculation equation
        values: Referenced values keyed by KPI id or name, as referenced

    Returns:
        The equation with references replaced. Missing or None values become
        "0"; references with no entry in `values` are left as they are.
    """
    substituted = equation
    for reference in extract_kpi_references(equation):
        if reference.identifier not in values:
            logger.warning(f"No value supplied for KPI reference {reference.original_match}")
            continue
        value = values[reference.identifier]
        replacement = '0' if value is None or str(value).strip() == '' else str(value).strip()
        substituted = substituted.replace(reference.original_match, f'({replacement})')
    return substituted


def _evaluate_node(node: ast.AST) -> Decimal:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ValueError(f"Unsupported constant: {node.value!r}")
        return Decimal(str(node.value))

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError(f"Exponent {right} is too large")
        return _BINARY_OPERATORS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate_node(node.operand))

    raise ValueError(f"Unsupported expression component: {type(node).__name__}")


def evaluate_expression(expression: str) -> Optional[Decimal]:
    """
    Evaluate an arithmetic expression.

    Returns:
        The result, or None if the expression is not valid arithmetic or
        cannot be computed
    """
    try:
        tree = ast.parse(expression.strip(), mode='eval')
        result = _evaluate_node(tree)
    except (
        SyntaxError,
        ValueError,
        ArithmeticError,
        DecimalException,
        # Deeply nested operators exhaust the parser or the evaluator's stack
        RecursionError,
        MemoryError,
    ) as e:
        logger.warning(f"Could not evaluate expression '{expression}': {e}")
        return None

    if not result.is_finite():
        logger.warning(f"Expression '{expression}' did not produce a finite number")
        return None
    return result


def evaluate_equation(equation: str, values: Mapping[str, Any]) -> Optional[Decimal]:
    """
    Substitute KPI values into an equation and evaluate it.

    Args:
        equation: Calculation equation with [KPI:...] references
        values: Referenced values keyed by KPI id or name

    Returns:
        The result, or None if it cannot be computed
    """
    return evaluate_expression(substitute_kpi_values(equation, values))


def build_calculated_observation(
    configuration: KpiConfiguration,
    values: Mapping[str, Any],
    period_date: date,
    requested_by: UpdaterIdentity
) -> Optional[RawObservation]:
    """
    Compute a calculated KPI's actual value for one period.

    Only actual_value is set on the observation, so stored target and
    thresholds are kept and used for scoring.

    Args:
        configuration: Configuration of the calculated KPI
        values: Referenced values keyed by KPI id or name
        period_date: Reporting period
        requested_by: Identity the calculation runs as

    Returns:
        The observation to ingest with source=calculated, or None when the KPI
        has no equation, is not numeric, or the equation cannot be computed
    """
    if not configuration.calculation_equation:
        logger.warning(f"KPI {configuration.kpi_id} has no calculation equation")
        return None

    if not configuration.is_numeric:
        logger.warning(f"KPI {configuration.kpi_id} is not numeric; calculation skipped")
        return None

    result = evaluate_equation(configuration.calculation_equation, values)
    if result is None:
        return None

    if result.adjusted() >= MAX_VALUE_LENGTH:
        logger.warning(f"Calculated value for KPI {configuration.kpi_id} is too large to store")
        return None

    actual_value = format_decimal(result, configuration.decimal_precision)
    if len(actual_value) > MAX_VALUE_LENGTH:
        logger.warning(f"Calculated value for KPI {configuration.kpi_id} is too long to store")
        return None

    return RawObservation(
        kpi_id=configuration.kpi_id,
        period_date=period_date,
        actual_value=actual_value,
        requested_by=requested_by,
    )


__all__ = [
    'KPI_REFERENCE_PATTERN',
    'extract_kpi_references',
    'substitute_kpi_values',
    'evaluate_expression',
    'evaluate_equation',
    'build_calculated_observation',
]
