"""
Calculated KPI Equations Test Module

Tests for scorecard_engine/services/calculation.py.

Test Coverage:
- Reference extraction for [KPI:<uuid>] and [KPI:<name>]
- Substitution: missing values become 0, unknown references stay in place
- Arithmetic evaluation through the AST whitelist
- Rejection of anything that is not plain arithmetic
- Calculated observations feeding the ingestion pipeline
"""

from decimal import Decimal

import pytest

from scorecard_engine.models import IngestionSource, KpiColor, KpiThresholds
from scorecard_engine.services.calculation import (
    build_calculated_observation,
    evaluate_equation,
    evaluate_expression,
    extract_kpi_references,
    substitute_kpi_values,
)
from scorecard_engine.services.ingestion import ingest_observation
from scorecard_engine.tests.conftest import (
    MARGIN_KPI_ID,
    PERIOD,
    REVENUE_KPI_ID,
    make_identity,
)


class TestExtractKpiReferences:
    """Tests for extract_kpi_references()."""

    def test_id_and_name_references(self):
        equation = f'[KPI:{REVENUE_KPI_ID}] - [KPI: Cost ]'

        references = extract_kpi_references(equation)

        assert len(references) == 2
        assert references[0].identifier == REVENUE_KPI_ID
        assert references[0].is_id is True
        assert references[0].original_match == f'[KPI:{REVENUE_KPI_ID}]'
        assert references[1].identifier == 'Cost'
        assert references[1].is_id is False
        assert references[1].original_match == '[KPI: Cost ]'

    def test_no_references(self):
        assert extract_kpi_references('1 + 2') == []
        assert extract_kpi_references('') == []

    def test_repeated_reference(self):
        references = extract_kpi_references('[KPI:A] * [KPI:A]')
        assert [reference.identifier for reference in references] == ['A', 'A']


class TestSubstituteKpiValues:
    """Tests for substitute_kpi_values()."""

    def test_substitutes_every_occurrence(self):
        result = substitute_kpi_values('[KPI:A] * [KPI:A] + [KPI:B]', {'A': '3', 'B': 4})
        assert result == '(3) * (3) + (4)'

    def test_missing_value_becomes_zero(self):
        result = substitute_kpi_values('[KPI:A] + [KPI:B]', {'A': None, 'B': ''})
        assert result == '(0) + (0)'

    def test_unknown_reference_left_in_place(self):
        result = substitute_kpi_values('[KPI:A] + [KPI:Unknown]', {'A': '1'})
        assert result == '(1) + [KPI:Unknown]'


class TestEvaluateExpression:
    """Tests for evaluate_expression()."""

    @pytest.mark.parametrize('expression,expected', [
        ('1 + 2', Decimal('3')),
        ('(10 - 4) * 2', Decimal('12')),
        ('7 / 2', Decimal('3.5')),
        ('7 // 2', Decimal('3')),
        ('7 % 3', Decimal('1')),
        ('2 ** 10', Decimal('1024')),
        ('-(3)', Decimal('-3')),
        ('+2.5', Decimal('2.5')),
        ('0.1 + 0.2', Decimal('0.3')),
        ('(5) - (-2)', Decimal('7')),
    ])
    def test_arithmetic(self, expression, expected):
        assert evaluate_expression(expression) == expected

    @pytest.mark.parametrize('expression', [
        '1 / 0',
        '0 / 0',
        '__import__("os").getcwd()',
        'abs(-1)',
        'x + 1',
        '"a" + "b"',
        '[1, 2]',
        '1 if True else 2',
        '2 ** 100000',
        '1 +',
        '[KPI:Missing] + 1',
        'True + 1',
    ])
    def test_not_evaluable(self, expression):
        assert evaluate_expression(expression) is None

    @pytest.mark.parametrize('expression', [
        '-' * 995 + '1',
        '(' * 1000 + '1' + ')' * 1000,
    ])
    def test_deep_nesting_is_not_evaluable(self, expression):
        assert evaluate_expression(expression) is None


class TestEvaluateEquation:
    """Tests for evaluate_equation()."""

    def test_margin(self):
        result = evaluate_equation(
            '([KPI:Revenue] - [KPI:Cost]) / [KPI:Revenue] * 100',
            {'Revenue': '200000', 'Cost': '150000'},
        )
        assert result == Decimal('25')

    def test_negative_values(self):
        assert evaluate_equation('[KPI:A] - [KPI:B]', {'A': '-5', 'B': '-10'}) == Decimal('5')

    def test_unknown_reference_is_not_evaluable(self):
        assert evaluate_equation('[KPI:A] + [KPI:B]', {'A': '1'}) is None

    def test_missing_value_counts_as_zero(self):
        assert evaluate_equation('[KPI:A] + [KPI:B]', {'A': '1', 'B': None}) == Decimal('1')


class TestBuildCalculatedObservation:
    """Tests for build_calculated_observation() and ingestion of the result."""

    def test_observation_for_margin(self, calculated_config):
        identity = make_identity(MARGIN_KPI_ID, can_modify_thresholds=False)

        observation = build_calculated_observation(
            calculated_config, {'Revenue': '300000', 'Cost': '200000'}, PERIOD, identity
        )

        assert observation.kpi_id == MARGIN_KPI_ID
        assert observation.period_date == PERIOD
        assert observation.actual_value == '33.3'
        assert not observation.is_set('target_value')

    def test_not_evaluable(self, calculated_config):
        identity = make_identity(MARGIN_KPI_ID)

        observation = build_calculated_observation(
            calculated_config, {'Revenue': '0', 'Cost': '0'}, PERIOD, identity
        )

        assert observation is None

    def test_deeply_nested_equation(self, calculated_config):
        config = calculated_config.model_copy(update={'calculation_equation': '-' * 995 + '[KPI:Revenue]'})
        identity = make_identity(MARGIN_KPI_ID)

        assert build_calculated_observation(config, {'Revenue': '1'}, PERIOD, identity) is None

    def test_result_too_large_to_store(self, calculated_config):
        config = calculated_config.model_copy(update={'calculation_equation': '[KPI:Revenue] ** 300'})
        identity = make_identity(MARGIN_KPI_ID)

        assert build_calculated_observation(config, {'Revenue': '10'}, PERIOD, identity) is None

    def test_kpi_without_equation(self, goal_config):
        identity = make_identity(REVENUE_KPI_ID)
        assert build_calculated_observation(goal_config, {}, PERIOD, identity) is None

    def test_text_kpi_is_skipped(self, text_config):
        config = text_config.model_copy(update={'calculation_equation': '1 + 1'})
        identity = make_identity(config.kpi_id)

        assert build_calculated_observation(config, {}, PERIOD, identity) is None

    def test_ingested_with_stored_thresholds(self, calculated_config, default_policy):
        identity = make_identity(MARGIN_KPI_ID, can_modify_thresholds=False)
        observation = build_calculated_observation(
            calculated_config, {'Revenue': '300000', 'Cost': '200000'}, PERIOD, identity
        )

        outcome = ingest_observation(
            calculated_config, observation,
            source=IngestionSource.CALCULATED, policy=default_policy,
            stored=KpiThresholds(target_value='30', threshold_red='20'),
        )

        assert outcome.success
        assert outcome.scored_value.actual_value == '33.3'
        assert (outcome.scored_value.score, outcome.scored_value.color) == (100, KpiColor.GREEN)
        assert outcome.scored_value.is_manual_entry is False
