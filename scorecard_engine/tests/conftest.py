"""
Pytest Configuration and Shared Fixtures for Scorecard Engine Tests.

This module provides fixtures and configuration for all engine tests, supporting:
- KPI configurations for each scoring type (Goal/Red Flag, Yes/No, Text)
- Updater grants and identities with and without the threshold permission
- Ingestion policy fixtures ("require note on Red" on and off)
- Mock settings patched into scorecard_engine.core.config.get_settings
- Sample import DataFrames for transformation and mapping tests

Test groups:
- Configuration: scoring type / data type pairing
- Coercion: free-text values to typed values, precision formatting
- Scoring: the scoring bands, boundary values and clamp
- Permissions: threshold field filter, unset vs null
- Ingestion: pipeline state machine, batches, idempotence
- Imports: transformation rules, row mapping, DataFrame imports
- Calculation: equation references and safe evaluation

Dependencies:
- pytest
- pandas
- numpy
"""

from datetime import date
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pandas as pd
import pytest

from scorecard_engine.models import (
    AggregationType,
    CalendarFrequency,
    DataType,
    IngestionPolicy,
    KpiConfiguration,
    KpiMapping,
    KpiMappingField,
    RawObservation,
    ScoringType,
    UpdaterGrant,
    UpdaterIdentity,
)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - scenario: Marks the worked scoring and ingestion scenarios
    - imports: Marks tests that exercise pandas import processing

    Usage:
        # Run only the worked scenarios:
        pytest -m scenario
    """
    config.addinivalue_line(
        'markers',
        'scenario: marks worked scoring and ingestion scenarios'
    )
    config.addinivalue_line(
        'markers',
        'imports: marks tests exercising DataFrame import processing'
    )


# ============================================================
# IDENTIFIERS
# ============================================================

REVENUE_KPI_ID = '3f1c9a52-8a7e-4a53-9a43-1d7c7b0b2f10'
AUDIT_KPI_ID = '8b2d4e61-1f3a-4c8e-b5d7-2a9c6e0f4b31'
COMMENTARY_KPI_ID = 'c7e9a0b4-5d2f-4e61-8a3c-9f1b7d2e6a05'
MARGIN_KPI_ID = 'e4a1c7d9-3b6f-4a2e-9c8d-5f0b1e7a3c62'

UPDATER_USER_ID = 'user_123'
OTHER_USER_ID = 'user_456'

PERIOD = date(2026, 1, 1)


# ============================================================
# SETTINGS MOCK FIXTURE
# ============================================================

@pytest.fixture
def mock_settings() -> Generator[Mock, None, None]:
    """
    Provide mock engine settings with default values.

    Yields:
        Mock: Mock settings object with all configuration attributes

    Usage:
        def test_with_settings(mock_settings):
            mock_settings.require_note_for_red_kpi = True
            policy = IngestionPolicy.from_settings()
    """
    settings = Mock()
    settings.require_note_for_red_kpi = False
    settings.default_decimal_precision = 0
    settings.log_level = 'INFO'

    with patch('scorecard_engine.core.config.get_settings', return_value=settings):
        yield settings


# ============================================================
# KPI CONFIGURATION FIXTURES
# ============================================================

@pytest.fixture
def goal_config() -> KpiConfiguration:
    """Monthly revenue KPI scored against target and thresholds, 2 decimals."""
    return KpiConfiguration(
        kpi_id=REVENUE_KPI_ID,
        scoring_type=ScoringType.GOAL_RED_FLAG,
        data_type=DataType.CURRENCY,
        decimal_precision=2,
        calendar_frequency=CalendarFrequency.MONTHLY,
        aggregation_type=AggregationType.SUM,
        is_manual_update=True,
    )


@pytest.fixture
def yes_no_config() -> KpiConfiguration:
    """Audit passed (Yes/No) KPI."""
    return KpiConfiguration(
        kpi_id=AUDIT_KPI_ID,
        scoring_type=ScoringType.YES_NO,
        data_type=DataType.NUMBER,
        decimal_precision=0,
        is_manual_update=True,
    )


@pytest.fixture
def text_config() -> KpiConfiguration:
    """Free-text commentary KPI."""
    return KpiConfiguration(
        kpi_id=COMMENTARY_KPI_ID,
        scoring_type=ScoringType.TEXT,
        data_type=DataType.TEXT,
        is_manual_update=True,
    )


@pytest.fixture
def calculated_config() -> KpiConfiguration:
    """Margin percentage calculated from two other KPIs."""
    return KpiConfiguration(
        kpi_id=MARGIN_KPI_ID,
        scoring_type=ScoringType.GOAL_RED_FLAG,
        data_type=DataType.PERCENTAGE,
        decimal_precision=1,
        calculation_equation='([KPI:Revenue] - [KPI:Cost]) / [KPI:Revenue] * 100',
    )


@pytest.fixture
def configurations(
    goal_config: KpiConfiguration,
    yes_no_config: KpiConfiguration,
    text_config: KpiConfiguration
) -> Dict[str, KpiConfiguration]:
    """Configurations keyed by KPI id, as supplied by the configuration store."""
    return {
        goal_config.kpi_id: goal_config,
        yes_no_config.kpi_id: yes_no_config,
        text_config.kpi_id: text_config,
    }


# ============================================================
# UPDATER FIXTURES
# ============================================================

def make_identity(
    kpi_id: str,
    user_id: str = UPDATER_USER_ID,
    can_modify_thresholds: bool = True,
    registered: bool = True
) -> UpdaterIdentity:
    """Build an updater identity, with a grant for the KPI unless unregistered."""
    grant = None
    if registered:
        grant = UpdaterGrant(
            kpi_id=kpi_id,
            user_id=user_id,
            can_modify_thresholds=can_modify_thresholds,
        )
    return UpdaterIdentity(user_id=user_id, grant=grant)


@pytest.fixture
def privileged_updater() -> UpdaterIdentity:
    """Updater of the revenue KPI allowed to write target and thresholds."""
    return make_identity(REVENUE_KPI_ID, can_modify_thresholds=True)


@pytest.fixture
def basic_updater() -> UpdaterIdentity:
    """Updater of the revenue KPI allowed to write actual values only."""
    return make_identity(REVENUE_KPI_ID, can_modify_thresholds=False)


@pytest.fixture
def unregistered_user() -> UpdaterIdentity:
    """User without an updater grant."""
    return make_identity(REVENUE_KPI_ID, user_id=OTHER_USER_ID, registered=False)


def make_observation(
    kpi_id: str,
    requested_by: UpdaterIdentity,
    period_date: date = PERIOD,
    **values: Optional[str]
) -> RawObservation:
    """Build a raw observation; only the given value fields are set."""
    return RawObservation(
        kpi_id=kpi_id,
        period_date=period_date,
        requested_by=requested_by,
        **values,
    )


# ============================================================
# POLICY FIXTURES
# ============================================================

@pytest.fixture
def default_policy() -> IngestionPolicy:
    return IngestionPolicy()


@pytest.fixture
def note_on_red_policy() -> IngestionPolicy:
    return IngestionPolicy(require_note_on_red=True)


# ============================================================
# IMPORT DATA FIXTURES
# ============================================================

@pytest.fixture
def sample_import_rows() -> pd.DataFrame:
    """
    Generate sample spreadsheet rows for a revenue import.

    Columns follow a typical finance sheet: a period column, the reported
    revenue, the goal and the red/yellow lines. Row 3 has an empty revenue
    cell and row 4 a malformed period.

    Returns:
        pd.DataFrame: Four source rows
    """
    return pd.DataFrame({
        'Period': ['2026-01-31', '2026-02-28T00:00:00Z', '2026-03-31', '31/04/2026'],
        'Revenue': ['140000', '160000', np.nan, '90000'],
        'Goal': ['150000', '150000', '150000', '150000'],
        'Red': ['120000', '120000', '120000', '120000'],
        'Yellow': ['135000', '135000', '135000', '135000'],
        'Region': ['North', 'South', 'North', 'East'],
    })


@pytest.fixture
def revenue_mapping() -> KpiMapping:
    """Mapping of the sample sheet onto the revenue KPI."""
    return KpiMapping(
        kpi_id=REVENUE_KPI_ID,
        period_date=KpiMappingField(source_field='Period'),
        actual_value=KpiMappingField(source_field='Revenue'),
        target_value=KpiMappingField(source_field='Goal'),
        threshold_red=KpiMappingField(source_field='Red'),
        threshold_yellow=KpiMappingField(source_field='Yellow'),
    )


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    """Raw records as returned by a database import query."""
    return [
        {'period': '2026-01-01', 'value': '12.5', 'comment': None},
        {'period': '2026-02-01', 'value': '', 'comment': 'late'},
        {'period': '2026-03-01', 'value': 'n/a', 'comment': '  '},
    ]
