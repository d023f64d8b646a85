"""Shared test fixtures for the rewards metrics pipeline."""

import pytest

from rewards_metrics.aggregation.models import AggregateState
from rewards_metrics.config import AppSettings, ReportSettings


@pytest.fixture
def report_settings(tmp_path) -> ReportSettings:
    """Return ReportSettings pointing into tmp_path, progress logging off."""
    return ReportSettings(
        input_path=str(tmp_path / "rewards.csv"),
        output_path=str(tmp_path / "out" / "rewards-metrics.json"),
        progress_interval=0,
    )


@pytest.fixture
def mock_settings(report_settings: ReportSettings) -> AppSettings:
    """Return AppSettings with test defaults."""
    return AppSettings(log_level="DEBUG", report=report_settings)


@pytest.fixture
def state() -> AggregateState:
    """Fresh, empty aggregate state."""
    return AggregateState()
