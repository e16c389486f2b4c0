# practice_pulse/tests/test_forecasting.py
# FORECAST ENGINE TESTS

import pytest

from analytics import build_forecast_series, forecast_values, linear_forecast, linear_regression
from analytics.forecasting import INSUFFICIENT_DATA, classify_trend
from data_processing.models import EnrichedMonth, ForecastSeries, InsufficientForecast


def _month(key: str, appts: float, calls: float = None) -> EnrichedMonth:
    return EnrichedMonth(month=key, working_days=20, total_appts=appts, gp_appts=appts / 2, inbound_received=calls)


# --- Regression Tests ---
def test_perfect_linear_series():
    reg = linear_regression([10, 20, 30, 40, 50])
    assert reg.slope == pytest.approx(10.0)
    assert reg.intercept == pytest.approx(10.0)  # x is the 0-based index
    # Shifting to a 1-based x moves the intercept back by one slope, to 0.
    assert reg.intercept - reg.slope == pytest.approx(0.0)
    assert reg.r2 == pytest.approx(1.0)


def test_flat_series_has_zero_r2():
    reg = linear_regression([7, 7, 7])
    assert reg.slope == pytest.approx(0.0)
    assert reg.r2 == 0.0


def test_trend_classification():
    assert classify_trend(0.005) == 'stable'
    assert classify_trend(-0.01) == 'stable'
    assert classify_trend(2) == 'increasing'
    assert classify_trend(-2) == 'decreasing'


# --- Forecast Tests ---
def test_forecast_needs_three_points():
    result = forecast_values([10, 20], 3)
    assert result.forecasts == []
    assert result.trend == INSUFFICIENT_DATA


def test_forecast_projects_forward():
    result = forecast_values([10, 20, 30, 40, 50], 2)
    assert [p.value for p in result.forecasts] == pytest.approx([60.0, 70.0])
    assert [p.period_offset for p in result.forecasts] == [1, 2]
    assert result.trend == 'increasing'
    assert result.monthly_change == pytest.approx(10.0)
    assert all(p.confidence == pytest.approx(1.0) for p in result.forecasts)


def test_forecast_is_clamped_at_zero():
    assert linear_forecast([50, 30, 10], 2) == [0, 0]


# --- Chart Series Tests ---
def test_forecast_series_labels_and_tracks():
    months = [_month('Nov-24', 100, 400), _month('Dec-24', 110, 420), _month('Jan-25', 120, 440)]
    series = build_forecast_series(months)
    assert isinstance(series, ForecastSeries)
    assert series.labels == ['Nov-24', 'Dec-24', 'Jan-25', 'Feb-25', 'Mar-25']
    assert series.appts.actual == [100, 110, 120, None, None]
    assert series.appts.projected == [None, None, 120, 130, 140]
    assert series.calls.projected[-1] == 480


def test_forecast_series_insufficient_history():
    series = build_forecast_series([_month('Jan-25', 100), _month('Feb-25', 90)])
    assert isinstance(series, InsufficientForecast)
    assert series.to_dict() == {'hasData': False, 'count': 2}
