# practice_pulse/analytics/forecasting.py
# FORECAST ENGINE - LEAST-SQUARES LINEAR PROJECTION

import logging
from typing import List, NamedTuple, Optional, Sequence, Union

import numpy as np

from config import settings
from data_processing.helpers import next_month_keys
from data_processing.models import (
    EnrichedMonth, ForecastPoint, ForecastResult, ForecastSeries, ForecastTrack, InsufficientForecast,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = 'insufficient_data'


class Regression(NamedTuple):
    slope: float
    intercept: float
    r2: float


def linear_regression(series: Sequence[float]) -> Regression:
    """
    Ordinary least squares of the values against their index (0, 1, 2, ...).

    x starts at 0, so the intercept is the fitted value of the first point:
    [10, 20, 30, 40, 50] gives slope 10 and intercept 10, not 0 as a 1-based
    x would. Forecasts index from the same origin.
    """
    y = np.asarray([0.0 if v is None else float(v) for v in series], dtype=float)
    n = len(y)
    if n == 0:
        return Regression(0.0, 0.0, 0.0)
    if n == 1:
        return Regression(0.0, float(y[0]), 0.0)

    x = np.arange(n, dtype=float)
    denominator = n * np.sum(x * x) - np.sum(x) ** 2
    slope = (n * np.sum(x * y) - np.sum(x) * np.sum(y)) / denominator
    intercept = (np.sum(y) - slope * np.sum(x)) / n

    ss_total = np.sum((y - y.mean()) ** 2)
    ss_residual = np.sum((y - (slope * x + intercept)) ** 2)
    r2 = 1 - ss_residual / ss_total if ss_total > 0 else 0.0
    return Regression(float(slope), float(intercept), float(r2))


def classify_trend(slope: float) -> str:
    if abs(slope) <= settings.ANALYTICS.trend_stable_slope:
        return 'stable'
    return 'increasing' if slope > 0 else 'decreasing'


def forecast_values(series: Sequence[float], periods_ahead: int = 3) -> ForecastResult:
    """
    Projects `periods_ahead` points past the end of the series. Fewer than the
    minimum number of points returns an empty result marked 'insufficient_data'.
    """
    if series is None or len(series) < settings.ANALYTICS.min_forecast_points:
        return ForecastResult(forecasts=[], trend=INSUFFICIENT_DATA, monthly_change=0, r2=0)

    reg = linear_regression(series)
    n = len(series)
    forecasts = [
        ForecastPoint(period_offset=i, value=max(0.0, reg.slope * (n - 1 + i) + reg.intercept), confidence=reg.r2)
        for i in range(1, periods_ahead + 1)
    ]
    return ForecastResult(forecasts=forecasts, trend=classify_trend(reg.slope), monthly_change=reg.slope, r2=reg.r2)


def linear_forecast(series: Sequence[float], periods: int = 2) -> List[int]:
    """Rounded, non-negative projections for chart series; empty below the minimum history."""
    result = forecast_values(series, periods)
    return [int(round(point.value)) for point in result.forecasts]


def _track(actual: List[float], projected: List[int], periods: int) -> ForecastTrack:
    # The projected line starts at the last actual point so the two lines join.
    return ForecastTrack(
        actual=actual + [None] * periods,
        projected=[None] * (len(actual) - 1) + [actual[-1]] + projected,
    )


def build_forecast_series(
    months: Sequence[EnrichedMonth], periods: Optional[int] = None
) -> Union[ForecastSeries, InsufficientForecast]:
    """Appointment and inbound-call forecast tracks for the chart layer."""
    periods = periods or settings.ANALYTICS.forecast_periods
    if len(months) < settings.ANALYTICS.min_forecast_points:
        logger.info(f"Forecast skipped: {len(months)} months available.")
        return InsufficientForecast(count=len(months))

    appts = [float(mo.total_appts) for mo in months]
    calls = [float(mo.inbound_received or 0) for mo in months]
    labels = [mo.month for mo in months] + next_month_keys(months[-1].month, periods)
    return ForecastSeries(
        labels=labels,
        appts=_track(appts, linear_forecast(appts, periods), periods),
        calls=_track(calls, linear_forecast(calls, periods), periods),
    )
