"""Evaluation metrics and rolling-origin backtesting for forecasting models."""

import copy
import logging
import numpy as np
from typing import Dict, List

from .exceptions import InvalidArgumentError
from .models.base import ForecastModel
from .types import TimeSeries, as_time_series

logger = logging.getLogger(__name__)


def _check_lengths(y_true: np.ndarray, y_pred: np.ndarray):
    if len(y_true) != len(y_pred):
        raise InvalidArgumentError(
            f"y_true ({len(y_true)}) and y_pred ({len(y_pred)}) must have the same length."
        )


def mse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Calculate the mean squared error (MSE).

    Args:
        y_true: True values
        y_pred: Predicted values

    Returns:
        mse: Mean squared error
    """
    y_true, y_pred = np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)
    _check_lengths(y_true, y_pred)
    return float(np.mean((y_pred - y_true)**2))


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Calculate the root mean square error (RMSE).

    Args:
        y_true: True values
        y_pred: Predicted values

    Returns:
        rmse: Root mean square error
    """
    return float(np.sqrt(mse(y_true, y_pred)))


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Calculate mean absolute error (MAE).

    Args:
        y_true: True values
        y_pred: Predicted values

    Returns:
        mae: Mean absolute error
    """
    y_true, y_pred = np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)
    _check_lengths(y_true, y_pred)
    return float(np.mean(np.abs(y_pred - y_true)))


class RollingForecastResult:
    """
    Forecasts and actuals collected by `rolling_forecast`.

    Attributes:
        forecasts: One forecast array of length `horizon` per origin
        actuals: Matching observed values
        errors: Aggregate metrics over all forecasts ('mse', 'mae', 'rmse')
    """

    def __init__(self, forecasts: List[np.ndarray], actuals: List[np.ndarray], errors: Dict[str, float]):
        self.forecasts = forecasts
        self.actuals = actuals
        self.errors = errors

    def __len__(self) -> int:
        return len(self.forecasts)

    def summary(self) -> str:
        lines = [
            "Rolling Forecast Backtest Results",
            "=" * 40,
            f"Number of forecasts: {len(self)}",
        ]
        if self.errors:
            lines.append("")
            lines.append("Error Metrics:")
            for metric, value in self.errors.items():
                lines.append(f"  {metric.upper()}: {value:.4f}")
        return "\n".join(lines)


def rolling_forecast(
    model: ForecastModel,
    series: TimeSeries,
    train_size: int,
    horizon: int = 1,
    step: int = 1,
) -> RollingForecastResult:
    """
    Perform a rolling-origin forecast backtest.

    For each forecast origin:
    1. Fits a fresh copy of `model` on all observations before the origin
    2. Forecasts `horizon` steps ahead
    3. Stores the forecast alongside the observed values
    4. Advances the origin by `step` observations

    Args:
        model: Template model. It is deep-copied for every origin and left unfitted.
        series: Observed series
        train_size: Number of observations before the first origin
        horizon: Forecast horizon. Default: 1.
        step: Number of observations between origins. Default: 1.

    Returns:
        `RollingForecastResult` with forecasts, actuals and aggregate errors
    """
    series = as_time_series(series)
    n = len(series)
    if train_size >= n:
        raise InvalidArgumentError(
            f"train_size ({train_size}) must be less than the series length ({n})."
        )
    if horizon < 1 or step < 1:
        raise InvalidArgumentError(f"horizon and step must be at least 1, got {horizon} and {step}.")

    forecasts = []
    actuals = []

    origin = train_size
    while origin + horizon <= n:
        train = series[:origin]
        fold_model = copy.deepcopy(model)
        fold_model.fit(train)
        forecasts.append(fold_model.forecast(train, horizon).values)
        actuals.append(series.values[origin:origin + horizon])
        origin += step

    errors = {}
    if forecasts:
        all_forecasts = np.concatenate(forecasts)
        all_actuals = np.concatenate(actuals)
        errors = {
            "mse": mse(all_actuals, all_forecasts),
            "mae": mae(all_actuals, all_forecasts),
            "rmse": rmse(all_actuals, all_forecasts),
        }
    else:
        logger.warning("No forecast origins fit in a series of length %d with horizon %d", n, horizon)

    return RollingForecastResult(forecasts, actuals, errors)
