"""Simple exponential smoothing (SES) model."""

import logging
import numpy as np
import pandas as pd
from typing import Sequence, Tuple

from .base import ForecastModel
from ..exceptions import InvalidArgumentError
from ..types import FitResult, TimeSeries, as_time_series

logger = logging.getLogger(__name__)


def smooth_levels(values: np.ndarray, alpha: float) -> Tuple[np.ndarray, float]:
    """
    Run the SES level recursion.

        level_1 = y_1
        level_t = α·y_{t-1} + (1 - α)·level_{t-1}

    Returns:
        levels: One-step-ahead fitted values of shape (n,)
        final_level: Level updated through the last observation
    """
    levels = np.zeros(len(values))
    levels[0] = values[0]
    for t in range(1, len(values)):
        levels[t] = alpha * values[t - 1] + (1 - alpha) * levels[t - 1]
    final_level = alpha * values[-1] + (1 - alpha) * levels[-1]
    return levels, final_level


class SESModel(ForecastModel):
    """
    Simple exponential smoothing: ŷ_{t+1} = α·y_t + (1 - α)·ŷ_t.

    Forecasts are flat at the final smoothed level.

    Attributes:
        alpha: Smoothing parameter, strictly between 0 and 1
    """

    def __init__(self, alpha: float = 0.5):
        if not 0.0 < alpha < 1.0:
            raise InvalidArgumentError(f"Alpha must be between 0 and 1, got {alpha}.")
        super().__init__()
        self.alpha = alpha

    def min_train_size(self) -> int:
        return 2

    def fit(self, series: TimeSeries) -> "SESModel":
        series = as_time_series(series)
        values = series.values
        levels, level = smooth_levels(values, self.alpha)

        self.state = FitResult(
            parameters={"alpha": self.alpha, "level": level},
            fitted_values=levels,
            residuals=values - levels,
            is_fitted=True,
        )
        logger.debug("Fitted SES(alpha=%s) on %d observations, level=%.4g", self.alpha, len(values), level)
        return self

    def predict(self, timestamps: Sequence, return_uncertainty: bool = False) -> TimeSeries:
        self._check_fitted("predict")
        timestamps = pd.Index(timestamps)
        return TimeSeries(np.full(len(timestamps), self.state.parameters["level"]), timestamps)

    def forecast(self, series: TimeSeries, horizon: int) -> TimeSeries:
        self._check_fitted("forecast")
        self._check_horizon(horizon)
        series = as_time_series(series)
        return self.predict(series.extrapolate_timestamps(horizon)).with_name(self._forecast_name())

    def __repr__(self):
        return f"SESModel(alpha={self.alpha})"
