"""Linear trend models: OLS and ridge-regularized regression on time."""

import logging
import numpy as np
import pandas as pd
import pandas.api.types as ptypes
from typing import Sequence, Union

from .base import ForecastModel
from ..exceptions import InvalidArgumentError, NumericalInstabilityError
from ..regressors import LinearRegression, RidgeRegression
from ..types import FitResult, PredictionResult, TimeSeries, as_time_series, as_numeric_time

logger = logging.getLogger(__name__)


def build_trend_matrix(x: np.ndarray) -> np.ndarray:
    """Design matrix [1, t] of shape (n, 2)."""
    return np.column_stack([np.ones(len(x)), x])


class LinearModel(ForecastModel):
    """
    Linear trend model fitted by ordinary least squares.

        y_t = a + b·t + ε_t

    Datetime timestamps are regressed on as fractional days since the first
    training timestamp, which is stored as `time_origin`. Besides the
    coefficients, the fit stores their variances and covariance so
    prediction variances can be propagated:

        Var(ŷ₀) = Var(a) + 2x·Cov(a, b) + x²·Var(b)

    Attributes:
        sliding_window: Number of most recent observations `iterative_predict`
            trains on. Must be at least 2.
    """

    supports_uncertainty = True
    # Predictions lie exactly on the fitted line; feeding them back makes the system degenerate
    allows_prediction_feedback = False

    def __init__(self, sliding_window: int = 5):
        if sliding_window < 2:
            raise InvalidArgumentError(f"Sliding window must be at least 2, got {sliding_window}.")
        super().__init__()
        self.sliding_window = sliding_window

    def min_train_size(self) -> int:
        return max(2, self.sliding_window)

    def _make_regressor(self) -> LinearRegression:
        return LinearRegression()

    def _coefficient_covariance(self, X: np.ndarray, residual_variance: float) -> np.ndarray:
        # Cov(β̂) = σ²(X^T X)^{-1}
        try:
            return residual_variance * np.linalg.inv(X.T @ X)
        except np.linalg.LinAlgError as e:
            raise NumericalInstabilityError(f"Cannot invert X^T X: {e}") from e

    def _extra_params(self) -> dict:
        return {}

    def fit(self, series: TimeSeries) -> "LinearModel":
        series = as_time_series(series)
        n = len(series)
        if n < 2:
            raise InvalidArgumentError(f"A trend model needs at least 2 observations, got {n}.")

        timestamps = series.timestamps
        origin = timestamps[0] if ptypes.is_datetime64_any_dtype(timestamps) else None
        X = build_trend_matrix(as_numeric_time(timestamps, origin))
        y = series.values

        regressor = self._make_regressor().fit(X, y)
        intercept, slope = regressor.get_params()
        fitted = regressor.predict(X)
        residuals = y - fitted

        df = n - X.shape[1]
        if df <= 0:
            df = n - 1
        residual_variance = np.sum(residuals**2) / df
        covariance = self._coefficient_covariance(X, residual_variance)

        self.state = FitResult(
            parameters={
                "intercept": intercept,
                "slope": slope,
                "intercept_variance": covariance[0, 0],
                "slope_variance": covariance[1, 1],
                "covariance": covariance[0, 1],
                "residual_variance": residual_variance,
                "time_origin": origin,
                **self._extra_params(),
            },
            fitted_values=fitted,
            residuals=residuals,
            is_fitted=True,
        )
        logger.debug("Fitted %r on %d observations: slope=%.4g", self, n, slope)
        return self

    def predict(
        self,
        timestamps: Sequence,
        return_uncertainty: bool = False,
    ) -> Union[TimeSeries, PredictionResult]:
        """
        Evaluate the fitted trend at `timestamps`.

        With `return_uncertainty`, also return the variance of the fitted
        mean at each timestamp.
        """
        self._check_fitted("predict")
        timestamps = pd.Index(timestamps)
        params = self.state.parameters
        x = as_numeric_time(timestamps, params["time_origin"])
        predictions = TimeSeries(params["intercept"] + params["slope"] * x, timestamps)

        if not return_uncertainty:
            return predictions

        variance = (
            params["intercept_variance"]
            + 2 * x * params["covariance"]
            + x**2 * params["slope_variance"]
        )
        return PredictionResult(predictions, np.maximum(variance, 0.0))

    def forecast(self, series: TimeSeries, horizon: int) -> TimeSeries:
        """Extrapolate the trend over `horizon` steps after the end of `series`."""
        self._check_fitted("forecast")
        self._check_horizon(horizon)
        series = as_time_series(series)
        predictions = self.predict(series.extrapolate_timestamps(horizon))
        return predictions.with_name(self._forecast_name())

    def __repr__(self):
        return f"LinearModel(sliding_window={self.sliding_window})"


class RidgeModel(LinearModel):
    """
    Linear trend model with L2 regularization of the slope.

        (a, b) = argmin ||y - a - b·t||² + λb²

    The intercept is not regularized. The coefficient covariance is
    σ²(X^T X)^{-1}, with σ² taken from the ridge residuals.

    Attributes:
        lam: Regularization strength λ >= 0
        sliding_window: Number of most recent observations `iterative_predict`
            trains on. Must be at least 2.
    """

    def __init__(self, lam: float = 1.0, sliding_window: int = 5):
        if lam < 0:
            raise InvalidArgumentError(f"Lambda must be non-negative, got {lam}.")
        super().__init__(sliding_window=sliding_window)
        self.lam = lam

    def _make_regressor(self) -> RidgeRegression:
        return RidgeRegression(alpha=self.lam)

    def _extra_params(self) -> dict:
        return {"lambda": self.lam}

    def __repr__(self):
        return f"RidgeModel(lam={self.lam}, sliding_window={self.sliding_window})"
