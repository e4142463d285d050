"""
Autoregressive integrated moving average (ARIMA) model.

The series is differenced d times and an ARMA(p, q) model is fitted to the
differenced values. Estimation uses closed-form approximations rather than
maximum likelihood:

- AR part: ordinary least squares on lagged values
- MA part (p = 0): method of moments on the sample autocorrelations
- ARMA (p, q > 0): two stages, OLS for the AR part followed by the
  autocorrelations of the AR residuals as MA coefficients

Forecasts are produced on the differenced scale and integrated back.
"""

import logging
import numpy as np
import pandas as pd
from collections import deque
from statsmodels.tsa.stattools import acf
from typing import Sequence, Tuple

from .ar import build_ar_matrix
from .base import ForecastModel
from ..exceptions import InvalidArgumentError
from ..regressors import LinearRegression
from ..transforms import difference, integrate
from ..types import FitResult, TimeSeries, as_time_series

logger = logging.getLogger(__name__)


def autocorrelations(values: np.ndarray, nlags: int) -> np.ndarray:
    """
    Sample autocorrelations at lags 1..nlags.

    Autocovariances use divisor n and are normalized by the lag-0 variance.
    A series with (numerically) zero variance has zero autocorrelation.
    """
    values = np.asarray(values, dtype=float)
    centered = values - values.mean()
    c0 = np.sum(centered**2) / len(centered)
    rho = np.zeros(nlags)
    usable = min(nlags, len(values) - 1)
    if usable < 1 or np.isclose(c0, 0.0):
        return rho
    rho[:usable] = acf(centered, nlags=usable, adjusted=False, fft=False)[1:]
    return rho


def estimate_ma_coefficients(rho: np.ndarray) -> np.ndarray:
    """
    Method-of-moments MA(q) coefficients from autocorrelations.

    For q = 1, θ = (-1 + sqrt(1 - 4ρ₁²)) / (2ρ₁) when 0 < |ρ₁| < 0.5 and
    θ = ρ₁ otherwise. For q > 1 the autocorrelations are used directly.
    """
    if len(rho) == 1:
        rho1 = rho[0]
        if 0 < abs(rho1) < 0.5:
            return np.array([(-1 + np.sqrt(1 - 4 * rho1**2)) / (2 * rho1)])
        return np.array([rho1])
    return np.asarray(rho, dtype=float).copy()


def _fit_ar_part(values: np.ndarray, p: int):
    X, y = build_ar_matrix(values, p)
    regressor = LinearRegression(allow_pinv=True).fit(X, y)
    beta = regressor.get_params()
    fitted = regressor.predict(X)
    return beta[0], beta[1:], fitted, y - fitted


def fit_arma(values, p: int, q: int) -> Tuple[float, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Fit an ARMA(p, q) model to stationary data.

    Args:
        values: Observations of shape (n,)
        p: AR order
        q: MA order

    Returns:
        intercept: Constant term (the mean for a pure MA model)
        ar_coefficients: Array of shape (p,)
        ma_coefficients: Array of shape (q,)
        fitted: Fitted values of shape (n,), NaN for the first p entries when p > 0
        residuals: Residuals of shape (n,), NaN for the first p entries when p > 0
    """
    values = np.asarray(values, dtype=float)
    n = len(values)

    if p > 0:
        if n <= p:
            raise InvalidArgumentError(f"Time series too short for ARMA({p},{q}) model, got {n} samples.")
        intercept, ar_coeffs, ar_fitted, ar_residuals = _fit_ar_part(values, p)
        if q > 0:
            ma_coeffs = autocorrelations(ar_residuals, q)
        else:
            ma_coeffs = np.zeros(0)
        pad = np.full(p, np.nan)
        return (
            intercept,
            ar_coeffs,
            ma_coeffs,
            np.concatenate([pad, ar_fitted]),
            np.concatenate([pad, ar_residuals]),
        )

    if n <= q:
        raise InvalidArgumentError(f"Time series too short for MA({q}) model, got {n} samples.")

    mu = values.mean()
    centered = values - mu
    ma_coeffs = estimate_ma_coefficients(autocorrelations(values, q))

    # The first q errors are seeded from the centred observations
    fitted = np.full(n, mu)
    errors = np.zeros(n)
    errors[:q] = centered[:q]
    for t in range(q, n):
        fitted[t] = mu + sum(ma_coeffs[j - 1] * errors[t - j] for j in range(1, q + 1))
        errors[t] = values[t] - fitted[t]

    return mu, np.zeros(0), ma_coeffs, fitted, values - fitted


def arma_recursion(
    intercept: float,
    ar_coefficients: np.ndarray,
    ma_coefficients: np.ndarray,
    history,
    residuals,
    horizon: int,
) -> np.ndarray:
    """
    Multi-step ARMA forecast on the (differenced) scale of `history`.

    The MA term of step h only uses the known errors at lags j >= h; errors
    after the end of the data are taken to be zero.

    Args:
        intercept: Constant term
        ar_coefficients: φ_1..φ_p
        ma_coefficients: θ_1..θ_q
        history: Observed values, oldest first. At least max(p, q) values.
        residuals: In-sample residuals. NaN entries are ignored.
        horizon: Number of steps

    Returns:
        forecasts: Array of shape (horizon,)
    """
    p, q = len(ar_coefficients), len(ma_coefficients)
    history = list(np.asarray(history, dtype=float)[-max(p, q):])

    errors = deque(maxlen=q)
    if q > 0:
        residuals = np.asarray(residuals, dtype=float)
        valid = residuals[~np.isnan(residuals)][-q:]
        errors.extend(np.concatenate([np.zeros(q - len(valid)), valid]))

    forecasts = np.zeros(horizon)
    for h in range(1, horizon + 1):
        value = intercept
        for i in range(1, p + 1):
            value += ar_coefficients[i - 1] * history[-i]
        for j in range(h, q + 1):
            value += ma_coefficients[j - 1] * errors[-j]

        forecasts[h - 1] = value
        history.append(value)
        if q > 0:
            errors.append(0.0)
    return forecasts


class ARIMAModel(ForecastModel):
    """
    ARIMA(p, d, q) model.

        (1 - φ₁L - ... - φₚLᵖ)(1 - L)ᵈ y_t = c + (1 + θ₁L + ... + θ_qL^q) ε_t

    Fitted values and residuals are stored on the differenced scale.

    Attributes:
        p: AR order
        d: Differencing order
        q: MA order
    """

    def __init__(self, p: int = 1, d: int = 0, q: int = 0):
        if p < 0 or d < 0 or q < 0:
            raise InvalidArgumentError(f"ARIMA orders must be non-negative, got ({p},{d},{q}).")
        if p == 0 and q == 0:
            raise InvalidArgumentError("At least one of p or q must be positive.")
        super().__init__()
        self.p = p
        self.d = d
        self.q = q

    def min_train_size(self) -> int:
        return max(self.p, self.q) * 3 + self.d

    def fit(self, series: TimeSeries) -> "ARIMAModel":
        series = as_time_series(series)
        values = series.values
        n = len(values)
        if n < self.min_train_size():
            raise InvalidArgumentError(
                f"Time series too short for ARIMA({self.p},{self.d},{self.q}) model: "
                f"need at least {self.min_train_size()} samples, got {n}."
            )

        diff_values = difference(values, self.d)
        intercept, ar_coeffs, ma_coeffs, fitted, residuals = fit_arma(diff_values, self.p, self.q)

        self.state = FitResult(
            parameters={
                "intercept": intercept,
                "ar_coefficients": ar_coeffs,
                "ma_coefficients": ma_coeffs,
                "d": self.d,
                "original_values": values.copy(),
                "differenced_values": diff_values.copy(),
            },
            fitted_values=fitted,
            residuals=residuals,
            is_fitted=True,
        )
        logger.debug(
            "Fitted ARIMA(%d,%d,%d) on %d observations: ar=%s ma=%s",
            self.p, self.d, self.q, n, ar_coeffs, ma_coeffs,
        )
        return self

    def _forecast_values(self, history: np.ndarray, horizon: int) -> np.ndarray:
        params = self.state.parameters
        forecasts_diff = arma_recursion(
            params["intercept"],
            params["ar_coefficients"],
            params["ma_coefficients"],
            history,
            self.state.residuals,
            horizon,
        )
        if self.d == 0:
            return forecasts_diff
        seed = params["original_values"][-self.d:]
        return integrate(forecasts_diff, seed, self.d)

    def predict(self, timestamps: Sequence, return_uncertainty: bool = False) -> TimeSeries:
        """
        Predict at `timestamps` from the end of the training data.

        The one-step-ahead forecast is repeated at every requested timestamp;
        this is not a multi-step forecast. Use `forecast` for that.
        """
        self._check_fitted("predict")
        timestamps = pd.Index(timestamps)
        one_step = self._forecast_values(self.state.parameters["differenced_values"], 1)[0]
        return TimeSeries(np.full(len(timestamps), one_step), timestamps)

    def forecast(self, series: TimeSeries, horizon: int) -> TimeSeries:
        """
        Multi-step forecast following `series`.

        With d = 0 the recursion starts from the last values of `series`.
        With d > 0 it starts from the differenced training data and is
        integrated from the last d training values.
        """
        self._check_fitted("forecast")
        self._check_horizon(horizon)
        series = as_time_series(series)

        if self.d > 0:
            history = self.state.parameters["differenced_values"]
        else:
            history = series.values
        if len(history) < max(self.p, self.q):
            raise InvalidArgumentError(
                f"Series must contain at least max(p,q)={max(self.p, self.q)} values, got {len(history)}."
            )

        forecasts = self._forecast_values(history, horizon)
        return TimeSeries(forecasts, series.extrapolate_timestamps(horizon), name=self._forecast_name())

    def __repr__(self):
        return f"ARIMAModel(p={self.p}, d={self.d}, q={self.q})"
