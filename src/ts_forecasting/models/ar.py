"""Autoregressive models: OLS AR(p) and Bayesian AR(p)."""

import logging
import numpy as np
import pandas as pd
from collections import deque
from typing import Optional, Sequence, Tuple, Union

from .base import ForecastModel
from ..exceptions import InvalidArgumentError
from ..regressors import BayesianLinearRegression, LinearRegression, predictive_variance
from ..types import FitResult, PredictionResult, TimeSeries, as_time_series

logger = logging.getLogger(__name__)

# Default prior variance of the Bayesian AR parameters (a weak prior)
DEFAULT_PRIOR_VARIANCE = 1000.0


def build_ar_matrix(values: np.ndarray, p: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the AR(p) design matrix and target vector.

    Row t of the design matrix is [1, y_{t-1}, ..., y_{t-p}] and the target
    is y_t, for t = p, ..., n-1.

    Returns:
        X: Design matrix of shape (n - p, p + 1)
        y: Targets of shape (n - p,)
    """
    n = len(values)
    if n <= p:
        raise InvalidArgumentError(f"Time series must have more than p={p} samples, got {n}.")

    X = np.ones((n - p, p + 1))
    for lag in range(1, p + 1):
        X[:, lag] = values[p - lag:n - lag]
    y = values[p:]
    return X, y


def ar_recursion(intercept: float, coefficients: np.ndarray, history, steps: int) -> np.ndarray:
    """
    Iterate y_t = c + Σ φ_i y_{t-i} for `steps` steps.

    Args:
        intercept: Constant c
        coefficients: AR coefficients φ_1..φ_p
        history: At least p most recent values, oldest first
        steps: Number of values to generate

    Returns:
        predictions: Array of shape (steps,)
    """
    p = len(coefficients)
    buffer = deque(np.asarray(history, dtype=float)[-p:], maxlen=p)
    predictions = np.zeros(steps)
    for h in range(steps):
        lags = np.array([buffer[-i] for i in range(1, p + 1)])
        predictions[h] = intercept + coefficients @ lags
        buffer.append(predictions[h])
    return predictions


def _pad(values: np.ndarray, p: int) -> np.ndarray:
    return np.concatenate([np.full(p, np.nan), values])


class ARModel(ForecastModel):
    """
    Autoregressive model of order p.

        y_t = c + φ₁y_{t-1} + ... + φₚy_{t-p} + ε_t

    Parameters are estimated by ordinary least squares. A rank-deficient
    design falls back to the pseudo-inverse solution.

    Attributes:
        p: Autoregressive order
    """

    def __init__(self, p: int = 1):
        if p < 1:
            raise InvalidArgumentError(f"AR order must be at least 1, got {p}.")
        super().__init__()
        self.p = p

    def min_train_size(self) -> int:
        return self.p + 1

    def fit(self, series: TimeSeries) -> "ARModel":
        series = as_time_series(series)
        values = series.values
        X, y = build_ar_matrix(values, self.p)

        regressor = LinearRegression(allow_pinv=True).fit(X, y)
        beta = regressor.get_params()
        fitted = regressor.predict(X)

        self.state = FitResult(
            parameters={
                "intercept": beta[0],
                "coefficients": beta[1:],
                "last_values": values[-self.p:].copy(),
                "used_pinv": regressor.used_pinv,
            },
            fitted_values=_pad(fitted, self.p),
            residuals=_pad(y - fitted, self.p),
            is_fitted=True,
        )
        logger.debug("Fitted AR(%d) on %d observations", self.p, len(values))
        return self

    def _one_step(self) -> float:
        params = self.state.parameters
        return ar_recursion(params["intercept"], params["coefficients"], params["last_values"], 1)[0]

    def predict(self, timestamps: Sequence, return_uncertainty: bool = False) -> TimeSeries:
        """
        Predict at `timestamps` from the end of the training data.

        The one-step-ahead forecast is repeated at every requested timestamp;
        this is not a multi-step forecast. Use `forecast` or
        `iterative_predict` for genuine multi-step predictions.
        """
        self._check_fitted("predict")
        timestamps = pd.Index(timestamps)
        return TimeSeries(np.full(len(timestamps), self._one_step()), timestamps)

    def forecast(self, series: TimeSeries, horizon: int) -> TimeSeries:
        """
        Recursive multi-step forecast from the last p values of `series`.

        The series does not need to be the training series, so a fitted
        model can forecast from any starting history.
        """
        self._check_fitted("forecast")
        self._check_horizon(horizon)
        series = as_time_series(series)
        if len(series) < self.p:
            raise InvalidArgumentError(
                f"Series must contain at least p={self.p} values, got {len(series)}."
            )

        params = self.state.parameters
        predictions = ar_recursion(params["intercept"], params["coefficients"], series.values, horizon)
        return TimeSeries(predictions, series.extrapolate_timestamps(horizon), name=self._forecast_name())

    def __repr__(self):
        return f"ARModel(p={self.p})"


class BayesianARModel(ForecastModel):
    """
    Bayesian autoregressive model of order p.

    Uses Bayesian linear regression on the AR design matrix with a conjugate
    Normal-Inverse-Gamma prior:

        β ~ N(μ₀, diag(prior_variance)),   σ² ~ Inverse-Gamma(0.001, 0.001)

    so besides point estimates the model yields a posterior covariance of
    the parameters and predictive variances.

    Attributes:
        p: Autoregressive order
        prior_mean: Prior mean of [intercept, φ₁, ..., φₚ]
        prior_variance: Prior variance of each parameter, shape (p + 1,)

    Example:
        # Informative prior: expect intercept≈0, φ₁≈0.7, φ₂≈0.2
        model = BayesianARModel(p=2, prior_mean=[0.0, 0.7, 0.2], prior_variance=0.1)
    """

    supports_uncertainty = True

    def __init__(
        self,
        p: int = 1,
        prior_mean: Optional[Sequence[float]] = None,
        prior_variance: Union[float, Sequence[float]] = DEFAULT_PRIOR_VARIANCE,
        random_state: Optional[Union[int, np.random.Generator]] = None,
    ):
        """
        Create a `BayesianARModel` instance.

        Args:
            p: Autoregressive order. Must be at least 1.
            prior_mean: Prior mean of length p + 1. Default: zeros.
            prior_variance: Positive scalar, or positive array of length p + 1
                for a diagonal prior. Default: 1000.0.
            random_state: Seed or `numpy.random.Generator` for the noise added
                to predictions made with uncertainty. Default: None.
        """
        if p < 1:
            raise InvalidArgumentError(f"AR order must be at least 1, got {p}.")

        if prior_mean is None:
            prior_mean = np.zeros(p + 1)
        prior_mean = np.asarray(prior_mean, dtype=float)
        if prior_mean.shape != (p + 1,):
            raise InvalidArgumentError(
                f"Prior mean must have length p+1={p + 1}, got {prior_mean.size}."
            )

        prior_variance = np.asarray(prior_variance, dtype=float)
        if prior_variance.ndim == 0:
            prior_variance = np.full(p + 1, float(prior_variance))
        if prior_variance.shape != (p + 1,):
            raise InvalidArgumentError(
                f"Prior variance must be a scalar or have length p+1={p + 1}, got {prior_variance.size}."
            )
        if np.any(prior_variance <= 0):
            raise InvalidArgumentError("Prior variance must be positive.")

        super().__init__()
        self.p = p
        self.prior_mean = prior_mean
        self.prior_variance = prior_variance
        self.rng = np.random.default_rng(random_state)

    def min_train_size(self) -> int:
        return self.p + 1

    def fit(self, series: TimeSeries) -> "BayesianARModel":
        series = as_time_series(series)
        values = series.values
        X, y = build_ar_matrix(values, self.p)

        regressor = BayesianLinearRegression(
            prior_mean=self.prior_mean, prior_precision=1.0 / self.prior_variance
        ).fit(X, y)
        beta = regressor.get_params()
        covariance = regressor.covariance
        fitted = regressor.predict(X)

        self.state = FitResult(
            parameters={
                "intercept": beta[0],
                "coefficients": beta[1:],
                "residual_variance": regressor.noise_variance,
                "posterior_covariance": covariance,
                "posterior_precision": regressor.precision,
                "intercept_variance": covariance[0, 0],
                "coefficient_variances": np.diag(covariance)[1:].copy(),
                "a_post": regressor.a_post,
                "b_post": regressor.b_post,
                "last_values": values[-self.p:].copy(),
            },
            fitted_values=_pad(fitted, self.p),
            residuals=_pad(y - fitted, self.p),
            is_fitted=True,
        )
        logger.debug(
            "Fitted Bayesian AR(%d) on %d observations, residual variance %.4g",
            self.p, len(values), regressor.noise_variance,
        )
        return self

    def predict(
        self,
        timestamps: Sequence,
        return_uncertainty: bool = False,
    ) -> Union[TimeSeries, PredictionResult]:
        """
        Predict at `timestamps` from the end of the training data.

        Without uncertainty, the one-step-ahead posterior mean forecast is
        repeated at every timestamp.

        With uncertainty, the timestamps are treated as consecutive future
        steps. At each step the posterior mean prediction x^T β is computed
        from the lag buffer, Gaussian noise with the posterior residual
        variance is added to it, and the predictive variance
        σ²_post + x^T Σ_post x is recorded. The lag buffer advances with the
        noise-free prediction.
        """
        self._check_fitted("predict")
        timestamps = pd.Index(timestamps)
        params = self.state.parameters

        if not return_uncertainty:
            point = ar_recursion(params["intercept"], params["coefficients"], params["last_values"], 1)[0]
            return TimeSeries(np.full(len(timestamps), point), timestamps)

        beta = np.concatenate([[params["intercept"]], params["coefficients"]])
        sigma2 = params["residual_variance"]
        covariance = params["posterior_covariance"]

        buffer = deque(params["last_values"], maxlen=self.p)
        predictions = np.zeros(len(timestamps))
        variances = np.zeros(len(timestamps))
        for h in range(len(timestamps)):
            x = np.concatenate([[1.0], [buffer[-i] for i in range(1, self.p + 1)]])
            point = beta @ x
            predictions[h] = point + self.rng.normal(0.0, np.sqrt(sigma2))
            variances[h] = predictive_variance(x, sigma2, covariance)
            buffer.append(point)

        return PredictionResult(TimeSeries(predictions, timestamps), variances)

    def forecast(self, series: TimeSeries, horizon: int) -> TimeSeries:
        """Recursive multi-step posterior mean forecast from the last p values of `series`."""
        self._check_fitted("forecast")
        self._check_horizon(horizon)
        series = as_time_series(series)
        if len(series) < self.p:
            raise InvalidArgumentError(
                f"Series must contain at least p={self.p} values, got {len(series)}."
            )

        params = self.state.parameters
        predictions = ar_recursion(params["intercept"], params["coefficients"], series.values, horizon)
        return TimeSeries(predictions, series.extrapolate_timestamps(horizon), name=self._forecast_name())

    def __repr__(self):
        return f"BayesianARModel(p={self.p}, prior_variance={self.prior_variance.tolist()})"
