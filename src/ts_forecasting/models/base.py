"""Base interface for forecasting models."""

from abc import ABC, abstractmethod
import numpy as np
from typing import Optional, Sequence, Union

from ..exceptions import InvalidArgumentError, NotFittedError
from ..types import FitResult, PredictionResult, TimeSeries


class ForecastModel(ABC):
    """
    Base class for forecasting models.

    Hyperparameters are fixed at construction. The estimated state lives in
    `self.state`, a `FitResult` that is replaced on every call to `fit`.

    Class attributes:
        supports_uncertainty: `predict(..., return_uncertainty=True)` returns
            a `PredictionResult` with variances. Models without it return a
            plain `TimeSeries`.
        allows_prediction_feedback: Predictions may be appended to the
            training data during iterative forecasting.
    """

    supports_uncertainty = False
    allows_prediction_feedback = True

    #: Number of most recent observations used for training by `iterative_predict`.
    #: None means the full history.
    sliding_window: Optional[int] = None

    def __init__(self):
        self.state = FitResult()

    @abstractmethod
    def fit(self, series: TimeSeries) -> "ForecastModel":
        """
        Fit model parameters to observed data.

        Any previous fit is discarded.

        Args:
            series: Observed `TimeSeries` (or `pandas.Series`, which is converted)

        Returns:
            self: The fitted model
        """
        pass

    @abstractmethod
    def predict(
        self,
        timestamps: Sequence,
        return_uncertainty: bool = False,
    ) -> Union[TimeSeries, PredictionResult]:
        """
        Predict values at the given timestamps.

        Args:
            timestamps: Timestamps to predict at
            return_uncertainty: Also return prediction variances when the
                model supports them. Default: False.

        Returns:
            predictions: `TimeSeries` indexed by `timestamps`, or a
                `PredictionResult` when uncertainty is requested and supported
        """
        pass

    @abstractmethod
    def forecast(self, series: TimeSeries, horizon: int) -> TimeSeries:
        """
        Make a multi-step forecast following `series`.

        Args:
            series: The series the forecast continues. Its last two
                timestamps define the step of the forecast timestamps.
            horizon: Number of steps to forecast ahead

        Returns:
            forecast: `TimeSeries` of length `horizon`
        """
        pass

    @abstractmethod
    def min_train_size(self) -> int:
        """Minimum number of observations `iterative_predict` trains on."""
        pass

    @property
    def is_fitted(self) -> bool:
        return self.state.is_fitted

    def get_params(self) -> dict:
        """Return the estimated parameters."""
        self._check_fitted("get_params")
        return self.state.parameters

    def get_residuals(self) -> np.ndarray:
        """Return the in-sample residuals."""
        self._check_fitted("get_residuals")
        return self.state.residuals

    def _check_fitted(self, method: str):
        if not self.state.is_fitted:
            raise NotFittedError(
                f"Model must be fitted before calling {method}(). Call fit() first."
            )

    @staticmethod
    def _check_horizon(horizon: int):
        if horizon < 1:
            raise InvalidArgumentError(f"Horizon must be at least 1, got {horizon}.")

    def _forecast_name(self) -> str:
        return f"{type(self).__name__} (forecast)"
