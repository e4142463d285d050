"""Time series forecasting models."""

from .base import ForecastModel
from .ar import ARModel, BayesianARModel
from .arima import ARIMAModel
from .linear import LinearModel, RidgeModel
from .ses import SESModel

__all__ = [
    "ForecastModel",
    "ARModel",
    "BayesianARModel",
    "ARIMAModel",
    "LinearModel",
    "RidgeModel",
    "SESModel",
]
