"""Univariate time series forecasting package."""

__version__ = "0.1.0"

from .types import (
    TimeSeries,
    FitResult,
    PredictionResult,
)

from .exceptions import (
    ForecastingError,
    InvalidArgumentError,
    NotFittedError,
    NumericalInstabilityError,
)

from .models import (
    ForecastModel,
    ARModel,
    BayesianARModel,
    ARIMAModel,
    LinearModel,
    RidgeModel,
    SESModel,
)

from .training import fit, predict, forecast, iterative_predict, min_train_size

from .processes import (
    white_noise,
    random_walk,
    ar_process,
    ma_process,
    arma_process,
)

from .evaluation import (
    mse,
    mae,
    rmse,
    rolling_forecast,
    RollingForecastResult,
)

__all__ = [
    # Data containers
    "TimeSeries",
    "FitResult",
    "PredictionResult",

    # Exceptions
    "ForecastingError",
    "InvalidArgumentError",
    "NotFittedError",
    "NumericalInstabilityError",

    # Models
    "ForecastModel",
    "ARModel",
    "BayesianARModel",
    "ARIMAModel",
    "LinearModel",
    "RidgeModel",
    "SESModel",

    # Training and prediction
    "fit",
    "predict",
    "forecast",
    "iterative_predict",
    "min_train_size",

    # Process generators
    "white_noise",
    "random_walk",
    "ar_process",
    "ma_process",
    "arma_process",

    # Evaluation
    "mse",
    "mae",
    "rmse",
    "rolling_forecast",
    "RollingForecastResult",
]
