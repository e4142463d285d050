"""Model training, prediction and walk-forward (iterative) forecasting."""

import logging
import numpy as np
from typing import Sequence, Union

from .exceptions import InvalidArgumentError
from .models.base import ForecastModel
from .types import PredictionResult, TimeSeries, as_time_series

logger = logging.getLogger(__name__)


def fit(model: ForecastModel, series: TimeSeries) -> ForecastModel:
    """Fit `model` to `series`, replacing any previous fit. Returns the model."""
    return model.fit(series)


def predict(
    model: ForecastModel,
    timestamps: Sequence,
    return_uncertainty: bool = False,
) -> Union[TimeSeries, PredictionResult]:
    """Predict with a fitted model at `timestamps`."""
    return model.predict(timestamps, return_uncertainty=return_uncertainty)


def forecast(model: ForecastModel, series: TimeSeries, horizon: int) -> TimeSeries:
    """Forecast `horizon` steps after the end of `series` with a fitted model."""
    return model.forecast(series, horizon)


def min_train_size(model: ForecastModel) -> int:
    """Minimum number of observations the model is trained on by `iterative_predict`."""
    return model.min_train_size()


def _training_window(series: TimeSeries, end: int, window) -> TimeSeries:
    start = 0 if window is None else max(0, end - window)
    return series[start:end]


def iterative_predict(
    model: ForecastModel,
    series: TimeSeries,
    horizon: int,
    return_uncertainty: bool = False,
    include_predictions: bool = False,
) -> Union[TimeSeries, PredictionResult]:
    """
    Walk-forward prediction with an expanding (or sliding) training window.

    In-sample phase: for every observation i after the first
    `min_train_size(model)`, refit the model on the observations before i
    (only the last `model.sliding_window` of them if the model has a
    sliding window) and predict the timestamp of observation i.

    Out-of-sample phase: for each of `horizon` future steps, refit on the
    most recent allowed window and predict the next extrapolated timestamp.
    With `include_predictions`, each out-of-sample prediction is appended to
    the training data before the next refit. Trend models never feed back
    their predictions since those lie exactly on the fitted line.

    Args:
        model: Model instance. It is refitted at every step.
        series: Historical observations, at least `min_train_size(model)` long
        horizon: Number of steps to predict beyond the end of `series`
        return_uncertainty: Collect prediction variances if the model
            supports them. Default: False.
        include_predictions: Feed out-of-sample predictions back into the
            training data. Default: False.

    Returns:
        `TimeSeries` of length (n - min_train_size) + horizon named
        "<Model> (out-of-sample)", or a `PredictionResult` wrapping it when
        uncertainty was requested and is supported.

    Example:
        >>> ts = TimeSeries([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        >>> result = iterative_predict(ARModel(p=1), ts, horizon=3)
        >>> len(result)
        7
    """
    series = as_time_series(series)
    n = len(series)
    min_size = model.min_train_size()
    if n < min_size:
        raise InvalidArgumentError(
            f"Time series must have at least {min_size} points for {model!r}, got {n}."
        )
    if n < 2:
        raise InvalidArgumentError("Time series must have at least 2 points to extrapolate timestamps.")
    if horizon < 1:
        raise InvalidArgumentError(f"Horizon must be at least 1, got {horizon}.")

    with_variance = return_uncertainty and model.supports_uncertainty
    window = model.sliding_window
    future_timestamps = series.extrapolate_timestamps(horizon)

    predictions = []
    variances = []

    def predict_next(training: TimeSeries, timestamp) -> float:
        model.fit(training)
        result = model.predict([timestamp], return_uncertainty=with_variance)
        if with_variance:
            variances.append(result.prediction_variance[0])
            result = result.predictions
        predictions.append(result.values[0])
        return result.values[0]

    # In-sample: reconstruct observations min_size..n-1 from their past
    for i in range(min_size, n):
        predict_next(_training_window(series, i, window), series.timestamps[i])

    # Out-of-sample: extend beyond the data
    feedback = include_predictions and model.allows_prediction_feedback
    if include_predictions and not feedback:
        logger.debug("%r does not feed predictions back into training", model)

    history = series
    for timestamp in future_timestamps:
        value = predict_next(_training_window(history, len(history), window), timestamp)
        if feedback:
            history = history.append([timestamp], [value])

    logger.debug(
        "Iterative prediction with %r: %d in-sample, %d out-of-sample points",
        model, n - min_size, horizon,
    )

    timestamps = series.timestamps[min_size:].append(future_timestamps)
    output = TimeSeries(np.array(predictions), timestamps, name=f"{type(model).__name__} (out-of-sample)")
    if with_variance:
        return PredictionResult(output, np.array(variances))
    return output
