"""Core data containers: time series, fit results and prediction results."""

import logging
import numpy as np
import pandas as pd
import pandas.api.types as ptypes
from typing import Any, Dict, Optional, Sequence, Tuple

from .exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)


class TimeSeries:
    """
    Immutable ordered sequence of (timestamp, value) pairs.

    Values are stored as a read-only `float64` array and timestamps as a
    `pandas.Index`, so neither can be modified after construction. Slicing
    and every transformation return a new instance.

    Attributes:
        values: Observed values of shape (n,)
        timestamps: `pandas.Index` of length n. Numeric or datetime.
        name: Free-form label describing where the series came from

    Example:
        >>> ts = TimeSeries([1.0, 3.0, 6.0, 10.0])
        >>> ts.timestamps.tolist()
        [1, 2, 3, 4]
        >>> ts.differentiate().values
        array([2., 3., 4.])
    """

    def __init__(self, values, timestamps=None, name: str = ""):
        """
        Create a `TimeSeries` instance.

        Args:
            values: Sequence of real values. Must be non-empty.
            timestamps: Orderable, subtractable timestamps (numbers or
                `pandas.Timestamp`). Default: 1..n.
            name: Label for the series. Default: "".
        """
        values = np.array(values, dtype=float)
        if values.ndim != 1:
            raise InvalidArgumentError(f"values must be one-dimensional, got shape {values.shape}.")
        if len(values) == 0:
            raise InvalidArgumentError("Time series cannot be empty.")

        if timestamps is None:
            timestamps = pd.RangeIndex(1, len(values) + 1)
        timestamps = pd.Index(timestamps)

        if len(timestamps) != len(values):
            raise InvalidArgumentError(
                f"Length of timestamps ({len(timestamps)}) and values ({len(values)}) must match."
            )

        if not np.all(np.isfinite(values)):
            logger.warning("Time series %r contains NaN or Inf values", name)

        values.setflags(write=False)
        self._values = values
        self._timestamps = timestamps
        self._name = name

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def timestamps(self) -> pd.Index:
        return self._timestamps

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return TimeSeries(self._values[key], self._timestamps[key], name=self._name)
        return self._values[key]

    def __repr__(self):
        return f"TimeSeries(n={len(self)}, name={self._name!r})"

    @classmethod
    def from_series(cls, series: pd.Series, name: Optional[str] = None) -> "TimeSeries":
        """Build a `TimeSeries` from a `pandas.Series`, using its index as timestamps."""
        if name is None:
            name = "" if series.name is None else str(series.name)
        return cls(series.to_numpy(dtype=float), series.index, name=name)

    def to_series(self) -> pd.Series:
        """Return the series as a `pandas.Series` indexed by timestamp."""
        return pd.Series(self._values, index=self._timestamps, name=self._name or None)

    def with_name(self, name: str) -> "TimeSeries":
        return TimeSeries(self._values, self._timestamps, name=name)

    def append(self, timestamps, values) -> "TimeSeries":
        """Return a new series with extra observations appended at the end."""
        new_timestamps = self._timestamps.append(pd.Index(timestamps))
        new_values = np.concatenate([self._values, np.asarray(values, dtype=float)])
        return TimeSeries(new_values, new_timestamps, name=self._name)

    def extrapolate_timestamps(self, horizon: int) -> pd.Index:
        """
        Generate `horizon` future timestamps.

        The step is the difference between the last two observed timestamps,
        so the series must contain at least two observations.
        """
        if horizon < 1:
            raise InvalidArgumentError(f"Horizon must be at least 1, got {horizon}.")
        if len(self) < 2:
            raise InvalidArgumentError("At least two timestamps are needed to extrapolate.")
        last = self._timestamps[-1]
        step = last - self._timestamps[-2]
        return pd.Index([last + step * h for h in range(1, horizon + 1)])

    def differentiate(self, order: int = 1) -> "TimeSeries":
        """
        Discrete difference y_t = x_t - x_{t-1}, applied `order` times.

        The first `order` timestamps are dropped.
        """
        if order < 1:
            raise InvalidArgumentError(f"Order must be at least 1, got {order}.")

        values = self._values
        timestamps = self._timestamps
        for _ in range(order):
            if len(values) < 2:
                raise InvalidArgumentError("Time series too short to differentiate.")
            values = np.diff(values)
            timestamps = timestamps[1:]

        if len(values) == 0:
            raise InvalidArgumentError("Time series too short to differentiate.")

        return TimeSeries(values, timestamps, name=_derived_name(self._name, "Differentiated", order))

    def integrate(self, order: int = 1) -> "TimeSeries":
        """Cumulative sum of the series, applied `order` times."""
        if order < 1:
            raise InvalidArgumentError(f"Order must be at least 1, got {order}.")
        values = self._values
        for _ in range(order):
            values = np.cumsum(values)
        return TimeSeries(values, self._timestamps, name=_derived_name(self._name, "Integrated", order))

    def normalize(self, method: str = "zscore") -> "TimeSeries":
        """
        Normalize values with z-score (sample standard deviation) or min-max scaling.

        Args:
            method: 'zscore' or 'minmax'. Default: 'zscore'.
        """
        values = self._values
        if method == "zscore":
            normalized = (values - values.mean()) / values.std(ddof=1)
        elif method == "minmax":
            normalized = (values - values.min()) / (values.max() - values.min())
        else:
            raise InvalidArgumentError(f"Unknown normalization method: {method}")
        return TimeSeries(normalized, self._timestamps, name=self._name)

    def split_train_test(self, train_ratio: float = 0.8) -> Tuple["TimeSeries", "TimeSeries"]:
        """
        Split into leading training and trailing test series.

        Args:
            train_ratio: Fraction of observations in the training set, strictly in (0, 1).

        Returns:
            train: First floor(n * train_ratio) observations
            test: Remaining observations
        """
        if not 0.0 < train_ratio < 1.0:
            raise InvalidArgumentError(f"train_ratio must be between 0 and 1, got {train_ratio}.")
        train_size = int(np.floor(len(self) * train_ratio))
        if train_size == 0 or train_size == len(self):
            raise InvalidArgumentError(
                f"Series of length {len(self)} cannot be split with train_ratio={train_ratio}."
            )
        return self[:train_size], self[train_size:]


def _derived_name(name: str, operation: str, order: int) -> str:
    if name == "":
        return operation
    if order == 1:
        return f"{name} ({operation})"
    return f"{name} ({operation} {order} times)"


def as_numeric_time(timestamps: Sequence, origin: Optional[pd.Timestamp] = None) -> np.ndarray:
    """
    Convert timestamps to floats usable as a regression axis.

    Numeric timestamps are returned unchanged; datetime timestamps become
    fractional days since `origin` (default: the Unix epoch).
    """
    index = pd.Index(timestamps)
    if ptypes.is_datetime64_any_dtype(index):
        if origin is None:
            origin = pd.Timestamp(0, tz=index.tz)
        return np.asarray((index - origin) / pd.Timedelta(days=1), dtype=float)
    return np.asarray(index, dtype=float)


class FitResult:
    """
    Estimated state of a fitted model.

    A model owns exactly one `FitResult`; every call to `fit` replaces it
    with a new instance rather than updating it.

    Attributes:
        parameters: Mapping of parameter names to estimated values
        fitted_values: In-sample fitted values (NaN where lags are unavailable)
        residuals: In-sample residuals
        is_fitted: Whether parameters have been estimated
    """

    def __init__(
        self,
        parameters: Optional[Dict[str, Any]] = None,
        fitted_values: Optional[np.ndarray] = None,
        residuals: Optional[np.ndarray] = None,
        is_fitted: bool = False,
    ):
        self.parameters = {} if parameters is None else parameters
        self.fitted_values = fitted_values
        self.residuals = residuals
        self.is_fitted = is_fitted

    def __repr__(self):
        return f"FitResult(is_fitted={self.is_fitted}, parameters={sorted(self.parameters)})"


class PredictionResult:
    """
    Point predictions with an optional parallel variance.

    Attributes:
        predictions: `TimeSeries` of point predictions
        prediction_variance: Array of non-negative variances, or None
    """

    def __init__(self, predictions: TimeSeries, prediction_variance=None):
        if prediction_variance is not None:
            prediction_variance = np.array(prediction_variance, dtype=float)
            if len(prediction_variance) != len(predictions):
                raise InvalidArgumentError(
                    f"Variance length ({len(prediction_variance)}) must match "
                    f"prediction length ({len(predictions)})."
                )
            if np.any(prediction_variance < 0):
                raise InvalidArgumentError("Prediction variance must be non-negative.")
            prediction_variance.setflags(write=False)
        self.predictions = predictions
        self.prediction_variance = prediction_variance

    @property
    def prediction_std(self) -> Optional[np.ndarray]:
        if self.prediction_variance is None:
            return None
        return np.sqrt(self.prediction_variance)

    def __len__(self) -> int:
        return len(self.predictions)

    def __repr__(self):
        return (
            f"PredictionResult(n={len(self)}, "
            f"with_variance={self.prediction_variance is not None})"
        )


def as_time_series(series) -> TimeSeries:
    """Accept a `TimeSeries` or a `pandas.Series` and return a `TimeSeries`."""
    if isinstance(series, pd.Series):
        return TimeSeries.from_series(series)
    if not isinstance(series, TimeSeries):
        raise InvalidArgumentError(
            f"Expected a TimeSeries or pandas.Series, got {type(series).__name__}."
        )
    return series
