"""Differencing and integration between original and differenced scales."""

import numpy as np

from .exceptions import InvalidArgumentError


def difference(values, d: int) -> np.ndarray:
    """
    Apply the first difference x_i - x_{i-1} to `values`, `d` times.

    Args:
        values: Array of shape (n,)
        d: Differencing order. Must satisfy 0 <= d < n.

    Returns:
        Differenced array of shape (n - d,)

    Example:
        >>> difference([1.0, 3.0, 6.0, 10.0], 1)
        array([2., 3., 4.])
    """
    values = np.asarray(values, dtype=float)
    if d < 0:
        raise InvalidArgumentError(f"Differencing order must be non-negative, got {d}.")
    if d >= len(values):
        raise InvalidArgumentError(
            f"Cannot difference a series of length {len(values)} {d} times."
        )
    result = values
    for _ in range(d):
        result = np.diff(result)
    return result


def integrate(forecast_diff, seed_values, d: int) -> np.ndarray:
    """
    Invert `difference` for a forecast made on the differenced scale.

    Each of the `d` passes takes the last value of a growing seed buffer,
    forms the cumulative sum of the current sequence starting from it, and
    then appends the integrated sequence to the buffer. For d > 1 the seed
    of the next pass is therefore the last integrated value, not the last
    observed value of the intermediate difference order.

    Args:
        forecast_diff: Forecast on the differenced scale, shape (h,)
        seed_values: Last observed values on the original scale
        d: Number of integration passes

    Returns:
        Forecast on the original scale, shape (h,)

    Example:
        >>> integrate([2.0, 3.0, 4.0], [1.0], 1)
        array([ 3.,  6., 10.])
    """
    forecast_diff = np.asarray(forecast_diff, dtype=float)
    if d == 0:
        return forecast_diff
    if d < 0:
        raise InvalidArgumentError(f"Integration order must be non-negative, got {d}.")

    seeds = np.asarray(seed_values, dtype=float)
    if len(seeds) == 0:
        raise InvalidArgumentError("At least one seed value is required for integration.")

    result = forecast_diff
    for _ in range(d):
        result = seeds[-1] + np.cumsum(result)
        seeds = np.concatenate([seeds, result])
    return result
