"""Exceptions raised by forecasting models and utilities."""


class ForecastingError(Exception):
    """Base class for all errors raised by `ts_forecasting`."""


class InvalidArgumentError(ForecastingError, ValueError):
    """
    Raised when an argument is outside its valid domain.

    Examples: non-positive model orders or variances, a smoothing parameter
    outside (0, 1), mismatched lengths, a series shorter than a model's
    minimum training size, or a forecast horizon below 1.
    """


class NotFittedError(ForecastingError, ValueError):
    """Raised when predict/forecast is called on a model that has not been fitted."""


class NumericalInstabilityError(ForecastingError, ArithmeticError):
    """Raised when the normal equations are singular and no fallback applies."""
