"""Simulators for standard stochastic processes."""

import numpy as np
from typing import Optional, Sequence, Union

from .exceptions import InvalidArgumentError
from .types import TimeSeries

Coefficients = Union[float, Sequence[float]]


def _validate(length: int, variance: float):
    if length < 1:
        raise InvalidArgumentError(f"Length must be at least 1, got {length}.")
    if variance <= 0:
        raise InvalidArgumentError(f"Variance must be positive, got {variance}.")


def white_noise(
    length: int,
    mean: float = 0.0,
    variance: float = 1.0,
    name: str = "White Noise",
    seed: Optional[int] = None,
) -> TimeSeries:
    """
    Uncorrelated Gaussian noise ε_t ~ N(mean, variance).

    Args:
        length: Number of time steps
        mean: Mean of the noise
        variance: Variance of the noise
        name: Name of the returned series
        seed: Seed for the pseudo-random number generator
    """
    _validate(length, variance)
    rng = np.random.default_rng(seed)
    return TimeSeries(rng.normal(mean, np.sqrt(variance), size=length), name=name)


def random_walk(
    length: int,
    mean: float = 0.0,
    variance: float = 1.0,
    name: str = "Random Walk",
    seed: Optional[int] = None,
) -> TimeSeries:
    """Random walk y_t = y_{t-1} + ε_t with ε_t ~ N(mean, variance) and y_0 = 0."""
    _validate(length, variance)
    rng = np.random.default_rng(seed)
    increments = rng.normal(mean, np.sqrt(variance), size=length)
    return TimeSeries(np.cumsum(increments), name=name)


def arma_process(
    length: int,
    phi: Coefficients = 0.5,
    theta: Coefficients = 0.5,
    constant: float = 0.0,
    noise_variance: float = 1.0,
    name: str = "",
    seed: Optional[int] = None,
) -> TimeSeries:
    """
    Simulate an ARMA(p, q) process.

        y_t = c + φ₁y_{t-1} + ... + φₚy_{t-p} + ε_t + θ₁ε_{t-1} + ... + θ_qε_{t-q}

    with ε_t ~ N(0, noise_variance). Terms reaching before the start of the
    series are omitted.

    Args:
        length: Number of time steps
        phi: AR coefficient(s); a scalar for order 1
        theta: MA coefficient(s); a scalar for order 1
        constant: Constant term c
        noise_variance: Variance of the innovations
        name: Name of the series. Default: "ARMA(p,q) Process".
        seed: Seed for the pseudo-random number generator

    Example:
        >>> arma22 = arma_process(500, phi=[0.7, -0.2], theta=[0.5, 0.3], seed=0)
    """
    _validate(length, noise_variance)
    phi = np.atleast_1d(np.asarray(phi, dtype=float))
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    p, q = len(phi), len(theta)
    if not name:
        name = f"ARMA({p},{q}) Process"

    rng = np.random.default_rng(seed)
    errors = rng.normal(0.0, np.sqrt(noise_variance), size=length)

    data = np.zeros(length)
    for t in range(length):
        data[t] = constant + errors[t]
        for i in range(1, min(p, t) + 1):
            data[t] += phi[i - 1] * data[t - i]
        for j in range(1, min(q, t) + 1):
            data[t] += theta[j - 1] * errors[t - j]

    return TimeSeries(data, name=name)


def ar_process(
    length: int,
    phi: Coefficients = 0.5,
    constant: float = 0.0,
    noise_variance: float = 1.0,
    name: str = "",
    seed: Optional[int] = None,
) -> TimeSeries:
    """Simulate an AR(p) process, i.e. an ARMA process with θ = 0."""
    if not name:
        name = f"AR({np.size(phi)}) Process"
    return arma_process(
        length, phi=phi, theta=0.0, constant=constant,
        noise_variance=noise_variance, name=name, seed=seed,
    )


def ma_process(
    length: int,
    theta: Coefficients = 0.5,
    mean: float = 0.0,
    noise_variance: float = 1.0,
    name: str = "",
    seed: Optional[int] = None,
) -> TimeSeries:
    """Simulate an MA(q) process around `mean`, i.e. an ARMA process with φ = 0."""
    if not name:
        name = f"MA({np.size(theta)}) Process"
    return arma_process(
        length, phi=0.0, theta=theta, constant=mean,
        noise_variance=noise_variance, name=name, seed=seed,
    )
