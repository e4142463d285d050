"""Regression methods for model fitting."""

import logging
import numpy as np

from .exceptions import InvalidArgumentError, NumericalInstabilityError

logger = logging.getLogger(__name__)

# Weak Inverse-Gamma hyperprior on the noise variance
INVGAMMA_PRIOR_SHAPE = 0.001
INVGAMMA_PRIOR_SCALE = 0.001


def predictive_variance(x: np.ndarray, noise_variance: float, covariance: np.ndarray) -> float:
    """
    Posterior predictive variance at feature vector `x`.

    Combines noise and parameter uncertainty, σ²_post + x^T Σ_post x,
    clamped at zero.
    """
    return max(0.0, float(noise_variance + x @ covariance @ x))


def _solve(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    try:
        return np.linalg.solve(lhs, rhs)
    except np.linalg.LinAlgError as e:
        raise NumericalInstabilityError(f"Normal equations are singular: {e}") from e


class LinearRegression():
    """
    Ordinary Least Squares (OLS) linear regression.

    Fits a linear model by minimizing the squared residuals:
        minimize ||y - Xθ||²

    The solution is obtained via the normal equations:
        θ = (X^T X)^{-1} X^T y

    If `allow_pinv` is set and X^T X is rank-deficient, the Moore-Penrose
    pseudo-inverse is used instead, which returns the minimum-norm solution.
    Otherwise a singular system raises `NumericalInstabilityError`.

    Attributes:
        params: Fitted parameters (coefficients) of shape (n_features,)
        used_pinv: Whether the last fit fell back to the pseudo-inverse

    Example:
        >>> regressor = LinearRegression()
        >>> regressor.fit(X_train, y_train)
        >>> predictions = regressor.predict(X_test)
        >>> coefficients = regressor.get_params()
    """

    def __init__(self, allow_pinv: bool = False):
        """
        Initialize the linear regression model.

        Args:
            allow_pinv: Fall back to a pseudo-inverse solve when X^T X is
                rank-deficient. Default: False.
        """
        self.allow_pinv = allow_pinv
        self.params = None
        self.used_pinv = False

    def fit(self, X: np.ndarray, y: np.ndarray) -> "LinearRegression":
        """
        Fit the linear regression model using ordinary least squares.

        Args:
            X: Feature matrix of shape (n_samples, n_features)
            y: Target vector of shape (n_samples,)

        Returns:
            self: The fitted model
        """
        gram = X.T @ X
        moment = X.T @ y
        self.used_pinv = False

        if self.allow_pinv and np.linalg.matrix_rank(gram) < gram.shape[0]:
            logger.debug("Gram matrix is rank-deficient, using pseudo-inverse solve")
            self.params = np.linalg.pinv(gram) @ moment
            self.used_pinv = True
        else:
            self.params = _solve(gram, moment)
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Generate predictions using the fitted model.

        Args:
            X: Feature matrix of shape (n_samples, n_features)

        Returns:
            predictions: Predicted values of shape (n_samples,)
        """
        return np.einsum('i,ji->j', self.params, X)

    def get_params(self) -> np.ndarray:
        """
        Get the fitted parameters.

        Returns:
            params: Coefficient array of shape (n_features,)
        """
        return self.params


class RidgeRegression(LinearRegression):
    """
    L2-regularized least squares.

    Solves
        θ = (X^T X + λD)^{-1} X^T y

    where D is the identity with the entry for the first column (the
    intercept) set to zero, so the intercept is never shrunk.

    Attributes:
        alpha: Regularization strength λ >= 0
        params: Fitted parameters of shape (n_features,)
    """

    def __init__(self, alpha: float = 1.0):
        if alpha < 0:
            raise InvalidArgumentError(f"Regularization strength must be non-negative, got {alpha}.")
        super().__init__(allow_pinv=False)
        self.alpha = alpha

    def penalty_matrix(self, n_features: int) -> np.ndarray:
        penalty = np.eye(n_features)
        penalty[0, 0] = 0.0
        return self.alpha * penalty

    def fit(self, X: np.ndarray, y: np.ndarray) -> "RidgeRegression":
        lhs = X.T @ X + self.penalty_matrix(X.shape[1])
        self.params = _solve(lhs, X.T @ y)
        return self


class BayesianLinearRegression():
    """
    Bayesian linear regression with a conjugate Normal-Inverse-Gamma prior.

    Prior:
        θ | σ² ~ N(μ₀, Λ⁻¹),   σ² ~ Inverse-Gamma(a₀, b₀)

    Posterior:
        precision = X^T X + Λ
        mean      = precision^{-1} (X^T y + Λ μ₀)
        a_post    = a₀ + n/2
        b_post    = b₀ + ½ Σ residual²
        σ²_post   = b_post / (a_post - 1)     if a_post > 1
        Σ_post    = σ²_post precision^{-1}    (symmetrized)

    Attributes:
        prior_mean: Prior mean μ₀ of shape (n_features,)
        prior_precision: Diagonal of Λ, shape (n_features,)
        params: Posterior mean of shape (n_features,)
        noise_variance: Posterior mean of σ²
        covariance: Posterior covariance Σ_post of shape (n_features, n_features)
    """

    def __init__(
        self,
        prior_mean: np.ndarray,
        prior_precision: np.ndarray,
        a0: float = INVGAMMA_PRIOR_SHAPE,
        b0: float = INVGAMMA_PRIOR_SCALE,
    ):
        self.prior_mean = np.asarray(prior_mean, dtype=float)
        self.prior_precision = np.asarray(prior_precision, dtype=float)
        self.a0 = a0
        self.b0 = b0
        self.params = None
        self.noise_variance = None
        self.covariance = None
        self.precision = None
        self.a_post = None
        self.b_post = None

    def fit(self, X: np.ndarray, y: np.ndarray) -> "BayesianLinearRegression":
        """
        Compute the posterior given design matrix `X` and targets `y`.

        Args:
            X: Feature matrix of shape (n_samples, n_features)
            y: Target vector of shape (n_samples,)

        Returns:
            self: The fitted model
        """
        n = len(y)
        prior_precision = np.diag(self.prior_precision)

        self.precision = X.T @ X + prior_precision
        self.params = _solve(self.precision, X.T @ y + prior_precision @ self.prior_mean)

        residuals = y - X @ self.params
        self.a_post = self.a0 + n / 2
        self.b_post = self.b0 + 0.5 * np.sum(residuals**2)

        # Mean of Inverse-Gamma(a, b) only exists for a > 1
        if self.a_post > 1:
            self.noise_variance = self.b_post / (self.a_post - 1)
        else:
            self.noise_variance = self.b_post / max(self.a_post, 0.5)

        covariance = self.noise_variance * np.linalg.inv(self.precision)
        self.covariance = (covariance + covariance.T) / 2
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Posterior mean prediction for each row of `X`."""
        return X @ self.params

    def predictive_variance(self, x: np.ndarray) -> float:
        """Variance of a new observation at feature vector `x`."""
        return predictive_variance(x, self.noise_variance, self.covariance)

    def get_params(self) -> np.ndarray:
        return self.params
