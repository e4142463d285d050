import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LinearRegression, Ridge
from ts_forecasting import TimeSeries, ar_process, arma_process, ma_process
from ts_forecasting.exceptions import InvalidArgumentError, NotFittedError
from ts_forecasting.models import (
    ARIMAModel,
    ARModel,
    BayesianARModel,
    LinearModel,
    RidgeModel,
    SESModel,
)
from ts_forecasting.models.arima import arma_recursion, autocorrelations, estimate_ma_coefficients
from ts_forecasting.models.ses import smooth_levels
from ts_forecasting.types import PredictionResult


def lag_features(values, p):
    """Lag matrix built independently with pandas."""
    series = pd.Series(values)
    features = pd.DataFrame({f"lag_{lag}": series.shift(lag) for lag in range(1, p + 1)}).dropna()
    return features.values, series.iloc[p:].values


class TestARModel:
    def test_recovers_linear_sequence(self):
        """AR(1) on 1..6 is exactly y_t = 1 + y_{t-1}."""
        model = ARModel(p=1).fit(TimeSeries([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]))
        params = model.get_params()

        np.testing.assert_allclose(params["intercept"], 1.0, atol=1e-8)
        np.testing.assert_allclose(params["coefficients"], [1.0], atol=1e-8)
        assert not params["used_pinv"]

    def test_matches_sklearn(self):
        ts = ar_process(200, phi=[0.5, -0.3], constant=1.0, seed=42)
        model = ARModel(p=2).fit(ts)
        params = model.get_params()

        features, targets = lag_features(ts.values, 2)
        regressor = LinearRegression(fit_intercept=True).fit(features, targets)

        np.testing.assert_allclose(params["coefficients"], regressor.coef_, rtol=1e-8)
        np.testing.assert_allclose(params["intercept"], regressor.intercept_, rtol=1e-8)

    def test_fitted_values_are_padded(self):
        model = ARModel(p=2).fit(ar_process(50, phi=[0.5, 0.2], seed=1))
        assert len(model.state.fitted_values) == 50
        assert np.all(np.isnan(model.state.fitted_values[:2]))
        assert np.all(np.isnan(model.get_residuals()[:2]))
        assert not np.any(np.isnan(model.get_residuals()[2:]))

    def test_forecast(self):
        ts = TimeSeries([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        forecast = ARModel(p=1).fit(ts).forecast(ts, 3)

        np.testing.assert_allclose(forecast.values, [7.0, 8.0, 9.0], rtol=1e-8)
        assert forecast.timestamps.tolist() == [7, 8, 9]
        assert forecast.name == "ARModel (forecast)"

    def test_predict_repeats_one_step(self):
        ts = TimeSeries([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        predictions = ARModel(p=1).fit(ts).predict([7, 8])
        np.testing.assert_allclose(predictions.values, [7.0, 7.0], rtol=1e-8)

    def test_constant_series_uses_pinv(self):
        ts = TimeSeries(np.full(6, 2.0))
        model = ARModel(p=1).fit(ts)
        assert model.get_params()["used_pinv"]
        np.testing.assert_allclose(model.forecast(ts, 2).values, [2.0, 2.0], rtol=1e-8)

    def test_accepts_pandas_series(self):
        dates = pd.date_range("2024-01-01", periods=6, freq="30min")
        series = pd.Series(np.arange(1.0, 7.0), index=dates)
        forecast = ARModel(p=1).fit(series).forecast(series, 1)
        assert forecast.timestamps[0] == pd.Timestamp("2024-01-01 03:00")

    def test_too_short(self):
        with pytest.raises(InvalidArgumentError):
            ARModel(p=3).fit(TimeSeries([1.0, 2.0, 3.0]))

    def test_invalid_order(self):
        with pytest.raises(InvalidArgumentError):
            ARModel(p=0)

    def test_refit_replaces_state(self):
        model = ARModel(p=1).fit(TimeSeries([1.0, 2.0, 3.0, 4.0]))
        first = model.state
        model.fit(TimeSeries([4.0, 2.0, 3.0, 1.0]))
        assert model.state is not first


class TestBayesianARModel:
    def test_weak_prior_matches_ols(self):
        ts = ar_process(300, phi=0.7, constant=0.5, seed=7)
        ols = ARModel(p=1).fit(ts).get_params()
        bayes = BayesianARModel(p=1, prior_variance=1e6).fit(ts).get_params()

        np.testing.assert_allclose(bayes["coefficients"], ols["coefficients"], rtol=1e-5)
        np.testing.assert_allclose(bayes["intercept"], ols["intercept"], rtol=1e-4)

    def test_posterior_parameters(self):
        ts = ar_process(100, phi=[0.4, 0.2], seed=3)
        params = BayesianARModel(p=2).fit(ts).get_params()

        covariance = params["posterior_covariance"]
        assert covariance.shape == (3, 3)
        np.testing.assert_allclose(covariance, covariance.T)
        np.testing.assert_allclose(params["coefficient_variances"], np.diag(covariance)[1:])
        assert params["intercept_variance"] == covariance[0, 0]
        assert params["residual_variance"] > 0
        assert params["a_post"] == pytest.approx(0.001 + 98 / 2)

    def test_predict_with_uncertainty(self):
        ts = ar_process(100, phi=0.6, seed=5)
        model = BayesianARModel(p=1, random_state=0).fit(ts)
        result = model.predict([101, 102, 103], return_uncertainty=True)

        assert isinstance(result, PredictionResult)
        assert len(result) == 3
        residual_variance = model.get_params()["residual_variance"]
        assert np.all(result.prediction_variance >= residual_variance)

    def test_predict_is_reproducible_with_seed(self):
        ts = ar_process(100, phi=0.6, seed=5)
        first = BayesianARModel(p=1, random_state=11).fit(ts).predict([101, 102], return_uncertainty=True)
        second = BayesianARModel(p=1, random_state=11).fit(ts).predict([101, 102], return_uncertainty=True)
        np.testing.assert_array_equal(first.predictions.values, second.predictions.values)

    def test_predict_without_uncertainty_is_deterministic(self):
        ts = ar_process(100, phi=0.6, seed=5)
        model = BayesianARModel(p=1).fit(ts)
        predictions = model.predict([101, 102])

        assert isinstance(predictions, TimeSeries)
        params = model.get_params()
        expected = params["intercept"] + params["coefficients"][0] * ts.values[-1]
        np.testing.assert_allclose(predictions.values, [expected, expected])

    def test_forecast_is_posterior_mean_recursion(self):
        ts = ar_process(100, phi=0.6, seed=5)
        model = BayesianARModel(p=1).fit(ts)
        params = model.get_params()

        forecast = model.forecast(ts, 2)
        first = params["intercept"] + params["coefficients"][0] * ts.values[-1]
        second = params["intercept"] + params["coefficients"][0] * first
        np.testing.assert_allclose(forecast.values, [first, second])

    def test_lag_buffer_advances_without_noise(self):
        """Removing the replayed draws leaves the posterior mean recursion."""
        ts = ar_process(100, phi=0.6, seed=5)
        model = BayesianARModel(p=1, random_state=21).fit(ts)
        result = model.predict([101, 102, 103, 104], return_uncertainty=True)

        sigma = np.sqrt(model.get_params()["residual_variance"])
        rng = np.random.default_rng(21)
        draws = np.array([rng.normal(0.0, sigma) for _ in range(4)])

        np.testing.assert_allclose(
            result.predictions.values - draws, model.forecast(ts, 4).values, atol=1e-10
        )

    def test_predictive_variance(self):
        ts = ar_process(100, phi=0.6, seed=5)
        model = BayesianARModel(p=1, random_state=0).fit(ts)
        params = model.get_params()
        result = model.predict([101], return_uncertainty=True)

        x = np.array([1.0, ts.values[-1]])
        expected = params["residual_variance"] + x @ params["posterior_covariance"] @ x
        np.testing.assert_allclose(result.prediction_variance, [expected])

    def test_invalid_prior_mean(self):
        with pytest.raises(InvalidArgumentError):
            BayesianARModel(p=2, prior_mean=[0.0, 1.0])

    @pytest.mark.parametrize("prior_variance", [0.0, -1.0, [1.0, -1.0]])
    def test_invalid_prior_variance(self, prior_variance):
        with pytest.raises(InvalidArgumentError):
            BayesianARModel(p=1, prior_variance=prior_variance)


class TestARIMAModel:
    def test_pure_ar_matches_ar_model(self):
        ts = ar_process(150, phi=[0.5, 0.2], seed=9)
        arima = ARIMAModel(p=2, d=0, q=0).fit(ts).get_params()
        ar = ARModel(p=2).fit(ts).get_params()

        np.testing.assert_allclose(arima["ar_coefficients"], ar["coefficients"], rtol=1e-10)
        np.testing.assert_allclose(arima["intercept"], ar["intercept"], rtol=1e-10)
        assert len(arima["ma_coefficients"]) == 0

    def test_differenced_trend(self):
        """A line differences to a constant, which is forecast and integrated back."""
        ts = TimeSeries(np.arange(1.0, 11.0))
        for model in (ARIMAModel(p=0, d=1, q=1), ARIMAModel(p=1, d=1, q=0)):
            forecast = model.fit(ts).forecast(ts, 3)
            np.testing.assert_allclose(forecast.values, [11.0, 12.0, 13.0], rtol=1e-8)
            assert forecast.timestamps.tolist() == [11, 12, 13]

    def test_ma_mean_and_coefficients(self):
        ts = ma_process(500, theta=0.5, mean=2.0, seed=4)
        model = ARIMAModel(p=0, d=0, q=1).fit(ts)
        params = model.get_params()

        np.testing.assert_allclose(params["intercept"], ts.values.mean())
        rho = autocorrelations(ts.values, 1)
        np.testing.assert_allclose(params["ma_coefficients"], estimate_ma_coefficients(rho))
        assert len(model.state.fitted_values) == 500

    def test_arma_forecast_length(self):
        ts = ar_process(200, phi=0.5, seed=2).integrate()
        model = ARIMAModel(p=1, d=1, q=1).fit(ts)
        forecast = model.forecast(ts, 5)
        assert len(forecast) == 5
        assert np.all(np.isfinite(forecast.values))

    def test_ma_fitted_values(self):
        """fitted_t = μ + θ·e_{t-1}, with e_0 seeded from the centred first observation."""
        values = np.array([1.0, 3.0, 2.0, 4.0])
        model = ARIMAModel(p=0, d=0, q=1).fit(TimeSeries(values))
        params = model.get_params()

        # ρ₁ = -0.4375 / 1.25 = -0.35
        theta = (-1 + np.sqrt(1 - 4 * 0.35**2)) / (2 * -0.35)
        np.testing.assert_allclose(params["ma_coefficients"], [theta], rtol=1e-10)

        mu = 2.5
        e0 = values[0] - mu
        f1 = mu + theta * e0
        f2 = mu + theta * (values[1] - f1)
        f3 = mu + theta * (values[2] - f2)
        np.testing.assert_allclose(model.state.fitted_values, [mu, f1, f2, f3], rtol=1e-10)
        np.testing.assert_allclose(model.get_residuals(), values - [mu, f1, f2, f3], rtol=1e-10)

    def test_two_stage_ma_coefficients(self):
        """MA coefficients of ARMA(p, q) are the autocorrelations of the AR residuals."""
        ts = arma_process(300, phi=0.5, theta=0.4, seed=12)
        model = ARIMAModel(p=2, d=0, q=2).fit(ts)

        residuals = model.get_residuals()[2:]
        centered = residuals - residuals.mean()
        expected = [np.sum(centered[k:] * centered[:-k]) / np.sum(centered**2) for k in (1, 2)]
        np.testing.assert_allclose(model.get_params()["ma_coefficients"], expected, rtol=1e-10)

    def test_arma_forecast_uses_last_error_once(self):
        ts = arma_process(200, phi=0.5, theta=0.4, seed=13)
        model = ARIMAModel(p=1, d=0, q=1).fit(ts)
        params = model.get_params()
        c, phi, theta = params["intercept"], params["ar_coefficients"][0], params["ma_coefficients"][0]

        forecast = model.forecast(ts, 3).values
        first = c + phi * ts.values[-1] + theta * model.get_residuals()[-1]
        np.testing.assert_allclose(forecast[0], first, rtol=1e-10)
        np.testing.assert_allclose(forecast[1], c + phi * forecast[0], rtol=1e-10)
        np.testing.assert_allclose(forecast[2], c + phi * forecast[1], rtol=1e-10)

    def test_predict_repeats_one_step(self):
        ts = ar_process(60, phi=0.5, seed=2)
        model = ARIMAModel(p=1).fit(ts)
        predictions = model.predict([61, 62, 63])
        one_step = model.forecast(ts, 1).values[0]
        np.testing.assert_allclose(predictions.values, np.full(3, one_step))

    def test_too_short(self):
        with pytest.raises(InvalidArgumentError):
            ARIMAModel(p=2, d=1, q=0).fit(TimeSeries(np.arange(6.0)))

    @pytest.mark.parametrize("order", [(0, 0, 0), (-1, 0, 1), (1, -1, 0), (1, 0, -1)])
    def test_invalid_orders(self, order):
        with pytest.raises(InvalidArgumentError):
            ARIMAModel(*order)


class TestARMARecursion:
    def test_ma_terms_drop_out(self):
        """Step h only uses errors at lags j >= h; later errors are zero."""
        forecasts = arma_recursion(
            1.0, np.zeros(0), np.array([0.5, 0.25]),
            history=[0.0, 0.0], residuals=[1.0, 2.0, 4.0], horizon=3,
        )
        # h=1: 1 + 0.5*4 + 0.25*2; h=2: 1 + 0.25*4; h=3: 1
        np.testing.assert_allclose(forecasts, [3.5, 2.0, 1.0])

    def test_missing_residuals_are_zero_padded(self):
        forecasts = arma_recursion(
            0.0, np.zeros(0), np.array([0.5, 0.25]),
            history=[0.0, 0.0], residuals=[np.nan, 3.0], horizon=2,
        )
        # errors = [0, 3]: h=1: 0.5*3 + 0.25*0; h=2: 0.25*3
        np.testing.assert_allclose(forecasts, [1.5, 0.75])

    def test_ar_and_ma(self):
        forecasts = arma_recursion(
            0.0, np.array([0.5]), np.array([0.4]),
            history=[2.0], residuals=[1.0], horizon=2,
        )
        np.testing.assert_allclose(forecasts, [1.4, 0.7])


class TestMAEstimation:
    def test_closed_form_for_small_autocorrelation(self):
        np.testing.assert_allclose(estimate_ma_coefficients(np.array([0.4])), [-0.5])

    @pytest.mark.parametrize("rho1", [0.0, 0.5, -0.7])
    def test_falls_back_to_autocorrelation(self, rho1):
        np.testing.assert_allclose(estimate_ma_coefficients(np.array([rho1])), [rho1])

    def test_higher_order_uses_autocorrelations(self):
        rho = np.array([0.3, 0.1])
        np.testing.assert_allclose(estimate_ma_coefficients(rho), rho)

    def test_autocorrelations(self):
        values = np.random.default_rng(seed=0).normal(size=100)
        centered = values - values.mean()
        c0 = np.sum(centered**2) / 100
        expected = [np.sum(centered[k:] * centered[:-k]) / 100 / c0 for k in (1, 2, 3)]
        np.testing.assert_allclose(autocorrelations(values, 3), expected, rtol=1e-10)

    def test_zero_variance_has_zero_autocorrelation(self):
        np.testing.assert_allclose(autocorrelations(np.full(10, 3.0), 2), [0.0, 0.0])


class TestLinearModel:
    def test_exact_line(self):
        ts = TimeSeries(2.0 + 3.0 * np.arange(1.0, 6.0))
        model = LinearModel().fit(ts)
        params = model.get_params()

        np.testing.assert_allclose(params["intercept"], 2.0, atol=1e-10)
        np.testing.assert_allclose(params["slope"], 3.0, atol=1e-10)
        np.testing.assert_allclose(model.forecast(ts, 2).values, [20.0, 23.0], rtol=1e-10)

    def test_matches_sklearn(self):
        t = np.arange(1.0, 21.0)
        y = 1.0 + 0.5 * t + np.random.default_rng(seed=0).normal(size=20)
        params = LinearModel().fit(TimeSeries(y)).get_params()

        regressor = LinearRegression().fit(t.reshape(-1, 1), y)
        np.testing.assert_allclose(params["slope"], regressor.coef_[0], rtol=1e-10)
        np.testing.assert_allclose(params["intercept"], regressor.intercept_, rtol=1e-10)

    def test_variance_grows_away_from_mean_timestamp(self):
        y = np.array([1.0, 2.5, 2.0, 4.5, 5.0])
        model = LinearModel().fit(TimeSeries(y))
        result = model.predict([3, 4, 5, 6, 7, 8], return_uncertainty=True)

        assert isinstance(result, PredictionResult)
        assert np.all(np.diff(result.prediction_variance) >= 0)

    def test_variance_formula(self):
        y = np.array([1.0, 2.5, 2.0, 4.5, 5.0])
        model = LinearModel().fit(TimeSeries(y))
        params = model.get_params()

        result = model.predict([10], return_uncertainty=True)
        expected = params["intercept_variance"] + 20 * params["covariance"] + 100 * params["slope_variance"]
        np.testing.assert_allclose(result.prediction_variance, [expected])

    def test_datetime_timestamps(self):
        dates = pd.date_range("2024-01-01", periods=5, freq="D")
        ts = TimeSeries(np.arange(5.0), timestamps=dates)
        model = LinearModel().fit(ts)
        params = model.get_params()

        # Slope is per day, measured from the first training timestamp
        assert params["time_origin"] == dates[0]
        np.testing.assert_allclose(params["slope"], 1.0, rtol=1e-10)
        np.testing.assert_allclose(params["intercept"], 0.0, atol=1e-10)
        forecast = model.forecast(ts, 2)
        np.testing.assert_allclose(forecast.values, [5.0, 6.0], rtol=1e-10)
        assert forecast.timestamps[0] == pd.Timestamp("2024-01-06")

    def test_two_points(self):
        model = LinearModel(sliding_window=2).fit(TimeSeries([1.0, 3.0]))
        assert model.get_params()["residual_variance"] == pytest.approx(0.0, abs=1e-20)

    def test_too_short(self):
        with pytest.raises(InvalidArgumentError):
            LinearModel().fit(TimeSeries([1.0]))

    def test_invalid_window(self):
        with pytest.raises(InvalidArgumentError):
            LinearModel(sliding_window=1)


class TestRidgeModel:
    def test_zero_lambda_matches_linear(self):
        y = np.array([1.0, 2.5, 2.0, 4.5, 5.0, 5.5])
        linear = LinearModel().fit(TimeSeries(y)).get_params()
        ridge = RidgeModel(lam=0.0).fit(TimeSeries(y)).get_params()

        for key in ("intercept", "slope", "intercept_variance", "slope_variance", "covariance"):
            np.testing.assert_allclose(ridge[key], linear[key], rtol=1e-10)

    def test_covariance_is_ols_form(self):
        """Cov = σ²(X^T X)^{-1} with σ² from the ridge residuals."""
        y = np.array([1.0, 2.5, 2.0, 4.5, 5.0, 5.5])
        params = RidgeModel(lam=5.0).fit(TimeSeries(y)).get_params()

        X = np.column_stack([np.ones(6), np.arange(1.0, 7.0)])
        fitted = params["intercept"] + params["slope"] * X[:, 1]
        sigma2 = np.sum((y - fitted)**2) / 4
        expected = sigma2 * np.linalg.inv(X.T @ X)

        np.testing.assert_allclose(params["residual_variance"], sigma2, rtol=1e-10)
        np.testing.assert_allclose(params["slope_variance"], expected[1, 1], rtol=1e-10)
        np.testing.assert_allclose(params["intercept_variance"], expected[0, 0], rtol=1e-10)
        np.testing.assert_allclose(params["covariance"], expected[0, 1], rtol=1e-10)

    def test_matches_sklearn(self):
        t = np.arange(1.0, 11.0)
        y = 3.0 - 0.2 * t + np.random.default_rng(seed=1).normal(size=10)
        params = RidgeModel(lam=5.0).fit(TimeSeries(y)).get_params()

        regressor = Ridge(alpha=5.0, fit_intercept=True).fit(t.reshape(-1, 1), y)
        np.testing.assert_allclose(params["slope"], regressor.coef_[0], rtol=1e-8)
        np.testing.assert_allclose(params["intercept"], regressor.intercept_, rtol=1e-8)
        assert params["lambda"] == 5.0

    def test_shrinks_slope(self):
        y = 2.0 * np.arange(1.0, 8.0)
        slope = RidgeModel(lam=100.0).fit(TimeSeries(y)).get_params()["slope"]
        assert 0 < slope < 2.0

    def test_negative_lambda(self):
        with pytest.raises(InvalidArgumentError):
            RidgeModel(lam=-0.1)


class TestSESModel:
    def test_levels(self):
        levels, final_level = smooth_levels(np.array([1.0, 2.0, 3.0]), 0.5)
        np.testing.assert_allclose(levels, [1.0, 1.0, 1.5])
        assert final_level == pytest.approx(2.25)

    def test_forecast_is_flat(self):
        ts = ar_process(50, phi=0.3, constant=4.0, seed=8)
        model = SESModel(alpha=0.3).fit(ts)
        forecast = model.forecast(ts, 4)

        np.testing.assert_allclose(forecast.values, np.full(4, model.get_params()["level"]))

    def test_residuals(self):
        ts = TimeSeries([1.0, 2.0, 3.0])
        model = SESModel(alpha=0.5).fit(ts)
        np.testing.assert_allclose(model.get_residuals(), [0.0, 1.0, 1.5])

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.5, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(InvalidArgumentError):
            SESModel(alpha=alpha)


@pytest.mark.parametrize(
    "model, expected",
    [
        (ARModel(p=3), 4),
        (BayesianARModel(p=2), 3),
        (ARIMAModel(p=2, d=1, q=1), 7),
        (ARIMAModel(p=0, d=0, q=2), 6),
        (LinearModel(sliding_window=5), 5),
        (RidgeModel(lam=1.0, sliding_window=3), 3),
        (SESModel(alpha=0.5), 2),
    ],
)
def test_min_train_size(model, expected):
    assert model.min_train_size() == expected


@pytest.mark.parametrize(
    "model",
    [ARModel(), BayesianARModel(), ARIMAModel(), LinearModel(), RidgeModel(), SESModel()],
    ids=lambda model: type(model).__name__,
)
class TestNotFitted:
    def test_predict(self, model):
        with pytest.raises(NotFittedError):
            model.predict([1, 2])

    def test_forecast(self, model):
        with pytest.raises(NotFittedError):
            model.forecast(TimeSeries([1.0, 2.0, 3.0]), 2)

    def test_get_params(self, model):
        with pytest.raises(NotFittedError):
            model.get_params()
