import pytest
import numpy as np
import pandas as pd

from garch import estimator as garch_estimator
from garch.estimator import GARCHEstimator, VolatilityFit
from exceptions import InvalidInput, NonConvergence
from models import VolatilityForecast


@pytest.fixture
def estimator():
    return GARCHEstimator(p=1, q=1)


@pytest.fixture
def decimal_series(garch_series):
    """Simulated innovations at daily-return scale"""
    return garch_series / 100


def test_fit_recovers_dynamics(estimator, decimal_series):
    fit = estimator.fit(decimal_series)

    assert isinstance(fit, VolatilityFit)
    assert fit.label == 'Constant-GARCH(1,1)'
    params = fit.params
    assert {'mu', 'omega', 'alpha[1]', 'beta[1]'} <= set(params)
    assert params['alpha[1]'] == pytest.approx(0.2, abs=0.07)
    assert params['beta[1]'] == pytest.approx(0.75, abs=0.08)
    assert 0.85 < fit.persistence < 1.0


def test_forecast_default_horizon(estimator, decimal_series):
    fit = estimator.fit(decimal_series)
    forecast = fit.forecast()

    assert isinstance(forecast, VolatilityForecast)
    assert forecast.horizon == 100
    assert list(forecast.steps[:3]) == [1, 2, 3]
    assert np.all(forecast.variance > 0)
    assert np.all(np.isfinite(forecast.variance))

    # Forecast converges toward the unconditional variance in input units
    unconditional = decimal_series.var()
    assert forecast.variance[-1] == pytest.approx(unconditional, rel=0.5)


def test_forecast_frame(estimator, decimal_series):
    frame = estimator.fit(decimal_series).forecast(10).to_frame()

    assert frame.index.name == 'step'
    assert list(frame.columns) == ['variance', 'volatility']
    np.testing.assert_allclose(frame['volatility'] ** 2, frame['variance'])


def test_conditional_variance_in_input_units(estimator, decimal_series):
    fit = estimator.fit(decimal_series)
    variance = fit.conditional_variance

    assert len(variance) == len(decimal_series)
    assert (variance > 0).all()
    assert variance.mean() == pytest.approx(decimal_series.var(), rel=0.5)
    assert fit.standardized_residuals.std() == pytest.approx(1.0, abs=0.1)


def test_forecast_horizon_must_be_positive(estimator, decimal_series):
    fit = estimator.fit(decimal_series)
    with pytest.raises(InvalidInput):
        fit.forecast(0)


def test_ar_mean(decimal_series):
    fit = GARCHEstimator(ar_order=1).fit(decimal_series)
    assert fit.label == 'AR(1)-GARCH(1,1)'
    # constant, one AR lag, omega, alpha, beta
    assert len(fit.params) == 5
    assert len(fit.conditional_variance) == len(decimal_series) - 1


@pytest.mark.parametrize("transform", ['demeaned', 'squared'])
def test_transforms(estimator, garch_series, transform):
    prepared = estimator.prepare_input(garch_series, transform)
    if transform == 'demeaned':
        assert prepared.mean() == pytest.approx(0.0, abs=1e-12)
    else:
        np.testing.assert_allclose(prepared.to_numpy(), garch_series.to_numpy() ** 2)


def test_unknown_transform(estimator, garch_series):
    with pytest.raises(ValueError):
        estimator.prepare_input(garch_series, 'cubed')


def test_short_series_raises(estimator):
    with pytest.raises(InvalidInput):
        estimator.fit(pd.Series(np.random.default_rng(0).normal(size=50)))


def test_constant_series_raises(estimator):
    with pytest.raises(InvalidInput):
        estimator.fit(pd.Series(np.zeros(500)))


def test_optimizer_failure_is_non_convergence(estimator, garch_series, monkeypatch):
    class ExitFlagResult:
        convergence_flag = 9

    class StubModel:
        def fit(self, **kwargs):
            return ExitFlagResult()

    monkeypatch.setattr(garch_estimator, 'arch_model', lambda *args, **kwargs: StubModel())
    with pytest.raises(NonConvergence) as excinfo:
        estimator.fit(garch_series)
    assert excinfo.value.order == (1, 1)


def test_fit_orders_collects_failures(estimator, decimal_series):
    fits, failures = estimator.fit_orders(decimal_series, [(1, 1), (0, 1), (1, 0)])

    assert set(fits) == {(1, 1), (1, 0)}
    assert [f.order for f in failures] == [(0, 1)]
    assert failures[0].kind == 'InvalidInput'


if __name__ == '__main__':
    pytest.main([__file__])
