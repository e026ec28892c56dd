import pytest
import numpy as np
import pandas as pd

from diagnostics.stationarity import StationarityTester
from exceptions import InvalidInput, TestFailed
from models import Decision
from conftest import make_prices


@pytest.fixture
def tester():
    return StationarityTester(alpha=0.05)


def test_random_walk_has_unit_root(tester):
    decisions = [
        tester.test(np.log(make_prices(n=750, seed=seed, drift=0.0)), name='log_price').decision
        for seed in range(5)
    ]
    assert decisions.count(Decision.FAIL_TO_REJECT) >= 4


def test_white_noise_is_stationary(tester):
    rng = np.random.default_rng(0)
    result = tester.test(pd.Series(rng.normal(0, 1, 500)), name='noise')

    assert result.name == 'adf'
    assert result.decision is Decision.REJECT_NULL
    assert result.rejected
    assert result.p_value < 0.01
    assert result.lag >= 0


def test_returns_are_stationary(tester, returns):
    assert tester.test(returns, name='returns').decision is Decision.REJECT_NULL


@pytest.mark.parametrize("alpha", [0.01, 0.05, 0.10])
def test_decision_follows_alpha(alpha):
    series = np.log(make_prices(n=400, seed=11))
    result = StationarityTester(alpha=alpha).test(series)

    assert result.alpha == alpha
    assert result.rejected == (result.p_value < alpha)


def test_short_series_raises(tester):
    with pytest.raises(InvalidInput):
        tester.test(pd.Series(np.arange(10, dtype=float)))


def test_constant_series_raises(tester):
    with pytest.raises(TestFailed):
        tester.test(pd.Series(np.ones(100)))


def test_differencing_order(tester):
    rng = np.random.default_rng(2)
    noise = rng.normal(0, 1, 600)
    assert tester.differencing_order(pd.Series(noise)) == 0
    assert tester.differencing_order(pd.Series(np.cumsum(noise + 0.5))) == 1


if __name__ == '__main__':
    pytest.main([__file__])
