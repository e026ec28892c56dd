import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import matplotlib
matplotlib.use('Agg')

import pytest
import numpy as np
import pandas as pd


def make_prices(n: int = 750, seed: int = 42, start: str = '2018-01-02',
                drift: float = 0.0003, vol: float = 0.01, p0: float = 100.0) -> pd.Series:
    """Geometric random walk on business days"""
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range(start, periods=n)
    log_path = np.log(p0) + np.cumsum(rng.normal(drift, vol, n))
    return pd.Series(np.exp(log_path), index=pd.DatetimeIndex(dates, name='date'), name='adjusted_close')


def simulate_garch(n: int = 3000, omega: float = 0.05, alpha: float = 0.2,
                   beta: float = 0.75, seed: int = 7) -> pd.Series:
    """GARCH(1,1) innovations with zero mean, burn-in discarded"""
    rng = np.random.default_rng(seed)
    burn = 500
    z = rng.standard_normal(n + burn)
    eps = np.zeros(n + burn)
    sigma2 = np.full(n + burn, omega / (1 - alpha - beta))
    for t in range(1, n + burn):
        sigma2[t] = omega + alpha * eps[t - 1] ** 2 + beta * sigma2[t - 1]
        eps[t] = np.sqrt(sigma2[t]) * z[t]
    index = pd.bdate_range('2010-01-04', periods=n)
    return pd.Series(eps[burn:], index=index, name='residual')


def simulate_ar1(n: int = 1000, phi: float = 0.6, const: float = 0.0,
                 sigma: float = 1.0, seed: int = 3) -> pd.Series:
    rng = np.random.default_rng(seed)
    y = np.zeros(n)
    mu = const / (1 - phi)
    y[0] = mu
    for t in range(1, n):
        y[t] = const + phi * y[t - 1] + rng.normal(0, sigma)
    return pd.Series(y, index=pd.bdate_range('2015-01-01', periods=n), name='ar1')


@pytest.fixture
def prices():
    """Three years of daily random-walk prices"""
    return make_prices()


@pytest.fixture
def returns(prices):
    return np.log(prices).diff().dropna().rename('log_return')


@pytest.fixture
def seasonal_prices():
    """Four years of daily prices with a known multiplicative monthly pattern"""
    dates = pd.date_range('2016-01-01', '2019-12-31', freq='D')
    pattern = 1 + 0.1 * np.sin(2 * np.pi * (np.arange(1, 13) - 1) / 12)
    factors = pattern[dates.month - 1]
    trend = np.linspace(100, 140, len(dates))
    return pd.Series(trend * factors, index=pd.DatetimeIndex(dates, name='date'), name='adjusted_close')


@pytest.fixture
def garch_series():
    return simulate_garch()


@pytest.fixture
def ar1_series():
    return simulate_ar1()
