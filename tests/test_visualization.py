import pytest
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from utils.visualization import SeriesVisualizer
from models import VolatilityForecast


@pytest.fixture
def visualizer():
    """Create visualizer instance"""
    viz = SeriesVisualizer(style='seaborn')
    yield viz
    viz.close_all()


@pytest.fixture
def conditional_variance():
    rng = np.random.default_rng(1)
    return pd.Series(rng.uniform(1e-4, 4e-4, 200), index=pd.bdate_range('2020-01-01', periods=200))


def test_unknown_style_falls_back(visualizer):
    assert visualizer.colors


def test_plot_series_saves(visualizer, prices, tmp_path):
    path = tmp_path / 'plots' / 'prices.png'
    fig = visualizer.plot_series({'Adjusted close': prices}, title='Prices', save_path=path)

    assert isinstance(fig, plt.Figure)
    assert path.exists()
    assert len(fig.axes[0].lines) == 1


def test_plot_series_rejects_empty(visualizer):
    with pytest.raises(ValueError):
        visualizer.plot_series({})
    with pytest.raises(ValueError):
        visualizer.plot_series({'empty': pd.Series(dtype=float)})


def test_plot_seasonal_indices(visualizer, tmp_path):
    index = pd.Series(np.linspace(0.95, 1.05, 12), index=range(1, 13))
    path = tmp_path / 'seasonal.png'
    visualizer.plot_seasonal_indices({'moving_average': index, 'ratio_to_mean': index}, save_path=path)
    assert path.exists()


def test_plot_correlogram(visualizer, returns, tmp_path):
    path = tmp_path / 'correlogram.png'
    fig = visualizer.plot_correlogram(returns, nlags=20, title='Returns', save_path=path)

    assert len(fig.axes) == 2
    assert path.exists()


def test_plot_return_distribution(visualizer, returns):
    fig = visualizer.plot_return_distribution(returns)
    assert fig.axes[0].get_xlabel() == 'Log return'


def test_plot_volatility_with_forecast(visualizer, conditional_variance, tmp_path):
    steps = np.arange(1, 101)
    forecast = VolatilityForecast(steps=steps, variance=np.full(100, 2e-4))
    path = tmp_path / 'volatility.png'

    fig = visualizer.plot_volatility(conditional_variance, forecast, title='GARCH(1,1)', save_path=path)

    assert len(fig.axes) == 2
    assert path.exists()


def test_plot_volatility_without_forecast(visualizer, conditional_variance):
    fig = visualizer.plot_volatility(conditional_variance)
    assert len(fig.axes) == 1


if __name__ == '__main__':
    pytest.main([__file__])
