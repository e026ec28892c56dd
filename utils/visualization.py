from typing import Dict, Optional
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
import logging
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf

from models import VolatilityForecast

logger = logging.getLogger(__name__)


class SeriesVisualizer:
    """Visualization utilities for price, return and volatility series"""

    def __init__(self, style: str = 'seaborn-v0_8-whitegrid'):
        """
        Initialize visualizer

        Parameters:
        -----------
        style : str
            Matplotlib style to use.
            Available styles can be listed with `plt.style.available`
        """
        # Set style safely with fallback options
        try:
            plt.style.use(style)
        except OSError:
            plt.style.use('default')
            logger.warning(f"Style '{style}' not found, using default style")

        self.colors = plt.rcParams['axes.prop_cycle'].by_key()['color']

    def _save(self, fig: plt.Figure, save_path: Optional[Path]):
        if save_path:
            Path(save_path).parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(save_path, bbox_inches='tight')
            logger.info(f"Saved figure to {save_path}")

    def plot_series(self,
                    series: Dict[str, pd.Series],
                    title: Optional[str] = None,
                    ylabel: str = 'Price',
                    save_path: Optional[Path] = None) -> plt.Figure:
        """
        Plot one or more (timestamp, value) series on shared axes

        Parameters:
        -----------
        series : dict
            Label -> series indexed by date
        title : str, optional
            Plot title
        save_path : Path, optional
            Path to save figure
        """
        if not series or any(s.empty for s in series.values()):
            raise ValueError("Empty input data")

        fig, ax = plt.subplots(figsize=(12, 6))
        for i, (label, values) in enumerate(series.items()):
            ax.plot(values.index, values.to_numpy(), label=label,
                    color=self.colors[i % len(self.colors)])

        ax.set_xlabel('Date')
        ax.set_ylabel(ylabel)
        if title:
            ax.set_title(title)
        ax.legend()

        self._save(fig, save_path)
        return fig

    def plot_seasonal_indices(self,
                              indices: Dict[str, pd.Series],
                              save_path: Optional[Path] = None) -> plt.Figure:
        """Grouped bars of the monthly index for each method"""
        if not indices:
            raise ValueError("Empty input data")

        frame = pd.DataFrame(indices)
        fig, ax = plt.subplots(figsize=(10, 5))
        frame.plot(kind='bar', ax=ax, color=self.colors[:len(frame.columns)])
        ax.axhline(1.0, color='black', linewidth=0.8, linestyle='--')
        ax.set_xlabel('Month')
        ax.set_ylabel('Seasonal index')
        ax.set_title('Monthly Seasonal Indices')

        self._save(fig, save_path)
        return fig

    def plot_correlogram(self,
                         series: pd.Series,
                         nlags: int = 25,
                         title: Optional[str] = None,
                         save_path: Optional[Path] = None) -> plt.Figure:
        """ACF and PACF panels with confidence bands"""
        values = series.dropna()
        fig, (ax_acf, ax_pacf) = plt.subplots(2, 1, figsize=(12, 8))
        plot_acf(values, lags=nlags, ax=ax_acf)
        plot_pacf(values, lags=nlags, ax=ax_pacf, method='ywm')
        if title:
            fig.suptitle(title)

        plt.tight_layout()
        self._save(fig, save_path)
        return fig

    def plot_return_distribution(self,
                                 returns: pd.Series,
                                 save_path: Optional[Path] = None) -> plt.Figure:
        """Histogram with kernel density"""
        fig, ax = plt.subplots(figsize=(10, 5))
        sns.histplot(returns.dropna(), bins=50, kde=True, ax=ax, color=self.colors[0])
        ax.set_xlabel('Log return')
        ax.set_title('Return Distribution')

        self._save(fig, save_path)
        return fig

    def plot_volatility(self,
                        conditional_variance: pd.Series,
                        forecast: Optional[VolatilityForecast] = None,
                        title: Optional[str] = None,
                        save_path: Optional[Path] = None) -> plt.Figure:
        """Fitted conditional volatility, with the forecast path on a second panel"""
        if conditional_variance.empty:
            raise ValueError("Empty input data")

        n_panels = 2 if forecast is not None else 1
        fig, axes = plt.subplots(n_panels, 1, figsize=(12, 4 * n_panels), squeeze=False)

        ax = axes[0, 0]
        ax.plot(conditional_variance.index, np.sqrt(conditional_variance.to_numpy()),
                color=self.colors[0], label='Conditional volatility')
        ax.set_ylabel('Volatility')
        ax.legend()
        if title:
            ax.set_title(title)

        if forecast is not None:
            ax = axes[1, 0]
            ax.plot(forecast.steps, forecast.volatility, color=self.colors[1], label='Forecast')
            ax.set_xlabel('Steps ahead')
            ax.set_ylabel('Volatility')
            ax.legend()

        plt.tight_layout()
        self._save(fig, save_path)
        return fig

    def close_all(self):
        """Close all open figures"""
        plt.close('all')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_all()
