from typing import Dict, Iterable, List, Optional, Tuple
import logging

import numpy as np
import pandas as pd
from arch import arch_model

from exceptions import InvalidInput, NonConvergence
from models import FitFailure, VolatilityForecast

logger = logging.getLogger(__name__)

TRANSFORMS = ('raw', 'demeaned', 'squared')


class VolatilityFit:
    """A converged GARCH fit, reported in the units of the input series"""

    def __init__(self, result, order: Tuple[int, int], ar_order: int,
                 transform: str, scale: float):
        self._result = result
        self.order = order
        self.ar_order = ar_order
        self.transform = transform
        self.scale = scale

    @property
    def label(self) -> str:
        mean = 'Constant' if self.ar_order == 0 else f"AR({self.ar_order})"
        return f"{mean}-GARCH({self.order[0]},{self.order[1]})"

    @property
    def params(self) -> Dict[str, float]:
        """Estimated parameters (on the scaled input)"""
        return {name: float(value) for name, value in self._result.params.items()}

    @property
    def persistence(self) -> float:
        return float(sum(
            value for name, value in self.params.items()
            if name.startswith('alpha[') or name.startswith('beta[')
        ))

    @property
    def log_likelihood(self) -> float:
        return float(self._result.loglikelihood)

    @property
    def aic(self) -> float:
        return float(self._result.aic)

    @property
    def bic(self) -> float:
        return float(self._result.bic)

    @property
    def conditional_variance(self) -> pd.Series:
        volatility = self._result.conditional_volatility.dropna() / self.scale
        return (volatility ** 2).rename('conditional_variance')

    @property
    def standardized_residuals(self) -> pd.Series:
        return self._result.std_resid.dropna().rename('standardized_residual')

    def forecast(self, horizon: int = 100) -> VolatilityForecast:
        """Analytic conditional variance for steps 1..horizon after the last observation"""
        if horizon < 1:
            raise InvalidInput("forecast horizon must be positive", horizon=horizon)

        forecast = self._result.forecast(horizon=horizon, reindex=False)
        variance = np.asarray(forecast.variance.values[-1], dtype=float) / self.scale ** 2

        logger.info(
            f"{self.label} forecast over {horizon} steps: "
            f"first vol={np.sqrt(variance[0]):.6f}, last vol={np.sqrt(variance[-1]):.6f}"
        )
        return VolatilityForecast(steps=np.arange(1, horizon + 1), variance=variance)

    def summary(self):
        return self._result.summary()


class GARCHEstimator:
    """Estimates GARCH(p, q) models with a constant or AR(k) conditional mean"""

    def __init__(self, p: int = 1, q: int = 1, ar_order: int = 0,
                 distribution: str = 'normal',
                 scale: float = 100.0,
                 min_observations: int = 100):
        """
        Initialize estimator

        Args:
            p: ARCH order
            q: GARCH order
            ar_order: AR lags in the conditional mean, 0 for a constant mean
            distribution: Innovation distribution passed to arch ('normal', 'studentst', ...)
            scale: Multiplier applied before estimation; decimal returns fit best as percentages
            min_observations: Shortest series accepted
        """
        self.p = p
        self.q = q
        self.ar_order = ar_order
        self.distribution = distribution
        self.scale = scale
        self.min_observations = min_observations
        self.logger = logging.getLogger('garch.estimator')

    def prepare_input(self, series: pd.Series, transform: str = 'raw') -> pd.Series:
        """Raw, de-meaned or squared copy of the series"""
        series = series.dropna()
        if transform == 'raw':
            return series.copy()
        if transform == 'demeaned':
            return series - series.mean()
        if transform == 'squared':
            return series ** 2
        raise ValueError(f"Unknown transform: {transform}. Expected one of: {TRANSFORMS}")

    def fit(self, series: pd.Series, transform: str = 'raw',
            order: Optional[Tuple[int, int]] = None) -> VolatilityFit:
        """
        Fit one GARCH model.

        Raises:
            NonConvergence: optimizer failure; no partial results are returned
            InvalidInput: series too short or order invalid
        """
        p, q = order if order is not None else (self.p, self.q)
        if p < 1 or q < 0 or self.ar_order < 0:
            raise InvalidInput("GARCH needs p >= 1, q >= 0, ar_order >= 0",
                               order=(p, q), ar_order=self.ar_order)

        y = self.prepare_input(series, transform)
        if len(y) < self.min_observations:
            raise InvalidInput(
                f"GARCH needs at least {self.min_observations} observations",
                order=(p, q), n_obs=len(y)
            )
        if np.ptp(y.to_numpy()) == 0:
            raise InvalidInput("GARCH input is constant", order=(p, q), transform=transform)

        model = arch_model(
            y * self.scale,
            mean='Constant' if self.ar_order == 0 else 'AR',
            lags=self.ar_order,
            vol='GARCH',
            p=p,
            q=q,
            dist=self.distribution,
            rescale=False,
        )

        try:
            result = model.fit(
                disp='off',
                show_warning=False,
                options={'maxiter': 1000},
                update_freq=0
            )
        except (ValueError, np.linalg.LinAlgError) as e:
            self.logger.error(f"GARCH({p},{q}) estimation failed: {str(e)}")
            raise NonConvergence(f"GARCH fit failed: {e}", order=(p, q), ar_order=self.ar_order) from e

        if result.convergence_flag != 0:
            raise NonConvergence(
                f"optimizer exit flag {result.convergence_flag}",
                order=(p, q), ar_order=self.ar_order
            )

        fit = VolatilityFit(result, order=(p, q), ar_order=self.ar_order,
                            transform=transform, scale=self.scale)
        self.logger.info(
            f"{fit.label} on {transform} input: logL={fit.log_likelihood:.2f}, "
            f"AIC={fit.aic:.2f}, persistence={fit.persistence:.4f}"
        )
        return fit

    def fit_orders(self, series: pd.Series, orders: Iterable[Tuple[int, int]],
                   transform: str = 'raw') -> Tuple[Dict[Tuple[int, int], VolatilityFit], List[FitFailure]]:
        """Fit several (p, q) pairs; failed pairs are returned as records"""
        fits, failures = {}, []
        for order in orders:
            order = tuple(int(o) for o in order)
            try:
                fits[order] = self.fit(series, transform=transform, order=order)
            except (NonConvergence, InvalidInput) as e:
                self.logger.warning(f"GARCH{order} failed: {e}")
                failures.append(FitFailure(order=order, kind=e.kind, message=e.message))
        return fits, failures
