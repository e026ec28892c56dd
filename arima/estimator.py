from typing import Iterable, List, Optional, Sequence, Tuple, Union
from concurrent.futures import ProcessPoolExecutor, as_completed
from itertools import product
import logging
import traceback
import warnings

import numpy as np
import pandas as pd
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from arima import metrics
from diagnostics.stationarity import StationarityTester
from exceptions import AnalysisError, InvalidInput, NonConvergence
from models import CandidateResults, FitFailure, ModelFit, RANKING_CRITERIA
from utils.progress import ProgressMonitor

logger = logging.getLogger(__name__)

Order = Tuple[int, int, int]


def _min_observations(order: Order) -> int:
    p, d, q = order
    return 3 * (p + q) + d + 10


def _fit_arima(values: np.ndarray, index: pd.Index, order: Order, test_size: int = 0) -> ModelFit:
    """Fit one ARIMA order by maximum likelihood and score it"""
    order = tuple(int(o) for o in order)
    if len(order) != 3 or min(order) < 0:
        raise InvalidInput("ARIMA order must be three non-negative integers", order=order)

    if test_size < 0:
        raise InvalidInput("hold-out size cannot be negative", test_size=test_size)

    p, d, q = order
    train = values[:len(values) - test_size] if test_size else values
    if len(train) < _min_observations(order):
        raise InvalidInput(
            f"series too short for ARIMA{order}",
            order=order, n_obs=len(train), required=_min_observations(order)
        )

    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            result = ARIMA(train, order=order).fit()
    except (ValueError, np.linalg.LinAlgError) as e:
        raise NonConvergence(f"ARIMA fit failed: {e}", order=order) from e

    converged = (result.mle_retvals or {}).get('converged', True)
    convergence_warnings = [w for w in caught if issubclass(w.category, ConvergenceWarning)]
    if not converged or convergence_warnings:
        detail = str(convergence_warnings[0].message) if convergence_warnings else "converged=False"
        raise NonConvergence(f"optimizer did not converge: {detail}", order=order)

    params = dict(zip(result.model.param_names, np.asarray(result.params, dtype=float)))
    residuals = np.asarray(result.resid, dtype=float)

    # The first d residuals carry the diffuse start of the integrated model
    actual = train[d:]
    scored = residuals[d:]
    n_obs = len(actual)
    n_params = len([name for name in params if name != 'sigma2'])
    r2 = metrics.r_squared(actual, scored)

    out_of_sample_rmse = None
    if test_size:
        forecast = np.asarray(result.forecast(steps=test_size), dtype=float)
        out_of_sample_rmse = metrics.rmse(values[-test_size:] - forecast)

    return ModelFit(
        order=order,
        coefficients=params,
        residuals=pd.Series(residuals, index=index[:len(train)], name='residual'),
        log_likelihood=float(result.llf),
        aic=float(result.aic),
        bic=float(result.bic),
        rmse=metrics.rmse(scored),
        mape=metrics.mape(actual, scored),
        r_squared=r2,
        adj_r_squared=metrics.adjusted_r_squared(r2, n_obs, n_params),
        n_obs=n_obs,
        n_params=n_params,
        out_of_sample_rmse=out_of_sample_rmse,
    )


def _fit_candidate(values: np.ndarray, index: pd.Index, order: Order,
                   test_size: int) -> Union[ModelFit, FitFailure]:
    """Process-pool entry point: failures come back as records, never raised"""
    try:
        return _fit_arima(values, index, order, test_size)
    except AnalysisError as e:
        return FitFailure(order=tuple(order), kind=e.kind, message=e.message)
    except Exception as e:
        # Any other optimizer error fails this order only
        logger.error(f"ARIMA{tuple(order)} raised {type(e).__name__}: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        return FitFailure(order=tuple(order), kind=NonConvergence.kind,
                          message=f"{type(e).__name__}: {e}")


class ARIMAEstimator:
    """Fits and compares ARIMA mean models"""

    def __init__(self, max_workers: Optional[int] = None,
                 show_progress: bool = True,
                 stationarity_tester: Optional[StationarityTester] = None):
        """
        Initialize estimator

        Args:
            max_workers: Processes for candidate batches; None or 1 fits serially
            show_progress: Display a progress bar for candidate batches
            stationarity_tester: Used to pick d during automatic order search
        """
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.stationarity_tester = stationarity_tester or StationarityTester()
        self.logger = logging.getLogger('arima.estimator')

    def fit_order(self, series: pd.Series, order: Order, test_size: int = 0) -> ModelFit:
        """
        Fit a single order.

        Args:
            series: Return series (or any univariate series)
            order: (p, d, q)
            test_size: Trailing observations held out for out-of-sample RMSE

        Raises:
            NonConvergence: optimizer failure for this order
            InvalidInput: series too short for the order
        """
        series = series.dropna()
        fit = _fit_arima(series.to_numpy(dtype=float), series.index, order, test_size)
        self.logger.info(
            f"{fit.label}: logL={fit.log_likelihood:.2f}, AIC={fit.aic:.2f}, "
            f"BIC={fit.bic:.2f}, RMSE={fit.rmse:.6f}, adj R2={fit.adj_r_squared:.4f}"
        )
        return fit

    def fit_candidates(self, series: pd.Series, orders: Iterable[Order],
                       test_size: int = 0,
                       max_workers: Optional[int] = None) -> CandidateResults:
        """Fit every order independently; failed orders are reported, not raised"""
        series = series.dropna()
        values = series.to_numpy(dtype=float)
        orders = [tuple(int(o) for o in order) for order in orders]
        max_workers = self.max_workers if max_workers is None else max_workers

        outcomes = []
        with ProgressMonitor(total=len(orders), desc="Fitting ARIMA candidates",
                             logger=self.logger, disable=not self.show_progress) as monitor:
            if max_workers and max_workers > 1 and len(orders) > 1:
                with ProcessPoolExecutor(max_workers=max_workers) as executor:
                    futures = {
                        executor.submit(_fit_candidate, values, series.index, order, test_size): order
                        for order in orders
                    }
                    for future in as_completed(futures):
                        outcome = future.result()
                        outcomes.append(outcome)
                        monitor.update(1, status=f"ARIMA{futures[future]}",
                                       failed=isinstance(outcome, FitFailure))
            else:
                for order in orders:
                    outcome = _fit_candidate(values, series.index, order, test_size)
                    outcomes.append(outcome)
                    monitor.update(1, status=f"ARIMA{order}", failed=isinstance(outcome, FitFailure))

        fits = [o for o in outcomes if isinstance(o, ModelFit)]
        failures = [o for o in outcomes if isinstance(o, FitFailure)]

        # Restore request order; completion order is arbitrary in the pool
        position = {order: i for i, order in enumerate(orders)}
        fits.sort(key=lambda f: position[f.order])
        failures.sort(key=lambda f: position[f.order])

        for failure in failures:
            self.logger.warning(f"ARIMA{failure.order} failed: {failure.kind}: {failure.message}")
        self.logger.info(f"Fitted {len(fits)}/{len(orders)} ARIMA candidates")

        return CandidateResults(fits=fits, failures=failures)

    def candidate_grid(self, max_p: int, max_q: int, d: int) -> List[Order]:
        return [(p, d, q) for p, q in product(range(max_p + 1), range(max_q + 1))]

    def select_order(self, series: pd.Series, max_p: int = 3, max_q: int = 3,
                     d: Optional[int] = None, criterion: str = 'aic',
                     max_d: int = 2, test_size: int = 0) -> ModelFit:
        """
        Automatic order selection over a bounded grid.

        d is taken from the ADF differencing rule when not given; p and q
        range over 0..max_p and 0..max_q and the criterion picks the winner.
        Ranking by out_of_sample_rmse needs a hold-out (test_size > 0).
        """
        if criterion not in RANKING_CRITERIA:
            raise InvalidInput(
                f"unknown selection criterion, expected one of {list(RANKING_CRITERIA)}",
                criterion=criterion
            )
        if criterion == 'out_of_sample_rmse' and test_size <= 0:
            raise InvalidInput(
                "out-of-sample ranking needs a positive hold-out size",
                criterion=criterion, test_size=test_size
            )

        if d is None:
            d = self.stationarity_tester.differencing_order(series.dropna(), max_d=max_d)
            self.logger.info(f"Differencing order from ADF: d={d}")

        results = self.fit_candidates(series, self.candidate_grid(max_p, max_q, d), test_size=test_size)
        best = results.best(criterion)
        if best is None:
            raise NonConvergence(
                "no candidate in the search grid converged",
                max_p=max_p, max_q=max_q, d=d
            )

        score = getattr(best, criterion)
        self.logger.info(
            f"Selected {best.label} by {criterion.upper()}="
            f"{'n/a' if score is None else f'{score:.4f}'}"
        )
        return best
