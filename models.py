"""Common data models used across the project."""

from dataclasses import dataclass, field
from enum import Enum
import math
import numpy as np
import pandas as pd
from typing import List, Dict, Optional, Tuple


class Decision(Enum):
    """Outcome of a hypothesis test at a fixed significance level"""
    REJECT_NULL = 'reject_null'
    FAIL_TO_REJECT = 'fail_to_reject'


def decide(p_value: float, alpha: float = 0.05) -> Decision:
    """Reject the null hypothesis when p_value < alpha"""
    return Decision.REJECT_NULL if p_value < alpha else Decision.FAIL_TO_REJECT


@dataclass(frozen=True)
class TestResult:
    """Data class for a single hypothesis test"""
    __test__ = False

    name: str  # e.g. 'adf', 'ljung_box', 'arch_lm'
    statistic: float
    p_value: float
    decision: Decision
    lag: Optional[int] = None
    alpha: float = 0.05

    @property
    def rejected(self) -> bool:
        return self.decision is Decision.REJECT_NULL

    def to_dict(self) -> Dict:
        return {
            'test': self.name,
            'lag': self.lag,
            'statistic': self.statistic,
            'p_value': self.p_value,
            'decision': self.decision.name,
        }


@dataclass(frozen=True)
class ModelFit:
    """Data class for one fitted ARIMA candidate"""
    order: Tuple[int, int, int]
    coefficients: Dict[str, float]
    residuals: pd.Series
    log_likelihood: float
    aic: float
    bic: float
    rmse: float
    mape: float  # NaN when every actual is zero
    r_squared: float
    adj_r_squared: float
    n_obs: int
    n_params: int
    out_of_sample_rmse: Optional[float] = None

    @property
    def label(self) -> str:
        return "ARIMA({},{},{})".format(*self.order)

    def to_dict(self) -> Dict:
        return {
            'order': self.label,
            'log_likelihood': self.log_likelihood,
            'aic': self.aic,
            'bic': self.bic,
            'rmse': self.rmse,
            'mape': self.mape,
            'adj_r_squared': self.adj_r_squared,
            'out_of_sample_rmse': self.out_of_sample_rmse,
        }


@dataclass(frozen=True)
class FitFailure:
    """A candidate order that did not produce a fit"""
    order: Tuple[int, ...]
    kind: str  # exception kind, e.g. 'NonConvergence'
    message: str


# criterion -> True when larger is better
RANKING_CRITERIA = {
    'aic': False,
    'bic': False,
    'rmse': False,
    'mape': False,
    'out_of_sample_rmse': False,
    'log_likelihood': True,
    'adj_r_squared': True,
}


@dataclass(frozen=True)
class CandidateResults:
    """Fits and failures of one batch of candidate orders"""
    fits: List[ModelFit]
    failures: List[FitFailure] = field(default_factory=list)

    def ranked(self, criterion: str = 'aic') -> List[ModelFit]:
        """Fits sorted best-first by criterion, undefined values last"""
        if criterion not in RANKING_CRITERIA:
            raise ValueError(
                f"Unknown ranking criterion: {criterion}. "
                f"Expected one of: {list(RANKING_CRITERIA)}"
            )
        descending = RANKING_CRITERIA[criterion]

        def sort_key(fit: ModelFit):
            value = getattr(fit, criterion)
            if value is None or math.isnan(value):
                return (1, 0.0)
            return (0, -value if descending else value)

        return sorted(self.fits, key=sort_key)

    def best(self, criterion: str = 'aic') -> Optional[ModelFit]:
        ranked = self.ranked(criterion)
        return ranked[0] if ranked else None

    def to_frame(self, criterion: str = 'aic') -> pd.DataFrame:
        """Ranked summary table, failures appended at the bottom"""
        records = [fit.to_dict() for fit in self.ranked(criterion)]
        for failure in self.failures:
            records.append({
                'order': "ARIMA({})".format(",".join(str(o) for o in failure.order)),
                'error': f"{failure.kind}: {failure.message}",
            })
        return pd.DataFrame(records)


@dataclass(frozen=True)
class VolatilityForecast:
    """Forward conditional variance for steps 1..N after the last observation"""
    steps: np.ndarray
    variance: np.ndarray

    @property
    def horizon(self) -> int:
        return len(self.steps)

    @property
    def volatility(self) -> np.ndarray:
        return np.sqrt(self.variance)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'variance': self.variance,
            'volatility': self.volatility,
        }, index=pd.Index(self.steps, name='step'))
