"""
Analysis configuration with defaults and environment overrides.
"""

import os
import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from dotenv import load_dotenv

from models import RANKING_CRITERIA

logger = logging.getLogger(__name__)

ENV_PREFIX = 'TSA_'


def _parse_orders(value: str) -> Tuple[Tuple[int, int, int], ...]:
    """Parse '1,0,0;0,0,1' into ((1, 0, 0), (0, 0, 1))"""
    orders = []
    for chunk in value.split(';'):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = tuple(int(p) for p in chunk.split(','))
        if len(parts) != 3:
            raise ValueError(f"Invalid ARIMA order: {chunk!r}")
        orders.append(parts)
    return tuple(orders)


def _parse_ints(value: str) -> Tuple[int, ...]:
    return tuple(int(p) for p in value.split(',') if p.strip())


@dataclass(frozen=True)
class AnalysisConfig:
    """Tunable parameters of one pipeline run"""
    alpha: float = 0.05  # significance threshold for every test
    arima_orders: Tuple[Tuple[int, int, int], ...] = (
        (1, 0, 0), (0, 0, 1), (1, 0, 1), (2, 0, 2),
    )
    auto_max_p: int = 3
    auto_max_q: int = 3
    criterion: str = 'aic'
    test_size: int = 0  # hold-out length for out-of-sample RMSE
    garch_order: Tuple[int, int] = (1, 1)
    garch_ar_order: int = 0
    garch_transform: str = 'raw'
    forecast_horizon: int = 100
    acf_lags: int = 25
    ljung_box_lags: Tuple[int, ...] = (10, 20)
    arch_lags: Tuple[int, ...] = (5, 20)
    timeout: float = 10.0  # seconds for the download
    max_workers: Optional[int] = None  # None fits candidates serially

    def __post_init__(self):
        # Lists passed by callers are stored as tuples
        object.__setattr__(
            self, 'arima_orders',
            tuple(tuple(int(o) for o in order) for order in self.arima_orders)
        )

        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0, 1): {self.alpha}")
        if self.forecast_horizon < 1:
            raise ValueError(f"forecast_horizon must be positive: {self.forecast_horizon}")
        if self.garch_transform not in ('raw', 'demeaned', 'squared'):
            raise ValueError(f"Unknown GARCH transform: {self.garch_transform}")
        if self.criterion not in RANKING_CRITERIA:
            raise ValueError(
                f"Unknown ranking criterion: {self.criterion}. Expected one of: {list(RANKING_CRITERIA)}"
            )
        if self.test_size < 0:
            raise ValueError(f"test_size cannot be negative: {self.test_size}")
        if self.criterion == 'out_of_sample_rmse' and self.test_size == 0:
            raise ValueError("out_of_sample_rmse ranking needs test_size > 0")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'AnalysisConfig':
        """Build a config from TSA_* environment variables (and a .env file)"""
        load_dotenv(dotenv_path)
        config = cls()
        overrides = {}

        parsers = {
            'ALPHA': ('alpha', float),
            'ARIMA_ORDERS': ('arima_orders', _parse_orders),
            'AUTO_MAX_P': ('auto_max_p', int),
            'AUTO_MAX_Q': ('auto_max_q', int),
            'CRITERION': ('criterion', str),
            'TEST_SIZE': ('test_size', int),
            'GARCH_ORDER': ('garch_order', _parse_ints),
            'GARCH_AR_ORDER': ('garch_ar_order', int),
            'GARCH_TRANSFORM': ('garch_transform', str),
            'FORECAST_HORIZON': ('forecast_horizon', int),
            'ACF_LAGS': ('acf_lags', int),
            'LJUNG_BOX_LAGS': ('ljung_box_lags', _parse_ints),
            'ARCH_LAGS': ('arch_lags', _parse_ints),
            'TIMEOUT': ('timeout', float),
            'MAX_WORKERS': ('max_workers', int),
        }
        for suffix, (attr, parse) in parsers.items():
            raw = os.environ.get(ENV_PREFIX + suffix)
            if raw is None or raw == '':
                continue
            overrides[attr] = parse(raw)
            logger.info(f"Config override from environment: {attr}={overrides[attr]}")

        return replace(config, **overrides) if overrides else config
