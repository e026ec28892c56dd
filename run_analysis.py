#!/usr/bin/env python
"""
Full analysis pipeline for one equity's daily price series.
Runs seasonal adjustment, stationarity and autocorrelation diagnostics,
ARIMA mean models, heteroscedasticity tests and GARCH volatility forecasts.
"""
import sys
import argparse
from pathlib import Path
import logging
from datetime import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import time
import traceback

import pandas as pd
import psutil

# Add project root to path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from arima.estimator import ARIMAEstimator
from config.model_config import AnalysisConfig
from data_manager.data_loader import PriceLoader
from data_manager.data_prep import ReturnTransformer
from data_manager.database import PriceStore
from diagnostics.autocorrelation import AutocorrelationDiagnostics
from diagnostics.heteroscedasticity import HeteroscedasticityTester
from diagnostics.stationarity import StationarityTester
from exceptions import AnalysisError
from garch.estimator import GARCHEstimator, VolatilityFit
from models import CandidateResults, ModelFit, TestResult, VolatilityForecast
from seasonal.adjuster import SeasonalAdjuster, SeasonalAdjustment
from utils.visualization import SeriesVisualizer


class StageMonitor:
    """Wall time and resident memory at the end of each pipeline stage"""

    def __init__(self):
        self._process = psutil.Process()
        self.start_time = time.time()
        self._last = self.start_time
        self._last_rss = self._rss_mb()
        self.stages = []

    def _rss_mb(self) -> float:
        return self._process.memory_info().rss / 1024 / 1024

    def checkpoint(self, stage: str):
        """Close the current stage"""
        now, rss = time.time(), self._rss_mb()
        self.stages.append({
            'stage': stage,
            'seconds': now - self._last,
            'rss_mb': rss,
            'rss_delta_mb': rss - self._last_rss,
        })
        self._last, self._last_rss = now, rss

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.stages, columns=['stage', 'seconds', 'rss_mb', 'rss_delta_mb'])

    def report(self) -> str:
        total = time.time() - self.start_time
        if not self.stages:
            return f"Pipeline stages: none completed ({total:.2f}s)"
        table = self.to_frame().to_string(index=False, float_format=lambda v: f"{v:.2f}")
        slowest = max(self.stages, key=lambda s: s['seconds'])
        return (
            f"Pipeline stages ({len(self.stages)} in {total:.2f}s, "
            f"slowest: {slowest['stage']}):\n{table}"
        )


@dataclass
class AnalysisReport:
    """Everything one pipeline run produced"""
    symbol: str
    prices: pd.Series
    config: AnalysisConfig
    seasonal: Dict[str, SeasonalAdjustment] = field(default_factory=dict)
    returns: Optional[pd.Series] = None
    return_summary: Dict = field(default_factory=dict)
    tests: Dict[str, List[TestResult]] = field(default_factory=dict)
    correlogram: Optional[pd.DataFrame] = None
    arima: Optional[CandidateResults] = None
    auto_fit: Optional[ModelFit] = None
    selected_fit: Optional[ModelFit] = None
    residuals: Optional[pd.Series] = None
    volatility_fit: Optional[VolatilityFit] = None
    volatility_forecast: Optional[VolatilityForecast] = None
    errors: Dict[str, str] = field(default_factory=dict)

    def summary_frame(self) -> pd.DataFrame:
        """All test results as one table"""
        records = []
        for key, results in self.tests.items():
            for result in results:
                records.append({'series': key, **result.to_dict()})
        return pd.DataFrame(records, columns=['series', 'test', 'lag', 'statistic', 'p_value', 'decision'])


def setup_logging(output_dir: Path) -> logging.Logger:
    """
    Configure logging with both file and console handlers

    Parameters:
    -----------
    output_dir : Path
        Directory for log file

    Returns:
    --------
    logging.Logger
        Configured logger
    """
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"analysis_{timestamp}.log"

    # Configure the root logger so every module logger is captured
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter('%(levelname)s: %(message)s')
    )

    root.addHandler(file_handler)
    root.addHandler(console_handler)

    return logging.getLogger("run_analysis")


def initialize_components(config: AnalysisConfig, show_progress: bool = True) -> Dict:
    """Initialize all analysis components"""
    stationarity = StationarityTester(alpha=config.alpha)
    return {
        'adjuster': SeasonalAdjuster(),
        'stationarity': stationarity,
        'transformer': ReturnTransformer(alpha=config.alpha),
        'autocorrelation': AutocorrelationDiagnostics(nlags=config.acf_lags, alpha=config.alpha),
        'arima': ARIMAEstimator(
            max_workers=config.max_workers,
            show_progress=show_progress,
            stationarity_tester=stationarity
        ),
        'heteroscedasticity': HeteroscedasticityTester(alpha=config.alpha),
        'garch': GARCHEstimator(
            p=config.garch_order[0],
            q=config.garch_order[1],
            ar_order=config.garch_ar_order
        ),
    }


def _run_stage(report: AnalysisReport, stage: str, func, logger: logging.Logger):
    """Run a non-fatal stage; analysis errors are recorded and the run continues"""
    try:
        return func()
    except AnalysisError as e:
        logger.error(f"Stage '{stage}' failed: {e}")
        report.errors[stage] = str(e)
        return None


def run_pipeline(prices: pd.Series, config: Optional[AnalysisConfig] = None,
                 symbol: str = '', components: Optional[Dict] = None,
                 logger: Optional[logging.Logger] = None,
                 monitor: Optional[StageMonitor] = None) -> AnalysisReport:
    """
    Run stages 2-8 on a loaded price series.

    The return transform is fatal on failure; every other stage records its
    error in the report and later stages continue with what is available.
    """
    config = config or AnalysisConfig()
    logger = logger or logging.getLogger("run_analysis")
    components = components or initialize_components(config)
    monitor = monitor or StageMonitor()
    report = AnalysisReport(symbol=symbol, prices=prices, config=config)

    def checkpoint(name):
        monitor.checkpoint(name)
        logger.info(f"Completed stage: {name}")

    # Seasonal adjustment
    for method in ('moving_average', 'ratio_to_mean'):
        adjustment = _run_stage(
            report, f"seasonal/{method}",
            lambda: components['adjuster'].adjust(prices, method), logger
        )
        if adjustment is not None:
            report.seasonal[method] = adjustment
    checkpoint('seasonal')

    # Stationarity of levels
    stationarity = components['stationarity']
    levels = {'price': prices}
    levels.update({f"deseasonalized/{m}": a.deseasonalized for m, a in report.seasonal.items()})
    for name, series in levels.items():
        result = _run_stage(report, f"stationarity/{name}",
                            lambda: stationarity.test(series, name=name), logger)
        if result is not None:
            report.tests[name] = [result]

    # Returns; failure here is fatal
    transformer = components['transformer']
    returns = transformer.log_returns(prices)
    report.returns = returns
    transformer.check_quality(returns)
    summary = transformer.describe(returns)
    report.tests['returns'] = [summary.pop('jarque_bera')]
    report.return_summary = summary

    result = _run_stage(report, "stationarity/returns",
                        lambda: stationarity.test(returns, name='returns'), logger)
    if result is not None:
        report.tests['returns'].insert(0, result)
    checkpoint('stationarity')

    # Autocorrelation
    autocorrelation = components['autocorrelation']
    report.correlogram = _run_stage(report, "correlogram",
                                    lambda: autocorrelation.correlogram(returns), logger)
    lb = _run_stage(report, "ljung_box",
                    lambda: autocorrelation.ljung_box(returns, config.ljung_box_lags), logger)
    if lb:
        report.tests['returns'].extend(lb)
    checkpoint('autocorrelation')

    # Mean models
    estimator = components['arima']
    report.arima = estimator.fit_candidates(returns, config.arima_orders, test_size=config.test_size)
    report.auto_fit = _run_stage(
        report, "auto_arima",
        lambda: estimator.select_order(
            returns, max_p=config.auto_max_p, max_q=config.auto_max_q,
            d=0, criterion=config.criterion, test_size=config.test_size
        ),
        logger
    )
    pool = CandidateResults(
        fits=report.arima.fits + ([report.auto_fit] if report.auto_fit is not None else []),
        failures=report.arima.failures,
    )
    report.selected_fit = pool.best(config.criterion)
    if report.selected_fit is not None:
        report.residuals = report.selected_fit.residuals
        logger.info(f"Using residuals of {report.selected_fit.label}")
    else:
        logger.warning("No ARIMA model converged, using de-meaned returns as residuals")
        report.residuals = (returns - returns.mean()).rename('residual')
    checkpoint('arima')

    # Heteroscedasticity
    het = _run_stage(
        report, "heteroscedasticity",
        lambda: components['heteroscedasticity'].run(
            report.residuals, box_lags=config.ljung_box_lags, arch_lags=config.arch_lags
        ),
        logger
    )
    if het:
        report.tests['residuals'] = het['box_squared'] + het['arch_lm']
    checkpoint('heteroscedasticity')

    # Volatility
    report.volatility_fit = _run_stage(
        report, "garch",
        lambda: components['garch'].fit(report.residuals, transform=config.garch_transform),
        logger
    )
    if report.volatility_fit is not None:
        report.volatility_forecast = _run_stage(
            report, "garch_forecast",
            lambda: report.volatility_fit.forecast(config.forecast_horizon),
            logger
        )
    checkpoint('garch')

    logger.info(monitor.report())
    return report


def save_plots(report: AnalysisReport, plot_dir: Path) -> None:
    """Render every available stage output to PNG files"""
    plot_dir.mkdir(parents=True, exist_ok=True)
    prefix = report.symbol or 'series'

    with SeriesVisualizer() as visualizer:
        levels = {'Adjusted close': report.prices}
        levels.update({f"Deseasonalized ({m})": a.deseasonalized for m, a in report.seasonal.items()})
        visualizer.plot_series(levels, title=f"{prefix} prices",
                               save_path=plot_dir / f"{prefix}_prices.png")
        if report.seasonal:
            visualizer.plot_seasonal_indices(
                {m: a.index for m, a in report.seasonal.items()},
                save_path=plot_dir / f"{prefix}_seasonal_index.png"
            )
        if report.returns is not None:
            visualizer.plot_series({'Log return': report.returns}, ylabel='Log return',
                                   save_path=plot_dir / f"{prefix}_returns.png")
            visualizer.plot_return_distribution(
                report.returns, save_path=plot_dir / f"{prefix}_return_distribution.png"
            )
            visualizer.plot_correlogram(
                report.returns, nlags=report.config.acf_lags, title=f"{prefix} returns",
                save_path=plot_dir / f"{prefix}_correlogram.png"
            )
        if report.volatility_fit is not None:
            visualizer.plot_volatility(
                report.volatility_fit.conditional_variance,
                report.volatility_forecast,
                title=report.volatility_fit.label,
                save_path=plot_dir / f"{prefix}_volatility.png"
            )


def print_report(report: AnalysisReport) -> None:
    """Console rendering of the report"""
    print(f"\nAnalysis of {report.symbol}: {len(report.prices):,} observations "
          f"({report.prices.index[0]:%Y-%m-%d} to {report.prices.index[-1]:%Y-%m-%d})")
    print("-" * 70)

    for method, adjustment in report.seasonal.items():
        print(f"\nSeasonal index ({method}):")
        print(adjustment.index.round(4).to_string())

    print("\nHypothesis tests:")
    print(report.summary_frame().to_string(index=False))

    if report.arima is not None:
        print(f"\nARIMA candidates ranked by {report.config.criterion}:")
        print(report.arima.to_frame(report.config.criterion).to_string(index=False))
    if report.auto_fit is not None:
        print(f"\nAutomatic selection: {report.auto_fit.label} (AIC={report.auto_fit.aic:.2f})")

    if report.volatility_fit is not None:
        print(f"\n{report.volatility_fit.label} parameters:")
        for name, value in report.volatility_fit.params.items():
            print(f"  {name}: {value:.6f}")
    if report.volatility_forecast is not None:
        print("\nVolatility forecast (first 10 steps):")
        print(report.volatility_forecast.to_frame().head(10).to_string())

    if report.errors:
        print("\nStage errors:")
        for stage, message in report.errors.items():
            print(f"  {stage}: {message}")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('symbol', help="Ticker symbol, e.g. AAPL")
    parser.add_argument('start', help="Start date (ISO 8601)")
    parser.add_argument('end', help="End date (ISO 8601, exclusive)")
    parser.add_argument('--interval', default='1d', help="Bar interval; only 1d is supported")
    parser.add_argument('--csv', type=Path, help="Export the cleaned price series to this CSV")
    parser.add_argument('--from-csv', type=Path, help="Read prices from a CSV export instead of downloading")
    parser.add_argument('--db', type=Path, help="DuckDB price store used as a download cache")
    parser.add_argument('--output', type=Path, default=Path('results'), help="Directory for logs and plots")
    parser.add_argument('--plots', action='store_true', help="Save plots to the output directory")
    parser.add_argument('--env', help="Path to a .env file with TSA_* overrides")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point with configuration and setup"""
    args = parse_args(argv)
    args.output.mkdir(parents=True, exist_ok=True)
    logger = setup_logging(args.output)
    logger.info(f"Starting analysis of {args.symbol}...")

    store = None
    try:
        config = AnalysisConfig.from_env(args.env)
        store = PriceStore(args.db) if args.db else None
        loader = PriceLoader(store=store, timeout=config.timeout)

        monitor = StageMonitor()
        if args.from_csv:
            prices = loader.read_csv(args.from_csv)
        else:
            prices = loader.load(args.symbol, args.start, args.end, interval=args.interval)
        monitor.checkpoint('load')

        if args.csv:
            loader.export_csv(prices, args.csv)

        report = run_pipeline(prices, config, symbol=args.symbol, logger=logger, monitor=monitor)
        print_report(report)

        if args.plots:
            save_plots(report, args.output / "plots")

        logger.info("Analysis completed successfully")
        return report

    except Exception as e:
        logger.error(f"Analysis failed: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise
    finally:
        if store is not None:
            store.close()


if __name__ == '__main__':
    main()
