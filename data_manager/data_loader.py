"""
Price loader: daily adjusted closes from the market data vendor or a CSV export.
"""

import logging
from pathlib import Path
from typing import Optional, Union
from datetime import datetime

import pandas as pd
import yfinance as yf

from data_manager.data_validator import PriceValidator
from data_manager.database import PriceStore
from exceptions import DataUnavailable

logger = logging.getLogger(__name__)

DateLike = Union[str, datetime, pd.Timestamp]

PRICE_COLUMN = 'adjusted_close'
DATE_COLUMN = 'date'


class PriceLoader:
    """Loads a clean, ascending, gap-free adjusted-close series for one symbol."""

    SUPPORTED_INTERVALS = ('1d',)

    def __init__(self, store: Optional[PriceStore] = None,
                 timeout: float = 10.0,
                 validator: Optional[PriceValidator] = None):
        """
        Args:
            store: Optional duckdb price store consulted before downloading
            timeout: Seconds before the download gives up
            validator: Validator applied to every cleaned series
        """
        self.store = store
        self.timeout = timeout
        self.validator = validator or PriceValidator()

    def load(self, symbol: str, start: DateLike, end: DateLike, interval: str = '1d') -> pd.Series:
        """Load from the store when it covers the range, otherwise download"""
        start, end = self._check_range(symbol, start, end, interval)

        if self.store is not None and self.store.covers(symbol, start, end):
            logger.info(f"Loading {symbol} {start:%Y-%m-%d} to {end:%Y-%m-%d} from price store")
            prices = self.store.load_prices(symbol, start, end)
            if not prices.empty:
                return self.clean(prices)
            logger.warning(f"Price store returned no rows for {symbol}, downloading")

        prices = self.fetch(symbol, start, end, interval)
        if self.store is not None:
            self.store.save_prices(symbol, prices, start, end)
        return prices

    def fetch(self, symbol: str, start: DateLike, end: DateLike, interval: str = '1d') -> pd.Series:
        """
        Download daily bars and return the cleaned adjusted close.

        The end date is exclusive, as the vendor treats it.
        """
        start, end = self._check_range(symbol, start, end, interval)
        logger.info(f"Downloading {symbol} from {start:%Y-%m-%d} to {end:%Y-%m-%d}")

        try:
            data = yf.download(
                symbol,
                start=start.strftime('%Y-%m-%d'),
                end=end.strftime('%Y-%m-%d'),
                interval=interval,
                auto_adjust=False,
                progress=False,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"Download failed for {symbol}: {str(e)}")
            raise DataUnavailable(
                f"download failed: {e}", symbol=symbol,
                start=f"{start:%Y-%m-%d}", end=f"{end:%Y-%m-%d}"
            ) from e

        if data is None or data.empty:
            raise DataUnavailable(
                "no data returned for symbol and range", symbol=symbol,
                start=f"{start:%Y-%m-%d}", end=f"{end:%Y-%m-%d}"
            )

        # Recent vendor releases return (field, ticker) columns even for one symbol
        if isinstance(data.columns, pd.MultiIndex):
            data.columns = data.columns.get_level_values(0)

        if 'Adj Close' in data.columns:
            raw = data['Adj Close']
        elif 'Close' in data.columns:
            logger.warning(f"No 'Adj Close' column for {symbol}, using 'Close'")
            raw = data['Close']
        else:
            raise DataUnavailable(
                f"response has no close column: {list(data.columns)}", symbol=symbol
            )

        prices = self.clean(raw)
        if prices.empty:
            raise DataUnavailable(
                "only missing values in range", symbol=symbol,
                start=f"{start:%Y-%m-%d}", end=f"{end:%Y-%m-%d}"
            )

        logger.info(
            f"Loaded {len(prices):,} observations for {symbol} "
            f"({prices.index[0]:%Y-%m-%d} to {prices.index[-1]:%Y-%m-%d})"
        )
        return prices

    def clean(self, raw: pd.Series) -> pd.Series:
        """Drop nulls, sort ascending and keep the last row per date"""
        if isinstance(raw, pd.DataFrame):
            raw = raw.iloc[:, 0]

        index = pd.DatetimeIndex(pd.to_datetime(raw.index))
        if index.tz is not None:
            index = index.tz_localize(None)

        prices = pd.Series(
            pd.to_numeric(raw, errors='coerce').to_numpy(dtype=float),
            index=index,
        )
        n_raw = len(prices)
        prices = prices.dropna().sort_index()
        prices = prices[~prices.index.duplicated(keep='last')]

        dropped = n_raw - len(prices)
        if dropped:
            logger.info(f"Dropped {dropped} missing or duplicate rows")

        prices.index.name = DATE_COLUMN
        prices.name = PRICE_COLUMN

        if not prices.empty:
            self.validator.validate(prices)
        return prices

    def read_csv(self, path: Union[str, Path]) -> pd.Series:
        """Read a series written by export_csv"""
        path = Path(path)
        if not path.exists():
            raise DataUnavailable("CSV file not found", path=str(path))

        df = pd.read_csv(path)
        missing = {DATE_COLUMN, PRICE_COLUMN} - set(df.columns)
        if missing:
            raise DataUnavailable(f"CSV is missing columns {sorted(missing)}", path=str(path))

        df[DATE_COLUMN] = pd.to_datetime(df[DATE_COLUMN])
        prices = self.clean(df.set_index(DATE_COLUMN)[PRICE_COLUMN])
        if prices.empty:
            raise DataUnavailable("CSV holds no prices", path=str(path))

        logger.info(f"Read {len(prices):,} observations from {path}")
        return prices

    def export_csv(self, prices: pd.Series, path: Union[str, Path]) -> Path:
        """Write `date` (ISO 8601) and `adjusted_close` columns"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        frame = pd.DataFrame({
            DATE_COLUMN: prices.index.strftime('%Y-%m-%d'),
            PRICE_COLUMN: prices.to_numpy(),
        })
        frame.to_csv(path, index=False)

        logger.info(f"Exported {len(frame):,} rows to {path}")
        return path

    def _check_range(self, symbol: str, start: DateLike, end: DateLike, interval: str):
        if interval not in self.SUPPORTED_INTERVALS:
            raise DataUnavailable(
                f"unsupported interval {interval!r}, only daily data is supported",
                symbol=symbol
            )
        if not symbol or not str(symbol).strip():
            raise DataUnavailable("empty symbol", symbol=symbol)

        try:
            start, end = pd.Timestamp(start), pd.Timestamp(end)
        except (ValueError, TypeError) as e:
            raise DataUnavailable(f"invalid date: {e}", symbol=symbol, start=start, end=end) from e

        if start >= end:
            raise DataUnavailable(
                "start date must precede end date", symbol=symbol,
                start=f"{start:%Y-%m-%d}", end=f"{end:%Y-%m-%d}"
            )
        return start, end
