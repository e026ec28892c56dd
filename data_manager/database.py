import logging
from pathlib import Path
from typing import Union
from datetime import datetime
import duckdb
import pandas as pd

logger = logging.getLogger(__name__)


class PriceStore:
    """DuckDB cache of downloaded adjusted closes, keyed by symbol and date"""

    def __init__(self, db_path: Union[str, Path]):
        """Initialize database connection"""
        self.db_path = Path(db_path)
        if str(db_path) != ':memory:':
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(db_path))
        self._initialize_tables()
        logger.info(f"Initialized price store at {db_path}")

    def _initialize_tables(self):
        """Create database tables if they don't exist."""
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS daily_prices (
                    symbol VARCHAR,
                    date DATE,
                    adjusted_close DOUBLE,
                    PRIMARY KEY (symbol, date)
                )
            """)

            # Ranges already downloaded, so a cache hit never hides missing days
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS fetch_log (
                    symbol VARCHAR,
                    start_date DATE,
                    end_date DATE,
                    fetched_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        except Exception as e:
            logger.error(f"Error initializing price store tables: {str(e)}")
            raise

    def save_prices(self, symbol: str, prices: pd.Series,
                    start: datetime, end: datetime) -> None:
        """Store a downloaded series and log the requested range"""
        frame = pd.DataFrame({
            'symbol': symbol,
            'date': pd.DatetimeIndex(prices.index).normalize(),
            'adjusted_close': prices.to_numpy(dtype=float),
        })

        try:
            self.conn.register('prices_df', frame)
            self.conn.execute("""
                INSERT OR REPLACE INTO daily_prices
                SELECT symbol, CAST(date AS DATE), adjusted_close
                FROM prices_df
            """)
            self.conn.unregister('prices_df')

            self.conn.execute("""
                INSERT INTO fetch_log (symbol, start_date, end_date)
                VALUES (?, ?, ?)
            """, [symbol, pd.Timestamp(start).date(), pd.Timestamp(end).date()])

            logger.info(f"Stored {len(frame):,} prices for {symbol}")
        except Exception as e:
            logger.error(f"Error storing prices for {symbol}: {str(e)}")
            raise

    def covers(self, symbol: str, start: datetime, end: datetime) -> bool:
        """True if a logged download spans [start, end]"""
        result = self.conn.execute("""
            SELECT COUNT(*)
            FROM fetch_log
            WHERE symbol = ?
                AND start_date <= ?
                AND end_date >= ?
        """, [symbol, pd.Timestamp(start).date(), pd.Timestamp(end).date()]).fetchone()
        return result[0] > 0

    def load_prices(self, symbol: str, start: datetime, end: datetime) -> pd.Series:
        """Stored prices in [start, end), ascending by date"""
        df = self.conn.execute("""
            SELECT date, adjusted_close
            FROM daily_prices
            WHERE symbol = ?
                AND date >= ?
                AND date < ?
            ORDER BY date
        """, [symbol, pd.Timestamp(start).date(), pd.Timestamp(end).date()]).df()

        prices = pd.Series(
            df['adjusted_close'].to_numpy(dtype=float),
            index=pd.DatetimeIndex(pd.to_datetime(df['date']), name='date'),
            name='adjusted_close',
        )
        return prices

    def close(self):
        """Close database connection"""
        if hasattr(self, 'conn'):
            self.conn.close()
