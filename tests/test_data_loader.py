import pytest
import numpy as np
import pandas as pd

from data_manager import data_loader
from data_manager.data_loader import PriceLoader
from data_manager.database import PriceStore
from exceptions import DataUnavailable
from conftest import make_prices


def vendor_frame(prices: pd.Series, multiindex: bool = True, adjusted: bool = True) -> pd.DataFrame:
    """Mimic the vendor response layout"""
    frame = pd.DataFrame({
        'Open': prices.to_numpy() * 0.99,
        'High': prices.to_numpy() * 1.01,
        'Low': prices.to_numpy() * 0.98,
        'Close': prices.to_numpy() * 1.02,
        'Volume': np.full(len(prices), 1_000_000),
    }, index=pd.DatetimeIndex(prices.index, name='Date'))
    if adjusted:
        frame.insert(4, 'Adj Close', prices.to_numpy())
    if multiindex:
        frame.columns = pd.MultiIndex.from_product([frame.columns, ['TEST']], names=['Price', 'Ticker'])
    return frame


@pytest.fixture
def fake_download(monkeypatch):
    """Replace the vendor call; records each request"""
    calls = []
    source = make_prices(n=300, start='2020-01-02')

    def download(symbol, start=None, end=None, **kwargs):
        calls.append({'symbol': symbol, 'start': start, 'end': end, **kwargs})
        mask = (source.index >= pd.Timestamp(start)) & (source.index < pd.Timestamp(end))
        return vendor_frame(source[mask])

    monkeypatch.setattr(data_loader.yf, 'download', download)
    return calls


@pytest.fixture
def loader():
    return PriceLoader()


def test_fetch_returns_adjusted_close(loader, fake_download):
    prices = loader.fetch('TEST', '2020-01-01', '2020-07-01')

    assert prices.name == 'adjusted_close'
    assert prices.index.name == 'date'
    assert prices.index.is_monotonic_increasing
    assert not prices.isna().any()
    assert prices.index[-1] < pd.Timestamp('2020-07-01')
    assert fake_download[0]['auto_adjust'] is False
    assert fake_download[0]['end'] == '2020-07-01'


def test_fetch_falls_back_to_close(loader, monkeypatch):
    source = make_prices(n=50, start='2021-01-04')
    monkeypatch.setattr(
        data_loader.yf, 'download',
        lambda *args, **kwargs: vendor_frame(source, multiindex=False, adjusted=False)
    )

    prices = loader.fetch('TEST', '2021-01-01', '2021-06-01')
    np.testing.assert_allclose(prices.to_numpy(), source.to_numpy() * 1.02)


def test_empty_response_raises(loader, monkeypatch):
    monkeypatch.setattr(data_loader.yf, 'download', lambda *args, **kwargs: pd.DataFrame())

    with pytest.raises(DataUnavailable) as excinfo:
        loader.fetch('NOPE', '2020-01-01', '2020-02-01')
    assert excinfo.value.symbol == 'NOPE'


def test_vendor_exception_becomes_data_unavailable(loader, monkeypatch):
    def failing(*args, **kwargs):
        raise ConnectionError("timed out")

    monkeypatch.setattr(data_loader.yf, 'download', failing)

    with pytest.raises(DataUnavailable, match="timed out"):
        loader.fetch('TEST', '2020-01-01', '2020-02-01')


@pytest.mark.parametrize("symbol,start,end,interval", [
    ('TEST', '2020-02-01', '2020-01-01', '1d'),
    ('TEST', '2020-01-01', '2020-01-01', '1d'),
    ('', '2020-01-01', '2020-02-01', '1d'),
    ('TEST', 'not-a-date', '2020-02-01', '1d'),
    ('TEST', '2020-01-01', '2020-02-01', '1h'),
])
def test_invalid_request_raises(loader, fake_download, symbol, start, end, interval):
    with pytest.raises(DataUnavailable):
        loader.fetch(symbol, start, end, interval=interval)
    assert fake_download == []


def test_clean_sorts_and_deduplicates(loader):
    dates = pd.to_datetime(['2020-01-03', '2020-01-02', '2020-01-03', '2020-01-06', '2020-01-07'])
    raw = pd.Series([11.0, 10.0, 12.0, np.nan, 13.0], index=dates)

    prices = loader.clean(raw)

    assert list(prices.index) == list(pd.to_datetime(['2020-01-02', '2020-01-03', '2020-01-07']))
    # Last row wins for a duplicated date
    assert prices.loc['2020-01-03'] == 12.0


def test_clean_drops_timezone(loader):
    dates = pd.date_range('2020-01-02', periods=3, freq='D', tz='America/New_York')
    prices = loader.clean(pd.Series([1.0, 2.0, 3.0], index=dates))
    assert prices.index.tz is None


def test_csv_round_trip(loader, tmp_path):
    prices = make_prices(n=120)
    path = loader.export_csv(prices, tmp_path / 'out' / 'prices.csv')

    header = path.read_text().splitlines()[0]
    assert header == 'date,adjusted_close'

    loaded = loader.read_csv(path)
    assert list(loaded.index) == list(prices.index)
    np.testing.assert_allclose(loaded.to_numpy(), prices.to_numpy())


def test_read_csv_missing_file(loader, tmp_path):
    with pytest.raises(DataUnavailable):
        loader.read_csv(tmp_path / 'missing.csv')


def test_read_csv_missing_column(loader, tmp_path):
    path = tmp_path / 'bad.csv'
    path.write_text("date,close\n2020-01-02,10.0\n")
    with pytest.raises(DataUnavailable, match="missing columns"):
        loader.read_csv(path)


def test_load_uses_store_after_first_download(fake_download):
    store = PriceStore(':memory:')
    loader = PriceLoader(store=store)
    try:
        first = loader.load('TEST', '2020-01-01', '2020-06-01')
        second = loader.load('TEST', '2020-02-01', '2020-05-01')

        assert len(fake_download) == 1
        expected = first[(first.index >= '2020-02-01') & (first.index < '2020-05-01')]
        np.testing.assert_allclose(second.to_numpy(), expected.to_numpy())
        assert list(second.index) == list(expected.index)

        # Range extends beyond the logged download
        loader.load('TEST', '2020-01-01', '2020-09-01')
        assert len(fake_download) == 2
    finally:
        store.close()


if __name__ == '__main__':
    pytest.main([__file__])
