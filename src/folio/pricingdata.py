import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Mapping

import pandas as pd
import yfinance as yf  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ['Date', 'Close']

# Track which symbols have been force-refreshed this session
_refreshed_symbols: set[str] = set()


def get_yfinance_cache_path(symbol: str, cache_dir: Path | None = None) -> Path:
    """Get the cache file path for a given symbol.

    Args:
        symbol: The ticker symbol (e.g., "AAPL", "^GSPC").
        cache_dir: Root cache directory. Defaults to ``.cache`` under the
            current working directory.

    Returns:
        Path to the CSV cache file under ``<cache_dir>/yfinance_prices/``.
    """
    if cache_dir is None:
        cache_dir = Path.cwd() / ".cache"
    return cache_dir / "yfinance_prices" / f"{symbol}.csv"


def _read_cache(cache_path: Path) -> pd.DataFrame | None:
    if not cache_path.exists():
        return None
    try:
        cached_df = pd.read_csv(cache_path)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable price cache %s: %s", cache_path, e)
        return None
    if cached_df.empty or not set(PRICE_COLUMNS).issubset(cached_df.columns):
        return None
    cached_df['Date'] = pd.to_datetime(cached_df['Date']).dt.date
    return cached_df[PRICE_COLUMNS]


def fetch_yfinance_data(
    symbol: str,
    min_date: date,
    max_date: date,
    force_cache_refresh: bool = False,
    cache_dir: Path | None = None
) -> pd.DataFrame:
    """
    Fetch daily closes for a symbol from Yahoo Finance, using the cache intelligently.

    If cached data exists, checks if it covers the requested date range.
    If not, expands the request to include all dates from cache + requested range,
    then updates the cache with the merged data.

    Args:
        symbol: The ticker symbol (e.g., "AAPL", "^GSPC").
        min_date: The minimum date needed.
        max_date: The maximum date needed.
        force_cache_refresh: If True, force a fresh fetch from Yahoo Finance
            (only once per symbol per session).
        cache_dir: Root cache directory, see ``get_yfinance_cache_path``.

    Returns:
        DataFrame with columns: Date, Close. Empty if nothing could be fetched
        and nothing is cached.
    """
    cache_path = get_yfinance_cache_path(symbol, cache_dir)
    cached_df = _read_cache(cache_path)
    cached_min: date | None = None
    cached_max: date | None = None
    if cached_df is not None:
        cached_min = cached_df['Date'].min()
        cached_max = cached_df['Date'].max()

    fetch_start = min_date
    fetch_end = max_date
    should_force_refresh = force_cache_refresh and symbol not in _refreshed_symbols

    if cached_df is None or cached_min is None or cached_max is None:
        need_fetch = True
    elif should_force_refresh or min_date < cached_min or max_date > cached_max:
        # Refetch everything the cache already covers too, so merged data stays consistent
        need_fetch = True
        fetch_start = min(min_date, cached_min)
        fetch_end = max(max_date, cached_max)
    else:
        need_fetch = False

    if not need_fetch:
        assert cached_df is not None
        return cached_df

    _refreshed_symbols.add(symbol)

    # yfinance end date is exclusive, so add 1 day
    fetch_end_exclusive = fetch_end + timedelta(days=1)

    logger.info("Fetching %s (%s to %s)", symbol, fetch_start, fetch_end)
    try:
        ticker = yf.Ticker(symbol)
        new_df: pd.DataFrame = ticker.history(  # type: ignore[call-arg]
            start=fetch_start.isoformat(),
            end=fetch_end_exclusive.isoformat(),
            interval="1d",
            auto_adjust=False
        )
    except Exception as e:
        # yfinance raises a variety of errors on rate limiting and network issues
        logger.warning("yfinance request failed for %s: %s", symbol, e)
        if cached_df is not None:
            return cached_df
        return pd.DataFrame(columns=PRICE_COLUMNS)

    if new_df is None or new_df.empty:
        logger.warning("yfinance returned no data for %s (possible rate limiting)", symbol)
        if cached_df is not None:
            return cached_df
        return pd.DataFrame(columns=PRICE_COLUMNS)

    new_df = new_df.reset_index()
    new_df['Date'] = pd.to_datetime(new_df['Date']).dt.date
    new_df = new_df[PRICE_COLUMNS].dropna(subset=['Close'])

    if cached_df is not None:
        # Combine and remove duplicates, keeping newer data
        combined_df = pd.concat([cached_df, new_df], ignore_index=True)
        combined_df = combined_df.drop_duplicates(subset=['Date'], keep='last')
        combined_df = combined_df.sort_values('Date').reset_index(drop=True)
    else:
        combined_df = new_df.sort_values('Date').reset_index(drop=True)

    cache_path.parent.mkdir(parents=True, exist_ok=True)
    combined_df.to_csv(cache_path, index=False)

    return combined_df


class PricingDataManager(ABC):
    """Abstract base class for all daily closing price providers."""

    @abstractmethod
    def get_price_series(self, symbol: str, min_date: date, max_date: date) -> dict[date, Decimal]:
        """Return the closing price of a symbol for each trading day in a range.

        Args:
            symbol: The ticker symbol.
            min_date: First day of the range (inclusive).
            max_date: Last day of the range (inclusive).

        Returns:
            A dictionary mapping each trading day to its closing price.
            Days without trading are absent.
        """
        raise NotImplementedError("This method should be overridden by subclasses.")


class FixedPricingDataManager(PricingDataManager):
    """Pricing manager serving prices from an in-memory table."""

    def __init__(self, prices_by_symbol: Mapping[str, Mapping[date, Decimal]] | None = None):
        """Initialize with known prices.

        Args:
            prices_by_symbol: Closing prices per symbol and date. Symbols not
                listed have no prices.
        """
        self.prices_by_symbol = dict(prices_by_symbol or {})

    def get_price_series(self, symbol: str, min_date: date, max_date: date) -> dict[date, Decimal]:
        series = self.prices_by_symbol.get(symbol, {})
        return {day: price for day, price in series.items() if min_date <= day <= max_date}


class YFinancePricingDataManager(PricingDataManager):
    """Daily closing prices from Yahoo Finance with a CSV cache per symbol."""

    def __init__(self, force_cache_refresh: bool = False, cache_dir: Path | None = None):
        """Initialize the YFinance pricing manager.

        Args:
            force_cache_refresh: If True, bypass the disk cache and fetch
                fresh data from Yahoo Finance (once per symbol per session).
            cache_dir: Root cache directory. Defaults to ``./.cache``.
        """
        self.force_cache_refresh = force_cache_refresh
        self.cache_dir = cache_dir

    def get_price_series(self, symbol: str, min_date: date, max_date: date) -> dict[date, Decimal]:
        df = fetch_yfinance_data(symbol, min_date, max_date, self.force_cache_refresh, self.cache_dir)

        series: dict[date, Decimal] = {}
        for trade_date, close in zip(df['Date'], df['Close']):
            if pd.isna(close) or not min_date <= trade_date <= max_date:
                continue
            series[trade_date] = Decimal(str(close)).quantize(Decimal("0.0001"))
        return series
