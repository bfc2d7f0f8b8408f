### `sp_signals/data.py`

from __future__ import annotations
import os
import numpy as np
import pandas as pd
import yfinance as yf
from loguru import logger

from .errors import EmptyDataError, MissingInputError

PRICE_COLUMNS = ["symbol", "date", "adjusted"]

# Relative to the project root
HISTORICAL_DATA_DIR = "data/historical_data"
PRICES_FILE = os.path.join(HISTORICAL_DATA_DIR, "prices.csv")

def load_universe(symbols: list[str] | None = None, universe_file: str | None = None) -> list[str]:
    """Return the candidate tickers, from an explicit list or a CSV with a `symbol` column."""
    if universe_file:
        if not os.path.exists(universe_file):
            raise MissingInputError(f"Universe file not found: {universe_file}", [universe_file])
        df = pd.read_csv(universe_file)
        if "symbol" not in df.columns:
            raise MissingInputError(f"Universe file {universe_file} has no 'symbol' column", ["symbol"])
        universe = df["symbol"].dropna().astype(str).str.strip().tolist()
    else:
        universe = list(symbols or [])
    universe = sorted(set(s.upper() for s in universe if s))
    if not universe:
        raise EmptyDataError("Universe is empty: configure universe.symbols or universe.universe_file")
    return universe

def sample_universe(symbols: list[str], size: int | None, seed: int) -> list[str]:
    """Deterministic subset of the universe. Same (symbols, size, seed) -> same tickers."""
    pool = sorted(set(symbols))
    if size is None or size >= len(pool):
        return pool
    rng = np.random.default_rng(seed)
    picked = rng.choice(len(pool), size=size, replace=False)
    return sorted(pool[i] for i in picked)

def _to_long(raw: pd.DataFrame, symbols: list[str]) -> pd.DataFrame:
    if raw is None or raw.empty:
        return pd.DataFrame(columns=PRICE_COLUMNS)
    if isinstance(raw.columns, pd.MultiIndex):
        level = "Adj Close" if "Adj Close" in raw.columns.get_level_values(0) else "Close"
        wide = raw[level]
    else:
        col = "Adj Close" if "Adj Close" in raw.columns else "Close"
        wide = raw[[col]].rename(columns={col: symbols[0]})
    wide = wide.rename_axis(index="date", columns=None)
    out = wide.reset_index().melt(id_vars="date", var_name="symbol", value_name="adjusted")
    return out

def tidy_prices(prices: pd.DataFrame) -> pd.DataFrame:
    """Sort by (symbol, date), drop missing prices and duplicate (symbol, date) pairs."""
    out = prices[PRICE_COLUMNS].dropna(subset=["adjusted"]).copy()
    out["date"] = pd.to_datetime(out["date"])
    if out["date"].dt.tz is not None:
        out["date"] = out["date"].dt.tz_localize(None)
    out["date"] = out["date"].astype("datetime64[ns]")
    out = out.drop_duplicates(subset=["symbol", "date"], keep="last")
    return out.sort_values(["symbol", "date"]).reset_index(drop=True)

def fetch_prices(symbols: list[str], start: str, end: str | None = None) -> pd.DataFrame:
    """Download adjusted daily prices from Yahoo Finance in long (symbol, date, adjusted) format."""
    if not symbols:
        raise EmptyDataError("No symbols to download")
    logger.info(f"Downloading prices for {len(symbols)} symbols from {start} to {end or 'today'}...")
    try:
        raw = yf.download(symbols, start=start, end=end, auto_adjust=False,
                          progress=False, group_by="column", threads=True)
    except Exception as e:
        logger.exception(f"Error downloading prices: {e}")
        raise
    prices = tidy_prices(_to_long(raw, symbols))
    missing = sorted(set(symbols) - set(prices["symbol"]))
    if missing:
        logger.warning(f"No prices returned for {len(missing)} symbols: {missing}")
    if prices.empty:
        raise EmptyDataError(f"No prices downloaded for {symbols}")
    logger.debug(f"Downloaded {len(prices)} price rows for {prices['symbol'].nunique()} symbols")
    return prices

def filter_min_history(prices: pd.DataFrame, min_rows: int) -> pd.DataFrame:
    """Keep symbols with at least `min_rows` observations."""
    counts = prices.groupby("symbol")["date"].transform("size")
    out = prices[counts >= min_rows].reset_index(drop=True)
    dropped = prices["symbol"].nunique() - out["symbol"].nunique()
    if dropped:
        logger.info(f"Dropped {dropped} symbols with fewer than {min_rows} rows")
    if out.empty:
        raise EmptyDataError(f"No symbol has at least {min_rows} rows of history")
    return out

def save_prices(prices: pd.DataFrame, path: str = PRICES_FILE) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    prices.to_csv(path, index=False)
    logger.info(f"Saved {len(prices)} price rows to {path}")
    return path

def load_prices(path: str = PRICES_FILE) -> pd.DataFrame:
    """Load the cached price CSV written by `save_prices`."""
    if not os.path.exists(path):
        logger.error(f"Price file not found: {path}. Run fetch_historical_data.py first.")
        raise MissingInputError(f"Price history not found: {path}", [path])
    df = pd.read_csv(path)
    missing = [c for c in PRICE_COLUMNS if c not in df.columns]
    if missing:
        raise MissingInputError(f"Price file {path} is missing columns {missing}", missing)
    logger.debug(f"Loaded {len(df)} price rows from {path}")
    return tidy_prices(df)
