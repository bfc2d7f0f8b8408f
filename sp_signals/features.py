### sp_signals/features.py: technical indicators per symbol + forward return

import pandas as pd
import ta
from loguru import logger

from .config import FeatureCfg
from .errors import EmptyDataError, MissingInputError

FEATURE_COLUMNS = ["sma_5", "sma_10", "rsi_14", "macd_diff", "volatility_10", "momentum_5"]
RETURN_COLUMN = "return_fwd"
KEY_COLUMNS = ["symbol", "date"]

def require_columns(df: pd.DataFrame, columns: list[str], artifact: str = "input") -> None:
    """Fail fast when a tabular input lacks required fields."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MissingInputError(f"Missing required columns in {artifact}: {missing}", missing)

def forward_return(adjusted: pd.Series, horizon: int) -> pd.Series:
    """Fractional return from each date to `horizon` periods later. NaN where the future is unobserved."""
    return adjusted.shift(-horizon) / adjusted - 1

def build_features(df: pd.DataFrame, cfg: FeatureCfg, symbol: str = None) -> pd.DataFrame:
    """Indicators for a single symbol. `df` holds `adjusted` prices ordered by date."""
    close = df["adjusted"]
    X = pd.DataFrame(index=df.index)
    try:
        X["sma_5"] = ta.trend.sma_indicator(close, window=cfg.sma_fast)
        X["sma_10"] = ta.trend.sma_indicator(close, window=cfg.sma_slow)
        X["rsi_14"] = ta.momentum.rsi(close, window=cfg.rsi_period)

        macd = ta.trend.MACD(close, window_slow=cfg.macd_slow, window_fast=cfg.macd_fast,
                             window_sign=cfg.macd_signal)
        X["macd_diff"] = macd.macd() - macd.macd_signal()

        # standard deviation of the price level, not of returns
        X["volatility_10"] = close.rolling(cfg.window_vol).std()
        X["momentum_5"] = close - close.shift(cfg.momentum_lag)
    except Exception as e:
        logger.exception(f"[{symbol}] Error building features: {e}")
        raise
    return X

def build_feature_panel(prices: pd.DataFrame, cfg: FeatureCfg, with_target_return: bool = True) -> pd.DataFrame:
    """
    Long-format feature table over all symbols: symbol, date, features[, return_fwd].
    Rows with any missing indicator are dropped; with `with_target_return`, rows
    whose forward return is not yet observable are dropped too.
    """
    require_columns(prices, ["symbol", "date", "adjusted"], "price history")
    frames = []
    for symbol, g in prices.sort_values(["symbol", "date"]).groupby("symbol", sort=True):
        g = g.reset_index(drop=True)
        X = build_features(g, cfg, symbol=symbol)
        X.insert(0, "date", g["date"].values)
        X.insert(0, "symbol", symbol)
        if with_target_return:
            X[RETURN_COLUMN] = forward_return(g["adjusted"], cfg.horizon).values
        frames.append(X)

    if not frames:
        raise EmptyDataError("No prices to build features from")
    panel = pd.concat(frames, ignore_index=True)
    required = FEATURE_COLUMNS + ([RETURN_COLUMN] if with_target_return else [])
    before = len(panel)
    panel = panel.dropna(subset=required).reset_index(drop=True)
    logger.debug(f"Feature panel built. Shape={panel.shape}, dropped {before - len(panel)} incomplete rows")
    if panel.empty:
        raise EmptyDataError("Feature panel is empty after dropping incomplete rows")
    return panel

def latest_snapshot(features: pd.DataFrame) -> pd.DataFrame:
    """Rows of the most recent date only."""
    require_columns(features, ["date"], "feature snapshot")
    if features.empty:
        raise EmptyDataError("No feature rows to take a snapshot from")
    latest = features["date"].max()
    return features[features["date"] == latest].reset_index(drop=True)
