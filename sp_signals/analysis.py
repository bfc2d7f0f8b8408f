"""
Risk/return metrics for compounded return series.

All functions take plain return / cumulative-capital series and the number
of return periods per year (`n_annual`). With a 5-day label horizon each
period spans 5 trading days, so `n_annual = 252 / 5`.

Undefined ratios (zero volatility, zero drawdown) come back as NaN; the
`strict=True` variants raise DegenerateMetricError instead.
"""

from __future__ import annotations
import numpy as np
import pandas as pd
from loguru import logger

from .errors import DegenerateMetricError

METRIC_COLUMNS = ["CAGR", "Volatility", "Sharpe", "Max_Drawdown", "Calmar"]
SERIES_NAMES = {"strategy": "Model", "benchmark": "Buy & Hold"}
ZERO_STD_TOL = 1e-12

def annualization(horizon: int, trading_days: int = 252) -> float:
    """Return periods per year at a label horizon of `horizon` trading days."""
    if horizon <= 0:
        raise ValueError(f"horizon must be positive, got {horizon}")
    return trading_days / horizon

def cagr(cum: pd.Series, n_annual: float) -> float:
    x = pd.Series(cum, dtype=float).dropna()
    if len(x) == 0:
        return np.nan
    first, last = x.iloc[0], x.iloc[-1]
    if first <= 0 or last < 0:
        return np.nan
    return float((last / first) ** (n_annual / len(x)) - 1)

def annual_volatility(returns: pd.Series, n_annual: float) -> float:
    r = pd.Series(returns, dtype=float).dropna()
    if len(r) < 2:
        return np.nan
    return float(r.std() * np.sqrt(n_annual))

def sharpe(returns: pd.Series, n_annual: float, strict: bool = False) -> float:
    r = pd.Series(returns, dtype=float).dropna()
    if len(r) < 2:
        return np.nan
    sd = r.std()
    # constant series leave rounding noise in std
    if not np.isfinite(sd) or sd <= ZERO_STD_TOL * max(1.0, abs(r.mean())):
        if strict:
            raise DegenerateMetricError("Sharpe ratio undefined: zero standard deviation")
        return np.nan
    return float(r.mean() / sd * np.sqrt(n_annual))

def drawdown(cum: pd.Series) -> pd.Series:
    """Distance below the running maximum, as a fraction of that maximum."""
    x = pd.Series(cum, dtype=float)
    running = x.cummax()
    return (x - running) / running

def max_drawdown(cum: pd.Series) -> float:
    dd = drawdown(cum).dropna()
    if len(dd) == 0:
        return np.nan
    return float(min(dd.min(), 0.0))

def calmar(cagr_value: float, max_dd: float, strict: bool = False) -> float:
    if max_dd == 0 or not np.isfinite(max_dd) or not np.isfinite(cagr_value):
        if strict and max_dd == 0:
            raise DegenerateMetricError("Calmar ratio undefined: zero maximum drawdown")
        return np.nan
    return float(cagr_value / abs(max_dd))

def metrics_row(name: str, returns: pd.Series, cum: pd.Series, n_annual: float) -> dict:
    c = cagr(cum, n_annual)
    mdd = max_drawdown(cum)
    try:
        s = sharpe(returns, n_annual, strict=True)
    except DegenerateMetricError as e:
        logger.debug(f"[{name}] {e}")
        s = np.nan
    try:
        cal = calmar(c, mdd, strict=True)
    except DegenerateMetricError as e:
        logger.debug(f"[{name}] {e}")
        cal = np.nan
    return {"Strategy": name, "CAGR": c, "Volatility": annual_volatility(returns, n_annual),
            "Sharpe": s, "Max_Drawdown": mdd, "Calmar": cal}

def metrics_table(daily: pd.DataFrame, n_annual: float) -> pd.DataFrame:
    """One row per series (Model, Buy & Hold), full precision."""
    rows = [
        metrics_row(SERIES_NAMES[key], daily[f"{key}_return"], daily[f"{key}_cum"], n_annual)
        for key in ("strategy", "benchmark")
    ]
    return pd.DataFrame(rows, columns=["Strategy"] + METRIC_COLUMNS)

def round_metrics(table: pd.DataFrame, precision: int = 4) -> pd.DataFrame:
    out = table.copy()
    out[METRIC_COLUMNS] = out[METRIC_COLUMNS].astype(float).round(precision)
    return out

def summarize(result) -> None:
    """Log a short report of a BacktestResult."""
    if result.empty:
        logger.warning("Backtest: no data to report")
        return
    daily = result.daily
    logger.info("---")
    logger.info(f"Backtest period: {daily['date'].min().date()} to {daily['date'].max().date()} "
                f"({len(daily)} periods)")
    logger.info(f"Final capital   Model: {daily['strategy_cum'].iloc[-1]:.4f}   "
                f"Buy & Hold: {daily['benchmark_cum'].iloc[-1]:.4f}")
    for _, r in result.metrics.iterrows():
        logger.info(f"{r['Strategy']:<11} CAGR={r['CAGR']:.2%} Vol={r['Volatility']:.2%} "
                    f"Sharpe={r['Sharpe']:.2f} MaxDD={r['Max_Drawdown']:.2%} Calmar={r['Calmar']:.2f}")
    logger.info("---")
