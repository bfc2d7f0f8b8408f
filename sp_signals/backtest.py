### `sp_signals/backtest.py`: threshold strategy with capped contributions vs buy & hold

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict
import numpy as np
import pandas as pd
from loguru import logger

from .analysis import METRIC_COLUMNS, annualization, metrics_table, round_metrics
from .features import RETURN_COLUMN, require_columns
from .signals import assign_signals

DAILY_COLUMNS = ["date", "strategy_return", "benchmark_return", "strategy_cum", "benchmark_cum"]

@dataclass
class BacktestResult:
    daily: pd.DataFrame
    metrics: pd.DataFrame      # rounded, for display
    metrics_raw: pd.DataFrame  # full precision
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return self.daily.empty

    @classmethod
    def no_data(cls, params: Dict[str, Any] | None = None) -> "BacktestResult":
        metrics = pd.DataFrame(columns=["Strategy"] + METRIC_COLUMNS)
        return cls(daily=pd.DataFrame(columns=DAILY_COLUMNS), metrics=metrics,
                   metrics_raw=metrics.copy(), params=dict(params or {}))

def cap_contributions(weight: pd.Series, returns: pd.Series, take_profit: float, stop_loss: float) -> pd.Series:
    """
    Clamp each weighted contribution (weight * return) into [stop_loss, take_profit].
    Missing returns stay missing and count as 0 when summed.
    """
    raw = weight.astype(float) * returns.astype(float)
    return raw.clip(lower=stop_loss, upper=take_profit)

def daily_returns(rows: pd.DataFrame, contribution: pd.Series) -> pd.DataFrame:
    """Per-date strategy/benchmark returns compounded into capital curves starting from 1."""
    frame = pd.DataFrame({
        "date": pd.to_datetime(rows["date"]).values,
        "contribution": contribution.values,
        "raw": rows[RETURN_COLUMN].astype(float).values,
    })
    daily = (frame.groupby("date", sort=True)
                  .agg(strategy_return=("contribution", "sum"), benchmark_return=("raw", "mean"))
                  .reset_index())
    daily["strategy_cum"] = (1 + daily["strategy_return"].fillna(0.0)).cumprod()
    daily["benchmark_cum"] = (1 + daily["benchmark_return"].fillna(0.0)).cumprod()
    return daily[DAILY_COLUMNS]

def evaluate(rows: pd.DataFrame, take_profit: float = 0.05, stop_loss: float = -0.05, horizon: int = 5,
             threshold: float | None = None, periods_per_year: int = 252, precision: int = 4) -> BacktestResult:
    """
    Backtest signal rows (symbol, date, weight, return_fwd).

    When `threshold` is given, signals and per-date weights are first
    recomputed from `p_up`; otherwise the rows' own `weight` column is used.
    Pure function of its inputs. An empty row set gives `BacktestResult.no_data`.
    """
    if take_profit <= 0:
        raise ValueError(f"take_profit must be > 0, got {take_profit}")
    if stop_loss >= 0:
        raise ValueError(f"stop_loss must be < 0, got {stop_loss}")
    params = {"take_profit": take_profit, "stop_loss": stop_loss, "horizon": horizon,
              "threshold": threshold, "periods_per_year": periods_per_year}
    n_annual = annualization(horizon, periods_per_year)

    if rows is None or len(rows) == 0:
        logger.info("Backtest: empty signal set")
        return BacktestResult.no_data(params)

    require_columns(rows, ["date", RETURN_COLUMN] + (["p_up"] if threshold is not None else ["weight"]),
                    "backtest rows")
    if threshold is not None:
        rows = assign_signals(rows, threshold)

    capped = cap_contributions(rows["weight"], rows[RETURN_COLUMN], take_profit, stop_loss)
    daily = daily_returns(rows, capped)
    raw = metrics_table(daily, n_annual)
    logger.debug(f"Backtest over {len(daily)} periods: tp={take_profit}, sl={stop_loss}, threshold={threshold}")
    return BacktestResult(daily=daily, metrics=round_metrics(raw, precision), metrics_raw=raw, params=params)
