### `sp_signals/signals.py`: probability -> signal -> equal weight

from __future__ import annotations
import os
from pathlib import Path
import numpy as np
import pandas as pd
from loguru import logger

from .errors import MissingInputError
from .features import KEY_COLUMNS, RETURN_COLUMN, latest_snapshot, require_columns
from .strategy_base import Strategy

SIGNAL_COLUMNS = ["symbol", "date", "p_up", "signal", "n_signals", "weight", RETURN_COLUMN]
BACKTEST_REQUIRED = ["date", RETURN_COLUMN, "p_up"]

def assign_signals(df: pd.DataFrame, threshold: float, group_by_date: bool = True) -> pd.DataFrame:
    """
    signal = p_up > threshold; weight = 1 / n_signals for signalled rows, 0 otherwise.
    With `group_by_date`, n_signals is counted per date; otherwise over the whole frame.
    A date with no signals gets weight 0 everywhere.
    """
    require_columns(df, ["p_up"] + (["date"] if group_by_date else []), "signal input")
    out = df.copy()
    out["signal"] = (out["p_up"] > threshold).astype(int)
    if group_by_date:
        out["n_signals"] = out.groupby("date")["signal"].transform("sum").astype(int)
    else:
        out["n_signals"] = int(out["signal"].sum())
    safe_n = out["n_signals"].where(out["n_signals"] > 0, 1)
    out["weight"] = np.where((out["signal"] == 1) & (out["n_signals"] > 0), 1.0 / safe_n, 0.0)
    return out

def predict_signals(model: Strategy, features: pd.DataFrame, threshold: float,
                    group_by_date: bool = True) -> pd.DataFrame:
    require_columns(features, KEY_COLUMNS, "feature rows")
    out = features.copy()
    out["p_up"] = model.predict_proba(features).values
    return assign_signals(out, threshold, group_by_date=group_by_date)

def historical_signals(model: Strategy, test_rows: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """Signals over a multi-date held-out span, with realized forward returns left-joined back."""
    require_columns(test_rows, KEY_COLUMNS + [RETURN_COLUMN], "test rows")
    returns = test_rows[KEY_COLUMNS + [RETURN_COLUMN]]
    scored = predict_signals(model, test_rows.drop(columns=[RETURN_COLUMN]), threshold)
    out = scored.merge(returns, on=KEY_COLUMNS, how="left")
    logger.info(f"Historical signals: {len(out)} rows over {out['date'].nunique()} dates, "
                f"{int(out['signal'].sum())} signals at threshold {threshold}")
    return out

def live_signals(model: Strategy, features: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """Signalled instruments on the most recent date, strongest first, equal weights."""
    snapshot = latest_snapshot(features)
    scored = predict_signals(model, snapshot, threshold, group_by_date=False)
    picked = scored[scored["signal"] == 1].sort_values("p_up", ascending=False, kind="mergesort")
    if RETURN_COLUMN not in picked.columns:
        picked = picked.assign(**{RETURN_COLUMN: np.nan})
    return picked[SIGNAL_COLUMNS].reset_index(drop=True)

def save_signals(signals: pd.DataFrame, path: str) -> str:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    signals.to_pickle(path)
    logger.info(f"Saved {len(signals)} signal rows to {path}")
    return path

def load_signals(path: str, required: list[str] | None = None) -> pd.DataFrame:
    if not os.path.exists(path):
        raise MissingInputError(f"Signal file not found: {path}", [path])
    df = pd.read_pickle(path)
    require_columns(df, BACKTEST_REQUIRED if required is None else required, os.path.basename(path))
    return df
