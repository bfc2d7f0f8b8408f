### `sp_signals/folds.py`: chronological splitting and resampling

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple
import numpy as np
import pandas as pd
from loguru import logger

from .errors import EmptyDataError

@dataclass(frozen=True)
class Fold:
    index: int
    train_idx: np.ndarray
    assess_idx: np.ndarray
    train_start: pd.Timestamp
    train_end: pd.Timestamp
    assess_start: pd.Timestamp
    assess_end: pd.Timestamp

def chronological_split(df: pd.DataFrame, train_fraction: float = 0.8) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Timestamp]:
    """
    Split at the `train_fraction` quantile of row dates.
    Train holds `date <= cutoff`, test holds `date > cutoff`.
    """
    if df.empty:
        raise EmptyDataError("Cannot split an empty table")
    dates = pd.to_datetime(df["date"])
    cutoff = dates.quantile(train_fraction).floor("D")
    train = df[dates <= cutoff].reset_index(drop=True)
    test = df[dates > cutoff].reset_index(drop=True)
    logger.info(f"Chronological split at {cutoff.date()}: train={len(train)} rows, test={len(test)} rows")
    return train, test, cutoff

def rolling_origin(dates: pd.Series, initial: int, assess: int, skip: int = 0,
                   gap: int = 0, cumulative: bool = False) -> List[Fold]:
    """
    Walk-forward folds over the distinct dates of `dates`.

    Window sizes count distinct dates, so every row of a given date lands on
    the same side of a fold boundary. Each fold's analysis window ends where
    the previous one ended plus `skip + 1` dates. With `cumulative=False`
    the analysis window has a fixed length of `initial` dates; otherwise it
    always starts at the first date. `gap` dates are left out between the
    analysis and assessment windows. Returned indices are positions into `dates`.
    """
    row_dates = pd.to_datetime(pd.Series(dates)).reset_index(drop=True)
    uniq = np.sort(row_dates.unique())
    n = len(uniq)
    folds: List[Fold] = []
    last_stop = n - gap - assess
    for k, stop in enumerate(range(initial, last_stop + 1, skip + 1)):
        start = 0 if cumulative else stop - initial
        train_dates = uniq[start:stop]
        assess_dates = uniq[stop + gap:stop + gap + assess]
        folds.append(Fold(
            index=k,
            train_idx=np.flatnonzero(row_dates.isin(train_dates).values),
            assess_idx=np.flatnonzero(row_dates.isin(assess_dates).values),
            train_start=pd.Timestamp(train_dates[0]),
            train_end=pd.Timestamp(train_dates[-1]),
            assess_start=pd.Timestamp(assess_dates[0]),
            assess_end=pd.Timestamp(assess_dates[-1]),
        ))
    logger.debug(f"rolling_origin: {n} dates -> {len(folds)} folds "
                 f"(initial={initial}, assess={assess}, skip={skip}, gap={gap}, cumulative={cumulative})")
    return folds

def _draw(rng: np.random.Generator, bounds: Any) -> Any:
    # [min, max] or [min, max, "log"]; anything else is a fixed value
    if isinstance(bounds, (list, tuple)) and len(bounds) in (2, 3):
        lo, hi = bounds[0], bounds[1]
        if len(bounds) == 3 and bounds[2] == "log":
            return float(np.exp(rng.uniform(np.log(lo), np.log(hi))))
        if isinstance(lo, int) and isinstance(hi, int):
            return int(rng.integers(lo, hi + 1))
        return float(rng.uniform(lo, hi))
    return bounds

def random_grid(ranges: Dict[str, Any], size: int, seed: int) -> List[Dict[str, Any]]:
    """Up to `size` distinct random configurations drawn from `ranges`."""
    if size <= 0:
        raise ValueError("grid size must be positive")
    rng = np.random.default_rng(seed)
    grid: List[Dict[str, Any]] = []
    seen = set()
    attempts = 0
    while len(grid) < size and attempts < size * 50:
        attempts += 1
        params = {k: _draw(rng, v) for k, v in sorted(ranges.items())}
        key = repr(sorted(params.items()))
        if key in seen:
            continue
        seen.add(key)
        grid.append(params)
    if len(grid) < size:
        logger.warning(f"Random grid exhausted: {len(grid)} distinct configurations (requested {size})")
    return grid
