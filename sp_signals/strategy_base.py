### `sp_signals/strategy_base.py`

from __future__ import annotations
import pandas as pd

class Strategy:
    """A fitted model maps a feature table to P(target == 1) per row."""

    def fit(self, X: pd.DataFrame, y: pd.Series):
        raise NotImplementedError

    def predict_proba(self, X: pd.DataFrame) -> pd.Series:
        raise NotImplementedError
