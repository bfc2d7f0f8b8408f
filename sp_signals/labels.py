### `sp_signals/labels.py`

import pandas as pd

from .features import RETURN_COLUMN, require_columns

def binary_target(returns: pd.Series, threshold: float = 0.02) -> pd.Series:
    return (returns > threshold).astype(int)

def label_rows(df: pd.DataFrame, threshold: float = 0.02) -> pd.DataFrame:
    require_columns(df, [RETURN_COLUMN], "feature table")
    out = df.copy()
    out["target"] = binary_target(out[RETURN_COLUMN], threshold)
    return out
