### `sp_signals/strategy_ml.py`: probability classifier with in-fit class rebalancing

from __future__ import annotations
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.feature_selection import VarianceThreshold
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from loguru import logger

from lightgbm import LGBMClassifier
from xgboost import XGBClassifier

from .errors import MissingInputError
from .strategy_base import Strategy

# boosted-tree defaults; config params take precedence
BOOSTER_DEFAULTS = {
    "xgb": {"n_estimators": 100, "max_depth": 3, "learning_rate": 0.1, "eval_metric": "logloss", "n_jobs": 1},
    "lgbm": {"n_estimators": 100, "num_leaves": 15, "learning_rate": 0.1, "min_child_samples": 10,
             "n_jobs": 1, "verbose": -1},
}

def downsample(X: pd.DataFrame, y: pd.Series, seed: int) -> tuple[pd.DataFrame, pd.Series]:
    """
    Drop random majority-class rows until both classes have the minority count.
    Original row order is kept. Raises ValueError if only one class is present.
    """
    counts = y.value_counts()
    if len(counts) < 2:
        raise ValueError(f"single class in training data: {counts.to_dict()}")
    n_min = int(counts.min())
    rng = np.random.default_rng(seed)
    keep = []
    for cls in sorted(counts.index):
        pos = np.flatnonzero((y == cls).values)
        if len(pos) > n_min:
            pos = np.sort(rng.choice(pos, size=n_min, replace=False))
        keep.append(pos)
    keep = np.sort(np.concatenate(keep))
    return X.iloc[keep], y.iloc[keep]

class MLStrategy(Strategy):
    def __init__(self, model="rf", random_state=67, downsample=True, **kwargs):
        self.model_name = model
        self.random_state = random_state
        self.downsample = downsample
        self.params = dict(kwargs)
        self.feature_names_: list[str] | None = None
        self._pipe: Pipeline | None = None

    def _make_estimator(self, n_features: int):
        kw = self.params
        if self.model_name == "rf":
            max_features = kw.get("max_features", "sqrt")
            if isinstance(max_features, int):
                max_features = max(1, min(max_features, n_features))
            return RandomForestClassifier(
                n_estimators=kw.get("n_estimators", 100),
                max_features=max_features,
                min_samples_split=kw.get("min_samples_split", 2),
                min_samples_leaf=kw.get("min_samples_leaf", 1),
                max_depth=kw.get("max_depth", None),
                n_jobs=kw.get("n_jobs", 1),
                random_state=self.random_state,
            )
        if self.model_name in BOOSTER_DEFAULTS:
            est = XGBClassifier if self.model_name == "xgb" else LGBMClassifier
            return est(random_state=self.random_state, **{**BOOSTER_DEFAULTS[self.model_name], **kw})
        if self.model_name == "logreg":
            return LogisticRegression(C=kw.get("C", 1.0), max_iter=kw.get("max_iter", 500))
        raise ValueError(f"Unknown model '{self.model_name}'")

    def _build_pipeline(self, n_features: int) -> Pipeline:
        steps = [("zv", VarianceThreshold(0.0))]
        if self.model_name == "logreg":
            steps.append(("scaler", StandardScaler()))
        steps.append(("clf", self._make_estimator(n_features)))
        return Pipeline(steps)

    def fit(self, X: pd.DataFrame, y: pd.Series):
        if len(X) == 0:
            raise ValueError("Empty dataset. Cannot fit ML model.")
        y = pd.Series(np.asarray(y).astype(int), index=X.index)
        if self.downsample:
            X, y = downsample(X, y, self.random_state)
        elif y.nunique() < 2:
            raise ValueError(f"single class in training data: {y.value_counts().to_dict()}")

        self.feature_names_ = list(X.columns)
        n_live = int((X.nunique() > 1).sum())
        self._pipe = self._build_pipeline(max(n_live, 1))
        self._pipe.fit(X, y)
        logger.debug(f"[{self.model_name}] fitted on {len(X)} rows, {n_live} non-constant features, params={self.params}")
        return self

    def predict_proba(self, X: pd.DataFrame) -> pd.Series:
        if self._pipe is None:
            raise RuntimeError("Model is not fitted")
        missing = [c for c in self.feature_names_ if c not in X.columns]
        if missing:
            raise MissingInputError(f"Missing feature columns for prediction: {missing}", missing)
        if len(X) == 0:
            return pd.Series([], index=X.index, name="p_up", dtype=float)
        p = self._pipe.predict_proba(X[self.feature_names_])[:, 1]
        return pd.Series(p, index=X.index, name="p_up")
