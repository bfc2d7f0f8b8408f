### `sp_signals/trainer.py`: walk-forward tuning + final fit

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import joblib
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from loguru import logger
from sklearn.metrics import accuracy_score, average_precision_score, roc_auc_score

from .config import CVCfg, ModelCfg
from .errors import EmptyDataError, MissingInputError
from .features import FEATURE_COLUMNS, require_columns
from .folds import Fold, random_grid, rolling_origin
from .strategy_ml import MLStrategy

METRICS = ("roc_auc", "pr_auc", "accuracy")

@dataclass
class TrainResult:
    model: MLStrategy
    best_params: Dict[str, Any]
    best_config_id: int
    scores: pd.DataFrame  # one row per (config_id, fold)
    summary: pd.DataFrame  # one row per config_id
    train_end: pd.Timestamp | None = None
    grid: List[Dict[str, Any]] = field(default_factory=list)

def _score_fold(config_id: int, params: Dict[str, Any], fold: Fold, X: pd.DataFrame, y: pd.Series,
                model_cfg: ModelCfg) -> Dict[str, Any]:
    """Fit on the fold's analysis window, score on its assessment window. Never raises on bad folds."""
    row = {"config_id": config_id, "fold": fold.index,
           "n_train": len(fold.train_idx), "n_assess": len(fold.assess_idx), "error": None}
    row.update({m: np.nan for m in METRICS})
    X_tr, y_tr = X.iloc[fold.train_idx], y.iloc[fold.train_idx]
    X_as, y_as = X.iloc[fold.assess_idx], y.iloc[fold.assess_idx]
    merged = {**model_cfg.params, **params}
    try:
        model = MLStrategy(model=model_cfg.name, random_state=model_cfg.seed,
                           downsample=model_cfg.downsample, **merged)
        model.fit(X_tr, y_tr)
        p = model.predict_proba(X_as).values
    except ValueError as e:
        row["error"] = str(e)
        logger.warning(f"Config {config_id} fold {fold.index} skipped: {e}")
        return row

    row["accuracy"] = accuracy_score(y_as, (p > 0.5).astype(int))
    if y_as.nunique() < 2:
        row["error"] = "single class in assessment window"
        logger.warning(f"Config {config_id} fold {fold.index}: single class in assessment window, AUCs undefined")
    else:
        row["roc_auc"] = roc_auc_score(y_as, p)
        row["pr_auc"] = average_precision_score(y_as, p)
    logger.debug(f"Config {config_id} fold {fold.index}: roc_auc={row['roc_auc']:.4f} "
                 f"pr_auc={row['pr_auc']:.4f} accuracy={row['accuracy']:.4f}")
    return row

class WalkForwardTrainer:
    """
    Tunes a classifier over a random hyperparameter grid with rolling-origin
    folds, then refits the best configuration on every row it was given.

    The caller hands in training rows only; keeping test-period rows out is
    the caller's job (see `folds.chronological_split`).
    """

    def __init__(self, cv_cfg: CVCfg, model_cfg: ModelCfg, feature_columns: List[str] | None = None):
        if cv_cfg.metric not in METRICS:
            raise ValueError(f"Unknown metric '{cv_cfg.metric}', expected one of {METRICS}")
        self.cv = cv_cfg
        self.model_cfg = model_cfg
        self.feature_columns = list(feature_columns or FEATURE_COLUMNS)

    def _prepare(self, rows: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame, pd.Series]:
        require_columns(rows, ["date", "target"] + self.feature_columns, "training rows")
        if rows.empty:
            raise EmptyDataError("No training rows")
        rows = rows.assign(date=pd.to_datetime(rows["date"]))
        rows = rows.sort_values(["date", "symbol"] if "symbol" in rows.columns else ["date"],
                                kind="mergesort").reset_index(drop=True)
        return rows, rows[self.feature_columns], rows["target"].astype(int)

    def folds(self, rows: pd.DataFrame) -> List[Fold]:
        return rolling_origin(rows["date"], initial=self.cv.initial, assess=self.cv.assess,
                              skip=self.cv.skip, gap=self.cv.gap, cumulative=self.cv.cumulative)

    def grid(self) -> List[Dict[str, Any]]:
        return random_grid(self.model_cfg.grid, self.model_cfg.grid_size, self.model_cfg.seed)

    def tune(self, rows: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame, List[Dict[str, Any]]]:
        """Score every (config, fold). Returns (per-fold scores, per-config summary, grid)."""
        rows, X, y = self._prepare(rows)
        folds = self.folds(rows)
        if not folds:
            raise EmptyDataError(
                f"Not enough history for walk-forward CV: {rows['date'].nunique()} dates, "
                f"need at least initial+gap+assess={self.cv.initial + self.cv.gap + self.cv.assess}")
        grid = self.grid()
        logger.info(f"Tuning {self.model_cfg.name}: {len(grid)} configurations x {len(folds)} folds "
                    f"(n_jobs={self.cv.n_jobs})")

        jobs = [(cid, params, fold) for cid, params in enumerate(grid) for fold in folds]
        results = Parallel(n_jobs=self.cv.n_jobs, prefer="threads")(
            delayed(_score_fold)(cid, params, fold, X, y, self.model_cfg) for cid, params, fold in jobs
        )
        # key by (config, fold) so the outcome does not depend on completion order
        scores = pd.DataFrame(results).sort_values(["config_id", "fold"]).reset_index(drop=True)

        summary = scores.groupby("config_id")[list(METRICS)].mean()
        summary["n_folds"] = scores.groupby("config_id")[self.cv.metric].count()
        summary = summary.reset_index()
        summary["params"] = [grid[c] for c in summary["config_id"]]
        for _, r in summary.iterrows():
            logger.info(f"Config {r['config_id']} {r['params']}: mean {self.cv.metric}="
                        f"{r[self.cv.metric]:.4f} over {r['n_folds']} folds")
        return scores, summary, grid

    def select_best(self, summary: pd.DataFrame) -> int:
        """Highest mean score; ties go to the lower config id."""
        valid = summary.dropna(subset=[self.cv.metric])
        if valid.empty:
            raise EmptyDataError(f"Every configuration failed on every fold; no {self.cv.metric} to select on")
        ranked = valid.sort_values([self.cv.metric, "config_id"], ascending=[False, True], kind="mergesort")
        return int(ranked.iloc[0]["config_id"])

    def fit(self, rows: pd.DataFrame) -> TrainResult:
        scores, summary, grid = self.tune(rows)
        best_id = self.select_best(summary)
        best_params = {**self.model_cfg.params, **grid[best_id]}
        logger.info(f"Best configuration {best_id}: {best_params}")

        rows, X, y = self._prepare(rows)
        model = MLStrategy(model=self.model_cfg.name, random_state=self.model_cfg.seed,
                           downsample=self.model_cfg.downsample, **best_params)
        logger.info(f"Refitting on {len(X)} rows up to {rows['date'].max().date()}...")
        model.fit(X, y)
        return TrainResult(model=model, best_params=best_params, best_config_id=best_id,
                           scores=scores, summary=summary, train_end=rows["date"].max(), grid=grid)

    def fit_save(self, rows: pd.DataFrame, path: str = "models/rf_fit.joblib") -> TrainResult:
        result = self.fit(rows)
        save_model(result.model, path)
        return result

def save_model(model: MLStrategy, path: str = "models/rf_fit.joblib") -> str:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(model, path)
    logger.info(f"Model saved to {path}")
    return path

def load_model(path: str = "models/rf_fit.joblib") -> MLStrategy:
    if not os.path.exists(path):
        logger.error(f"Model file not found: {path}. Run train_walk_forward.py first.")
        raise MissingInputError(f"Trained model not found: {path}", [path])
    model = joblib.load(path)
    logger.info(f"Loaded model from {path}")
    return model
