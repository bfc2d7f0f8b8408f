# sp_signals/config.py
from __future__ import annotations
import yaml
from dataclasses import dataclass, field
from typing import List, Dict, Any

@dataclass
class UniverseCfg:
    symbols: List[str] = field(default_factory=list)
    universe_file: str | None = None  # CSV with a "symbol" column
    sample_size: int | None = 50
    seed: int = 67
    start: str = "2020-01-01"
    end: str | None = None
    min_history: int = 500
    live_lookback_days: int = 60
    live_min_history: int = 30

@dataclass
class FeatureCfg:
    sma_fast: int = 5
    sma_slow: int = 10
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    window_vol: int = 10
    momentum_lag: int = 5
    horizon: int = 5
    label_threshold: float = 0.02

@dataclass
class CVCfg:
    initial: int = 300
    assess: int = 60
    skip: int = 90
    gap: int = 0
    cumulative: bool = False
    metric: str = "roc_auc"
    n_jobs: int = 1

@dataclass
class ModelCfg:
    name: str = "rf"
    params: Dict[str, Any] = field(default_factory=lambda: {"n_estimators": 100})
    grid: Dict[str, Any] = field(default_factory=lambda: {
        "max_features": [2, 5],
        "min_samples_split": [2, 10],
    })
    grid_size: int = 4
    seed: int = 67
    downsample: bool = True

@dataclass
class SignalCfg:
    train_fraction: float = 0.8
    threshold: float = 0.7
    live_threshold: float = 0.7
    model_path: str = "models/rf_fit.joblib"
    historical_path: str = "signals/test_signals_base.pkl"
    live_path: str = "signals/signals_today.pkl"

@dataclass
class BacktestCfg:
    threshold: float = 0.7
    take_profit: float = 0.05
    stop_loss: float = -0.05
    periods_per_year: int = 252
    precision: int = 4
    threshold_range: List[float] = field(default_factory=lambda: [0.5, 0.9])
    take_profit_range: List[float] = field(default_factory=lambda: [0.01, 0.2])
    stop_loss_range: List[float] = field(default_factory=lambda: [-0.2, -0.01])

@dataclass
class Cfg:
    universe: UniverseCfg = field(default_factory=UniverseCfg)
    features: FeatureCfg = field(default_factory=FeatureCfg)
    cv: CVCfg = field(default_factory=CVCfg)
    model: ModelCfg = field(default_factory=ModelCfg)
    signals: SignalCfg = field(default_factory=SignalCfg)
    backtest: BacktestCfg = field(default_factory=BacktestCfg)
    logging: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> "Cfg":
        """Raise ValueError on settings the pipeline cannot run with."""
        f, cv, bt = self.features, self.cv, self.backtest
        windows = {
            "features.horizon": f.horizon,
            "features.sma_fast": f.sma_fast,
            "features.sma_slow": f.sma_slow,
            "features.rsi_period": f.rsi_period,
            "features.window_vol": f.window_vol,
            "features.momentum_lag": f.momentum_lag,
            "cv.initial": cv.initial,
            "cv.assess": cv.assess,
        }
        for name, value in windows.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if cv.skip < 0 or cv.gap < 0:
            raise ValueError("cv.skip and cv.gap must be >= 0")
        if not 0.0 < self.signals.train_fraction < 1.0:
            raise ValueError("signals.train_fraction must be in (0, 1)")
        for name in ("threshold", "live_threshold"):
            value = getattr(self.signals, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"signals.{name} must be in [0, 1], got {value}")
        if not 0.0 <= bt.threshold <= 1.0:
            raise ValueError(f"backtest.threshold must be in [0, 1], got {bt.threshold}")
        if bt.take_profit <= 0:
            raise ValueError(f"backtest.take_profit must be > 0, got {bt.take_profit}")
        if bt.stop_loss >= 0:
            raise ValueError(f"backtest.stop_loss must be < 0, got {bt.stop_loss}")
        return self

    @staticmethod
    def from_yaml(path: str) -> "Cfg":
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
        return Cfg(
            universe=UniverseCfg(**raw.get("universe", {})),
            features=FeatureCfg(**raw.get("features", {})),
            cv=CVCfg(**raw.get("cv", {})),
            model=ModelCfg(**raw.get("model", {})),
            signals=SignalCfg(**raw.get("signals", {})),
            backtest=BacktestCfg(**raw.get("backtest", {})),
            logging=raw.get("logging", {}),
        ).validate()
