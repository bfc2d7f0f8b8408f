from __future__ import annotations
import os
import sys
from loguru import logger
import pandas as pd

from .config import Cfg
from .data import filter_min_history, load_prices, PRICES_FILE
from .features import build_feature_panel
from .labels import label_rows

def setup_logging(level="INFO", to_file=True, rotate="10 MB", retention="7 days", path="logs/sp_signals.log"):
    """Sets up the Loguru logger."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if to_file:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        logger.add(path, level=level, rotation=rotate, retention=retention)

def setup_logging_from_cfg(cfg: Cfg):
    opts = cfg.logging or {}
    setup_logging(
        level=opts.get("level", "INFO"),
        to_file=opts.get("to_file", True),
        rotate=opts.get("rotate", "10 MB"),
        retention=opts.get("retention", "7 days"),
    )

def get_training_data(cfg: Cfg, prices: pd.DataFrame | None = None, path: str = PRICES_FILE) -> pd.DataFrame:
    """Cached prices -> min-history filter -> feature panel -> labelled rows."""
    if prices is None:
        prices = load_prices(path)
    prices = filter_min_history(prices, cfg.universe.min_history)
    logger.info(f"Building features for {prices['symbol'].nunique()} symbols...")
    features = build_feature_panel(prices, cfg.features, with_target_return=True)
    logger.info("Building labels...")
    rows = label_rows(features, cfg.features.label_threshold)
    logger.info(f"Labelled {len(rows)} rows, positive rate {rows['target'].mean():.2%}")
    return rows
