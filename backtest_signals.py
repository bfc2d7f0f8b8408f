# backtest_signals.py: batch evaluation of the historical signal file
from __future__ import annotations
import argparse
import os
import sys
from loguru import logger

from sp_signals.analysis import summarize
from sp_signals.backtest import evaluate
from sp_signals.config import Cfg
from sp_signals.errors import SignalPipelineError
from sp_signals.signals import load_signals
from sp_signals.utils import setup_logging_from_cfg

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Backtest stored signals with stop-loss / take-profit caps.")
    p.add_argument("--config", default="config.yaml")
    p.add_argument("--threshold", type=float, default=None)
    p.add_argument("--tp", type=float, default=None, help="take profit, e.g. 0.05")
    p.add_argument("--sl", type=float, default=None, help="stop loss, e.g. -0.05")
    p.add_argument("--out", default="results/equity_curve.csv")
    return p.parse_args(argv)

def main(argv=None) -> int:
    args = parse_args(argv)
    cfg = Cfg.from_yaml(args.config)
    setup_logging_from_cfg(cfg)
    bt = cfg.backtest

    try:
        rows = load_signals(cfg.signals.historical_path)
    except SignalPipelineError as e:
        logger.error(str(e))
        return 1

    result = evaluate(
        rows,
        take_profit=args.tp if args.tp is not None else bt.take_profit,
        stop_loss=args.sl if args.sl is not None else bt.stop_loss,
        horizon=cfg.features.horizon,
        threshold=args.threshold if args.threshold is not None else bt.threshold,
        periods_per_year=bt.periods_per_year,
        precision=bt.precision,
    )
    summarize(result)
    if not result.empty:
        os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
        result.daily.to_csv(args.out, index=False)
        logger.info(f"Equity curve written to {args.out}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
