# predict_today.py: daily signals for the latest available date
import sys
from datetime import date, timedelta
from loguru import logger

from sp_signals.config import Cfg
from sp_signals.data import fetch_prices, filter_min_history, load_universe
from sp_signals.errors import SignalPipelineError
from sp_signals.features import build_feature_panel
from sp_signals.signals import live_signals, save_signals
from sp_signals.trainer import load_model
from sp_signals.utils import setup_logging_from_cfg

def main(config_path: str = "config.yaml") -> int:
    cfg = Cfg.from_yaml(config_path)
    setup_logging_from_cfg(cfg)
    u = cfg.universe

    try:
        model = load_model(cfg.signals.model_path)
        symbols = load_universe(u.symbols, u.universe_file)
        start = (date.today() - timedelta(days=u.live_lookback_days)).isoformat()
        prices = fetch_prices(symbols, start=start)
        prices = filter_min_history(prices, u.live_min_history)
        features = build_feature_panel(prices, cfg.features, with_target_return=False)
        signals = live_signals(model, features, cfg.signals.live_threshold)
    except SignalPipelineError as e:
        logger.error(str(e))
        return 1

    save_signals(signals, cfg.signals.live_path)
    latest = features["date"].max().date()
    logger.info(f"Generated {len(signals)} signals for {latest}")
    for _, r in signals.iterrows():
        logger.info(f"  {r['symbol']:<6} p_up={r['p_up']:.3f} weight={r['weight']:.3f}")
    return 0

if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
