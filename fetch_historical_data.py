import sys
from loguru import logger

from sp_signals.config import Cfg
from sp_signals.data import fetch_prices, filter_min_history, load_universe, sample_universe, save_prices
from sp_signals.errors import SignalPipelineError
from sp_signals.utils import setup_logging_from_cfg

def main(config_path: str = "config.yaml") -> int:
    cfg = Cfg.from_yaml(config_path)
    setup_logging_from_cfg(cfg)
    u = cfg.universe
    try:
        universe = load_universe(u.symbols, u.universe_file)
        symbols = sample_universe(universe, u.sample_size, u.seed)
        logger.info(f"Sampled {len(symbols)} of {len(universe)} symbols (seed={u.seed})")
        prices = fetch_prices(symbols, start=u.start, end=u.end)
        prices = filter_min_history(prices, u.min_history)
    except SignalPipelineError as e:
        logger.error(str(e))
        return 1
    save_prices(prices)
    logger.success(f"Cached {prices['symbol'].nunique()} symbols, "
                   f"{prices['date'].min().date()} to {prices['date'].max().date()}")
    return 0

if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
