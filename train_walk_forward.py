# train_walk_forward.py
import sys
from loguru import logger

from sp_signals.config import Cfg
from sp_signals.errors import SignalPipelineError
from sp_signals.folds import chronological_split
from sp_signals.signals import historical_signals, save_signals
from sp_signals.trainer import WalkForwardTrainer, save_model
from sp_signals.utils import get_training_data, setup_logging_from_cfg

def main(config_path: str = "config.yaml") -> int:
    """
    Tune on the first 80% of dates, refit, save the model, and score the
    remaining dates into the historical signal file used by the dashboard.
    """
    cfg = Cfg.from_yaml(config_path)
    setup_logging_from_cfg(cfg)
    logger.info("=== Walk-forward training ===")

    try:
        # 1. Data: cached prices -> features -> labels
        rows = get_training_data(cfg)

        # 2. Split: nothing after the cutoff reaches the trainer
        train, test, cutoff = chronological_split(rows, cfg.signals.train_fraction)

        # 3. Tune + final fit
        trainer = WalkForwardTrainer(cfg.cv, cfg.model)
        result = trainer.fit(train)
    except SignalPipelineError as e:
        logger.error(str(e))
        return 1

    if result.train_end > cutoff:
        raise RuntimeError(f"Model trained on data after the cutoff {cutoff.date()}")
    save_model(result.model, cfg.signals.model_path)
    logger.info(f"Best params: {result.best_params}")

    # 4. Held-out signals for backtesting
    if test.empty:
        logger.warning("No rows after the cutoff; historical signal file not written.")
        return 0
    signals = historical_signals(result.model, test, cfg.signals.threshold)
    save_signals(signals, cfg.signals.historical_path)
    logger.info("=== Finished walk-forward training ===")
    return 0

if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
