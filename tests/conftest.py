"""Shared fixtures for the sp_signals test suite."""

import os
import sys

import numpy as np
import pandas as pd
import pytest

# Add project root to path to import the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sp_signals.features import FEATURE_COLUMNS
from sp_signals.strategy_base import Strategy


class ColumnModel(Strategy):
    """Stand-in fitted model: the probability is read from a column of the input."""

    def __init__(self, column='score'):
        self.column = column

    def fit(self, X, y):
        return self

    def predict_proba(self, X):
        return X[self.column].astype(float).rename('p_up')


@pytest.fixture
def column_model():
    return ColumnModel()


@pytest.fixture
def sample_prices():
    """Two symbols, 120 business days of random-walk prices."""
    rng = np.random.default_rng(1)
    dates = pd.bdate_range('2023-01-02', periods=120)
    frames = []
    for symbol in ['AAA', 'BBB']:
        steps = rng.normal(0, 0.01, len(dates))
        frames.append(pd.DataFrame({
            'symbol': symbol,
            'date': dates,
            'adjusted': 100 * np.exp(np.cumsum(steps)),
        }))
    return pd.concat(frames, ignore_index=True)


def make_labelled_rows(n_dates=40, symbols=('AAA', 'BBB', 'CCC', 'DDD', 'EEE', 'FFF'), seed=0):
    """Synthetic labelled rows where the target depends on the first feature."""
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range('2022-01-03', periods=n_dates)
    records = []
    for d in dates:
        for s in symbols:
            x = rng.normal(size=len(FEATURE_COLUMNS))
            rec = {'symbol': s, 'date': d}
            rec.update(dict(zip(FEATURE_COLUMNS, x)))
            rec['return_fwd'] = 0.02 * x[0] + rng.normal(0, 0.01)
            rec['target'] = int(x[0] + 0.3 * rng.normal() > 0)
            records.append(rec)
    return pd.DataFrame(records)


@pytest.fixture
def labelled_rows():
    return make_labelled_rows()
