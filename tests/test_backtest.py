"""
Unit tests for the backtest evaluation engine.

Covers:
- weighted-contribution capping
- daily aggregation and compounding
- empty inputs
- determinism and the uncapped limit
"""

import numpy as np
import pandas as pd
import pytest

from sp_signals.backtest import DAILY_COLUMNS, cap_contributions, evaluate
from sp_signals.signals import assign_signals


def rows_from(records):
    df = pd.DataFrame(records, columns=['symbol', 'date', 'weight', 'return_fwd'])
    df['date'] = pd.to_datetime(df['date'])
    return df


@pytest.fixture
def random_signal_rows():
    rng = np.random.default_rng(7)
    dates = pd.bdate_range('2024-01-01', periods=30)
    records = []
    for d in dates:
        for s in ['AAA', 'BBB', 'CCC', 'DDD']:
            records.append({'symbol': s, 'date': d, 'p_up': rng.uniform(0.4, 0.95),
                            'return_fwd': rng.normal(0.0, 0.08)})
    return assign_signals(pd.DataFrame(records), threshold=0.7)


class TestCapping:
    """Stop-loss / take-profit on weight * return."""

    def test_single_position_take_profit(self):
        """One instrument, weight 1, return 10%, tp 5% -> 5%."""
        rows = rows_from([('AAA', '2024-01-02', 1.0, 0.10)])
        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05)

        assert len(res.daily) == 1
        assert res.daily['strategy_return'].iloc[0] == pytest.approx(0.05)

    def test_two_positions_capped_both_sides(self):
        """Weighted -10% / +10% are capped to -5% / +5% and cancel out."""
        rows = rows_from([
            ('AAA', '2024-01-02', 0.5, -0.20),
            ('BBB', '2024-01-02', 0.5, 0.20),
        ])
        capped = cap_contributions(rows['weight'], rows['return_fwd'], 0.05, -0.05)
        assert capped.tolist() == pytest.approx([-0.05, 0.05])

        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05)
        assert res.daily['strategy_return'].iloc[0] == pytest.approx(0.0)

    def test_weight_applied_before_cap(self):
        """Raw return 8% at weight 0.5 is a 4% contribution: below a 5% cap."""
        rows = rows_from([
            ('AAA', '2024-01-02', 0.5, 0.08),
            ('BBB', '2024-01-02', 0.5, 0.0),
        ])
        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05)
        assert res.daily['strategy_return'].iloc[0] == pytest.approx(0.04)

    def test_capped_contribution_within_bounds(self, random_signal_rows):
        """Every capped contribution lies in [sl, tp]."""
        for tp, sl in [(0.01, -0.01), (0.05, -0.2), (0.2, -0.05)]:
            capped = cap_contributions(random_signal_rows['weight'], random_signal_rows['return_fwd'], tp, sl)
            assert (capped >= sl).all()
            assert (capped <= tp).all()

    def test_uncapped_limit(self, random_signal_rows):
        """With infinite caps the strategy return is the raw weighted sum."""
        res = evaluate(random_signal_rows, take_profit=np.inf, stop_loss=-np.inf)
        raw = (random_signal_rows.assign(c=random_signal_rows['weight'] * random_signal_rows['return_fwd'])
               .groupby('date')['c'].sum())
        assert res.daily['strategy_return'].values == pytest.approx(raw.values)

        wide = evaluate(random_signal_rows, take_profit=1e6, stop_loss=-1e6)
        assert wide.daily['strategy_cum'].values == pytest.approx(res.daily['strategy_cum'].values)

    def test_invalid_caps_rejected(self):
        rows = rows_from([('AAA', '2024-01-02', 1.0, 0.01)])
        with pytest.raises(ValueError):
            evaluate(rows, take_profit=0.0, stop_loss=-0.05)
        with pytest.raises(ValueError):
            evaluate(rows, take_profit=0.05, stop_loss=0.01)


class TestAggregation:
    """Daily returns, benchmark and compounding."""

    def test_no_signal_date_contributes_zero(self):
        """A date with nothing above threshold: zero strategy return, benchmark from all rows."""
        rows = pd.DataFrame({
            'symbol': ['AAA', 'BBB'],
            'date': pd.to_datetime(['2024-01-02', '2024-01-02']),
            'p_up': [0.55, 0.60],
            'return_fwd': [0.02, 0.04],
        })
        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05, threshold=0.7)

        assert res.daily['strategy_return'].iloc[0] == 0.0
        assert res.daily['benchmark_return'].iloc[0] == pytest.approx(0.03)
        assert not res.daily['strategy_return'].isna().any()

    def test_benchmark_uses_all_instruments(self):
        rows = rows_from([
            ('AAA', '2024-01-02', 1.0, 0.04),
            ('BBB', '2024-01-02', 0.0, -0.02),
            ('CCC', '2024-01-02', 0.0, 0.01),
        ])
        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05)
        assert res.daily['benchmark_return'].iloc[0] == pytest.approx(0.01)
        assert res.daily['strategy_return'].iloc[0] == pytest.approx(0.04)

    def test_compounding_and_running_max_drawdown(self):
        """Returns 5%, -10%, 5% -> 1.05, 0.945, 0.99225; drawdown measured from 1.05."""
        rows = rows_from([
            ('AAA', '2024-01-02', 1.0, 0.05),
            ('AAA', '2024-01-09', 1.0, -0.10),
            ('AAA', '2024-01-16', 1.0, 0.05),
        ])
        res = evaluate(rows, take_profit=1.0, stop_loss=-1.0)

        assert res.daily['strategy_cum'].tolist() == pytest.approx([1.05, 0.945, 0.99225])
        model = res.metrics_raw.set_index('Strategy').loc['Model']
        assert model['Max_Drawdown'] == pytest.approx(-0.1)
        n_annual = 252 / 5
        assert model['CAGR'] == pytest.approx((0.99225 / 1.05) ** (n_annual / 3) - 1)

    def test_dates_sorted_and_missing_returns_kept(self):
        """Unsorted input comes out ascending; a missing return compounds as 0."""
        rows = rows_from([
            ('AAA', '2024-01-16', 1.0, 0.02),
            ('AAA', '2024-01-02', 1.0, np.nan),
            ('AAA', '2024-01-09', 1.0, 0.01),
        ])
        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05)

        assert list(res.daily.columns) == DAILY_COLUMNS
        assert res.daily['date'].is_monotonic_increasing
        assert len(res.daily) == 3
        assert res.daily['strategy_return'].iloc[0] == 0.0
        assert np.isnan(res.daily['benchmark_return'].iloc[0])
        assert res.daily['benchmark_cum'].iloc[0] == 1.0
        assert res.daily['strategy_cum'].iloc[-1] == pytest.approx(1.01 * 1.02)

    def test_weights_sum_to_one_or_zero(self, random_signal_rows):
        sums = random_signal_rows[random_signal_rows['signal'] == 1].groupby('date')['weight'].sum()
        assert sums.values == pytest.approx(np.ones(len(sums)))
        zero_dates = set(random_signal_rows['date']) - set(sums.index)
        for d in zero_dates:
            assert (random_signal_rows.loc[random_signal_rows['date'] == d, 'weight'] == 0).all()


class TestResult:
    """Result object behaviour."""

    def test_empty_input_gives_no_data(self):
        res = evaluate(pd.DataFrame(columns=['date', 'weight', 'return_fwd']), 0.05, -0.05)
        assert res.empty
        assert list(res.daily.columns) == DAILY_COLUMNS
        assert res.metrics.empty

    def test_missing_columns_fail_fast(self):
        from sp_signals.errors import MissingInputError
        rows = pd.DataFrame({'date': pd.to_datetime(['2024-01-02']), 'weight': [1.0]})
        with pytest.raises(MissingInputError):
            evaluate(rows, 0.05, -0.05)

    def test_deterministic(self, random_signal_rows):
        a = evaluate(random_signal_rows, 0.05, -0.05, threshold=0.75)
        b = evaluate(random_signal_rows, 0.05, -0.05, threshold=0.75)
        pd.testing.assert_frame_equal(a.daily, b.daily)
        pd.testing.assert_frame_equal(a.metrics_raw, b.metrics_raw)

    def test_metrics_rounded_for_display(self, random_signal_rows):
        res = evaluate(random_signal_rows, 0.05, -0.05, precision=4)
        assert list(res.metrics['Strategy']) == ['Model', 'Buy & Hold']
        for col in ['CAGR', 'Volatility', 'Sharpe', 'Max_Drawdown', 'Calmar']:
            for raw, shown in zip(res.metrics_raw[col], res.metrics[col]):
                if np.isfinite(raw):
                    assert shown == np.round(raw, 4)

    def test_input_not_mutated(self, random_signal_rows):
        before = random_signal_rows.copy()
        evaluate(random_signal_rows, 0.05, -0.05, threshold=0.8)
        pd.testing.assert_frame_equal(random_signal_rows, before)

    def test_constant_capped_returns_have_undefined_sharpe(self):
        """Every period capped at take profit: zero spread, so no Sharpe ratio."""
        dates = pd.bdate_range('2024-01-01', periods=20)
        rows = rows_from([('AAA', d, 1.0, 0.10) for d in dates])
        res = evaluate(rows, take_profit=0.05, stop_loss=-0.05)

        assert (res.daily['strategy_return'] == 0.05).all()
        raw = res.metrics_raw.set_index('Strategy')
        assert not np.isfinite(raw.loc['Model', 'Sharpe'])
        assert not np.isfinite(raw.loc['Buy & Hold', 'Sharpe'])
        assert res.metrics['Sharpe'].isna().all()
