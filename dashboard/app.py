"""
Streamlit dashboard: interactive backtest with stop loss and take profit.

Run from the project root:
    streamlit run dashboard/app.py
"""

import sys
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

# Add parent directory to path
sys.path.append(str(Path(__file__).parent.parent))

from sp_signals.backtest import evaluate
from sp_signals.config import Cfg
from sp_signals.errors import MissingInputError
from sp_signals.recompute import session_cell
from sp_signals.signals import load_signals

CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

st.set_page_config(
    page_title="Interactive Backtest",
    page_icon="📈",
    layout="wide",
)


@st.cache_resource
def get_cfg():
    return Cfg.from_yaml(str(CONFIG_PATH)) if CONFIG_PATH.exists() else Cfg()


@st.cache_data
def get_signals(path):
    return load_signals(path)


def create_equity_chart(daily):
    """Cumulative capital for the model and the buy & hold benchmark"""
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=daily['date'], y=daily['strategy_cum'],
        mode='lines', name='Model (SL/TP)',
        line=dict(color='blue', width=2),
    ))
    fig.add_trace(go.Scatter(
        x=daily['date'], y=daily['benchmark_cum'],
        mode='lines', name='Buy & Hold',
        line=dict(color='gray', width=2),
    ))
    fig.update_layout(
        title='Cumulative Growth',
        xaxis_title='Date',
        yaxis_title='Cumulative Capital',
        hovermode='x unified',
        template='plotly_white',
    )
    return fig


def main():
    cfg = get_cfg()
    bt = cfg.backtest

    st.title("Interactive Backtest with Stop Loss and Take Profit")

    st.sidebar.header("Parameters")
    threshold = st.sidebar.slider("Probability Threshold", min_value=bt.threshold_range[0],
                                  max_value=bt.threshold_range[1], value=bt.threshold, step=0.01)
    tp = st.sidebar.slider("Take Profit", min_value=bt.take_profit_range[0],
                           max_value=bt.take_profit_range[1], value=bt.take_profit, step=0.01)
    sl = st.sidebar.slider("Stop Loss", min_value=bt.stop_loss_range[0],
                           max_value=bt.stop_loss_range[1], value=bt.stop_loss, step=0.01)

    try:
        data = get_signals(cfg.signals.historical_path)
    except MissingInputError as e:
        st.error(f"{e}. Run train_walk_forward.py to create it.")
        return

    # one cell per browser session
    cell = session_cell(st.session_state)
    cell.submit(evaluate, data, take_profit=tp, stop_loss=sl, horizon=cfg.features.horizon,
                threshold=threshold, periods_per_year=bt.periods_per_year, precision=bt.precision)
    latest = cell.wait(timeout=120)
    if latest is None:
        st.info("Computing...")
        return
    _, res = latest

    if res.empty:
        st.info("No data to backtest.")
        return

    st.plotly_chart(create_equity_chart(res.daily), use_container_width=True)
    st.subheader("Metrics")
    st.dataframe(pd.DataFrame(res.metrics), hide_index=True, use_container_width=True)


main()
