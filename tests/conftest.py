"""
Shared fixtures: synthetic candle frames with known indicator readings.
"""

import numpy as np
import pandas as pd
import pytest

from signal_engine.models import CANDLE_COLUMNS


def build_frame(opens, highs, lows, closes, volumes=None, taker_ratio=0.5) -> pd.DataFrame:
    """Candle DataFrame in the engine's column layout"""
    n = len(closes)
    volumes = np.full(n, 1000.0) if volumes is None else np.asarray(volumes, dtype=float)
    closes = np.asarray(closes, dtype=float)

    return pd.DataFrame({
        'time': np.arange(n) * 3_600_000,
        'open': np.asarray(opens, dtype=float),
        'high': np.asarray(highs, dtype=float),
        'low': np.asarray(lows, dtype=float),
        'close': closes,
        'volume': volumes,
        'quote_volume': volumes * closes,
        'taker_buy_base_volume': volumes * taker_ratio,
    }, columns=CANDLE_COLUMNS)


def random_frame(n: int, seed: int = 42) -> pd.DataFrame:
    rng = np.random.RandomState(seed)

    close = np.cumsum(rng.randn(n) * 0.5) + 100
    open_price = close + rng.randn(n) * 0.3
    high = np.maximum(open_price, close) + np.abs(rng.randn(n) * 0.5)
    low = np.minimum(open_price, close) - np.abs(rng.randn(n) * 0.5)
    volume = rng.randint(1000, 10000, n)

    return build_frame(open_price, high, low, close, volume)


def trending_frame(n: int = 300) -> pd.DataFrame:
    """
    Rising zigzag: lows climb 0.5 per bar, closes alternate near the high
    (even bars) and near the low (odd bars).

    Known readings at n=300: RSI 62.5, ADX 100, ATR 2.625, CHOP ~53.3.
    """
    i = np.arange(n)
    low = 100.0 + 0.5 * i
    high = low + 2.5
    open_price = low + 1.25
    close = np.where(i % 2 == 0, low + 2.25, low + 0.25)

    return build_frame(open_price, high, low, close, taker_ratio=0.55)


def sideways_frame(n: int = 300) -> pd.DataFrame:
    """Flat market alternating 99.8 / 100.2 inside a fixed 99.5-100.5 range"""
    i = np.arange(n)
    close = np.where(i % 2 == 0, 99.8, 100.2)

    return build_frame(np.full(n, 100.0), np.full(n, 100.5), np.full(n, 99.5), close)


@pytest.fixture
def sample_data():
    """Create sample OHLCV data for testing"""
    return random_frame(300)


@pytest.fixture
def long_sample_data():
    return random_frame(400, seed=7)


@pytest.fixture
def trending_data():
    return trending_frame()


@pytest.fixture
def sideways_data():
    return sideways_frame()


@pytest.fixture
def frame_factory():
    return build_frame
