"""
Volatility Indicators

ATR (simple and Wilder) and the Choppiness Index.
"""

import math
from typing import Optional

import numpy as np
import pandas as pd

from .base import true_range, validate_candles, validate_period


def atr(df: pd.DataFrame, period: int = 14) -> Optional[float]:
    """
    Average True Range as the simple mean of the last `period` true ranges.

    Args:
        df: Candle DataFrame
        period: ATR period (default: 14)

    Returns:
        ATR or None if fewer than period + 1 bars
    """
    validate_candles(df)
    period = validate_period(period, min_period=1)

    if len(df) < period + 1:
        return None

    tr = true_range(df)
    return float(tr.iloc[-period:].mean())


def wilder_atr_series(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Wilder-smoothed ATR aligned with the input.

    The seed at index `period` is the mean of the first `period` true ranges
    (bars 1..period); after that atr = (atr * (period - 1) + tr) / period.
    Earlier positions are NaN.
    """
    validate_candles(df)
    period = validate_period(period, min_period=1)

    tr = true_range(df).to_numpy()
    out = np.full(len(tr), np.nan)

    if len(tr) < period + 1:
        return pd.Series(out)

    value = tr[1:period + 1].sum() / period
    out[period] = value

    for i in range(period + 1, len(tr)):
        value = (value * (period - 1) + tr[i]) / period
        out[i] = value

    return pd.Series(out)


def choppiness_index(df: pd.DataFrame, period: int = 14) -> Optional[float]:
    """
    Choppiness Index of the last `period` bars.

    100 * log10(sum(TR) / (highest high - lowest low)) / log10(period).
    High readings (> ~61.8) mean sideways chop, low readings (< ~38.2) a
    directional move.

    Returns:
        CHOP or None when the window is short or has no range
    """
    validate_candles(df)
    period = validate_period(period)

    if len(df) < period + 1:
        return None

    tr_sum = float(true_range(df).iloc[-period:].sum())
    window = df.iloc[-period:]
    price_range = float(window['high'].max() - window['low'].min())

    if price_range <= 0 or tr_sum <= 0:
        return None

    return 100 * math.log10(tr_sum / price_range) / math.log10(period)
