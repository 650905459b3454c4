"""
Moving Average Indicators

Implements SMA, EMA, Bollinger Bands, VWAP and volume averages.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .base import PriceInput, last_valid, to_series, validate_candles, validate_period


@dataclass
class BollingerBands:
    """Bollinger Bands snapshot for the last bar"""
    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        """Band width relative to the middle band"""
        if self.middle == 0:
            return 0.0
        return (self.upper - self.lower) / self.middle

    def position(self, price: float) -> Optional[float]:
        """Where price sits inside the bands, 0 = lower, 1 = upper"""
        span = self.upper - self.lower
        if span == 0:
            return None
        return (price - self.lower) / span


def sma_series(values: PriceInput, period: int) -> pd.Series:
    """Rolling simple moving average, NaN until the window fills"""
    period = validate_period(period, min_period=1)
    return to_series(values).rolling(window=period).mean()


def sma(values: PriceInput, period: int) -> Optional[float]:
    """Simple moving average of the last `period` values"""
    series = to_series(values)
    if len(series) < validate_period(period, min_period=1):
        return None
    return float(series.iloc[-period:].mean())


def ema_series(values: PriceInput, period: int) -> pd.Series:
    """
    Exponential moving average aligned with the input.

    The seed is the simple average of the first `period` values and sits at
    index period - 1; earlier positions are NaN. Each following value is
    ema = (x - ema) * k + ema with k = 2 / (period + 1).

    Args:
        values: Price series (oldest first, no gaps)
        period: EMA period

    Returns:
        Series of the same length as `values`
    """
    period = validate_period(period, min_period=1)
    data = to_series(values).to_numpy()
    out = np.full(len(data), np.nan)

    if len(data) < period:
        return pd.Series(out)

    k = 2.0 / (period + 1)
    ema_val = data[:period].mean()
    out[period - 1] = ema_val

    for i in range(period, len(data)):
        ema_val = (data[i] - ema_val) * k + ema_val
        out[i] = ema_val

    return pd.Series(out)


def ema(values: PriceInput, period: int) -> Optional[float]:
    """Latest EMA value, None when fewer than `period` values"""
    return last_valid(ema_series(values, period))


def bollinger_bands(
    closes: PriceInput,
    period: int = 20,
    std_dev: float = 2.0
) -> Optional[BollingerBands]:
    """
    Bollinger Bands over the trailing window.

    Uses the population standard deviation, so upper >= middle >= lower
    always holds.

    Args:
        closes: Close prices
        period: SMA period (default: 20)
        std_dev: Standard deviation multiplier (default: 2.0)

    Returns:
        BollingerBands or None if not enough data
    """
    period = validate_period(period)
    series = to_series(closes)

    if len(series) < period:
        return None

    window = series.iloc[-period:]
    middle = float(window.mean())
    std = float(window.std(ddof=0))

    return BollingerBands(
        upper=middle + std * std_dev,
        middle=middle,
        lower=middle - std * std_dev,
    )


def vwap(df: pd.DataFrame, lookback: Optional[int] = None) -> Optional[float]:
    """
    Volume Weighted Average Price over the trailing window.

    Args:
        df: Candle DataFrame
        lookback: Number of bars (None = whole frame)

    Returns:
        VWAP or None when the window is short or carries no volume
    """
    validate_candles(df)
    window = df if lookback is None else df.iloc[-validate_period(lookback, 1):]

    if len(window) == 0 or (lookback is not None and len(window) < lookback):
        return None

    typical_price = (window['high'] + window['low'] + window['close']) / 3
    volume = window['volume'].sum()

    if volume <= 0:
        return None

    return float((typical_price * window['volume']).sum() / volume)


def volume_sma(df: pd.DataFrame, period: int = 20) -> Optional[float]:
    """Average volume of the last `period` bars"""
    validate_candles(df)
    return sma(df['volume'], period)


def has_volume_spike(df: pd.DataFrame, threshold: float = 1.5, period: int = 20) -> bool:
    """
    Whether the last bar's volume exceeds `threshold` times the average
    volume of the bars before it.
    """
    validate_candles(df)
    if len(df) < period + 1:
        return False

    average = volume_sma(df.iloc[:-1], period)
    if not average:
        return False

    return float(df['volume'].iloc[-1]) > average * threshold
