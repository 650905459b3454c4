"""
Oscillator Indicators

Implements RSI, MACD, Stochastic, CCI and ADX.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .base import PriceInput, last_valid, to_series, validate_candles, validate_period
from .moving_averages import ema_series


@dataclass
class MACDResult:
    """MACD values at the last bar"""
    line: float
    signal: Optional[float]         # None for the simplified variant
    histogram: float
    prev_histogram: Optional[float] = None

    @property
    def bullish(self) -> bool:
        return self.histogram > 0


@dataclass
class StochasticResult:
    """Stochastic %K/%D at the last two bars"""
    k: float
    d: float
    prev_k: Optional[float] = None
    prev_d: Optional[float] = None

    @property
    def oversold(self) -> bool:
        return self.k < 20

    @property
    def overbought(self) -> bool:
        return self.k > 80

    @property
    def bullish_cross(self) -> bool:
        """%K crossed above %D on the last bar"""
        if self.prev_k is None or self.prev_d is None:
            return False
        return self.prev_k <= self.prev_d and self.k > self.d

    @property
    def bearish_cross(self) -> bool:
        """%K crossed below %D on the last bar"""
        if self.prev_k is None or self.prev_d is None:
            return False
        return self.prev_k >= self.prev_d and self.k < self.d


@dataclass
class ADXResult:
    """Average Directional Index with its directional indicators"""
    adx: float
    plus_di: float
    minus_di: float


def rsi(closes: PriceInput, period: int = 14) -> Optional[float]:
    """
    Relative Strength Index of the last bar.

    Simple (not Wilder-smoothed) average gain / average loss over the
    trailing `period` deltas. Range 0-100; 100 when there is no loss in
    the window.

    Args:
        closes: Close prices
        period: Number of deltas (default: 14)

    Returns:
        RSI or None if fewer than period + 1 closes
    """
    period = validate_period(period)
    series = to_series(closes)

    if len(series) < period + 1:
        return None

    deltas = series.diff().iloc[-period:]
    avg_gain = float(deltas.clip(lower=0).sum()) / period
    avg_loss = float((-deltas).clip(lower=0).sum()) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def rsi_series(closes: PriceInput, period: int = 14) -> pd.Series:
    """
    RSI at every bar, same definition as rsi(), computed in O(n).

    Positions before index `period` are NaN.
    """
    period = validate_period(period)
    series = to_series(closes)

    delta = series.diff()
    gain = delta.clip(lower=0)
    loss = (-delta).clip(lower=0)

    avg_gain = gain.rolling(window=period).mean()
    avg_loss = loss.rolling(window=period).mean()

    # Count losing bars so "no loss in window" is exact despite float drift
    losing_bars = (loss > 0).astype(float).rolling(window=period).sum()
    has_loss = losing_bars > 0

    rs = avg_gain / avg_loss.where(has_loss)
    result = 100 - (100 / (1 + rs))
    result = result.where(has_loss, 100.0).where(avg_gain.notna())

    return result.clip(lower=0, upper=100)


def macd_series(
    closes: PriceInput,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9
) -> pd.DataFrame:
    """
    MACD line, signal line and histogram aligned with the input.

    The line is EMA(fast) - EMA(slow) taken from the full aligned series. The
    signal line is the EMA of the compacted (non-NaN) line, re-aligned to the
    tail of the input.

    Returns:
        DataFrame with columns line, signal, histogram
    """
    fast = validate_period(fast)
    slow = validate_period(slow)
    signal = validate_period(signal, min_period=1)
    if fast >= slow:
        raise ValueError(f"Fast period must be < slow period, got {fast} >= {slow}")

    series = to_series(closes)
    line = ema_series(series, fast) - ema_series(series, slow)

    valid = line.dropna()
    signal_line = pd.Series(np.nan, index=line.index)
    if len(valid) > 0:
        compact_signal = ema_series(valid, signal).to_numpy()
        signal_line.iloc[len(line) - len(valid):] = compact_signal

    return pd.DataFrame({
        'line': line,
        'signal': signal_line,
        'histogram': line - signal_line,
    })


def macd(
    closes: PriceInput,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
    with_signal: bool = True
) -> Optional[MACDResult]:
    """
    Moving Average Convergence Divergence at the last bar.

    Args:
        closes: Close prices
        fast: Fast EMA period (default: 12)
        slow: Slow EMA period (default: 26)
        signal: Signal line period (default: 9)
        with_signal: True for histogram = line - signal. False for the
            simplified variant where signal is None and histogram is the
            raw line; it needs only `slow` bars but its magnitude is not
            comparable to the signal-line histogram.

    Returns:
        MACDResult or None if not enough data
    """
    frame = macd_series(closes, fast, slow, signal)
    if len(frame) == 0:
        return None

    if not with_signal:
        line = last_valid(frame['line'])
        if line is None:
            return None
        prev_line = last_valid(frame['line'].iloc[:-1])
        return MACDResult(line=line, signal=None, histogram=line, prev_histogram=prev_line)

    histogram = last_valid(frame['histogram'])
    if histogram is None:
        return None

    return MACDResult(
        line=float(frame['line'].iloc[-1]),
        signal=float(frame['signal'].iloc[-1]),
        histogram=histogram,
        prev_histogram=last_valid(frame['histogram'].iloc[:-1]),
    )


def stochastic(
    df: pd.DataFrame,
    k_period: int = 14,
    d_period: int = 3,
    smooth_k: int = 3
) -> Optional[StochasticResult]:
    """
    Stochastic Oscillator.

    Raw %K from the rolling high/low window, smoothed by `smooth_k`; %D is the
    SMA of %K over `d_period`. A window with no range reads 50.

    Args:
        df: Candle DataFrame
        k_period: %K period (default: 14)
        d_period: %D period (default: 3)
        smooth_k: %K smoothing period (default: 3)

    Returns:
        StochasticResult or None if not enough data
    """
    validate_candles(df)
    k_period = validate_period(k_period)
    d_period = validate_period(d_period, min_period=1)
    smooth_k = validate_period(smooth_k, min_period=1)

    low_min = df['low'].rolling(window=k_period).min()
    high_max = df['high'].rolling(window=k_period).max()
    span = high_max - low_min

    k_raw = 100 * (df['close'] - low_min) / span.replace(0, np.nan)
    k_raw = k_raw.where(span != 0, 50.0)

    k = k_raw.rolling(window=smooth_k).mean().reset_index(drop=True)
    d = k.rolling(window=d_period).mean()

    k_last = last_valid(k)
    d_last = last_valid(d)
    if k_last is None or d_last is None:
        return None

    return StochasticResult(
        k=k_last,
        d=d_last,
        prev_k=last_valid(k.iloc[:-1]),
        prev_d=last_valid(d.iloc[:-1]),
    )


def cci(df: pd.DataFrame, period: int = 20) -> Optional[float]:
    """
    Commodity Channel Index of the last bar.

    Returns None when the window is short or its mean absolute deviation is 0.
    """
    validate_candles(df)
    period = validate_period(period)

    if len(df) < period:
        return None

    tp = ((df['high'] + df['low'] + df['close']) / 3).iloc[-period:]
    mean = tp.mean()
    mad = (tp - mean).abs().mean()

    if mad == 0:
        return None

    return float((tp.iloc[-1] - mean) / (0.015 * mad))


def adx(df: pd.DataFrame, period: int = 14) -> Optional[ADXResult]:
    """
    Average Directional Index.

    +DM/-DM from consecutive high/low deltas, Wilder-smoothed TR and DM,
    DX = |+DI - -DI| / (+DI + -DI) * 100 and ADX = SMA(DX, period).

    Args:
        df: Candle DataFrame
        period: Smoothing period (default: 14)

    Returns:
        ADXResult or None if fewer than 2 * period + 1 bars
    """
    validate_candles(df)
    period = validate_period(period)

    n = len(df)
    if n < period * 2 + 1:
        return None

    highs = df['high'].to_numpy(dtype=float)
    lows = df['low'].to_numpy(dtype=float)
    closes = df['close'].to_numpy(dtype=float)

    up_move = highs[1:] - highs[:-1]
    down_move = lows[:-1] - lows[1:]
    plus_dms = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dms = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    trs = np.maximum.reduce([
        highs[1:] - lows[1:],
        np.abs(highs[1:] - closes[:-1]),
        np.abs(lows[1:] - closes[:-1]),
    ])

    # Wilder smoothing
    smoothed_plus = plus_dms[:period].sum()
    smoothed_minus = minus_dms[:period].sum()
    smoothed_tr = trs[:period].sum()

    dx_values = []
    plus_di = minus_di = 0.0

    for i in range(period, len(trs)):
        smoothed_plus = smoothed_plus - (smoothed_plus / period) + plus_dms[i]
        smoothed_minus = smoothed_minus - (smoothed_minus / period) + minus_dms[i]
        smoothed_tr = smoothed_tr - (smoothed_tr / period) + trs[i]

        if smoothed_tr == 0:
            plus_di = minus_di = 0.0
            dx_values.append(0.0)
            continue

        plus_di = 100 * smoothed_plus / smoothed_tr
        minus_di = 100 * smoothed_minus / smoothed_tr

        di_sum = plus_di + minus_di
        dx_values.append(0.0 if di_sum == 0 else 100 * abs(plus_di - minus_di) / di_sum)

    if len(dx_values) < period:
        return None

    return ADXResult(
        adx=float(np.mean(dx_values[-period:])),
        plus_di=float(plus_di),
        minus_di=float(minus_di),
    )
