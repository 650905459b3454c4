"""
Swing Structure Bands

Adaptive bands that average highs (lows) since the last swing high (low).
A band is withheld while its average jumps by more than one Wilder ATR per
bar, and a stability counter tracks how many bars it has held since the last
jump. A buy fires when the low reclaims a stable lower band.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .base import validate_candles, validate_period
from .volatility import wilder_atr_series

logger = logging.getLogger(__name__)


@dataclass
class SwingBands:
    """Band history plus the evaluation at the last bar"""
    frame: pd.DataFrame     # columns: upper, lower, upper_count, lower_count, ma_upper, ma_lower
    buy_signal: bool

    @property
    def upper(self) -> Optional[float]:
        value = self.frame['upper'].iloc[-1]
        return None if np.isnan(value) else float(value)

    @property
    def lower(self) -> Optional[float]:
        value = self.frame['lower'].iloc[-1]
        return None if np.isnan(value) else float(value)

    @property
    def lower_count(self) -> int:
        return int(self.frame['lower_count'].iloc[-1])

    @property
    def upper_count(self) -> int:
        return int(self.frame['upper_count'].iloc[-1])


def swing_structure_bands(
    df: pd.DataFrame,
    swing_length: int = 100,
    atr_period: int = 200,
    min_stability: int = 15
) -> Optional[SwingBands]:
    """
    Compute swing structure bands as a single left-to-right fold.

    Per bar i >= swing_length:
      - a swing high is confirmed when the previous high equals the highest
        high of the window and the current high is below it (lows mirror it)
      - the counters lh/ll reset to 1 on a confirmed swing, then increment
      - ma_hi / ma_lo are the means of the last lh highs / ll lows
      - the band is NaN and its counter 0 when |ma - previous ma| > ATR,
        otherwise the band is the average and the counter increments

    Bars where the ATR or the previous average is not available count as
    jumps.

    Args:
        df: Candle DataFrame
        swing_length: Swing detection window (default: 100)
        atr_period: Wilder ATR period (default: 200)
        min_stability: Lower-band stability required for a buy (default: 15)

    Returns:
        SwingBands or None if fewer than swing_length + 50 bars or the ATR
        is not available on the last bar
    """
    validate_candles(df)
    swing_length = validate_period(swing_length)
    atr_period = validate_period(atr_period)

    n = len(df)
    if n < swing_length + 50:
        return None

    atr_values = wilder_atr_series(df, atr_period).to_numpy()
    if np.isnan(atr_values[-1]):
        return None

    highs = df['high'].to_numpy(dtype=float)
    lows = df['low'].to_numpy(dtype=float)
    hi_max = df['high'].rolling(window=swing_length, min_periods=1).max().to_numpy()
    lo_min = df['low'].rolling(window=swing_length, min_periods=1).min().to_numpy()

    # Prefix sums for O(1) trailing means
    high_sums = np.concatenate([[0.0], np.cumsum(highs)])
    low_sums = np.concatenate([[0.0], np.cumsum(lows)])

    upper = np.full(n, np.nan)
    lower = np.full(n, np.nan)
    upper_count = np.zeros(n, dtype=int)
    lower_count = np.zeros(n, dtype=int)
    ma_upper = np.full(n, np.nan)
    ma_lower = np.full(n, np.nan)

    lh = ll = 1
    prev_ma_hi = prev_ma_lo = np.nan

    for i in range(swing_length, n):
        if highs[i - 1] == hi_max[i] and highs[i] < hi_max[i]:
            lh = 1
        if lows[i - 1] == lo_min[i] and lows[i] > lo_min[i]:
            ll = 1
        lh += 1
        ll += 1

        start_hi = max(0, i - lh + 1)
        start_lo = max(0, i - ll + 1)
        ma_hi = (high_sums[i + 1] - high_sums[start_hi]) / (i + 1 - start_hi)
        ma_lo = (low_sums[i + 1] - low_sums[start_lo]) / (i + 1 - start_lo)

        atr = atr_values[i]
        jump_hi = np.isnan(atr) or np.isnan(prev_ma_hi) or abs(ma_hi - prev_ma_hi) > atr
        jump_lo = np.isnan(atr) or np.isnan(prev_ma_lo) or abs(ma_lo - prev_ma_lo) > atr

        upper_count[i] = 0 if jump_hi else upper_count[i - 1] + 1
        lower_count[i] = 0 if jump_lo else lower_count[i - 1] + 1
        upper[i] = np.nan if jump_hi else ma_hi
        lower[i] = np.nan if jump_lo else ma_lo

        ma_upper[i], ma_lower[i] = ma_hi, ma_lo
        prev_ma_hi, prev_ma_lo = ma_hi, ma_lo

    frame = pd.DataFrame({
        'upper': upper,
        'lower': lower,
        'upper_count': upper_count,
        'lower_count': lower_count,
        'ma_upper': ma_upper,
        'ma_lower': ma_lower,
    })

    lb, prev_lb = lower[-1], lower[-2]
    buy_signal = bool(
        not np.isnan(lb)
        and not np.isnan(prev_lb)
        and lows[-2] < prev_lb
        and lows[-1] > lb
        and lower_count[-1] > min_stability
    )

    if buy_signal:
        logger.debug(f"Swing band reclaim: low {lows[-1]:.4f} > band {lb:.4f} (stability {lower_count[-1]})")

    return SwingBands(frame=frame, buy_signal=buy_signal)
