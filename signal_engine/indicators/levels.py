"""
Price Levels

Pivot points, swing-based support/resistance and order blocks.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from .base import validate_candles, validate_period

NEAR_LEVEL_PCT = 1.0


@dataclass
class PivotLevels:
    """Pivot point with its resistance and support levels"""
    pivot: float
    r1: float
    r2: float
    s1: float
    s2: float
    r3: Optional[float] = None
    s3: Optional[float] = None
    kind: str = 'classic'

    def levels(self) -> List[float]:
        values = [self.s3, self.s2, self.s1, self.pivot, self.r1, self.r2, self.r3]
        return sorted(v for v in values if v is not None)

    def nearest_above(self, price: float) -> Optional[float]:
        above = [v for v in self.levels() if v > price]
        return above[0] if above else None

    def nearest_below(self, price: float) -> Optional[float]:
        below = [v for v in self.levels() if v < price]
        return below[-1] if below else None


@dataclass
class SupportResistance:
    """Nearest swing levels around the current price"""
    support: Optional[float]
    resistance: Optional[float]
    near_support: bool = False
    near_resistance: bool = False


@dataclass
class OrderBlock:
    """Last opposite candle before an impulsive move"""
    kind: str           # 'bullish' or 'bearish'
    top: float
    bottom: float
    index: int

    def contains(self, price: float, tolerance_pct: float = 0.0) -> bool:
        pad = price * tolerance_pct / 100
        return self.bottom - pad <= price <= self.top + pad


def pivot_points(high: float, low: float, close: float) -> PivotLevels:
    """
    Classic floor pivots from one completed period.

    P = (H + L + C) / 3, R1 = 2P - L, S1 = 2P - H, R2 = P + (H - L),
    S2 = P - (H - L).
    """
    pivot = (high + low + close) / 3
    price_range = high - low

    return PivotLevels(
        pivot=pivot,
        r1=2 * pivot - low,
        r2=pivot + price_range,
        s1=2 * pivot - high,
        s2=pivot - price_range,
    )


def fibonacci_pivots(high: float, low: float, close: float) -> PivotLevels:
    """Fibonacci pivots at 0.382 / 0.618 / 1.0 of the period range"""
    pivot = (high + low + close) / 3
    price_range = high - low

    return PivotLevels(
        pivot=pivot,
        r1=pivot + 0.382 * price_range,
        r2=pivot + 0.618 * price_range,
        r3=pivot + price_range,
        s1=pivot - 0.382 * price_range,
        s2=pivot - 0.618 * price_range,
        s3=pivot - price_range,
        kind='fibonacci',
    )


def prior_period_pivots(df: pd.DataFrame, kind: str = 'classic') -> Optional[PivotLevels]:
    """
    Pivots from the last completed period of a higher-timeframe frame.

    The final row is the period still in progress, so the row before it is
    used.

    Args:
        df: Daily (or weekly) candle DataFrame
        kind: 'classic' or 'fibonacci'

    Returns:
        PivotLevels or None if fewer than two periods
    """
    validate_candles(df)
    if kind not in ('classic', 'fibonacci'):
        raise ValueError(f"Unknown pivot kind: {kind}")

    if len(df) < 2:
        return None

    completed = df.iloc[-2]
    calc = pivot_points if kind == 'classic' else fibonacci_pivots
    return calc(float(completed['high']), float(completed['low']), float(completed['close']))


def _swing_points(values: np.ndarray, is_high: bool, strength: int = 2) -> List[float]:
    """Values strictly above (or below) `strength` neighbours on each side"""
    points = []
    for i in range(strength, len(values) - strength):
        left = values[i - strength:i]
        right = values[i + 1:i + 1 + strength]
        if is_high:
            if values[i] > left.max() and values[i] > right.max():
                points.append(float(values[i]))
        elif values[i] < left.min() and values[i] < right.min():
            points.append(float(values[i]))
    return points


def dynamic_support_resistance(
    df: pd.DataFrame,
    lookback: int = 50
) -> Optional[SupportResistance]:
    """
    Nearest swing low below and swing high above the last close.

    Falls back to the window extremes when no swing point sits on the
    required side of price. A level counts as near when it is less than 1%
    away.

    Args:
        df: Candle DataFrame
        lookback: Number of bars to scan (default: 50)

    Returns:
        SupportResistance or None if fewer than `lookback` bars
    """
    validate_candles(df)
    lookback = validate_period(lookback, min_period=5)

    if len(df) < lookback:
        return None

    window = df.iloc[-lookback:]
    price = float(window['close'].iloc[-1])
    highs = window['high'].to_numpy(dtype=float)
    lows = window['low'].to_numpy(dtype=float)

    above = [h for h in _swing_points(highs, True) if h > price]
    below = [low for low in _swing_points(lows, False) if low < price]

    resistance = min(above) if above else None
    support = max(below) if below else None

    if resistance is None and highs.max() > price:
        resistance = float(highs.max())
    if support is None and lows.min() < price:
        support = float(lows.min())

    def is_near(level: Optional[float]) -> bool:
        if level is None or price == 0:
            return False
        return abs(price - level) / price * 100 < NEAR_LEVEL_PCT

    return SupportResistance(
        support=support,
        resistance=resistance,
        near_support=is_near(support),
        near_resistance=is_near(resistance),
    )


def find_order_blocks(
    df: pd.DataFrame,
    lookback: int = 50,
    impulse_factor: float = 1.5
) -> List[OrderBlock]:
    """
    Find unmitigated order blocks.

    A bullish block is the last bearish candle before a bullish displacement
    candle (body > impulse_factor x average body) that closes above the
    block's high. Bearish blocks mirror it. Blocks that price has since
    closed through are dropped.

    Args:
        df: Candle DataFrame
        lookback: Number of bars to scan (default: 50)
        impulse_factor: Body multiple defining a displacement candle

    Returns:
        Blocks in chronological order (empty if not enough data)
    """
    validate_candles(df)
    lookback = validate_period(lookback, min_period=5)

    if len(df) < lookback:
        return []

    window = df.iloc[-lookback:].reset_index(drop=True)
    opens = window['open'].to_numpy(dtype=float)
    closes = window['close'].to_numpy(dtype=float)
    highs = window['high'].to_numpy(dtype=float)
    lows = window['low'].to_numpy(dtype=float)

    bodies = np.abs(closes - opens)
    avg_body = bodies.mean()
    if avg_body == 0:
        return []

    offset = len(df) - lookback
    blocks = []

    for i in range(1, len(window)):
        if bodies[i] <= avg_body * impulse_factor:
            continue

        bullish_impulse = closes[i] > opens[i]

        # Last opposite candle within three bars before the impulse
        for j in range(i - 1, max(i - 4, -1), -1):
            opposite = closes[j] < opens[j] if bullish_impulse else closes[j] > opens[j]
            if not opposite:
                continue

            if bullish_impulse and closes[i] > highs[j]:
                block = OrderBlock('bullish', top=highs[j], bottom=lows[j], index=offset + j)
            elif not bullish_impulse and closes[i] < lows[j]:
                block = OrderBlock('bearish', top=highs[j], bottom=lows[j], index=offset + j)
            else:
                break

            later_closes = closes[i + 1:]
            if block.kind == 'bullish':
                mitigated = bool((later_closes < block.bottom).any())
            else:
                mitigated = bool((later_closes > block.top).any())

            if not mitigated and not (blocks and blocks[-1].index == block.index):
                blocks.append(block)
            break

    return blocks
