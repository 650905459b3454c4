"""
Divergence Detection

Price vs oscillator divergences on strict two-bar pivots.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..models import Direction
from .base import PriceInput, to_series, validate_period
from .oscillators import macd_series, rsi_series

MIN_PIVOT_GAP = 5
MAX_PIVOT_GAP = 40
MAX_PIVOT_OFFSET = 2

Pivot = Tuple[int, float]


@dataclass
class Divergence:
    """Divergence between price and an oscillator"""
    name: str
    bias: str           # 'bullish' or 'bearish'
    hidden: bool
    strength: float
    source: str = 'rsi'

    def supports(self, direction: Direction) -> bool:
        return self.bias == ('bullish' if direction is Direction.BUY else 'bearish')


def find_pivots(values: np.ndarray, is_high: bool, strength: int = 2) -> List[Pivot]:
    """
    Indices whose value is strictly beyond `strength` neighbours on each side.

    NaN values never form pivots.
    """
    pivots = []
    for i in range(strength, len(values) - strength):
        current = values[i]
        neighbours = np.concatenate([values[i - strength:i], values[i + 1:i + 1 + strength]])
        if np.isnan(current) or np.isnan(neighbours).any():
            continue
        if is_high and (current > neighbours).all():
            pivots.append((i, float(current)))
        elif not is_high and (current < neighbours).all():
            pivots.append((i, float(current)))
    return pivots


def _matched(p1: Pivot, p2: Pivot, o1: Pivot, o2: Pivot) -> bool:
    gap = abs(p2[0] - p1[0])
    if gap < MIN_PIVOT_GAP or gap > MAX_PIVOT_GAP:
        return False
    return abs(p1[0] - o1[0]) <= MAX_PIVOT_OFFSET and abs(p2[0] - o2[0]) <= MAX_PIVOT_OFFSET


def detect_divergences(
    prices: PriceInput,
    oscillator: PriceInput,
    lookback: int = 30,
    source: str = 'rsi'
) -> List[Divergence]:
    """
    Compare the two most recent same-type pivots of price and oscillator.

    Regular bullish: price lower low, oscillator higher low.
    Regular bearish: price higher high, oscillator lower high.
    Hidden bullish: price higher low, oscillator lower low.
    Hidden bearish: price lower high, oscillator higher high.

    Pivots must be 5-40 bars apart and the price and oscillator pivots must
    line up within 2 bars. Strength is the absolute oscillator difference.

    Args:
        prices: Close prices
        oscillator: Oscillator values aligned with prices
        lookback: Trailing window to scan (default: 30)
        source: Label of the oscillator

    Returns:
        List of divergences (empty if none or not enough data)
    """
    lookback = validate_period(lookback, min_period=5)
    price_values = to_series(prices).to_numpy()
    osc_values = to_series(oscillator).to_numpy()

    if len(price_values) != len(osc_values):
        raise ValueError(
            f"Prices and oscillator must be aligned, got {len(price_values)} != {len(osc_values)}"
        )

    if len(price_values) < lookback:
        return []

    price_values = price_values[-lookback:]
    osc_values = osc_values[-lookback:]

    price_highs = find_pivots(price_values, True)
    price_lows = find_pivots(price_values, False)
    osc_highs = find_pivots(osc_values, True)
    osc_lows = find_pivots(osc_values, False)

    found = []

    def check(p1, p2, o1, o2, name, bias, hidden):
        if _matched(p1, p2, o1, o2):
            found.append(Divergence(
                name=name,
                bias=bias,
                hidden=hidden,
                strength=abs(o1[1] - o2[1]),
                source=source,
            ))

    if len(price_lows) >= 2 and len(osc_lows) >= 2:
        p1, p2 = price_lows[-2], price_lows[-1]
        o1, o2 = osc_lows[-2], osc_lows[-1]
        if p2[1] < p1[1] and o2[1] > o1[1]:
            check(p1, p2, o1, o2, 'Regular Bullish Divergence', 'bullish', False)
        if p2[1] > p1[1] and o2[1] < o1[1]:
            check(p1, p2, o1, o2, 'Hidden Bullish Divergence', 'bullish', True)

    if len(price_highs) >= 2 and len(osc_highs) >= 2:
        p1, p2 = price_highs[-2], price_highs[-1]
        o1, o2 = osc_highs[-2], osc_highs[-1]
        if p2[1] > p1[1] and o2[1] < o1[1]:
            check(p1, p2, o1, o2, 'Regular Bearish Divergence', 'bearish', False)
        if p2[1] < p1[1] and o2[1] > o1[1]:
            check(p1, p2, o1, o2, 'Hidden Bearish Divergence', 'bearish', True)

    return found


def rsi_divergences(closes: PriceInput, lookback: int = 30, period: int = 14) -> List[Divergence]:
    """RSI divergences; needs at least lookback + period + 1 closes"""
    series = to_series(closes)
    if len(series) < lookback + period + 1:
        return []
    return detect_divergences(series, rsi_series(series, period), lookback, source='rsi')


def macd_divergences(
    closes: PriceInput,
    lookback: int = 30,
    fast: int = 12,
    slow: int = 26
) -> List[Divergence]:
    """
    MACD line divergences with strength normalised to [0, 1] by the largest
    absolute MACD value in the window.
    """
    series = to_series(closes)
    if len(series) < lookback + slow - 1:
        return []

    line = macd_series(series, fast, slow)['line']
    found = detect_divergences(series, line, lookback, source='macd')

    scale = float(line.iloc[-lookback:].abs().max())
    for div in found:
        div.strength = min(div.strength / scale, 1.0) if scale else 0.0

    return found
