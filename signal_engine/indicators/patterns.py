"""
Candlestick Patterns

Single, two and three candle reversal patterns evaluated on the latest bars.
"""

from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from ..models import Direction
from .base import validate_candles

PATTERN_STRENGTH = {
    'Hammer': 20,
    'Shooting Star': 20,
    'Bullish Engulfing': 30,
    'Bearish Engulfing': 30,
    'Doji': 10,
    'Morning Star': 35,
    'Evening Star': 35,
    'Three White Soldiers': 30,
    'Three Black Crows': 30,
}

MAX_PATTERN_STRENGTH = max(PATTERN_STRENGTH.values())


@dataclass
class CandlePattern:
    """Detected pattern on the last bar"""
    name: str
    bias: str           # 'bullish', 'bearish' or 'neutral'
    strength: int

    def supports(self, direction: Direction) -> bool:
        if self.bias == 'neutral':
            return True
        return self.bias == ('bullish' if direction is Direction.BUY else 'bearish')


@dataclass
class _Bar:
    open: float
    high: float
    low: float
    close: float

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def bullish(self) -> bool:
        return self.close > self.open

    @property
    def bearish(self) -> bool:
        return self.close < self.open


def _bars(df: pd.DataFrame, count: int) -> List[_Bar]:
    tail = df.iloc[-count:]
    return [
        _Bar(float(o), float(h), float(low), float(c))
        for o, h, low, c in zip(tail['open'], tail['high'], tail['low'], tail['close'])
    ]


def is_hammer(bar: _Bar) -> bool:
    if bar.range <= 0:
        return False
    return (
        bar.lower_wick > bar.body * 2
        and bar.upper_wick < bar.body * 0.5
        and bar.body / bar.range < 0.3
    )


def is_shooting_star(bar: _Bar) -> bool:
    if bar.range <= 0:
        return False
    return (
        bar.upper_wick > bar.body * 2
        and bar.lower_wick < bar.body * 0.5
        and bar.body / bar.range < 0.3
    )


def is_doji(bar: _Bar) -> bool:
    if bar.range <= 0:
        return False
    return bar.body / bar.range < 0.1


def is_bullish_engulfing(prev: _Bar, cur: _Bar) -> bool:
    return (
        prev.bearish and cur.bullish
        and cur.open < prev.close
        and cur.close > prev.open
    )


def is_bearish_engulfing(prev: _Bar, cur: _Bar) -> bool:
    return (
        prev.bullish and cur.bearish
        and cur.open > prev.close
        and cur.close < prev.open
    )


def is_morning_star(first: _Bar, middle: _Bar, last: _Bar) -> bool:
    if first.range <= 0 or not first.bearish:
        return False
    return (
        first.body > first.range * 0.5
        and middle.body < first.body * 0.3
        and last.bullish
        and last.close > (first.open + first.close) / 2
    )


def is_evening_star(first: _Bar, middle: _Bar, last: _Bar) -> bool:
    if first.range <= 0 or not first.bullish:
        return False
    return (
        first.body > first.range * 0.5
        and middle.body < first.body * 0.3
        and last.bearish
        and last.close < (first.open + first.close) / 2
    )


def is_three_white_soldiers(bars: List[_Bar]) -> bool:
    if not all(b.bullish for b in bars):
        return False
    for prev, cur in zip(bars, bars[1:]):
        if cur.close <= prev.close or not (prev.open < cur.open <= prev.close):
            return False
    return True


def is_three_black_crows(bars: List[_Bar]) -> bool:
    if not all(b.bearish for b in bars):
        return False
    for prev, cur in zip(bars, bars[1:]):
        if cur.close >= prev.close or not (prev.close <= cur.open < prev.open):
            return False
    return True


def _pattern(name: str, bias: str) -> CandlePattern:
    return CandlePattern(name=name, bias=bias, strength=PATTERN_STRENGTH[name])


def detect_patterns(df: pd.DataFrame) -> List[CandlePattern]:
    """
    Detect candlestick patterns completing on the last bar.

    Args:
        df: Candle DataFrame

    Returns:
        List of patterns (empty if none or fewer than one bar)
    """
    validate_candles(df)
    found = []

    if len(df) < 1:
        return found

    bars = _bars(df, 3)
    cur = bars[-1]

    if is_hammer(cur):
        found.append(_pattern('Hammer', 'bullish'))
    if is_shooting_star(cur):
        found.append(_pattern('Shooting Star', 'bearish'))
    if is_doji(cur):
        found.append(_pattern('Doji', 'neutral'))

    if len(bars) >= 2:
        prev = bars[-2]
        if is_bullish_engulfing(prev, cur):
            found.append(_pattern('Bullish Engulfing', 'bullish'))
        if is_bearish_engulfing(prev, cur):
            found.append(_pattern('Bearish Engulfing', 'bearish'))

    if len(bars) >= 3:
        if is_morning_star(*bars):
            found.append(_pattern('Morning Star', 'bullish'))
        if is_evening_star(*bars):
            found.append(_pattern('Evening Star', 'bearish'))
        if is_three_white_soldiers(bars):
            found.append(_pattern('Three White Soldiers', 'bullish'))
        if is_three_black_crows(bars):
            found.append(_pattern('Three Black Crows', 'bearish'))

    return found


def best_pattern(patterns: List[CandlePattern], direction: Direction) -> Optional[CandlePattern]:
    """Strongest pattern that agrees with `direction`, None if none do"""
    matching = [p for p in patterns if p.supports(direction)]
    if not matching:
        return None
    return max(matching, key=lambda p: p.strength)
