"""
Volume Flow Indicators

Chaikin Money Flow, taker buyer pressure and the accumulation detector.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .base import validate_candles, validate_period


@dataclass
class Accumulation:
    """Evidence of accumulation on the working timeframe"""
    kind: str           # 'cmf' or 'climax'
    strength: float     # 0-1
    cmf: Optional[float] = None


def chaikin_money_flow(df: pd.DataFrame, period: int = 20) -> Optional[float]:
    """
    Chaikin Money Flow over the last `period` bars, in [-1, 1].

    Bars without range contribute a zero multiplier.
    """
    validate_candles(df)
    period = validate_period(period)

    if len(df) < period:
        return None

    window = df.iloc[-period:]
    span = (window['high'] - window['low']).replace(0, 1)
    multiplier = ((window['close'] - window['low']) - (window['high'] - window['close'])) / span
    volume = window['volume'].sum()

    if volume <= 0:
        return 0.0

    return float((multiplier * window['volume']).sum() / volume)


def is_selling_climax(df: pd.DataFrame, period: int = 20) -> bool:
    """
    Wyckoff selling climax on the last bar.

    Volume above 3x and range above 2x the averages of the previous `period`
    bars, with a lower wick longer than the body.
    """
    validate_candles(df)
    if len(df) < period + 1:
        return False

    last = df.iloc[-1]
    prev = df.iloc[-period - 1:-1]

    avg_volume = prev['volume'].mean()
    avg_range = (prev['high'] - prev['low']).mean()

    body = abs(last['close'] - last['open'])
    lower_wick = min(last['open'], last['close']) - last['low']

    return bool(
        last['volume'] > avg_volume * 3.0
        and (last['high'] - last['low']) > avg_range * 2.0
        and lower_wick > body
    )


def detect_accumulation(
    df: pd.DataFrame,
    period: int = 20,
    min_cmf: float = 0.05,
    max_range_pct: float = 8.0
) -> Optional[Accumulation]:
    """
    Detect accumulation: positive money flow while price is range-bound, or a
    selling climax bar.

    Args:
        df: Candle DataFrame
        period: CMF / averaging window (default: 20)
        min_cmf: CMF level counted as inflow (default: 0.05)
        max_range_pct: Widest window range, in percent of price, still
            treated as range-bound (default: 8.0)

    Returns:
        Accumulation or None when nothing is detected or data is short
    """
    validate_candles(df)

    if len(df) < period + 1:
        return None

    if is_selling_climax(df, period):
        return Accumulation(kind='climax', strength=1.0, cmf=chaikin_money_flow(df, period))

    cmf = chaikin_money_flow(df, period)
    window = df.iloc[-period:]
    price = float(window['close'].iloc[-1])
    if cmf is None or price <= 0:
        return None

    range_pct = float(window['high'].max() - window['low'].min()) / price * 100

    if cmf > min_cmf and range_pct <= max_range_pct:
        return Accumulation(kind='cmf', strength=min(cmf / 0.25, 1.0), cmf=cmf)

    return None


def buyer_pressure(df: pd.DataFrame, lookback: int = 3) -> Optional[float]:
    """
    Taker-buy share of volume over the last `lookback` bars, in percent.

    Returns None when the taker volume column is absent or there is no
    volume.
    """
    validate_candles(df)
    lookback = validate_period(lookback, min_period=1)

    if 'taker_buy_base_volume' not in df.columns or len(df) < lookback:
        return None

    window = df.iloc[-lookback:]
    volume = float(window['volume'].sum())
    if volume <= 0:
        return None

    return float(window['taker_buy_base_volume'].sum()) / volume * 100
