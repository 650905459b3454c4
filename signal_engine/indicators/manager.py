"""
Indicator Manager

Assembles the full indicator snapshot for one symbol and timeframe.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from ..models import OrderBookSnapshot
from .base import validate_candles
from .divergence import Divergence, macd_divergences, rsi_divergences
from .levels import (
    OrderBlock,
    PivotLevels,
    SupportResistance,
    dynamic_support_resistance,
    find_order_blocks,
    prior_period_pivots,
)
from .moving_averages import BollingerBands, bollinger_bands, ema, has_volume_spike, sma, vwap
from .orderbook import OrderBookMetrics, order_book_metrics
from .oscillators import ADXResult, MACDResult, StochasticResult, adx, macd, rsi, stochastic
from .patterns import CandlePattern, detect_patterns
from .swing_bands import SwingBands, swing_structure_bands
from .volatility import atr, choppiness_index
from .volume import Accumulation, buyer_pressure, chaikin_money_flow, detect_accumulation

logger = logging.getLogger(__name__)

# Without these the symbol is skipped for the cycle
HARD_PREREQUISITES = ('rsi', 'macd', 'bollinger', 'ema200')


@dataclass
class IndicatorSet:
    """Indicator snapshot for one (symbol, timeframe) at evaluation time"""
    timeframe: str = ''
    candle_count: int = 0
    price: Optional[float] = None
    prev_price: Optional[float] = None

    # Momentum
    rsi: Optional[float] = None
    rsi_prev: Optional[float] = None
    macd: Optional[MACDResult] = None
    stochastic: Optional[StochasticResult] = None

    # Trend
    ema9: Optional[float] = None
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    ema200: Optional[float] = None
    sma200: Optional[float] = None
    adx: Optional[ADXResult] = None

    # Volatility
    bollinger: Optional[BollingerBands] = None
    atr: Optional[float] = None
    choppiness: Optional[float] = None

    # Volume
    vwap: Optional[float] = None
    volume_spike: bool = False
    cmf: Optional[float] = None
    buyer_pressure: Optional[float] = None
    accumulation: Optional[Accumulation] = None

    # Structure
    support_resistance: Optional[SupportResistance] = None
    pivots: Optional[PivotLevels] = None
    fib_pivots: Optional[PivotLevels] = None
    order_blocks: List[OrderBlock] = field(default_factory=list)
    patterns: List[CandlePattern] = field(default_factory=list)
    divergences: List[Divergence] = field(default_factory=list)
    swing_bands: Optional[SwingBands] = None
    order_book: Optional[OrderBookMetrics] = None

    @property
    def adx_value(self) -> Optional[float]:
        return self.adx.adx if self.adx else None

    def missing_prerequisites(self) -> List[str]:
        """Names of hard prerequisites that could not be computed"""
        return [name for name in HARD_PREREQUISITES if getattr(self, name) is None]

    def summary(self) -> Dict[str, Any]:
        """Flat scalar view attached to emitted signals"""
        def rounded(value: Optional[float], digits: int = 4) -> Optional[float]:
            return None if value is None else round(value, digits)

        return {
            'rsi': rounded(self.rsi, 2),
            'macdHistogram': rounded(self.macd.histogram if self.macd else None, 6),
            'ema20': rounded(self.ema20),
            'ema50': rounded(self.ema50),
            'ema200': rounded(self.ema200),
            'vwap': rounded(self.vwap),
            'atr': rounded(self.atr, 6),
            'adx': rounded(self.adx_value, 2),
            'choppiness': rounded(self.choppiness, 2),
            'bbUpper': rounded(self.bollinger.upper if self.bollinger else None),
            'bbLower': rounded(self.bollinger.lower if self.bollinger else None),
            'volumeSpike': self.volume_spike,
            'buyerPressure': rounded(self.buyer_pressure, 2),
            'cmf': rounded(self.cmf),
        }


def compute_indicator_set(
    df: pd.DataFrame,
    order_book: Optional[OrderBookSnapshot] = None,
    daily_candles: Optional[pd.DataFrame] = None,
    timeframe: str = ''
) -> IndicatorSet:
    """
    Compute every indicator for one timeframe.

    Each field is None (or empty) when the history is too short for it;
    nothing here raises for short data.

    Args:
        df: Candle DataFrame (ascending time)
        order_book: Optional order book snapshot at decision time
        daily_candles: Optional daily candles used for prior-day pivots
        timeframe: Label carried on the set, e.g. '1h'

    Returns:
        IndicatorSet
    """
    validate_candles(df)
    closes = df['close']
    n = len(df)

    ind = IndicatorSet(timeframe=timeframe, candle_count=n)
    if n == 0:
        return ind

    ind.price = float(closes.iloc[-1])
    ind.prev_price = float(closes.iloc[-2]) if n > 1 else None

    ind.rsi = rsi(closes, 14)
    ind.rsi_prev = rsi(closes.iloc[:-1], 14)
    ind.macd = macd(closes, 12, 26, 9)
    ind.stochastic = stochastic(df, 14, 3, 3)

    ind.ema9 = ema(closes, 9)
    ind.ema20 = ema(closes, 20)
    ind.ema50 = ema(closes, 50)
    ind.ema200 = ema(closes, 200)
    ind.sma200 = sma(closes, 200)
    ind.adx = adx(df, 14)

    ind.bollinger = bollinger_bands(closes, 20, 2.0)
    ind.atr = atr(df, 14)
    ind.choppiness = choppiness_index(df, 14)

    ind.vwap = vwap(df, 20)
    ind.volume_spike = has_volume_spike(df, 1.5)
    ind.cmf = chaikin_money_flow(df, 20)
    ind.buyer_pressure = buyer_pressure(df, 3)
    ind.accumulation = detect_accumulation(df)

    ind.support_resistance = dynamic_support_resistance(df, 50)
    ind.order_blocks = find_order_blocks(df, 50)
    ind.patterns = detect_patterns(df)
    ind.divergences = rsi_divergences(closes) + macd_divergences(closes)
    ind.swing_bands = swing_structure_bands(df)
    ind.order_book = order_book_metrics(order_book)

    if daily_candles is not None and len(daily_candles) > 0:
        ind.pivots = prior_period_pivots(daily_candles, 'classic')
        ind.fib_pivots = prior_period_pivots(daily_candles, 'fibonacci')

    logger.debug(
        f"Indicators {timeframe or '?'} ({n} bars): price={ind.price} rsi={ind.rsi} "
        f"ema20={ind.ema20} ema50={ind.ema50} chop={ind.choppiness}"
    )

    return ind
