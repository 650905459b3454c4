"""
Indicator library for technical analysis
"""
from .base import validate_candles, validate_period, true_range
from .moving_averages import (
    BollingerBands,
    sma,
    sma_series,
    ema,
    ema_series,
    bollinger_bands,
    vwap,
    volume_sma,
    has_volume_spike,
)
from .oscillators import (
    MACDResult,
    StochasticResult,
    ADXResult,
    rsi,
    rsi_series,
    macd,
    macd_series,
    stochastic,
    cci,
    adx,
)
from .volatility import atr, wilder_atr_series, choppiness_index
from .levels import (
    PivotLevels,
    SupportResistance,
    OrderBlock,
    pivot_points,
    fibonacci_pivots,
    prior_period_pivots,
    dynamic_support_resistance,
    find_order_blocks,
)
from .orderbook import OrderBookMetrics, order_book_metrics
from .patterns import CandlePattern, detect_patterns, best_pattern
from .divergence import Divergence, detect_divergences, rsi_divergences, macd_divergences
from .swing_bands import SwingBands, swing_structure_bands
from .volume import Accumulation, chaikin_money_flow, detect_accumulation, buyer_pressure
from .manager import IndicatorSet, HARD_PREREQUISITES, compute_indicator_set

__all__ = [
    # Helpers
    'validate_candles',
    'validate_period',
    'true_range',

    # Moving averages
    'BollingerBands',
    'sma',
    'sma_series',
    'ema',
    'ema_series',
    'bollinger_bands',
    'vwap',
    'volume_sma',
    'has_volume_spike',

    # Oscillators
    'MACDResult',
    'StochasticResult',
    'ADXResult',
    'rsi',
    'rsi_series',
    'macd',
    'macd_series',
    'stochastic',
    'cci',
    'adx',

    # Volatility
    'atr',
    'wilder_atr_series',
    'choppiness_index',

    # Levels
    'PivotLevels',
    'SupportResistance',
    'OrderBlock',
    'pivot_points',
    'fibonacci_pivots',
    'prior_period_pivots',
    'dynamic_support_resistance',
    'find_order_blocks',

    # Order book
    'OrderBookMetrics',
    'order_book_metrics',

    # Patterns and divergences
    'CandlePattern',
    'detect_patterns',
    'best_pattern',
    'Divergence',
    'detect_divergences',
    'rsi_divergences',
    'macd_divergences',

    # Structure and flow
    'SwingBands',
    'swing_structure_bands',
    'Accumulation',
    'chaikin_money_flow',
    'detect_accumulation',
    'buyer_pressure',

    # Manager
    'IndicatorSet',
    'HARD_PREREQUISITES',
    'compute_indicator_set',
]
