"""
Signal Analysis Package
=======================

Regime classification, multi-timeframe aggregation, scoring and emission.
"""

from .regime import classify_regime, regime_bias, trend_direction
from .timeframes import TimeframeView, aggregate_timeframes
from .scoring import ScoreResult, ScoringContext, score_candidate
from .emitter import RiskLevels, SignalEmitter, compute_risk_levels, generate_signal

__all__ = [
    'classify_regime',
    'regime_bias',
    'trend_direction',
    'TimeframeView',
    'aggregate_timeframes',
    'ScoreResult',
    'ScoringContext',
    'score_candidate',
    'RiskLevels',
    'SignalEmitter',
    'compute_risk_levels',
    'generate_signal',
]
