"""
Market Regime Classifier
========================

Labels one timeframe as trending (bull/bear), ranging or unknown:

├── Price or trend references missing ──► UNKNOWN
├── Choppiness > threshold ──► RANGING
├── ADX < minimum ──► RANGING
└── Otherwise by EMA20 vs EMA50 (fallback: price vs SMA200)
    ├── Above ──► TRENDING_BULL
    ├── Below ──► TRENDING_BEAR
    └── Equal ──► RANGING
"""

import logging
from typing import Optional

from ..indicators.manager import IndicatorSet
from ..models import Bias, RegimeLabel

logger = logging.getLogger(__name__)

DEFAULT_CHOPPINESS_THRESHOLD = 60.0
DEFAULT_MIN_ADX = 20.0


def trend_direction(ind: IndicatorSet) -> Optional[int]:
    """
    +1 / -1 / 0 from EMA20 vs EMA50, falling back to price vs SMA200.

    None when neither reference is available.
    """
    if ind.ema20 is not None and ind.ema50 is not None:
        fast, slow = ind.ema20, ind.ema50
    elif ind.price is not None and ind.sma200 is not None:
        fast, slow = ind.price, ind.sma200
    else:
        return None

    if fast > slow:
        return 1
    if fast < slow:
        return -1
    return 0


def is_choppy(ind: IndicatorSet, choppiness_threshold: float = DEFAULT_CHOPPINESS_THRESHOLD) -> bool:
    return ind.choppiness is not None and ind.choppiness > choppiness_threshold


def classify_regime(
    ind: IndicatorSet,
    choppiness_threshold: float = DEFAULT_CHOPPINESS_THRESHOLD,
    min_adx: float = DEFAULT_MIN_ADX
) -> RegimeLabel:
    """
    Classify the regime of one timeframe.

    Args:
        ind: Indicator snapshot for the timeframe
        choppiness_threshold: CHOP above this is ranging (default: 60)
        min_adx: ADX below this is ranging (default: 20)

    Returns:
        RegimeLabel
    """
    direction = trend_direction(ind)

    if ind.price is None or direction is None:
        return RegimeLabel.UNKNOWN

    if is_choppy(ind, choppiness_threshold):
        return RegimeLabel.RANGING

    adx_value = ind.adx_value
    if adx_value is not None and adx_value < min_adx:
        return RegimeLabel.RANGING

    if direction > 0:
        return RegimeLabel.TRENDING_BULL
    if direction < 0:
        return RegimeLabel.TRENDING_BEAR
    return RegimeLabel.RANGING


def regime_bias(label: RegimeLabel) -> Bias:
    if label is RegimeLabel.TRENDING_BULL:
        return Bias.BULLISH
    if label is RegimeLabel.TRENDING_BEAR:
        return Bias.BEARISH
    return Bias.NEUTRAL
