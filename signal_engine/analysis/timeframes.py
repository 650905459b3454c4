"""
Multi-Timeframe Aggregator

Combines the daily / 4h regime with the working timeframe into a directional
bias, and scores long-term trend alignment and lower-timeframe trigger
confirmation for a candidate direction.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from ..indicators.manager import IndicatorSet
from ..models import Bias, Direction, RegimeLabel
from .regime import DEFAULT_CHOPPINESS_THRESHOLD, classify_regime, regime_bias

logger = logging.getLogger(__name__)

# Regime precedence, highest first
HIGHER_TIMEFRAMES = ('1d', '4h')

NEUTRAL_SCORE = 0.5

TRIGGER_RSI_BANDS = {
    Direction.BUY: (40.0, 65.0),
    Direction.SELL: (35.0, 60.0),
}


@dataclass
class TimeframeView:
    """Aggregated multi-timeframe state for one symbol"""
    working: IndicatorSet
    working_regime: RegimeLabel
    current_regime: RegimeLabel
    bias: Bias
    higher: Dict[str, IndicatorSet] = field(default_factory=dict)
    higher_regimes: Dict[str, RegimeLabel] = field(default_factory=dict)
    trigger: Optional[IndicatorSet] = None

    def _long_term(self) -> Optional[IndicatorSet]:
        for tf in HIGHER_TIMEFRAMES:
            ind = self.higher.get(tf)
            if ind is not None and ind.ema20 is not None and ind.ema50 is not None:
                return ind
        return None

    def trend_alignment(self, direction: Direction) -> float:
        """
        1.0 when the daily (fallback 4h) EMA20/EMA50 ordering agrees with
        `direction`, 0.0 when it opposes it, 0.5 when unknown.
        """
        ind = self._long_term()
        if ind is None or ind.ema20 == ind.ema50:
            return NEUTRAL_SCORE

        bullish = ind.ema20 > ind.ema50
        return 1.0 if bullish == (direction is Direction.BUY) else 0.0

    def trigger_score(self, direction: Direction) -> float:
        """
        Lower-timeframe confirmation in [0, 1].

        Half from RSI sitting inside the direction's mid band, half from the
        MACD histogram sign. Missing trigger data is neutral.
        """
        ind = self.trigger
        if ind is None or (ind.rsi is None and ind.macd is None):
            return NEUTRAL_SCORE

        score = 0.0
        low, high = TRIGGER_RSI_BANDS[direction]

        if ind.rsi is None:
            score += NEUTRAL_SCORE / 2
        elif low <= ind.rsi <= high:
            score += 0.5

        if ind.macd is None:
            score += NEUTRAL_SCORE / 2
        elif ind.macd.histogram * direction.sign > 0:
            score += 0.5

        return score

    @property
    def has_higher_timeframes(self) -> bool:
        return bool(self.higher)


def aggregate_timeframes(
    working: IndicatorSet,
    higher: Optional[Mapping[str, IndicatorSet]] = None,
    trigger: Optional[IndicatorSet] = None,
    choppiness_threshold: float = DEFAULT_CHOPPINESS_THRESHOLD
) -> TimeframeView:
    """
    Aggregate timeframe snapshots.

    Args:
        working: Working timeframe indicators (e.g. 1h)
        higher: Higher timeframe indicators keyed by interval ('1d', '4h')
        trigger: Lower timeframe indicators (e.g. 15m)
        choppiness_threshold: Passed through to the regime classifier

    Returns:
        TimeframeView
    """
    higher = dict(higher or {})
    working_regime = classify_regime(working, choppiness_threshold)
    higher_regimes = {
        tf: classify_regime(ind, choppiness_threshold) for tf, ind in higher.items()
    }

    current_regime = working_regime
    for tf in HIGHER_TIMEFRAMES:
        label = higher_regimes.get(tf)
        if label is not None and label is not RegimeLabel.UNKNOWN:
            current_regime = label
            break

    bias = regime_bias(current_regime)

    higher_labels = {tf: r.value for tf, r in higher_regimes.items()}
    logger.debug(
        f"Timeframes: working={working_regime.value} higher={higher_labels} "
        f"current={current_regime.value} bias={bias.value}"
    )

    return TimeframeView(
        working=working,
        working_regime=working_regime,
        current_regime=current_regime,
        bias=bias,
        higher=higher,
        higher_regimes=higher_regimes,
        trigger=trigger,
    )
