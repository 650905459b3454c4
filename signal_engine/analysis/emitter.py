"""
Signal Emitter

Turns a composite score into an emitted Signal: threshold and convergence
checks, ATR / structural risk levels, cooldown de-duplication and packaging.
Also wires the whole pipeline for one symbol in generate_signal().
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

import pandas as pd

from ..cooldown import CooldownState
from ..indicators.manager import IndicatorSet, compute_indicator_set
from ..models import ConfidenceTier, Direction, OrderBookSnapshot, Signal
from ..modes import TradingModeConfig, get_mode_config
from .regime import DEFAULT_CHOPPINESS_THRESHOLD
from .scoring import ScoreResult, ScoringContext, percent, score_candidate
from .timeframes import aggregate_timeframes

logger = logging.getLogger(__name__)


@dataclass
class RiskLevels:
    """Entry, stop and targets for one signal"""
    entry: float
    stop_loss: float
    take_profit1: float
    take_profit2: float
    risk_reward: float
    structural_target: bool = False


def _structural_targets(ind: IndicatorSet, direction: Direction) -> List[float]:
    """Pivot, order-block and swing levels on the profit side of price"""
    price = ind.price
    buying = direction is Direction.BUY
    levels = []

    for pivots in (ind.pivots, ind.fib_pivots):
        if pivots is None:
            continue
        level = pivots.nearest_above(price) if buying else pivots.nearest_below(price)
        if level is not None:
            levels.append(level)

    for block in ind.order_blocks:
        if buying and block.kind == 'bearish' and block.bottom > price:
            levels.append(block.bottom)
        elif not buying and block.kind == 'bullish' and block.top < price:
            levels.append(block.top)

    sr = ind.support_resistance
    if sr is not None:
        level = sr.resistance if buying else sr.support
        if level is not None:
            levels.append(level)

    return levels


def compute_risk_levels(
    ind: IndicatorSet,
    direction: Direction,
    mode: TradingModeConfig,
    choppy: bool = False
) -> Optional[RiskLevels]:
    """
    ATR-scaled stop and targets.

    Stop distance is ATR x the mode multiplier (x choppy_stop_factor in
    chop). TP1/TP2 sit at tp1_r_multiple / tp2_r_multiple times the stop
    distance. TP1 moves to the nearest structural level lying between 1R
    and the ATR target.

    Returns:
        RiskLevels or None when price or ATR is unavailable
    """
    if ind.price is None or ind.atr is None or ind.atr <= 0:
        return None

    entry = ind.price
    sign = direction.sign

    stop_distance = ind.atr * mode.stop_atr_multiplier
    if choppy:
        stop_distance *= mode.choppy_stop_factor

    stop_loss = entry - sign * stop_distance
    take_profit1 = entry + sign * stop_distance * mode.tp1_r_multiple
    take_profit2 = entry + sign * stop_distance * mode.tp2_r_multiple

    one_r = entry + sign * stop_distance
    structural = [
        level for level in _structural_targets(ind, direction)
        if (level - one_r) * sign >= 0 and (take_profit1 - level) * sign > 0
    ]

    if structural:
        take_profit1 = min(structural, key=lambda level: abs(level - entry))

    risk = abs(entry - stop_loss)
    risk_reward = abs(take_profit1 - entry) / risk if risk > 0 else 0.0

    return RiskLevels(
        entry=entry,
        stop_loss=stop_loss,
        take_profit1=take_profit1,
        take_profit2=take_profit2,
        risk_reward=round(risk_reward, 2),
        structural_target=bool(structural),
    )


class SignalEmitter:
    """
    Emission gate with cooldown de-duplication.

    The cooldown state is the only mutable state the emitter owns.
    """

    def __init__(self, cooldown: Optional[CooldownState] = None):
        self.cooldown = cooldown if cooldown is not None else CooldownState()

    def emit(
        self,
        result: Optional[ScoreResult],
        context: ScoringContext,
        mode: TradingModeConfig,
        now: Optional[datetime] = None
    ) -> Optional[Signal]:
        """
        Emit a Signal if the score clears the mode's gates.

        Args:
            result: Scoring output (None means gated upstream)
            context: Scoring context for the symbol
            mode: Trading mode
            now: Evaluation time (default: current UTC time)

        Returns:
            Signal or None when rejected, incomplete or cooling down
        """
        if result is None:
            return None

        symbol = context.symbol
        now = now or datetime.now(timezone.utc)

        if result.score <= mode.score_to_emit:
            logger.debug(f"{symbol}: score {result.score:.3f} <= {mode.score_to_emit} ({mode.name})")
            return None

        aligned = result.categories_aligned(mode.convergence_threshold)
        if aligned < mode.required_categories:
            logger.debug(f"{symbol}: {aligned} categories aligned, need {mode.required_categories}")
            return None

        ind = context.indicators
        levels = compute_risk_levels(ind, result.direction, mode, result.choppy)
        if levels is None:
            logger.warning(f"{symbol}: cannot compute risk levels (ATR unavailable)")
            return None

        primary = result.reasons[0] if result.reasons else None
        key = CooldownState.make_key(symbol, result.direction, primary.key if primary else None)

        if self.cooldown.is_active(key, mode.cooldown_minutes, now):
            left = self.cooldown.remaining(key, mode.cooldown_minutes, now)
            logger.info(f"{symbol}: {key} in cooldown ({int(left.total_seconds() // 60)} min left)")
            return None

        score = percent(result.score)
        subscores: Dict[str, int] = {name: percent(value) for name, value in result.subscores.items()}

        signal = Signal(
            symbol=symbol,
            direction=result.direction,
            score=score,
            confidence=ConfidenceTier.from_score(score),
            entry=levels.entry,
            stop_loss=levels.stop_loss,
            take_profit1=levels.take_profit1,
            take_profit2=levels.take_profit2,
            risk_reward=levels.risk_reward,
            subscores=subscores,
            reasons=list(result.reasons),
            warnings=list(result.warnings),
            regime=context.view.current_regime,
            mode=mode.name,
            categories_aligned=aligned,
            timestamp=now,
            indicators=ind.summary(),
        )

        self.cooldown.record(key, now)

        logger.info(
            f"Signal {symbol} {signal.direction.value} score={score} ({signal.confidence.value}) "
            f"entry={levels.entry:.6g} sl={levels.stop_loss:.6g} tp1={levels.take_profit1:.6g} "
            f"rr={levels.risk_reward}"
        )

        return signal


def generate_signal(
    symbol: str,
    candles: pd.DataFrame,
    mode: Union[str, TradingModeConfig],
    emitter: SignalEmitter,
    higher: Optional[Dict[str, pd.DataFrame]] = None,
    trigger_candles: Optional[pd.DataFrame] = None,
    order_book: Optional[OrderBookSnapshot] = None,
    now: Optional[datetime] = None,
    timeframe: str = '1h',
    choppiness_threshold: float = DEFAULT_CHOPPINESS_THRESHOLD
) -> Optional[Signal]:
    """
    Run indicators, regime, aggregation, scoring and emission for one symbol.

    Args:
        symbol: Market symbol, e.g. 'BTCUSDT'
        candles: Working timeframe candles
        mode: Trading mode name or resolved config
        emitter: Emitter holding the cooldown state
        higher: Higher timeframe candles keyed by interval ('1d', '4h')
        trigger_candles: Lower timeframe candles (e.g. 15m)
        order_book: Order book snapshot at decision time
        now: Evaluation time
        timeframe: Working interval label
        choppiness_threshold: CHOP level treated as ranging

    Returns:
        Signal or None
    """
    config = mode if isinstance(mode, TradingModeConfig) else get_mode_config(mode)
    higher = higher or {}

    working = compute_indicator_set(
        candles,
        order_book=order_book,
        daily_candles=higher.get('1d'),
        timeframe=timeframe,
    )

    missing = working.missing_prerequisites()
    if missing:
        logger.debug(f"{symbol}: skipped, missing {missing} ({working.candle_count} bars)")
        return None

    higher_sets = {
        tf: compute_indicator_set(df, timeframe=tf)
        for tf, df in higher.items()
        if df is not None and len(df) > 0
    }
    trigger = None
    if trigger_candles is not None and len(trigger_candles) > 0:
        trigger = compute_indicator_set(trigger_candles, timeframe='trigger')

    view = aggregate_timeframes(working, higher_sets, trigger, choppiness_threshold)
    context = ScoringContext(symbol=symbol, view=view, choppiness_threshold=choppiness_threshold)

    result = score_candidate(context, config)
    return emitter.emit(result, context, config, now)
