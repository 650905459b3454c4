"""
Multi-Factor Scoring Engine
===========================

Scores one symbol for one trading mode:

├── 1) Candidate direction
│   ├── Trending ──► EMA20 vs EMA50 (fallback: price vs SMA200)
│   └── Choppy ──► mean reversion at Bollinger edges / RSI extremes
├── 2) Hard gates
│   ├── CONSERVATIVE with NEUTRAL bias ──► no signal
│   ├── Direction against bias ──► no signal
│   └── Falling knife on a reversion entry ──► no signal
├── 3) Subscores in [0, 1] per category
├── 4) Weighted sum (choppy: trend 0, momentum x1.5, levels x2)
├── 5) Mode-specific boosts
└── 6) Clamp to [0, 1]
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..indicators.manager import IndicatorSet
from ..indicators.patterns import MAX_PATTERN_STRENGTH, best_pattern
from ..models import Bias, Direction, Reason, RegimeLabel
from ..modes import CATEGORIES, TradingModeConfig
from .regime import DEFAULT_CHOPPINESS_THRESHOLD, is_choppy, regime_bias
from .timeframes import TimeframeView

logger = logging.getLogger(__name__)

STRATEGY_TREND = 'trend'
STRATEGY_REVERSION = 'reversion'

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
LOW_CHOPPINESS = 38.2
FALLING_KNIFE_EMA9_PCT = 1.5


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def percent(value: float) -> int:
    return int(round(value * 100))


@dataclass
class ScoringContext:
    """Everything the scorer needs for one symbol"""
    symbol: str
    view: TimeframeView
    choppiness_threshold: float = DEFAULT_CHOPPINESS_THRESHOLD

    @property
    def indicators(self) -> IndicatorSet:
        return self.view.working

    @property
    def choppy(self) -> bool:
        return is_choppy(self.indicators, self.choppiness_threshold)


@dataclass
class ScoreResult:
    """Composite score with its breakdown"""
    direction: Direction
    strategy: str
    score: float
    raw_score: float
    subscores: Dict[str, float]
    weights: Dict[str, float]
    boosts: Dict[str, float] = field(default_factory=dict)
    reasons: List[Reason] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    choppy: bool = False

    def categories_aligned(self, threshold: float) -> int:
        return sum(1 for value in self.subscores.values() if value >= threshold)


def _agrees(value: Optional[float], reference: Optional[float], direction: Direction) -> bool:
    if value is None or reference is None:
        return False
    return (value - reference) * direction.sign > 0


def _label(direction: Direction, bullish: str, bearish: str) -> str:
    return bullish if direction is Direction.BUY else bearish


# ═══════════════════════════════════════════════════════════════════
# Direction and gates
# ═══════════════════════════════════════════════════════════════════

def candidate_direction(ind: IndicatorSet, choppy: bool) -> Optional[Tuple[Direction, str]]:
    """
    Pick the direction to score and the strategy that produced it.

    Returns:
        (direction, strategy) or None when no candidate exists
    """
    if ind.price is None:
        return None

    if choppy:
        bb = ind.bollinger
        if (bb is not None and ind.price <= bb.lower) or (ind.rsi is not None and ind.rsi < RSI_OVERSOLD):
            return Direction.BUY, STRATEGY_REVERSION
        if (bb is not None and ind.price >= bb.upper) or (ind.rsi is not None and ind.rsi > RSI_OVERBOUGHT):
            return Direction.SELL, STRATEGY_REVERSION
        return None

    if ind.ema20 is not None and ind.ema50 is not None:
        fast, slow = ind.ema20, ind.ema50
    elif ind.sma200 is not None:
        fast, slow = ind.price, ind.sma200
    else:
        return None

    if fast > slow:
        return Direction.BUY, STRATEGY_TREND
    if fast < slow:
        return Direction.SELL, STRATEGY_TREND
    return None


def passes_bias_gate(bias: Bias, direction: Direction, mode: TradingModeConfig) -> bool:
    if mode.name == 'CONSERVATIVE' and bias is Bias.NEUTRAL:
        return False
    if bias is Bias.BULLISH and direction is Direction.SELL:
        return False
    if bias is Bias.BEARISH and direction is Direction.BUY:
        return False
    return True


def is_falling_knife(ind: IndicatorSet, regime: RegimeLabel, direction: Direction) -> bool:
    """
    Reversion entry into accelerating momentum.

    BUY: RANGING, MACD histogram negative and falling, price more than 1.5%
    below EMA9. SELL mirrors it.
    """
    if regime is not RegimeLabel.RANGING:
        return False

    macd = ind.macd
    if macd is None or macd.prev_histogram is None or not ind.ema9 or ind.price is None:
        return False

    sign = direction.sign
    against = macd.histogram * sign < 0
    accelerating = (macd.histogram - macd.prev_histogram) * sign < 0
    distance_pct = (ind.price - ind.ema9) / ind.ema9 * 100 * sign

    return against and accelerating and distance_pct < -FALLING_KNIFE_EMA9_PCT


def effective_weights(mode: TradingModeConfig, choppy: bool) -> Dict[str, float]:
    weights = {category: mode.weight(category) for category in CATEGORIES}
    if choppy:
        weights['trend'] = 0.0
        weights['momentum'] *= 1.5
        weights['levels'] *= 2.0
    return weights


# ═══════════════════════════════════════════════════════════════════
# Subscores
# ═══════════════════════════════════════════════════════════════════

def _rsi_component(ind: IndicatorSet, direction: Direction, strategy: str, mode: TradingModeConfig) -> float:
    if ind.rsi is None:
        return 0.0

    if strategy == STRATEGY_TREND and mode.rsi_divisor:
        target = 55.0 if direction is Direction.BUY else 45.0
        return clamp(1 - abs(ind.rsi - target) / mode.rsi_divisor)

    # Extreme-based: deeper into oversold (overbought) scores higher
    if direction is Direction.BUY:
        return clamp((45.0 - ind.rsi) / 15.0)
    return clamp((ind.rsi - 55.0) / 15.0)


def _stochastic_component(ind: IndicatorSet, direction: Direction) -> float:
    stoch = ind.stochastic
    if stoch is None:
        return 0.0

    if direction is Direction.BUY:
        if stoch.bullish_cross:
            return 1.0
        if stoch.oversold:
            return 0.8
        return clamp((60.0 - stoch.k) / 40.0)

    if stoch.bearish_cross:
        return 1.0
    if stoch.overbought:
        return 0.8
    return clamp((stoch.k - 40.0) / 40.0)


def momentum_score(
    ind: IndicatorSet,
    direction: Direction,
    strategy: str,
    mode: TradingModeConfig,
    reasons: List[Reason]
) -> float:
    """RSI position, RSI velocity, stochastic and MACD sign blended per mode"""
    rsi_part = _rsi_component(ind, direction, strategy, mode)

    velocity = 0.0
    if ind.rsi is not None and ind.rsi_prev is not None:
        velocity = clamp((ind.rsi - ind.rsi_prev) * direction.sign / 5.0)

    stoch_part = _stochastic_component(ind, direction)

    macd_part = 0.0
    if ind.macd is not None and ind.macd.histogram * direction.sign > 0:
        macd_part = 1.0

    blend = mode.momentum_blend
    score = clamp(
        blend.get('rsi', 0) * rsi_part
        + blend.get('velocity', 0) * velocity
        + blend.get('stochastic', 0) * stoch_part
        + blend.get('macd', 0) * macd_part
    )

    if rsi_part >= 0.5:
        reasons.append(Reason(f"RSI favorable ({ind.rsi:.1f})", percent(rsi_part), 'momentum'))
    if macd_part:
        reasons.append(Reason(_label(direction, 'MACD alcista', 'MACD bajista'), 15, 'momentum'))
    if stoch_part >= 0.8:
        reasons.append(Reason(
            _label(direction, 'Estocástico en giro alcista', 'Estocástico en giro bajista'),
            percent(stoch_part),
            'momentum',
        ))

    return score


def trend_score(ind: IndicatorSet, direction: Direction, reasons: List[Reason]) -> float:
    """EMA20/EMA50 ordering (0.5), price vs EMA20 (0.3) and price vs VWAP (0.2)"""
    ordering = 1.0 if _agrees(ind.ema20, ind.ema50, direction) else 0.0
    position = 1.0 if _agrees(ind.price, ind.ema20, direction) else 0.0
    session = 1.0 if _agrees(ind.price, ind.vwap, direction) else 0.0

    if ordering:
        reasons.append(Reason(
            _label(direction, 'Tendencia alcista (EMA20 > EMA50)', 'Tendencia bajista (EMA20 < EMA50)'),
            60,
            'trend',
        ))
    if position:
        reasons.append(Reason(
            _label(direction, 'Precio sobre EMA20', 'Precio bajo EMA20'),
            40,
            'trend',
        ))
    if session:
        reasons.append(Reason(
            _label(direction, 'Precio sobre VWAP', 'Precio bajo VWAP'),
            10,
            'trend',
        ))

    return 0.5 * ordering + 0.3 * position + 0.2 * session


def trend_strength_score(ind: IndicatorSet, reasons: List[Reason]) -> float:
    adx_value = ind.adx_value
    if adx_value is None:
        return 0.0

    score = clamp((adx_value - 25.0) / 25.0)
    if score > 0:
        reasons.append(Reason(f"Tendencia fuerte (ADX {adx_value:.1f})", percent(score), 'trend_strength'))
    return score


def _proximity(price: float, level: Optional[float]) -> Optional[float]:
    if level is None or not price:
        return None
    return abs(price - level) / price * 100


def levels_score(ind: IndicatorSet, direction: Direction, reasons: List[Reason]) -> float:
    """Best of support/resistance, Bollinger edge, order block and pivot proximity"""
    price = ind.price
    if price is None:
        return 0.0

    buying = direction is Direction.BUY
    scores = [0.0]

    sr = ind.support_resistance
    if sr is not None:
        level = sr.support if buying else sr.resistance
        dist = _proximity(price, level)
        if dist is not None:
            if dist <= 1.0:
                scores.append(1.0)
            elif dist <= 2.0:
                scores.append(0.6)

    bb = ind.bollinger
    if bb is not None:
        edge = bb.lower if buying else bb.upper
        through = price <= edge if buying else price >= edge
        dist = _proximity(price, edge)
        if through:
            scores.append(1.0)
            reasons.append(Reason(
                _label(direction, 'Precio en banda inferior de Bollinger', 'Precio en banda superior de Bollinger'),
                30,
                'levels',
            ))
        elif dist is not None and dist < 2.0:
            scores.append(0.7)

    kind = 'bullish' if buying else 'bearish'
    if any(block.kind == kind and block.contains(price, 0.5) for block in ind.order_blocks):
        scores.append(0.9)
        reasons.append(Reason('Dentro de order block', 25, 'levels'))

    pivot_hit = False
    for pivots in (ind.pivots, ind.fib_pivots):
        if pivots is None:
            continue
        candidates = [pivots.s1, pivots.s2] if buying else [pivots.r1, pivots.r2]
        if (price > pivots.pivot) == buying:
            candidates.append(pivots.pivot)
        distances = [_proximity(price, level) for level in candidates]
        if any(d is not None and d < 1.5 for d in distances):
            pivot_hit = True
    if pivot_hit:
        scores.append(0.8)
        reasons.append(Reason(
            _label(direction, 'Cerca de nivel Pivot/Soporte', 'Cerca de nivel Pivot/Resistencia'),
            15,
            'levels',
        ))

    score = clamp(max(scores))
    if score > 0:
        reasons.append(Reason('Niveles favorables', percent(score), 'levels'))
    return score


def _pressure_component(ind: IndicatorSet, direction: Direction) -> float:
    if ind.buyer_pressure is not None:
        pressure = ind.buyer_pressure if direction is Direction.BUY else 100.0 - ind.buyer_pressure
        if pressure > 60:
            return 1.0
        if pressure > 50:
            return (pressure - 50.0) / 10.0
        return 0.0

    if ind.order_book is not None:
        return clamp(ind.order_book.imbalance * direction.sign / 0.5)

    return 0.0


def volume_score(ind: IndicatorSet, direction: Direction, reasons: List[Reason]) -> float:
    spike = 1.0 if ind.volume_spike else 0.0
    pressure = _pressure_component(ind, direction)

    if spike:
        reasons.append(Reason('Volumen inusual', 20, 'volume'))
    if pressure >= 1.0:
        reasons.append(Reason(
            _label(direction, 'Presión compradora', 'Presión vendedora'),
            20,
            'volume',
        ))

    return 0.6 * spike + 0.4 * pressure


def patterns_score(ind: IndicatorSet, direction: Direction, reasons: List[Reason]) -> float:
    pattern = best_pattern(ind.patterns, direction)
    if pattern is None:
        return 0.0

    reasons.append(Reason(f"Patrón {pattern.name}", pattern.strength, 'patterns'))
    return clamp(pattern.strength / MAX_PATTERN_STRENGTH)


def divergence_score(ind: IndicatorSet, direction: Direction, reasons: List[Reason]) -> float:
    """Best matching divergence; its reason goes to the front"""
    best = 0.0
    best_name = None

    for div in ind.divergences:
        if not div.supports(direction):
            continue
        if div.source == 'macd':
            value = clamp(div.strength * 0.8)
        else:
            value = clamp(div.strength / 20.0)
        if value > best:
            best, best_name = value, f"{div.name} ({div.source.upper()})"

    if best_name:
        reasons.insert(0, Reason(best_name, percent(best), 'divergence'))
    return best


def accumulation_score(ind: IndicatorSet, direction: Direction, reasons: List[Reason]) -> float:
    acc = ind.accumulation
    if direction is not Direction.BUY or acc is None:
        return 0.0

    text = 'Clímax de venta (Wyckoff)' if acc.kind == 'climax' else 'Acumulación detectada (CMF)'
    reasons.append(Reason(text, percent(acc.strength), 'accumulation'))
    return clamp(acc.strength)


# ═══════════════════════════════════════════════════════════════════
# Boosts
# ═══════════════════════════════════════════════════════════════════

def _triple_alignment(ind: IndicatorSet, direction: Direction, regime: RegimeLabel) -> bool:
    wanted = RegimeLabel.TRENDING_BULL if direction is Direction.BUY else RegimeLabel.TRENDING_BEAR
    return (
        _agrees(ind.ema20, ind.ema50, direction)
        and _agrees(ind.price, ind.sma200, direction)
        and regime is wanted
    )


def mode_boosts(
    context: ScoringContext,
    direction: Direction,
    subscores: Dict[str, float],
    mode: TradingModeConfig,
    reasons: List[Reason]
) -> Dict[str, float]:
    """Additive bonuses, different for every mode"""
    ind = context.indicators
    view = context.view
    boosts: Dict[str, float] = {}
    triple = _triple_alignment(ind, direction, view.current_regime)

    if mode.name == 'CONSERVATIVE':
        if triple:
            boosts['triple_alignment'] = 0.10
        if ind.adx_value is not None and ind.adx_value > 30:
            boosts['strong_adx'] = 0.05
        if view.trend_alignment(direction) == 1.0:
            boosts['mtf_alignment'] = 0.05

    elif mode.name == 'BALANCED':
        if triple:
            boosts['triple_alignment'] = 0.08
        if ind.choppiness is not None and ind.choppiness < LOW_CHOPPINESS:
            boosts['low_choppiness'] = 0.05
        if subscores.get('patterns', 0) > 0 and subscores.get('levels', 0) >= 0.6:
            boosts['pattern_confluence'] = 0.05
        if view.trend_alignment(direction) == 1.0:
            boosts['mtf_alignment'] = 0.05
        if view.trigger is not None:
            boosts['trigger'] = 0.05 * view.trigger_score(direction)

    elif mode.name == 'RISKY':
        pattern = best_pattern(ind.patterns, direction)
        if pattern is not None and pattern.bias != 'neutral':
            boosts['reversal_pattern'] = 0.08
        if ind.rsi is not None and (
            (direction is Direction.BUY and ind.rsi < RSI_OVERSOLD)
            or (direction is Direction.SELL and ind.rsi > RSI_OVERBOUGHT)
        ):
            boosts['momentum_extreme'] = 0.07
        if subscores.get('divergence', 0) > 0:
            boosts['divergence'] = 0.05

    elif mode.name == 'SCALPING':
        if _agrees(ind.ema9, ind.ema20, direction):
            boosts['micro_trend'] = 0.08
        if ind.buyer_pressure is not None:
            pressure = ind.buyer_pressure if direction is Direction.BUY else 100.0 - ind.buyer_pressure
            if pressure > 60:
                boosts['pressure_skew'] = 0.05
        if view.trigger is not None:
            boosts['trigger'] = 0.07 * view.trigger_score(direction)

    if direction is Direction.BUY and ind.swing_bands is not None and ind.swing_bands.buy_signal:
        boosts['swing_band_reclaim'] = 0.05
        reasons.append(Reason('Recuperación de banda de swing', 5, 'levels'))

    if 'triple_alignment' in boosts:
        reasons.append(Reason('Triple alineación (EMA, SMA200, régimen)', percent(boosts['triple_alignment']), 'trend'))
    if 'mtf_alignment' in boosts:
        reasons.append(Reason('Confirmación de marco temporal superior', 5, 'trend'))

    return {name: value for name, value in boosts.items() if value > 0}


# ═══════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════

def score_candidate(context: ScoringContext, mode: TradingModeConfig) -> Optional[ScoreResult]:
    """
    Score the symbol's candidate direction under `mode`.

    Args:
        context: Working indicators plus the multi-timeframe view
        mode: Resolved trading mode

    Returns:
        ScoreResult, or None when there is no candidate or a hard gate fires
    """
    ind = context.indicators
    view = context.view
    choppy = context.choppy

    candidate = candidate_direction(ind, choppy)
    if candidate is None:
        logger.debug(f"{context.symbol}: no candidate direction")
        return None

    direction, strategy = candidate

    if not passes_bias_gate(view.bias, direction, mode):
        logger.debug(
            f"{context.symbol}: {direction.value} blocked by bias {view.bias.value} ({mode.name})"
        )
        return None

    if strategy == STRATEGY_REVERSION and is_falling_knife(ind, view.working_regime, direction):
        logger.info(f"{context.symbol}: {direction.value} rejected, falling knife")
        return None

    reasons: List[Reason] = []
    warnings: List[str] = []

    subscores = {
        'momentum': momentum_score(ind, direction, strategy, mode, reasons),
        'trend': trend_score(ind, direction, reasons),
        'trend_strength': trend_strength_score(ind, reasons),
        'levels': levels_score(ind, direction, reasons),
        'volume': volume_score(ind, direction, reasons),
        'patterns': patterns_score(ind, direction, reasons),
        'divergence': divergence_score(ind, direction, reasons),
        'accumulation': accumulation_score(ind, direction, reasons),
    }

    weights = effective_weights(mode, choppy)
    raw = sum(weights[category] * subscores[category] for category in CATEGORIES)

    boosts = mode_boosts(context, direction, subscores, mode, reasons)
    score = clamp(raw + sum(boosts.values()))

    if regime_bias(view.current_regime) is not Bias.NEUTRAL:
        reasons.insert(0, Reason(f"Régimen {view.current_regime.value} confirmado", 10, 'regime'))

    if choppy:
        warnings.append('Mercado lateral: estrategia de reversión a la media')
    if strategy == STRATEGY_REVERSION and view.trend_alignment(direction) == 0.0:
        warnings.append('Contra la tendencia de largo plazo')
    if ind.ema200 is not None and ind.price is not None and not _agrees(ind.price, ind.ema200, direction):
        warnings.append(_label(direction, 'Precio bajo EMA200', 'Precio sobre EMA200'))

    logger.debug(
        f"{context.symbol}: {direction.value} {strategy} raw={raw:.3f} "
        f"boosts={sum(boosts.values()):.3f} score={score:.3f}"
    )

    return ScoreResult(
        direction=direction,
        strategy=strategy,
        score=score,
        raw_score=raw,
        subscores=subscores,
        weights=weights,
        boosts=boosts,
        reasons=reasons,
        warnings=warnings,
        choppy=choppy,
    )
