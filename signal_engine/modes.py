"""
Trading Mode Presets

Immutable scoring / emission presets selected by name.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CATEGORIES = (
    'momentum',
    'trend',
    'trend_strength',
    'levels',
    'volume',
    'patterns',
    'divergence',
    'accumulation',
)

DEFAULT_MODE = 'BALANCED'


@dataclass(frozen=True)
class TradingModeConfig:
    """Scoring weights, thresholds and risk parameters for one mode"""
    name: str
    weights: Dict[str, float]               # category -> weight, sum need not be 1
    score_to_emit: float                    # emit only above this (0-1)
    required_categories: int                # subscores that must reach convergence
    cooldown_minutes: int
    stop_atr_multiplier: float
    momentum_blend: Dict[str, float]        # rsi / velocity / stochastic / macd
    rsi_divisor: Optional[float] = 20.0     # None: score RSI by distance into extremes
    convergence_threshold: float = 0.4
    choppy_stop_factor: float = 1.25
    tp1_r_multiple: float = 1.5
    tp2_r_multiple: float = 2.5

    def weight(self, category: str) -> float:
        return self.weights.get(category, 0.0)


TRADING_MODES: Dict[str, TradingModeConfig] = {
    'CONSERVATIVE': TradingModeConfig(
        name='CONSERVATIVE',
        weights={
            'momentum': 0.25,
            'trend': 0.30,
            'trend_strength': 0.20,
            'levels': 0.10,
            'volume': 0.05,
            'patterns': 0.05,
            'divergence': 0.05,
            'accumulation': 0.0,
        },
        score_to_emit=0.65,
        required_categories=2,
        cooldown_minutes=240,
        stop_atr_multiplier=2.0,
        momentum_blend={'rsi': 0.30, 'velocity': 0.10, 'stochastic': 0.20, 'macd': 0.40},
        rsi_divisor=15.0,
    ),
    'BALANCED': TradingModeConfig(
        name='BALANCED',
        weights={
            'momentum': 0.35,
            'trend': 0.25,
            'trend_strength': 0.15,
            'levels': 0.10,
            'volume': 0.05,
            'patterns': 0.05,
            'divergence': 0.05,
            'accumulation': 0.0,
        },
        score_to_emit=0.40,
        required_categories=1,
        cooldown_minutes=120,
        stop_atr_multiplier=1.5,
        momentum_blend={'rsi': 0.35, 'velocity': 0.15, 'stochastic': 0.20, 'macd': 0.30},
        rsi_divisor=20.0,
    ),
    'RISKY': TradingModeConfig(
        name='RISKY',
        weights={
            'momentum': 0.35,
            'trend': 0.10,
            'trend_strength': 0.05,
            'levels': 0.15,
            'volume': 0.10,
            'patterns': 0.15,
            'divergence': 0.10,
            'accumulation': 0.05,
        },
        score_to_emit=0.40,
        required_categories=1,
        cooldown_minutes=60,
        stop_atr_multiplier=1.5,
        momentum_blend={'rsi': 0.40, 'velocity': 0.20, 'stochastic': 0.25, 'macd': 0.15},
        rsi_divisor=None,
    ),
    'SCALPING': TradingModeConfig(
        name='SCALPING',
        weights={
            'momentum': 0.40,
            'trend': 0.15,
            'trend_strength': 0.05,
            'levels': 0.15,
            'volume': 0.20,
            'patterns': 0.05,
            'divergence': 0.0,
            'accumulation': 0.0,
        },
        score_to_emit=0.45,
        required_categories=2,
        cooldown_minutes=30,
        stop_atr_multiplier=1.0,
        momentum_blend={'rsi': 0.25, 'velocity': 0.25, 'stochastic': 0.30, 'macd': 0.20},
        rsi_divisor=15.0,
    ),
}


def get_mode_config(name: Optional[str]) -> TradingModeConfig:
    """
    Resolve a trading mode by name (case-insensitive).

    Unknown or empty names fall back to BALANCED.
    """
    key = (name or '').strip().upper()
    config = TRADING_MODES.get(key)

    if config is None:
        logger.warning(f"Unknown trading mode '{name}', falling back to {DEFAULT_MODE}")
        return TRADING_MODES[DEFAULT_MODE]

    return config
