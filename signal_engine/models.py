"""
Core Data Model

Candles, order book snapshots, regime labels and the emitted Signal value
object shared by every stage of the engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd


CANDLE_COLUMNS = [
    'time', 'open', 'high', 'low', 'close', 'volume',
    'quote_volume', 'taker_buy_base_volume',
]


class Direction(Enum):
    """Signal direction"""
    BUY = "BUY"
    SELL = "SELL"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.BUY else -1


class RegimeLabel(Enum):
    """Market regime for one (symbol, timeframe) pair"""
    TRENDING_BULL = "TRENDING_BULL"
    TRENDING_BEAR = "TRENDING_BEAR"
    RANGING = "RANGING"
    UNKNOWN = "UNKNOWN"


class Bias(Enum):
    """Directional bias derived from the dominant regime"""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class ConfidenceTier(Enum):
    """Signal confidence levels"""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def from_score(cls, score: int) -> 'ConfidenceTier':
        if score >= 80:
            return cls.HIGH
        if score >= 60:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar as returned by the exchange"""
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: float = 0.0
    taker_buy_base_volume: float = 0.0

    def is_valid(self) -> bool:
        """Check high >= max(open, close) >= min(open, close) >= low"""
        top = max(self.open, self.close)
        bottom = min(self.open, self.close)
        return self.high >= top >= bottom >= self.low


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Top of book at decision time. Bids descending, asks ascending."""
    bids: Tuple[Tuple[float, float], ...]
    asks: Tuple[Tuple[float, float], ...]

    @classmethod
    def from_levels(
        cls,
        bids: Sequence[Sequence[float]],
        asks: Sequence[Sequence[float]]
    ) -> 'OrderBookSnapshot':
        return cls(
            bids=tuple((float(p), float(q)) for p, q in bids),
            asks=tuple((float(p), float(q)) for p, q in asks),
        )

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0][0] if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0][0] if self.asks else None


@dataclass
class Reason:
    """Human-readable factor behind a signal"""
    text: str
    weight: int     # 0-100 contribution shown to the reader
    key: str        # category used for de-duplication, e.g. "trend"

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'weight': self.weight, 'key': self.key}


@dataclass
class Signal:
    """Emitted trading signal. Value object consumed by notifiers/storage."""
    symbol: str
    direction: Direction
    score: int                      # 0-100
    confidence: ConfidenceTier
    entry: float
    stop_loss: float
    take_profit1: float
    take_profit2: float
    risk_reward: float
    subscores: Dict[str, int]       # category -> percent
    reasons: List[Reason]
    warnings: List[str]
    regime: RegimeLabel
    mode: str
    categories_aligned: int
    timestamp: datetime
    indicators: Dict[str, Any] = field(default_factory=dict)

    @property
    def primary_reason(self) -> Optional[Reason]:
        return self.reasons[0] if self.reasons else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert signal to a JSON-friendly dictionary"""
        return {
            'symbol': self.symbol,
            'type': self.direction.value,
            'score': self.score,
            'confidence': self.confidence.value,
            'levels': {
                'entry': self.entry,
                'stopLoss': self.stop_loss,
                'takeProfit1': self.take_profit1,
                'takeProfit2': self.take_profit2,
            },
            'riskReward': self.risk_reward,
            'subscores': dict(self.subscores),
            'reasons': [r.to_dict() for r in self.reasons],
            'warnings': list(self.warnings),
            'regime': self.regime.value,
            'mode': self.mode,
            'categoriesAligned': self.categories_aligned,
            'timestamp': self.timestamp.isoformat(),
            'indicators': dict(self.indicators),
        }


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """
    Convert a candle sequence to the DataFrame layout used by the indicators.

    Args:
        candles: Candles in ascending time order

    Returns:
        DataFrame with CANDLE_COLUMNS
    """
    return pd.DataFrame(
        [
            (
                c.open_time, c.open, c.high, c.low, c.close, c.volume,
                c.quote_volume, c.taker_buy_base_volume,
            )
            for c in candles
        ],
        columns=CANDLE_COLUMNS,
    )
