"""
Order Book Metrics

Spread and top-of-book notional imbalance.
"""

from dataclasses import dataclass
from typing import Optional

from ..models import OrderBookSnapshot
from .base import validate_period


@dataclass
class OrderBookMetrics:
    mid: float
    spread_bps: float
    bid_notional: float
    ask_notional: float
    imbalance: float    # -1 (all asks) .. +1 (all bids)


def order_book_metrics(book: Optional[OrderBookSnapshot], depth: int = 10) -> Optional[OrderBookMetrics]:
    """
    Spread in basis points of mid and notional imbalance
    (bid - ask) / (bid + ask) over the top `depth` levels.

    Returns None when either side is empty.
    """
    depth = validate_period(depth, min_period=1)

    if book is None or not book.bids or not book.asks:
        return None

    best_bid, best_ask = book.best_bid, book.best_ask
    mid = (best_bid + best_ask) / 2
    if mid <= 0:
        return None

    bid_notional = sum(price * qty for price, qty in book.bids[:depth])
    ask_notional = sum(price * qty for price, qty in book.asks[:depth])
    total = bid_notional + ask_notional

    return OrderBookMetrics(
        mid=mid,
        spread_bps=(best_ask - best_bid) / mid * 10_000,
        bid_notional=bid_notional,
        ask_notional=ask_notional,
        imbalance=(bid_notional - ask_notional) / total if total > 0 else 0.0,
    )
