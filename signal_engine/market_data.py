"""
Market Data Provider

Async client for a Binance-compatible public REST API (klines, depth and
24h tickers). Every response is validated; anything malformed raises
MarketDataError so the caller can fail just that symbol.
"""

import logging
import math
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd

from .errors import MarketDataError
from .models import Candle, OrderBookSnapshot, candles_to_frame
from .pacing import RequestPacer, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.binance.com/api/v3'

# Rate limited / banned / upstream trouble
RETRYABLE_STATUS = {418, 429, 500, 502, 503, 504}


def _to_float(value: Any, field_name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise MarketDataError(f"Invalid {field_name}: {value!r}") from e
    if math.isnan(result):
        raise MarketDataError(f"Invalid {field_name}: NaN")
    return result


def parse_kline(row: Any) -> Candle:
    """
    Parse one kline row:
    [openTime, open, high, low, close, volume, closeTime, quoteVolume,
     trades, takerBuyBaseVolume, takerBuyQuoteVolume, ignore]
    """
    if not isinstance(row, (list, tuple)) or len(row) < 6:
        raise MarketDataError(f"Malformed kline row: {row!r}")

    candle = Candle(
        open_time=int(_to_float(row[0], 'openTime')),
        open=_to_float(row[1], 'open'),
        high=_to_float(row[2], 'high'),
        low=_to_float(row[3], 'low'),
        close=_to_float(row[4], 'close'),
        volume=_to_float(row[5], 'volume'),
        quote_volume=_to_float(row[7], 'quoteVolume') if len(row) > 7 else 0.0,
        taker_buy_base_volume=_to_float(row[9], 'takerBuyBaseVolume') if len(row) > 9 else 0.0,
    )

    if not candle.is_valid():
        raise MarketDataError(f"Inconsistent OHLC in kline row: {row!r}")

    return candle


class MarketDataProvider:
    """
    Exchange REST client.

    Features:
    - Per-request timeout (httpx)
    - Rolling-window request pacing
    - Retry with backoff for timeouts, 429/418 and 5xx responses
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        retry: Optional[RetryPolicy] = None,
        pacer: Optional[RequestPacer] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize provider.

        Args:
            base_url: REST base URL (default: Binance spot v3)
            timeout: Per-request timeout in seconds
            retry: Retry policy (default: 3 attempts)
            pacer: Request pacer (default: 1200 requests/minute)
            client: Pre-built AsyncClient, e.g. with a mock transport
        """
        self.base_url = base_url.rstrip('/')
        self.retry = retry or RetryPolicy()
        self.pacer = pacer or RequestPacer()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> 'MarketDataProvider':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.pacer.wait_if_needed()
        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise MarketDataError(f"Timeout requesting {path}", retryable=True) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise MarketDataError(
                f"{path} failed (status={status}, body={e.response.text[:200]!r})",
                status_code=status,
                retryable=status in RETRYABLE_STATUS,
            ) from e
        except httpx.HTTPError as e:
            raise MarketDataError(f"{path} failed: {e}", retryable=True) from e
        except ValueError as e:
            raise MarketDataError(f"{path} returned invalid JSON") from e

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET with pacing and retry"""
        return await self.retry.call(self._request, path, params)

    async def get_candles(self, symbol: str, interval: str = '1h', limit: int = 300) -> List[Candle]:
        """
        Fetch klines in ascending time order.

        Args:
            symbol: Trading pair, e.g. 'BTCUSDT'
            interval: Kline interval ('15m', '1h', '4h', '1d')
            limit: Number of candles (max 1000)

        Returns:
            List of Candle

        Raises:
            MarketDataError on fetch failure or a non-list response
        """
        data = await self.get_json(
            'klines',
            {'symbol': symbol.upper(), 'interval': interval, 'limit': limit},
        )

        if not isinstance(data, list):
            raise MarketDataError(f"Klines for {symbol} {interval}: expected list, got {type(data).__name__}")

        candles = [parse_kline(row) for row in data]
        logger.debug(f"Fetched {len(candles)} {interval} candles for {symbol}")
        return candles

    async def get_candle_frame(self, symbol: str, interval: str = '1h', limit: int = 300) -> pd.DataFrame:
        return candles_to_frame(await self.get_candles(symbol, interval, limit))

    async def get_order_book(self, symbol: str, depth: int = 20) -> OrderBookSnapshot:
        """Fetch the top `depth` levels of the order book"""
        data = await self.get_json('depth', {'symbol': symbol.upper(), 'limit': depth})

        if not isinstance(data, dict) or not isinstance(data.get('bids'), list) or not isinstance(data.get('asks'), list):
            raise MarketDataError(f"Malformed order book for {symbol}")

        try:
            return OrderBookSnapshot.from_levels(
                [level[:2] for level in data['bids']],
                [level[:2] for level in data['asks']],
            )
        except (TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed order book level for {symbol}: {e}") from e

    async def get_24h_ticker(self, symbol: str) -> Dict[str, float]:
        """24h statistics for one symbol"""
        data = await self.get_json('ticker/24hr', {'symbol': symbol.upper()})

        if not isinstance(data, dict):
            raise MarketDataError(f"Malformed 24h ticker for {symbol}")

        return {
            'lastPrice': _to_float(data.get('lastPrice'), 'lastPrice'),
            'priceChangePercent': _to_float(data.get('priceChangePercent'), 'priceChangePercent'),
            'highPrice': _to_float(data.get('highPrice'), 'highPrice'),
            'lowPrice': _to_float(data.get('lowPrice'), 'lowPrice'),
            'volume': _to_float(data.get('volume'), 'volume'),
            'quoteVolume': _to_float(data.get('quoteVolume'), 'quoteVolume'),
        }

    async def _all_tickers(self) -> List[Dict[str, Any]]:
        data = await self.get_json('ticker/24hr')
        if not isinstance(data, list):
            raise MarketDataError(f"Ticker list: expected list, got {type(data).__name__}")
        return [t for t in data if isinstance(t, dict) and isinstance(t.get('symbol'), str)]

    async def get_top_symbols(
        self,
        quote: str = 'USDT',
        limit: int = 20,
        min_quote_volume: float = 0.0
    ) -> List[str]:
        """
        Symbols quoted in `quote`, ranked by 24h quote volume.

        Args:
            quote: Quote asset suffix
            limit: Number of symbols to return
            min_quote_volume: Minimum 24h quote volume

        Returns:
            Symbols, most liquid first
        """
        ranked = []
        for ticker in await self._all_tickers():
            symbol = ticker['symbol']
            if not symbol.endswith(quote) or symbol == quote:
                continue
            try:
                volume = float(ticker.get('quoteVolume', 0))
            except (TypeError, ValueError):
                continue
            if volume > min_quote_volume:
                ranked.append((volume, symbol))

        ranked.sort(reverse=True)
        symbols = [symbol for _, symbol in ranked[:limit]]
        logger.info(f"Top {len(symbols)} {quote} symbols by volume")
        return symbols

    async def get_momentum_symbols(
        self,
        quote: str = 'USDT',
        limit: int = 20,
        min_quote_volume: float = 10_000_000,
        min_volatility_pct: float = 3.0
    ) -> List[str]:
        """
        Gainers with decent volume and range, ranked by
        0.6 * change% + 0.3 * range% + 0.1 * log10(volume / 1M).
        """
        ranked = []
        for ticker in await self._all_tickers():
            symbol = ticker['symbol']
            if not symbol.endswith(quote) or symbol == quote:
                continue
            try:
                volume = float(ticker['quoteVolume'])
                change = float(ticker['priceChangePercent'])
                high = float(ticker['highPrice'])
                low = float(ticker['lowPrice'])
                last = float(ticker['lastPrice'])
            except (KeyError, TypeError, ValueError):
                continue

            if volume < min_quote_volume or last <= 0 or change <= 0:
                continue
            volatility = (high - low) / last * 100
            if volatility < min_volatility_pct:
                continue

            score = change * 0.6 + volatility * 0.3 + math.log10(volume / 1_000_000) * 0.1
            ranked.append((score, symbol))

        ranked.sort(reverse=True)
        return [symbol for _, symbol in ranked[:limit]]
