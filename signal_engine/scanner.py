"""
Scan Cycle Runner

Evaluates a bounded symbol universe in small fixed batches with a static
pause between batches. Each symbol is independent: a failure is logged,
counted and the cycle moves on.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd

from .analysis.emitter import SignalEmitter, generate_signal
from .config import AppConfig, ScannerConfig
from .cooldown import CooldownState, InMemoryCooldownStore, JsonFileCooldownStore
from .errors import MarketDataError
from .market_data import MarketDataProvider
from .models import OrderBookSnapshot, Signal, candles_to_frame
from .modes import get_mode_config
from .pacing import RequestPacer, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class SymbolInputs:
    """Market data fetched for one symbol"""
    candles: pd.DataFrame
    higher: Dict[str, pd.DataFrame] = field(default_factory=dict)
    trigger: Optional[pd.DataFrame] = None
    order_book: Optional[OrderBookSnapshot] = None


@dataclass
class CycleReport:
    """Outcome of one scan cycle"""
    started_at: datetime
    finished_at: Optional[datetime] = None
    analyzed: int = 0
    signals: List[Signal] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


class SignalScanner:
    """
    Runs scan cycles over a symbol universe.

    Owns the emitter (and through it the cooldown state); only one cycle
    runs at a time for a scanner instance.
    """

    def __init__(
        self,
        provider,
        config: Optional[ScannerConfig] = None,
        emitter: Optional[SignalEmitter] = None,
        quote_asset: str = 'USDT'
    ):
        """
        Initialize scanner.

        Args:
            provider: Market data provider (get_candles, get_order_book, ...)
            config: Scanner settings
            emitter: Signal emitter (new in-memory cooldown if None)
            quote_asset: Quote asset used to rank the universe
        """
        self.provider = provider
        self.config = config or ScannerConfig()
        self.emitter = emitter or SignalEmitter()
        self.quote_asset = quote_asset
        self.mode = get_mode_config(self.config.mode)
        self.cycles_run = 0

    async def resolve_universe(self) -> List[str]:
        """Configured symbols, or the top of the ranked universe"""
        if self.config.symbols:
            return [s.upper() for s in self.config.symbols]

        if self.config.universe == 'momentum':
            return await self.provider.get_momentum_symbols(
                self.quote_asset,
                self.config.universe_size,
            )

        return await self.provider.get_top_symbols(
            self.quote_asset,
            self.config.universe_size,
            self.config.min_quote_volume,
        )

    async def fetch_inputs(self, symbol: str) -> SymbolInputs:
        cfg = self.config

        candles = await self.provider.get_candles(symbol, cfg.working_interval, cfg.candle_limit)
        inputs = SymbolInputs(candles=candles_to_frame(candles))

        for interval in cfg.higher_intervals:
            higher = await self.provider.get_candles(symbol, interval, cfg.higher_limit)
            inputs.higher[interval] = candles_to_frame(higher)

        if cfg.trigger_interval:
            trigger = await self.provider.get_candles(symbol, cfg.trigger_interval, cfg.trigger_limit)
            inputs.trigger = candles_to_frame(trigger)

        if cfg.order_book_depth:
            inputs.order_book = await self.provider.get_order_book(symbol, cfg.order_book_depth)

        return inputs

    async def analyze_symbol(self, symbol: str, now: Optional[datetime] = None) -> Optional[Signal]:
        """
        Fetch data and run the signal pipeline for one symbol.

        Raises:
            MarketDataError on fetch failure
        """
        inputs = await self.fetch_inputs(symbol)

        return generate_signal(
            symbol,
            inputs.candles,
            self.mode,
            self.emitter,
            higher=inputs.higher,
            trigger_candles=inputs.trigger,
            order_book=inputs.order_book,
            now=now,
            timeframe=self.config.working_interval,
            choppiness_threshold=self.config.choppiness_threshold,
        )

    async def _analyze_safely(self, symbol: str, report: CycleReport, now: Optional[datetime]) -> None:
        try:
            signal = await self.analyze_symbol(symbol, now)
        except MarketDataError as e:
            logger.error(f"{symbol}: market data error: {e}")
            report.errors[symbol] = str(e)
            return
        except Exception as e:
            logger.exception(f"{symbol}: analysis failed: {e}")
            report.errors[symbol] = f"{type(e).__name__}: {e}"
            return

        report.analyzed += 1
        if signal is not None:
            report.signals.append(signal)

    async def run_cycle(
        self,
        symbols: Optional[List[str]] = None,
        now: Optional[datetime] = None
    ) -> CycleReport:
        """
        Run one scan cycle.

        Args:
            symbols: Explicit universe (default: resolve_universe())
            now: Evaluation time shared by the whole cycle

        Returns:
            CycleReport
        """
        report = CycleReport(started_at=datetime.now(timezone.utc))

        if symbols is None:
            symbols = await self.resolve_universe()

        batch_size = self.config.batch_size
        batches = [symbols[i:i + batch_size] for i in range(0, len(symbols), batch_size)]

        logger.info(
            f"Scan cycle: {len(symbols)} symbols in {len(batches)} batches ({self.mode.name})"
        )

        for index, batch in enumerate(batches):
            await asyncio.gather(*(self._analyze_safely(symbol, report, now) for symbol in batch))

            if index < len(batches) - 1 and self.config.batch_delay > 0:
                await asyncio.sleep(self.config.batch_delay)

        report.finished_at = datetime.now(timezone.utc)
        self.cycles_run += 1

        logger.info(
            f"Cycle complete: analyzed={report.analyzed} signals={len(report.signals)} "
            f"errors={report.error_count} in {report.duration_seconds:.1f}s"
        )

        return report

    async def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Run cycles every cycle_minutes until cancelled or max_cycles reached"""
        while max_cycles is None or self.cycles_run < max_cycles:
            try:
                await self.run_cycle()
            except MarketDataError as e:
                # Universe ranking failed; try again next cycle
                logger.error(f"Cycle aborted, cannot resolve universe: {e}")
                self.cycles_run += 1

            if max_cycles is not None and self.cycles_run >= max_cycles:
                break

            await asyncio.sleep(self.config.cycle_minutes * 60)


def build_provider(config: AppConfig) -> MarketDataProvider:
    """Market data provider wired with the configured pacing and retry"""
    exchange = config.exchange
    return MarketDataProvider(
        base_url=exchange.base_url,
        timeout=exchange.timeout,
        retry=RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay,
            max_delay=config.retry.max_delay,
        ),
        pacer=RequestPacer(
            min_interval=exchange.min_request_interval,
            max_requests=exchange.max_requests_per_minute,
        ),
    )


def build_scanner(config: AppConfig, provider: Optional[MarketDataProvider] = None) -> SignalScanner:
    """
    Assemble a scanner from configuration.

    Args:
        config: Application configuration
        provider: Provider override (default: build_provider(config))

    Returns:
        SignalScanner
    """
    if config.scanner.cooldown_file:
        store = JsonFileCooldownStore(config.scanner.cooldown_file)
    else:
        store = InMemoryCooldownStore()

    return SignalScanner(
        provider or build_provider(config),
        config.scanner,
        SignalEmitter(CooldownState(store)),
        quote_asset=config.exchange.quote_asset,
    )
