#!/usr/bin/env python
"""
Crypto Signal Engine - Single Command Startup

This script runs one scan cycle (or keeps scanning every cycle_minutes) and
prints emitted signals as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys

from signal_engine.config import AppConfig, load_config
from signal_engine.errors import ConfigurationError, MarketDataError
from signal_engine.modes import TRADING_MODES
from signal_engine.scanner import build_scanner


def print_startup_banner(config: AppConfig):
    """Print startup information"""
    scanner = config.scanner
    universe = ', '.join(scanner.symbols) if scanner.symbols else f"top {scanner.universe_size} by {scanner.universe}"

    print("\n" + "=" * 70)
    print("  📈 Crypto Signal Engine")
    print("=" * 70)
    print(f"  Exchange: {config.exchange.base_url}")
    print(f"  Mode: {scanner.mode}")
    print(f"  Universe: {universe}")
    print(f"  Timeframes: {scanner.working_interval} (higher: {', '.join(scanner.higher_intervals) or '-'})")
    print(f"  Cooldowns: {scanner.cooldown_file or 'in memory'}")
    print("=" * 70)
    print("\n⚙️  Starting scanner...\n")


async def run(config: AppConfig, once: bool) -> int:
    """Run the scanner; returns the number of signals from the last cycle"""
    scanner = build_scanner(config)

    async with scanner.provider:
        if not once:
            await scanner.run_forever()
            return 0

        report = await scanner.run_cycle()

    for signal in report.signals:
        print(json.dumps(signal.to_dict(), ensure_ascii=False, indent=2))

    print(
        f"\n✅ Analyzed {report.analyzed} symbols, "
        f"{len(report.signals)} signals, {report.error_count} errors"
    )
    return len(report.signals)


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Scan crypto markets and emit trading signals'
    )
    parser.add_argument(
        '--config',
        type=str,
        help='Path to config.yaml (default: repository root)'
    )
    parser.add_argument(
        '--mode',
        type=str.upper,
        choices=sorted(TRADING_MODES),
        help='Override trading mode from config'
    )
    parser.add_argument(
        '--symbols',
        type=str,
        help='Comma separated symbols, e.g. BTCUSDT,ETHUSDT'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single scan cycle and exit'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        help='Override log level from config'
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    if args.mode:
        config.scanner.mode = args.mode
    if args.symbols:
        config.scanner.symbols = [s.strip().upper() for s in args.symbols.split(',') if s.strip()]

    log_level = args.log_level or config.log_level
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print_startup_banner(config)

    try:
        asyncio.run(run(config, args.once))
    except KeyboardInterrupt:
        print("\n\n👋 Shutting down gracefully...")
    except ConfigurationError as e:
        print(f"\n❌ Configuration error: {e}")
        sys.exit(1)
    except MarketDataError as e:
        print(f"\n❌ Market data unavailable: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
