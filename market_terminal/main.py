#!/usr/bin/env python3
"""
Market Terminal - Real-time market-data dashboard for Binance Futures.

Usage:
    python -m market_terminal.main btcusdt --interval 1m

Controls:
    q / Esc / Ctrl+C - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import DEFAULT_INTERVAL, DEFAULT_LOG_FILE, DEFAULT_SYMBOL, TerminalConfig

logger = logging.getLogger(__name__)


def setup_logging(config: TerminalConfig) -> None:
    """Log to a file; the terminal belongs to the UI."""
    logging.basicConfig(
        filename=config.log_file,
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def main(config: TerminalConfig) -> None:
    """Main entry point - runs the feeds and the UI on one event loop."""

    # Import here to avoid slow startup for --help
    import aiohttp

    from .datafeed.binance_client import BinanceClient
    from .datafeed.connection import StreamManager
    from .engine.market_state import MarketState
    from .ui.terminal import run_ui

    instrument = config.instrument

    print(f"Starting Market Terminal for {instrument.display_symbol}...")
    print(f"  Interval: {instrument.interval}")
    print(f"  Log file: {config.log_file}")
    print()

    state = MarketState()

    async with aiohttp.ClientSession() as session:
        manager = StreamManager(
            session,
            base_url=config.ws_base,
            reconnect_delay=config.reconnect_delay_sec,
        )
        client = BinanceClient(instrument, state, manager)
        client.start()

        try:
            # Blocks until quit
            await run_ui(state, instrument, client.feed_status, config.render_interval_sec)
        finally:
            await client.stop()
            logger.info("Shutdown complete")


def cli() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Market Terminal - Real-time market-data dashboard for Binance Futures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m market_terminal.main
    python -m market_terminal.main ethusdt --interval 5m
    python -m market_terminal.main btcusdt --log-level DEBUG
        """
    )

    parser.add_argument(
        "symbol",
        nargs="?",
        default=DEFAULT_SYMBOL,
        help=f"Trading symbol (default: {DEFAULT_SYMBOL})"
    )

    parser.add_argument(
        "--interval",
        default=DEFAULT_INTERVAL,
        help=f"Kline interval (default: {DEFAULT_INTERVAL})"
    )

    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Diagnostics log file (default: {DEFAULT_LOG_FILE})"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level (default: INFO)"
    )

    args = parser.parse_args()

    try:
        config = TerminalConfig(
            symbol=args.symbol,
            interval=args.interval,
            log_file=args.log_file,
            log_level=args.log_level,
        )
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config)

    # Run
    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
