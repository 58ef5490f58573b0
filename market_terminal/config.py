"""
Runtime configuration.

There is no config file: the few user-facing knobs come from the command
line, everything else is a fixed constant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .types import Instrument

# Binance Futures endpoint
WS_BASE = "wss://fstream.binance.com/ws"

# Timing contracts
RECONNECT_DELAY_SEC = 2.0
RENDER_INTERVAL_SEC = 0.5

# Buffer capacities
MAX_PRICES = 200
MAX_TRADES = 120

# Order book
BOOK_DISPLAY_LEVELS = 8
DEPTH_STREAM_LEVELS = 20
DEPTH_UPDATE_MS = 100

DEFAULT_SYMBOL = "btcusdt"
DEFAULT_INTERVAL = "1m"
DEFAULT_LOG_FILE = "market_terminal.log"


@dataclass(frozen=True)
class TerminalConfig:
    """Settings for one terminal process."""
    symbol: str = DEFAULT_SYMBOL
    interval: str = DEFAULT_INTERVAL
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = "INFO"
    ws_base: str = WS_BASE
    reconnect_delay_sec: float = RECONNECT_DELAY_SEC
    render_interval_sec: float = RENDER_INTERVAL_SEC

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValueError("symbol must not be empty")
        if not self.interval:
            raise ValueError("interval must not be empty")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log level: {self.log_level}")

    @property
    def instrument(self) -> Instrument:
        return Instrument(symbol=self.symbol.lower(), interval=self.interval)
