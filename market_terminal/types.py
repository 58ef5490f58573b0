"""
Data types for Market Terminal.

Notes:
- NamedTuple for immutable, memory-efficient structures
- Feed events are thin typed wrappers produced at the decode boundary;
  field parsing that can fail per update is left to the state store
"""

from __future__ import annotations

import enum
from typing import Any, NamedTuple, Optional

# (price, qty)
Level = tuple[float, float]


class Instrument(NamedTuple):
    """The one instrument this process watches. Immutable."""
    symbol: str      # Lowercase, as used in stream names
    interval: str    # Kline interval, e.g. "1m"

    @property
    def display_symbol(self) -> str:
        return self.symbol.upper()


class TradeEvent(NamedTuple):
    """Single trade print from the trade stream."""
    price: Any                 # Raw 'p' field, None if absent
    qty: Any                   # Raw 'q' field, None if absent
    timestamp_ms: Optional[int]
    is_buyer_maker: bool       # True = sell aggressor


class DepthEvent(NamedTuple):
    """Top-N partial depth. A side is None when missing from the message."""
    bids: Optional[tuple[Level, ...]]
    asks: Optional[tuple[Level, ...]]


class TickerEvent(NamedTuple):
    """24h ticker, passed through untouched."""
    payload: Optional[dict]


class KlineEvent(NamedTuple):
    """Candle update. candle is the nested 'k' object, None if missing."""
    candle: Optional[dict]


class MarketSnapshot(NamedTuple):
    """
    Consistent read of the whole market state.

    Produced once per render cycle; every view builder reads from the same
    snapshot.
    """
    prices: tuple[float, ...]
    volumes: tuple[float, ...]
    bids: tuple[Level, ...]
    asks: tuple[Level, ...]
    best_bid: float
    best_ask: float
    trades: tuple[str, ...]
    ticker: dict


class ConnectionState(enum.Enum):
    """Lifecycle of one feed subscription. There is no terminal state."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    PENDING_RETRY = "pending_retry"


class FeedStatus(NamedTuple):
    """Health of one subscription, shown in the feeds panel."""
    name: str
    state: ConnectionState
    messages: int
    decode_errors: int
    reconnects: int
    last_message_at: Optional[float]   # time.monotonic() of last message
