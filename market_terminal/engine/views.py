"""
View builders: market state -> panel content.

Every builder is a pure function returning Textual/Rich markup text. They
must never raise on empty state; before any data arrives each one returns a
placeholder instead.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Sequence

import numpy as np
from rich.markup import escape

from ..config import BOOK_DISPLAY_LEVELS
from ..datafeed.messages import parse_number
from ..types import ConnectionState, FeedStatus, Instrument, Level, MarketSnapshot

# Color scheme
BID_COLOR = "green"
ASK_COLOR = "red"

BAR_CHAR = "█"
BAR_WIDTH = 10
PRICE_WIDTH = 10
QTY_WIDTH = 12

SPARK_CHARS = "▁▂▃▄▅▆▇█"
CHART_WIDTH = 60

STATE_COLORS = {
    ConnectionState.CONNECTED: "green",
    ConnectionState.CONNECTING: "yellow",
    ConnectionState.PENDING_RETRY: "red",
}


def format_trade(price: float, qty: float, is_buyer_maker: bool, timestamp_ms: int | None) -> str:
    """One trade tape line: time, side, qty @ price."""
    side = (
        "[white on red] SELL [/]" if is_buyer_maker
        else "[white on green] BUY [/]"
    )
    return f"{format_time(timestamp_ms)} {side} {qty:.4f} @ [bold]{price:.4f}[/bold]"


def format_time(timestamp_ms: int | None) -> str:
    """Local wall-clock time of an epoch-ms timestamp."""
    if timestamp_ms is None:
        return "--:--:--"
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "--:--:--"


def format_price(value: float) -> str:
    """Best bid/ask label. 0.0 means nothing known yet."""
    return f"{value:.2f}" if value > 0 else "--"


def bar_length(qty: float, max_qty: float) -> int:
    """Bar cells for a level: round-half-up of qty/max * 10, at least 1."""
    return max(1, math.floor(qty / max_qty * BAR_WIDTH + 0.5))


def render_bars(levels: Sequence[Level], max_qty: float, side: str) -> str:
    """Render order book levels as price | qty | bar rows."""
    if not levels:
        return ""

    color = BID_COLOR if side == "bid" else ASK_COLOR
    lines = []
    for price, qty in levels:
        p = f"{price:.2f}".rjust(PRICE_WIDTH)
        q = f"{qty:.4f}".rjust(QTY_WIDTH)
        bar = f"[{color}]{BAR_CHAR * bar_length(qty, max_qty)}[/{color}]"
        lines.append(f"{p} | {q} | {bar}")
    return "\n".join(lines)


def top_levels(levels: Sequence[Level], count: int = BOOK_DISPLAY_LEVELS) -> list[Level]:
    """First `count` levels as delivered, re-sorted by price descending for display."""
    return sorted(levels[:count], key=lambda level: level[0], reverse=True)


def max_quantity(levels: Sequence[Level]) -> float:
    """Largest quantity on one side; 1.0 for an empty (or all-zero) side."""
    return max((qty for _, qty in levels), default=1.0) or 1.0


def build_order_book(snapshot: MarketSnapshot, count: int = BOOK_DISPLAY_LEVELS) -> str:
    """Order book panel: asks over bids, best prices at the edges."""
    asks = top_levels(snapshot.asks, count)
    bids = top_levels(snapshot.bids, count)

    ask_lines = render_bars(asks, max_quantity(asks), "ask")
    bid_lines = render_bars(bids, max_quantity(bids), "bid")

    return (
        f"\n[bold {ASK_COLOR}]Best Ask: {format_price(snapshot.best_ask)}[/]\n"
        f"\n{ask_lines}\n"
        f"\n{bid_lines}\n"
        f"\n[bold {BID_COLOR}]Best Bid: {format_price(snapshot.best_bid)}[/]\n"
    )


def build_trade_tape(snapshot: MarketSnapshot) -> str:
    """Trade tape panel: all buffered records, oldest first."""
    if not snapshot.trades:
        return "[dim]Waiting for trades...[/dim]"
    return "\n".join(snapshot.trades)


def sparkline(values: Sequence[float], width: int = CHART_WIDTH) -> str:
    """Block-character sparkline of the last `width` values."""
    if not values:
        return ""

    arr = np.asarray(values[-width:], dtype=np.float64)
    lo, hi = float(arr.min()), float(arr.max())
    top = len(SPARK_CHARS) - 1

    if hi - lo <= 0:
        idx = np.full(arr.shape, top // 2, dtype=np.int64)
    else:
        idx = np.rint((arr - lo) / (hi - lo) * top).astype(np.int64)

    return "".join(SPARK_CHARS[i] for i in idx)


def _ticker_field(ticker: dict, key: str, fmt: str = ".2f") -> str:
    value = parse_number(ticker.get(key))
    return format(value, fmt) if value is not None else "--"


def build_price_chart(
    prices: Sequence[float],
    volumes: Sequence[float],
    ticker: dict,
    instrument: Instrument,
    width: int = CHART_WIDTH,
) -> str:
    """
    Market info panel: ticker summary plus price and volume sparklines.

    Works from whatever subset of data has arrived; prices and volumes may
    differ in length.
    """
    title = f"[bold]{escape(instrument.display_symbol)}[/bold] {escape(instrument.interval)}"
    if not prices and not volumes and not ticker:
        return f"{title}\n\n[dim]Waiting for market data...[/dim]"

    last = parse_number(ticker.get('c'))
    if last is None and prices:
        last = prices[-1]
    last_text = f"{last:.2f}" if last is not None else "--"

    change = parse_number(ticker.get('P'))
    if change is None:
        change_text = ""
    else:
        color = BID_COLOR if change >= 0 else ASK_COLOR
        change_text = f"  [{color}]{change:+.2f}%[/{color}]"

    lines = [
        f"{title}  [bold]{last_text}[/bold]{change_text}",
        f"24h High: {_ticker_field(ticker, 'h')}  Low: {_ticker_field(ticker, 'l')}  "
        f"Vol: {_ticker_field(ticker, 'v', '.3f')}  Quote Vol: {_ticker_field(ticker, 'q')}",
        "",
    ]

    if prices:
        window = prices[-width:]
        lines.append(f"Price  [cyan]{sparkline(prices, width)}[/cyan]")
        lines.append(f"       hi {max(window):.2f}  lo {min(window):.2f}  n={len(prices)}")
    else:
        lines.append("Price  [dim]no candles yet[/dim]")

    if volumes:
        lines.append(f"Volume [yellow]{sparkline(volumes, width)}[/yellow]")
        lines.append(f"       last {volumes[-1]:.3f}  n={len(volumes)}")
    else:
        lines.append("Volume [dim]no candles yet[/dim]")

    return "\n".join(lines)


def build_feed_status(statuses: Iterable[FeedStatus], now: float) -> str:
    """Feeds panel: one line of health counters per subscription."""
    rows = []
    for status in statuses:
        color = STATE_COLORS[status.state]
        if status.last_message_at is None:
            age = "--"
        else:
            age = f"{max(0.0, now - status.last_message_at):.1f}s"
        rows.append(
            f"{escape(status.name):<24} [{color}]{status.state.value:<13}[/{color}] "
            f"msgs {status.messages:<7} err {status.decode_errors:<4} "
            f"reconn {status.reconnects:<4} last {age}"
        )

    if not rows:
        return "[dim]No feeds[/dim]"
    return "\n".join(rows)
