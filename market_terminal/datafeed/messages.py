"""
Feed message decoding.

Every raw frame goes through json_loads() and then one of the decode_*()
functions. Anything with the wrong shape raises DecodeError so the
subscription can drop that single message and carry on.

Shape only is validated here. A field that is present but unparsable as a
number (trade price, kline close) is passed through raw and skipped by the
state store, so one bad field never discards the whole feed.
"""

from __future__ import annotations

import math
from typing import Any

import orjson

from ..types import DepthEvent, KlineEvent, Level, TickerEvent, TradeEvent


class DecodeError(ValueError):
    """A feed message could not be decoded into its schema."""


def json_loads(data: bytes | str) -> dict:
    """Parse one frame. Raises DecodeError on invalid JSON or non-object."""
    try:
        payload = orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise DecodeError(f"expected JSON object, got {type(payload).__name__}")
    return payload


def parse_number(value: Any) -> float | None:
    """Float from a feed field, or None if absent, unparsable or not finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _require_mapping(payload: Any, kind: str) -> dict:
    if not isinstance(payload, dict):
        raise DecodeError(f"{kind}: expected object, got {type(payload).__name__}")
    return payload


def _decode_levels(raw: Any, side: str) -> tuple[Level, ...] | None:
    """[[price, qty], ...] -> ((price, qty), ...). None if the side is absent."""
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise DecodeError(f"depth: '{side}' must be a list")

    levels: list[Level] = []
    for entry in raw:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2:
            raise DecodeError(f"depth: malformed level in '{side}': {entry!r}")
        try:
            price, qty = float(entry[0]), float(entry[1])
        except (TypeError, ValueError) as e:
            raise DecodeError(f"depth: non-numeric level in '{side}': {entry!r}") from e
        if not (math.isfinite(price) and math.isfinite(qty)):
            raise DecodeError(f"depth: non-finite level in '{side}': {entry!r}")
        levels.append((price, qty))
    return tuple(levels)


def decode_trade(payload: Any) -> TradeEvent:
    """Trade stream: {p: price, q: qty, T: epoch-ms, m: maker flag}."""
    data = _require_mapping(payload, "trade")

    timestamp = data.get('T')
    if timestamp is not None and (
        isinstance(timestamp, bool)
        or not isinstance(timestamp, (int, float))
        or not math.isfinite(timestamp)
    ):
        raise DecodeError(f"trade: 'T' must be epoch milliseconds, got {timestamp!r}")

    return TradeEvent(
        price=data.get('p'),
        qty=data.get('q'),
        timestamp_ms=int(timestamp) if timestamp is not None else None,
        is_buyer_maker=bool(data.get('m', False)),
    )


def decode_depth(payload: Any) -> DepthEvent:
    """Partial depth stream: {b: [[price, qty], ...], a: [[price, qty], ...]}."""
    data = _require_mapping(payload, "depth")
    return DepthEvent(
        bids=_decode_levels(data.get('b'), 'b'),
        asks=_decode_levels(data.get('a'), 'a'),
    )


def decode_ticker(payload: Any) -> TickerEvent:
    """24h ticker stream. Passed through as-is."""
    data = _require_mapping(payload, "ticker")
    return TickerEvent(payload=data or None)


def decode_kline(payload: Any) -> KlineEvent:
    """Kline stream: {k: {c: close, v: volume, ...}}."""
    data = _require_mapping(payload, "kline")
    candle = data.get('k')
    if candle is not None and not isinstance(candle, dict):
        raise DecodeError(f"kline: 'k' must be an object, got {type(candle).__name__}")
    return KlineEvent(candle=candle)
