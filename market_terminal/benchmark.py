#!/usr/bin/env python3
"""
Micro-benchmark for Market Terminal performance.

Tests:
1. Trade ingestion throughput (decode + store)
2. Depth ingestion throughput
3. Kline ingestion throughput
4. Full render cycle latency

Usage:
    python -m market_terminal.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

import orjson

from .datafeed.messages import decode_depth, decode_kline, decode_trade, json_loads
from .engine.market_state import MarketState
from .engine.scheduler import RenderScheduler
from .types import Instrument

INSTRUMENT = Instrument("btcusdt", "1m")


class NullSink:
    """PanelSink that discards everything."""

    def set_content(self, panel: str, content: str) -> None:
        pass

    def scroll_to_end(self, panel: str) -> None:
        pass

    def flush(self) -> None:
        pass


def generate_mock_trade(base_price: float = 60000.0) -> bytes:
    """Generate a raw trade frame."""
    return orjson.dumps({
        'e': 'trade',
        'p': f"{base_price + random.uniform(-50, 50):.1f}",
        'q': f"{random.uniform(0.001, 2):.3f}",
        'T': int(time.time() * 1000),
        'm': random.random() > 0.5,
    })


def generate_mock_depth(base_price: float = 60000.0, levels: int = 20) -> bytes:
    """Generate a raw partial depth frame."""
    tick_size = 0.1
    bids = [[f"{base_price - (i + 1) * tick_size:.1f}", f"{random.uniform(0.01, 20):.3f}"] for i in range(levels)]
    asks = [[f"{base_price + (i + 1) * tick_size:.1f}", f"{random.uniform(0.01, 20):.3f}"] for i in range(levels)]
    return orjson.dumps({'e': 'depthUpdate', 'b': bids, 'a': asks})


def generate_mock_kline(base_price: float = 60000.0) -> bytes:
    """Generate a raw kline frame."""
    return orjson.dumps({
        'e': 'kline',
        'k': {
            'c': f"{base_price + random.uniform(-50, 50):.1f}",
            'v': f"{random.uniform(10, 500):.3f}",
        },
    })


def _report_rate(label: str, iterations: int, elapsed: float) -> None:
    rate = iterations / elapsed
    print(f"  {label}: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} msgs/sec")
    print(f"  Per message: {elapsed/iterations*1_000_000:.2f}µs")


def benchmark_trades(iterations: int = 100000) -> None:
    """Benchmark trade decode + tape append."""
    print("\n=== Trade Ingestion Benchmark ===")

    state = MarketState()
    frames = [generate_mock_trade() for _ in range(iterations)]

    start = time.perf_counter()
    for raw in frames:
        state.on_trade(decode_trade(json_loads(raw)))
    elapsed = time.perf_counter() - start

    _report_rate("Trades processed", iterations, elapsed)


def benchmark_depth(iterations: int = 20000) -> None:
    """Benchmark depth decode + book replacement."""
    print("\n=== Depth Ingestion Benchmark ===")

    state = MarketState()
    frames = [generate_mock_depth() for _ in range(iterations)]

    start = time.perf_counter()
    for raw in frames:
        state.on_depth(decode_depth(json_loads(raw)))
    elapsed = time.perf_counter() - start

    _report_rate("Depth updates applied", iterations, elapsed)


def benchmark_klines(iterations: int = 100000) -> None:
    """Benchmark kline decode + series append."""
    print("\n=== Kline Ingestion Benchmark ===")

    state = MarketState()
    frames = [generate_mock_kline() for _ in range(iterations)]

    start = time.perf_counter()
    for raw in frames:
        state.on_kline(decode_kline(json_loads(raw)))
    elapsed = time.perf_counter() - start

    _report_rate("Klines processed", iterations, elapsed)


def benchmark_render_cycle(iterations: int = 2000) -> None:
    """Benchmark one full render cycle against full buffers."""
    print("\n=== Render Cycle Benchmark ===")

    state = MarketState()
    for _ in range(500):
        state.on_trade(decode_trade(json_loads(generate_mock_trade())))
        state.on_kline(decode_kline(json_loads(generate_mock_kline())))
    state.on_depth(decode_depth(json_loads(generate_mock_depth())))

    scheduler = RenderScheduler(state, NullSink(), INSTRUMENT)

    # Warm up
    for _ in range(10):
        scheduler.render_once()

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        scheduler.render_once()
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Max FPS possible: {1000/avg_time:,.0f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Market Terminal Performance Benchmark")
    print("=" * 60)

    benchmark_trades()
    benchmark_depth()
    benchmark_klines()
    benchmark_render_cycle()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
