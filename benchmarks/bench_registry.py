#!/usr/bin/env python3
"""
Registry performance benchmarks.

Measures throughput and latency of guardrail checks with and without the
verdict cache.
"""

import asyncio
import time
from typing import Any

from guardrail_engine import MemoryCache, create_default_registry
from guardrail_engine.types import GuardrailContext

SNIPPETS = [
    {"text": "Export a video from the share menu and pick a resolution.", "score": 0.8},
    {"text": "Billing settings live under the account page.", "score": 0.4},
]


def make_contexts(count: int, distinct: bool) -> list[GuardrailContext]:
    """Build contexts, either all distinct or all the same query."""
    return [
        GuardrailContext(
            query=f"How do I export video number {i if distinct else 0}?",
            snippets=SNIPPETS,
            session_id=f"bench-{i}",
        )
        for i in range(count)
    ]


async def benchmark_uncached(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark full pipeline runs with no verdict cache."""
    registry = create_default_registry(spam_auto_cleanup=False)
    contexts = make_contexts(iterations, distinct=True)

    start = time.perf_counter()
    for context in contexts:
        await registry.check(context)
    elapsed = time.perf_counter() - start
    await registry.close()

    return {
        "name": "Pipeline (no cache)",
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_cached(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark repeated queries answered from the verdict cache."""
    registry = create_default_registry(cache=MemoryCache(), spam_auto_cleanup=False)
    contexts = make_contexts(iterations, distinct=False)

    start = time.perf_counter()
    for context in contexts:
        await registry.check(context)
    elapsed = time.perf_counter() - start
    await registry.close()

    return {
        "name": "Pipeline (cache hits)",
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_concurrent(concurrency: int = 50, iterations: int = 2000) -> dict[str, Any]:
    """Benchmark concurrent checks sharing one registry."""
    registry = create_default_registry(cache=MemoryCache(), spam_auto_cleanup=False)
    contexts = make_contexts(iterations, distinct=True)
    semaphore = asyncio.Semaphore(concurrency)

    async def run(context: GuardrailContext) -> None:
        async with semaphore:
            await registry.check(context)

    start = time.perf_counter()
    await asyncio.gather(*[run(context) for context in contexts])
    elapsed = time.perf_counter() - start
    await registry.close()

    return {
        "name": f"Concurrent ({concurrency})",
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def run_benchmarks() -> None:
    """Run all registry benchmarks."""
    print("=" * 60)
    print("Guardrail Registry Benchmarks")
    print("=" * 60)
    print()

    for bench in (benchmark_uncached, benchmark_cached):
        result = await bench()
        print(f"{result['name']}:")
        print(f"  Throughput: {result['throughput_ops']:.0f} checks/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/check")
        print()

    print("Concurrent Execution:")
    for concurrency in [10, 50, 100]:
        result = await benchmark_concurrent(concurrency=concurrency)
        print(f"  {concurrency} parallel: {result['throughput_ops']:.0f} checks/sec")


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
