import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx

from config import RunConfig
from metrics import RequestResult
from request_executor import run_request

logger = logging.getLogger(__name__)

RequestFactory = Callable[[int], Awaitable[RequestResult]]


async def run_with_concurrency(runs: int, concurrency: int, request_factory: RequestFactory) -> List[RequestResult]:
    """Runs request_factory(0..runs-1) on a pool of at most `concurrency` workers.

    Workers pull the next index from one shared iterator, so a slow request
    never holds back indices another worker could take. Pulling an index has
    no await in it, so two workers can never claim the same one. Slot i of the
    returned list always holds the result of request_factory(i).
    """
    results: List[Optional[RequestResult]] = [None] * runs
    indices = iter(range(runs))

    async def worker(worker_id: int):
        handled = 0
        for index in indices:
            results[index] = await request_factory(index)
            handled += 1
        logger.debug(f"Worker-{worker_id}: cursor exhausted after {handled} requests.")

    worker_count = min(concurrency, runs)
    await asyncio.gather(*(worker(i) for i in range(worker_count)))
    return results


async def run_benchmark(run_config: RunConfig, images: Sequence[str],
                        transport: Optional[httpx.AsyncBaseTransport] = None) -> List[RequestResult]:
    logger.info(f"Starting benchmark: {run_config.runs} runs, concurrency {run_config.concurrency}, "
                f"timeout {run_config.timeout_ms}ms, {len(images)} image(s). Target: {run_config.url}")

    limits = httpx.Limits(max_connections=run_config.concurrency,
                          max_keepalive_connections=run_config.concurrency)
    timeout = httpx.Timeout(run_config.timeout_ms / 1000.0)

    async with httpx.AsyncClient(limits=limits, timeout=timeout, transport=transport) as client:
        async def request_factory(i: int) -> RequestResult:
            image_path = images[i % len(images)]
            return await run_request(client, run_config.url, image_path, run_config.timeout_ms)

        start_time = time.perf_counter()
        results = await run_with_concurrency(run_config.runs, run_config.concurrency, request_factory)
        total_benchmark_time_s = time.perf_counter() - start_time

    successful_requests = sum(1 for r in results if r.ok)
    throughput_rps = len(results) / total_benchmark_time_s if total_benchmark_time_s > 0 else 0
    logger.info(f"Benchmark finished in {total_benchmark_time_s:.2f}s. "
                f"{successful_requests}/{len(results)} succeeded, throughput {throughput_rps:.2f} RPS.")
    return results
