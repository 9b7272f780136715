import asyncio
import random
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import httpx
import pytest

from benchmark_driver import run_with_concurrency, run_benchmark
from config import RunConfig
from metrics import RequestResult


def result_for(index: int) -> RequestResult:
    return RequestResult(ok=True, status=200, latency_ms=float(index), image=f"img-{index}")


class TestRunWithConcurrency:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("runs,concurrency", [(1, 1), (5, 1), (7, 3), (20, 20), (3, 10)])
    async def test_every_slot_filled_once(self, runs, concurrency):
        calls = []

        async def factory(i):
            calls.append(i)
            await asyncio.sleep(random.uniform(0, 0.005))
            return result_for(i)

        results = await run_with_concurrency(runs, concurrency, factory)

        assert len(results) == runs
        assert None not in results
        assert sorted(calls) == list(range(runs))

    @pytest.mark.asyncio
    async def test_slot_matches_index_despite_completion_order(self):
        completion_order = []

        async def factory(i):
            # later indices finish first
            await asyncio.sleep((10 - i) * 0.002)
            completion_order.append(i)
            return result_for(i)

        results = await run_with_concurrency(10, 10, factory)

        assert completion_order != sorted(completion_order)
        assert [r.image for r in results] == [f"img-{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_in_flight_never_exceeds_concurrency(self):
        in_flight = 0
        peak = 0

        async def factory(i):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return result_for(i)

        await run_with_concurrency(25, 4, factory)
        assert peak == 4

    @pytest.mark.asyncio
    async def test_excess_workers_do_no_work(self):
        calls = []

        async def factory(i):
            calls.append(i)
            return result_for(i)

        results = await run_with_concurrency(2, 50, factory)
        assert len(results) == 2
        assert calls == [0, 1]


class TestRunBenchmark:
    @pytest.mark.asyncio
    async def test_cycles_images_and_hits_url(self, tmp_path):
        images = []
        for name in ("a.jpg", "b.png"):
            path = tmp_path / name
            path.write_bytes(b"fake-" + name.encode())
            images.append(str(path))

        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((str(request.url), request.content))
            return httpx.Response(200, json={"tags": []})

        run_config = RunConfig(url="http://vlm.test/api/tag", runs=5, concurrency=2, timeout_ms=5000)
        results = await run_benchmark(run_config, images, transport=httpx.MockTransport(handler))

        assert [r.image for r in results] == [images[0], images[1], images[0], images[1], images[0]]
        assert all(r.ok and r.status == 200 for r in results)
        assert len(seen) == 5
        assert all(url == "http://vlm.test/api/tag" for url, _ in seen)
