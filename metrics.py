import math
from typing import NamedTuple, Optional, List, Sequence, Dict, Any


class RequestResult(NamedTuple):
    ok: bool
    status: int  # 0 when no HTTP response was received (timeout, network, file error)
    latency_ms: float
    image: str

    def to_json(self) -> Dict[str, Any]:
        return {"ok": self.ok, "status": self.status, "latencyMs": self.latency_ms, "image": self.image}


class Summary(NamedTuple):
    count: int
    success_rate: float
    mean_ms: Optional[float]
    p50_ms: Optional[float]
    p95_ms: Optional[float]
    p99_ms: Optional[float]
    min_ms: Optional[float]
    max_ms: Optional[float]


def percentile(values: Sequence[float], p: float) -> Optional[float]:
    """Nearest-rank percentile: sorted[ceil(p/100 * N) - 1], clamped to the list bounds."""
    if not values:
        return None
    sorted_values = sorted(values)
    idx = math.ceil((p / 100.0) * len(sorted_values)) - 1
    idx = min(max(idx, 0), len(sorted_values) - 1)
    return round(sorted_values[idx], 2)


def summarize(results: List[RequestResult]) -> Summary:
    count = len(results)
    if count == 0:
        return Summary(0, 0, None, None, None, None, None, None)

    latencies = [r.latency_ms for r in results]
    successes = sum(1 for r in results if r.ok)
    return Summary(
        count=count,
        success_rate=round(successes / count * 100, 2),
        mean_ms=round(sum(latencies) / count, 2),
        p50_ms=percentile(latencies, 50),
        p95_ms=percentile(latencies, 95),
        p99_ms=percentile(latencies, 99),
        min_ms=round(min(latencies), 2),
        max_ms=round(max(latencies), 2),
    )
