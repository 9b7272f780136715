import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import config
from config import RunConfig
from metrics import RequestResult, Summary, summarize
from benchmark_driver import run_benchmark

logger = logging.getLogger(__name__)


class BenchmarkSetupError(Exception):
    """Raised for problems that stop the run before any request is sent."""


def setup_logging(level: int = config.LOG_LEVEL, log_file: Optional[str] = config.LOG_FILE):
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))

    logging.basicConfig(level=level, format=config.LOG_FORMAT, handlers=handlers)
    if log_file:
        logger.info(f"Logging setup complete. Log file: {log_file}")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Latency benchmark for a multipart image-upload endpoint")
    p.add_argument("--url", default=config.DEFAULT_URL, help=f"Endpoint URL (default: {config.DEFAULT_URL})")
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", help="Single image to upload on every request")
    source.add_argument("--images-dir", help="Directory of .jpg/.jpeg/.png files, cycled across requests")
    p.add_argument("--runs", type=positive_int, default=config.DEFAULT_RUNS, help="Total number of requests")
    p.add_argument("--concurrency", type=positive_int, default=config.DEFAULT_CONCURRENCY,
                   help="Requests in flight at once")
    p.add_argument("--timeout-ms", type=positive_int, default=config.DEFAULT_TIMEOUT_MS,
                   help="Per-request timeout in milliseconds")
    p.add_argument("--output-dir", default=config.RESULTS_DIR, help="Where result snapshots are written")
    p.add_argument("--log-level", default=logging.getLevelName(config.LOG_LEVEL),
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Diagnostic log level (stderr)")
    p.add_argument("--log-file", default=config.LOG_FILE, help="Also write diagnostics to this file")
    return p


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def run_config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        url=args.url,
        runs=args.runs,
        concurrency=args.concurrency,
        timeout_ms=args.timeout_ms,
        image=args.image,
        images_dir=args.images_dir,
        output_dir=args.output_dir,
    )


def collect_images(image: Optional[str], images_dir: Optional[str]) -> List[str]:
    """Resolves the image source to a non-empty, sorted list of absolute paths."""
    if image:
        path = Path(image).resolve()
        if not path.is_file() or not os.access(path, os.R_OK):
            raise BenchmarkSetupError(f"Image not found or not readable: {path}")
        return [str(path)]

    if not images_dir:
        raise BenchmarkSetupError("Provide exactly one of --image or --images-dir")

    directory = Path(images_dir).resolve()
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        raise BenchmarkSetupError(f"Cannot read images directory {directory}: {e}") from e

    images = sorted(
        str(entry) for entry in entries
        if entry.is_file() and entry.name.lower().endswith(config.IMAGE_EXTENSIONS)
    )
    if not images:
        raise BenchmarkSetupError(f"No .jpg/.jpeg/.png files found in {directory}")
    return images


def build_payload(run_config: RunConfig, summary: Summary, results: List[RequestResult],
                  generated_at: datetime) -> dict:
    generated_at_utc = generated_at.astimezone(timezone.utc)
    return {
        "generated_at": generated_at_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "config": run_config.to_json(),
        "summary": summary._asdict(),
        "results": [r.to_json() for r in results],
    }


def write_results(payload: dict, output_dir: str, generated_at: datetime) -> Path:
    out_dir = Path(output_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / f"{generated_at.strftime(config.RESULT_TIMESTAMP_FORMAT)}.json"
    output_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Detailed benchmark results saved to {output_path}")
    return output_path


def _fmt(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))  # 100.0 -> "100"
    return str(value)


def print_summary(run_config: RunConfig, summary: Summary, output_path: Path):
    print("VLM Benchmark Results")
    print(f"url: {run_config.url}")
    print(f"runs: {summary.count}")
    print(f"success_rate: {_fmt(summary.success_rate)}%")
    for field in ("mean_ms", "p50_ms", "p95_ms", "p99_ms", "min_ms", "max_ms"):
        print(f"{field}: {_fmt(getattr(summary, field))}")
    print(f"output: {output_path}")


async def benchmark(run_config: RunConfig) -> Path:
    images = collect_images(run_config.image, run_config.images_dir)
    results = await run_benchmark(run_config, images)
    summary = summarize(results)

    generated_at = datetime.now().astimezone()
    payload = build_payload(run_config, summary, results, generated_at)
    output_path = write_results(payload, run_config.output_dir, generated_at)
    print_summary(run_config, summary, output_path)
    return output_path


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    run_config = run_config_from_args(args)

    try:
        setup_logging(getattr(logging, args.log_level), args.log_file)
        asyncio.run(benchmark(run_config))
    except KeyboardInterrupt:
        logger.info("Benchmark interrupted by user (Ctrl+C).")
        return 130
    except BenchmarkSetupError as e:
        print(f"Benchmark failed: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.debug("Benchmark aborted", exc_info=True)
        print(f"Benchmark failed: {e}", file=sys.stderr)
        return 1
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
