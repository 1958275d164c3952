"""Performance sentinels for extraction and cache reuse."""

import os
from datetime import datetime, timedelta
from pathlib import Path
from time import perf_counter
from typing import Tuple

from plox.kernel.cache import CacheRoot, SeriesCache
from plox.kernel.spec import Line
from plox.kernel.timestamp import TimestampFormat


def _budget_from_env(var_name: str, default_ms: float) -> float:
    raw = os.getenv(var_name)
    if not raw:
        return default_ms
    try:
        return float(raw)
    except ValueError:
        return default_ms


SENTINEL_LINES = 50_000

MAX_COLD_SCAN_MS = _budget_from_env("PLOX_MAX_COLD_SCAN_MS", 3000.0)
MAX_WARM_CACHE_MS = _budget_from_env("PLOX_MAX_WARM_CACHE_MS", 1000.0)


def write_synthetic_log(path: Path, lines: int = SENTINEL_LINES) -> Path:
    """A log where every 10th line is a `request` line with a duration field."""
    start = datetime(2025, 1, 1)
    with open(path, "w", encoding="utf-8") as f:
        for i in range(lines):
            ts = (start + timedelta(milliseconds=i)).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
            if i % 10 == 0:
                f.write(f"{ts} INFO request id={i} duration={i % 97}.5ms\n")
            else:
                f.write(f"{ts} DEBUG heartbeat seq={i}\n")
    return path


def run_extraction_sentinel(log_file: Path, cache_dir: Path, force_regen: bool) -> Tuple[float, int]:
    """Extract `duration` once; returns elapsed ms and the sample count."""
    cache = SeriesCache(CacheRoot(cache_dir), force_regen=force_regen)
    line = Line.plot("duration", guard="request")
    start = perf_counter()
    samples = cache.get_or_extract(log_file, line, TimestampFormat())
    elapsed_ms = (perf_counter() - start) * 1000.0
    return elapsed_ms, len(samples)
