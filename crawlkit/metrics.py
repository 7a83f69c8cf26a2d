import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict


@dataclass
class Totals:
    pages: int = 0
    bytes: int = 0
    errors: int = 0
    retries: int = 0
    fetch_ms_sum: float = 0.0

    @property
    def avg_fetch_ms(self) -> float:
        return self.fetch_ms_sum / max(1, self.pages)

    @property
    def megabytes(self) -> float:
        return self.bytes / (1024 * 1024)


class Metrics:
    """Crawl counters updated from fetch workers.

    Every attempted page or robots.txt fetch counts once in ``pages``;
    failed ones also count in ``errors``.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._totals = Totals()
        self._lock = threading.Lock()
        self._start = clock()

    def record_fetch(self, ok: bool, bytes_read: int, fetch_ms: float) -> None:
        with self._lock:
            totals = self._totals
            totals.pages += 1
            totals.bytes += max(0, bytes_read)
            totals.fetch_ms_sum += fetch_ms
            if not ok:
                totals.errors += 1

    def record_retry(self) -> None:
        with self._lock:
            self._totals.retries += 1

    def snapshot(self) -> tuple[Totals, float]:
        with self._lock:
            copied = Totals(**asdict(self._totals))
        return copied, max(1e-6, self._clock() - self._start)

    def as_dict(self) -> Dict[str, float]:
        totals, _ = self.snapshot()
        return {
            "fetched_pages": totals.pages,
            "fetched_bytes": totals.bytes,
            "fetch_errors": totals.errors,
            "fetch_retries": totals.retries,
        }


class StatsLogger(threading.Thread):
    """Logs a one-line throughput summary every ``interval_s`` seconds."""

    daemon = True

    def __init__(self, metrics: Metrics, interval_s: float, log_fn):
        super().__init__(name="stats-logger")
        self.metrics = metrics
        self.interval = max(0.5, interval_s)
        self._log = log_fn
        self._stop_event = threading.Event()

    def report(self) -> None:
        totals, elapsed = self.metrics.snapshot()
        self._log(
            "Perf: pages=%d, errors=%d, retries=%d, MB=%.2f, avg_fetch_ms=%.1f, pages/sec=%.2f",
            totals.pages,
            totals.errors,
            totals.retries,
            totals.megabytes,
            totals.avg_fetch_ms,
            totals.pages / elapsed,
        )

    def run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.report()

    def stop(self) -> None:
        self._stop_event.set()
