import logging
import threading

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

from .metrics import Metrics


logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Republishes collector ``Metrics`` totals as Prometheus series."""

    def __init__(self, metrics: Metrics, port: int = 8000, registry: CollectorRegistry | None = None) -> None:
        self.metrics = metrics
        self.port = port
        self.registry = registry or CollectorRegistry()
        self._updater: threading.Thread | None = None
        self._stop_event = threading.Event()

        self.pages_total = Counter('crawlkit_fetches_total', 'Total number of completed fetches', registry=self.registry)
        self.bytes_total = Counter('crawlkit_bytes_total', 'Total number of body bytes downloaded', registry=self.registry)
        self.errors_total = Counter('crawlkit_fetch_errors_total', 'Total number of failed fetches', registry=self.registry)
        self.retries_total = Counter('crawlkit_fetch_retries_total', 'Total number of fetch retries', registry=self.registry)
        self.pages_per_second = Gauge('crawlkit_fetches_per_second', 'Average fetch rate since start', registry=self.registry)
        self.avg_fetch_duration_seconds = Gauge(
            'crawlkit_avg_fetch_duration_seconds', 'Average fetch duration in seconds', registry=self.registry
        )

        self._last = {"pages": 0, "bytes": 0, "errors": 0, "retries": 0}

    def start(self) -> None:
        start_http_server(self.port, registry=self.registry)
        logger.info("Prometheus metrics server started on port %d", self.port)

        self._updater = threading.Thread(target=self._update_metrics_loop, name="prometheus-updater", daemon=True)
        self._updater.start()

    def _update_metrics_loop(self) -> None:
        while not self._stop_event.is_set():
            self.update()
            self._stop_event.wait(5.0)

    def update(self) -> None:
        totals, elapsed = self.metrics.snapshot()
        counters = {
            "pages": (totals.pages, self.pages_total),
            "bytes": (totals.bytes, self.bytes_total),
            "errors": (totals.errors, self.errors_total),
            "retries": (totals.retries, self.retries_total),
        }
        for name, (value, counter) in counters.items():
            delta = value - self._last[name]
            if delta > 0:
                counter.inc(delta)
            self._last[name] = value

        self.pages_per_second.set(totals.pages / elapsed)
        if totals.pages > 0:
            self.avg_fetch_duration_seconds.set(totals.fetch_ms_sum / totals.pages / 1000.0)

    def stop(self) -> None:
        self._stop_event.set()
        if self._updater:
            self._updater.join(timeout=2.0)
        self.update()
