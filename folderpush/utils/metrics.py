"""
Prometheus metrics for folder uploads.

Metrics Provided:
    - folderpush_upload_requests_total: Counter of upload attempts by status,
      category and pass (main/retry)
    - folderpush_upload_duration_seconds: Histogram of single-file upload latency
    - folderpush_upload_errors_total: Counter of upload API errors by kind
    - folderpush_retries_scheduled_total: Counter of files queued for retry
    - folderpush_active_uploads: Gauge of uploads currently in flight

Usage:
    from folderpush.utils.metrics import get_metrics

    metrics = get_metrics()
    with metrics.track_upload():
        client.upload(...)
    metrics.record_upload_success(category="TEMPLATE")

    # Expose metrics for scraping:
    python -m folderpush.utils.metrics --port 9090
"""

import os
import signal
from contextlib import contextmanager, nullcontext
from typing import Iterator, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from folderpush.utils.logging import get_logger

logger = get_logger(__name__)


class PrometheusMetrics:
    """
    Prometheus collectors for the upload pipeline.

    Every recording method is a no-op when the instance is disabled.

    Example:
        >>> metrics = PrometheusMetrics(registry=CollectorRegistry())
        >>> metrics.record_upload_success(category="DATA")
    """

    def __init__(self, enabled: bool = True, registry: Optional[CollectorRegistry] = None) -> None:
        """
        Args:
            enabled: Whether metrics collection is enabled
            registry: Prometheus registry (the default registry if None)
        """
        self.enabled = enabled
        self.registry = registry if registry is not None else REGISTRY

        if not self.enabled:
            logger.debug("Metrics collection disabled")
            return

        self.upload_requests = Counter(
            name="folderpush_upload_requests_total",
            documentation="Total number of single-file upload attempts",
            labelnames=["status", "category", "attempt"],  # attempt: main/retry
            registry=self.registry,
        )

        self.upload_duration = Histogram(
            name="folderpush_upload_duration_seconds",
            documentation="Time spent uploading a single file",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry,
        )

        self.upload_errors = Counter(
            name="folderpush_upload_errors_total",
            documentation="Total upload API errors",
            labelnames=["kind"],  # fatal/transient
            registry=self.registry,
        )

        self.retries_scheduled = Counter(
            name="folderpush_retries_scheduled_total",
            documentation="Files queued for the failure recovery pass",
            registry=self.registry,
        )

        self.active_uploads = Gauge(
            name="folderpush_active_uploads",
            documentation="Number of uploads currently in flight",
            registry=self.registry,
        )

    @contextmanager
    def _tracked(self) -> Iterator[None]:
        self.active_uploads.inc()
        try:
            with self.upload_duration.time():
                yield
        finally:
            self.active_uploads.dec()

    def track_upload(self):
        """
        Context manager timing one upload and counting it as in flight.

        Example:
            >>> with metrics.track_upload():
            ...     client.upload(account_id, path, dest, query)
        """
        if not self.enabled:
            return nullcontext()
        return self._tracked()

    def record_upload_success(self, category: str, attempt: str = "main") -> None:
        if not self.enabled:
            return
        self.upload_requests.labels(status="success", category=category, attempt=attempt).inc()

    def record_upload_failure(self, category: str, kind: str, attempt: str = "main") -> None:
        """
        Record a failed upload attempt.

        Args:
            category: FileCategory name of the file
            kind: Error kind (fatal, transient)
            attempt: "main" or "retry"
        """
        if not self.enabled:
            return
        self.upload_requests.labels(status="failure", category=category, attempt=attempt).inc()
        self.upload_errors.labels(kind=kind).inc()

    def record_retry_scheduled(self) -> None:
        if not self.enabled:
            return
        self.retries_scheduled.inc()


_metrics_instance: Optional[PrometheusMetrics] = None


def get_metrics() -> PrometheusMetrics:
    """
    Get the global metrics instance (singleton).

    Collection is disabled when METRICS_ENABLED is set to anything but "true".
    """
    global _metrics_instance

    if _metrics_instance is None:
        enabled = os.getenv("METRICS_ENABLED", "true").lower() == "true"
        _metrics_instance = PrometheusMetrics(enabled=enabled)

    return _metrics_instance


def start_metrics_server(port: int = 9090, addr: str = "0.0.0.0") -> None:
    """
    Start the Prometheus metrics HTTP server and block.

    Args:
        port: Port to listen on
        addr: Address to bind to
    """
    logger.info(f"Starting Prometheus metrics server on {addr}:{port}")
    start_http_server(port=port, addr=addr)
    logger.info(f"Metrics server running at http://{addr}:{port}/metrics")

    try:
        signal.pause()
    except KeyboardInterrupt:
        logger.info("Metrics server shutting down")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="folderpush metrics server")
    parser.add_argument("--port", type=int, default=9090, help="Metrics server port (default: 9090)")
    parser.add_argument("--addr", type=str, default="0.0.0.0", help="Address to bind to (default: 0.0.0.0)")
    args = parser.parse_args()

    start_metrics_server(port=args.port, addr=args.addr)
