"""
Prometheus metrics for monitoring the relay pipeline.

Defines and exposes metrics for:
- Messages emitted per source
- Poll latency and poll errors
- Delivery results per output channel
- Dispatch queue depth

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from bili_relay.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the bili-relay pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_emitted("live_status")
        metrics.record_delivery("slack", success=False)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.messages_emitted = Counter(
            "bili_relay_messages_emitted_total",
            "Total number of messages emitted by sources",
            ["source"],
        )

        self.poll_errors = Counter(
            "bili_relay_poll_errors_total",
            "Total per-account poll failures",
            ["source", "error_type"],
        )

        self.poll_latency = Histogram(
            "bili_relay_poll_latency_seconds",
            "Time to poll every tracked account once",
            ["source"],
            buckets=LATENCY_BUCKETS,
        )

        self.deliveries = Counter(
            "bili_relay_deliveries_total",
            "Total delivery attempts per output channel",
            ["output", "status"],  # status: success, failure
        )

        self.queue_depth = Gauge(
            "bili_relay_queue_depth",
            "Number of messages waiting in the dispatch queue",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_emitted(self, source: str, count: int = 1) -> None:
        self.messages_emitted.labels(source=source).inc(count)

    def record_poll(self, source: str, latency: float) -> None:
        self.poll_latency.labels(source=source).observe(latency)

    def record_poll_error(self, source: str, error_type: str) -> None:
        """
        Record a failed per-account poll.

        Args:
            source: Source name
            error_type: Error type/category
        """
        self.poll_errors.labels(source=source, error_type=error_type).inc()

    def record_delivery(self, output: str, success: bool) -> None:
        """
        Record the outcome of one delivery attempt.

        Args:
            output: Output channel name
            success: Whether the channel accepted the message
        """
        status = "success" if success else "failure"
        self.deliveries.labels(output=output, status=status).inc()

    def set_queue_depth(self, depth: int) -> None:
        self.queue_depth.set(depth)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
