"""Observability layer - logging and metrics."""

from bili_relay.observability.logging import OUTPUT_LOGGER, account_context, setup_logging
from bili_relay.observability.metrics import MetricsCollector, get_metrics

__all__ = ["OUTPUT_LOGGER", "account_context", "setup_logging", "MetricsCollector", "get_metrics"]
