"""HTTP server for the Prometheus metrics endpoint."""

from __future__ import annotations

import logging

from prometheus_client import start_http_server

logger = logging.getLogger(__name__)


def start_metrics_server(port: int = 9090) -> None:
    """Serve /metrics from a background thread on *port*."""
    start_http_server(port)
    logger.info("Prometheus metrics server started on port %d", port)
