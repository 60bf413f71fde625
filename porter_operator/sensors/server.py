"""HTTP server for exposing Prometheus metrics.

Serves /metrics from prometheus_client's built-in HTTP server in a daemon
thread so the operator event loop is never blocked.
"""

import logging
from threading import Thread
from prometheus_client import start_http_server

logger = logging.getLogger(__name__)


def start_metrics_server(port: int) -> None:
    """Start Prometheus metrics HTTP server listening on `port`."""
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics available at http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server on port {port}: {e}")
        raise


def init_metrics_server(port: int) -> Thread:
    """Start the metrics server in a background daemon thread."""
    thread = Thread(target=start_metrics_server, args=(port,), daemon=True)
    thread.start()
    logger.info(f"Metrics server initialization complete (port: {port})")
    return thread
