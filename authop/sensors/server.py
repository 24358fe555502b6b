"""HTTP server exposing the operator's Prometheus metrics.

prometheus_client serves ``/metrics`` from its own daemon thread, so the
operator's event loop is never blocked by scrapes.
"""

import logging
from prometheus_client import CollectorRegistry, REGISTRY, start_http_server

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 8000


def init_metrics_server(
    port: int = DEFAULT_METRICS_PORT, registry: CollectorRegistry = REGISTRY
) -> None:
    """Start the metrics endpoint on `port`.

    Raises:
        OSError: the port could not be bound.
    """
    try:
        start_http_server(port, registry=registry)
    except OSError as e:
        logger.error(f"Failed to start metrics server on port {port}: {e}")
        raise
    logger.info(f"Prometheus metrics available at http://0.0.0.0:{port}/metrics")
