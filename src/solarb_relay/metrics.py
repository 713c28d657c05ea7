"""
Prometheus exporter startup shared by the relay and the bot
"""

import logging
from typing import Optional, Sequence

import prometheus_client

logger = logging.getLogger(__name__)


def start_metrics_server(port: int, fallback_ports: Sequence[int] = ()) -> Optional[int]:
    """Start the exporter on the first free port; None if every port is taken"""
    for candidate in [port, *fallback_ports]:
        try:
            prometheus_client.start_http_server(candidate)
            logger.info(f"Metrics server started on port {candidate}")
            return candidate
        except OSError as e:
            logger.warning(f"Port {candidate} unavailable for metrics ({e}), trying next port...")

    logger.warning("Could not start metrics server - all ports in use. Continuing without metrics.")
    return None
