"""
Monitoring package: structured logging and Prometheus metrics.

    from src.monitoring import init_monitoring
    init_monitoring(app)
"""

from flask import Flask

from src.monitoring.logging import get_logger, init_request_logging, setup_structured_logging
from src.monitoring.metrics import init_metrics, metrics_response


def init_monitoring(app: Flask) -> None:
    """Configure logging and register request logging and metrics hooks."""
    setup_structured_logging(app)
    init_request_logging(app)
    init_metrics(app)


__all__ = [
    'init_monitoring', 'setup_structured_logging', 'init_request_logging',
    'init_metrics', 'metrics_response', 'get_logger',
]
