"""
Prometheus Metrics Collection

Module-level prometheus-client collectors shared by the HTTP layer, the
business services, the validation engine and the data layer, plus the Flask
hooks that record request counts and latencies.

Collectors:
    HTTP_REQUESTS / HTTP_REQUEST_DURATION: per endpoint, method and status
    SERVICE_OPERATIONS / SERVICE_OPERATION_DURATION: per service operation and outcome
    VALIDATION_FAILURES: reported violations by rule name
    DATABASE_OPERATIONS: repository calls by collection, operation and outcome
"""

import time
from typing import Tuple

from flask import Flask, Response, g, request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

HTTP_REQUESTS = Counter(
    'commerce_http_requests_total',
    'Total HTTP requests processed',
    ['method', 'endpoint', 'status_code']
)

HTTP_REQUEST_DURATION = Histogram(
    'commerce_http_request_duration_seconds',
    'HTTP request processing duration in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

SERVICE_OPERATIONS = Counter(
    'commerce_service_operations_total',
    'Business service operations by outcome',
    ['service', 'operation', 'outcome']
)

SERVICE_OPERATION_DURATION = Histogram(
    'commerce_service_operation_duration_seconds',
    'Business service operation duration in seconds',
    ['service', 'operation']
)

VALIDATION_FAILURES = Counter(
    'commerce_validation_failures_total',
    'Validation violations reported, by rule',
    ['rule']
)

DATABASE_OPERATIONS = Counter(
    'commerce_database_operations_total',
    'Repository operations by collection and outcome',
    ['collection', 'operation', 'outcome']
)


def init_metrics(app: Flask) -> None:
    """Register request timing hooks on ``app``."""

    @app.before_request
    def _start_request_timer():
        g.metrics_start_time = time.perf_counter()

    @app.after_request
    def _record_request_metrics(response):
        start_time = getattr(g, 'metrics_start_time', None)
        endpoint = request.endpoint or 'unknown'
        HTTP_REQUESTS.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()
        if start_time is not None:
            HTTP_REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(time.perf_counter() - start_time)
        return response


def metrics_response() -> Tuple[Response, int]:
    """Prometheus exposition of the default registry."""
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST), 200


__all__ = [
    'HTTP_REQUESTS', 'HTTP_REQUEST_DURATION', 'SERVICE_OPERATIONS',
    'SERVICE_OPERATION_DURATION', 'VALIDATION_FAILURES', 'DATABASE_OPERATIONS',
    'init_metrics', 'metrics_response',
]
