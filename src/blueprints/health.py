"""
Health Monitoring Blueprint

Endpoints for load balancers and monitoring systems:

- ``/health``: application liveness plus a MongoDB ping; 503 when a
  configured dependency is unhealthy
- ``/metrics``: Prometheus exposition of the default registry
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from flask import Blueprint, Flask, current_app, jsonify
from prometheus_client import Counter

from src.monitoring.metrics import metrics_response

logger = structlog.get_logger("blueprints.health")

health_bp = Blueprint('health', __name__, url_prefix='')

health_check_requests = Counter(
    'commerce_health_check_requests_total',
    'Total number of health check requests',
    ['status']
)


class HealthStatus:
    HEALTHY = 'healthy'
    UNHEALTHY = 'unhealthy'
    NOT_CONFIGURED = 'not_configured'


def check_application_health() -> Dict[str, Any]:
    """Overall status plus the per-dependency results."""
    dependencies: Dict[str, Any] = {}

    manager = current_app.extensions.get('mongodb')
    if manager is None:
        dependencies['mongodb'] = {'status': HealthStatus.NOT_CONFIGURED}
    else:
        dependencies['mongodb'] = manager.health_check()

    unhealthy = [
        name for name, result in dependencies.items()
        if result['status'] == HealthStatus.UNHEALTHY
    ]

    return {
        'status': HealthStatus.UNHEALTHY if unhealthy else HealthStatus.HEALTHY,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'application': {
            'name': current_app.config.get('APP_NAME'),
            'version': current_app.config.get('APP_VERSION'),
        },
        'dependencies': dependencies,
    }


@health_bp.route('/health', methods=['GET'])
def basic_health():
    """
    Application health for load balancer checks.

    Returns:
        HTTP 200 if healthy, HTTP 503 if a dependency is unhealthy
    """
    health_status = check_application_health()
    health_check_requests.labels(status=health_status['status']).inc()

    if health_status['status'] == HealthStatus.HEALTHY:
        return jsonify(health_status), 200

    logger.warning("Health check failed", dependencies=health_status['dependencies'])
    return jsonify(health_status), 503


@health_bp.route('/metrics', methods=['GET'])
def prometheus_metrics():
    response, status_code = metrics_response()
    response.headers['Cache-Control'] = 'no-cache'
    return response, status_code


def init_health_blueprint(app: Flask) -> None:
    app.register_blueprint(health_bp)
    logger.debug("Health monitoring Blueprint initialized", endpoints=['health', 'metrics'])


__all__ = ['health_bp', 'HealthStatus', 'check_application_health', 'init_health_blueprint']
