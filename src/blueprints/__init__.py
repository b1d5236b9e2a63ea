"""
Flask Blueprints Package

    api.py: REST resources under ``/api``
    health.py: ``/health`` and ``/metrics``

Example:
    from src.blueprints import register_blueprints

    def create_app():
        app = Flask(__name__)
        register_blueprints(app)
        return app
"""

from typing import Dict, List

import structlog
from flask import Flask

from src.blueprints.api import api_bp
from src.blueprints.health import health_bp, init_health_blueprint

logger = structlog.get_logger("blueprints")


def register_blueprints(app: Flask) -> Dict[str, List[str]]:
    """
    Register every blueprint on ``app``.

    Returns:
        Registered blueprint names and the number of routes each contributes
    """
    init_health_blueprint(app)
    app.register_blueprint(api_bp)

    registered = [health_bp.name, api_bp.name]
    routes = [
        rule.rule for rule in app.url_map.iter_rules()
        if rule.endpoint.split('.', 1)[0] in registered
    ]
    logger.info("Blueprints registered", blueprints=registered, total_routes=len(routes))
    return {'blueprints': registered, 'routes': routes}


__all__ = ['api_bp', 'health_bp', 'register_blueprints']
