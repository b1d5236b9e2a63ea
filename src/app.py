"""
Flask Application Factory

Builds the commerce API application:

1. configuration from ``src.config`` (``FLASK_ENV`` selects the class)
2. structlog logging, request correlation and Prometheus hooks
3. MongoDB manager and the repository factory, unless repositories are injected
4. session token codec and password hasher
5. blueprints
6. JSON error handlers

Usage:
    # Development server
    export FLASK_ENV=development
    flask --app app run

    # Tests with in-memory repositories
    app = create_app('testing', repositories=InMemoryRepositories())
"""

import time
from typing import Any, Dict, Optional

import structlog
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from src.auth import init_auth
from src.blueprints import register_blueprints
from src.business.exceptions import BaseBusinessException
from src.config import get_config
from src.data import DatabaseException, RepositoryFactory, init_mongodb_manager, register_database_error_handlers
from src.monitoring import init_monitoring

logger = structlog.get_logger("app")

INTERNAL_ERROR_BODY = {'name': 'InternalException', 'code': 500, 'message': 'Something went wrong'}


class FlaskApplicationFactory:
    """Creates configured Flask applications and records how long each step took."""

    def __init__(self):
        self.initialization_metrics: Dict[str, float] = {}

    def create_application(
        self,
        config_name: Optional[str] = None,
        repositories: Any = None,
        **config_overrides
    ) -> Flask:
        """
        Create and configure a Flask application.

        Args:
            config_name: Configuration environment name (development, testing, production)
            repositories: Repository provider with ``get(entity, session)``; when
                omitted a MongoDB backed ``RepositoryFactory`` is created
            **config_overrides: Flask config values applied after the config class

        Returns:
            Flask: Configured application instance
        """
        creation_start_time = time.perf_counter()

        app = Flask(__name__.split('.')[0])

        self._configure_application(app, config_name, **config_overrides)
        init_monitoring(app)
        self._initialize_data_layer(app, repositories)
        init_auth(app)
        register_blueprints(app)
        self._configure_error_handlers(app)

        self.initialization_metrics['total_creation_time'] = time.perf_counter() - creation_start_time
        logger.info(
            "Flask application created",
            environment=app.config.get('FLASK_ENV'),
            creation_time_ms=round(self.initialization_metrics['total_creation_time'] * 1000, 2)
        )
        return app

    def _configure_application(self, app: Flask, config_name: Optional[str], **config_overrides) -> None:
        config_class = get_config(config_name)
        app.config.from_object(config_class)
        app.config.update(config_overrides)
        config_class.init_app(app)

    def _initialize_data_layer(self, app: Flask, repositories: Any) -> None:
        if repositories is not None:
            app.extensions['repositories'] = repositories
            logger.info("Injected repositories registered", provider=type(repositories).__name__)
            return

        manager = init_mongodb_manager(app)
        factory = RepositoryFactory(manager)
        app.extensions['repositories'] = factory

        if app.config.get('MONGODB_ENSURE_INDEXES'):
            try:
                factory.ensure_indexes()
            except DatabaseException as e:
                logger.warning("Index creation skipped, database unavailable", error_type=type(e).__name__)

    def _configure_error_handlers(self, app: Flask) -> None:
        register_database_error_handlers(app)

        @app.errorhandler(BaseBusinessException)
        def handle_business_exception(error: BaseBusinessException):
            return error.to_flask_response()

        @app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            logger.info(
                "HTTP error",
                status_code=error.code,
                endpoint=request.endpoint,
                method=request.method
            )
            return jsonify({
                'name': error.name.replace(' ', ''),
                'code': error.code,
                'message': error.description,
            }), error.code

        @app.errorhandler(Exception)
        def handle_unexpected_error(error: Exception):
            logger.error(
                "Unexpected error",
                error_message=str(error),
                error_type=type(error).__name__,
                endpoint=request.endpoint,
                method=request.method,
                exc_info=True
            )
            return jsonify(INTERNAL_ERROR_BODY), 500


_application_factory = FlaskApplicationFactory()


def create_app(config_name: Optional[str] = None, repositories: Any = None, **config_overrides) -> Flask:
    """
    Create the Flask application.

    Examples:
        app = create_app('development')
        app = create_app('testing', repositories=fake_repositories, JWT_EXPIRATION_MINUTES=1)
    """
    return _application_factory.create_application(config_name, repositories, **config_overrides)


__all__ = ['create_app', 'FlaskApplicationFactory', 'INTERNAL_ERROR_BODY']
