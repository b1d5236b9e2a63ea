"""
Flask Configuration Classes

Environment-specific settings (Development, Testing, Production) for the
application factory, loaded from the process environment and an optional
``.env`` file through python-dotenv.

Key Components:
- ``BaseConfig``: values shared by every environment, read with ``os.getenv``
- ``DevelopmentConfig`` / ``TestingConfig`` / ``ProductionConfig``
- ``config_map`` and ``get_config`` for ``FLASK_ENV`` driven selection
- ``validate_configuration`` reporting unsafe settings

Usage:
    >>> from src.config import get_config
    >>> app.config.from_object(get_config('production'))
"""

import os
from typing import Dict, List, Optional, Type

import structlog
from dotenv import load_dotenv
from flask import Flask

from src.business.exceptions import ConfigurationError

# Load environment variables early
load_dotenv()

logger = structlog.get_logger("config.settings")

DEFAULT_SECRET_KEY = 'dev-secret-key'
DEFAULT_JWT_SECRET = 'dev-jwt-secret'


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes', 'on')


class BaseConfig:
    """
    Base configuration shared by all environments.

    Secrets fall back to development defaults; ``ProductionConfig`` refuses to
    start with them.
    """

    # Flask Core Configuration
    SECRET_KEY = os.getenv('SECRET_KEY', DEFAULT_SECRET_KEY)

    # Application Metadata
    APP_NAME = os.getenv('APP_NAME', 'commerce-api')
    APP_VERSION = os.getenv('APP_VERSION', '1.0.0')

    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    DEBUG = False
    TESTING = False

    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', '1048576'))  # 1MB
    JSON_SORT_KEYS = False

    # Session tokens
    JWT_SECRET = os.getenv('JWT_SECRET', DEFAULT_JWT_SECRET)
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRATION_MINUTES = int(os.getenv('JWT_EXPIRATION_MINUTES', '60'))
    PASSWORD_HASH_METHOD = os.getenv('PASSWORD_HASH_METHOD', 'pbkdf2:sha256')

    # MongoDB
    MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017')
    MONGODB_DATABASE = os.getenv('MONGODB_DATABASE', 'commerce')
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))
    MONGODB_ENSURE_INDEXES = _env_bool('MONGODB_ENSURE_INDEXES', 'true')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')
    REQUEST_LOGGING_ENABLED = _env_bool('REQUEST_LOGGING_ENABLED', 'true')

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """
        Initialize Flask application with base configuration.

        Args:
            app: Flask application instance
        """
        app.config['APP_NAME'] = cls.APP_NAME
        app.config['APP_VERSION'] = cls.APP_VERSION


class DevelopmentConfig(BaseConfig):
    """Local development: debug on, console logs."""

    FLASK_ENV = 'development'
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'console')


class TestingConfig(BaseConfig):
    """
    Test runs: no index creation, quiet logs and a separate database.

    Tests usually inject in-memory repositories, so MongoDB is never contacted.
    """

    FLASK_ENV = 'testing'
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    JWT_SECRET = 'testing-jwt-secret-0123456789abcdef'
    JWT_EXPIRATION_MINUTES = 5
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'
    MONGODB_DATABASE = os.getenv('MONGODB_TEST_DATABASE', 'commerce_test')
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = 100
    MONGODB_ENSURE_INDEXES = False
    LOG_LEVEL = 'WARNING'
    LOG_FORMAT = 'console'
    REQUEST_LOGGING_ENABLED = False


class ProductionConfig(BaseConfig):
    """Production: JSON logs, secrets must come from the environment."""

    FLASK_ENV = 'production'
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')

    @classmethod
    def init_app(cls, app: Flask) -> None:
        super().init_app(app)

        issues = validate_configuration(app.config)
        if issues:
            raise ConfigurationError(
                "Refusing to start with unsafe production configuration: " + "; ".join(issues),
                component='config'
            )

        logger.info(
            "Production configuration initialized",
            mongodb_database=app.config.get('MONGODB_DATABASE'),
            jwt_algorithm=app.config.get('JWT_ALGORITHM'),
        )


# Configuration mapping for environment-based selection
config_map: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,

    # Aliases for convenience
    'dev': DevelopmentConfig,
    'test': TestingConfig,
    'prod': ProductionConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Get configuration class for the specified environment.

    Args:
        environment: Target environment name (defaults to FLASK_ENV)

    Returns:
        Configuration class for the specified environment

    Raises:
        ValueError: If environment is not supported
    """
    if environment is None:
        environment = os.getenv('FLASK_ENV', 'development')

    environment = environment.lower()

    if environment not in config_map:
        raise ValueError(
            f"Unsupported environment '{environment}'. "
            f"Supported environments: {list(config_map.keys())}"
        )

    config_class = config_map[environment]
    logger.debug("Configuration class selected", environment=environment, config_class=config_class.__name__)
    return config_class


def validate_configuration(config) -> List[str]:
    """
    Report settings that are unsafe outside development.

    Args:
        config: Flask config mapping or configuration class

    Returns:
        List of human readable issues; empty when the configuration is safe
    """
    def read(key):
        if isinstance(config, dict):
            return config.get(key)
        return getattr(config, key, None)

    issues = []
    if not read('SECRET_KEY') or read('SECRET_KEY') == DEFAULT_SECRET_KEY:
        issues.append("SECRET_KEY must be set")
    if not read('JWT_SECRET') or read('JWT_SECRET') == DEFAULT_JWT_SECRET:
        issues.append("JWT_SECRET must be set")
    if read('DEBUG'):
        issues.append("DEBUG must be disabled")
    return issues


__all__ = [
    'BaseConfig', 'DevelopmentConfig', 'TestingConfig', 'ProductionConfig',
    'config_map', 'get_config', 'validate_configuration',
]
