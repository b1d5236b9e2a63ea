"""
Flask Configuration Package

Usage:
    >>> from src.config import get_config
    >>> app.config.from_object(get_config('production'))
"""

from src.config.settings import (
    BaseConfig,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    config_map,
    get_config,
    validate_configuration,
)

__all__ = [
    'BaseConfig', 'DevelopmentConfig', 'TestingConfig', 'ProductionConfig',
    'config_map', 'get_config', 'validate_configuration',
]
