"""
Commerce API source package.

Layered CRUD backend for users, customers, products, payment profiles and
orders. Requests flow from the Flask blueprints through the business services,
which validate input with the schema-driven engine in ``src.validation``
before delegating to the MongoDB repositories in ``src.data``.

The application factory lives in ``src.app``::

    from src.app import create_app
    app = create_app('development')
"""

__version__ = "1.0.0"
__title__ = "Commerce API"

PACKAGE_NAME = "src"
APPLICATION_NAME = "commerce-api"
DEFAULT_CONFIG_ENV = "development"
SUPPORTED_ENVIRONMENTS = ["development", "testing", "production"]
