"""
Data Access Package

MongoDB persistence for the commerce API.

    mongodb.py: lazily connected ``MongoDBManager`` and its global accessors
    repositories.py: one repository per collection plus ``RepositoryFactory``
    exceptions.py: ``DatabaseException`` hierarchy and PyMongo error mapping

Flask integration:
    manager = init_mongodb_manager(app)
    app.extensions['repositories'] = RepositoryFactory(manager)
    register_database_error_handlers(app)
"""

from src.data.exceptions import (
    ConnectionException, DatabaseException, QueryException, TimeoutException,
    handle_database_error, register_database_error_handlers
)
from src.data.mongodb import MongoDBManager, get_mongodb_manager, init_mongodb_manager
from src.data.repositories import (
    CustomerRepository, MongoRepository, OrderItemRepository, OrderRepository,
    PaymentProfileRepository, ProductRepository, RepositoryFactory, UserRepository,
    build_filter_query
)

__all__ = [
    'ConnectionException', 'DatabaseException', 'QueryException', 'TimeoutException',
    'handle_database_error', 'register_database_error_handlers',
    'MongoDBManager', 'get_mongodb_manager', 'init_mongodb_manager',
    'CustomerRepository', 'MongoRepository', 'OrderItemRepository', 'OrderRepository',
    'PaymentProfileRepository', 'ProductRepository', 'RepositoryFactory', 'UserRepository',
    'build_filter_query',
]
