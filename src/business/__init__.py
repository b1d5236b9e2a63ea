"""
Business Logic Package

Domain layer of the commerce API: constants, pydantic models, the ports the
services depend on, the business exception hierarchy and, in
``src.business.services``, one use-case service per entity.

Package Components:
    constants.py: paging limits, field lengths, filterable and sortable fields
    models.py: public pydantic models, ``SessionModel``, ``Page``
    ports.py: ``Repository`` and ``Hasher`` protocols
    exceptions.py: ``BaseBusinessException``, ``ValidationException``
    services/: ``UserService``, ``CustomerService``, ``ProductService``,
        ``PaymentProfileService``, ``OrderService``, ``AuthenticationService``

Usage Examples:
    from src.business.services import create_user_service

    service = create_user_service(repositories, session, hasher)
    user = await service.create({'name': 'John Doe', ...})

Services are imported from their own package so that the validation engine,
which raises ``ValidationException``, can import this package without pulling
the services in.
"""

from src.business.exceptions import (
    BaseBusinessException, ConfigurationError, ErrorCategory, ErrorSeverity,
    ResourceNotFoundError, ValidationException, ValidationItem
)
from src.business.models import (
    CardType, Customer, Order, OrderItem, OrderWithItems, Page, PaymentMethod,
    Product, ProductCategory, PublicPaymentProfile, PublicUser, Role, SessionModel
)
from src.business.ports import Hasher, Repository

__all__ = [
    # Exceptions
    'BaseBusinessException', 'ConfigurationError', 'ErrorCategory', 'ErrorSeverity',
    'ResourceNotFoundError', 'ValidationException', 'ValidationItem',

    # Models
    'CardType', 'Customer', 'Order', 'OrderItem', 'OrderWithItems', 'Page', 'PaymentMethod',
    'Product', 'ProductCategory', 'PublicPaymentProfile', 'PublicUser', 'Role', 'SessionModel',

    # Ports
    'Hasher', 'Repository',
]
