"""
Use-case services, one module per entity.

Each factory takes a repository provider (anything with
``get(entity, session)``, normally ``src.data.RepositoryFactory``), the
caller's ``SessionModel`` and, where secrets are involved, a ``Hasher``.
"""

from src.business.services.authentication import AuthenticationService, create_authentication_service
from src.business.services.base import BaseBusinessService
from src.business.services.customers import CustomerService, create_customer_service
from src.business.services.orders import OrderService, create_order_service
from src.business.services.payment_profiles import PaymentProfileService, create_payment_profile_service
from src.business.services.products import ProductService, create_product_service
from src.business.services.users import UserService, create_user_service

__all__ = [
    'BaseBusinessService',
    'AuthenticationService', 'CustomerService', 'OrderService', 'PaymentProfileService',
    'ProductService', 'UserService',
    'create_authentication_service', 'create_customer_service', 'create_order_service',
    'create_payment_profile_service', 'create_product_service', 'create_user_service',
]
