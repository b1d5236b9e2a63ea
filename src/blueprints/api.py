"""
Core API Blueprint

REST resources for users, customers, products, payment profiles and orders,
plus credential login. Views are thin: they gather the request model from the
path, the JSON body and the query string, build the entity service for the
caller's session and return the service result as JSON. Failures propagate as
exceptions to the handlers registered by the application factory.

Routes (prefix ``/api``):
    POST   /auth/login
    GET    /users                       admin
    POST   /users                       optional session
    GET    /users/<id>                  any role
    PUT    /users/<id>                  any role
    DELETE /users/<id>                  admin
    *      /customers[/<id>]            admin, moderator
    GET    /products[/<id>]             any role
    POST/PUT/DELETE /products[/<id>]    admin, moderator
    *      /payment-profiles[/<id>]     any role
    *      /orders[/<id>]               any role
"""

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from src.auth.decorators import get_current_session, require_authentication
from src.business.exceptions import ConfigurationError
from src.business.models import Role
from src.business.services import (
    create_authentication_service,
    create_customer_service,
    create_order_service,
    create_payment_profile_service,
    create_product_service,
    create_user_service,
)


api_bp = Blueprint('api', __name__, url_prefix='/api')

STAFF = (Role.ADMIN, Role.MODERATOR)


def format_api_response(data: Any = None, status_code: int = 200):
    """JSON response carrying the service result as the body."""
    return jsonify(data), status_code


def _extension(name: str) -> Any:
    try:
        return current_app.extensions[name]
    except KeyError:
        raise ConfigurationError(f"Application extension '{name}' is not initialized", component=name)


def request_model(record_id: Optional[str] = None) -> Dict[str, Any]:
    """Request model of the current call: JSON body, then the path id on top."""
    body = request.get_json(silent=True)
    model: Dict[str, Any] = dict(body) if isinstance(body, dict) else {}
    if record_id is not None:
        model['id'] = record_id
    return model


def list_query() -> Dict[str, Any]:
    return request.args.to_dict()


def _users():
    return create_user_service(
        _extension('repositories'), get_current_session(), _extension('password_hasher')
    )


def _customers():
    return create_customer_service(_extension('repositories'), get_current_session())


def _products():
    return create_product_service(_extension('repositories'), get_current_session())


def _payment_profiles():
    return create_payment_profile_service(
        _extension('repositories'), get_current_session(), _extension('password_hasher')
    )


def _orders():
    return create_order_service(_extension('repositories'), get_current_session())


# ============================================================================
# AUTHENTICATION
# ============================================================================

@api_bp.route('/auth/login', methods=['POST'])
async def login():
    service = create_authentication_service(
        _extension('repositories'), _extension('password_hasher'), _extension('session_codec')
    )
    return format_api_response(await service.login(request_model()))


# ============================================================================
# USERS
# ============================================================================

@api_bp.route('/users', methods=['GET'])
@require_authentication([Role.ADMIN])
async def list_users():
    return format_api_response(await _users().list(list_query()))


@api_bp.route('/users', methods=['POST'])
@require_authentication(optional=True)
async def create_user():
    """Sign-up for anonymous callers; admins may assign any role."""
    return format_api_response(await _users().create(request_model()), 201)


@api_bp.route('/users/<user_id>', methods=['GET'])
@require_authentication()
async def show_user(user_id: str):
    return format_api_response(await _users().show({'id': user_id}))


@api_bp.route('/users/<user_id>', methods=['PUT'])
@require_authentication()
async def update_user(user_id: str):
    return format_api_response(await _users().update(request_model(user_id)))


@api_bp.route('/users/<user_id>', methods=['DELETE'])
@require_authentication([Role.ADMIN])
async def remove_user(user_id: str):
    return format_api_response(await _users().remove({'id': user_id}))


# ============================================================================
# CUSTOMERS
# ============================================================================

@api_bp.route('/customers', methods=['GET'])
@require_authentication(STAFF)
async def list_customers():
    return format_api_response(await _customers().list(list_query()))


@api_bp.route('/customers', methods=['POST'])
@require_authentication(STAFF)
async def create_customer():
    return format_api_response(await _customers().create(request_model()), 201)


@api_bp.route('/customers/<customer_id>', methods=['GET'])
@require_authentication(STAFF)
async def show_customer(customer_id: str):
    return format_api_response(await _customers().show({'id': customer_id}))


@api_bp.route('/customers/<customer_id>', methods=['PUT'])
@require_authentication(STAFF)
async def update_customer(customer_id: str):
    return format_api_response(await _customers().update(request_model(customer_id)))


@api_bp.route('/customers/<customer_id>', methods=['DELETE'])
@require_authentication(STAFF)
async def remove_customer(customer_id: str):
    return format_api_response(await _customers().remove({'id': customer_id}))


# ============================================================================
# PRODUCTS
# ============================================================================

@api_bp.route('/products', methods=['GET'])
@require_authentication()
async def list_products():
    return format_api_response(await _products().list(list_query()))


@api_bp.route('/products', methods=['POST'])
@require_authentication(STAFF)
async def create_product():
    return format_api_response(await _products().create(request_model()), 201)


@api_bp.route('/products/<product_id>', methods=['GET'])
@require_authentication()
async def show_product(product_id: str):
    return format_api_response(await _products().show({'id': product_id}))


@api_bp.route('/products/<product_id>', methods=['PUT'])
@require_authentication(STAFF)
async def update_product(product_id: str):
    return format_api_response(await _products().update(request_model(product_id)))


@api_bp.route('/products/<product_id>', methods=['DELETE'])
@require_authentication(STAFF)
async def remove_product(product_id: str):
    return format_api_response(await _products().remove({'id': product_id}))


# ============================================================================
# PAYMENT PROFILES
# ============================================================================

@api_bp.route('/payment-profiles', methods=['GET'])
@require_authentication()
async def list_payment_profiles():
    return format_api_response(await _payment_profiles().list(list_query()))


@api_bp.route('/payment-profiles', methods=['POST'])
@require_authentication()
async def create_payment_profile():
    return format_api_response(await _payment_profiles().create(request_model()), 201)


@api_bp.route('/payment-profiles/<payment_profile_id>', methods=['GET'])
@require_authentication()
async def show_payment_profile(payment_profile_id: str):
    return format_api_response(await _payment_profiles().show({'id': payment_profile_id}))


@api_bp.route('/payment-profiles/<payment_profile_id>', methods=['PUT'])
@require_authentication()
async def update_payment_profile(payment_profile_id: str):
    return format_api_response(await _payment_profiles().update(request_model(payment_profile_id)))


@api_bp.route('/payment-profiles/<payment_profile_id>', methods=['DELETE'])
@require_authentication()
async def remove_payment_profile(payment_profile_id: str):
    return format_api_response(await _payment_profiles().remove({'id': payment_profile_id}))


# ============================================================================
# ORDERS
# ============================================================================

@api_bp.route('/orders', methods=['GET'])
@require_authentication()
async def list_orders():
    return format_api_response(await _orders().list(list_query()))


@api_bp.route('/orders', methods=['POST'])
@require_authentication()
async def create_order():
    return format_api_response(await _orders().create(request_model()), 201)


@api_bp.route('/orders/<order_id>', methods=['GET'])
@require_authentication()
async def show_order(order_id: str):
    return format_api_response(await _orders().show({'id': order_id}))


@api_bp.route('/orders/<order_id>', methods=['PUT'])
@require_authentication()
async def update_order(order_id: str):
    return format_api_response(await _orders().update(request_model(order_id)))


@api_bp.route('/orders/<order_id>', methods=['DELETE'])
@require_authentication()
async def remove_order(order_id: str):
    return format_api_response(await _orders().remove({'id': order_id}))


__all__ = ['api_bp', 'format_api_response', 'request_model', 'list_query']
