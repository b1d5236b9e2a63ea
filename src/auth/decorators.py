"""
Route Authentication Decorators

``require_authentication`` reads the ``Authorization`` header, decodes the
bearer token into a ``SessionModel`` stored on ``flask.g.session`` and checks
the session role against the roles allowed on the route.

Example:
    @api_bp.route('/customers', methods=['GET'])
    @require_authentication([Role.ADMIN, Role.MODERATOR])
    async def list_customers():
        session = g.session
        ...
"""

import asyncio
from functools import wraps
from typing import Any, Callable, Iterable, Optional, TypeVar, cast

import structlog
from flask import g, request
from prometheus_client import Counter

from src.auth.exceptions import InvalidCredentials, InvalidPermissions, SecurityErrorCode
from src.auth.session import extract_bearer_token, get_session_codec
from src.business.models import Role, SessionModel

logger = structlog.get_logger("auth.decorators")

F = TypeVar('F', bound=Callable[..., Any])

authentication_checks = Counter(
    'commerce_authentication_checks_total',
    'Route authentication decisions',
    ['result']
)


def authenticate_request(roles: Iterable[Role] = (), optional: bool = False) -> SessionModel:
    """
    Resolve the session of the current request.

    Args:
        roles: Roles allowed on the route; empty means any authenticated role
        optional: Anonymous callers get an empty session instead of an error

    Raises:
        InvalidCredentials: missing or invalid token on a non-optional route
        InvalidPermissions: session role not in ``roles``
    """
    token = extract_bearer_token(request.headers.get('Authorization'))
    if token is None:
        if optional:
            authentication_checks.labels(result='anonymous').inc()
            return SessionModel()
        authentication_checks.labels(result='missing_token').inc()
        raise InvalidCredentials("Bearer token missing", SecurityErrorCode.AUTH_TOKEN_MISSING)

    try:
        session = get_session_codec().decode(token)
    except InvalidCredentials:
        authentication_checks.labels(result='invalid_token').inc()
        raise

    allowed = [Role(role).value for role in roles]
    if allowed and session.role not in allowed:
        authentication_checks.labels(result='forbidden').inc()
        logger.warning(
            "Role not allowed on route",
            user_id=session.user_id,
            role=session.role,
            allowed_roles=allowed,
            endpoint=request.endpoint
        )
        raise InvalidPermissions(session.role)

    authentication_checks.labels(result='granted').inc()
    return session


def require_authentication(roles: Optional[Iterable[Role]] = None, optional: bool = False) -> Callable[[F], F]:
    """Decorator form of ``authenticate_request`` for sync and async views."""
    allowed_roles = tuple(roles or ())

    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                g.session = authenticate_request(allowed_roles, optional)
                return await func(*args, **kwargs)
            return cast(F, async_wrapper)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            g.session = authenticate_request(allowed_roles, optional)
            return func(*args, **kwargs)
        return cast(F, wrapper)

    return decorator


def get_current_session() -> SessionModel:
    return getattr(g, 'session', None) or SessionModel()


__all__ = ['authenticate_request', 'require_authentication', 'get_current_session']
