"""
Authentication Package

Bearer-token sessions for the commerce API.

    session.py: ``SessionTokenCodec`` (PyJWT, HS256) and its Flask wiring
    decorators.py: ``require_authentication(roles, optional)``
    hashing.py: ``PasswordHasher`` over werkzeug.security
    exceptions.py: ``InvalidCredentials`` (401), ``InvalidPermissions`` (403)
"""

from flask import Flask

from src.auth.decorators import authenticate_request, get_current_session, require_authentication
from src.auth.exceptions import InvalidCredentials, InvalidPermissions, SecurityErrorCode
from src.auth.hashing import PasswordHasher
from src.auth.session import SessionTokenCodec, extract_bearer_token, get_session_codec, init_session_codec


def init_auth(app: Flask) -> None:
    """Register the session codec and the password hasher on ``app``."""
    init_session_codec(app)
    app.extensions.setdefault(
        'password_hasher', PasswordHasher(method=app.config.get('PASSWORD_HASH_METHOD', 'pbkdf2:sha256'))
    )


__all__ = [
    'init_auth', 'authenticate_request', 'get_current_session', 'require_authentication',
    'InvalidCredentials', 'InvalidPermissions', 'SecurityErrorCode', 'PasswordHasher',
    'SessionTokenCodec', 'extract_bearer_token', 'get_session_codec', 'init_session_codec',
]
