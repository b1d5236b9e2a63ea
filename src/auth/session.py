"""
Session Token Management

Bearer tokens are HS256-signed JWTs (PyJWT) carrying the session claims
``userId`` and ``role`` plus ``iat``/``exp``. Decoding a token yields the
``SessionModel`` handed to the business services for audit stamping and
ownership decisions.

Example:
    codec = SessionTokenCodec(secret_key='...', expiration_minutes=60)
    token = codec.encode(SessionModel(user_id=user['id'], role=user['role']))
    session = codec.decode(token)
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
import structlog
from flask import Flask, current_app
from pydantic import ValidationError

from src.auth.exceptions import InvalidCredentials
from src.business.models import SessionModel

logger = structlog.get_logger("auth.session")

BEARER_PREFIX = re.compile(r"^bearer\s?", re.IGNORECASE)
REQUIRED_CLAIMS = ('userId', 'role', 'exp')


class SessionTokenCodec:
    """Issues and verifies session JWTs."""

    def __init__(self, secret_key: str, algorithm: str = 'HS256', expiration_minutes: int = 60):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expiration = timedelta(minutes=expiration_minutes)

    def encode(self, session: SessionModel, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            'userId': session.user_id,
            'role': session.role,
            'iat': int(now.timestamp()),
            'exp': int((now + (expires_delta or self.expiration)).timestamp()),
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info("Session token issued", user_id=session.user_id, role=session.role)
        return token

    def decode(self, token: str) -> SessionModel:
        """
        Verify ``token`` and return its session.

        Raises:
            InvalidCredentials: bad signature, expired, or missing claims
        """
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={'require': list(REQUIRED_CLAIMS)}
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidCredentials("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidCredentials(f"Token is invalid: {e}") from e

        try:
            session = SessionModel.model_validate({'userId': claims['userId'], 'role': claims['role']})
        except ValidationError as e:
            raise InvalidCredentials("Token claims are invalid") from e

        if not session.is_authenticated or session.role is None:
            raise InvalidCredentials("Token claims are incomplete")
        return session


def extract_bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Strip an optional ``Bearer`` prefix; empty headers give ``None``."""
    if not header_value:
        return None
    token = BEARER_PREFIX.sub('', header_value.strip(), count=1)
    return token or None


def init_session_codec(app: Flask) -> SessionTokenCodec:
    codec = SessionTokenCodec(
        secret_key=app.config['JWT_SECRET'],
        algorithm=app.config.get('JWT_ALGORITHM', 'HS256'),
        expiration_minutes=int(app.config.get('JWT_EXPIRATION_MINUTES', 60)),
    )
    app.extensions['session_codec'] = codec
    return codec


def get_session_codec() -> SessionTokenCodec:
    """
    Raises:
        RuntimeError: If ``init_session_codec`` was not called for the app
    """
    codec = current_app.extensions.get('session_codec')
    if codec is None:
        raise RuntimeError("Session codec not initialized. Call init_session_codec() first.")
    return codec


__all__ = [
    'SessionTokenCodec', 'extract_bearer_token', 'init_session_codec', 'get_session_codec',
    'BEARER_PREFIX',
]
