"""Credential login issuing bearer session tokens."""

from typing import Any, Dict, Mapping, Optional

from src.auth.exceptions import InvalidCredentials, SecurityErrorCode
from src.business.models import PublicUser, SessionModel
from src.business.ports import Hasher, Repository, TokenIssuer
from src.business.services.base import BaseBusinessService
from src.validation import ValidatorService, rules


class AuthenticationService(BaseBusinessService):
    """
    Exchanges an email and password for a session token.

    Unknown emails and wrong passwords fail identically with
    ``InvalidCredentials``; malformed input fails validation first.
    """

    service_name = 'authentication'

    def __init__(
        self,
        users: Repository,
        hasher: Hasher,
        token_issuer: TokenIssuer,
        validator: Optional[ValidatorService] = None
    ):
        super().__init__(SessionModel(), validator)
        self.users = users
        self.hasher = hasher
        self.token_issuer = token_issuer

    async def login(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('login'):
            sanitized = self.pick(request, ('email', 'password'))

            await self.validator.validate(
                {
                    'email': [rules.required(), rules.string(), rules.regex('email')],
                    'password': [rules.required(), rules.string()],
                },
                sanitized
            )

            users = await self.users.find_by([{'email': sanitized['email']}])
            user = users[0] if users else None

            if user is None or not self.hasher.compare(sanitized['password'], user.get('password')):
                raise InvalidCredentials("Email or password mismatch", SecurityErrorCode.AUTH_CREDENTIALS_INVALID)

            session = SessionModel(user_id=user['id'], role=user.get('role'))
            return {
                'token': self.token_issuer.encode(session),
                'user': self.shape(PublicUser, user),
            }


def create_authentication_service(repositories, hasher: Hasher, token_issuer: TokenIssuer) -> AuthenticationService:
    return AuthenticationService(repositories.get('users'), hasher, token_issuer)


__all__ = ['AuthenticationService', 'create_authentication_service']
