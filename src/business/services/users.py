"""User accounts: CRUD with unique emails, hashed passwords and role limits."""

from typing import Any, Dict, List, Mapping, Optional

from src.business import constants
from src.business.models import PublicUser, Role, SessionModel
from src.business.ports import Hasher, Repository
from src.business.services.base import BaseBusinessService, Schema, filter_schema, text_filter
from src.validation import ValidatorService, rules
from src.validation.rules import Rule

USER_FIELDS = ('name', 'email', 'password', 'role', 'image')
USER_ROLES = [role.value for role in Role]


class UserService(BaseBusinessService):
    """
    User use cases.

    Only admin sessions may create or promote users to ``admin`` or
    ``moderator``; everyone else (anonymous sign-up included) is limited to
    the ``customer`` role. Passwords are hashed before they are stored and
    never appear in a response.
    """

    service_name = 'users'

    def __init__(
        self,
        users: Repository,
        hasher: Hasher,
        session: Optional[SessionModel] = None,
        validator: Optional[ValidatorService] = None
    ):
        super().__init__(session, validator)
        self.users = users
        self.hasher = hasher

    def _role_rules(self, model: Mapping[str, Any]) -> List[Rule]:
        return [
            rules.string(),
            rules.in_(USER_ROLES),
            rules.custom(
                lambda: self.is_admin or model.get('role') in (None, Role.CUSTOMER.value),
                'filledRole',
                "Only an admin can provide a role different from customer"
            ),
        ]

    def _field_rules(self, model: Mapping[str, Any], required: bool) -> Schema:
        presence: List[Rule] = [rules.required()] if required else []
        return {
            'name': presence + [
                rules.string(),
                rules.regex('name'),
                rules.length(constants.MIN_NAME_LENGTH, constants.MAX_NAME_LENGTH),
            ],
            'email': presence + [
                rules.string(),
                rules.regex('email'),
                rules.length(constants.MIN_EMAIL_LENGTH, constants.MAX_EMAIL_LENGTH),
            ],
            'password': presence + [
                rules.string(),
                rules.regex('password'),
                rules.length(constants.MIN_PASSWORD_LENGTH, constants.MAX_PASSWORD_LENGTH),
            ],
            'role': presence + self._role_rules(model),
            'image': [rules.string(), rules.regex('url')],
        }

    def _hash_password(self, sanitized: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(sanitized.get('password'), str):
            return {**sanitized, 'password': self.hasher.hash(sanitized['password'])}
        return sanitized

    async def create(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('create'):
            sanitized = self.pick(request, USER_FIELDS)

            await self.validator.validate(self._field_rules(sanitized, required=True), sanitized)

            users = await self.users.find_by([{'email': sanitized['email']}])

            await self.validator.validate(
                {'email': [rules.unique('users', [('email', 'email')])]},
                sanitized,
                {'users': users}
            )

            created = await self.users.create([self._hash_password(sanitized)])
            return self.shape(PublicUser, sanitized, created[0])

    async def update(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('update'):
            sanitized = self.pick(request, ('id',) + USER_FIELDS)

            await self.validator.validate(
                {'id': self.id_rules(), **self._field_rules(sanitized, required=False)},
                sanitized
            )

            filters = [{'id': sanitized['id']}]
            if 'email' in sanitized:
                filters.append({'email': sanitized['email']})
            users = await self.users.find_by(filters)

            await self.validator.validate(
                {
                    'id': self.id_exists('users'),
                    'email': [rules.unique('users', [('email', 'email')], ignore_props=[('id', 'id')])],
                },
                sanitized,
                {'users': users}
            )

            patch = self._hash_password({k: v for k, v in sanitized.items() if k != 'id'})
            updated = await self.users.update({'id': sanitized['id']}, patch)
            return self.shape(
                PublicUser,
                self.find_by_id(users, sanitized['id']),
                sanitized,
                self.first_or_missing(updated, 'User', sanitized['id'])
            )

    async def remove(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('remove'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            users = await self.users.find_by([{'id': sanitized['id']}])

            await self.validator.validate({'id': self.id_exists('users')}, sanitized, {'users': users})

            removed = await self.users.remove({'id': sanitized['id']})
            return self.shape(PublicUser, users[0], self.first_or_missing(removed, 'User', sanitized['id']))

    async def show(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('show'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            users = await self.users.find_by([{'id': sanitized['id']}])

            await self.validator.validate({'id': self.id_exists('users')}, sanitized, {'users': users})

            return self.shape(PublicUser, users[0])

    async def list(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('list'):
            query = self.pick_list_query(request)

            filters = filter_schema(constants.USER_FILTER_FIELDS, {
                'name': text_filter(
                    rules.regex('name'),
                    rules.length(constants.MIN_NAME_LENGTH, constants.MAX_NAME_LENGTH)
                ),
                'email': text_filter(
                    rules.regex('email'),
                    rules.length(constants.MIN_EMAIL_LENGTH, constants.MAX_EMAIL_LENGTH)
                ),
                'role': text_filter(rules.in_([role.value for role in Role])),
            })
            await self.validator.validate(self.list_schema(constants.USER_SORT_FIELDS, filters), query)

            page = await self.users.list(query)
            return self.shape_page(PublicUser, page)


def create_user_service(repositories, session: Optional[SessionModel], hasher: Hasher) -> UserService:
    return UserService(repositories.get('users', session), hasher, session)


__all__ = ['UserService', 'USER_FIELDS', 'create_user_service']
