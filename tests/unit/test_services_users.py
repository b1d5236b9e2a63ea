"""
Unit tests for the user and authentication services.

Services run against the real validation engine and the in-memory
repositories from ``tests/conftest.py``.
"""

import uuid

import pytest

from src.auth.exceptions import InvalidCredentials, SecurityErrorCode
from src.auth.session import SessionTokenCodec
from src.business.exceptions import ValidationException
from src.business.services import AuthenticationService, UserService, create_user_service

JOHN = {'name': 'John Doe', 'email': 'john@example.com', 'password': 'Abc@1234', 'role': 'customer'}


def violations(exc_info):
    return [(item.field, item.rule) for item in exc_info.value.validations]


@pytest.fixture
def codec():
    return SessionTokenCodec(secret_key='unit-test-secret-0123456789abcdef', expiration_minutes=5)


@pytest.fixture
def anonymous_users(repositories, hasher, anonymous_session):
    return create_user_service(repositories, anonymous_session, hasher)


@pytest.fixture
def admin_users(repositories, hasher, admin_session):
    return create_user_service(repositories, admin_session, hasher)


class TestUserCreate:

    async def test_sign_up_as_customer(self, anonymous_users, repositories, hasher):
        user = await anonymous_users.create({**JOHN, 'unexpected': 'dropped'})

        assert uuid.UUID(user['id']).version == 4
        assert user['name'] == 'John Doe'
        assert user['email'] == 'john@example.com'
        assert user['role'] == 'customer'
        assert 'createdAt' in user
        assert 'password' not in user
        assert 'unexpected' not in user

        stored = repositories.collections['users'][0]
        assert stored['password'] != 'Abc@1234'
        assert hasher.compare('Abc@1234', stored['password'])

    async def test_anonymous_callers_cannot_pick_privileged_roles(self, anonymous_users, repositories):
        with pytest.raises(ValidationException) as exc_info:
            await anonymous_users.create({**JOHN, 'role': 'admin'})

        assert violations(exc_info) == [('role', 'filledRole')]
        assert exc_info.value.validations[0].message == "Only an admin can provide a role different from customer"
        assert repositories.collections['users'] == []

    async def test_moderators_cannot_pick_privileged_roles(self, repositories, hasher, moderator_session):
        moderator_users = create_user_service(repositories, moderator_session, hasher)

        with pytest.raises(ValidationException) as exc_info:
            await moderator_users.create({**JOHN, 'role': 'moderator'})

        assert violations(exc_info) == [('role', 'filledRole')]

    async def test_unknown_roles_fail_membership_first(self, anonymous_users):
        with pytest.raises(ValidationException) as exc_info:
            await anonymous_users.create({**JOHN, 'role': 'root'})

        assert violations(exc_info) == [('role', 'in')]
        assert exc_info.value.validations[0].details == {'values': ['admin', 'moderator', 'customer']}

    async def test_admin_can_create_moderators(self, admin_users, admin_session):
        user = await admin_users.create({**JOHN, 'role': 'moderator'})
        assert user['role'] == 'moderator'
        assert user['createUserId'] == admin_session.user_id

    async def test_required_fields(self, anonymous_users):
        with pytest.raises(ValidationException) as exc_info:
            await anonymous_users.create({})

        assert violations(exc_info) == [
            ('name', 'required'), ('email', 'required'), ('password', 'required'), ('role', 'required'),
        ]

    async def test_field_formats(self, anonymous_users):
        with pytest.raises(ValidationException) as exc_info:
            await anonymous_users.create({
                'name': 'John  Doe',
                'email': 'john.example.com',
                'password': 'abcdefgh',
                'role': 'customer',
                'image': 'not a url',
            })

        assert violations(exc_info) == [
            ('name', 'regex'), ('email', 'regex'), ('password', 'regex'), ('image', 'regex'),
        ]

    async def test_email_must_be_unique(self, anonymous_users, repositories):
        repositories.seed('users', **{**JOHN, 'name': 'Other Person'})

        with pytest.raises(ValidationException) as exc_info:
            await anonymous_users.create(JOHN)

        assert violations(exc_info) == [('email', 'unique')]
        assert len(repositories.collections['users']) == 1

    async def test_soft_deleted_users_do_not_hold_their_email(self, anonymous_users, repositories):
        repositories.seed('users', **JOHN, deletedAt='2021-01-01T00:00:00.000Z')
        user = await anonymous_users.create(JOHN)
        assert user['email'] == JOHN['email']


class TestUserUpdate:

    async def test_partial_update(self, admin_users, admin_session, repositories):
        user = repositories.seed('users', **JOHN)

        updated = await admin_users.update({'id': user['id'], 'name': 'Johnny Doe'})

        assert updated['id'] == user['id']
        assert updated['name'] == 'Johnny Doe'
        assert updated['email'] == JOHN['email']
        assert updated['updateUserId'] == admin_session.user_id

    async def test_keeping_own_email_is_allowed(self, admin_users, repositories):
        user = repositories.seed('users', **JOHN)
        updated = await admin_users.update({'id': user['id'], 'email': JOHN['email']})
        assert updated['email'] == JOHN['email']

    async def test_taking_another_users_email(self, admin_users, repositories):
        repositories.seed('users', **JOHN)
        other = repositories.seed('users', **{**JOHN, 'email': 'jane@example.com'})

        with pytest.raises(ValidationException) as exc_info:
            await admin_users.update({'id': other['id'], 'email': JOHN['email']})

        assert violations(exc_info) == [('email', 'unique')]

    async def test_password_is_rehashed(self, admin_users, repositories, hasher):
        user = repositories.seed('users', **JOHN)
        await admin_users.update({'id': user['id'], 'password': 'Xyz@9876'})
        assert hasher.compare('Xyz@9876', repositories.collections['users'][0]['password'])

    async def test_unknown_id(self, admin_users):
        with pytest.raises(ValidationException) as exc_info:
            await admin_users.update({'id': str(uuid.uuid4()), 'name': 'Johnny Doe'})
        assert violations(exc_info) == [('id', 'exists')]

    async def test_customers_cannot_promote_themselves(self, repositories, hasher, customer_session):
        user = repositories.seed('users', **JOHN)
        customer_users = create_user_service(repositories, customer_session, hasher)

        with pytest.raises(ValidationException) as exc_info:
            await customer_users.update({'id': user['id'], 'role': 'admin'})

        assert violations(exc_info) == [('role', 'filledRole')]
        assert repositories.collections['users'][0]['role'] == 'customer'

    async def test_admin_promotes_users(self, admin_users, repositories):
        user = repositories.seed('users', **JOHN)
        updated = await admin_users.update({'id': user['id'], 'role': 'moderator'})
        assert updated['role'] == 'moderator'

    async def test_malformed_id_stops_before_lookup(self, admin_users):
        with pytest.raises(ValidationException) as exc_info:
            await admin_users.update({'id': 'abc'})
        assert violations(exc_info) == [('id', 'regex')]


class TestUserRemoveShowList:

    async def test_remove_then_show(self, admin_users, admin_session, repositories):
        user = repositories.seed('users', **JOHN)

        removed = await admin_users.remove({'id': user['id']})
        assert removed['id'] == user['id']
        assert removed['deleteUserId'] == admin_session.user_id
        assert 'deletedAt' in removed

        with pytest.raises(ValidationException) as exc_info:
            await admin_users.show({'id': user['id']})
        assert violations(exc_info) == [('id', 'exists')]

    async def test_show_hides_password(self, admin_users, repositories):
        user = repositories.seed('users', **JOHN)
        shown = await admin_users.show({'id': user['id']})
        assert shown['email'] == JOHN['email']
        assert 'password' not in shown

    async def test_list_with_filters(self, admin_users, repositories):
        repositories.seed('users', **JOHN)
        repositories.seed('users', **{**JOHN, 'email': 'admin@example.com', 'role': 'admin'})

        page = await admin_users.list({'filters': '["=", "role", "admin"]', 'perPage': '10'})

        assert page['total'] == 1
        assert page['perPage'] == 10
        assert page['registers'][0]['email'] == 'admin@example.com'
        assert 'password' not in page['registers'][0]
        assert set(page) == {'page', 'perPage', 'lastPage', 'total', 'registers'}

    async def test_list_rejects_unknown_filter_fields(self, admin_users):
        with pytest.raises(ValidationException) as exc_info:
            await admin_users.list({'filters': '["=", "password", "x"]'})
        assert violations(exc_info) == [('filters', 'listFilters')]

    async def test_list_validates_filter_values(self, admin_users):
        with pytest.raises(ValidationException) as exc_info:
            await admin_users.list({'filters': '["=", "role", "root"]'})
        assert violations(exc_info) == [('filters.role.0', 'in')]

    async def test_list_paging_limits(self, admin_users):
        with pytest.raises(ValidationException) as exc_info:
            await admin_users.list({'page': '0', 'perPage': '500', 'order': 'sideways'})
        assert violations(exc_info) == [('page', 'integer'), ('perPage', 'max'), ('order', 'in')]


class TestAuthentication:

    @pytest.fixture
    def login(self, repositories, hasher, codec):
        return AuthenticationService(repositories.get('users'), hasher, codec)

    async def test_login_issues_a_session_token(self, login, repositories, hasher, codec):
        user = repositories.seed('users', **{**JOHN, 'password': hasher.hash(JOHN['password'])})

        result = await login.login({'email': JOHN['email'], 'password': JOHN['password']})

        session = codec.decode(result['token'])
        assert session.user_id == user['id']
        assert session.role == 'customer'
        assert result['user']['id'] == user['id']
        assert 'password' not in result['user']

    @pytest.mark.parametrize('email, password', [
        ('john@example.com', 'Wrong@123'),
        ('nobody@example.com', 'Abc@1234'),
    ])
    async def test_bad_credentials(self, login, repositories, hasher, email, password):
        repositories.seed('users', **{**JOHN, 'password': hasher.hash(JOHN['password'])})

        with pytest.raises(InvalidCredentials) as exc_info:
            await login.login({'email': email, 'password': password})

        assert exc_info.value.error_code == SecurityErrorCode.AUTH_CREDENTIALS_INVALID.value
        assert exc_info.value.http_status_code == 401

    async def test_malformed_login(self, login):
        with pytest.raises(ValidationException) as exc_info:
            await login.login({'email': 'john'})
        assert violations(exc_info) == [('email', 'regex'), ('password', 'required')]


def test_user_service_factory_binds_session(repositories, hasher, customer_session):
    service = create_user_service(repositories, customer_session, hasher)
    assert isinstance(service, UserService)
    assert service.users.session is customer_session
