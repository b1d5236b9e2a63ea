"""
Error translation at the HTTP boundary: database failures become 503/500
bodies without driver details, unexpected exceptions become the generic
``InternalException`` body.
"""

import pytest
from pymongo.errors import OperationFailure

from src.app import INTERNAL_ERROR_BODY, create_app
from src.business.models import Role, SessionModel
from src.data import ConnectionException
from src.data.exceptions import DatabaseOperationType

pytestmark = pytest.mark.integration


class FailingRepository:

    def __init__(self, error):
        self.error = error

    async def find_by(self, filters):
        raise self.error

    async def list(self, query):
        raise self.error


class FailingRepositories:

    def __init__(self, error):
        self.error = error

    def get(self, entity, session=None):
        return FailingRepository(self.error)


class BrokenRepositories:

    def get(self, entity, session=None):
        raise RuntimeError("repository wiring is broken")


def client_for(repositories):
    return create_app('testing', repositories=repositories).test_client()


def admin_headers(app_client):
    codec = app_client.application.extensions['session_codec']
    token = codec.encode(SessionModel(user_id='00000000-0000-4000-8000-000000000000', role=Role.ADMIN))
    return {'Authorization': f'Bearer {token}'}


class TestDatabaseErrors:

    def test_unreachable_database(self):
        client = client_for(FailingRepositories(ConnectionException(
            "No servers available", operation=DatabaseOperationType.READ, collection='products'
        )))

        response = client.get('/api/products', headers=admin_headers(client))

        assert response.status_code == 503
        assert response.get_json() == {
            'name': 'ConnectionException',
            'code': 503,
            'message': 'A database error occurred while processing the request',
        }

    def test_raw_driver_errors_are_classified(self):
        client = client_for(FailingRepositories(OperationFailure("bad $operator")))

        response = client.get('/api/customers', headers=admin_headers(client))

        assert response.status_code == 500
        assert response.get_json()['name'] == 'QueryException'
        assert 'operator' not in response.get_json()['message']


class TestUnexpectedErrors:

    def test_generic_internal_error_body(self):
        client = client_for(BrokenRepositories())

        response = client.get('/api/orders', headers=admin_headers(client))

        assert response.status_code == 500
        assert response.get_json() == INTERNAL_ERROR_BODY

    def test_login_uses_the_same_handler(self):
        client = client_for(BrokenRepositories())

        response = client.post('/api/auth/login', json={'email': 'john@example.com', 'password': 'x'})

        assert response.status_code == 500
        assert response.get_json()['name'] == 'InternalException'
