"""
End-to-end API workflows over the in-memory repositories.

A customer signs up, logs in, registers a payment profile and places,
amends and cancels an order; staff maintain the catalogue.
"""

import pytest
from flask.testing import FlaskClient

from src.business.models import Role

pytestmark = pytest.mark.integration

JOHN = {'name': 'John Doe', 'email': 'john@example.com', 'password': 'Abc@1234', 'role': 'customer'}
PHONE = {'countryCode': '55', 'areaCode': '11', 'number': '999999999'}


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def catalog(client: FlaskClient, auth_headers):
    staff = auth_headers(Role.MODERATOR)
    products = {}
    for name, price in (('Shirt', 1500), ('Socks', 300)):
        response = client.post(
            '/api/products',
            json={'name': name, 'category': 'clothes', 'price': price},
            headers=staff,
        )
        assert response.status_code == 201
        products[name] = response.get_json()
    return products


@pytest.fixture
def customer(client: FlaskClient):
    created = client.post('/api/users', json=JOHN)
    assert created.status_code == 201

    login = client.post('/api/auth/login', json={'email': JOHN['email'], 'password': JOHN['password']})
    assert login.status_code == 200
    return {'user': created.get_json(), 'headers': bearer(login.get_json()['token'])}


class TestLogin:

    def test_login_returns_token_and_public_user(self, client: FlaskClient, customer):
        response = client.post('/api/auth/login', json={'email': JOHN['email'], 'password': JOHN['password']})

        body = response.get_json()
        assert body['user']['id'] == customer['user']['id']
        assert 'password' not in body['user']

        session = client.application.extensions['session_codec'].decode(body['token'])
        assert session.user_id == customer['user']['id']
        assert session.role == 'customer'

    def test_wrong_password(self, client: FlaskClient, customer):
        response = client.post('/api/auth/login', json={'email': JOHN['email'], 'password': 'Wrong@123'})

        assert response.status_code == 401
        assert response.get_json()['name'] == 'InvalidCredentials'

    def test_token_opens_protected_routes(self, client: FlaskClient, customer):
        response = client.get(f"/api/users/{customer['user']['id']}", headers=customer['headers'])

        assert response.status_code == 200
        assert response.get_json()['email'] == JOHN['email']


class TestOrderWorkflow:

    def test_place_amend_and_cancel(self, client: FlaskClient, customer, catalog):
        headers = customer['headers']
        user_id = customer['user']['id']

        profile = client.post(
            '/api/payment-profiles',
            json={'userId': user_id, 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE},
            headers=headers,
        )
        assert profile.status_code == 201
        profile_id = profile.get_json()['id']

        placed = client.post('/api/orders', json={
            'userId': user_id,
            'paymentProfileId': profile_id,
            'orderItems': [
                {'productId': catalog['Shirt']['id'], 'quantity': 2},
                {'productId': catalog['Socks']['id'], 'quantity': 1},
            ],
        }, headers=headers)
        assert placed.status_code == 201
        order = placed.get_json()
        assert order['totalValue'] == 3300
        assert order['createUserId'] == user_id
        assert len(order['orderItems']) == 2

        amended = client.put(f"/api/orders/{order['id']}", json={
            'orderItems': [{'productId': catalog['Socks']['id'], 'quantity': 4}],
        }, headers=headers)
        assert amended.status_code == 200
        assert amended.get_json()['totalValue'] == 1200
        assert amended.get_json()['updateUserId'] == user_id

        listed = client.get(
            '/api/orders', query_string={'filters': f'["=", "userId", "{user_id}"]'}, headers=headers
        )
        assert listed.get_json()['total'] == 1

        cancelled = client.delete(f"/api/orders/{order['id']}", headers=headers)
        assert cancelled.status_code == 200
        assert cancelled.get_json()['deleteUserId'] == user_id

        missing = client.get(f"/api/orders/{order['id']}", headers=headers)
        assert missing.status_code == 400
        assert missing.get_json()['validations'][0] == {
            'field': 'id', 'rule': 'exists', 'message': 'This value was not found',
        }

    def test_duplicate_payment_profile(self, client: FlaskClient, customer):
        request = {'userId': customer['user']['id'], 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE}

        assert client.post('/api/payment-profiles', json=request, headers=customer['headers']).status_code == 201
        response = client.post('/api/payment-profiles', json=request, headers=customer['headers'])

        assert response.status_code == 400
        assert response.get_json()['validations'][0]['rule'] == 'unique'

    def test_order_item_errors_report_nested_paths(self, client: FlaskClient, customer, catalog):
        response = client.post('/api/orders', json={
            'userId': customer['user']['id'],
            'paymentProfileId': customer['user']['id'],
            'orderItems': [{'productId': catalog['Shirt']['id'], 'quantity': '2'}],
        }, headers=customer['headers'])

        assert response.status_code == 400
        assert [(item['field'], item['rule']) for item in response.get_json()['validations']] == [
            ('orderItems.0.quantity', 'integer'),
        ]


class TestCatalogMaintenance:

    def test_product_lifecycle(self, client: FlaskClient, auth_headers, catalog):
        staff = auth_headers(Role.ADMIN)
        shirt_id = catalog['Shirt']['id']

        updated = client.put(f'/api/products/{shirt_id}', json={'price': 1800}, headers=staff)
        assert updated.get_json()['price'] == 1800
        assert updated.get_json()['name'] == 'Shirt'

        page = client.get(
            '/api/products',
            query_string={'orderBy': 'price', 'order': 'desc', 'perPage': '1'},
            headers=auth_headers(Role.CUSTOMER),
        ).get_json()
        assert page['lastPage'] == 2
        assert page['registers'][0]['id'] == shirt_id

        removed = client.delete(f'/api/products/{shirt_id}', headers=staff)
        assert removed.status_code == 200
        assert client.get(f'/api/products/{shirt_id}', headers=staff).status_code == 400
