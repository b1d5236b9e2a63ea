"""
Unit tests for the payment profile and order services.

Covers secret hashing on card profiles, per-user profile uniqueness, profile
ownership on orders, item pricing and item replacement.
"""

import uuid

import pytest

from src.business.exceptions import ValidationException
from src.business.services import create_order_service, create_payment_profile_service

CARD = {
    'type': 'CREDIT',
    'brand': 'visa',
    'holderName': 'JOHN DOE',
    'number': '4111111111111111',
    'cvv': '123',
    'expiryMonth': '12',
    'expiryYear': '2030',
}
PHONE = {'countryCode': '55', 'areaCode': '11', 'number': '999999999'}


def violations(exc_info):
    return [(item.field, item.rule) for item in exc_info.value.validations]


@pytest.fixture
def owner(repositories):
    return repositories.seed('users', name='John Doe', email='john@example.com', role='customer')


@pytest.fixture
def other_user(repositories):
    return repositories.seed('users', name='Jane Doe', email='jane@example.com', role='customer')


@pytest.fixture
def payment_profiles(repositories, admin_session, hasher):
    return create_payment_profile_service(repositories, admin_session, hasher)


@pytest.fixture
def orders(repositories, admin_session):
    return create_order_service(repositories, admin_session)


class TestPaymentProfileCreate:

    async def test_card_secrets_are_hashed(self, payment_profiles, owner, repositories, hasher):
        profile = await payment_profiles.create({
            'userId': owner['id'], 'paymentMethod': 'CARD_PAYMENT', 'data': {**CARD, 'extra': 'x'},
        })

        assert profile['userId'] == owner['id']
        assert profile['paymentMethod'] == 'CARD_PAYMENT'
        assert profile['data'] == {
            'type': 'CREDIT',
            'brand': 'visa',
            'holderName': 'JOHN DOE',
            'firstSix': '411111',
            'lastFour': '1111',
            'expiryMonth': '12',
            'expiryYear': '2030',
        }

        stored = repositories.collections['paymentProfiles'][0]['data']
        assert 'extra' not in stored
        assert hasher.compare(CARD['number'], stored['number'])
        assert hasher.compare(CARD['cvv'], stored['cvv'])

    async def test_phone_profile(self, payment_profiles, owner):
        profile = await payment_profiles.create({
            'userId': owner['id'], 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE,
        })
        assert profile['data'] == PHONE

    async def test_unknown_owner(self, payment_profiles):
        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.create({
                'userId': str(uuid.uuid4()), 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE,
            })
        assert violations(exc_info) == [('userId', 'exists')]

    async def test_nested_card_fields(self, payment_profiles, owner):
        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.create({
                'userId': owner['id'],
                'paymentMethod': 'CARD_PAYMENT',
                'data': {**CARD, 'number': '4111', 'cvv': 123, 'expiryMonth': '13'},
            })

        assert violations(exc_info) == [
            ('data.number', 'length'), ('data.cvv', 'integerString'), ('data.expiryMonth', 'max'),
        ]

    async def test_unknown_payment_method(self, payment_profiles, owner):
        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.create({'userId': owner['id'], 'paymentMethod': 'CASH', 'data': {}})
        assert violations(exc_info) == [('paymentMethod', 'in')]

    async def test_duplicate_profile_for_the_same_user(self, payment_profiles, owner, other_user):
        await payment_profiles.create({'userId': owner['id'], 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE})

        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.create({'userId': owner['id'], 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE})
        assert violations(exc_info) == [('data', 'unique')]

        profile = await payment_profiles.create({
            'userId': other_user['id'], 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE,
        })
        assert profile['userId'] == other_user['id']

    async def test_duplicate_card_is_detected_despite_salted_hashes(self, payment_profiles, owner):
        await payment_profiles.create({'userId': owner['id'], 'paymentMethod': 'CARD_PAYMENT', 'data': CARD})

        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.create({'userId': owner['id'], 'paymentMethod': 'CARD_PAYMENT', 'data': CARD})
        assert violations(exc_info) == [('data', 'unique')]


class TestPaymentProfileUpdate:

    @pytest.fixture
    def profile(self, repositories, owner):
        return repositories.seed(
            'paymentProfiles', userId=owner['id'], paymentMethod='PHONE_PAYMENT', data=dict(PHONE)
        )

    async def test_data_requires_payment_method(self, payment_profiles, profile):
        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.update({'id': profile['id'], 'data': PHONE})
        assert violations(exc_info) == [('paymentMethod', 'required')]

    async def test_switch_to_card(self, payment_profiles, profile):
        updated = await payment_profiles.update({
            'id': profile['id'], 'paymentMethod': 'CARD_PAYMENT', 'data': CARD,
        })

        assert updated['paymentMethod'] == 'CARD_PAYMENT'
        assert updated['data']['lastFour'] == '1111'
        assert 'cvv' not in updated['data']

    async def test_resubmitting_own_data_is_not_a_duplicate(self, payment_profiles, profile):
        updated = await payment_profiles.update({
            'id': profile['id'], 'paymentMethod': 'PHONE_PAYMENT', 'data': PHONE,
        })
        assert updated['data'] == PHONE

    async def test_move_to_unknown_user(self, payment_profiles, profile):
        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.update({'id': profile['id'], 'userId': str(uuid.uuid4())})
        assert violations(exc_info) == [('userId', 'exists')]

    async def test_changing_payment_method_requires_data(self, payment_profiles, profile, repositories):
        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.update({'id': profile['id'], 'paymentMethod': 'CARD_PAYMENT'})

        assert violations(exc_info) == [('data', 'required')]
        stored = repositories.collections['paymentProfiles'][0]
        assert stored['paymentMethod'] == 'PHONE_PAYMENT'
        assert stored['data'] == PHONE

    async def test_repeating_the_current_payment_method(self, payment_profiles, profile):
        updated = await payment_profiles.update({'id': profile['id'], 'paymentMethod': 'PHONE_PAYMENT'})

        assert updated['paymentMethod'] == 'PHONE_PAYMENT'
        assert updated['data'] == PHONE

    async def test_moving_to_a_user_with_the_same_data(self, payment_profiles, profile, other_user, repositories):
        repositories.seed(
            'paymentProfiles', userId=other_user['id'], paymentMethod='PHONE_PAYMENT', data=dict(PHONE)
        )

        with pytest.raises(ValidationException) as exc_info:
            await payment_profiles.update({'id': profile['id'], 'userId': other_user['id']})

        assert violations(exc_info) == [('data', 'unique')]
        assert repositories.collections['paymentProfiles'][0]['userId'] == profile['userId']

    async def test_moving_to_another_user(self, payment_profiles, profile, other_user):
        updated = await payment_profiles.update({'id': profile['id'], 'userId': other_user['id']})

        assert updated['userId'] == other_user['id']
        assert updated['data'] == PHONE

    async def test_remove(self, payment_profiles, profile, repositories):
        removed = await payment_profiles.remove({'id': profile['id']})

        assert removed['id'] == profile['id']
        assert repositories.collections['paymentProfiles'][0]['deletedAt'] is not None


class TestOrderService:

    @pytest.fixture
    def catalog(self, repositories):
        return {
            'shirt': repositories.seed('products', name='Shirt', category='clothes', price=1500),
            'socks': repositories.seed('products', name='Socks', category='clothes', price=300),
        }

    @pytest.fixture
    def profile(self, repositories, owner):
        return repositories.seed('paymentProfiles', userId=owner['id'], paymentMethod='PHONE_PAYMENT', data=PHONE)

    @pytest.fixture
    def order_request(self, owner, profile, catalog):
        return {
            'userId': owner['id'],
            'paymentProfileId': profile['id'],
            'orderItems': [
                {'productId': catalog['shirt']['id'], 'quantity': 2},
                {'productId': catalog['socks']['id'], 'quantity': 3, 'unitValue': 1},
            ],
        }

    async def test_create_prices_items_from_products(self, orders, order_request, repositories):
        order = await orders.create(order_request)

        assert order['totalValue'] == 2 * 1500 + 3 * 300
        items = {item['productId']: item for item in order['orderItems']}
        shirt = items[order_request['orderItems'][0]['productId']]
        assert shirt['unitValue'] == 1500
        assert shirt['totalValue'] == 3000
        assert shirt['orderId'] == order['id']
        assert items[order_request['orderItems'][1]['productId']]['unitValue'] == 300
        assert len(repositories.collections['orderItems']) == 2

    async def test_payment_profile_must_belong_to_user(self, orders, order_request, repositories, other_user):
        foreign = repositories.seed('paymentProfiles', userId=other_user['id'], paymentMethod='PHONE_PAYMENT')

        with pytest.raises(ValidationException) as exc_info:
            await orders.create({**order_request, 'paymentProfileId': foreign['id']})

        assert violations(exc_info) == [('paymentProfileId', 'exists')]
        assert repositories.collections['orders'] == []

    async def test_item_rules(self, orders, order_request, catalog):
        shirt_id = catalog['shirt']['id']
        with pytest.raises(ValidationException) as exc_info:
            await orders.create({
                **order_request,
                'orderItems': [
                    {'productId': shirt_id, 'quantity': 0},
                    {'productId': shirt_id, 'quantity': 11},
                    {'quantity': 1},
                ],
            })

        assert violations(exc_info) == [
            ('orderItems.0.quantity', 'min'),
            ('orderItems.1.quantity', 'max'),
            ('orderItems.2.productId', 'required'),
            ('orderItems', 'distinct'),
        ]

    async def test_empty_item_list(self, orders, order_request):
        with pytest.raises(ValidationException) as exc_info:
            await orders.create({**order_request, 'orderItems': []})
        assert violations(exc_info) == [('orderItems', 'length')]

    async def test_unknown_product(self, orders, order_request):
        order_request['orderItems'][1]['productId'] = str(uuid.uuid4())

        with pytest.raises(ValidationException) as exc_info:
            await orders.create(order_request)

        assert violations(exc_info) == [('orderItems.1.productId', 'exists')]

    async def test_update_replaces_items(self, orders, order_request, catalog, repositories):
        order = await orders.create(order_request)

        updated = await orders.update({
            'id': order['id'],
            'orderItems': [{'productId': catalog['socks']['id'], 'quantity': 1}],
        })

        assert updated['totalValue'] == 300
        assert [item['quantity'] for item in updated['orderItems']] == [1]
        live_items = [item for item in repositories.collections['orderItems'] if item.get('deletedAt') is None]
        assert len(live_items) == 1

    async def test_update_rechecks_profile_ownership(self, orders, order_request, repositories, other_user):
        order = await orders.create(order_request)

        with pytest.raises(ValidationException) as exc_info:
            await orders.update({'id': order['id'], 'userId': other_user['id']})

        assert violations(exc_info) == [('paymentProfileId', 'exists')]

    async def test_show_and_remove(self, orders, order_request, repositories):
        order = await orders.create(order_request)

        shown = await orders.show({'id': order['id']})
        assert len(shown['orderItems']) == 2

        removed = await orders.remove({'id': order['id']})
        assert removed['id'] == order['id']
        assert all(item['deletedAt'] is not None for item in repositories.collections['orderItems'])

    async def test_list(self, orders, order_request):
        await orders.create(order_request)

        page = await orders.list({'filters': f'["=", "userId", "{order_request["userId"]}"]'})

        assert page['total'] == 1
        assert 'orderItems' not in page['registers'][0]
