"""
Orders and their items.

An order references a user and one of that user's payment profiles, and
owns between one and ``MAX_ORDER_ITEMS_LENGTH`` items, each naming a distinct
product. Items are priced from the stored products: ``unitValue`` is the
product price, ``totalValue`` is quantity times price, and the order total is
the sum of its items. Updating ``orderItems`` replaces the item set; removing
an order removes its items too.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from src.business import constants
from src.business.models import Order, OrderWithItems, SessionModel
from src.business.ports import Record, Repository
from src.business.services.base import (
    BaseBusinessService, Schema, filter_schema, number_filter, uuid_filter
)
from src.validation import ValidatorService, rules
from src.validation.rules import Rule

ORDER_FIELDS = ('userId', 'paymentProfileId', 'orderItems')
ORDER_ITEM_FIELDS = ('productId', 'quantity')


def order_items_rules(required: bool) -> List[Rule]:
    presence: List[Rule] = [rules.required()] if required else []
    return presence + [
        rules.array([
            rules.object_({
                'productId': [rules.required(), rules.string(), rules.regex('uuidV4')],
                'quantity': [
                    rules.required(),
                    rules.integer(),
                    rules.min_(1),
                    rules.max_(constants.MAX_ORDER_ITEM_QUANTITY),
                ],
            })
        ]),
        rules.distinct(keys=['productId']),
        rules.length(1, constants.MAX_ORDER_ITEMS_LENGTH),
    ]


def order_items_exist() -> List[Rule]:
    return [
        rules.array([
            rules.object_({'productId': [rules.exists('products', [('productId', 'id')])]})
        ])
    ]


def payment_profile_belongs_to_user() -> List[Rule]:
    return [
        rules.exists('paymentProfiles', [('paymentProfileId', 'id'), ('userId', 'userId')])
    ]


class OrderService(BaseBusinessService):
    service_name = 'orders'

    def __init__(
        self,
        orders: Repository,
        order_items: Repository,
        users: Repository,
        payment_profiles: Repository,
        products: Repository,
        session: Optional[SessionModel] = None,
        validator: Optional[ValidatorService] = None
    ):
        super().__init__(session, validator)
        self.orders = orders
        self.order_items = order_items
        self.users = users
        self.payment_profiles = payment_profiles
        self.products = products

    def _sanitize(self, request: Mapping[str, Any], keys: Sequence[str]) -> Dict[str, Any]:
        sanitized = self.pick(request, keys)
        items = sanitized.get('orderItems')
        if isinstance(items, list):
            sanitized['orderItems'] = [
                self.pick(item, ORDER_ITEM_FIELDS) if isinstance(item, dict) else item
                for item in items
            ]
        return sanitized

    async def _find_products(self, items: Any) -> List[Record]:
        if not isinstance(items, list):
            return []
        return await self.products.find_by([{'id': item['productId']} for item in items])

    @staticmethod
    def _price(items: Sequence[Mapping[str, Any]], products: Sequence[Record]) -> List[Dict[str, Any]]:
        prices = {product['id']: product.get('price') or 0 for product in products}
        priced = []
        for item in items:
            unit_value = prices[item['productId']]
            priced.append({
                'productId': item['productId'],
                'quantity': item['quantity'],
                'unitValue': unit_value,
                'totalValue': unit_value * item['quantity'],
            })
        return priced

    async def _replace_items(self, order_id: str, priced: Sequence[Mapping[str, Any]]) -> List[Record]:
        await self.order_items.remove({'orderId': order_id})
        return await self.order_items.create([{**item, 'orderId': order_id} for item in priced])

    async def create(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('create'):
            sanitized = self._sanitize(request, ORDER_FIELDS)

            await self.validator.validate(
                {
                    'userId': self.id_rules(),
                    'paymentProfileId': self.id_rules(),
                    'orderItems': order_items_rules(required=True),
                },
                sanitized
            )

            users = await self.users.find_by([{'id': sanitized['userId']}])
            payment_profiles = await self.payment_profiles.find_by([{'id': sanitized['paymentProfileId']}])
            products = await self._find_products(sanitized['orderItems'])

            await self.validator.validate(
                {
                    'userId': [rules.exists('users', [('userId', 'id')])],
                    'paymentProfileId': payment_profile_belongs_to_user(),
                    'orderItems': order_items_exist(),
                },
                sanitized,
                {'users': users, 'paymentProfiles': payment_profiles, 'products': products}
            )

            priced = self._price(sanitized['orderItems'], products)
            order = {
                'userId': sanitized['userId'],
                'paymentProfileId': sanitized['paymentProfileId'],
                'totalValue': sum(item['totalValue'] for item in priced),
            }
            created = await self.orders.create([order])
            items = await self.order_items.create(
                [{**item, 'orderId': created[0]['id']} for item in priced]
            )
            return self.shape(OrderWithItems, created[0], {'orderItems': items})

    async def update(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('update'):
            sanitized = self._sanitize(request, ('id',) + ORDER_FIELDS)

            await self.validator.validate(
                {
                    'id': self.id_rules(),
                    'userId': [rules.string(), rules.regex('uuidV4')],
                    'paymentProfileId': [rules.string(), rules.regex('uuidV4')],
                    'orderItems': order_items_rules(required=False),
                },
                sanitized
            )

            orders = await self.orders.find_by([{'id': sanitized['id']}])
            current = self.find_by_id(orders, sanitized['id']) or {}

            # ownership is rechecked against the effective user and profile
            model = dict(sanitized)
            schema: Schema = {'id': self.id_exists('orders')}
            reference: Dict[str, List[Record]] = {'orders': orders}

            if 'userId' in sanitized:
                schema['userId'] = [rules.exists('users', [('userId', 'id')])]
                reference['users'] = await self.users.find_by([{'id': sanitized['userId']}])

            if current and ('userId' in sanitized or 'paymentProfileId' in sanitized):
                model.setdefault('userId', current.get('userId'))
                model.setdefault('paymentProfileId', current.get('paymentProfileId'))
                schema['paymentProfileId'] = payment_profile_belongs_to_user()
                reference['paymentProfiles'] = await self.payment_profiles.find_by(
                    [{'id': model['paymentProfileId']}]
                )

            if 'orderItems' in sanitized:
                schema['orderItems'] = order_items_exist()
                reference['products'] = await self._find_products(sanitized['orderItems'])

            await self.validator.validate(schema, model, reference)

            patch = {key: sanitized[key] for key in ('userId', 'paymentProfileId') if key in sanitized}
            if 'orderItems' in sanitized:
                priced = self._price(sanitized['orderItems'], reference['products'])
                patch['totalValue'] = sum(item['totalValue'] for item in priced)

            updated = await self.orders.update({'id': sanitized['id']}, patch)
            order = self.first_or_missing(updated, 'Order', sanitized['id'])

            if 'orderItems' in sanitized:
                items = await self._replace_items(sanitized['id'], priced)
            else:
                items = await self.order_items.find_by([{'orderId': sanitized['id']}])

            return self.shape(OrderWithItems, current, order, {'orderItems': items})

    async def remove(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('remove'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            orders = await self.orders.find_by([{'id': sanitized['id']}])

            await self.validator.validate({'id': self.id_exists('orders')}, sanitized, {'orders': orders})

            removed = await self.orders.remove({'id': sanitized['id']})
            items = await self.order_items.remove({'orderId': sanitized['id']})
            return self.shape(
                OrderWithItems, orders[0],
                self.first_or_missing(removed, 'Order', sanitized['id']),
                {'orderItems': items}
            )

    async def show(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('show'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            orders = await self.orders.find_by([{'id': sanitized['id']}])

            await self.validator.validate({'id': self.id_exists('orders')}, sanitized, {'orders': orders})

            items = await self.order_items.find_by([{'orderId': sanitized['id']}])
            return self.shape(OrderWithItems, orders[0], {'orderItems': items})

    async def list(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('list'):
            query = self.pick_list_query(request)

            filters = filter_schema(constants.ORDER_FILTER_FIELDS, {
                'userId': uuid_filter(),
                'paymentProfileId': uuid_filter(),
                'totalValue': number_filter(),
            })
            await self.validator.validate(
                self.list_schema(constants.ORDER_SORT_FIELDS, filters), query
            )

            page = await self.orders.list(query)
            return self.shape_page(Order, page)


def create_order_service(repositories, session: Optional[SessionModel]) -> OrderService:
    return OrderService(
        repositories.get('orders', session),
        repositories.get('orderItems', session),
        repositories.get('users', session),
        repositories.get('paymentProfiles', session),
        repositories.get('products', session),
        session
    )


__all__ = ['OrderService', 'ORDER_FIELDS', 'order_items_rules', 'create_order_service']
