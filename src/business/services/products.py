"""Product catalogue CRUD."""

from typing import Any, Dict, List, Mapping, Optional

from src.business import constants
from src.business.models import Product, ProductCategory, SessionModel
from src.business.ports import Repository
from src.business.services.base import (
    BaseBusinessService, Schema, filter_schema, number_filter, text_filter
)
from src.validation import ValidatorService, rules
from src.validation.rules import Rule

PRODUCT_FIELDS = ('name', 'category', 'image', 'price')
PRODUCT_CATEGORIES = [category.value for category in ProductCategory]


class ProductService(BaseBusinessService):
    """Products have no cross-record constraints beyond the ``id`` lookup."""

    service_name = 'products'

    def __init__(
        self,
        products: Repository,
        session: Optional[SessionModel] = None,
        validator: Optional[ValidatorService] = None
    ):
        super().__init__(session, validator)
        self.products = products

    @staticmethod
    def _field_rules(required: bool) -> Schema:
        presence: List[Rule] = [rules.required()] if required else []
        return {
            'name': presence + [
                rules.string(),
                rules.length(constants.MIN_PRODUCT_NAME_LENGTH, constants.MAX_PRODUCT_NAME_LENGTH),
            ],
            'category': presence + [rules.string(), rules.in_(PRODUCT_CATEGORIES)],
            'image': [rules.string(), rules.regex('url')],
            'price': presence + [rules.integer(), rules.max_(constants.MAX_INTEGER)],
        }

    async def create(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('create'):
            sanitized = self.pick(request, PRODUCT_FIELDS)

            await self.validator.validate(self._field_rules(required=True), sanitized)

            created = await self.products.create([sanitized])
            return self.shape(Product, sanitized, created[0])

    async def update(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('update'):
            sanitized = self.pick(request, ('id',) + PRODUCT_FIELDS)

            await self.validator.validate(
                {'id': self.id_rules(), **self._field_rules(required=False)},
                sanitized
            )

            products = await self.products.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('products')}, sanitized, {'products': products}
            )

            patch = {key: value for key, value in sanitized.items() if key != 'id'}
            updated = await self.products.update({'id': sanitized['id']}, patch)
            return self.shape(
                Product, products[0], sanitized,
                self.first_or_missing(updated, 'Product', sanitized['id'])
            )

    async def remove(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('remove'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            products = await self.products.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('products')}, sanitized, {'products': products}
            )

            removed = await self.products.remove({'id': sanitized['id']})
            return self.shape(
                Product, products[0], self.first_or_missing(removed, 'Product', sanitized['id'])
            )

    async def show(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('show'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            products = await self.products.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('products')}, sanitized, {'products': products}
            )

            return self.shape(Product, products[0])

    async def list(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('list'):
            query = self.pick_list_query(request)

            filters = filter_schema(constants.PRODUCT_FILTER_FIELDS, {
                'name': text_filter(
                    rules.length(constants.MIN_PRODUCT_NAME_LENGTH, constants.MAX_PRODUCT_NAME_LENGTH)
                ),
                'category': text_filter(rules.in_(PRODUCT_CATEGORIES)),
                'price': number_filter(),
            })
            await self.validator.validate(
                self.list_schema(constants.PRODUCT_SORT_FIELDS, filters), query
            )

            page = await self.products.list(query)
            return self.shape_page(Product, page)


def create_product_service(repositories, session: Optional[SessionModel]) -> ProductService:
    return ProductService(repositories.get('products', session), session)


__all__ = ['ProductService', 'PRODUCT_FIELDS', 'PRODUCT_CATEGORIES', 'create_product_service']
