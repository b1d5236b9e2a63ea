"""Customer records: CRUD with unique emails."""

from typing import Any, Dict, List, Mapping, Optional

from src.business import constants
from src.business.models import Customer, SessionModel
from src.business.ports import Repository
from src.business.services.base import BaseBusinessService, Schema, filter_schema, text_filter
from src.validation import ValidatorService, rules
from src.validation.rules import Rule

CUSTOMER_FIELDS = ('name', 'email')


class CustomerService(BaseBusinessService):
    service_name = 'customers'

    def __init__(
        self,
        customers: Repository,
        session: Optional[SessionModel] = None,
        validator: Optional[ValidatorService] = None
    ):
        super().__init__(session, validator)
        self.customers = customers

    @staticmethod
    def _field_rules(required: bool) -> Schema:
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
        }

    async def create(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('create'):
            sanitized = self.pick(request, CUSTOMER_FIELDS)

            await self.validator.validate(self._field_rules(required=True), sanitized)

            customers = await self.customers.find_by([{'email': sanitized['email']}])

            await self.validator.validate(
                {'email': [rules.unique('customers', [('email', 'email')])]},
                sanitized,
                {'customers': customers}
            )

            created = await self.customers.create([sanitized])
            return self.shape(Customer, sanitized, created[0])

    async def update(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('update'):
            sanitized = self.pick(request, ('id',) + CUSTOMER_FIELDS)

            await self.validator.validate(
                {'id': self.id_rules(), **self._field_rules(required=False)},
                sanitized
            )

            filters = [{'id': sanitized['id']}]
            if 'email' in sanitized:
                filters.append({'email': sanitized['email']})
            customers = await self.customers.find_by(filters)

            await self.validator.validate(
                {
                    'id': self.id_exists('customers'),
                    'email': [
                        rules.unique('customers', [('email', 'email')], ignore_props=[('id', 'id')])
                    ],
                },
                sanitized,
                {'customers': customers}
            )

            patch = {key: value for key, value in sanitized.items() if key != 'id'}
            updated = await self.customers.update({'id': sanitized['id']}, patch)
            return self.shape(
                Customer,
                self.find_by_id(customers, sanitized['id']),
                sanitized,
                self.first_or_missing(updated, 'Customer', sanitized['id'])
            )

    async def remove(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('remove'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            customers = await self.customers.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('customers')}, sanitized, {'customers': customers}
            )

            removed = await self.customers.remove({'id': sanitized['id']})
            return self.shape(
                Customer, customers[0], self.first_or_missing(removed, 'Customer', sanitized['id'])
            )

    async def show(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('show'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            customers = await self.customers.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('customers')}, sanitized, {'customers': customers}
            )

            return self.shape(Customer, customers[0])

    async def list(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('list'):
            query = self.pick_list_query(request)

            filters = filter_schema(constants.CUSTOMER_FILTER_FIELDS, {
                'name': text_filter(
                    rules.regex('name'),
                    rules.length(constants.MIN_NAME_LENGTH, constants.MAX_NAME_LENGTH)
                ),
                'email': text_filter(
                    rules.regex('email'),
                    rules.length(constants.MIN_EMAIL_LENGTH, constants.MAX_EMAIL_LENGTH)
                ),
            })
            await self.validator.validate(
                self.list_schema(constants.CUSTOMER_SORT_FIELDS, filters), query
            )

            page = await self.customers.list(query)
            return self.shape_page(Customer, page)


def create_customer_service(repositories, session: Optional[SessionModel]) -> CustomerService:
    return CustomerService(repositories.get('customers', session), session)


__all__ = ['CustomerService', 'CUSTOMER_FIELDS', 'create_customer_service']
