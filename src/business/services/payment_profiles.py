"""
Payment profiles.

A profile belongs to a user and holds either card data or phone data,
selected by ``paymentMethod``. Card numbers and CVVs are hashed before they
are stored; the first six and last four digits of the number are kept in
clear so a profile can be displayed and duplicates detected. A user cannot
hold two profiles with the same identifying data.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.business import constants
from src.business.models import CardType, PaymentMethod, PublicPaymentProfile, SessionModel
from src.business.ports import Hasher, Repository
from src.business.services.base import BaseBusinessService, Schema, filter_schema, text_filter, uuid_filter
from src.validation import ValidatorService, rules
from src.validation.rules import Rule

PAYMENT_PROFILE_FIELDS = ('userId', 'paymentMethod', 'data')
PAYMENT_METHODS = [method.value for method in PaymentMethod]

CARD_DATA_FIELDS = ('type', 'brand', 'holderName', 'number', 'cvv', 'expiryMonth', 'expiryYear')
PHONE_DATA_FIELDS = ('countryCode', 'areaCode', 'number')

DATA_FIELDS = {
    PaymentMethod.CARD_PAYMENT.value: CARD_DATA_FIELDS,
    PaymentMethod.PHONE_PAYMENT.value: PHONE_DATA_FIELDS,
}

# identifying data; card number and cvv are salted hashes and cannot be compared
UNIQUE_DATA_KEYS = {
    PaymentMethod.CARD_PAYMENT.value: ('type', 'brand', 'firstSix', 'lastFour', 'expiryMonth', 'expiryYear'),
    PaymentMethod.PHONE_PAYMENT.value: ('countryCode', 'areaCode', 'number'),
}


def card_data_schema() -> Schema:
    return {
        'type': [rules.required(), rules.string(), rules.in_([card.value for card in CardType])],
        'brand': [rules.required(), rules.string(), rules.length(1, constants.MAX_CARD_TEXT_LENGTH)],
        'holderName': [rules.required(), rules.string(), rules.length(1, constants.MAX_CARD_TEXT_LENGTH)],
        'number': [
            rules.required(),
            rules.integer_string(),
            rules.length(constants.CARD_NUMBER_LENGTH, constants.CARD_NUMBER_LENGTH),
        ],
        'cvv': [
            rules.required(),
            rules.integer_string(),
            rules.length(constants.CARD_CVV_LENGTH, constants.CARD_CVV_LENGTH),
        ],
        'expiryMonth': [rules.required(), rules.integer_string(), rules.min_(1), rules.max_(12)],
        'expiryYear': [rules.required(), rules.integer_string(), rules.min_(1), rules.max_(9999)],
    }


def phone_data_schema() -> Schema:
    return {
        'countryCode': [
            rules.required(), rules.integer_string(), rules.length(1, constants.MAX_PHONE_CODE_LENGTH)
        ],
        'areaCode': [
            rules.required(), rules.integer_string(), rules.length(1, constants.MAX_PHONE_CODE_LENGTH)
        ],
        'number': [
            rules.required(), rules.integer_string(), rules.length(1, constants.MAX_PHONE_NUMBER_LENGTH)
        ],
    }


DATA_SCHEMAS = {
    PaymentMethod.CARD_PAYMENT.value: card_data_schema,
    PaymentMethod.PHONE_PAYMENT.value: phone_data_schema,
}


class PaymentProfileService(BaseBusinessService):
    service_name = 'payment_profiles'

    def __init__(
        self,
        payment_profiles: Repository,
        users: Repository,
        hasher: Hasher,
        session: Optional[SessionModel] = None,
        validator: Optional[ValidatorService] = None
    ):
        super().__init__(session, validator)
        self.payment_profiles = payment_profiles
        self.users = users
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Sanitization
    # ------------------------------------------------------------------

    def _sanitize(self, request: Mapping[str, Any], keys: Tuple[str, ...]) -> Dict[str, Any]:
        sanitized = self.pick(request, keys)
        data = sanitized.get('data')
        if isinstance(data, dict):
            sanitized['data'] = self.pick(data, DATA_FIELDS.get(sanitized.get('paymentMethod'), ()))
        return sanitized

    def _protect_data(self, sanitized: Dict[str, Any]) -> Dict[str, Any]:
        """Hash card secrets; derive the clear digits kept for display."""
        data = sanitized.get('data')
        if sanitized.get('paymentMethod') != PaymentMethod.CARD_PAYMENT.value or not isinstance(data, dict):
            return sanitized

        number = data['number']
        return {
            **sanitized,
            'data': {
                **data,
                'number': self.hasher.hash(number),
                'firstSix': number[:6],
                'lastFour': number[-4:],
                'cvv': self.hasher.hash(data['cvv']),
            },
        }

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    @staticmethod
    def _data_rules(payment_method: Any) -> List[Rule]:
        schema_factory = DATA_SCHEMAS.get(payment_method)
        return [rules.object_(schema_factory())] if schema_factory else []

    @staticmethod
    def _data_unique(payment_method: Any, ignore_self: bool) -> List[Rule]:
        keys = UNIQUE_DATA_KEYS.get(payment_method)
        if not keys:
            return []
        props = [(f'data.{key}', f'data.{key}') for key in keys]
        ignore_props = [('id', 'id')] if ignore_self else None
        return [rules.unique('paymentProfiles', props, ignore_props=ignore_props)]

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    async def create(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('create'):
            sanitized = self._sanitize(request, PAYMENT_PROFILE_FIELDS)
            method = sanitized.get('paymentMethod')

            await self.validator.validate(
                {
                    'userId': self.id_rules(),
                    'paymentMethod': [rules.required(), rules.string(), rules.in_(PAYMENT_METHODS)],
                    'data': [rules.required()] + self._data_rules(method),
                },
                sanitized
            )

            users = await self.users.find_by([{'id': sanitized['userId']}])
            payment_profiles = await self.payment_profiles.find_by([{'userId': sanitized['userId']}])

            protected = self._protect_data(sanitized)

            await self.validator.validate(
                {
                    'userId': [rules.exists('users', [('userId', 'id')])],
                    'data': self._data_unique(method, ignore_self=False),
                },
                protected,
                {'users': users, 'paymentProfiles': payment_profiles}
            )

            created = await self.payment_profiles.create([protected])
            return self.shape(PublicPaymentProfile, protected, created[0])

    async def update(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('update'):
            sanitized = self._sanitize(request, ('id',) + PAYMENT_PROFILE_FIELDS)
            method = sanitized.get('paymentMethod')

            await self.validator.validate(
                {
                    'id': self.id_rules(),
                    'userId': [rules.string(), rules.regex('uuidV4')],
                    'paymentMethod': [
                        rules.custom(
                            lambda: 'data' not in sanitized or 'paymentMethod' in sanitized,
                            'required',
                            "This value is required"
                        ),
                        rules.string(),
                        rules.in_(PAYMENT_METHODS),
                    ],
                    'data': self._data_rules(method),
                },
                sanitized
            )

            payment_profiles = await self.payment_profiles.find_by([{'id': sanitized['id']}])
            current = self.find_by_id(payment_profiles, sanitized['id']) or {}
            owner_id = sanitized.get('userId', current.get('userId'))

            users: List[Dict[str, Any]] = []
            if owner_id:
                users = await self.users.find_by([{'id': owner_id}])
                payment_profiles += await self.payment_profiles.find_by([{'userId': owner_id}])

            protected = self._protect_data(sanitized)

            if 'data' in protected:
                unique_rules = self._data_unique(method, ignore_self=True)
                checked = {**protected, 'userId': owner_id} if owner_id else protected
            elif current and owner_id != current.get('userId'):
                # the kept data must stay unique among the new owner's profiles
                unique_rules = self._data_unique(current.get('paymentMethod'), ignore_self=True)
                checked = {**current, **protected}
            else:
                unique_rules, checked = [], protected

            await self.validator.validate(
                {
                    'id': self.id_exists('paymentProfiles'),
                    'userId': [rules.exists('users', [('userId', 'id')])],
                    'data': [
                        rules.custom(
                            lambda: (
                                not current
                                or 'data' in protected
                                or method in (None, current.get('paymentMethod'))
                            ),
                            'required',
                            "This value is required"
                        ),
                    ] + unique_rules,
                },
                checked,
                {'users': users, 'paymentProfiles': payment_profiles}
            )

            patch = {key: value for key, value in protected.items() if key != 'id'}
            updated = await self.payment_profiles.update({'id': sanitized['id']}, patch)
            return self.shape(
                PublicPaymentProfile, current, protected,
                self.first_or_missing(updated, 'PaymentProfile', sanitized['id'])
            )

    async def remove(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('remove'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            payment_profiles = await self.payment_profiles.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('paymentProfiles')}, sanitized, {'paymentProfiles': payment_profiles}
            )

            removed = await self.payment_profiles.remove({'id': sanitized['id']})
            return self.shape(
                PublicPaymentProfile, payment_profiles[0],
                self.first_or_missing(removed, 'PaymentProfile', sanitized['id'])
            )

    async def show(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('show'):
            sanitized = self.pick(request, ('id',))

            await self.validator.validate({'id': self.id_rules()}, sanitized)

            payment_profiles = await self.payment_profiles.find_by([{'id': sanitized['id']}])

            await self.validator.validate(
                {'id': self.id_exists('paymentProfiles')}, sanitized, {'paymentProfiles': payment_profiles}
            )

            return self.shape(PublicPaymentProfile, payment_profiles[0])

    async def list(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        async with self.service_operation('list'):
            query = self.pick_list_query(request)

            filters = filter_schema(constants.PAYMENT_PROFILE_FILTER_FIELDS, {
                'userId': uuid_filter(),
                'paymentMethod': text_filter(rules.in_(PAYMENT_METHODS)),
            })
            await self.validator.validate(
                self.list_schema(constants.PAYMENT_PROFILE_SORT_FIELDS, filters), query
            )

            page = await self.payment_profiles.list(query)
            return self.shape_page(PublicPaymentProfile, page)


def create_payment_profile_service(
    repositories, session: Optional[SessionModel], hasher: Hasher
) -> PaymentProfileService:
    return PaymentProfileService(
        repositories.get('paymentProfiles', session),
        repositories.get('users', session),
        hasher,
        session
    )


__all__ = [
    'PaymentProfileService', 'PAYMENT_PROFILE_FIELDS', 'PAYMENT_METHODS',
    'card_data_schema', 'phone_data_schema', 'create_payment_profile_service',
]
