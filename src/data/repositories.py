"""
MongoDB Repositories

One repository per collection, implementing the persistence port consumed by
the business services. Every operation awaits the Motor collection obtained
from ``MongoDBManager.get_async_collection``.

Stored documents use the camelCase keys of the API. Every document carries a
UUIDv4 ``id`` plus the audit fields (``createUserId``, ``createdAt``,
``updateUserId``, ``updatedAt``, ``deleteUserId``, ``deletedAt``), stamped
from the ``SessionModel`` the repository was built for. Removal is a soft
delete, and reads never return soft-deleted documents.
"""

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from src.business import constants
from src.business.models import SessionModel
from src.business.ports import Record
from src.data.exceptions import DatabaseOperationType, QueryException, handle_database_error
from src.data.mongodb import MongoDBManager
from src.monitoring.metrics import DATABASE_OPERATIONS
from src.validation.filters import (
    FilterCondition, FilterExpression, FilterGroup, ListFilterError, parse_list_filters
)

logger = structlog.get_logger("data.repositories")

PROJECTION = {'_id': 0}
NOT_DELETED = {'deletedAt': None}

_RANGE_OPERATORS = {'>': '$gt', '>=': '$gte', '<': '$lt', '<=': '$lte'}
_COMBINATORS = {'&': '$and', '|': '$or'}


# ============================================================================
# FILTER TRANSLATION
# ============================================================================

def _parse_datetime(value: Any) -> Any:
    """ISO date or datetime text -> aware ``datetime``; anything else unchanged."""
    if not isinstance(value, str):
        return value
    text = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _contains(value: Any) -> Dict[str, Any]:
    return {'$regex': re.escape(str(value)), '$options': 'i'}


def build_filter_query(
    expression: Optional[FilterExpression],
    date_fields: Sequence[str] = constants.DATE_FIELDS
) -> Dict[str, Any]:
    """
    Translate a parsed list-filter expression into a MongoDB query document.

    ``:`` and ``!:`` are case-insensitive "contains" matches; date fields
    compare as datetimes.
    """
    if expression is None:
        return {}

    if isinstance(expression, FilterGroup):
        return {
            _COMBINATORS[expression.operator]: [
                build_filter_query(child, date_fields) for child in expression.children
            ]
        }

    condition: FilterCondition = expression
    convert: Callable[[Any], Any] = _parse_datetime if condition.field in date_fields else (lambda v: v)
    operator, field, value = condition.operator, condition.field, condition.value

    if operator == '=':
        return {field: convert(value)}
    if operator == '!=':
        return {field: {'$ne': convert(value)}}
    if operator in _RANGE_OPERATORS:
        return {field: {_RANGE_OPERATORS[operator]: convert(value)}}
    if operator == ':':
        return {field: _contains(value)}
    if operator == '!:':
        return {field: {'$not': re.compile(re.escape(str(value)), re.IGNORECASE)}}
    if operator == 'in':
        return {field: {'$in': [convert(item) for item in value]}}

    raise QueryException(f"Unsupported filter operator: {operator}")


# ============================================================================
# REPOSITORIES
# ============================================================================

class MongoRepository:
    """
    Base repository over one MongoDB collection.

    Subclasses set ``collection_name`` and ``filter_fields``.
    """

    collection_name: str = ''
    filter_fields: Tuple[str, ...] = constants.AUDIT_FILTER_FIELDS
    indexes: Tuple[Tuple[Any, Dict[str, Any]], ...] = (('id', {'unique': True}),)

    def __init__(self, manager: MongoDBManager, session: Optional[SessionModel] = None):
        self.manager = manager
        self.session = session or SessionModel()

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.manager.get_async_collection(self.collection_name)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def _run(
        self,
        operation: str,
        operation_type: DatabaseOperationType,
        func: Callable[..., Awaitable[Any]],
        *args,
        **kwargs
    ):
        try:
            result = await func(*args, **kwargs)
        except PyMongoError as e:
            DATABASE_OPERATIONS.labels(
                collection=self.collection_name, operation=operation, outcome='failure'
            ).inc()
            raise handle_database_error(
                e, operation_type, self.manager.database_name, self.collection_name
            ) from e

        DATABASE_OPERATIONS.labels(
            collection=self.collection_name, operation=operation, outcome='success'
        ).inc()
        return result

    async def _find(self, query: Mapping[str, Any]) -> List[Record]:
        cursor = self.collection.find({**query, **NOT_DELETED}, PROJECTION)
        return await cursor.to_list(length=None)

    async def find_by(self, filters: Sequence[Mapping[str, Any]]) -> List[Record]:
        """Documents matching any of the equality maps in ``filters``."""
        if not filters:
            return []
        query = {'$or': [dict(item) for item in filters]}
        return await self._run('find_by', DatabaseOperationType.READ, self._find, query)

    async def list(self, query: Mapping[str, Any]) -> Dict[str, Any]:
        """
        One page of documents.

        Args:
            query: ``page``, ``perPage``, ``orderBy``, ``order`` and a
                ``filters`` expression over ``filter_fields``

        Returns:
            ``{page, perPage, lastPage, total, registers}``
        """
        page = query.get('page') or constants.DEFAULT_PAGE
        per_page = query.get('perPage') or constants.DEFAULT_PER_PAGE
        order_by = query.get('orderBy') or constants.DEFAULT_ORDER_BY
        direction = ASCENDING if (query.get('order') or constants.DEFAULT_ORDER) == 'asc' else DESCENDING

        mongo_query = {**self._filters_query(query.get('filters')), **NOT_DELETED}

        async def _page() -> Tuple[int, List[Record]]:
            total = await self.collection.count_documents(mongo_query)
            cursor = (
                self.collection.find(mongo_query, PROJECTION)
                .sort(order_by, direction)
                .skip((page - 1) * per_page)
                .limit(per_page)
            )
            return total, await cursor.to_list(length=per_page)

        total, registers = await self._run('list', DatabaseOperationType.READ, _page)
        return {
            'page': page,
            'perPage': per_page,
            'lastPage': max(1, math.ceil(total / per_page)),
            'total': total,
            'registers': registers,
        }

    def _filters_query(self, filters: Any) -> Dict[str, Any]:
        if not filters:
            return {}
        try:
            parsed = parse_list_filters(filters, self.filter_fields)
        except ListFilterError as e:
            raise QueryException(
                f"Invalid list filter for {self.collection_name}: {e}",
                operation=DatabaseOperationType.READ,
                collection=self.collection_name
            ) from e
        return build_filter_query(parsed.expression)

    async def create(self, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        if not records:
            return []
        now = self._now()
        documents = [
            {
                **record,
                'id': str(uuid.uuid4()),
                'createUserId': self.session.user_id,
                'createdAt': now,
            }
            for record in records
        ]

        # insert_many adds ``_id`` to the documents it receives
        await self._run(
            'create', DatabaseOperationType.WRITE,
            self.collection.insert_many, [dict(document) for document in documents]
        )
        logger.debug("Documents created", collection=self.collection_name, count=len(documents))
        return documents

    async def update(self, where: Mapping[str, Any], patch: Mapping[str, Any]) -> List[Record]:
        changes = {key: value for key, value in patch.items() if key != 'id'}
        changes.update({'updateUserId': self.session.user_id, 'updatedAt': self._now()})

        async def _update() -> List[Record]:
            ids = [document['id'] for document in await self._find(where)]
            if not ids:
                return []
            await self.collection.update_many({'id': {'$in': ids}}, {'$set': changes})
            return await self._find({'id': {'$in': ids}})

        return await self._run('update', DatabaseOperationType.WRITE, _update)

    async def remove(self, where: Mapping[str, Any]) -> List[Record]:
        stamp = {'deleteUserId': self.session.user_id, 'deletedAt': self._now()}

        async def _remove() -> List[Record]:
            documents = await self._find(where)
            if not documents:
                return []
            ids = [document['id'] for document in documents]
            await self.collection.update_many({'id': {'$in': ids}}, {'$set': stamp})
            return [{**document, **stamp} for document in documents]

        return await self._run('remove', DatabaseOperationType.WRITE, _remove)


class UserRepository(MongoRepository):
    collection_name = 'users'
    filter_fields = constants.USER_FILTER_FIELDS
    indexes = MongoRepository.indexes + (('email', {}),)


class CustomerRepository(MongoRepository):
    collection_name = 'customers'
    filter_fields = constants.CUSTOMER_FILTER_FIELDS
    indexes = MongoRepository.indexes + (('email', {}),)


class ProductRepository(MongoRepository):
    collection_name = 'products'
    filter_fields = constants.PRODUCT_FILTER_FIELDS


class PaymentProfileRepository(MongoRepository):
    collection_name = 'paymentProfiles'
    filter_fields = constants.PAYMENT_PROFILE_FILTER_FIELDS
    indexes = MongoRepository.indexes + (('userId', {}),)


class OrderRepository(MongoRepository):
    collection_name = 'orders'
    filter_fields = constants.ORDER_FILTER_FIELDS
    indexes = MongoRepository.indexes + (('userId', {}),)


class OrderItemRepository(MongoRepository):
    collection_name = 'orderItems'
    filter_fields = constants.ORDER_ITEM_FILTER_FIELDS
    indexes = MongoRepository.indexes + (('orderId', {}),)


REPOSITORY_CLASSES: Dict[str, Type[MongoRepository]] = {
    repository_class.collection_name: repository_class
    for repository_class in (
        UserRepository, CustomerRepository, ProductRepository,
        PaymentProfileRepository, OrderRepository, OrderItemRepository,
    )
}


class RepositoryFactory:
    """Builds session-bound repositories; stored in ``app.extensions['repositories']``."""

    def __init__(self, manager: MongoDBManager):
        self.manager = manager

    def get(self, entity: str, session: Optional[SessionModel] = None) -> MongoRepository:
        try:
            repository_class = REPOSITORY_CLASSES[entity]
        except KeyError:
            raise ValueError(f"Unknown repository: {entity}") from None
        return repository_class(self.manager, session)

    def ensure_indexes(self) -> None:
        self.manager.ensure_indexes(
            (repository_class.collection_name, keys, options)
            for repository_class in REPOSITORY_CLASSES.values()
            for keys, options in repository_class.indexes
        )


__all__ = [
    'MongoRepository', 'UserRepository', 'CustomerRepository', 'ProductRepository',
    'PaymentProfileRepository', 'OrderRepository', 'OrderItemRepository',
    'REPOSITORY_CLASSES', 'RepositoryFactory', 'build_filter_query',
]
