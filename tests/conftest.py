"""
Global pytest Configuration and Fixtures

Provides in-memory repositories that honour the repository port (audit
stamping, soft delete, ``find_by`` OR semantics, paging and list filters), a
fast password hasher, sessions for every role and a Flask application wired to
the in-memory repositories.
"""

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from src.app import create_app
from src.auth.hashing import PasswordHasher
from src.business import constants
from src.business.models import Role, SessionModel
from src.validation.filters import FilterCondition, FilterGroup, parse_list_filters

FAST_HASH_METHOD = 'pbkdf2:sha256:1000'

ENTITY_FILTER_FIELDS = {
    'users': constants.USER_FILTER_FIELDS,
    'customers': constants.CUSTOMER_FILTER_FIELDS,
    'products': constants.PRODUCT_FILTER_FIELDS,
    'paymentProfiles': constants.PAYMENT_PROFILE_FILTER_FIELDS,
    'orders': constants.ORDER_FILTER_FIELDS,
    'orderItems': constants.ORDER_ITEM_FILTER_FIELDS,
}


def _matches(expression, record: Mapping[str, Any]) -> bool:
    if expression is None:
        return True
    if isinstance(expression, FilterGroup):
        results = [_matches(child, record) for child in expression.children]
        return all(results) if expression.operator == '&' else any(results)

    condition: FilterCondition = expression
    value = record.get(condition.field)
    target = condition.value
    if condition.operator == '=':
        return value == target
    if condition.operator == '!=':
        return value != target
    if condition.operator == ':':
        return re.search(re.escape(str(target)), str(value or ''), re.IGNORECASE) is not None
    if condition.operator == '!:':
        return re.search(re.escape(str(target)), str(value or ''), re.IGNORECASE) is None
    if condition.operator == 'in':
        return value in target
    if value is None:
        return False
    return {
        '>': value > target,
        '>=': value >= target,
        '<': value < target,
        '<=': value <= target,
    }[condition.operator]


class InMemoryRepository:
    """Repository port over a shared list of documents."""

    def __init__(self, entity: str, documents: List[Dict[str, Any]], session: Optional[SessionModel] = None):
        self.entity = entity
        self.documents = documents
        self.session = session or SessionModel()

    def _live(self) -> List[Dict[str, Any]]:
        return [document for document in self.documents if document.get('deletedAt') is None]

    @staticmethod
    def _equal(document: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
        return all(document.get(key) == value for key, value in where.items())

    async def find_by(self, filters: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [
            dict(document) for document in self._live()
            if any(self._equal(document, item) for item in filters)
        ]

    async def list(self, query: Mapping[str, Any]) -> Dict[str, Any]:
        page = query.get('page') or constants.DEFAULT_PAGE
        per_page = query.get('perPage') or constants.DEFAULT_PER_PAGE
        order_by = query.get('orderBy') or constants.DEFAULT_ORDER_BY
        descending = (query.get('order') or constants.DEFAULT_ORDER) == 'desc'

        expression = None
        if query.get('filters'):
            expression = parse_list_filters(query['filters'], ENTITY_FILTER_FIELDS[self.entity]).expression

        matching = [document for document in self._live() if _matches(expression, document)]
        matching.sort(key=lambda document: (document.get(order_by) is None, document.get(order_by)),
                      reverse=descending)
        start = (page - 1) * per_page
        return {
            'page': page,
            'perPage': per_page,
            'lastPage': max(1, math.ceil(len(matching) / per_page)),
            'total': len(matching),
            'registers': [dict(document) for document in matching[start:start + per_page]],
        }

    async def create(self, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        created = []
        for record in records:
            document = {
                **record,
                'id': str(uuid.uuid4()),
                'createUserId': self.session.user_id,
                'createdAt': datetime.now(timezone.utc),
            }
            self.documents.append(document)
            created.append(dict(document))
        return created

    async def update(self, where: Mapping[str, Any], patch: Mapping[str, Any]) -> List[Dict[str, Any]]:
        updated = []
        for document in self._live():
            if self._equal(document, where):
                document.update({key: value for key, value in patch.items() if key != 'id'})
                document.update({'updateUserId': self.session.user_id, 'updatedAt': datetime.now(timezone.utc)})
                updated.append(dict(document))
        return updated

    async def remove(self, where: Mapping[str, Any]) -> List[Dict[str, Any]]:
        removed = []
        for document in self._live():
            if self._equal(document, where):
                document.update({'deleteUserId': self.session.user_id, 'deletedAt': datetime.now(timezone.utc)})
                removed.append(dict(document))
        return removed


class InMemoryRepositories:
    """Repository provider with the ``get(entity, session)`` interface of ``RepositoryFactory``."""

    def __init__(self):
        self.collections: Dict[str, List[Dict[str, Any]]] = {name: [] for name in ENTITY_FILTER_FIELDS}

    def get(self, entity: str, session: Optional[SessionModel] = None) -> InMemoryRepository:
        if entity not in self.collections:
            raise ValueError(f"Unknown repository: {entity}")
        return InMemoryRepository(entity, self.collections[entity], session)

    def seed(self, entity: str, **fields: Any) -> Dict[str, Any]:
        document = {
            'id': str(uuid.uuid4()),
            'createdAt': datetime.now(timezone.utc),
            'deletedAt': None,
            **fields,
        }
        self.collections[entity].append(document)
        return document


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def repositories() -> InMemoryRepositories:
    return InMemoryRepositories()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(method=FAST_HASH_METHOD)


@pytest.fixture
def admin_session() -> SessionModel:
    return SessionModel(user_id=str(uuid.uuid4()), role=Role.ADMIN)


@pytest.fixture
def moderator_session() -> SessionModel:
    return SessionModel(user_id=str(uuid.uuid4()), role=Role.MODERATOR)


@pytest.fixture
def customer_session() -> SessionModel:
    return SessionModel(user_id=str(uuid.uuid4()), role=Role.CUSTOMER)


@pytest.fixture
def anonymous_session() -> SessionModel:
    return SessionModel()


@pytest.fixture
def app(repositories):
    return create_app('testing', repositories=repositories)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Build an ``Authorization`` header for a session of ``role``."""
    codec = app.extensions['session_codec']

    def _headers(role: Role = Role.ADMIN, user_id: Optional[str] = None) -> Dict[str, str]:
        session = SessionModel(user_id=user_id or str(uuid.uuid4()), role=role)
        return {'Authorization': f'Bearer {codec.encode(session)}'}

    return _headers
