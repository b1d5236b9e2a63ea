"""
Base Business Service

Shared plumbing for the per-entity use-case services:

- ``service_operation``: async context manager that logs and times every
  operation and records its outcome in Prometheus.
- sanitization helpers that whitelist request keys without inventing values
  for absent ones (absent stays absent for the validation engine).
- the schema fragments every entity repeats: the ``id`` checks, the listing
  query schema and the per-field list-filter rules.

Every mutating operation follows the same sequence::

    sanitized = self.pick(request, FIELDS)
    await self.validator.validate(structural_schema, sanitized)     # pass 1
    reference = await fetch candidate records from repositories
    await self.validator.validate(reference_schema, sanitized, reference)  # pass 2
    written = await repository.create/update/remove(...)
    return PublicModel.model_validate({...}).to_api_dict()
"""

import math
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type

import structlog

from src.business import constants
from src.business.exceptions import BaseBusinessException, ResourceNotFoundError, ValidationException
from src.business.models import BaseBusinessModel, Page, Role, SessionModel
from src.business.ports import Record
from src.monitoring.metrics import SERVICE_OPERATION_DURATION, SERVICE_OPERATIONS
from src.validation import ValidatorService, rules
from src.validation.rules import Rule

logger = structlog.get_logger("business.services")

Schema = Dict[str, List[Rule]]


def coerce_number(value: Any) -> Any:
    """
    Query-string numbers: ``"2"`` becomes ``2``; text that is not a non-zero
    number is returned unchanged so the integer rule can report it.
    """
    if not isinstance(value, str):
        return value
    try:
        number = float(value)
    except ValueError:
        return value
    if not number or math.isnan(number):
        return value
    return int(number) if number.is_integer() else number


def uuid_filter() -> List[Rule]:
    return [rules.array([rules.string(), rules.regex('uuidV4')])]


def date_filter() -> List[Rule]:
    return [rules.array([rules.string(), rules.date()])]


def number_filter() -> List[Rule]:
    return [rules.array([rules.number()])]


def text_filter(*extra: Rule) -> List[Rule]:
    return [rules.array([rules.string(), *extra])]


AUDIT_FILTER_RULES = {
    'createUserId': uuid_filter,
    'updateUserId': uuid_filter,
    'createdAt': date_filter,
    'updatedAt': date_filter,
}


def filter_schema(fields: Sequence[str], overrides: Mapping[str, List[Rule]]) -> Schema:
    """Filter rules for ``fields``, in order; audit fields get their default rules."""
    schema: Schema = {}
    for name in fields:
        if name in overrides:
            schema[name] = list(overrides[name])
        else:
            schema[name] = AUDIT_FILTER_RULES[name]()
    return schema


class BaseBusinessService:
    """
    Base class for the entity services.

    Example:
        class CustomService(BaseBusinessService):
            async def perform(self, request):
                async with self.service_operation("perform"):
                    ...
    """

    service_name = 'base'

    def __init__(self, session: Optional[SessionModel] = None, validator: Optional[ValidatorService] = None):
        self.session = session or SessionModel()
        self.validator = validator or ValidatorService()

    @property
    def is_admin(self) -> bool:
        return self.session.role == Role.ADMIN.value

    @asynccontextmanager
    async def service_operation(self, operation_name: str, **log_context: Any):
        """
        Log, time and count one service operation.

        Yields:
            Operation context dict carrying ``operation_id``
        """
        context = {'operation_id': str(uuid.uuid4()), 'operation_name': operation_name}
        bound = logger.bind(
            service=self.service_name,
            operation=operation_name,
            operation_id=context['operation_id'],
            user_id=self.session.user_id,
            **log_context
        )
        start_time = time.perf_counter()
        outcome = 'success'
        bound.debug("Service operation started")

        try:
            yield context
        except ValidationException as e:
            outcome = 'invalid'
            bound.info("Service operation rejected", violation_count=len(e.validations))
            raise
        except BaseBusinessException as e:
            outcome = 'rejected'
            bound.info("Service operation rejected", error_code=e.error_code)
            raise
        except Exception as e:
            outcome = 'error'
            bound.error("Service operation failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            duration = time.perf_counter() - start_time
            SERVICE_OPERATIONS.labels(
                service=self.service_name, operation=operation_name, outcome=outcome
            ).inc()
            SERVICE_OPERATION_DURATION.labels(
                service=self.service_name, operation=operation_name
            ).observe(duration)
            if outcome == 'success':
                bound.info("Service operation completed", duration_ms=round(duration * 1000, 2))

    # ------------------------------------------------------------------
    # Sanitization
    # ------------------------------------------------------------------

    @staticmethod
    def pick(request: Optional[Mapping[str, Any]], keys: Iterable[str]) -> Dict[str, Any]:
        """Whitelist ``keys`` of ``request``; absent keys stay absent."""
        if not isinstance(request, Mapping):
            return {}
        return {key: request[key] for key in keys if key in request}

    @staticmethod
    def pick_list_query(request: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        query = BaseBusinessService.pick(request, ('page', 'perPage', 'orderBy', 'order', 'filters'))
        for key in ('page', 'perPage'):
            if key in query:
                query[key] = coerce_number(query[key])
        return query

    # ------------------------------------------------------------------
    # Schema fragments
    # ------------------------------------------------------------------

    @staticmethod
    def id_rules() -> List[Rule]:
        return [rules.required(), rules.string(), rules.regex('uuidV4')]

    @staticmethod
    def id_exists(data_entity: str) -> List[Rule]:
        return [rules.exists(data_entity, [('id', 'id')])]

    @staticmethod
    def list_schema(sort_fields: Sequence[str], filters: Schema) -> Schema:
        return {
            'page': [rules.integer(), rules.min_(1)],
            'perPage': [
                rules.integer(),
                rules.min_(constants.MIN_PER_PAGE),
                rules.max_(constants.MAX_PER_PAGE),
            ],
            'orderBy': [rules.string(), rules.in_(sort_fields)],
            'order': [rules.string(), rules.in_(constants.SORT_ORDERS)],
            'filters': [rules.list_filters(filters)],
        }

    # ------------------------------------------------------------------
    # Response shaping
    # ------------------------------------------------------------------

    @staticmethod
    def shape(model: Type[BaseBusinessModel], *records: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Merge ``records`` left to right and render them through ``model``."""
        merged: Record = {}
        for record in records:
            if record:
                merged.update(record)
        return model.model_validate(merged).to_api_dict()

    @staticmethod
    def shape_page(model: Type[BaseBusinessModel], page: Mapping[str, Any]) -> Dict[str, Any]:
        return Page.model_validate({
            **page,
            'registers': [model.model_validate(record).to_api_dict() for record in page['registers']],
        }).to_api_dict()

    @staticmethod
    def first_or_missing(records: Sequence[Record], resource_type: str, resource_id: Optional[str]) -> Record:
        """First record, or ``ResourceNotFoundError`` when the write matched nothing."""
        if not records:
            raise ResourceNotFoundError(resource_type, resource_id)
        return records[0]

    @staticmethod
    def find_by_id(records: Sequence[Record], record_id: Any) -> Optional[Record]:
        return next((record for record in records if record.get('id') == record_id), None)


__all__ = [
    'BaseBusinessService', 'Schema', 'coerce_number', 'filter_schema',
    'uuid_filter', 'date_filter', 'number_filter', 'text_filter',
]
