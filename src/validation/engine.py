"""
Schema-driven validation engine.

``ValidatorService`` evaluates a schema (field path -> ordered rules) against a
model and optional reference data. Fields are dispatched concurrently; within a
field, rules run in declared order and the first failure is the only one
reported for that field. ``array``, ``object`` and ``listFilters`` recurse into
the same fan-out with rewritten paths.

The service keeps no per-call state: violations are returned by each evaluation
and merged by the caller, so a single instance can serve concurrent requests.

Example:
    validator = ValidatorService()
    await validator.validate(
        schema={'email': [rules.required(), rules.string(), rules.regex('email')]},
        model={'email': 'john@example.com'},
    )
"""

import asyncio
import datetime as dt
import inspect
import math
import re
from dataclasses import dataclass
from typing import (
    Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
)

import structlog

from src.business.exceptions import ValidationException, ValidationItem
from src.monitoring.metrics import VALIDATION_FAILURES
from src.validation.filters import ListFilterError, parse_list_filters
from src.validation.paths import MISSING, FieldPath
from src.validation.rules import (
    ArrayOptions, BoundOptions, CustomOptions, DistinctOptions, ExistsOptions,
    InOptions, LengthOptions, ListFiltersOptions, ObjectOptions, PropMapping,
    RegexOptions, Rule, RuleName, UniqueOptions
)

logger = structlog.get_logger("validation.engine")

ReferenceData = Mapping[str, Sequence[Mapping[str, Any]]]
SchemaEntries = Iterable[Tuple[FieldPath, Sequence[Rule]]]

_DIGITS = re.compile(r"^\d*\Z")
_NUMERIC_TEXT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\Z")
_DATE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])\Z")
_DATETIME = re.compile(
    r"^(\d{4})-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])"
    r"T([01]\d|2[0-3]):[0-5]\d:[0-5]\d\.\d{3}Z\Z"
)

# Rules evaluated even when the field is absent from the model.
_ABSENCE_AWARE = frozenset({RuleName.REQUIRED, RuleName.CUSTOM})


# ============================================================================
# VALUE HELPERS
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number_text(value: Union[int, float]) -> str:
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def _format_number(value: Union[int, float]) -> str:
    return _number_text(value) if _is_number(value) else str(value)


def _to_number(value: Any) -> float:
    """Numeric coercion used by ``min``/``max``; ``nan`` means "not numeric"."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if text in ("Infinity", "+Infinity", "-Infinity"):
            return -math.inf if text.startswith("-") else math.inf
        if _NUMERIC_TEXT.match(text):
            return float(text)
        return math.nan
    if isinstance(value, list):
        if not value:
            return 0.0
        if len(value) == 1:
            return _to_number(value[0])
    return math.nan


def _same_value(left: Any, right: Any) -> bool:
    """Strict equality: no cross-type matches between primitives."""
    if left is MISSING or right is MISSING or left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) or _is_number(right):
        return _is_number(left) and _is_number(right) and left == right
    if isinstance(left, str) or isinstance(right, str):
        return isinstance(left, str) and isinstance(right, str) and left == right
    return left == right


def _is_valid_date(value: str) -> bool:
    match = _DATE.match(value) or _DATETIME.match(value)
    if not match:
        return False
    year, month, day = (int(part) for part in match.group(1, 2, 3))
    try:
        dt.date(year, month, day)
    except ValueError:
        return False
    return True


# ============================================================================
# ENGINE
# ============================================================================

class RuleOutcome(NamedTuple):
    """Result of one rule: its own violation plus violations found below it."""
    violation: Optional[ValidationItem] = None
    nested: Tuple[ValidationItem, ...] = ()


@dataclass(frozen=True)
class RuleContext:
    path: FieldPath
    value: Any
    options: Any
    model: Any
    data: ReferenceData

    @property
    def field(self) -> str:
        return str(self.path)


class ValidatorService:
    """Stateless validation engine."""

    async def validate(
        self,
        schema: Mapping[str, Sequence[Rule]],
        model: Any,
        data: Optional[ReferenceData] = None
    ) -> None:
        """
        Validate ``model`` against ``schema``.

        Args:
            schema: dotted field path -> ordered rules
            model: mapping being validated, never mutated
            data: reference records for ``unique``/``exists``, keyed by entity

        Raises:
            ValidationException: at least one field failed
        """
        validations = await self.collect(schema, model, data)
        if validations:
            for item in validations:
                VALIDATION_FAILURES.labels(rule=item.rule).inc()
            logger.info(
                "Validation failed",
                violation_count=len(validations),
                fields=[item.field for item in validations]
            )
            raise ValidationException(validations)

    async def collect(
        self,
        schema: Mapping[str, Sequence[Rule]],
        model: Any,
        data: Optional[ReferenceData] = None
    ) -> List[ValidationItem]:
        """Return every violation instead of raising."""
        entries = [(FieldPath.parse(key), rules) for key, rules in schema.items()]
        return await self._validate_entries(entries, model, data or {})

    async def _validate_entries(
        self,
        entries: SchemaEntries,
        model: Any,
        data: ReferenceData
    ) -> List[ValidationItem]:
        results = await asyncio.gather(*(
            self._validate_field(path, rules, model, data) for path, rules in entries
        ))
        return [item for items in results for item in items]

    async def _validate_field(
        self,
        path: FieldPath,
        rules: Sequence[Rule],
        model: Any,
        data: ReferenceData
    ) -> List[ValidationItem]:
        collected: List[ValidationItem] = []
        value = path.resolve(model)

        for rule in rules:
            if value is MISSING and rule.name not in _ABSENCE_AWARE:
                continue

            outcome = await self._evaluate(rule, RuleContext(path, value, rule.options, model, data))
            collected.extend(outcome.nested)
            if outcome.violation is not None:
                collected.append(outcome.violation)
                break

        return collected

    async def _evaluate(self, rule: Rule, ctx: RuleContext) -> RuleOutcome:
        result = _EVALUATORS[rule.name](self, ctx)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, RuleOutcome):
            return result
        return RuleOutcome(result)

    # ------------------------------------------------------------------
    # Scalar rules
    # ------------------------------------------------------------------

    def _check_required(self, ctx: RuleContext) -> Optional[ValidationItem]:
        if ctx.value is MISSING or ctx.value is None:
            return ValidationItem(ctx.field, RuleName.REQUIRED.value, "This value is required")
        return None

    def _check_string(self, ctx: RuleContext) -> Optional[ValidationItem]:
        if isinstance(ctx.value, str):
            return None
        return ValidationItem(ctx.field, RuleName.STRING.value, "This value must be a string")

    def _check_number(self, ctx: RuleContext) -> Optional[ValidationItem]:
        if _is_number(ctx.value):
            return None
        return ValidationItem(ctx.field, RuleName.NUMBER.value, "This value must be a number")

    def _check_integer(self, ctx: RuleContext) -> Optional[ValidationItem]:
        if _is_number(ctx.value) and _DIGITS.match(_number_text(ctx.value)):
            return None
        return ValidationItem(ctx.field, RuleName.INTEGER.value, "This value must be an integer")

    def _check_integer_string(self, ctx: RuleContext) -> Optional[ValidationItem]:
        if isinstance(ctx.value, str) and _DIGITS.match(ctx.value):
            return None
        return ValidationItem(
            ctx.field, RuleName.INTEGER_STRING.value, "This value must be an integer in a string"
        )

    def _check_date(self, ctx: RuleContext) -> Optional[ValidationItem]:
        if isinstance(ctx.value, str) and _is_valid_date(ctx.value):
            return None
        return ValidationItem(ctx.field, RuleName.DATE.value, "This value must be a valid date")

    def _check_in(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: InOptions = ctx.options
        if any(_same_value(ctx.value, allowed) for allowed in options.values):
            return None
        return ValidationItem(
            ctx.field,
            RuleName.IN.value,
            f"This value must be in: {', '.join(str(allowed) for allowed in options.values)}",
            {'values': list(options.values)}
        )

    def _check_min(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: BoundOptions = ctx.options
        number = _to_number(ctx.value)
        if math.isnan(number) or number >= options.value:
            return None
        return ValidationItem(
            ctx.field,
            RuleName.MIN.value,
            f"This value must be bigger or equal to: {_format_number(options.value)}",
            {'value': options.value}
        )

    def _check_max(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: BoundOptions = ctx.options
        number = _to_number(ctx.value)
        if math.isnan(number) or number <= options.value:
            return None
        return ValidationItem(
            ctx.field,
            RuleName.MAX.value,
            f"This value must be less or equal to: {_format_number(options.value)}",
            {'value': options.value}
        )

    def _check_regex(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: RegexOptions = ctx.options
        pattern = options.compiled
        if isinstance(ctx.value, str) and pattern.search(ctx.value):
            return None
        return ValidationItem(
            ctx.field,
            RuleName.REGEX.value,
            f"This value must be valid according to the pattern: {options.label}",
            {'pattern': pattern.pattern}
        )

    def _check_length(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: LengthOptions = ctx.options
        if not isinstance(ctx.value, (str, list)):
            return None
        if options.min_length <= len(ctx.value) <= options.max_length:
            return None
        return ValidationItem(
            ctx.field,
            RuleName.LENGTH.value,
            f"This value length must be between {options.min_length} and {options.max_length}",
            {'minLength': options.min_length, 'maxLength': options.max_length}
        )

    def _check_distinct(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: DistinctOptions = ctx.options
        if not isinstance(ctx.value, list):
            return None

        if options.keys:
            signatures = [
                tuple(FieldPath.parse(key).resolve(element) for key in options.keys)
                for element in ctx.value
            ]
        else:
            signatures = [(element,) for element in ctx.value]

        for index, signature in enumerate(signatures):
            for other in signatures[index + 1:]:
                if all(_same_value(left, right) for left, right in zip(signature, other)):
                    return self._distinct_violation(ctx, options)
        return None

    @staticmethod
    def _distinct_violation(ctx: RuleContext, options: DistinctOptions) -> ValidationItem:
        message = "This value cannot have duplicate items"
        details = None
        if options.keys:
            message += f" by: {', '.join(options.keys)}"
            details = {'keys': list(options.keys)}
        return ValidationItem(ctx.field, RuleName.DISTINCT.value, message, details)

    # ------------------------------------------------------------------
    # Reference data rules
    # ------------------------------------------------------------------

    @staticmethod
    def _matches(
        record: Mapping[str, Any],
        props: Sequence[PropMapping],
        path: FieldPath,
        model: Any
    ) -> bool:
        # model keys are siblings of the validated field
        return all(
            _same_value(
                FieldPath.parse(prop.data_key).resolve(record),
                path.sibling(prop.model_key).resolve(model)
            )
            for prop in props
        )

    def _check_unique(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: UniqueOptions = ctx.options
        for record in ctx.data.get(options.data_entity) or ():
            if not self._matches(record, options.props, ctx.path, ctx.model):
                continue
            if options.ignore_props and self._matches(record, options.ignore_props, ctx.path, ctx.model):
                continue
            return ValidationItem(ctx.field, RuleName.UNIQUE.value, "This value has already been used")
        return None

    def _check_exists(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: ExistsOptions = ctx.options
        records = ctx.data.get(options.data_entity) or ()
        if any(self._matches(record, options.props, ctx.path, ctx.model) for record in records):
            return None
        return ValidationItem(ctx.field, RuleName.EXISTS.value, "This value was not found")

    # ------------------------------------------------------------------
    # Recursive rules
    # ------------------------------------------------------------------

    async def _check_array(self, ctx: RuleContext) -> RuleOutcome:
        options: ArrayOptions = ctx.options
        if not isinstance(ctx.value, list):
            return RuleOutcome(
                ValidationItem(ctx.field, RuleName.ARRAY.value, "This value must be an array")
            )

        nested = await self._validate_entries(
            [(ctx.path.child(index), options.rules) for index in range(len(ctx.value))],
            ctx.model,
            ctx.data
        )
        return RuleOutcome(nested=tuple(nested))

    async def _check_object(self, ctx: RuleContext) -> RuleOutcome:
        options: ObjectOptions = ctx.options
        if not isinstance(ctx.value, dict):
            return RuleOutcome(
                ValidationItem(ctx.field, RuleName.OBJECT.value, "This value must be an object")
            )

        nested = await self._validate_entries(
            [(ctx.path.join(key), rules) for key, rules in options.items()],
            ctx.model,
            ctx.data
        )
        return RuleOutcome(nested=tuple(nested))

    async def _check_list_filters(self, ctx: RuleContext) -> RuleOutcome:
        options: ListFiltersOptions = ctx.options
        try:
            parsed = parse_list_filters(ctx.value, options.fields)
        except ListFilterError as exc:
            logger.debug("List filter rejected", field=ctx.field, reason=str(exc))
            return RuleOutcome(ValidationItem(
                ctx.field,
                RuleName.LIST_FILTERS.value,
                "This value must be a valid list filter expression using only these fields: "
                + ", ".join(options.fields),
                {'fields': list(options.fields)}
            ))

        if parsed.is_empty:
            return RuleOutcome()

        # filtered values are checked as a plain object under "filters"
        projected = {'filters': parsed.values}
        outcome = await self._check_object(RuleContext(
            FieldPath(('filters',)), parsed.values, options.schema, projected, ctx.data
        ))
        return outcome

    async def _check_custom(self, ctx: RuleContext) -> Optional[ValidationItem]:
        options: CustomOptions = ctx.options
        result = options.validation()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return None
        return ValidationItem(ctx.field, options.rule, options.message)


_EVALUATORS: Dict[RuleName, Callable[[ValidatorService, RuleContext], Any]] = {
    RuleName.REQUIRED: ValidatorService._check_required,
    RuleName.STRING: ValidatorService._check_string,
    RuleName.NUMBER: ValidatorService._check_number,
    RuleName.INTEGER: ValidatorService._check_integer,
    RuleName.INTEGER_STRING: ValidatorService._check_integer_string,
    RuleName.DATE: ValidatorService._check_date,
    RuleName.IN: ValidatorService._check_in,
    RuleName.MIN: ValidatorService._check_min,
    RuleName.MAX: ValidatorService._check_max,
    RuleName.REGEX: ValidatorService._check_regex,
    RuleName.LENGTH: ValidatorService._check_length,
    RuleName.ARRAY: ValidatorService._check_array,
    RuleName.OBJECT: ValidatorService._check_object,
    RuleName.DISTINCT: ValidatorService._check_distinct,
    RuleName.UNIQUE: ValidatorService._check_unique,
    RuleName.EXISTS: ValidatorService._check_exists,
    RuleName.LIST_FILTERS: ValidatorService._check_list_filters,
    RuleName.CUSTOM: ValidatorService._check_custom,
}

_unhandled = set(RuleName) - set(_EVALUATORS)
if _unhandled:
    raise RuntimeError(f"No evaluator registered for rules: {sorted(r.value for r in _unhandled)}")


__all__ = ['ValidatorService', 'RuleOutcome', 'ReferenceData']
