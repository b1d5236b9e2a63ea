"""
Validation Rule Descriptors

Declarative, immutable descriptions of the checks the validation engine knows
how to run. A schema maps field paths to ordered tuples of ``Rule`` values;
the engine evaluates them in declared order and keeps only the first failure
per field.

Builders mirror the wire names of the rules, with a trailing underscore where
the wire name collides with a Python keyword or builtin::

    schema = {
        'email': [rules.required(), rules.string(), rules.regex('email')],
        'orderItems': [
            rules.array([rules.object_({'productId': [rules.required()]})]),
            rules.distinct(keys=['productId']),
        ],
    }
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Pattern,
    Sequence, Tuple, Union
)


class RuleName(str, Enum):
    """Closed set of rule kinds understood by the engine."""
    REQUIRED = "required"
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    INTEGER_STRING = "integerString"
    DATE = "date"
    IN = "in"
    MIN = "min"
    MAX = "max"
    REGEX = "regex"
    LENGTH = "length"
    ARRAY = "array"
    OBJECT = "object"
    DISTINCT = "distinct"
    UNIQUE = "unique"
    EXISTS = "exists"
    LIST_FILTERS = "listFilters"
    CUSTOM = "custom"


# ============================================================================
# NAMED PATTERNS
# ============================================================================

NAMED_PATTERNS: Dict[str, Pattern] = {
    'name': re.compile(r"^([a-zA-ZÀ-ÿ]+\s)*[a-zA-ZÀ-ÿ]+\Z"),
    'email': re.compile(r"^[\w+.]+@\w+\.\w{2,}(?:\.\w{2})?\Z", re.ASCII),
    'password': re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]"),
    'uuidV4': re.compile(
        r"^[0-9A-F]{8}-[0-9A-F]{4}-4[0-9A-F]{3}-[89AB][0-9A-F]{3}-[0-9A-F]{12}\Z",
        re.IGNORECASE
    ),
    'url': re.compile(
        r"[(http(s)?)://(www.)?a-zA-Z0-9@:%._+~#=]{2,256}\.[a-z]{2,6}\b([-a-zA-Z0-9@:%_+.~#?&//=]*)",
        re.IGNORECASE
    ),
}

DEFAULT_CUSTOM_PATTERN = re.compile(r"^\w\Z")

PatternName = str
Schema = Mapping[str, Sequence["Rule"]]


# ============================================================================
# RULE OPTIONS
# ============================================================================

@dataclass(frozen=True)
class PropMapping:
    """Pairs a key on the validated model with a key on a reference record."""
    model_key: str
    data_key: str


@dataclass(frozen=True)
class InOptions:
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class BoundOptions:
    value: Union[int, float]


@dataclass(frozen=True)
class RegexOptions:
    pattern: PatternName
    custom_pattern: Optional[Pattern] = None

    @property
    def compiled(self) -> Pattern:
        if self.pattern == 'custom':
            return self.custom_pattern or DEFAULT_CUSTOM_PATTERN
        return NAMED_PATTERNS[self.pattern]

    @property
    def label(self) -> str:
        if self.pattern == 'custom' and self.custom_pattern is not None:
            return self.custom_pattern.pattern
        return self.pattern


@dataclass(frozen=True)
class LengthOptions:
    min_length: int
    max_length: int


@dataclass(frozen=True)
class ArrayOptions:
    rules: Tuple["Rule", ...]


@dataclass(frozen=True)
class ObjectOptions:
    schema: Tuple[Tuple[str, Tuple["Rule", ...]], ...]

    def items(self):
        return iter(self.schema)

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.schema)


@dataclass(frozen=True)
class DistinctOptions:
    keys: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class UniqueOptions:
    data_entity: str
    props: Tuple[PropMapping, ...]
    ignore_props: Tuple[PropMapping, ...] = ()


@dataclass(frozen=True)
class ExistsOptions:
    data_entity: str
    props: Tuple[PropMapping, ...]


@dataclass(frozen=True)
class ListFiltersOptions:
    schema: ObjectOptions

    @property
    def fields(self) -> Tuple[str, ...]:
        return self.schema.keys


@dataclass(frozen=True)
class CustomOptions:
    validation: Callable[[], Union[bool, Awaitable[bool]]] = field(compare=False)
    rule: str
    message: str


@dataclass(frozen=True)
class Rule:
    """A named, parameterised validation check."""
    name: RuleName
    options: Any = None

    def __repr__(self) -> str:
        if self.options is None:
            return f"Rule({self.name.value})"
        return f"Rule({self.name.value}, {self.options!r})"


# ============================================================================
# BUILDERS
# ============================================================================

def _freeze_schema(schema: Schema) -> ObjectOptions:
    return ObjectOptions(tuple((key, tuple(rules)) for key, rules in schema.items()))


def _props(pairs: Iterable[Union[PropMapping, Tuple[str, str]]]) -> Tuple[PropMapping, ...]:
    mappings = []
    for pair in pairs:
        if isinstance(pair, PropMapping):
            mappings.append(pair)
        else:
            model_key, data_key = pair
            mappings.append(PropMapping(model_key, data_key))
    return tuple(mappings)


def required() -> Rule:
    return Rule(RuleName.REQUIRED)


def string() -> Rule:
    return Rule(RuleName.STRING)


def number() -> Rule:
    return Rule(RuleName.NUMBER)


def integer() -> Rule:
    return Rule(RuleName.INTEGER)


def integer_string() -> Rule:
    return Rule(RuleName.INTEGER_STRING)


def date() -> Rule:
    return Rule(RuleName.DATE)


def in_(values: Iterable[Any]) -> Rule:
    return Rule(RuleName.IN, InOptions(tuple(values)))


def min_(value: Union[int, float]) -> Rule:
    return Rule(RuleName.MIN, BoundOptions(value))


def max_(value: Union[int, float]) -> Rule:
    return Rule(RuleName.MAX, BoundOptions(value))


def regex(pattern: PatternName, custom_pattern: Union[str, Pattern, None] = None) -> Rule:
    """
    Match against a named pattern, or a caller pattern when ``pattern='custom'``.

    Raises:
        ValueError: unknown pattern name
    """
    if pattern != 'custom' and pattern not in NAMED_PATTERNS:
        raise ValueError(
            f"Unknown regex pattern '{pattern}'. "
            f"Known patterns: {sorted(NAMED_PATTERNS) + ['custom']}"
        )
    if isinstance(custom_pattern, str):
        custom_pattern = re.compile(custom_pattern)
    return Rule(RuleName.REGEX, RegexOptions(pattern, custom_pattern))


def length(min_length: int, max_length: int) -> Rule:
    return Rule(RuleName.LENGTH, LengthOptions(min_length, max_length))


def array(rules: Iterable[Rule]) -> Rule:
    return Rule(RuleName.ARRAY, ArrayOptions(tuple(rules)))


def object_(schema: Schema) -> Rule:
    return Rule(RuleName.OBJECT, _freeze_schema(schema))


def distinct(keys: Optional[Iterable[str]] = None) -> Rule:
    return Rule(RuleName.DISTINCT, DistinctOptions(tuple(keys) if keys else None))


def unique(
    data_entity: str,
    props: Iterable[Union[PropMapping, Tuple[str, str]]],
    ignore_props: Optional[Iterable[Union[PropMapping, Tuple[str, str]]]] = None
) -> Rule:
    return Rule(
        RuleName.UNIQUE,
        UniqueOptions(data_entity, _props(props), _props(ignore_props or ()))
    )


def exists(
    data_entity: str,
    props: Iterable[Union[PropMapping, Tuple[str, str]]]
) -> Rule:
    return Rule(RuleName.EXISTS, ExistsOptions(data_entity, _props(props)))


def list_filters(schema: Schema) -> Rule:
    return Rule(RuleName.LIST_FILTERS, ListFiltersOptions(_freeze_schema(schema)))


def custom(
    validation: Callable[[], Union[bool, Awaitable[bool]]],
    rule: str,
    message: str
) -> Rule:
    return Rule(RuleName.CUSTOM, CustomOptions(validation, rule, message))


__all__ = [
    'RuleName', 'Rule', 'PropMapping', 'Schema', 'NAMED_PATTERNS',
    'InOptions', 'BoundOptions', 'RegexOptions', 'LengthOptions', 'ArrayOptions',
    'ObjectOptions', 'DistinctOptions', 'UniqueOptions', 'ExistsOptions',
    'ListFiltersOptions', 'CustomOptions',
    'required', 'string', 'number', 'integer', 'integer_string', 'date', 'in_',
    'min_', 'max_', 'regex', 'length', 'array', 'object_', 'distinct', 'unique',
    'exists', 'list_filters', 'custom',
]
