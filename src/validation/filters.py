"""
List-filter expression parser.

Listing endpoints accept a compact JSON expression in prefix notation::

    ["&", ["=", "email", "a@b.com"], ["in", "role", ["admin", "moderator"]]]

Leaves are ``[operator, field, value]``; combinators are ``["&" | "|", child, ...]``.
Parsing yields a typed expression tree (consumed by repositories to build
queries) plus the values seen for each permitted field (consumed by the
``listFilters`` rule to validate the embedded values).
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union


COMPARISON_OPERATORS = frozenset({"=", "!=", ">", ">=", "<", "<=", ":", "!:"})
MEMBERSHIP_OPERATOR = "in"
COMBINATOR_OPERATORS = frozenset({"&", "|"})


class ListFilterError(ValueError):
    """Raised when a filter expression is malformed or uses a forbidden field."""


@dataclass(frozen=True)
class FilterCondition:
    operator: str
    field: str
    value: Any


@dataclass(frozen=True)
class FilterGroup:
    operator: str
    children: Tuple["FilterExpression", ...]


FilterExpression = Union[FilterCondition, FilterGroup]


@dataclass(frozen=True)
class ListFilter:
    """Result of a successful parse."""
    expression: Optional[FilterExpression]
    values: Dict[str, List[Any]]

    @property
    def is_empty(self) -> bool:
        return self.expression is None


def _is_scalar(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (str, int, float))


def _reject_constant(name: str) -> Any:
    raise ListFilterError(f"Unsupported numeric constant {name}")


def parse_list_filters(text: Any, fields: Iterable[str]) -> ListFilter:
    """
    Parse ``text`` into a filter expression restricted to ``fields``.

    An empty list (``"[]"``) is a valid expression that filters nothing.

    Raises:
        ListFilterError: invalid JSON, unknown operator, wrong arity, field
            outside ``fields`` or a value of the wrong type for its operator
    """
    if not isinstance(text, str):
        raise ListFilterError("Filter expression must be a JSON string")

    try:
        raw = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ListFilterError(f"Filter expression is not valid JSON: {exc.msg}") from exc

    if not isinstance(raw, list):
        raise ListFilterError("Filter expression must be a list")

    allowed = tuple(fields)
    values: Dict[str, List[Any]] = {name: [] for name in allowed}

    if not raw:
        return ListFilter(None, values)

    expression = _parse_node(raw, frozenset(allowed), values)
    return ListFilter(expression, values)


def _parse_node(node: Any, allowed: frozenset, values: Dict[str, List[Any]]) -> FilterExpression:
    if not isinstance(node, list) or not node:
        raise ListFilterError("Every filter node must be a non-empty list")

    operator = node[0]
    if not isinstance(operator, str):
        raise ListFilterError("Filter operator must be a string")

    if operator in COMBINATOR_OPERATORS:
        children = node[1:]
        if not children:
            raise ListFilterError(f"Operator '{operator}' requires at least one condition")
        return FilterGroup(
            operator,
            tuple(_parse_node(child, allowed, values) for child in children)
        )

    if operator in COMPARISON_OPERATORS or operator == MEMBERSHIP_OPERATOR:
        if len(node) != 3:
            raise ListFilterError(f"Operator '{operator}' takes exactly a field and a value")

        _, field_name, value = node
        if not isinstance(field_name, str) or field_name not in allowed:
            raise ListFilterError(f"Field {field_name!r} cannot be filtered")

        if operator == MEMBERSHIP_OPERATOR:
            if not isinstance(value, list) or not all(_is_scalar(item) for item in value):
                raise ListFilterError("Operator 'in' requires a list of strings or numbers")
            values[field_name].extend(value)
        else:
            if not _is_scalar(value):
                raise ListFilterError(f"Operator '{operator}' requires a string or number")
            values[field_name].append(value)

        return FilterCondition(operator, field_name, value)

    raise ListFilterError(f"Unknown filter operator '{operator}'")
