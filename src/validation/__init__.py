"""
Declarative validation for request models.

    from src.validation import ValidatorService, rules

    await ValidatorService().validate(
        schema={'id': [rules.required(), rules.regex('uuidV4')]},
        model={'id': user_id},
    )
"""

from src.validation import rules
from src.validation.engine import ReferenceData, RuleOutcome, ValidatorService
from src.validation.filters import (
    FilterCondition, FilterExpression, FilterGroup, ListFilter, ListFilterError,
    parse_list_filters
)
from src.validation.paths import MISSING, FieldPath
from src.validation.rules import PropMapping, Rule, RuleName

__all__ = [
    'rules', 'ValidatorService', 'ReferenceData', 'RuleOutcome', 'FieldPath', 'MISSING',
    'Rule', 'RuleName', 'PropMapping', 'FilterCondition', 'FilterGroup',
    'FilterExpression', 'ListFilter', 'ListFilterError', 'parse_list_filters',
]
