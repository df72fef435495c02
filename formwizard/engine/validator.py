"""Stage validation against declarative and custom rules."""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from .expressions import ExpressionEvaluator, to_number
from .exceptions import ExpressionError
from .schema import Field, GroupField, ValidationRule
from .values import is_empty

logger = logging.getLogger(__name__)

ErrorMap = Dict[str, str]


def validate_stage(fields: List[Union[Field, GroupField]], values: Dict[str, Any],
                   evaluator: ExpressionEvaluator, parent_path: Optional[str] = None,
                   form_values: Optional[Dict[str, Any]] = None) -> ErrorMap:
    """Validate a stage's flattened field list.

    Args:
        fields: Fields and groups of the stage (sections already flattened)
        values: Value tree, or a group's sub-tree when recursing
        evaluator: Evaluator for ``Function`` rules
        parent_path: Group name when recursing into a group
        form_values: Whole value tree passed to predicates (defaults to ``values``)

    Returns:
        Mapping of field path to error message; one message per path, the
        last failing rule wins
    """
    form_values = values if form_values is None else form_values
    errors: ErrorMap = {}

    for field in fields:
        if field.kind == 'group':
            sub = values.get(field.name) if isinstance(values, dict) else None
            group_errors = validate_stage(
                field.fields, sub if isinstance(sub, dict) else {}, evaluator,
                parent_path=field.name, form_values=form_values,
            )
            for key, message in group_errors.items():
                errors[f'{field.name}.{key}'] = message
            continue

        path = f'{parent_path}.{field.name}' if parent_path else field.name
        value = values.get(field.name) if isinstance(values, dict) else None

        if field.required and is_empty(value):
            errors[field.name] = f"{field.display_label} is required."

        for rule in field.validation:
            if not _rule_passes(rule, field, value, form_values, evaluator, path):
                errors[field.name] = rule.message

    return errors


def visible_errors(errors: ErrorMap, status: str) -> ErrorMap:
    """Errors to show for a stage; none until the stage has been attempted."""
    if status == 'untouched':
        return {}
    return errors


def _rule_passes(rule: ValidationRule, field: Field, value: Any, form_values: Dict[str, Any],
                 evaluator: ExpressionEvaluator, path: str) -> bool:
    rule_type = rule.type

    if rule_type == 'Regex':
        if not rule.regex or not value:
            return True
        try:
            return re.search(rule.regex, str(value)) is not None
        except re.error as e:
            logger.warning(f"Invalid regex for '{path}': {rule.regex} ({e})")
            if evaluator.diagnostics is not None:
                evaluator.diagnostics.record_failure(path, 'regex', str(e), {'regex': rule.regex})
            return True

    if rule_type == 'Required':
        return value is not None and str(value) != ''

    if rule_type in ('MinLength', 'MaxLength'):
        if not isinstance(value, str):
            return True
        if rule_type == 'MinLength':
            bound = _bound(rule.value, field.min_length, 0)
            return len(value) >= bound
        bound = _bound(rule.value, field.max_length, None)
        return bound is None or len(value) <= bound

    if rule_type in ('MinValue', 'MaxValue'):
        number = _numeric(value)
        if number is None:
            return True
        if rule_type == 'MinValue':
            return number >= _bound(rule.value, field.min, 0)
        bound = _bound(rule.value, field.max, None)
        return bound is None or number <= bound

    if rule_type == 'Function':
        if not rule.function:
            return True
        return evaluator.evaluate_predicate(rule.function, field.name, value, form_values, path=path)

    logger.warning(f"Unknown validation rule type for '{path}': {rule_type}")
    return True


def _bound(rule_bound, field_bound, fallback):
    if rule_bound is not None:
        return rule_bound
    if field_bound is not None:
        return field_bound
    return fallback


def _numeric(value: Any):
    """Number for bound checks; None for empty or non-numeric values."""
    if isinstance(value, bool) or is_empty(value):
        return None
    try:
        return to_number(value)
    except ExpressionError:
        return None
