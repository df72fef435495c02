"""Value store - the form's value tree and derived-field updates.

The value tree is a plain dict keyed by field name. A group maps to a nested
dict keyed by its children's names; sections add no level. Every operation
here returns a fresh tree and leaves its input untouched.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from .expressions import ExpressionEvaluator
from .schema import Field, Form, flatten, iter_fields

logger = logging.getLogger(__name__)

ValueTree = Dict[str, Any]


def split_path(path: str) -> Tuple[Optional[str], str]:
    """Split a value path into ``(group, field)``.

    Examples:
        >>> split_path('dimensions.length')
        ('dimensions', 'length')
        >>> split_path('origin')
        (None, 'origin')

    Raises:
        ValueError: If the path is empty or nests deeper than one group
    """
    parts = path.split('.') if path else []
    if len(parts) == 1 and parts[0]:
        return None, parts[0]
    if len(parts) == 2 and all(parts):
        return parts[0], parts[1]
    raise ValueError(f"Invalid value path: '{path}'")


def is_empty(value: Any) -> bool:
    """True for values a required field cannot accept."""
    return value is None or value == '' or (isinstance(value, (list, tuple)) and len(value) == 0)


def default_for(field: Field) -> Any:
    return field.default_value if field.default_value is not None else ''


def initialize(form: Form) -> ValueTree:
    """Build the initial value tree from schema defaults.

    Args:
        form: Form schema

    Returns:
        Value tree covering every field of every stage
    """
    values: ValueTree = {}
    for stage in form.stages:
        for node in flatten(stage.fields):
            if node.kind == 'group':
                values[node.name] = {child.name: default_for(child) for child in node.fields}
            else:
                values[node.name] = default_for(node)
    return values


def get_value(tree: ValueTree, path: str, default: Any = '') -> Any:
    """Read the value at ``path`` (``field`` or ``group.field``)."""
    group, name = split_path(path)
    if group is None:
        return tree.get(name, default)
    sub = tree.get(group)
    if not isinstance(sub, dict):
        return default
    return sub.get(name, default)


def apply_change(tree: ValueTree, path: str, new_value: Any) -> ValueTree:
    """Return a new tree with only the slot at ``path`` replaced.

    Args:
        tree: Current value tree
        path: ``field`` or ``group.field``
        new_value: Value to store

    Returns:
        New value tree; sibling slots keep their values
    """
    group, name = split_path(path)
    updated = dict(tree)
    if group is None:
        updated[name] = new_value
    else:
        sub = tree.get(group)
        sub = dict(sub) if isinstance(sub, dict) else {}
        sub[name] = new_value
        updated[group] = sub
    return updated


def _depends_on(reference: str, path: str) -> bool:
    # 'cargo' covers 'cargo.volume'; 'weight.length' (string length) covers 'weight'
    return reference == path or path.startswith(reference + '.') or reference.startswith(path + '.')


def computed_order(form: Form, evaluator: ExpressionEvaluator) -> List[Tuple[str, Field]]:
    """Order computed fields so each runs after the computed fields it reads.

    Ties keep document order, so a form whose computed fields only read
    earlier fields is evaluated exactly in document order. Members of a
    reference cycle are logged and evaluated in document order.

    Returns:
        ``(path, field)`` pairs in evaluation order
    """
    computed = [(path, field) for path, field in _all_fields(form) if field.is_computed]
    paths = [path for path, _ in computed]
    fields = dict(computed)

    deps = {}
    for path, field in computed:
        refs = evaluator.references(field.value_calculation)
        deps[path] = {other for other in paths if other != path and any(_depends_on(r, other) for r in refs)}

    order = []
    remaining = list(paths)
    while remaining:
        pending = set(remaining)
        ready = next((p for p in remaining if not (deps[p] & pending)), None)
        if ready is None:
            logger.warning(f"Computed fields reference each other in a cycle: {', '.join(remaining)}")
            order.extend(remaining)
            break
        order.append(ready)
        remaining.remove(ready)

    return [(path, fields[path]) for path in order]


def recompute_derived(tree: ValueTree, form: Form, evaluator: ExpressionEvaluator,
                      order: Optional[List[Tuple[str, Field]]] = None) -> ValueTree:
    """Re-evaluate every computed field across all stages.

    Each expression sees the tree as updated so far in this pass. The input
    tree is not modified.

    Args:
        tree: Current value tree
        form: Form schema
        evaluator: Expression evaluator
        order: Precomputed evaluation order (see ``computed_order``)

    Returns:
        New value tree with computed slots overwritten
    """
    if order is None:
        order = computed_order(form, evaluator)

    values = copy.deepcopy(tree)
    for path, field in order:
        result = evaluator.evaluate_computed(field.value_calculation, values, path=path)
        group, name = split_path(path)
        if group is None:
            values[name] = result
        else:
            if not isinstance(values.get(group), dict):
                values[group] = {}
            values[group][name] = result
    return values


def _all_fields(form: Form):
    for stage in form.stages:
        yield from iter_fields(stage.fields)
