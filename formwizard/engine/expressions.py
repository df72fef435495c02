"""Expression evaluation for computed fields and custom validation rules.

Configuration documents carry two kinds of code fragments:

- ``valueCalculation`` on a field, e.g.
  ``values.cargo.length * values.cargo.width * values.cargo.height``
- ``function`` on a ``Function`` validation rule, e.g.
  ``fieldValue != formValue.origin.port``

Fragments are never executed as host code. They are parsed with ``ast`` and
interpreted over a closed set of node types: literals, arithmetic,
comparisons, boolean logic, conditional expressions, lookups into the
supplied arguments, and calls to a small table of pure helpers plus host
functions registered by name in a ``FunctionRegistry``.

A ``Function`` rule may also name a registered function directly
(``function: freight_quote.is_valid_incoterm``); it is then called with
``(field_name, field_value, form_value)``.
"""

import ast
import logging
import math
import operator
import re
from typing import Any, Callable, Dict, Iterable, Optional, Set, Union

from .exceptions import ExpressionError

logger = logging.getLogger(__name__)


SAFE_BUILTINS: Dict[str, Callable[..., Any]] = {
    'abs': abs,
    'bool': bool,
    'float': float,
    'int': int,
    'len': len,
    'max': max,
    'min': min,
    'round': round,
    'str': str,
    'sum': sum,
}

CONSTANTS = {
    'true': True,
    'false': False,
    'null': None,
    'undefined': None,
}

MAX_EXPONENT = 100

# Upper bound on the size of integer results of * and **
MAX_RESULT_BITS = 4096

_ALLOWED_NODES = (
    ast.Expression, ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Name, ast.Constant, ast.Attribute, ast.Subscript, ast.Call, ast.keyword,
    ast.List, ast.Tuple, ast.Load,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.UAdd, ast.USub, ast.Not, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.In, ast.NotIn,
    ast.Is, ast.IsNot,
)

_STRING_LITERAL = re.compile(r"""('(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")""")

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_ARITHMETIC_OPS = {
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}


def normalize(source: str) -> str:
    """Rewrite JavaScript-era spellings into the expression grammar.

    Strips a wrapping ``{ ... }`` body, a leading ``return`` and trailing
    semicolons, and maps ``===``, ``!==``, ``&&``, ``||`` and ``!`` outside
    string literals.

    Examples:
        >>> normalize('{return values.a === 1 && !values.b;}')
        'values.a == 1  and   not values.b'
    """
    text = source.strip()
    if text.startswith('{') and text.endswith('}'):
        text = text[1:-1].strip()
    text = text.rstrip(';').strip()
    if re.match(r'return\b', text):
        text = text[len('return'):].strip()
    text = text.rstrip(';').strip()

    parts = _STRING_LITERAL.split(text)
    for i in range(0, len(parts), 2):
        chunk = parts[i]
        chunk = chunk.replace('!==', '!=').replace('===', '==')
        chunk = chunk.replace('&&', ' and ').replace('||', ' or ')
        chunk = re.sub(r'!(?!=)', ' not ', chunk)
        parts[i] = chunk
    return ''.join(parts)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _looks_numeric(value: Any) -> bool:
    if value is None or value == '' or _is_number(value) or isinstance(value, bool):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def to_number(value: Any) -> Union[int, float]:
    """Coerce a form value to a number.

    Text inputs hold strings, so ``'3'`` becomes ``3`` and an unset value
    (``''`` or ``None``) becomes ``0``.

    Raises:
        ExpressionError: If the value is not numeric
    """
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value
    if value is None or value == '':
        return 0
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            pass
    raise ExpressionError(f"Not a number: {value!r}")


def _align(left: Any, right: Any):
    """Compare numbers with numeric strings as numbers."""
    if _is_number(left) and isinstance(right, str) and right.strip() and _looks_numeric(right):
        return left, to_number(right)
    if _is_number(right) and isinstance(left, str) and left.strip() and _looks_numeric(left):
        return to_number(left), right
    return left, right


def _dotted_name(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        prefix = _dotted_name(node.value)
        if prefix is not None:
            return f'{prefix}.{node.attr}'
    return None


def _lookup_chain(node: ast.AST) -> Optional[list]:
    """Return ``[root, key, key, ...]`` for a chain of constant lookups."""
    if isinstance(node, ast.Name):
        return [node.id]
    if isinstance(node, ast.Attribute):
        chain = _lookup_chain(node.value)
        return chain + [node.attr] if chain is not None else None
    if isinstance(node, ast.Subscript):
        index = node.slice
        if isinstance(index, ast.Constant) and isinstance(index.value, str):
            chain = _lookup_chain(node.value)
            return chain + [index.value] if chain is not None else None
    return None


class FunctionRegistry:
    """Closed table of host functions that configuration may refer to by name.

    Names are dotted strings such as ``freight_quote.cbm``. The same table
    serves calls inside expressions and ``Function`` rules that name a
    predicate directly.
    """

    def __init__(self, functions: Optional[Dict[str, Callable[..., Any]]] = None):
        self._functions: Dict[str, Callable[..., Any]] = {}
        if functions:
            self.register_all(functions)

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        if not callable(fn):
            raise TypeError(f"Function '{name}' is not callable")
        self._functions[name] = fn

    def register_all(self, functions: Dict[str, Callable[..., Any]], prefix: Optional[str] = None) -> None:
        """Register a mapping of functions, optionally under ``prefix.``."""
        for name, fn in functions.items():
            self.register(f'{prefix}.{name}' if prefix else name, fn)

    def get(self, name: str) -> Optional[Callable[..., Any]]:
        return self._functions.get(name)

    def names(self) -> Iterable[str]:
        return sorted(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)


class Expression:
    """A parsed, checked expression ready for repeated evaluation."""

    def __init__(self, source: str):
        self.source = source
        self.text = normalize(source)
        if not self.text:
            raise ExpressionError("Empty expression", source)
        try:
            self.tree = ast.parse(self.text, mode='eval')
        except SyntaxError as e:
            raise ExpressionError(f"Invalid expression syntax: {e.msg}", source) from e

        for node in ast.walk(self.tree):
            if not isinstance(node, _ALLOWED_NODES):
                raise ExpressionError(f"Unsupported syntax: {type(node).__name__}", source)
            if isinstance(node, ast.Attribute) and node.attr.startswith('_'):
                raise ExpressionError(f"Private attribute access is not allowed: {node.attr}", source)

    def evaluate(self, names: Dict[str, Any], functions: FunctionRegistry) -> Any:
        return _Interpreter(names, functions, self.source).visit(self.tree.body)

    def references(self, root: str = 'values') -> Set[str]:
        """Value paths read through ``root`` (at most ``group.field`` deep)."""
        found = set()

        def walk(node):
            chain = _lookup_chain(node) if isinstance(node, (ast.Attribute, ast.Subscript)) else None
            if chain and chain[0] == root and len(chain) > 1:
                found.add('.'.join(chain[1:3]))
                return
            for child in ast.iter_child_nodes(node):
                walk(child)

        walk(self.tree.body)
        return found


class _Interpreter:
    """Evaluates a checked expression tree against explicit names only."""

    def __init__(self, names: Dict[str, Any], functions: FunctionRegistry, source: str):
        self.names = names
        self.functions = functions
        self.source = source

    def fail(self, message: str):
        raise ExpressionError(message, self.source)

    def visit(self, node: ast.AST) -> Any:
        method = getattr(self, f'visit_{type(node).__name__}', None)
        if method is None:
            self.fail(f"Unsupported syntax: {type(node).__name__}")
        return method(node)

    def visit_Constant(self, node):
        return node.value

    def visit_Name(self, node):
        if node.id in self.names:
            return self.names[node.id]
        if node.id in CONSTANTS:
            return CONSTANTS[node.id]
        self.fail(f"Unknown name: {node.id}")

    def visit_List(self, node):
        return [self.visit(item) for item in node.elts]

    def visit_Tuple(self, node):
        return tuple(self.visit(item) for item in node.elts)

    def visit_Attribute(self, node):
        target = self.visit(node.value)
        if isinstance(target, dict):
            if node.attr not in target:
                self.fail(f"Unknown reference: {node.attr}")
            return target[node.attr]
        if node.attr == 'length' and isinstance(target, (str, list, tuple)):
            return len(target)
        self.fail(f"Cannot read '{node.attr}' from {type(target).__name__}")

    def visit_Subscript(self, node):
        target = self.visit(node.value)
        index = self.visit(node.slice)
        try:
            return target[index]
        except (KeyError, IndexError, TypeError) as e:
            self.fail(f"Cannot read [{index!r}]: {e}")

    def visit_UnaryOp(self, node):
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        number = to_number(operand)
        return -number if isinstance(node.op, ast.USub) else +number

    def visit_BoolOp(self, node):
        result = None
        for value in node.values:
            result = self.visit(value)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def visit_BinOp(self, node):
        left = self.visit(node.left)
        right = self.visit(node.right)

        if isinstance(node.op, ast.Add):
            if isinstance(left, list) and isinstance(right, list):
                return left + right
            if _looks_numeric(left) and _looks_numeric(right):
                return to_number(left) + to_number(right)
            return f'{"" if left is None else left}{"" if right is None else right}'

        op = _ARITHMETIC_OPS[type(node.op)]
        left, right = to_number(left), to_number(right)
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                self.fail(f"Exponent too large: {right}")
            if abs(left) > 1 and right > 0 and right * math.log2(abs(left)) > MAX_RESULT_BITS:
                self.fail(f"Result too large: {left!r} ** {right!r}")
        try:
            result = op(left, right)
        except (ZeroDivisionError, OverflowError) as e:
            self.fail(f"Arithmetic error: {e}")
        if isinstance(result, int) and result.bit_length() > MAX_RESULT_BITS:
            self.fail(f"Result exceeds {MAX_RESULT_BITS} bits")
        return result

    def visit_Compare(self, node):
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            a, b = (left, right) if isinstance(op, (ast.In, ast.NotIn, ast.Is, ast.IsNot)) else _align(left, right)
            try:
                if not _COMPARE_OPS[type(op)](a, b):
                    return False
            except TypeError as e:
                self.fail(f"Cannot compare {a!r} and {b!r}: {e}")
            left = right
        return True

    def visit_IfExp(self, node):
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_Call(self, node):
        name = _dotted_name(node.func)
        if name is None:
            self.fail("Only named functions can be called")
        fn = self.functions.get(name) or SAFE_BUILTINS.get(name)
        if fn is None:
            self.fail(f"Unknown function: {name}")

        if any(kw.arg is None for kw in node.keywords):
            self.fail("Keyword unpacking is not supported")
        args = [self.visit(arg) for arg in node.args]
        kwargs = {kw.arg: self.visit(kw.value) for kw in node.keywords}
        try:
            return fn(*args, **kwargs)
        except ExpressionError:
            raise
        except Exception as e:
            self.fail(f"{name}() failed: {type(e).__name__}: {e}")


class ExpressionEvaluator:
    """Entry points used by the value store and the validator.

    Failures never propagate: they are logged, recorded in the optional
    diagnostics collector, and replaced by a neutral result (``''`` for a
    computed value, "passes" for a predicate).
    """

    def __init__(self, functions: Optional[FunctionRegistry] = None, diagnostics=None):
        self.functions = functions if functions is not None else FunctionRegistry()
        self.diagnostics = diagnostics
        self._cache: Dict[str, Union[Expression, ExpressionError]] = {}

    def compile(self, source: str) -> Expression:
        """Parse and check an expression, caching the outcome.

        Raises:
            ExpressionError: If the expression is malformed
        """
        cached = self._cache.get(source)
        if cached is None:
            try:
                cached = Expression(source)
            except ExpressionError as e:
                cached = e
            self._cache[source] = cached
        if isinstance(cached, ExpressionError):
            raise ExpressionError(str(cached), cached.expression)
        return cached

    def evaluate_computed(self, expression: str, values: Dict[str, Any], path: str = '') -> Any:
        """Evaluate a ``valueCalculation`` with ``values`` in scope.

        Returns:
            The computed value, or '' if evaluation failed
        """
        try:
            return self.compile(expression).evaluate({'values': values}, self.functions)
        except ExpressionError as e:
            self._report(path, 'computed', e)
            return ''

    def evaluate_predicate(self, function: str, field_name: str, field_value: Any,
                           form_value: Dict[str, Any], path: str = '') -> bool:
        """Run a custom validation predicate.

        Args:
            function: Registered function name or predicate expression
            field_name: Name of the field being validated
            field_value: Its current value
            form_value: The whole value tree
            path: Field path, for diagnostics

        Returns:
            The predicate's truth value; True if it could not be evaluated
        """
        try:
            fn = self.functions.get(function)
            if fn is not None:
                try:
                    return bool(fn(field_name, field_value, form_value))
                except Exception as e:
                    raise ExpressionError(f"{function}() failed: {type(e).__name__}: {e}", function) from e

            names = {
                'fieldName': field_name,
                'fieldValue': field_value,
                'formValue': form_value,
                'field_name': field_name,
                'field_value': field_value,
                'form_value': form_value,
            }
            return bool(self.compile(function).evaluate(names, self.functions))
        except ExpressionError as e:
            self._report(path, 'predicate', e)
            return True

    def references(self, expression: str) -> Set[str]:
        """Value paths an expression reads; empty if it does not parse."""
        try:
            return self.compile(expression).references()
        except ExpressionError:
            return set()

    def _report(self, path: str, phase: str, error: ExpressionError) -> None:
        logger.warning(f"Expression failed for '{path}' ({phase}): {error} [{error.expression}]")
        if self.diagnostics is not None:
            self.diagnostics.record_failure(path, phase, str(error), {'expression': error.expression})
