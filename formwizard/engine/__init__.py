"""Form engine - core infrastructure for configuration-driven wizards."""

from .context import AppContext
from .controller import StageController, StageStatus, TransitionResult
from .engine import FormEngine
from .exceptions import (
    ConfigurationError,
    ExpressionError,
    FormWizardError,
    ReadOnlyFieldError,
    UnknownFieldError,
)
from .expressions import ExpressionEvaluator, FunctionRegistry
from .loader import FormLoader
from .renderer import ConsoleRenderer, MockRenderer, Renderer
from .schema import Field, Form, GroupField, Section, Stage, ValidationRule, flatten
from .validator import validate_stage
from .values import apply_change, initialize, recompute_derived

__all__ = [
    'AppContext',
    'StageController',
    'StageStatus',
    'TransitionResult',
    'FormEngine',
    'ConfigurationError',
    'ExpressionError',
    'FormWizardError',
    'ReadOnlyFieldError',
    'UnknownFieldError',
    'ExpressionEvaluator',
    'FunctionRegistry',
    'FormLoader',
    'ConsoleRenderer',
    'MockRenderer',
    'Renderer',
    'Field',
    'Form',
    'GroupField',
    'Section',
    'Stage',
    'ValidationRule',
    'flatten',
    'validate_stage',
    'apply_change',
    'initialize',
    'recompute_derived',
]
