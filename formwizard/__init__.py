"""formwizard - schema-driven multi-stage form engine."""

from .engine import AppContext, FormEngine, FormLoader, MockRenderer, ConsoleRenderer

__version__ = '0.1.0'

__all__ = [
    'AppContext',
    'FormEngine',
    'FormLoader',
    'MockRenderer',
    'ConsoleRenderer',
]
