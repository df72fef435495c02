"""Exception types raised by the form engine.

Validation failures are not exceptions: they are reported as error maps
keyed by field path. Exceptions here cover broken configuration and misuse
of the engine by a presentation layer.
"""


class FormWizardError(Exception):
    """Base class for all form engine errors."""


class ConfigurationError(FormWizardError):
    """The configuration document is malformed or cannot be loaded."""


class ExpressionError(ConfigurationError):
    """An expression in the configuration failed to parse or evaluate.

    Raised inside the evaluator only; the public evaluation entry points
    log it and fall back to a neutral result.
    """

    def __init__(self, message: str, expression: str = ''):
        super().__init__(message)
        self.expression = expression


class UnknownFieldError(FormWizardError, KeyError):
    """A value path does not name any field in the form."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ''


class ReadOnlyFieldError(FormWizardError, ValueError):
    """An edit targeted a computed or read-only field."""
