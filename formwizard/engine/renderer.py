"""Renderer interface - everything the presentation layer needs lives here.

The engine exposes view models (``FieldView``, ``StageView``, ``FormView``)
and talks to a ``Renderer`` for display and input. ``ConsoleRenderer`` draws
on a terminal; ``MockRenderer`` records calls for tests.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional


@dataclass
class FieldView:
    """Resolved state of one control."""

    path: str
    name: str
    label: str
    input_type: str
    value: Any
    options: Optional[List[str]] = None
    error: Optional[str] = None
    disabled: bool = False
    hidden: bool = False
    required: bool = False
    computed: bool = False
    placeholder: Optional[str] = None
    show_label: bool = True
    left_icon: Optional[str] = None
    right_icon: Optional[str] = None
    on_change: Optional[Callable[[str, Any], Any]] = field(default=None, repr=False, compare=False)


@dataclass
class GroupView:
    """A group of controls sharing one value sub-tree."""

    name: str
    label: str
    fields: List[FieldView]
    hidden: bool = False
    show_label: bool = True


@dataclass
class SectionView:
    """Label-only grouping of controls."""

    name: str
    label: Optional[str]
    items: List[Any]


@dataclass
class StageView:
    """The active stage, in document order."""

    index: int
    name: str
    title: Optional[str]
    status: str
    items: List[Any]
    fields: List[FieldView]
    errors: dict
    is_first: bool
    is_last: bool

    @property
    def submit_label(self) -> str:
        return 'Submit' if self.is_last else 'Next'


@dataclass
class FormView:
    """Whole-form view for headers and the progress indicator."""

    name: str
    description: Optional[str]
    current_index: int
    stages: List[Any]


class Renderer(ABC):
    """Interface for drawing the form and collecting input."""

    @abstractmethod
    def display(self, message: str) -> None:
        """Display a message to the user.

        Args:
            message: Text to display (may contain newlines)
        """
        pass

    @abstractmethod
    def get_input(self, prompt: str, default: Any = None) -> str:
        """Get input from user.

        Args:
            prompt: Question to ask user
            default: Default value if user presses Enter (shown in [brackets])

        Returns:
            User's input string (or default if empty)
        """
        pass

    @abstractmethod
    def show_progress(self, form_view: FormView) -> None:
        """Draw the stage progress indicator."""
        pass


class ConsoleRenderer(Renderer):
    """Terminal implementation - prints and reads stdin."""

    def __init__(self, verbose: bool = False):
        """Initialize with optional verbose mode.

        Args:
            verbose: If True, show stage status detail and computed values
        """
        self.verbose = verbose
        if os.environ.get('FORMWIZARD_VERBOSE'):
            self.verbose = True

    def display(self, message: str) -> None:
        """Print message to stdout."""
        print(message)

    def get_input(self, prompt: str, default: Any = None) -> str:
        """Read from stdin with optional default."""
        if default is not None and default != '':
            if isinstance(default, bool):
                default_display = 'y/N' if not default else 'Y/n'
            else:
                default_display = str(default)

            response = input(f"{prompt} [{default_display}]: ").strip()
            print()

            if response:
                return response
            return str(default) if not isinstance(default, bool) else default

        response = input(f"{prompt}: ").strip()
        print()
        return response

    def show_progress(self, form_view: FormView) -> None:
        markers = {'complete': 'x', 'incomplete': '!', 'untouched': ' '}
        parts = []
        for stage in form_view.stages:
            marker = '>' if stage.is_current else markers.get(stage.status.value, ' ')
            parts.append(f"[{marker}] {stage.index + 1}. {stage.label}")
        print(f"\n{form_view.name}")
        print("  ".join(parts))
        if self.verbose:
            for stage in form_view.stages:
                print(f"  - {stage.name}: {stage.status.value}{' (current)' if stage.is_current else ''}")
        print()


class MockRenderer(Renderer):
    """Mock for testing - records calls."""

    def __init__(self):
        self.calls = []
        self.input_queue = []  # Pre-scripted user inputs for testing

    def display(self, message: str) -> None:
        """Capture display call for test verification."""
        self.calls.append(('display', message))

    def get_input(self, prompt: str, default: Any = None) -> str:
        """Return next value from input_queue."""
        self.calls.append(('get_input', prompt, default))

        # Match ConsoleRenderer: empty response falls back to the default
        if self.input_queue:
            response = self.input_queue.pop(0)
            if response == '' and default not in (None, ''):
                return default
            return response

        return default if default is not None else ''

    def show_progress(self, form_view: FormView) -> None:
        self.calls.append(('show_progress', [(s.name, str(s.status.value), s.is_current) for s in form_view.stages]))

    @property
    def displayed(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == 'display']

    @property
    def prompts(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == 'get_input']
