"""Core form engine - runs a form configuration as a multi-stage wizard."""

import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .context import SET_QUOTE_FORM, AppContext
from .controller import StageController, TransitionResult
from .exceptions import ReadOnlyFieldError, UnknownFieldError
from .expressions import ExpressionEvaluator, FunctionRegistry
from .loader import FormLoader
from .renderer import FieldView, FormView, GroupView, Renderer, SectionView, StageView
from .schema import Field, Form, Stage, flatten
from .validator import ErrorMap, validate_stage, visible_errors
from .values import apply_change, computed_order, get_value, initialize, is_empty, recompute_derived, split_path

logger = logging.getLogger(__name__)

TRUTHY_INPUT = ('y', 'yes', 'true', '1', 'on')


class FormEngine:
    """
    Runs one form session.

    Key responsibilities:
    - Hold the value tree and keep computed fields current
    - Validate the active stage after every change
    - Drive stage transitions through the StageController
    - Expose view models for a presentation layer
    - Publish the submitted values to the injected AppContext
    """

    def __init__(self, form: Form,
                 functions: Optional[Union[FunctionRegistry, Dict[str, Callable[..., Any]]]] = None,
                 context: Optional[AppContext] = None,
                 diagnostics=None):
        """
        Initialize the form engine.

        Args:
            form: Validated form schema
            functions: Host functions expressions may call by name
            context: Cross-page state to publish submissions to
            diagnostics: Optional DiagnosticCollector for configuration failures
        """
        self.form = form
        self.context = context
        self.diagnostics = diagnostics

        if isinstance(functions, FunctionRegistry):
            registry = functions
        else:
            registry = FunctionRegistry(functions or {})
        self.evaluator = ExpressionEvaluator(registry, diagnostics)

        self.fields: Dict[str, Field] = form.field_index()
        self._order = computed_order(form, self.evaluator)
        self._check_dependencies()

        self.controller = StageController(
            [stage.name for stage in form.stages],
            [stage.display_label for stage in form.stages],
        )
        self.values: Dict[str, Any] = recompute_derived(initialize(form), form, self.evaluator, self._order)
        self.errors: ErrorMap = self.validate_current()
        self.submitted_values: Optional[Dict[str, Any]] = None

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> 'FormEngine':
        """Build an engine from a YAML or JSON document."""
        return cls(FormLoader().load_file(path), **kwargs)

    @classmethod
    def from_name(cls, form_name: str, base_path: Optional[Union[str, Path]] = None, **kwargs) -> 'FormEngine':
        """Build an engine for a named form, registering its bundled functions."""
        loader = FormLoader(base_path=base_path)
        form = loader.load_form(form_name)

        functions = loader.load_functions(form_name)
        extra = kwargs.pop('functions', None) or {}
        if isinstance(extra, FunctionRegistry):
            for name, fn in functions.items():
                if name not in extra:
                    extra.register(name, fn)
            functions = extra
        else:
            functions.update(extra)
        return cls(form, functions=functions, **kwargs)

    @staticmethod
    def can_enter(context: AppContext) -> bool:
        """The wizard is only reachable once contact details were captured."""
        return bool(context.state.get('contact_info'))

    # -- state -------------------------------------------------------------

    @property
    def current_stage(self) -> Stage:
        return self.form.stages[self.controller.index]

    @property
    def stage_status(self) -> Dict[str, str]:
        return {name: status.value for name, status in self.controller.statuses.items()}

    @property
    def visible_errors(self) -> ErrorMap:
        """Errors to show for the active stage (none before the first attempt)."""
        return visible_errors(self.errors, self.controller.current_status)

    def value_of(self, path: str) -> Any:
        return get_value(self.values, path)

    def validate_current(self) -> ErrorMap:
        return validate_stage(flatten(self.current_stage.fields), self.values, self.evaluator)

    # -- events ------------------------------------------------------------

    def change(self, path: str, value: Any) -> Dict[str, Any]:
        """
        Apply a user edit.

        Replaces the value at ``path``, re-evaluates every computed field and
        re-validates the active stage.

        Args:
            path: ``field`` or ``group.field``
            value: New value

        Returns:
            The new value tree

        Raises:
            UnknownFieldError: If no field lives at ``path``
            ReadOnlyFieldError: If the field is computed or read-only
        """
        field = self.fields.get(path)
        if field is None:
            raise UnknownFieldError(f"Unknown field: {path}")
        if field.is_computed:
            raise ReadOnlyFieldError(f"'{path}' is computed and cannot be edited")
        if field.is_read_only:
            raise ReadOnlyFieldError(f"'{path}' is read-only")

        changed = apply_change(self.values, path, value)
        self.values = recompute_derived(changed, self.form, self.evaluator, self._order)
        self.errors = self.validate_current()
        return self.values

    def next(self) -> TransitionResult:
        """Forward transition: validate, then advance or submit."""
        result = self.controller.submit(self.validate_current)
        if result.submitted:
            self._publish()
        self.errors = self.validate_current()
        return result

    def submit(self) -> TransitionResult:
        """Same gate as ``next``; submits when called on the last stage."""
        return self.next()

    def previous(self) -> bool:
        moved = self.controller.previous()
        self.errors = self.validate_current()
        return moved

    def jump(self, index: int) -> bool:
        moved = self.controller.jump(index)
        self.errors = self.validate_current()
        return moved

    def _publish(self) -> None:
        self.submitted_values = copy.deepcopy(self.values)
        logger.info(f"Form '{self.form.name}' submitted")
        if self.context is not None:
            self.context.dispatch({'type': SET_QUOTE_FORM, 'payload': self.submitted_values})

    # -- resolution --------------------------------------------------------

    def _check_dependencies(self) -> None:
        for path, field in self.fields.items():
            group, _ = split_path(path)
            if isinstance(field.options, dict):
                if not field.options_dependent_on:
                    self._config_problem(path, 'options', "Keyed options without optionsDependentOn")
                elif self._dependency_path(field.options_dependent_on, group) is None:
                    self._config_problem(path, 'options', f"Unknown dependency: {field.options_dependent_on}")
            for dependency in field.disabled_dependencies:
                if self._dependency_path(dependency, group) is None:
                    self._config_problem(path, 'disabled', f"Unknown dependency: {dependency}")

    def _config_problem(self, path: str, phase: str, message: str) -> None:
        logger.warning(f"Configuration problem for '{path}': {message}")
        if self.diagnostics is not None:
            self.diagnostics.record_failure(path, phase, message)

    def _dependency_path(self, dependency: str, group: Optional[str]) -> Optional[str]:
        """Resolve a dependency reference to a value path.

        A dotted reference is taken from the form root. A bare name is looked
        up in the field's own group first, then at the root.
        """
        if '.' in dependency:
            return dependency if dependency in self.fields else None
        if group and f'{group}.{dependency}' in self.fields:
            return f'{group}.{dependency}'
        if dependency in self.fields:
            return dependency
        return None

    def resolve_options(self, path: str) -> List[str]:
        """
        Option list for a field, resolved from current values.

        Keyed options pick the list for the controlling field's value; an
        unset controlling value, an unknown key or an unresolvable
        dependency all give an empty list.
        """
        field = self.fields[path]
        if field.options is None:
            return []
        if isinstance(field.options, list):
            return list(field.options)

        group, _ = split_path(path)
        dependency = self._dependency_path(field.options_dependent_on or '', group)
        if dependency is None:
            return []

        controlling = get_value(self.values, dependency)
        if is_empty(controlling) or isinstance(controlling, (list, dict)):
            return []
        return list(field.options.get(str(controlling), []))

    def is_disabled(self, path: str) -> bool:
        field = self.fields[path]
        if field.is_read_only or field.is_computed:
            return True
        group, _ = split_path(path)
        for dependency in field.disabled_dependencies:
            dep_path = self._dependency_path(dependency, group)
            if dep_path is None or is_empty(get_value(self.values, dep_path)):
                return True
        return False

    # -- view models -------------------------------------------------------

    def field_view(self, path: str, hidden: bool = False) -> FieldView:
        """Everything a presentation layer needs to draw one control."""
        field = self.fields.get(path)
        if field is None:
            raise UnknownFieldError(f"Unknown field: {path}")

        options = self.resolve_options(path) if field.options is not None else None
        placeholder = field.placeholder
        if placeholder is None and options is not None:
            placeholder = f"Select {field.display_label.lower()}..."

        return FieldView(
            path=path,
            name=field.name,
            label=field.display_label,
            input_type=field.input_type,
            value=self.value_of(path),
            options=options,
            error=self.visible_errors.get(path),
            disabled=self.is_disabled(path),
            hidden=hidden or field.is_hidden,
            required=field.required,
            computed=field.is_computed,
            placeholder=placeholder,
            show_label=not field.hidden_label,
            left_icon=field.left_icon,
            right_icon=field.right_icon,
            on_change=self.change,
        )

    def _node_view(self, node, fields: List[FieldView]):
        if node.kind == 'section':
            return SectionView(
                name=node.name,
                label=node.label,
                items=[self._node_view(child, fields) for child in node.fields],
            )
        if node.kind == 'group':
            children = [self.field_view(f'{node.name}.{child.name}', hidden=node.is_hidden) for child in node.fields]
            fields.extend(children)
            return GroupView(
                name=node.name,
                label=node.display_label,
                fields=children,
                hidden=node.is_hidden,
                show_label=not node.hidden_label,
            )
        view = self.field_view(node.name)
        fields.append(view)
        return view

    def stage_view(self) -> StageView:
        """The active stage's controls in document order."""
        stage = self.current_stage
        fields: List[FieldView] = []
        items = [self._node_view(node, fields) for node in stage.fields]
        return StageView(
            index=self.controller.index,
            name=stage.name,
            title=stage.display_label if self.form.show_stage_names else None,
            status=self.controller.current_status.value,
            items=items,
            fields=fields,
            errors=self.visible_errors,
            is_first=self.controller.index == 0,
            is_last=self.controller.is_last,
        )

    def form_view(self) -> FormView:
        return FormView(
            name=self.form.name,
            description=self.form.description,
            current_index=self.controller.index,
            stages=self.controller.progress(),
        )

    # -- interactive driver ------------------------------------------------

    def run(self, renderer: Renderer, max_rounds: int = 100) -> Optional[Dict[str, Any]]:
        """
        Drive the wizard through a renderer until the form is submitted.

        Every visible, enabled field of the active stage is prompted for in
        order, then the stage is submitted. At any prompt ``:back`` goes to
        the previous stage, ``:jump N`` to stage N (1-based) and ``:quit``
        stops.

        Args:
            renderer: Renderer used for display and input
            max_rounds: Upper bound on stage rounds before giving up

        Returns:
            Submitted values, or None if the user quit
        """
        if self.form.description:
            renderer.display(self.form.description)

        for _ in range(max_rounds):
            renderer.show_progress(self.form_view())
            view = self.stage_view()
            if view.title:
                renderer.display(view.title)

            command = self._collect_stage(renderer, view)
            if command == 'quit':
                return None
            if command == 'navigate':
                continue

            result = self.next()
            if result.submitted:
                renderer.display("Form submitted.")
                return self.submitted_values
            if result.errors:
                renderer.display("Please fix the following:")
                for path, message in result.errors.items():
                    renderer.display(f"  - {message}")

        logger.warning(f"Stopped after {max_rounds} rounds without a submission")
        return None

    def _collect_stage(self, renderer: Renderer, view: StageView) -> Optional[str]:
        for path in [f.path for f in view.fields]:
            current = self.field_view(path)
            if current.hidden:
                continue
            if current.computed:
                renderer.display(f"{current.label}: {current.value}")
                continue
            if current.disabled:
                continue

            if current.options is not None:
                if not current.options:
                    renderer.display(f"{current.label}: no options available")
                    continue
                renderer.display("")
                for i, option in enumerate(current.options, 1):
                    renderer.display(f"  {i}. {option}")
                renderer.display("")

            prompt = current.label + (' *' if current.required else '')
            response = renderer.get_input(prompt, current.value)

            if isinstance(response, str) and response.startswith(':'):
                return self._navigate(renderer, response)

            self.change(path, self._coerce_input(current, response))
        return None

    def _navigate(self, renderer: Renderer, command: str) -> str:
        parts = command[1:].split()
        verb = parts[0].lower() if parts else ''

        if verb == 'quit':
            return 'quit'
        if verb == 'back':
            if not self.previous():
                renderer.display("Already at the first stage.")
            return 'navigate'
        if verb == 'jump' and len(parts) == 2 and parts[1].isdigit():
            target = int(parts[1]) - 1
            if not self.jump(target):
                renderer.display(f"Stage {parts[1]} is not available yet.")
            return 'navigate'

        renderer.display(f"Unknown command: {command}")
        return 'navigate'

    @staticmethod
    def _coerce_input(view: FieldView, response: Any) -> Any:
        """Convert console text into the value a control of this kind holds."""
        if not isinstance(response, str):
            return response

        text = response.strip()
        if view.options:
            if view.input_type == 'multiselect':
                chosen = [part.strip() for part in text.split(',') if part.strip()]
                return [view.options[int(c) - 1] if c.isdigit() and 0 < int(c) <= len(view.options) else c
                        for c in chosen]
            if text.isdigit() and 0 < int(text) <= len(view.options):
                return view.options[int(text) - 1]
            return text

        if view.input_type in ('number', 'range') and text:
            try:
                return int(text)
            except ValueError:
                try:
                    return float(text)
                except ValueError:
                    return text

        if view.input_type in ('checkbox', 'toggle'):
            return text.lower() in TRUTHY_INPUT

        return text
