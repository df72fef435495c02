"""Pydantic models for form configuration documents."""

import re
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, field_validator, model_validator
from pydantic import Field as Attr
from pydantic.alias_generators import to_camel


INPUT_TYPES = (
    'text', 'textarea', 'email', 'number', 'select', 'multiselect', 'password',
    'checkbox', 'radio', 'date', 'file', 'toggle', 'color', 'range', 'time',
    'url', 'hidden', 'button',
)

NODE_KINDS = ('field', 'group', 'section')


def title_case(name: str) -> str:
    """Turn a camelCase or spaced identifier into a display title.

    Examples:
        >>> title_case('cargoWeight')
        'Cargo Weight'
        >>> title_case('port of  loading')
        'Port Of Loading'
    """
    if not name:
        return ''
    spaced = re.sub(r'([a-z])([A-Z])', r'\1 \2', name)
    spaced = re.sub(r'\s+', ' ', spaced).strip()
    return ' '.join(word[:1].upper() + word[1:].lower() for word in spaced.split(' '))


class SchemaModel(BaseModel):
    """Base for all configuration nodes.

    Documents use camelCase keys (``defaultValue``); Python code uses
    snake_case. Both spellings are accepted on input. Unknown keys are kept.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _ensure_unique_names(nodes: List[Any], parent: str) -> List[Any]:
    seen = set()
    for node in nodes:
        if node.name in seen:
            raise ValueError(f"Duplicate name '{node.name}' in {parent}")
        seen.add(node.name)
    return nodes


def _node_kind(value: Any) -> str:
    """Discriminator for stage children.

    Uses the explicit ``kind`` when present, otherwise the markers older
    documents carry (``isGroup``/``isSection`` or ``type: group``).
    """
    if not isinstance(value, dict):
        return getattr(value, 'kind', 'field')

    kind = value.get('kind')
    if kind:
        return kind
    if value.get('isSection') or value.get('type') == 'section':
        return 'section'
    if value.get('isGroup') or value.get('type') == 'group':
        return 'group'
    if 'fields' in value:
        return 'section'
    return 'field'


class ValidationRule(SchemaModel):
    """One declarative validation rule attached to a field."""

    type: str = Attr(..., description="Regex, Required, MinLength, MaxLength, MinValue, MaxValue or Function")
    message: str = Attr(..., description="Error message shown when the rule fails")
    regex: Optional[str] = Attr(None, description="Pattern for Regex rules")
    function: Optional[str] = Attr(None, description="Registered function name or predicate expression")
    value: Optional[float] = Attr(None, description="Bound overriding the field's own bound")


class Field(SchemaModel):
    """Leaf input descriptor."""

    kind: Literal['field'] = 'field'
    name: str = Attr(..., description="Field name, unique among siblings")
    input_type: str = Attr('text', description="Control kind (text, number, select, ...)")
    label: Optional[str] = None
    hidden_label: bool = False
    placeholder: Optional[str] = None
    default_value: Optional[Any] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: Optional[Union[List[str], Dict[str, List[str]]]] = Attr(
        None, description="Static options or options keyed by a controlling value"
    )
    options_dependent_on: Optional[str] = Attr(None, description="Path of the controlling field")
    value_calculation: Optional[str] = Attr(None, description="Expression computing this field")
    is_multi_select: bool = False
    required: bool = False
    validation: List[ValidationRule] = Attr(default_factory=list)
    disabled_dependencies: List[str] = Attr(
        default_factory=list, description="Paths that must be filled before this field is enabled"
    )
    is_hidden: bool = False
    is_read_only: bool = False
    left_icon: Optional[str] = None
    right_icon: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def _legacy_input_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if 'fields' in data:
            raise ValueError(f"'{data.get('name')}' cannot hold fields here: only one level of grouping is supported")
        legacy_type = data.get('type')
        if legacy_type in INPUT_TYPES and 'inputType' not in data and 'input_type' not in data:
            data = dict(data)
            data['inputType'] = legacy_type
        return data

    @property
    def is_computed(self) -> bool:
        return bool(self.value_calculation)

    @property
    def display_label(self) -> str:
        return self.label or title_case(self.name)


class GroupField(SchemaModel):
    """Named cluster of fields stored under one key of the value tree."""

    kind: Literal['group'] = 'group'
    name: str
    label: Optional[str] = None
    hidden_label: bool = False
    is_hidden: bool = False
    fields: List[Field] = Attr(default_factory=list)

    @field_validator('fields')
    @classmethod
    def _unique_children(cls, fields: List[Field]) -> List[Field]:
        return _ensure_unique_names(fields, 'group')

    @property
    def display_label(self) -> str:
        return self.label or title_case(self.name)


SectionChild = Annotated[
    Union[
        Annotated[Field, Tag('field')],
        Annotated[GroupField, Tag('group')],
    ],
    Discriminator(_node_kind),
]


class Section(SchemaModel):
    """Label-only grouping; adds no level to the value tree."""

    kind: Literal['section'] = 'section'
    name: str
    label: Optional[str] = None
    fields: List[SectionChild] = Attr(default_factory=list)

    @field_validator('fields')
    @classmethod
    def _unique_children(cls, fields: List[Any]) -> List[Any]:
        return _ensure_unique_names(fields, 'section')


StageChild = Annotated[
    Union[
        Annotated[Field, Tag('field')],
        Annotated[GroupField, Tag('group')],
        Annotated[Section, Tag('section')],
    ],
    Discriminator(_node_kind),
]

Node = Union[Field, GroupField, Section]


class Stage(SchemaModel):
    """One step of the wizard."""

    name: str
    label: Optional[str] = None
    fields: List[StageChild] = Attr(default_factory=list)

    @field_validator('fields')
    @classmethod
    def _unique_children(cls, fields: List[Any]) -> List[Any]:
        return _ensure_unique_names(fields, 'stage')

    @property
    def display_label(self) -> str:
        return self.label or title_case(self.name)


class Form(SchemaModel):
    """The whole configuration document."""

    name: str
    description: Optional[str] = None
    show_stage_names: bool = True
    stages: List[Stage] = Attr(..., min_length=1)

    @model_validator(mode='before')
    @classmethod
    def _legacy_layout(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if 'stages' not in data and 'formGroup' in data:
            data['stages'] = data.pop('formGroup')
        if isinstance(data.get('stages'), dict):
            data['stages'] = [data['stages']]
        if 'showformStageName' in data and 'showStageNames' not in data:
            data['showStageNames'] = data.pop('showformStageName')
        if 'hideName' in data and 'showStageNames' not in data:
            data['showStageNames'] = not data.pop('hideName')
        return data

    @field_validator('stages')
    @classmethod
    def _unique_stages(cls, stages: List[Stage]) -> List[Stage]:
        return _ensure_unique_names(stages, 'form')

    @model_validator(mode='after')
    def _unique_paths(self) -> 'Form':
        # Every stage writes into the same value tree
        seen = set()
        for stage in self.stages:
            for node in flatten(stage.fields):
                if node.name in seen:
                    raise ValueError(f"'{node.name}' is defined more than once in the value tree")
                seen.add(node.name)
        return self

    def field_index(self) -> Dict[str, Field]:
        """Map every value path to its field, in document order."""
        index = {}
        for stage in self.stages:
            for path, field in iter_fields(stage.fields):
                index[path] = field
        return index

    def stage_of(self, path: str) -> Optional[int]:
        """Index of the stage owning a value path."""
        for i, stage in enumerate(self.stages):
            for field_path, _ in iter_fields(stage.fields):
                if field_path == path:
                    return i
        return None


def flatten(nodes: List[Node]) -> List[Union[Field, GroupField]]:
    """Expand sections in place, preserving document order.

    Args:
        nodes: Stage or section children

    Returns:
        Fields and groups only; sections never appear in the result
    """
    result = []
    for node in nodes:
        if node.kind == 'section':
            result.extend(flatten(node.fields))
        elif node.kind in ('field', 'group'):
            result.append(node)
        else:
            raise TypeError(f"Unknown node kind: {node.kind}")
    return result


def iter_fields(nodes: List[Node]) -> Iterator[Tuple[str, Field]]:
    """Yield ``(path, field)`` for every leaf field in document order."""
    for node in flatten(nodes):
        if node.kind == 'group':
            for child in node.fields:
                yield f'{node.name}.{child.name}', child
        else:
            yield node.name, node
